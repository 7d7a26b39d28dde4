"""Debounced draft persistence for in-progress workflows.

Every change schedules a save; saves inside the debounce window coalesce so
only the latest state is written. Writes go to the durable store first and
to the device-local store as well; when the durable store is unreachable the
local copy is all that gets written and the failure is only logged.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .drafts import DraftStore
from .errors import DraftStoreError
from .models import Draft, WorkflowKind, WorkflowState
from .serialization import state_from_dict, state_to_dict

logger = logging.getLogger(__name__)

AUTOSAVE_DELAY_SECONDS = 2.0

TimerFactory = Callable[[float, Callable[[], None]], Any]


class DebouncedSaver:
    """Coalesces saves inside ``delay`` seconds and writes a snapshot of the latest state.

    The snapshot is taken on the caller's thread when a save is scheduled, so
    the timer thread never reads a state that is still being edited.
    """

    def __init__(
        self,
        save: Callable[[WorkflowState], Any],
        *,
        delay: float = AUTOSAVE_DELAY_SECONDS,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self._save = save
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        # Held for the whole of a write; cancel() waits on it.
        self._write_lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._pending: Optional[WorkflowState] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, state: WorkflowState) -> None:
        snapshot = copy.deepcopy(state)
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._pending = snapshot
            timer = self._timer_factory(self.delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def flush(self) -> None:
        with self._write_lock:
            state = self._take(cancel_timer=True)
            if state is not None:
                self._save(state)

    def cancel(self) -> None:
        """Drop any pending save and wait for a write already in progress."""
        self._take(cancel_timer=True)
        with self._write_lock:
            pass

    def _take(self, *, cancel_timer: bool) -> Optional[WorkflowState]:
        with self._lock:
            if cancel_timer and self._timer is not None:
                self._timer.cancel()
            self._timer = None
            state, self._pending = self._pending, None
        return state

    def _fire(self) -> None:
        with self._write_lock:
            state = self._take(cancel_timer=False)
            if state is None:
                return
            try:
                self._save(state)
            except Exception:
                logger.error("Auto-save for job %s failed", state.job_id, exc_info=True)


def draft_from_state(state: WorkflowState) -> Draft:
    return Draft(
        job_id=state.job_id,
        kind=state.kind,
        current_step=state.current_step,
        data=state_to_dict(state),
        revision=state.revision,
        saved_at=datetime.now(timezone.utc).replace(tzinfo=None),
    )


@dataclass
class DraftPersistence:
    primary: DraftStore
    fallback: DraftStore

    def save(self, state: WorkflowState) -> bool:
        draft = draft_from_state(state)
        try:
            self.primary.save(draft)
        except DraftStoreError:
            logger.warning(
                "Auto-save for job %s failed on the durable store; keeping a local copy",
                state.job_id,
                exc_info=True,
            )
            return self._save_local(draft)
        logger.debug("Auto-saved job %s at revision %s", state.job_id, state.revision)
        self._save_local(draft)
        return True

    def load(self, job_id: int, kind: WorkflowKind) -> Optional[WorkflowState]:
        drafts: list[Draft] = []
        for label, store in (("durable", self.primary), ("local", self.fallback)):
            try:
                draft = store.load(job_id, kind)
            except DraftStoreError:
                logger.warning("Could not read %s draft for job %s", label, job_id, exc_info=True)
                continue
            if draft is not None:
                drafts.append(draft)

        for draft in sorted(drafts, key=lambda item: (item.revision, item.saved_at), reverse=True):
            try:
                state = state_from_dict(draft.data)
            except (KeyError, TypeError, ValueError):
                logger.warning("Discarding unreadable draft for job %s", job_id, exc_info=True)
                continue
            logger.info("Restored %s draft for job %s at revision %s", kind.value, job_id, state.revision)
            return state
        return None

    def clear(self, job_id: int, kind: WorkflowKind) -> None:
        for label, store in (("durable", self.primary), ("local", self.fallback)):
            try:
                store.delete(job_id, kind)
            except DraftStoreError:
                logger.warning("Could not clear %s draft for job %s", label, job_id, exc_info=True)

    def _save_local(self, draft: Draft) -> bool:
        try:
            return self.fallback.save(draft)
        except DraftStoreError:
            logger.error("Local auto-save for job %s failed", draft.job_id, exc_info=True)
            return False
