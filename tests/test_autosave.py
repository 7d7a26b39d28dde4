from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

import pytest

from backend.collection.autosave import DebouncedSaver, DraftPersistence, draft_from_state
from backend.collection.drafts import DatabaseDraftStore, FileDraftStore
from backend.collection.errors import DraftStoreError
from backend.collection.models import Draft, Section, WorkflowKind, WorkflowStep
from backend.collection.steps import new_workflow_state


class BrokenStore:
    """A durable store that is always unreachable."""

    def __init__(self) -> None:
        self.attempts = 0

    def save(self, draft: Draft) -> bool:
        self.attempts += 1
        raise DraftStoreError("offline")

    def load(self, job_id: int, kind: WorkflowKind) -> Optional[Draft]:
        raise DraftStoreError("offline")

    def delete(self, job_id: int, kind: WorkflowKind) -> None:
        raise DraftStoreError("offline")


def test_rapid_changes_coalesce_into_one_save(timers) -> None:
    saved = []
    saver = DebouncedSaver(saved.append, delay=2.0, timer_factory=timers)
    state = new_workflow_state(1)
    for revision in range(1, 6):
        state.revision = revision
        saver.schedule(state)

    assert saver.pending
    assert len(timers.live) == 1
    assert timers.live[0].interval == 2.0
    assert timers.live[0].daemon is True
    assert timers.elapse() == 1
    assert len(saved) == 1
    assert saved[0].revision == 5
    assert not saver.pending


def test_flush_writes_immediately_and_cancel_drops(timers) -> None:
    saved = []
    saver = DebouncedSaver(saved.append, timer_factory=timers)
    saver.schedule(new_workflow_state(1))
    saver.flush()
    assert len(saved) == 1
    assert timers.live == []

    saver.schedule(new_workflow_state(2))
    saver.cancel()
    assert timers.elapse() == 0
    assert len(saved) == 1


def test_scheduled_save_writes_a_snapshot(timers) -> None:
    saved = []
    saver = DebouncedSaver(saved.append, timer_factory=timers)
    state = new_workflow_state(1)
    state.revision = 1
    saver.schedule(state)

    state.notes = "edited after scheduling"
    state.exterior[Section.FRONT].photos.append("/uploads/late.jpg")
    timers.elapse()

    assert saved[0] is not state
    assert saved[0].notes == ""
    assert saved[0].exterior[Section.FRONT].photos == []


def test_timer_thread_failure_is_logged_not_raised(timers, caplog) -> None:
    def broken_save(state):
        raise RuntimeError("disk full")

    saver = DebouncedSaver(broken_save, timer_factory=timers)
    saver.schedule(new_workflow_state(8))
    with caplog.at_level(logging.ERROR, logger="backend.collection"):
        assert timers.elapse() == 1
    assert "Auto-save for job 8 failed" in caplog.text
    assert not saver.pending


def test_cancel_waits_for_write_in_progress(timers) -> None:
    writing = threading.Event()
    release = threading.Event()
    events = []

    def slow_save(state):
        writing.set()
        release.wait(5)
        events.append("saved")

    saver = DebouncedSaver(slow_save, timer_factory=timers)
    saver.schedule(new_workflow_state(1))
    timer_thread = threading.Thread(target=timers.live[0].function)
    timer_thread.start()
    assert writing.wait(5)

    def cancel():
        saver.cancel()
        events.append("cancelled")

    cancel_thread = threading.Thread(target=cancel)
    cancel_thread.start()
    cancel_thread.join(0.2)
    assert cancel_thread.is_alive()

    release.set()
    timer_thread.join(5)
    cancel_thread.join(5)
    assert events == ["saved", "cancelled"]


def test_workflow_edits_produce_single_draft(workflow, seeded_app, timers) -> None:
    for section in (Section.FRONT, Section.REAR, Section.ROOF):
        workflow.add_photo(section, f"/uploads/{section.value}.jpg")
    workflow.set_notes("Keys in glovebox")
    workflow.go_to(WorkflowStep.EXTERIOR)
    assert seeded_app.database.get_draft(workflow.state.job_id, WorkflowKind.COLLECTION) is None

    timers.elapse()
    draft = seeded_app.database.get_draft(workflow.state.job_id, WorkflowKind.COLLECTION)
    assert draft is not None
    assert draft.revision == workflow.state.revision
    assert draft.current_step is WorkflowStep.EXTERIOR
    assert draft.data["notes"] == "Keys in glovebox"
    assert seeded_app.drafts.fallback.path_for(workflow.state.job_id, WorkflowKind.COLLECTION).exists()


def test_primary_failure_falls_back_to_local(tmp_path, caplog) -> None:
    primary = BrokenStore()
    local = FileDraftStore(tmp_path / "drafts")
    persistence = DraftPersistence(primary=primary, fallback=local)
    state = new_workflow_state(5)
    state.revision = 3

    with caplog.at_level(logging.WARNING, logger="backend.collection"):
        assert persistence.save(state) is True
    assert primary.attempts == 1
    assert local.load(5, WorkflowKind.COLLECTION).revision == 3
    assert "keeping a local copy" in caplog.text

    restored = persistence.load(5, WorkflowKind.COLLECTION)
    assert restored is not None
    assert restored.revision == 3


def test_load_prefers_newest_revision(settings, seeded_app, job) -> None:
    durable = DatabaseDraftStore(seeded_app.database)
    local = FileDraftStore(settings.drafts_dir)
    persistence = DraftPersistence(primary=durable, fallback=local)

    older = new_workflow_state(job.id)
    older.revision = 4
    older.notes = "durable"
    durable.save(draft_from_state(older))

    newer = new_workflow_state(job.id)
    newer.revision = 9
    newer.notes = "local"
    local.save(draft_from_state(newer))

    restored = persistence.load(job.id, WorkflowKind.COLLECTION)
    assert restored.notes == "local"
    assert restored.revision == 9


def test_load_breaks_revision_ties_by_save_time(tmp_path) -> None:
    first = FileDraftStore(tmp_path / "a")
    second = FileDraftStore(tmp_path / "b")
    state = new_workflow_state(1)
    state.revision = 2
    base = draft_from_state(state)
    state.notes = "later"
    first.save(replace(base, saved_at=datetime(2024, 1, 1, 9, 0)))
    second.save(replace(draft_from_state(state), saved_at=datetime(2024, 1, 1, 9, 0) + timedelta(seconds=5)))

    restored = DraftPersistence(primary=first, fallback=second).load(1, WorkflowKind.COLLECTION)
    assert restored.notes == "later"


def test_stale_writes_never_overwrite_newer_drafts(seeded_app, job, tmp_path) -> None:
    state = new_workflow_state(job.id)
    state.revision = 7
    assert seeded_app.database.save_draft(
        job_id=job.id, kind=WorkflowKind.COLLECTION, current_step=WorkflowStep.EXTERIOR, data={}, revision=7
    )
    assert not seeded_app.database.save_draft(
        job_id=job.id, kind=WorkflowKind.COLLECTION, current_step=WorkflowStep.OVERVIEW, data={}, revision=6
    )
    assert seeded_app.database.get_draft(job.id, WorkflowKind.COLLECTION).revision == 7

    local = FileDraftStore(tmp_path / "local")
    assert local.save(draft_from_state(state))
    state.revision = 5
    assert local.save(draft_from_state(state)) is False
    assert local.load(job.id, WorkflowKind.COLLECTION).revision == 7


def test_unreadable_local_draft_is_reported(tmp_path) -> None:
    local = FileDraftStore(tmp_path)
    local.path_for(3, WorkflowKind.DELIVERY).write_text("{not json", encoding="utf-8")
    with pytest.raises(DraftStoreError):
        local.load(3, WorkflowKind.DELIVERY)

    persistence = DraftPersistence(primary=FileDraftStore(tmp_path / "other"), fallback=local)
    assert persistence.load(3, WorkflowKind.DELIVERY) is None


def test_clear_removes_both_copies(seeded_app, job) -> None:
    state = new_workflow_state(job.id)
    state.revision = 1
    seeded_app.drafts.save(state)
    seeded_app.drafts.clear(job.id, WorkflowKind.COLLECTION)
    assert seeded_app.database.get_draft(job.id, WorkflowKind.COLLECTION) is None
    assert not seeded_app.drafts.fallback.path_for(job.id, WorkflowKind.COLLECTION).exists()
