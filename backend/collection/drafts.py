from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from .database import Database
from .errors import DraftStoreError
from .models import Draft, WorkflowKind, WorkflowStep

logger = logging.getLogger(__name__)


class DraftStore(Protocol):
    def save(self, draft: Draft) -> bool: ...

    def load(self, job_id: int, kind: WorkflowKind) -> Optional[Draft]: ...

    def delete(self, job_id: int, kind: WorkflowKind) -> None: ...


@dataclass
class DatabaseDraftStore:
    """Durable draft store shared by every device, backed by the jobs database."""

    database: Database

    def save(self, draft: Draft) -> bool:
        try:
            return self.database.save_draft(
                job_id=draft.job_id,
                kind=draft.kind,
                current_step=draft.current_step,
                data=draft.data,
                revision=draft.revision,
            )
        except sqlite3.Error as exc:
            raise DraftStoreError(f"Could not store draft for job {draft.job_id}") from exc

    def load(self, job_id: int, kind: WorkflowKind) -> Optional[Draft]:
        try:
            return self.database.get_draft(job_id, kind)
        except sqlite3.Error as exc:
            raise DraftStoreError(f"Could not read draft for job {job_id}") from exc

    def delete(self, job_id: int, kind: WorkflowKind) -> None:
        try:
            self.database.delete_draft(job_id, kind)
        except sqlite3.Error as exc:
            raise DraftStoreError(f"Could not delete draft for job {job_id}") from exc


class FileDraftStore:
    """Device-local fallback: one JSON document per job and workflow kind."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, job_id: int, kind: WorkflowKind) -> Path:
        return self.directory / f"{kind.value}-{job_id}.json"

    def save(self, draft: Draft) -> bool:
        existing = self.load(draft.job_id, draft.kind)
        if existing is not None and existing.revision > draft.revision:
            logger.debug(
                "Skipping stale local draft for job %s (revision %s < %s)",
                draft.job_id,
                draft.revision,
                existing.revision,
            )
            return False
        payload = {
            "jobId": draft.job_id,
            "kind": draft.kind.value,
            "currentStep": draft.current_step.value,
            "revision": draft.revision,
            "savedAt": draft.saved_at.isoformat(),
            "data": draft.data,
        }
        target = self.path_for(draft.job_id, draft.kind)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=target.stem, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle)
            os.replace(tmp_name, target)
        except OSError as exc:
            raise DraftStoreError(f"Could not write local draft {target}") from exc
        return True

    def load(self, job_id: int, kind: WorkflowKind) -> Optional[Draft]:
        path = self.path_for(job_id, kind)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return Draft(
                job_id=int(payload["jobId"]),
                kind=WorkflowKind(payload["kind"]),
                current_step=WorkflowStep(payload["currentStep"]),
                data=payload["data"],
                revision=int(payload["revision"]),
                saved_at=datetime.fromisoformat(payload["savedAt"]),
            )
        except (OSError, ValueError, KeyError) as exc:
            raise DraftStoreError(f"Could not read local draft {path}") from exc

    def delete(self, job_id: int, kind: WorkflowKind) -> None:
        try:
            self.path_for(job_id, kind).unlink(missing_ok=True)
        except OSError as exc:
            raise DraftStoreError(f"Could not delete local draft for job {job_id}") from exc
