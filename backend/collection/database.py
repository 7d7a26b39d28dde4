from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, Iterable, Optional

from .models import Draft, InspectionRecord, Job, JobStatus, WorkflowKind, WorkflowStep

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class Database:
    """SQLite backed persistence for jobs, workflow drafts and finished inspections."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                PRAGMA foreign_keys = ON;
                CREATE TABLE IF NOT EXISTS jobs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_number TEXT NOT NULL UNIQUE,
                    registration TEXT NOT NULL,
                    status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    collected_at TEXT,
                    delivered_at TEXT
                );
                CREATE TABLE IF NOT EXISTS collection_drafts (
                    job_id INTEGER NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
                    kind TEXT NOT NULL,
                    current_step TEXT NOT NULL,
                    data TEXT NOT NULL,
                    revision INTEGER NOT NULL,
                    saved_at TEXT NOT NULL,
                    PRIMARY KEY (job_id, kind)
                );
                CREATE TABLE IF NOT EXISTS inspection_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    job_id INTEGER NOT NULL REFERENCES jobs(id),
                    kind TEXT NOT NULL,
                    data TEXT NOT NULL,
                    damage_count INTEGER NOT NULL DEFAULT 0,
                    photo_count INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_inspection_records_job
                    ON inspection_records(job_id);
            """
            )

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    @contextmanager
    def session(self) -> Generator[sqlite3.Connection, None, None]:
        with self._connect() as conn:
            yield conn

    # Job operations
    def add_job(self, job_number: str, registration: str, status: JobStatus = JobStatus.ASSIGNED) -> Job:
        now = _utcnow()
        with self.session() as conn:
            cursor = conn.execute(
                "INSERT INTO jobs (job_number, registration, status, created_at) VALUES (?, ?, ?, ?)",
                (job_number, registration, status.value, _format_datetime(now)),
            )
            job_id = cursor.lastrowid
        return Job(id=job_id, job_number=job_number, registration=registration, status=status, created_at=now)

    def get_job(self, job_id: int) -> Optional[Job]:
        with self.session() as conn:
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return _row_to_job(row) if row else None

    def get_job_by_number(self, job_number: str) -> Optional[Job]:
        with self.session() as conn:
            row = conn.execute("SELECT * FROM jobs WHERE job_number = ?", (job_number,)).fetchone()
        return _row_to_job(row) if row else None

    def list_jobs(self, *, status: Optional[JobStatus] = None) -> Iterable[Job]:
        query = "SELECT * FROM jobs"
        params: list[Any] = []
        if status is not None:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY job_number"
        with self.session() as conn:
            rows = conn.execute(query, params).fetchall()
        for row in rows:
            yield _row_to_job(row)

    def update_job_status(self, job_id: int, status: JobStatus, *, at: Optional[datetime] = None) -> Job:
        with self.session() as conn:
            _write_job_status(conn, job_id, status, at or _utcnow())
        job = self.get_job(job_id)
        assert job is not None
        return job

    # Draft operations
    def save_draft(
        self,
        *,
        job_id: int,
        kind: WorkflowKind,
        current_step: WorkflowStep,
        data: Dict[str, Any],
        revision: int,
    ) -> bool:
        """Upsert a draft; returns False when a newer revision is already stored."""
        with self.session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO collection_drafts (job_id, kind, current_step, data, revision, saved_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (job_id, kind) DO UPDATE SET
                    current_step = excluded.current_step,
                    data = excluded.data,
                    revision = excluded.revision,
                    saved_at = excluded.saved_at
                WHERE excluded.revision >= collection_drafts.revision
                """,
                (
                    job_id,
                    kind.value,
                    current_step.value,
                    json.dumps(data),
                    revision,
                    _format_datetime(_utcnow()),
                ),
            )
            stored = cursor.rowcount > 0
        return stored

    def get_draft(self, job_id: int, kind: WorkflowKind) -> Optional[Draft]:
        with self.session() as conn:
            row = conn.execute(
                "SELECT * FROM collection_drafts WHERE job_id = ? AND kind = ?",
                (job_id, kind.value),
            ).fetchone()
        return _row_to_draft(row) if row else None

    def delete_draft(self, job_id: int, kind: WorkflowKind) -> None:
        with self.session() as conn:
            conn.execute(
                "DELETE FROM collection_drafts WHERE job_id = ? AND kind = ?",
                (job_id, kind.value),
            )

    # Inspection record operations
    def add_inspection_record(
        self,
        *,
        job_id: int,
        kind: WorkflowKind,
        data: Dict[str, Any],
        damage_count: int,
        photo_count: int,
    ) -> InspectionRecord:
        now = _utcnow()
        with self.session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO inspection_records (job_id, kind, data, damage_count, photo_count, completed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (job_id, kind.value, json.dumps(data), damage_count, photo_count, _format_datetime(now)),
            )
            record_id = cursor.lastrowid
        return InspectionRecord(
            id=record_id,
            job_id=job_id,
            kind=kind,
            data=data,
            damage_count=damage_count,
            photo_count=photo_count,
            completed_at=now,
        )

    def complete_inspection(
        self,
        *,
        job_id: int,
        kind: WorkflowKind,
        expected_status: JobStatus,
        resulting_status: JobStatus,
        data: Dict[str, Any],
        damage_count: int,
        photo_count: int,
    ) -> Optional[InspectionRecord]:
        """Store the record and move the job on in one transaction.

        Returns None without writing anything when the job is no longer in
        ``expected_status``.
        """
        now = _utcnow()
        with self.session() as conn:
            row = conn.execute("SELECT status FROM jobs WHERE id = ?", (job_id,)).fetchone()
            if row is None or row["status"] != expected_status.value:
                return None
            cursor = conn.execute(
                """
                INSERT INTO inspection_records (job_id, kind, data, damage_count, photo_count, completed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (job_id, kind.value, json.dumps(data), damage_count, photo_count, _format_datetime(now)),
            )
            record_id = cursor.lastrowid
            _write_job_status(conn, job_id, resulting_status, now)
        return InspectionRecord(
            id=record_id,
            job_id=job_id,
            kind=kind,
            data=data,
            damage_count=damage_count,
            photo_count=photo_count,
            completed_at=now,
        )

    def get_inspection_record(self, record_id: int) -> Optional[InspectionRecord]:
        with self.session() as conn:
            row = conn.execute("SELECT * FROM inspection_records WHERE id = ?", (record_id,)).fetchone()
        return _row_to_record(row) if row else None

    def list_inspection_records(self, *, job_id: Optional[int] = None) -> Iterable[InspectionRecord]:
        query = "SELECT * FROM inspection_records"
        params: list[Any] = []
        if job_id is not None:
            query += " WHERE job_id = ?"
            params.append(job_id)
        query += " ORDER BY completed_at DESC, id DESC"
        with self.session() as conn:
            rows = conn.execute(query, params).fetchall()
        for row in rows:
            yield _row_to_record(row)


_STATUS_COLUMNS = {
    JobStatus.COLLECTED: "collected_at",
    JobStatus.DELIVERED: "delivered_at",
}


def _write_job_status(conn: sqlite3.Connection, job_id: int, status: JobStatus, at: datetime) -> None:
    column = _STATUS_COLUMNS.get(status)
    if column:
        conn.execute(
            f"UPDATE jobs SET status = ?, {column} = ? WHERE id = ?",
            (status.value, _format_datetime(at), job_id),
        )
    else:
        conn.execute("UPDATE jobs SET status = ? WHERE id = ?", (status.value, job_id))


def _row_to_job(row: sqlite3.Row) -> Job:
    return Job(
        id=row["id"],
        job_number=row["job_number"],
        registration=row["registration"],
        status=JobStatus(row["status"]),
        created_at=_parse_datetime(row["created_at"]),
        collected_at=_parse_datetime(row["collected_at"]) if row["collected_at"] else None,
        delivered_at=_parse_datetime(row["delivered_at"]) if row["delivered_at"] else None,
    )


def _row_to_draft(row: sqlite3.Row) -> Draft:
    return Draft(
        job_id=row["job_id"],
        kind=WorkflowKind(row["kind"]),
        current_step=WorkflowStep(row["current_step"]),
        data=json.loads(row["data"]),
        revision=row["revision"],
        saved_at=_parse_datetime(row["saved_at"]),
    )


def _row_to_record(row: sqlite3.Row) -> InspectionRecord:
    return InspectionRecord(
        id=row["id"],
        job_id=row["job_id"],
        kind=WorkflowKind(row["kind"]),
        data=json.loads(row["data"]),
        damage_count=row["damage_count"],
        photo_count=row["photo_count"],
        completed_at=_parse_datetime(row["completed_at"]),
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _format_datetime(value: datetime) -> str:
    return value.strftime(ISO_FORMAT)


def _parse_datetime(value: str) -> datetime:
    return datetime.strptime(value, ISO_FORMAT)
