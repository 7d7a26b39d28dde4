from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from .autosave import DraftPersistence, TimerFactory
from .config import Settings
from .database import Database
from .drafts import DatabaseDraftStore, FileDraftStore
from .models import InspectionRecord, Job, JobStatus, WorkflowKind
from .photos import PhotoCaptureService
from .records import REQUIRED_JOB_STATUS, InspectionRecordService
from .steps import new_workflow_state
from .workflow import WorkflowController

logger = logging.getLogger(__name__)


@dataclass
class CollectionApp:
    settings: Settings
    database: Database
    drafts: DraftPersistence
    photos: PhotoCaptureService
    records: InspectionRecordService

    @classmethod
    def create(cls, settings: Settings) -> "CollectionApp":
        database = Database(settings.database_path)
        database.initialize()
        drafts = DraftPersistence(
            primary=DatabaseDraftStore(database),
            fallback=FileDraftStore(settings.drafts_dir),
        )
        photos = PhotoCaptureService(settings.upload_dir)
        records = InspectionRecordService(database)
        return cls(settings=settings, database=database, drafts=drafts, photos=photos, records=records)

    def seed_defaults(self) -> None:
        job_definitions = [
            ("OVM-1001", "AB12 CDE"),
            ("OVM-1002", "FG34 HIJ"),
            ("OVM-1003", "KL56 MNO"),
        ]
        for job_number, registration in job_definitions:
            if not self.database.get_job_by_number(job_number):
                self.database.add_job(job_number, registration)

    # Job operations
    def create_job(self, *, job_number: str, registration: str) -> Job:
        job_number = job_number.strip().upper()
        if not job_number:
            raise ValueError("Job number is required")
        if self.database.get_job_by_number(job_number):
            raise ValueError("Job number already exists")
        return self.database.add_job(job_number, registration.strip().upper())

    def get_job(self, job_id: int) -> Job:
        job = self.database.get_job(job_id)
        if not job:
            raise LookupError("Job not found")
        return job

    def list_jobs(self, *, status: Optional[JobStatus] = None) -> List[Job]:
        return list(self.database.list_jobs(status=status))

    # Workflow operations
    def open_workflow(
        self,
        job_id: int,
        kind: Union[WorkflowKind, str] = WorkflowKind.COLLECTION,
        *,
        timer_factory: Optional[TimerFactory] = None,
    ) -> WorkflowController:
        """Start or resume the inspection workflow for a job."""
        kind = WorkflowKind(kind)
        job = self.get_job(job_id)
        expected = REQUIRED_JOB_STATUS[kind]
        if job.status is not expected:
            raise ValueError(f"Job {job.job_number} is {job.status.value}; a {kind.value} needs it {expected.value}")
        state = self.drafts.load(job.id, kind)
        if state is None:
            state = new_workflow_state(job.id, kind)
            logger.info("Starting %s for job %s", kind.value, job.job_number)
        return WorkflowController(
            state,
            persistence=self.drafts,
            submitter=self.records.submit,
            photo_policy=self.settings.photo_policy,
            autosave_delay=self.settings.autosave_delay,
            timer_factory=timer_factory,
        )

    # Record operations
    def list_records(self, *, job_id: Optional[int] = None) -> List[InspectionRecord]:
        return self.records.list_records(job_id=job_id)

    def export_record(self, record_id: int) -> tuple[str, bytes]:
        return self.records.export_workbook(self.records.get_record(record_id))
