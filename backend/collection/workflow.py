from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Union

from .autosave import AUTOSAVE_DELAY_SECONDS, DebouncedSaver, DraftPersistence, TimerFactory
from .completion import step_data_complete, step_ready, step_status, workflow_summary
from .damage import DamageCaptureFlow, PhotoPolicy, ProvisionalMarker
from .errors import DamageFlowError, StepIncompleteError, SubmissionError, WorkflowFinishedError
from .models import (
    DamageMarker,
    DamageSize,
    DamageType,
    InspectionRecord,
    Section,
    StepStatus,
    TyreCondition,
    WorkflowState,
    WorkflowStep,
)
from .steps import WHEEL_SECTIONS, next_step, previous_step, section_step

logger = logging.getLogger(__name__)

Submitter = Callable[[WorkflowState], InspectionRecord]

DOCUMENTATION_FIELDS = ("v5_document", "service_documents", "locking_wheel_nut")


class WorkflowController:
    """Owns one job's inspection workflow: navigation, capture and auto-save."""

    def __init__(
        self,
        state: WorkflowState,
        *,
        persistence: Optional[DraftPersistence] = None,
        submitter: Optional[Submitter] = None,
        photo_policy: PhotoPolicy = PhotoPolicy.REQUIRED,
        autosave_delay: float = AUTOSAVE_DELAY_SECONDS,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.state = state
        self.persistence = persistence
        self.submitter = submitter
        self.photo_policy = photo_policy
        self.finished = False
        self.damage_capture: Optional[DamageCaptureFlow] = None
        self.autosaver: Optional[DebouncedSaver] = None
        if persistence is not None:
            saver_options: dict[str, Any] = {"delay": autosave_delay}
            if timer_factory is not None:
                saver_options["timer_factory"] = timer_factory
            self.autosaver = DebouncedSaver(persistence.save, **saver_options)

    # Navigation
    def go_to(self, step: Union[WorkflowStep, str]) -> WorkflowStep:
        self._ensure_open()
        target = WorkflowStep(step)
        self.state.current_step = target
        self.state.current_sub_section = None
        self._changed()
        return target

    def open_sub_section(self, section: Union[Section, str]) -> Section:
        self._ensure_open()
        target = Section(section)
        if section_step(target) is not self.state.current_step:
            raise ValueError(f"Section '{target.value}' is not part of the {self.state.current_step.value} step")
        self.state.current_sub_section = target
        self._changed()
        return target

    def close_sub_section(self) -> None:
        self._ensure_open()
        if self.state.current_sub_section is None:
            return
        self.state.current_sub_section = None
        self._changed()

    def can_continue(self) -> bool:
        current = self.state.current_step
        if current is WorkflowStep.SIGNATURE:
            return False
        return step_ready(current, self.state)

    def continue_(self) -> WorkflowStep:
        self._ensure_open()
        current = self.state.current_step
        if current is WorkflowStep.SIGNATURE:
            raise StepIncompleteError("The signature step finishes with submit, not continue")
        if not step_ready(current, self.state):
            raise StepIncompleteError(f"The {current.value} step is not complete yet")
        following = next_step(current)
        assert following is not None
        return self.go_to(following)

    def back(self) -> WorkflowStep:
        return self.go_to(previous_step(self.state.current_step))

    def step_status(self, step: Union[WorkflowStep, str]) -> StepStatus:
        return step_status(WorkflowStep(step), self.state)

    def summary(self) -> dict[str, Any]:
        return workflow_summary(self.state)

    # Section capture
    def add_photo(self, section: Union[Section, str], reference: Optional[str]) -> bool:
        self._ensure_open()
        photos = self.state.section_photos(Section(section))
        if not reference:
            logger.info("Photo capture for %s returned nothing", Section(section).value)
            return False
        photos.append(reference)
        self._changed()
        return True

    def remove_photo(self, section: Union[Section, str], index: int) -> str:
        self._ensure_open()
        photos = self.state.section_photos(Section(section))
        try:
            removed = photos.pop(index)
        except IndexError:
            raise LookupError(f"No photo at position {index}") from None
        self._changed()
        return removed

    def set_tyre_condition(self, wheel: Union[Section, str], condition: Union[TyreCondition, str, None]) -> None:
        self._ensure_open()
        section = Section(wheel)
        if section not in WHEEL_SECTIONS:
            raise ValueError(f"'{section.value}' is not a wheel position")
        self.state.wheels[section].tyre_condition = TyreCondition(condition) if condition is not None else None
        self._changed()

    def set_documentation(self, **checks: Optional[bool]) -> None:
        self._ensure_open()
        for name, value in checks.items():
            if name not in DOCUMENTATION_FIELDS:
                raise ValueError(f"Unknown documentation check '{name}'")
            if value is not None and not isinstance(value, bool):
                raise ValueError(f"Documentation check '{name}' must be yes, no or unanswered")
        for name, value in checks.items():
            setattr(self.state.documentation, name, value)
        self._changed()

    def set_notes(self, notes: str) -> None:
        self._ensure_open()
        self.state.notes = notes
        self._changed()

    def set_signatures(self, *, customer: Optional[str] = None, driver: Optional[str] = None) -> None:
        self._ensure_open()
        if customer is not None:
            self.state.customer_signature = customer
        if driver is not None:
            self.state.driver_signature = driver
        self._changed()

    # Damage markers
    def start_damage_capture(self, section: Union[Section, str, None] = None) -> DamageCaptureFlow:
        self._ensure_open()
        if self.damage_capture is not None and not self.damage_capture.closed:
            raise DamageFlowError("Finish or cancel the current damage report first")
        target = Section(section) if section is not None else self.state.current_sub_section
        if target is None:
            raise DamageFlowError("Choose a section before marking damage")
        self.damage_capture = DamageCaptureFlow(target, self._commit_marker, photo_policy=self.photo_policy)
        return self.damage_capture

    def markers_for(self, section: Union[Section, str]) -> List[DamageMarker]:
        return self.state.section_damage(Section(section))

    def all_markers(self) -> List[DamageMarker]:
        return list(self.state.damage_markers.values())

    def update_marker(
        self,
        marker_id: str,
        *,
        type: Union[DamageType, str, None] = None,
        size: Union[DamageSize, str, None] = None,
        description: Optional[str] = None,
        photos: Optional[List[str]] = None,
    ) -> DamageMarker:
        self._ensure_open()
        marker = self._get_marker(marker_id)
        if type is not None:
            marker.type = DamageType(type)
        if size is not None:
            marker.size = DamageSize(size)
        if description is not None:
            marker.description = description.strip()
        if photos is not None:
            marker.photos = list(photos)
        self._changed()
        return marker

    def delete_marker(self, marker_id: str) -> DamageMarker:
        self._ensure_open()
        marker = self._get_marker(marker_id)
        del self.state.damage_markers[marker_id]
        self._changed()
        return marker

    def _commit_marker(self, provisional: ProvisionalMarker) -> DamageMarker:
        self._ensure_open()
        marker = DamageMarker(
            id=provisional.id,
            number=len(self.state.damage_markers) + 1,
            x=provisional.x,
            y=provisional.y,
            section=provisional.section,
            type=provisional.type,
            size=provisional.size,
            description=provisional.description,
            photos=list(provisional.photos),
            timestamp=provisional.timestamp,
        )
        self.state.damage_markers[marker.id] = marker
        logger.info(
            "Damage %s recorded on job %s: %s (%s) in %s",
            marker.number,
            self.state.job_id,
            marker.type.value,
            marker.size.value,
            marker.section.value,
        )
        self._changed()
        return marker

    def _get_marker(self, marker_id: str) -> DamageMarker:
        marker = self.state.damage_markers.get(marker_id)
        if marker is None:
            raise LookupError(f"Damage marker '{marker_id}' not found")
        return marker

    # Completion
    def submit(self) -> InspectionRecord:
        self._ensure_open()
        if self.state.current_step is not WorkflowStep.SIGNATURE:
            raise StepIncompleteError("Submission happens from the signature step")
        if not step_data_complete(WorkflowStep.SIGNATURE, self.state):
            raise StepIncompleteError("Both customer and driver signatures are required")
        if self.submitter is None:
            raise SubmissionError("No submission endpoint configured")
        self.flush()
        record = self.submitter(self.state)
        self.finished = True
        if self.autosaver is not None:
            self.autosaver.cancel()
        if self.persistence is not None:
            self.persistence.clear(self.state.job_id, self.state.kind)
        logger.info("Job %s %s submitted as record %s", self.state.job_id, self.state.kind.value, record.id)
        return record

    def flush(self) -> None:
        if self.autosaver is not None:
            self.autosaver.flush()

    def _changed(self) -> None:
        self.state.revision += 1
        self.state.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
        if self.autosaver is not None:
            self.autosaver.schedule(self.state)

    def _ensure_open(self) -> None:
        if self.finished:
            raise WorkflowFinishedError(f"Workflow for job {self.state.job_id} has already been submitted")
