from __future__ import annotations

from typing import Any, Iterable

from .models import Section, SectionState, StepStatus, WheelState, WorkflowState, WorkflowStep
from .steps import get_step_definition, step_order


def section_complete(section: SectionState) -> bool:
    return len(section.photos) >= 1


def wheel_complete(wheel: WheelState) -> bool:
    return len(wheel.photos) >= 1 and wheel.tyre_condition is not None


def _all_complete(sections: Iterable[SectionState]) -> bool:
    return all(section_complete(section) for section in sections)


def step_data_complete(step: WorkflowStep, state: WorkflowState) -> bool:
    """Data-only completeness of a step, ignoring which step is active."""
    if step is WorkflowStep.DOCUMENTATION:
        checks = state.documentation
        return (
            checks.v5_document is not None
            and checks.service_documents is not None
            and checks.locking_wheel_nut is not None
        )
    if step is WorkflowStep.EXTERIOR:
        return _all_complete(state.exterior[section] for section in get_step_definition(step).sections)
    if step is WorkflowStep.WHEELS_TYRES:
        return all(wheel_complete(state.wheels[section]) for section in get_step_definition(step).sections)
    if step is WorkflowStep.INTERIOR:
        return _all_complete(state.interior[section] for section in get_step_definition(step).sections)
    if step is WorkflowStep.OTHER:
        return bool(state.notes.strip())
    if step is WorkflowStep.SIGNATURE:
        return bool(state.customer_signature.strip()) and bool(state.driver_signature.strip())
    return False


def step_status(step: WorkflowStep, state: WorkflowState) -> StepStatus:
    if step is WorkflowStep.OVERVIEW:
        return StepStatus.NOT_STARTED
    if step is state.current_step:
        return StepStatus.CONTINUE
    return StepStatus.COMPLETE if step_data_complete(step, state) else StepStatus.NOT_STARTED


def step_ready(step: WorkflowStep, state: WorkflowState) -> bool:
    """Whether the "Continue" action may leave ``step``."""
    if step is WorkflowStep.OVERVIEW:
        return True
    if not get_step_definition(step).required:
        return True
    return step_data_complete(step, state)


def photo_count(state: WorkflowState) -> int:
    section_photos = sum(
        len(section.photos)
        for group in (state.exterior, state.wheels, state.interior)
        for section in group.values()
    )
    marker_photos = sum(len(marker.photos) for marker in state.damage_markers.values())
    return section_photos + marker_photos


def workflow_summary(state: WorkflowState) -> dict[str, Any]:
    damage_by_section: dict[Section, int] = {}
    for marker in state.damage_markers.values():
        damage_by_section[marker.section] = damage_by_section.get(marker.section, 0) + 1
    return {
        "job_id": state.job_id,
        "kind": state.kind,
        "current_step": state.current_step,
        "steps": {step: step_status(step, state) for step in step_order()},
        "damage_reports": len(state.damage_markers),
        "damage_by_section": damage_by_section,
        "photos_captured": photo_count(state),
        "ready_to_submit": all(
            step_ready(step, state) for step in step_order()
        ),
    }
