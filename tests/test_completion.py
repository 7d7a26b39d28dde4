from __future__ import annotations

from datetime import datetime

import pytest

from backend.collection.completion import (
    section_complete,
    step_ready,
    step_status,
    workflow_summary,
)
from backend.collection.models import (
    DamageMarker,
    DamageSize,
    DamageType,
    Section,
    SectionState,
    StepStatus,
    TyreCondition,
    WorkflowStep,
)
from backend.collection.steps import (
    EXTERIOR_SECTIONS,
    INTERIOR_SECTIONS,
    WHEEL_SECTIONS,
    new_workflow_state,
    next_step,
    previous_step,
    section_step,
    step_order,
)


def _marker(marker_id: str, number: int, section: Section) -> DamageMarker:
    return DamageMarker(
        id=marker_id,
        number=number,
        x=10.0,
        y=20.0,
        section=section,
        type=DamageType.DENT,
        size=DamageSize.MEDIUM,
        description="",
        photos=[],
        timestamp=datetime(2024, 5, 1, 9, 30),
    )


def test_step_order_is_fixed() -> None:
    assert step_order() == (
        WorkflowStep.DOCUMENTATION,
        WorkflowStep.EXTERIOR,
        WorkflowStep.WHEELS_TYRES,
        WorkflowStep.INTERIOR,
        WorkflowStep.OTHER,
        WorkflowStep.SIGNATURE,
    )
    assert next_step(WorkflowStep.OVERVIEW) is WorkflowStep.DOCUMENTATION
    assert next_step(WorkflowStep.SIGNATURE) is None
    assert previous_step(WorkflowStep.DOCUMENTATION) is WorkflowStep.OVERVIEW
    assert section_step(Section.BOOT) is WorkflowStep.INTERIOR


def test_new_state_starts_on_overview_with_every_section() -> None:
    state = new_workflow_state(7)
    assert state.current_step is WorkflowStep.OVERVIEW
    assert set(state.exterior) == set(EXTERIOR_SECTIONS)
    assert set(state.wheels) == set(WHEEL_SECTIONS)
    assert set(state.interior) == set(INTERIOR_SECTIONS)
    assert all(step_status(step, state) is StepStatus.NOT_STARTED for step in step_order())


def test_section_complete_ignores_damage() -> None:
    state = new_workflow_state(1)
    assert not section_complete(state.exterior[Section.FRONT])
    state.damage_markers["a"] = _marker("a", 1, Section.FRONT)
    assert not section_complete(state.exterior[Section.FRONT])
    state.exterior[Section.FRONT].photos.append("/uploads/front.jpg")
    assert section_complete(state.exterior[Section.FRONT])
    assert section_complete(SectionState(photos=["one"]))


def test_documentation_scenario() -> None:
    state = new_workflow_state(1)
    state.documentation.v5_document = True
    state.documentation.service_documents = False
    state.documentation.locking_wheel_nut = True
    assert step_status(WorkflowStep.DOCUMENTATION, state) is StepStatus.COMPLETE

    state.documentation.service_documents = None
    assert step_status(WorkflowStep.DOCUMENTATION, state) is StepStatus.NOT_STARTED


def test_active_step_reports_continue_regardless_of_data() -> None:
    state = new_workflow_state(1)
    state.current_step = WorkflowStep.DOCUMENTATION
    assert step_status(WorkflowStep.DOCUMENTATION, state) is StepStatus.CONTINUE
    state.documentation.v5_document = True
    state.documentation.service_documents = True
    state.documentation.locking_wheel_nut = True
    assert step_status(WorkflowStep.DOCUMENTATION, state) is StepStatus.CONTINUE


def test_exterior_needs_all_five_sections() -> None:
    state = new_workflow_state(1)
    for section in EXTERIOR_SECTIONS[:4]:
        state.exterior[section].photos.append(f"/uploads/{section.value}.jpg")
    assert step_status(WorkflowStep.EXTERIOR, state) is StepStatus.NOT_STARTED

    state.exterior[Section.ROOF].photos.append("/uploads/roof.jpg")
    assert step_status(WorkflowStep.EXTERIOR, state) is StepStatus.COMPLETE


def test_wheels_need_photo_and_tyre_condition() -> None:
    state = new_workflow_state(1)
    for section in WHEEL_SECTIONS:
        state.wheels[section].photos.append("/uploads/wheel.jpg")
    assert step_status(WorkflowStep.WHEELS_TYRES, state) is StepStatus.NOT_STARTED

    for section in WHEEL_SECTIONS:
        state.wheels[section].tyre_condition = TyreCondition.OK
    assert step_status(WorkflowStep.WHEELS_TYRES, state) is StepStatus.COMPLETE

    state.wheels[Section.REAR_RIGHT].photos.clear()
    assert step_status(WorkflowStep.WHEELS_TYRES, state) is StepStatus.NOT_STARTED


def test_interior_other_and_signature() -> None:
    state = new_workflow_state(1)
    for section in INTERIOR_SECTIONS:
        state.interior[section].photos.append("/uploads/inside.jpg")
    assert step_status(WorkflowStep.INTERIOR, state) is StepStatus.COMPLETE

    state.notes = "   "
    assert step_status(WorkflowStep.OTHER, state) is StepStatus.NOT_STARTED
    state.notes = "Two keys"
    assert step_status(WorkflowStep.OTHER, state) is StepStatus.COMPLETE

    state.customer_signature = "J. Smith"
    assert step_status(WorkflowStep.SIGNATURE, state) is StepStatus.NOT_STARTED
    state.driver_signature = "D. Driver"
    assert step_status(WorkflowStep.SIGNATURE, state) is StepStatus.COMPLETE


def test_other_step_never_blocks_continue() -> None:
    state = new_workflow_state(1)
    assert step_ready(WorkflowStep.OTHER, state)
    assert not step_ready(WorkflowStep.DOCUMENTATION, state)
    assert step_ready(WorkflowStep.OVERVIEW, state)


@pytest.mark.parametrize("step", [step for step in step_order()])
def test_status_is_repeatable_for_inactive_steps(step: WorkflowStep) -> None:
    state = new_workflow_state(1)
    state.exterior[Section.FRONT].photos.append("/uploads/front.jpg")
    state.documentation.v5_document = False
    assert step_status(step, state) is step_status(step, state)


def test_summary_counts_damage_and_photos() -> None:
    state = new_workflow_state(3)
    state.exterior[Section.FRONT].photos.extend(["a", "b"])
    state.wheels[Section.FRONT_LEFT].photos.append("c")
    marker = _marker("m1", 1, Section.FRONT)
    marker.photos.append("d")
    state.damage_markers[marker.id] = marker
    state.damage_markers["m2"] = _marker("m2", 2, Section.REAR)

    summary = workflow_summary(state)
    assert summary["damage_reports"] == 2
    assert summary["photos_captured"] == 4
    assert summary["damage_by_section"] == {Section.FRONT: 1, Section.REAR: 1}
    assert summary["ready_to_submit"] is False
    assert summary["steps"][WorkflowStep.EXTERIOR] is StepStatus.NOT_STARTED


def test_overview_is_never_reported_as_started() -> None:
    state = new_workflow_state(1)
    assert state.current_step is WorkflowStep.OVERVIEW
    assert step_status(WorkflowStep.OVERVIEW, state) is StepStatus.NOT_STARTED
    state.current_step = WorkflowStep.EXTERIOR
    assert step_status(WorkflowStep.OVERVIEW, state) is StepStatus.NOT_STARTED
