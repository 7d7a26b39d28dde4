from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import (
    Section,
    SectionState,
    WheelState,
    WorkflowKind,
    WorkflowState,
    WorkflowStep,
)


@dataclass(frozen=True)
class StepDefinition:
    step: WorkflowStep
    title: str
    sections: tuple[Section, ...] = ()
    required: bool = True


EXTERIOR_SECTIONS: tuple[Section, ...] = (
    Section.FRONT,
    Section.REAR,
    Section.DRIVER_SIDE,
    Section.PASSENGER_SIDE,
    Section.ROOF,
)

WHEEL_SECTIONS: tuple[Section, ...] = (
    Section.FRONT_LEFT,
    Section.FRONT_RIGHT,
    Section.REAR_LEFT,
    Section.REAR_RIGHT,
)

INTERIOR_SECTIONS: tuple[Section, ...] = (
    Section.DASHBOARD,
    Section.FRONT_SEATS,
    Section.REAR_SEATS,
    Section.BOOT,
)

STEP_DEFINITIONS: tuple[StepDefinition, ...] = (
    StepDefinition(WorkflowStep.DOCUMENTATION, "Documentation"),
    StepDefinition(WorkflowStep.EXTERIOR, "Exterior", EXTERIOR_SECTIONS),
    StepDefinition(WorkflowStep.WHEELS_TYRES, "Wheels and tyres", WHEEL_SECTIONS),
    StepDefinition(WorkflowStep.INTERIOR, "Interior", INTERIOR_SECTIONS),
    StepDefinition(WorkflowStep.OTHER, "Other", required=False),
    StepDefinition(WorkflowStep.SIGNATURE, "Signature"),
)

_BY_STEP: dict[WorkflowStep, StepDefinition] = {definition.step: definition for definition in STEP_DEFINITIONS}

SECTION_LABELS: dict[Section, str] = {
    Section.FRONT: "Front",
    Section.REAR: "Rear",
    Section.DRIVER_SIDE: "Driver side",
    Section.PASSENGER_SIDE: "Passenger side",
    Section.ROOF: "Roof",
    Section.FRONT_LEFT: "Front left wheel",
    Section.FRONT_RIGHT: "Front right wheel",
    Section.REAR_LEFT: "Rear left wheel",
    Section.REAR_RIGHT: "Rear right wheel",
    Section.DASHBOARD: "Dashboard",
    Section.FRONT_SEATS: "Front seats",
    Section.REAR_SEATS: "Rear seats",
    Section.BOOT: "Boot",
}


def step_order() -> tuple[WorkflowStep, ...]:
    return tuple(definition.step for definition in STEP_DEFINITIONS)


def get_step_definition(step: WorkflowStep) -> StepDefinition:
    try:
        return _BY_STEP[step]
    except KeyError:
        raise ValueError(f"'{step.value}' is not an inspection step") from None


def next_step(step: WorkflowStep) -> Optional[WorkflowStep]:
    order = step_order()
    if step is WorkflowStep.OVERVIEW:
        return order[0]
    index = order.index(step)
    return order[index + 1] if index + 1 < len(order) else None


def previous_step(step: WorkflowStep) -> WorkflowStep:
    order = step_order()
    if step is WorkflowStep.OVERVIEW:
        return WorkflowStep.OVERVIEW
    index = order.index(step)
    return order[index - 1] if index > 0 else WorkflowStep.OVERVIEW


def section_step(section: Section) -> WorkflowStep:
    for definition in STEP_DEFINITIONS:
        if section in definition.sections:
            return definition.step
    raise ValueError(f"Section '{section.value}' is not part of any step")


def new_workflow_state(job_id: int, kind: WorkflowKind = WorkflowKind.COLLECTION) -> WorkflowState:
    """Empty workflow positioned on the overview with every section present."""
    return WorkflowState(
        job_id=job_id,
        kind=kind,
        exterior={section: SectionState() for section in EXTERIOR_SECTIONS},
        wheels={section: WheelState() for section in WHEEL_SECTIONS},
        interior={section: SectionState() for section in INTERIOR_SECTIONS},
    )
