"""Conversion of workflow state to and from JSON-compatible dictionaries.

Drafts written by older builds may lack keys; anything missing falls back to
the empty workflow so a partial draft still resumes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from .models import (
    DamageMarker,
    DamageSize,
    DamageType,
    DocumentationCheck,
    Section,
    SectionState,
    TyreCondition,
    WheelState,
    WorkflowKind,
    WorkflowState,
    WorkflowStep,
)
from .steps import EXTERIOR_SECTIONS, INTERIOR_SECTIONS, WHEEL_SECTIONS, new_workflow_state


def marker_to_dict(marker: DamageMarker) -> Dict[str, Any]:
    return {
        "id": marker.id,
        "number": marker.number,
        "x": marker.x,
        "y": marker.y,
        "section": marker.section.value,
        "view": marker.view.value if marker.view else None,
        "type": marker.type.value,
        "size": marker.size.value,
        "description": marker.description,
        "photos": list(marker.photos),
        "timestamp": marker.timestamp.isoformat(),
    }


def marker_from_dict(data: Mapping[str, Any]) -> DamageMarker:
    return DamageMarker(
        id=str(data["id"]),
        number=int(data["number"]),
        x=float(data["x"]),
        y=float(data["y"]),
        section=Section(data["section"]),
        type=DamageType(data.get("type", DamageType.SCRATCH.value)),
        size=DamageSize(data.get("size", DamageSize.SMALL.value)),
        description=data.get("description") or "",
        photos=list(data.get("photos") or []),
        timestamp=datetime.fromisoformat(data["timestamp"]),
    )


def state_to_dict(state: WorkflowState) -> Dict[str, Any]:
    documentation = state.documentation
    return {
        "jobId": state.job_id,
        "kind": state.kind.value,
        "currentStep": state.current_step.value,
        "currentSubSection": state.current_sub_section.value if state.current_sub_section else None,
        "documentation": {
            "v5Document": documentation.v5_document,
            "serviceDocuments": documentation.service_documents,
            "lockingWheelNut": documentation.locking_wheel_nut,
        },
        "exterior": {section.value: {"photos": list(value.photos)} for section, value in state.exterior.items()},
        "wheels": {
            section.value: {
                "photos": list(value.photos),
                "tyreCondition": value.tyre_condition.value if value.tyre_condition else None,
            }
            for section, value in state.wheels.items()
        },
        "interior": {section.value: {"photos": list(value.photos)} for section, value in state.interior.items()},
        "damageMarkers": [marker_to_dict(marker) for marker in state.damage_markers.values()],
        "notes": state.notes,
        "customerSignature": state.customer_signature,
        "driverSignature": state.driver_signature,
        "revision": state.revision,
        "updatedAt": state.updated_at.isoformat() if state.updated_at else None,
    }


def state_from_dict(data: Mapping[str, Any]) -> WorkflowState:
    state = new_workflow_state(int(data["jobId"]), WorkflowKind(data.get("kind", WorkflowKind.COLLECTION.value)))
    state.current_step = WorkflowStep(data.get("currentStep") or WorkflowStep.OVERVIEW.value)
    sub_section = data.get("currentSubSection")
    state.current_sub_section = Section(sub_section) if sub_section else None

    documentation = data.get("documentation") or {}
    state.documentation = DocumentationCheck(
        v5_document=documentation.get("v5Document"),
        service_documents=documentation.get("serviceDocuments"),
        locking_wheel_nut=documentation.get("lockingWheelNut"),
    )
    for section, value in _group_items(data.get("exterior"), EXTERIOR_SECTIONS):
        state.exterior[section] = SectionState(photos=list(value.get("photos") or []))
    for section, value in _group_items(data.get("wheels"), WHEEL_SECTIONS):
        condition = value.get("tyreCondition")
        state.wheels[section] = WheelState(
            photos=list(value.get("photos") or []),
            tyre_condition=TyreCondition(condition) if condition else None,
        )
    for section, value in _group_items(data.get("interior"), INTERIOR_SECTIONS):
        state.interior[section] = SectionState(photos=list(value.get("photos") or []))

    for marker_data in data.get("damageMarkers") or []:
        marker = marker_from_dict(marker_data)
        state.damage_markers[marker.id] = marker

    state.notes = data.get("notes") or ""
    state.customer_signature = data.get("customerSignature") or ""
    state.driver_signature = data.get("driverSignature") or ""
    state.revision = int(data.get("revision") or 0)
    state.updated_at = _parse_optional_datetime(data.get("updatedAt"))
    return state


def _parse_optional_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _group_items(
    group: Optional[Mapping[str, Any]], sections: Tuple[Section, ...]
) -> Iterator[Tuple[Section, Mapping[str, Any]]]:
    """Yield the entries of ``group`` that name one of ``sections``; anything else is dropped."""
    known = {section.value: section for section in sections}
    for key, value in (group or {}).items():
        if key in known and isinstance(value, Mapping):
            yield known[key], value
