from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class WorkflowKind(str, Enum):
    COLLECTION = "collection"
    DELIVERY = "delivery"


class WorkflowStep(str, Enum):
    OVERVIEW = "overview"
    DOCUMENTATION = "documentation"
    EXTERIOR = "exterior"
    WHEELS_TYRES = "wheels-tyres"
    INTERIOR = "interior"
    OTHER = "other"
    SIGNATURE = "signature"


class StepStatus(str, Enum):
    NOT_STARTED = "not-started"
    CONTINUE = "continue"
    COMPLETE = "complete"


class Section(str, Enum):
    FRONT = "front"
    REAR = "rear"
    DRIVER_SIDE = "driverSide"
    PASSENGER_SIDE = "passengerSide"
    ROOF = "roof"
    FRONT_LEFT = "frontLeft"
    FRONT_RIGHT = "frontRight"
    REAR_LEFT = "rearLeft"
    REAR_RIGHT = "rearRight"
    DASHBOARD = "dashboard"
    FRONT_SEATS = "frontSeats"
    REAR_SEATS = "rearSeats"
    BOOT = "boot"


class DamageView(str, Enum):
    FRONT = "front"
    REAR = "rear"
    SIDE_LEFT = "side-left"
    SIDE_RIGHT = "side-right"
    ROOF = "roof"


class DamageType(str, Enum):
    SCRATCH = "scratch"
    DENT = "dent"
    WINDSCREEN = "windscreen"
    CHIP = "chip"
    CRACK = "crack"
    SCUFF = "scuff"
    MISSING_PART = "missing-part"
    BROKEN_FITTINGS = "broken-fittings"
    BAD_REPAIR = "bad-repair"
    PAINTWORK = "paintwork"
    OTHER = "other"


class DamageSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class TyreCondition(str, Enum):
    OK = "ok"
    WORN = "worn"
    EXTREMELY_WORN = "extremely-worn"


class DamageFlowStep(str, Enum):
    MARK = "mark"
    PHOTO = "photo"
    TYPE = "type"
    SIZE = "size"
    DESCRIPTION = "description"
    COMPLETE = "complete"


class JobStatus(str, Enum):
    ASSIGNED = "assigned"
    COLLECTED = "collected"
    DELIVERED = "delivered"


SECTION_VIEWS: dict[Section, DamageView] = {
    Section.FRONT: DamageView.FRONT,
    Section.REAR: DamageView.REAR,
    Section.DRIVER_SIDE: DamageView.SIDE_LEFT,
    Section.PASSENGER_SIDE: DamageView.SIDE_RIGHT,
    Section.ROOF: DamageView.ROOF,
}


@dataclass
class DamageMarker:
    id: str
    number: int
    x: float
    y: float
    section: Section
    type: DamageType
    size: DamageSize
    description: str
    photos: List[str]
    timestamp: datetime

    @property
    def view(self) -> Optional[DamageView]:
        return SECTION_VIEWS.get(self.section)


@dataclass
class SectionState:
    photos: List[str] = field(default_factory=list)


@dataclass
class WheelState:
    photos: List[str] = field(default_factory=list)
    tyre_condition: Optional[TyreCondition] = None


@dataclass
class DocumentationCheck:
    v5_document: Optional[bool] = None
    service_documents: Optional[bool] = None
    locking_wheel_nut: Optional[bool] = None


@dataclass
class WorkflowState:
    job_id: int
    kind: WorkflowKind = WorkflowKind.COLLECTION
    current_step: WorkflowStep = WorkflowStep.OVERVIEW
    current_sub_section: Optional[Section] = None
    documentation: DocumentationCheck = field(default_factory=DocumentationCheck)
    exterior: Dict[Section, SectionState] = field(default_factory=dict)
    wheels: Dict[Section, WheelState] = field(default_factory=dict)
    interior: Dict[Section, SectionState] = field(default_factory=dict)
    damage_markers: Dict[str, DamageMarker] = field(default_factory=dict)
    notes: str = ""
    customer_signature: str = ""
    driver_signature: str = ""
    revision: int = 0
    updated_at: Optional[datetime] = None

    def section_damage(self, section: Section) -> List[DamageMarker]:
        return [marker for marker in self.damage_markers.values() if marker.section is section]

    def section_photos(self, section: Section) -> List[str]:
        for group in (self.exterior, self.wheels, self.interior):
            if section in group:
                return group[section].photos
        raise LookupError(f"Unknown section '{section.value}'")


@dataclass
class Job:
    id: int
    job_number: str
    registration: str
    status: JobStatus
    created_at: datetime
    collected_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


@dataclass
class Draft:
    job_id: int
    kind: WorkflowKind
    current_step: WorkflowStep
    data: Dict[str, Any]
    revision: int
    saved_at: datetime


@dataclass
class InspectionRecord:
    id: int
    job_id: int
    kind: WorkflowKind
    data: Dict[str, Any]
    damage_count: int
    photo_count: int
    completed_at: datetime
