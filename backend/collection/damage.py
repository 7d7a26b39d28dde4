from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Union

from .errors import DamageFlowError
from .models import DamageFlowStep, DamageMarker, DamageSize, DamageType, Section

logger = logging.getLogger(__name__)

POSITION_MIN = 0.0
POSITION_MAX = 100.0


class PhotoPolicy(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass
class ProvisionalMarker:
    id: str
    x: float
    y: float
    section: Section
    timestamp: datetime
    type: DamageType = DamageType.SCRATCH
    size: DamageSize = DamageSize.SMALL
    photos: List[str] = field(default_factory=list)
    description: str = ""


CommitMarker = Callable[[ProvisionalMarker], DamageMarker]


def new_marker_id() -> str:
    return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class DamageCaptureFlow:
    """Step-by-step capture of one damage marker: mark, photo, type, size, description.

    Nothing reaches the workflow until :meth:`complete`; cancelling at any
    point discards the provisional marker.
    """

    _PREVIOUS = {
        DamageFlowStep.PHOTO: DamageFlowStep.MARK,
        DamageFlowStep.TYPE: DamageFlowStep.PHOTO,
        DamageFlowStep.SIZE: DamageFlowStep.TYPE,
        DamageFlowStep.DESCRIPTION: DamageFlowStep.SIZE,
    }

    def __init__(
        self,
        section: Section,
        commit: CommitMarker,
        *,
        photo_policy: PhotoPolicy = PhotoPolicy.REQUIRED,
    ) -> None:
        self.section = section
        self.photo_policy = photo_policy
        self.step = DamageFlowStep.MARK
        self.marker: Optional[ProvisionalMarker] = None
        self.closed = False
        self._commit = commit

    def mark(self, x: float, y: float) -> ProvisionalMarker:
        self._expect(DamageFlowStep.MARK)
        for label, value in (("x", x), ("y", y)):
            if not POSITION_MIN <= value <= POSITION_MAX:
                raise DamageFlowError(f"Marker {label} position must be between 0 and 100")
        if self.marker is None:
            self.marker = ProvisionalMarker(
                id=new_marker_id(),
                x=float(x),
                y=float(y),
                section=self.section,
                timestamp=datetime.now(timezone.utc).replace(tzinfo=None),
            )
        else:
            self.marker.x, self.marker.y = float(x), float(y)
        self.step = DamageFlowStep.PHOTO
        return self.marker

    def add_photo(self, reference: Optional[str]) -> bool:
        self._expect(DamageFlowStep.PHOTO)
        if not reference:
            logger.info("Photo capture for damage in %s returned nothing", self.section.value)
            return False
        assert self.marker is not None
        self.marker.photos.append(reference)
        return True

    def remove_photo(self, index: int) -> str:
        self._expect(DamageFlowStep.PHOTO)
        assert self.marker is not None
        try:
            return self.marker.photos.pop(index)
        except IndexError:
            raise DamageFlowError(f"No photo at position {index}") from None

    def proceed_to_type(self) -> None:
        self._expect(DamageFlowStep.PHOTO)
        assert self.marker is not None
        if self.photo_policy is PhotoPolicy.REQUIRED and not self.marker.photos:
            raise DamageFlowError("Take at least one photo of the damage before continuing")
        self.step = DamageFlowStep.TYPE

    def choose_type(self, damage_type: Union[DamageType, str]) -> None:
        self._expect(DamageFlowStep.TYPE)
        assert self.marker is not None
        self.marker.type = _coerce(DamageType, damage_type, "damage type")
        self.step = DamageFlowStep.SIZE

    def choose_size(self, size: Union[DamageSize, str]) -> None:
        self._expect(DamageFlowStep.SIZE)
        assert self.marker is not None
        self.marker.size = _coerce(DamageSize, size, "damage size")
        self.step = DamageFlowStep.DESCRIPTION

    def complete(self, description: str = "") -> DamageMarker:
        self._expect(DamageFlowStep.DESCRIPTION)
        assert self.marker is not None
        self.marker.description = description.strip()
        committed = self._commit(self.marker)
        self._close()
        return committed

    def back(self) -> None:
        if self.closed:
            raise DamageFlowError("Damage capture is already closed")
        previous = self._PREVIOUS.get(self.step)
        if previous is None:
            raise DamageFlowError("Already at the first damage capture step")
        self.step = previous

    def cancel(self) -> None:
        self._close()

    def _close(self) -> None:
        self.marker = None
        self.step = DamageFlowStep.MARK
        self.closed = True

    def _expect(self, step: DamageFlowStep) -> None:
        if self.closed:
            raise DamageFlowError("Damage capture is already closed")
        if self.step is not step:
            raise DamageFlowError(f"Damage capture is at '{self.step.value}', not '{step.value}'")


def _coerce(enum_type, value, label: str):
    try:
        return enum_type(value)
    except ValueError:
        raise DamageFlowError(f"Unknown {label} '{value}'") from None
