"""Training log, movement and saved movement models."""

import math
from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

from ..errors import ValidationError


class LogKind(str, Enum):
    """Which kind of parent a movement sibling set hangs off."""

    REGULAR = "regular"  # Parent is a TrainingLog
    TEMPLATE = "template"  # Parent is a ProgramLogTemplate


class MovementSetStatus(str, Enum):
    """Status of one set within a movement."""

    UNATTEMPTED = "unattempted"
    COMPLETED = "completed"


class MovementWeightUnit(str, Enum):
    KILOGRAMS = "Kg"
    POUNDS = "Lb"


class MovementRepCountUnit(str, Enum):
    REPS = "Reps"
    SECONDS = "Seconds"
    MINUTES = "Minutes"
    METERS = "Meters"


def parse_number(value: str | int | float, name: str = "value") -> float:
    """Parse user-entered numeric input.

    Raises:
        ValidationError: If the input is not a finite number
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {name}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {name}: {value!r}") from e
    if not math.isfinite(number):
        raise ValidationError(f"Invalid {name}: {value!r}")
    return number


@dataclass
class TrainingLog:
    """A dated training session."""

    timestamp: int  # epoch millis
    author_user_id: str
    bodyweight: float = 0  # Currently unitless
    note: str = ""
    # Set when the session was started from a program template
    program_id: str | None = None
    program_log_template_id: str | None = None
    id: str | None = None

    @property
    def owner_id(self) -> str:
        return self.author_user_id

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "timestamp": self.timestamp,
            "author_user_id": self.author_user_id,
            "bodyweight": self.bodyweight,
            "note": self.note,
            "program_id": self.program_id,
            "program_log_template_id": self.program_log_template_id,
        }

    @classmethod
    def from_dict(cls, data: dict, id: str | None = None) -> "TrainingLog":
        """Create from dictionary."""
        return cls(
            id=id,
            timestamp=data["timestamp"],
            author_user_id=data["author_user_id"],
            bodyweight=data.get("bodyweight", 0),
            note=data.get("note", ""),
            program_id=data.get("program_id"),
            program_log_template_id=data.get("program_log_template_id"),
        )


@dataclass
class MovementSet:
    """One set of a movement (not a set of movements)."""

    weight: float = 0
    rep_count_actual: int = 0  # Reps satisfactorily executed
    rep_count_expected: int = 0  # Minimum reps expected
    rep_count_max_expected: int = 0  # Maximum reps expected
    status: MovementSetStatus = MovementSetStatus.UNATTEMPTED
    uuid: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "status": self.status.value,
            "weight": self.weight,
            "rep_count_actual": self.rep_count_actual,
            "rep_count_expected": self.rep_count_expected,
            "rep_count_max_expected": self.rep_count_max_expected,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MovementSet":
        return cls(
            uuid=data["uuid"],
            status=MovementSetStatus(data.get("status", "unattempted")),
            weight=data.get("weight", 0),
            rep_count_actual=data.get("rep_count_actual", 0),
            rep_count_expected=data.get("rep_count_expected", 0),
            rep_count_max_expected=data.get("rep_count_max_expected", 0),
        )


@dataclass
class Movement:
    """A single performed instance of a saved movement.

    ``log_id`` points at a TrainingLog for live movements and at a
    ProgramLogTemplate for program movements. ``position`` is unique among
    siblings sharing the same ``log_id``.
    """

    name: str
    timestamp: int
    author_user_id: str
    log_id: str
    saved_movement_id: str
    saved_movement_name: str
    position: int
    weight_unit: MovementWeightUnit = MovementWeightUnit.POUNDS
    rep_count_unit: MovementRepCountUnit = MovementRepCountUnit.REPS
    is_favorited: bool = False
    sets: list[MovementSet] = field(default_factory=list)
    id: str | None = None

    @property
    def owner_id(self) -> str:
        return self.author_user_id

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "name": self.name,
            "timestamp": self.timestamp,
            "author_user_id": self.author_user_id,
            "log_id": self.log_id,
            "saved_movement_id": self.saved_movement_id,
            "saved_movement_name": self.saved_movement_name,
            "position": self.position,
            "weight_unit": self.weight_unit.value,
            "rep_count_unit": self.rep_count_unit.value,
            "is_favorited": self.is_favorited,
            "sets": [s.to_dict() for s in self.sets],
        }

    @classmethod
    def from_dict(cls, data: dict, id: str | None = None) -> "Movement":
        """Create from dictionary."""
        return cls(
            id=id,
            name=data["name"],
            timestamp=data["timestamp"],
            author_user_id=data["author_user_id"],
            log_id=data["log_id"],
            saved_movement_id=data["saved_movement_id"],
            saved_movement_name=data["saved_movement_name"],
            position=data["position"],
            weight_unit=MovementWeightUnit(data.get("weight_unit", "Lb")),
            rep_count_unit=MovementRepCountUnit(data.get("rep_count_unit", "Reps")),
            is_favorited=bool(data.get("is_favorited", False)),
            sets=[MovementSet.from_dict(s) for s in data.get("sets", [])],
        )


@dataclass
class SavedMovement:
    """Canonical identity of a recurring exercise.

    There may be 37 "yoga" Movements but only one "yoga" SavedMovement.
    """

    name: str
    author_user_id: str
    last_seen: int  # epoch millis this lineage was last put into a log
    note: str = ""
    id: str | None = None
    # Number of movements in this lineage; derived for ranking, never stored
    count: int = 0

    @property
    def owner_id(self) -> str:
        return self.author_user_id

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "author_user_id": self.author_user_id,
            "last_seen": self.last_seen,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict, id: str | None = None) -> "SavedMovement":
        return cls(
            id=id,
            name=data["name"],
            author_user_id=data["author_user_id"],
            last_seen=data.get("last_seen", 0),
            note=data.get("note", ""),
        )
