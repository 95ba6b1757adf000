"""Data models for trainlog-sync."""

from .program import NextTraining, Program, ProgramLogTemplate, ProgramUser, Weekday
from .training import (
    LogKind,
    Movement,
    MovementRepCountUnit,
    MovementSet,
    MovementSetStatus,
    MovementWeightUnit,
    SavedMovement,
    TrainingLog,
    parse_number,
)

__all__ = [
    "LogKind",
    "Movement",
    "MovementRepCountUnit",
    "MovementSet",
    "MovementSetStatus",
    "MovementWeightUnit",
    "NextTraining",
    "parse_number",
    "Program",
    "ProgramLogTemplate",
    "ProgramUser",
    "SavedMovement",
    "TrainingLog",
    "Weekday",
]
