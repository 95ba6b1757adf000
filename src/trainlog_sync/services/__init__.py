"""Multi-record workflows for trainlog-sync."""

from .account import AccountService
from .search import SavedMovementSearch
from .training import TrainingService

__all__ = ["AccountService", "SavedMovementSearch", "TrainingService"]
