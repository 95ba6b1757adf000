"""Data-synchronization core: query graph, mutations and invariants."""

from .mutations import MutationGate, delete_training_log, repair_orphaned_movements
from .query_graph import QueryGraph
from .reorder import PositionUpdate, next_position, plan_reorder, reorder
from .result_state import (
    EMPTY,
    LOADING,
    Empty,
    Error,
    Loading,
    Ready,
    ResultState,
    all_ready,
    map_state,
    unwrap,
    unwrap_or,
)
from .singletons import reconcile_program_user, repair_exclusive_flag, set_favorite, toggle_favorite
from .store import Store, StoreSnapshot

__all__ = [
    "all_ready",
    "delete_training_log",
    "EMPTY",
    "Empty",
    "Error",
    "LOADING",
    "Loading",
    "map_state",
    "MutationGate",
    "next_position",
    "plan_reorder",
    "PositionUpdate",
    "QueryGraph",
    "Ready",
    "reconcile_program_user",
    "reorder",
    "repair_exclusive_flag",
    "repair_orphaned_movements",
    "ResultState",
    "set_favorite",
    "Store",
    "StoreSnapshot",
    "toggle_favorite",
    "unwrap",
    "unwrap_or",
]
