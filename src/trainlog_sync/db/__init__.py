"""Remote document store layer for trainlog-sync."""

from .collection import (
    CollectionName,
    Collections,
    RemoteCollection,
    SqliteCollection,
    WriteBatch,
    limit,
    order_by,
    where,
)
from .engine import get_db_path, init_db

__all__ = [
    "CollectionName",
    "Collections",
    "get_db_path",
    "init_db",
    "limit",
    "order_by",
    "RemoteCollection",
    "SqliteCollection",
    "where",
    "WriteBatch",
]
