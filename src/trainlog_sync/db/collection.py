"""Remote document collections.

The data-sync layer only talks to the store through ``RemoteCollection``.
``SqliteCollection`` implements it on top of a single JSON document table.
"""

import json
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Generic, Protocol, TypeVar, runtime_checkable
from uuid import uuid4

import aiosqlite

from ..errors import NotFoundError, TransportError, ValidationError
from ..models.program import Program, ProgramLogTemplate, ProgramUser
from ..models.training import LogKind, Movement, SavedMovement, TrainingLog
from .engine import get_db_path

logger = logging.getLogger(__name__)


class CollectionName(str, Enum):
    """Names of the remote collections."""

    TRAINING_LOGS = "training_logs"
    MOVEMENTS = "movements"
    SAVED_MOVEMENTS = "saved_movements"
    PROGRAMS = "programs"
    PROGRAM_LOG_TEMPLATES = "program_log_templates"
    PROGRAM_USERS = "program_users"
    PROGRAM_MOVEMENTS = "program_movements"


# Query operators -> SQL operators
OPERATORS = {
    "==": "=",
    "!=": "!=",
    "<": "<",
    "<=": "<=",
    ">": ">",
    ">=": ">=",
    "in": "IN",
}

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_field(field: str) -> str:
    if not _FIELD_RE.match(field):
        raise ValidationError(f"Invalid field name: {field!r}")
    return field


@dataclass(frozen=True)
class Where:
    """Equality/range filter on one field."""

    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = "asc"


@dataclass(frozen=True)
class Limit:
    count: int


def where(field: str, op: str, value: Any) -> Where:
    """Build a filter clause, e.g. ``where("log_id", "==", log.id)``."""
    if op not in OPERATORS:
        raise ValidationError(f"Unsupported operator: {op!r}")
    if op == "in":
        value = tuple(value)
    return Where(_check_field(field), op, value)


def order_by(field: str, direction: str = "asc") -> OrderBy:
    if direction not in ("asc", "desc"):
        raise ValidationError(f"Invalid order direction: {direction!r}")
    return OrderBy(_check_field(field), direction)


def limit(count: int) -> Limit:
    if count < 0:
        raise ValidationError(f"Invalid limit: {count}")
    return Limit(count)


Clause = Where | OrderBy | Limit


def _encode(value: Any) -> Any:
    """Make a field value JSON-serializable."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(_encode(k)): _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _build_filter(clauses: tuple[Clause, ...]) -> tuple[str, list[Any], str]:
    """Translate clauses into (WHERE fragment, params, ORDER/LIMIT suffix)."""
    conditions: list[str] = []
    params: list[Any] = []
    orders: list[str] = []
    suffix = ""

    for clause in clauses:
        if isinstance(clause, Where):
            column = f"json_extract(data, '$.{clause.field}')"
            if clause.value is None and clause.op in ("==", "!="):
                conditions.append(f"{column} IS {'NOT ' if clause.op == '!=' else ''}NULL")
            elif clause.op == "in":
                if not clause.value:
                    conditions.append("0")
                    continue
                placeholders = ", ".join("?" for _ in clause.value)
                conditions.append(f"{column} IN ({placeholders})")
                params.extend(_encode(v) for v in clause.value)
            else:
                conditions.append(f"{column} {OPERATORS[clause.op]} ?")
                params.append(_encode(clause.value))
        elif isinstance(clause, OrderBy):
            orders.append(f"json_extract(data, '$.{clause.field}') {clause.direction.upper()}")
        elif isinstance(clause, Limit):
            suffix = f" LIMIT {int(clause.count)}"

    where_sql = "".join(f" AND {c}" for c in conditions)
    # Creation order is the final tie-break so fetch order is stable
    orders.append("seq ASC")
    return where_sql, params, " ORDER BY " + ", ".join(orders) + suffix


def new_id() -> str:
    """Generate a server-side document id."""
    return uuid4().hex[:20]


@asynccontextmanager
async def connect(db_path: Path) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection, re-raising driver failures as TransportError."""
    try:
        async with aiosqlite.connect(db_path) as db:
            db.row_factory = aiosqlite.Row
            yield db
    except aiosqlite.Error as e:
        raise TransportError(str(e)) from e


async def _insert(db: aiosqlite.Connection, collection: str, doc_id: str, data: dict) -> None:
    await db.execute(
        """
        INSERT INTO documents (collection, id, seq, data)
        VALUES (?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM documents), ?)
        """,
        (collection, doc_id, json.dumps(data)),
    )


async def _merge(db: aiosqlite.Connection, collection: str, doc_id: str, changes: dict) -> dict:
    cursor = await db.execute(
        "SELECT data FROM documents WHERE collection = ? AND id = ?", (collection, doc_id)
    )
    row = await cursor.fetchone()
    if row is None:
        raise NotFoundError(collection, doc_id)
    data = json.loads(row["data"])
    data.update({k: _encode(v) for k, v in changes.items() if k != "id"})
    await db.execute(
        "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
        (json.dumps(data), collection, doc_id),
    )
    return data


class WriteBatch:
    """A group of writes committed in one transaction.

    Either every operation is applied or none is.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._ops: list[tuple[str, str, str, dict]] = []

    def __len__(self) -> int:
        return len(self._ops)

    def set(self, collection: str, data: dict, doc_id: str | None = None) -> str:
        """Queue a document creation and return its id."""
        doc_id = doc_id or new_id()
        self._ops.append(("set", _encode(collection), doc_id, _encode(data)))
        return doc_id

    def update(self, collection: str, doc_id: str, changes: dict) -> None:
        self._ops.append(("update", _encode(collection), doc_id, changes))

    def delete(self, collection: str, doc_id: str) -> None:
        self._ops.append(("delete", _encode(collection), doc_id, {}))

    async def commit(self) -> None:
        """Apply all queued writes atomically."""
        if not self._ops:
            return
        async with connect(self.db_path) as db:
            try:
                for kind, collection, doc_id, data in self._ops:
                    if kind == "set":
                        await _insert(db, collection, doc_id, data)
                    elif kind == "update":
                        await _merge(db, collection, doc_id, data)
                    else:
                        await db.execute(
                            "DELETE FROM documents WHERE collection = ? AND id = ?",
                            (collection, doc_id),
                        )
                await db.commit()
            except BaseException:
                await db.rollback()
                raise
        logger.debug("Committed batch of %d writes", len(self._ops))


class Record(Protocol):
    """Anything persisted in a collection."""

    id: str | None

    @property
    def owner_id(self) -> str: ...

    def to_dict(self) -> dict: ...


T = TypeVar("T", bound=Record)


@runtime_checkable
class RemoteCollection(Protocol[T]):
    """Typed CRUD and batch operations on one remote collection."""

    @property
    def name(self) -> CollectionName: ...

    async def get(self, record_id: str) -> T: ...

    async def get_all(self, scope: str | Where, *clauses: Clause) -> list[T]: ...

    async def create(self, record: T) -> T: ...

    async def update(self, record_id: str, changes: dict) -> T: ...

    async def delete(self, record_id: str) -> None: ...

    async def create_many(self, records: list[T]) -> list[T]: ...

    async def update_many(self, changes_by_id: dict[str, dict]) -> None: ...

    async def delete_many(self, *clauses: Clause) -> int: ...

    async def count(self, *clauses: Clause) -> int: ...


class SqliteCollection(Generic[T]):
    """RemoteCollection backed by the SQLite document table."""

    def __init__(self, name: CollectionName, record_type: type[T], db_path: Path | None = None):
        self._name = name
        self.record_type = record_type
        self.db_path = db_path or get_db_path()

    @property
    def name(self) -> CollectionName:
        return self._name

    def _to_record(self, doc_id: str, data: dict) -> T:
        return self.record_type.from_dict(data, id=doc_id)

    async def get(self, record_id: str) -> T:
        """Get a record by ID.

        Raises:
            NotFoundError: If no such record exists
        """
        async with connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                (self._name.value, record_id),
            )
            row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(self._name.value, record_id)
        return self._to_record(row["id"], json.loads(row["data"]))

    async def get_all(self, scope: str | Where, *clauses: Clause) -> list[T]:
        """Get all records matching a scope and clauses.

        A string scope is a user id and filters on ``author_user_id``.
        """
        if isinstance(scope, str):
            scope = where("author_user_id", "==", scope)
        where_sql, params, suffix = _build_filter((scope, *clauses))
        async with connect(self.db_path) as db:
            cursor = await db.execute(
                f"SELECT id, data FROM documents WHERE collection = ?{where_sql}{suffix}",
                (self._name.value, *params),
            )
            rows = await cursor.fetchall()
        return [self._to_record(row["id"], json.loads(row["data"])) for row in rows]

    async def create(self, record: T) -> T:
        """Create a record; the store assigns its id."""
        doc_id = new_id()
        data = _encode(record.to_dict())
        async with connect(self.db_path) as db:
            await _insert(db, self._name.value, doc_id, data)
            await db.commit()
        return self._to_record(doc_id, data)

    async def update(self, record_id: str, changes: dict) -> T:
        """Merge fields into a record and return the post-merge value."""
        async with connect(self.db_path) as db:
            data = await _merge(db, self._name.value, record_id, changes)
            await db.commit()
        return self._to_record(record_id, data)

    async def delete(self, record_id: str) -> None:
        async with connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (self._name.value, record_id),
            )
            await db.commit()

    async def create_many(self, records: list[T]) -> list[T]:
        """Create several records in one batch."""
        batch = WriteBatch(self.db_path)
        created = []
        for record in records:
            data = _encode(record.to_dict())
            doc_id = batch.set(self._name.value, data)
            created.append(self._to_record(doc_id, data))
        await batch.commit()
        return created

    async def update_many(self, changes_by_id: dict[str, dict]) -> None:
        """Merge field changes into several records in one batch."""
        batch = WriteBatch(self.db_path)
        for record_id, changes in changes_by_id.items():
            batch.update(self._name.value, record_id, changes)
        await batch.commit()

    async def delete_many(self, *clauses: Clause) -> int:
        """Delete every record matching the clauses in one transaction."""
        where_sql, params, _ = _build_filter(clauses)
        async with connect(self.db_path) as db:
            try:
                cursor = await db.execute(
                    f"DELETE FROM documents WHERE collection = ?{where_sql}",
                    (self._name.value, *params),
                )
                await db.commit()
            except BaseException:
                await db.rollback()
                raise
            return cursor.rowcount

    async def count(self, *clauses: Clause) -> int:
        """Count matching records without transferring them."""
        where_sql, params, _ = _build_filter(clauses)
        async with connect(self.db_path) as db:
            cursor = await db.execute(
                f"SELECT COUNT(*) FROM documents WHERE collection = ?{where_sql}",
                (self._name.value, *params),
            )
            row = await cursor.fetchone()
        return row[0]


class Collections:
    """One typed collection per collection name, sharing a database."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()
        self.training_logs: RemoteCollection[TrainingLog] = SqliteCollection(
            CollectionName.TRAINING_LOGS, TrainingLog, self.db_path
        )
        self.movements: RemoteCollection[Movement] = SqliteCollection(
            CollectionName.MOVEMENTS, Movement, self.db_path
        )
        self.saved_movements: RemoteCollection[SavedMovement] = SqliteCollection(
            CollectionName.SAVED_MOVEMENTS, SavedMovement, self.db_path
        )
        self.programs: RemoteCollection[Program] = SqliteCollection(
            CollectionName.PROGRAMS, Program, self.db_path
        )
        self.program_log_templates: RemoteCollection[ProgramLogTemplate] = SqliteCollection(
            CollectionName.PROGRAM_LOG_TEMPLATES, ProgramLogTemplate, self.db_path
        )
        self.program_users: RemoteCollection[ProgramUser] = SqliteCollection(
            CollectionName.PROGRAM_USERS, ProgramUser, self.db_path
        )
        self.program_movements: RemoteCollection[Movement] = SqliteCollection(
            CollectionName.PROGRAM_MOVEMENTS, Movement, self.db_path
        )

    def movements_for(self, kind: LogKind) -> "RemoteCollection[Movement]":
        """Movements of live logs or of program templates."""
        if kind is LogKind.TEMPLATE:
            return self.program_movements
        return self.movements

    def batch(self) -> WriteBatch:
        """Start a cross-collection batch."""
        return WriteBatch(self.db_path)
