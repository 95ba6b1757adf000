"""Writes with post-commit query invalidation."""

import asyncio
import logging
from typing import Awaitable, Generic, TypeVar

from ..db.collection import Clause, CollectionName, RemoteCollection, where
from ..errors import PartialFailureError
from ..models.training import Movement, TrainingLog
from .query_graph import QueryGraph

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MutationGate(Generic[T]):
    """Create/update/delete on one collection, invalidating its queries.

    Every successful mutation invalidates the queries keyed under
    ``(collection name, scope)`` exactly once and only after the remote commit.
    A failed mutation is logged, re-raised and invalidates nothing.
    """

    def __init__(self, collection: RemoteCollection[T], graph: QueryGraph, scope_id: str):
        self.collection = collection
        self.graph = graph
        self.scope_id = scope_id

    @property
    def name(self) -> CollectionName:
        return self.collection.name

    @property
    def query_key(self) -> tuple:
        """Key prefix of every query this gate invalidates by default."""
        return (self.name.value, self.scope_id)

    async def _invalidate(self, scope: str | None = None) -> None:
        await self.graph.invalidate((self.name.value, scope or self.scope_id))

    def _failed(self, operation: str, e: Exception) -> None:
        logger.error("%s on %s failed: %s", operation, self.name.value, e)

    async def create(self, record: T) -> T:
        try:
            created = await self.collection.create(record)
        except Exception as e:
            self._failed("create", e)
            raise
        await self._invalidate(created.owner_id)
        return created

    async def create_many(self, records: list[T]) -> list[T]:
        try:
            created = await self.collection.create_many(records)
        except Exception as e:
            self._failed("create_many", e)
            raise
        await self._invalidate()
        return created

    async def update(self, record_id: str, changes: dict) -> T:
        try:
            updated = await self.collection.update(record_id, changes)
        except Exception as e:
            self._failed("update", e)
            raise
        await self._invalidate(updated.owner_id)
        return updated

    async def update_many(self, changes_by_id: dict[str, dict]) -> None:
        try:
            await self.collection.update_many(changes_by_id)
        except Exception as e:
            self._failed("update_many", e)
            raise
        await self._invalidate()

    async def delete(self, record_id: str) -> None:
        try:
            await self.collection.delete(record_id)
        except Exception as e:
            self._failed("delete", e)
            raise
        await self._invalidate()

    async def delete_many(self, *clauses: Clause) -> int:
        try:
            deleted = await self.collection.delete_many(*clauses)
        except Exception as e:
            self._failed("delete_many", e)
            raise
        await self._invalidate()
        return deleted


async def run_compound(steps: dict[str, Awaitable]) -> dict[str, object]:
    """Run independent mutation steps together and report the outcome.

    There is no rollback: when only some steps fail, the ones that committed
    stay committed and ``PartialFailureError`` says which is which.

    Raises:
        PartialFailureError: If some but not all steps failed
        Exception: The first step's error if every step failed
    """
    names = list(steps)
    results = await asyncio.gather(*steps.values(), return_exceptions=True)
    outcome = dict(zip(names, results))
    failed = [name for name in names if isinstance(outcome[name], BaseException)]
    if not failed:
        return outcome

    committed = [name for name in names if name not in failed]
    cause = outcome[failed[0]]
    if not committed:
        logger.error("Compound mutation failed entirely (%s): %s", ", ".join(failed), cause)
        raise cause

    logger.warning(
        "Compound mutation partially committed: committed=%s failed=%s: %s",
        committed,
        failed,
        cause,
    )
    raise PartialFailureError(
        f"Partially committed ({', '.join(committed)}); failed: {', '.join(failed)}",
        committed=committed,
        failed=failed,
        cause=cause,
    )


async def delete_training_log(
    logs: MutationGate[TrainingLog], movements: MutationGate[Movement], log_id: str
) -> None:
    """Delete a training log together with all of its movements.

    Raises:
        PartialFailureError: If only one half committed; run
            ``repair_orphaned_movements`` to clean up a committed log delete
    """
    await run_compound(
        {
            "delete log": logs.delete(log_id),
            "delete movements": movements.delete_many(where("log_id", "==", log_id)),
        }
    )
    logger.info("Deleted training log %s", log_id)


async def repair_orphaned_movements(
    logs: MutationGate[TrainingLog], movements: MutationGate[Movement], user_id: str
) -> int:
    """Delete movements whose parent training log no longer exists.

    Returns:
        Number of movements deleted
    """
    existing = {log.id for log in await logs.collection.get_all(user_id)}
    orphans = {m.log_id for m in await movements.collection.get_all(user_id)} - existing
    if not orphans:
        return 0
    deleted = await movements.delete_many(
        where("author_user_id", "==", user_id), where("log_id", "in", sorted(orphans))
    )
    logger.warning("Removed %d orphaned movements for %d missing logs", deleted, len(orphans))
    return deleted
