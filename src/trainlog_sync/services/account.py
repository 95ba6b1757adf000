"""Account-level data maintenance."""

import logging

from ..db.collection import CollectionName, Collections, where
from ..sync.query_graph import QueryGraph

logger = logging.getLogger(__name__)

# Collections whose records carry ``author_user_id``
AUTHORED_COLLECTIONS = (
    CollectionName.TRAINING_LOGS,
    CollectionName.MOVEMENTS,
    CollectionName.SAVED_MOVEMENTS,
)


class AccountService:
    """Moves data between user identities."""

    def __init__(self, collections: Collections, graph: QueryGraph):
        self.collections = collections
        self.graph = graph

    async def assign_anonymous_data(self, old_user_id: str, new_user_id: str) -> int:
        """Reassign everything an anonymous user wrote to a signed-in user.

        All records are re-authored in one batch, so either every record moves
        or none does.

        Returns:
            Number of records reassigned
        """
        batch = self.collections.batch()
        for name in AUTHORED_COLLECTIONS:
            collection = getattr(self.collections, name.value)
            for record in await collection.get_all(where("author_user_id", "==", old_user_id)):
                batch.update(name, record.id, {"author_user_id": new_user_id})
        count = len(batch)
        await batch.commit()

        for name in AUTHORED_COLLECTIONS:
            await self.graph.invalidate((name.value, old_user_id))
            await self.graph.invalidate((name.value, new_user_id))
        logger.info("Reassigned %d records from %s to %s", count, old_user_id, new_user_id)
        return count
