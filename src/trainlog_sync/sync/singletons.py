"""Cross-record invariants the store does not enforce for us.

- At most one movement per sibling set is favorited.
- Exactly one ProgramUser record exists per user.

Neither is transactional. Both are kept by ordering writes so the degraded
state is "zero holders" rather than "two", and by repairing on read.
"""

import logging
from typing import Sequence

from ..db.collection import RemoteCollection, where
from ..models.program import ProgramUser
from ..models.training import Movement
from .mutations import MutationGate

logger = logging.getLogger(__name__)


async def set_favorite(
    gate: MutationGate[Movement],
    movement: Movement,
    siblings: Sequence[Movement],
    favorited: bool = True,
) -> Movement:
    """Set or clear a movement's favorite flag, keeping it exclusive.

    Any other sibling holding the flag is cleared first. If setting the flag
    then fails, no sibling is favorited; the error is re-raised.
    """
    holders = []
    if favorited:
        holders = [s for s in siblings if s.is_favorited and s.id != movement.id]
        for holder in holders:
            await gate.update(holder.id, {"is_favorited": False})
    try:
        return await gate.update(movement.id, {"is_favorited": favorited})
    except Exception:
        if holders:
            logger.warning(
                "Cleared favorite on %s but could not set it on %s; log %s has no favorite",
                ", ".join(h.id for h in holders),
                movement.id,
                movement.log_id,
            )
        raise


async def toggle_favorite(
    gate: MutationGate[Movement], movement: Movement, siblings: Sequence[Movement]
) -> Movement:
    """Favorite the movement (unfavoriting others) or unfavorite it."""
    return await set_favorite(gate, movement, siblings, not movement.is_favorited)


async def repair_exclusive_flag(
    gate: MutationGate[Movement], siblings: Sequence[Movement]
) -> list[str]:
    """Clear extra favorites, keeping the earliest-positioned holder.

    Returns:
        Ids of the movements that were unfavorited
    """
    holders = sorted((s for s in siblings if s.is_favorited), key=lambda s: s.position)
    extra = [h.id for h in holders[1:]]
    if extra:
        logger.warning("Found %d favorites in one log; keeping %s", len(holders), holders[0].id)
        await gate.update_many({record_id: {"is_favorited": False} for record_id in extra})
    return extra


async def reconcile_program_user(
    collection: RemoteCollection[ProgramUser], user_id: str
) -> ProgramUser:
    """Return the user's single ProgramUser record, healing the set on the way.

    None found: a default record is created. Several found (racing creates):
    all but the first in fetch order are deleted.
    """
    users = await collection.get_all(where("user_uid", "==", user_id))
    if not users:
        logger.info("Creating program settings for user %s", user_id)
        return await collection.create(ProgramUser(user_uid=user_id))

    kept, duplicates = users[0], users[1:]
    if duplicates:
        logger.warning(
            "User %s has %d program settings records; keeping %s",
            user_id,
            len(users),
            kept.id,
        )
        for duplicate in duplicates:
            try:
                await collection.delete(duplicate.id)
            except Exception as e:
                # Retried on the next read
                logger.error("Could not delete duplicate program settings %s: %s", duplicate.id, e)
    return kept
