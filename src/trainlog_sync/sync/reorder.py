"""Moving one record within an ordered sibling set.

Siblings are all records sharing a parent key (movements with the same
``log_id``). Their ``position`` values are unique, and a move rewrites every
position it shifts in a single atomic batch.

Positions are taken from the snapshot the caller passes in and are not
re-read before commit. Two clients reordering the same sibling set at once
can therefore leave duplicate positions behind.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Protocol, Sequence

from ..errors import ValidationError
from .mutations import MutationGate

logger = logging.getLogger(__name__)


class Positioned(Protocol):
    id: str | None
    position: int


@dataclass(frozen=True)
class PositionUpdate:
    """New position for one sibling."""

    record_id: str
    position: int


def next_position(siblings: Sequence[Positioned]) -> int:
    """Position for a record appended after the current last sibling."""
    if not siblings:
        return 0
    return max(s.position for s in siblings) + 1


def plan_reorder(
    siblings: Sequence[Positioned], moving_id: str, target_id: str
) -> list[PositionUpdate]:
    """Compute the position writes that move ``moving_id`` into ``target_id``'s slot.

    Moving earlier shifts the block ``[target, moving)`` one later; moving
    later shifts ``(moving, target]`` one earlier. Siblings whose position
    does not change are left out.

    Returns:
        The writes to commit; empty when nothing moves

    Raises:
        ValidationError: If either id is not in the sibling set
    """
    by_id = {s.id: s for s in siblings}
    if moving_id not in by_id:
        raise ValidationError(f"Record {moving_id} is not in the sibling set")
    if target_id not in by_id:
        raise ValidationError(f"Reorder target {target_id} is not in the sibling set")
    if len(siblings) <= 1:
        return []

    duplicates = [pos for pos, n in Counter(s.position for s in siblings).items() if n > 1]
    if duplicates:
        logger.warning("Sibling set has duplicate positions %s; reordering anyway", duplicates)

    source = by_id[moving_id].position
    target = by_id[target_id].position
    if source == target:
        return []

    updates = []
    for sibling in siblings:
        if sibling.id == moving_id:
            continue
        if target < source and target <= sibling.position < source:
            updates.append(PositionUpdate(sibling.id, sibling.position + 1))
        elif source < target and source < sibling.position <= target:
            updates.append(PositionUpdate(sibling.id, sibling.position - 1))
    updates.append(PositionUpdate(moving_id, target))
    return updates


async def reorder(
    gate: MutationGate, siblings: Sequence[Positioned], moving_id: str, target_id: str
) -> list[PositionUpdate]:
    """Move a record to the target's slot and commit all shifts in one batch.

    Returns:
        The committed writes (empty when no batch was submitted)
    """
    updates = plan_reorder(siblings, moving_id, target_id)
    if not updates:
        return []
    await gate.update_many({u.record_id: {"position": u.position} for u in updates})
    logger.info(
        "Moved %s to position %d (%d writes)", moving_id, updates[-1].position, len(updates)
    )
    return updates
