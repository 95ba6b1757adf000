"""Repair command for state left behind by partial writes."""

from collections import defaultdict

import click

from ..sync.mutations import repair_orphaned_movements
from ..sync.singletons import reconcile_program_user, repair_exclusive_flag
from .base import (
    async_command,
    echo_info,
    echo_success,
    echo_warning,
    ensure_initialized,
    open_store,
)


@click.command()
@click.argument("user_id")
@click.pass_context
@async_command
async def repair(ctx, user_id: str):
    """Clean up a user's data after interrupted or partial writes.

    \b
    - Deletes movements whose training log no longer exists
    - Keeps at most one favorited movement per log
    - Keeps exactly one program settings record
    """
    ensure_initialized(ctx)
    store = await open_store(user_id)

    removed = await repair_orphaned_movements(store.logs_api, store.movements_api, user_id)
    if removed:
        echo_warning(f"Removed {removed} orphaned movement(s)")

    by_log = defaultdict(list)
    for movement in await store.collections.movements.get_all(user_id):
        by_log[movement.log_id].append(movement)

    cleared = 0
    for siblings in by_log.values():
        cleared += len(await repair_exclusive_flag(store.movements_api, siblings))
    if cleared:
        echo_warning(f"Cleared {cleared} extra favorite(s)")

    await reconcile_program_user(store.collections.program_users, user_id)

    if not removed and not cleared:
        echo_info("Nothing to repair")
    echo_success(f"Data for {user_id} is consistent")
