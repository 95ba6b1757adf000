"""Movement ordering and favorite commands."""

import click

from ..db import order_by, where
from ..errors import SyncError
from ..models.training import LogKind
from ..sync.reorder import reorder
from ..sync.singletons import toggle_favorite
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    ensure_initialized,
    format_table,
    open_store,
)

TEMPLATE_OPTION = click.option(
    "--template", is_flag=True, help="Treat LOG_ID as a program template"
)


def _kind(template: bool) -> LogKind:
    return LogKind.TEMPLATE if template else LogKind.REGULAR


async def _siblings(store, log_id: str, kind: LogKind):
    collection = store.collections.movements_for(kind)
    return await collection.get_all(where("log_id", "==", log_id), order_by("position"))


@click.group()
@click.pass_context
def movements(ctx):
    """Reorder and favorite the movements of a log."""
    ensure_initialized(ctx)


@movements.command(name="list")
@click.argument("user_id")
@click.argument("log_id")
@TEMPLATE_OPTION
@async_command
async def list_movements(user_id: str, log_id: str, template: bool):
    """List the movements of a log in order."""
    kind = _kind(template)
    store = await open_store(user_id)
    siblings = await _siblings(store, log_id, kind)
    if not siblings:
        echo_info(f"No movements in {log_id}")
        return
    rows = [
        [str(m.position), m.id, m.name, str(len(m.sets)), "*" if m.is_favorited else ""]
        for m in siblings
    ]
    click.echo(format_table(["Pos", "ID", "Name", "Sets", "Fav"], rows))


@movements.command(name="reorder")
@click.argument("user_id")
@click.argument("log_id")
@click.argument("moving_id")
@click.argument("target_id")
@TEMPLATE_OPTION
@click.pass_context
@async_command
async def reorder_movement(
    ctx, user_id: str, log_id: str, moving_id: str, target_id: str, template: bool
):
    """Move MOVING_ID into the slot currently held by TARGET_ID."""
    kind = _kind(template)
    store = await open_store(user_id)
    siblings = await _siblings(store, log_id, kind)
    try:
        updates = await reorder(store.movements_gate(kind), siblings, moving_id, target_id)
    except SyncError as e:
        echo_error(str(e))
        ctx.exit(1)
    if not updates:
        echo_info("Nothing to move")
        return
    echo_success(f"Moved {moving_id} ({len(updates)} positions rewritten)")


@movements.command()
@click.argument("user_id")
@click.argument("log_id")
@click.argument("movement_id")
@TEMPLATE_OPTION
@click.pass_context
@async_command
async def favorite(ctx, user_id: str, log_id: str, movement_id: str, template: bool):
    """Toggle the favorite flag on a movement (at most one per log)."""
    kind = _kind(template)
    store = await open_store(user_id)
    siblings = await _siblings(store, log_id, kind)
    movement = next((m for m in siblings if m.id == movement_id), None)
    if movement is None:
        echo_error(f"Movement {movement_id} not found in {log_id}")
        ctx.exit(1)
    try:
        updated = await toggle_favorite(store.movements_gate(kind), movement, siblings)
    except SyncError as e:
        echo_error(str(e))
        ctx.exit(1)
    state = "favorited" if updated.is_favorited else "unfavorited"
    echo_success(f"{updated.name} {state}")
