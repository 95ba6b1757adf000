"""Training log commands."""

from datetime import datetime

import click

from ..errors import PartialFailureError, SyncError
from ..sync.mutations import delete_training_log
from ..sync.result_state import is_ready, unwrap_or
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    ensure_initialized,
    format_table,
    open_store,
)


@click.group()
@click.pass_context
def logs(ctx):
    """Inspect and delete training logs."""
    ensure_initialized(ctx)


@logs.command(name="list")
@click.argument("user_id")
@click.pass_context
@async_command
async def list_logs(ctx, user_id: str):
    """List a user's most recent training logs."""
    store = await open_store(user_id)
    snapshot = store.snapshot
    if not is_ready(snapshot.logs):
        echo_error(f"Could not load logs: {snapshot.logs!r}")
        ctx.exit(1)

    recent = snapshot.logs.value
    if not recent:
        echo_info(f"No training logs for {user_id}")
        return

    movements = unwrap_or(snapshot.movements_by_log_id, {})
    rows = [
        [
            log.id,
            datetime.fromtimestamp(log.timestamp / 1000).strftime("%Y-%m-%d %H:%M"),
            str(len(movements.get(log.id, []))),
            log.note[:30] + "..." if len(log.note) > 30 else log.note,
        ]
        for log in recent
    ]
    click.echo()
    click.echo(format_table(["ID", "Date", "Movements", "Note"], rows))
    click.echo()
    click.echo(f"Total: {len(recent)} log(s)")


@logs.command()
@click.argument("user_id")
@click.argument("log_id")
@click.pass_context
@async_command
async def delete(ctx, user_id: str, log_id: str):
    """Delete a training log and all of its movements."""
    store = await open_store(user_id)
    try:
        await delete_training_log(store.logs_api, store.movements_api, log_id)
    except PartialFailureError as e:
        echo_warning(f"{e}. Run 'trainlog repair {user_id}' to clean up.")
        ctx.exit(1)
    except SyncError as e:
        echo_error(str(e))
        ctx.exit(1)
    echo_success(f"Deleted training log {log_id}")
