"""Program settings commands."""

import click

from ..sync.result_state import is_ready
from ..sync.singletons import reconcile_program_user
from .base import async_command, echo_error, echo_info, ensure_initialized, open_store


@click.group()
@click.pass_context
def users(ctx):
    """Inspect per-user program settings."""
    ensure_initialized(ctx)


@users.command()
@click.argument("user_id")
@click.pass_context
@async_command
async def show(ctx, user_id: str):
    """Show a user's active program and what to train next.

    The user's program settings record is created if it does not exist yet.
    """
    store = await open_store(user_id)
    snapshot = store.snapshot
    if not is_ready(snapshot.program_user):
        echo_error(f"Could not load program settings: {snapshot.program_user!r}")
        ctx.exit(1)

    program_user = snapshot.program_user.value
    click.echo(f"User:    {program_user.user_uid}")
    click.echo(f"Record:  {program_user.id}")

    if not is_ready(snapshot.active_program):
        echo_info("No active program")
        return

    program = snapshot.active_program.value
    click.echo(f"Program: {program.name} ({program.id})")
    click.echo(f"Days:    {len(program.template_ids)} template(s)")
    next_training = program.next_training()
    if next_training:
        click.echo(f"Next:    {next_training.text}")


@users.command()
@click.argument("user_id")
@async_command
async def reconcile(user_id: str):
    """Make sure exactly one program settings record exists for a user."""
    store = await open_store(user_id)
    program_user = await reconcile_program_user(store.collections.program_users, user_id)
    echo_info(f"Program settings for {user_id}: {program_user.id}")
