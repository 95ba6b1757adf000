"""Initialize database command."""

import click

from ..config import settings
from ..db import get_db_path, init_db
from .base import async_command, echo_info, echo_success


@click.command()
@async_command
async def init():
    """Initialize the trainlog document store.

    This creates the data directory and the SQLite database schema.
    """
    data_dir = settings.DATA_DIR
    echo_info(f"Initializing trainlog in {data_dir}")

    db_path = get_db_path(data_dir)
    await init_db(db_path)
    echo_success(f"Database initialized at {db_path}")
