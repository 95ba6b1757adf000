"""CLI entry point for trainlog-sync."""

import click

from .commands import init, logs, movements, repair, users
from .config import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="trainlog")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
def main(verbose: bool):
    """trainlog: keep a local training log store consistent.

    Example usage:

        # Initialize the store
        trainlog init

        # Show recent training logs
        trainlog logs list USER

        # Move a movement into another's slot
        trainlog movements reorder USER LOG_ID MOVING_ID TARGET_ID

        # Clean up after interrupted writes
        trainlog repair USER
    """
    configure_logging("DEBUG" if verbose else None)


# Register commands
main.add_command(init)
main.add_command(logs)
main.add_command(movements)
main.add_command(users)
main.add_command(repair)


def run():
    """Run the CLI."""
    main()


if __name__ == "__main__":
    run()
