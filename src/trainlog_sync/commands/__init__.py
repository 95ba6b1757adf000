"""CLI commands for trainlog-sync."""

from .init import init
from .logs import logs
from .movements import movements
from .repair import repair
from .users import users

__all__ = [
    "init",
    "logs",
    "movements",
    "repair",
    "users",
]
