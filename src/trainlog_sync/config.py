"""trainlog-sync configuration.

All environment variables are read here, once, at import time.
"""

import logging
import os
from pathlib import Path

# Default data directory (repository root /data when run from a checkout)
DEFAULT_DATA_DIR = Path(__file__).parent.parent.parent / "data"


class Settings:
    """Application settings from environment variables."""

    DATA_DIR: Path = Path(os.environ.get("TRAINLOG_DATA_DIR", str(DEFAULT_DATA_DIR)))
    LOG_LEVEL: str = os.environ.get("TRAINLOG_LOG_LEVEL", "WARNING")

    # Number of most recent training logs kept in the store
    LOGS_LIMIT: int = int(os.environ.get("TRAINLOG_LOGS_LIMIT", "30"))

    # Settling delay for saved-movement search input
    SEARCH_DEBOUNCE_MS: int = int(os.environ.get("TRAINLOG_SEARCH_DEBOUNCE_MS", "400"))

    @property
    def search_debounce_seconds(self) -> float:
        return self.SEARCH_DEBOUNCE_MS / 1000


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
