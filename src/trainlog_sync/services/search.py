"""Debounced search over the user's saved movements."""

import asyncio
import logging

from ..config import settings
from ..models.training import SavedMovement
from ..sync.result_state import LOADING, ResultState, map_state
from ..sync.store import Store

logger = logging.getLogger(__name__)


def filter_saved_movements(saved: list[SavedMovement], text: str) -> list[SavedMovement]:
    """Case-insensitive substring match, keeping the ranking order."""
    needle = text.lower()
    return [sm for sm in saved if needle in sm.name.lower()]


class SavedMovementSearch:
    """Search that waits for typing to settle before filtering.

    Each call supersedes any call still waiting. ``matches`` holds the
    result of the latest settled search.
    """

    def __init__(self, store: Store, debounce: float | None = None):
        self.store = store
        self.debounce = settings.search_debounce_seconds if debounce is None else debounce
        self.matches: ResultState = LOADING
        self._generation = 0

    async def search(self, text: str) -> ResultState:
        """Search saved movements by name.

        Returns:
            The matching saved movements, or Loading if a newer search
            superseded this one while it was settling
        """
        self._generation += 1
        generation = self._generation
        if text:
            await asyncio.sleep(self.debounce)
            if generation != self._generation:
                logger.debug("Search for %r superseded", text)
                return LOADING

        self.matches = map_state(
            self.store.snapshot.saved_movements,
            lambda saved: filter_saved_movements(saved, text) if text else saved,
        )
        return self.matches
