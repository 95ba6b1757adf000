"""Cache of keyed asynchronous queries.

Each key owns one ``ResultState``. Only the most recent fetch for a key may
write that state: a fetch that was superseded (by a refetch, an invalidation
or removal of the key) still runs to completion, but its result is dropped.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Hashable

from .result_state import EMPTY, LOADING, ResultState, error, from_outcome

logger = logging.getLogger(__name__)

QueryKey = tuple[Hashable, ...]
Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[[QueryKey], None]


@dataclass
class _Entry:
    key: QueryKey
    fetch: Fetcher
    state: ResultState = LOADING
    generation: int = 0
    task: asyncio.Task | None = None
    # Number of times the fetch function was started
    fetch_count: int = field(default=0)


def matches_prefix(key: QueryKey, prefix: QueryKey) -> bool:
    """Whether ``key`` falls under ``prefix``."""
    return key[: len(prefix)] == tuple(prefix)


class QueryGraph:
    """Query results keyed by (collection, scope, ...) tuples."""

    def __init__(self):
        self._entries: dict[QueryKey, _Entry] = {}
        self._listeners: set[Listener] = set()

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    def state(self, key: QueryKey) -> ResultState:
        """Current state of a key (Empty when the key is unknown)."""
        entry = self._entries.get(key)
        return entry.state if entry else EMPTY

    def fetch_count(self, key: QueryKey) -> int:
        entry = self._entries.get(key)
        return entry.fetch_count if entry else 0

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with each key whose state changed."""
        self._listeners.add(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.discard(listener)

    def query(self, key: QueryKey, fetch: Fetcher, enabled: bool = True) -> ResultState:
        """Read a query, starting its first fetch if needed.

        A disabled query is Empty and its fetch function is never called.
        """
        if not enabled:
            return EMPTY
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry(key=key, fetch=fetch)
            self._entries[key] = entry
            self._start(entry)
        else:
            # Keep the latest closure for future refetches
            entry.fetch = fetch
        return entry.state

    def refetch(self, key: QueryKey) -> asyncio.Task | None:
        """Start a new fetch for a key, superseding any in-flight one."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        return self._start(entry)

    async def invalidate(self, prefix: QueryKey) -> list[QueryKey]:
        """Refetch every cached key under ``prefix`` and wait for the results.

        Returns:
            The keys that were refetched
        """
        keys = [key for key in self._entries if matches_prefix(key, prefix)]
        tasks = [self._start(self._entries[key]) for key in keys]
        logger.debug("Invalidated %d queries under %r", len(keys), prefix)
        if tasks:
            await asyncio.gather(*tasks)
        return keys

    def remove(self, key: QueryKey) -> None:
        """Forget a key; a fetch still in flight for it is ignored."""
        entry = self._entries.pop(key, None)
        if entry is not None:
            entry.generation += 1

    def clear(self) -> None:
        for key in list(self._entries):
            self.remove(key)

    def in_flight(self) -> list[asyncio.Task]:
        return [
            entry.task
            for entry in self._entries.values()
            if entry.task is not None and not entry.task.done()
        ]

    async def settle(self) -> None:
        """Wait until no fetch is running, including ones started meanwhile."""
        while tasks := self.in_flight():
            await asyncio.gather(*tasks)

    def _start(self, entry: _Entry) -> asyncio.Task:
        entry.generation += 1
        entry.fetch_count += 1
        # The previous task keeps running; its generation no longer matches
        entry.task = asyncio.get_running_loop().create_task(self._run(entry, entry.generation))
        return entry.task

    async def _run(self, entry: _Entry, generation: int) -> None:
        try:
            state = from_outcome(await entry.fetch())
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Query %r failed: %s", entry.key, e)
            state = error(e)

        if self._entries.get(entry.key) is not entry or entry.generation != generation:
            logger.debug("Discarding superseded result for %r", entry.key)
            return

        entry.state = state
        self._notify(entry.key)

    def _notify(self, key: QueryKey) -> None:
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception:
                # The fetched state stands even when a listener fails
                logger.exception("Listener failed for %r", key)
