"""Pre-composed queries for one signed-in user, with a selector read API.

The store evaluates its queries in dependency order on every change in the
query graph. A downstream query embeds the upstream value it depends on in
its key, so when the upstream value changes the downstream query is fetched
under a new key and the old key is dropped::

    program_user -> active_program -> templates
    logs -> movements_by_log_id
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from ..config import settings
from ..db.collection import CollectionName, Collections, limit, order_by, where
from ..models.program import Program, ProgramLogTemplate, ProgramUser
from ..models.training import LogKind, Movement, SavedMovement, TrainingLog
from .mutations import MutationGate
from .query_graph import QueryGraph, QueryKey
from .result_state import EMPTY, ResultState, all_ready, is_ready, map_state, unwrap_or
from .singletons import reconcile_program_user

logger = logging.getLogger(__name__)

S = TypeVar("S")

_MISSING = object()

# Most selectors a store remembers projections for
SELECTION_CACHE_SIZE = 128


@dataclass(frozen=True)
class StoreSnapshot:
    """The current state of every pre-composed query."""

    logs: ResultState  # list[TrainingLog]
    movements_by_log_id: ResultState  # dict[str, list[Movement]]
    programs: ResultState  # list[Program]
    program_user: ResultState  # ProgramUser
    active_program: ResultState  # Program, Empty when none is active
    templates: ResultState  # list[ProgramLogTemplate]
    saved_movements: ResultState  # list[SavedMovement], most used first


def rank_saved_movements(saved: list[SavedMovement]) -> list[SavedMovement]:
    """Sort by usage count, then by most recently used."""
    return sorted(saved, key=lambda sm: (-sm.count, -sm.last_seen))


def _selector_key(selector: Callable) -> Any:
    """Cache key for a selector: its code plus what it captured.

    Returns None when the captured values are unhashable.
    """
    code = getattr(selector, "__code__", None)
    if code is None:
        return selector
    try:
        key = (
            code,
            getattr(selector, "__self__", None),
            selector.__defaults__,
            tuple(cell.cell_contents for cell in selector.__closure__ or ()),
        )
        hash(key)
    except (TypeError, ValueError):
        return None
    return key


class Store:
    """Query results and mutation gates scoped to one user."""

    def __init__(
        self,
        collections: Collections,
        user_id: str,
        graph: QueryGraph | None = None,
        logs_limit: int | None = None,
    ):
        self.collections = collections
        self.user_id = user_id
        self.graph = graph or QueryGraph()
        self.logs_limit = logs_limit or settings.LOGS_LIMIT

        self.logs_api = MutationGate(collections.training_logs, self.graph, user_id)
        self.movements_api = MutationGate(collections.movements, self.graph, user_id)
        self.saved_movements_api = MutationGate(collections.saved_movements, self.graph, user_id)
        self.programs_api = MutationGate(collections.programs, self.graph, user_id)
        self.program_log_templates_api = MutationGate(
            collections.program_log_templates, self.graph, user_id
        )
        self.program_users_api = MutationGate(collections.program_users, self.graph, user_id)
        self.program_movements_api = MutationGate(
            collections.program_movements, self.graph, user_id
        )

        self._snapshot: StoreSnapshot | None = None
        self._core_keys: set[QueryKey] = set()
        self._extra_keys: set[QueryKey] = set()
        self._listeners: set[Callable[[StoreSnapshot], None]] = set()
        self._selections: OrderedDict[Any, Any] = OrderedDict()
        self._unsubscribe_graph = self.graph.subscribe(self._on_graph_change)

    def movements_gate(self, kind: LogKind) -> MutationGate[Movement]:
        if kind is LogKind.TEMPLATE:
            return self.program_movements_api
        return self.movements_api

    def _key(self, collection: CollectionName, *parts: Any) -> QueryKey:
        return (collection.value, self.user_id, *parts)

    # -- Evaluation -------------------------------------------------------

    @property
    def snapshot(self) -> StoreSnapshot:
        if self._snapshot is None:
            self.refresh()
        return self._snapshot

    def refresh(self) -> StoreSnapshot:
        """Re-evaluate every pre-composed query against the graph."""
        used: set[QueryKey] = set()

        def query(key: QueryKey, fetch, enabled: bool = True) -> ResultState:
            if enabled:
                used.add(key)
            return self.graph.query(key, fetch, enabled=enabled)

        logs = query(
            self._key(CollectionName.TRAINING_LOGS, "recent", self.logs_limit), self._fetch_logs
        )
        log_ids = tuple(log.id for log in unwrap_or(logs, []))
        movements_by_log_id = query(
            self._key(CollectionName.MOVEMENTS, "by-log", log_ids),
            lambda: self._fetch_movements_by_log_id(log_ids),
            enabled=is_ready(logs),
        )
        programs = query(self._key(CollectionName.PROGRAMS, "all"), self._fetch_programs)

        program_user = query(self._key(CollectionName.PROGRAM_USERS), self._fetch_program_user)
        active_program_id = map_state(program_user, lambda pu: pu.active_program_id)
        active_program = query(
            self._key(CollectionName.PROGRAMS, "active", unwrap_or(active_program_id, None)),
            lambda: self._fetch_active_program(unwrap_or(active_program_id, None)),
            enabled=is_ready(program_user),
        )
        program = unwrap_or(active_program, None)
        templates = query(
            self._key(
                CollectionName.PROGRAM_LOG_TEMPLATES,
                program.id if program else None,
                tuple(program.template_ids) if program else (),
            ),
            lambda: self._fetch_templates(program),
            enabled=is_ready(active_program),
        )
        saved_movements = query(
            self._key(CollectionName.SAVED_MOVEMENTS, "ranked"), self._fetch_saved_movements
        )

        # Keys this store no longer reads stop being observed
        for key in self._core_keys - used:
            self.graph.remove(key)
        self._core_keys = used

        snapshot = StoreSnapshot(
            logs=logs,
            movements_by_log_id=movements_by_log_id,
            programs=programs,
            program_user=program_user,
            active_program=active_program,
            templates=templates,
            saved_movements=saved_movements,
        )
        previous, self._snapshot = self._snapshot, snapshot
        if previous is not None and previous != snapshot:
            for listener in list(self._listeners):
                try:
                    listener(snapshot)
                except Exception:
                    logger.exception("Store listener failed")
        return snapshot

    def _on_graph_change(self, key: QueryKey) -> None:
        if key[:2] == (CollectionName.MOVEMENTS.value, self.user_id):
            # Saved movement usage counts are derived from movements
            self.graph.refetch(self._key(CollectionName.SAVED_MOVEMENTS, "ranked"))
        if key[1:2] == (self.user_id,) or key in self._extra_keys:
            self.refresh()

    async def settled(self) -> StoreSnapshot:
        """Wait for all running fetches (and the ones they trigger)."""
        self.refresh()
        await self.graph.settle()
        return self.refresh()

    # -- Reading ----------------------------------------------------------

    def read(self, selector: Callable[[StoreSnapshot], S]) -> S:
        """Project the current snapshot through ``selector``.

        If the projection equals the one this selector produced last time,
        that earlier object is returned, so callers can compare by identity.
        Selectors with the same code and captured values share one slot, so
        ``store.read(lambda s: ...)`` in a render loop is memoised too.
        """
        value = selector(self.snapshot)
        key = _selector_key(selector)
        if key is None:
            return value
        previous = self._selections.get(key, _MISSING)
        if previous is not _MISSING and previous == value:
            self._selections.move_to_end(key)
            return previous
        self._selections[key] = value
        self._selections.move_to_end(key)
        while len(self._selections) > SELECTION_CACHE_SIZE:
            self._selections.popitem(last=False)
        return value

    def subscribe(self, listener: Callable[[StoreSnapshot], None]) -> Callable[[], None]:
        """Call ``listener`` with every new snapshot that differs from the last."""
        self._listeners.add(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Callable[[StoreSnapshot], None]) -> None:
        self._listeners.discard(listener)

    def watch(
        self, selector: Callable[[StoreSnapshot], S], callback: Callable[[S], None]
    ) -> Callable[[], None]:
        """Call ``callback`` only when the selected value changes.

        Returns:
            A function that stops watching
        """
        last = [selector(self.snapshot)]

        def listener(snapshot: StoreSnapshot) -> None:
            value = selector(snapshot)
            if value != last[0]:
                last[0] = value
                callback(value)

        return self.subscribe(listener)

    def close(self) -> None:
        """Stop observing every query this store mounted."""
        self._unsubscribe_graph()
        for key in self._core_keys | self._extra_keys:
            self.graph.remove(key)
        self._core_keys.clear()
        self._extra_keys.clear()
        self._listeners.clear()
        self._selections.clear()

    # -- Parameterized queries -------------------------------------------

    def _extra(self, key: QueryKey, fetch, enabled: bool = True) -> ResultState:
        if enabled:
            self._extra_keys.add(key)
        return self.graph.query(key, fetch, enabled=enabled)

    def movements(self, log_id: str, kind: LogKind = LogKind.REGULAR) -> ResultState:
        """Movements of one log or template, in position order."""
        collection = self.collections.movements_for(kind)
        return self._extra(
            self._key(collection.name, "log", log_id),
            lambda: collection.get_all(where("log_id", "==", log_id), order_by("position")),
        )

    def movements_history(self, saved_movement_id: str) -> ResultState:
        """Every movement of one lineage, newest first."""
        return self._extra(
            self._key(CollectionName.MOVEMENTS, "history", saved_movement_id),
            lambda: self.collections.movements.get_all(
                where("saved_movement_id", "==", saved_movement_id),
                order_by("timestamp", "desc"),
            ),
        )

    def training_logs_count(self, user_id: str | None = None) -> ResultState:
        """Number of training logs a user has, counted by the store."""
        user_id = user_id or self.user_id
        return self._extra(
            (CollectionName.TRAINING_LOGS.value, user_id, "count"),
            lambda: self.collections.training_logs.count(where("author_user_id", "==", user_id)),
        )

    def program_movements_by_template_id(self, program_id: str | None) -> ResultState:
        """Program movements of each template of a program, keyed by template id."""
        programs = self.snapshot.programs
        program = next(
            (p for p in unwrap_or(programs, []) if p.id == program_id), None
        )
        template_ids = tuple(program.template_ids) if program else ()
        return self._extra(
            self._key(CollectionName.PROGRAM_MOVEMENTS, "by-template", program_id, template_ids),
            lambda: self._fetch_movements_by_parent(
                self.collections.program_movements, template_ids
            ),
            enabled=program is not None,
        )

    # -- Fetchers ---------------------------------------------------------

    async def _fetch_logs(self) -> list[TrainingLog]:
        return await self.collections.training_logs.get_all(
            self.user_id, order_by("timestamp", "desc"), limit(self.logs_limit)
        )

    async def _fetch_movements_by_parent(
        self, collection, parent_ids: tuple[str, ...]
    ) -> dict[str, list[Movement]]:
        grouped: dict[str, list[Movement]] = {parent_id: [] for parent_id in parent_ids}
        if not parent_ids:
            return grouped
        movements = await collection.get_all(
            where("log_id", "in", parent_ids), order_by("position")
        )
        for movement in movements:
            grouped[movement.log_id].append(movement)
        return grouped

    async def _fetch_movements_by_log_id(
        self, log_ids: tuple[str, ...]
    ) -> dict[str, list[Movement]]:
        return await self._fetch_movements_by_parent(self.collections.movements, log_ids)

    async def _fetch_programs(self) -> list[Program]:
        return await self.collections.programs.get_all(
            self.user_id, order_by("timestamp", "desc")
        )

    async def _fetch_program_user(self) -> ProgramUser:
        return await reconcile_program_user(self.collections.program_users, self.user_id)

    async def _fetch_active_program(self, program_id: str | None) -> Program | ResultState:
        if program_id is None:
            return EMPTY
        return await self.collections.programs.get(program_id)

    async def _fetch_templates(self, program: Program | None) -> list[ProgramLogTemplate]:
        if program is None:
            return []
        templates = await self.collections.program_log_templates.get_all(
            where("program_id", "==", program.id)
        )
        order = {template_id: i for i, template_id in enumerate(program.template_ids)}
        # Templates missing from template_ids keep fetch order, after the rest
        return sorted(templates, key=lambda t: order.get(t.id, len(order)))

    async def _fetch_saved_movements(self) -> list[SavedMovement]:
        saved = await self.collections.saved_movements.get_all(self.user_id)
        counts = await asyncio.gather(
            *(
                self.collections.movements.count(where("saved_movement_id", "==", sm.id))
                for sm in saved
            )
        )
        for sm, count in zip(saved, counts):
            sm.count = count
        return rank_saved_movements(saved)


def movements_for_log(snapshot: StoreSnapshot, log_id: str) -> ResultState:
    """Selector helper: one log's movements out of ``movements_by_log_id``."""
    return map_state(snapshot.movements_by_log_id, lambda by_id: by_id.get(log_id, []))


def log_with_movements(snapshot: StoreSnapshot, log_id: str) -> ResultState:
    """Selector helper: the log and its movements once both are Ready."""
    log = map_state(
        snapshot.logs,
        lambda logs: next((log for log in logs if log.id == log_id), EMPTY),
    )
    return all_ready(log, movements_for_log(snapshot, log_id))
