"""Tests for the keyed query cache."""

import asyncio

import pytest

from trainlog_sync.sync.query_graph import QueryGraph, matches_prefix
from trainlog_sync.sync.result_state import EMPTY, LOADING, Error, Ready


class Gate:
    """A fetch function whose calls block until released, one by one."""

    def __init__(self):
        self.pending: list[asyncio.Future] = []
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    def release(self, index: int, value):
        self.pending[index].set_result(value)


async def fetch_value(value):
    return value


class TestQuery:
    """Tests for reading and fetching queries."""

    @pytest.mark.asyncio
    async def test_first_read_is_loading_then_ready(self):
        graph = QueryGraph()
        key = ("training_logs", "alice")

        assert graph.query(key, lambda: fetch_value([1, 2])) is LOADING
        await graph.settle()
        assert graph.query(key, lambda: fetch_value([3])) == Ready([1, 2])
        assert graph.fetch_count(key) == 1

    @pytest.mark.asyncio
    async def test_disabled_query_never_fetches(self):
        graph = QueryGraph()
        calls = []

        async def fetch():
            calls.append(1)

        assert graph.query(("movements", "alice"), fetch, enabled=False) is EMPTY
        await graph.settle()
        assert calls == []
        assert ("movements", "alice") not in graph

    @pytest.mark.asyncio
    async def test_unknown_key_is_empty(self):
        assert QueryGraph().state(("programs", "nobody")) is EMPTY

    @pytest.mark.asyncio
    async def test_failure_is_scoped_to_key(self):
        """A failing fetch becomes an Error state without touching other keys."""
        graph = QueryGraph()

        async def broken():
            raise ConnectionError("offline")

        graph.query(("programs", "alice"), broken)
        graph.query(("training_logs", "alice"), lambda: fetch_value(["log"]))
        await graph.settle()

        assert graph.state(("programs", "alice")) == Error("offline")
        assert graph.state(("training_logs", "alice")) == Ready(["log"])

    @pytest.mark.asyncio
    async def test_fetch_may_return_a_state(self):
        graph = QueryGraph()
        graph.query(("programs", "alice", "active", None), lambda: fetch_value(EMPTY))
        await graph.settle()
        assert graph.state(("programs", "alice", "active", None)) is EMPTY


class TestSupersede:
    """Tests for discarding superseded results."""

    @pytest.mark.asyncio
    async def test_stale_result_is_discarded(self):
        """An older fetch resolving after a newer one never overwrites it."""
        graph = QueryGraph()
        key = ("movements", "alice", "log", "l1")
        gate = Gate()
        graph.query(key, gate)
        await asyncio.sleep(0)
        graph.refetch(key)
        await asyncio.sleep(0)
        assert gate.calls == 2

        gate.release(1, "new")
        await asyncio.sleep(0)
        gate.release(0, "old")
        await graph.settle()

        assert graph.state(key) == Ready("new")

    @pytest.mark.asyncio
    async def test_removed_key_ignores_in_flight_result(self):
        graph = QueryGraph()
        key = ("training_logs", "alice")
        gate = Gate()
        graph.query(key, gate)
        await asyncio.sleep(0)

        graph.remove(key)
        gate.release(0, ["late"])
        await asyncio.sleep(0)
        await graph.settle()

        assert key not in graph
        assert graph.state(key) is EMPTY

    @pytest.mark.asyncio
    async def test_previous_state_kept_while_refetching(self):
        graph = QueryGraph()
        key = ("programs", "alice")
        values = iter(["first", "second"])
        graph.query(key, lambda: fetch_value(next(values)))
        await graph.settle()

        graph.refetch(key)
        assert graph.state(key) == Ready("first")
        await graph.settle()
        assert graph.state(key) == Ready("second")


class TestInvalidate:
    """Tests for prefix invalidation."""

    def test_matches_prefix(self):
        assert matches_prefix(("movements", "alice", "log", "l1"), ("movements", "alice"))
        assert not matches_prefix(("movements", "bob"), ("movements", "alice"))
        assert not matches_prefix(("movements",), ("movements", "alice"))

    @pytest.mark.asyncio
    async def test_invalidate_refetches_prefix_only(self):
        graph = QueryGraph()
        keys = [
            ("movements", "alice", "log", "l1"),
            ("movements", "alice", "log", "l2"),
            ("movements", "bob", "log", "l3"),
            ("training_logs", "alice"),
        ]
        for key in keys:
            graph.query(key, lambda: fetch_value(1))
        await graph.settle()

        refetched = await graph.invalidate(("movements", "alice"))

        assert sorted(refetched) == sorted(keys[:2])
        assert [graph.fetch_count(key) for key in keys] == [2, 2, 1, 1]

    @pytest.mark.asyncio
    async def test_invalidate_waits_for_results(self):
        graph = QueryGraph()
        key = ("training_logs", "alice")
        values = iter(["stale", "fresh"])
        graph.query(key, lambda: fetch_value(next(values)))
        await graph.settle()

        await graph.invalidate(("training_logs",))
        assert graph.state(key) == Ready("fresh")


class TestListeners:
    """Tests for change notification."""

    @pytest.mark.asyncio
    async def test_listener_called_on_state_change(self):
        graph = QueryGraph()
        seen = []
        unsubscribe = graph.subscribe(seen.append)

        graph.query(("programs", "alice"), lambda: fetch_value([]))
        await graph.settle()
        assert seen == [("programs", "alice")]

        unsubscribe()
        await graph.invalidate(("programs",))
        assert seen == [("programs", "alice")]

    @pytest.mark.asyncio
    async def test_settle_waits_for_fetches_started_by_listeners(self):
        """Dependent queries started during settle are awaited too."""
        graph = QueryGraph()

        def on_change(key):
            if key == ("program_users", "alice"):
                graph.query(("programs", "alice", "active"), lambda: fetch_value("p1"))

        graph.subscribe(on_change)
        graph.query(("program_users", "alice"), lambda: fetch_value("pu"))
        await graph.settle()

        assert graph.state(("programs", "alice", "active")) == Ready("p1")

    @pytest.mark.asyncio
    async def test_failing_listener_is_logged_not_raised(self, caplog):
        graph = QueryGraph()
        seen = []

        def broken(key):
            raise RuntimeError("listener bug")

        graph.subscribe(broken)
        graph.subscribe(seen.append)
        key = ("training_logs", "alice")
        graph.query(key, lambda: fetch_value([]))
        await graph.settle()

        await graph.invalidate(("training_logs",))

        assert graph.state(key) == Ready([])
        assert seen == [key, key]
        assert "Listener failed" in caplog.text
