"""Tests for the ResultState variants and combinators."""

import pytest

from trainlog_sync.errors import ProgrammerError
from trainlog_sync.sync.result_state import (
    EMPTY,
    LOADING,
    Error,
    Ready,
    all_ready,
    error,
    from_outcome,
    is_empty,
    is_error,
    is_loading,
    is_ready,
    map_state,
    unwrap,
    unwrap_or,
)

ALL_STATES = [EMPTY, LOADING, Error("boom"), Ready(3), Ready(None)]


class TestVariants:
    """Tests for variant predicates."""

    @pytest.mark.parametrize("state", ALL_STATES, ids=repr)
    def test_exactly_one_predicate_holds(self, state):
        """Each state reports exactly one variant."""
        flags = [is_empty(state), is_loading(state), is_error(state), is_ready(state)]
        assert flags.count(True) == 1

    @pytest.mark.parametrize("state", ALL_STATES, ids=repr)
    def test_methods_agree_with_functions(self, state):
        assert state.is_empty() == is_empty(state)
        assert state.is_loading() == is_loading(state)
        assert state.is_error() == is_error(state)
        assert state.is_ready() == is_ready(state)

    def test_ready_none_is_ready(self):
        """A Ready value of None is still Ready, not Empty."""
        assert is_ready(Ready(None))
        assert not is_empty(Ready(None))

    def test_error_from_exception(self):
        """Test building an Error state from an exception."""
        assert error(ValueError("bad input")) == Error("bad input")
        assert error(RuntimeError()) == Error("RuntimeError")
        assert error("plain") == Error("plain")

    def test_from_outcome(self):
        assert from_outcome(5) == Ready(5)
        assert from_outcome(EMPTY) is EMPTY
        assert from_outcome(Error("x")) == Error("x")


class TestMap:
    """Tests for map_state."""

    def test_map_ready(self):
        assert map_state(Ready(2), lambda x: x * 10) == Ready(20)
        assert Ready(2).map(lambda x: x + 1) == Ready(3)

    def test_map_may_return_state(self):
        """The mapping function may return a state instead of a value."""
        assert map_state(Ready(0), lambda x: EMPTY if x == 0 else x) is EMPTY

    @pytest.mark.parametrize("state", [EMPTY, LOADING, Error("boom")], ids=repr)
    def test_map_non_ready_is_identity(self, state):
        """Non-Ready states pass through untouched and fn is never called."""
        calls = []

        def fn(value):
            calls.append(value)
            return value

        assert map_state(state, fn) is state
        assert calls == []


class TestAllReady:
    """Tests for all_ready."""

    def test_all_ready(self):
        assert all_ready(Ready("a"), Ready("b")) == Ready(("a", "b"))

    def test_loading_wins_over_ready(self):
        assert all_ready(Ready("a"), LOADING) is LOADING

    def test_first_non_ready_wins(self):
        """The leftmost non-Ready state is returned."""
        failure = Error("e")
        assert all_ready(failure, Ready("b")) is failure
        assert all_ready(Ready("a"), EMPTY, failure) is EMPTY

    def test_no_states(self):
        assert all_ready() == Ready(())


class TestUnwrap:
    """Tests for unwrap and unwrap_or."""

    def test_unwrap_or(self):
        assert unwrap_or(Ready(1), 0) == 1
        assert unwrap_or(LOADING, 0) == 0
        assert Error("x").unwrap_or([]) == []

    def test_unwrap_ready(self):
        assert unwrap(Ready("v")) == "v"

    @pytest.mark.parametrize("state", [EMPTY, LOADING, Error("boom")], ids=repr)
    def test_unwrap_non_ready_raises(self, state):
        with pytest.raises(ProgrammerError):
            unwrap(state)
