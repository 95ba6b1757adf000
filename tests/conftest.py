"""Pytest configuration and fixtures."""

import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

from trainlog_sync.db import Collections, init_db
from trainlog_sync.errors import TransportError
from trainlog_sync.models import (
    Movement,
    MovementSet,
    Program,
    ProgramLogTemplate,
    SavedMovement,
    TrainingLog,
)
from trainlog_sync.sync import QueryGraph, Store

USER = "alice"


class FailingCollection:
    """Wraps a collection and fails the named operations.

    ``fail`` maps an operation name to the number of calls that should fail
    (``None`` fails every call).
    """

    def __init__(self, inner, **fail):
        self.inner = inner
        self.fail = fail
        self.calls: list[str] = []

    @property
    def name(self):
        return self.inner.name

    def __getattr__(self, attr):
        target = getattr(self.inner, attr)
        if attr not in self.fail:
            return target

        async def failing(*args, **kwargs):
            self.calls.append(attr)
            remaining = self.fail[attr]
            if remaining is None or remaining > 0:
                if remaining is not None:
                    self.fail[attr] = remaining - 1
                raise TransportError(f"{attr} unavailable")
            return await target(*args, **kwargs)

        return failing


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest_asyncio.fixture
async def collections(temp_db_path):
    """Collections over a freshly initialized database."""
    await init_db(temp_db_path)
    return Collections(temp_db_path)


@pytest.fixture
def graph():
    return QueryGraph()


@pytest_asyncio.fixture
async def store(collections, graph):
    """A store for USER; queries are mounted on first read."""
    store = Store(collections, USER, graph=graph)
    yield store
    await graph.settle()
    store.close()


@pytest.fixture
def make_log():
    """Factory for unsaved training logs."""

    def factory(timestamp: int = 1_700_000_000_000, user_id: str = USER, **kwargs):
        return TrainingLog(timestamp=timestamp, author_user_id=user_id, **kwargs)

    return factory


@pytest.fixture
def make_movement():
    """Factory for unsaved movements with two unattempted sets."""

    def factory(log_id: str, position: int, name: str = "Squat", user_id: str = USER, **kwargs):
        kwargs.setdefault("saved_movement_id", f"sm-{name.lower()}")
        timestamp = kwargs.pop("timestamp", 1_700_000_000_000 + position)
        kwargs.setdefault("sets", [MovementSet(weight=100, rep_count_expected=5) for _ in range(2)])
        return Movement(
            name=name,
            timestamp=timestamp,
            author_user_id=user_id,
            log_id=log_id,
            saved_movement_name=name,
            position=position,
            **kwargs,
        )

    return factory


@pytest_asyncio.fixture
async def seeded_log(collections, make_log, make_movement):
    """A training log with three movements at positions 0, 1 and 2."""
    log = await collections.training_logs.create(make_log(note="Leg day"))
    movements = await collections.movements.create_many(
        [
            make_movement(log.id, 0, "Squat"),
            make_movement(log.id, 1, "Lunge"),
            make_movement(log.id, 2, "Calf Raise"),
        ]
    )
    return log, movements


@pytest.fixture
def sample_saved_movement():
    return SavedMovement(name="Bench Press", author_user_id=USER, last_seen=1_700_000_000_000)


@pytest.fixture
def create_program(collections):
    """Factory for a stored program whose template order is the reverse of creation order."""

    async def factory(name: str = "Push Pull Legs", template_names=("Push", "Pull")):
        program = await collections.programs.create(
            Program(name=name, author_user_id=USER, timestamp=1)
        )
        templates = [
            await collections.program_log_templates.create(
                ProgramLogTemplate(program_id=program.id, author_user_id=USER, name=template_name)
            )
            for template_name in template_names
        ]
        template_ids = [t.id for t in reversed(templates)]
        program = await collections.programs.update(program.id, {"template_ids": template_ids})
        return program, templates

    return factory
