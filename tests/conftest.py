"""Shared test fixtures for TrackFlow tests."""

from datetime import datetime, timedelta, timezone

import pytest

from trackflow.events import BoardEventBus
from trackflow.schema import Board, Column
from trackflow.store import BoardRepository


class FakeClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def events():
    return BoardEventBus()


@pytest.fixture
def repo(clock, events):
    """Repository holding a single board 'b1' with columns T and D."""
    board = Board(id="b1", name="Board One", columns=[Column("T", "To Do"), Column("D", "Done")])
    return BoardRepository(boards=[board], events=events, clock=clock)
