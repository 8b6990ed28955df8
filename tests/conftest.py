"""Shared pytest fixtures."""

from __future__ import annotations

import itertools

import pytest

from panoview.host.memory import MemoryTabHost
from panoview.services.groups import GroupStore
from panoview.ui.events import EventBus

from tests.helpers import RecordingBus


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorded(event_bus: EventBus) -> RecordingBus:
    return RecordingBus(event_bus)


@pytest.fixture
def host() -> MemoryTabHost:
    ticks = itertools.count(1000)
    return MemoryTabHost(window_id=1, view_tab_id=100, clock=lambda: float(next(ticks)))


@pytest.fixture
def groups() -> GroupStore:
    return GroupStore()
