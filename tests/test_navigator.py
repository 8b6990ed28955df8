"""Tests for :mod:`panoview.ui.domain.navigator`."""

from __future__ import annotations

import copy

import pytest

from panoview.host.memory import MemoryTabHost
from panoview.services.groups import Group, GroupStore
from panoview.ui.domain.active_tab import ActiveTabTracker
from panoview.ui.domain.navigator import KeyboardNavigator, step_target
from panoview.ui.domain.tab_registry import TabRegistry
from panoview.ui.events import EventBus
from panoview.ui.projection import TabNodeProjection

A, B, C, D = 1, 2, 3, 4


@pytest.fixture
def registry(event_bus: EventBus) -> TabRegistry:
    return TabRegistry(TabNodeProjection(), event_bus)


@pytest.fixture
def tracker(registry: TabRegistry, host: MemoryTabHost, event_bus: EventBus) -> ActiveTabTracker:
    return ActiveTabTracker(registry, host, event_bus, window_id=1, view_tab_id=100)


@pytest.fixture
def two_groups(groups: GroupStore, registry: TabRegistry, host: MemoryTabHost) -> GroupStore:
    """G1 = [A, B], G2 = [C, D]."""

    groups.create("G1", group_id="g1")
    groups.create("G2", group_id="g2")
    for tab_id, group_id in ((A, "g1"), (B, "g1"), (C, "g2"), (D, "g2")):
        host.open(tab_id=tab_id, notify=False)
        registry.insert(tab_id, {"title": f"tab {tab_id}"})
        groups.assign(tab_id, group_id)
    return groups


@pytest.fixture
def navigator(two_groups: GroupStore, tracker: ActiveTabTracker, host: MemoryTabHost) -> KeyboardNavigator:
    return KeyboardNavigator(two_groups, tracker, host)


class TestStepTarget:
    """The pure traversal function."""

    def test_within_group(self) -> None:
        groups = [Group(id="g1", tabs=[A, B]), Group(id="g2", tabs=[C, D])]

        assert step_target(groups, A, forward=True) == B
        assert step_target(groups, D, forward=False) == C

    def test_wraps_across_group_list(self) -> None:
        groups = [Group(id="g1", tabs=[A, B]), Group(id="g2", tabs=[C, D])]

        assert step_target(groups, D, forward=True) == A
        assert step_target(groups, A, forward=False) == D
        assert step_target(groups, B, forward=True) == C

    def test_skips_empty_groups(self) -> None:
        groups = [Group(id="g1", tabs=[A]), Group(id="empty"), Group(id="g2", tabs=[C])]

        assert step_target(groups, A, forward=True) == C
        assert step_target(groups, C, forward=True) == A
        assert step_target(groups, A, forward=False) == C

    def test_single_tab_wraps_to_itself(self) -> None:
        groups = [Group(id="g1", tabs=[A]), Group(id="empty")]

        assert step_target(groups, A, forward=True) == A

    def test_unknown_tab(self) -> None:
        assert step_target([Group(id="g1", tabs=[A])], 99, forward=True) is None

    def test_groups_are_not_mutated(self) -> None:
        groups = [Group(id="g1", tabs=[A, B]), Group(id="g2", tabs=[C, D])]
        before = copy.deepcopy(groups)

        step_target(groups, B, forward=True)
        step_target(groups, C, forward=False)

        assert groups == before


class TestKeyboardNavigator:
    """Selection moves driven by key names."""

    @pytest.mark.asyncio
    async def test_next_from_last_tab_wraps_to_first_group(
        self, navigator: KeyboardNavigator, tracker: ActiveTabTracker, registry: TabRegistry
    ) -> None:
        tracker.set_active(D)

        assert await navigator.handle_key("ArrowRight") == A
        assert tracker.active_tab_id == A
        assert registry.selected_ids() == (A,)

    @pytest.mark.asyncio
    async def test_previous_from_first_tab_wraps_to_last_group(
        self, navigator: KeyboardNavigator, tracker: ActiveTabTracker
    ) -> None:
        tracker.set_active(A)

        assert await navigator.handle_key("ArrowLeft") == D
        assert tracker.active_tab_id == D

    def test_next_within_group(self, navigator: KeyboardNavigator, tracker: ActiveTabTracker) -> None:
        tracker.set_active(A)

        assert navigator.next() == B
        assert navigator.next() == C
        assert navigator.previous() == B

    def test_tab_outside_any_group_is_ignored(
        self, navigator: KeyboardNavigator, tracker: ActiveTabTracker, registry: TabRegistry
    ) -> None:
        registry.insert(9, {"title": "loose"})
        tracker.set_active(9)

        assert navigator.next() is None
        assert tracker.active_tab_id == 9

    def test_without_active_tab(self, navigator: KeyboardNavigator) -> None:
        assert navigator.next() is None
        assert navigator.previous() is None

    def test_target_without_node_keeps_selection(
        self, navigator: KeyboardNavigator, tracker: ActiveTabTracker, two_groups: GroupStore
    ) -> None:
        two_groups.assign(5, "g1")  # classified but not yet observed by the view
        tracker.set_active(B)

        assert navigator.next() is None
        assert tracker.active_tab_id == B

    def test_navigation_leaves_groups_untouched(
        self, navigator: KeyboardNavigator, tracker: ActiveTabTracker, two_groups: GroupStore
    ) -> None:
        tracker.set_active(A)
        before = [list(group.tabs) for group in two_groups.list()]

        for _ in range(6):
            navigator.next()

        assert [list(group.tabs) for group in two_groups.list()] == before

    @pytest.mark.asyncio
    async def test_unbound_key_is_ignored(self, navigator: KeyboardNavigator, tracker: ActiveTabTracker) -> None:
        tracker.set_active(A)

        assert await navigator.handle_key("Tab") is None
        assert tracker.active_tab_id == A

    @pytest.mark.asyncio
    async def test_enter_activates_through_host(
        self, navigator: KeyboardNavigator, tracker: ActiveTabTracker, host: MemoryTabHost
    ) -> None:
        tracker.set_active(C)

        assert await navigator.handle_key("Enter") == C
        assert host.activated == [C]

    @pytest.mark.asyncio
    async def test_enter_on_vanished_tab(
        self, navigator: KeyboardNavigator, tracker: ActiveTabTracker, host: MemoryTabHost
    ) -> None:
        tracker.set_active(C)
        host.close(C)

        assert await navigator.activate() is None
        assert host.activated == []
