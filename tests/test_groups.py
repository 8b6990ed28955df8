"""Tests for :mod:`panoview.services.groups`."""

from __future__ import annotations

import pytest

from panoview.services.groups import GroupAssignmentError, GroupStore


@pytest.fixture
def store(groups: GroupStore) -> GroupStore:
    groups.create("one", group_id="g1")
    groups.create("two", group_id="g2")
    return groups


def test_list_preserves_creation_order(store: GroupStore) -> None:
    store.create("three", group_id="g3")

    assert [g.id for g in store.list()] == ["g1", "g2", "g3"]


def test_for_each_visits_all_groups(store: GroupStore) -> None:
    seen: list[str] = []

    store.for_each(lambda group: seen.append(group.id))

    assert seen == ["g1", "g2"]


def test_assign_is_idempotent_for_same_group(store: GroupStore) -> None:
    store.assign(1, "g1")
    store.assign(1, "g1")

    assert store.get("g1").tabs == [1]


def test_assign_refuses_implicit_move(store: GroupStore) -> None:
    store.assign(1, "g1")

    with pytest.raises(GroupAssignmentError):
        store.assign(1, "g2")

    assert store.group_of(1) == "g1"


def test_reassign_moves_to_index(store: GroupStore) -> None:
    store.assign(1, "g1")
    store.assign(2, "g2")
    store.assign(3, "g2")

    store.reassign(1, "g2", index=1)

    assert store.get("g1").tabs == []
    assert store.get("g2").tabs == [2, 1, 3]
    assert store.group_of(1) == "g2"


def test_listeners_see_assignments(store: GroupStore) -> None:
    seen: list[tuple[int, str]] = []
    store.add_assignment_listener(lambda tab_id, group_id: seen.append((tab_id, group_id)))

    store.assign(1, "g1")
    store.reassign(1, "g2")

    assert seen == [(1, "g1"), (1, "g2")]


def test_remove_tab_drops_membership(store: GroupStore) -> None:
    store.assign(1, "g1")

    store.remove_tab(1)

    assert store.group_of(1) is None
    assert store.get("g1").tabs == []


def test_close_requires_empty_group(store: GroupStore) -> None:
    store.assign(1, "g1")

    with pytest.raises(GroupAssignmentError):
        store.close("g1")
    store.close("g2")

    assert [g.id for g in store.list()] == ["g1"]


def test_store_iterates_in_order(store: GroupStore) -> None:
    assert [group.id for group in store] == ["g1", "g2"]
    assert len(store) == 2
