"""Group provider contract and the in-memory group store.

Groups are owned by the background classifier; the view only reads them,
except for explicit drag-driven reassignments.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Protocol

from ..host.base import TabId

__all__ = [
    "GroupId",
    "Group",
    "GroupRect",
    "GroupProvider",
    "GroupStore",
    "GroupAssignmentError",
    "AssignmentListener",
]

LOGGER = logging.getLogger(__name__)

GroupId = str
AssignmentListener = Callable[[TabId, GroupId], None]


class GroupAssignmentError(ValueError):
    """Raised when a committed assignment would be overwritten implicitly."""


@dataclass(slots=True)
class GroupRect:
    """Group bounds as fractions of the viewport."""

    x: float = 0.0
    y: float = 0.0
    w: float = 0.5
    h: float = 0.5


@dataclass(slots=True)
class Group:
    id: GroupId
    name: str = ""
    tabs: List[TabId] = field(default_factory=list)
    rect: GroupRect = field(default_factory=GroupRect)


class GroupProvider(Protocol):
    """Read surface of the group collaborator consumed by the view."""

    def create(self, name: str = "") -> Group:  # pragma: no cover - protocol
        ...

    def get(self, group_id: GroupId) -> Group | None:  # pragma: no cover - protocol
        ...

    def for_each(self, fn: Callable[[Group], None]) -> None:  # pragma: no cover - protocol
        ...

    def list(self) -> list[Group]:  # pragma: no cover - protocol
        ...

    async def get_group_id(self, tab_id: TabId) -> GroupId | None:  # pragma: no cover - protocol
        ...

    def reassign(self, tab_id: TabId, group_id: GroupId, index: int | None = None) -> Group:  # pragma: no cover
        ...


class GroupStore:
    """Ordered groups plus the committed tab -> group membership.

    Once :meth:`assign` commits ``tab -> group`` every lookup returns that group
    until :meth:`reassign` or :meth:`remove_tab` is called.
    """

    def __init__(self) -> None:
        self._groups: dict[GroupId, Group] = {}
        self._order: list[GroupId] = []
        self._membership: dict[TabId, GroupId] = {}
        self._listeners: list[AssignmentListener] = []

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------
    def create(self, name: str = "", *, group_id: GroupId | None = None) -> Group:
        group_id = group_id or uuid.uuid4().hex
        if group_id in self._groups:
            raise KeyError(f"Group already exists: {group_id}")
        group = Group(id=group_id, name=name)
        self._groups[group_id] = group
        self._order.append(group_id)
        LOGGER.debug("Group created: %s", group_id)
        return group

    def get(self, group_id: GroupId) -> Group | None:
        return self._groups.get(group_id)

    def for_each(self, fn: Callable[[Group], None]) -> None:
        for group in self.list():
            fn(group)

    def list(self) -> list[Group]:
        return [self._groups[group_id] for group_id in self._order]

    def __iter__(self) -> Iterator[Group]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._order)

    def close(self, group_id: GroupId) -> Group:
        """Remove an empty group."""

        group = self._groups.get(group_id)
        if group is None:
            raise KeyError(f"Unknown group: {group_id}")
        if group.tabs:
            raise GroupAssignmentError(f"Group {group_id} still holds {len(group.tabs)} tab(s)")
        del self._groups[group_id]
        self._order.remove(group_id)
        return group

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------
    async def get_group_id(self, tab_id: TabId) -> GroupId | None:
        return self._membership.get(tab_id)

    def group_of(self, tab_id: TabId) -> GroupId | None:
        return self._membership.get(tab_id)

    def assign(self, tab_id: TabId, group_id: GroupId) -> Group:
        """Commit the classifier's decision for ``tab_id``."""

        group = self._require(group_id)
        current = self._membership.get(tab_id)
        if current == group_id:
            return group
        if current is not None:
            raise GroupAssignmentError(
                f"Tab {tab_id} is already assigned to {current}; use reassign()"
            )
        self._membership[tab_id] = group_id
        group.tabs.append(tab_id)
        LOGGER.debug("Tab %s assigned to group %s", tab_id, group_id)
        self._notify(tab_id, group_id)
        return group

    def reassign(self, tab_id: TabId, group_id: GroupId, index: int | None = None) -> Group:
        """Move ``tab_id`` into ``group_id`` at ``index`` (append when ``None``)."""

        target = self._require(group_id)
        current = self._membership.get(tab_id)
        if current is not None:
            source = self._groups.get(current)
            if source is not None and tab_id in source.tabs:
                source.tabs.remove(tab_id)
        if index is None or index >= len(target.tabs):
            target.tabs.append(tab_id)
        else:
            target.tabs.insert(max(0, index), tab_id)
        self._membership[tab_id] = group_id
        LOGGER.debug("Tab %s reassigned %s -> %s", tab_id, current, group_id)
        self._notify(tab_id, group_id)
        return target

    def remove_tab(self, tab_id: TabId) -> None:
        group_id = self._membership.pop(tab_id, None)
        if group_id is None:
            return
        group = self._groups.get(group_id)
        if group is not None and tab_id in group.tabs:
            group.tabs.remove(tab_id)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_assignment_listener(self, listener: AssignmentListener) -> None:
        self._listeners.append(listener)

    def remove_assignment_listener(self, listener: AssignmentListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, tab_id: TabId, group_id: GroupId) -> None:
        for listener in list(self._listeners):
            listener(tab_id, group_id)

    def _require(self, group_id: GroupId) -> Group:
        group = self._groups.get(group_id)
        if group is None:
            raise KeyError(f"Unknown group: {group_id}")
        return group
