"""Tab node registry.

Maps host tab ids to :class:`TabNode` entries for every tab the view mirrors.
This is the single owner of node lifetime: nodes are created only by
:meth:`TabRegistry.insert` and destroyed only by :meth:`TabRegistry.remove`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterator, Mapping

from ...host.base import TabId
from ..events import EventBus, TabNodeCreated, TabNodeRemoved, TabNodeUpdated
from ..projection import TabNodeHandle, TabNodeProjection, TabRecord

__all__ = ["TabNode", "TabRegistry", "DuplicateTabError"]

LOGGER = logging.getLogger(__name__)

_RECORD_FIELDS = frozenset(
    {"title", "url", "discarded", "pinned", "fav_icon_url", "last_accessed"}
)


class DuplicateTabError(KeyError):
    """Raised when a node is inserted for a tab id that is already registered."""


@dataclass(slots=True)
class TabNode:
    """Registry entry pairing a tab's domain record with its visual handle."""

    tab_id: TabId
    record: TabRecord
    handle: TabNodeHandle
    selected: bool = False
    group_id: str | None = None


class TabRegistry:
    """Domain manager for tab node lifecycle.

    Events Emitted:
        - TabNodeCreated: after :meth:`insert`
        - TabNodeUpdated: after :meth:`update` changed the projection
        - TabNodeRemoved: after :meth:`remove` released a node
    """

    def __init__(self, projection: TabNodeProjection, event_bus: EventBus) -> None:
        self._projection = projection
        self._bus = event_bus
        self._nodes: dict[TabId, TabNode] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def insert(self, tab_id: TabId, initial: TabRecord | Mapping[str, Any]) -> TabNodeHandle:
        """Create the node for ``tab_id`` and return its visual handle.

        Raises:
            DuplicateTabError: If ``tab_id`` is already registered.
        """

        if tab_id in self._nodes:
            raise DuplicateTabError(tab_id)
        record = _coerce_record(tab_id, initial)
        handle = self._projection.create(record)
        self._nodes[tab_id] = TabNode(tab_id=tab_id, record=record, handle=handle)
        LOGGER.debug("TabRegistry.insert: tab_id=%s title=%r", tab_id, record.title)
        self._bus.publish(TabNodeCreated(tab_id=tab_id))
        return handle

    def update(self, tab_id: TabId, data: TabRecord | Mapping[str, Any]) -> bool:
        """Merge ``data`` into the node's record; absent tabs are ignored.

        Returns ``True`` when the visual projection changed.
        """

        node = self._nodes.get(tab_id)
        if node is None:
            LOGGER.debug("TabRegistry.update: tab_id=%s not registered; ignoring", tab_id)
            return False
        if isinstance(data, TabRecord):
            node.record = replace(data, tab_id=tab_id)
        else:
            changes = {key: value for key, value in data.items() if key in _RECORD_FIELDS}
            node.record = replace(node.record, **changes)
        changed = self._projection.render(node.record, node.handle)
        if changed:
            self._bus.publish(TabNodeUpdated(tab_id=tab_id))
        return changed

    def remove(self, tab_id: TabId) -> TabNode | None:
        """Release the node's visual resources and forget it; absent tabs are ignored."""

        node = self._nodes.pop(tab_id, None)
        if node is None:
            return None
        self._projection.release(tab_id, node.handle)
        LOGGER.debug("TabRegistry.remove: tab_id=%s", tab_id)
        self._bus.publish(TabNodeRemoved(tab_id=tab_id))
        return node

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------
    def get(self, tab_id: TabId) -> TabNodeHandle | None:
        node = self._nodes.get(tab_id)
        return node.handle if node is not None else None

    def node(self, tab_id: TabId) -> TabNode | None:
        return self._nodes.get(tab_id)

    def record(self, tab_id: TabId) -> TabRecord | None:
        node = self._nodes.get(tab_id)
        return node.record if node is not None else None

    def __contains__(self, tab_id: object) -> bool:
        return tab_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def tab_ids(self) -> tuple[TabId, ...]:
        return tuple(self._nodes)

    def iter_nodes(self) -> Iterator[TabNode]:
        return iter(list(self._nodes.values()))

    def selected_ids(self) -> tuple[TabId, ...]:
        return tuple(tab_id for tab_id, node in self._nodes.items() if node.selected)

    # ------------------------------------------------------------------
    # Visual state
    # ------------------------------------------------------------------
    def set_selected(self, tab_id: TabId, selected: bool) -> bool:
        node = self._nodes.get(tab_id)
        if node is None:
            return False
        if node.selected != selected:
            node.selected = selected
            node.handle.set_selected(selected)
        return True

    def place_in_group(self, tab_id: TabId, group_id: str | None) -> bool:
        node = self._nodes.get(tab_id)
        if node is None:
            return False
        if node.group_id != group_id:
            node.group_id = group_id
            node.handle.attach_to_group(group_id)
        return True


def _coerce_record(tab_id: TabId, initial: TabRecord | Mapping[str, Any]) -> TabRecord:
    if isinstance(initial, TabRecord):
        return replace(initial, tab_id=tab_id)
    data = {key: value for key, value in initial.items() if key in _RECORD_FIELDS}
    return TabRecord(tab_id=tab_id, **data)
