"""Active tab tracking."""

from __future__ import annotations

import logging
from typing import Sequence

from ...host.base import TabHost, TabId, TabInfo
from ..events import ActiveTabChanged, EventBus, TabNodeRemoved
from .tab_registry import TabRegistry

__all__ = ["ActiveTabTracker", "most_recent_first"]

LOGGER = logging.getLogger(__name__)


def most_recent_first(tabs: Sequence[TabInfo], *, exclude: TabId | None = None) -> list[TabInfo]:
    """Return ``tabs`` without ``exclude``, most recently accessed first."""

    candidates = [tab for tab in tabs if tab.id != exclude]
    candidates.sort(key=lambda tab: tab.last_accessed, reverse=True)
    return candidates


class ActiveTabTracker:
    """Keeps exactly one registry entry marked selected.

    The active tab is the most recently accessed tab of the observed window,
    excluding the view's own tab. ``active_tab_id`` is ``None`` or the id of a
    registered node.
    """

    def __init__(
        self,
        registry: TabRegistry,
        host: TabHost,
        event_bus: EventBus,
        *,
        window_id: int,
        view_tab_id: TabId | None,
    ) -> None:
        self._registry = registry
        self._host = host
        self._bus = event_bus
        self._window_id = window_id
        self._view_tab_id = view_tab_id
        self._active_tab_id: TabId | None = None
        self._generation = 0
        self._bus.subscribe(TabNodeRemoved, self._on_node_removed)

    @property
    def active_tab_id(self) -> TabId | None:
        return self._active_tab_id

    async def recompute(self) -> TabId | None:
        """Query the host and mark the most recently accessed tab as active."""

        self._generation += 1
        generation = self._generation
        tabs = await self._host.query_tabs(self._window_id)
        if generation != self._generation:
            # A newer recompute started while we were suspended; it wins.
            LOGGER.debug("Dropping stale active-tab recompute (generation %s)", generation)
            return self._active_tab_id

        ordered = most_recent_first(tabs, exclude=self._view_tab_id)
        head = ordered[0].id if ordered else None
        if head is not None and head not in self._registry:
            LOGGER.debug("Most recent tab %s has no node yet; leaving active unset", head)
            head = None
        self._apply(head)
        return head

    def set_active(self, tab_id: TabId) -> bool:
        """Mark ``tab_id`` active directly; unknown tabs are ignored.

        A recompute still waiting on the host is superseded by this choice.
        """

        if tab_id not in self._registry:
            return False
        self._generation += 1
        self._apply(tab_id)
        return True

    def _apply(self, tab_id: TabId | None) -> None:
        for node in self._registry.iter_nodes():
            if node.tab_id != tab_id:
                self._registry.set_selected(node.tab_id, False)
        if tab_id is not None:
            self._registry.set_selected(tab_id, True)
        previous = self._active_tab_id
        self._active_tab_id = tab_id
        if previous != tab_id:
            LOGGER.debug("Active tab %s -> %s", previous, tab_id)
            self._bus.publish(ActiveTabChanged(tab_id=tab_id, previous_tab_id=previous))

    def _on_node_removed(self, event: TabNodeRemoved) -> None:
        if event.tab_id == self._active_tab_id:
            self._active_tab_id = None
            self._bus.publish(ActiveTabChanged(tab_id=None, previous_tab_id=event.tab_id))
