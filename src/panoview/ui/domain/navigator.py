"""Keyboard navigation across groups and tabs."""

from __future__ import annotations

import enum
import logging
from typing import Sequence

from ...host.base import TabHost, TabHostError, TabId
from ...services.groups import Group, GroupProvider
from .active_tab import ActiveTabTracker

__all__ = ["KeyboardNavigator", "NavigationAction", "KEY_BINDINGS", "step_target"]

LOGGER = logging.getLogger(__name__)


class NavigationAction(enum.Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    ACTIVATE = "activate"


KEY_BINDINGS: dict[str, NavigationAction] = {
    "ArrowRight": NavigationAction.NEXT,
    "ArrowLeft": NavigationAction.PREVIOUS,
    "Enter": NavigationAction.ACTIVATE,
}


def step_target(groups: Sequence[Group], tab_id: TabId, forward: bool) -> TabId | None:
    """Return the tab one step before/after ``tab_id`` in group order.

    Steps past the end of a group land on the first tab of the next non-empty
    group (or the last tab of the previous one), wrapping around the group
    list. Returns ``None`` when ``tab_id`` is not in any group. ``groups`` and
    their tab lists are only read.
    """

    position = _locate(groups, tab_id)
    if position is None:
        return None
    group_index, tab_index = position
    tabs = groups[group_index].tabs

    if forward and tab_index < len(tabs) - 1:
        return tabs[tab_index + 1]
    if not forward and tab_index > 0:
        return tabs[tab_index - 1]

    count = len(groups)
    offset = 1 if forward else -1
    for step in range(1, count + 1):
        candidate = groups[(group_index + offset * step) % count].tabs
        if candidate:
            return candidate[0] if forward else candidate[-1]
    return None  # pragma: no cover - the current group is never empty here


def _locate(groups: Sequence[Group], tab_id: TabId) -> tuple[int, int] | None:
    for group_index, group in enumerate(groups):
        try:
            return group_index, group.tabs.index(tab_id)
        except ValueError:
            continue
    return None


class KeyboardNavigator:
    """Moves the active selection with Next/Previous and activates it with Enter."""

    def __init__(self, groups: GroupProvider, tracker: ActiveTabTracker, host: TabHost) -> None:
        self._groups = groups
        self._tracker = tracker
        self._host = host

    async def handle_key(self, key: str) -> TabId | None:
        """Dispatch a key name; unbound keys are ignored and return ``None``."""

        action = KEY_BINDINGS.get(key)
        if action is None:
            return None
        if action is NavigationAction.ACTIVATE:
            return await self.activate()
        return self.step(forward=action is NavigationAction.NEXT)

    def next(self) -> TabId | None:
        return self.step(forward=True)

    def previous(self) -> TabId | None:
        return self.step(forward=False)

    def step(self, *, forward: bool) -> TabId | None:
        current = self._tracker.active_tab_id
        if current is None:
            return None
        target = step_target(self._groups.list(), current, forward)
        if target is None:
            LOGGER.debug("Active tab %s is not in any group; ignoring navigation", current)
            return None
        if not self._tracker.set_active(target):
            LOGGER.debug("Navigation target %s has no node; ignoring", target)
            return None
        return target

    async def activate(self) -> TabId | None:
        """Ask the host to bring the tracked active tab to the foreground."""

        current = self._tracker.active_tab_id
        if current is None:
            return None
        try:
            await self._host.activate_tab(current)
        except TabHostError as exc:
            LOGGER.debug("Host refused to activate tab %s: %s", current, exc)
            return None
        return current
