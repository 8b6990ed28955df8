"""In-memory host tab provider.

Models a browser's tab API closely enough to drive the view headlessly: every
mutation emits the same notifications the browser would, and each listener
call is dispatched as its own asyncio task, so handlers interleave at their
suspension points exactly as they do against a real host.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections import defaultdict
from dataclasses import replace
from typing import Any, Callable, Sequence

from ..services.session_values import SessionValueStore
from .base import (
    ActiveInfo,
    AttachInfo,
    ChangeInfo,
    DetachInfo,
    HostEventKind,
    HostHandler,
    MoveInfo,
    RemoveInfo,
    TabHostError,
    TabId,
    TabInfo,
)

__all__ = ["MemoryTabHost"]

LOGGER = logging.getLogger(__name__)


class MemoryTabHost:
    """Tabs, windows, captures and session values kept in process memory."""

    def __init__(
        self,
        *,
        window_id: int = 1,
        view_tab_id: TabId | None = None,
        session: SessionValueStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._window_id = window_id
        self._view_tab_id = view_tab_id
        self._session = session or SessionValueStore()
        self._clock = clock
        self._tabs: dict[TabId, TabInfo] = {}
        self._order: list[TabId] = []
        self._captures: dict[TabId, bytes] = {}
        self._listeners: dict[HostEventKind, list[HostHandler]] = defaultdict(list)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._ids = itertools.count(1)
        self.capture_calls: list[TabId] = []
        self.activated: list[TabId] = []

    # ------------------------------------------------------------------
    # Host surface consumed by the view
    # ------------------------------------------------------------------
    async def current_window_id(self) -> int:
        return self._window_id

    async def current_tab_id(self) -> TabId:
        if self._view_tab_id is None:
            raise TabHostError("view is not hosted in a tab")
        return self._view_tab_id

    async def query_tabs(self, window_id: int, *, discarded: bool | None = None) -> Sequence[TabInfo]:
        await asyncio.sleep(0)
        result = []
        for tab_id in self._order:
            tab = self._tabs[tab_id]
            if tab.window_id != window_id:
                continue
            if discarded is not None and tab.discarded != discarded:
                continue
            result.append(replace(tab))
        return result

    async def get_tab(self, tab_id: TabId) -> TabInfo:
        await asyncio.sleep(0)
        return replace(self._require(tab_id))

    async def activate_tab(self, tab_id: TabId) -> None:
        await asyncio.sleep(0)
        self.activate(tab_id)

    async def remove_tab(self, tab_id: TabId) -> None:
        await asyncio.sleep(0)
        self.close(tab_id)

    async def capture_tab(self, tab_id: TabId, *, quality: int) -> bytes:
        del quality
        self.capture_calls.append(tab_id)
        await asyncio.sleep(0)
        tab = self._require(tab_id)
        if tab.discarded:
            raise TabHostError(f"tab {tab_id} is discarded")
        data = self._captures.get(tab_id)
        if data is None:
            raise TabHostError(f"tab {tab_id} cannot be captured")
        return data

    async def get_tab_value(self, tab_id: TabId, key: str) -> Any | None:
        await asyncio.sleep(0)
        return self._session.get(tab_id, key)

    async def set_tab_value(self, tab_id: TabId, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        self._require(tab_id)
        self._session.set(tab_id, key, value)

    def subscribe(self, kind: HostEventKind, handler: HostHandler) -> None:
        self._listeners[kind].append(handler)

    def unsubscribe(self, kind: HostEventKind, handler: HostHandler) -> None:
        try:
            self._listeners[kind].remove(handler)
        except ValueError:
            pass

    def listener_count(self, kind: HostEventKind | None = None) -> int:
        if kind is not None:
            return len(self._listeners.get(kind, []))
        return sum(len(handlers) for handlers in self._listeners.values())

    # ------------------------------------------------------------------
    # Mutations (what the user or the browser does)
    # ------------------------------------------------------------------
    def open(
        self,
        *,
        tab_id: TabId | None = None,
        window_id: int | None = None,
        title: str = "",
        url: str = "about:blank",
        fav_icon_url: str | None = None,
        pinned: bool = False,
        discarded: bool = False,
        last_accessed: float | None = None,
        capture: bytes | None = None,
        notify: bool = True,
    ) -> TabInfo:
        if tab_id is None:
            tab_id = next(self._ids)
            while tab_id in self._tabs or tab_id == self._view_tab_id:
                tab_id = next(self._ids)
        if tab_id in self._tabs:
            raise TabHostError(f"tab {tab_id} already exists")
        tab = TabInfo(
            id=tab_id,
            window_id=self._window_id if window_id is None else window_id,
            title=title,
            url=url,
            fav_icon_url=fav_icon_url,
            pinned=pinned,
            discarded=discarded,
            last_accessed=self._clock() if last_accessed is None else last_accessed,
        )
        self._tabs[tab_id] = tab
        self._order.append(tab_id)
        if capture is not None:
            self._captures[tab_id] = capture
        if notify:
            self._emit(HostEventKind.CREATED, replace(tab))
        return replace(tab)

    def close(self, tab_id: TabId) -> None:
        tab = self._require(tab_id)
        del self._tabs[tab_id]
        self._order.remove(tab_id)
        self._captures.pop(tab_id, None)
        self._session.delete(tab_id)
        self._emit(HostEventKind.REMOVED, tab_id, RemoveInfo(window_id=tab.window_id))

    def update(self, tab_id: TabId, **changes: Any) -> TabInfo:
        tab = self._require(tab_id)
        status = changes.pop("status", None)
        updated = replace(tab, **changes)
        self._tabs[tab_id] = updated
        reported = dict(changes)
        if status is not None:
            reported["status"] = status
        self._emit(HostEventKind.UPDATED, tab_id, ChangeInfo(reported), replace(updated))
        return replace(updated)

    def move(self, tab_id: TabId, to_index: int) -> None:
        tab = self._require(tab_id)
        from_index = self._order.index(tab_id)
        self._order.remove(tab_id)
        self._order.insert(to_index, tab_id)
        self._emit(
            HostEventKind.MOVED,
            tab_id,
            MoveInfo(window_id=tab.window_id, from_index=from_index, to_index=to_index),
        )

    def transfer(self, tab_id: TabId, window_id: int) -> None:
        """Move a tab to another window (detach then attach)."""

        tab = self._require(tab_id)
        old_window = tab.window_id
        self._tabs[tab_id] = replace(tab, window_id=window_id)
        self._emit(HostEventKind.DETACHED, tab_id, DetachInfo(old_window_id=old_window))
        self._emit(HostEventKind.ATTACHED, tab_id, AttachInfo(new_window_id=window_id))

    def activate(self, tab_id: TabId) -> None:
        tab = self._require(tab_id)
        previous = next((t.id for t in self._tabs.values() if t.active and t.window_id == tab.window_id), None)
        for other_id, other in self._tabs.items():
            if other.window_id == tab.window_id and other.active:
                self._tabs[other_id] = replace(other, active=False)
        self._tabs[tab_id] = replace(self._tabs[tab_id], active=True, last_accessed=self._clock())
        self.activated.append(tab_id)
        self._emit(
            HostEventKind.ACTIVATED,
            ActiveInfo(tab_id=tab_id, window_id=tab.window_id, previous_tab_id=previous),
        )

    def set_capture(self, tab_id: TabId, data: bytes | None) -> None:
        if data is None:
            self._captures.pop(tab_id, None)
        else:
            self._captures[tab_id] = data

    def open_tab_ids(self, window_id: int | None = None) -> set[TabId]:
        target = self._window_id if window_id is None else window_id
        return {tab_id for tab_id, tab in self._tabs.items() if tab.window_id == target}

    @property
    def session(self) -> SessionValueStore:
        return self._session

    async def drain(self) -> None:
        """Wait for every dispatched listener (and anything they dispatched) to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require(self, tab_id: TabId) -> TabInfo:
        tab = self._tabs.get(tab_id)
        if tab is None:
            raise TabHostError(f"no tab with id {tab_id}")
        return tab

    def _emit(self, kind: HostEventKind, *args: Any) -> None:
        handlers = list(self._listeners.get(kind, []))
        if not handlers:
            return
        loop = asyncio.get_running_loop()
        for handler in handlers:
            task = loop.create_task(handler(*args))
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Listener task failed", exc_info=exc)
