"""The panorama view: host notifications in, tab nodes and selection out.

Every handler may be suspended at an ``await`` while other notifications run.
After each suspension the handler re-checks that the tab it is about to touch
is still registered; a removed tab's in-flight work simply becomes a no-op.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Coroutine

from ..host.base import (
    ActiveInfo,
    AttachInfo,
    ChangeInfo,
    DetachInfo,
    HostEventKind,
    MoveInfo,
    RemoveInfo,
    TabHost,
    TabHostError,
    TabId,
    TabInfo,
)
from ..services.groups import Group, GroupId, GroupRect, GroupStore
from ..services.image_codec import ThumbnailCodec
from ..services.settings import Settings
from .domain.active_tab import ActiveTabTracker, most_recent_first
from .domain.favicons import FaviconValidator, HttpIconLoader, IconLoader
from .domain.group_resolver import GroupAssignmentResolver, ResolverConfig
from .domain.navigator import KeyboardNavigator
from .domain.tab_registry import TabRegistry
from .domain.thumbnails import Rescaler, ThumbnailCache
from .events import EventBus, GroupLayoutChanged, TabMoved
from .projection import HandleFactory, TabNodeProjection, TabRecord
from .subscription import HostSubscription

__all__ = ["Appearance", "PanoramaView", "ViewContext", "open_view", "NEW_GROUP_SIZE", "MIDDLE_BUTTON"]

LOGGER = logging.getLogger(__name__)

NEW_GROUP_SIZE = 150.0
MIDDLE_BUTTON = 1


@dataclass(slots=True, frozen=True)
class Appearance:
    """Presentation choices read by whatever toolkit draws the nodes."""

    theme: str = "light"
    toolbar_position: str = "top"


@dataclass(slots=True)
class ViewContext:
    """Collaborators handed to the view at construction."""

    host: TabHost
    groups: GroupStore
    settings: Settings
    codec: Rescaler | None = None
    icon_loader: IconLoader | None = None
    handle_factory: HandleFactory | None = None
    event_bus: EventBus | None = None


async def open_view(context: ViewContext) -> "PanoramaView":
    """Resolve the owned window and tab, then build and start a view."""

    window_id = await context.host.current_window_id()
    view_tab_id = await context.host.current_tab_id()
    view = PanoramaView(context, window_id=window_id, view_tab_id=view_tab_id)
    await view.start()
    return view


class PanoramaView:
    """Keeps the tab registry in step with the host for one window."""

    def __init__(self, context: ViewContext, *, window_id: int, view_tab_id: TabId | None) -> None:
        settings = context.settings
        self.window_id = window_id
        self.view_tab_id = view_tab_id
        self.host = context.host
        self.groups = context.groups
        self.bus: EventBus = context.event_bus or EventBus()
        self.registry = TabRegistry(TabNodeProjection(context.handle_factory), self.bus)
        self.tracker = ActiveTabTracker(
            self.registry, self.host, self.bus, window_id=window_id, view_tab_id=view_tab_id
        )
        self.resolver = GroupAssignmentResolver(
            self.groups.get_group_id,
            self.bus,
            config=ResolverConfig(
                initial_delay=settings.group_poll_initial_delay,
                max_delay=settings.group_poll_max_delay,
                timeout=settings.group_assignment_timeout,
            ),
        )
        self.navigator = KeyboardNavigator(self.groups, self.tracker, self.host)
        codec = context.codec or ThumbnailCodec(
            width=settings.thumbnail_width, quality=settings.thumbnail_quality
        )
        self.thumbnails = ThumbnailCache(
            self.registry,
            self.host,
            codec,
            self.bus,
            window_id=window_id,
            view_tab_id=view_tab_id,
            capture_quality=settings.capture_quality,
        )
        self.favicons = FaviconValidator(
            self.registry, context.icon_loader or HttpIconLoader(timeout=settings.favicon_timeout)
        )
        self.subscription = HostSubscription(
            self.host,
            {
                HostEventKind.CREATED: self.on_created,
                HostEventKind.REMOVED: self.on_removed,
                HostEventKind.UPDATED: self.on_updated,
                HostEventKind.MOVED: self.on_moved,
                HostEventKind.ATTACHED: self.on_attached,
                HostEventKind.DETACHED: self.on_detached,
                HostEventKind.ACTIVATED: self.on_activated,
            },
            name="lifecycle",
        )
        self.capture_subscription = HostSubscription(
            self.host, {HostEventKind.UPDATED: self.on_updated_capture}, name="capture"
        )
        self.appearance = Appearance(theme=settings.theme, toolbar_position=settings.toolbar_position)
        self.visible = True
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """Populate nodes for the window's tabs and start listening."""

        tabs = most_recent_first(await self.host.query_tabs(self.window_id), exclude=self.view_tab_id)
        for tab in tabs:
            if tab.id not in self.registry:
                self.registry.insert(tab.id, TabRecord.from_tab(tab))
        for group in self.groups.list():
            for tab_id in group.tabs:
                self.registry.place_in_group(tab_id, group.id)
        if tabs:
            self.tracker.set_active(tabs[0].id)

        self.groups.add_assignment_listener(self.resolver.notify_assigned)
        self.groups.add_assignment_listener(self.on_group_assigned)
        self.subscription.enable()
        if self.visible:
            self.capture_subscription.enable()

        for tab in tabs:
            self._spawn(self.favicons.update(tab.id))
            await self.thumbnails.refresh(tab.id)
        self._spawn(self.thumbnails.capture_all())
        LOGGER.info("View started for window %s with %d tab(s)", self.window_id, len(self.registry))

    async def stop(self) -> None:
        self.subscription.disable()
        self.capture_subscription.disable()
        self.groups.remove_assignment_listener(self.resolver.notify_assigned)
        self.groups.remove_assignment_listener(self.on_group_assigned)
        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        LOGGER.info("View stopped for window %s", self.window_id)

    async def drain(self) -> None:
        """Wait until no background work (icon checks, captures) is pending."""

        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def set_visible(self, visible: bool) -> None:
        """Toggle capture-on-update; regaining visibility recaptures and reselects."""

        self.visible = visible
        if not visible:
            self.capture_subscription.disable()
            return
        self.capture_subscription.enable()
        await self.thumbnails.capture_all()
        await self.tracker.recompute()

    # ------------------------------------------------------------------
    # Host notifications
    # ------------------------------------------------------------------
    async def on_created(self, tab: TabInfo) -> None:
        if tab.window_id != self.window_id or tab.id == self.view_tab_id:
            return
        if tab.id in self.registry:
            LOGGER.debug("Tab %s already has a node; ignoring duplicate creation", tab.id)
            return
        self.registry.insert(tab.id, TabRecord.from_tab(tab))
        self._spawn(self.favicons.update(tab.id))
        await self.thumbnails.refresh(tab.id)
        if tab.id not in self.registry:
            return

        group_id = await self.resolver.resolve(tab.id)
        if tab.id not in self.registry:
            return
        self._place(tab.id, group_id)

    async def on_removed(self, tab_id: TabId, info: RemoveInfo) -> None:
        if info.window_id != self.window_id or tab_id == self.view_tab_id:
            return
        self.thumbnails.discard(tab_id)
        await self._drop_node(tab_id)

    async def on_updated(self, tab_id: TabId, change: ChangeInfo, tab: TabInfo) -> None:
        if tab.window_id != self.window_id or tab_id == self.view_tab_id:
            return
        self.registry.update(tab_id, TabRecord.from_tab(tab))
        self._spawn(self.favicons.update(tab_id))
        if "pinned" in change:
            self.bus.publish(GroupLayoutChanged(group_id=None))

    async def on_updated_capture(self, tab_id: TabId, change: ChangeInfo, tab: TabInfo) -> None:
        if tab.window_id != self.window_id or tab_id == self.view_tab_id:
            return
        if tab.discarded or change.get("status") != "complete":
            return
        await self.thumbnails.capture(tab_id)

    async def on_moved(self, tab_id: TabId, info: MoveInfo) -> None:
        if info.window_id != self.window_id:
            return
        self.bus.publish(TabMoved(tab_id=tab_id, from_index=info.from_index, to_index=info.to_index))

    async def on_attached(self, tab_id: TabId, info: AttachInfo) -> None:
        if info.new_window_id != self.window_id:
            return
        try:
            tab = await self.host.get_tab(tab_id)
        except TabHostError as exc:
            LOGGER.debug("Attached tab %s vanished before it could be read: %s", tab_id, exc)
            return
        await self.on_created(tab)

    async def on_detached(self, tab_id: TabId, info: DetachInfo) -> None:
        if info.old_window_id != self.window_id:
            return
        await self._drop_node(tab_id)

    async def on_activated(self, info: ActiveInfo) -> None:
        if info.window_id != self.window_id:
            return
        if info.tab_id == self.view_tab_id:
            await self.thumbnails.refresh_all()
        await self.tracker.recompute()

    def on_group_assigned(self, tab_id: TabId, group_id: GroupId) -> None:
        """Place nodes whose classification arrived after their resolution gave up."""

        node = self.registry.node(tab_id)
        if node is None or node.group_id is not None:
            return
        if tab_id in self.resolver.pending():
            return
        LOGGER.debug("Late group assignment for tab %s: %s", tab_id, group_id)
        self._place(tab_id, group_id)

    # ------------------------------------------------------------------
    # UI input
    # ------------------------------------------------------------------
    async def handle_key(self, key: str) -> TabId | None:
        return await self.navigator.handle_key(key)

    async def click_tab(self, tab_id: TabId) -> None:
        try:
            await self.host.activate_tab(tab_id)
        except TabHostError as exc:
            LOGGER.debug("Could not activate tab %s: %s", tab_id, exc)

    async def close_tab(self, tab_id: TabId) -> None:
        try:
            await self.host.remove_tab(tab_id)
        except TabHostError as exc:
            LOGGER.debug("Could not close tab %s: %s", tab_id, exc)

    async def middle_click_tab(self, tab_id: TabId, button: int) -> None:
        if button == MIDDLE_BUTTON:
            await self.close_tab(tab_id)

    def create_group(
        self, x: float = NEW_GROUP_SIZE / 2, y: float = NEW_GROUP_SIZE / 2, *, viewport: tuple[float, float]
    ) -> Group:
        """Create an empty group centred on ``(x, y)`` in viewport pixels."""

        width, height = viewport
        half = NEW_GROUP_SIZE / 2
        group = self.groups.create()
        group.rect = GroupRect(
            x=(x - half) / width,
            y=(y - half) / height,
            w=NEW_GROUP_SIZE / width,
            h=NEW_GROUP_SIZE / height,
        )
        self.bus.publish(GroupLayoutChanged(group_id=group.id))
        return group

    def move_tab_to_group(self, tab_id: TabId, group_id: GroupId, index: int | None = None) -> None:
        """Drop target for drags: move ``tab_id`` into ``group_id`` at ``index``."""

        previous = self.groups.group_of(tab_id)
        self.groups.reassign(tab_id, group_id, index)
        self.registry.place_in_group(tab_id, group_id)
        if previous is not None and previous != group_id:
            self.bus.publish(GroupLayoutChanged(group_id=previous))
        self.bus.publish(GroupLayoutChanged(group_id=group_id))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _drop_node(self, tab_id: TabId) -> None:
        was_active = self.tracker.active_tab_id == tab_id
        self.resolver.cancel(tab_id)
        if self.registry.remove(tab_id) is None:
            return
        for group in self.groups.list():
            self.bus.publish(GroupLayoutChanged(group_id=group.id))
        if was_active:
            await self.tracker.recompute()

    def _place(self, tab_id: TabId, group_id: GroupId | None) -> None:
        self.registry.place_in_group(tab_id, group_id)
        self.bus.publish(GroupLayoutChanged(group_id=group_id))

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Background view task failed", exc_info=exc)
