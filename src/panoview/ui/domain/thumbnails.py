"""Thumbnail capture and the live/persisted preview cache."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Protocol

from ...host.base import TabHost, TabHostError, TabId
from ...services.image_codec import ImageCodecError
from ..events import EventBus, ThumbnailUpdated
from .tab_registry import TabRegistry

__all__ = ["ThumbnailCache", "ThumbnailEntry", "ThumbnailTier", "Rescaler", "THUMBNAIL_KEY"]

LOGGER = logging.getLogger(__name__)

THUMBNAIL_KEY = "thumbnail"


class ThumbnailTier(str, enum.Enum):
    LIVE = "live"
    PERSISTED = "persisted"


@dataclass(slots=True, frozen=True)
class ThumbnailEntry:
    tab_id: TabId
    image_data: str
    tier: ThumbnailTier


class Rescaler(Protocol):
    def rescale(self, data: bytes) -> str:  # pragma: no cover - protocol
        ...


class ThumbnailCache:
    """Serves per-tab previews from memory, then session storage, then a blank.

    Captures go through a single lock so the host's capture API only ever sees
    one request in flight. Entries are keyed by tab id independently of the
    registry, so a node that is re-created (detach/attach) finds its preview.
    """

    def __init__(
        self,
        registry: TabRegistry,
        host: TabHost,
        codec: Rescaler,
        event_bus: EventBus,
        *,
        window_id: int,
        view_tab_id: TabId | None,
        capture_quality: int = 25,
    ) -> None:
        self._registry = registry
        self._host = host
        self._codec = codec
        self._bus = event_bus
        self._window_id = window_id
        self._view_tab_id = view_tab_id
        self._capture_quality = capture_quality
        self._live: dict[TabId, str] = {}
        self._capture_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    async def capture(self, tab_id: TabId) -> bool:
        """Capture, downsample and store a preview for ``tab_id``.

        Returns ``False`` when the capture failed; the previous preview stays.
        """

        async with self._capture_lock:
            return await self._capture_locked(tab_id)

    async def capture_all(self) -> int:
        """Capture every loaded tab of the window one at a time; return the success count."""

        tabs = await self._host.query_tabs(self._window_id, discarded=False)
        captured = 0
        for tab in tabs:
            if tab.id == self._view_tab_id:
                continue
            async with self._capture_lock:
                if await self._capture_locked(tab.id):
                    captured += 1
        LOGGER.debug("Captured %d/%d thumbnails", captured, len(tabs))
        return captured

    async def _capture_locked(self, tab_id: TabId) -> bool:
        try:
            raw = await self._host.capture_tab(tab_id, quality=self._capture_quality)
            image_data = await asyncio.to_thread(self._codec.rescale, raw)
        except (TabHostError, ImageCodecError) as exc:
            LOGGER.info("Skipping thumbnail for tab %s: %s", tab_id, exc)
            return False
        if tab_id not in self._registry:
            LOGGER.debug("Tab %s went away during capture; dropping thumbnail", tab_id)
            return False
        try:
            await self._host.set_tab_value(tab_id, THUMBNAIL_KEY, image_data)
        except TabHostError as exc:
            LOGGER.info("Could not persist thumbnail for tab %s: %s", tab_id, exc)
        if tab_id not in self._registry:
            return False
        self._live[tab_id] = image_data
        self._render(tab_id, ThumbnailEntry(tab_id, image_data, ThumbnailTier.LIVE))
        return True

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def cached(self, tab_id: TabId) -> ThumbnailEntry | None:
        image_data = self._live.get(tab_id)
        if image_data is None:
            return None
        return ThumbnailEntry(tab_id, image_data, ThumbnailTier.LIVE)

    async def lookup(self, tab_id: TabId) -> ThumbnailEntry | None:
        """Return the live entry, else the persisted one, else ``None``."""

        entry = self.cached(tab_id)
        if entry is not None:
            return entry
        try:
            stored = await self._host.get_tab_value(tab_id, THUMBNAIL_KEY)
        except TabHostError as exc:
            LOGGER.debug("Persisted thumbnail unavailable for tab %s: %s", tab_id, exc)
            return None
        if not isinstance(stored, str) or not stored:
            return None
        return ThumbnailEntry(tab_id, stored, ThumbnailTier.PERSISTED)

    async def refresh(self, tab_id: TabId) -> ThumbnailEntry | None:
        """Render the best available preview (or the placeholder) into the node."""

        if tab_id not in self._registry:
            return None
        entry = await self.lookup(tab_id)
        self._render(tab_id, entry)
        return entry

    async def refresh_all(self) -> None:
        for tab_id in self._registry.tab_ids():
            await self.refresh(tab_id)

    def discard(self, tab_id: TabId) -> None:
        self._live.pop(tab_id, None)

    def _render(self, tab_id: TabId, entry: ThumbnailEntry | None) -> None:
        # The node may have been removed while we were suspended.
        handle = self._registry.get(tab_id)
        if handle is None:
            return
        handle.set_thumbnail(entry.image_data if entry is not None else None)
        self._bus.publish(
            ThumbnailUpdated(tab_id=tab_id, tier=entry.tier.value if entry is not None else None)
        )
