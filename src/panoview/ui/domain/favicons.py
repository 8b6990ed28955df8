"""Favicon validation: test-load a candidate icon before showing it."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

import httpx

from ...host.base import TabId
from ...services.image_codec import ImageCodecError, can_decode, decode_data_url
from .tab_registry import TabRegistry

__all__ = ["FaviconValidator", "IconLoader", "is_candidate", "HttpIconLoader"]

LOGGER = logging.getLogger(__name__)

_PLACEHOLDER_PREFIX = "chrome://mozapps/skin/"

IconLoader = Callable[[str], Awaitable[bool]]


def is_candidate(icon_url: str | None, page_url: str) -> bool:
    """Return ``False`` for urls that are never worth test-loading."""

    if not icon_url:
        return False
    if icon_url.startswith(_PLACEHOLDER_PREFIX):
        return False
    return icon_url != page_url


class HttpIconLoader:
    """Load icon bytes over HTTP (or from a ``data:`` url) and check Qt can decode them."""

    def __init__(self, *, timeout: float = 5.0, client: httpx.AsyncClient | None = None) -> None:
        self._timeout = timeout
        self._client = client

    async def __call__(self, url: str) -> bool:
        try:
            data = await self._fetch(url)
        except (httpx.HTTPError, httpx.InvalidURL, ImageCodecError) as exc:
            LOGGER.debug("Favicon %s failed to load: %s", url, exc)
            return False
        return can_decode(data)

    async def _fetch(self, url: str) -> bytes:
        if url.startswith("data:"):
            return decode_data_url(url)
        if self._client is not None:
            response = await self._client.get(url, timeout=self._timeout, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.get(url)
        response.raise_for_status()
        return response.content


class FaviconValidator:
    """Validate-then-commit: an icon becomes visible only after it loads."""

    def __init__(self, registry: TabRegistry, loader: IconLoader) -> None:
        self._registry = registry
        self._loader = loader

    async def update(self, tab_id: TabId) -> bool:
        """Validate the record's current icon and commit the outcome to the node.

        Returns whether the icon is visible afterwards.
        """

        record = self._registry.record(tab_id)
        if record is None:
            return False
        candidate = record.fav_icon_url
        if candidate is None or not is_candidate(candidate, record.url):
            self._hide(tab_id)
            return False

        try:
            loaded = await self._loader(candidate)
        except Exception:
            LOGGER.warning("Favicon loader failed for tab %s (%s)", tab_id, candidate, exc_info=True)
            loaded = False

        current = self._registry.record(tab_id)
        if current is None or current.fav_icon_url != candidate:
            # Removed, or a newer icon arrived while loading; that update owns the node.
            return False
        handle = self._registry.get(tab_id)
        if handle is None:  # pragma: no cover - record and handle share a lifetime
            return False
        if loaded:
            handle.set_favicon(candidate, True)
        else:
            handle.set_favicon(None, False)
        return loaded

    def _hide(self, tab_id: TabId) -> None:
        handle = self._registry.get(tab_id)
        if handle is not None:
            handle.set_favicon(None, False)
