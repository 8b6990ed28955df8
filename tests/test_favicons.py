"""Tests for :mod:`panoview.ui.domain.favicons`."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from panoview.services.image_codec import to_data_url
from panoview.ui.domain.favicons import FaviconValidator, HttpIconLoader, is_candidate
from panoview.ui.domain.tab_registry import TabRegistry
from panoview.ui.events import EventBus
from panoview.ui.projection import TabNodeProjection

from tests.helpers import StubIconLoader, png_bytes

PAGE = "https://example.org/page"
ICON = "https://example.org/favicon.ico"
OTHER_ICON = "https://example.org/other.ico"
PLACEHOLDER = "chrome://mozapps/skin/places/defaultFavicon.svg"
MALFORMED_ICON = "http://[::1/x.ico"


@pytest.fixture
def registry(event_bus: EventBus) -> TabRegistry:
    return TabRegistry(TabNodeProjection(), event_bus)


def test_is_candidate_rules() -> None:
    assert is_candidate(ICON, PAGE)
    assert not is_candidate(None, PAGE)
    assert not is_candidate("", PAGE)
    assert not is_candidate(PLACEHOLDER, PAGE)
    assert not is_candidate(PAGE, PAGE)


class TestFaviconValidator:
    """Validate-then-commit of favicons."""

    @pytest.mark.asyncio
    async def test_reachable_icon_becomes_visible(self, registry: TabRegistry) -> None:
        registry.insert(1, {"url": PAGE, "fav_icon_url": ICON})
        validator = FaviconValidator(registry, StubIconLoader({ICON}))

        assert await validator.update(1) is True

        handle = registry.get(1)
        assert handle.favicon == ICON
        assert handle.favicon_visible is True

    @pytest.mark.asyncio
    async def test_unreachable_icon_stays_hidden(self, registry: TabRegistry) -> None:
        registry.insert(1, {"url": PAGE, "fav_icon_url": ICON})
        validator = FaviconValidator(registry, StubIconLoader())

        assert await validator.update(1) is False

        handle = registry.get(1)
        assert handle.favicon is None
        assert handle.favicon_visible is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("icon", [None, PLACEHOLDER, PAGE])
    async def test_non_candidates_are_never_loaded(self, registry: TabRegistry, icon: str | None) -> None:
        registry.insert(1, {"url": PAGE, "fav_icon_url": icon})
        loader = StubIconLoader({PLACEHOLDER, PAGE})
        validator = FaviconValidator(registry, loader)

        assert await validator.update(1) is False

        assert loader.calls == []
        assert registry.get(1).favicon_visible is False

    @pytest.mark.asyncio
    async def test_newer_icon_supersedes_inflight_check(self, registry: TabRegistry) -> None:
        registry.insert(1, {"url": PAGE, "fav_icon_url": ICON})
        gate = asyncio.Event()
        validator = FaviconValidator(registry, StubIconLoader({ICON}, gate=gate))

        pending = asyncio.ensure_future(validator.update(1))
        await asyncio.sleep(0)
        registry.update(1, {"fav_icon_url": OTHER_ICON})
        gate.set()

        assert await pending is False
        assert registry.get(1).favicon_visible is False

    @pytest.mark.asyncio
    async def test_removed_tab_during_load(self, registry: TabRegistry) -> None:
        registry.insert(1, {"url": PAGE, "fav_icon_url": ICON})
        gate = asyncio.Event()
        validator = FaviconValidator(registry, StubIconLoader({ICON}, gate=gate))

        pending = asyncio.ensure_future(validator.update(1))
        await asyncio.sleep(0)
        node = registry.remove(1)
        gate.set()

        assert await pending is False
        assert node is not None and node.handle.favicon_visible is False

    @pytest.mark.asyncio
    async def test_unknown_tab(self, registry: TabRegistry) -> None:
        validator = FaviconValidator(registry, StubIconLoader({ICON}))

        assert await validator.update(7) is False

    @pytest.mark.asyncio
    async def test_malformed_icon_url_hides_previous_icon(self, registry: TabRegistry) -> None:
        """A url the HTTP client cannot even parse counts as a failed load."""
        registry.insert(1, {"url": PAGE, "fav_icon_url": ICON})
        validator = FaviconValidator(registry, StubIconLoader({ICON}))
        assert await validator.update(1) is True

        registry.update(1, {"fav_icon_url": MALFORMED_ICON})
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=png_bytes()))
        async with httpx.AsyncClient(transport=transport) as client:
            validator = FaviconValidator(registry, HttpIconLoader(client=client))

            assert await validator.update(1) is False

        handle = registry.get(1)
        assert handle.favicon is None
        assert handle.favicon_visible is False

    @pytest.mark.asyncio
    async def test_failing_loader_is_treated_as_unreachable(self, registry: TabRegistry) -> None:
        registry.insert(1, {"url": PAGE, "fav_icon_url": ICON})
        registry.get(1).set_favicon(ICON, True)

        async def exploding_loader(url: str) -> bool:
            raise RuntimeError("loader bug")

        assert await FaviconValidator(registry, exploding_loader).update(1) is False
        assert registry.get(1).favicon_visible is False


class TestHttpIconLoader:
    """The httpx-backed loader."""

    @pytest.mark.asyncio
    async def test_decodable_response_loads(self) -> None:
        image = png_bytes()
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=image))
        async with httpx.AsyncClient(transport=transport) as client:
            loader = HttpIconLoader(client=client)

            assert await loader(ICON) is True

    @pytest.mark.asyncio
    async def test_http_error_fails(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as client:
            loader = HttpIconLoader(client=client)

            assert await loader(ICON) is False

    @pytest.mark.asyncio
    async def test_undecodable_body_fails(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>nope</html>"))
        async with httpx.AsyncClient(transport=transport) as client:
            loader = HttpIconLoader(client=client)

            assert await loader(ICON) is False

    @pytest.mark.asyncio
    async def test_connection_error_fails(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            loader = HttpIconLoader(client=client)

            assert await loader(ICON) is False

    @pytest.mark.asyncio
    async def test_data_urls_are_decoded_locally(self) -> None:
        loader = HttpIconLoader()

        assert await loader(to_data_url(png_bytes(), "image/png")) is True
        assert await loader("data:image/png;base64,!!!") is False

    @pytest.mark.asyncio
    async def test_malformed_url_fails_without_raising(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=png_bytes()))
        async with httpx.AsyncClient(transport=transport) as client:
            loader = HttpIconLoader(client=client)

            assert await loader(MALFORMED_ICON) is False

    @pytest.mark.asyncio
    async def test_injected_client_follows_redirects(self) -> None:
        image = png_bytes()

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/favicon.ico":
                return httpx.Response(301, headers={"Location": "https://cdn.example.org/icon.png"})
            return httpx.Response(200, content=image)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            loader = HttpIconLoader(client=client)

            assert await loader(ICON) is True
