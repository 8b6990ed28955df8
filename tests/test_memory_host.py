"""Tests for :mod:`panoview.host.memory`."""

from __future__ import annotations

from typing import Any

import pytest

from panoview.host.base import HostEventKind, TabHostError
from panoview.host.memory import MemoryTabHost
from panoview.ui.subscription import HostSubscription


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def handler(self, name: str):  # type: ignore[no-untyped-def]
        async def _record(*args: Any) -> None:
            self.calls.append((name, args))

        return _record


@pytest.mark.asyncio
async def test_transfer_emits_detach_then_attach(host: MemoryTabHost) -> None:
    recorder = _Recorder()
    host.subscribe(HostEventKind.DETACHED, recorder.handler("detached"))
    host.subscribe(HostEventKind.ATTACHED, recorder.handler("attached"))
    host.open(tab_id=1, notify=False)

    host.transfer(1, 2)
    await host.drain()

    assert [name for name, _ in recorder.calls] == ["detached", "attached"]
    assert recorder.calls[0][1][1].old_window_id == 1
    assert recorder.calls[1][1][1].new_window_id == 2
    assert host.open_tab_ids() == set()
    assert host.open_tab_ids(2) == {1}


@pytest.mark.asyncio
async def test_capture_requires_loaded_tab_with_surface(host: MemoryTabHost) -> None:
    host.open(tab_id=1, capture=b"pixels", notify=False)
    host.open(tab_id=2, discarded=True, capture=b"pixels", notify=False)
    host.open(tab_id=3, notify=False)

    assert await host.capture_tab(1, quality=25) == b"pixels"
    with pytest.raises(TabHostError):
        await host.capture_tab(2, quality=25)
    with pytest.raises(TabHostError):
        await host.capture_tab(3, quality=25)
    assert host.capture_calls == [1, 2, 3]


@pytest.mark.asyncio
async def test_closing_tab_drops_session_values(host: MemoryTabHost) -> None:
    host.open(tab_id=1, notify=False)
    await host.set_tab_value(1, "thumbnail", "data:a")

    host.close(1)

    assert await host.get_tab_value(1, "thumbnail") is None
    with pytest.raises(TabHostError):
        await host.get_tab(1)


@pytest.mark.asyncio
async def test_activation_reports_previous_tab(host: MemoryTabHost) -> None:
    recorder = _Recorder()
    host.subscribe(HostEventKind.ACTIVATED, recorder.handler("activated"))
    host.open(tab_id=1, notify=False)
    host.open(tab_id=2, notify=False)

    host.activate(1)
    host.activate(2)
    await host.drain()

    infos = [args[0] for _, args in recorder.calls]
    assert [(i.tab_id, i.previous_tab_id) for i in infos] == [(1, None), (2, 1)]
    assert (await host.get_tab(2)).last_accessed > (await host.get_tab(1)).last_accessed


@pytest.mark.asyncio
async def test_view_tab_id_is_never_generated(host: MemoryTabHost) -> None:
    ids = [host.open(notify=False).id for _ in range(120)]

    assert 100 not in ids
    assert await host.current_tab_id() == 100


def test_subscription_is_idempotent(host: MemoryTabHost) -> None:
    recorder = _Recorder()
    subscription = HostSubscription(
        host,
        {HostEventKind.CREATED: recorder.handler("created"), HostEventKind.REMOVED: recorder.handler("removed")},
        name="test",
    )

    subscription.enable()
    subscription.enable()
    assert host.listener_count() == 2
    assert subscription.enabled

    subscription.disable()
    subscription.disable()
    assert host.listener_count() == 0
