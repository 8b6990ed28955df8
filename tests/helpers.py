"""Shared test helpers and stub classes.

Reusable stubs for the view tests. Import from here instead of duplicating
them in individual test files.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any

from panoview.services.image_codec import ImageCodecError
from panoview.services.settings import Settings
from panoview.ui import events as view_events
from panoview.ui.events import Event, EventBus

BROKEN_CAPTURE = b"broken"


class FakeCodec:
    """Stands in for the Qt codec: wraps the bytes in a data url."""

    def __init__(self) -> None:
        self.calls: list[bytes] = []

    def rescale(self, data: bytes) -> str:
        self.calls.append(data)
        if data == BROKEN_CAPTURE:
            raise ImageCodecError("cannot decode")
        return "data:image/jpeg;base64," + base64.b64encode(data).decode("ascii")


class StubIconLoader:
    """Icon loader answering from a fixed table; unknown urls fail to load.

    When ``gate`` is set, every load waits for it, which lets a test hold a
    validation in flight while other events run.
    """

    def __init__(self, reachable: set[str] | None = None, *, gate: asyncio.Event | None = None) -> None:
        self.reachable = set(reachable or ())
        self.gate = gate
        self.calls: list[str] = []

    async def __call__(self, url: str) -> bool:
        self.calls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        return url in self.reachable


class RecordingBus:
    """Subscribes to every view event type and keeps what was published."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[Event] = []
        for name in view_events.__all__:
            candidate = getattr(view_events, name)
            if isinstance(candidate, type) and issubclass(candidate, Event) and candidate is not Event:
                bus.subscribe(candidate, self.events.append)

    def of_type(self, event_type: type[Any]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]


def fast_settings(**overrides: Any) -> Settings:
    """Settings with resolver timings small enough for unit tests."""

    values: dict[str, Any] = {
        "group_poll_initial_delay": 0.005,
        "group_poll_max_delay": 0.02,
        "group_assignment_timeout": 0.2,
    }
    values.update(overrides)
    return Settings(**values)


def png_bytes(width: int = 16, height: int = 16) -> bytes:
    """Encode a solid-colour PNG with Qt."""

    from PySide6.QtCore import QBuffer, QIODevice
    from PySide6.QtGui import QColor, QImage

    image = QImage(width, height, QImage.Format.Format_ARGB32)
    image.fill(QColor(40, 120, 200))
    buffer = QBuffer()
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, "PNG")
    data = bytes(buffer.data().data())
    buffer.close()
    return data
