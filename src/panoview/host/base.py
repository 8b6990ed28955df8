"""Contracts for the host tab provider that owns the real browser tabs."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol, Sequence

__all__ = [
    "TabId",
    "TabInfo",
    "TabHost",
    "TabHostError",
    "HostEventKind",
    "HostHandler",
    "RemoveInfo",
    "MoveInfo",
    "AttachInfo",
    "DetachInfo",
    "ActiveInfo",
    "ChangeInfo",
]

TabId = int


class TabHostError(RuntimeError):
    """Raised when the host refuses an operation (closed tab, denied capture, ...)."""


@dataclass(slots=True)
class TabInfo:
    """Snapshot of a host tab as reported at the time of the call."""

    id: TabId
    window_id: int
    title: str = ""
    url: str = "about:blank"
    last_accessed: float = 0.0
    discarded: bool = False
    pinned: bool = False
    active: bool = False
    fav_icon_url: str | None = None


@dataclass(slots=True, frozen=True)
class RemoveInfo:
    window_id: int
    is_window_closing: bool = False


@dataclass(slots=True, frozen=True)
class MoveInfo:
    window_id: int
    from_index: int = 0
    to_index: int = 0


@dataclass(slots=True, frozen=True)
class AttachInfo:
    new_window_id: int
    new_position: int = 0


@dataclass(slots=True, frozen=True)
class DetachInfo:
    old_window_id: int
    old_position: int = 0


@dataclass(slots=True, frozen=True)
class ActiveInfo:
    tab_id: TabId
    window_id: int
    previous_tab_id: TabId | None = None


class HostEventKind(str, enum.Enum):
    """Lifecycle notifications emitted by the host."""

    CREATED = "created"
    REMOVED = "removed"
    UPDATED = "updated"
    MOVED = "moved"
    ATTACHED = "attached"
    DETACHED = "detached"
    ACTIVATED = "activated"


HostHandler = Callable[..., Awaitable[None]]


class TabHost(Protocol):
    """Async surface of the host tab provider consumed by the view."""

    async def current_window_id(self) -> int:  # pragma: no cover - protocol
        ...

    async def current_tab_id(self) -> TabId:  # pragma: no cover - protocol
        ...

    async def query_tabs(
        self, window_id: int, *, discarded: bool | None = None
    ) -> Sequence[TabInfo]:  # pragma: no cover - protocol
        ...

    async def get_tab(self, tab_id: TabId) -> TabInfo:  # pragma: no cover - protocol
        ...

    async def activate_tab(self, tab_id: TabId) -> None:  # pragma: no cover - protocol
        ...

    async def remove_tab(self, tab_id: TabId) -> None:  # pragma: no cover - protocol
        ...

    async def capture_tab(self, tab_id: TabId, *, quality: int) -> bytes:  # pragma: no cover - protocol
        ...

    async def get_tab_value(self, tab_id: TabId, key: str) -> Any | None:  # pragma: no cover - protocol
        ...

    async def set_tab_value(self, tab_id: TabId, key: str, value: Any) -> None:  # pragma: no cover - protocol
        ...

    def subscribe(self, kind: HostEventKind, handler: HostHandler) -> None:  # pragma: no cover - protocol
        ...

    def unsubscribe(self, kind: HostEventKind, handler: HostHandler) -> None:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class ChangeInfo:
    """Fields reported as changed by an ``updated`` notification."""

    values: dict[str, Any] = field(default_factory=dict)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

