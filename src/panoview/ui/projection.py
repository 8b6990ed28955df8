"""Projection of domain tab records onto visual node handles.

The registry never touches presentation primitives directly. It hands each
:class:`TabRecord` to a :class:`TabNodeProjection`, which creates a handle
through the configured factory and pushes only the fields that changed since
the last render.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol
from urllib.parse import unquote

from ..host.base import TabId, TabInfo

__all__ = [
    "TabRecord",
    "TabNodeHandle",
    "NodeState",
    "TabNodeProjection",
    "HandleFactory",
    "tooltip_for",
]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TabRecord:
    """Domain metadata the view mirrors for one host tab."""

    tab_id: TabId
    title: str = ""
    url: str = "about:blank"
    discarded: bool = False
    pinned: bool = False
    fav_icon_url: str | None = None
    last_accessed: float = 0.0

    @classmethod
    def from_tab(cls, tab: TabInfo) -> "TabRecord":
        return cls(
            tab_id=tab.id,
            title=tab.title,
            url=tab.url,
            discarded=tab.discarded,
            pinned=tab.pinned,
            fav_icon_url=tab.fav_icon_url,
            last_accessed=tab.last_accessed,
        )


class TabNodeHandle(Protocol):
    """Operations a presentation toolkit must offer for a tab node."""

    def set_title(self, title: str) -> None:  # pragma: no cover - protocol
        ...

    def set_tooltip(self, tooltip: str) -> None:  # pragma: no cover - protocol
        ...

    def set_flag(self, name: str, enabled: bool) -> None:  # pragma: no cover - protocol
        ...

    def set_selected(self, selected: bool) -> None:  # pragma: no cover - protocol
        ...

    def set_thumbnail(self, image_url: str | None) -> None:  # pragma: no cover - protocol
        ...

    def set_favicon(self, icon_url: str | None, visible: bool) -> None:  # pragma: no cover - protocol
        ...

    def attach_to_group(self, group_id: str | None) -> None:  # pragma: no cover - protocol
        ...

    def release(self) -> None:  # pragma: no cover - protocol
        ...


HandleFactory = Callable[[TabId], TabNodeHandle]


@dataclass(slots=True)
class NodeState:
    """Headless handle that simply records what would be on screen."""

    tab_id: TabId
    title: str = ""
    tooltip: str = ""
    flags: set[str] = field(default_factory=set)
    selected: bool = False
    thumbnail: str | None = None
    favicon: str | None = None
    favicon_visible: bool = False
    group_id: str | None = None
    released: bool = False
    writes: int = 0

    def set_title(self, title: str) -> None:
        self.title = title
        self.writes += 1

    def set_tooltip(self, tooltip: str) -> None:
        self.tooltip = tooltip
        self.writes += 1

    def set_flag(self, name: str, enabled: bool) -> None:
        if enabled:
            self.flags.add(name)
        else:
            self.flags.discard(name)
        self.writes += 1

    def set_selected(self, selected: bool) -> None:
        self.selected = selected
        self.writes += 1

    def set_thumbnail(self, image_url: str | None) -> None:
        self.thumbnail = image_url
        self.writes += 1

    def set_favicon(self, icon_url: str | None, visible: bool) -> None:
        self.favicon = icon_url if visible else None
        self.favicon_visible = visible
        self.writes += 1

    def attach_to_group(self, group_id: str | None) -> None:
        self.group_id = group_id
        self.writes += 1

    def release(self) -> None:
        self.released = True

    def snapshot(self) -> dict[str, object]:
        return {
            "tab_id": self.tab_id,
            "title": self.title,
            "tooltip": self.tooltip,
            "flags": sorted(self.flags),
            "selected": self.selected,
            "has_thumbnail": self.thumbnail is not None,
            "favicon": self.favicon,
            "group_id": self.group_id,
        }


def tooltip_for(record: TabRecord) -> str:
    """Return ``title - url`` (percent-decoded), omitting ``data:`` urls."""

    if record.url.startswith("data:"):
        return record.title
    return f"{record.title} - {unquote(record.url)}"


@dataclass(slots=True)
class _Rendered:
    title: str | None = None
    tooltip: str | None = None
    inactive: bool | None = None
    pinned: bool | None = None


class TabNodeProjection:
    """Create handles and diff :class:`TabRecord` state into them."""

    def __init__(self, factory: HandleFactory | None = None) -> None:
        self._factory: HandleFactory = factory or NodeState
        self._rendered: dict[TabId, _Rendered] = {}

    def create(self, record: TabRecord) -> TabNodeHandle:
        handle = self._factory(record.tab_id)
        self._rendered[record.tab_id] = _Rendered()
        self.render(record, handle)
        return handle

    def render(self, record: TabRecord, handle: TabNodeHandle) -> bool:
        """Push changed fields of ``record`` into ``handle``; return whether anything changed."""

        previous = self._rendered.setdefault(record.tab_id, _Rendered())
        changed = False
        if previous.title != record.title:
            handle.set_title(record.title)
            previous.title = record.title
            changed = True
        tooltip = tooltip_for(record)
        if previous.tooltip != tooltip:
            handle.set_tooltip(tooltip)
            previous.tooltip = tooltip
            changed = True
        if previous.inactive != record.discarded:
            handle.set_flag("inactive", record.discarded)
            previous.inactive = record.discarded
            changed = True
        if previous.pinned != record.pinned:
            handle.set_flag("pinned", record.pinned)
            previous.pinned = record.pinned
            changed = True
        return changed

    def release(self, tab_id: TabId, handle: TabNodeHandle) -> None:
        self._rendered.pop(tab_id, None)
        handle.release()
