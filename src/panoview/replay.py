"""Replay a scripted tab session through a headless view.

A script is a JSON object::

    {
      "window_id": 1,
      "view_tab_id": 100,
      "tabs": [{"id": 1, "title": "Docs", "url": "https://example.org", "last_accessed": 3}],
      "groups": [{"id": "work", "name": "Work", "tabs": [1]}],
      "events": [
        {"op": "open", "tab": {"id": 2, "title": "News"}, "group": "work"},
        {"op": "activate", "tab_id": 2},
        {"op": "key", "key": "ArrowLeft"},
        {"op": "close", "tab_id": 1}
      ]
    }

Supported ops: ``open`` (optional ``group`` assigns it after the creation
notification), ``assign``, ``close`` (also drops the tab from its group),
``update``, ``activate``, ``move``, ``transfer``, ``key``, ``click``,
``visibility`` and ``drain``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from .host.base import TabHostError
from .host.memory import MemoryTabHost
from .services.groups import GroupAssignmentError, GroupId, GroupStore
from .services.settings import Settings
from .ui.domain.favicons import IconLoader
from .ui.domain.thumbnails import Rescaler
from .ui.projection import NodeState
from .ui.view_controller import PanoramaView, ViewContext

__all__ = ["ReplayError", "run_replay", "summarize"]

LOGGER = logging.getLogger(__name__)

_TAB_FIELDS = ("title", "url", "fav_icon_url", "pinned", "discarded", "last_accessed")


class ReplayError(ValueError):
    """Raised for malformed replay scripts."""


async def run_replay(
    script: Mapping[str, Any],
    settings: Settings,
    *,
    codec: Rescaler | None = None,
    icon_loader: IconLoader | None = None,
) -> dict[str, Any]:
    """Run ``script`` and return the resulting view state."""

    window_id = int(script.get("window_id", 1))
    view_tab_id = int(script.get("view_tab_id", 0)) or None
    host = MemoryTabHost(window_id=window_id, view_tab_id=view_tab_id)
    groups = GroupStore()

    for entry in script.get("tabs", []):
        host.open(**_tab_kwargs(entry), notify=False)
    for position, entry in enumerate(script.get("groups", [])):
        if "id" not in entry:
            raise ReplayError(f"group {position}: missing field 'id'")
        if groups.get(str(entry["id"])) is not None:
            raise ReplayError(f"group {position}: duplicate group '{entry['id']}'")
        group = groups.create(str(entry.get("name", "")), group_id=str(entry["id"]))
        for tab_id in entry.get("tabs", []):
            try:
                groups.assign(int(tab_id), group.id)
            except GroupAssignmentError as exc:
                raise ReplayError(f"group {position}: {exc}") from exc

    context = ViewContext(host=host, groups=groups, settings=settings, codec=codec, icon_loader=icon_loader)
    view = PanoramaView(context, window_id=window_id, view_tab_id=view_tab_id)
    await view.start()
    try:
        for index, event in enumerate(script.get("events", [])):
            await _apply(view, host, groups, event, index)
        await host.drain()
        await view.drain()
        return summarize(view)
    finally:
        await view.stop()


def summarize(view: PanoramaView) -> dict[str, Any]:
    nodes = []
    for node in view.registry.iter_nodes():
        handle = node.handle
        if isinstance(handle, NodeState):
            nodes.append(handle.snapshot())
        else:  # pragma: no cover - custom handle factories
            nodes.append({"tab_id": node.tab_id, "selected": node.selected, "group_id": node.group_id})
    nodes.sort(key=lambda item: int(item["tab_id"]))  # type: ignore[call-overload]
    return {
        "window_id": view.window_id,
        "appearance": {"theme": view.appearance.theme, "toolbar_position": view.appearance.toolbar_position},
        "active_tab_id": view.tracker.active_tab_id,
        "tabs": nodes,
        "groups": [{"id": group.id, "name": group.name, "tabs": list(group.tabs)} for group in view.groups.list()],
    }


async def _apply(view: PanoramaView, host: MemoryTabHost, groups: GroupStore, event: Mapping[str, Any], index: int) -> None:
    op = event.get("op")
    where = f"event {index} ({op})"

    def field(name: str) -> Any:
        if name not in event:
            raise ReplayError(f"{where}: missing field '{name}'")
        return event[name]

    try:
        if op == "open":
            tab = host.open(**_tab_kwargs(event.get("tab", {})))
            group_id = event.get("group")
            if group_id is not None:
                target = _known_group(groups, group_id, where)
                # The classifier decides after the creation notification went out.
                await asyncio.sleep(0)
                groups.assign(tab.id, target)
        elif op == "assign":
            tab_id = int(field("tab_id"))
            groups.assign(tab_id, _known_group(groups, field("group"), where))
        elif op == "close":
            tab_id = int(field("tab_id"))
            host.close(tab_id)
            groups.remove_tab(tab_id)
        elif op == "update":
            host.update(int(field("tab_id")), **dict(event.get("changes", {})))
        elif op == "activate":
            host.activate(int(field("tab_id")))
        elif op == "move":
            host.move(int(field("tab_id")), int(field("to_index")))
        elif op == "transfer":
            host.transfer(int(field("tab_id")), int(field("window_id")))
        elif op == "key":
            await host.drain()
            await view.handle_key(str(field("key")))
        elif op == "click":
            await view.click_tab(int(field("tab_id")))
        elif op == "visibility":
            await view.set_visible(bool(field("visible")))
        elif op == "drain":
            await host.drain()
            await view.drain()
        else:
            raise ReplayError(f"event {index}: unknown op {op!r}")
    except (GroupAssignmentError, TabHostError) as exc:
        raise ReplayError(f"{where}: {exc}") from exc
    LOGGER.debug("Replayed event %d: %s", index, op)


def _known_group(groups: GroupStore, group_id: Any, where: str) -> GroupId:
    target = str(group_id)
    if groups.get(target) is None:
        raise ReplayError(f"{where}: unknown group '{target}'")
    return target


def _tab_kwargs(entry: Mapping[str, Any]) -> dict[str, Any]:
    kwargs: dict[str, Any] = {key: entry[key] for key in _TAB_FIELDS if key in entry}
    if "id" in entry:
        kwargs["tab_id"] = int(entry["id"])
    if "window_id" in entry:
        kwargs["window_id"] = int(entry["window_id"])
    return kwargs
