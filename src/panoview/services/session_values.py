"""Session-scoped per-tab value storage."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

__all__ = ["SessionValueStore"]

LOGGER = logging.getLogger(__name__)
_STORE_VERSION = 1


class SessionValueStore:
    """Key/value pairs attached to tab ids for the lifetime of a browsing session.

    When ``path`` is given every write is flushed to disk atomically so that a
    reloaded view can pick values (thumbnails, mostly) back up; :meth:`clear`
    ends the session and removes the file.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._values: dict[int, dict[str, Any]] = self._load()

    @property
    def path(self) -> Path | None:
        return self._path

    def get(self, tab_id: int, key: str) -> Any | None:
        return self._values.get(tab_id, {}).get(key)

    def set(self, tab_id: int, key: str, value: Any) -> None:
        self._values.setdefault(tab_id, {})[key] = value
        self._flush()

    def delete(self, tab_id: int, key: str | None = None) -> None:
        entry = self._values.get(tab_id)
        if entry is None:
            return
        if key is None:
            del self._values[tab_id]
        else:
            entry.pop(key, None)
            if not entry:
                del self._values[tab_id]
        self._flush()

    def tab_ids(self) -> tuple[int, ...]:
        return tuple(self._values)

    def clear(self) -> None:
        self._values.clear()
        if self._path is not None and self._path.exists():
            self._path.unlink()

    def _load(self) -> dict[int, dict[str, Any]]:
        if self._path is None or not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Session store %s is not valid JSON: %s", self._path, exc)
            return {}
        return _coerce_values(data.get("tabs") if isinstance(data, Mapping) else None)

    def _flush(self) -> None:
        if self._path is None:
            return
        payload = {
            "version": _STORE_VERSION,
            "tabs": {str(tab_id): values for tab_id, values in self._values.items()},
        }
        body = json.dumps(payload, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)


def _coerce_values(value: Any) -> dict[int, dict[str, Any]]:
    if not isinstance(value, Mapping):
        return {}
    result: dict[int, dict[str, Any]] = {}
    for key, entry in value.items():
        try:
            tab_id = int(key)
        except (TypeError, ValueError):
            continue
        if not isinstance(entry, Mapping):
            continue
        result[tab_id] = dict(entry)
    return result
