"""Tests for :mod:`panoview.services.session_values`."""

from __future__ import annotations

import json
from pathlib import Path

from panoview.services.session_values import SessionValueStore


def test_values_are_scoped_per_tab() -> None:
    store = SessionValueStore()

    store.set(1, "thumbnail", "data:a")
    store.set(2, "thumbnail", "data:b")

    assert store.get(1, "thumbnail") == "data:a"
    assert store.get(2, "thumbnail") == "data:b"
    assert store.get(3, "thumbnail") is None
    assert store.tab_ids() == (1, 2)


def test_delete_key_and_tab() -> None:
    store = SessionValueStore()
    store.set(1, "thumbnail", "data:a")
    store.set(1, "note", "x")

    store.delete(1, "note")
    assert store.get(1, "thumbnail") == "data:a"

    store.delete(1)
    assert store.tab_ids() == ()
    store.delete(1)


def test_persisted_store_survives_reload(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    SessionValueStore(path).set(7, "thumbnail", "data:seven")

    reloaded = SessionValueStore(path)

    assert reloaded.get(7, "thumbnail") == "data:seven"
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1


def test_clear_removes_file(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    store = SessionValueStore(path)
    store.set(1, "thumbnail", "data:a")

    store.clear()

    assert not path.exists()
    assert store.get(1, "thumbnail") is None


def test_malformed_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"version": 1, "tabs": {"x": {}, "3": "nope", "4": {"k": 1}}}), encoding="utf-8")

    assert SessionValueStore(path).tab_ids() == (4,)
