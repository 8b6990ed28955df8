"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "Settings",
    "SettingsStore",
    "THEME_CHOICES",
    "TOOLBAR_POSITIONS",
    "settings_dir",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".panoview"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 2
_ENV_OVERRIDES: Mapping[str, str] = {
    "PANOVIEW_THEME": "theme",
    "PANOVIEW_TOOLBAR_POSITION": "toolbar_position",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "PANOVIEW_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "PANOVIEW_GROUP_ASSIGNMENT_TIMEOUT": "group_assignment_timeout",
    "PANOVIEW_FAVICON_TIMEOUT": "favicon_timeout",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "PANOVIEW_THUMBNAIL_WIDTH": "thumbnail_width",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
THEME_CHOICES: tuple[str, ...] = ("light", "dark")
TOOLBAR_POSITIONS: tuple[str, ...] = ("top", "bottom", "left", "right")


def settings_dir() -> Path:
    """Return the directory holding panoview's persisted files."""

    return _SETTINGS_DIR


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    theme: str = "light"
    toolbar_position: str = "top"
    thumbnail_width: int = 500
    thumbnail_quality: int = 70
    capture_quality: int = 25
    group_poll_initial_delay: float = 0.05
    group_poll_max_delay: float = 1.0
    group_assignment_timeout: float = 10.0
    favicon_timeout: float = 5.0
    debug_logging: bool = False


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        needs_migration = False

        if payload:
            # Older builds stored a boolean dark-mode flag instead of a theme name.
            legacy_dark = payload.pop("use_dark_theme", None)
            if legacy_dark:
                payload["theme"] = "dark"
                needs_migration = True
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()

        settings = _normalize_choices(settings)

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if needs_migration or version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - depends on filesystem
                LOGGER.warning("Failed to migrate settings payload: %s", exc)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")

        settings = self._apply_env_overrides(settings)
        return _normalize_choices(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload: Dict[str, Any] = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return data

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _normalize_choices(settings: Settings) -> Settings:
    updates: Dict[str, Any] = {}
    theme = (settings.theme or "").strip().lower()
    if theme not in THEME_CHOICES:
        LOGGER.warning("Unknown theme %r; falling back to 'light'", settings.theme)
        theme = "light"
    if theme != settings.theme:
        updates["theme"] = theme
    position = (settings.toolbar_position or "").strip().lower()
    if position not in TOOLBAR_POSITIONS:
        LOGGER.warning("Unknown toolbar position %r; falling back to 'top'", settings.toolbar_position)
        position = "top"
    if position != settings.toolbar_position:
        updates["toolbar_position"] = position
    width = max(16, int(settings.thumbnail_width))
    if width != settings.thumbnail_width:
        updates["thumbnail_width"] = width
    for name in ("thumbnail_quality", "capture_quality"):
        value = getattr(settings, name)
        clamped = max(1, min(int(value), 100))
        if clamped != value:
            updates[name] = clamped
    if updates:
        settings = replace(settings, **updates)
    return settings
