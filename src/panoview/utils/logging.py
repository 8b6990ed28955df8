"""Logging setup for the panoview logger hierarchy.

Only the ``panoview`` logger is configured; the root logger and whatever an
embedding application installed there are left alone. Records carry a short
``component`` field (``group_resolver``, ``thumbnails``, ``qt`` ...) so the
interleaved output of concurrent host handlers stays readable, and
``PANOVIEW_LOG_LEVELS`` can raise or lower individual components, e.g.
``PANOVIEW_LOG_LEVELS="group_resolver=DEBUG,favicons=WARNING"``.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Mapping

__all__ = [
    "ComponentFilter",
    "component_levels",
    "get_log_path",
    "install_qt_message_handler",
    "setup_logging",
]

ROOT_LOGGER = "panoview"
QT_LOGGER = f"{ROOT_LOGGER}.qt"

# Module path of each component, relative to the package.
_COMPONENTS: dict[str, str] = {
    "app": "app",
    "replay": "replay",
    "host": "host",
    "settings": "services.settings",
    "session_values": "services.session_values",
    "image_codec": "services.image_codec",
    "groups": "services.groups",
    "events": "ui.events",
    "projection": "ui.projection",
    "subscription": "ui.subscription",
    "view": "ui.view_controller",
    "tab_registry": "ui.domain.tab_registry",
    "active_tab": "ui.domain.active_tab",
    "group_resolver": "ui.domain.group_resolver",
    "navigator": "ui.domain.navigator",
    "thumbnails": "ui.domain.thumbnails",
    "favicons": "ui.domain.favicons",
    "qt": "qt",
}
# httpx only matters here as the favicon transport.
_TRANSPORT_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

_DEFAULT_LOG_DIR = Path.home() / ".panoview" / "logs"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(component)-14s | %(message)s"

_installed: list[logging.Handler] = []
_log_path: Path | None = None


class ComponentFilter(logging.Filter):
    """Stamp records with the component they came from."""

    def __init__(self) -> None:
        super().__init__()
        self._by_logger = {f"{ROOT_LOGGER}.{module}": name for name, module in _COMPONENTS.items()}

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        component = None
        while component is None and name.startswith(f"{ROOT_LOGGER}."):
            component = self._by_logger.get(name)
            name = name.rpartition(".")[0]
        record.component = component or record.name
        return True


def component_levels(raw: str | None) -> dict[str, int]:
    """Parse ``name=LEVEL`` pairs, ignoring unknown components and levels."""

    levels: dict[str, int] = {}
    for chunk in (raw or "").split(","):
        name, sep, level_name = chunk.partition("=")
        name = name.strip()
        if not sep or not name:
            continue
        level = logging.getLevelName(level_name.strip().upper())
        if not isinstance(level, int):
            logging.getLogger(__name__).warning("Unknown log level %r for %s", level_name, name)
            continue
        if name not in _COMPONENTS:
            logging.getLogger(__name__).warning("Unknown log component %r", name)
            continue
        levels[name] = level
    return levels


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    levels: Mapping[str, int] | None = None,
    force: bool = False,
) -> Path:
    """Attach a rotating file handler (plus console) to the ``panoview`` logger."""

    global _log_path
    if _installed and not force and _log_path is not None:
        return _log_path

    package_logger = logging.getLogger(ROOT_LOGGER)
    _remove_installed(package_logger)

    target_dir = Path(log_dir or os.environ.get("PANOVIEW_LOG_DIR") or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / "panoview.log"

    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    component_filter = ComponentFilter()

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(component_filter)
        package_logger.addHandler(handler)
        _installed.append(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    overrides = dict(component_levels(os.environ.get("PANOVIEW_LOG_LEVELS")))
    overrides.update(levels or {})
    for component, module in _COMPONENTS.items():
        logging.getLogger(f"{ROOT_LOGGER}.{module}").setLevel(overrides.get(component, logging.NOTSET))

    transport_level = max(level, logging.WARNING)
    for name in _TRANSPORT_LOGGERS:
        transport_logger = logging.getLogger(name)
        transport_logger.setLevel(transport_level)
        for handler in handlers:
            transport_logger.addHandler(handler)

    _log_path = log_path
    package_logger.debug("Logging to %s (overrides: %s)", log_path, overrides or "none")
    return log_path


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _log_path


def install_qt_message_handler() -> None:
    """Route Qt messages (image plugin noise, mostly) to ``panoview.qt``."""

    from PySide6.QtCore import QtMsgType, qInstallMessageHandler

    level_map = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }
    qt_logger = logging.getLogger(QT_LOGGER)

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        qt_logger.log(level_map.get(mode, logging.INFO), message)

    qInstallMessageHandler(_handler)


def _remove_installed(package_logger: logging.Logger) -> None:
    while _installed:
        handler = _installed.pop()
        package_logger.removeHandler(handler)
        for name in _TRANSPORT_LOGGERS:
            logging.getLogger(name).removeHandler(handler)
        handler.close()
