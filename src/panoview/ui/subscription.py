"""Explicit enable/disable lifecycle for host event listeners."""

from __future__ import annotations

import logging
from typing import Mapping

from ..host.base import HostEventKind, HostHandler, TabHost

__all__ = ["HostSubscription"]

LOGGER = logging.getLogger(__name__)


class HostSubscription:
    """A fixed set of host listeners attached and detached as one unit.

    Both :meth:`enable` and :meth:`disable` are idempotent, so visibility
    toggles can call them without tracking state themselves.
    """

    def __init__(self, host: TabHost, handlers: Mapping[HostEventKind, HostHandler], *, name: str = "host") -> None:
        self._host = host
        self._handlers = dict(handlers)
        self._name = name
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        if self._enabled:
            return
        for kind, handler in self._handlers.items():
            self._host.subscribe(kind, handler)
        self._enabled = True
        LOGGER.debug("Subscription %s enabled (%d listeners)", self._name, len(self._handlers))

    def disable(self) -> None:
        if not self._enabled:
            return
        for kind, handler in self._handlers.items():
            self._host.unsubscribe(kind, handler)
        self._enabled = False
        LOGGER.debug("Subscription %s disabled", self._name)
