"""Typed event bus connecting the view's domain components.

Components publish what changed (a node appeared, the active tab moved, a
thumbnail landed) and the projection, layout collaborator and tests subscribe
without holding references to each other.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all view events.

    Subclasses are ``@dataclass(slots=True)`` records::

        @dataclass(slots=True)
        class TabNodeRemoved(Event):
            tab_id: int
    """


# Published once per capture; kept out of debug logs.
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Registry events
# =============================================================================


@dataclass(slots=True)
class TabNodeCreated(Event):
    """A node for ``tab_id`` was inserted into the registry."""

    tab_id: int


@dataclass(slots=True)
class TabNodeUpdated(Event):
    """Metadata for ``tab_id`` changed and was projected."""

    tab_id: int


@dataclass(slots=True)
class TabNodeRemoved(Event):
    """The node for ``tab_id`` was removed and its visual handle released."""

    tab_id: int


@dataclass(slots=True)
class TabMoved(Event):
    """The host reordered ``tab_id`` inside the observed window."""

    tab_id: int
    from_index: int
    to_index: int


# =============================================================================
# Selection events
# =============================================================================


@dataclass(slots=True)
class ActiveTabChanged(Event):
    """The tracked active tab changed.

    Attributes:
        tab_id: The newly active tab, or ``None`` when unset.
        previous_tab_id: The tab that was active before, or ``None``.
    """

    tab_id: int | None
    previous_tab_id: int | None = None


# =============================================================================
# Group events
# =============================================================================


@dataclass(slots=True)
class GroupAssigned(Event):
    """The classifier's group decision for ``tab_id`` was observed."""

    tab_id: int
    group_id: str


@dataclass(slots=True)
class GroupAssignmentTimedOut(Event):
    """No group decision arrived for ``tab_id`` within the configured timeout."""

    tab_id: int
    waited: float


@dataclass(slots=True)
class GroupLayoutChanged(Event):
    """The membership of ``group_id`` changed; its layout must be refit.

    ``group_id`` is ``None`` when every group needs a refill (pinned state
    changes move tabs between the pinned strip and the grid).
    """

    group_id: str | None


# =============================================================================
# Thumbnail events
# =============================================================================


@dataclass(slots=True)
class ThumbnailUpdated(Event):
    """A thumbnail was rendered for ``tab_id``.

    Attributes:
        tab_id: The tab whose node changed.
        tier: ``"live"``, ``"persisted"`` or ``None`` for the blank placeholder.
    """

    tab_id: int
    tier: str | None


_QUIET_EVENT_TYPES.add(ThumbnailUpdated)


class EventBus(Generic[E]):
    """A typed publish-subscribe bus.

    Bound-method handlers are held through :class:`~weakref.WeakMethod` so a
    component that goes away stops receiving events without unsubscribing.
    Plain functions and lambdas are held strongly.

    Thread Safety:
        Not thread-safe. Everything runs on the asyncio loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for events of exactly ``event_type``.

        Subscribing the same handler twice results in two invocations.
        """
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Invoke every handler for ``type(event)`` in registration order.

        A handler that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if not handlers:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead_indices: list[int] = []
        for i, handler_ref in enumerate(list(handlers)):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(i)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for i in reversed(dead_indices):
            if i < len(handlers) and handlers[i].resolve() is None:
                handlers.pop(i)

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "TabNodeCreated",
    "TabNodeUpdated",
    "TabNodeRemoved",
    "TabMoved",
    "ActiveTabChanged",
    "GroupAssigned",
    "GroupAssignmentTimedOut",
    "GroupLayoutChanged",
    "ThumbnailUpdated",
]
