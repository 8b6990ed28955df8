"""Resolution of group membership for newly observed tabs.

A tab's creation notification reaches the view before the background
classifier has recorded which group the tab belongs to. The resolver bridges
that gap: it checks the membership lookup, then waits for the classifier's
assignment notification, re-checking the lookup with capped exponential
backoff in case a notification was missed. After ``timeout`` seconds the tab
is reported as unassigned (``None``) instead of waiting forever.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from ...host.base import TabId
from ...services.groups import GroupId
from ..events import EventBus, GroupAssigned, GroupAssignmentTimedOut

__all__ = ["GroupAssignmentResolver", "ResolverConfig", "MembershipLookup"]

LOGGER = logging.getLogger(__name__)

MembershipLookup = Callable[[TabId], Awaitable["GroupId | None"]]


@dataclass(slots=True, frozen=True)
class ResolverConfig:
    """Backoff and timeout for membership resolution."""

    initial_delay: float = 0.05
    max_delay: float = 1.0
    timeout: float = 10.0


class GroupAssignmentResolver:
    """Waits for the classifier's group decision for each created tab.

    Events Emitted:
        - GroupAssigned: when a group id is observed for a tab
        - GroupAssignmentTimedOut: when ``timeout`` elapses without one
    """

    def __init__(
        self,
        lookup: MembershipLookup,
        event_bus: EventBus,
        *,
        config: ResolverConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lookup = lookup
        self._bus = event_bus
        self._config = config or ResolverConfig()
        self._clock = clock
        self._waiters: dict[TabId, asyncio.Future[GroupId | None]] = {}
        self._pending: dict[TabId, asyncio.Task[GroupId | None]] = {}
        self._cancelled: set[TabId] = set()

    @property
    def config(self) -> ResolverConfig:
        return self._config

    def pending(self) -> tuple[TabId, ...]:
        return tuple(self._pending)

    async def resolve(self, tab_id: TabId) -> GroupId | None:
        """Return the group id for ``tab_id``, or ``None`` once the wait times out.

        Concurrent calls for the same tab share a single wait.
        """

        task = self._pending.get(tab_id)
        if task is None:
            task = asyncio.ensure_future(self._resolve(tab_id))
            self._pending[tab_id] = task
            task.add_done_callback(lambda done, tab_id=tab_id: self._forget(tab_id, done))
        return await asyncio.shield(task)

    def notify_assigned(self, tab_id: TabId, group_id: GroupId) -> None:
        """Classifier callback: wake the wait for ``tab_id`` if there is one."""

        waiter = self._waiters.get(tab_id)
        if waiter is not None and not waiter.done():
            waiter.set_result(group_id)

    def cancel(self, tab_id: TabId) -> None:
        """Stop waiting for ``tab_id`` (the tab went away); the wait yields ``None``."""

        if tab_id in self._pending:
            self._cancelled.add(tab_id)
        waiter = self._waiters.get(tab_id)
        if waiter is not None and not waiter.done():
            LOGGER.debug("Group resolution for tab %s cancelled", tab_id)
            waiter.set_result(None)

    def _forget(self, tab_id: TabId, task: asyncio.Task[GroupId | None]) -> None:
        if self._pending.get(tab_id) is task:
            del self._pending[tab_id]
        self._cancelled.discard(tab_id)

    async def _resolve(self, tab_id: TabId) -> GroupId | None:
        config = self._config
        started = self._clock()
        deadline = started + config.timeout
        delay = config.initial_delay
        loop = asyncio.get_running_loop()
        attempts = 0
        while True:
            if tab_id in self._cancelled:
                return None
            attempts += 1
            group_id = await self._lookup(tab_id)
            if group_id is not None:
                LOGGER.debug("Tab %s resolved to group %s after %d lookup(s)", tab_id, group_id, attempts)
                self._bus.publish(GroupAssigned(tab_id=tab_id, group_id=group_id))
                return group_id

            if tab_id in self._cancelled:
                return None
            remaining = deadline - self._clock()
            if remaining <= 0:
                waited = self._clock() - started
                LOGGER.warning(
                    "No group assignment for tab %s after %.2fs (%d lookups); leaving unassigned",
                    tab_id,
                    waited,
                    attempts,
                )
                self._bus.publish(GroupAssignmentTimedOut(tab_id=tab_id, waited=waited))
                return None

            waiter: asyncio.Future[GroupId | None] = loop.create_future()
            self._waiters[tab_id] = waiter
            try:
                notified = await asyncio.wait_for(
                    asyncio.shield(waiter), timeout=min(delay, remaining)
                )
            except asyncio.TimeoutError:
                notified = None
            else:
                if notified is None:
                    # cancel() was called: the tab is gone.
                    return None
            finally:
                if self._waiters.get(tab_id) is waiter:
                    del self._waiters[tab_id]
                if not waiter.done():
                    waiter.cancel()

            if notified is not None:
                LOGGER.debug("Tab %s assignment notified: %s", tab_id, notified)
                self._bus.publish(GroupAssigned(tab_id=tab_id, group_id=notified))
                return notified
            delay = min(delay * 2, config.max_delay)
