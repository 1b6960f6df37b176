"""
Decoration-completion observer.

Runs a callback once the document holds at least one region whose decoration
status is `loaded`: immediately (synchronously) when that is already true,
otherwise on the first mutation batch that satisfies one of the named
conditions below. The document watch is shared by all subscriptions of a page
and is never torn down; each on_decorated() call is an independent one-shot.

A region that ends in `error` never satisfies the condition. There is no
timeout: if nothing ever loads, pending callbacks never run.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, FrozenSet, List, Optional, Set

from decoration.base import BLOCK_STATUS_ATTR, SECTION_STATUS_ATTR, STATUS_LOADED
from page.document import Page
from page.mutations import ATTRIBUTES, CHILD_LIST, MutationRecord

logger = logging.getLogger(__name__)

REGION_LOADED = "region-loaded"
CONTENT_ADDED = "content-added"
DECORATED_CONDITIONS: FrozenSet[str] = frozenset({REGION_LOADED, CONTENT_ADDED})

STATUS_ATTRS = (BLOCK_STATUS_ATTR, SECTION_STATUS_ATTR)
LOADED_SELECTOR = ",".join(f'[{attr}="{STATUS_LOADED}"]' for attr in STATUS_ATTRS)

# Schedules a coroutine callback; the orchestrator passes its tracked spawner.
TaskFactory = Callable[[Awaitable[Any]], "asyncio.Future[Any]"]


class DecoratedSubscription:
    """One-shot registration. Coroutine callbacks are scheduled as a task through spawn."""

    def __init__(
        self,
        callback: Callable[[], Any],
        conditions: FrozenSet[str],
        spawn: Optional[TaskFactory] = None,
    ) -> None:
        self._callback = callback
        self._spawn: TaskFactory = spawn or asyncio.ensure_future
        self.conditions = conditions
        self.fired = False
        self.task: Optional[asyncio.Future] = None
        self._fired_event = asyncio.Event()

    def fire(self) -> None:
        if self.fired:
            return
        self.fired = True
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                self.task = self._spawn(result)
        finally:
            self._fired_event.set()

    async def wait(self) -> None:
        """Wait until the callback has run (including its task, if any)."""
        await self._fired_event.wait()
        if self.task is not None:
            await self.task


def classify(records: List[MutationRecord], page: Page) -> Set[str]:
    """Named conditions a mutation batch satisfies."""
    met: Set[str] = set()
    body = page.body
    for record in records:
        if (
            record.type == ATTRIBUTES
            and record.attribute_name in STATUS_ATTRS
            and record.value == STATUS_LOADED
        ):
            met.add(REGION_LOADED)
        elif record.type == CHILD_LIST and record.target is body and record.added:
            met.add(CONTENT_ADDED)
    return met


class DecorationObserver:
    """Publish/subscribe registry over decoration-related document conditions."""

    def __init__(self, page: Page) -> None:
        self._page = page
        self._subscriptions: List[DecoratedSubscription] = []
        self._watching = False

    @property
    def watching(self) -> bool:
        return self._watching

    @property
    def pending_count(self) -> int:
        return len(self._subscriptions)

    def is_decorated(self) -> bool:
        return self._page.select_one(LOADED_SELECTOR) is not None

    def on_decorated(
        self,
        callback: Callable[[], Any],
        *,
        spawn: Optional[TaskFactory] = None,
    ) -> DecoratedSubscription:
        """Run callback at most once, as soon as some region is decorated."""
        subscription = DecoratedSubscription(callback, DECORATED_CONDITIONS, spawn)
        if self.is_decorated():
            subscription.fire()
            return subscription
        self._watch()
        self._subscriptions.append(subscription)
        return subscription

    def _watch(self) -> None:
        if not self._watching:
            self._page.mutations.subscribe(self._on_mutations)
            self._watching = True

    def _on_mutations(self, records: List[MutationRecord]) -> None:
        met = classify(records, self._page)
        if not met:
            return
        ready = [s for s in self._subscriptions if s.conditions & met]
        if not ready:
            return
        self._subscriptions = [s for s in self._subscriptions if not (s.conditions & met)]
        for subscription in ready:
            try:
                subscription.fire()
            except Exception:
                logger.exception("on_decorated callback failed")
