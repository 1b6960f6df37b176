"""
Mutation records and the publish/subscribe bus every structural change goes through.
Subscribers receive batches (lists) of records. A failing subscriber is logged and
never breaks the code that performed the mutation.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

from bs4.element import Tag

logger = logging.getLogger(__name__)

ATTRIBUTES = "attributes"
CHILD_LIST = "childList"

MutationCallback = Callable[[List["MutationRecord"]], None]


@dataclass(frozen=True)
class MutationRecord:
    """One structural change: an attribute write or a child insertion/removal."""

    type: str
    target: Tag
    attribute_name: Optional[str] = None
    value: Optional[str] = None
    added: Tuple[Tag, ...] = ()
    removed: Tuple[Tag, ...] = ()


class MutationBus:
    """Fan-out of mutation batches to subscribers, with optional batching."""

    def __init__(self) -> None:
        self._subscribers: List[MutationCallback] = []
        self._batch: Optional[List[MutationRecord]] = None

    def subscribe(self, callback: MutationCallback) -> Callable[[], None]:
        """Register callback; return an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, record: MutationRecord) -> None:
        if self._batch is not None:
            self._batch.append(record)
            return
        self._dispatch([record])

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Collect records published inside the block and deliver them as one batch."""
        if self._batch is not None:
            yield
            return
        self._batch = []
        try:
            yield
        finally:
            records, self._batch = self._batch, None
            if records:
                self._dispatch(records)

    def _dispatch(self, records: List[MutationRecord]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(records)
            except Exception:
                logger.exception("Mutation subscriber %r failed", callback)
