"""
Decision fetch & apply.

Decisions are requested without auto-rendering, then applied through the
decisioning client only once some page region has finished decoration, so
generic decoration always lands before personalization. After application,
DOM-action items the client did not report as rendered and whose target is not
on the page are pruned; what is left is the confirmed set used for display
reporting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AbstractSet, Any, Dict, List, Optional

from decoration.observer import DecoratedSubscription, DecorationObserver, TaskFactory
from ops.ops_events import (
    log_decision_fetch_failed,
    log_decisions_fetched,
    log_display_report_failed,
    log_proposition_apply_failed,
    log_propositions_applied,
)
from page.document import Page
from personalization.command_buffer import DecisioningClient
from personalization.schema import Proposition, PropositionItem, item_key, parse_propositions
from personalization.selectors import resolve_element

logger = logging.getLogger(__name__)

DISPLAY_EVENT_TYPE = "decisioning.propositionDisplay"


class AppliedPropositionsLog:
    """Items confirmed to have matched a live element, per proposition id, for the page session."""

    def __init__(self) -> None:
        self._kept: Dict[str, Proposition] = {}

    def __len__(self) -> int:
        return len(self._kept)

    def __contains__(self, proposition_id: object) -> bool:
        return proposition_id in self._kept

    def record(self, proposition: Proposition) -> None:
        self._kept[proposition.id] = proposition.model_copy(deep=True)

    def items_for(self, proposition_id: str) -> List[PropositionItem]:
        kept = self._kept.get(proposition_id)
        return list(kept.items) if kept is not None else []

    def reporting_set(self) -> List[Proposition]:
        return list(self._kept.values())

    def clear(self) -> None:
        self._kept.clear()


_applied_log: Optional[AppliedPropositionsLog] = None


def get_applied_log() -> AppliedPropositionsLog:
    global _applied_log
    if _applied_log is None:
        _applied_log = AppliedPropositionsLog()
    return _applied_log


def reset_applied_log() -> None:
    """Start a fresh page session (tests)."""
    global _applied_log
    _applied_log = None


def prune_unmatched(page: Page, proposition: Proposition, rendered: AbstractSet[str] = frozenset()) -> int:
    """
    Drop DOM-action items that matched nothing; return how many were dropped.

    An item counts as matched when the client reported rendering it (its key is
    in rendered; covers actions that remove or replace their own target) or when
    its target element is on the page.
    """
    kept = [
        item
        for index, item in enumerate(proposition.items)
        if not item.is_dom_action
        or item_key(proposition.id, index, item) in rendered
        or resolve_element(page, item) is not None
    ]
    dropped = len(proposition.items) - len(kept)
    proposition.items = kept
    return dropped


class DecisionApplier:
    """Fetches decisions once per page session and applies them after decoration."""

    def __init__(
        self,
        page: Page,
        client: DecisioningClient,
        observer: DecorationObserver,
        *,
        applied_log: Optional[AppliedPropositionsLog] = None,
        event_data: Optional[Dict[str, Any]] = None,
        report_display: bool = False,
        spawn: Optional[TaskFactory] = None,
    ) -> None:
        self._page = page
        self._client = client
        self._observer = observer
        self._applied_log = applied_log if applied_log is not None else get_applied_log()
        self._event_data = dict(event_data or {})
        self._report_display = report_display
        self._spawn = spawn
        self._started = False
        self.propositions: List[Proposition] = []

    @property
    def started(self) -> bool:
        return self._started

    async def fetch_and_apply(self) -> Optional[DecoratedSubscription]:
        """
        Request decisions and register their application with the observer.
        Returns the observer subscription, or None when nothing will be applied
        (already ran this session, fetch failed, or no propositions).
        """
        if self._started:
            logger.warning("Decisions already fetched for this page session; ignoring repeated call")
            return None
        self._started = True
        try:
            response = await self._client("sendEvent", {"renderDecisions": False, "data": self._event_data})
            propositions = parse_propositions((response or {}).get("propositions"))
        except Exception as e:
            log_decision_fetch_failed(f"{type(e).__name__}: {e!s}")
            return None
        log_decisions_fetched(len(propositions), sum(len(p.items) for p in propositions))
        if not propositions:
            return None
        self.propositions = propositions
        return self._observer.on_decorated(lambda: self._apply(propositions), spawn=self._spawn)

    async def _apply(self, propositions: List[Proposition]) -> None:
        try:
            response = await self._client("applyPropositions", {"propositions": propositions})
        except Exception as e:
            log_proposition_apply_failed(f"{type(e).__name__}: {e!s}")
            return
        rendered = set(response.get("renderedItems") or []) if isinstance(response, dict) else set()
        matched = 0
        dropped = 0
        for proposition in propositions:
            dropped += prune_unmatched(self._page, proposition, rendered)
            matched += sum(1 for i in proposition.items if i.is_dom_action)
            self._applied_log.record(proposition)
        log_propositions_applied(len(propositions), matched, dropped)
        if self._report_display:
            await self._send_display_report(propositions)

    async def _send_display_report(self, propositions: List[Proposition]) -> None:
        # Report on a later loop iteration than the apply step.
        await asyncio.sleep(0)
        displayed = [
            {"id": p.id, "scope": p.scope, "scopeDetails": p.scope_details}
            for p in propositions
            if p.items
        ]
        if not displayed:
            return
        try:
            await self._client(
                "sendEvent",
                {
                    "xdm": {
                        "eventType": DISPLAY_EVENT_TYPE,
                        "_experience": {"decisioning": {"propositions": displayed}},
                    }
                },
            )
        except Exception as e:
            log_display_report_failed(f"{type(e).__name__}: {e!s}")
