"""
Decision fetch & apply: ordering against decoration, pruning, one-shot guard, reporting.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import pytest

from decoration.observer import DecorationObserver
from page.document import Page
from personalization.decisions import AppliedPropositionsLog, DecisionApplier, prune_unmatched
from personalization.errors import DecisionFetchError
from personalization.schema import DOM_ACTION_SCHEMA, parse_propositions

JSON_SCHEMA = "https://ns.adobe.com/personalization/json-content-item"

LOADED_HTML = '<main><div class="section" data-section-status="loaded"><h2 id="present">x</h2></div></main>'
PENDING_HTML = '<main><div class="section" data-section-status="pending"><h2 id="present">x</h2></div></main>'


def _propositions() -> List[Dict[str, Any]]:
    return [
        {
            "id": "p1",
            "scope": "__view__",
            "scopeDetails": {"activity": {"id": "a1"}},
            "items": [
                {"id": "i1", "schema": DOM_ACTION_SCHEMA, "data": {"type": "setHtml", "selector": "#present", "content": "y"}},
                {"id": "i2", "schema": DOM_ACTION_SCHEMA, "data": {"type": "setHtml", "selector": "#absent", "content": "z"}},
                {"id": "i3", "schema": JSON_SCHEMA, "data": {"content": {"flag": True}}},
            ],
        },
        {
            "id": "p2",
            "items": [
                {"id": "i4", "schema": DOM_ACTION_SCHEMA, "data": {"type": "setHtml", "selector": "#gone", "content": "w"}},
            ],
        },
    ]


class RecordingClient:
    """Decisioning client double: records calls, answers sendEvent with canned propositions."""

    def __init__(
        self,
        propositions: Optional[List[Dict[str, Any]]] = None,
        fail_on: Optional[str] = None,
    ) -> None:
        self.propositions = propositions if propositions is not None else _propositions()
        self.fail_on = fail_on
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def __call__(self, command: str, payload: Any = None) -> Any:
        self.calls.append((command, payload))
        if command == self.fail_on:
            raise DecisionFetchError(f"{command} failed")
        if command == "sendEvent":
            return {"propositions": parse_propositions(self.propositions)}
        return {}

    def commands(self) -> List[str]:
        return [c for c, _ in self.calls]


def _applier(page: Page, client: RecordingClient, **kwargs: Any) -> Tuple[DecisionApplier, AppliedPropositionsLog]:
    log = AppliedPropositionsLog()
    return DecisionApplier(page, client, DecorationObserver(page), applied_log=log, **kwargs), log


@pytest.mark.asyncio
async def test_fetch_requests_without_rendering_and_applies_when_decorated() -> None:
    page = Page(LOADED_HTML)
    client = RecordingClient()
    applier, log = _applier(page, client, event_data={"page": "home"})
    subscription = await applier.fetch_and_apply()
    assert subscription is not None
    await subscription.wait()

    command, payload = client.calls[0]
    assert command == "sendEvent"
    assert payload == {"renderDecisions": False, "data": {"page": "home"}}
    assert client.commands() == ["sendEvent", "applyPropositions"]
    assert "p1" in log and "p2" in log


@pytest.mark.asyncio
async def test_unmatched_dom_items_are_pruned_and_others_kept() -> None:
    page = Page(LOADED_HTML)
    applier, log = _applier(page, RecordingClient())
    subscription = await applier.fetch_and_apply()
    await subscription.wait()
    assert [i.id for i in log.items_for("p1")] == ["i1", "i3"]
    assert log.items_for("p2") == []
    assert [i.id for i in applier.propositions[0].items] == ["i1", "i3"]


@pytest.mark.asyncio
async def test_application_waits_for_first_loaded_region() -> None:
    page = Page(PENDING_HTML)
    client = RecordingClient()
    applier, _ = _applier(page, client)
    subscription = await applier.fetch_and_apply()
    assert client.commands() == ["sendEvent"]
    assert subscription.fired is False

    page.set_attribute(page.select_one("div.section"), "data-section-status", "loaded")
    await subscription.wait()
    assert client.commands() == ["sendEvent", "applyPropositions"]


@pytest.mark.asyncio
async def test_fetch_and_apply_runs_once_per_session(caplog: pytest.LogCaptureFixture) -> None:
    page = Page(LOADED_HTML)
    client = RecordingClient()
    applier, _ = _applier(page, client)
    first = await applier.fetch_and_apply()
    await first.wait()
    with caplog.at_level(logging.WARNING):
        assert await applier.fetch_and_apply() is None
    assert "already fetched" in caplog.text
    assert client.commands().count("sendEvent") == 1


@pytest.mark.asyncio
async def test_fetch_failure_is_logged_and_nothing_is_registered(caplog: pytest.LogCaptureFixture) -> None:
    page = Page(PENDING_HTML)
    observer = DecorationObserver(page)
    client = RecordingClient(fail_on="sendEvent")
    applier = DecisionApplier(page, client, observer, applied_log=AppliedPropositionsLog())
    with caplog.at_level(logging.ERROR):
        assert await applier.fetch_and_apply() is None
    assert "decision_fetch_failed" in caplog.text
    assert observer.pending_count == 0
    assert applier.started is True


@pytest.mark.asyncio
async def test_no_propositions_means_no_registration() -> None:
    page = Page(PENDING_HTML)
    observer = DecorationObserver(page)
    applier = DecisionApplier(page, RecordingClient(propositions=[]), observer, applied_log=AppliedPropositionsLog())
    assert await applier.fetch_and_apply() is None
    assert observer.watching is False


@pytest.mark.asyncio
async def test_apply_failure_records_nothing(caplog: pytest.LogCaptureFixture) -> None:
    page = Page(LOADED_HTML)
    applier, log = _applier(page, RecordingClient(fail_on="applyPropositions"))
    with caplog.at_level(logging.ERROR):
        subscription = await applier.fetch_and_apply()
        await subscription.wait()
    assert len(log) == 0
    assert "proposition_apply_failed" in caplog.text


@pytest.mark.asyncio
async def test_display_report_lists_only_propositions_with_confirmed_items() -> None:
    page = Page(LOADED_HTML)
    client = RecordingClient()
    applier, _ = _applier(page, client, report_display=True)
    subscription = await applier.fetch_and_apply()
    await subscription.wait()

    assert client.commands() == ["sendEvent", "applyPropositions", "sendEvent"]
    xdm = client.calls[-1][1]["xdm"]
    assert xdm["eventType"] == "decisioning.propositionDisplay"
    assert xdm["_experience"]["decisioning"]["propositions"] == [
        {"id": "p1", "scope": "__view__", "scopeDetails": {"activity": {"id": "a1"}}},
    ]


@pytest.mark.asyncio
async def test_display_report_failure_does_not_undo_application() -> None:
    page = Page(LOADED_HTML)

    class FailingReportClient(RecordingClient):
        async def __call__(self, command: str, payload: Any = None) -> Any:
            if command == "sendEvent" and payload and "xdm" in payload:
                raise DecisionFetchError("report rejected")
            return await super().__call__(command, payload)

    applier, log = _applier(page, FailingReportClient(), report_display=True)
    subscription = await applier.fetch_and_apply()
    await subscription.wait()
    assert "p1" in log


def test_prune_unmatched_counts_dropped_items() -> None:
    page = Page(LOADED_HTML)
    proposition = parse_propositions(_propositions())[0]
    assert prune_unmatched(page, proposition) == 1
    assert prune_unmatched(page, proposition) == 0


@pytest.mark.asyncio
async def test_item_that_removed_its_own_target_is_kept_when_client_reports_it() -> None:
    page = Page(LOADED_HTML)

    class RemovingClient(RecordingClient):
        async def __call__(self, command: str, payload: Any = None) -> Any:
            result = await super().__call__(command, payload)
            if command == "applyPropositions":
                page.remove(page.get_element_by_id("present"))
                return {"renderedItems": ["p1:i1"]}
            return result

    applier, log = _applier(page, RemovingClient())
    subscription = await applier.fetch_and_apply()
    await subscription.wait()
    assert page.get_element_by_id("present") is None
    assert [i.id for i in log.items_for("p1")] == ["i1", "i3"]


def test_prune_unmatched_keeps_reported_items_without_a_target() -> None:
    page = Page(LOADED_HTML)
    proposition = parse_propositions(_propositions())[0]
    assert prune_unmatched(page, proposition, {"p1:i2"}) == 0
    assert [i.id for i in proposition.items] == ["i1", "i2", "i3"]
