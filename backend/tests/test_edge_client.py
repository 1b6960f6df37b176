"""
Edge decisioning client over httpx.MockTransport: wire format, error mapping, command rules.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from page.document import Page
from personalization.command_buffer import ClientShim
from personalization.edge_client import DECISIONS_HANDLE, EdgeClient, install
from personalization.errors import DecisionFetchError, DecisioningCommandError
from personalization.schema import DOM_ACTION_SCHEMA

CONFIG = {"datastreamId": "ds-1", "orgId": "ORG@AdobeOrg", "edgeDomain": "edge.example.com"}

PROPOSITIONS = [
    {
        "id": "p1",
        "items": [
            {"id": "i1", "schema": DOM_ACTION_SCHEMA, "data": {"type": "setText", "selector": "#headline", "content": "Hi"}},
        ],
    }
]


class Recorder:
    def __init__(self, response: Optional[httpx.Response] = None) -> None:
        self.requests: List[httpx.Request] = []
        self.response = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.response is not None:
            return self.response
        return httpx.Response(
            200,
            json={
                "handle": [
                    {"type": "state:store", "payload": [{"key": "k", "value": "v"}]},
                    {"type": DECISIONS_HANDLE, "payload": PROPOSITIONS},
                ]
            },
        )

    def body(self, index: int = -1) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


def _page() -> Page:
    return Page('<main><h1 id="headline">Old</h1></main>', url="https://www.example.com/page")


async def _configured(handler) -> EdgeClient:
    client = EdgeClient(_page(), transport=httpx.MockTransport(handler))
    await client("configure", CONFIG)
    return client


@pytest.mark.asyncio
async def test_send_event_posts_interact_request() -> None:
    recorder = Recorder()
    client = await _configured(recorder)
    result = await client("sendEvent", {"data": {"k": 1}})
    await client.aclose()

    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.url.host == "edge.example.com"
    assert request.url.path == "/ee/v1/interact"
    assert request.url.params["configId"] == "ds-1"
    body = recorder.body()
    assert body["events"][0]["data"] == {"k": 1}
    assert body["events"][0]["xdm"]["web"]["webPageDetails"]["URL"] == "https://www.example.com/page"
    assert body["meta"]["state"]["orgId"] == "ORG@AdobeOrg"
    assert body["meta"]["state"]["domain"] == "www.example.com"
    assert body["query"]["personalization"]["schemas"] == [DOM_ACTION_SCHEMA]
    assert [p.id for p in result["propositions"]] == ["p1"]


@pytest.mark.asyncio
async def test_send_event_without_render_leaves_page_untouched() -> None:
    client = await _configured(Recorder())
    await client("sendEvent", {"renderDecisions": False})
    assert client._page.get_element_by_id("headline").get_text() == "Old"
    await client.aclose()


@pytest.mark.asyncio
async def test_items_render_at_most_once() -> None:
    client = await _configured(Recorder())
    result = await client("sendEvent", {"renderDecisions": True})
    assert client._page.get_element_by_id("headline").get_text() == "Hi"
    again = await client("applyPropositions", {"propositions": result["propositions"]})
    assert again["rendered"] == 0
    assert again["renderedItems"] == ["p1:i1"]
    await client.aclose()


@pytest.mark.asyncio
async def test_display_events_do_not_query_decisions() -> None:
    recorder = Recorder()
    client = await _configured(recorder)
    await client("sendEvent", {"xdm": {"eventType": "decisioning.propositionDisplay"}})
    assert "query" not in recorder.body()
    await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="upstream down"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
async def test_bad_responses_raise_decision_fetch_error(response: httpx.Response) -> None:
    client = await _configured(Recorder(response))
    with pytest.raises(DecisionFetchError):
        await client("sendEvent", {})
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_failure_raises_decision_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = await _configured(handler)
    with pytest.raises(DecisionFetchError, match="Request failed"):
        await client("sendEvent", {})
    await client.aclose()


@pytest.mark.asyncio
async def test_commands_wait_for_configure() -> None:
    recorder = Recorder()
    client = EdgeClient(_page(), transport=httpx.MockTransport(recorder))
    pending = asyncio.ensure_future(client("sendEvent", {}))
    await asyncio.sleep(0)
    assert not pending.done()
    assert recorder.requests == []
    await client("configure", CONFIG)
    result = await asyncio.wait_for(pending, timeout=1)
    assert [p.id for p in result["propositions"]] == ["p1"]
    await client.aclose()


@pytest.mark.asyncio
async def test_command_rules() -> None:
    client = EdgeClient(_page(), transport=httpx.MockTransport(Recorder()))
    with pytest.raises(DecisioningCommandError, match="unknown command"):
        await client("getIdentity", {})
    with pytest.raises(DecisioningCommandError, match="datastreamId"):
        await client("configure", {})
    await client("configure", CONFIG)
    with pytest.raises(DecisioningCommandError, match="only be called once"):
        await client("configure", CONFIG)
    await client.aclose()
    with pytest.raises(DecisioningCommandError, match="closed"):
        await client("sendEvent", {})


@pytest.mark.asyncio
async def test_apply_reports_rendered_items_including_self_removing_actions() -> None:
    client = await _configured(Recorder())
    result = await client(
        "applyPropositions",
        {
            "propositions": [
                {
                    "id": "p9",
                    "items": [
                        {"id": "gone", "schema": DOM_ACTION_SCHEMA, "data": {"type": "remove", "selector": "#headline"}},
                        {"id": "miss", "schema": DOM_ACTION_SCHEMA, "data": {"type": "remove", "selector": "#nothing"}},
                    ],
                }
            ]
        },
    )
    assert client._page.get_element_by_id("headline") is None
    assert result["renderedItems"] == ["p9:gone"]
    await client.aclose()


@pytest.mark.asyncio
async def test_abort_rejects_replayed_calls_waiting_for_configure() -> None:
    shim = ClientShim()
    buffered = shim("sendEvent", {})
    client = install(shim, _page(), transport=httpx.MockTransport(Recorder()))
    client.abort(DecisioningCommandError("bootstrap failed"))
    with pytest.raises(DecisioningCommandError, match="bootstrap failed"):
        await asyncio.wait_for(buffered, timeout=1)
    await asyncio.wait_for(client.replay_task, timeout=1)
    assert client.configured is False


@pytest.mark.asyncio
async def test_close_settles_replayed_calls() -> None:
    shim = ClientShim()
    buffered = shim("sendEvent", {})
    client = install(shim, _page(), transport=httpx.MockTransport(Recorder()))
    await client.aclose()
    with pytest.raises(DecisioningCommandError, match="closed"):
        await asyncio.wait_for(buffered, timeout=1)
