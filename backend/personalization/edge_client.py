"""
Default decisioning client module (Edge Network interact API over httpx).

Loaded by bootstrap(); install(shim, page) drains the shim's buffered calls,
attaches the client and replays the buffered calls in their original order,
settling each caller's awaitable. Every command other than `configure` waits
for configuration; once the client is aborted or closed, every command fails.
Items are rendered at most once per client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import httpx

from page.document import Page
from personalization.command_buffer import ClientShim, PendingCommand
from personalization.dom_actions import render_item
from personalization.errors import DecisionFetchError, DecisioningCommandError
from personalization.schema import DOM_ACTION_SCHEMA, Proposition, item_key, parse_propositions

logger = logging.getLogger(__name__)

DECISIONS_HANDLE = "personalization:decisions"
VIEW_SCOPE = "__view__"
DEFAULT_TIMEOUT_SECONDS = 10.0


def _decisions_from_handles(data: Any) -> List[Dict[str, Any]]:
    if not isinstance(data, dict):
        raise DecisionFetchError("interact response must be a JSON object")
    decisions: List[Dict[str, Any]] = []
    for handle in data.get("handle") or []:
        if isinstance(handle, dict) and handle.get("type") == DECISIONS_HANDLE:
            decisions.extend(p for p in handle.get("payload") or [] if isinstance(p, dict))
    return decisions


class EdgeClient:
    """Callable decisioning client: await client(command, payload)."""

    def __init__(self, page: Page, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._page = page
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None
        self._config: Dict[str, Any] = {}
        # Set once configure succeeds or the client is aborted.
        self._settled = asyncio.Event()
        self._failure: Optional[BaseException] = None
        self._rendered: Set[str] = set()
        self.replay_task: Optional[asyncio.Future] = None
        self._replaying: List[PendingCommand] = []
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            "configure": self._configure,
            "sendEvent": self._send_event,
            "applyPropositions": self._apply_propositions,
        }

    @property
    def configured(self) -> bool:
        return self._settled.is_set() and self._failure is None

    async def __call__(self, command: str, payload: Any = None) -> Any:
        handler = self._handlers.get(command)
        if handler is None:
            raise DecisioningCommandError(f"unknown command {command!r}")
        if command != "configure":
            await self._settled.wait()
        if self._failure is not None:
            raise self._failure
        return await handler(dict(payload or {}))

    async def replay(self, pending: List[PendingCommand]) -> None:
        """Run buffered calls one after another and settle each original awaitable."""
        for call in pending:
            try:
                call.resolve(await self(call.command, call.payload))
            except Exception as e:
                call.reject(e)

    def start_replay(self, pending: List[PendingCommand]) -> asyncio.Future:
        self._replaying = list(pending)
        self.replay_task = asyncio.ensure_future(self.replay(pending))
        return self.replay_task

    def abort(self, error: BaseException) -> None:
        """Reject every waiting and later command with error (bootstrap failed)."""
        if self._failure is None:
            self._failure = error
        self._settled.set()

    async def aclose(self) -> None:
        closed = DecisioningCommandError("client is closed")
        self.abort(closed)
        if self.replay_task is not None and not self.replay_task.done():
            self.replay_task.cancel()
        for call in self._replaying:
            call.reject(closed)
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _configure(self, options: Dict[str, Any]) -> Dict[str, Any]:
        if self._settled.is_set():
            raise DecisioningCommandError("configure can only be called once")
        if not options.get("datastreamId"):
            raise DecisioningCommandError("configure requires datastreamId")
        self._config = options
        domain = str(options.get("edgeDomain") or "edge.adobedc.net").strip("/")
        base_path = str(options.get("edgeBasePath") or "ee").strip("/")
        timeout = float(options.get("timeoutSeconds") or DEFAULT_TIMEOUT_SECONDS)
        self._http = httpx.AsyncClient(
            base_url=f"https://{domain}/{base_path}",
            timeout=timeout,
            transport=self._transport,
        )
        self._settled.set()
        return {}

    def _event_body(self, options: Dict[str, Any]) -> Dict[str, Any]:
        xdm = dict(options.get("xdm") or {})
        xdm.setdefault("web", {"webPageDetails": {"URL": self._page.url}})
        event: Dict[str, Any] = {"xdm": xdm}
        if options.get("data"):
            event["data"] = options["data"]
        body: Dict[str, Any] = {
            "events": [event],
            "meta": {"state": {"domain": self._page.hostname, "cookiesEnabled": True}},
        }
        if self._config.get("orgId"):
            body["meta"]["state"]["orgId"] = self._config["orgId"]
        if not str(xdm.get("eventType", "")).startswith("decisioning."):
            body["query"] = {
                "personalization": {
                    "schemas": [DOM_ACTION_SCHEMA],
                    "decisionScopes": [VIEW_SCOPE, *options.get("decisionScopes", [])],
                }
            }
        return body

    async def _send_event(self, options: Dict[str, Any]) -> Dict[str, Any]:
        if self._http is None:
            raise DecisioningCommandError("client is closed")
        try:
            r = await self._http.post(
                "/v1/interact",
                params={"configId": self._config["datastreamId"]},
                json=self._event_body(options),
            )
            r.raise_for_status()
            data = r.json()
        except httpx.TimeoutException as e:
            raise DecisionFetchError("decision request timed out") from e
        except httpx.HTTPStatusError as e:
            raise DecisionFetchError(f"HTTP {e.response.status_code}: {e.response.text}") from e
        except httpx.RequestError as e:
            raise DecisionFetchError(f"Request failed: {e!s}") from e
        except ValueError as e:
            raise DecisionFetchError(f"malformed interact response: {e!s}") from e
        propositions = parse_propositions(_decisions_from_handles(data))
        if options.get("renderDecisions"):
            await self._apply_propositions({"propositions": propositions})
        return {"propositions": propositions}

    async def _apply_propositions(self, options: Dict[str, Any]) -> Dict[str, Any]:
        propositions: List[Proposition] = parse_propositions(options.get("propositions"))
        rendered = 0
        applied: List[str] = []
        for proposition in propositions:
            for index, item in enumerate(proposition.items):
                if not item.is_dom_action:
                    continue
                key = item_key(proposition.id, index, item)
                if key in self._rendered:
                    applied.append(key)
                    continue
                try:
                    if render_item(self._page, item):
                        self._rendered.add(key)
                        applied.append(key)
                        rendered += 1
                except ValueError as e:
                    logger.warning("Could not render item %s: %s", key, e)
        # renderedItems: keys of items this client has applied to the page, now or earlier.
        return {"propositions": propositions, "rendered": rendered, "renderedItems": applied}


def install(
    shim: ClientShim,
    page: Page,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> EdgeClient:
    """Take over the shim: drain buffered calls, attach, replay them in order."""
    client = EdgeClient(page, transport=transport)
    pending = shim.buffer.drain()
    shim.attach(client)
    if pending:
        client.start_replay(pending)
    return client
