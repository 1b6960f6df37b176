"""
Command-queue shim for the decisioning client.

Before the real client exists, every call is buffered as a PendingCommand
(future + original arguments) and a pending awaitable is returned, so callers can
issue commands at page start without waiting for the client to load. Draining is a
one-time transition performed by the loaded client module, which then attaches
itself; from then on calls go straight to the client.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from personalization.errors import CommandBufferDrainedError

DecisioningClient = Callable[..., Awaitable[Any]]


@dataclass
class PendingCommand:
    """A buffered call: settle future once the real client has handled (command, payload)."""

    future: asyncio.Future
    command: str
    payload: Any = None

    def resolve(self, value: Any) -> None:
        if not self.future.done():
            self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


class CommandBuffer:
    """Ordered queue of pending invocations plus a single drained flag."""

    def __init__(self) -> None:
        self._pending: List[PendingCommand] = []
        self._drained = False

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def drained(self) -> bool:
        return self._drained

    def push(self, command: str, payload: Any = None) -> asyncio.Future:
        if self._drained:
            raise CommandBufferDrainedError(f"cannot buffer {command!r}: buffer already drained")
        future = asyncio.get_running_loop().create_future()
        self._pending.append(PendingCommand(future=future, command=command, payload=payload))
        return future

    def drain(self) -> List[PendingCommand]:
        """Hand over all buffered calls in call order; only allowed once."""
        if self._drained:
            raise CommandBufferDrainedError("command buffer already drained")
        self._drained = True
        pending, self._pending = self._pending, []
        return pending


class ClientShim:
    """Process-wide entry point for decisioning commands: buffers until a client is attached."""

    def __init__(self) -> None:
        self.buffer = CommandBuffer()
        self._client: Optional[DecisioningClient] = None
        self._failure: Optional[BaseException] = None

    @property
    def ready(self) -> bool:
        return self._client is not None

    @property
    def failed(self) -> bool:
        return self._failure is not None

    @property
    def client(self) -> Optional[DecisioningClient]:
        return self._client

    def attach(self, client: DecisioningClient) -> None:
        self._client = client

    def __call__(self, command: str, payload: Any = None) -> Awaitable[Any]:
        if self._failure is not None:
            future = asyncio.get_running_loop().create_future()
            future.set_exception(self._failure)
            return future
        if self._client is not None:
            return self._client(command, payload)
        return self.buffer.push(command, payload)

    def fail(self, error: BaseException) -> None:
        """Settle every outstanding and later call with error; personalization is off for the session.

        Calls still in the buffer are rejected here. Calls already handed to the
        client are rejected by the client's abort(error), when it provides one.
        """
        if self._failure is not None:
            return
        self._failure = error
        if not self.buffer.drained:
            for call in self.buffer.drain():
                call.reject(error)
        abort = getattr(self._client, "abort", None)
        if abort is not None:
            abort(error)

    async def aclose(self) -> None:
        """Release the attached client's resources, if it holds any."""
        close = getattr(self._client, "aclose", None)
        if close is not None:
            await close()


_shim: Optional[ClientShim] = None


def get_client_shim() -> ClientShim:
    """Return the process-wide shim, installing it on first use."""
    global _shim
    if _shim is None:
        _shim = ClientShim()
    return _shim


def reset_client_shim() -> None:
    """Drop the process-wide shim (new page session; tests)."""
    global _shim
    _shim = None
