"""The interfaces every transport implements."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Iterable

from .errors import InternalError

_CLOSED = object()


class Transport(ABC):
    """Prepares JSON-RPC calls and sends them."""

    @abstractmethod
    def prepare(self, method: str, params: list[Any]) -> tuple[int, dict[str, Any]]:
        """Return a request id and the call object for a method."""

    @abstractmethod
    def send(self, id: int, request: dict[str, Any]) -> Awaitable[Any]:
        """Send a prepared call; the awaitable gives its result."""

    def execute(self, method: str, params: Iterable[Any] | None = None) -> Awaitable[Any]:
        """Prepare and send a call in one step."""
        id, request = self.prepare(method, list(params or ()))
        return self.send(id, request)


class BatchTransport(Transport):
    """A transport able to send several calls as one batch."""

    @abstractmethod
    def send_batch(self, requests: Iterable[tuple[int, dict[str, Any]]]) -> Awaitable[list[Any]]:
        """Send prepared calls together.

        The awaitable gives one entry per call, in order: the result, or the
        Web3Error that call ended with.
        """


class DuplexTransport(Transport):
    """A transport that also delivers subscription notifications."""

    @abstractmethod
    def subscribe(self, id: str) -> NotificationStream:
        """Return the stream of notifications for a subscription id."""

    @abstractmethod
    def unsubscribe(self, id: str) -> None:
        """Stop delivering notifications for a subscription id."""


class NotificationStream:
    """An unbounded async iterator of notification values."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, value: Any) -> None:
        """Deliver a value to the reader; fails once the stream is closed."""
        if self._closed:
            raise InternalError()
        self._queue.put_nowait(value)

    def close(self) -> None:
        """End the stream once the values already pushed have been read."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> NotificationStream:
        return self

    async def __anext__(self) -> Any:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item