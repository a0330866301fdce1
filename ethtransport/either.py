"""A transport that is one of two transports, chosen at run time."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Iterable

from .transport import BatchTransport, DuplexTransport, NotificationStream, Transport


class Side(Enum):
    """Which of the two possible transports is in use."""

    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class Either(BatchTransport, DuplexTransport):
    """Delegates every call to the transport it holds."""

    side: Side
    transport: Transport

    def prepare(self, method: str, params: list[Any]) -> tuple[int, dict[str, Any]]:
        return self.transport.prepare(method, params)

    def send(self, id: int, request: dict[str, Any]) -> Awaitable[Any]:
        return self.transport.send(id, request)

    def send_batch(self, requests: Iterable[tuple[int, dict[str, Any]]]) -> Awaitable[list[Any]]:
        if not isinstance(self.transport, BatchTransport):
            raise TypeError(f"{type(self.transport).__name__} cannot send batches")
        return self.transport.send_batch(requests)

    def subscribe(self, id: str) -> NotificationStream:
        return self._duplex().subscribe(id)

    def unsubscribe(self, id: str) -> None:
        self._duplex().unsubscribe(id)

    def _duplex(self) -> DuplexTransport:
        if not isinstance(self.transport, DuplexTransport):
            raise TypeError(f"{type(self.transport).__name__} does not support subscriptions")
        return self.transport