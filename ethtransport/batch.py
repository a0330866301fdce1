"""A transport that collects calls and sends them as one batch."""

from __future__ import annotations

import asyncio
from typing import Any

from .errors import InternalError, Web3Error
from .transport import BatchTransport, Transport


class Batch(Transport):
    """Queues sent calls until submit_batch sends them all at once."""

    def __init__(self, transport: BatchTransport) -> None:
        self._transport = transport
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._batch: list[tuple[int, dict[str, Any]]] = []

    def prepare(self, method: str, params: list[Any]) -> tuple[int, dict[str, Any]]:
        return self._transport.prepare(method, params)

    def send(self, id: int, request: dict[str, Any]) -> asyncio.Future[Any]:
        """Queue a call; the future resolves when the batch is submitted."""
        future = asyncio.get_running_loop().create_future()
        self._pending[id] = future
        self._batch.append((id, request))
        return future

    async def submit_batch(self) -> list[Any]:
        """Send every queued call and settle their futures."""
        batch, self._batch = self._batch, []
        ids = [id for id, _ in batch]
        try:
            results = await self._transport.send_batch(batch)
        except Exception as err:
            outcome = err if isinstance(err, Web3Error) else InternalError()
            for id in ids:
                self._settle(id, outcome)
            raise
        for index, id in enumerate(ids):
            self._settle(id, results[index] if index < len(results) else InternalError())
        return results

    def _settle(self, id: int, outcome: Any) -> None:
        future = self._pending.pop(id, None)
        if future is None or future.done():
            return
        if isinstance(outcome, BaseException):
            future.set_exception(outcome)
        else:
            future.set_result(outcome)