"""JSON-RPC over a Unix domain socket, with subscription notifications."""

from __future__ import annotations

import asyncio
import codecs
import itertools
import json
import logging
from typing import Any, Iterable

from .errors import InvalidResponseError, TransportError, Web3Error
from .jsonrpc import build_request, subscription_notification, to_result_from_output
from .transport import BatchTransport, DuplexTransport, NotificationStream

logger = logging.getLogger(__name__)

_READ_SIZE = 65536
_WHITESPACE = " \t\n\r"


def _encode(payload: Any) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode()


def _is_output(value: Any) -> bool:
    return isinstance(value, dict) and "id" in value and ("result" in value or "error" in value)


def _outputs_of(value: Any) -> list[Any] | None:
    """Return the outputs of a single or batch response, or None if it is neither."""
    if _is_output(value):
        return [value]
    if isinstance(value, list) and value and all(_is_output(item) for item in value):
        return value
    return None


class Ipc(BatchTransport, DuplexTransport):
    """Sends calls over a connected stream and routes the answers back.

    A background task reads the stream; it must be created inside a running
    event loop.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._subscriptions: dict[str, NotificationStream] = {}
        self._write_lock = asyncio.Lock()
        self._closing = False
        self._finished = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def prepare(self, method: str, params: list[Any]) -> tuple[int, dict[str, Any]]:
        id = next(self._ids)
        return id, build_request(id, method, params)

    async def send(self, id: int, request: dict[str, Any]) -> Any:
        self._check_open()
        future = self._register(id)
        await self._write(request, [id])
        return await future

    async def send_batch(self, requests: Iterable[tuple[int, dict[str, Any]]]) -> list[Any]:
        self._check_open()
        pairs = list(requests)
        ids = [id for id, _ in pairs]
        futures = [self._register(id) for id in ids]
        await self._write([call for _, call in pairs], ids)
        return list(await asyncio.gather(*futures, return_exceptions=True))

    def subscribe(self, id: str) -> NotificationStream:
        self._check_open()
        stream = NotificationStream()
        if id in self._subscriptions:
            logger.warning("Replacing a subscription with id %r", id)
        self._subscriptions[id] = stream
        return stream

    def unsubscribe(self, id: str) -> None:
        self._check_open()
        if self._subscriptions.pop(id, None) is None:
            logger.warning("Unsubscribing not subscribed id %r", id)

    async def close(self) -> None:
        """Stop accepting calls, wait for pending answers, then drop the connection."""
        self._closing = True
        if self._pending:
            await asyncio.gather(*self._pending.values(), return_exceptions=True)
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self) -> Ipc:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _check_open(self) -> None:
        if self._closing or self._finished:
            raise TransportError("Send Error: transport closed")

    def _register(self, id: int) -> asyncio.Future[Any]:
        future = asyncio.get_running_loop().create_future()
        previous = self._pending.get(id)
        if previous is not None:
            logger.warning("Replacing a pending request with id %r", id)
            if not previous.done():
                previous.set_exception(TransportError("Recv Error: request replaced"))
        self._pending[id] = future
        return future

    async def _write(self, payload: Any, ids: list[int]) -> None:
        try:
            async with self._write_lock:
                self._writer.write(_encode(payload))
                await self._writer.drain()
        except OSError as err:
            logger.error("IPC write error: %r", err)
            for id in ids:
                self._fail(id, TransportError(f"Recv Error: {err}"))

    def _fail(self, id: int, error: Web3Error) -> None:
        future = self._pending.pop(id, None)
        if future is not None and not future.done():
            future.set_exception(error)

    async def _run(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""
        reason = "connection closed"
        try:
            while True:
                chunk = await self._reader.read(_READ_SIZE)
                if not chunk:
                    break
                buffer = self._consume(buffer + decoder.decode(chunk))
        except OSError as err:
            logger.error("IPC read error: %r", err)
            reason = str(err)
        finally:
            self._shutdown(reason)

    def _consume(self, text: str) -> str:
        """Handle every complete JSON value in text and return what is left."""
        json_decoder = json.JSONDecoder()
        position = 0
        while True:
            while position < len(text) and text[position] in _WHITESPACE:
                position += 1
            if position >= len(text):
                break
            try:
                value, position = json_decoder.raw_decode(text, position)
            except ValueError:
                break
            self._handle(value)
        return text[position:]

    def _handle(self, value: Any) -> None:
        try:
            notification = subscription_notification(value)
        except InvalidResponseError:
            logger.error("Got unsupported notification: %r", value)
            return
        if notification is not None:
            self._notify(*notification)
            return
        outputs = _outputs_of(value)
        if outputs is None:
            logger.warning("JSON is not a response or notification")
            return
        for output in outputs:
            self._respond(output)

    def _notify(self, id: str, result: Any) -> None:
        stream = self._subscriptions.get(id)
        if stream is None:
            logger.warning("Got notification for unknown subscription (id: %r)", id)
            return
        try:
            stream.push(result)
        except Web3Error as err:
            logger.error("Error sending notification: %r (id: %r)", err, id)

    def _respond(self, output: dict[str, Any]) -> None:
        id = output["id"]
        if not isinstance(id, int) or isinstance(id, bool) or id < 0:
            logger.warning("Got unsupported response (id: %r)", id)
            return
        future = self._pending.pop(id, None)
        if future is None:
            logger.warning("Got response for unknown request (id: %r)", id)
            return
        if future.done():
            logger.warning("Sending a response to deallocated channel (id: %r)", id)
            return
        try:
            future.set_result(to_result_from_output(output))
        except Web3Error as err:
            future.set_exception(err)

    def _shutdown(self, reason: str) -> None:
        self._finished = True
        for id in list(self._pending):
            self._fail(id, TransportError(f"Recv Error: {reason}"))
        for stream in self._subscriptions.values():
            stream.close()
        self._subscriptions.clear()
        self._writer.close()


async def connect(path: str) -> Ipc:
    """Connect to the Unix domain socket at path."""
    try:
        reader, writer = await asyncio.open_unix_connection(path)
    except OSError as err:
        raise TransportError(f"failed to connect to {path}: {err}") from err
    return Ipc(reader, writer)