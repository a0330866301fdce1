"""JSON-RPC over a WebSocket connection, with subscription notifications."""

from __future__ import annotations

import asyncio
import base64
import itertools
import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import urlsplit

from websockets.asyncio.client import connect as _ws_connect
from websockets.exceptions import InvalidHandshake, InvalidStatus, InvalidURI

from .errors import InvalidResponseError, TransportError, Web3Error
from .jsonrpc import build_request, subscription_notification, to_results_from_outputs
from .transport import BatchTransport, DuplexTransport, NotificationStream

logger = logging.getLogger(__name__)


def _dropped() -> TransportError:
    return TransportError("Cannot send request. Internal task finished.")


@dataclass(frozen=True)
class WsEndpoint:
    """Where and how to open a WebSocket connection."""

    scheme: str
    host: str
    port: int
    resource: str
    authorization: str | None = None

    @property
    def uri(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}{self.resource}"


def parse_ws_url(url: str) -> WsEndpoint:
    """Split a ws:// or wss:// URL into the parts a connection needs."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as err:
        raise TransportError(f"failed to parse url: {err}") from err
    scheme = parts.scheme
    if scheme not in ("ws", "wss"):
        raise TransportError(f"Wrong scheme: {scheme}")
    host = parts.hostname
    if not host:
        raise TransportError("Wrong host name")
    if port is None:
        port = 80 if scheme == "ws" else 443
    path = parts.path or "/"
    resource = f"{path}?{parts.query}" if parts.query else path
    authorization = None
    if parts.password:
        credentials = f"{parts.username or ''}:{parts.password}".encode()
        authorization = "Basic " + base64.b64encode(credentials).decode("ascii")
    return WsEndpoint(scheme, host, port, resource, authorization)


def _is_output(value: Any) -> bool:
    return isinstance(value, dict) and "id" in value and ("result" in value or "error" in value)


def _outputs_of(value: Any) -> list[Any]:
    if _is_output(value):
        return [value]
    if isinstance(value, list) and all(_is_output(item) for item in value):
        return value
    return []


def handle_message(
    data: str | bytes,
    subscriptions: dict[str, NotificationStream],
    pending: dict[int, asyncio.Future[Any]],
) -> None:
    """Route one incoming message to a subscription stream or a pending request.

    A response settles the request named by the id of its first output with
    the list of its results; a message that is neither a notification nor a
    response settles request 0 with an empty list.
    """
    logger.debug("Message received: %r", data)
    try:
        value: Any = json.loads(data)
    except ValueError:
        value = None
    else:
        try:
            notification = subscription_notification(value)
        except InvalidResponseError:
            logger.error("Got unsupported notification: %r", value)
            return
        if notification is not None:
            id, result = notification
            stream = subscriptions.get(id)
            if stream is None:
                logger.warning("Got notification for unknown subscription (id: %r)", id)
                return
            try:
                stream.push(result)
            except Web3Error as err:
                logger.error("Error sending notification: %r (id: %r)", err, id)
            return

    outputs = _outputs_of(value)
    request_id = outputs[0]["id"] if outputs else 0
    if not isinstance(request_id, int) or isinstance(request_id, bool) or request_id < 0:
        logger.warning("Got unsupported response (id: %r)", request_id)
        return
    future = pending.pop(request_id, None)
    if future is None:
        logger.warning("Got response for unknown request (id: %r)", request_id)
        return
    if future.done():
        logger.warning("Sending a response to deallocated channel (id: %r)", request_id)
        return
    logger.debug("Responding to (id: %r) with %r", request_id, outputs)
    future.set_result(to_results_from_outputs(outputs))


def batch_to_single(response: list[Any]) -> Any:
    """Return the first result of a response, raising the error it holds."""
    if not response:
        raise InvalidResponseError("Expected single, got batch.")
    first = response[0]
    if isinstance(first, Web3Error):
        raise first
    return first


class WebSocket(BatchTransport, DuplexTransport):
    """Sends calls over an open WebSocket connection and routes the answers back.

    The connection is anything that can be iterated asynchronously for
    incoming messages and has async send(text) and close(). A background
    task reads it, so this must be created inside a running event loop.
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._subscriptions: dict[str, NotificationStream] = {}
        self._finished = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    def __repr__(self) -> str:
        return f"WebSocket(pending={len(self._pending)})"

    def prepare(self, method: str, params: list[Any]) -> tuple[int, dict[str, Any]]:
        id = next(self._ids)
        return id, build_request(id, method, params)

    async def send(self, id: int, request: dict[str, Any]) -> Any:
        return batch_to_single(await self._request(id, request))

    async def send_batch(self, requests: Iterable[tuple[int, dict[str, Any]]]) -> list[Any]:
        pairs = list(requests)
        id = pairs[0][0] if pairs else 0
        return await self._request(id, [call for _, call in pairs])

    def subscribe(self, id: str) -> NotificationStream:
        self._check_open()
        stream = NotificationStream()
        if id in self._subscriptions:
            logger.warning("Replacing already-registered subscription with id %r", id)
        self._subscriptions[id] = stream
        return stream

    def unsubscribe(self, id: str) -> None:
        self._check_open()
        if self._subscriptions.pop(id, None) is None:
            logger.warning("Unsubscribing from non-existent subscription with id %r", id)

    async def close(self) -> None:
        """Close the connection and wait for the reading task to end."""
        try:
            await self._connection.close()
        finally:
            if not self._task.done():
                self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def __aenter__(self) -> WebSocket:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _check_open(self) -> None:
        if self._finished:
            raise _dropped()

    async def _request(self, id: int, payload: Any) -> list[Any]:
        self._check_open()
        text = json.dumps(payload, separators=(",", ":"))
        logger.debug("[%s] Calling: %s", id, text)
        future = asyncio.get_running_loop().create_future()
        previous = self._pending.get(id)
        if previous is not None:
            logger.warning("Replacing a pending request with id %r", id)
            if not previous.done():
                previous.set_exception(_dropped())
        self._pending[id] = future
        try:
            await self._connection.send(text)
        except Exception as err:
            logger.error("WS connection error: %r", err)
            if self._pending.get(id) is future:
                del self._pending[id]
            raise _dropped() from err
        return await future

    async def _run(self) -> None:
        try:
            async for message in self._connection:
                handle_message(message, self._subscriptions, self._pending)
        except Exception as err:
            logger.error("WS connection error: %r", err)
        finally:
            self._finished = True
            for future in self._pending.values():
                if not future.done():
                    future.set_exception(_dropped())
            self._pending.clear()
            for stream in self._subscriptions.values():
                stream.close()
            self._subscriptions.clear()


async def connect(url: str) -> WebSocket:
    """Open a WebSocket connection to url and return the transport over it."""
    endpoint = parse_ws_url(url)
    headers = {"Authorization": endpoint.authorization} if endpoint.authorization else None
    logger.debug("Connecting websocket client to %s", endpoint.uri)
    try:
        connection = await _ws_connect(endpoint.uri, additional_headers=headers, max_size=None)
    except InvalidStatus as err:
        raise TransportError(code=err.response.status_code) from err
    except (InvalidHandshake, InvalidURI, OSError, asyncio.TimeoutError) as err:
        raise TransportError(f"Handshake Error: {err!r}") from err
    return WebSocket(connection)