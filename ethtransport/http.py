"""JSON-RPC over HTTP POST."""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any, Iterable

import httpx

from .errors import InvalidResponseError, TransportError, Web3Error
from .jsonrpc import build_request, to_result_from_output
from .transport import BatchTransport

logger = logging.getLogger(__name__)

_USER_AGENT = "ethtransport"


def _parse_url(url: str) -> httpx.URL:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as err:
        raise TransportError(f"failed to parse url: {err}") from err
    if not parsed.scheme or not parsed.host:
        raise TransportError(f"failed to parse url: {url!r} is not an absolute URL")
    return parsed


class Http(BatchTransport):
    """Sends each call, or each batch, as one HTTP POST request."""

    def __init__(self, url: str, client: httpx.AsyncClient | None = None) -> None:
        self._url = _parse_url(url)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(headers={"User-Agent": _USER_AGENT})
        self._ids = itertools.count()

    @property
    def url(self) -> str:
        return str(self._url)

    def prepare(self, method: str, params: list[Any]) -> tuple[int, dict[str, Any]]:
        id = next(self._ids)
        return id, build_request(id, method, params)

    async def send(self, id: int, request: dict[str, Any]) -> Any:
        output = await self._execute(request, id, dict)
        return to_result_from_output(output)

    async def send_batch(self, requests: Iterable[tuple[int, dict[str, Any]]]) -> list[Any]:
        # The id only ties the response log to the request log.
        id = next(self._ids)
        pairs = list(requests)
        ids = [request_id for request_id, _ in pairs]
        calls = [call for _, call in pairs]
        outputs = await self._execute(calls, id, list)
        return handle_batch_response(ids, outputs)

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Http:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _execute(self, payload: Any, id: int, expected: type) -> Any:
        body = json.dumps(payload, separators=(",", ":"))
        logger.debug("[id:%s] sending request: %s", id, body)
        try:
            response = await self._client.post(
                self._url,
                content=body.encode(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as err:
            raise TransportError(f"failed to send request: {err}") from err
        text = response.content.decode("utf-8", errors="replace")
        logger.debug("[id:%s] received response: %s", id, text)
        if not 200 <= response.status_code < 300:
            raise TransportError(code=response.status_code)
        try:
            decoded = json.loads(response.content)
        except ValueError as err:
            raise TransportError(f"failed to deserialize response: {err}: {text}") from err
        if not isinstance(decoded, expected):
            raise TransportError(f"failed to deserialize response: unexpected JSON type: {text}")
        return decoded


def handle_batch_response(ids: list[int], outputs: list[Any]) -> list[Any]:
    """Match batch outputs to request ids, in the order of the ids.

    Each entry is the call's result or the Web3Error it ended with.
    """
    if len(ids) != len(outputs):
        raise InvalidResponseError("unexpected number of responses")
    by_id: dict[int, Any] = {}
    for output in outputs:
        output_id = id_of_output(output)
        try:
            by_id[output_id] = to_result_from_output(output)
        except Web3Error as err:
            by_id[output_id] = err
    results = []
    for id in ids:
        if id not in by_id:
            raise InvalidResponseError(f"batch response is missing id {id}")
        results.append(by_id.pop(id))
    return results


def id_of_output(output: Any) -> int:
    """Return the numeric id of an output."""
    id = output.get("id") if isinstance(output, dict) else None
    if not isinstance(id, int) or isinstance(id, bool) or id < 0:
        raise InvalidResponseError("response id is not u64")
    return id