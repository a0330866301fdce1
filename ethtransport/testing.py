"""A transport that records requests and answers from a queue, for tests."""

from __future__ import annotations

import json
from collections import deque
from typing import Any, Generator, Iterable

from .jsonrpc import build_request
from .transport import Transport


def _encode(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


class _Ready:
    """An awaitable that is already done."""

    def __init__(self, value: Any) -> None:
        self._value = value

    def __await__(self) -> Generator[Any, None, Any]:
        yield from ()
        return self._value


class TestTransport(Transport):
    """Records every request and answers each with the next queued response."""

    __test__ = False

    def __init__(self) -> None:
        self._asserted = 0
        self._requests: list[tuple[str, str]] = []
        self._responses: deque[Any] = deque()

    def prepare(self, method: str, params: list[Any]) -> tuple[int, dict[str, Any]]:
        return 0, build_request(0, method, params)

    def send(self, id: int, request: dict[str, Any]) -> _Ready:
        self._requests.append((request["method"], _encode(request)))
        if not self._responses:
            raise LookupError("no response queued")
        return _Ready(self._responses.popleft())

    def set_response(self, value: Any) -> None:
        """Replace the queued responses with a single one."""
        self._responses = deque([value])

    def add_response(self, value: Any) -> None:
        """Queue one more response."""
        self._responses.append(value)

    def assert_request(self, method: str, params: Iterable[str]) -> None:
        """Check the next unchecked request; params are JSON texts."""
        index = self._asserted
        self._asserted += 1
        if index >= len(self._requests):
            raise AssertionError("Expected result.")
        recorded_method, payload = self._requests[index]
        if recorded_method != method:
            raise AssertionError(f"expected method {method!r}, got {recorded_method!r}")
        expected = {
            "jsonrpc": "2.0",
            "id": 0,
            "method": method,
            "params": [json.loads(param) for param in params],
        }
        actual = json.loads(payload)
        if actual != expected:
            raise AssertionError(f"expected request {expected!r}, got {actual!r}")

    def assert_no_more_requests(self) -> None:
        """Check that every recorded request has been asserted."""
        if self._asserted != len(self._requests):
            rest = self._requests[self._asserted:]
            raise AssertionError(f"Expected no more requests, got: {rest!r}")