"""Errors raised by the transports."""

from __future__ import annotations

from typing import Any


class Web3Error(Exception):
    """Base class of every error a transport raises."""

    def _key(self) -> tuple:
        return self.args

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._key() == other._key()  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, str(self)))


class TransportError(Web3Error):
    """The transport itself failed, with a message or a status code."""

    def __init__(self, message: str = "", code: int | None = None) -> None:
        super().__init__(message, code)
        self.message = message
        self.code = code

    def _key(self) -> tuple:
        return (self.message, self.code)

    def __str__(self) -> str:
        if self.message:
            return self.message
        return f"transport error code {self.code}"


class RpcError(Web3Error):
    """The node answered a call with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(code, message, data)
        self.code = code
        self.message = message
        self.data = data

    def _key(self) -> tuple:
        return (self.code, self.message, self.data)

    def __str__(self) -> str:
        return f"RPC error {self.code}: {self.message}"


class InvalidResponseError(Web3Error):
    """The node's answer could not be understood."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class InternalError(Web3Error):
    """A request was dropped before an answer arrived."""

    def __init__(self) -> None:
        super().__init__()

    def __str__(self) -> str:
        return "internal error"