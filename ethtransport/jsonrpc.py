"""JSON-RPC 2.0 requests, outputs and notifications as plain JSON values."""

from __future__ import annotations

from typing import Any, Iterable

from .errors import InvalidResponseError, RpcError, Web3Error

JSONRPC_VERSION = "2.0"


def build_request(id: int, method: str, params: Iterable[Any]) -> dict[str, Any]:
    """Build a method call object."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "method": method,
        "params": list(params),
        "id": id,
    }


def _rpc_error(error: Any) -> RpcError:
    if not isinstance(error, dict):
        raise InvalidResponseError(f"invalid error object: {error!r}")
    code = error.get("code")
    message = error.get("message")
    if not isinstance(code, int) or isinstance(code, bool) or not isinstance(message, str):
        raise InvalidResponseError(f"invalid error object: {error!r}")
    return RpcError(code, message, error.get("data"))


def to_result_from_output(output: Any) -> Any:
    """Return the result of one output, or raise the error it carries."""
    if not isinstance(output, dict):
        raise InvalidResponseError(f"invalid output: {output!r}")
    if "error" in output:
        raise _rpc_error(output["error"])
    if "result" in output:
        return output["result"]
    raise InvalidResponseError(f"output has neither result nor error: {output!r}")


def to_results_from_outputs(outputs: Iterable[Any]) -> list[Any]:
    """Return each output's result, with errors in place as exception objects."""
    results: list[Any] = []
    for output in outputs:
        try:
            results.append(to_result_from_output(output))
        except Web3Error as err:
            results.append(err)
    return results


def subscription_notification(value: Any) -> tuple[str, Any] | None:
    """Return (subscription id, result) of a notification.

    Returns None when the value is not a notification at all, and raises
    InvalidResponseError for a notification that carries no subscription.
    """
    if not isinstance(value, dict) or "id" in value or not isinstance(value.get("method"), str):
        return None
    params = value.get("params")
    if isinstance(params, dict):
        subscription = params.get("subscription")
        if isinstance(subscription, str) and "result" in params:
            return subscription, params["result"]
    raise InvalidResponseError(f"unsupported notification: {value!r}")