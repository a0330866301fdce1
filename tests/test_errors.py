import pytest

from ethtransport.errors import (
    InternalError,
    InvalidResponseError,
    RpcError,
    TransportError,
    Web3Error,
)


def test_transport_error_equality_by_message():
    assert TransportError("boom") == TransportError("boom")
    assert not TransportError("boom") == TransportError("other")


def test_transport_error_with_code_keeps_code():
    err = TransportError(code=404)
    assert err.code == 404
    assert err == TransportError(code=404)
    assert not err == TransportError(code=500)


def test_transport_error_str_is_message():
    assert str(TransportError("failed to send request")) == "failed to send request"


def test_rpc_error_fields_and_equality():
    err = RpcError(15, "string1", "string2")
    assert (err.code, err.message, err.data) == (15, "string1", "string2")
    assert err == RpcError(15, "string1", "string2")
    assert not err == RpcError(15, "string1")
    assert RpcError(15, "string1").data is None


def test_invalid_response_str_and_equality():
    err = InvalidResponseError("unexpected number of responses")
    assert str(err) == "unexpected number of responses"
    assert err == InvalidResponseError("unexpected number of responses")


def test_internal_errors_are_equal_and_hash_alike():
    assert InternalError() == InternalError()
    assert hash(InternalError()) == hash(InternalError())
    assert len({InternalError(), InternalError()}) == 1


def test_errors_of_different_types_differ():
    assert not InvalidResponseError("x") == TransportError("x")


@pytest.mark.parametrize(
    "error",
    [TransportError("a"), RpcError(1, "b"), InvalidResponseError("c"), InternalError()],
)
def test_all_errors_are_caught_as_web3_error(error):
    with pytest.raises(Web3Error) as info:
        raise error
    assert info.value == error