import asyncio
import base64
import json
import socket
from contextlib import asynccontextmanager

import pytest
from websockets.asyncio.server import serve

from ethtransport.errors import InvalidResponseError, RpcError, TransportError
from ethtransport.transport import NotificationStream
from ethtransport.ws import batch_to_single, connect, handle_message, parse_ws_url

_EXPECTED_HEADER = "Basic " + base64.b64encode(b"user:password").decode("ascii")


@asynccontextmanager
async def _server(reply, stop_after=None):
    received = []
    headers = []

    async def handler(connection):
        headers.append(connection.request.headers.get("Authorization"))
        async for message in connection:
            received.append(message)
            for answer in reply(message):
                await connection.send(answer)
            if stop_after is not None and len(received) >= stop_after:
                return

    async with serve(handler, "127.0.0.1", 0) as server:
        port = list(server.sockets)[0].getsockname()[1]
        yield port, received, headers


def _answer_x(message):
    return ['{"jsonrpc":"2.0","id":1,"result":"x"}']


def test_parse_ws_url_default_ports():
    assert parse_ws_url("ws://node.example.com").port == 80
    assert parse_ws_url("wss://node.example.com").port == 443


def test_parse_ws_url_parts():
    endpoint = parse_ws_url("ws://node.example.com:8546/rpc?key=1")
    assert endpoint.scheme == "ws"
    assert endpoint.host == "node.example.com"
    assert endpoint.port == 8546
    assert endpoint.resource == "/rpc?key=1"
    assert endpoint.authorization is None
    assert endpoint.uri == "ws://node.example.com:8546/rpc?key=1"


def test_parse_ws_url_empty_path_is_root():
    assert parse_ws_url("ws://localhost:3000").resource == "/"


def test_parse_ws_url_credentials():
    endpoint = parse_ws_url("ws://user:password@localhost:3000/")
    assert endpoint.authorization == _EXPECTED_HEADER
    assert endpoint.uri == "ws://localhost:3000/"


def test_parse_ws_url_wrong_scheme():
    with pytest.raises(TransportError) as info:
        parse_ws_url("http://localhost:3000")
    assert info.value.message == "Wrong scheme: http"


def test_parse_ws_url_wrong_host():
    with pytest.raises(TransportError) as info:
        parse_ws_url("ws:///path")
    assert info.value.message == "Wrong host name"


def test_parse_ws_url_bad_port():
    with pytest.raises(TransportError) as info:
        parse_ws_url("ws://localhost:notaport")
    assert info.value.message.startswith("failed to parse url")


def test_batch_to_single_takes_first():
    assert batch_to_single([1, 2]) == 1


def test_batch_to_single_empty():
    with pytest.raises(InvalidResponseError) as info:
        batch_to_single([])
    assert info.value.message == "Expected single, got batch."


def test_batch_to_single_raises_error_entry():
    with pytest.raises(RpcError) as info:
        batch_to_single([RpcError(-32000, "boom")])
    assert info.value.code == -32000


@pytest.mark.asyncio
async def test_handle_message_notification():
    stream = NotificationStream()
    data = '{"jsonrpc":"2.0","method":"eth_subscription","params":{"subscription":"0x1","result":5}}'
    handle_message(data, {"0x1": stream}, {})
    assert await asyncio.wait_for(stream.__anext__(), 1) == 5


@pytest.mark.asyncio
async def test_handle_message_response():
    future = asyncio.get_running_loop().create_future()
    pending = {3: future}
    handle_message(b'{"jsonrpc":"2.0","id":3,"result":"x"}', {}, pending)
    assert future.result() == ["x"]
    assert pending == {}


@pytest.mark.asyncio
async def test_handle_message_error_output():
    future = asyncio.get_running_loop().create_future()
    data = '{"jsonrpc":"2.0","id":2,"error":{"code":-32000,"message":"boom"}}'
    handle_message(data, {}, {2: future})
    assert future.result() == [RpcError(-32000, "boom")]


@pytest.mark.asyncio
async def test_handle_message_batch_uses_first_id():
    future = asyncio.get_running_loop().create_future()
    data = json.dumps([
        {"jsonrpc": "2.0", "id": 5, "result": 1},
        {"jsonrpc": "2.0", "id": 6, "result": 2},
    ])
    handle_message(data, {}, {5: future})
    assert future.result() == [1, 2]


@pytest.mark.asyncio
async def test_handle_message_garbage_settles_request_zero():
    future = asyncio.get_running_loop().create_future()
    handle_message("not json", {}, {0: future})
    assert future.result() == []


@pytest.mark.asyncio
async def test_handle_message_unknown_id_leaves_pending():
    future = asyncio.get_running_loop().create_future()
    pending = {1: future}
    handle_message('{"jsonrpc":"2.0","id":2,"result":"x"}', {}, pending)
    assert not future.done()
    assert list(pending) == [1]


@pytest.mark.asyncio
async def test_handle_message_string_id_ignored():
    future = asyncio.get_running_loop().create_future()
    pending = {0: future}
    handle_message('{"jsonrpc":"2.0","id":"a","result":"x"}', {}, pending)
    assert not future.done()
    assert list(pending) == [0]


@pytest.mark.asyncio
async def test_should_send_a_request():
    async with _server(_answer_x) as (port, received, _):
        async with await connect(f"ws://127.0.0.1:{port}") as ws:
            result = await asyncio.wait_for(ws.execute("eth_accounts", ["1"]), 5)
    assert result == "x"
    assert received == ['{"jsonrpc":"2.0","method":"eth_accounts","params":["1"],"id":1}']


@pytest.mark.asyncio
async def test_sends_basic_authorization():
    async with _server(_answer_x) as (port, _, headers):
        async with await connect(f"ws://user:password@localhost:{port}") as ws:
            result = await asyncio.wait_for(ws.execute("eth_accounts", []), 5)
    assert result == "x"
    assert headers == [_EXPECTED_HEADER]


@pytest.mark.asyncio
async def test_batch_request():
    def reply(message):
        calls = json.loads(message)
        outputs = [{"jsonrpc": "2.0", "id": call["id"], "result": call["params"][0]} for call in calls]
        return [json.dumps(outputs)]

    async with _server(reply) as (port, received, _):
        async with await connect(f"ws://127.0.0.1:{port}") as ws:
            requests = [ws.prepare("eth_test", [value]) for value in ("a", "b")]
            results = await asyncio.wait_for(ws.send_batch(requests), 5)
    assert results == ["a", "b"]
    assert [call["id"] for call in json.loads(received[0])] == [1, 2]


@pytest.mark.asyncio
async def test_subscription_notifications():
    def reply(message):
        return [
            '{"jsonrpc":"2.0","method":"eth_subscription","params":{"subscription":"0xabc","result":{"n":7}}}',
            '{"jsonrpc":"2.0","id":1,"result":"0xabc"}',
        ]

    async with _server(reply) as (port, _, _):
        async with await connect(f"ws://127.0.0.1:{port}") as ws:
            stream = ws.subscribe("0xabc")
            subscription = await asyncio.wait_for(ws.execute("eth_subscribe", ["newHeads"]), 5)
            value = await asyncio.wait_for(stream.__anext__(), 5)
    assert subscription == "0xabc"
    assert value == {"n": 7}


@pytest.mark.asyncio
async def test_connection_closed_fails_pending_request():
    async with _server(lambda message: [], stop_after=1) as (port, _, _):
        ws = await connect(f"ws://127.0.0.1:{port}")
        with pytest.raises(TransportError) as info:
            await asyncio.wait_for(ws.execute("eth_accounts", []), 5)
        await ws.close()
    assert info.value.message == "Cannot send request. Internal task finished."


@pytest.mark.asyncio
async def test_closed_transport_refuses_calls():
    async with _server(_answer_x) as (port, _, _):
        ws = await connect(f"ws://127.0.0.1:{port}")
        await ws.close()
        with pytest.raises(TransportError) as info:
            await ws.execute("eth_accounts", [])
    assert info.value.message == "Cannot send request. Internal task finished."


@pytest.mark.asyncio
async def test_connect_refused():
    with socket.socket() as probe:
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
    with pytest.raises(TransportError) as info:
        await connect(f"ws://127.0.0.1:{port}")
    assert info.value.message.startswith("Handshake Error")