# ethtransport

Async JSON-RPC 2.0 transports for talking to Ethereum nodes, built on asyncio.

Every transport builds calls with `prepare(method, params)`, which returns a
request id and a JSON-RPC call object (a plain `dict`), and sends them with
`send(id, request)`, which gives an awaitable of the call's result.
`execute(method, params)` does both steps at once. Transports that can send
batches (`BatchTransport`) have `send_batch(requests)`, taking `(id, call)`
pairs; its result is a list with one entry per call, in order, holding either
the call's result or the `Web3Error` that call ended with. Transports that
deliver notifications (`DuplexTransport`) have `subscribe(id)`, which returns a
`NotificationStream`, and `unsubscribe(id)`.

## Transports

- `ethtransport.http.Http(url, client=None)`: each call or batch is one HTTP
  POST. Request ids count up from 0. Batch replies are put back into the order
  of the request ids. Without a `client` it creates its own
  `httpx.AsyncClient`, which `aclose()` (or `async with`) closes.
- `ethtransport.ipc.connect(path)`: opens a Unix domain socket and returns an
  `Ipc` transport with batches and subscriptions. Ids count up from 1. Replies
  may arrive split across reads or several to a read. `close()` (or
  `async with`) waits for pending answers and then drops the connection.
- `ethtransport.ws.connect(url)`: opens a `ws://` or `wss://` connection and
  returns a `WebSocket` transport with batches and subscriptions. A user name
  and password in the URL are sent as a Basic `Authorization` header; a
  rejected handshake raises `TransportError` carrying the HTTP status code.
  `parse_ws_url(url)` gives the `WsEndpoint` it connects to (default port 80
  for `ws`, 443 for `wss`). `WebSocket(connection)` can also wrap any object
  that is async-iterable for incoming messages and has async `send(text)` and
  `close()`.
- `ethtransport.batch.Batch(transport)`: wraps a batch transport. `send`
  queues the call and returns a future; `submit_batch()` sends everything
  queued as one batch, settles each future and returns the batch's results.
- `ethtransport.either.Either(side, transport)`: holds one transport, marked
  `Side.LEFT` or `Side.RIGHT`, and passes every call on to it. `send_batch`,
  `subscribe` and `unsubscribe` raise `TypeError` if the held transport lacks
  them.
- `ethtransport.testing.TestTransport`: answers each call with the next value
  queued by `add_response` or `set_response` (raising `LookupError` when none is
  left) and records every request. `assert_request(method, params)` checks the
  next recorded request, with params given as JSON texts, and
  `assert_no_more_requests()` checks that all have been checked.

`ethtransport.jsonrpc` holds the helpers the transports share:
`build_request`, `to_result_from_output`, `to_results_from_outputs` and
`subscription_notification`.

## Installing

```
pip install ethtransport
```

## Examples

```python
import asyncio
from ethtransport.http import Http

async def main():
    async with Http("http://localhost:8545") as transport:
        print(await transport.execute("eth_blockNumber", []))

asyncio.run(main())
```

Collecting calls into one batch (inside a running event loop):

```python
from ethtransport.batch import Batch

batch = Batch(transport)
first = batch.execute("eth_blockNumber", [])
second = batch.execute("eth_chainId", [])
results = await batch.submit_batch()
block_number = await first
```

Reading a subscription:

```python
from ethtransport.ws import connect

ws = await connect("ws://user:password@localhost:8546")
stream = ws.subscribe("0x1")
async for value in stream:
    print(value)
```

The stream ends when the connection closes.

## Errors

Every failure raises a subclass of `ethtransport.errors.Web3Error`:

- `TransportError`: the connection failed, the transport is closed, or the
  server answered with a non-2xx HTTP status (in `code`).
- `RpcError`: the node answered with a JSON-RPC error object (`code`,
  `message`, `data`).
- `InvalidResponseError`: the answer could not be understood.
- `InternalError`: a batched call got no answer of its own.

## What it does not do

This is a library only: it has no command-line tool. It does not reconnect a
dropped IPC or WebSocket connection; pending calls then fail with
`TransportError` and subscription streams end. It does not issue
`eth_subscribe` calls itself; `subscribe(id)` only routes notifications for a
subscription id that you obtained from the node.