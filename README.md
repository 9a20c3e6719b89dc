# sockframe

WebSocket (RFC 6455) building blocks in plain Python, with no runtime
dependencies:

- `sockframe.frame_header`: reading and writing data frame headers
  (`read_header`, `write_header`, `DataFrameHeader`, `DataFrameFlags`)
- `sockframe.mask`: payload masking (`mask_data`, `gen_mask`, `Masker`)
- `sockframe.frame`: the `Frame` interface, the owned `DataFrame` and `Opcode`
- `sockframe.message`: `Message` and `OwnedMessage`, sent as single frames and
  assembled from fragmented frames; `CloseData` for close status and reason
- `sockframe.codec`: incremental `DataFrameCodec` and `MessageCodec` over byte
  buffers, for the `Context.SERVER` or `Context.CLIENT` side
- `sockframe.handshake`: `WebSocketKey` and `WebSocketAccept`
- `sockframe.upgrade`: parsing and validating an HTTP upgrade request
- `sockframe.server`: a blocking `Server` listening on TCP, optionally TLS
- `sockframe.transport`: abstract `Sender` and `Receiver` interfaces
- `sockframe.stream`: `ReadWritePair` and `split_socket`
- `sockframe.errors`: `WebSocketError` and its subclasses `ProtocolError`,
  `DataFrameError`, `NoDataAvailable`, `WebSocketIOError`, `Utf8Error`

## Installation

```
pip install sockframe
```

To run the test suite:

```
pip install "sockframe[test]"
pytest
```

## Frames and messages

```python
import io

from sockframe.frame import DataFrame
from sockframe.message import Message, OwnedMessage

buf = io.BytesIO()
Message.text("hello").serialize(buf, False)   # unmasked, as a server sends
buf.seek(0)

frame = DataFrame.read(buf, False)            # False: expect an unmasked frame
message = OwnedMessage.from_dataframes([frame])
assert message == OwnedMessage.text("hello")
```

Passing `True` masks the frame with a random key, as a client must. Reading a
frame whose masking does not match what was expected raises `DataFrameError`;
running out of input raises `NoDataAvailable`. `message_size(masked)` gives
the exact number of bytes `serialize` writes.

`OwnedMessage` has `text`, `binary`, `close`, `ping` and `pong` constructors
and the checks `is_close`, `is_control`, `is_data`, `is_ping`, `is_pong`.
A close message may carry `CloseData(status_code, reason)`.
`OwnedMessage.from_message` and `to_message` convert between the two types.

## Codecs

The codecs work on a `bytearray` you keep filling from the network. `decode`
takes complete frames off the front and returns `None` while more bytes are
needed. A `MessageCodec` gathers fragmented messages across calls and returns
control messages as soon as they arrive.

```python
from sockframe.codec import Context, MessageCodec
from sockframe.message import Message, OwnedMessage

client_bytes = bytearray()
MessageCodec(Context.CLIENT).encode(Message.text("hi"), client_bytes)  # masked

server = MessageCodec(Context.SERVER)
assert server.decode(client_bytes) == OwnedMessage.text("hi")
assert server.decode(client_bytes) is None    # buffer is now empty

out = bytearray()
server.encode(OwnedMessage.text("reply"), out)  # unmasked
```

## Handshake keys

```python
from sockframe.handshake import WebSocketAccept, WebSocketKey

key = WebSocketKey.random()
header_value = key.serialize()                      # Base64 of 16 bytes
accept = WebSocketAccept.from_key(WebSocketKey.parse(header_value))
assert WebSocketAccept.parse(accept.serialize()) == accept
```

`parse` raises `ProtocolError` for values that are not Base64 or have the
wrong length.

## Upgrading a connection

`sockframe.upgrade.into_ws(stream)` reads a request head from a socket or
binary stream, validates it and returns a `WsUpgrade`.
`into_ws_from_request(stream, request)` validates a `Request` that was already
read. When the request is not a valid upgrade an `UpgradeError` subclass is
raised (`MethodNotGet`, `UnsupportedHttpVersion`, `UnsupportedWebsocketVersion`,
`NoSecWsKeyHeader`, `NoUpgradeHeader`, `NoWsUpgradeHeader`, `NoConnectionHeader`,
`NoWsConnectionHeader`, `UpgradeIOError`, `ParsingError`); it carries the
`stream`, the parsed `request` if any, and the `buffer` of bytes already read.

A `WsUpgrade` exposes what the client asked for through `protocols()`,
`extensions()`, `key()`, `version()`, `uri()` and `origin()`. `use_protocol`,
`use_extension` and `use_extensions` add to the response `headers`.
`reject()` and `reject_with(headers)` send a `400 Bad Request` and return the
stream.

## Serving

```python
from sockframe.server import InvalidConnection, Server

with Server.bind(("127.0.0.1", 8080)) as server:
    for result in server:
        if isinstance(result, InvalidConnection):
            continue
        if "chat" not in result.protocols():
            result.reject().close()
            continue
        upgrade = result.use_protocol("chat")
        status = upgrade.prepare_headers(None)
        response = (
            f"{upgrade.request.version} {status.value} {status.phrase}\r\n"
            f"{upgrade.headers.serialize()}\r\n"
        )
        upgrade.stream.sendall(response.encode())
        pending = bytearray(upgrade.buffer.remaining)
        # feed pending and further socket data to MessageCodec(Context.SERVER)
```

Each item a `Server` yields is either a `WsUpgrade` or an `InvalidConnection`
holding what could be recovered (`stream`, `parsed`, `buffer`) together with
the `error`. `accept()` waits for one connection and raises
`InvalidConnection` instead. `Server.bind_secure(addr, context)` wraps every
connection with a server-side `ssl.SSLContext`. `local_addr()`,
`set_nonblocking()`, `try_clone()` and `close()` act on the listening socket;
in nonblocking mode `accept()` fails at once when nobody is connecting.
Iteration stops once the server is closed.

## What the package does not do

- Accepting an upgrade stops at `prepare_headers`: it fills in the
  `Sec-WebSocket-Accept`, `Connection` and `Upgrade` headers and returns
  `101 Switching Protocols`, but writing that response and running the
  connection afterwards are up to you, as in the example above.
- There is no ready-made WebSocket client or connection object, no client-side
  connect, and no asyncio server; `Sender` and `Receiver` are abstract
  interfaces to build such objects on.
- No extensions (such as compression) are implemented; frames with reserved
  bits set are rejected when assembled into messages.