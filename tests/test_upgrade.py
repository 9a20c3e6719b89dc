import base64
import io
from http import HTTPStatus

import pytest

from sockframe.stream import ReadWritePair
from sockframe.upgrade import (
    Buffer,
    Headers,
    MethodNotGet,
    NoConnectionHeader,
    NoSecWsKeyHeader,
    NoUpgradeHeader,
    NoWsConnectionHeader,
    NoWsUpgradeHeader,
    ParsingError,
    Request,
    UnsupportedHttpVersion,
    UnsupportedWebsocketVersion,
    UpgradeIOError,
    WsUpgrade,
    into_ws,
    into_ws_from_request,
    parse_request,
    validate,
)

KEY = "dGhlIHNhbXBsZSBub25jZQ=="
ACCEPT = "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="

REQUEST = (
    b"GET /chat HTTP/1.1\r\n"
    b"Host: server.example.com\r\n"
    b"Upgrade: websocket\r\n"
    b"Connection: Upgrade\r\n"
    b"Sec-WebSocket-Key: dGhlIHNhbXBsZSBub25jZQ==\r\n"
    b"Sec-WebSocket-Version: 13\r\n"
    b"Sec-WebSocket-Protocol: chat, superchat\r\n"
    b"Sec-WebSocket-Extensions: permessage-deflate, x-foo\r\n"
    b"Origin: http://example.com\r\n"
    b"\r\n"
)


def make_stream(data: bytes) -> ReadWritePair:
    return ReadWritePair(io.BytesIO(data), io.BytesIO())


def good_headers(**overrides):
    base = {
        "Upgrade": "websocket",
        "Connection": "Upgrade",
        "Sec-WebSocket-Key": KEY,
        "Sec-WebSocket-Version": "13",
    }
    base.update(overrides)
    return Headers({k: v for k, v in base.items() if v is not None})


def test_headers_are_case_insensitive():
    headers = Headers()
    headers.set("Content-Type", "text/plain")
    assert headers.get("content-type") == "text/plain"
    headers.set("CONTENT-TYPE", "text/html")
    assert headers.get("Content-Type") == "text/html"
    assert len(headers) == 1


def test_headers_serialize_and_extend():
    headers = Headers([("A", "1")])
    headers.extend({"B": "2", "a": "3"})
    assert headers.serialize() == "A: 3\r\nB: 2\r\n"


def test_headers_repeated_values_join():
    headers = Headers([("X", "one"), ("x", "two")])
    assert headers.get("X") == "one, two"
    assert headers.get("missing") is None


def test_parse_request_fields_and_leftover():
    request, buffer = parse_request(io.BytesIO(REQUEST + b"extra"))
    assert request.method == "GET"
    assert request.uri == "/chat"
    assert request.version == "HTTP/1.1"
    assert request.headers.get("sec-websocket-key") == KEY
    assert buffer.remaining == b"extra"
    assert buffer.cap == len(buffer.buf)


def test_parse_request_incomplete_is_io_error():
    with pytest.raises(UpgradeIOError) as info:
        parse_request(io.BytesIO(b"GET / HTTP/1.1\r\nHost: x\r\n"))
    assert info.value.buffer.buf == b"GET / HTTP/1.1\r\nHost: x\r\n"


@pytest.mark.parametrize(
    "head",
    [
        b"GET /\r\n\r\n",
        b"GET / HTTP/3.5\r\n\r\n",
        b"GET / HTTP/1.1\r\nno colon here\r\n\r\n",
    ],
)
def test_parse_request_malformed(head):
    with pytest.raises(ParsingError):
        parse_request(io.BytesIO(head))


def test_validate_accepts_good_request():
    assert validate("GET", "HTTP/1.1", good_headers()) is None


def test_validate_accepts_list_values_case_insensitively():
    headers = good_headers(Upgrade="WebSocket", Connection="keep-alive, upgrade")
    assert validate("GET", "HTTP/1.1", headers) is None


@pytest.mark.parametrize(
    "method, version, overrides, error",
    [
        ("POST", "HTTP/1.1", {}, MethodNotGet),
        ("GET", "HTTP/1.0", {}, UnsupportedHttpVersion),
        ("GET", "HTTP/0.9", {}, UnsupportedHttpVersion),
        ("GET", "HTTP/1.1", {"Sec-WebSocket-Version": "8"}, UnsupportedWebsocketVersion),
        ("GET", "HTTP/1.1", {"Sec-WebSocket-Key": None}, NoSecWsKeyHeader),
        ("GET", "HTTP/1.1", {"Sec-WebSocket-Key": "c2hvcnQ="}, NoSecWsKeyHeader),
        ("GET", "HTTP/1.1", {"Upgrade": "h2c"}, NoWsUpgradeHeader),
        ("GET", "HTTP/1.1", {"Upgrade": None}, NoUpgradeHeader),
        ("GET", "HTTP/1.1", {"Connection": "keep-alive"}, NoWsConnectionHeader),
        ("GET", "HTTP/1.1", {"Connection": None}, NoConnectionHeader),
    ],
)
def test_validate_errors(method, version, overrides, error):
    with pytest.raises(error):
        validate(method, version, good_headers(**overrides))


def test_validate_version_header_optional():
    assert validate("GET", "HTTP/1.1", good_headers(**{"Sec-WebSocket-Version": None})) is None


def test_error_descriptions():
    assert str(MethodNotGet()) == "Request method must be GET"
    assert str(NoSecWsKeyHeader()) == "Missing Sec-WebSocket-Key header"


def test_into_ws_inspects_request():
    upgrade = into_ws(make_stream(REQUEST))
    assert upgrade.protocols() == ["chat", "superchat"]
    assert upgrade.extensions() == ["permessage-deflate", "x-foo"]
    assert upgrade.key() == base64.b64decode(KEY)
    assert upgrade.version() == "13"
    assert upgrade.uri() == "/chat"
    assert upgrade.origin() == "http://example.com"
    assert upgrade.buffer.remaining == b""


def test_into_ws_error_carries_stream_and_request():
    stream = make_stream(REQUEST.replace(b"GET", b"PUT", 1))
    with pytest.raises(MethodNotGet) as info:
        into_ws(stream)
    assert info.value.stream is stream
    assert info.value.request.method == "PUT"
    assert info.value.buffer.remaining == b""


def test_into_ws_parse_error_carries_stream():
    stream = make_stream(b"garbage\r\n\r\n")
    with pytest.raises(ParsingError) as info:
        into_ws(stream)
    assert info.value.stream is stream
    assert info.value.request is None


def test_prepare_headers_sets_accept():
    upgrade = into_ws(make_stream(REQUEST))
    status = upgrade.prepare_headers({"X-Custom": "yes"})
    assert status is HTTPStatus.SWITCHING_PROTOCOLS
    assert upgrade.headers.get("Sec-WebSocket-Accept") == ACCEPT
    assert upgrade.headers.get("Upgrade") == "websocket"
    assert upgrade.headers.get("Connection") == "Upgrade"
    assert upgrade.headers.get("x-custom") == "yes"


def test_use_protocol_and_extensions_accumulate():
    upgrade = into_ws(make_stream(REQUEST))
    result = upgrade.use_protocol("chat").use_protocol("superchat")
    assert result is upgrade
    upgrade.use_extension("a").use_extensions(["b", "c"])
    assert upgrade.headers.get("Sec-WebSocket-Protocol") == "chat, superchat"
    assert upgrade.headers.get("Sec-WebSocket-Extensions") == "a, b, c"


def test_reject_writes_bad_request():
    stream = make_stream(REQUEST)
    upgrade = into_ws(stream)
    returned = upgrade.reject()
    assert returned is stream
    written = stream.writer.getvalue()
    assert written.startswith(b"HTTP/1.1 400 Bad Request\r\n")
    assert written.endswith(b"\r\n\r\n")


def test_reject_with_sends_headers():
    stream = make_stream(REQUEST)
    into_ws(stream).reject_with({"X-Reason": "nope"})
    assert b"X-Reason: nope\r\n" in stream.writer.getvalue()


def test_into_ws_from_request():
    request = Request("GET", "/room", "HTTP/1.1", good_headers())
    stream = make_stream(b"")
    upgrade = into_ws_from_request(stream, request)
    assert isinstance(upgrade, WsUpgrade)
    assert upgrade.buffer is None
    assert upgrade.uri() == "/room"


def test_into_ws_from_request_error():
    request = Request("GET", "/", "HTTP/1.0", good_headers())
    with pytest.raises(UnsupportedHttpVersion) as info:
        into_ws_from_request(make_stream(b""), request)
    assert info.value.request is request


def test_buffer_remaining():
    assert Buffer(b"abcdef", 2, 4).remaining == b"cd"