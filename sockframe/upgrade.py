"""Turning a stream that carries an HTTP upgrade request into a WebSocket upgrade."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Union

from sockframe.errors import ProtocolError
from sockframe.handshake import (
    SEC_WEBSOCKET_ACCEPT,
    SEC_WEBSOCKET_EXTENSIONS,
    SEC_WEBSOCKET_KEY,
    SEC_WEBSOCKET_PROTOCOL,
    WebSocketAccept,
    WebSocketKey,
)

SEC_WEBSOCKET_VERSION = "Sec-WebSocket-Version"
CONNECTION = "Connection"
UPGRADE = "Upgrade"
ORIGIN = "Origin"

_HTTP_VERSIONS = frozenset({"HTTP/0.9", "HTTP/1.0", "HTTP/1.1", "HTTP/2.0"})
_MAX_HEAD_SIZE = 8192 + 4096 * 100
_MAX_HEADERS = 100
_READ_SIZE = 4096


class UpgradeError(Exception):
    """Base class of the errors met while upgrading a connection.

    When raised by :func:`into_ws` the error also carries what was recovered
    from the connection: ``stream``, the parsed ``request`` (if any) and the
    ``buffer`` of bytes already read.
    """

    description = "WebSocket upgrade failed"

    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        self.stream: Any = None
        self.request: Request | None = None
        self.buffer: Buffer | None = None

    def __str__(self) -> str:
        return self.description


class MethodNotGet(UpgradeError):
    """The request method was not GET."""

    description = "Request method must be GET"


class UnsupportedHttpVersion(UpgradeError):
    """The request used HTTP/0.9 or HTTP/1.0."""

    description = "Unsupported request HTTP version"


class UnsupportedWebsocketVersion(UpgradeError):
    """The request asked for a WebSocket version other than 13."""

    description = "Unsupported WebSocket version"


class NoSecWsKeyHeader(UpgradeError):
    """The request had no valid Sec-WebSocket-Key header."""

    description = "Missing Sec-WebSocket-Key header"


class NoWsUpgradeHeader(UpgradeError):
    """The Upgrade header did not ask for websocket."""

    description = "Invalid Upgrade WebSocket header"


class NoUpgradeHeader(UpgradeError):
    """The request had no Upgrade header."""

    description = "Missing Upgrade WebSocket header"


class NoWsConnectionHeader(UpgradeError):
    """The Connection header did not contain Upgrade."""

    description = "Invalid Connection WebSocket header"


class NoConnectionHeader(UpgradeError):
    """The request had no Connection header."""

    description = "Missing Connection WebSocket header"


class UpgradeIOError(UpgradeError):
    """Reading the request from the stream failed."""

    def __init__(self, error: OSError) -> None:
        super().__init__(error)
        self.error = error
        self.__cause__ = error

    @property
    def description(self) -> str:  # type: ignore[override]
        return str(self.error)


class ParsingError(UpgradeError):
    """The request could not be parsed as HTTP."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    @property
    def description(self) -> str:  # type: ignore[override]
        return self.detail


HeaderSource = Union["Headers", Mapping[str, str], Iterable[tuple[str, str]]]


class Headers:
    """HTTP headers with case-insensitive names, kept in insertion order."""

    def __init__(self, items: HeaderSource | None = None) -> None:
        self._entries: dict[str, tuple[str, list[str]]] = {}
        if items is not None:
            for name, value in _pairs(items):
                self._append(name, value)

    def _append(self, name: str, value: str) -> None:
        key = name.lower()
        if key in self._entries:
            self._entries[key][1].append(str(value))
        else:
            self._entries[key] = (name, [str(value)])

    def get(self, name: str) -> str | None:
        """The value of ``name``, repeated values joined by commas, or None."""
        entry = self._entries.get(name.lower())
        if entry is None:
            return None
        return ", ".join(entry[1])

    def set(self, name: str, value: str) -> None:
        """Set ``name`` to ``value``, replacing any earlier value."""
        key = name.lower()
        original = self._entries[key][0] if key in self._entries else name
        self._entries[key] = (original, [str(value)])

    def extend(self, other: HeaderSource) -> None:
        """Set every header of ``other`` on these headers."""
        for name, value in _pairs(other):
            self.set(name, value)

    def serialize(self) -> str:
        """Render the headers as ``Name: value`` lines, each ending in CRLF."""
        return "".join(f"{name}: {value}\r\n" for name, value in self)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for name, values in self._entries.values():
            yield name, ", ".join(values)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return {k: v[1] for k, v in self._entries.items()} == {
            k: v[1] for k, v in other._entries.items()
        }

    def __repr__(self) -> str:
        return f"Headers({list(self)!r})"


def _pairs(items: HeaderSource) -> Iterable[tuple[str, str]]:
    if isinstance(items, Mapping):
        return items.items()
    return items


@dataclass
class Request:
    """A parsed HTTP request head."""

    method: str
    uri: str
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)


@dataclass
class Buffer:
    """Bytes already read from a stream; ``buf[pos:cap]`` has not been consumed."""

    buf: bytes
    pos: int
    cap: int

    @property
    def remaining(self) -> bytes:
        """The bytes read past the request head."""
        return self.buf[self.pos : self.cap]


def _read_chunk(stream: Any) -> bytes:
    if hasattr(stream, "recv"):
        return stream.recv(_READ_SIZE)
    if hasattr(stream, "read1"):
        return stream.read1(_READ_SIZE)
    return stream.read(_READ_SIZE)


def _write_all(stream: Any, data: bytes) -> None:
    if hasattr(stream, "sendall"):
        stream.sendall(data)
        return
    stream.write(data)
    flush = getattr(stream, "flush", None)
    if flush is not None:
        flush()


def _is_token(text: str) -> bool:
    return bool(text) and all(33 <= ord(ch) < 127 for ch in text)


def _parse_head(head: bytes) -> Request:
    try:
        text = head.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParsingError("Invalid byte in request head") from exc

    request_line, *header_lines = text.split("\r\n")
    parts = request_line.split(" ")
    if len(parts) != 3:
        raise ParsingError("Invalid request line")
    method, uri, version = parts
    if not _is_token(method):
        raise ParsingError("Invalid Method specified")
    if not _is_token(uri):
        raise ParsingError("Invalid Request URI specified")
    if version not in _HTTP_VERSIONS:
        raise ParsingError("Invalid HTTP version specified")

    headers = Headers()
    count = 0
    for line in header_lines:
        if not line:
            continue
        name, sep, value = line.partition(":")
        if not sep or not _is_token(name):
            raise ParsingError("Invalid Header provided")
        count += 1
        if count > _MAX_HEADERS:
            raise ParsingError("Message head is too large")
        headers._append(name, value.strip(" \t"))
    return Request(method=method, uri=uri, version=version, headers=headers)


def parse_request(reader: Any) -> tuple[Request, Buffer]:
    """Read and parse a request head from ``reader``.

    Returns the request and a :class:`Buffer` holding everything read, with
    the bytes past the head still unconsumed. Errors carry that buffer too.
    """
    data = bytearray()
    while (end := data.find(b"\r\n\r\n")) < 0:
        if len(data) >= _MAX_HEAD_SIZE:
            error: UpgradeError = ParsingError("Message head is too large")
            error.buffer = Buffer(bytes(data), 0, len(data))
            raise error
        try:
            chunk = _read_chunk(reader)
        except OSError as exc:
            error = UpgradeIOError(exc)
            error.buffer = Buffer(bytes(data), 0, len(data))
            raise error from exc
        if not chunk:
            error = UpgradeIOError(
                ConnectionAbortedError("Connection closed before the request head was read")
            )
            error.buffer = Buffer(bytes(data), 0, len(data))
            raise error
        data += chunk

    buffer = Buffer(bytes(data), end + 4, len(data))
    try:
        request = _parse_head(bytes(data[:end]))
    except UpgradeError as exc:
        exc.buffer = buffer
        raise
    return request, buffer


def _split_list(value: str | None) -> list[str]:
    if value is None:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def validate(method: str, version: str, headers: Headers) -> None:
    """Raise the matching :class:`UpgradeError` unless this is a valid upgrade request."""
    if method != "GET":
        raise MethodNotGet()

    if version in ("HTTP/0.9", "HTTP/1.0"):
        raise UnsupportedHttpVersion()

    ws_version = headers.get(SEC_WEBSOCKET_VERSION)
    if ws_version is not None and ws_version.strip() != "13":
        raise UnsupportedWebsocketVersion()

    key = headers.get(SEC_WEBSOCKET_KEY)
    if key is None:
        raise NoSecWsKeyHeader()
    try:
        WebSocketKey.parse(key.strip())
    except ProtocolError:
        raise NoSecWsKeyHeader() from None

    upgrade = headers.get(UPGRADE)
    if upgrade is None:
        raise NoUpgradeHeader()
    names = (item.split("/", 1)[0].strip().lower() for item in _split_list(upgrade))
    if "websocket" not in names:
        raise NoWsUpgradeHeader()

    connection = headers.get(CONNECTION)
    if connection is None:
        raise NoConnectionHeader()
    if not any(option.lower() == "upgrade" for option in _split_list(connection)):
        raise NoWsConnectionHeader()


@dataclass
class WsUpgrade:
    """A half-made WebSocket session: inspect the request, then accept or reject it."""

    stream: Any
    request: Request
    buffer: Buffer | None = None
    headers: Headers = field(default_factory=Headers)

    def _append_header(self, name: str, values: list[str]) -> None:
        existing = self.headers.get(name)
        items = ([existing] if existing else []) + values
        if items:
            self.headers.set(name, ", ".join(items))

    def use_protocol(self, protocol: str) -> WsUpgrade:
        """Select a protocol for the handshake response."""
        self._append_header(SEC_WEBSOCKET_PROTOCOL, [str(protocol)])
        return self

    def use_extension(self, extension: str) -> WsUpgrade:
        """Select an extension for the handshake response."""
        self._append_header(SEC_WEBSOCKET_EXTENSIONS, [str(extension)])
        return self

    def use_extensions(self, extensions: Iterable[str]) -> WsUpgrade:
        """Select several extensions for the handshake response."""
        self._append_header(SEC_WEBSOCKET_EXTENSIONS, [str(e) for e in extensions])
        return self

    def protocols(self) -> list[str]:
        """The protocols the client asked for."""
        return _split_list(self.request.headers.get(SEC_WEBSOCKET_PROTOCOL))

    def extensions(self) -> list[str]:
        """The extensions the client asked for."""
        return _split_list(self.request.headers.get(SEC_WEBSOCKET_EXTENSIONS))

    def key(self) -> bytes | None:
        """The client's 16-byte key, or None."""
        value = self.request.headers.get(SEC_WEBSOCKET_KEY)
        if value is None:
            return None
        try:
            return WebSocketKey.parse(value.strip()).key
        except ProtocolError:
            return None

    def version(self) -> str | None:
        """The WebSocket version the client asked for, or None."""
        value = self.request.headers.get(SEC_WEBSOCKET_VERSION)
        return value.strip() if value is not None else None

    def uri(self) -> str:
        """The request URI."""
        return self.request.uri

    def origin(self) -> str | None:
        """The Origin of the client, or None."""
        return self.request.headers.get(ORIGIN)

    def prepare_headers(self, custom: HeaderSource | None) -> HTTPStatus:
        """Fill in the response headers that accept the handshake."""
        if custom is not None:
            self.headers.extend(custom)
        key = WebSocketKey.parse(self.request.headers.get(SEC_WEBSOCKET_KEY).strip())  # type: ignore[union-attr]
        self.headers.set(SEC_WEBSOCKET_ACCEPT, WebSocketAccept.from_key(key).serialize())
        self.headers.set(CONNECTION, "Upgrade")
        self.headers.set(UPGRADE, "websocket")
        return HTTPStatus.SWITCHING_PROTOCOLS

    def _send(self, status: HTTPStatus) -> None:
        data = (
            f"{self.request.version} {status.value} {status.phrase}\r\n"
            f"{self.headers.serialize()}\r\n"
        )
        _write_all(self.stream, data.encode("utf-8"))

    def reject(self) -> Any:
        """Send a 400 response and return the stream."""
        return self.reject_with(None)

    def reject_with(self, headers: HeaderSource | None) -> Any:
        """Send a 400 response carrying ``headers`` and return the stream."""
        if headers is not None:
            self.headers.extend(headers)
        self._send(HTTPStatus.BAD_REQUEST)
        return self.stream


def into_ws(stream: Any) -> WsUpgrade:
    """Read an upgrade request from ``stream``.

    On failure the raised :class:`UpgradeError` holds the stream, the request
    if one was parsed, and the buffered bytes.
    """
    try:
        request, buffer = parse_request(stream)
    except UpgradeError as exc:
        exc.stream = stream
        raise
    try:
        validate(request.method, request.version, request.headers)
    except UpgradeError as exc:
        exc.stream = stream
        exc.request = request
        exc.buffer = buffer
        raise
    return WsUpgrade(stream=stream, request=request, buffer=buffer)


def into_ws_from_request(stream: Any, request: Request) -> WsUpgrade:
    """Upgrade ``stream`` using a request that was already read from it."""
    try:
        validate(request.method, request.version, request.headers)
    except UpgradeError as exc:
        exc.stream = stream
        exc.request = request
        raise
    return WsUpgrade(stream=stream, request=request, buffer=None)