"""A blocking WebSocket server that listens on TCP and yields upgrade requests."""

from __future__ import annotations

import errno
import socket
import ssl
from collections.abc import Iterator
from typing import Any

from sockframe.upgrade import (
    Buffer,
    Request,
    UpgradeError,
    UpgradeIOError,
    WsUpgrade,
    into_ws,
)


class InvalidConnection(Exception):
    """A connection that could not be turned into a WebSocket upgrade.

    Holds what could be recovered, so the connection can still be used for
    something else such as plain HTTP: the ``stream`` (if it was set up), the
    ``parsed`` request (if one was read), the ``buffer`` of bytes already read
    and the ``error`` that caused the failure.
    """

    def __init__(
        self,
        error: UpgradeError,
        stream: Any = None,
        parsed: Request | None = None,
        buffer: Buffer | None = None,
    ) -> None:
        super().__init__(error)
        self.error = error
        self.stream = stream
        self.parsed = parsed
        self.buffer = buffer
        self.__cause__ = error

    def __str__(self) -> str:
        return str(self.error)

    def __repr__(self) -> str:
        return (
            "InvalidConnection(stream='...', parsed='...', buffer='...', "
            f"error={self.error!r})"
        )


def _invalid_address() -> OSError:
    return OSError(errno.EINVAL, "invalid socket address")


def _split_address(addr: Any) -> tuple[str, int]:
    if isinstance(addr, str):
        if addr.startswith("["):
            host, sep, rest = addr[1:].partition("]")
            if not sep or not rest.startswith(":"):
                raise _invalid_address()
            port_text = rest[1:]
        else:
            host, sep, port_text = addr.rpartition(":")
            if not sep:
                raise _invalid_address()
        try:
            port = int(port_text)
        except ValueError:
            raise _invalid_address() from None
    else:
        try:
            host, port = addr[0], int(addr[1])
        except (TypeError, IndexError, ValueError):
            raise _invalid_address() from None
    if not 0 <= port <= 0xFFFF:
        raise _invalid_address()
    return host, port


def _bind_listener(addr: Any) -> socket.socket:
    host, port = _split_address(addr)
    infos = socket.getaddrinfo(
        host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
    )
    last_error: OSError | None = None
    for family, _type, _proto, _canon, sockaddr in infos:
        try:
            return socket.create_server(sockaddr[:2], family=family)
        except OSError as exc:
            last_error = exc
    raise last_error if last_error is not None else _invalid_address()


class Server:
    """A WebSocket server over plain TCP or, with an SSL context, over TLS.

    :meth:`accept` waits for a connection and reads its handshake; iterating
    over the server does the same for every connection in turn.
    """

    def __init__(
        self, listener: socket.socket, ssl_context: ssl.SSLContext | None = None
    ) -> None:
        self._listener = listener
        self.ssl_context = ssl_context

    @classmethod
    def bind(cls, addr: Any) -> Server:
        """Bind a plain server to ``addr`` (``"host:port"`` or ``(host, port)``)."""
        return cls(_bind_listener(addr))

    @classmethod
    def bind_secure(cls, addr: Any, context: ssl.SSLContext) -> Server:
        """Bind a TLS server to ``addr`` using the server-side ``context``."""
        return cls(_bind_listener(addr), context)

    @property
    def secure(self) -> bool:
        """Whether connections are wrapped in TLS."""
        return self.ssl_context is not None

    def local_addr(self) -> tuple[Any, ...]:
        """The address the server is listening on."""
        return self._listener.getsockname()

    def set_nonblocking(self, nonblocking: bool) -> None:
        """In nonblocking mode :meth:`accept` fails at once when nobody is connecting."""
        self._listener.setblocking(not nonblocking)

    def accept(self) -> WsUpgrade:
        """Wait for a connection and read its WebSocket handshake.

        Raises :class:`InvalidConnection` when accepting, the TLS handshake or
        the WebSocket handshake fails.
        """
        try:
            conn, _addr = self._listener.accept()
        except OSError as exc:
            raise InvalidConnection(UpgradeIOError(exc)) from exc
        conn.setblocking(True)

        stream: Any = conn
        if self.ssl_context is not None:
            try:
                stream = self.ssl_context.wrap_socket(conn, server_side=True)
            except (OSError, ValueError) as exc:
                conn.close()
                error = exc if isinstance(exc, OSError) else OSError(str(exc))
                raise InvalidConnection(UpgradeIOError(error)) from exc

        try:
            return into_ws(stream)
        except UpgradeError as exc:
            raise InvalidConnection(
                exc, stream=exc.stream, parsed=exc.request, buffer=exc.buffer
            ) from exc

    def try_clone(self) -> Server:
        """A new, independently owned handle to the same listening socket."""
        return Server(self._listener.dup(), self.ssl_context)

    def close(self) -> None:
        """Stop listening."""
        self._listener.close()

    def __iter__(self) -> Iterator[WsUpgrade | InvalidConnection]:
        return self

    def __next__(self) -> WsUpgrade | InvalidConnection:
        """The next upgrade, or the :class:`InvalidConnection` describing a failure."""
        if self._listener.fileno() == -1:
            raise StopIteration
        try:
            return self.accept()
        except InvalidConnection as exc:
            return exc

    def __enter__(self) -> Server:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()