"""The Sec-WebSocket-Key and Sec-WebSocket-Accept handshake values."""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass, field

from sockframe.errors import ProtocolError

SEC_WEBSOCKET_PROTOCOL = "Sec-WebSocket-Protocol"
SEC_WEBSOCKET_ACCEPT = "Sec-WebSocket-Accept"
SEC_WEBSOCKET_EXTENSIONS = "Sec-WebSocket-Extensions"
SEC_WEBSOCKET_KEY = "Sec-WebSocket-Key"

MAGIC_GUID = "258EAFA5-E914-47DA-95CA-C5AB0DC85B11"


def _decode(text: str) -> bytes | None:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except ValueError:
        return None


@dataclass(frozen=True)
class WebSocketKey:
    """A 16-byte Sec-WebSocket-Key value."""

    key: bytes = field(default=bytes(16))

    def __post_init__(self) -> None:
        key = bytes(self.key)
        if len(key) != 16:
            raise ValueError("Sec-WebSocket-Key must be 16 bytes")
        object.__setattr__(self, "key", key)

    @classmethod
    def random(cls) -> WebSocketKey:
        """Generate a new random key."""
        return cls(secrets.token_bytes(16))

    @classmethod
    def parse(cls, text: str) -> WebSocketKey:
        """Parse a Base64 header value."""
        decoded = _decode(text)
        if decoded is None:
            raise ProtocolError("Invalid Sec-WebSocket-Accept")
        if len(decoded) != 16:
            raise ProtocolError("Sec-WebSocket-Key must be 16 bytes")
        return cls(decoded)

    def serialize(self) -> str:
        """Return the Base64 encoding of this key."""
        return base64.b64encode(self.key).decode("ascii")

    def __repr__(self) -> str:
        return f"WebSocketKey({self.serialize()})"


@dataclass(frozen=True)
class WebSocketAccept:
    """A 20-byte Sec-WebSocket-Accept value."""

    accept: bytes

    def __post_init__(self) -> None:
        accept = bytes(self.accept)
        if len(accept) != 20:
            raise ValueError("Sec-WebSocket-Accept must be 20 bytes")
        object.__setattr__(self, "accept", accept)

    @classmethod
    def from_key(cls, key: WebSocketKey) -> WebSocketAccept:
        """Compute the accept value answering ``key``."""
        concat = key.serialize() + MAGIC_GUID
        return cls(hashlib.sha1(concat.encode("ascii")).digest())

    @classmethod
    def parse(cls, text: str) -> WebSocketAccept:
        """Parse a Base64 header value."""
        decoded = _decode(text)
        if decoded is None:
            raise ProtocolError("Invalid Sec-WebSocket-Accept")
        if len(decoded) != 20:
            raise ProtocolError("Sec-WebSocket-Accept must be 20 bytes")
        return cls(decoded)

    def serialize(self) -> str:
        """Return the Base64 encoding of this accept value."""
        return base64.b64encode(self.accept).decode("ascii")

    def __repr__(self) -> str:
        return f"WebSocketAccept({self.serialize()})"