"""WebSocket messages: the borrowed-payload Message and the owned OwnedMessage."""

from __future__ import annotations

import enum
import struct
from collections.abc import Sequence
from dataclasses import dataclass
from typing import BinaryIO, Union

from sockframe.errors import NoDataAvailable, ProtocolError
from sockframe.frame import Frame, MessageBase, Opcode
from sockframe.frame_header import bytes_to_string

_NO_RESERVED = (False, False, False)
_BYTES_LIKE = (bytes, bytearray, memoryview)


class MessageType(enum.IntEnum):
    """The kinds of message in the default implementation."""

    TEXT = 1
    BINARY = 2
    CLOSE = 8
    PING = 9
    PONG = 10


def _check_status(code: int) -> None:
    if not 0 <= code <= 0xFFFF:
        raise ValueError("close status code must fit in 16 bits")


@dataclass(frozen=True)
class CloseData:
    """The status code and reason carried by a close message."""

    status_code: int
    reason: str

    def __post_init__(self) -> None:
        _check_status(self.status_code)

    def to_bytes(self) -> bytes:
        """Return the close payload: big-endian status code then UTF-8 reason."""
        return struct.pack(">H", self.status_code) + self.reason.encode("utf-8")


@dataclass
class Message(Frame, MessageBase):
    """A message sent as one single data frame."""

    opcode: MessageType
    cd_status_code: int | None
    payload: bytes

    def __post_init__(self) -> None:
        self.opcode = MessageType(self.opcode)
        self.payload = bytes(self.payload)
        if self.cd_status_code is not None:
            _check_status(self.cd_status_code)

    @classmethod
    def text(cls, data: str) -> Message:
        """A text message."""
        return cls(MessageType.TEXT, None, data.encode("utf-8"))

    @classmethod
    def binary(cls, data: bytes) -> Message:
        """A binary message."""
        return cls(MessageType.BINARY, None, data)

    @classmethod
    def close(cls) -> Message:
        """A close message without status code or reason."""
        return cls(MessageType.CLOSE, None, b"")

    @classmethod
    def close_because(cls, code: int, reason: str) -> Message:
        """A close message with a status code and a reason."""
        return cls(MessageType.CLOSE, code, reason.encode("utf-8"))

    @classmethod
    def ping(cls, data: bytes) -> Message:
        """A ping message."""
        return cls(MessageType.PING, None, data)

    @classmethod
    def pong(cls, data: bytes) -> Message:
        """A pong message."""
        return cls(MessageType.PONG, None, data)

    def into_pong(self) -> None:
        """Turn this ping into a pong, keeping its data."""
        if self.opcode is not MessageType.PING:
            raise ValueError("only a ping message can become a pong")
        self.opcode = MessageType.PONG

    def is_last(self) -> bool:
        return True

    def frame_opcode(self) -> int:
        return int(self.opcode)

    def reserved_bits(self) -> tuple[bool, bool, bool]:
        return _NO_RESERVED

    def payload_size(self) -> int:
        return len(self.payload) + (2 if self.cd_status_code is not None else 0)

    def write_payload(self, writer: BinaryIO) -> None:
        writer.write(self.take_payload())

    def take_payload(self) -> bytes:
        if self.cd_status_code is not None:
            return struct.pack(">H", self.cd_status_code) + self.payload
        return self.payload

    def serialize(self, writer: BinaryIO, masked: bool) -> None:
        self.write_to(writer, masked)

    def message_size(self, masked: bool) -> int:
        return self.frame_size(masked)

    @classmethod
    def from_dataframes(cls, frames: Sequence[Frame]) -> Message:
        frames = list(frames)
        if not frames:
            raise ProtocolError("No dataframes provided")
        try:
            opcode: Opcode | None = Opcode(frames[0].frame_opcode())
        except ValueError:
            opcode = None

        data = bytearray()
        for index, frame in enumerate(frames):
            if index > 0 and frame.frame_opcode() != Opcode.CONTINUATION:
                raise ProtocolError("Unexpected non-continuation data frame")
            if tuple(frame.reserved_bits()) != _NO_RESERVED:
                raise ProtocolError("Unsupported reserved bits received")
            data += frame.take_payload()
        payload = bytes(data)

        if opcode is Opcode.TEXT:
            bytes_to_string(payload)
            return cls(MessageType.TEXT, None, payload)
        if opcode is Opcode.BINARY:
            return cls.binary(payload)
        if opcode is Opcode.CLOSE:
            if not payload:
                return cls.close()
            if len(payload) < 2:
                raise NoDataAvailable()
            (status_code,) = struct.unpack(">H", payload[:2])
            return cls.close_because(status_code, bytes_to_string(payload[2:]))
        if opcode is Opcode.PING:
            return cls.ping(payload)
        if opcode is Opcode.PONG:
            return cls.pong(payload)
        raise ProtocolError("Unsupported opcode received")


@dataclass(frozen=True)
class OwnedMessage(Frame, MessageBase):
    """A received message that owns its data.

    ``data`` is a ``str`` for text, a :class:`CloseData` or ``None`` for close,
    and ``bytes`` for binary, ping and pong messages.
    """

    kind: MessageType
    data: Union[str, bytes, CloseData, None]

    def __post_init__(self) -> None:
        kind = MessageType(self.kind)
        object.__setattr__(self, "kind", kind)
        if kind is MessageType.TEXT:
            if not isinstance(self.data, str):
                raise TypeError("text message data must be str")
        elif kind is MessageType.CLOSE:
            if self.data is not None and not isinstance(self.data, CloseData):
                raise TypeError("close message data must be CloseData or None")
        else:
            if not isinstance(self.data, _BYTES_LIKE):
                raise TypeError(f"{kind.name.lower()} message data must be bytes")
            object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def text(cls, data: str) -> OwnedMessage:
        """A text message."""
        return cls(MessageType.TEXT, data)

    @classmethod
    def binary(cls, data: bytes) -> OwnedMessage:
        """A binary message."""
        return cls(MessageType.BINARY, data)

    @classmethod
    def close(cls, close_data: CloseData | None = None) -> OwnedMessage:
        """A close message, optionally carrying a status code and reason."""
        return cls(MessageType.CLOSE, close_data)

    @classmethod
    def ping(cls, data: bytes) -> OwnedMessage:
        """A ping message."""
        return cls(MessageType.PING, data)

    @classmethod
    def pong(cls, data: bytes) -> OwnedMessage:
        """A pong message."""
        return cls(MessageType.PONG, data)

    def is_close(self) -> bool:
        """Whether this is a close message."""
        return self.kind is MessageType.CLOSE

    def is_control(self) -> bool:
        """Whether this is a close, ping or pong message."""
        return self.kind in (MessageType.CLOSE, MessageType.PING, MessageType.PONG)

    def is_data(self) -> bool:
        """Whether this is a text or binary message."""
        return not self.is_control()

    def is_ping(self) -> bool:
        """Whether this is a ping message."""
        return self.kind is MessageType.PING

    def is_pong(self) -> bool:
        """Whether this is a pong message."""
        return self.kind is MessageType.PONG

    @classmethod
    def from_message(cls, message: Message) -> OwnedMessage:
        """Convert a :class:`Message`; invalid UTF-8 is replaced, not rejected."""
        kind = message.opcode
        if kind is MessageType.TEXT:
            return cls.text(message.payload.decode("utf-8", errors="replace"))
        if kind is MessageType.CLOSE:
            if message.cd_status_code is None:
                return cls.close()
            reason = message.payload.decode("utf-8", errors="replace")
            return cls.close(CloseData(message.cd_status_code, reason))
        return cls(kind, message.payload)

    def to_message(self) -> Message:
        """Convert to a :class:`Message`."""
        if self.kind is MessageType.TEXT:
            return Message.text(self.data)  # type: ignore[arg-type]
        if self.kind is MessageType.CLOSE:
            if self.data is None:
                return Message.close()
            close_data: CloseData = self.data  # type: ignore[assignment]
            return Message.close_because(close_data.status_code, close_data.reason)
        return Message(self.kind, None, self.data)  # type: ignore[arg-type]

    def is_last(self) -> bool:
        return True

    def frame_opcode(self) -> int:
        return int(self.kind)

    def reserved_bits(self) -> tuple[bool, bool, bool]:
        return _NO_RESERVED

    def payload_size(self) -> int:
        return len(self.take_payload())

    def write_payload(self, writer: BinaryIO) -> None:
        writer.write(self.take_payload())

    def take_payload(self) -> bytes:
        if self.kind is MessageType.TEXT:
            return self.data.encode("utf-8")  # type: ignore[union-attr]
        if self.kind is MessageType.CLOSE:
            return self.data.to_bytes() if self.data is not None else b""  # type: ignore[union-attr]
        return self.data  # type: ignore[return-value]

    def serialize(self, writer: BinaryIO, masked: bool) -> None:
        self.write_to(writer, masked)

    def message_size(self, masked: bool) -> int:
        return self.frame_size(masked)

    @classmethod
    def from_dataframes(cls, frames: Sequence[Frame]) -> OwnedMessage:
        return cls.from_message(Message.from_dataframes(frames))