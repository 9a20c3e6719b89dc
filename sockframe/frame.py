"""Data frames: the generic frame interface and the default owned frame."""

from __future__ import annotations

import enum
import io
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import BinaryIO

from sockframe.errors import DataFrameError, NoDataAvailable, WebSocketIOError
from sockframe.frame_header import (
    DataFrameFlags,
    DataFrameHeader,
    read_header,
    write_header,
)
from sockframe.mask import Masker, gen_mask, mask_data

_RESERVED_FLAGS = (DataFrameFlags.RSV1, DataFrameFlags.RSV2, DataFrameFlags.RSV3)
_NO_RESERVED = (False, False, False)


class Opcode(enum.IntEnum):
    """A data frame opcode nibble."""

    CONTINUATION = 0
    TEXT = 1
    BINARY = 2
    NON_CONTROL_1 = 3
    NON_CONTROL_2 = 4
    NON_CONTROL_3 = 5
    NON_CONTROL_4 = 6
    NON_CONTROL_5 = 7
    CLOSE = 8
    PING = 9
    PONG = 10
    CONTROL_1 = 11
    CONTROL_2 = 12
    CONTROL_3 = 13
    CONTROL_4 = 14
    CONTROL_5 = 15

    @property
    def is_control(self) -> bool:
        """Whether this opcode denotes a control frame."""
        return self >= 8


class Frame(ABC):
    """Anything that can be sent as a single data frame."""

    @abstractmethod
    def is_last(self) -> bool:
        """Whether this is the final frame of a message."""

    @abstractmethod
    def frame_opcode(self) -> int:
        """The opcode of this frame."""

    @abstractmethod
    def reserved_bits(self) -> tuple[bool, bool, bool]:
        """The three reserved bits of this frame."""

    @abstractmethod
    def payload_size(self) -> int:
        """The length of the payload in bytes."""

    @abstractmethod
    def write_payload(self, writer: BinaryIO) -> None:
        """Write the payload to ``writer``."""

    @abstractmethod
    def take_payload(self) -> bytes:
        """Return the payload as bytes."""

    def frame_size(self, masked: bool) -> int:
        """Size in bytes of the whole frame, header and payload."""
        size = self.payload_size()
        if size <= 125:
            length_bytes = 1
        elif size <= 65535:
            length_bytes = 3
        else:
            length_bytes = 9
        return 1 + length_bytes + (4 if masked else 0) + size

    def write_to(self, writer: BinaryIO, mask: bool) -> None:
        """Write the whole frame to ``writer``, masking it with a random key if asked."""
        flags = DataFrameFlags(0)
        if self.is_last():
            flags |= DataFrameFlags.FIN
        for bit, flag in zip(self.reserved_bits(), _RESERVED_FLAGS):
            if bit:
                flags |= flag

        key = gen_mask() if mask else None
        header = DataFrameHeader(
            flags=flags,
            opcode=self.frame_opcode(),
            mask=key,
            length=self.payload_size(),
        )

        buffer = io.BytesIO()
        try:
            write_header(buffer, header)
            self.write_payload(Masker(key, buffer) if key is not None else buffer)
            writer.write(buffer.getvalue())
        except OSError as exc:
            raise WebSocketIOError(exc) from exc


class MessageBase(ABC):
    """A WebSocket message that can be serialized and assembled from frames."""

    @abstractmethod
    def serialize(self, writer: BinaryIO, masked: bool) -> None:
        """Write this message to ``writer``."""

    @abstractmethod
    def message_size(self, masked: bool) -> int:
        """How many bytes this message takes on the wire."""

    @classmethod
    @abstractmethod
    def from_dataframes(cls, frames: Sequence[Frame]) -> MessageBase:
        """Assemble a message from the frames that make it up."""


def _read_payload(reader: BinaryIO, length: int) -> bytes:
    chunks: list[bytes] = []
    remaining = length
    while remaining > 0:
        chunk = reader.read(remaining)
        if not chunk:
            raise NoDataAvailable()
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


@dataclass
class DataFrame(Frame):
    """A data frame that owns its unmasked payload."""

    finished: bool
    opcode: Opcode
    data: bytes
    reserved: tuple[bool, bool, bool] = _NO_RESERVED

    def __post_init__(self) -> None:
        self.opcode = Opcode(self.opcode)
        self.data = bytes(self.data)
        reserved = tuple(bool(bit) for bit in self.reserved)
        if len(reserved) != 3:
            raise ValueError("reserved must hold exactly three bits")
        self.reserved = reserved  # type: ignore[assignment]

    @classmethod
    def from_header(
        cls, header: DataFrameHeader, body: bytes, should_be_masked: bool
    ) -> DataFrame:
        """Combine a header and its payload into a frame, unmasking if needed."""
        finished = bool(header.flags & DataFrameFlags.FIN)
        reserved = tuple(bool(header.flags & flag) for flag in _RESERVED_FLAGS)
        opcode = Opcode(header.opcode)

        if header.mask is not None:
            if not should_be_masked:
                raise DataFrameError("Expected unmasked data frame")
            data = mask_data(header.mask, body)
        else:
            if should_be_masked:
                raise DataFrameError("Expected masked data frame")
            data = bytes(body)

        return cls(finished=finished, opcode=opcode, data=data, reserved=reserved)

    @classmethod
    def read(cls, reader: BinaryIO, should_be_masked: bool) -> DataFrame:
        """Read one frame from ``reader``."""
        header = read_header(reader)
        try:
            body = _read_payload(reader, header.length)
        except OSError as exc:
            raise WebSocketIOError(exc) from exc
        return cls.from_header(header, body, should_be_masked)

    def is_last(self) -> bool:
        return self.finished

    def frame_opcode(self) -> int:
        return int(self.opcode)

    def reserved_bits(self) -> tuple[bool, bool, bool]:
        return self.reserved

    def payload_size(self) -> int:
        return len(self.data)

    def write_payload(self, writer: BinaryIO) -> None:
        writer.write(self.data)

    def take_payload(self) -> bytes:
        return self.data