"""Reading and writing data frame headers."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import BinaryIO

from sockframe.errors import DataFrameError, NoDataAvailable, ProtocolError, Utf8Error


class DataFrameFlags(enum.IntFlag):
    """Flags in the first byte of a data frame."""

    FIN = 0x80
    RSV1 = 0x40
    RSV2 = 0x20
    RSV3 = 0x10


@dataclass(frozen=True)
class DataFrameHeader:
    """A data frame header."""

    flags: DataFrameFlags
    opcode: int
    mask: bytes | None
    length: int

    def __post_init__(self) -> None:
        if self.mask is not None:
            mask = bytes(self.mask)
            if len(mask) != 4:
                raise ValueError("masking key must be 4 bytes")
            object.__setattr__(self, "mask", mask)


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = reader.read(size - len(data))
        if not chunk:
            raise NoDataAvailable()
        data += chunk
    return data


def write_header(writer: BinaryIO, header: DataFrameHeader) -> None:
    """Write ``header`` to ``writer``."""
    if not 0 <= header.opcode <= 0xF:
        raise DataFrameError("Invalid data frame opcode")
    if header.opcode >= 8 and header.length >= 126:
        raise DataFrameError("Control frame length too long")

    out = bytearray([(int(header.flags) & 0xF0) | header.opcode])
    mask_bit = 0x80 if header.mask is not None else 0x00
    if header.length <= 125:
        out.append(mask_bit | header.length)
    elif header.length <= 65535:
        out.append(mask_bit | 126)
        out += struct.pack(">H", header.length)
    else:
        out.append(mask_bit | 127)
        out += struct.pack(">Q", header.length)
    if header.mask is not None:
        out += header.mask
    writer.write(bytes(out))


def read_header(reader: BinaryIO) -> DataFrameHeader:
    """Read a data frame header from ``reader``."""
    byte0, byte1 = _read_exact(reader, 2)
    flags = DataFrameFlags(byte0 & 0xF0)
    opcode = byte0 & 0x0F

    length = byte1 & 0x7F
    if length == 126:
        (length,) = struct.unpack(">H", _read_exact(reader, 2))
        if length <= 125:
            raise DataFrameError("Invalid data frame length")
    elif length == 127:
        (length,) = struct.unpack(">Q", _read_exact(reader, 8))
        if length <= 65535:
            raise DataFrameError("Invalid data frame length")

    if opcode >= 8:
        if length >= 126:
            raise DataFrameError("Control frame length too long")
        if not flags & DataFrameFlags.FIN:
            raise ProtocolError("Illegal fragmented control frame")

    mask = _read_exact(reader, 4) if byte1 & 0x80 else None
    return DataFrameHeader(flags=flags, opcode=opcode, mask=mask, length=length)


def bytes_to_string(data: bytes) -> str:
    """Decode UTF-8 ``data``, raising :class:`Utf8Error` when it is invalid."""
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise Utf8Error(exc) from exc