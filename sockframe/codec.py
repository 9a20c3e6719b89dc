"""Incremental codecs that turn byte buffers into frames and messages and back."""

from __future__ import annotations

import enum
import io

from sockframe.errors import NoDataAvailable, ProtocolError
from sockframe.frame import DataFrame, Frame, MessageBase, Opcode
from sockframe.frame_header import read_header
from sockframe.message import OwnedMessage


class Context(enum.Enum):
    """The role a codec plays; it decides which side masks its data."""

    SERVER = "server"
    CLIENT = "client"


class DataFrameCodec:
    """Decodes :class:`DataFrame` objects from a buffer and encodes any frame into one.

    A server expects masked incoming frames and sends unmasked ones; a client
    does the opposite.
    """

    def __init__(self, context: Context) -> None:
        self.context = Context(context)

    @property
    def is_server(self) -> bool:
        """Whether this codec acts as the server side."""
        return self.context is Context.SERVER

    def decode(self, buffer: bytearray) -> DataFrame | None:
        """Take one complete frame off the front of ``buffer``.

        Returns ``None`` and leaves ``buffer`` untouched when it does not yet
        hold a whole frame.
        """
        reader = io.BytesIO(bytes(buffer))
        try:
            header = read_header(reader)
        except NoDataAvailable:
            return None
        header_size = reader.tell()

        end = header_size + header.length
        if end > len(buffer):
            return None

        body = bytes(buffer[header_size:end])
        del buffer[:end]
        return DataFrame.from_header(header, body, self.is_server)

    def encode(self, frame: Frame, buffer: bytearray) -> None:
        """Append ``frame``, masked if this is a client, to ``buffer``."""
        out = io.BytesIO()
        frame.write_to(out, not self.is_server)
        buffer += out.getvalue()


class MessageCodec:
    """Decodes :class:`OwnedMessage` objects from a buffer and encodes any message.

    Fragmented messages are gathered across calls to :meth:`decode`; control
    frames arriving between fragments are returned straight away.
    """

    def __init__(self, context: Context) -> None:
        self._frames: list[DataFrame] = []
        self._dataframe_codec = DataFrameCodec(context)

    @property
    def context(self) -> Context:
        """The role of this codec."""
        return self._dataframe_codec.context

    def decode(self, buffer: bytearray) -> OwnedMessage | None:
        """Take one complete message off the front of ``buffer``, if there is one."""
        while (frame := self._dataframe_codec.decode(buffer)) is not None:
            is_first = not self._frames
            opcode = int(frame.opcode)

            if opcode == Opcode.CONTINUATION and is_first:
                raise ProtocolError("Unexpected continuation data frame opcode")
            if opcode >= Opcode.CLOSE:
                return OwnedMessage.from_dataframes([frame])
            if opcode != Opcode.CONTINUATION and not is_first:
                raise ProtocolError("Unexpected data frame opcode")
            self._frames.append(frame)

            if frame.finished:
                frames, self._frames = self._frames, []
                return OwnedMessage.from_dataframes(frames)
        return None

    def encode(self, message: MessageBase, buffer: bytearray) -> None:
        """Append ``message``, masked if this is a client, to ``buffer``."""
        out = io.BytesIO()
        message.serialize(out, not self._dataframe_codec.is_server)
        buffer += out.getvalue()