"""Interfaces for sending and receiving data frames and messages."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import BinaryIO, ClassVar

from sockframe.frame import Frame, MessageBase
from sockframe.message import OwnedMessage


class Sender(ABC):
    """Sends frames and messages, masking them when required."""

    @abstractmethod
    def is_masked(self) -> bool:
        """Whether sent data must be masked."""

    def send_dataframe(self, writer: BinaryIO, dataframe: Frame) -> None:
        """Write a single data frame to ``writer``."""
        dataframe.write_to(writer, self.is_masked())

    def send_message(self, writer: BinaryIO, message: MessageBase) -> None:
        """Write a single message to ``writer``."""
        message.serialize(writer, self.is_masked())


class Receiver(ABC):
    """Receives frames and assembles them into messages of ``message_type``."""

    message_type: ClassVar[type[MessageBase]] = OwnedMessage

    @abstractmethod
    def recv_dataframe(self, reader: BinaryIO) -> Frame:
        """Read a single data frame."""

    @abstractmethod
    def recv_message_dataframes(self, reader: BinaryIO) -> list[Frame]:
        """Read the data frames that make up one message."""

    def incoming_dataframes(self, reader: BinaryIO) -> Iterator[Frame]:
        """Yield incoming data frames until reading fails."""
        while True:
            yield self.recv_dataframe(reader)

    def recv_message(self, reader: BinaryIO) -> MessageBase:
        """Read a single message."""
        return self.message_type.from_dataframes(self.recv_message_dataframes(reader))

    def incoming_messages(self, reader: BinaryIO) -> Iterator[MessageBase]:
        """Yield incoming messages until reading fails."""
        while True:
            yield self.recv_message(reader)