"""Stream helpers: combining separate readers and writers, splitting sockets."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import BinaryIO


@dataclass
class ReadWritePair:
    """A single stream that reads from one object and writes to another."""

    reader: BinaryIO
    writer: BinaryIO

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes from the reading side."""
        return self.reader.read(size)

    def write(self, data: bytes) -> int:
        """Write ``data`` to the writing side."""
        return self.writer.write(data)

    def flush(self) -> None:
        """Flush the writing side."""
        self.writer.flush()

    def split(self) -> tuple[BinaryIO, BinaryIO]:
        """Return the reading and writing sides."""
        return self.reader, self.writer


def split_socket(sock: socket.socket) -> tuple[socket.socket, socket.socket]:
    """Split a socket into an independent reading handle and the original for writing."""
    return sock.dup(), sock