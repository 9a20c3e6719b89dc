"""Masking of data frame payloads."""

from __future__ import annotations

import secrets
from itertools import cycle
from typing import BinaryIO


class Masker:
    """Writable wrapper that masks everything written before passing it on."""

    def __init__(self, key: bytes, endpoint: BinaryIO) -> None:
        key = bytes(key)
        if len(key) != 4:
            raise ValueError("masking key must be 4 bytes")
        self._key = key
        self._pos = 0
        self._end = endpoint

    def write(self, data: bytes) -> int:
        """Mask ``data`` with the running key position and write it."""
        masked = bytearray()
        for byte in data:
            masked.append(byte ^ self._key[self._pos])
            self._pos = (self._pos + 1) % len(self._key)
        return self._end.write(bytes(masked))

    def flush(self) -> None:
        """Flush the wrapped writer."""
        self._end.flush()


def gen_mask() -> bytes:
    """Return a random 4-byte masking key."""
    return secrets.token_bytes(4)


def mask_data(mask: bytes, data: bytes) -> bytes:
    """Mask (or unmask) ``data`` with the 4-byte key ``mask``."""
    return bytes(byte ^ key for byte, key in zip(data, cycle(mask)))