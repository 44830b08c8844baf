from __future__ import annotations

import hashlib
from typing import BinaryIO

from .constants import COPY_BUFSIZE, DEFAULT_DIGEST


def new_digest(name: str = DEFAULT_DIGEST):
    return hashlib.new(name)


class HashingWriter:
    """Write-only sink that forwards every byte to ``fileobj`` and folds it into ``digest``."""

    def __init__(self, fileobj: BinaryIO, digest):
        self.fileobj = fileobj
        self.digest = digest

    def write(self, data: bytes) -> int:
        n = self.fileobj.write(data)
        self.digest.update(data)
        return len(data) if n is None else n


class HashingReader:
    """Read-only tap: every byte handed to the caller is folded into ``digest``."""

    def __init__(self, fileobj: BinaryIO, digest):
        self.fileobj = fileobj
        self.digest = digest

    def read(self, size: int = -1) -> bytes:
        data = self.fileobj.read(size)
        self.digest.update(data)
        return data

    def drain(self) -> int:
        """Consume the rest of the underlying stream (trailing record padding)."""
        total = 0
        while True:
            data = self.read(COPY_BUFSIZE)
            if not data:
                return total
            total += len(data)
