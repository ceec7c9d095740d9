"""
Binary Large Object Handle

A Blob is a client-held byte buffer that can be written by byte range or
through a binary stream and placed into a BLOB column. It has no expiry;
free() releases the buffer, after which any use fails.
"""

from __future__ import annotations

import io
from typing import Optional

from gridclient.core.errors import ValidationError


class Blob:
    """Mutable byte buffer with 0-based positional access."""

    __slots__ = ("_data", "_freed")

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytearray(data)
        self._freed = False

    def _check_alive(self) -> None:
        if self._freed:
            raise ValidationError.invalid_value("blob", "freed", "blob has been freed")

    def length(self) -> int:
        self._check_alive()
        return len(self._data)

    def get_bytes(self, pos: int, length: int) -> bytes:
        self._check_alive()
        if pos < 0 or length < 0:
            raise ValidationError.invalid_value("blob range", (pos, length), "must not be negative")
        return bytes(self._data[pos:pos + length])

    def set_bytes(
        self,
        pos: int,
        data: bytes,
        offset: int = 0,
        length: Optional[int] = None,
    ) -> int:
        """
        Write ``data[offset:offset + length]`` at ``pos``.

        Writing past the end extends the blob, zero-filling any gap.

        Returns:
            Number of bytes written
        """
        self._check_alive()
        if pos < 0 or offset < 0:
            raise ValidationError.invalid_value("blob position", (pos, offset), "must not be negative")
        chunk = data[offset:] if length is None else data[offset:offset + length]
        end = pos + len(chunk)
        if pos > len(self._data):
            self._data.extend(b"\x00" * (pos - len(self._data)))
        self._data[pos:end] = chunk
        return len(chunk)

    def set_binary_stream(self, pos: int = 0) -> io.RawIOBase:
        """Writable stream that writes into this blob starting at ``pos``."""
        self._check_alive()
        return _BlobWriter(self, pos)

    def truncate(self, length: int) -> None:
        self._check_alive()
        del self._data[length:]

    def free(self) -> None:
        self._data = bytearray()
        self._freed = True

    @property
    def freed(self) -> bool:
        return self._freed

    def __repr__(self) -> str:
        state = "freed" if self._freed else f"{len(self._data)} bytes"
        return f"Blob({state})"


class _BlobWriter(io.RawIOBase):
    def __init__(self, blob: Blob, pos: int) -> None:
        super().__init__()
        self._blob = blob
        self._pos = pos

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:  # type: ignore[override]
        written = self._blob.set_bytes(self._pos, bytes(data))
        self._pos += written
        return written
