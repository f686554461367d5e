"""Bit-level reading and writing over byte buffers.

Writes are clocked into an 8-bit register from the least significant end and
flushed to the buffer once full; reads are clocked out from the most
significant bit of each byte.
"""

from __future__ import annotations

import copy
import os
from typing import Union


class BitWriter:
    """Writes individual bits into a fixed-size byte buffer."""

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError("buffer size must not be negative")
        self.size = size
        self._buf = bytearray(size)
        self._used = 0
        self._reg = 0
        self._reg_used = 0

    def __len__(self) -> int:
        """Number of whole bytes written so far."""
        return self._used

    def write_bit(self, bit: int) -> None:
        """Append a single bit (only the lowest bit of ``bit`` is used)."""
        bit &= 1
        if self._reg_used < 8:
            self._reg = ((self._reg << 1) | bit) & 0xFF
            self._reg_used += 1
        if self._reg_used == 8:
            if self._used >= self.size:
                raise BufferError("bitstream buffer is full")
            self._buf[self._used] = self._reg
            self._used += 1
            self._reg_used = 0

    def write_bits(self, bits: int, count: int) -> None:
        """Write the low ``count`` bits of ``bits``, most significant first."""
        for shift in range(count - 1, -1, -1):
            self.write_bit(bits >> shift)

    def byte_stuff(self, bit: int) -> None:
        """Pad with ``bit`` until the stream is byte aligned."""
        while self._reg_used > 0:
            self.write_bit(bit)

    def complete(self) -> None:
        """Flush any trailing bits to the buffer, padding with zeros."""
        if self._reg_used > 0:
            # One bit beyond alignment is clocked in, leaving it pending.
            for _ in range(self._reg_used, 9):
                self.write_bit(0)

    def save(self, path: Union[str, os.PathLike]) -> None:
        """Write the bytes produced so far to ``path``."""
        with open(path, "wb") as fh:
            fh.write(self.getvalue())

    def getvalue(self) -> bytes:
        """Return the bytes written so far."""
        return bytes(self._buf[: self._used])


class BitReader:
    """Reads individual bits from a byte buffer."""

    def __init__(self, data: Union[bytes, bytearray, memoryview]) -> None:
        self._buf = bytes(data)
        self._used = 0
        self._reg = 0
        self._reg_used = 0

    def __len__(self) -> int:
        """Number of bytes consumed so far."""
        return self._used

    def read_bit(self) -> int:
        """Return the next bit."""
        if self._reg_used == 0:
            if self._used >= len(self._buf):
                raise EOFError("end of bitstream")
            self._reg = self._buf[self._used]
            self._used += 1
            self._reg_used = 8
        bit = (self._reg >> 7) & 1
        self._reg = (self._reg << 1) & 0xFF
        self._reg_used -= 1
        return bit

    def read_bits(self, count: int) -> int:
        """Return the next ``count`` bits as an unsigned integer."""
        if count == 8 and self._reg_used == 0:
            if self._used >= len(self._buf):
                raise EOFError("end of bitstream")
            value = self._buf[self._used]
            self._used += 1
            return value
        value = 0
        for _ in range(count):
            value = (value << 1) | self.read_bit()
        return value

    def peek_bits(self, count: int) -> int:
        """Return the next ``count`` bits without consuming them."""
        return copy.copy(self).read_bits(count)

    def byte_stuff(self) -> None:
        """Discard bits until the stream is byte aligned again."""
        while self._reg_used > 0:
            self.read_bit()

    def peek_binary(self, count: int) -> str:
        """Render up to ``count`` upcoming bits as text, a space after every eighth."""
        probe = copy.copy(self)
        parts = []
        for i in range(1, count + 1):
            try:
                bit = probe.read_bit()
            except EOFError:
                break
            parts.append(str(bit))
            if i % 8 == 0:
                parts.append(" ")
        return "".join(parts)


def bitmove(dst: BitWriter, src: BitReader, bits: int) -> None:
    """Move ``bits`` bits from ``src`` into ``dst``, consuming them from ``src``."""
    for _ in range(bits):
        dst.write_bit(src.read_bit())


def bitcopy(dst: BitWriter, src: BitReader, bits: int) -> None:
    """Copy ``bits`` bits from ``src`` into ``dst`` leaving ``src`` untouched."""
    bitmove(dst, copy.copy(src), bits)