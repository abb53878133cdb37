# meshc/codec/bitstream.py
from __future__ import annotations

from meshc.errors import ChunkFormatError


class BitWriter:
    """MSB-first bit packer."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._acc = 0
        self._bits = 0

    def write(self, value: int, bits: int) -> None:
        if value < 0 or value >= (1 << bits):
            raise ValueError(f"{value} does not fit in {bits} bits")

        self._acc = (self._acc << bits) | value
        self._bits += bits
        while self._bits >= 8:
            self._bits -= 8
            self._buffer.append((self._acc >> self._bits) & 0xFF)
        self._acc &= (1 << self._bits) - 1

    def finish(self) -> bytes:
        """Pad the last byte with zeros and return the stream."""
        if self._bits:
            self._buffer.append((self._acc << (8 - self._bits)) & 0xFF)
            self._acc = 0
            self._bits = 0
        return bytes(self._buffer)

    @property
    def bit_size(self) -> int:
        return len(self._buffer) * 8 + self._bits


class BitReader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0
        self._acc = 0
        self._bits = 0

    def read(self, bits: int) -> int:
        while self._bits < bits:
            if self._pos >= len(self._data):
                raise ChunkFormatError("Compressed index stream ended early")
            self._acc = (self._acc << 8) | self._data[self._pos]
            self._pos += 1
            self._bits += 8

        self._bits -= bits
        value = (self._acc >> self._bits) & ((1 << bits) - 1)
        self._acc &= (1 << self._bits) - 1
        return value
