"""
Binary serializer used for both the wallet envelope and its payload.

Encoding rules:
  - unsigned integers are little-endian base-128 varints
    (7 bits per byte, high bit set on every byte but the last)
  - signed 64-bit integers are the varint of their two's-complement uint64
  - ``bool`` is a single byte, non-zero meaning true
  - fixed-size byte arrays are written raw
  - ``bytes`` / ``str`` are a varint length followed by the raw bytes
  - arrays are a varint item count followed by the items
  - object begin/end markers emit nothing; names only label errors

Usage:
    out = BinaryOutputSerializer(stream)
    out.begin_object("keys")
    out.uint64(ts, "creation_timestamp")
    out.end_object()

    inp = BinaryInputSerializer(data)
    inp.begin_object("keys")
    ts = inp.uint64("creation_timestamp")
    inp.end_object()
"""

from __future__ import annotations

import io
from typing import BinaryIO, Callable, TypeVar

T = TypeVar("T")

UINT8_MAX = 0xFF
UINT32_MAX = 0xFFFFFFFF
UINT64_MAX = 0xFFFFFFFFFFFFFFFF
INT64_MIN = -0x8000000000000000
INT64_MAX = 0x7FFFFFFFFFFFFFFF


class SerializationError(ValueError):
    """Raised when data cannot be encoded or decoded."""


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise SerializationError(f"Varint cannot be negative: {value}")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


class _PathTracker:
    """Keeps the stack of object / field names for error messages."""

    def __init__(self) -> None:
        self._path: list[str] = []

    def _where(self, name: str) -> str:
        return "/".join(self._path + [name])

    def begin_object(self, name: str) -> None:
        self._path.append(name)

    def end_object(self) -> None:
        if not self._path:
            raise SerializationError("end_object() without matching begin_object()")
        self._path.pop()


class BinaryOutputSerializer(_PathTracker):
    """Writes values to a binary stream."""

    def __init__(self, stream: BinaryIO):
        super().__init__()
        self.stream = stream

    def _write(self, data: bytes) -> None:
        self.stream.write(data)

    def _check_range(self, value: int, lo: int, hi: int, name: str) -> None:
        if not lo <= value <= hi:
            raise SerializationError(f"{self._where(name)}: value out of range: {value}")

    # ---- arrays ----

    def begin_array(self, size: int, name: str) -> int:
        self._check_range(size, 0, UINT64_MAX, name)
        self._write(encode_varint(size))
        self._path.append(name)
        return size

    def end_array(self) -> None:
        self.end_object()

    # ---- primitives ----

    def uint8(self, value: int, name: str) -> int:
        self._check_range(value, 0, UINT8_MAX, name)
        self._write(bytes([value]))
        return value

    def uint32(self, value: int, name: str) -> int:
        self._check_range(value, 0, UINT32_MAX, name)
        self._write(encode_varint(value))
        return value

    def uint64(self, value: int, name: str) -> int:
        self._check_range(value, 0, UINT64_MAX, name)
        self._write(encode_varint(value))
        return value

    def int64(self, value: int, name: str) -> int:
        self._check_range(value, INT64_MIN, INT64_MAX, name)
        self._write(encode_varint(value & UINT64_MAX))
        return value

    def boolean(self, value: bool, name: str) -> bool:
        self._write(b"\x01" if value else b"\x00")
        return value

    def fixed(self, value: bytes, size: int, name: str) -> bytes:
        if len(value) != size:
            raise SerializationError(
                f"{self._where(name)}: expected {size} bytes, got {len(value)}"
            )
        self._write(bytes(value))
        return value

    def binary(self, value: bytes, name: str) -> bytes:
        self._write(encode_varint(len(value)))
        self._write(bytes(value))
        return value

    def string(self, value: str, name: str) -> str:
        self.binary(value.encode("utf-8"), name)
        return value


class BinaryInputSerializer(_PathTracker):
    """Reads values from an in-memory buffer."""

    def __init__(self, data: bytes):
        super().__init__()
        self.data = bytes(data)
        self.offset = 0

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def finish(self) -> None:
        """Raise if any bytes are left unread."""
        if self.remaining():
            raise SerializationError(f"{self.remaining()} trailing bytes after end of data")

    def _read(self, size: int, name: str) -> bytes:
        if size > self.remaining():
            raise SerializationError(
                f"{self._where(name)}: unexpected end of data "
                f"(need {size} bytes, {self.remaining()} left)"
            )
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def _read_varint(self, bits: int, name: str) -> int:
        value = 0
        shift = 0
        while True:
            piece = self._read(1, name)[0]
            if shift >= bits - 7 and piece >= 1 << (bits - shift):
                raise SerializationError(f"{self._where(name)}: varint too large")
            if piece == 0 and shift != 0:
                raise SerializationError(f"{self._where(name)}: non-canonical varint")
            value |= (piece & 0x7F) << shift
            if not piece & 0x80:
                return value
            shift += 7

    # ---- arrays ----

    def begin_array(self, name: str) -> int:
        size = self._read_varint(64, name)
        # every item takes at least one byte
        if size > self.remaining():
            raise SerializationError(
                f"{self._where(name)}: array of {size} items exceeds remaining data"
            )
        self._path.append(name)
        return size

    def end_array(self) -> None:
        self.end_object()

    # ---- primitives ----

    def uint8(self, name: str) -> int:
        return self._read(1, name)[0]

    def uint32(self, name: str) -> int:
        return self._read_varint(32, name)

    def uint64(self, name: str) -> int:
        return self._read_varint(64, name)

    def int64(self, name: str) -> int:
        raw = self._read_varint(64, name)
        return raw - (1 << 64) if raw > INT64_MAX else raw

    def boolean(self, name: str) -> bool:
        return self._read(1, name)[0] != 0

    def fixed(self, size: int, name: str) -> bytes:
        return self._read(size, name)

    def binary(self, name: str) -> bytes:
        size = self._read_varint(64, name)
        return self._read(size, name)

    def string(self, name: str) -> str:
        raw = self.binary(name)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SerializationError(f"{self._where(name)}: invalid UTF-8") from exc


def dumps(write: Callable[[BinaryOutputSerializer], object]) -> bytes:
    """Run *write* against an in-memory output serializer and return the bytes."""
    buf = io.BytesIO()
    write(BinaryOutputSerializer(buf))
    return buf.getvalue()


def loads(data: bytes, read: Callable[[BinaryInputSerializer], T], *, exact: bool = True) -> T:
    """Run *read* over *data*; with *exact*, trailing bytes are an error."""
    s = BinaryInputSerializer(data)
    result = read(s)
    if exact:
        s.finish()
    return result
