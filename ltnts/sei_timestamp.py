"""Latency timestamp records carried in video SEI payloads.

A record is a 16 byte UUID followed by nine big-endian 32-bit fields. Each
field is stored as two byte pairs, each pair followed by a delimiter byte so
that the payload never holds a long run of zero bits.

Fields: 1 frame counter; 2/3 hardware arrival sec/usec; 4/5 codec entry
sec/usec; 6/7 codec exit sec/usec; 8/9 transmit exit sec/usec.
"""

from __future__ import annotations

from typing import Optional, Union

from .memsearch import memmem
from .timeval import Timeval, subtract_ms

SEI_BIT_DELIMITER = 0x81

UUID_SEI_TIMESTAMP = bytes(
    [
        0x59, 0x96, 0xFF, 0x28, 0x17, 0xCA, 0x41, 0x96,
        0x8D, 0xE3, 0xE5, 0x3F, 0xE2, 0xF9, 0x92, 0xAE,
    ]
)

FIELD_COUNT = 9
_FIELD_SIZE = 6
PAYLOAD_LENGTH = len(UUID_SEI_TIMESTAMP) + FIELD_COUNT * _FIELD_SIZE


def _field_offset(nr: int) -> int:
    if not 1 <= nr <= FIELD_COUNT:
        raise ValueError(f"field number {nr} out of range 1..{FIELD_COUNT}")
    return len(UUID_SEI_TIMESTAMP) + (nr - 1) * _FIELD_SIZE


def alloc_payload() -> bytearray:
    """Return a new zeroed payload carrying the timestamp UUID."""
    buf = bytearray(PAYLOAD_LENGTH)
    buf[: len(UUID_SEI_TIMESTAMP)] = UUID_SEI_TIMESTAMP
    return buf


def init_payload(buf: Union[bytearray, memoryview]) -> None:
    """Zero ``buf`` in place and write the UUID at its start."""
    if len(buf) < PAYLOAD_LENGTH:
        raise ValueError("buffer too small for an SEI timestamp payload")
    buf[:] = bytes(len(buf))
    buf[: len(UUID_SEI_TIMESTAMP)] = UUID_SEI_TIMESTAMP


def field_set(buf: Union[bytearray, memoryview], nr: int, value: int) -> None:
    """Store the 32-bit ``value`` into field ``nr`` (1-based) of ``buf``."""
    offset = _field_offset(nr)
    if len(buf) - offset < _FIELD_SIZE:
        raise ValueError("buffer too small for field")
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError("value does not fit in 32 bits")
    hi, lo = divmod(value, 0x10000)
    buf[offset : offset + _FIELD_SIZE] = bytes(
        [hi >> 8, hi & 0xFF, SEI_BIT_DELIMITER, lo >> 8, lo & 0xFF, SEI_BIT_DELIMITER]
    )


def field_get(buf: Union[bytes, bytearray, memoryview], nr: int) -> int:
    """Return the 32-bit value held in field ``nr`` (1-based) of ``buf``."""
    offset = _field_offset(nr)
    if len(buf) - offset < _FIELD_SIZE:
        raise ValueError("buffer too small for field")
    p = buf[offset : offset + _FIELD_SIZE]
    return (p[0] << 24) | (p[1] << 16) | (p[3] << 8) | p[4]


def find_uuid(buf: Union[bytes, bytearray, memoryview]) -> int:
    """Return the offset of the timestamp UUID in ``buf``, or -1."""
    if len(buf) < PAYLOAD_LENGTH:
        return -1
    return memmem(buf, UUID_SEI_TIMESTAMP)


def codec_latency_ms(buf: Union[bytes, bytearray, memoryview]) -> int:
    """Milliseconds between codec entry (fields 4/5) and exit (fields 6/7)."""
    begin = Timeval(field_get(buf, 4), field_get(buf, 5))
    end = Timeval(field_get(buf, 6), field_get(buf, 7))
    return subtract_ms(end, begin)


def hexdump(buf: Union[bytes, bytearray, memoryview]) -> str:
    """Render the payload as hex, UUID first then fields in groups of three bytes."""
    uuid_len = len(UUID_SEI_TIMESTAMP)
    parts = []
    group = 0
    for i, byte in enumerate(bytes(buf[:PAYLOAD_LENGTH]), start=1):
        parts.append(f"{byte:02x} ")
        if i == uuid_len:
            parts.append(" ")
        if i > uuid_len:
            if group == 2:
                parts.append(" ")
                group = 0
            else:
                group += 1
    return "".join(parts)


def timeval_query(buf: Union[bytes, bytearray, memoryview], nr: int) -> Timeval:
    """Return the time held in fields ``nr`` (seconds) and ``nr + 1`` (microseconds)."""
    return Timeval(field_get(buf, nr), field_get(buf, nr + 1))


def timeval_set(
    buf: Union[bytearray, memoryview], nr: int, t: Optional[Timeval] = None
) -> None:
    """Store ``t`` (default: now) into fields ``nr`` and ``nr + 1``."""
    if not 1 <= nr < FIELD_COUNT:
        raise ValueError(f"field number {nr} out of range 1..{FIELD_COUNT - 1}")
    if t is None:
        t = Timeval.now()
    field_set(buf, nr, t.sec & 0xFFFFFFFF)
    field_set(buf, nr + 1, t.usec & 0xFFFFFFFF)