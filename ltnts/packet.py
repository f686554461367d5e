"""Field access and checks for 188 byte MPEG transport stream packets."""

from __future__ import annotations

from typing import Iterator, Union

BytesLike = Union[bytes, bytearray, memoryview]

PACKET_SIZE = 188
SYNC_BYTE = 0x47
NULL_PID = 0x1FFF

_CRC_POLY = 0x04C11DB7


def _build_crc_table() -> tuple:
    table = []
    for i in range(256):
        c = i << 24
        for _ in range(8):
            c = ((c << 1) ^ _CRC_POLY) if c & 0x80000000 else (c << 1)
            c &= 0xFFFFFFFF
        table.append(c)
    return tuple(table)


_CRC_TABLE = _build_crc_table()


def pid(pkt: BytesLike) -> int:
    """The 13-bit packet identifier."""
    return ((pkt[1] & 0x1F) << 8) | pkt[2]


def transport_error_indicator(pkt: BytesLike) -> bool:
    """True when the transport error indicator (TEI) bit is set."""
    return bool(pkt[1] & 0x80)


def payload_unit_start_indicator(pkt: BytesLike) -> bool:
    """True when the packet starts a PES packet or PSI section."""
    return bool(pkt[1] & 0x40)


def transport_scrambling_control(pkt: BytesLike) -> int:
    """The two scrambling control bits."""
    return (pkt[3] >> 6) & 0x03


def adaptation_field_control(pkt: BytesLike) -> int:
    """The two adaptation field control bits."""
    return (pkt[3] >> 4) & 0x03


def has_adaptation(pkt: BytesLike) -> bool:
    """True when the packet carries an adaptation field."""
    return adaptation_field_control(pkt) in (2, 3)


def adaptation_field_length(pkt: BytesLike) -> int:
    """Length in bytes of the adaptation field, excluding the length byte."""
    return pkt[4]


def continuity_counter(pkt: BytesLike) -> int:
    """The 4-bit continuity counter."""
    return pkt[3] & 0x0F


def is_cc_in_error(pkt: BytesLike, old_cc: int) -> bool:
    """Whether the packet's continuity counter breaks the sequence after ``old_cc``."""
    adap = adaptation_field_control(pkt)
    cc = continuity_counter(pkt)
    if old_cc == cc:
        # Packets without payload do not advance the counter.
        return adap not in (0, 2)
    return ((old_cc + 1) & 0x0F) != cc


def crc32_mpeg(data: BytesLike) -> int:
    """CRC-32/MPEG-2 of ``data`` as used by PSI sections."""
    crc = 0xFFFFFFFF
    for byte in bytes(data):
        crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC_TABLE[((crc >> 24) ^ byte) & 0xFF]
    return crc


def check_crc32(data: BytesLike) -> bool:
    """True when ``data``, ending in its big-endian CRC, checks out."""
    return crc32_mpeg(data) == 0


def iter_packets(buf: BytesLike) -> Iterator[bytes]:
    """Yield each 188 byte packet of an aligned buffer."""
    data = bytes(buf)
    if len(data) % PACKET_SIZE:
        raise ValueError(
            f"buffer length {len(data)} is not a multiple of {PACKET_SIZE}"
        )
    for offset in range(0, len(data), PACKET_SIZE):
        yield data[offset : offset + PACKET_SIZE]