"""Reassembly of a single PSI table section from transport packets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .packet import (
    PACKET_SIZE,
    SYNC_BYTE,
    BytesLike,
    adaptation_field_length,
    check_crc32,
    has_adaptation,
    iter_packets,
    payload_unit_start_indicator,
    pid as packet_pid,
)

_MAX_COPY = 183


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write: bytes taken into the section, and its state."""

    bytes_copied: int
    complete: bool
    crc_valid: bool


class SectionExtractor:
    """Collects the section with ``table_id`` carried on ``pid``."""

    def __init__(self, pid: int, table_id: int) -> None:
        self.pid = pid
        self.table_id = table_id
        self._complete = False
        self._appending = False
        self._section = bytearray()
        self._length = 0

    def _write_packet(self, pkt: bytes) -> tuple:
        """Return (bytes copied, completed now, crc valid) for one packet."""
        if pkt[0] != SYNC_BYTE:
            return 0, False, False

        offset = 4
        if has_adaptation(pkt):
            offset += 1 + adaptation_field_length(pkt)
        if offset >= PACKET_SIZE:
            return 0, False, False

        if payload_unit_start_indicator(pkt):
            offset += pkt[offset] + 1
            if offset >= 180:
                return 0, False, False

        if offset > PACKET_SIZE - 3:
            return 0, False, False

        if not self._appending and not self._complete and pkt[offset] == self.table_id:
            self._appending = True
            self._complete = False
            self._section = bytearray()
            self._length = (((pkt[offset + 1] << 8) | pkt[offset + 2]) & 0xFFF) + 3
            copylength = min(self._length, _MAX_COPY)
        elif self._appending and not self._complete:
            copylength = min(_MAX_COPY, self._length - len(self._section))
        else:
            self._complete = False
            self._appending = False
            return -1, False, False

        chunk = pkt[offset : offset + copylength]
        self._section += chunk

        if len(self._section) >= self._length:
            del self._section[self._length :]
            self._complete = True
            self._appending = False
            return len(chunk), True, check_crc32(self._section)
        return len(chunk), False, False

    def write(self, packets: BytesLike) -> WriteResult:
        """Feed aligned packets; packets on other PIDs are ignored."""
        total = 0
        complete = False
        crc_valid = False
        for pkt in iter_packets(packets):
            if packet_pid(pkt) != self.pid:
                continue
            copied, done, valid = self._write_packet(pkt)
            total += copied
            if done:
                complete = True
                crc_valid = valid
        if complete:
            self._complete = True
        return WriteResult(total, complete, crc_valid)

    def query(self) -> Optional[bytes]:
        """Return the completed section and start collecting afresh, or None."""
        if not self._complete:
            return None
        section = bytes(self._section)
        self._complete = False
        self._appending = False
        return section