"""Per-stream and per-PID transport statistics: counts, errors and rates."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from .packet import (
    NULL_PID,
    PACKET_SIZE,
    SYNC_BYTE,
    BytesLike,
    continuity_counter,
    is_cc_in_error,
    iter_packets,
    pid as packet_pid,
    transport_error_indicator,
    transport_scrambling_control,
)

_PACKET_BITS = PACKET_SIZE * 8


@dataclass
class PidStatistics:
    """Counters and packet rate for one PID."""

    pid: int
    enabled: bool = False
    packet_count: int = 0
    cc_errors: int = 0
    tei_errors: int = 0
    scrambled_count: int = 0
    pps: int = 0
    pps_window: int = 0
    pps_last_update: int = 0
    mbps: float = 0.0
    last_cc: int = 0
    has_pcr: bool = False

    def _expire(self, now: int) -> None:
        if now > self.pps_last_update + 2:
            self.mbps = 0.0
            self.pps = 0
            self.pps_window = 0


@dataclass
class StreamStatistics:
    """Counters and rates for a whole stream, with per-PID detail."""

    packet_count: int = 0
    cc_errors: int = 0
    tei_errors: int = 0
    scrambled_count: int = 0
    pps: int = 0
    pps_window: int = 0
    pps_last_update: int = 0
    mbps: float = 0.0
    bytes_per_sec: int = 0
    bytes_window: int = 0
    bytes_last_update: int = 0
    a324_bps: int = 0
    a324_mbps: float = 0.0
    a324_sequence_number: int = 0
    pids: Dict[int, PidStatistics] = field(default_factory=dict)
    clock: Callable[[], float] = field(default=time.time, repr=False, compare=False)

    def _now(self) -> int:
        return int(self.clock())

    def _pid(self, pidnr: int) -> Optional[PidStatistics]:
        return self.pids.get(pidnr & 0x1FFF)

    def _update_byte_rate(self, now: int, length: int) -> None:
        if now != self.bytes_last_update:
            self.bytes_per_sec = self.bytes_window
            self.bytes_window = 0
            self.a324_bps = self.bytes_per_sec * 8
            self.a324_mbps = self.bytes_per_sec * 8 / 1e6
            self.bytes_last_update = now
        self.bytes_window += length

    def bytestream_update(self, buf: BytesLike) -> None:
        """Account for an opaque chunk of stream bytes."""
        now = self._now()
        self.packet_count += 1
        self._update_byte_rate(now, len(buf))

    def ctp_update(self, buf: BytesLike) -> None:
        """Account for a CTP frame, checking its 16-bit sequence number."""
        now = self._now()
        sequence_number = (buf[2] << 8) | buf[3]
        if ((self.a324_sequence_number + 1) & 0xFFFF) != sequence_number:
            if self.packet_count:
                self.cc_errors += 1
        self.a324_sequence_number = sequence_number
        self.packet_count += 1
        self._update_byte_rate(now, len(buf))

    def pid_update(self, packets: BytesLike) -> None:
        """Account for aligned transport packets."""
        now = self._now()
        pkts = list(iter_packets(packets))

        for pkt in pkts:
            if pkt[0] == SYNC_BYTE:
                self.packet_count += 1
            else:
                self.cc_errors += 1

        if now != self.pps_last_update:
            self.pps = self.pps_window
            self.pps_window = 0
            self.mbps = self.pps * _PACKET_BITS / 1e6
            self.pps_last_update = now
        self.pps_window += len(pkts)

        for pkt in pkts:
            pidnr = packet_pid(pkt)
            stats = self.pids.get(pidnr)
            if stats is None:
                stats = self.pids[pidnr] = PidStatistics(pidnr)

            stats.enabled = True
            stats.packet_count += 1

            if now != stats.pps_last_update:
                stats.pps = stats.pps_window
                stats.pps_window = 0
                stats.mbps = stats.pps * _PACKET_BITS / 1e6
                stats.pps_last_update = now
            stats.pps_window += 1

            cc = continuity_counter(pkt)
            if is_cc_in_error(pkt, stats.last_cc):
                if stats.packet_count > 1 and pidnr != NULL_PID:
                    stats.cc_errors += 1
                    self.cc_errors += 1

            if transport_scrambling_control(pkt) != 0:
                stats.scrambled_count += 1
                self.scrambled_count += 1

            stats.last_cc = cc

            if transport_error_indicator(pkt):
                stats.tei_errors += 1
                self.tei_errors += 1

    def reset(self) -> None:
        """Zero the packet and error counters of the stream and its active PIDs."""
        self.packet_count = 0
        self.tei_errors = 0
        self.cc_errors = 0
        self.mbps = 0.0
        for stats in self.pids.values():
            if not stats.enabled:
                continue
            stats.packet_count = 0
            stats.cc_errors = 0
            stats.tei_errors = 0
            stats.mbps = 0.0

    def clone(self) -> "StreamStatistics":
        """Return an independent copy."""
        return copy.deepcopy(self)

    def _expire(self) -> None:
        now = self._now()
        if self.bytes_window and now > self.bytes_last_update + 2:
            self.a324_mbps = 0.0
            self.bytes_per_sec = 0
            self.bytes_window = 0
        elif now > self.pps_last_update + 2:
            self.mbps = 0.0
            self.pps = 0
            self.pps_window = 0

    def bytestream_mbps(self) -> float:
        """Byte-stream rate in megabits per second."""
        self._expire()
        return self.a324_mbps

    def bytestream_bps(self) -> int:
        """Byte-stream rate in bits per second."""
        self._expire()
        return self.a324_bps

    def stream_mbps(self) -> float:
        """Transport rate in megabits per second."""
        self._expire()
        return self.mbps

    def stream_pps(self) -> int:
        """Transport packets per second."""
        self._expire()
        return self.pps

    def stream_bps(self) -> int:
        """Transport rate in bits per second."""
        self._expire()
        return self.pps * _PACKET_BITS

    def _pid_expired(self, pidnr: int) -> Optional[PidStatistics]:
        stats = self._pid(pidnr)
        if stats is not None:
            stats._expire(self._now())
        return stats

    def pid_mbps(self, pidnr: int) -> float:
        """Rate of one PID in megabits per second."""
        stats = self._pid_expired(pidnr)
        return stats.mbps if stats else 0.0

    def pid_pps(self, pidnr: int) -> int:
        """Packets per second of one PID."""
        stats = self._pid_expired(pidnr)
        return stats.pps if stats else 0

    def pid_bps(self, pidnr: int) -> int:
        """Rate of one PID in bits per second."""
        stats = self._pid_expired(pidnr)
        return stats.pps * _PACKET_BITS if stats else 0

    def padding_pct(self) -> int:
        """Share of the stream rate taken by null packets, as a whole percentage."""
        null_bps = self.pid_bps(NULL_PID)
        stream_bps = self.stream_bps()
        if stream_bps == 0:
            return 0
        return (null_bps * 100) // stream_bps

    def pid_packet_count(self, pidnr: int) -> int:
        """Packets seen on one PID."""
        stats = self._pid(pidnr)
        return stats.packet_count if stats else 0

    def set_contains_pcr(self, pidnr: int) -> None:
        """Mark a PID as carrying a PCR."""
        pidnr &= 0x1FFF
        self.pids.setdefault(pidnr, PidStatistics(pidnr)).has_pcr = True

    def contains_pcr(self, pidnr: int) -> bool:
        """Whether a PID was marked as carrying a PCR."""
        stats = self._pid(pidnr)
        return bool(stats and stats.has_pcr)

    def pid_last_update(self, pidnr: int) -> int:
        """Second at which the PID's rate was last rolled over."""
        stats = self._pid(pidnr)
        return stats.pps_last_update if stats else 0

    def report(self) -> str:
        """A table of active PIDs with packet counts, CC errors and rates."""
        lines = ["----------PID ---------Pkts -----CCErrors --Mbps\n"]
        for pidnr in sorted(self.pids):
            stats = self.pids[pidnr]
            if not stats.enabled:
                continue
            lines.append(
                f"0x{pidnr:04x} ({pidnr:4d}) {stats.packet_count:13d} "
                f"{stats.cc_errors:13d} {stats.mbps:6.2f}\n"
            )
        return "".join(lines)