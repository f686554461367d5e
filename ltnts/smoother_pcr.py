"""Output smoothing of transport streams paced by their own PCR clock.

Bytes written in are cut into PCR-to-PCR intervals on a chosen PID. Every
interval is split into chunks of at most seven packets, each given a wall-clock
output time derived from its PCR, and a background thread hands the chunks to
the caller's callback once they fall due.
"""

from __future__ import annotations

import sys
import threading
import time
import traceback
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional

from .packet import (
    PACKET_SIZE,
    SYNC_BYTE,
    BytesLike,
    adaptation_field_length,
    has_adaptation,
    pid as packet_pid,
)

PCR_TICKS_PER_SECOND = 27_000_000
PCR_MAX = (1 << 33) * 300
CHUNK_BYTES = 7 * PACKET_SIZE
_JUMP_TICKS = 15 * PCR_TICKS_PER_SECOND
_TIMEBASE_RESET_SECONDS = 60
_POLL_INTERVAL = 0.001


@dataclass(frozen=True)
class PcrPosition:
    """A PCR value found in a buffer, with the PID and byte offset of its packet."""

    pid: int
    offset: int
    pcr: int


def scr_diff(a: int, b: int) -> int:
    """Ticks from PCR ``a`` forward to PCR ``b``, allowing for clock wrap."""
    a %= PCR_MAX
    b %= PCR_MAX
    if b >= a:
        return b - a
    return PCR_MAX - a + b


def scr_add(a: int, b: int) -> int:
    """PCR ``a`` advanced by ``b`` ticks, wrapping at the clock's range."""
    return (a + b) % PCR_MAX


def read_pcr(pkt: BytesLike) -> Optional[int]:
    """Return the PCR carried in the packet's adaptation field, or None."""
    if len(pkt) < 12 or pkt[0] != SYNC_BYTE:
        return None
    if not has_adaptation(pkt) or adaptation_field_length(pkt) < 7:
        return None
    if not pkt[5] & 0x10:
        return None
    base = (pkt[6] << 25) | (pkt[7] << 17) | (pkt[8] << 9) | (pkt[9] << 1) | (pkt[10] >> 7)
    ext = ((pkt[10] & 0x01) << 8) | pkt[11]
    return base * 300 + ext


def query_pcrs(buf: BytesLike) -> List[PcrPosition]:
    """Every PCR in the whole packets of an aligned buffer, in stream order."""
    data = bytes(buf)
    found = []
    for offset in range(0, len(data) - PACKET_SIZE + 1, PACKET_SIZE):
        pkt = data[offset : offset + PACKET_SIZE]
        pcr = read_pcr(pkt)
        if pcr is not None:
            found.append(PcrPosition(packet_pid(pkt), offset, pcr))
    return found


def _trunc_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return -quotient if value < 0 else quotient


def _now_us() -> int:
    return time.time_ns() // 1000


@dataclass
class _Item:
    seqno: int
    data: bytes
    pcr: int
    per_packet_ticks: int
    received_us: int
    scheduled_us: int = 0


OutputCallback = Callable[[bytes, List[PcrPosition]], object]


class PcrSmoother:
    """Re-times a transport stream so it leaves at the pace its PCRs describe."""

    def __init__(
        self,
        callback: OutputCallback,
        items_per_second: int,
        item_length_bytes: int,
        pcr_pid: int,
        latency_ms: int,
    ) -> None:
        if not 0 <= pcr_pid <= 0x1FFF:
            raise ValueError(f"PCR pid 0x{pcr_pid:x} out of range")
        if items_per_second < 0:
            raise ValueError("items_per_second must not be negative")
        if item_length_bytes <= 0:
            raise ValueError("item_length_bytes must be positive")
        self.callback = callback
        self.items_per_second = items_per_second
        self.item_length_bytes = item_length_bytes
        self.pcr_pid = pcr_pid
        self.latency_us = latency_ms * 1000

        self._lock = threading.Lock()
        self._busy: Deque[_Item] = deque()
        self._buf = bytearray()
        self._seqno = 0
        self._last_seqno = 0
        self._total_bytes = 0

        self._walltime_first_us = 0
        self._pcr_first = -1
        self._pcr_head = -1
        self._pcr_tail = -1
        self._did_pcr_reset = False
        self._last_reset_time = time.time()
        self._per_packet_ticks_last = 0
        self._interval_ticks_last = 0
        self.measured_latency_ms = 0

        self._closed = False
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="pcr-smoother", daemon=True)
        self._thread.start()

    # Producer side -------------------------------------------------------

    def write(self, data: BytesLike) -> None:
        """Append transport packets; schedule every complete PCR interval."""
        if self._closed:
            raise RuntimeError("smoother is closed")
        self._buf += bytes(data)

        while True:
            pcrs = [p for p in query_pcrs(self._buf) if p.pid == self.pcr_pid][:3]
            count = len(pcrs)
            if count < 2:
                return
            first, second = pcrs[0], pcrs[1]

            byte_count = second.offset - first.offset
            pkt_count = byte_count // PACKET_SIZE
            interval = scr_diff(first.pcr, second.pcr)
            per_packet = interval // pkt_count

            if interval > _JUMP_TICKS:
                direction = "forwards" if first.pcr < second.pcr else "backwards"
                print(
                    f"Detected significant pcr jump {direction}: "
                    f"{first.pcr} to {second.pcr}, auto-correcting PCR schedule",
                    file=sys.stderr,
                )
                self._did_pcr_reset = True
                per_packet = self._per_packet_ticks_last
                interval = self._interval_ticks_last

            if self._pcr_head >= 0 and self._pcr_tail >= 0:
                self.measured_latency_ms = scr_diff(self._pcr_head, self._pcr_tail) // 27000

            pcr_value = first.pcr
            idx = first.offset
            while idx < second.offset:
                length = min(CHUNK_BYTES, second.offset - idx)
                self._enqueue(bytes(self._buf[idx : idx + length]), pcr_value, per_packet, interval)
                pcr_value = scr_add(pcr_value, per_packet * (length // PACKET_SIZE))
                idx += length

            del self._buf[: second.offset]

            # Re-establish the timebase periodically to avoid slow drift.
            now = time.time()
            if now >= self._last_reset_time + _TIMEBASE_RESET_SECONDS:
                self._last_reset_time = now
                self._did_pcr_reset = True

            self._per_packet_ticks_last = per_packet
            self._interval_ticks_last = interval

            if self._did_pcr_reset:
                self._pcr_first = -1
                self._did_pcr_reset = False

            if count <= 2:
                return

    def _enqueue(self, data: bytes, pcr: int, per_packet: int, interval: int) -> None:
        received = _now_us()
        if self._pcr_first == -1:
            self._pcr_first = pcr
            self._walltime_first_us = received
        self._pcr_tail = pcr

        # One interval earlier, as the data is held back until the next PCR arrives.
        ticks = scr_diff(self._pcr_first, pcr) - interval
        scheduled = self._walltime_first_us + _trunc_div(ticks, 27) + self.latency_us

        item = _Item(self._seqno, data, pcr, per_packet, received)
        with self._lock:
            item.seqno = self._seqno
            self._seqno += 1
            self._total_bytes += len(data)
            if self._busy and self._busy[-1].scheduled_us > scheduled:
                scheduled = self._busy[-1].scheduled_us + 1
            item.scheduled_us = scheduled
            self._busy.append(item)

    # Queries and lifecycle ----------------------------------------------

    def size(self) -> int:
        """Bytes queued and not yet delivered."""
        with self._lock:
            return max(self._total_bytes, 0)

    def reset(self) -> None:
        """Drop everything scheduled and forget the established timebase."""
        with self._lock:
            self._walltime_first_us = 0
            self._pcr_first = -1
            self._pcr_head = -1
            self._pcr_tail = -1
            self._total_bytes = 0
            self._busy.clear()

    def close(self) -> None:
        """Stop the output thread and discard anything still queued."""
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        self._thread.join()
        with self._lock:
            self._busy.clear()
            self._total_bytes = 0
        self._buf.clear()

    def __enter__(self) -> "PcrSmoother":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Output thread -------------------------------------------------------

    def _run(self) -> None:
        while not self._stop.is_set():
            due = []
            with self._lock:
                if self._busy:
                    self._pcr_head = self._busy[0].pcr
                    now = _now_us()
                    while self._busy and self._busy[0].scheduled_us <= now:
                        due.append(self._busy.popleft())
            if not due:
                self._stop.wait(_POLL_INTERVAL)
                continue
            for item in due:
                self._deliver(item)

    def _deliver(self, item: _Item) -> None:
        positions = [
            PcrPosition(
                packet_pid(item.data[offset : offset + PACKET_SIZE]),
                offset,
                item.pcr + (offset // PACKET_SIZE) * item.per_packet_ticks,
            )
            for offset in range(0, len(item.data) - PACKET_SIZE + 1, PACKET_SIZE)
        ]
        try:
            self.callback(item.data, positions)
        except Exception:
            traceback.print_exc()
        with self._lock:
            self._total_bytes -= len(item.data)
        if self._last_seqno and self._last_seqno + 1 != item.seqno:
            print(f"smoother seq err {self._last_seqno} vs {item.seqno}", file=sys.stderr)
        self._last_seqno = item.seqno