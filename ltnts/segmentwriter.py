"""Threaded recording writer producing a single file or one-minute segments.

Data is queued by the caller and written to storage by a background thread.
Each new file is named ``<prefix>-<YYYYMMDD-HHMMSS><suffix>`` and starts with
an optional header (for example a pcap file header).
"""

from __future__ import annotations

import enum
import os
import queue
import shutil
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Union

BytesLike = Union[bytes, bytearray, memoryview]

SEGMENT_SECONDS = 60
_MAX_WRITES_PER_PASS = 1000
_POLL_INTERVAL = 0.01


class NotRecordingError(RuntimeError):
    """Raised when a recording detail is queried while no file is open."""


class WriteMode(enum.IntEnum):
    """How the recording is split across files."""

    SINGLE_FILE = 0
    SEGMENTED = 1


@dataclass
class QueuedObject:
    """A block of bytes the caller fills before handing it to the writer."""

    data: bytearray
    datetime: float = field(default=0.0)


def format_timestamp(when: Optional[float] = None) -> str:
    """Return local time ``when`` (default: now) as ``YYYYMMDD-HHMMSS``."""
    if when is None:
        when = time.time()
    return time.strftime("%Y%m%d-%H%M%S", time.localtime(when))


class SegmentWriter:
    """Writes queued data to disk from a background thread."""

    def __init__(
        self,
        prefix: str,
        suffix: Optional[str] = None,
        mode: WriteMode = WriteMode.SINGLE_FILE,
    ) -> None:
        self.prefix = str(prefix)
        self.suffix = ".ts" if suffix is None else suffix
        self.mode = WriteMode(mode)

        self._lock = threading.Lock()
        self._queue: "queue.Queue[QueuedObject]" = queue.Queue()
        self._fh: Optional[BinaryIO] = None
        self._filename: Optional[str] = None
        self._header = b""
        self._last_open = 0.0
        self._recording_start = 0
        self._total_bytes = 0
        self._segments = 0
        self._closed = False

        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="segmentwriter", daemon=True
        )
        self._thread.start()

    # Producer side -------------------------------------------------------

    def set_header(self, data: BytesLike) -> None:
        """Bytes written at the start of every new file."""
        with self._lock:
            self._header = bytes(data)

    def write(self, data: BytesLike) -> int:
        """Queue a copy of ``data`` for writing; return its length."""
        return self.write_object(QueuedObject(bytearray(data)))

    def allocate_object(self, length: int) -> QueuedObject:
        """Return a zeroed block of ``length`` bytes to fill and then queue."""
        if length < 0:
            raise ValueError("length must not be negative")
        return QueuedObject(bytearray(length))

    def write_object(self, obj: QueuedObject) -> int:
        """Queue a previously allocated block; return its length."""
        if self._closed:
            raise RuntimeError("segment writer is closed")
        obj.datetime = time.time()
        self._queue.put(obj)
        return len(obj.data)

    # Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Stop the writer, close the file and discard anything still queued."""
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        self._thread.join()
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None
            self._header = b""
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def __enter__(self) -> "SegmentWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Queries -------------------------------------------------------------

    def _require_open(self) -> None:
        if self._fh is None:
            raise NotRecordingError("no recording file is open")

    def current_filename(self) -> str:
        """Name of the file currently being written."""
        with self._lock:
            self._require_open()
            return self._filename

    def freespace_pct(self) -> float:
        """Free space on the recording's filesystem, as a percentage."""
        with self._lock:
            self._require_open()
            filename = self._filename
        if hasattr(os, "statvfs"):
            fs = os.statvfs(filename)
            return fs.f_bfree / fs.f_blocks * 100.0
        usage = shutil.disk_usage(filename)
        return usage.free / usage.total * 100.0

    def segment_count(self) -> int:
        """Number of files created so far."""
        with self._lock:
            self._require_open()
            return self._segments

    def recording_size(self) -> int:
        """Bytes written across all files, headers included."""
        with self._lock:
            self._require_open()
            return self._total_bytes

    def recording_start_time(self) -> int:
        """Epoch second at which the first file was opened."""
        with self._lock:
            self._require_open()
            return self._recording_start

    def queue_depth(self) -> int:
        """Number of blocks waiting to be written."""
        return self._queue.qsize()

    # Writer thread -------------------------------------------------------

    def _run(self) -> None:
        while not self._stop.wait(_POLL_INTERVAL):
            if not self._queue.empty():
                self._service()

    def _open_file(self) -> None:
        self._filename = f"{self.prefix}-{format_timestamp()}{self.suffix}"
        try:
            self._fh = open(self._filename, "wb")
        except OSError as exc:
            print(f"Error opening {self._filename}: {exc}", file=sys.stderr)
            self._fh = None
        self._last_open = time.time()
        if self._recording_start == 0:
            self._recording_start = int(self._last_open)
        self._segments += 1

        if self._fh is None:
            return
        self._hand_to_sudo_user()
        self._fh.write(self._header)
        self._total_bytes += len(self._header)

    def _hand_to_sudo_user(self) -> None:
        uid = os.environ.get("SUDO_UID")
        gid = os.environ.get("SUDO_GID")
        if not (hasattr(os, "getuid") and os.getuid() == 0 and uid and gid):
            return
        try:
            os.chown(self._filename, int(uid), int(gid))
        except (OSError, ValueError):
            print(
                f"Error changing {self._filename} ownership to uid {uid} gid {gid}, ignoring",
                file=sys.stderr,
            )

    def _service(self) -> None:
        now = time.time()
        with self._lock:
            if (
                self.mode is WriteMode.SEGMENTED
                and self._fh is not None
                and now >= self._last_open + SEGMENT_SECONDS
            ):
                self._fh.close()
                self._fh = None

            if self._fh is None:
                self._open_file()
            if self._fh is None:
                return

            max_writes = _MAX_WRITES_PER_PASS
            while True:
                try:
                    obj = self._queue.get_nowait()
                except queue.Empty:
                    break
                if (
                    self.mode is WriteMode.SEGMENTED
                    and obj.datetime >= self._last_open + SEGMENT_SECONDS
                ):
                    # Give the next pass a chance to start a new segment.
                    max_writes = 0
                self._fh.write(obj.data)
                self._total_bytes += len(obj.data)
                if max_writes <= 0:
                    break
                max_writes -= 1
            self._fh.flush()