import os
import re
import time

import pytest

from ltnts.segmentwriter import (
    NotRecordingError,
    QueuedObject,
    SegmentWriter,
    WriteMode,
    format_timestamp,
)


def _wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            if predicate():
                return True
        except NotRecordingError:
            pass
        time.sleep(0.01)
    return False


def test_format_timestamp_shape_and_round_trip():
    when = 1_600_000_000
    text = format_timestamp(when)
    assert re.fullmatch(r"\d{8}-\d{6}", text)
    parsed = time.strptime(text, "%Y%m%d-%H%M%S")
    assert parsed[:6] == time.localtime(when)[:6]


def test_format_timestamp_defaults_to_now():
    before = format_timestamp(time.time())
    now = format_timestamp()
    after = format_timestamp(time.time())
    assert before <= now <= after


def test_queries_raise_before_any_file(tmp_path):
    with SegmentWriter(str(tmp_path / "rec"), None, WriteMode.SINGLE_FILE) as w:
        with pytest.raises(NotRecordingError):
            w.current_filename()
        with pytest.raises(NotRecordingError):
            w.segment_count()
        with pytest.raises(NotRecordingError):
            w.recording_size()
        with pytest.raises(NotRecordingError):
            w.recording_start_time()
        with pytest.raises(NotRecordingError):
            w.freespace_pct()
        assert w.queue_depth() == 0


def test_header_and_data_are_written_in_order(tmp_path):
    prefix = str(tmp_path / "rec")
    header = b"HDR!"
    chunks = [b"first", b"second", b"third"]
    start = int(time.time())
    w = SegmentWriter(prefix, None, WriteMode.SINGLE_FILE)
    w.set_header(header)
    for chunk in chunks:
        assert w.write(chunk) == len(chunk)
    expected = len(header) + sum(len(c) for c in chunks)
    assert _wait_for(lambda: w.recording_size() == expected)

    name = w.current_filename()
    assert name.startswith(prefix + "-")
    assert name.endswith(".ts")
    assert w.segment_count() == 1
    assert start <= w.recording_start_time() <= int(time.time())
    assert 0.0 <= w.freespace_pct() <= 100.0
    assert w.queue_depth() == 0
    w.close()

    with open(name, "rb") as fh:
        assert fh.read() == header + b"".join(chunks)


def test_custom_suffix(tmp_path):
    with SegmentWriter(str(tmp_path / "cap"), ".pcap", WriteMode.SEGMENTED) as w:
        w.write(b"x")
        assert _wait_for(lambda: w.recording_size() == 1)
        name = w.current_filename()
        assert name.endswith(".pcap")
        assert os.path.basename(name).startswith("cap-")


def test_allocated_object_is_written(tmp_path):
    w = SegmentWriter(str(tmp_path / "obj"), None, WriteMode.SINGLE_FILE)
    obj = w.allocate_object(4)
    assert isinstance(obj, QueuedObject)
    assert obj.data == bytearray(4)
    obj.data[:] = b"wxyz"
    assert w.write_object(obj) == 4
    assert _wait_for(lambda: w.recording_size() == 4)
    name = w.current_filename()
    w.close()
    with open(name, "rb") as fh:
        assert fh.read() == b"wxyz"


def test_allocate_negative_length_rejected(tmp_path):
    with SegmentWriter(str(tmp_path / "neg"), None, WriteMode.SINGLE_FILE) as w:
        with pytest.raises(ValueError):
            w.allocate_object(-1)


def test_write_after_close_raises(tmp_path):
    w = SegmentWriter(str(tmp_path / "closed"), None, WriteMode.SINGLE_FILE)
    w.close()
    with pytest.raises(RuntimeError):
        w.write(b"late")
    with pytest.raises(NotRecordingError):
        w.recording_size()


def test_write_mode_values():
    assert WriteMode(0) is WriteMode.SINGLE_FILE
    assert WriteMode(1) is WriteMode.SEGMENTED
    with pytest.raises(ValueError):
        WriteMode(2)


def test_many_writes_preserve_content(tmp_path):
    w = SegmentWriter(str(tmp_path / "many"), None, WriteMode.SINGLE_FILE)
    chunks = [bytes([i % 256]) * 3 for i in range(1500)]
    for chunk in chunks:
        w.write(chunk)
    total = sum(len(c) for c in chunks)
    assert _wait_for(lambda: w.recording_size() == total)
    assert w.segment_count() == 1
    name = w.current_filename()
    w.close()
    with open(name, "rb") as fh:
        assert fh.read() == b"".join(chunks)