# ltnts

Building blocks for working with MPEG transport streams, using only the
Python standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `ltnts.bitstream`: `BitWriter` writes bits MSB first into a fixed-size
  buffer. `write_bit`, `write_bits`, `byte_stuff`, `complete`, `getvalue` and
  `save` are available, and a `BufferError` is raised when the buffer is full.
  `BitReader` reads bits back with `read_bit`, `read_bits`, `peek_bits`,
  `byte_stuff` and `peek_binary`, and raises `EOFError` at the end of the data.
  `bitmove` transfers bits from a reader to a writer and consumes them.
  `bitcopy` does the same but leaves the reader untouched.
- `ltnts.memsearch`: `memmem(haystack, needle)` returns the offset of the
  first match, or -1 if there is none.
- `ltnts.timeval`: `Timeval(sec, usec)` has the methods `to_ms`, `to_us` and
  `Timeval.now()`. `subtract_ms` and `subtract_us` give the difference between
  two values.
- `ltnts.sei_timestamp`: handles SEI latency payloads. A payload is a 16-byte
  UUID followed by nine 32-bit fields, each split by delimiter bytes. The
  functions are `alloc_payload`, `init_payload`, `field_set`, `field_get`,
  `find_uuid`, `timeval_set`, `timeval_query`, `codec_latency_ms` and `hexdump`.
  `hexdump` returns a string. A field number outside 1..9 raises `ValueError`.
- `ltnts.packet`: reads the header fields of 188-byte packets. These are `pid`,
  the TEI, PUSI and scrambling bits, the adaptation field control and length,
  and the continuity counter. `is_cc_in_error` checks continuity counters.
  `crc32_mpeg` and `check_crc32` handle section CRCs. `iter_packets` splits an
  aligned buffer into packets and raises `ValueError` if the length is not a
  multiple of 188.
- `ltnts.sectionextractor`: `SectionExtractor(pid, table_id)` rebuilds one PSI
  section. `write(packets)` returns a `WriteResult` with the fields
  `bytes_copied`, `complete` and `crc_valid`. `query()` returns the finished
  section bytes, or `None` if the section is not complete yet.
- `ltnts.stats`: `StreamStatistics` counts packets, CC errors, TEI errors and
  scrambled packets, for the whole stream and for each PID (`PidStatistics`).
  It also keeps rates that roll over every second, and sets them to zero after
  two seconds with no updates. Data goes in through `pid_update`,
  `bytestream_update` and `ctp_update`. Values come out through the rate
  accessors, `padding_pct` and `report()`, which returns a text table.
- `ltnts.segmentwriter`: `SegmentWriter(prefix, suffix=".ts",
  mode=WriteMode.SINGLE_FILE)` writes queued data from a background thread.
  Each file is named `<prefix>-YYYYMMDD-HHMMSS<suffix>`. In
  `WriteMode.SEGMENTED` a new file starts every 60 seconds. `set_header` sets
  bytes that are written at the start of every file. You can queue a block
  that you fill yourself with `allocate_object` and `write_object`. While no
  file is open, the query methods (`current_filename`, `segment_count`,
  `recording_size`, `recording_start_time`, `freespace_pct`) raise
  `NotRecordingError`.
- `ltnts.smoother_pcr`: `PcrSmoother(callback, items_per_second,
  item_length_bytes, pcr_pid, latency_ms)` cuts the stream into intervals
  between PCRs on `pcr_pid`. It splits each interval into chunks of up to seven
  packets and calls `callback(data, positions)` when each chunk is due.
  `positions` lists a `PcrPosition` (pid, offset, pcr) for every packet in the
  chunk. The module also provides `scr_diff`, `scr_add`, `read_pcr` and
  `query_pcrs`.

## Examples

Writing and reading bits:

```python
from ltnts.bitstream import BitWriter, BitReader

w = BitWriter(4)
w.write_bits(0x101, 9)
w.complete()
r = BitReader(w.getvalue())
assert r.read_bits(9) == 0x101
```

Recording in one-minute segments. `close()` (or leaving the `with` block)
throws away anything still queued, so wait for the queue to drain first:

```python
import time
from ltnts.segmentwriter import SegmentWriter, WriteMode

with SegmentWriter("/tmp/recording", ".ts", WriteMode.SEGMENTED) as writer:
    writer.write(b"\x47" + bytes(187))
    while writer.queue_depth():
        time.sleep(0.01)
```

Pacing packets by PCR:

```python
from ltnts.smoother_pcr import PcrSmoother

def emit(data, positions):
    ...

with PcrSmoother(emit, 100, 7 * 188, 0x31, 200) as smoother:
    smoother.write(packets)
```

## What it does not do

This is a library only. It has no command-line program. It does not capture
from the network or read stream files itself, because the caller supplies all
the bytes. It does not build a model of programs and services from PAT or PMT
tables, and it does not raise broadcast monitoring alarms. `StreamStatistics`
counts continuity and transport errors but does not measure PCR timing.