import pytest

from ltnts.bitstream import BitReader, BitWriter, bitcopy, bitmove


def test_nine_bit_round_trip():
    writer = BitWriter(4)
    writer.write_bits(0x101, 9)
    writer.write_bits(0x3, 2)
    writer.byte_stuff(0)
    reader = BitReader(writer.getvalue())
    assert reader.read_bits(9) == 0x101
    assert reader.read_bits(2) == 0x3


def test_whole_byte_written_as_is():
    writer = BitWriter(2)
    writer.write_bits(0xA5, 8)
    assert writer.getvalue() == b"\xa5"
    assert len(writer) == 1


def test_byte_stuff_with_ones():
    writer = BitWriter(1)
    writer.write_bits(0b101, 3)
    writer.byte_stuff(1)
    assert writer.getvalue() == b"\xbf"


def test_complete_pads_with_zeros():
    writer = BitWriter(2)
    writer.write_bit(1)
    writer.complete()
    assert writer.getvalue() == b"\x80"


def test_complete_when_aligned_changes_nothing():
    writer = BitWriter(2)
    writer.write_bits(0x5A, 8)
    writer.complete()
    assert writer.getvalue() == bytes([0x5A])


def test_writer_overflow_raises():
    writer = BitWriter(1)
    writer.write_bits(0xFF, 8)
    with pytest.raises(BufferError):
        writer.write_bits(0xFF, 8)


def test_reader_nibbles_and_eof():
    data = bytes([0xA5, 0x0F])
    reader = BitReader(data)
    assert reader.read_bits(4) == data[0] >> 4
    assert reader.read_bits(4) == data[0] & 0x0F
    assert reader.read_bits(8) == data[1]
    with pytest.raises(EOFError):
        reader.read_bit()


def test_aligned_byte_read_at_end_raises():
    reader = BitReader(b"\x01")
    assert reader.read_bits(8) == 1
    with pytest.raises(EOFError):
        reader.read_bits(8)


def test_peek_does_not_advance():
    reader = BitReader(b"\x12\x34\x56")
    first = reader.peek_bits(12)
    assert reader.peek_bits(12) == first
    assert reader.read_bits(12) == first
    assert len(reader) == 2


def test_reader_byte_stuff_realigns():
    data = b"\xff\x42"
    reader = BitReader(data)
    reader.read_bits(3)
    reader.byte_stuff()
    assert reader.read_bits(8) == data[1]


def test_peek_binary_groups_bytes():
    reader = BitReader(b"\xa5\x0f")
    assert reader.peek_binary(12) == "10100101 0000"
    assert reader.read_bits(8) == 0xA5


def test_peek_binary_stops_at_end():
    reader = BitReader(b"\x00")
    assert reader.peek_binary(20).strip() == "0" * 8


def test_bitcopy_leaves_source():
    data = b"\xde\xad"
    src = BitReader(data)
    dst = BitWriter(2)
    bitcopy(dst, src, 16)
    assert dst.getvalue() == data
    assert src.read_bits(16) == int.from_bytes(data, "big")


def test_bitmove_consumes_source():
    data = b"\xbe\xef"
    src = BitReader(data)
    dst = BitWriter(1)
    bitmove(dst, src, 8)
    assert dst.getvalue() == data[:1]
    assert src.read_bits(8) == data[1]


def test_save_writes_used_bytes(tmp_path):
    writer = BitWriter(8)
    writer.write_bits(0x1234, 16)
    path = tmp_path / "out.bin"
    writer.save(path)
    assert path.read_bytes() == writer.getvalue()
    assert len(path.read_bytes()) == 2