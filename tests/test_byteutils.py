import numpy as np
import pytest

from byteutils import (
    aligned_stride,
    pack_sub_byte_row,
    packed_stride,
    read_u16_le,
    read_u32_le,
    take_region,
    unpack_rows,
    unpack_sub_byte_row,
)
from errors import FormatError, TruncatedDataError, UnsupportedDepthError


def test_read_little_endian():
    buf = bytes([0x34, 0x12, 0x78, 0x56, 0xFF, 0xFF])
    assert read_u16_le(buf, 0) == 0x1234
    assert read_u32_le(buf, 0) == 0x56781234
    assert read_u16_le(buf, 4) == 0xFFFF


@pytest.mark.parametrize("reader,offset", [
    (read_u16_le, 3),
    (read_u32_le, 1),
    (read_u32_le, -1),
])
def test_read_past_end_is_truncated(reader, offset):
    with pytest.raises(TruncatedDataError):
        reader(b"\x00\x01\x02\x03", offset)


def test_unpack_msb_first():
    assert unpack_sub_byte_row(b"\xA5", 1).tolist() == [1, 0, 1, 0, 0, 1, 0, 1]
    assert unpack_sub_byte_row(b"\x1B", 2).tolist() == [0, 1, 2, 3]
    assert unpack_sub_byte_row(b"\x3C\xF0", 4).tolist() == [3, 12, 15, 0]
    assert unpack_sub_byte_row(b"\x07\xFE", 8).tolist() == [7, 254]


def test_unpack_yields_every_field_in_the_row():
    assert len(unpack_sub_byte_row(b"\x00\x00\x00", 4)) == 6
    assert len(unpack_sub_byte_row(b"\x00\x00", 1)) == 16


@pytest.mark.parametrize("depth", [0, 3, 16, 24])
def test_unpack_rejects_depth(depth):
    with pytest.raises(UnsupportedDepthError):
        unpack_sub_byte_row(b"\x00", depth)


def test_pack_zero_fills_last_byte():
    assert pack_sub_byte_row([1, 0, 1], 1) == b"\xA0"
    assert pack_sub_byte_row([3, 12, 5], 4) == b"\x3C\x50"
    assert pack_sub_byte_row([0, 1, 2, 3, 1], 2) == b"\x1B\x40"
    assert pack_sub_byte_row([9, 200], 8) == b"\x09\xC8"
    assert pack_sub_byte_row([], 4) == b""


def test_pack_inverts_unpack():
    indices = [1, 7, 0, 15, 3, 3, 9, 12]
    packed = pack_sub_byte_row(indices, 4)
    assert unpack_sub_byte_row(packed, 4).tolist() == indices


def test_pack_rejects_wide_index():
    with pytest.raises(ValueError):
        pack_sub_byte_row([0, 2], 1)


def test_strides():
    assert aligned_stride(1, 1) == 4
    assert aligned_stride(33, 1) == 8
    assert aligned_stride(3, 24) == 12
    assert aligned_stride(5, 24) == 16
    assert aligned_stride(9, 8) == 12
    assert aligned_stride(0, 24) == 0
    assert packed_stride(3, 1) == 1
    assert packed_stride(9, 1) == 2
    assert packed_stride(3, 4) == 2
    assert packed_stride(5, 8) == 5


def test_take_region():
    assert take_region(b"abcdef", 2, 3) == b"cde"
    with pytest.raises(TruncatedDataError):
        take_region(b"abcdef", 4, 3)


def test_unpack_rows_trims_to_width():
    rows = unpack_rows(b"\xFF\x00\x80\x00", 0, 2, 3, 2, 1)
    assert rows.shape == (2, 3)
    assert rows.dtype == np.uint8
    assert rows.tolist() == [[1, 1, 1], [1, 0, 0]]


def test_unpack_rows_honours_offset():
    rows = unpack_rows(b"\xAA\xAA\x12\x34", 2, 1, 2, 2, 4)
    assert rows.tolist() == [[1, 2], [3, 4]]


def test_unpack_rows_truncated():
    with pytest.raises(TruncatedDataError):
        unpack_rows(b"\x00\x00\x00", 0, 2, 8, 2, 1)


def test_unpack_rows_short_stride():
    with pytest.raises(FormatError):
        unpack_rows(b"\x00\x00", 0, 1, 9, 2, 1)
