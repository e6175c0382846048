"""Little-endian readers and sub-byte row (un)packing shared by the BMP and bip codecs."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from errors import FormatError, TruncatedDataError, UnsupportedDepthError

SUB_BYTE_DEPTHS = (1, 2, 4, 8)


@dataclass(frozen=True)
class RasterHeader:
    """Geometry every header front end reduces to before rows are unpacked."""

    kind: str  # "bmp", "icon" or "bip"
    width: int
    height: int
    bit_depth: int
    color_count: int
    data_offset: int


def read_u16_le(data, offset: int = 0) -> int:
    """Convert 2 bytes to unsigned 16-bit integer (little-endian)"""
    if offset < 0 or offset + 2 > len(data):
        raise TruncatedDataError(f"Cannot read u16 at offset {offset}: buffer is {len(data)} bytes")
    return data[offset] + (data[offset + 1] << 8)


def read_u32_le(data, offset: int = 0) -> int:
    """Convert 4 bytes to unsigned 32-bit integer (little-endian)"""
    if offset < 0 or offset + 4 > len(data):
        raise TruncatedDataError(f"Cannot read u32 at offset {offset}: buffer is {len(data)} bytes")
    return (data[offset] +
            (data[offset + 1] << 8) +
            (data[offset + 2] << 16) +
            (data[offset + 3] << 24))


def aligned_stride(width: int, bit_depth: int) -> int:
    """BMP row length in bytes, padded to a 4-byte boundary."""
    return ((bit_depth * width + 31) // 32) * 4


def packed_stride(width: int, bit_depth: int) -> int:
    return (width * bit_depth + 7) // 8


def take_region(data, offset: int, size: int, what: str = "bitmap data"):
    chunk = data[offset:offset + size]
    if len(chunk) != size:
        raise TruncatedDataError(
            f"Truncated {what}: expected {size} bytes at offset {offset}, got {len(chunk)}"
        )
    return chunk


def _as_bytes_array(row) -> np.ndarray:
    if isinstance(row, np.ndarray):
        return row.astype(np.uint8, copy=False).reshape(-1)
    return np.frombuffer(bytes(row), dtype=np.uint8)


def unpack_sub_byte_row(row, bit_depth: int) -> np.ndarray:
    """Split a packed row into ``bit_depth``-wide fields, most significant bits first.

    Returns one value per field that fits in the row, so callers trim to the
    pixel width themselves.
    """
    if bit_depth not in SUB_BYTE_DEPTHS:
        raise UnsupportedDepthError(f"Cannot unpack fields of {bit_depth} bits")
    raw = _as_bytes_array(row)
    if bit_depth == 8:
        return raw.copy()
    bits = np.unpackbits(raw).reshape(-1, bit_depth)
    weights = 1 << np.arange(bit_depth - 1, -1, -1)
    return (bits * weights).sum(axis=1).astype(np.uint8)


def pack_sub_byte_row(indices, bit_depth: int) -> bytes:
    """Inverse of :func:`unpack_sub_byte_row`; the last partial byte is zero-filled."""
    if bit_depth not in SUB_BYTE_DEPTHS:
        raise UnsupportedDepthError(f"Cannot pack fields of {bit_depth} bits")
    idx = np.asarray(indices, dtype=np.uint8).reshape(-1)
    if idx.size and int(idx.max()) >= (1 << bit_depth):
        raise ValueError(f"Index {int(idx.max())} does not fit in {bit_depth} bits")
    if bit_depth == 8:
        return idx.tobytes()
    shifts = np.arange(bit_depth - 1, -1, -1, dtype=np.uint8)
    bits = (idx[:, None] >> shifts) & 1
    return np.packbits(bits.reshape(-1).astype(np.uint8)).tobytes()


def unpack_rows(data, offset: int, stride: int, width: int, height: int, bit_depth: int,
                what: str = "pixel data") -> np.ndarray:
    """Unpack ``height`` rows of ``stride`` bytes into a ``(height, width)`` index array.

    Rows are returned in storage order; flipping is up to the caller.
    """
    region = take_region(data, offset, stride * height, what)
    rows = np.frombuffer(bytes(region), dtype=np.uint8).reshape(height, stride)
    out = np.zeros((height, width), dtype=np.uint8)
    for y in range(height):
        fields = unpack_sub_byte_row(rows[y], bit_depth)
        if len(fields) < width:
            raise FormatError(
                f"Row of {stride} bytes holds {len(fields)} pixels at {bit_depth} bpp, need {width}"
            )
        out[y] = fields[:width]
    return out
