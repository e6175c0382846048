"""Minimal BMP writer with an adaptively chosen bit depth and palette."""

from __future__ import annotations

import logging
from collections import namedtuple
from dataclasses import dataclass, field
from typing import Union

import numpy as np

from byteutils import aligned_stride, pack_sub_byte_row
from config import BMP_FILE_HEADER_SIZE, DIB_HEADER_SIZE

log = logging.getLogger(__name__)

Pixel = namedtuple("Pixel", "r g b a")


@dataclass(frozen=True)
class IndexedEncode:
    bit_depth: int
    palette: list = field(default_factory=list)  # Pixel entries, index = position


@dataclass(frozen=True)
class TrueColorEncode:
    bit_depth: int = 24


Encoding = Union[IndexedEncode, TrueColorEncode]


def choose_encoding(palette: list) -> Encoding:
    """Pick the smallest depth that can index every colour in ``palette``."""
    if len(palette) <= 2:
        return IndexedEncode(1, palette)
    if len(palette) <= 16:
        return IndexedEncode(4, palette)
    if len(palette) <= 256:
        return IndexedEncode(8, palette)
    return TrueColorEncode()


def _as_rgba_array(width: int, height: int, pixels) -> np.ndarray:
    arr = np.asarray(pixels, dtype=np.uint8)
    if arr.size == 0:
        arr = arr.reshape(height, width, 4)
    if arr.shape != (height, width, 4):
        raise ValueError(f"Expected {height}x{width} RGBA pixels, got shape {arr.shape}")
    return arr


def build_palette(rgba: np.ndarray) -> tuple[list, np.ndarray]:
    """Return distinct colours in first-seen order and the per-pixel index grid."""
    height, width = rgba.shape[:2]
    wide = rgba.astype(np.uint32)
    keys = ((wide[..., 0] << 24) | (wide[..., 1] << 16) | (wide[..., 2] << 8) | wide[..., 3]).reshape(-1)

    uniq, first, inverse = np.unique(keys, return_index=True, return_inverse=True)
    order = np.argsort(first)
    rank = np.empty_like(order)
    rank[order] = np.arange(len(order))

    palette = [
        Pixel(int(k >> 24) & 0xFF, int(k >> 16) & 0xFF, int(k >> 8) & 0xFF, int(k) & 0xFF)
        for k in uniq[order]
    ]
    return palette, rank[inverse.reshape(-1)].reshape(height, width)


def _headers(width: int, height: int, encoding: Encoding, image_size: int) -> bytearray:
    colors_used = len(encoding.palette) if isinstance(encoding, IndexedEncode) else 0
    data_offset = BMP_FILE_HEADER_SIZE + DIB_HEADER_SIZE + colors_used * 4
    file_size = data_offset + image_size

    header = bytearray()
    # file header
    header.extend(b"BM")
    header.extend(file_size.to_bytes(4, "little"))
    header.extend((0).to_bytes(4, "little"))  # reserved
    header.extend(data_offset.to_bytes(4, "little"))
    # DIB header (BITMAPINFOHEADER)
    header.extend(DIB_HEADER_SIZE.to_bytes(4, "little"))
    header.extend(width.to_bytes(4, "little", signed=True))
    header.extend(height.to_bytes(4, "little", signed=True))
    header.extend((1).to_bytes(2, "little"))  # planes
    header.extend(encoding.bit_depth.to_bytes(2, "little"))
    header.extend((0).to_bytes(4, "little"))  # BI_RGB
    header.extend(image_size.to_bytes(4, "little"))
    header.extend((0).to_bytes(4, "little", signed=True))  # x pixels per meter
    header.extend((0).to_bytes(4, "little", signed=True))  # y pixels per meter
    header.extend(colors_used.to_bytes(4, "little"))
    header.extend(colors_used.to_bytes(4, "little"))  # important colours
    return header


def make_bitmap_file(width: int, height: int, pixels) -> bytes:
    """Encode a top-down grid of ``(r, g, b, a)`` pixels as an uncompressed BMP.

    ``pixels`` may be a list of rows or an ``(height, width, 4)`` array. Grids
    of up to 256 colours are written palette-indexed at 1, 4 or 8 bits; larger
    ones as 24-bit BGR.
    """
    rgba = _as_rgba_array(width, height, pixels)
    palette, indices = build_palette(rgba)
    if not palette:
        # empty grids still carry one entry so readers find the palette they expect
        palette = [Pixel(0, 0, 0, 0)]
    encoding = choose_encoding(palette)
    log.debug("Encoding %dx%d bitmap with %d colours at %d bpp (%s)",
              width, height, len(palette), encoding.bit_depth, type(encoding).__name__)

    stride = aligned_stride(width, encoding.bit_depth)
    rows = np.zeros((height, stride), dtype=np.uint8)
    if isinstance(encoding, IndexedEncode):
        for y in range(height):
            packed = pack_sub_byte_row(indices[y], encoding.bit_depth)
            rows[y, :len(packed)] = np.frombuffer(packed, dtype=np.uint8)
    else:
        rows[:, :width * 3] = rgba[..., [2, 1, 0]].reshape(height, width * 3)

    out = _headers(width, height, encoding, stride * height)
    if isinstance(encoding, IndexedEncode):
        for color in encoding.palette:
            out.extend((color.b, color.g, color.r, 0))
    # bottom-up row order
    out.extend(rows[::-1].tobytes())
    return bytes(out)


def save_bmp(path: str, width: int, height: int, pixels) -> int:
    blob = make_bitmap_file(width, height, pixels)
    with open(path, "wb") as f:
        f.write(blob)
    return len(blob)
