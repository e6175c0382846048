"""Device bitmaps ("bip") for a display with one bit per colour channel."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

from BMPParser import decode_bmp
from BMPWriter import Pixel, make_bitmap_file
from byteutils import SUB_BYTE_DEPTHS, RasterHeader, packed_stride, read_u16_le, take_region, unpack_rows
from config import BIP_ASSET_TYPE, BIP_HEADER_SIZE, BIP_MAGIC, CHANNEL_THRESHOLD
from errors import FormatError, StrideMismatchError, TypeMismatchError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BipColor:
    """A sub pixel on the device is either on or off, so channels are booleans."""

    r: bool
    g: bool
    b: bool
    a: bool

    @classmethod
    def from_bytes(cls, r: int, g: int, b: int, a: int) -> "BipColor":
        return cls(r > CHANNEL_THRESHOLD, g > CHANNEL_THRESHOLD,
                   b > CHANNEL_THRESHOLD, a > CHANNEL_THRESHOLD)

    def to_css_color(self) -> str:
        return f"rgb({255 if self.r else 0} {255 if self.g else 0} {255 if self.b else 0})"

    def to_int_color(self) -> Pixel:
        return Pixel(
            255 if self.r else 0,
            255 if self.g else 0,
            255 if self.b else 0,
            255 if self.a else 0,
        )

    def clone(self) -> "BipColor":
        return BipColor(self.r, self.g, self.b, self.a)


@dataclass
class FileAsset:
    """In-memory stand-in for a resource container entry."""

    type_name: str
    data: bytes

    def type(self) -> str:
        return self.type_name

    @classmethod
    def from_path(cls, path: str, type_name: str = BIP_ASSET_TYPE) -> "FileAsset":
        with open(path, "rb") as f:
            return cls(type_name, f.read())


class BipBitmap:
    """A bitmap in the device format.

    The file layout differs from BMP: a ``BMd\\0`` magic, six u16 fields
    (width, height, stride, bit depth, palette length, transparency), an RGBA
    palette and tightly packed, top-down rows of palette indices.
    """

    header_magic = BIP_MAGIC

    def __init__(self, asset=None):
        if asset is not None and asset.type() != BIP_ASSET_TYPE:
            raise TypeMismatchError(
                f'Expected "{BIP_ASSET_TYPE}" asset type, but got "{asset.type()}"'
            )
        buf = bytes(asset.data) if asset is not None else bytes(BIP_HEADER_SIZE)

        self.width = read_u16_le(buf, 4)
        self.height = read_u16_le(buf, 6)
        self.stride = read_u16_le(buf, 8)
        self.bit_depth = read_u16_le(buf, 0xA)
        palette_len = read_u16_le(buf, 0xC)
        self.transp = read_u16_le(buf, 0xE) > 0

        raw_palette = take_region(buf, BIP_HEADER_SIZE, palette_len * 4, "bip palette")
        self.palette = [
            BipColor.from_bytes(*raw_palette[off:off + 4])
            for off in range(0, len(raw_palette), 4)
        ]
        self.data = self._parse_rows(buf)

    def raster_header(self) -> RasterHeader:
        return RasterHeader(
            kind="bip",
            width=self.width,
            height=self.height,
            bit_depth=self.bit_depth,
            color_count=len(self.palette),
            data_offset=BIP_HEADER_SIZE + len(self.palette) * 4,
        )

    def _parse_rows(self, buf):
        if self.height == 0:
            return []
        row_len = packed_stride(self.width, self.bit_depth)
        if self.stride != row_len:
            raise StrideMismatchError(
                f"stride (= {self.stride}) is not equal to rowLen (= {row_len})"
            )

        header = self.raster_header()
        indices = unpack_rows(buf, header.data_offset, row_len, self.width, self.height,
                              self.bit_depth, what="bip pixel data")
        if indices.size and int(indices.max()) >= len(self.palette):
            raise FormatError(
                f"Palette index {int(indices.max())} out of range for {len(self.palette)} colors"
            )
        log.debug("Unpacked %d bip rows of %d pixels at %d bpp", self.height, self.width, self.bit_depth)

        # every cell owns its colour value; nothing points back into the palette
        return [[self.palette[i].clone() for i in row] for row in indices.tolist()]

    def header(self) -> dict:
        return {
            "width": self.width,
            "height": self.height,
            "stride": self.stride,
            "bit_depth": self.bit_depth,
            "palette_length": len(self.palette),
            "transparent": self.transp,
        }

    @classmethod
    def from_bmp(cls, buf) -> "BipBitmap":
        """Make a BipBitmap from a BMP file held in memory."""
        bm = cls()
        decoded = decode_bmp(buf)
        bm.width = decoded.width
        bm.height = decoded.height
        # TODO: derive transparency from decoded alpha once the device semantics are confirmed
        bm.transp = False
        on = decoded.pixels > CHANNEL_THRESHOLD
        bm.data = [[BipColor(*map(bool, px)) for px in row] for row in on.tolist()]

        # distinct colours in first-seen order; at most 16 exist on the device
        bm.palette = [c.clone() for c in dict.fromkeys(c for row in bm.data for c in row)]
        bm.bit_depth = next(d for d in SUB_BYTE_DEPTHS if len(bm.palette) <= 1 << d)
        bm.stride = packed_stride(bm.width, bm.bit_depth)
        return bm

    def to_int_pixels(self) -> np.ndarray:
        pixels = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        for y, row in enumerate(self.data):
            for x, color in enumerate(row):
                pixels[y, x] = color.to_int_color()
        return pixels

    def to_bmp(self) -> bytes:
        return make_bitmap_file(
            self.width,
            self.height,
            [[c.to_int_color() for c in row] for row in self.data],
        )

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.to_int_pixels())

    def pack(self) -> bytes:
        """Serialising back to the device format is not supported; returns ``b""``."""
        log.warning("BipBitmap.pack() is not supported yet; returning an empty buffer")
        return b""


def load_bip(path: str) -> BipBitmap:
    return BipBitmap(FileAsset.from_path(path))


def is_bip(data: bytes) -> bool:
    return bytes(data[:4]) == BipBitmap.header_magic
