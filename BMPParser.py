#!/usr/bin/env python3
# BMP Parser - decodes standard and icon-resource bitmaps into RGBA arrays

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image

from byteutils import (
    RasterHeader,
    aligned_stride,
    read_u16_le,
    read_u32_le,
    take_region,
    unpack_rows,
)
from config import BMP_FILE_HEADER_SIZE, BMP_MAGIC
from errors import FormatError, UnsupportedDepthError

log = logging.getLogger(__name__)

PALETTE_DEPTHS = (1, 2, 4, 8)
TRUE_COLOR_DEPTHS = (24, 32)


@dataclass
class DecodedBitmap:
    width: int
    height: int
    bit_depth: int
    pixels: np.ndarray  # (height, width, 4) uint8 RGBA, top row first

    @property
    def data(self) -> bytes:
        """Flat RGBA bytes, row-major from the top-left pixel."""
        return self.pixels.tobytes()

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels)


class BMPParser:
    def __init__(self, data, width=0, height=0, icon=False):
        self.data = bytes(data)
        # icon resources may leave the dimensions out of the header
        self.icon_width = width
        self.icon_height = height
        self.icon = icon
        self.file_header = {}
        self.info_header = {}
        self.header = None
        self.parsed = False

    def bytes_to_int32_le(self, data, offset=0):
        """Convert 4 bytes to signed 32-bit integer (little-endian)"""
        value = read_u32_le(data, offset)
        # Handle two's complement for negative numbers
        if value >= 2**31:
            value -= 2**32
        return value

    def get_compression_name(self, compression_code):
        """Convert compression code to readable name"""
        compressions = {
            0: "BI_RGB (No compression)",
            1: "BI_RLE8 (8-bit RLE)",
            2: "BI_RLE4 (4-bit RLE)",
            3: "BI_BITFIELDS",
            4: "BI_JPEG",
            5: "BI_PNG"
        }
        return compressions.get(compression_code, f"Unknown ({compression_code})")

    def format_file_size(self, size_bytes):
        """Format file size in human readable format"""
        if size_bytes < 1024:
            return f"{size_bytes} bytes"
        elif size_bytes < 1024 * 1024:
            return f"{size_bytes:,} bytes ({size_bytes/1024:.1f} KB)"
        else:
            return f"{size_bytes:,} bytes ({size_bytes/1024/1024:.1f} MB)"

    def get_color_depth_description(self, bits_per_pixel):
        """Get description of color depth"""
        descriptions = {
            1: "1-bit (Monochrome)",
            2: "2-bit (4 colors)",
            4: "4-bit (16 colors)",
            8: "8-bit (256 colors)",
            16: "16-bit (High Color)",
            24: "24-bit (True Color)",
            32: "32-bit (True Color + Alpha)"
        }
        return descriptions.get(bits_per_pixel, f"{bits_per_pixel}-bit")

    def _read_info_header(self, base):
        d = self.data
        return {
            'header_size': read_u32_le(d, base),
            'width': read_u32_le(d, base + 4),
            'height': read_u32_le(d, base + 8),
            'planes': read_u16_le(d, base + 12),
            'bits_per_pixel': read_u16_le(d, base + 14),
            'compression': read_u32_le(d, base + 16),
            'image_size': read_u32_le(d, base + 20),
            'x_pixels_per_meter': self.bytes_to_int32_le(d, base + 24),
            'y_pixels_per_meter': self.bytes_to_int32_le(d, base + 28),
            'colors_used': read_u32_le(d, base + 32),
            'colors_important': read_u32_le(d, base + 36),
        }

    def _parse_standard_header(self):
        d = self.data
        magic = read_u16_le(d, 0)
        if magic != BMP_MAGIC:
            raise FormatError(f"Invalid magic byte 0x{magic:x}")

        self.file_header = {
            'signature': 'BM',
            'file_size': read_u32_le(d, 2),
            'reserved1': read_u16_le(d, 6),
            'reserved2': read_u16_le(d, 8),
            'data_offset': read_u32_le(d, 10),
        }
        self.info_header = self._read_info_header(BMP_FILE_HEADER_SIZE)
        info = self.info_header
        # palette sits right after the DIB header; bfOffBits is not trusted
        return RasterHeader(
            kind="bmp",
            width=info['width'],
            height=info['height'],
            bit_depth=info['bits_per_pixel'],
            color_count=info['colors_used'],
            data_offset=BMP_FILE_HEADER_SIZE + info['header_size'],
        )

    def _parse_icon_header(self):
        self.file_header = {}
        self.info_header = self._read_info_header(0)
        info = self.info_header
        # icon data stacks the XOR and AND masks, so the stored height is doubled
        return RasterHeader(
            kind="icon",
            width=info['width'],
            height=info['height'] // 2,
            bit_depth=info['bits_per_pixel'],
            color_count=info['colors_used'],
            data_offset=info['header_size'],
        )

    def parse(self):
        """Parse the BMP headers and return the raster geometry"""
        raw = self._parse_icon_header() if self.icon else self._parse_standard_header()

        color_count = raw.color_count
        if color_count == 0 and raw.bit_depth <= 8:
            color_count = 1 << raw.bit_depth

        self.header = RasterHeader(
            kind=raw.kind,
            width=raw.width or self.icon_width,
            height=raw.height or self.icon_height,
            bit_depth=raw.bit_depth,
            color_count=color_count,
            data_offset=raw.data_offset,
        )
        self.parsed = True
        log.debug("Parsed %s header: %s", raw.kind, self.header)
        return self.header

    def decode(self):
        """Decode the pixel data into a top-down RGBA array"""
        header = self.header if self.parsed else self.parse()
        body = self.data[header.data_offset:]

        if header.color_count:
            pixels = self._decode_palette(body, header)
        else:
            pixels = self._decode_true_color(body, header)

        return DecodedBitmap(
            width=header.width,
            height=header.height,
            bit_depth=header.bit_depth,
            pixels=pixels,
        )

    def _and_mask(self, body, offset, width, height):
        stride = aligned_stride(width, 1)
        return unpack_rows(body, offset, stride, width, height, 1, what="AND mask") != 0

    def _decode_true_color(self, body, header):
        width, height, depth = header.width, header.height, header.bit_depth
        if depth not in TRUE_COLOR_DEPTHS:
            raise UnsupportedDepthError(f"A color depth of {depth} is not supported")

        bpp = depth // 8
        stride = aligned_stride(width, depth)
        region = take_region(body, 0, stride * height, "pixel data")
        rows = np.frombuffer(bytes(region), dtype=np.uint8).reshape(height, stride)
        bgr = rows[:, :width * bpp].reshape(height, width, bpp)

        out = np.empty((height, width, 4), dtype=np.uint8)
        out[..., 0] = bgr[..., 2]
        out[..., 1] = bgr[..., 1]
        out[..., 2] = bgr[..., 0]
        if depth == 32:
            out[..., 3] = bgr[..., 3]
        elif self.icon:
            mask = self._and_mask(body, stride * height, width, height)
            out[..., 3] = np.where(mask, 0, 255)
        else:
            out[..., 3] = 255

        return np.ascontiguousarray(out[::-1])

    def _decode_palette(self, body, header):
        width, height, depth = header.width, header.height, header.bit_depth
        count = header.color_count
        if depth not in PALETTE_DEPTHS:
            raise UnsupportedDepthError(f"A color depth of {depth} is not supported")

        palette_size = count * 4
        colors = np.frombuffer(bytes(take_region(body, 0, palette_size, "palette")), dtype=np.uint8)
        colors = colors.reshape(count, 4)  # BGRA

        stride = aligned_stride(width, depth)
        indices = unpack_rows(body, palette_size, stride, width, height, depth)
        if indices.size and int(indices.max()) >= count:
            raise FormatError(f"Palette index {int(indices.max())} out of range for {count} colors")

        out = np.empty((height, width, 4), dtype=np.uint8)
        out[..., :3] = colors[indices][..., [2, 1, 0]]
        if self.icon:
            mask = self._and_mask(body, palette_size + stride * height, width, height)
            out[..., 3] = np.where(mask, 0, 255)
        else:
            out[..., 3] = 255

        return np.ascontiguousarray(out[::-1])

    def get_summary(self):
        """Return a dictionary of key-value pairs for display"""
        if not self.parsed:
            raise ValueError("File not parsed yet. Call parse() first.")

        summary = {}
        size = self.file_header.get('file_size', len(self.data))
        summary["File Size"] = self.format_file_size(size)
        summary["Image Dimensions"] = f"{self.header.width} x {self.header.height} pixels"
        summary["Bits per pixel"] = self.get_color_depth_description(self.header.bit_depth)
        summary["Compression"] = self.get_compression_name(self.info_header['compression'])
        if self.header.color_count:
            summary["Palette Colors"] = str(self.header.color_count)
        return summary

    def get_raw_data(self):
        """Return raw parsed data for advanced users"""
        if not self.parsed:
            raise ValueError("File not parsed yet. Call parse() first.")

        return {
            'file_header': self.file_header,
            'info_header': self.info_header
        }


def decode_bmp(data, width=0, height=0, icon=False):
    """Decode a BMP (or icon-resource bitmap when ``icon``) held in memory."""
    return BMPParser(data, width=width, height=height, icon=icon).decode()


def load_bmp(path):
    with open(path, "rb") as f:
        return decode_bmp(f.read())
