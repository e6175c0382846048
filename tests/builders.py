"""Hand-assembled BMP, icon and bip buffers for the tests."""

import struct


def bmp_stride(width, depth):
    return ((depth * width + 31) // 32) * 4


def bmp_file(width, height, depth, rows, palette=(), colors_used=None, magic=b"BM"):
    """``rows`` are top-down, unpadded; ``palette`` entries are BGRA tuples."""
    stride = bmp_stride(width, depth)
    body = b"".join(bytes(r).ljust(stride, b"\0") for r in reversed(rows))
    pal = b"".join(bytes(c) for c in palette)
    if colors_used is None:
        colors_used = len(palette)
    offset = 14 + 40 + len(pal)
    dib = struct.pack("<IiiHHIIiiII", 40, width, height, 1, depth, 0, len(body), 0, 0,
                      colors_used, colors_used)
    return struct.pack("<2sIHHI", magic, offset + len(body), 0, 0, offset) + dib + pal + body


def icon_data(width, height, depth, rows, mask_rows=(), palette=(), colors_used=None):
    """Icon resource bitmap: DIB header with doubled height, XOR rows then AND rows."""
    stride = bmp_stride(width, depth)
    xor = b"".join(bytes(r).ljust(stride, b"\0") for r in reversed(rows))
    and_stride = bmp_stride(width, 1)
    and_ = b"".join(bytes(r).ljust(and_stride, b"\0") for r in reversed(mask_rows))
    pal = b"".join(bytes(c) for c in palette)
    if colors_used is None:
        colors_used = len(palette)
    dib = struct.pack("<IiiHHIIiiII", 40, width, height * 2, 1, depth, 0, 0, 0, 0,
                      colors_used, 0)
    return dib + pal + xor + and_


def bip_file(width, height, depth, palette, rows, stride=None, transp=0):
    """``palette`` entries are RGBA tuples, ``rows`` are packed top-down rows."""
    if stride is None:
        stride = (width * depth + 7) // 8
    head = b"BMd\x00" + struct.pack("<6H", width, height, stride, depth, len(palette), transp)
    return head + b"".join(bytes(c) for c in palette) + b"".join(bytes(r) for r in rows)
