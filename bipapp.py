#!/usr/bin/env python3
"""
bipapp.py

Command line front end for the BMP / bip converters.

Usage:
  bipapp.py info FILE
  bipapp.py bip2bmp IN.bip OUT.bmp
  bipapp.py quantize IN.bmp OUT.bmp
  bipapp.py preview IN OUT.png
"""

import argparse
import logging

from BMPParser import BMPParser
from bipbitmap import BipBitmap, FileAsset, is_bip
from config import BIP_ASSET_TYPE, LOG_LEVEL
from errors import BitmapError

log = logging.getLogger(__name__)


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size} bytes ({size/1024:.1f} KB)"
    return f"{size} bytes ({size/1024/1024:.1f} MB)"


def read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def write_file(path: str, blob: bytes):
    with open(path, "wb") as f:
        f.write(blob)
    log.info("Wrote %s to %s", format_size(len(blob)), path)


def cmd_info(args):
    data = read_file(args.file)
    if is_bip(data):
        bm = BipBitmap(FileAsset(BIP_ASSET_TYPE, data))
        summary = {k.replace("_", " ").title(): v for k, v in bm.header().items()}
        summary["File Size"] = format_size(len(data))
    else:
        parser = BMPParser(data)
        parser.parse()
        summary = parser.get_summary()
        if args.raw:
            for section, fields in parser.get_raw_data().items():
                summary.update({f"{section}.{k}": v for k, v in fields.items()})
    for field, value in summary.items():
        print(f"  {field}: {value}")
    return 0


def cmd_bip2bmp(args):
    bm = BipBitmap(FileAsset(BIP_ASSET_TYPE, read_file(args.input)))
    write_file(args.output, bm.to_bmp())
    return 0


def cmd_quantize(args):
    bm = BipBitmap.from_bmp(read_file(args.input))
    write_file(args.output, bm.to_bmp())
    return 0


def cmd_preview(args):
    data = read_file(args.input)
    if is_bip(data):
        img = BipBitmap(FileAsset(BIP_ASSET_TYPE, data)).to_image()
    else:
        img = BMPParser(data).decode().to_image()
    img.save(args.output)
    log.info("Saved preview %dx%d to %s", img.width, img.height, args.output)
    return 0


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Convert between BMP and bip device bitmaps")
    p.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = p.add_subparsers(dest="command", required=True)

    info = sub.add_parser("info", help="Show header information of a BMP or bip file")
    info.add_argument("file")
    info.add_argument("--raw", action="store_true", help="Also list every BMP header field")
    info.set_defaults(func=cmd_info)

    b2b = sub.add_parser("bip2bmp", help="Convert a bip file to BMP")
    b2b.add_argument("input")
    b2b.add_argument("output")
    b2b.set_defaults(func=cmd_bip2bmp)

    quant = sub.add_parser("quantize", help="Reduce a BMP to device colours")
    quant.add_argument("input")
    quant.add_argument("output")
    quant.set_defaults(func=cmd_quantize)

    prev = sub.add_parser("preview", help="Render a BMP or bip file with Pillow (format from extension)")
    prev.add_argument("input")
    prev.add_argument("output")
    prev.set_defaults(func=cmd_preview)

    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(message)s',
        datefmt='%H:%M:%S',
    )
    try:
        return args.func(args)
    except (BitmapError, OSError) as exc:
        log.error("%s: %s", args.command, exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
