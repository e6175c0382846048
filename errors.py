"""Exceptions raised while reading or writing BMP and bip bitmaps."""


class BitmapError(ValueError):
    """Base class: the buffer cannot be interpreted."""


class TypeMismatchError(BitmapError):
    """Asset is not of the expected type."""


class FormatError(BitmapError):
    """Bad magic bytes or otherwise malformed data."""


class UnsupportedDepthError(BitmapError):
    """Bit depth outside the supported set."""


class StrideMismatchError(BitmapError):
    """Declared row stride disagrees with the computed one."""


class TruncatedDataError(BitmapError):
    """Declared region exceeds the available bytes."""
