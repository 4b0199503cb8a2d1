"""Image utilities - format classification, dimension probing, loading helpers."""

from __future__ import annotations
import os
import struct
from enum import Enum
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .config import RASTER_EXTS, VECTOR_EXTS, ANIMATED_EXTS, IMG_EXTS
from .errors import DecodeError, NotFound, UnsupportedFormat

# Size policy is max_dimension in the loader; Pillow's own pixel cap
# would refuse large images that policy allows.
Image.MAX_IMAGE_PIXELS = None


class SourceKind(Enum):
    """Which decoder family handles a source."""
    RASTER = "raster"
    VECTOR = "vector"


def extension(filepath: str) -> str:
    return os.path.splitext(filepath)[1].lower()


def is_supported_image(filepath: str) -> bool:
    """Check if file has a supported image extension."""
    return extension(filepath) in IMG_EXTS


def may_be_animated(filepath: str) -> bool:
    """Check if the extension names an animation-capable format."""
    return extension(filepath) in ANIMATED_EXTS


def classify(filepath: str) -> SourceKind:
    """Pick the decoder family from the file extension.

    Raises:
        UnsupportedFormat: Extension matches no decoder.
    """
    ext = extension(filepath)
    if ext in VECTOR_EXTS:
        return SourceKind.VECTOR
    if ext in RASTER_EXTS:
        return SourceKind.RASTER
    raise UnsupportedFormat(f"unsupported format '{ext or '?'}': {filepath}", filepath)


def probe_image_dimensions(filepath: str) -> Optional[Tuple[int, int]]:
    """Quickly read image dimensions from file header without loading the full image.

    Args:
        filepath: Path to image file.

    Returns:
        Tuple of (width, height) or None if unable to determine.
    """
    ext = extension(filepath)
    try:
        with open(filepath, 'rb') as f:
            header = f.read(64 * 1024)

        if ext in ('.jpg', '.jpeg'):
            return _probe_jpeg(header)
        elif ext == '.png':
            return _probe_png(header)
    except (OSError, struct.error):
        pass
    return None


# JPEG markers that carry no length field
_JPEG_STANDALONE = frozenset([0x01] + list(range(0xD0, 0xDA)))
# Start-of-frame markers (C4 DHT, C8 JPG and CC DAC are not frames)
_JPEG_SOF = frozenset([0xC0, 0xC1, 0xC2, 0xC3, 0xC5, 0xC6, 0xC7,
                       0xC9, 0xCA, 0xCB, 0xCD, 0xCE, 0xCF])


def _probe_jpeg(data: bytes) -> Optional[Tuple[int, int]]:
    """Extract dimensions from the first SOF segment of a JPEG header."""
    if len(data) < 4 or data[0] != 0xFF or data[1] != 0xD8:
        return None
    i = 2
    while i + 9 < len(data):
        if data[i] != 0xFF:
            i += 1
            continue
        marker = data[i + 1]
        if marker in _JPEG_SOF:
            height = struct.unpack('>H', data[i + 5:i + 7])[0]
            width = struct.unpack('>H', data[i + 7:i + 9])[0]
            return (width, height)
        if marker == 0xFF:
            # Fill byte
            i += 1
        elif marker == 0x00 or marker in _JPEG_STANDALONE:
            i += 2
        else:
            seg_len = struct.unpack('>H', data[i + 2:i + 4])[0]
            i += 2 + seg_len
    return None


def _probe_png(data: bytes) -> Optional[Tuple[int, int]]:
    """Extract dimensions from PNG header."""
    if len(data) < 24 or data[:8] != b'\x89PNG\r\n\x1a\n':
        return None
    width = struct.unpack('>I', data[16:20])[0]
    height = struct.unpack('>I', data[20:24])[0]
    return (width, height)


def read_dimensions(filepath: str) -> Tuple[int, int]:
    """Raster dimensions, from the header when possible, else via Pillow.

    Raises:
        NotFound: File is missing.
        UnsupportedFormat: Pillow cannot identify the content.
        DecodeError: Content is identified but unreadable.
    """
    if not os.path.exists(filepath):
        raise NotFound(f"file not found: {filepath}", filepath)

    dims = probe_image_dimensions(filepath)
    if dims and dims[0] > 0 and dims[1] > 0:
        return dims

    try:
        with Image.open(filepath) as img:
            return img.size
    except FileNotFoundError:
        raise NotFound(f"file not found: {filepath}", filepath)
    except UnidentifiedImageError as e:
        raise UnsupportedFormat(f"unrecognized image data: {filepath}", filepath) from e
    except Image.DecompressionBombError as e:
        raise DecodeError(f"exceeds the decoder pixel limit: {e}", filepath) from e
    except (OSError, ValueError, SyntaxError) as e:
        raise DecodeError(f"failed to read dimensions: {e}", filepath) from e


def decode_image(filepath: str) -> Image.Image:
    """Fully decode a raster image into memory as RGBA.

    Raises:
        NotFound, UnsupportedFormat, DecodeError
    """
    try:
        with Image.open(filepath) as img:
            img.load()
            return img.convert("RGBA")
    except FileNotFoundError:
        raise NotFound(f"file not found: {filepath}", filepath)
    except UnidentifiedImageError as e:
        raise UnsupportedFormat(f"unrecognized image data: {filepath}", filepath) from e
    except Image.DecompressionBombError as e:
        raise DecodeError(f"exceeds the decoder pixel limit: {e}", filepath) from e
    except (OSError, ValueError, SyntaxError) as e:
        raise DecodeError(f"failed to decode image: {e}", filepath) from e


def get_modified_time(filepath: str) -> Optional[float]:
    """Modification time in seconds, or None when it cannot be read."""
    try:
        return os.stat(filepath).st_mtime
    except OSError:
        return None
