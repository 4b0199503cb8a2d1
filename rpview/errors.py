"""Error taxonomy for loading, decoding and rasterizing images."""

from __future__ import annotations
from typing import Optional


class RpviewError(Exception):
    """Base class for all viewer errors. None of them are fatal to a session."""

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.identifier = identifier


class NotFound(RpviewError):
    """Identifier no longer resolves to readable content."""


class UnsupportedFormat(RpviewError):
    """Content matches none of the raster, vector or animated decoders."""


class DecodeError(RpviewError):
    """Recognized format but corrupt or unparseable payload."""


class NotAnimated(RpviewError):
    """Frame extraction was requested for a single-frame source."""


class AllocationTooLarge(RpviewError):
    """Requested raster buffer is too large to allocate."""


class EmptyGeometry(RpviewError):
    """Rasterization would produce zero pixels on an axis."""
