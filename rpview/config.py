"""Viewer configuration constants and runtime settings."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .types import FilterSettings

# Zoom
MIN_ZOOM = 0.1
MAX_ZOOM = 20.0
ZOOM_STEP = 1.2
ZOOM_STEP_FAST = 1.5
ZOOM_STEP_SLOW = 1.05
ZOOM_STEP_WHEEL = 1.1
ZOOM_STEP_INCREMENTAL = 0.01
Z_DRAG_SENSITIVITY = 0.01

# Pan (pixels per key press)
PAN_SPEED_NORMAL = 10.0
PAN_SPEED_FAST = 30.0
PAN_SPEED_SLOW = 3.0
PAN_MIN_VISIBLE_PX = 50.0
PAN_MIN_VISIBLE_FRAC = 0.1

# Filters
BRIGHTNESS_RANGE = (-100.0, 100.0)
CONTRAST_RANGE = (-100.0, 100.0)
GAMMA_RANGE = (0.1, 10.0)
FILTER_EPSILON = 1e-3

# Image limits
MAX_IMAGE_DIMENSION = 17000
STATE_CACHE_SIZE = 1000

# Animation
DEFAULT_FRAME_DURATION_MS = 100
ANIMATION_PREVIEW_FRAMES = 3

# SVG
SVG_FULL_RENDER_MAX_PIXELS = 4096 * 4096
SVG_VIEWPORT_PADDING = 0.5
MAX_RASTER_PIXELS = 32768 * 32768
SVG_DPI = 96
SVG_DEFAULT_FONT_FAMILY = "sans-serif"

# Supported image extensions
RASTER_EXTS = frozenset({
    ".png", ".jpg", ".jpeg", ".bmp", ".tga", ".gif", ".webp",
    ".tif", ".tiff", ".ico",
})
ANIMATED_EXTS = frozenset({".gif", ".webp"})
VECTOR_EXTS = frozenset({".svg"})
IMG_EXTS = RASTER_EXTS | VECTOR_EXTS


class SortMode(Enum):
    """Ordering of the navigation list."""
    ALPHABETICAL = "alphabetical"
    MODIFIED_DATE = "modified_date"


class ZoomMode(Enum):
    """Zoom applied to images that have no remembered state."""
    FIT_TO_WINDOW = "fit_to_window"
    ONE_HUNDRED_PERCENT = "one_hundred_percent"


@dataclass
class ViewerSettings:
    """Runtime-tunable policy, seeded from the module constants."""
    max_image_dimension: Optional[int] = MAX_IMAGE_DIMENSION
    state_cache_size: int = STATE_CACHE_SIZE
    default_filters: FilterSettings = field(default_factory=FilterSettings)
    wrap_navigation: bool = True
    remember_per_image_state: bool = True
    default_zoom_mode: ZoomMode = ZoomMode.FIT_TO_WINDOW
    animation_auto_play: bool = True
    sort_mode: SortMode = SortMode.ALPHABETICAL
    pan_speed_normal: float = PAN_SPEED_NORMAL
    pan_speed_fast: float = PAN_SPEED_FAST
    pan_speed_slow: float = PAN_SPEED_SLOW
    z_drag_sensitivity: float = Z_DRAG_SENSITIVITY
