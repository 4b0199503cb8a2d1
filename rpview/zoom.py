"""Pure zoom/pan calculation functions - no side effects, no state mutation."""

from __future__ import annotations
from enum import Enum
from typing import Tuple

from .config import (
    MIN_ZOOM, MAX_ZOOM,
    ZOOM_STEP, ZOOM_STEP_FAST, ZOOM_STEP_SLOW, ZOOM_STEP_WHEEL,
    ZOOM_STEP_INCREMENTAL,
    PAN_MIN_VISIBLE_PX, PAN_MIN_VISIBLE_FRAC,
)
from .math_utils import clamp
from .types import Region

Pan = Tuple[float, float]


class ZoomStep(Enum):
    """Named zoom step classes. All but INCREMENTAL are multiplicative."""
    NORMAL = "normal"
    FAST = "fast"
    SLOW = "slow"
    WHEEL = "wheel"
    INCREMENTAL = "incremental"

    @property
    def amount(self) -> float:
        return _STEP_AMOUNTS[self]


_STEP_AMOUNTS = {
    ZoomStep.NORMAL: ZOOM_STEP,
    ZoomStep.FAST: ZOOM_STEP_FAST,
    ZoomStep.SLOW: ZOOM_STEP_SLOW,
    ZoomStep.WHEEL: ZOOM_STEP_WHEEL,
    ZoomStep.INCREMENTAL: ZOOM_STEP_INCREMENTAL,
}


def clamp_zoom(zoom: float) -> float:
    """Clamp a zoom factor to [MIN_ZOOM, MAX_ZOOM]."""
    return clamp(zoom, MIN_ZOOM, MAX_ZOOM)


def compute_fit_scale(
    img_w: int,
    img_h: int,
    viewport_w: float,
    viewport_h: float,
) -> float:
    """Compute zoom so the whole image fits the viewport.

    Args:
        img_w: Image width in pixels.
        img_h: Image height in pixels.
        viewport_w: Viewport width in pixels.
        viewport_h: Viewport height in pixels.

    Returns:
        Clamped fit zoom, or 1.0 when any dimension is zero or negative.
    """
    if img_w <= 0 or img_h <= 0 or viewport_w <= 0 or viewport_h <= 0:
        return 1.0
    return clamp_zoom(min(viewport_w / img_w, viewport_h / img_h))


def zoom_in(zoom: float, step: float) -> float:
    return clamp_zoom(zoom * step)


def zoom_out(zoom: float, step: float) -> float:
    return clamp_zoom(zoom / step)


def step_zoom(zoom: float, step: ZoomStep, direction: int) -> float:
    """Apply one step of the given class; direction > 0 zooms in."""
    if step is ZoomStep.INCREMENTAL:
        return clamp_zoom(zoom + step.amount if direction > 0 else zoom - step.amount)
    return zoom_in(zoom, step.amount) if direction > 0 else zoom_out(zoom, step.amount)


def format_zoom_percentage(zoom: float) -> str:
    """Format zoom for on-screen display, e.g. 1.5 -> '150%'."""
    return f"{zoom * 100.0:.0f}%"


def center_pan_for(
    zoom: float,
    img_w: int,
    img_h: int,
    viewport_w: float,
    viewport_h: float,
) -> Pan:
    """Pan that centres the image in the viewport at the given zoom."""
    return ((viewport_w - img_w * zoom) / 2.0,
            (viewport_h - img_h * zoom) / 2.0)


def constrain_pan(
    pan: Pan,
    zoom: float,
    img_w: int,
    img_h: int,
    viewport_w: float,
    viewport_h: float,
) -> Pan:
    """Clamp pan so part of the image always stays on screen.

    At least min(10% of the zoomed size, 50px) remains visible on each axis.
    """
    zw = img_w * zoom
    zh = img_h * zoom
    min_vis_x = min(zw * PAN_MIN_VISIBLE_FRAC, PAN_MIN_VISIBLE_PX)
    min_vis_y = min(zh * PAN_MIN_VISIBLE_FRAC, PAN_MIN_VISIBLE_PX)

    x = clamp(pan[0], -(zw - min_vis_x), viewport_w - min_vis_x)
    y = clamp(pan[1], -(zh - min_vis_y), viewport_h - min_vis_y)
    return (x, y)


def pan_for_center_zoom(
    pan: Pan,
    old_zoom: float,
    new_zoom: float,
    img_w: int,
    img_h: int,
) -> Pan:
    """Pan for new zoom keeping the image centre at the same screen point."""
    cx = pan[0] + img_w * old_zoom / 2.0
    cy = pan[1] + img_h * old_zoom / 2.0
    return (cx - img_w * new_zoom / 2.0,
            cy - img_h * new_zoom / 2.0)


def pan_for_anchor_zoom(
    pan: Pan,
    old_zoom: float,
    new_zoom: float,
    anchor: Tuple[float, float],
) -> Pan:
    """Pan for new zoom keeping the image point under anchor fixed.

    This allows zooming "towards" the mouse cursor position.
    """
    ax, ay = anchor
    old_zoom = old_zoom if old_zoom > 1e-6 else 1e-6

    # Anchor in image coordinates
    wx = (ax - pan[0]) / old_zoom
    wy = (ay - pan[1]) / old_zoom

    return (ax - wx * new_zoom, ay - wy * new_zoom)


def visible_region(
    zoom: float,
    pan: Pan,
    viewport_w: float,
    viewport_h: float,
) -> Region:
    """Viewport rectangle expressed in image (document) coordinates."""
    zoom = zoom if zoom > 1e-6 else 1e-6
    return Region(-pan[0] / zoom, -pan[1] / zoom, viewport_w / zoom, viewport_h / zoom)
