"""Brightness/contrast/gamma transforms for rpview.

All three adjustments are folded into one 256-entry lookup table per
colour channel and applied with ``Image.point``; alpha passes through
unchanged. The functions here are pure and safe to call from any thread.
"""

from __future__ import annotations
from typing import List
from PIL import Image

from .config import BRIGHTNESS_RANGE, CONTRAST_RANGE, GAMMA_RANGE, FILTER_EPSILON
from .math_utils import clamp, clamp_channel, near
from .types import FilterSettings

_IDENTITY = list(range(256))
_POINT_MODES = ("L", "LA", "RGB", "RGBA")


def clamp_filters(brightness: float, contrast: float, gamma: float) -> FilterSettings:
    """Clamp raw filter values to their documented ranges."""
    return FilterSettings(
        brightness=clamp(brightness, *BRIGHTNESS_RANGE),
        contrast=clamp(contrast, *CONTRAST_RANGE),
        gamma=clamp(gamma, *GAMMA_RANGE),
    )


def has_brightness(brightness: float) -> bool:
    return not near(brightness, 0.0, FILTER_EPSILON)


def has_contrast(contrast: float) -> bool:
    return not near(contrast, 0.0, FILTER_EPSILON)


def has_gamma(gamma: float) -> bool:
    return not near(gamma, 1.0, FILTER_EPSILON)


def is_identity(brightness: float, contrast: float, gamma: float) -> bool:
    """True when every stage would be skipped."""
    return not (has_brightness(brightness) or has_contrast(contrast) or has_gamma(gamma))


def contrast_factor(contrast: float) -> float:
    """Map contrast -100..100 to a factor 0.1..3.0."""
    if contrast > 0.0:
        return 1.0 + (contrast / 100.0) * 2.0
    return 1.0 + (contrast / 100.0) * 0.9


def gamma_lut(gamma: float) -> List[int]:
    """256-entry table for 255 * (v/255) ** (1/gamma)."""
    gamma = clamp(gamma, *GAMMA_RANGE)
    inv = 1.0 / gamma
    return [clamp_channel(255.0 * (v / 255.0) ** inv) for v in range(256)]


def build_lut(brightness: float, contrast: float, gamma: float) -> List[int]:
    """Fold brightness -> contrast -> gamma into one channel table.

    Each stage is skipped when its parameter is near identity; the order
    never changes.
    """
    use_b = has_brightness(brightness)
    use_c = has_contrast(contrast)
    use_g = has_gamma(gamma)

    settings = clamp_filters(brightness, contrast, gamma)
    if use_g and not (use_b or use_c):
        return gamma_lut(settings.gamma)

    adjustment = round(settings.brightness * 2.55)
    factor = contrast_factor(settings.contrast)
    inv_gamma = 1.0 / settings.gamma

    lut = []
    for v in range(256):
        value = float(v)
        if use_b:
            value = clamp(value + adjustment, 0.0, 255.0)
        if use_c:
            value = clamp(((value / 255.0 - 0.5) * factor + 0.5) * 255.0, 0.0, 255.0)
        if use_g:
            value = 255.0 * (value / 255.0) ** inv_gamma
        lut.append(clamp_channel(value))
    return lut


def apply_filters(img: Image.Image, brightness: float, contrast: float,
                  gamma: float) -> Image.Image:
    """
    Apply brightness, contrast and gamma to an image.

    Args:
        img: Source image. Never modified.
        brightness: -100..100, 0 = unchanged.
        contrast: -100..100, 0 = unchanged.
        gamma: 0.1..10.0, 1.0 = unchanged.

    Returns:
        A new image. When all three are near identity this is a plain copy.
    """
    if is_identity(brightness, contrast, gamma):
        return img.copy()

    if img.mode not in _POINT_MODES:
        img = img.convert("RGBA")

    lut = build_lut(brightness, contrast, gamma)
    table: List[int] = []
    for band in img.getbands():
        table.extend(_IDENTITY if band == "A" else lut)
    return img.point(table)


def apply_filter_settings(img: Image.Image, settings: FilterSettings) -> Image.Image:
    """apply_filters() taking a FilterSettings."""
    return apply_filters(img, settings.brightness, settings.contrast, settings.gamma)
