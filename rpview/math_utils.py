"""Pure math utilities - no external dependencies."""

from __future__ import annotations


def clamp(v: float, a: float, b: float) -> float:
    """Clamp value v to range [a, b]."""
    return a if v < a else b if v > b else v


def clamp_channel(v: float) -> int:
    """Clamp to [0, 255] and truncate toward zero, as 8-bit channels store it."""
    return int(clamp(v, 0.0, 255.0))


def near(a: float, b: float, eps: float = 1e-3) -> bool:
    """True when a and b differ by less than eps."""
    return abs(a - b) < eps
