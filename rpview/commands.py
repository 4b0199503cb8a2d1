"""User intents consumed by ViewerController.dispatch().

The set is closed: every input the viewer reacts to is one of the frozen
dataclasses below, and the controller handles them in a single dispatch
function. Intents carry data only and no behaviour.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from .config import SortMode
from .state.input import DragKind
from .zoom import ZoomStep


class Direction(Enum):
    NEXT = 1
    PREVIOUS = -1


class FilterField(Enum):
    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    GAMMA = "gamma"


# ═══════════════════════════════════════════════════════════════════════════
# Navigation
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Navigate:
    direction: Direction


@dataclass(frozen=True)
class NavigateToIndex:
    """Jump to an index (first/last/gallery click)."""
    index: int


@dataclass(frozen=True)
class SetSortMode:
    mode: SortMode


@dataclass(frozen=True)
class ForceLoad:
    """Load the current image even though it exceeds max_image_dimension."""


# ═══════════════════════════════════════════════════════════════════════════
# Zoom / pan
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SetZoom:
    """Absolute zoom factor, kept centred on the image centre."""
    zoom: float


@dataclass(frozen=True)
class ZoomBy:
    """Relative zoom. direction > 0 zooms in.

    With an anchor (viewport coordinates) the point under it stays fixed;
    otherwise the image centre does.
    """
    direction: int
    step: ZoomStep = ZoomStep.NORMAL
    anchor: Optional[Tuple[float, float]] = None


@dataclass(frozen=True)
class FitToWindow:
    pass


@dataclass(frozen=True)
class ActualSize:
    """100% zoom, centred."""


@dataclass(frozen=True)
class ToggleFitActual:
    """Fit-to-window <-> 100%, preserving the image centre."""


@dataclass(frozen=True)
class Pan:
    dx: float
    dy: float


@dataclass(frozen=True)
class PanStep:
    """Keyboard pan: dx/dy are -1, 0 or 1 and scale with the pan speed settings."""
    dx: int
    dy: int
    fast: bool = False
    slow: bool = False


@dataclass(frozen=True)
class BeginDrag:
    kind: DragKind


@dataclass(frozen=True)
class DragTo:
    x: float
    y: float


@dataclass(frozen=True)
class EndDrag:
    pass


@dataclass(frozen=True)
class Resize:
    """Viewport size changed."""
    width: float
    height: float


# ═══════════════════════════════════════════════════════════════════════════
# Filters
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SetFilter:
    field: FilterField
    value: float


@dataclass(frozen=True)
class ToggleFiltersEnabled:
    pass


@dataclass(frozen=True)
class ResetFilters:
    pass


# ═══════════════════════════════════════════════════════════════════════════
# Animation
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ToggleAnimationPlayback:
    pass


@dataclass(frozen=True)
class StepFrame:
    delta: int


Intent = Union[
    Navigate, NavigateToIndex, SetSortMode, ForceLoad,
    SetZoom, ZoomBy, FitToWindow, ActualSize, ToggleFitActual,
    Pan, PanStep, BeginDrag, DragTo, EndDrag, Resize,
    SetFilter, ToggleFiltersEnabled, ResetFilters,
    ToggleAnimationPlayback, StepFrame,
]
