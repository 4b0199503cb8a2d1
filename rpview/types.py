"""Core data types for rpview."""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Tuple, Optional, Any

# Opaque, hashable, totally ordered token naming one source (a path in practice).
ImageIdentifier = str


@dataclass(frozen=True)
class FilterSettings:
    """Brightness/contrast in [-100, 100], gamma in [0.1, 10.0]."""
    brightness: float = 0.0
    contrast: float = 0.0
    gamma: float = 1.0


@dataclass
class AnimationState:
    """Playback position for an animated image."""
    frame_count: int
    frame_durations: Tuple[int, ...]
    current_frame: int = 0
    is_playing: bool = True
    preview_ready: bool = False

    def __post_init__(self) -> None:
        self.frame_durations = tuple(int(d) for d in self.frame_durations)
        if self.frame_count < 1:
            raise ValueError(f"frame_count must be >= 1, got {self.frame_count}")
        if len(self.frame_durations) != self.frame_count:
            raise ValueError(
                f"{len(self.frame_durations)} durations for {self.frame_count} frames")
        if not 0 <= self.current_frame < self.frame_count:
            raise ValueError(
                f"current_frame {self.current_frame} outside 0..{self.frame_count - 1}")

    @property
    def current_duration_ms(self) -> int:
        """Display time of the current frame."""
        return self.frame_durations[self.current_frame]

    def copy(self) -> AnimationState:
        """Create a copy of this AnimationState."""
        return replace(self)


@dataclass
class ViewState:
    """Remembered zoom/pan/filter/animation snapshot for one image."""
    zoom: float = 1.0
    pan: Tuple[float, float] = (0.0, 0.0)
    is_fit_to_window: bool = True
    filters: FilterSettings = field(default_factory=FilterSettings)
    filters_enabled: bool = True
    animation: Optional[AnimationState] = None
    override_size_limit: bool = False
    last_accessed: float = 0.0

    def copy(self) -> ViewState:
        """Create a copy of this ViewState (animation included)."""
        return replace(
            self,
            animation=self.animation.copy() if self.animation else None,
        )


@dataclass(frozen=True)
class Region:
    """Axis-aligned rectangle in document coordinates."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, other: Region, eps: float = 1e-6) -> bool:
        """True when other lies entirely inside this region."""
        return (other.x >= self.x - eps and other.y >= self.y - eps and
                other.right <= self.right + eps and other.bottom <= self.bottom + eps)

    def intersect(self, other: Region) -> Region:
        """Overlap of two regions (zero-sized when disjoint)."""
        x0 = max(self.x, other.x)
        y0 = max(self.y, other.y)
        x1 = min(self.right, other.right)
        y1 = min(self.bottom, other.bottom)
        return Region(x0, y0, max(0.0, x1 - x0), max(0.0, y1 - y0))


@dataclass
class Frame:
    """A raster ready to blit.

    ``scale`` is output pixels per source pixel (1.0 for raster sources; the
    rasterization scale for SVG). ``region`` is the source-space rectangle the
    pixels cover, or None when they cover the whole source.
    """
    pixels: bytes
    width: int
    height: int
    mode: str = "RGBA"
    scale: float = 1.0
    region: Optional[Region] = None
    image: Any = None  # PIL.Image.Image the pixels were taken from
