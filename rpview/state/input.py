"""Input state - drag gestures for pan and zoom."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

Point = Tuple[float, float]


class DragKind(Enum):
    PAN = "pan"    # spacebar + drag: 1:1 pixel movement
    ZOOM = "zoom"  # Z + drag: vertical motion zooms toward the press point


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Armed:
    """Modifier held, no pointer movement seen yet."""
    kind: DragKind


@dataclass(frozen=True)
class Dragging:
    kind: DragKind
    origin: Point
    last: Point


DragState = Union[Idle, Armed, Dragging]


@dataclass
class InputState:
    """State for drag handling."""
    drag: DragState = field(default_factory=Idle)

    @property
    def is_dragging(self) -> bool:
        return isinstance(self.drag, Dragging)

    @property
    def kind(self) -> Optional[DragKind]:
        return None if isinstance(self.drag, Idle) else self.drag.kind

    def arm(self, kind: DragKind) -> None:
        """Start a drag gesture; the first move() sets its origin."""
        self.drag = Armed(kind)

    def move(self, x: float, y: float) -> Optional[Tuple[DragKind, Point, Point]]:
        """Record pointer movement.

        Returns:
            (kind, origin, delta since the previous move) while dragging,
            or None when idle or on the first move after arming.
        """
        drag = self.drag
        if isinstance(drag, Idle):
            return None
        if isinstance(drag, Armed):
            self.drag = Dragging(drag.kind, (x, y), (x, y))
            return None
        dx = x - drag.last[0]
        dy = y - drag.last[1]
        self.drag = Dragging(drag.kind, drag.origin, (x, y))
        return (drag.kind, drag.origin, (dx, dy))

    def release(self) -> bool:
        """End the gesture. Returns True if one was active."""
        was_active = not isinstance(self.drag, Idle)
        self.drag = Idle()
        return was_active
