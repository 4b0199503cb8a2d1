"""State management submodules for rpview."""

from .images import ImageListState
from .input import InputState, DragKind, DragState
from .view_store import ViewStateStore

__all__ = [
    'ImageListState',
    'InputState',
    'DragKind',
    'DragState',
    'ViewStateStore',
]
