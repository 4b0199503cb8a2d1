"""Image list state - ordered identifiers, current index, sort order, wrap."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from ..config import SortMode
from ..image_utils import get_modified_time
from ..types import ImageIdentifier


def alphabetical_key(identifier: ImageIdentifier) -> str:
    return str(identifier).lower()


def sort_identifiers(
    images: Sequence[ImageIdentifier],
    mode: SortMode,
    mtime: Callable[[ImageIdentifier], Optional[float]] = get_modified_time,
) -> List[ImageIdentifier]:
    """Sort a list for the given mode.

    ALPHABETICAL is case-insensitive. MODIFIED_DATE puts the newest first
    and entries whose time cannot be read last.
    """
    if mode is SortMode.ALPHABETICAL:
        return sorted(images, key=alphabetical_key)

    def key(identifier: ImageIdentifier) -> Tuple[bool, float]:
        t = mtime(identifier)
        return (t is None, -(t or 0.0))
    return sorted(images, key=key)


@dataclass
class ImageListState:
    """Navigation list. index is meaningful only while images is non-empty."""
    images: List[ImageIdentifier] = field(default_factory=list)
    index: int = 0
    sort_mode: SortMode = SortMode.ALPHABETICAL
    wrap: bool = True
    mtime: Callable[[ImageIdentifier], Optional[float]] = field(
        default=get_modified_time, repr=False)

    def __post_init__(self) -> None:
        self.images = list(self.images)
        self.index = self.clamp_index(self.index)

    @property
    def count(self) -> int:
        """Total number of images."""
        return len(self.images)

    @property
    def is_empty(self) -> bool:
        return not self.images

    @property
    def current_path(self) -> Optional[ImageIdentifier]:
        """Get current image path or None."""
        if 0 <= self.index < len(self.images):
            return self.images[self.index]
        return None

    @property
    def position(self) -> Tuple[int, int]:
        """1-based position and total, for title/counter display."""
        if not self.images:
            return (0, 0)
        return (self.index + 1, len(self.images))

    @property
    def has_prev(self) -> bool:
        """Check if previous() would move."""
        if len(self.images) < 2:
            return False
        return self.wrap or self.index > 0

    @property
    def has_next(self) -> bool:
        """Check if next() would move."""
        if len(self.images) < 2:
            return False
        return self.wrap or self.index < len(self.images) - 1

    def clamp_index(self, idx: int) -> int:
        """Clamp index to valid range."""
        if len(self.images) == 0:
            return 0
        return max(0, min(idx, len(self.images) - 1))

    def set_images(self, images: Sequence[ImageIdentifier], index: int = 0) -> None:
        self.images = list(images)
        self.index = self.clamp_index(index)

    def go_to(self, idx: int) -> bool:
        """Move to idx (clamped). Returns True if the index changed."""
        if not self.images:
            return False
        new_index = self.clamp_index(idx)
        changed = new_index != self.index
        self.index = new_index
        return changed

    def next(self) -> bool:
        """Advance by one; wraps or stops at the end depending on wrap."""
        if not self.has_next:
            return False
        return self.go_to((self.index + 1) % len(self.images))

    def previous(self) -> bool:
        """Retreat by one; wraps or stops at the start depending on wrap."""
        if not self.has_prev:
            return False
        return self.go_to((self.index - 1) % len(self.images))

    def first(self) -> bool:
        return self.go_to(0)

    def last(self) -> bool:
        return self.go_to(len(self.images) - 1)

    def set_sort_mode(self, mode: SortMode) -> bool:
        """Switch sort order; re-sorts only when the mode changes.

        The current image stays selected across the re-sort.
        """
        if mode is self.sort_mode:
            return False
        self.sort_mode = mode
        self.sort()
        return True

    def sort(self) -> None:
        current = self.current_path
        self.images = sort_identifiers(self.images, self.sort_mode, self.mtime)
        if current is not None:
            self.index = self.images.index(current)
