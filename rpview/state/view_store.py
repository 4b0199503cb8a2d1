"""Per-image view state store - bounded, least-recently-used eviction."""

from __future__ import annotations
import itertools
import os
import threading
from typing import Callable, Dict, Iterator, Optional

from ..config import STATE_CACHE_SIZE
from ..logging import log, now
from ..types import FilterSettings, ImageIdentifier, ViewState
from ..zoom import clamp_zoom


def monotonic_clock() -> Callable[[], float]:
    """Clock that never returns the same value twice.

    Wall time from now(), nudged forward when two calls land on the same
    reading, so access order is always recoverable from the stamps.
    """
    last = [float("-inf")]
    lock = threading.Lock()

    def clock() -> float:
        with lock:
            t = now()
            if t <= last[0]:
                t = last[0] + 1e-9
            last[0] = t
            return t
    return clock


def counter_clock(start: int = 0) -> Callable[[], float]:
    """Deterministic clock yielding start, start+1, ... (for replay and tests)."""
    counter = itertools.count(start)
    return lambda: float(next(counter))


class ViewStateStore:
    """Maps identifiers to remembered ViewState.

    The store owns its ViewState objects; callers always get copies. When a
    new entry would exceed capacity, the entry with the smallest
    (last_accessed, identifier) is evicted first.
    """

    def __init__(self, capacity: int = STATE_CACHE_SIZE,
                 clock: Optional[Callable[[], float]] = None):
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._capacity = capacity
        self._clock = clock or monotonic_clock()
        self._states: Dict[ImageIdentifier, ViewState] = {}
        self._lock = threading.RLock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def set_capacity(self, capacity: int) -> None:
        """Change the bound. Excess entries go on the next insert."""
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        with self._lock:
            self._capacity = capacity

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, identifier: ImageIdentifier) -> bool:
        return identifier in self._states

    def __iter__(self) -> Iterator[ImageIdentifier]:
        return iter(list(self._states))

    def peek(self, identifier: ImageIdentifier) -> Optional[ViewState]:
        """Copy of the stored state without touching it, or None."""
        with self._lock:
            state = self._states.get(identifier)
            return state.copy() if state else None

    def get(self, identifier: ImageIdentifier) -> Optional[ViewState]:
        """Copy of the stored state (touching it), or None if absent."""
        with self._lock:
            state = self._states.get(identifier)
            if state is None:
                return None
            state.last_accessed = self._clock()
            return state.copy()

    def get_or_create(self, identifier: ImageIdentifier,
                      default_filters: Optional[FilterSettings] = None) -> ViewState:
        """Copy of the stored state, creating one seeded with default_filters if absent."""
        with self._lock:
            state = self._states.get(identifier)
            if state is not None:
                state.last_accessed = self._clock()
                return state.copy()

            state = ViewState(filters=default_filters or FilterSettings())
            self._insert(identifier, state)
            return state.copy()

    def save(self, identifier: ImageIdentifier, state: ViewState) -> None:
        """Store a copy of state, evicting the least recently used entry if full."""
        with self._lock:
            self._insert(identifier, state.copy())

    def remove(self, identifier: ImageIdentifier) -> bool:
        with self._lock:
            return self._states.pop(identifier, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    def oldest(self) -> Optional[ImageIdentifier]:
        """Identifier that would be evicted next."""
        with self._lock:
            if not self._states:
                return None
            return min(self._states.items(),
                       key=lambda item: (item[1].last_accessed, item[0]))[0]

    def _insert(self, identifier: ImageIdentifier, state: ViewState) -> None:
        state.zoom = clamp_zoom(state.zoom)
        state.last_accessed = self._clock()

        if identifier not in self._states:
            while self._states and len(self._states) >= self._capacity:
                self._evict_oldest()

        self._states[identifier] = state

        if len(self._states) > self._capacity:
            # Capacity 0: nothing is ever kept.
            self._states.pop(identifier, None)

    def _evict_oldest(self) -> None:
        victim = self.oldest()
        if victim is None:
            return
        del self._states[victim]
        log(f"[STORE] Evicted {os.path.basename(victim)} (size={len(self._states)}, "
            f"capacity={self._capacity})")
