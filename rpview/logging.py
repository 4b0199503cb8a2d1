"""Logging utilities with timing and tick tracking."""

from __future__ import annotations
import sys
import threading
import time
from typing import Optional


class Logger:
    """Viewer logger with timestamps and UI tick counts."""

    def __init__(self):
        self._start_time: float = time.perf_counter()
        self._tick: int = 0
        self._lock = threading.Lock()
        self.quiet: bool = False

    @property
    def tick(self) -> int:
        """Current UI tick number."""
        return self._tick

    @tick.setter
    def tick(self, value: int) -> None:
        """Set current UI tick number."""
        self._tick = value

    def increment_tick(self) -> None:
        """Increment tick counter."""
        self._tick += 1

    @property
    def elapsed(self) -> float:
        """Seconds since logger was created."""
        return time.perf_counter() - self._start_time

    def log(self, msg: str) -> None:
        """Log a message with timestamp and tick number."""
        if self.quiet:
            return
        line = f"[{self.elapsed:7.3f}s T{self._tick:06d}] {msg}\n"
        # Loader threads log too; keep lines whole.
        with self._lock:
            try:
                sys.stdout.write(line)
                sys.stdout.flush()
            except (OSError, ValueError):
                try:
                    sys.stderr.write(line)
                    sys.stderr.flush()
                except (OSError, ValueError):
                    pass

    def __call__(self, msg: str) -> None:
        """Shorthand for log()."""
        self.log(msg)


# Global logger instance
_logger: Optional[Logger] = None


def get_logger() -> Logger:
    """Get or create the global logger instance."""
    global _logger
    if _logger is None:
        _logger = Logger()
    return _logger


def log(msg: str) -> None:
    """Log a message using the global logger."""
    get_logger().log(msg)


def set_quiet(quiet: bool) -> None:
    """Silence (or restore) log output."""
    get_logger().quiet = quiet


def get_tick() -> int:
    """Get current tick count."""
    return get_logger().tick


def increment_tick() -> None:
    """Increment tick counter."""
    get_logger().increment_tick()


# Time utilities
def now() -> float:
    """Get current time in seconds (high precision)."""
    return time.perf_counter()
