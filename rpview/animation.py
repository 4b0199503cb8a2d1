"""Animated image support - frame extraction and playback timing.

GIF and WEBP are the only animation-capable formats. Detection is
format specific: a GIF counts as animated when it decodes to more than
one frame, a WEBP when its VP8X header carries the animation flag.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

from PIL import Image, ImageSequence, UnidentifiedImageError

from .config import DEFAULT_FRAME_DURATION_MS
from .errors import DecodeError, NotAnimated, NotFound
from .logging import now, log
from .types import AnimationState

_WEBP_ANIMATION_FLAG = 0x02


@dataclass
class AnimationFrame:
    """One decoded frame and how long it stays on screen."""
    image: Image.Image
    duration_ms: int


@dataclass
class AnimationData:
    """All frames of an animated source. Rebuilt on every load, never persisted."""
    frames: List[AnimationFrame] = field(default_factory=list)

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    def frame_durations(self) -> Tuple[int, ...]:
        return tuple(f.duration_ms for f in self.frames)

    def new_state(self, playing: bool = True) -> AnimationState:
        """Fresh playback state positioned on the first frame."""
        return AnimationState(
            frame_count=self.frame_count,
            frame_durations=self.frame_durations(),
            is_playing=playing,
        )


def _extension(path: str) -> str:
    return os.path.splitext(path)[1].lower()


def frame_duration_ms(numer: Optional[float], denom: float = 1) -> int:
    """Duration from a decoder-reported delay fraction.

    A zero denominator (or no reported delay at all) falls back to
    DEFAULT_FRAME_DURATION_MS.
    """
    if numer is None or not denom:
        return DEFAULT_FRAME_DURATION_MS
    return int(numer / denom)


def is_animated_gif(path: str) -> bool:
    """True iff the file decodes as a GIF with more than one frame."""
    try:
        with Image.open(path) as img:
            if img.format != "GIF":
                return False
            return getattr(img, "n_frames", 1) > 1
    except FileNotFoundError:
        raise NotFound(f"file not found: {path}", path)
    except (UnidentifiedImageError, Image.DecompressionBombError,
            OSError, ValueError, EOFError):
        return False


def is_animated_webp(path: str) -> bool:
    """True iff the WEBP container's VP8X chunk sets the animation flag."""
    try:
        with open(path, "rb") as f:
            header = f.read(21)
    except FileNotFoundError:
        raise NotFound(f"file not found: {path}", path)
    except OSError:
        return False

    if len(header) < 21 or header[:4] != b"RIFF" or header[8:12] != b"WEBP":
        return False
    if header[12:16] != b"VP8X":
        # Simple (lossy/lossless) WEBP cannot hold an animation
        return False
    return bool(header[20] & _WEBP_ANIMATION_FLAG)


def detect(path: str) -> bool:
    """Check whether a source is animated, based on its extension."""
    ext = _extension(path)
    if ext == ".gif":
        return is_animated_gif(path)
    if ext == ".webp":
        return is_animated_webp(path)
    return False


def iter_frames(path: str) -> Iterator[AnimationFrame]:
    """Decode frames lazily, in order, as RGBA.

    Raises:
        NotFound: The file is missing.
        DecodeError: The container cannot be parsed.
    """
    try:
        img = Image.open(path)
    except FileNotFoundError:
        raise NotFound(f"file not found: {path}", path)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise DecodeError(f"cannot parse {os.path.basename(path)}: {e}", path) from e

    with img:
        try:
            for frame in ImageSequence.Iterator(img):
                yield AnimationFrame(
                    image=frame.convert("RGBA"),
                    duration_ms=frame_duration_ms(frame.info.get("duration")),
                )
        except (Image.DecompressionBombError, OSError, ValueError, EOFError) as e:
            raise DecodeError(f"corrupt frame in {os.path.basename(path)}: {e}", path) from e


def extract(path: str) -> AnimationData:
    """
    Decode every frame of an animated GIF/WEBP.

    Raises:
        NotAnimated: The source holds a single frame (or is not GIF/WEBP).
        DecodeError: The container cannot be parsed.
    """
    if _extension(path) not in (".gif", ".webp"):
        raise NotAnimated(f"not an animation-capable format: {path}", path)

    frames = list(iter_frames(path))
    if len(frames) <= 1:
        raise NotAnimated(f"single-frame source: {path}", path)

    log(f"[ANIM] Extracted {len(frames)} frames from {os.path.basename(path)}")
    return AnimationData(frames=frames)


def load_animation(path: str) -> Optional[AnimationData]:
    """Animation data when the source is animated, else None."""
    if not detect(path):
        return None
    return extract(path)


def advance_frame(state: AnimationState) -> None:
    """Move to the next frame, always looping back to the first."""
    state.current_frame = (state.current_frame + 1) % state.frame_count


def step_frame(state: AnimationState, delta: int) -> None:
    """Manual frame step in either direction; pauses playback."""
    state.is_playing = False
    state.current_frame = (state.current_frame + delta) % state.frame_count


class AnimationPlayer:
    """Advances an AnimationState as wall-clock time passes.

    The player only keeps the time the current frame started showing;
    the frame position itself lives in the AnimationState it is handed.
    """

    def __init__(self):
        self._frame_start: Optional[float] = None

    def reset(self, t: Optional[float] = None) -> None:
        """Restart timing of the current frame at t (default: now)."""
        self._frame_start = now() if t is None else t

    def update(self, state: AnimationState, t: Optional[float] = None) -> int:
        """Advance past every frame whose duration has elapsed.

        Returns:
            Number of frames advanced.
        """
        t = now() if t is None else t
        if self._frame_start is None or not state.is_playing:
            self._frame_start = t
            return 0

        advanced = 0
        elapsed_ms = (t - self._frame_start) * 1000.0
        while elapsed_ms >= state.current_duration_ms:
            duration = state.current_duration_ms
            advance_frame(state)
            advanced += 1
            self._frame_start += duration / 1000.0
            elapsed_ms -= duration
            if duration <= 0:
                # Zero-length frames move one step per update.
                self._frame_start = t
                break
        return advanced
