"""Background image loading with cooperative cancellation.

Each request runs on its own worker thread and ends in exactly one of
LoadSucceeded, LoadFailed or LoadOversized, unless it is cancelled, in
which case nothing is ever delivered. The UI thread polls the handle with
try_recv() once per tick and never blocks on it.
"""

from __future__ import annotations
import os
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional, Union

from PIL import Image

from .animation import AnimationData, AnimationFrame, detect, iter_frames
from .config import ANIMATION_PREVIEW_FRAMES
from .errors import DecodeError, RpviewError
from .image_utils import SourceKind, classify, decode_image, may_be_animated, read_dimensions
from .logging import log, now
from .svg import SvgDocument, SvgRasterizer
from .types import ImageIdentifier


class LoadStatus(Enum):
    """Lifecycle of one load request."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    OVERSIZED = "oversized"
    CANCELLED = "cancelled"


@dataclass
class LoadSucceeded:
    """Source decoded; exactly one of image/document is set."""
    identifier: ImageIdentifier
    width: int
    height: int
    kind: SourceKind
    image: Optional[Image.Image] = None
    document: Optional[SvgDocument] = None
    animation: Optional[AnimationData] = None
    preview_frames: int = 0

    @property
    def preview_ready(self) -> bool:
        """At least the first two frames were decoded up front."""
        return self.preview_frames >= 2


@dataclass
class LoadFailed:
    identifier: ImageIdentifier
    reason: str
    error: Optional[RpviewError] = None


@dataclass
class LoadOversized:
    """Policy rejection: the source is valid but larger than the limit."""
    identifier: ImageIdentifier
    width: int
    height: int
    limit: int


LoadMessage = Union[LoadSucceeded, LoadFailed, LoadOversized]


class LoadCancelled(Exception):
    """Raised at a checkpoint to unwind a cancelled load. Never surfaced."""


@dataclass
class LoadRequest:
    identifier: ImageIdentifier
    max_dimension: Optional[int] = None
    force_load: bool = False

    def exceeds_limit(self, width: int, height: int) -> bool:
        if self.force_load or not self.max_dimension:
            return False
        return width > self.max_dimension or height > self.max_dimension


class LoadHandle:
    """Caller's side of one in-flight load."""

    def __init__(self, request: LoadRequest):
        self.request = request
        self.status = LoadStatus.PENDING
        self._cancel = threading.Event()
        self._messages: Deque[LoadMessage] = deque()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def identifier(self) -> ImageIdentifier:
        return self.request.identifier

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Ask the worker to stop at its next checkpoint."""
        with self._lock:
            self._cancel.set()
            if self.status is LoadStatus.PENDING:
                self.status = LoadStatus.CANCELLED
            self._messages.clear()

    def checkpoint(self, stage: str) -> None:
        """Unwind the worker if cancel() was called."""
        if self._cancel.is_set():
            log(f"[LOADER] Cancelled after {stage}: {os.path.basename(self.identifier)}")
            raise LoadCancelled(stage)

    def try_recv(self) -> Optional[LoadMessage]:
        """Pop the result if one has arrived. Never blocks."""
        with self._lock:
            if self._messages:
                return self._messages.popleft()
        return None

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread to exit. Returns True if it has."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _deliver(self, msg: LoadMessage) -> None:
        with self._lock:
            if self._cancel.is_set():
                return
            if isinstance(msg, LoadSucceeded):
                self.status = LoadStatus.SUCCEEDED
            elif isinstance(msg, LoadOversized):
                self.status = LoadStatus.OVERSIZED
            else:
                self.status = LoadStatus.FAILED
            self._messages.append(msg)


def _load_animation(handle: LoadHandle) -> AnimationData:
    """Decode preview frames first, then the rest, checking for cancel between."""
    frames: List[AnimationFrame] = []
    for frame in iter_frames(handle.identifier):
        frames.append(frame)
        if len(frames) == ANIMATION_PREVIEW_FRAMES:
            handle.checkpoint("frame-cache")
        elif len(frames) > ANIMATION_PREVIEW_FRAMES:
            handle.checkpoint(f"frame {len(frames) - 1}")
    handle.checkpoint("frame-cache")
    return AnimationData(frames=frames)


def run_load(handle: LoadHandle, rasterizer: SvgRasterizer) -> LoadMessage:
    """
    Resolve a request into a message. Runs on the worker thread.

    Raises:
        LoadCancelled: cancel() was observed at a checkpoint.
        RpviewError: Any load/decode failure.
    """
    req = handle.request
    path = req.identifier
    kind = classify(path)

    document = None
    if kind is SourceKind.VECTOR:
        document = rasterizer.parse(path)
        width, height = document.size
    else:
        width, height = read_dimensions(path)
    handle.checkpoint("dimensions")

    if req.exceeds_limit(width, height):
        log(f"[LOADER] Oversized {os.path.basename(path)}: {width}x{height} > {req.max_dimension}")
        return LoadOversized(path, width, height, req.max_dimension)

    if document is not None:
        return LoadSucceeded(path, width, height, kind, document=document)

    animated = may_be_animated(path) and detect(path)
    handle.checkpoint("animation-detect")

    if animated:
        anim = _load_animation(handle)
        if anim.frame_count > 1:
            first = anim.frames[0].image
            return LoadSucceeded(
                path, width, height, kind,
                image=first,
                animation=anim,
                preview_frames=min(ANIMATION_PREVIEW_FRAMES, anim.frame_count),
            )

    image = decode_image(path)
    handle.checkpoint("decode")
    return LoadSucceeded(path, image.width, image.height, kind, image=image)


def _worker(handle: LoadHandle, rasterizer: SvgRasterizer) -> None:
    name = os.path.basename(handle.identifier)
    t0 = now()
    try:
        msg = run_load(handle, rasterizer)
    except LoadCancelled:
        return
    except RpviewError as e:
        log(f"[LOADER][ERR] {name}: {e}")
        msg = LoadFailed(handle.identifier, str(e), e)
    except Exception as e:
        log(f"[LOADER][ERR] {name}: unexpected {e!r}")
        err = DecodeError(f"failed to load {name}: {e!r}", handle.identifier)
        msg = LoadFailed(handle.identifier, str(err), err)
    else:
        log(f"[LOADER] {type(msg).__name__} {name} ({(now() - t0) * 1000.0:.1f}ms)")
    handle._deliver(msg)


class AsyncImageLoader:
    """Starts one worker thread per load request."""

    def __init__(self, rasterizer: SvgRasterizer):
        self.rasterizer = rasterizer
        self._handles: List[LoadHandle] = []

    def load(self, identifier: ImageIdentifier, max_dimension: Optional[int] = None,
             force_load: bool = False) -> LoadHandle:
        handle = LoadHandle(LoadRequest(identifier, max_dimension, force_load))
        thread = threading.Thread(
            target=_worker, args=(handle, self.rasterizer),
            name=f"rpview-load-{os.path.basename(identifier)}", daemon=True,
        )
        handle._thread = thread
        self._handles = [h for h in self._handles if not h.join(0)]
        self._handles.append(handle)
        log(f"[LOADER] Start {os.path.basename(identifier)} "
            f"max_dim={max_dimension} force={force_load}")
        thread.start()
        return handle

    def shutdown(self, timeout: float = 1.0) -> None:
        """Cancel everything in flight and wait briefly for workers to exit."""
        for handle in self._handles:
            handle.cancel()
        for handle in self._handles:
            handle.join(timeout)
        self._handles.clear()
