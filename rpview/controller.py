"""Viewer controller - navigation, view state and frame production.

The ViewerController ties the pieces together on the UI thread:
- Intents -> view state changes (dispatch)
- Navigation -> save outgoing state, start async load, restore on arrival
- Loader messages -> current image / error / oversized status (poll)
- View state -> filtered, rasterized frame ready to blit (current_frame)

Usage:
    viewer = ViewerController(paths, viewport=(1280, 800))
    viewer.open()
    while running:
        viewer.tick()
        frame = viewer.current_frame()
"""

from __future__ import annotations
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Hashable, Optional, Sequence, Tuple

from PIL import Image

from .animation import AnimationData, AnimationPlayer, step_frame
from .commands import (
    Intent, Direction, FilterField,
    Navigate, NavigateToIndex, SetSortMode, ForceLoad,
    SetZoom, ZoomBy, FitToWindow, ActualSize, ToggleFitActual,
    Pan, PanStep, BeginDrag, DragTo, EndDrag, Resize,
    SetFilter, ToggleFiltersEnabled, ResetFilters,
    ToggleAnimationPlayback, StepFrame,
)
from .config import ViewerSettings, ZoomMode, BRIGHTNESS_RANGE, CONTRAST_RANGE, GAMMA_RANGE
from .errors import RpviewError
from .filters import apply_filter_settings, is_identity
from .image_utils import SourceKind
from .loader import AsyncImageLoader, LoadFailed, LoadHandle, LoadOversized, LoadSucceeded
from .logging import log, increment_tick
from .math_utils import clamp
from .state.images import ImageListState
from .state.input import DragKind, InputState
from .state.view_store import ViewStateStore
from .svg import FontProvider, SvgDocument, SvgRasterizer, needs_rerender
from .types import Frame, ImageIdentifier, Region, ViewState
from .zoom import (
    clamp_zoom, compute_fit_scale, center_pan_for, constrain_pan,
    format_zoom_percentage, pan_for_anchor_zoom, pan_for_center_zoom,
    step_zoom, visible_region,
)


class LoadPhase(Enum):
    EMPTY = "empty"        # no images to show
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    OVERSIZED = "oversized"


@dataclass
class LoadedImage:
    """The decoded current image."""
    identifier: ImageIdentifier
    width: int
    height: int
    kind: SourceKind
    image: Optional[Image.Image] = None
    document: Optional[SvgDocument] = None
    animation: Optional[AnimationData] = None


@dataclass
class SvgRaster:
    image: Image.Image
    region: Region
    scale: float


@dataclass(frozen=True)
class ViewerStatus:
    """Everything the UI needs for indicators, titles and messages."""
    phase: LoadPhase
    identifier: Optional[ImageIdentifier]
    index: int
    total: int
    zoom_label: str
    error: Optional[str] = None
    oversized: Optional[Tuple[int, int, int]] = None


class ViewerController:
    """Owns the navigation list, the view-state store and the current image."""

    def __init__(
        self,
        images: Sequence[ImageIdentifier] = (),
        start_index: int = 0,
        settings: Optional[ViewerSettings] = None,
        loader: Optional[AsyncImageLoader] = None,
        rasterizer: Optional[SvgRasterizer] = None,
        fonts: Optional[FontProvider] = None,
        store_clock: Optional[Callable[[], float]] = None,
        viewport: Tuple[float, float] = (0.0, 0.0),
    ):
        self.settings = settings or ViewerSettings()
        self.nav = ImageListState(
            images, start_index,
            sort_mode=self.settings.sort_mode, wrap=self.settings.wrap_navigation,
        )
        self.store = ViewStateStore(self.settings.state_cache_size, clock=store_clock)
        self.rasterizer = rasterizer or SvgRasterizer(fonts or FontProvider())
        self.loader = loader or AsyncImageLoader(self.rasterizer)
        self.input = InputState()
        self.player = AnimationPlayer()

        self.viewport_w, self.viewport_h = viewport
        self.view = ViewState(filters=self.settings.default_filters)
        self.current: Optional[LoadedImage] = None
        self.handle: Optional[LoadHandle] = None
        self.error_message: Optional[str] = None
        self.oversized: Optional[Tuple[int, int, int]] = None
        self.render_error: Optional[str] = None

        self._wanted: Optional[ImageIdentifier] = None
        self._forced: bool = False
        self._svg_raster: Optional[SvgRaster] = None
        self._failed_scale: Optional[float] = None
        self._filtered_key: Optional[Hashable] = None
        self._filtered_image: Optional[Image.Image] = None

    # ───────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ───────────────────────────────────────────────────────────────────────

    def open(self) -> None:
        """Start loading the current image."""
        self._request_current()

    def shutdown(self) -> None:
        self._save_current_state()
        if self.handle:
            self.handle.cancel()
            self.handle = None
        self.loader.shutdown()
        log("[NAV] Shutdown complete")

    def set_images(self, images: Sequence[ImageIdentifier], index: int = 0) -> None:
        """Replace the navigation list and load the image at index."""
        self._save_current_state()
        self.nav.set_images(images, index)
        self._request_current()

    def tick(self, t: Optional[float] = None) -> bool:
        """Once per UI frame: poll the loader and advance animation.

        Returns True when the visible frame may have changed.
        """
        increment_tick()
        changed = self.poll()
        anim = self.view.animation
        if self.current is not None and self.current.animation and anim:
            if self.player.update(anim, t):
                changed = True
        return changed

    # ───────────────────────────────────────────────────────────────────────
    # Loading
    # ───────────────────────────────────────────────────────────────────────

    @property
    def is_loading(self) -> bool:
        return self.handle is not None

    def _request_current(self, force: bool = False) -> None:
        if self.handle:
            self.handle.cancel()
            self.handle = None

        self.current = None
        self.error_message = None
        self.oversized = None
        self.render_error = None
        self._svg_raster = None
        self._failed_scale = None
        self._filtered_key = None
        self._filtered_image = None
        self.input.release()

        identifier = self.nav.current_path
        self._wanted = identifier
        if identifier is None:
            return

        if not force and self.settings.remember_per_image_state:
            remembered = self.store.peek(identifier)
            force = bool(remembered and remembered.override_size_limit)
        self._forced = force

        self.handle = self.loader.load(
            identifier,
            max_dimension=self.settings.max_image_dimension,
            force_load=force,
        )

    def poll(self) -> bool:
        """Take the pending loader message, if any. Never blocks."""
        if self.handle is None:
            return False
        msg = self.handle.try_recv()
        if msg is None:
            return False
        self.handle = None

        if msg.identifier != self._wanted:
            log(f"[NAV] Discarding stale result for {os.path.basename(msg.identifier)}")
            return False

        if isinstance(msg, LoadSucceeded):
            self._on_loaded(msg)
        elif isinstance(msg, LoadOversized):
            self.oversized = (msg.width, msg.height, msg.limit)
            log(f"[NAV] Oversized {msg.width}x{msg.height} exceeds {msg.limit}: "
                f"{os.path.basename(msg.identifier)}")
        elif isinstance(msg, LoadFailed):
            self.error_message = msg.reason
            log(f"[NAV][ERR] {os.path.basename(msg.identifier)}: {msg.reason}")
        return True

    def _on_loaded(self, msg: LoadSucceeded) -> None:
        self.current = LoadedImage(
            identifier=msg.identifier,
            width=msg.width,
            height=msg.height,
            kind=msg.kind,
            image=msg.image,
            document=msg.document,
            animation=msg.animation,
        )

        remembered = (self.settings.remember_per_image_state
                      and msg.identifier in self.store)
        if self.settings.remember_per_image_state:
            state = self.store.get_or_create(msg.identifier, self.settings.default_filters)
        else:
            state = ViewState(filters=self.settings.default_filters)
        self.view = state

        if not remembered:
            if self.settings.default_zoom_mode is ZoomMode.ONE_HUNDRED_PERCENT:
                self._actual_size()
            else:
                self._fit_to_window()
        elif state.is_fit_to_window:
            # Viewport may have changed since the state was saved
            self._fit_to_window()

        if msg.animation:
            anim = state.animation
            if anim is None or anim.frame_count != msg.animation.frame_count:
                anim = msg.animation.new_state(self.settings.animation_auto_play)
            anim.preview_ready = msg.preview_ready
            self.view.animation = anim
            self.player.reset()
        else:
            self.view.animation = None

        if self._forced:
            self.view.override_size_limit = True

        log(f"[NAV] Loaded {os.path.basename(msg.identifier)} {msg.width}x{msg.height} "
            f"zoom={self.view.zoom:.3f} restored={remembered}")

    def _save_current_state(self) -> None:
        if not self.settings.remember_per_image_state:
            return
        if self.current is None or self.current.identifier != self.nav.current_path:
            return
        self.store.save(self.current.identifier, self.view)

    # ───────────────────────────────────────────────────────────────────────
    # Intent dispatch
    # ───────────────────────────────────────────────────────────────────────

    def dispatch(self, intent: Intent) -> bool:
        """Apply one user intent. Returns True if anything changed."""
        if isinstance(intent, Navigate):
            if intent.direction is Direction.NEXT:
                return self._navigate(self.nav.next)
            return self._navigate(self.nav.previous)

        if isinstance(intent, NavigateToIndex):
            return self._navigate(lambda: self.nav.go_to(intent.index))

        if isinstance(intent, SetSortMode):
            changed = self.nav.set_sort_mode(intent.mode)
            if changed:
                log(f"[NAV] Sort mode -> {intent.mode.value}")
            return changed

        if isinstance(intent, ForceLoad):
            if self.oversized is None:
                return False
            log(f"[NAV] Force loading {os.path.basename(self.nav.current_path or '')}")
            self._request_current(force=True)
            return True

        if isinstance(intent, Resize):
            return self._resize(intent.width, intent.height)

        if isinstance(intent, (ToggleFiltersEnabled, ResetFilters, SetFilter)):
            return self._apply_filter_intent(intent)

        if isinstance(intent, (ToggleAnimationPlayback, StepFrame)):
            return self._apply_animation_intent(intent)

        if self.current is None:
            return False

        if isinstance(intent, SetZoom):
            self._set_zoom(clamp_zoom(intent.zoom))
            return True

        if isinstance(intent, ZoomBy):
            new_zoom = step_zoom(self.view.zoom, intent.step, intent.direction)
            self._set_zoom(new_zoom, intent.anchor)
            return True

        if isinstance(intent, FitToWindow):
            self._fit_to_window()
            return True

        if isinstance(intent, ActualSize):
            self._actual_size()
            return True

        if isinstance(intent, ToggleFitActual):
            self._toggle_fit_actual()
            return True

        if isinstance(intent, Pan):
            self._pan(intent.dx, intent.dy)
            return True

        if isinstance(intent, PanStep):
            speed = self._pan_speed(intent.fast, intent.slow)
            self._pan(intent.dx * speed, intent.dy * speed)
            return True

        if isinstance(intent, BeginDrag):
            self.input.arm(intent.kind)
            return False

        if isinstance(intent, DragTo):
            return self._drag_to(intent.x, intent.y)

        if isinstance(intent, EndDrag):
            self.input.release()
            return False

        log(f"[NAV][ERR] Unhandled intent {intent!r}")
        return False

    def _navigate(self, move: Callable[[], bool]) -> bool:
        if self.nav.is_empty:
            return False
        self._save_current_state()
        before = self.nav.current_path
        if not move():
            return False
        log(f"[NAV] {os.path.basename(before or '')} -> "
            f"{os.path.basename(self.nav.current_path or '')} "
            f"({self.nav.index + 1}/{self.nav.count})")
        self._request_current()
        return True

    # ───────────────────────────────────────────────────────────────────────
    # Zoom / pan
    # ───────────────────────────────────────────────────────────────────────

    @property
    def has_viewport(self) -> bool:
        return self.viewport_w > 0 and self.viewport_h > 0

    def _constrain(self, pan: Tuple[float, float]) -> Tuple[float, float]:
        if self.current is None or not self.has_viewport:
            return pan
        return constrain_pan(pan, self.view.zoom, self.current.width, self.current.height,
                             self.viewport_w, self.viewport_h)

    def _fit_to_window(self) -> None:
        if self.current is None:
            return
        w, h = self.current.width, self.current.height
        zoom = compute_fit_scale(w, h, self.viewport_w, self.viewport_h)
        self.view.zoom = zoom
        self.view.pan = center_pan_for(zoom, w, h, self.viewport_w, self.viewport_h)
        self.view.is_fit_to_window = True

    def _actual_size(self) -> None:
        if self.current is None:
            return
        w, h = self.current.width, self.current.height
        self.view.zoom = 1.0
        self.view.pan = center_pan_for(1.0, w, h, self.viewport_w, self.viewport_h)
        self.view.is_fit_to_window = False

    def _set_zoom(self, new_zoom: float,
                  anchor: Optional[Tuple[float, float]] = None) -> None:
        old_zoom = self.view.zoom
        if anchor is not None:
            pan = pan_for_anchor_zoom(self.view.pan, old_zoom, new_zoom, anchor)
        else:
            pan = pan_for_center_zoom(self.view.pan, old_zoom, new_zoom,
                                      self.current.width, self.current.height)
        self.view.zoom = new_zoom
        self.view.pan = self._constrain(pan)
        self.view.is_fit_to_window = False

    def _toggle_fit_actual(self) -> None:
        if self.view.is_fit_to_window:
            self._set_zoom(1.0)
            return
        fit = compute_fit_scale(self.current.width, self.current.height,
                                self.viewport_w, self.viewport_h)
        self._set_zoom(fit)
        self.view.is_fit_to_window = True

    def _pan(self, dx: float, dy: float) -> None:
        x, y = self.view.pan
        self.view.pan = self._constrain((x + dx, y + dy))
        self.view.is_fit_to_window = False

    def _pan_speed(self, fast: bool, slow: bool) -> float:
        if fast:
            return self.settings.pan_speed_fast
        if slow:
            return self.settings.pan_speed_slow
        return self.settings.pan_speed_normal

    def _drag_to(self, x: float, y: float) -> bool:
        moved = self.input.move(x, y)
        if moved is None:
            return False
        kind, origin, (dx, dy) = moved
        if kind is DragKind.PAN:
            self._pan(dx, dy)
        else:
            # Up or right zooms in
            factor = 1.0 + (dx - dy) * self.settings.z_drag_sensitivity
            self._set_zoom(clamp_zoom(self.view.zoom * factor), origin)
        return True

    def _resize(self, width: float, height: float) -> bool:
        if abs(width - self.viewport_w) <= 1.0 and abs(height - self.viewport_h) <= 1.0:
            return False
        self.viewport_w, self.viewport_h = width, height
        if self.view.is_fit_to_window:
            self._fit_to_window()
        return True

    # ───────────────────────────────────────────────────────────────────────
    # Filters / animation
    # ───────────────────────────────────────────────────────────────────────

    def _apply_filter_intent(self, intent: Intent) -> bool:
        if self.current is None:
            return False
        filters = self.view.filters
        if isinstance(intent, ToggleFiltersEnabled):
            self.view.filters_enabled = not self.view.filters_enabled
            log(f"[FILTER] Enabled={self.view.filters_enabled}")
            return True
        if isinstance(intent, ResetFilters):
            self.view.filters = self.settings.default_filters
            return filters != self.view.filters
        if intent.field is FilterField.BRIGHTNESS:
            self.view.filters = replace(filters, brightness=clamp(intent.value, *BRIGHTNESS_RANGE))
        elif intent.field is FilterField.CONTRAST:
            self.view.filters = replace(filters, contrast=clamp(intent.value, *CONTRAST_RANGE))
        else:
            self.view.filters = replace(filters, gamma=clamp(intent.value, *GAMMA_RANGE))
        return filters != self.view.filters

    def _apply_animation_intent(self, intent: Intent) -> bool:
        anim = self.view.animation
        if self.current is None or anim is None:
            return False
        if isinstance(intent, ToggleAnimationPlayback):
            anim.is_playing = not anim.is_playing
            self.player.reset()
            log(f"[ANIM] Playing={anim.is_playing} frame={anim.current_frame}")
            return True
        step_frame(anim, intent.delta)
        self.player.reset()
        return True

    # ───────────────────────────────────────────────────────────────────────
    # Outputs
    # ───────────────────────────────────────────────────────────────────────

    def view_state(self) -> ViewState:
        """Copy of the live view state."""
        return self.view.copy()

    @property
    def status(self) -> ViewerStatus:
        index, total = self.nav.position
        if self.nav.is_empty:
            phase = LoadPhase.EMPTY
        elif self.oversized is not None:
            phase = LoadPhase.OVERSIZED
        elif self.error_message is not None or self.render_error is not None:
            phase = LoadPhase.ERROR
        elif self.current is None:
            phase = LoadPhase.LOADING
        else:
            phase = LoadPhase.READY
        return ViewerStatus(
            phase=phase,
            identifier=self.nav.current_path,
            index=index,
            total=total,
            zoom_label=format_zoom_percentage(self.view.zoom),
            error=self.error_message or self.render_error,
            oversized=self.oversized,
        )

    def _source_image(self) -> Tuple[Optional[Image.Image], Hashable, float, Optional[Region]]:
        """Unfiltered pixels for the current view plus a cache key."""
        cur = self.current
        anim = self.view.animation
        if cur.animation and anim:
            idx = anim.current_frame
            return cur.animation.frames[idx].image, ("frame", idx), 1.0, None
        if cur.document is not None:
            raster = self._svg_frame(cur.document)
            if raster is None:
                return None, None, 1.0, None
            key = ("svg", raster.region, raster.scale)
            return raster.image, key, raster.scale, raster.region
        return cur.image, ("still",), 1.0, None

    def _svg_frame(self, doc: SvgDocument) -> Optional[SvgRaster]:
        scale = self.view.zoom
        if self.has_viewport:
            visible = visible_region(scale, self.view.pan, self.viewport_w, self.viewport_h)
        else:
            visible = doc.bounds
        last = self._svg_raster
        if not needs_rerender(last.region if last else None, last.scale if last else None,
                              visible, scale, doc.bounds):
            return last
        if scale == self._failed_scale:
            return None
        try:
            image, region = self.rasterizer.render_for_view(doc, scale, visible)
        except RpviewError as e:
            # Shown as ERROR until the zoom changes or another image loads
            log(f"[SVG][ERR] {e}")
            self.render_error = str(e)
            self._failed_scale = scale
            self._svg_raster = None
            return None
        self.render_error = None
        self._failed_scale = None
        self._svg_raster = SvgRaster(image, region, scale)
        return self._svg_raster

    def current_frame(self) -> Optional[Frame]:
        """The pixels to show right now, filtered if filters are on."""
        if self.current is None:
            return None
        image, key, scale, region = self._source_image()
        if image is None:
            return None

        filters = self.view.filters
        if self.view.filters_enabled and not is_identity(
                filters.brightness, filters.contrast, filters.gamma):
            cache_key = (key, filters)
            if cache_key != self._filtered_key:
                self._filtered_image = apply_filter_settings(image, filters)
                self._filtered_key = cache_key
            image = self._filtered_image

        return Frame(
            pixels=image.tobytes(),
            width=image.width,
            height=image.height,
            mode=image.mode,
            scale=scale,
            region=region,
            image=image,
        )
