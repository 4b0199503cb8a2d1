"""SVG parsing and rasterization.

Documents are parsed once into an immutable tree; every render after that
works from the tree. Small documents are rasterized whole at the current
scale. Once the full raster would exceed SVG_FULL_RENDER_MAX_PIXELS only a
padded rectangle around the visible area is rasterized, and the caller
keeps the returned Region to decide when a new raster is needed.
"""

from __future__ import annotations
import copy
import io
import math
import os
import re
import sys
import threading
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Tuple, Union

from PIL import Image, ImageFont
from cairosvg.parser import Tree
from cairosvg.surface import PNGSurface

from .config import (
    SVG_FULL_RENDER_MAX_PIXELS,
    SVG_VIEWPORT_PADDING,
    MAX_RASTER_PIXELS,
    SVG_DPI,
    SVG_DEFAULT_FONT_FAMILY,
)
from .errors import AllocationTooLarge, DecodeError, EmptyGeometry, NotFound
from .logging import log, now
from .types import Region

GENERIC_FAMILIES = frozenset({"serif", "sans-serif", "monospace", "cursive", "fantasy"})
FONT_EXTS = frozenset({".ttf", ".otf", ".ttc"})

# Units relative to 1 user unit (px) at 96 dpi
_UNITS = {
    "": 1.0, "px": 1.0, "pt": 96.0 / 72.0, "pc": 16.0,
    "in": 96.0, "cm": 96.0 / 2.54, "mm": 96.0 / 25.4,
}
_LENGTH_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*([a-z%]*)\s*$")


def system_font_dirs() -> List[str]:
    """Platform font directories, existing ones only."""
    home = os.path.expanduser("~")
    if sys.platform == "win32":
        dirs = [os.path.join(os.environ.get("WINDIR", r"C:\Windows"), "Fonts"),
                os.path.join(home, "AppData", "Local", "Microsoft", "Windows", "Fonts")]
    elif sys.platform == "darwin":
        dirs = ["/System/Library/Fonts", "/Library/Fonts",
                os.path.join(home, "Library", "Fonts")]
    else:
        dirs = ["/usr/share/fonts", "/usr/local/share/fonts",
                os.path.join(home, ".fonts"),
                os.path.join(home, ".local", "share", "fonts")]
    return [d for d in dirs if os.path.isdir(d)]


class FontDatabase:
    """Read-only set of installed font families."""

    def __init__(self, families: Iterable[str] = (),
                 default_family: str = SVG_DEFAULT_FONT_FAMILY):
        self._families: FrozenSet[str] = frozenset(f.strip().lower() for f in families)
        self._default_family = default_family

    @property
    def families(self) -> FrozenSet[str]:
        return self._families

    @property
    def default_family(self) -> str:
        return self._default_family

    def __len__(self) -> int:
        return len(self._families)

    def has_family(self, family: str) -> bool:
        name = family.strip().strip("'\"").lower()
        return name in GENERIC_FAMILIES or name in self._families

    def resolve(self, font_family: str) -> str:
        """First installed (or generic) family of a CSS font-family list.

        Falls back to the default family when none is available.
        """
        for token in font_family.split(","):
            name = token.strip().strip("'\"")
            if name and self.has_family(name):
                return name
        return self._default_family

    @classmethod
    def discover(cls, font_dirs: Optional[Iterable[str]] = None) -> FontDatabase:
        """Scan font directories and read each font's family name.

        This opens every font file on the system; expect tens of
        milliseconds or more.
        """
        t0 = now()
        families = set()
        scanned = 0
        for root_dir in (system_font_dirs() if font_dirs is None else font_dirs):
            for dirpath, _dirnames, filenames in os.walk(root_dir):
                for name in filenames:
                    if os.path.splitext(name)[1].lower() not in FONT_EXTS:
                        continue
                    scanned += 1
                    try:
                        family, _style = ImageFont.truetype(os.path.join(dirpath, name), 12).getname()
                    except (OSError, ValueError):
                        continue
                    if family:
                        families.add(family)
        log(f"[SVG][FONTS] Discovered {len(families)} families in {scanned} files "
            f"({(now() - t0) * 1000.0:.1f}ms)")
        return cls(families)


class FontProvider:
    """Lazily builds one FontDatabase and hands out the same instance forever.

    Share one provider between every rasterizer of a process; the database
    is built on the first get() and never changes afterwards.
    """

    def __init__(self, factory: Callable[[], FontDatabase] = FontDatabase.discover):
        self._factory = factory
        self._db: Optional[FontDatabase] = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._db is not None

    def get(self) -> FontDatabase:
        db = self._db
        if db is not None:
            return db
        with self._lock:
            if self._db is None:
                self._db = self._factory()
            return self._db


def parse_length(value: Optional[str]) -> Optional[float]:
    """SVG length in user units; None for missing or percentage values."""
    if not value:
        return None
    m = _LENGTH_RE.match(value)
    if not m or m.group(2) not in _UNITS:
        return None
    return float(m.group(1)) * _UNITS[m.group(2)]


def parse_viewbox(value: Optional[str]) -> Optional[Tuple[float, float, float, float]]:
    if not value:
        return None
    parts = value.replace(",", " ").split()
    if len(parts) != 4:
        return None
    try:
        x, y, w, h = (float(p) for p in parts)
    except ValueError:
        return None
    return (x, y, w, h)


@dataclass(frozen=True)
class SvgDocument:
    """A parsed SVG. Treat ``tree`` as read-only once built."""
    tree: Any  # cairosvg.parser.Tree
    width: float
    height: float
    viewbox: Tuple[float, float, float, float]
    source: str = ""

    @property
    def size(self) -> Tuple[int, int]:
        """Intrinsic pixel size (rounded up)."""
        return (int(math.ceil(self.width)), int(math.ceil(self.height)))

    @property
    def bounds(self) -> Region:
        return Region(0.0, 0.0, self.width, self.height)


def _walk(node: Any):
    yield node
    for child in getattr(node, "children", ()):
        yield from _walk(child)


class SvgRasterizer:
    """Stateless (per call) SVG renderer with an injected font database."""

    def __init__(
        self,
        fonts: FontProvider,
        full_render_max_pixels: int = SVG_FULL_RENDER_MAX_PIXELS,
        padding_factor: float = SVG_VIEWPORT_PADDING,
        max_pixels: int = MAX_RASTER_PIXELS,
    ):
        self.fonts = fonts
        self.full_render_max_pixels = full_render_max_pixels
        self.padding_factor = padding_factor
        self.max_pixels = max_pixels

    def parse(self, source: Union[str, bytes]) -> SvgDocument:
        """
        Parse SVG from a path or raw bytes.

        Raises:
            NotFound: Path does not exist.
            DecodeError: Payload is not a parseable SVG.
            EmptyGeometry: Document has zero width or height.
        """
        name = "<bytes>"
        if isinstance(source, str):
            name = source
            try:
                with open(source, "rb") as f:
                    data = f.read()
            except FileNotFoundError:
                raise NotFound(f"file not found: {source}", source)
            except OSError as e:
                raise DecodeError(f"cannot read {source}: {e}", source) from e
        else:
            data = source

        try:
            tree = Tree(bytestring=data)
        except Exception as e:
            raise DecodeError(f"failed to parse SVG {os.path.basename(name)}: {e}", name) from e

        db = self.fonts.get()
        for node in _walk(tree):
            family = node.get("font-family")
            if family:
                node["font-family"] = db.resolve(family)

        viewbox = parse_viewbox(tree.get("viewBox"))
        width = parse_length(tree.get("width"))
        height = parse_length(tree.get("height"))
        if viewbox is not None:
            if width is None and height is None:
                width, height = viewbox[2], viewbox[3]
            elif width is None:
                width = height * viewbox[2] / viewbox[3] if viewbox[3] else 0.0
            elif height is None:
                height = width * viewbox[3] / viewbox[2] if viewbox[2] else 0.0
        width = width or 0.0
        height = height or 0.0

        if width <= 0 or height <= 0:
            raise EmptyGeometry(f"SVG has zero dimensions: {os.path.basename(name)}", name)
        if viewbox is None or viewbox[2] <= 0 or viewbox[3] <= 0:
            viewbox = (0.0, 0.0, width, height)

        doc = SvgDocument(tree=tree, width=width, height=height, viewbox=viewbox, source=name)
        log(f"[SVG] Parsed {os.path.basename(name)} ({width:.0f}x{height:.0f})")
        return doc

    def output_size(self, region: Region, scale: float) -> Tuple[int, int]:
        return (int(math.ceil(region.width * scale)), int(math.ceil(region.height * scale)))

    def _render_region(self, doc: SvgDocument, region: Region, scale: float) -> Image.Image:
        out_w, out_h = self.output_size(region, scale)
        if out_w <= 0 or out_h <= 0:
            raise EmptyGeometry(f"empty raster {out_w}x{out_h} at scale {scale}", doc.source)
        if out_w * out_h > self.max_pixels:
            raise AllocationTooLarge(
                f"raster {out_w}x{out_h} exceeds {self.max_pixels} pixels", doc.source)

        # Map the document-space region into the root viewBox space.
        vx, vy, vw, vh = doc.viewbox
        sx = vw / doc.width
        sy = vh / doc.height
        root = copy.copy(doc.tree)
        root["viewBox"] = (f"{vx + region.x * sx} {vy + region.y * sy} "
                           f"{region.width * sx} {region.height * sy}")
        root["preserveAspectRatio"] = "none"
        root["width"] = str(out_w)
        root["height"] = str(out_h)

        output = io.BytesIO()
        try:
            surface = PNGSurface(root, output, SVG_DPI)
            surface.finish()
        except MemoryError as e:
            raise AllocationTooLarge(f"cannot allocate {out_w}x{out_h} raster", doc.source) from e
        except Exception as e:
            raise DecodeError(f"failed to render SVG: {e!r}", doc.source) from e

        output.seek(0)
        img = Image.open(output).convert("RGBA")
        img.load()
        return img

    def render_full(self, doc: SvgDocument, scale: float) -> Image.Image:
        """
        Rasterize the whole document at scale.

        Raises:
            EmptyGeometry: Output would be 0 pixels on an axis.
            AllocationTooLarge: Output buffer is too large.
        """
        t0 = now()
        img = self._render_region(doc, doc.bounds, scale)
        log(f"[SVG] Full render {os.path.basename(doc.source)} at {scale:.3f}x "
            f"-> {img.width}x{img.height} ({(now() - t0) * 1000.0:.1f}ms)")
        return img

    def padded_region(self, doc: SvgDocument, visible: Region,
                      padding_factor: Optional[float] = None) -> Region:
        """Visible region grown by padding_factor on each side, clipped to the document."""
        factor = self.padding_factor if padding_factor is None else padding_factor
        pad_x = visible.width * factor
        pad_y = visible.height * factor
        padded = Region(visible.x - pad_x, visible.y - pad_y,
                        visible.width + 2 * pad_x, visible.height + 2 * pad_y)
        return padded.intersect(doc.bounds)

    def render_viewport(
        self,
        doc: SvgDocument,
        visible: Region,
        padding_factor: Optional[float],
        scale: float,
    ) -> Tuple[Image.Image, Region]:
        """
        Rasterize only a padded rectangle around the visible region.

        Returns:
            (raster, document-space rectangle the raster covers)

        Raises:
            EmptyGeometry: Visible region does not overlap the document.
            AllocationTooLarge: Output buffer is too large.
        """
        region = self.padded_region(doc, visible, padding_factor)
        if region.is_empty:
            raise EmptyGeometry("visible region lies outside the document", doc.source)
        t0 = now()
        img = self._render_region(doc, region, scale)
        log(f"[SVG] Viewport render ({region.x:.0f},{region.y:.0f} "
            f"{region.width:.0f}x{region.height:.0f}) at {scale:.3f}x "
            f"-> {img.width}x{img.height} ({(now() - t0) * 1000.0:.1f}ms)")
        return img, region

    def fits_full_render(self, doc: SvgDocument, scale: float) -> bool:
        """True when the whole document at scale is under the full-render threshold."""
        w, h = self.output_size(doc.bounds, scale)
        return w * h <= self.full_render_max_pixels

    def render_for_view(self, doc: SvgDocument, scale: float,
                        visible: Region) -> Tuple[Image.Image, Region]:
        """Full render below the threshold, padded viewport render above it."""
        if self.fits_full_render(doc, scale):
            return self.render_full(doc, scale), doc.bounds
        return self.render_viewport(doc, visible, None, scale)


def needs_rerender(
    last_region: Optional[Region],
    last_scale: Optional[float],
    visible: Region,
    scale: float,
    doc_bounds: Region,
) -> bool:
    """True when the cached raster no longer serves the current view.

    That is the case after any zoom change, or when the visible part of the
    document has moved outside the rectangle that was rasterized.
    """
    if last_region is None or last_scale is None:
        return True
    if abs(last_scale - scale) > 1e-6:
        return True
    on_doc = visible.intersect(doc_bounds)
    if on_doc.is_empty:
        return False
    return not last_region.contains(on_doc)
