"""Pytest configuration.

Loader threads and the store log through the shared rpview logger; keep
test output clean by silencing it for the whole session. Image fixtures
are written with Pillow into ``tmp_path``.
"""

from __future__ import annotations

import struct

import pytest
from PIL import Image

from rpview.logging import set_quiet
from rpview.svg import FontDatabase, FontProvider, SvgRasterizer


RED_SVG = (
    b'<svg xmlns="http://www.w3.org/2000/svg" width="100" height="50" '
    b'viewBox="0 0 200 100">'
    b'<rect x="0" y="0" width="200" height="100" fill="#ff0000"/>'
    b'</svg>'
)


def pytest_configure(config) -> None:  # noqa: ARG001
    set_quiet(True)


@pytest.fixture
def fonts():
    """Provider over a fixed font database; never scans the system."""
    return FontProvider(lambda: FontDatabase(["DejaVu Sans"]))


@pytest.fixture
def rasterizer(fonts):
    return SvgRasterizer(fonts)


@pytest.fixture
def make_png(tmp_path):
    def _make(name="image.png", size=(40, 20), color=(100, 100, 100, 255)):
        path = tmp_path / name
        Image.new("RGBA", size, color).save(path)
        return str(path)
    return _make


@pytest.fixture
def make_gif(tmp_path):
    def _make(name="anim.gif", colors=((255, 0, 0), (0, 255, 0), (0, 0, 255)),
              durations=(100, 200, 300), size=(16, 16)):
        path = tmp_path / name
        frames = [Image.new("RGB", size, c) for c in colors]
        if len(frames) == 1:
            frames[0].save(path)
        else:
            frames[0].save(path, save_all=True, append_images=frames[1:],
                           duration=list(durations), loop=0)
        return str(path)
    return _make


@pytest.fixture
def make_svg(tmp_path):
    def _make(name="drawing.svg", data=RED_SVG):
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)
    return _make


@pytest.fixture
def red_svg():
    return RED_SVG


@pytest.fixture
def make_bmp_header(tmp_path):
    """Header-only 1-bit BMP; Pillow reads the size without touching pixels."""
    def _make(name="huge.bmp", size=(20000, 20000)):
        palette = b"\x00\x00\x00\x00\xff\xff\xff\x00"
        offset = 14 + 40 + len(palette)
        info = struct.pack("<IiiHHIIiiII", 40, size[0], size[1], 1, 1,
                           0, 0, 2835, 2835, 0, 0)
        path = tmp_path / name
        path.write_bytes(b"BM" + struct.pack("<IHHI", offset, 0, 0, offset) + info + palette)
        return str(path)
    return _make
