import pytest

from rpview.errors import AllocationTooLarge, DecodeError, EmptyGeometry, NotFound
from rpview.svg import (
    FontDatabase,
    FontProvider,
    SvgRasterizer,
    needs_rerender,
    parse_length,
    parse_viewbox,
)
from rpview.types import Region


def test_parse_size_and_viewbox(rasterizer, red_svg):
    doc = rasterizer.parse(red_svg)
    assert doc.size == (100, 50)
    assert doc.viewbox == (0.0, 0.0, 200.0, 100.0)
    assert doc.bounds == Region(0.0, 0.0, 100.0, 50.0)


def test_fractional_size_rounds_up(rasterizer):
    doc = rasterizer.parse(
        b'<svg xmlns="http://www.w3.org/2000/svg" width="10.2" height="3.5"/>')
    assert doc.size == (11, 4)


def test_size_from_viewbox_only(rasterizer):
    doc = rasterizer.parse(
        b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 30 40"/>')
    assert doc.size == (30, 40)


def test_zero_size_is_empty_geometry(rasterizer):
    with pytest.raises(EmptyGeometry):
        rasterizer.parse(b'<svg xmlns="http://www.w3.org/2000/svg" width="0" height="10"/>')


def test_garbage_is_decode_error(rasterizer):
    with pytest.raises(DecodeError):
        rasterizer.parse(b"<svg this is not xml")


def test_missing_file(rasterizer, tmp_path):
    with pytest.raises(NotFound):
        rasterizer.parse(str(tmp_path / "missing.svg"))


def test_render_full(rasterizer, red_svg):
    doc = rasterizer.parse(red_svg)
    img = rasterizer.render_full(doc, 1.0)
    assert img.size == (100, 50)
    assert img.mode == "RGBA"
    assert img.getpixel((50, 25)) == (255, 0, 0, 255)
    assert rasterizer.render_full(doc, 2.0).size == (200, 100)


def test_render_zero_scale_is_empty(rasterizer, red_svg):
    doc = rasterizer.parse(red_svg)
    with pytest.raises(EmptyGeometry):
        rasterizer.render_full(doc, 0.0)


def test_render_refuses_huge_buffers(fonts, red_svg):
    rasterizer = SvgRasterizer(fonts, max_pixels=100)
    doc = rasterizer.parse(red_svg)
    with pytest.raises(AllocationTooLarge):
        rasterizer.render_full(doc, 1.0)


def test_viewport_render_above_threshold(fonts, red_svg):
    rasterizer = SvgRasterizer(fonts, full_render_max_pixels=100)
    doc = rasterizer.parse(red_svg)
    assert not rasterizer.fits_full_render(doc, 1.0)
    img, region = rasterizer.render_for_view(doc, 1.0, Region(0.0, 0.0, 20.0, 10.0))
    # Half a viewport of padding on each side, clipped to the document
    assert region == Region(0.0, 0.0, 30.0, 15.0)
    assert img.size == (30, 15)
    assert img.getpixel((15, 7)) == (255, 0, 0, 255)


def test_full_render_below_threshold(rasterizer, red_svg):
    doc = rasterizer.parse(red_svg)
    img, region = rasterizer.render_for_view(doc, 1.0, Region(0.0, 0.0, 20.0, 10.0))
    assert region == doc.bounds
    assert img.size == (100, 50)


def test_viewport_outside_document(fonts, red_svg):
    rasterizer = SvgRasterizer(fonts, full_render_max_pixels=100)
    doc = rasterizer.parse(red_svg)
    with pytest.raises(EmptyGeometry):
        rasterizer.render_viewport(doc, Region(500.0, 500.0, 20.0, 10.0), None, 1.0)


def test_needs_rerender():
    bounds = Region(0.0, 0.0, 100.0, 50.0)
    last = Region(0.0, 0.0, 30.0, 15.0)
    assert needs_rerender(None, None, Region(0, 0, 10, 10), 1.0, bounds)
    assert not needs_rerender(last, 1.0, Region(5.0, 5.0, 10.0, 5.0), 1.0, bounds)
    assert needs_rerender(last, 1.0, Region(5.0, 5.0, 10.0, 5.0), 1.5, bounds)
    assert needs_rerender(last, 1.0, Region(25.0, 5.0, 10.0, 5.0), 1.0, bounds)
    # Nothing of the document is visible: keep what we have
    assert not needs_rerender(last, 1.0, Region(200.0, 200.0, 10.0, 5.0), 1.0, bounds)


def test_font_resolution():
    db = FontDatabase(["DejaVu Sans"], default_family="Fallback")
    assert db.resolve("'Foo', DejaVu Sans, serif") == "DejaVu Sans"
    assert db.resolve("Foo, monospace") == "monospace"
    assert db.resolve("Foo") == "Fallback"
    assert db.has_family("dejavu sans")


def test_font_families_are_rewritten_at_parse(fonts):
    rasterizer = SvgRasterizer(fonts)
    doc = rasterizer.parse(
        b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10">'
        b'<text font-family="Nope, DejaVu Sans">x</text></svg>')
    text = doc.tree.children[0]
    assert text["font-family"] == "DejaVu Sans"


def test_font_provider_builds_once():
    calls = []

    def factory():
        calls.append(1)
        return FontDatabase(["A"])

    provider = FontProvider(factory)
    assert not provider.is_loaded
    assert provider.get() is provider.get()
    assert provider.is_loaded
    assert len(calls) == 1


def test_font_discovery_in_empty_dir(tmp_path):
    assert len(FontDatabase.discover([str(tmp_path)])) == 0


def test_parse_helpers():
    assert parse_length("2in") == 192.0
    assert parse_length("10") == 10.0
    assert parse_length("50%") is None
    assert parse_length(None) is None
    assert parse_viewbox("0,0,10 20") == (0.0, 0.0, 10.0, 20.0)
    assert parse_viewbox("1 2 3") is None
