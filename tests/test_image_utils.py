import os
import warnings

import pytest
from PIL import Image

from rpview.errors import DecodeError, NotFound, UnsupportedFormat
from rpview.image_utils import (
    SourceKind,
    classify,
    decode_image,
    get_modified_time,
    is_supported_image,
    probe_image_dimensions,
    read_dimensions,
)


def test_classify():
    assert classify("a.PNG") is SourceKind.RASTER
    assert classify("a.gif") is SourceKind.RASTER
    assert classify("a.svg") is SourceKind.VECTOR
    with pytest.raises(UnsupportedFormat):
        classify("notes.txt")


def test_is_supported_image():
    assert is_supported_image("x.jpeg")
    assert not is_supported_image("x")


def test_header_dimensions_png_and_jpeg(tmp_path):
    png = tmp_path / "a.png"
    Image.new("RGB", (31, 17)).save(png)
    jpg = tmp_path / "a.jpg"
    Image.new("RGB", (33, 19)).save(jpg)
    assert probe_image_dimensions(str(png)) == (31, 17)
    assert probe_image_dimensions(str(jpg)) == (33, 19)


def test_read_dimensions_falls_back_to_pillow(make_gif):
    assert read_dimensions(make_gif(size=(12, 9))) == (12, 9)


def test_read_dimensions_errors(tmp_path):
    with pytest.raises(NotFound):
        read_dimensions(str(tmp_path / "missing.png"))
    junk = tmp_path / "junk.png"
    junk.write_bytes(b"definitely not an image")
    with pytest.raises(UnsupportedFormat):
        read_dimensions(str(junk))


def test_decode_image_is_rgba(make_png):
    img = decode_image(make_png(size=(5, 4)))
    assert img.mode == "RGBA"
    assert img.size == (5, 4)


def test_decode_missing(tmp_path):
    with pytest.raises(NotFound):
        decode_image(str(tmp_path / "missing.png"))


def test_decode_truncated_png(tmp_path):
    full = tmp_path / "noise.png"
    Image.frombytes("RGB", (64, 64), os.urandom(64 * 64 * 3)).save(full)
    broken = tmp_path / "broken.png"
    broken.write_bytes(full.read_bytes()[:200])
    with pytest.raises((DecodeError, UnsupportedFormat)):
        decode_image(str(broken))


def test_modified_time(make_png, tmp_path):
    assert get_modified_time(make_png()) is not None
    assert get_modified_time(str(tmp_path / "missing.png")) is None


def test_read_dimensions_above_default_pixel_cap(make_bmp_header):
    with warnings.catch_warnings():
        warnings.simplefilter("error", Image.DecompressionBombWarning)
        assert read_dimensions(make_bmp_header(size=(14000, 14000))) == (14000, 14000)


def test_pixel_cap_error_maps_to_decode_error(make_bmp_header, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(DecodeError):
        read_dimensions(make_bmp_header(size=(100, 100)))


def test_jpeg_dimensions_after_app_segments(tmp_path):
    jpg = tmp_path / "exif.jpg"
    exif = Image.Exif()
    exif[0x010F] = "rpview"
    Image.new("RGB", (45, 23)).save(jpg, exif=exif.tobytes(), dpi=(72, 72))
    data = jpg.read_bytes()
    # Fill bytes before the first marker after SOI are legal
    padded = tmp_path / "padded.jpg"
    padded.write_bytes(data[:2] + b"\xff\xff" + data[2:])
    assert probe_image_dimensions(str(jpg)) == (45, 23)
    assert probe_image_dimensions(str(padded)) == (45, 23)


def test_jpeg_without_soi_is_not_sized(tmp_path):
    bogus = tmp_path / "bogus.jpg"
    bogus.write_bytes(b"\x00\x00\xff\xc0\x00\x11\x08\x00\x10\x00\x10")
    assert probe_image_dimensions(str(bogus)) is None
