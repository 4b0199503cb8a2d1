import pytest
from PIL import Image

from rpview.filters import (
    apply_filter_settings,
    apply_filters,
    build_lut,
    contrast_factor,
    clamp_filters,
    gamma_lut,
    is_identity,
)
from rpview.types import FilterSettings


def gradient(mode="RGBA"):
    img = Image.new("RGBA", (256, 2))
    img.putdata([(v, 255 - v, (v * 7) % 256, v) for v in range(256)] * 2)
    return img.convert(mode)


@pytest.mark.parametrize("mode", ["RGBA", "RGB", "L"])
def test_identity_is_pixel_identical(mode):
    img = gradient(mode)
    out = apply_filters(img, 0.0, 0.0, 1.0)
    assert out is not img
    assert out.mode == img.mode
    assert out.tobytes() == img.tobytes()


def test_brightness_saturates():
    img = Image.new("RGB", (1, 1), (100, 100, 100))
    assert apply_filters(img, 100.0, 0.0, 1.0).getpixel((0, 0)) == (255, 255, 255)
    assert apply_filters(img, -100.0, 0.0, 1.0).getpixel((0, 0)) == (0, 0, 0)


@pytest.mark.parametrize("gamma", [1.2, 2.0, 5.0, 10.0])
def test_gamma_brightens_midtones(gamma):
    lut = gamma_lut(gamma)
    for v in range(1, 255):
        assert lut[v] >= v


@pytest.mark.parametrize("gamma", [0.1, 0.5, 1.0, 2.2, 10.0])
def test_gamma_fixed_points(gamma):
    lut = gamma_lut(gamma)
    assert lut[0] == 0
    assert lut[255] == 255


def test_combined_filters_change_every_channel():
    img = Image.new("RGB", (4, 4), (100, 100, 100))
    r, g, b = apply_filters(img, 10.0, 20.0, 1.2).getpixel((0, 0))
    assert r != 100 and g != 100 and b != 100


def test_alpha_is_untouched():
    img = Image.new("RGBA", (1, 1), (100, 100, 100, 37))
    assert apply_filters(img, 50.0, 30.0, 2.0).getpixel((0, 0))[3] == 37


def test_source_is_not_modified():
    img = Image.new("RGB", (2, 2), (100, 100, 100))
    apply_filters(img, 80.0, 0.0, 1.0)
    assert img.getpixel((0, 0)) == (100, 100, 100)


def test_unusual_modes_are_converted():
    img = Image.new("P", (2, 2), 3)
    assert apply_filters(img, 10.0, 0.0, 1.0).mode == "RGBA"


def test_gamma_only_lut_matches_gamma_table():
    assert build_lut(0.0, 0.0, 2.0) == gamma_lut(2.0)


def test_lut_is_identity_when_stages_are_skipped():
    assert build_lut(0.0, 0.0, 1.0) == list(range(256))


def test_contrast_factor_range():
    assert contrast_factor(0.0) == 1.0
    assert contrast_factor(100.0) == pytest.approx(3.0)
    assert contrast_factor(-100.0) == pytest.approx(0.1)


def test_clamp_filters():
    assert clamp_filters(500.0, -500.0, 0.0) == FilterSettings(100.0, -100.0, 0.1)


def test_is_identity_tolerance():
    assert is_identity(0.0005, -0.0005, 1.0005)
    assert not is_identity(0.01, 0.0, 1.0)


def test_apply_filter_settings():
    img = Image.new("RGB", (1, 1), (100, 100, 100))
    out = apply_filter_settings(img, FilterSettings(brightness=100.0))
    assert out.getpixel((0, 0)) == (255, 255, 255)
