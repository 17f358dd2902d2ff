"""
Tests for local image transforms.
"""

import io

import pytest
from PIL import Image

from animation_engine.pipeline.imaging import (
    apply_filters,
    crop_resize,
    placeholder_image,
    target_size,
)
from animation_engine.pipeline.types import CropFormat


def size_of(data: bytes):
    with Image.open(io.BytesIO(data)) as image:
        return image.size


def pixel(data: bytes, xy=(0, 0)):
    with Image.open(io.BytesIO(data)) as image:
        return image.convert("RGB").getpixel(xy)


class TestTargetSize:

    def test_landscape(self):
        assert target_size((16, 9), 1024) == (1024, 576)

    def test_portrait(self):
        assert target_size((9, 16), 1024) == (576, 1024)

    def test_square(self):
        assert target_size((1, 1), 512) == (512, 512)


class TestCropResize:

    def test_square(self, png_factory):
        result = crop_resize(png_factory((640, 480)), CropFormat.SQUARE, 256)

        assert size_of(result) == (256, 256)

    def test_wide(self, png_factory):
        result = crop_resize(png_factory((300, 300)), CropFormat.WIDE, 512)

        assert size_of(result) == (512, 288)

    def test_classic(self, png_factory):
        result = crop_resize(png_factory((1000, 200)), CropFormat.CLASSIC, 400)

        assert size_of(result) == (400, 300)

    def test_original_scales_long_side(self, png_factory):
        result = crop_resize(png_factory((400, 200)), CropFormat.ORIGINAL, 800)

        assert size_of(result) == (800, 400)

    def test_original_without_dimension_keeps_size(self, png_factory):
        result = crop_resize(png_factory((123, 45)), CropFormat.ORIGINAL, None)

        assert size_of(result) == (123, 45)

    def test_output_is_png(self, png_bytes):
        result = crop_resize(png_bytes, CropFormat.SQUARE, 256)

        assert result[:8] == b"\x89PNG\r\n\x1a\n"


class TestApplyFilters:

    def test_grayscale(self, png_factory):
        r, g, b = pixel(apply_filters(png_factory(color=(200, 50, 10)), ["grayscale"]))

        assert r == g == b

    def test_invert(self, png_factory):
        assert pixel(apply_filters(png_factory(color=(200, 50, 10)), ["invert"])) == (55, 205, 245)

    def test_filters_apply_in_order(self, png_factory):
        data = png_factory(color=(200, 50, 10))

        twice = apply_filters(data, ["invert", "invert"])

        assert pixel(twice) == (200, 50, 10)

    def test_keeps_size(self, png_factory):
        assert size_of(apply_filters(png_factory((80, 60)), ["blur", "sharpen", "sepia"])) == (80, 60)

    def test_unknown_filter(self, png_bytes):
        with pytest.raises(KeyError):
            apply_filters(png_bytes, ["vaporwave"])


class TestPlaceholderImage:

    def test_aspect_ratio(self):
        assert size_of(placeholder_image("9:16", 512, seed="x")) == (288, 512)

    def test_deterministic(self):
        assert placeholder_image("1:1", 64, seed="same") == placeholder_image("1:1", 64, seed="same")

    def test_default_ratio(self):
        assert size_of(placeholder_image(None, 64, seed="x")) == (64, 64)
