"""
Local image transforms for crop-resize and filters blocks.

All helpers take and return encoded image bytes; results are PNG.
"""

import io
from typing import Callable, Dict, Optional, Tuple

from PIL import Image, ImageFilter, ImageOps

from animation_engine.pipeline.types import CropFormat

CROP_RATIOS: Dict[CropFormat, Tuple[int, int]] = {
    CropFormat.SQUARE: (1, 1),
    CropFormat.WIDE: (16, 9),
    CropFormat.CLASSIC: (4, 3),
}

ASPECT_RATIO_SIZES: Dict[str, Tuple[int, int]] = {
    "1:1": (1, 1),
    "9:16": (9, 16),
    "16:9": (16, 9),
    "2:3": (2, 3),
    "3:2": (3, 2),
}


def load_image(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image = ImageOps.exif_transpose(image)
    return image.convert("RGB")


def to_png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def target_size(ratio: Tuple[int, int], dimension: int) -> Tuple[int, int]:
    """Size with the given ratio whose longest side is `dimension`."""
    ratio_w, ratio_h = ratio
    if ratio_w >= ratio_h:
        return dimension, max(1, round(dimension * ratio_h / ratio_w))
    return max(1, round(dimension * ratio_w / ratio_h)), dimension


def crop_resize(data: bytes, crop_format: CropFormat, dimension: Optional[int]) -> bytes:
    """
    Center-crop to the format's ratio and scale to `dimension` on the long side.

    The original format keeps the source framing and only scales when a
    dimension is given.
    """
    image = load_image(data)

    if crop_format == CropFormat.ORIGINAL:
        if dimension:
            image = image.copy()
            scale = dimension / max(image.size)
            new_size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
            image = image.resize(new_size, Image.LANCZOS)
        return to_png_bytes(image)

    size = target_size(CROP_RATIOS[crop_format], dimension)
    return to_png_bytes(ImageOps.fit(image, size, Image.LANCZOS))


def _sepia(image: Image.Image) -> Image.Image:
    gray = ImageOps.grayscale(image)
    return ImageOps.colorize(gray, black="#2e1f0f", white="#f5e6c8")


FILTERS: Dict[str, Callable[[Image.Image], Image.Image]] = {
    "grayscale": lambda img: ImageOps.grayscale(img).convert("RGB"),
    "sepia": _sepia,
    "blur": lambda img: img.filter(ImageFilter.GaussianBlur(radius=2)),
    "sharpen": lambda img: img.filter(ImageFilter.SHARPEN),
    "autocontrast": ImageOps.autocontrast,
    "invert": ImageOps.invert,
}


def apply_filters(data: bytes, filters) -> bytes:
    """Apply named filters in order. Unknown names raise KeyError."""
    image = load_image(data)
    for name in filters:
        image = FILTERS[name](image)
    return to_png_bytes(image)


def placeholder_image(aspect_ratio: Optional[str], dimension: int, seed: str) -> bytes:
    """A flat-colour image standing in for a provider result."""
    ratio = ASPECT_RATIO_SIZES.get(aspect_ratio or "1:1", (1, 1))
    digest = sum(ord(ch) * (i + 1) for i, ch in enumerate(seed))
    color = (digest % 256, (digest // 7) % 256, (digest // 13) % 256)
    return to_png_bytes(Image.new("RGB", target_size(ratio, dimension), color=color))
