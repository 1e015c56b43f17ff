"""
Data models and print-geometry utilities.

Converts physical print sizes to pixel sizes at the target DPI, computes the
maximal centered crop for an aspect ratio, and maps points between source
image pixels and the scaled editor canvas.  All functions are pure and
Qt-free.
"""

import math
from dataclasses import dataclass

from print_size_tool.config import TARGET_DPI
from print_size_tool.sizes import ASPECT_RATIOS, PhysicalSize

# Allowed deviation between a crop's width/height and its target ratio
RATIO_TOLERANCE = 1e-2


# =============================================================================
# Data classes
# =============================================================================
@dataclass(frozen=True)
class PixelDimensions:
    """Pixel size of a print at the target DPI."""
    width: int
    height: int
    label: str = ""
    aspect_ratio: float = 1.0


@dataclass
class CropRegion:
    """Crop rectangle in source image coordinates."""
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @property
    def ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def as_box(self) -> tuple[int, int, int, int]:
        """Pillow crop box ``(left, upper, right, lower)``."""
        return self.x, self.y, self.x + self.width, self.y + self.height

    def copy(self) -> "CropRegion":
        return CropRegion(self.x, self.y, self.width, self.height)


# =============================================================================
# Unit conversion
# =============================================================================
def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_pixels(inches: float, dpi: int = TARGET_DPI) -> int:
    """Convert inches to whole pixels at *dpi*."""
    return _round_half_up(inches * dpi)


def to_inches(pixels: float, dpi: int = TARGET_DPI) -> float:
    """Convert pixels to inches at *dpi*."""
    return pixels / dpi


def pixel_dimensions_of(size: PhysicalSize, dpi: int = TARGET_DPI) -> PixelDimensions:
    """Pixel dimensions of a print size; each side is converted on its own."""
    return PixelDimensions(
        width=to_pixels(size.width, dpi),
        height=to_pixels(size.height, dpi),
        label=size.label,
        aspect_ratio=size.width / size.height,
    )


def best_aspect_ratio_match(img_w: int, img_h: int, ratios: dict[str, float] = ASPECT_RATIOS) -> str:
    """
    Return the key of *ratios* closest to the image's width/height ratio.

    Ties go to the first key in the mapping's iteration order, which for the
    catalog is its declaration order.
    """
    image_ratio = img_w / img_h
    best_key = None
    smallest = math.inf
    for key, ratio in ratios.items():
        difference = abs(image_ratio - ratio)
        if difference < smallest:
            smallest = difference
            best_key = key
    if best_key is None:
        raise ValueError("ratios must not be empty")
    return best_key


# =============================================================================
# Crop math utilities
# =============================================================================
def auto_crop(img_w: int, img_h: int, target_ratio: float) -> CropRegion:
    """Maximum crop with the target ratio, centered in the image."""
    if img_w / img_h > target_ratio:
        # Wider than the target: keep full height, trim the sides
        crop_h = img_h
        crop_w = min(img_w, _round_half_up(img_h * target_ratio))
    else:
        crop_w = img_w
        crop_h = min(img_h, _round_half_up(img_w / target_ratio))
    crop_w = max(1, crop_w)
    crop_h = max(1, crop_h)
    x = _round_half_up((img_w - crop_w) / 2)
    y = _round_half_up((img_h - crop_h) / 2)
    return clamp_origin(CropRegion(x, y, crop_w, crop_h), img_w, img_h)


def clamp_origin(region: CropRegion, img_w: int, img_h: int) -> CropRegion:
    """Move the region inside the image bounds; width and height are kept."""
    x = max(0, min(region.x, img_w - region.width))
    y = max(0, min(region.y, img_h - region.height))
    return CropRegion(x, y, region.width, region.height)


def clamp_region(region: CropRegion, img_w: int, img_h: int) -> CropRegion:
    """Shrink and move a region so it lies fully inside the image."""
    w = max(1, min(region.width, img_w))
    h = max(1, min(region.height, img_h))
    return clamp_origin(CropRegion(region.x, region.y, w, h), img_w, img_h)


def is_within_bounds(region: CropRegion, img_w: int, img_h: int) -> bool:
    return (
        region.x >= 0 and region.y >= 0
        and region.width > 0 and region.height > 0
        and region.x + region.width <= img_w
        and region.y + region.height <= img_h
    )


def matches_ratio(region: CropRegion, ratio: float, tol: float = RATIO_TOLERANCE) -> bool:
    return region.height > 0 and abs(region.ratio - ratio) <= tol


# =============================================================================
# Display mapping
# =============================================================================
def fit_scale(img_w: int, img_h: int, max_w: float, max_h: float, zoom: float = 1.0) -> float:
    """Scale that fits the image into ``max_w × max_h``, times *zoom*."""
    if img_w <= 0 or img_h <= 0:
        return 0.0
    return min(max_w / img_w, max_h / img_h) * zoom


def map_display_to_source(
    point: tuple[float, float],
    display_size: tuple[float, float],
    source_size: tuple[float, float],
) -> tuple[float, float]:
    """Scale a canvas point to source pixels, per axis."""
    dw, dh = display_size
    sw, sh = source_size
    if dw == 0 or dh == 0:
        return 0.0, 0.0
    return point[0] * sw / dw, point[1] * sh / dh


def map_source_to_display(
    point: tuple[float, float],
    source_size: tuple[float, float],
    display_size: tuple[float, float],
) -> tuple[float, float]:
    """Scale a source pixel point to canvas coordinates, per axis."""
    return map_display_to_source(point, source_size, display_size)
