"""
Crop, resize and encode print outputs (Qt-free).

``render`` turns a source image plus an optional crop region into JPEG
bytes of an exact pixel size.  ``render_size`` adds the DPI metadata and
wraps the bytes in a ProcessedResult.  ``render_all`` walks the whole
catalog one size at a time.

JPEG encoding is deterministic for identical pixels and parameters with a
given libjpeg build; different builds may produce different bytes for the
same pixels.
"""

import io
import logging
from typing import Callable

from PIL import Image

from print_size_tool.config import JPEG_OPTIMIZE, JPEG_QUALITY, JPEG_SUBSAMPLING, TARGET_DPI
from print_size_tool.dpi import embed_resolution
from print_size_tool.errors import DecodeError
from print_size_tool.geometry import (
    CropRegion, PixelDimensions, auto_crop, clamp_region, pixel_dimensions_of,
)
from print_size_tool.results import ProcessedResult, issue_handle
from print_size_tool.sizes import PhysicalSize, SizeGroup, all_sizes

logger = logging.getLogger(__name__)


def render(source: Image.Image, dims: PixelDimensions, crop: CropRegion | None = None) -> bytes:
    """
    Crop *source* and resample it to exactly ``dims.width × dims.height``.

    Without *crop*, the maximal centered crop for ``dims.aspect_ratio`` is
    used.  Raises DecodeError if the source cannot be read.
    """
    try:
        img_w, img_h = source.size
        if crop is None:
            crop = auto_crop(img_w, img_h, dims.aspect_ratio)
        else:
            crop = clamp_region(crop, img_w, img_h)

        cropped = source.crop(crop.as_box())
        if cropped.mode != "RGB":
            cropped = cropped.convert("RGB")
        resized = cropped.resize((dims.width, dims.height), Image.Resampling.LANCZOS)

        out = io.BytesIO()
        resized.save(
            out, "JPEG",
            quality=JPEG_QUALITY,
            optimize=JPEG_OPTIMIZE,
            subsampling=JPEG_SUBSAMPLING,
        )
    except (OSError, ValueError, ZeroDivisionError, MemoryError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Cannot render {dims.label or f'{dims.width}x{dims.height}'}: {exc}") from exc
    return out.getvalue()


def render_size(
    source: Image.Image,
    size: PhysicalSize,
    crop: CropRegion | None = None,
    dpi: int = TARGET_DPI,
) -> ProcessedResult:
    """Render one catalog size with resolution metadata and a fresh handle."""
    dims = pixel_dimensions_of(size, dpi)
    data = embed_resolution(render(source, dims, crop), dpi)
    return ProcessedResult(
        size=size,
        pixel_dimensions=dims,
        data=data,
        handle=issue_handle(),
        crop=crop.copy() if crop is not None else None,
    )


class CatalogRender:
    """
    Lazy, restartable batch render over a catalog.

    Iterating renders each size in declaration order and yields a
    ProcessedResult for every size that succeeds.  Sizes with an entry in
    ``crops`` (keyed by ``PhysicalSize.key``) use that region; the rest are
    auto-cropped.  Sizes that raise DecodeError are logged and skipped.
    ``progress`` receives the completed fraction after every attempted size.
    """

    def __init__(
        self,
        source: Image.Image,
        catalog: list[SizeGroup],
        progress: Callable[[float], None] | None = None,
        dpi: int = TARGET_DPI,
        render_one: Callable[..., ProcessedResult] = render_size,
        crops: dict[str, CropRegion] | None = None,
    ):
        self._source = source
        self._sizes = all_sizes(catalog)
        self._progress = progress
        self._dpi = dpi
        self._render_one = render_one
        self._crops = dict(crops or {})
        self.failures: list[tuple[PhysicalSize, Exception]] = []

    def __len__(self) -> int:
        return len(self._sizes)

    def __iter__(self):
        self.failures = []
        total = len(self._sizes)
        for index, size in enumerate(self._sizes, start=1):
            try:
                crop = self._crops.get(size.key)
                result = self._render_one(self._source, size, crop=crop, dpi=self._dpi)
            except DecodeError as exc:
                logger.error("Error processing size %s: %s", size.label, exc)
                self.failures.append((size, exc))
                result = None
            if self._progress is not None:
                self._progress(index / total)
            if result is not None:
                yield result
        logger.info(
            "Rendered %d of %d size(s)", total - len(self.failures), total,
        )


def render_all(
    source: Image.Image,
    catalog: list[SizeGroup],
    progress: Callable[[float], None] | None = None,
    dpi: int = TARGET_DPI,
    crops: dict[str, CropRegion] | None = None,
) -> CatalogRender:
    return CatalogRender(source, catalog, progress=progress, dpi=dpi, crops=crops)
