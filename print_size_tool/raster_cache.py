"""
On-disk cache of rasterized SVG uploads.

Rasterizing an SVG through ImageMagick at print density takes seconds, so
the decoded raster is kept as a PNG under the config directory.  Entries
are keyed by content fingerprint and rasterization density: the same SVG
rasterized at another density is a different entry.

Corrupt entries are deleted and treated as a miss.  Writes go through a
temporary file so a crash never leaves a half-written PNG behind.
"""

import logging
import os
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from print_size_tool.config import config_dir

logger = logging.getLogger(__name__)

_CACHE_DIR_NAME = "svg_rasters"


def cache_dir() -> Path:
    d = config_dir() / _CACHE_DIR_NAME
    d.mkdir(parents=True, exist_ok=True)
    return d


def raster_path(fingerprint: str, density: int) -> Path:
    return cache_dir() / f"{fingerprint}_{density}dpi.png"


def load_raster(fingerprint: str, density: int) -> Image.Image | None:
    """Return the decoded cached raster, or None on a miss."""
    if not fingerprint:
        return None
    path = raster_path(fingerprint, density)
    if not path.is_file():
        return None
    try:
        with Image.open(path) as img:
            img.load()
            logger.debug("Raster cache hit: %s", path.name)
            return img.copy()
    except (UnidentifiedImageError, OSError) as exc:
        logger.warning("Dropping corrupt raster cache entry %s: %s", path, exc)
        path.unlink(missing_ok=True)
        return None


def store_raster(fingerprint: str, density: int, image: Image.Image) -> None:
    """Write *image* to the cache; failures are logged and ignored."""
    if not fingerprint:
        return
    path = raster_path(fingerprint, density)
    tmp = path.with_suffix(".tmp")
    try:
        image.save(str(tmp), "PNG")
        os.replace(tmp, path)
        logger.debug("Stored raster cache entry %s", path.name)
    except OSError as exc:
        logger.warning("Failed to write raster cache %s: %s", path, exc)
        tmp.unlink(missing_ok=True)
