"""
Persistent crop cache: remember applied crops across application restarts.

Source images are identified by a content fingerprint (see
``image_io.compute_fingerprint``), so renaming or moving a file keeps its
crops.  Stored image dimensions are checked on lookup to guard against a
different file that happens to share a fingerprint.

The on-disk format uses a versioned envelope::

    {
        "version": 1,
        "images": {
            "<fingerprint>": {
                "img_w": 4000,
                "img_h": 3000,
                "last_used": "2026-10-19T14:30:00+00:00",
                "crops": {
                    "4:5/8×10\\"": [800, 0, 2400, 3000]
                }
            }
        }
    }

Crops are keyed by ``PhysicalSize.key``.  Only crops the user applied in
the editor are stored; auto-crops are recomputed.
"""

import json
import logging
from datetime import datetime, timezone

from print_size_tool.config import config_dir
from print_size_tool.geometry import CropRegion, is_within_bounds

logger = logging.getLogger(__name__)

_CACHE_FILENAME = "crop_cache.json"
_CACHE_VERSION = 1

# Oldest entries beyond this count are dropped on save
MAX_CACHED_IMAGES = 500


def _region_to_list(region: CropRegion) -> list[int]:
    return [region.x, region.y, region.width, region.height]


def _list_to_region(data: object) -> CropRegion | None:
    if isinstance(data, list) and len(data) == 4 and all(
        isinstance(v, int) and not isinstance(v, bool) for v in data
    ):
        return CropRegion(*data)
    return None


def load_crop_cache() -> dict:
    """
    Load the crop cache from disk.

    Returns the ``images`` dict from the versioned envelope, or an empty
    dict if the file is missing, corrupt, or has an unexpected version.
    """
    path = config_dir() / _CACHE_FILENAME

    if not path.exists():
        logger.debug("No crop cache found at %s — starting fresh", path)
        return {}

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read crop cache (%s) — starting fresh", exc)
        return {}

    if not isinstance(raw, dict) or raw.get("version") != _CACHE_VERSION:
        logger.warning("Crop cache version mismatch or invalid format — starting fresh")
        return {}

    images = raw.get("images")
    if not isinstance(images, dict):
        logger.warning("Crop cache missing 'images' dict — starting fresh")
        return {}

    logger.info("Loaded crop cache with %d entries from %s", len(images), path)
    return images


def _evict_oldest(cache: dict, limit: int) -> dict:
    if len(cache) <= limit:
        return cache
    ordered = sorted(cache.items(), key=lambda item: str(item[1].get("last_used", "")), reverse=True)
    logger.debug("Evicting %d old crop cache entries", len(cache) - limit)
    return dict(ordered[:limit])


def save_crop_cache(cache: dict) -> None:
    """Write the crop cache to disk; write failures are logged, not raised."""
    envelope = {"version": _CACHE_VERSION, "images": _evict_oldest(cache, MAX_CACHED_IMAGES)}
    path = config_dir() / _CACHE_FILENAME
    try:
        path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Saved crop cache (%d entries) to %s", len(envelope["images"]), path)
    except OSError as exc:
        logger.error("Could not write crop cache to %s: %s", path, exc)


def lookup_crops(cache: dict, fingerprint: str, img_w: int, img_h: int) -> dict[str, CropRegion] | None:
    """
    Return ``{size key: CropRegion}`` stored for an image.

    Returns None on a miss or a dimension mismatch.  Individual crops that
    are malformed or fall outside the image are skipped.
    """
    entry = cache.get(fingerprint)
    if not isinstance(entry, dict):
        return None

    if entry.get("img_w") != img_w or entry.get("img_h") != img_h:
        logger.debug(
            "Crop cache dimension mismatch for %s: cached %sx%s, actual %sx%s — ignoring",
            fingerprint, entry.get("img_w"), entry.get("img_h"), img_w, img_h,
        )
        return None

    raw_crops = entry.get("crops")
    if not isinstance(raw_crops, dict):
        return None

    crops: dict[str, CropRegion] = {}
    for key, data in raw_crops.items():
        region = _list_to_region(data)
        if region is not None and is_within_bounds(region, img_w, img_h):
            crops[key] = region

    return crops or None


def store_crops(cache: dict, fingerprint: str, img_w: int, img_h: int, crops: dict[str, CropRegion]) -> None:
    """Upsert an image's crops into the in-memory cache."""
    cache[fingerprint] = {
        "img_w": img_w,
        "img_h": img_h,
        "last_used": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "crops": {key: _region_to_list(region) for key, region in crops.items()},
    }
