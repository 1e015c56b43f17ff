"""
Size catalog: print sizes grouped by aspect-ratio family.

The built-in catalog lives in ``config.DEFAULT_CATALOG``.  An optional
``sizes.json`` in the user's config directory (provided by
``config.config_dir()``) may replace it at startup; the application never
writes that file.  If it is missing, corrupt or invalid, the defaults are
used.  This module is Qt-free.

The on-disk format uses a versioned envelope::

    {"version": 1, "groups": [ ... ]}

Each group has a ``key`` (e.g. ``"4:5"``), a float ``ratio`` and a
non-empty ``sizes`` list of ``{"width", "height", "label"}`` entries in
inches.  Declaration order is significant: it is the processing order and
the tie-break order for ``geometry.best_aspect_ratio_match``.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from print_size_tool.config import DEFAULT_CATALOG, config_dir

logger = logging.getLogger(__name__)

_SIZES_FILENAME = "sizes.json"
_FORMAT_VERSION = 1

_GROUP_REQUIRED_KEYS = {"key", "ratio", "sizes"}
_SIZE_REQUIRED_KEYS = {"width", "height", "label"}


# =============================================================================
# Data classes
# =============================================================================
@dataclass(frozen=True)
class PhysicalSize:
    """A target print size in inches."""
    width: float
    height: float
    label: str
    group: str = ""

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def key(self) -> str:
        """Identifier unique across the catalog (labels may repeat across groups)."""
        return f"{self.group}/{self.label}"


@dataclass(frozen=True)
class SizeGroup:
    """All catalog sizes sharing one aspect-ratio family."""
    key: str
    ratio: float
    sizes: tuple[PhysicalSize, ...]


# =============================================================================
# Catalog access
# =============================================================================
def build_catalog(data: list[dict]) -> list[SizeGroup]:
    """Turn validated raw group dicts into SizeGroup objects, keeping order."""
    groups = []
    for group in data:
        sizes = tuple(
            PhysicalSize(s["width"], s["height"], s["label"], group=group["key"])
            for s in group["sizes"]
        )
        groups.append(SizeGroup(group["key"], float(group["ratio"]), sizes))
    return groups


def default_catalog() -> list[SizeGroup]:
    return build_catalog(DEFAULT_CATALOG)


def all_sizes(catalog: list[SizeGroup]) -> list[PhysicalSize]:
    """Flatten the catalog in declaration order."""
    return [size for group in catalog for size in group.sizes]


def sizes_for_ratio(catalog: list[SizeGroup], key: str) -> list[PhysicalSize]:
    for group in catalog:
        if group.key == key:
            return list(group.sizes)
    return []


def aspect_ratios(catalog: list[SizeGroup]) -> dict[str, float]:
    """Ordered ``{group key: ratio}`` mapping."""
    return {group.key: group.ratio for group in catalog}


ASPECT_RATIOS = aspect_ratios(default_catalog())


# =============================================================================
# Validation
# =============================================================================
def _is_positive_number(val: object) -> bool:
    return isinstance(val, (int, float)) and not isinstance(val, bool) and val > 0


def validate_catalog(data: object) -> list[str]:
    """
    Validate a raw catalog structure (list of groups with sizes).

    Returns a list of error strings (empty means valid).
    """
    errors: list[str] = []

    if not isinstance(data, list) or not data:
        errors.append("Catalog must be a non-empty list")
        return errors

    keys_seen: set[str] = set()

    for i, group in enumerate(data):
        prefix = f"Group #{i + 1}"

        if not isinstance(group, dict):
            errors.append(f"{prefix}: must be a dict")
            continue

        missing = _GROUP_REQUIRED_KEYS - group.keys()
        if missing:
            errors.append(f"{prefix}: missing keys: {', '.join(sorted(missing))}")
            continue

        key = group.get("key")
        if not isinstance(key, str) or not key.strip():
            errors.append(f"{prefix}: key must be a non-empty string")
        elif key in keys_seen:
            errors.append(f"{prefix}: duplicate key '{key}'")
        else:
            keys_seen.add(key)

        if not _is_positive_number(group.get("ratio")):
            errors.append(f"{prefix}: ratio must be a positive number, got {group.get('ratio')!r}")

        sizes = group.get("sizes")
        if not isinstance(sizes, list) or len(sizes) == 0:
            errors.append(f"{prefix}: sizes must be a non-empty list")
            continue

        labels_seen: set[str] = set()
        for j, size in enumerate(sizes):
            sprefix = f"{prefix} size #{j + 1}"

            if not isinstance(size, dict):
                errors.append(f"{sprefix}: must be a dict")
                continue

            smissing = _SIZE_REQUIRED_KEYS - size.keys()
            if smissing:
                errors.append(f"{sprefix}: missing keys: {', '.join(sorted(smissing))}")
                continue

            for dim in ("width", "height"):
                if not _is_positive_number(size.get(dim)):
                    errors.append(f"{sprefix}: {dim} must be a positive number, got {size.get(dim)!r}")

            label = size.get("label")
            if not isinstance(label, str) or not label.strip():
                errors.append(f"{sprefix}: label must be a non-empty string")
            elif label in labels_seen:
                errors.append(f"{sprefix}: duplicate label '{label}' in group")
            else:
                labels_seen.add(label)

    return errors


# =============================================================================
# Load
# =============================================================================
def _sizes_path() -> Path:
    return config_dir() / _SIZES_FILENAME


def load_catalog() -> list[SizeGroup]:
    """
    Load the size catalog, preferring a valid sizes.json override.

    Falls back to the built-in catalog when the file is missing, corrupt,
    has no version envelope, or fails validation.
    """
    path = _sizes_path()

    if not path.exists():
        logger.debug("No sizes.json at %s — using built-in catalog", path)
        return default_catalog()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read sizes.json (%s) — using built-in catalog", exc)
        return default_catalog()

    if not isinstance(raw, dict) or raw.get("version") != _FORMAT_VERSION or "groups" not in raw:
        logger.warning("sizes.json version mismatch or missing envelope — using built-in catalog")
        return default_catalog()

    data = raw["groups"]
    errors = validate_catalog(data)
    if errors:
        logger.warning(
            "sizes.json validation failed:\n  %s\nUsing built-in catalog.",
            "\n  ".join(errors),
        )
        return default_catalog()

    catalog = build_catalog(data)
    logger.info("Loaded %d size(s) in %d group(s) from %s", len(all_sizes(catalog)), len(catalog), path)
    return catalog
