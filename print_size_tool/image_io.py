"""
Qt-free image I/O utilities.

Provides helpers to validate uploads, open images (including SVG via
ImageMagick), compute content fingerprints, and generate unique file paths.
"""

import hashlib
import io
import logging
import subprocess
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from print_size_tool.config import (
    HAS_MAGICK, MAX_FILE_SIZE, SUPPORTED_EXTENSIONS,
    SVG_RASTER_MAX_DENSITY, SVG_RASTER_MIN_PIXELS, magick_cmd,
)
from print_size_tool.errors import DecodeError, ValidationError
from print_size_tool.raster_cache import load_raster, store_raster

logger = logging.getLogger(__name__)

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None

# Number of bytes read for fingerprinting (64 KB)
_FINGERPRINT_READ_SIZE = 65_536


def compute_fingerprint(path: Path) -> str:
    """
    Compute a fast content fingerprint for an image file.

    Reads the first 64 KB of the file and combines it with the file size
    to produce a truncated SHA-256 hex string.  Format: ``"{size_hex}_{hash16}"``.

    This identifies files by content rather than path, so renamed or moved
    files produce the same fingerprint.
    """
    size = path.stat().st_size
    sha = hashlib.sha256()
    with open(path, "rb") as f:
        sha.update(f.read(_FINGERPRINT_READ_SIZE))
    return f"{size:x}_{sha.hexdigest()[:16]}"


def validate_upload(path: Path) -> None:
    """Raise ValidationError listing every reason *path* cannot be used."""
    errors = []
    if not path.is_file():
        raise ValidationError([f"File not found: {path}"])

    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        errors.append("Supported formats: JPG, PNG, SVG")
    elif path.suffix.lower() == ".svg" and not HAS_MAGICK:
        errors.append("ImageMagick is required to open SVG files")

    if path.stat().st_size > MAX_FILE_SIZE:
        errors.append(f"File size must be less than {MAX_FILE_SIZE // (1024 * 1024)}MB")

    if errors:
        raise ValidationError(errors)


# =============================================================================
# SVG rasterization
# =============================================================================
def _svg_base_points(path: Path) -> tuple[int, int]:
    """Read an SVG's base dimensions at 72 DPI."""
    result = subprocess.run(
        magick_cmd("identify", "-density", "72", "-format", "%w %h", f"{path}[0]"),
        capture_output=True, text=True, timeout=30,
    )
    if result.returncode != 0:
        raise DecodeError(f"ImageMagick identify failed: {result.stderr.strip()}")
    parts = result.stdout.strip().split()
    return int(parts[0]), int(parts[1])


def _svg_density(w72: int, h72: int) -> int:
    """Calculate the density needed to rasterize an SVG at source resolution.

    Targets ``SVG_RASTER_MIN_PIXELS`` on the longest side, capped at
    ``SVG_RASTER_MAX_DENSITY``.
    """
    longest = max(w72, h72)
    if longest <= 0:
        return 72
    density = max(72, round(72 * SVG_RASTER_MIN_PIXELS / longest))
    return min(density, SVG_RASTER_MAX_DENSITY)


def _rasterize_svg(path: Path, density: int) -> Image.Image:
    """Rasterize an SVG file to a PIL Image on a white background."""
    result = subprocess.run(
        magick_cmd("-density", str(density), "-background", "white",
                   str(path), "-flatten", "PNG:-"),
        capture_output=True, timeout=120,
    )
    if result.returncode != 0:
        raise DecodeError(f"ImageMagick rasterize failed: {result.stderr.decode(errors='replace')}")
    return Image.open(io.BytesIO(result.stdout))


# =============================================================================
# Open
# =============================================================================
def open_image(path: Path, fingerprint: str = "") -> Image.Image:
    """
    Open and fully decode an image file as RGB.

    JPEG and PNG go through Pillow with EXIF orientation applied; SVG is
    rasterized with ImageMagick and cached by *fingerprint*.  Raises
    DecodeError when the file cannot be decoded.
    """
    try:
        if path.suffix.lower() == ".svg":
            density = _svg_density(*_svg_base_points(path))
            img = load_raster(fingerprint, density)
            if img is None:
                img = _rasterize_svg(path, density)
                img.load()
                store_raster(fingerprint, density, img)
        else:
            img = Image.open(path)
            img = ImageOps.exif_transpose(img)
        img.load()
        return img.convert("RGB")
    except DecodeError:
        raise
    except (UnidentifiedImageError, OSError, ValueError, IndexError, subprocess.SubprocessError) as exc:
        raise DecodeError(f"Cannot decode {path.name}: {exc}") from exc


def unique_path(out_path: Path) -> Path:
    """Return a unique path by appending -01, -02, etc. if file already exists."""
    if not out_path.exists():
        return out_path
    stem = out_path.stem
    suffix = out_path.suffix
    parent = out_path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}-{counter:02d}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1
