"""
Saving results: file naming, single-file save, and ZIP archives.

Every output is named ``{original base name}_{size label}_300DPI.jpg``.
Size labels contain a ``"`` (inch mark), which is kept inside ZIP
archives but replaced when writing straight to a filesystem that
forbids it.
"""

import io
import logging
import re
import zipfile
from pathlib import Path
from typing import Callable, Iterable

from print_size_tool.config import TARGET_DPI
from print_size_tool.errors import ArchiveError
from print_size_tool.image_io import unique_path
from print_size_tool.results import ProcessedResult

logger = logging.getLogger(__name__)

# Characters forbidden in file names (superset across Windows/macOS/Linux)
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00]')

_EXTENSIONS = {"jpeg": "jpg"}


def base_name(original_name: str) -> str:
    """Strip the last extension: ``"My Art.PNG"`` → ``"My Art"``."""
    return re.sub(r"\.[^/.]+$", "", original_name)


def generate_filename(original_name: str, label: str, fmt: str = "jpeg") -> str:
    extension = _EXTENSIONS.get(fmt, fmt)
    return f"{base_name(original_name)}_{label}_{TARGET_DPI}DPI.{extension}"


def safe_filename(name: str) -> str:
    """Replace characters that are not allowed in file names with ``in``/``_``."""
    return _INVALID_FILENAME_CHARS.sub(lambda m: "in" if m.group() == '"' else "_", name)


def archive_name(original_name: str) -> str:
    return f"{base_name(original_name)}_AllSizes_{TARGET_DPI}DPI.zip"


def _dedupe(name: str, used: set[str]) -> str:
    """Append -01, -02, … to *name* until it is not in *used*."""
    if name not in used:
        return name
    stem, dot, ext = name.rpartition(".")
    counter = 1
    while f"{stem}-{counter:02d}{dot}{ext}" in used:
        counter += 1
    return f"{stem}-{counter:02d}{dot}{ext}"


def save_result(result: ProcessedResult, original_name: str, folder: Path) -> Path:
    """Write one result into *folder*, never overwriting an existing file."""
    folder.mkdir(parents=True, exist_ok=True)
    name = safe_filename(generate_filename(original_name, result.size.label))
    out_path = unique_path(folder / name)
    out_path.write_bytes(result.data)
    logger.info("Saved %s", out_path)
    return out_path


def build_archive(
    results: Iterable[ProcessedResult],
    original_name: str,
    progress: Callable[[float], None] | None = None,
) -> bytes:
    """
    Pack every result into an in-memory ZIP.

    Raises ArchiveError if a result has no image data or packing fails.
    """
    results = list(results)
    if not results:
        raise ArchiveError("No processed images to archive")

    buffer = io.BytesIO()
    used: set[str] = set()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as zf:
            for index, result in enumerate(results, start=1):
                if not result.data:
                    raise ArchiveError(f"Result for {result.size.label} has no image data")
                name = _dedupe(generate_filename(original_name, result.size.label), used)
                used.add(name)
                zf.writestr(name, result.data)
                if progress is not None:
                    progress(index / len(results))
    except (OSError, zipfile.BadZipFile, ValueError) as exc:
        raise ArchiveError(f"Could not build archive: {exc}") from exc
    return buffer.getvalue()


def write_archive(
    results: Iterable[ProcessedResult],
    original_name: str,
    folder: Path,
    progress: Callable[[float], None] | None = None,
) -> Path:
    """Build the ZIP for *results* and write it into *folder*."""
    data = build_archive(results, original_name, progress=progress)
    out_path = unique_path(folder / safe_filename(archive_name(original_name)))
    try:
        folder.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(data)
    except OSError as exc:
        raise ArchiveError(f"Could not write {out_path}: {exc}") from exc
    logger.info("Saved archive %s (%d bytes)", out_path, len(data))
    return out_path


# =============================================================================
# Size estimates for the gallery
# =============================================================================
def estimate_file_size(width: int, height: int, fmt: str = "jpeg") -> int:
    """Rough encoded size in bytes."""
    bytes_per_pixel = 0.5 if fmt == "jpeg" else 3
    return round(width * height * bytes_per_pixel)


def format_file_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"
