"""
Explicit application state for one working session.

The Qt layer owns one ``Session`` and passes it to the components that
need it.  State changes happen through the named action methods below:

* ``load_source`` validates and decodes an upload and clears old results.
* ``process_all`` renders the whole catalog; a second call while one is
  running is rejected rather than interleaved.
* ``apply_result`` swaps in one re-rendered size (crop editor).
* ``reset`` drops everything and releases every display handle.

This module is Qt-free.
"""

import logging
import threading
from pathlib import Path
from typing import Callable

from PIL import Image

from print_size_tool.crop_cache import lookup_crops, store_crops
from print_size_tool.geometry import CropRegion
from print_size_tool.image_io import compute_fingerprint, open_image, validate_upload
from print_size_tool.resample import render_all
from print_size_tool.results import ProcessedResult, ResultStore
from print_size_tool.sizes import PhysicalSize, SizeGroup, load_catalog

logger = logging.getLogger(__name__)


class Session:
    """Source image, catalog, results and progress for one upload."""

    def __init__(self, catalog: list[SizeGroup] | None = None, crop_cache: dict | None = None):
        self.catalog = catalog if catalog is not None else load_catalog()
        self.results = ResultStore()
        self.source: Image.Image | None = None
        self.source_path: Path | None = None
        self.source_name = ""
        self.fingerprint = ""
        self.crops: dict[str, CropRegion] = {}
        self.progress = 0.0
        self.error: str | None = None
        self._crop_cache = crop_cache
        self._processing = threading.Lock()

    # --- Source ---

    def load_source(self, path: Path) -> None:
        """Validate and decode *path*; raises ValidationError or DecodeError."""
        validate_upload(path)
        fingerprint = compute_fingerprint(path)
        image = open_image(path, fingerprint=fingerprint)

        self.reset()
        self.source = image
        self.source_path = path
        self.source_name = path.name
        self.fingerprint = fingerprint

        if self._crop_cache is not None:
            restored = lookup_crops(self._crop_cache, fingerprint, image.width, image.height)
            if restored:
                self.crops.update(restored)
                logger.info("Restored %d saved crop(s) for %s", len(restored), path.name)

        logger.info("Loaded %s (%d×%d)", path.name, image.width, image.height)

    def has_source(self) -> bool:
        return self.source is not None

    # --- Processing ---

    @property
    def processing(self) -> bool:
        return self._processing.locked()

    def process_all(self, progress: Callable[[float], None] | None = None) -> bool:
        """
        Render every catalog size and replace all results.

        Sizes with a remembered crop (applied earlier or restored from the
        crop cache) are rendered with it; the rest are auto-cropped.

        Returns False without doing anything if no source is loaded or a
        run is already in progress.
        """
        if self.source is None:
            logger.warning("process_all called without a source image")
            return False
        if not self._processing.acquire(blocking=False):
            logger.warning("Processing already in progress — request rejected")
            return False
        try:
            self.progress = 0.0
            self.error = None

            def _report(fraction: float) -> None:
                self.progress = fraction
                if progress is not None:
                    progress(fraction)

            crops = {key: crop.copy() for key, crop in self.crops.items()}
            batch = render_all(self.source, self.catalog, progress=_report, crops=crops)
            self.results.replace_all(list(batch))
            if batch.failures:
                labels = ", ".join(size.label for size, _ in batch.failures)
                self.error = f"Some sizes could not be produced: {labels}"
            return True
        finally:
            self._processing.release()

    # --- Crop edits ---

    def stored_crop(self, size: PhysicalSize) -> CropRegion | None:
        crop = self.crops.get(size.key)
        return crop.copy() if crop is not None else None

    def apply_result(self, result: ProcessedResult) -> None:
        """Replace one size's result and remember its crop."""
        self.results.replace(result)
        if result.crop is not None:
            self.crops[result.key] = result.crop.copy()
        else:
            self.crops.pop(result.key, None)

    def save_crops(self) -> None:
        """Write the remembered crops into the persistent crop cache dict."""
        if self._crop_cache is None or self.source is None or not self.crops:
            return
        store_crops(self._crop_cache, self.fingerprint, self.source.width, self.source.height, self.crops)

    # --- Errors / reset ---

    def set_error(self, message: str) -> None:
        self.error = message

    def clear_error(self) -> None:
        self.error = None

    def reset(self) -> None:
        """Forget the source and all results; releases every display handle."""
        self.results.clear()
        self.source = None
        self.source_path = None
        self.source_name = ""
        self.fingerprint = ""
        self.crops.clear()
        self.progress = 0.0
        self.error = None
