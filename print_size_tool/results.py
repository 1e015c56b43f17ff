"""
Processed results and the shared result collection.

A ``ProcessedResult`` holds one encoded output per catalog size.  Every
newly encoded image gets a fresh display handle from ``issue_handle()``;
the display layer maps handles to pixmaps and frees them when the store
reports the handle as released.

``ResultStore`` is the only mutable collection of results.  All access
goes through one lock, so readers never see a half-replaced entry.
"""

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable

from print_size_tool.geometry import CropRegion, PixelDimensions
from print_size_tool.sizes import PhysicalSize

logger = logging.getLogger(__name__)

_handle_counter = itertools.count(1)
_handle_lock = threading.Lock()


def issue_handle() -> str:
    """Return a new process-unique display handle."""
    with _handle_lock:
        return f"result-{next(_handle_counter)}"


@dataclass(frozen=True)
class ProcessedResult:
    """One rendered print size."""
    size: PhysicalSize
    pixel_dimensions: PixelDimensions
    data: bytes
    handle: str
    crop: CropRegion | None = None  # None: auto-crop was used

    @property
    def key(self) -> str:
        return self.size.key


class ResultStore:
    """Ordered, lock-guarded collection of ProcessedResult keyed by size key."""

    def __init__(self):
        self._lock = threading.RLock()
        self._results: dict[str, ProcessedResult] = {}
        self._release_callbacks: list[Callable[[str], None]] = []

    def on_release(self, callback: Callable[[str], None]) -> None:
        """Register *callback* to receive handles that are no longer displayed."""
        self._release_callbacks.append(callback)

    def _release(self, handles: Iterable[str]) -> None:
        for handle in handles:
            for callback in self._release_callbacks:
                callback(handle)

    def replace_all(self, results: Iterable[ProcessedResult]) -> None:
        """Swap in a whole new batch, releasing every old handle."""
        new = {result.key: result for result in results}
        with self._lock:
            old = [r.handle for r in self._results.values()]
            self._results = new
        self._release(old)

    def replace(self, result: ProcessedResult) -> ProcessedResult:
        """Swap one entry, keeping its position; returns the previous entry."""
        with self._lock:
            previous = self._results.get(result.key)
            if previous is None:
                raise KeyError(result.key)
            self._results[result.key] = result
        self._release([previous.handle])
        logger.debug("Replaced result %s (%s → %s)", result.key, previous.handle, result.handle)
        return previous

    def get(self, key: str) -> ProcessedResult | None:
        with self._lock:
            return self._results.get(key)

    def snapshot(self) -> list[ProcessedResult]:
        with self._lock:
            return list(self._results.values())

    def clear(self) -> None:
        self.replace_all([])

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def __iter__(self):
        return iter(self.snapshot())
