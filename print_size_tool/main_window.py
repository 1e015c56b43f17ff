"""
Main application window.

Orchestrates opening a source image, rendering the whole size catalog on a
background thread, previewing each size, launching the crop editor for one
size, and saving one file or all files as a ZIP.
"""

from pathlib import Path

from PyQt6.QtCore import QObject, Qt, QThread, pyqtSignal
from PyQt6.QtGui import QAction, QKeySequence, QPixmap, QShortcut
from PyQt6.QtWidgets import (
    QFileDialog, QGroupBox, QLabel, QListWidget, QListWidgetItem, QMainWindow,
    QMessageBox, QProgressBar, QPushButton, QScrollArea, QSplitter, QStatusBar,
    QToolBar, QVBoxLayout, QWidget, QApplication,
)

from print_size_tool.config import SUPPORTED_EXTENSIONS, TARGET_DPI
from print_size_tool.crop_cache import load_crop_cache, save_crop_cache
from print_size_tool.crop_editor import CropInteractor
from print_size_tool.crop_widget import CropEditorDialog, bytes_to_qpixmap, pil_to_qpixmap
from print_size_tool.errors import ArchiveError, PrintSizeError
from print_size_tool.export import estimate_file_size, format_file_size, save_result, write_archive
from print_size_tool.geometry import best_aspect_ratio_match
from print_size_tool.results import ProcessedResult
from print_size_tool.session import Session
from print_size_tool.sizes import aspect_ratios

_ROLE_KEY = Qt.ItemDataRole.UserRole


# =============================================================================
# Background batch render
# =============================================================================

class BatchRenderThread(QThread):
    """Runs ``Session.process_all`` off the GUI thread."""
    progress = pyqtSignal(float)
    done = pyqtSignal(bool)

    def __init__(self, session: Session, parent=None):
        super().__init__(parent)
        self._session = session

    def run(self):
        started = False
        try:
            started = self._session.process_all(progress=self.progress.emit)
        finally:
            self.done.emit(started)


class _HandleRelay(QObject):
    """Delivers released result handles to the GUI thread."""
    released = pyqtSignal(str)


# =============================================================================
# Main window
# =============================================================================

class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Print Size Tool")
        self.setMinimumSize(900, 500)

        preferred_w, preferred_h = 1600, 1000
        screen = QApplication.primaryScreen()
        if screen is not None:
            avail = screen.availableGeometry()
            preferred_w = min(preferred_w, int(avail.width() * 0.8))
            preferred_h = min(preferred_h, int(avail.height() * 0.8))
        self.resize(preferred_w, preferred_h)

        self._crop_cache: dict = load_crop_cache()
        self._session = Session(crop_cache=self._crop_cache)
        self._source_pixmap: QPixmap | None = None
        self._batch: BatchRenderThread | None = None
        self._batch_running = False
        self._output_folder: Path | None = None

        # Display pixmaps keyed by result handle; freed when the store releases a handle
        self._pixmaps: dict[str, QPixmap] = {}
        self._relay = _HandleRelay(self)
        self._relay.released.connect(self._on_handle_released)
        self._session.results.on_release(self._relay.released.emit)

        self._build_ui()
        self._update_button_states()

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        self._build_toolbar()

        splitter = QSplitter(Qt.Orientation.Horizontal)
        self.setCentralWidget(splitter)

        # Left: size list
        left = QWidget()
        left_layout = QVBoxLayout(left)
        left_layout.setContentsMargins(0, 0, 0, 0)
        left_layout.addWidget(QLabel("Print sizes:"))
        self._size_list = QListWidget()
        self._size_list.currentRowChanged.connect(self._on_size_selected)
        self._size_list.itemDoubleClicked.connect(lambda _item: self._edit_crop())
        left_layout.addWidget(self._size_list)
        splitter.addWidget(left)

        # Center: preview
        self._preview = QLabel("Open an image to begin.")
        self._preview.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._preview.setStyleSheet("background: #1e1e1e;")
        preview_scroll = QScrollArea()
        preview_scroll.setWidgetResizable(True)
        preview_scroll.setWidget(self._preview)
        splitter.addWidget(preview_scroll)

        splitter.addWidget(self._build_right_panel())
        splitter.setSizes([260, 900, 260])

        self._status = QStatusBar()
        self.setStatusBar(self._status)
        self._progress_bar = QProgressBar()
        self._progress_bar.setRange(0, 100)
        self._progress_bar.setMaximumWidth(200)
        self._progress_bar.hide()
        self._status.addPermanentWidget(self._progress_bar)
        self._status.showMessage(f"Open a JPG, PNG or SVG image to create {TARGET_DPI} DPI print files.")

        QShortcut(QKeySequence(Qt.Key.Key_E), self, self._edit_crop)

    def _build_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        act_open = QAction("📂 Open Image", self)
        act_open.setShortcut(QKeySequence.StandardKey.Open)
        act_open.triggered.connect(self._open_image)
        toolbar.addAction(act_open)

        toolbar.addSeparator()

        self._act_save_one = QAction("💾 Save Selected", self)
        self._act_save_one.triggered.connect(self._save_selected)
        toolbar.addAction(self._act_save_one)

        self._act_save_all = QAction("🗜 Save All (ZIP)", self)
        self._act_save_all.triggered.connect(self._save_all)
        toolbar.addAction(self._act_save_all)

        toolbar.addSeparator()

        self._act_new = QAction("New Project", self)
        self._act_new.triggered.connect(self._new_project)
        toolbar.addAction(self._act_new)

    def _build_right_panel(self) -> QWidget:
        panel = QWidget()
        layout = QVBoxLayout(panel)
        layout.setContentsMargins(0, 0, 0, 0)

        source_group = QGroupBox("Source")
        source_layout = QVBoxLayout(source_group)
        self._source_label = QLabel("—")
        self._source_label.setWordWrap(True)
        source_layout.addWidget(self._source_label)
        layout.addWidget(source_group)

        size_group = QGroupBox("Selected size")
        size_layout = QVBoxLayout(size_group)
        self._size_info = QLabel("—")
        self._size_info.setWordWrap(True)
        size_layout.addWidget(self._size_info)
        self._btn_edit = QPushButton("✂ Edit Crop  (E)")
        self._btn_edit.clicked.connect(self._edit_crop)
        size_layout.addWidget(self._btn_edit)
        layout.addWidget(size_group)

        layout.addStretch()
        return panel

    # =========================================================================
    # Source image
    # =========================================================================

    def _open_image(self):
        if self._busy():
            return
        patterns = " ".join(f"*{ext}" for ext in sorted(SUPPORTED_EXTENSIONS))
        filename, _ = QFileDialog.getOpenFileName(self, "Open Image", "", f"Images ({patterns})")
        if not filename:
            return
        self._load_source(Path(filename))

    def _load_source(self, path: Path):
        self._flush_crops()
        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        try:
            self._session.load_source(path)
        except PrintSizeError as exc:
            QMessageBox.warning(self, "Cannot open image", str(exc))
            return
        finally:
            QApplication.restoreOverrideCursor()

        self._source_pixmap = pil_to_qpixmap(self._session.source)
        src = self._session.source
        ratios = aspect_ratios(self._session.catalog)
        best = best_aspect_ratio_match(src.width, src.height, ratios)
        self._source_label.setText(
            f"{path.name}\n{src.width}×{src.height}px\nClosest print ratio: {best}"
        )
        self._size_list.clear()
        self._preview.setText("Processing…")
        self._start_batch()

    # =========================================================================
    # Batch render
    # =========================================================================

    def _start_batch(self):
        if self._batch_running:
            self._status.showMessage("Processing is already running.")
            return
        self._progress_bar.setValue(0)
        self._progress_bar.show()
        self._status.showMessage(f"Processing {self._session.source_name}…")
        self._batch = BatchRenderThread(self._session, self)
        self._batch.progress.connect(lambda f: self._progress_bar.setValue(round(f * 100)))
        self._batch.done.connect(self._on_batch_done)
        self._batch_running = True
        self._batch.start()
        self._update_button_states()

    def _on_batch_done(self, started: bool):
        self._batch_running = False
        self._progress_bar.hide()
        self._rebuild_size_list()
        count = len(self._session.results)
        total = sum(len(g.sizes) for g in self._session.catalog)
        if not started:
            self._status.showMessage("Processing request was rejected.")
        else:
            self._status.showMessage(f"Created {count} of {total} print sizes.")
        if self._session.error:
            QMessageBox.warning(self, "Some sizes failed", self._session.error)
            self._session.clear_error()
        self._update_button_states()

    # =========================================================================
    # Size list / preview
    # =========================================================================

    def _rebuild_size_list(self):
        current = self._current_key()
        self._size_list.blockSignals(True)
        self._size_list.clear()
        row_to_select = 0
        for row, result in enumerate(self._session.results):
            item = QListWidgetItem(self._item_text(result))
            item.setData(_ROLE_KEY, result.key)
            self._size_list.addItem(item)
            if result.key == current:
                row_to_select = row
        self._size_list.blockSignals(False)
        if self._size_list.count():
            self._size_list.setCurrentRow(row_to_select)
        else:
            self._preview.setText("No print sizes could be produced.")

    @staticmethod
    def _item_text(result: ProcessedResult) -> str:
        dims = result.pixel_dimensions
        mark = "✂" if result.crop is not None else "  "
        return f"{mark} {result.size.group}  {result.size.label}  ({dims.width}×{dims.height})"

    def _current_key(self) -> str | None:
        item = self._size_list.currentItem()
        return item.data(_ROLE_KEY) if item is not None else None

    def _current_result(self) -> ProcessedResult | None:
        key = self._current_key()
        return self._session.results.get(key) if key else None

    def _pixmap_for(self, result: ProcessedResult) -> QPixmap:
        pixmap = self._pixmaps.get(result.handle)
        if pixmap is None:
            pixmap = bytes_to_qpixmap(result.data)
            self._pixmaps[result.handle] = pixmap
        return pixmap

    def _on_handle_released(self, handle: str):
        self._pixmaps.pop(handle, None)

    def _on_size_selected(self, row: int):
        result = self._current_result()
        if result is None:
            self._size_info.setText("—")
            self._update_button_states()
            return
        pixmap = self._pixmap_for(result)
        self._preview.setPixmap(pixmap.scaled(
            900, 900, Qt.AspectRatioMode.KeepAspectRatio, Qt.TransformationMode.SmoothTransformation,
        ))
        dims = result.pixel_dimensions
        crop = result.crop
        crop_text = f"{crop.width}×{crop.height} at ({crop.x}, {crop.y})" if crop else "auto (centered)"
        self._size_info.setText(
            f"{result.size.label}  ·  {result.size.group}\n"
            f"{dims.width}×{dims.height}px at {TARGET_DPI} DPI\n"
            f"Crop: {crop_text}\n"
            f"File: {format_file_size(len(result.data))} "
            f"(est. {format_file_size(estimate_file_size(dims.width, dims.height))})"
        )
        self._update_button_states()

    # =========================================================================
    # Crop editor
    # =========================================================================

    def _edit_crop(self):
        result = self._current_result()
        if result is None or self._busy() or self._source_pixmap is None:
            return
        stored = result.crop or self._session.stored_crop(result.size)
        interactor = CropInteractor(self._session.source, commit=self._session.apply_result)
        interactor.open(result.size, stored)
        dialog = CropEditorDialog(interactor, self._source_pixmap, self)
        if dialog.exec() == CropEditorDialog.DialogCode.Accepted:
            self._session.save_crops()
            self._rebuild_size_list()
            self._status.showMessage(f"Crop applied for {result.size.label}.")

    # =========================================================================
    # Saving
    # =========================================================================

    def _choose_output_folder(self) -> Path | None:
        folder = QFileDialog.getExistingDirectory(
            self, "Select Output Folder", str(self._output_folder or ""),
        )
        if folder:
            self._output_folder = Path(folder)
        return Path(folder) if folder else None

    def _save_selected(self):
        result = self._current_result()
        if result is None:
            return
        folder = self._choose_output_folder()
        if folder is None:
            return
        try:
            out_path = save_result(result, self._session.source_name, folder)
        except OSError as exc:
            QMessageBox.critical(self, "Save failed", f"Could not save {result.size.label}:\n{exc}")
            return
        self._status.showMessage(f"Saved {out_path}")

    def _save_all(self):
        results = self._session.results.snapshot()
        if not results:
            return
        folder = self._choose_output_folder()
        if folder is None:
            return
        self._progress_bar.setValue(0)
        self._progress_bar.show()
        try:
            out_path = write_archive(
                results, self._session.source_name, folder,
                progress=lambda f: self._progress_bar.setValue(round(f * 100)),
            )
        except ArchiveError as exc:
            QMessageBox.critical(self, "Save failed", str(exc))
            return
        finally:
            self._progress_bar.hide()
        self._status.showMessage(f"Saved {len(results)} sizes to {out_path}")

    # =========================================================================
    # Session
    # =========================================================================

    def _new_project(self):
        if self._busy():
            return
        self._flush_crops()
        self._session.reset()
        self._source_pixmap = None
        self._size_list.clear()
        self._preview.clear()
        self._preview.setText("Open an image to begin.")
        self._source_label.setText("—")
        self._size_info.setText("—")
        self._status.showMessage("Ready.")
        self._update_button_states()

    def _busy(self) -> bool:
        return self._batch_running or self._session.processing

    def _update_button_states(self):
        busy = self._busy()
        has_results = len(self._session.results) > 0
        has_selection = self._current_result() is not None
        self._act_save_one.setEnabled(has_selection and not busy)
        self._act_save_all.setEnabled(has_results and not busy)
        self._act_new.setEnabled(self._session.has_source() and not busy)
        self._btn_edit.setEnabled(has_selection and not busy)

    def _flush_crops(self):
        self._session.save_crops()
        save_crop_cache(self._crop_cache)

    def closeEvent(self, event):
        """Flush the crop cache and wait for a running batch before closing."""
        if self._batch is not None and self._batch.isRunning():
            self._batch.wait()
        self._flush_crops()
        super().closeEvent(event)
