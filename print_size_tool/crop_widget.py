"""
Crop editor canvas, editor dialog, and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, ``bytes_to_qpixmap``, the ``CropCanvas`` that executes
``crop_editor.draw_commands`` with QPainter, and the ``CropEditorDialog``
around it.  All crop math lives in ``crop_editor.CropInteractor``.
"""

from PIL import Image
from PyQt6.QtCore import QRectF, Qt
from PyQt6.QtGui import (
    QColor, QImage, QKeyEvent, QMouseEvent, QPainter, QPaintEvent, QPen, QPixmap,
)
from PyQt6.QtWidgets import (
    QDialog, QHBoxLayout, QLabel, QMessageBox, QPushButton, QScrollArea,
    QSizePolicy, QVBoxLayout, QWidget,
)

from print_size_tool.crop_editor import CropInteractor, DrawCommand, EditorState, draw_commands


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgba = pil_img.convert("RGBA")
    data = img_rgba.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgba.width, img_rgba.height, QImage.Format.Format_RGBA8888)
    # QImage does not own *data*; copy before it goes out of scope
    return QPixmap.fromImage(qimg.copy())


def bytes_to_qpixmap(data: bytes) -> QPixmap:
    """Decode encoded image bytes (JPEG) into a QPixmap."""
    pixmap = QPixmap()
    pixmap.loadFromData(data, "JPG")
    return pixmap


def _qcolor(rgba: tuple[int, int, int, int]) -> QColor:
    return QColor(*rgba)


# =============================================================================
# Crop canvas: executes draw commands, forwards input to the interactor
# =============================================================================

class CropCanvas(QWidget):
    """Fixed-size canvas showing the source with the crop overlay."""

    def __init__(self, interactor: CropInteractor, pixmap: QPixmap, parent=None):
        super().__init__(parent)
        self._interactor = interactor
        self._pixmap = pixmap
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMouseTracking(True)
        self.setCursor(Qt.CursorShape.SizeAllCursor)
        self.sync_size()

    def sync_size(self):
        """Resize to the interactor's canvas size (changes with zoom)."""
        cw, ch = self._interactor.canvas_size()
        self.setFixedSize(max(1, int(cw)), max(1, int(ch)))
        self.update()

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        view = self._interactor.view()
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(30, 30, 30))
        if view is not None:
            for command in draw_commands(view):
                self._execute(painter, command)
        painter.end()

    def _execute(self, painter: QPainter, command: DrawCommand):
        rect = QRectF(*command.rect)
        if command.op == "image":
            painter.drawPixmap(rect.toRect(), self._pixmap)
        elif command.op == "fill":
            painter.fillRect(rect, _qcolor(command.color))
        elif command.op == "stroke":
            painter.setPen(QPen(_qcolor(command.color), command.width))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(rect)
        elif command.op == "text":
            painter.setPen(_qcolor(command.color))
            painter.drawText(
                rect.toRect(),
                Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignBottom,
                command.text,
            )

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        pos = event.position()
        self._interactor.pointer_down(pos.x(), pos.y())

    def mouseMoveEvent(self, event: QMouseEvent):
        pos = event.position()
        if self._interactor.pointer_move(pos.x(), pos.y()):
            self.update()

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            self._interactor.pointer_up()

    def leaveEvent(self, event):
        self._interactor.pointer_leave()
        super().leaveEvent(event)

    # --- Keyboard nudge ---

    def keyPressEvent(self, event: QKeyEvent):
        large = bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier)
        moves = {
            Qt.Key.Key_Left: (-1, 0),
            Qt.Key.Key_Right: (1, 0),
            Qt.Key.Key_Up: (0, -1),
            Qt.Key.Key_Down: (0, 1),
        }
        delta = moves.get(event.key())
        if delta is not None and self._interactor.nudge(*delta, large=large):
            self.update()
        else:
            super().keyPressEvent(event)


# =============================================================================
# Crop editor dialog
# =============================================================================

class CropEditorDialog(QDialog):
    """Modal editor for one print size: zoom, reset, cancel, apply."""

    def __init__(self, interactor: CropInteractor, pixmap: QPixmap, parent=None):
        super().__init__(parent)
        self._interactor = interactor
        size = interactor.size
        self.setWindowTitle(f"Crop for {size.label}")
        self.setMinimumSize(900, 700)

        layout = QVBoxLayout(self)

        hint = QLabel(f"Drag to move the crop area. The crop keeps the {size.label} aspect ratio.")
        hint.setStyleSheet("color: #aaa;")
        layout.addWidget(hint)

        self._canvas = CropCanvas(interactor, pixmap)
        self._scroll = QScrollArea()
        self._scroll.setWidget(self._canvas)
        self._scroll.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._scroll.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        layout.addWidget(self._scroll, stretch=1)

        controls = QHBoxLayout()
        btn_zoom_out = QPushButton("−")
        btn_zoom_out.setToolTip("Zoom out")
        btn_zoom_out.clicked.connect(self._zoom_out)
        controls.addWidget(btn_zoom_out)

        self._zoom_label = QLabel()
        self._zoom_label.setMinimumWidth(60)
        self._zoom_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        controls.addWidget(self._zoom_label)

        btn_zoom_in = QPushButton("+")
        btn_zoom_in.setToolTip("Zoom in")
        btn_zoom_in.clicked.connect(self._zoom_in)
        controls.addWidget(btn_zoom_in)

        btn_reset = QPushButton("↺ Reset")
        btn_reset.clicked.connect(self._reset)
        controls.addWidget(btn_reset)

        controls.addStretch()

        btn_cancel = QPushButton("Cancel")
        btn_cancel.clicked.connect(self.reject)
        controls.addWidget(btn_cancel)

        self._btn_apply = QPushButton("✓ Apply Crop")
        self._btn_apply.setDefault(True)
        self._btn_apply.clicked.connect(self._apply)
        controls.addWidget(self._btn_apply)

        layout.addLayout(controls)
        self._update_zoom_label()

    def showEvent(self, event):
        super().showEvent(event)
        self._fit_viewport()

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._fit_viewport()

    def _fit_viewport(self):
        viewport = self._scroll.viewport().size()
        self._interactor.set_viewport(viewport.width(), viewport.height())
        self._canvas.sync_size()

    def _update_zoom_label(self):
        self._zoom_label.setText(f"{round(self._interactor.zoom * 100)}%")

    def _zoom_in(self):
        self._interactor.zoom_in()
        self._canvas.sync_size()
        self._update_zoom_label()

    def _zoom_out(self):
        self._interactor.zoom_out()
        self._canvas.sync_size()
        self._update_zoom_label()

    def _reset(self):
        self._interactor.reset()
        self._canvas.update()

    def _apply(self):
        self._btn_apply.setEnabled(False)
        result = self._interactor.apply()
        self._btn_apply.setEnabled(True)
        if result is None:
            QMessageBox.warning(self, "Apply Crop", self._interactor.last_error or "Could not apply crop.")
            self._canvas.update()
            return
        self.accept()

    def reject(self):
        if self._interactor.state != EditorState.CLOSED:
            self._interactor.cancel()
        super().reject()
