"""
Application entry point, logging setup, and dark-theme stylesheet.

Usage:
    python -m print_size_tool.app
    print-size-tool          (after pip install)

Set ``PRINT_SIZE_TOOL_LOG=DEBUG`` for verbose logging.
"""

import logging
import os
import sys

from PyQt6.QtWidgets import QApplication

from print_size_tool.config import LOG_LEVEL_ENV
from print_size_tool.main_window import MainWindow

DARK_STYLESHEET = """
    QMainWindow { background: #2b2b2b; }
    QWidget { background: #2b2b2b; color: #ddd; font-size: 10pt; }
    QListWidget { background: #1e1e1e; border: 1px solid #444; }
    QListWidget::item { padding: 4px; }
    QListWidget::item:selected { background: #3a6ea5; }
    QGroupBox { border: 1px solid #555; border-radius: 4px; margin-top: 8px; padding-top: 12px; font-weight: bold; }
    QGroupBox::title { subcontrol-origin: margin; left: 8px; padding: 0 4px; }
    QPushButton { background: #3a3a3a; border: 1px solid #555; border-radius: 4px; padding: 6px 12px; }
    QPushButton:hover { background: #4a4a4a; }
    QPushButton:pressed { background: #2a2a2a; }
    QPushButton:disabled { color: #666; }
    QToolBar { background: #333; border-bottom: 1px solid #444; spacing: 4px; padding: 4px; }
    QStatusBar { background: #333; border-top: 1px solid #444; }
    QProgressBar { border: 1px solid #555; border-radius: 3px; text-align: center; }
    QProgressBar::chunk { background: #3a6ea5; }
"""


def configure_logging() -> None:
    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def main():
    configure_logging()
    app = QApplication(sys.argv)
    app.setStyleSheet(DARK_STYLESHEET)

    window = MainWindow()
    window.show()

    try:
        sys.exit(app.exec())
    except (SystemExit, KeyboardInterrupt):
        pass


if __name__ == "__main__":
    main()
