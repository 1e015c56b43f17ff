"""
Application constants and configuration.

DEFAULT_CATALOG provides the built-in print sizes. An optional sizes.json
in the config directory may override it at startup (see the sizes module).
All other constants control rendering, the crop editor, and upload limits.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by all persistence modules (sizes, crop cache,
raster cache).
"""

import os
import subprocess
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "print-size-tool"

# Software tag written into EXIF metadata
SOFTWARE_NAME = "Print Size Tool"

# Overrides the config directory (tests, portable installs)
CONFIG_DIR_ENV = "PRINT_SIZE_TOOL_CONFIG_DIR"

# Log level for app.main()
LOG_LEVEL_ENV = "PRINT_SIZE_TOOL_LOG"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        directory = Path(override)
    else:
        if sys.platform == "win32":
            base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
        elif sys.platform == "darwin":
            base = Path.home() / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
        directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory

# =============================================================================
# DEFAULT CATALOG: Built-in print sizes, in declaration order
# =============================================================================
DEFAULT_CATALOG = [
    {
        "key": "2:3",
        "ratio": 2 / 3,
        "sizes": [
            {"width": 4, "height": 6, "label": '4×6"'},
            {"width": 8, "height": 12, "label": '8×12"'},
            {"width": 12, "height": 18, "label": '12×18"'},
            {"width": 20, "height": 30, "label": '20×30"'},
        ],
    },
    {
        "key": "3:4",
        "ratio": 3 / 4,
        "sizes": [
            {"width": 6, "height": 8, "label": '6×8"'},
            {"width": 9, "height": 12, "label": '9×12"'},
            {"width": 12, "height": 16, "label": '12×16"'},
            {"width": 18, "height": 24, "label": '18×24"'},
        ],
    },
    {
        "key": "4:5",
        "ratio": 4 / 5,
        "sizes": [
            {"width": 8, "height": 10, "label": '8×10"'},
            {"width": 11, "height": 14, "label": '11×14"'},
            {"width": 16, "height": 20, "label": '16×20"'},
        ],
    },
    {
        "key": "5:7",
        "ratio": 5 / 7,
        "sizes": [
            {"width": 5, "height": 7, "label": '5×7"'},
            {"width": 10, "height": 14, "label": '10×14"'},
            {"width": 15, "height": 21, "label": '15×21"'},
        ],
    },
    {
        "key": "custom",
        "ratio": 11 / 14,
        "sizes": [
            {"width": 11, "height": 14, "label": '11×14"'},
        ],
    },
]

# Standard DPI for high-quality printing
TARGET_DPI = 300

# JPEG export settings (fixed, not user-configurable)
JPEG_QUALITY = 92
JPEG_SUBSAMPLING = 0  # 4:4:4
JPEG_OPTIMIZE = True

# Upload limits
MAX_FILE_SIZE = 50 * 1024 * 1024  # 50 MB
SUPPORTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".svg"}

# ---------------------------------------------------------------------------
# ImageMagick availability detection (required for SVG rasterization)
# ---------------------------------------------------------------------------
# v7 uses a single ``magick`` binary; v6 uses ``convert``/``identify`` etc.
HAS_MAGICK = False
MAGICK_VERSION = 0  # Major version (6 or 7)

for _cmd, _ver in [("magick", 7), ("convert", 6)]:
    try:
        _magick_check = subprocess.run(
            [_cmd, "--version"], capture_output=True, timeout=5,
        )
        if _magick_check.returncode == 0:
            HAS_MAGICK = True
            MAGICK_VERSION = _ver
            break
    except (OSError, subprocess.SubprocessError):
        pass


def magick_cmd(*args: str) -> list[str]:
    """Build an ImageMagick command line that works on both v6 and v7.

    Usage examples::

        magick_cmd("identify", "-format", "%w", "file.svg")
        # v7 → ["magick", "identify", "-format", "%w", "file.svg"]
        # v6 → ["identify", "-format", "%w", "file.svg"]

        magick_cmd("-density", "300", "file.svg", "PNG:-")
        # v7 → ["magick", "-density", "300", "file.svg", "PNG:-"]
        # v6 → ["convert", "-density", "300", "file.svg", "PNG:-"]
    """
    _V6_SUBCOMMANDS = {"identify", "composite", "mogrify", "montage", "display", "animate"}
    args_list = list(args)
    if MAGICK_VERSION >= 7:
        return ["magick"] + args_list
    if args_list and args_list[0] in _V6_SUBCOMMANDS:
        return args_list
    return ["convert"] + args_list


# SVG rasterization constants
SVG_RASTER_MIN_PIXELS = 6000   # Longest side of the rasterized source
SVG_RASTER_MAX_DENSITY = 4800  # Safety cap for ImageMagick density

# =============================================================================
# CROP EDITOR
# =============================================================================
# Zoom limits and step for the editor canvas
ZOOM_MIN = 0.5
ZOOM_MAX = 3.0
ZOOM_STEP = 0.1

# Minimum canvas area the image is fitted into (screen pixels)
CANVAS_MIN_W = 800
CANVAS_MIN_H = 600
CANVAS_MARGIN = 40

# Opacity of the dimmed area outside the crop window (0-1)
DIM_ALPHA = 0.5

# Corner handle size (screen pixels)
HANDLE_SIZE = 8

# Nudge amounts (pixels in image coordinates)
NUDGE_SMALL = 1
NUDGE_LARGE = 10
