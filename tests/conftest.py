import pytest
from PIL import Image

from print_size_tool.config import CONFIG_DIR_ENV
from print_size_tool.sizes import build_catalog


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Point every persistence module at a throwaway config directory."""
    config = tmp_path / "config"
    monkeypatch.setenv(CONFIG_DIR_ENV, str(config))
    return config


def gradient_image(width: int, height: int) -> Image.Image:
    """Smooth RGB gradient; compresses with little JPEG loss."""
    img = Image.new("RGB", (width, height))
    img.putdata([
        (x * 255 // max(1, width - 1), y * 255 // max(1, height - 1), 128)
        for y in range(height) for x in range(width)
    ])
    return img


@pytest.fixture
def make_gradient():
    return gradient_image


@pytest.fixture
def source_image():
    return gradient_image(400, 300)


@pytest.fixture
def small_catalog():
    """Two groups of tiny prints so 300 DPI renders stay fast."""
    return build_catalog([
        {"key": "2:3", "ratio": 2 / 3, "sizes": [
            {"width": 0.2, "height": 0.3, "label": "tiny 2:3"},
            {"width": 0.4, "height": 0.6, "label": "small 2:3"},
        ]},
        {"key": "4:5", "ratio": 4 / 5, "sizes": [
            {"width": 0.4, "height": 0.5, "label": "tiny 4:5"},
        ]},
    ])
