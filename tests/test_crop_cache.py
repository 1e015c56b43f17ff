import json

from print_size_tool.crop_cache import (
    MAX_CACHED_IMAGES, load_crop_cache, lookup_crops, save_crop_cache, store_crops,
)
from print_size_tool.geometry import CropRegion


def test_missing_cache_starts_empty():
    assert load_crop_cache() == {}


def test_save_and_load_round_trip():
    cache = {}
    store_crops(cache, "abc_123", 4000, 3000, {'4:5/8×10"': CropRegion(800, 0, 2400, 3000)})
    save_crop_cache(cache)

    loaded = load_crop_cache()
    assert lookup_crops(loaded, "abc_123", 4000, 3000) == {'4:5/8×10"': CropRegion(800, 0, 2400, 3000)}


def test_written_file_uses_versioned_envelope(isolated_config_dir):
    cache = {}
    store_crops(cache, "fp", 10, 10, {"g/a": CropRegion(0, 0, 5, 5)})
    save_crop_cache(cache)
    raw = json.loads((isolated_config_dir / "crop_cache.json").read_text(encoding="utf-8"))
    assert raw["version"] == 1
    assert raw["images"]["fp"]["crops"] == {"g/a": [0, 0, 5, 5]}
    assert "last_used" in raw["images"]["fp"]


def test_lookup_rejects_dimension_mismatch():
    cache = {}
    store_crops(cache, "fp", 4000, 3000, {"g/a": CropRegion(0, 0, 100, 100)})
    assert lookup_crops(cache, "fp", 3000, 4000) is None
    assert lookup_crops(cache, "other", 4000, 3000) is None


def test_lookup_skips_malformed_and_out_of_bounds_crops():
    cache = {"fp": {"img_w": 100, "img_h": 100, "crops": {
        "g/ok": [0, 0, 50, 50],
        "g/outside": [80, 0, 50, 50],
        "g/short": [0, 0, 5],
        "g/floats": [0.5, 0, 5, 5],
    }}}
    assert lookup_crops(cache, "fp", 100, 100) == {"g/ok": CropRegion(0, 0, 50, 50)}


def test_wrong_version_starts_empty(isolated_config_dir):
    isolated_config_dir.mkdir(parents=True, exist_ok=True)
    (isolated_config_dir / "crop_cache.json").write_text(json.dumps({"version": 99, "images": {"fp": {}}}))
    assert load_crop_cache() == {}


def test_corrupt_file_starts_empty(isolated_config_dir):
    isolated_config_dir.mkdir(parents=True, exist_ok=True)
    (isolated_config_dir / "crop_cache.json").write_text("{{{")
    assert load_crop_cache() == {}


def test_save_evicts_oldest_entries():
    cache = {
        f"fp{i}": {"img_w": 1, "img_h": 1, "last_used": f"2026-01-01T00:{i // 60:02d}:{i % 60:02d}+00:00", "crops": {}}
        for i in range(MAX_CACHED_IMAGES + 5)
    }
    save_crop_cache(cache)
    loaded = load_crop_cache()
    assert len(loaded) == MAX_CACHED_IMAGES
    assert "fp0" not in loaded
    assert f"fp{MAX_CACHED_IMAGES + 4}" in loaded
