import json

from print_size_tool.sizes import (
    PhysicalSize, all_sizes, aspect_ratios, default_catalog, load_catalog,
    sizes_for_ratio, validate_catalog,
)


def _write_sizes(config_dir, payload):
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "sizes.json").write_text(json.dumps(payload), encoding="utf-8")


def test_default_catalog_order_and_contents():
    catalog = default_catalog()
    assert [g.key for g in catalog] == ["2:3", "3:4", "4:5", "5:7", "custom"]
    sizes = all_sizes(catalog)
    assert len(sizes) == 15
    assert sizes[0] == PhysicalSize(4, 6, '4×6"', group="2:3")
    assert [s.label for s in sizes_for_ratio(catalog, "4:5")] == ['8×10"', '11×14"', '16×20"']
    assert sizes_for_ratio(catalog, "1:1") == []


def test_size_keys_are_unique_even_with_repeated_labels():
    sizes = all_sizes(default_catalog())
    labels = [s.label for s in sizes]
    assert labels.count('11×14"') == 2
    assert len({s.key for s in sizes}) == len(sizes)


def test_aspect_ratios_keep_declaration_order():
    ratios = aspect_ratios(default_catalog())
    assert list(ratios) == ["2:3", "3:4", "4:5", "5:7", "custom"]
    assert ratios["custom"] == 11 / 14


def test_validate_catalog_reports_every_problem():
    errors = validate_catalog([
        {"key": "a", "ratio": 1, "sizes": [{"width": 1, "height": 1, "label": "x"}]},
        {"key": "a", "ratio": -1, "sizes": [
            {"width": 0, "height": 1, "label": "y"},
            {"width": 1, "height": 1, "label": "y"},
        ]},
        {"key": "b", "ratio": 1},
    ])
    assert any("duplicate key 'a'" in e for e in errors)
    assert any("ratio must be a positive number" in e for e in errors)
    assert any("width must be a positive number" in e for e in errors)
    assert any("duplicate label 'y'" in e for e in errors)
    assert any("missing keys: sizes" in e for e in errors)


def test_validate_catalog_rejects_empty_and_bool_dimensions():
    assert validate_catalog([]) == ["Catalog must be a non-empty list"]
    errors = validate_catalog([{"key": "a", "ratio": 1, "sizes": [{"width": True, "height": 1, "label": "x"}]}])
    assert errors


def test_load_catalog_without_override_uses_defaults():
    assert load_catalog() == default_catalog()


def test_load_catalog_reads_valid_override(isolated_config_dir):
    _write_sizes(isolated_config_dir, {"version": 1, "groups": [
        {"key": "1:1", "ratio": 1.0, "sizes": [{"width": 10, "height": 10, "label": '10×10"'}]},
    ]})
    catalog = load_catalog()
    assert [g.key for g in catalog] == ["1:1"]
    assert catalog[0].sizes[0].group == "1:1"


def test_load_catalog_falls_back_on_invalid_override(isolated_config_dir):
    _write_sizes(isolated_config_dir, {"version": 1, "groups": [{"key": "1:1", "ratio": 0, "sizes": []}]})
    assert load_catalog() == default_catalog()


def test_load_catalog_falls_back_without_envelope(isolated_config_dir):
    _write_sizes(isolated_config_dir, [{"key": "1:1", "ratio": 1.0, "sizes": []}])
    assert load_catalog() == default_catalog()


def test_load_catalog_falls_back_on_corrupt_json(isolated_config_dir):
    isolated_config_dir.mkdir(parents=True, exist_ok=True)
    (isolated_config_dir / "sizes.json").write_text("{not json", encoding="utf-8")
    assert load_catalog() == default_catalog()
