import pytest

from print_size_tool.geometry import (
    CropRegion, auto_crop, best_aspect_ratio_match, clamp_origin, clamp_region,
    fit_scale, is_within_bounds, map_display_to_source, map_source_to_display,
    matches_ratio, pixel_dimensions_of, to_inches, to_pixels,
)
from print_size_tool.sizes import PhysicalSize, all_sizes, aspect_ratios, default_catalog


def test_pixel_dimensions_examples():
    dims = pixel_dimensions_of(PhysicalSize(4, 6, '4×6"'))
    assert (dims.width, dims.height) == (1200, 1800)

    dims = pixel_dimensions_of(PhysicalSize(11, 14, '11×14"'))
    assert (dims.width, dims.height) == (3300, 4200)
    assert dims.label == '11×14"'
    assert dims.aspect_ratio == pytest.approx(11 / 14)


def test_pixel_dimensions_cover_whole_catalog():
    for size in all_sizes(default_catalog()):
        dims = pixel_dimensions_of(size)
        assert dims.width == round(size.width * 300)
        assert dims.height == round(size.height * 300)


def test_to_pixels_rounds_half_up():
    assert to_pixels(0.5, dpi=3) == 2
    assert to_pixels(1.5, dpi=1) == 2
    assert to_pixels(2.5, dpi=1) == 3
    assert to_inches(600) == pytest.approx(2.0)


def test_auto_crop_landscape_source_to_portrait_ratio():
    region = auto_crop(4000, 3000, 0.8)
    assert (region.x, region.y, region.width, region.height) == (800, 0, 2400, 3000)


def test_auto_crop_tall_source_keeps_full_width():
    region = auto_crop(1000, 3000, 0.8)
    assert region.width == 1000
    assert region.height == 1250
    assert region.x == 0
    assert region.y == 875


@pytest.mark.parametrize("img_w,img_h", [
    (4000, 3000), (3000, 4000), (1000, 1000), (1920, 1080), (333, 777), (6000, 400),
])
def test_auto_crop_matches_every_catalog_ratio(img_w, img_h):
    for ratio in aspect_ratios(default_catalog()).values():
        region = auto_crop(img_w, img_h, ratio)
        assert matches_ratio(region, ratio)
        assert is_within_bounds(region, img_w, img_h)


def test_clamp_origin_keeps_dimensions():
    region = clamp_origin(CropRegion(-50, 900, 200, 300), 1000, 1000)
    assert (region.x, region.y) == (0, 700)
    assert (region.width, region.height) == (200, 300)


def test_clamp_region_shrinks_oversized_crop():
    region = clamp_region(CropRegion(10, 10, 5000, 200), 1000, 800)
    assert region.as_box() == (0, 10, 1000, 210)


def test_is_within_bounds_rejects_overhang_and_empty():
    assert is_within_bounds(CropRegion(0, 0, 100, 100), 100, 100)
    assert not is_within_bounds(CropRegion(1, 0, 100, 100), 100, 100)
    assert not is_within_bounds(CropRegion(-1, 0, 10, 10), 100, 100)
    assert not is_within_bounds(CropRegion(0, 0, 0, 10), 100, 100)


def test_best_aspect_ratio_match():
    ratios = aspect_ratios(default_catalog())
    assert best_aspect_ratio_match(4000, 6000, ratios) == "2:3"
    assert best_aspect_ratio_match(3000, 4000, ratios) == "3:4"
    assert best_aspect_ratio_match(5000, 7000, ratios) == "5:7"
    # Square is closest to 4:5 among the portrait ratios
    assert best_aspect_ratio_match(1000, 1000, ratios) == "4:5"


def test_best_aspect_ratio_match_ties_go_to_first_declared():
    assert best_aspect_ratio_match(100, 100, {"a": 0.5, "b": 1.5}) == "a"
    assert best_aspect_ratio_match(100, 100, {"b": 1.5, "a": 0.5}) == "b"


def test_best_aspect_ratio_match_requires_ratios():
    with pytest.raises(ValueError):
        best_aspect_ratio_match(100, 100, {})


def test_display_mapping_is_per_axis():
    assert map_display_to_source((50, 25), (100, 50), (1000, 500)) == (500, 250)
    assert map_source_to_display((500, 250), (1000, 500), (100, 50)) == (50, 25)
    assert map_display_to_source((5, 5), (0, 0), (100, 100)) == (0.0, 0.0)


def test_fit_scale_applies_zoom():
    assert fit_scale(4000, 3000, 800, 600) == pytest.approx(0.2)
    assert fit_scale(4000, 3000, 800, 600, zoom=1.5) == pytest.approx(0.3)
    assert fit_scale(0, 3000, 800, 600) == 0.0
