import pytest

from print_size_tool.crop_editor import CropInteractor, EditorState, EditorView, draw_commands
from print_size_tool.geometry import CropRegion
from print_size_tool.results import ResultStore
from print_size_tool.sizes import PhysicalSize

SIZE_8X10 = PhysicalSize(8, 10, '8×10"', group="4:5")


@pytest.fixture
def interactor(source_image):
    editor = CropInteractor(source_image, dpi=10)
    editor.open(SIZE_8X10)
    return editor


def _region(editor):
    r = editor.region
    return r.x, r.y, r.width, r.height


def test_open_starts_from_auto_crop(interactor):
    assert interactor.state == EditorState.READY
    # 400×300 source at 4:5 → 240×300 centered
    assert _region(interactor) == (80, 0, 240, 300)
    assert interactor.canvas_size() == (800.0, 600.0)


def test_open_uses_stored_region_when_in_bounds(source_image):
    editor = CropInteractor(source_image)
    editor.open(SIZE_8X10, stored=CropRegion(10, 0, 240, 300))
    assert _region(editor) == (10, 0, 240, 300)


def test_open_ignores_out_of_bounds_stored_region(source_image):
    editor = CropInteractor(source_image)
    editor.open(SIZE_8X10, stored=CropRegion(300, 0, 240, 300))
    assert _region(editor) == (80, 0, 240, 300)


def test_open_twice_is_an_error(interactor):
    with pytest.raises(RuntimeError):
        interactor.open(SIZE_8X10)


def test_drag_moves_region_in_source_pixels(interactor):
    # Canvas is 2× the source; crop centre is at canvas (400, 300)
    assert interactor.pointer_down(400, 300)
    assert interactor.state == EditorState.DRAGGING
    interactor.pointer_move(380, 300)
    assert _region(interactor) == (70, 0, 240, 300)
    interactor.pointer_up()
    assert interactor.state == EditorState.READY


def test_drag_past_left_edge_clamps_to_zero(interactor):
    interactor.pointer_down(400, 300)
    interactor.pointer_move(-2000, 300)
    assert _region(interactor) == (0, 0, 240, 300)


def test_drag_past_right_and_bottom_edges_clamps(interactor):
    interactor.pointer_down(400, 300)
    interactor.pointer_move(5000, 5000)
    assert _region(interactor) == (160, 0, 240, 300)


def test_pointer_down_outside_region_does_not_drag(interactor):
    assert not interactor.pointer_down(10, 10)
    assert interactor.state == EditorState.READY
    assert not interactor.pointer_move(100, 100)


def test_pointer_leave_ends_drag(interactor):
    interactor.pointer_down(400, 300)
    interactor.pointer_leave()
    assert interactor.state == EditorState.READY
    assert not interactor.pointer_move(0, 0)


def test_reset_discards_moves_and_ignores_stale_pointer_events(interactor):
    interactor.pointer_down(400, 300)
    interactor.pointer_move(300, 300)
    interactor.reset()
    assert _region(interactor) == (80, 0, 240, 300)
    assert interactor.state == EditorState.READY
    assert not interactor.pointer_move(0, 0)
    assert _region(interactor) == (80, 0, 240, 300)


def test_nudge_moves_by_small_and_large_steps(interactor):
    assert interactor.nudge(1, 0)
    assert interactor.region.x == 81
    interactor.nudge(-1, 0, large=True)
    assert interactor.region.x == 71
    interactor.nudge(0, 1, large=True)
    assert interactor.region.y == 0


def test_zoom_is_clamped_and_scales_canvas(interactor):
    interactor.set_zoom(10)
    assert interactor.zoom == 3.0
    interactor.set_zoom(0.1)
    assert interactor.zoom == 0.5
    assert interactor.canvas_size() == (400.0, 300.0)
    interactor.set_zoom(1.0)
    interactor.zoom_in()
    assert interactor.zoom == 1.1


def test_zoom_during_drag_ends_drag(interactor):
    interactor.pointer_down(400, 300)
    interactor.zoom_in()
    assert interactor.state == EditorState.READY


def test_set_viewport_respects_minimum_canvas(interactor):
    interactor.set_viewport(300, 200)
    assert interactor.canvas_size() == (800.0, 600.0)
    interactor.set_viewport(1640, 1240)
    assert interactor.canvas_size() == (1600.0, 1200.0)


def test_apply_renders_and_commits(source_image):
    committed = []
    editor = CropInteractor(source_image, commit=committed.append, dpi=10)
    editor.open(SIZE_8X10)
    editor.nudge(-1, 0, large=True)

    result = editor.apply()

    assert result is not None
    assert committed == [result]
    assert result.crop == CropRegion(70, 0, 240, 300)
    assert (result.pixel_dimensions.width, result.pixel_dimensions.height) == (80, 100)
    assert editor.state == EditorState.CLOSED
    assert editor.region is None


def test_apply_failure_keeps_editor_open(source_image):
    store = ResultStore()
    editor = CropInteractor(source_image, commit=store.replace, dpi=10)
    editor.open(SIZE_8X10)
    editor.nudge(1, 0)

    assert editor.apply() is None
    assert editor.state == EditorState.READY
    assert editor.last_error
    assert _region(editor) == (81, 0, 240, 300)


def test_cancel_closes_without_commit(source_image):
    committed = []
    editor = CropInteractor(source_image, commit=committed.append)
    editor.open(SIZE_8X10)
    editor.cancel()
    assert editor.state == EditorState.CLOSED
    assert editor.view() is None
    assert committed == []
    assert editor.apply() is None


def test_draw_commands_frame():
    view = EditorView(400, 300, 800, 600, (80, 0, 240, 300))
    commands = draw_commands(view)

    assert commands[0].op == "image"
    assert commands[0].rect == (0, 0, 800, 600)

    dims = [c for c in commands if c.op == "fill" and c.color == (0, 0, 0, 128)]
    assert [c.rect for c in dims] == [(0, 0, 160, 600), (640, 0, 160, 600)]

    strokes = [c for c in commands if c.op == "stroke"]
    assert len(strokes) == 1
    assert strokes[0].rect == (160, 0, 480, 600)

    handles = [c for c in commands if c.op == "fill" and c.color != (0, 0, 0, 128)]
    assert len(handles) == 4

    assert commands[-1].op == "text"
    assert commands[-1].text == "240 × 300"


def test_draw_commands_empty_canvas():
    assert draw_commands(EditorView(400, 300, 0, 0, (0, 0, 10, 10))) == []


def test_view_reflects_zoom(interactor):
    interactor.set_zoom(1.5)
    view = interactor.view()
    assert view.zoom == 1.5
    assert (view.canvas_w, view.canvas_h) == (1200.0, 900.0)
    assert view.crop == (80, 0, 240, 300)
