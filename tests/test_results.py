import pytest

from print_size_tool.geometry import PixelDimensions
from print_size_tool.results import ProcessedResult, ResultStore, issue_handle
from print_size_tool.sizes import PhysicalSize


def _result(label, group="g", data=b"jpeg"):
    size = PhysicalSize(1, 1, label, group=group)
    return ProcessedResult(size, PixelDimensions(300, 300, label, 1.0), data, issue_handle())


def test_issue_handle_is_unique():
    handles = {issue_handle() for _ in range(100)}
    assert len(handles) == 100


def test_replace_all_releases_previous_batch():
    store = ResultStore()
    released = []
    store.on_release(released.append)

    first = [_result("a"), _result("b")]
    store.replace_all(first)
    assert released == []

    store.replace_all([_result("a")])
    assert released == [r.handle for r in first]
    assert len(store) == 1


def test_replace_swaps_one_entry_in_place():
    store = ResultStore()
    released = []
    store.on_release(released.append)
    a, b, c = _result("a"), _result("b"), _result("c")
    store.replace_all([a, b, c])

    new_b = _result("b", data=b"recropped")
    previous = store.replace(new_b)

    assert previous is b
    assert released == [b.handle]
    assert [r.key for r in store] == ["g/a", "g/b", "g/c"]
    assert store.get("g/b").data == b"recropped"


def test_replace_unknown_key_raises():
    store = ResultStore()
    store.replace_all([_result("a")])
    with pytest.raises(KeyError):
        store.replace(_result("zzz"))


def test_same_label_in_two_groups_are_separate_entries():
    store = ResultStore()
    store.replace_all([_result('11×14"', group="4:5"), _result('11×14"', group="custom")])
    assert len(store) == 2


def test_clear_releases_everything():
    store = ResultStore()
    released = []
    store.on_release(released.append)
    batch = [_result("a"), _result("b")]
    store.replace_all(batch)
    store.clear()
    assert len(store) == 0
    assert sorted(released) == sorted(r.handle for r in batch)


def test_snapshot_is_detached():
    store = ResultStore()
    store.replace_all([_result("a")])
    snap = store.snapshot()
    store.clear()
    assert len(snap) == 1
