import pytest

pytest.importorskip("PyQt6.QtWidgets")

from PyQt6.QtCore import QCoreApplication  # noqa: E402

from print_size_tool.main_window import BatchRenderThread  # noqa: E402


@pytest.fixture(scope="module")
def qt_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class _Session:
    def __init__(self, outcome):
        self._outcome = outcome

    def process_all(self, progress=None):
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        if progress is not None:
            progress(1.0)
        return self._outcome


def test_batch_thread_reports_completion(qt_app):
    thread = BatchRenderThread(_Session(True))
    received, fractions = [], []
    thread.done.connect(received.append)
    thread.progress.connect(fractions.append)
    thread.run()
    assert fractions == [1.0]
    assert received == [True]


def test_batch_thread_signals_done_when_render_blows_up(qt_app):
    thread = BatchRenderThread(_Session(MemoryError()))
    received = []
    thread.done.connect(received.append)
    with pytest.raises(MemoryError):
        thread.run()
    assert received == [False]
