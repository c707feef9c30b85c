import pytest
from PyQt6.QtCore import QPointF

from app.pdf_viewer import PDFViewer
from app.stamp import Stamp


@pytest.fixture
def viewer(qapp, make_pdf):
    v = PDFViewer()
    v.resize(900, 700)
    v.load_pdf(make_pdf(pages=2))
    yield v
    v.deleteLater()


def _placed(viewer, image):
    stamp = Stamp(image, x=50, y=50, width=105, height=56, page_num=1)
    viewer.set_stamps([stamp])
    return stamp, viewer._stamp_items[stamp.uid]


def test_load_reports_page_sizes(qapp, make_pdf):
    v = PDFViewer()
    sizes = []
    v.page_sizes_ready.connect(sizes.append)
    v.load_pdf(make_pdf(pages=3, size=(595, 842)))
    assert sizes == [[(595, 842)] * 3]
    assert v.page_count == 3 and v.current_page == 1


def test_drag_to_second_page(viewer, make_png):
    stamp, item = _placed(viewer, make_png())
    changes = []
    viewer.stamp_changed.connect(lambda *args: changes.append(args))

    item.setPos(viewer._page_rects[1].topLeft() + QPointF(30, 40))
    viewer._on_stamp_released(stamp.uid)

    (uid, page, x, y, w, h), = changes
    assert (uid, page) == (stamp.uid, 2)
    assert (x, y) == (pytest.approx(30, abs=1e-6), pytest.approx(40, abs=1e-6))
    assert (w, h) == (pytest.approx(105), pytest.approx(56))


def test_drop_outside_pages_reverts(viewer, make_png):
    stamp, item = _placed(viewer, make_png())
    changes = []
    viewer.stamp_changed.connect(lambda *args: changes.append(args))

    item.setPos(QPointF(-2000, -2000))
    viewer._on_stamp_released(stamp.uid)

    assert changes == []
    assert item.pos() == viewer._page_rects[0].topLeft() + QPointF(50, 50)


def test_zoom_is_clamped(viewer):
    base = viewer.scale
    for _ in range(60):
        viewer.zoom_in()
    assert viewer.scale == pytest.approx(base * 4.0)
    viewer.reset_zoom()
    assert viewer.scale == pytest.approx(base)


def test_stamps_on_missing_pages_are_not_drawn(viewer, make_png):
    viewer.set_stamps([Stamp(make_png(), 0, 0, 10, 10, page_num=5)])
    assert viewer._stamp_items == {}
