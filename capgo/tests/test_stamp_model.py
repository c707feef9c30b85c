import pytest

from app.stamp import Document, DocumentStatus, Stamp
from app.utils import pdf_y_to_top_left, top_left_to_pdf_y


def _stamp(**kw):
    values = dict(image="sig.png", x=50, y=50, width=105, height=56, page_num=1)
    values.update(kw)
    return Stamp(**values)


def test_y_flip_round_trip():
    pdf_y = top_left_to_pdf_y(51.75, 52.5, 792)
    assert pdf_y == pytest.approx(687.75)
    assert pdf_y_to_top_left(pdf_y, 52.5, 792) == pytest.approx(51.75)


@pytest.mark.parametrize("kw", [{"width": 0}, {"height": -3}, {"page_num": 0}])
def test_stamp_rejects_invalid_geometry(kw):
    with pytest.raises(ValueError):
        _stamp(**kw)


def test_clone_gets_fresh_uid():
    s = _stamp()
    c = s.clone(page_num=3)
    assert c.uid != s.uid
    assert c.page_num == 3 and s.page_num == 1
    assert (c.x, c.y, c.width, c.height, c.image) == (s.x, s.y, s.width, s.height, s.image)


def test_dict_round_trip_uses_wire_keys():
    s = _stamp(page_num=2)
    d = s.to_dict()
    assert d["pageNum"] == 2 and d["id"] == s.uid
    assert Stamp.from_dict(d) == s


def test_document_defaults(tmp_path):
    doc = Document(path=str(tmp_path / "contract.pdf"))
    assert doc.name == "contract.pdf"
    assert doc.status is DocumentStatus.PENDING
    assert doc.selected and doc.stamps == [] and doc.result_path is None


def test_add_update_remove_stamp():
    doc = Document(path="a.pdf")
    added = doc.add_stamp(_stamp())
    assert doc.stamps == [added]

    updated = doc.update_stamp(added.uid, x=10.0, page_num=2)
    assert (updated.x, updated.page_num, updated.uid) == (10.0, 2, added.uid)
    assert doc.find_stamp(added.uid).x == 10.0
    assert doc.update_stamp("missing", x=1.0) is None
    with pytest.raises(ValueError):
        doc.update_stamp(added.uid, image="other.png")

    assert doc.remove_stamp(added.uid) is updated
    assert doc.remove_stamp(added.uid) is None
    assert doc.stamps == []


def test_duplicate_on_paste_offsets_and_moves_page():
    doc = Document(path="a.pdf")
    src = doc.add_stamp(_stamp(x=100, y=200, page_num=1))
    pasted = doc.duplicate_on_paste(src, active_page=3)
    assert (pasted.x, pasted.y, pasted.page_num) == (120, 220, 3)
    assert pasted.uid != src.uid
    assert len(doc.stamps) == 2


def test_stamp_at_prefers_topmost():
    doc = Document(path="a.pdf")
    bottom = doc.add_stamp(_stamp(x=0, y=0, width=100, height=100))
    top = doc.add_stamp(_stamp(x=50, y=50, width=100, height=100))
    assert doc.stamp_at(1, 75, 75) is top
    assert doc.stamp_at(1, 10, 10) is bottom
    assert doc.stamp_at(2, 75, 75) is None


def test_status_transitions():
    doc = Document(path="a.pdf")
    doc.mark_error("boom")
    assert doc.status is DocumentStatus.ERROR and doc.error_message == "boom"
    doc.mark_processing()
    assert doc.status is DocumentStatus.PROCESSING and doc.error_message == ""
    doc.mark_completed("/out/a_capgo.pdf")
    assert doc.status is DocumentStatus.COMPLETED
    assert doc.result_path == "/out/a_capgo.pdf"
