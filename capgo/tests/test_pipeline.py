import os
import threading

import pytest

from app.config import StamperConfig
from app.errors import (
    ImageDecodeError, PdfInspectionError, StamperError, WatermarkPlacementError,
)
from app.pipeline import (
    clean_base_name, export_batch, export_document, output_path_for,
    reserve_output_path, stamp_pdf,
)
from app.stamp import Document, DocumentStatus, Stamp

from conftest import images_on_page, page_texts


def _stamp(image, page=1, **kw):
    values = dict(x=50, y=50, width=105, height=56)
    values.update(kw)
    return Stamp(image, page_num=page, **values)


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def test_clean_base_name_strips_previous_suffix():
    assert clean_base_name("/a/report.pdf") == ("report", ".pdf")
    assert clean_base_name("/a/report_capgo (2).pdf") == ("report", ".pdf")


def test_output_names_count_up(tmp_path):
    out = tmp_path / "out"
    first = reserve_output_path("/x/report.pdf", out)
    second = reserve_output_path("/x/report.pdf", out)
    third = reserve_output_path("/x/report_capgo.pdf", out)
    assert first.name == "report_capgo.pdf"
    assert second.name == "report_capgo (1).pdf"
    assert third.name == "report_capgo (2).pdf"
    assert output_path_for("/x/report.pdf", out).name == "report_capgo (3).pdf"


def test_concurrent_reservations_never_collide(tmp_path):
    out = tmp_path / "out"
    results = []
    threads = [threading.Thread(
        target=lambda: results.append(reserve_output_path("/x/r.pdf", out)))
        for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(set(results)) == 8


# ---------------------------------------------------------------------------
# stamp_pdf
# ---------------------------------------------------------------------------

def test_zero_stamps_returns_input_and_writes_nothing(make_pdf, config):
    pdf = make_pdf()
    assert stamp_pdf(pdf, [], config) == os.path.normpath(pdf)
    assert not config.output_dir.exists()


def test_single_stamp_lands_where_expected(make_pdf, make_png, config):
    pdf = make_pdf(pages=1)
    result = stamp_pdf(pdf, [_stamp(make_png(300, 150))], config)

    assert os.path.basename(result) == "report_capgo.pdf"
    assert os.path.dirname(result) == str(config.output_dir)
    (info,) = images_on_page(result, 1)
    x0, y0, x1, y1 = info["bbox"]
    assert x0 == pytest.approx(50, abs=0.01)
    assert y0 == pytest.approx(51.75, abs=0.01)
    assert x1 == pytest.approx(155, abs=0.01)
    assert y1 == pytest.approx(104.25, abs=0.01)


def test_stamps_on_several_pages(make_pdf, make_png, png_data_url, config):
    pdf = make_pdf(pages=3)
    stamps = [
        _stamp(make_png(300, 150), page=1),
        _stamp(png_data_url, page=3, x=300, y=600),
        _stamp(make_png(100, 100), page=3, x=20, y=20, width=40, height=40),
    ]
    result = stamp_pdf(pdf, [s.to_dict() for s in stamps], config)

    assert len(images_on_page(result, 1)) == 1
    assert images_on_page(result, 2) == []
    assert len(images_on_page(result, 3)) == 2
    assert page_texts(result) == ["Page 1", "Page 2", "Page 3"]
    # Source is untouched.
    assert images_on_page(pdf, 1) == []


def test_page_height_comes_from_target_page(tmp_path, make_png, config):
    import fitz

    path = tmp_path / "mixed.pdf"
    doc = fitz.open()
    doc.new_page(width=612, height=792)
    doc.new_page(width=595, height=842)
    doc.save(str(path))
    doc.close()

    stamp = _stamp(make_png(100, 100), page=2, x=10, y=10, width=50, height=50)
    result = stamp_pdf(str(path), [stamp], config)
    (info,) = images_on_page(result, 2)
    assert info["bbox"][1] == pytest.approx(10, abs=0.01)


def test_existing_output_gets_counter(make_pdf, make_png, config):
    pdf = make_pdf()
    config.output_dir.mkdir()
    (config.output_dir / "report_capgo.pdf").write_bytes(b"keep me")

    result = stamp_pdf(pdf, [_stamp(make_png())], config)

    assert os.path.basename(result) == "report_capgo (1).pdf"
    assert (config.output_dir / "report_capgo.pdf").read_bytes() == b"keep me"


def test_scratch_files_are_removed(make_pdf, make_png, config, scratch_tmp):
    pdf = make_pdf()
    stamps = [_stamp(make_png(), page=p) for p in (1, 2, 3, 1)]
    stamp_pdf(pdf, stamps, config)
    assert list(scratch_tmp.iterdir()) == []


def test_failure_cleans_up_everything(make_pdf, make_png, config, scratch_tmp):
    pdf = make_pdf()
    stamps = [_stamp(make_png()), _stamp("data:image/png;base64,AAAA")]
    with pytest.raises(ImageDecodeError):
        stamp_pdf(pdf, stamps, config)
    assert list(scratch_tmp.iterdir()) == []
    assert list(config.output_dir.iterdir()) == []


def test_stamp_beyond_last_page(make_pdf, make_png, config):
    with pytest.raises(WatermarkPlacementError):
        stamp_pdf(make_pdf(pages=2), [_stamp(make_png(), page=3)], config)
    assert not config.output_dir.exists()


def test_unreadable_pdf(tmp_path, make_png, config):
    bogus = tmp_path / "broken.pdf"
    bogus.write_bytes(b"not a pdf at all")
    with pytest.raises(PdfInspectionError):
        stamp_pdf(str(bogus), [_stamp(make_png())], config)


def test_quality_factor_sets_pixel_density(make_pdf, make_png, tmp_path):
    config = StamperConfig(output_dir=tmp_path / "out", quality_factor=2)
    result = stamp_pdf(make_pdf(pages=1), [_stamp(make_png(300, 150))], config)
    (info,) = images_on_page(result, 1)
    assert (info["width"], info["height"]) == (210, 105)


# ---------------------------------------------------------------------------
# Documents and batches
# ---------------------------------------------------------------------------

def _document(pdf, *stamps):
    return Document(path=pdf, stamps=list(stamps))


def test_export_document_without_stamps_keeps_status(make_pdf, config):
    doc = _document(make_pdf())
    assert export_document(doc, config) == doc.path
    assert doc.status is DocumentStatus.PENDING


def test_export_document_success(make_pdf, make_png, config):
    doc = _document(make_pdf(), _stamp(make_png()))
    result = export_document(doc, config)
    assert doc.status is DocumentStatus.COMPLETED
    assert doc.result_path == result


def test_export_document_error(make_pdf, config):
    doc = _document(make_pdf(), _stamp("data:image/png;base64,AAAA"))
    with pytest.raises(ImageDecodeError):
        export_document(doc, config)
    assert doc.status is DocumentStatus.ERROR
    assert doc.error_message


def test_batch_isolates_failures(make_pdf, make_png, config):
    good_a = _document(make_pdf("a.pdf"), _stamp(make_png()))
    bad = _document(make_pdf("b.pdf"), _stamp(make_png(), page=9))
    good_c = _document(make_pdf("c.pdf"), _stamp(make_png()))
    skipped = _document(make_pdf("d.pdf"), _stamp(make_png()))
    skipped.selected = False

    started = []
    result = export_batch([good_a, bad, good_c, skipped], config,
                          on_started=lambda d: started.append(d.name))

    assert started == ["a.pdf", "b.pdf", "c.pdf"]
    assert [d for d, _ in result.succeeded] == [good_a, good_c]
    assert [d for d, _ in result.failed] == [bad]
    assert isinstance(result.failed[0][1], WatermarkPlacementError)
    assert bad.status is DocumentStatus.ERROR
    assert good_c.status is DocumentStatus.COMPLETED
    assert skipped.status is DocumentStatus.PENDING
    assert not result.stopped


def test_batch_stop_finishes_current_document(make_pdf, make_png, config):
    docs = [_document(make_pdf(f"{n}.pdf"), _stamp(make_png())) for n in "xyz"]
    stop = {"flag": False}

    def finished(doc, path):
        stop["flag"] = True

    result = export_batch(docs, config, should_stop=lambda: stop["flag"],
                          on_finished=finished)
    assert result.stopped
    assert [d.name for d, _ in result.succeeded] == ["x.pdf"]
    assert docs[1].status is DocumentStatus.PENDING


def test_batch_survives_oversized_image(make_pdf, make_png, config, monkeypatch):
    monkeypatch.setattr("PIL.Image.MAX_IMAGE_PIXELS", 1000)
    huge = _document(make_pdf("huge.pdf"), _stamp(make_png(300, 150)))
    small = _document(make_pdf("small.pdf"), _stamp(make_png(20, 20)))

    result = export_batch([huge, small], config)

    assert huge.status is DocumentStatus.ERROR
    assert small.status is DocumentStatus.COMPLETED
    assert isinstance(result.failed[0][1], ImageDecodeError)


def test_unexpected_error_stays_with_its_document(make_pdf, make_png, config,
                                                  monkeypatch):
    import app.pipeline as pipeline

    real_insert = pipeline.insert_stamp

    def flaky_insert(src, dst, prepared):
        if os.path.basename(src) == "a.pdf":
            raise RuntimeError("backend exploded")
        real_insert(src, dst, prepared)

    monkeypatch.setattr(pipeline, "insert_stamp", flaky_insert)
    first = _document(make_pdf("a.pdf"), _stamp(make_png()))
    second = _document(make_pdf("b.pdf"), _stamp(make_png()))

    result = export_batch([first, second], config)

    assert first.status is DocumentStatus.ERROR
    assert "backend exploded" in first.error_message
    assert isinstance(result.failed[0][1], StamperError)
    assert isinstance(result.failed[0][1].__cause__, RuntimeError)
    assert second.status is DocumentStatus.COMPLETED
    assert [p.name for p in config.output_dir.iterdir()] == ["b_capgo.pdf"]


def test_batch_can_ignore_selection(make_pdf, make_png, config):
    doc = _document(make_pdf(), _stamp(make_png()))
    doc.selected = False
    assert export_batch([doc], config).succeeded == []
    result = export_batch([doc], config, only_selected=False)
    assert [d for d, _ in result.succeeded] == [doc]
    assert doc.status is DocumentStatus.COMPLETED
