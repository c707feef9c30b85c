import base64
import io
import os
import tempfile

# Headless Qt for QObject/QPointF use in tests
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import fitz  # PyMuPDF
import pytest
from PIL import Image

from app.config import StamperConfig


def _write_pdf(path, pages=3, size=(612, 792)):
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=size[0], height=size[1])
        page.insert_text((72, 72), f"Page {i + 1}", fontsize=24)
    doc.save(str(path))
    doc.close()
    return str(path)


@pytest.fixture
def make_pdf(tmp_path):
    """Factory: make_pdf(name, pages=3, size=(612, 792)) -> path."""
    def factory(name="report.pdf", pages=3, size=(612, 792)):
        return _write_pdf(tmp_path / name, pages, size)
    return factory


@pytest.fixture
def make_png(tmp_path):
    """Factory: make_png(width, height, name=...) -> path of a red PNG."""
    def factory(width=300, height=150, name=None):
        path = tmp_path / (name or f"stamp_{width}x{height}.png")
        Image.new("RGBA", (width, height), (220, 20, 20, 255)).save(path)
        return str(path)
    return factory


@pytest.fixture
def png_data_url():
    buf = io.BytesIO()
    Image.new("RGB", (200, 100), (0, 0, 255)).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()


@pytest.fixture
def config(tmp_path):
    return StamperConfig(output_dir=tmp_path / "Downloads")


@pytest.fixture
def scratch_tmp(tmp_path, monkeypatch):
    """Point tempfile at an empty directory so leaks are observable."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


def images_on_page(path, page_num):
    """Image placements drawn by the page's content stream (1-indexed page)."""
    doc = fitz.open(path)
    try:
        return doc[page_num - 1].get_image_info()
    finally:
        doc.close()


def page_texts(path):
    doc = fitz.open(path)
    try:
        return [page.get_text().strip() for page in doc]
    finally:
        doc.close()


@pytest.fixture(scope="session")
def qapp():
    from PyQt6.QtWidgets import QApplication
    app = QApplication.instance() or QApplication([])
    yield app
