"""PDF reading and writing through PyMuPDF.

Every PyMuPDF failure is translated into the application's error taxonomy
here, so callers only ever see StamperError subclasses.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import fitz  # PyMuPDF

from app.compositor import PreparedStamp
from app.errors import (
    FileSystemError, PageCollectionError, PdfInspectionError,
    WatermarkPlacementError,
)

logger = logging.getLogger(__name__)


def _open(path: str) -> fitz.Document:
    try:
        doc = fitz.open(path)
    except Exception as exc:
        raise PdfInspectionError(f"cannot open PDF: {exc}", path) from exc
    if doc.needs_pass:
        doc.close()
        raise PdfInspectionError("PDF is encrypted", path)
    if not doc.is_pdf:
        doc.close()
        raise PdfInspectionError("not a PDF document", path)
    return doc


def _save(doc: fitz.Document, dst: str, error_cls: type) -> None:
    # garbage above 2 merges identical objects, which would fold duplicated
    # pages back into one page object.
    try:
        doc.save(dst, garbage=1, deflate=True)
    except OSError as exc:
        raise FileSystemError(f"cannot write PDF: {exc}", dst) from exc
    except Exception as exc:
        raise error_cls(f"cannot save PDF: {exc}", dst) from exc


def read_page_sizes(path: str) -> list[tuple[float, float]]:
    """(width, height) in PDF points for every page, as displayed."""
    doc = _open(path)
    try:
        sizes = [(page.rect.width, page.rect.height) for page in doc]
    except Exception as exc:
        raise PdfInspectionError(f"cannot read page dimensions: {exc}", path) from exc
    finally:
        doc.close()
    if not sizes:
        raise PdfInspectionError("no page dimensions found", path)
    return sizes


def insert_stamp(src_path: str, dst_path: str, prepared: PreparedStamp) -> None:
    """Write *src_path* to *dst_path* with one stamp image placed on it.

    The placement is bottom-left origin; PyMuPDF pages are top-left origin,
    so the Y axis is flipped back against the target page's height.
    """
    placement = prepared.placement
    px_w, px_h = prepared.pixel_size
    width = px_w * placement.scale
    height = px_h * placement.scale
    if placement.scale <= 0 or width <= 0 or height <= 0:
        raise WatermarkPlacementError(
            f"degenerate placement {width:.2f} x {height:.2f} pt", src_path)

    doc = _open(src_path)
    try:
        if not 1 <= placement.page <= len(doc):
            raise WatermarkPlacementError(
                f"page {placement.page} out of range 1..{len(doc)}", src_path)
        page = doc[placement.page - 1]
        top = page.rect.height - (placement.y + height)
        rect = fitz.Rect(placement.x, top, placement.x + width, top + height)
        try:
            page.insert_image(rect * page.derotation_matrix,
                              filename=prepared.image_path,
                              keep_proportion=False, overlay=True,
                              rotate=page.rotation)
        except Exception as exc:
            raise WatermarkPlacementError(
                f"cannot place image on page {placement.page}: {exc}", src_path) from exc
        _save(doc, dst_path, WatermarkPlacementError)
    finally:
        doc.close()
    logger.debug("stamped page %d of %s -> %s", placement.page,
                 Path(src_path).name, Path(dst_path).name)


def collect_pages(src_path: str, dst_path: str, order: Sequence[int]) -> None:
    """Write a PDF whose pages are *order* (1-indexed) taken from *src_path*.

    Each position gets its own page object, so a duplicated page can later be
    stamped independently of its twin.
    """
    try:
        src = _open(src_path)
    except PdfInspectionError as exc:
        raise PageCollectionError(exc.message, src_path) from exc

    out = fitz.open()
    try:
        count = len(src)
        bad = [p for p in order if not 1 <= p <= count]
        if bad:
            raise PageCollectionError(
                f"page(s) {bad} out of range 1..{count}", src_path)
        try:
            for page_num in order:
                out.insert_pdf(src, from_page=page_num - 1, to_page=page_num - 1)
        except Exception as exc:
            raise PageCollectionError(f"failed to collect pages: {exc}", src_path) from exc
        _save(out, dst_path, PageCollectionError)
    finally:
        out.close()
        src.close()
