"""Reorder, duplicate and delete pages, keeping stamps on their pages.

A page order is a list of original 1-indexed page numbers.  A number that
appears twice yields two copies of that page; a number that is missing drops
the page.
"""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Sequence

from app.errors import FileSystemError, PageCollectionError, PdfInspectionError
from app.pdf_backend import collect_pages, read_page_sizes
from app.stamp import Document, Stamp

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Page order builders
# ---------------------------------------------------------------------------

def identity_order(page_count: int) -> list[int]:
    return list(range(1, page_count + 1))


def delete_page_order(page_count: int, page: int) -> list[int]:
    return [p for p in identity_order(page_count) if p != page]


def duplicate_page_order(page_count: int, page: int) -> list[int]:
    return paste_page_order(page_count, page, page)


def paste_page_order(page_count: int, after: int, copied: int) -> list[int]:
    """Insert a copy of page *copied* right after page *after*."""
    order = []
    for p in identity_order(page_count):
        order.append(p)
        if p == after:
            order.append(copied)
    return order


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------

def validate_order(new_order: Sequence[int], page_count: int) -> list[int]:
    order = list(new_order)
    if not order:
        raise PageCollectionError("page order is empty; a PDF needs at least one page")
    for p in order:
        if isinstance(p, bool) or not isinstance(p, int):
            raise PageCollectionError(f"page number {p!r} is not an integer")
        if not 1 <= p <= page_count:
            raise PageCollectionError(
                f"page {p} out of range 1..{page_count}")
    return order


_TEMP_PREFIX = "capgo_mod_"

# Files written by transform() that no document has let go of yet.
_transform_outputs: set[str] = set()
_outputs_lock = threading.Lock()


def _fresh_output(pdf_path: str, workdir: Optional[str],
                  name: Optional[str] = None) -> str:
    prefix = f"{_TEMP_PREFIX}{os.getpid()}_"
    suffix = "_" + (name or Path(pdf_path).name)
    try:
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=workdir)
    except OSError as exc:
        raise FileSystemError(f"cannot create temporary PDF: {exc}") from exc
    os.close(fd)
    return path


def discard_transform_output(path: str) -> bool:
    """Delete *path* if transform() wrote it; user files are never touched."""
    path = os.path.normpath(path)
    with _outputs_lock:
        if path not in _transform_outputs:
            return False
        _transform_outputs.discard(path)
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("cannot remove temporary PDF %s: %s", path, exc)
        return False
    logger.debug("removed temporary PDF %s", path)
    return True


def transform(pdf_path: str, new_order: Sequence[int],
              workdir: Optional[str] = None, name: Optional[str] = None) -> str:
    """Write a new PDF laid out per *new_order* and return its path.

    *name* is used as the tail of the temporary file name; it defaults to the
    source's file name.  The source file is never modified.
    """
    pdf_path = os.path.normpath(pdf_path)
    try:
        page_count = len(read_page_sizes(pdf_path))
    except PdfInspectionError as exc:
        raise PageCollectionError(exc.message, pdf_path) from exc
    order = validate_order(new_order, page_count)

    output = _fresh_output(pdf_path, workdir, name)
    try:
        collect_pages(pdf_path, output, order)
    except Exception:
        Path(output).unlink(missing_ok=True)
        raise
    with _outputs_lock:
        _transform_outputs.add(os.path.normpath(output))
    logger.info("collected pages %s of %s -> %s", order, pdf_path, output)
    return output


def remap_stamps(stamps: Sequence[Stamp], new_order: Sequence[int]) -> list[Stamp]:
    """Stamps laid out for *new_order*.

    Every stamp on an original page is cloned, with a fresh uid, onto each
    new position that page occupies.  Stamps on dropped pages are left out.
    """
    remapped = []
    for new_idx, old_page in enumerate(new_order):
        for stamp in stamps:
            if stamp.page_num == old_page:
                remapped.append(stamp.clone(page_num=new_idx + 1))
    return remapped


def apply_page_order(document: Document, new_order: Sequence[int],
                     workdir: Optional[str] = None) -> str:
    """Transform *document*'s PDF and remap its stamps.

    The document is only touched once the new file exists.
    """
    new_path = transform(document.path, new_order, workdir, name=document.name)
    adopt_transformed(document, new_path, new_order)
    return new_path


def adopt_transformed(document: Document, new_path: str,
                      new_order: Sequence[int]) -> None:
    """Point *document* at a transformed file and remap its stamps onto it.

    The file the document pointed at before is deleted if an earlier
    transform wrote it.
    """
    old_path = document.path
    old_sizes = list(document.page_sizes)
    if old_sizes and all(1 <= p <= len(old_sizes) for p in new_order):
        new_sizes = [old_sizes[p - 1] for p in new_order]
    else:
        new_sizes = read_page_sizes(new_path)
    document.stamps = remap_stamps(document.stamps, new_order)
    document.path = new_path
    document.page_sizes = new_sizes
    if os.path.normpath(old_path) != os.path.normpath(new_path):
        discard_transform_output(old_path)
