"""Apply a document's stamps to its PDF and write the result.

Stamps are applied one at a time in their stored order: each step reads the
previous step's output.  The first step reads the source, the last one writes
the final output, and everything in between lives in a scratch directory
that is removed however the run ends.
"""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from app.compositor import prepare_stamp
from app.config import StamperConfig
from app.errors import FileSystemError, StamperError, WatermarkPlacementError
from app.pdf_backend import insert_stamp, read_page_sizes
from app.stamp import Document, Stamp

logger = logging.getLogger(__name__)

_dir_locks: dict[str, threading.Lock] = {}
_dir_locks_guard = threading.Lock()


def _lock_for(directory: Path) -> threading.Lock:
    key = os.path.normcase(str(directory.resolve()))
    with _dir_locks_guard:
        return _dir_locks.setdefault(key, threading.Lock())


# ---------------------------------------------------------------------------
# Output naming
# ---------------------------------------------------------------------------

def clean_base_name(pdf_path: str, suffix: str = "_capgo") -> tuple[str, str]:
    """Base name with any earlier export suffix stripped, and the extension."""
    path = Path(pdf_path)
    return path.stem.split(suffix)[0], path.suffix


def _candidate(output_dir: Path, base: str, suffix: str, ext: str, n: int) -> Path:
    if n == 0:
        return output_dir / f"{base}{suffix}{ext}"
    return output_dir / f"{base}{suffix} ({n}){ext}"


def output_path_for(pdf_path: str, output_dir: Path, suffix: str = "_capgo") -> Path:
    """First free output name for *pdf_path* in *output_dir*."""
    base, ext = clean_base_name(pdf_path, suffix)
    n = 0
    while True:
        candidate = _candidate(output_dir, base, suffix, ext, n)
        if not candidate.exists():
            return candidate
        n += 1


def reserve_output_path(pdf_path: str, output_dir: Path,
                        suffix: str = "_capgo") -> Path:
    """Pick and claim an output name by creating it exclusively.

    Callers must delete the returned file if they end up not writing it.
    """
    output_dir = Path(output_dir)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileSystemError(f"cannot create output directory: {exc}", str(output_dir)) from exc

    with _lock_for(output_dir):
        while True:
            candidate = output_path_for(pdf_path, output_dir, suffix)
            try:
                with open(candidate, "x"):
                    pass
                return candidate
            except FileExistsError:
                # Claimed by another process since the probe.
                continue
            except OSError as exc:
                raise FileSystemError(f"cannot create output file: {exc}", str(candidate)) from exc


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------

def _as_stamp(item: Union[Stamp, dict]) -> Stamp:
    return item if isinstance(item, Stamp) else Stamp.from_dict(item)


def stamp_pdf(pdf_path: str, stamps: Iterable[Union[Stamp, dict]],
              config: Optional[StamperConfig] = None) -> str:
    """Apply *stamps* to *pdf_path* and return the output file's path.

    With no stamps the input path is returned and nothing is written.
    """
    config = config or StamperConfig()
    pdf_path = os.path.normpath(pdf_path)
    stamps = [_as_stamp(s) for s in stamps]
    if not stamps:
        return pdf_path

    page_sizes = read_page_sizes(pdf_path)
    for stamp in stamps:
        if not 1 <= stamp.page_num <= len(page_sizes):
            raise WatermarkPlacementError(
                f"stamp on page {stamp.page_num} but document has "
                f"{len(page_sizes)} page(s)", pdf_path)

    output = reserve_output_path(pdf_path, config.output_dir, config.output_suffix)
    logger.info("stamping %s with %d stamp(s) -> %s", pdf_path, len(stamps), output)
    try:
        try:
            scratch = tempfile.TemporaryDirectory(prefix="capgo_")
        except OSError as exc:
            raise FileSystemError(f"cannot create temporary directory: {exc}") from exc

        with scratch as workdir:
            current = pdf_path
            for i, stamp in enumerate(stamps):
                last = i == len(stamps) - 1
                step_output = str(output) if last else os.path.join(
                    workdir, f"intermediate_{i}.pdf")
                _, page_height = page_sizes[stamp.page_num - 1]
                prepared = prepare_stamp(stamp, page_height, workdir,
                                         config.quality_factor)
                insert_stamp(current, step_output, prepared)
                current = step_output
    except Exception:
        output.unlink(missing_ok=True)
        raise

    return str(output)


def export_document(document: Document,
                    config: Optional[StamperConfig] = None) -> str:
    """Stamp *document*, moving its status through processing to completed
    or error.  Errors are re-raised after the status is set.
    """
    if not document.stamps:
        logger.info("%s has no stamps; nothing to export", document.name)
        return document.path

    document.mark_processing()
    try:
        result = stamp_pdf(document.path, document.stamps, config)
    except StamperError as exc:
        document.mark_error(str(exc))
        logger.error("export of %s failed: %s", document.name, exc)
        raise
    except Exception as exc:
        logger.exception("unexpected failure exporting %s", document.name)
        error = StamperError(f"unexpected error: {exc}", document.path)
        document.mark_error(str(error))
        raise error from exc
    document.mark_completed(result)
    logger.info("exported %s -> %s", document.name, result)
    return result


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

@dataclass
class BatchResult:
    succeeded: list[tuple[Document, str]] = field(default_factory=list)
    failed: list[tuple[Document, StamperError]] = field(default_factory=list)
    stopped: bool = False


def export_batch(documents: Iterable[Document],
                 config: Optional[StamperConfig] = None,
                 should_stop: Optional[Callable[[], bool]] = None,
                 on_started: Optional[Callable[[Document], None]] = None,
                 on_finished: Optional[Callable[[Document, str], None]] = None,
                 on_failed: Optional[Callable[[Document, StamperError], None]] = None,
                 only_selected: bool = True,
                 ) -> BatchResult:
    """Export every selected document (every document when *only_selected*
    is false), one after another, in list order.

    A failing document is recorded and the batch moves on.  *should_stop* is
    polled before each document; a document already started always finishes.
    """
    result = BatchResult()
    for document in documents:
        if only_selected and not document.selected:
            continue
        if should_stop is not None and should_stop():
            logger.info("batch export stopped before %s", document.name)
            result.stopped = True
            break
        if on_started:
            on_started(document)
        try:
            path = export_document(document, config)
        except StamperError as exc:
            result.failed.append((document, exc))
            if on_failed:
                on_failed(document, exc)
            continue
        result.succeeded.append((document, path))
        if on_finished:
            on_finished(document, path)
    return result
