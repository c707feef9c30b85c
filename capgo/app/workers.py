"""Background tasks for exports and page transforms.

Tasks run on a QThreadPool and report back through a QObject signals
companion (a QRunnable cannot emit signals itself).  The window keeps the task
object as its handle and updates its own state when a signal arrives.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from PyQt6.QtCore import QObject, QRunnable, pyqtSignal

from app.config import StamperConfig
from app.errors import StamperError
from app.page_transform import transform
from app.pipeline import export_batch
from app.stamp import Document

logger = logging.getLogger(__name__)


class ExportSignals(QObject):
    document_started  = pyqtSignal(str)         # document uid
    document_finished = pyqtSignal(str, str)    # document uid, output path
    document_failed   = pyqtSignal(str, str)    # document uid, message
    done              = pyqtSignal(int, int)    # succeeded, failed


class ExportTask(QRunnable):
    """Export documents one after another; cancel() stops before the next."""

    def __init__(self, documents: Sequence[Document],
                 config: Optional[StamperConfig] = None,
                 only_selected: bool = True):
        super().__init__()
        self.setAutoDelete(False)
        self.signals = ExportSignals()
        self._documents = list(documents)
        self._config = config
        self._only_selected = only_selected
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def run(self):
        succeeded = failed = 0
        try:
            result = export_batch(
                self._documents,
                self._config,
                should_stop=lambda: self._cancelled,
                on_started=lambda d: self.signals.document_started.emit(d.uid),
                on_finished=lambda d, path: self.signals.document_finished.emit(d.uid, path),
                on_failed=lambda d, exc: self.signals.document_failed.emit(d.uid, str(exc)),
                only_selected=self._only_selected,
            )
            succeeded, failed = len(result.succeeded), len(result.failed)
        finally:
            # The window stays busy until it sees done.
            self.signals.done.emit(succeeded, failed)


class TransformSignals(QObject):
    finished = pyqtSignal(str, str, list)       # document uid, new path, page order
    failed   = pyqtSignal(str, str)             # document uid, message


class PageTransformTask(QRunnable):
    """Write the reordered PDF.  Stamp remapping is left to the receiver."""

    def __init__(self, document: Document, new_order: Sequence[int]):
        super().__init__()
        self.setAutoDelete(False)
        self.signals = TransformSignals()
        self._uid = document.uid
        self._path = document.path
        self._name = document.name
        self._order = list(new_order)

    def run(self):
        try:
            new_path = transform(self._path, self._order, name=self._name)
        except StamperError as exc:
            logger.error("page transform of %s failed: %s", self._path, exc)
            self.signals.failed.emit(self._uid, str(exc))
            return
        except Exception as exc:
            logger.exception("page transform of %s failed", self._path)
            self.signals.failed.emit(self._uid, f"unexpected error: {exc}")
            return
        self.signals.finished.emit(self._uid, new_path, self._order)
