"""Main application window: menus, toolbar, background tasks, wiring."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt, QSize, QThreadPool, QUrl
from PyQt6.QtGui import QAction, QDesktopServices
from PyQt6.QtWidgets import (
    QMainWindow, QToolBar, QStatusBar, QLabel, QFileDialog, QMessageBox,
)

from app.config import StamperConfig
from app.document_list import DocumentListWidget
from app.errors import StamperError
from app.page_transform import (
    adopt_transformed, delete_page_order, discard_transform_output,
    duplicate_page_order, paste_page_order,
)
from app.pdf_viewer import PDFViewer
from app.state import AppState
from app.stamp import Document, DocumentStatus
from app.workers import ExportTask, PageTransformTask

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(self, config: Optional[StamperConfig] = None):
        super().__init__()
        self.setWindowTitle("CapGo")
        self.resize(1280, 900)

        self._state = AppState(config=config or StamperConfig())
        self._pool = QThreadPool.globalInstance()
        self._export_task: Optional[ExportTask] = None
        self._transform_task: Optional[PageTransformTask] = None

        # -- Central viewer --
        self._viewer = PDFViewer(self._state.config, self)
        self.setCentralWidget(self._viewer)

        # -- Side panel --
        self._doc_list = DocumentListWidget(self)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, self._doc_list)

        # -- Status bar --
        self._status_page  = QLabel("No file open")
        self._status_zoom  = QLabel("Zoom: 100%")
        self._status_count = QLabel("Stamps: 0")
        sb = QStatusBar()
        sb.addWidget(self._status_page)
        sb.addPermanentWidget(self._status_zoom)
        sb.addPermanentWidget(self._status_count)
        self.setStatusBar(sb)

        self._build_menus()
        self._build_toolbar()
        self._connect_signals()
        self._update_actions()

    # ------------------------------------------------------------------
    # Menu / Toolbar
    # ------------------------------------------------------------------

    def _build_menus(self):
        mb = self.menuBar()

        # File
        file_menu = mb.addMenu("&File")
        self._act_open = QAction("&Open PDFs…", self, shortcut="Ctrl+O")
        self._act_open.triggered.connect(self.open_pdfs)
        file_menu.addAction(self._act_open)

        self._act_stamp = QAction("Add &Image Stamp…", self, shortcut="Ctrl+I")
        self._act_stamp.triggered.connect(self.add_image_stamp)
        file_menu.addAction(self._act_stamp)

        file_menu.addSeparator()
        self._act_export = QAction("&Export Current", self, shortcut="Ctrl+S")
        self._act_export.triggered.connect(self.export_current)
        file_menu.addAction(self._act_export)

        self._act_export_all = QAction("Export &Selected", self, shortcut="Ctrl+Shift+S")
        self._act_export_all.triggered.connect(self.export_selected)
        file_menu.addAction(self._act_export_all)

        self._act_stop = QAction("S&top Export", self)
        self._act_stop.triggered.connect(self.stop_export)
        file_menu.addAction(self._act_stop)

        self._act_open_result = QAction("Open &Result", self)
        self._act_open_result.triggered.connect(self.open_result)
        file_menu.addAction(self._act_open_result)

        file_menu.addSeparator()
        file_menu.addAction(QAction("&Quit", self, shortcut="Ctrl+Q",
                                    triggered=self.close))

        # Edit
        edit_menu = mb.addMenu("&Edit")
        self._act_copy = QAction("&Copy Stamp", self, shortcut="Ctrl+C")
        self._act_copy.triggered.connect(self.copy_stamp)
        edit_menu.addAction(self._act_copy)

        self._act_paste = QAction("&Paste Stamp", self, shortcut="Ctrl+V")
        self._act_paste.triggered.connect(self.paste_stamp)
        edit_menu.addAction(self._act_paste)

        self._act_clear = QAction("C&lear Stamps", self)
        self._act_clear.triggered.connect(self.clear_stamps)
        edit_menu.addAction(self._act_clear)

        # Pages
        page_menu = mb.addMenu("&Pages")
        page_menu.addAction(QAction("Copy Page", self,
                                    triggered=lambda: self._on_page_action("copy", 0)))
        page_menu.addAction(QAction("Paste Page After", self,
                                    triggered=lambda: self._on_page_action("paste", 0)))
        page_menu.addAction(QAction("Duplicate Page", self,
                                    triggered=lambda: self._on_page_action("duplicate", 0)))
        page_menu.addAction(QAction("Delete Page", self,
                                    triggered=lambda: self._on_page_action("delete", 0)))

        # View
        view_menu = mb.addMenu("&View")
        view_menu.addAction(QAction("Zoom &In", self, shortcut="Ctrl++",
                                    triggered=self._viewer.zoom_in))
        view_menu.addAction(QAction("Zoom &Out", self, shortcut="Ctrl+-",
                                    triggered=self._viewer.zoom_out))
        view_menu.addAction(QAction("&Reset Zoom", self, shortcut="Ctrl+0",
                                    triggered=self._viewer.reset_zoom))

    def _build_toolbar(self):
        tb = QToolBar("Main Toolbar")
        tb.setMovable(False)
        tb.setIconSize(QSize(20, 20))
        self.addToolBar(tb)

        tb.addAction(self._act_open)
        tb.addAction(self._act_stamp)
        tb.addSeparator()
        tb.addAction(QAction("−", self, triggered=self._viewer.zoom_out))
        tb.addAction(QAction("+", self, triggered=self._viewer.zoom_in))
        tb.addSeparator()
        tb.addAction(self._act_export)
        tb.addAction(self._act_export_all)
        tb.addAction(self._act_stop)

    # ------------------------------------------------------------------
    # Signal wiring
    # ------------------------------------------------------------------

    def _connect_signals(self):
        self._viewer.stamp_changed.connect(self._on_stamp_changed)
        self._viewer.stamp_deleted.connect(self._on_stamp_deleted)
        self._viewer.stamp_copied.connect(self._on_stamp_copied)
        self._viewer.page_sizes_ready.connect(self._on_page_sizes_ready)
        self._viewer.page_changed.connect(self._on_page_changed)
        self._viewer.page_action.connect(self._on_page_action)
        self._viewer.zoom_changed.connect(self._on_zoom_changed)
        self._doc_list.document_activated.connect(self._on_document_activated)
        self._doc_list.selection_toggled.connect(self._on_selection_toggled)
        self._doc_list.select_all_toggled.connect(self._on_select_all)
        self._doc_list.remove_requested.connect(self._on_remove_requested)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _busy(self) -> bool:
        return self._export_task is not None or self._transform_task is not None

    def _find(self, uid: str) -> Optional[Document]:
        return next((d for d in self._state.documents if d.uid == uid), None)

    def _refresh_list(self):
        doc = self._state.active_document
        self._doc_list.set_documents(self._state.documents, doc.uid if doc else "")

    def _refresh_stamps(self):
        doc = self._state.active_document
        self._viewer.set_stamps(doc.stamps if doc else [])
        self._status_count.setText(f"Stamps: {len(doc.stamps) if doc else 0}")
        self._refresh_list()

    def _show_active(self):
        doc = self._state.active_document
        if doc is None:
            self._viewer.clear()
            self.setWindowTitle("CapGo")
            self._refresh_stamps()
            return
        try:
            self._viewer.load_pdf(doc.path)
        except Exception as e:
            logger.exception("cannot render %s", doc.path)
            QMessageBox.critical(self, "Open Error", f"{doc.name}:\n{e}")
            self._viewer.clear()
        self.setWindowTitle(f"CapGo — {doc.name}")
        self._refresh_stamps()

    def _update_actions(self):
        busy = self._busy
        has_doc = self._state.active_document is not None
        for act in (self._act_stamp, self._act_copy, self._act_paste, self._act_clear):
            act.setEnabled(has_doc and not busy)
        self._act_open.setEnabled(not busy)
        self._act_export.setEnabled(has_doc and not busy)
        self._act_export_all.setEnabled(bool(self._state.documents) and not busy)
        self._act_stop.setEnabled(self._export_task is not None)
        doc = self._state.active_document
        self._act_open_result.setEnabled(bool(doc and doc.result_path))
        self._viewer.set_editable(not busy)

    # ------------------------------------------------------------------
    # File operations
    # ------------------------------------------------------------------

    def open_pdfs(self):
        paths, _ = QFileDialog.getOpenFileNames(
            self, "Open PDFs", "", "PDF Files (*.pdf)"
        )
        if not paths:
            return
        was_empty = self._state.active_document is None
        added, duplicates = self._state.add_documents(paths)
        if duplicates:
            self.statusBar().showMessage(
                f"Skipped {len(duplicates)} file(s) already open", 4000)
        if added:
            self.statusBar().showMessage(f"Added {len(added)} file(s)", 4000)
        if was_empty and added:
            self._show_active()
        else:
            self._refresh_list()
        self._update_actions()

    def add_image_stamp(self):
        if self._state.active_document is None or self._busy:
            return
        path, _ = QFileDialog.getOpenFileName(
            self, "Select Stamp Image", "", "Image Files (*.png *.jpg *.jpeg)"
        )
        if not path:
            return
        page, center = self._viewer.viewport_center_position()
        if page:
            self._state.active_page = page
        stamp = self._state.place_stamp(path, center.x(), center.y())
        if stamp is None:
            self.statusBar().showMessage("Wait for the document to finish loading", 4000)
            return
        self._refresh_stamps()
        self._viewer.select_stamp(stamp.uid)

    def export_current(self):
        doc = self._state.active_document
        if doc is None:
            return
        if not doc.stamps:
            QMessageBox.information(self, "No Stamps", "Place a stamp first.")
            return
        self._start_export([doc], only_selected=False)

    def export_selected(self):
        docs = self._state.selected_documents()
        if not docs:
            QMessageBox.information(self, "Nothing Selected", "Select documents to export.")
            return
        self._start_export(docs)

    def _start_export(self, documents: list[Document], only_selected: bool = True):
        if self._busy:
            return
        # Documents without stamps have nothing to write.
        self._export_task = ExportTask([d for d in documents if d.stamps],
                                       self._state.config, only_selected)
        sig = self._export_task.signals
        sig.document_started.connect(self._on_export_started)
        sig.document_finished.connect(self._on_export_finished)
        sig.document_failed.connect(self._on_export_failed)
        sig.done.connect(self._on_export_done)
        self._update_actions()
        self._pool.start(self._export_task)

    def stop_export(self):
        if self._export_task is not None:
            self._export_task.cancel()
            self.statusBar().showMessage("Stopping after the current document…")

    def open_result(self):
        doc = self._state.active_document
        if doc and doc.result_path:
            QDesktopServices.openUrl(QUrl.fromLocalFile(doc.result_path))

    # ------------------------------------------------------------------
    # Stamp operations
    # ------------------------------------------------------------------

    def copy_stamp(self):
        uid = self._viewer.selected_stamp_uid()
        if uid:
            self._on_stamp_copied(uid)

    def paste_stamp(self):
        if self._busy:
            return
        stamp = self._state.paste_stamp()
        if stamp is None:
            return
        self._refresh_stamps()
        self._viewer.select_stamp(stamp.uid)
        self.statusBar().showMessage(f"Pasted stamp onto page {stamp.page_num}", 3000)

    def clear_stamps(self):
        doc = self._state.active_document
        if doc is None or self._busy:
            return
        doc.clear_stamps()
        self._refresh_stamps()

    # ------------------------------------------------------------------
    # Signal handlers
    # ------------------------------------------------------------------

    def _on_stamp_changed(self, uid: str, page: int, x: float, y: float,
                          w: float, h: float):
        doc = self._state.active_document
        if doc is None or self._busy:
            return
        doc.update_stamp(uid, page_num=page, x=x, y=y, width=w, height=h)
        self._refresh_stamps()
        self._viewer.select_stamp(uid)

    def _on_stamp_deleted(self, uid: str):
        doc = self._state.active_document
        if doc is None or self._busy:
            return
        doc.remove_stamp(uid)
        self._refresh_stamps()

    def _on_stamp_copied(self, uid: str):
        if self._state.copy_stamp(uid):
            self.statusBar().showMessage("Stamp copied", 3000)

    def _on_page_sizes_ready(self, sizes: list):
        doc = self._state.active_document
        if doc is not None and self._viewer.pdf_path == doc.path:
            doc.page_sizes = [tuple(s) for s in sizes]

    def _on_page_changed(self, current: int, total: int):
        self._state.active_page = max(current, 1)
        if total:
            self._status_page.setText(f"Page {current} / {total}")
        else:
            self._status_page.setText("No file open")

    def _on_zoom_changed(self, zoom: float):
        self._status_zoom.setText(f"Zoom: {int(zoom * 100)}%")

    def _on_document_activated(self, uid: str):
        index = next((i for i, d in enumerate(self._state.documents) if d.uid == uid), -1)
        if index == -1 or index == self._state.active_index:
            return
        self._state.set_active(index)
        self._show_active()
        self._update_actions()

    def _on_selection_toggled(self, uid: str, selected: bool):
        doc = self._find(uid)
        if doc:
            doc.selected = selected

    def _on_select_all(self, value: bool):
        self._state.select_all(value)
        self._refresh_list()

    def _on_remove_requested(self, uid: str):
        if self._busy:
            return
        was_active = self._state.active_document
        removed = self._state.remove_document(uid)
        if removed is not None:
            discard_transform_output(removed.path)
        if self._state.active_document is not was_active:
            self._show_active()
        else:
            self._refresh_list()
        self._update_actions()

    def _on_page_action(self, action: str, page: int):
        doc = self._state.active_document
        if doc is None or self._busy or doc.page_count == 0:
            return
        page = page or self._state.active_page
        if action == "copy":
            self._state.copy_page(page)
            self.statusBar().showMessage(f"Page {page} copied", 3000)
            return
        if action == "delete":
            if doc.page_count == 1:
                QMessageBox.information(self, "Delete Page", "A PDF needs at least one page.")
                return
            order = delete_page_order(doc.page_count, page)
        elif action == "duplicate":
            order = duplicate_page_order(doc.page_count, page)
        elif action == "paste":
            copied = self._state.copied_page
            if copied is None or copied.pdf_path != doc.path:
                self.statusBar().showMessage("Copy a page of this document first", 3000)
                return
            order = paste_page_order(doc.page_count, page, copied.page_num)
        else:
            return
        self._start_transform(doc, order)

    def _start_transform(self, doc: Document, order: list[int]):
        self._transform_task = PageTransformTask(doc, order)
        self._transform_task.signals.finished.connect(self._on_transform_finished)
        self._transform_task.signals.failed.connect(self._on_transform_failed)
        self._update_actions()
        self._pool.start(self._transform_task)

    def _on_transform_finished(self, uid: str, new_path: str, order: list):
        self._transform_task = None
        doc = self._find(uid)
        if doc is not None:
            try:
                adopt_transformed(doc, new_path, order)
            except StamperError as e:
                discard_transform_output(new_path)
                QMessageBox.critical(self, "Page Error", f"{doc.name}:\n{e}")
            else:
                # A copied page refers to the old file.
                self._state.copied_page = None
                if doc is self._state.active_document:
                    self._show_active()
                self.statusBar().showMessage("PDF structure updated", 3000)
        else:
            discard_transform_output(new_path)
        self._update_actions()

    def _on_transform_failed(self, uid: str, message: str):
        self._transform_task = None
        doc = self._find(uid)
        name = doc.name if doc else "document"
        QMessageBox.critical(self, "Page Error", f"Failed to update {name}:\n{message}")
        self._update_actions()

    def _on_export_started(self, uid: str):
        doc = self._find(uid)
        if doc:
            self.statusBar().showMessage(f"Exporting {doc.name}…")
        self._refresh_list()

    def _on_export_finished(self, uid: str, path: str):
        doc = self._find(uid)
        if doc:
            self.statusBar().showMessage(f"Exported: {doc.name} → {Path(path).name}", 5000)
        self._refresh_list()

    def _on_export_failed(self, uid: str, message: str):
        doc = self._find(uid)
        name = doc.name if doc else "document"
        self.statusBar().showMessage(f"Failed to export {name}: {message}", 8000)
        self._refresh_list()

    def _on_export_done(self, succeeded: int, failed: int):
        self._export_task = None
        self._refresh_list()
        self._update_actions()
        if failed:
            names = [d.name for d in self._state.documents
                     if d.status is DocumentStatus.ERROR]
            QMessageBox.warning(
                self, "Export Finished",
                f"Exported {succeeded} file(s); {failed} failed:\n" + "\n".join(names),
            )
        elif succeeded:
            self.statusBar().showMessage(f"Successfully exported {succeeded} file(s)", 5000)
