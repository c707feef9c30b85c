"""PDF canvas: QGraphicsView that renders every page of a document stacked
vertically and hosts the stamp items."""
from __future__ import annotations

import logging
from typing import Optional

import fitz  # PyMuPDF
from PyQt6.QtCore import pyqtSignal, Qt, QPointF, QRectF
from PyQt6.QtGui import QColor, QImage, QPainter, QPixmap, QTransform, QWheelEvent, QKeyEvent
from PyQt6.QtWidgets import (
    QGraphicsView, QGraphicsScene, QGraphicsPixmapItem, QMenu,
)

from app.config import StamperConfig
from app.geometry import (
    clamp_zoom, effective_scale, fit_width_scale, resolve_target_page,
    screen_rect_to_document, screen_to_document,
)
from app.stamp import Stamp
from app.stamp_item import StampItem

logger = logging.getLogger(__name__)

_BASE_DPI   = 150          # render resolution (pixels per inch for display)
_POINTS_PER_INCH = 72.0
_PAGE_GAP   = 16.0         # scene points between stacked pages
_SIDE_MARGIN = 60.0        # viewport pixels kept free beside the pages


class PDFViewer(QGraphicsView):
    """Shows all pages of one PDF with zoom and scrolling.

    The scene is in PDF points (page *n* starts at ``_page_rects[n-1]``);
    the view transform applies the fit-to-width base scale times the user
    zoom.  Stamps are reported back in per-page document coordinates.
    """

    stamp_changed     = pyqtSignal(str, int, float, float, float, float)  # uid, page, x, y, w, h
    stamp_deleted     = pyqtSignal(str)
    stamp_copied      = pyqtSignal(str)
    stamp_selected    = pyqtSignal(str)                 # uid, "" when none
    page_sizes_ready  = pyqtSignal(list)                # [(w, h), ...]
    page_changed      = pyqtSignal(int, int)            # current (1-indexed), total
    page_action       = pyqtSignal(str, int)            # action, page (1-indexed)
    zoom_changed      = pyqtSignal(float)

    def __init__(self, config: Optional[StamperConfig] = None, parent=None):
        super().__init__(parent)
        self._config = config or StamperConfig()
        self._scene = QGraphicsScene(self)
        self._scene.setBackgroundBrush(QColor("#3f3f46"))
        self.setScene(self._scene)

        self.setRenderHints(
            QPainter.RenderHint.Antialiasing |
            QPainter.RenderHint.SmoothPixmapTransform
        )
        self.setDragMode(QGraphicsView.DragMode.NoDrag)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAsNeeded)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAsNeeded)

        self._pdf_path: str = ""
        self._page_rects: list[QRectF] = []     # scene rect of each page
        self._current_page: int = 0             # 1-indexed, 0 when empty
        self._zoom: float = 1.0                 # user zoom factor
        self._base_scale: float = 1.0           # fit-to-width scale
        self._stamp_items: dict[str, StampItem] = {}
        self._editable = True

        self._scene.selectionChanged.connect(self._on_selection_changed)
        self.verticalScrollBar().valueChanged.connect(self._update_current_page)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load_pdf(self, path: str):
        """Render every page of *path*.  Raises if PyMuPDF cannot open it."""
        doc = fitz.open(path)
        try:
            self._render_pages(doc)
        finally:
            doc.close()
        self._pdf_path = path
        self._current_page = 1 if self._page_rects else 0
        self._update_base_scale()
        self.verticalScrollBar().setValue(0)
        logger.debug("rendered %d page(s) of %s", self.page_count, path)
        self.page_sizes_ready.emit(
            [(r.width(), r.height()) for r in self._page_rects])
        self.page_changed.emit(self._current_page, self.page_count)

    def clear(self):
        self._stamp_items.clear()
        self._scene.clear()
        self._page_rects = []
        self._pdf_path = ""
        self._current_page = 0
        self.page_changed.emit(0, 0)

    @property
    def pdf_path(self) -> str:
        return self._pdf_path

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def page_count(self) -> int:
        return len(self._page_rects)

    @property
    def scale(self) -> float:
        return effective_scale(self._base_scale, self._zoom)

    def set_editable(self, editable: bool):
        self._editable = editable
        for item in self._stamp_items.values():
            item.setFlag(item.GraphicsItemFlag.ItemIsMovable, editable)

    def set_stamps(self, stamps: list[Stamp]):
        """Replace all stamp items; list order is z-order."""
        for item in self._stamp_items.values():
            self._scene.removeItem(item)
        self._stamp_items.clear()
        for z, stamp in enumerate(stamps):
            if not 1 <= stamp.page_num <= self.page_count:
                continue
            item = StampItem(stamp, self._page_rects[stamp.page_num - 1].topLeft())
            item.setZValue(10 + z)
            item.setFlag(item.GraphicsItemFlag.ItemIsMovable, self._editable)
            # Queued: receivers rebuild the items, which must not happen
            # inside the item's own mouse handler.
            queued = Qt.ConnectionType.QueuedConnection
            item.signals.released.connect(self._on_stamp_released, queued)
            item.signals.deleted.connect(self.stamp_deleted, queued)
            item.signals.copied.connect(self.stamp_copied)
            self._scene.addItem(item)
            self._stamp_items[stamp.uid] = item

    def select_stamp(self, uid: str):
        self._scene.clearSelection()
        item = self._stamp_items.get(uid)
        if item:
            item.setSelected(True)
            self.ensureVisible(item)

    def selected_stamp_uid(self) -> str:
        for item in self._scene.selectedItems():
            if isinstance(item, StampItem):
                return item.uid
        return ""

    def viewport_center_position(self) -> tuple[int, QPointF]:
        """Current page and the document point at the viewport centre."""
        if not self._page_rects:
            return 0, QPointF()
        page = max(self._current_page, 1)
        center = QPointF(self.viewport().rect().center())
        origin = self._page_screen_rect(page).topLeft()
        return page, screen_to_document(center, self.scale, origin)

    def zoom_in(self):
        self._apply_zoom(self._zoom + 0.1)

    def zoom_out(self):
        self._apply_zoom(self._zoom - 0.1)

    def reset_zoom(self):
        self._apply_zoom(1.0)

    # ------------------------------------------------------------------
    # Internal rendering
    # ------------------------------------------------------------------

    def _render_pages(self, doc: fitz.Document):
        self._stamp_items.clear()
        self._scene.clear()
        self._page_rects = []

        scale = _BASE_DPI / _POINTS_PER_INCH
        mat = fitz.Matrix(scale, scale)
        top = 0.0
        width = 0.0
        for page in doc:
            pix = page.get_pixmap(matrix=mat, alpha=False)
            img = QImage(pix.samples, pix.width, pix.height,
                         pix.stride, QImage.Format.Format_RGB888)
            item = QGraphicsPixmapItem(QPixmap.fromImage(img))
            # Transform: pixmap px -> pdf pts
            px_to_pt = page.rect.width / pix.width
            item.setTransform(QTransform().scale(px_to_pt, px_to_pt))
            item.setPos(0, top)
            self._scene.addItem(item)

            rect = QRectF(0, top, page.rect.width, page.rect.height)
            self._page_rects.append(rect)
            width = max(width, rect.width())
            top += rect.height() + _PAGE_GAP

        self._scene.setSceneRect(QRectF(0, 0, width, max(top - _PAGE_GAP, 0)))

    def _page_screen_rect(self, page: int) -> QRectF:
        return self.viewportTransform().mapRect(self._page_rects[page - 1])

    # ------------------------------------------------------------------
    # Zoom helpers
    # ------------------------------------------------------------------

    def _update_base_scale(self):
        page_width = max((r.width() for r in self._page_rects), default=0.0)
        self._base_scale = fit_width_scale(self.viewport().width(), page_width,
                                           _SIDE_MARGIN)
        self.setTransform(QTransform().scale(self.scale, self.scale))

    def _apply_zoom(self, zoom: float):
        zoom = clamp_zoom(zoom, self._config.zoom_min, self._config.zoom_max)
        if zoom == self._zoom:
            return
        self._zoom = zoom
        self.setTransform(QTransform().scale(self.scale, self.scale))
        self.zoom_changed.emit(zoom)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_stamp_released(self, uid: str):
        item = self._stamp_items.get(uid)
        if item is None:
            return
        stamp = item.stamp
        screen_rect = self.viewportTransform().mapRect(item.box_scene_rect())
        page_rects = [self._page_screen_rect(p) for p in range(1, self.page_count + 1)]
        target = resolve_target_page(screen_rect, page_rects)
        if target is None:
            # Dropped outside every page: put it back where it was.
            item.setPos(self._page_rects[stamp.page_num - 1].topLeft()
                        + QPointF(stamp.x, stamp.y))
            return
        doc_rect = screen_rect_to_document(screen_rect, self.scale,
                                           page_rects[target - 1].topLeft())
        self.stamp_changed.emit(uid, target, doc_rect.x(), doc_rect.y(),
                                doc_rect.width(), doc_rect.height())

    def _on_selection_changed(self):
        self.stamp_selected.emit(self.selected_stamp_uid())

    def _update_current_page(self, *_):
        if not self._page_rects:
            return
        center = self.mapToScene(self.viewport().rect().center())
        page = self._current_page
        for idx, rect in enumerate(self._page_rects):
            if rect.top() <= center.y() <= rect.bottom() + _PAGE_GAP:
                page = idx + 1
                break
        if page != self._current_page:
            self._current_page = page
            self.page_changed.emit(page, self.page_count)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        if self._page_rects:
            self._update_base_scale()

    def wheelEvent(self, event: QWheelEvent):
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            delta = event.angleDelta().y()
            factor = 1.1 if delta > 0 else 1 / 1.1
            self._apply_zoom(self._zoom * factor)
            event.accept()
        else:
            super().wheelEvent(event)

    def contextMenuEvent(self, event):
        if isinstance(self.itemAt(event.pos()), StampItem):
            super().contextMenuEvent(event)
            return
        scene_pt = self.mapToScene(event.pos())
        page = next((i + 1 for i, r in enumerate(self._page_rects)
                     if r.contains(scene_pt)), 0)
        if not page or not self._editable:
            return
        menu = QMenu(self)
        actions = {
            menu.addAction("Copy Page"): "copy",
            menu.addAction("Paste Page After"): "paste",
            menu.addAction("Duplicate"): "duplicate",
        }
        menu.addSeparator()
        actions[menu.addAction("Delete Page")] = "delete"
        chosen = menu.exec(event.globalPos())
        if chosen in actions:
            self.page_action.emit(actions[chosen], page)

    def keyPressEvent(self, event: QKeyEvent):
        if event.key() in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace) and self._editable:
            for item in self._scene.selectedItems():
                if isinstance(item, StampItem):
                    self.stamp_deleted.emit(item.uid)
            event.accept()
            return
        super().keyPressEvent(event)
