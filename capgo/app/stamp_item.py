"""QGraphicsItem for a placed stamp."""
from __future__ import annotations

import base64
import binascii
import logging

from PyQt6.QtCore import QObject, QPointF, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QPainter, QPen, QPixmap
from PyQt6.QtWidgets import QGraphicsItem, QGraphicsSceneMouseEvent, QMenu

from app.compositor import is_data_url
from app.stamp import Stamp

logger = logging.getLogger(__name__)

_pixmap_cache: dict[str, QPixmap] = {}


def load_pixmap(source: str) -> QPixmap:
    """QPixmap for a data URL or file path; a null pixmap if unreadable."""
    cached = _pixmap_cache.get(source)
    if cached is not None:
        return cached
    pix = QPixmap()
    if is_data_url(source):
        try:
            pix.loadFromData(base64.b64decode(source.partition(",")[2]))
        except (binascii.Error, ValueError) as exc:
            logger.warning("cannot decode inline stamp image: %s", exc)
    else:
        pix.load(source)
    if not pix.isNull():
        _pixmap_cache[source] = pix
    return pix


# ---------------------------------------------------------------------------
# Signals companion (QGraphicsItem can't inherit QObject directly)
# ---------------------------------------------------------------------------

class StampSignals(QObject):
    released = pyqtSignal(str)          # uid, after a move or resize
    deleted  = pyqtSignal(str)          # uid
    copied   = pyqtSignal(str)          # uid


# ---------------------------------------------------------------------------
# Graphics item
# ---------------------------------------------------------------------------

HANDLE_SIZE = 10.0       # PDF points
MIN_STAMP_SIZE = 8.0     # PDF points


class StampItem(QGraphicsItem):
    """A movable, resizable stamp.

    The item lives in scene coordinates, which are PDF points with the pages
    stacked top to bottom.  Its origin is the stamp's top-left corner; the
    image is drawn contained in the box, as it will be exported.
    """

    def __init__(self, stamp: Stamp, page_origin: QPointF):
        super().__init__()
        self.signals = StampSignals()
        self._stamp = stamp
        self._size = QRectF(0, 0, stamp.width, stamp.height)
        self._pixmap = load_pixmap(stamp.image)
        self._resizing = False
        self._press_pos = QPointF()

        self.setPos(page_origin + QPointF(stamp.x, stamp.y))
        self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemIsMovable, True)
        self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemIsSelectable, True)
        self.setZValue(10)

    @property
    def uid(self) -> str:
        return self._stamp.uid

    @property
    def stamp(self) -> Stamp:
        return self._stamp

    def box_scene_rect(self) -> QRectF:
        """The stamp box (without the handle) in scene coordinates."""
        return QRectF(self.pos(), self._size.size())

    def boundingRect(self) -> QRectF:
        half = HANDLE_SIZE / 2
        return self._size.adjusted(-1, -1, half + 1, half + 1)

    def _handle_rect(self) -> QRectF:
        half = HANDLE_SIZE / 2
        return QRectF(self._size.right() - half, self._size.bottom() - half,
                      HANDLE_SIZE, HANDLE_SIZE)

    # ------------------------------------------------------------------
    # Paint
    # ------------------------------------------------------------------

    def paint(self, painter: QPainter, option, widget=None):
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        if not self._pixmap.isNull():
            fitted = self._pixmap.size().scaled(
                self._size.size().toSize(), Qt.AspectRatioMode.KeepAspectRatio)
            target = QRectF(0, 0, fitted.width(), fitted.height())
            target.moveCenter(self._size.center())
            painter.drawPixmap(target, self._pixmap, QRectF(self._pixmap.rect()))
        else:
            painter.fillRect(self._size, QColor(255, 0, 0, 40))

        if self.isSelected():
            pen = QPen(QColor("#4f46e5"), 1, Qt.PenStyle.DashLine)
            pen.setCosmetic(True)
            painter.setPen(pen)
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(self._size)
            painter.setBrush(QBrush(QColor("#4f46e5")))
            painter.drawEllipse(self._handle_rect())

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def mousePressEvent(self, event: QGraphicsSceneMouseEvent):
        self._press_pos = self.pos()
        if (self.isSelected() and event.button() == Qt.MouseButton.LeftButton
                and self._handle_rect().contains(event.pos())):
            self._resizing = True
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event: QGraphicsSceneMouseEvent):
        if self._resizing:
            w = max(MIN_STAMP_SIZE, event.pos().x())
            h = max(MIN_STAMP_SIZE, event.pos().y())
            self.prepareGeometryChange()
            self._size = QRectF(0, 0, w, h)
            self.update()
            event.accept()
            return
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QGraphicsSceneMouseEvent):
        was_resizing = self._resizing
        self._resizing = False
        super().mouseReleaseEvent(event)
        if was_resizing or self.pos() != self._press_pos:
            self.signals.released.emit(self._stamp.uid)

    def contextMenuEvent(self, event: QGraphicsSceneMouseEvent):
        menu = QMenu()
        copy_action = menu.addAction("Copy stamp")
        delete_action = menu.addAction("Delete stamp")
        action = menu.exec(event.screenPos())
        if action == copy_action:
            self.signals.copied.emit(self._stamp.uid)
        elif action == delete_action:
            self.signals.deleted.emit(self._stamp.uid)
