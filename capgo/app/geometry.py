"""Coordinate mapping between screen, layout and PDF point space.

Three spaces are involved:

* PDF point space: origin at the page's bottom-left, unscaled.
* Document space: origin at the page's top-left, still in PDF points at
  scale 1.  Stamps are always stored in this space.
* Screen space: viewport pixels after fit-to-width scaling, user zoom and
  scrolling.  Pointer events arrive here.

Everything in this module is pure.
"""
from __future__ import annotations

from typing import Optional, Sequence

from PyQt6.QtCore import QPointF, QRectF


def clamp_zoom(zoom: float, zoom_min: float = 0.4, zoom_max: float = 4.0) -> float:
    return max(zoom_min, min(zoom, zoom_max))


def fit_width_scale(container_width: float, page_width: float,
                    margin: float = 0.0) -> float:
    """Base scale that fits a page of *page_width* points into the container.

    Returns 1.0 while either width is unknown, or when the margin eats the
    whole container.
    """
    if container_width <= 0 or page_width <= 0:
        return 1.0
    usable = container_width - margin
    if usable <= 0:
        return 1.0
    return usable / page_width


def effective_scale(base_scale: float, zoom: float) -> float:
    if base_scale <= 0 or zoom <= 0:
        raise ValueError(f"scales must be positive (base={base_scale}, zoom={zoom})")
    return base_scale * zoom


def screen_to_document(screen_pt: QPointF, viewer_scale: float,
                       page_origin: QPointF) -> QPointF:
    """Map a screen point onto the page whose top-left is at *page_origin*."""
    if viewer_scale <= 0:
        raise ValueError(f"viewer_scale must be positive, got {viewer_scale}")
    return (screen_pt - page_origin) / viewer_scale


def document_to_screen(doc_pt: QPointF, viewer_scale: float,
                       page_origin: QPointF) -> QPointF:
    """Inverse of screen_to_document."""
    return doc_pt * viewer_scale + page_origin


def screen_rect_to_document(rect: QRectF, viewer_scale: float,
                            page_origin: QPointF) -> QRectF:
    top_left = screen_to_document(rect.topLeft(), viewer_scale, page_origin)
    return QRectF(top_left.x(), top_left.y(),
                  rect.width() / viewer_scale, rect.height() / viewer_scale)


def resolve_target_page(screen_rect: QRectF,
                        page_rects: Sequence[QRectF]) -> Optional[int]:
    """Return the 1-indexed page whose rendered rect contains the centre of
    *screen_rect*, or None when the centre falls outside every page.
    """
    center = screen_rect.center()
    for idx, page_rect in enumerate(page_rects):
        if page_rect.contains(center):
            return idx + 1
    return None


def document_to_pdf_points(doc_pt: QPointF) -> QPointF:
    # Document space is already PDF points at scale 1.
    return QPointF(doc_pt)
