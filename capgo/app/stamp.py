"""Stamp and Document data model."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional

from app.utils import make_uid


# ---------------------------------------------------------------------------
# Stamp
# ---------------------------------------------------------------------------

_GEOMETRY_FIELDS = ("x", "y", "width", "height", "page_num")


@dataclass
class Stamp:
    image: str                    # data: URL or file path
    x: float                      # PDF points, top-left origin
    y: float
    width: float                  # PDF points
    height: float
    page_num: int                 # 1-indexed into the current page order
    uid: str = field(default_factory=make_uid)

    def __post_init__(self):
        _check_size(self.width, self.height)
        if self.page_num < 1:
            raise ValueError(f"page_num must be >= 1, got {self.page_num}")

    def clone(self, **changes) -> "Stamp":
        """Copy with a fresh uid; *changes* override geometry fields."""
        return replace(self, uid=make_uid(), **changes)

    def contains(self, x: float, y: float) -> bool:
        return (self.x <= x <= self.x + self.width and
                self.y <= y <= self.y + self.height)

    def to_dict(self) -> dict:
        return {
            "id": self.uid,
            "image": self.image,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "pageNum": self.page_num,
        }

    @staticmethod
    def from_dict(d: dict) -> "Stamp":
        return Stamp(
            image=d["image"],
            x=float(d["x"]),
            y=float(d["y"]),
            width=float(d["width"]),
            height=float(d["height"]),
            page_num=int(d["pageNum"]),
            uid=d.get("id") or make_uid(),
        )


def _check_size(width: float, height: float):
    if width <= 0 or height <= 0:
        raise ValueError(f"stamp size must be positive, got {width} x {height}")


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

class DocumentStatus(Enum):
    PENDING    = "pending"
    PROCESSING = "processing"
    COMPLETED  = "completed"
    ERROR      = "error"


@dataclass
class Document:
    path: str
    name: str = ""
    stamps: list[Stamp] = field(default_factory=list)
    status: DocumentStatus = DocumentStatus.PENDING
    result_path: Optional[str] = None
    selected: bool = True
    page_sizes: list[tuple[float, float]] = field(default_factory=list)
    error_message: str = ""
    uid: str = field(default_factory=make_uid)

    def __post_init__(self):
        if not self.name:
            self.name = Path(self.path).name or "document.pdf"

    @property
    def page_count(self) -> int:
        return len(self.page_sizes)

    def page_size(self, page_num: int) -> tuple[float, float]:
        return self.page_sizes[page_num - 1]

    # -- stamp collection ------------------------------------------------

    def find_stamp(self, uid: str) -> Optional[Stamp]:
        for stamp in self.stamps:
            if stamp.uid == uid:
                return stamp
        return None

    def add_stamp(self, stamp: Stamp) -> Stamp:
        """Append a copy of *stamp* under a fresh uid; it draws on top."""
        added = stamp.clone()
        self.stamps.append(added)
        return added

    def update_stamp(self, uid: str, **geometry) -> Optional[Stamp]:
        unknown = set(geometry) - set(_GEOMETRY_FIELDS)
        if unknown:
            raise ValueError(f"not geometry fields: {sorted(unknown)}")
        for idx, stamp in enumerate(self.stamps):
            if stamp.uid == uid:
                updated = replace(stamp, **geometry)
                self.stamps[idx] = updated
                return updated
        return None

    def remove_stamp(self, uid: str) -> Optional[Stamp]:
        for idx, stamp in enumerate(self.stamps):
            if stamp.uid == uid:
                return self.stamps.pop(idx)
        return None

    def duplicate_on_paste(self, stamp: Stamp, active_page: int,
                           offset: float = 20.0) -> Stamp:
        pasted = stamp.clone(x=stamp.x + offset, y=stamp.y + offset,
                             page_num=active_page)
        self.stamps.append(pasted)
        return pasted

    def clear_stamps(self):
        self.stamps.clear()

    def stamp_at(self, page_num: int, x: float, y: float) -> Optional[Stamp]:
        """Topmost stamp on *page_num* under the document point (x, y)."""
        for stamp in reversed(self.stamps):
            if stamp.page_num == page_num and stamp.contains(x, y):
                return stamp
        return None

    # -- status ------------------------------------------------------------

    def mark_processing(self):
        self.status = DocumentStatus.PROCESSING
        self.error_message = ""

    def mark_completed(self, result_path: str):
        self.status = DocumentStatus.COMPLETED
        self.result_path = result_path

    def mark_error(self, message: str):
        self.status = DocumentStatus.ERROR
        self.error_message = message
