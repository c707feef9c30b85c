"""Application state owned by the main window: open documents, the active
document, and the stamp/page clipboards."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, Optional

from app.config import StamperConfig
from app.stamp import Document, Stamp

logger = logging.getLogger(__name__)


@dataclass
class CopiedPage:
    pdf_path: str
    page_num: int


@dataclass
class AppState:
    config: StamperConfig = field(default_factory=StamperConfig)
    documents: list[Document] = field(default_factory=list)
    active_index: int = -1
    active_page: int = 1
    clipboard_stamp: Optional[Stamp] = None
    copied_page: Optional[CopiedPage] = None

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @property
    def active_document(self) -> Optional[Document]:
        if 0 <= self.active_index < len(self.documents):
            return self.documents[self.active_index]
        return None

    def add_documents(self, paths: Iterable[str]) -> tuple[list[Document], list[str]]:
        """Open *paths*, skipping ones already open.

        Returns the new documents and the skipped paths.
        """
        open_paths = {os.path.normpath(d.path) for d in self.documents}
        added, duplicates = [], []
        for path in paths:
            norm = os.path.normpath(path)
            if norm in open_paths:
                duplicates.append(path)
                continue
            open_paths.add(norm)
            added.append(Document(path=norm))

        self.documents.extend(added)
        if self.active_index == -1 and self.documents:
            self.active_index = 0
            self.active_page = 1
        if duplicates:
            logger.info("skipped %d already open file(s)", len(duplicates))
        return added, duplicates

    def remove_document(self, uid: str) -> Optional[Document]:
        index = next((i for i, d in enumerate(self.documents) if d.uid == uid), -1)
        if index == -1:
            return None
        removed = self.documents.pop(index)

        if self.active_index == index:
            if not self.documents:
                self.active_index = -1
            elif index == len(self.documents):
                self.active_index = index - 1
            self.active_page = 1
        elif self.active_index > index:
            self.active_index -= 1
        return removed

    def set_active(self, index: int):
        if not 0 <= index < len(self.documents):
            raise IndexError(f"no document at index {index}")
        if index != self.active_index:
            self.active_index = index
            self.active_page = 1

    def selected_documents(self) -> list[Document]:
        return [d for d in self.documents if d.selected]

    def select_all(self, value: bool):
        for d in self.documents:
            d.selected = value

    # ------------------------------------------------------------------
    # Stamps
    # ------------------------------------------------------------------

    def place_stamp(self, image: str, x: Optional[float] = None,
                    y: Optional[float] = None) -> Optional[Stamp]:
        """Add a stamp of the default size on the active page.

        Nothing is placed until the active document's page sizes are known.
        Without an explicit position the stamp lands at (50, 50).
        """
        doc = self.active_document
        if doc is None or doc.page_count == 0:
            logger.debug("stamp placement deferred: page size not observed yet")
            return None
        width, height = self.config.default_stamp_size
        stamp = Stamp(
            image=image,
            x=x if x is not None and x > 0 else 50.0,
            y=y if y is not None and y > 0 else 50.0,
            width=width,
            height=height,
            page_num=min(max(self.active_page, 1), doc.page_count),
        )
        return doc.add_stamp(stamp)

    def copy_stamp(self, uid: str) -> bool:
        doc = self.active_document
        stamp = doc.find_stamp(uid) if doc else None
        if stamp is None:
            return False
        self.clipboard_stamp = stamp
        return True

    def paste_stamp(self) -> Optional[Stamp]:
        doc = self.active_document
        if doc is None or self.clipboard_stamp is None or doc.page_count == 0:
            return None
        page = min(max(self.active_page, 1), doc.page_count)
        return doc.duplicate_on_paste(self.clipboard_stamp, page,
                                      self.config.paste_offset)

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def copy_page(self, page_num: int) -> bool:
        doc = self.active_document
        if doc is None:
            return False
        self.copied_page = CopiedPage(doc.path, page_num)
        return True
