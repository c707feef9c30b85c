"""Error taxonomy for stamping and page transforms."""
from __future__ import annotations

from typing import Optional


class StamperError(Exception):
    """Base exception for all stamping and page-transform failures."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message


class ImageDecodeError(StamperError):
    """Raised when a stamp image cannot be read or is not PNG/JPEG."""


class PdfInspectionError(StamperError):
    """Raised when page count or page dimensions cannot be read."""


class WatermarkPlacementError(StamperError):
    """Raised when the PDF backend rejects a computed placement."""


class PageCollectionError(StamperError):
    """Raised when a page order cannot be collected into a new PDF."""


class FileSystemError(StamperError):
    """Raised when temp files or output files cannot be created or written."""
