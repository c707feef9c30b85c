"""Y-axis flips between top-left document space and bottom-left PDF space,
plus shared helpers."""
from uuid import uuid4


def make_uid() -> str:
    return str(uuid4())


def top_left_to_pdf_y(top: float, height: float, page_height: float) -> float:
    """Convert the top edge of a box (origin top-left, Y down) to the PDF
    Y of its bottom edge (origin bottom-left, Y up).
    """
    return page_height - (top + height)


def pdf_y_to_top_left(pdf_y: float, height: float, page_height: float) -> float:
    """Inverse of top_left_to_pdf_y."""
    return page_height - pdf_y - height
