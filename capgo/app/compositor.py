"""Fit a stamp image into its box and rasterise it for placement.

The image is fitted with object-fit: contain semantics, then resampled at
``quality_factor`` times its final point size so the backend can place it at
``1 / quality_factor`` scale.  The result stays sharp when a PDF viewer zooms
in.
"""
from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from app.errors import FileSystemError, ImageDecodeError
from app.stamp import Stamp
from app.utils import make_uid, top_left_to_pdf_y

logger = logging.getLogger(__name__)

_SUPPORTED_FORMATS = ("PNG", "JPEG")


@dataclass(frozen=True)
class PlacementBox:
    final_width: float
    final_height: float
    offset_x: float
    offset_y: float


@dataclass(frozen=True)
class Placement:
    """Where the backend puts the image: bottom-left origin, PDF points."""
    x: float
    y: float
    scale: float
    page: int                     # 1-indexed


@dataclass(frozen=True)
class PreparedStamp:
    image_path: str
    pixel_size: tuple[int, int]
    box: PlacementBox
    placement: Placement


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def is_data_url(source: str) -> bool:
    return ";base64," in source


def load_image(source: str) -> Image.Image:
    """Decode a PNG/JPEG from a ``data:`` URL or a file path."""
    if is_data_url(source):
        _, _, payload = source.partition(",")
        try:
            raw = base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ImageDecodeError(f"invalid base64 image data: {exc}") from exc
        fp = io.BytesIO(raw)
        label = "inline image"
    else:
        path = Path(source).expanduser()
        try:
            fp = io.BytesIO(path.read_bytes())
        except OSError as exc:
            raise ImageDecodeError(f"cannot read image file: {exc}", str(path)) from exc
        label = str(path)

    try:
        img = Image.open(fp, formats=_SUPPORTED_FORMATS)
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError,
            OSError, SyntaxError, ValueError) as exc:
        raise ImageDecodeError(f"unsupported or corrupt image: {exc}", label) from exc

    if img.width <= 0 or img.height <= 0:
        raise ImageDecodeError("image has no pixels", label)
    return img


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def fit_contain(box_width: float, box_height: float,
                img_width: float, img_height: float) -> PlacementBox:
    """Largest box with the image's aspect ratio that fits inside the target,
    centred along the axis that has slack.
    """
    target_ratio = box_width / box_height
    img_ratio = img_width / img_height

    if img_ratio > target_ratio:
        # Relatively wider: width fills the box.
        final_w = box_width
        final_h = box_width / img_ratio
        return PlacementBox(final_w, final_h, 0.0, (box_height - final_h) / 2)

    final_h = box_height
    final_w = box_height * img_ratio
    return PlacementBox(final_w, final_h, (box_width - final_w) / 2, 0.0)


def compute_placement(stamp: Stamp, box: PlacementBox, page_height: float,
                      quality_factor: float = 4.0) -> Placement:
    return Placement(
        x=stamp.x + box.offset_x,
        y=top_left_to_pdf_y(stamp.y + box.offset_y, box.final_height, page_height),
        scale=1.0 / quality_factor,
        page=stamp.page_num,
    )


def supersampled_size(box: PlacementBox, quality_factor: float) -> tuple[int, int]:
    return (max(1, round(box.final_width * quality_factor)),
            max(1, round(box.final_height * quality_factor)))


def supersample(img: Image.Image, box: PlacementBox,
                quality_factor: float = 4.0) -> Image.Image:
    if img.mode not in ("RGB", "RGBA", "L", "LA"):
        img = img.convert("RGBA")
    return img.resize(supersampled_size(box, quality_factor),
                      Image.Resampling.LANCZOS)


# ---------------------------------------------------------------------------
# Entry point used by the pipeline
# ---------------------------------------------------------------------------

def prepare_stamp(stamp: Stamp, page_height: float, workdir: str,
                  quality_factor: float = 4.0) -> PreparedStamp:
    """Decode, fit and supersample *stamp*, writing a PNG into *workdir*.

    *workdir* is owned by the caller, which is responsible for removing it.
    """
    img = load_image(stamp.image)
    box = fit_contain(stamp.width, stamp.height, img.width, img.height)
    resized = supersample(img, box, quality_factor)

    out = Path(workdir) / f"stamp_{make_uid()}.png"
    try:
        resized.save(out, format="PNG")
    except OSError as exc:
        raise FileSystemError(f"cannot write temporary stamp image: {exc}", str(out)) from exc

    placement = compute_placement(stamp, box, page_height, quality_factor)
    logger.debug("prepared stamp %s: %dx%d px at (%.2f, %.2f) page %d",
                 stamp.uid, resized.width, resized.height,
                 placement.x, placement.y, placement.page)
    return PreparedStamp(str(out), (resized.width, resized.height), box, placement)
