"""
Page rasterization utilities for the remote print worker.

- Open PDF documents with PyMuPDF
- Rasterize a single page into a Pillow image at a fixed resolution
- Scale a page image to fit a printable area without distortion and compose
  it onto a white sheet, anchored at the top-left corner
"""

from __future__ import annotations

import logging
import os
from typing import Tuple, Union

import fitz  # PyMuPDF
from PIL import Image

from remote_print.core.errors import RenderError

logger = logging.getLogger(__name__)

# Vector PDFs keep their print fidelity at this resolution
DEFAULT_DPI = 600


def open_document(source: Union[str, os.PathLike, bytes]) -> "fitz.Document":
    """
    Open a PDF from a path or from raw bytes.

    Raises:
        RenderError if the document is missing, corrupt or not a PDF.
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            doc = fitz.open(stream=bytes(source), filetype="pdf")
        else:
            doc = fitz.open(os.fspath(source), filetype="pdf")
    except Exception as e:
        raise RenderError(f"Cannot open document: {e}") from e
    if doc.needs_pass:
        doc.close()
        raise RenderError("Document is password protected")
    if doc.page_count < 1:
        doc.close()
        raise RenderError("Document has no pages")
    return doc


def rasterize_page(doc: "fitz.Document", index: int, dpi: int = DEFAULT_DPI, grayscale: bool = False) -> Image.Image:
    """
    Render the zero-based page `index` to an RGB (or L when grayscale) image.
    Annotations are rendered, matching what a viewer prints.
    """
    try:
        page = doc.load_page(index)
        colorspace = fitz.csGRAY if grayscale else fitz.csRGB
        pix = page.get_pixmap(dpi=dpi, colorspace=colorspace, alpha=False, annots=True)
        mode = "L" if grayscale else "RGB"
        img = Image.frombytes(mode, (pix.width, pix.height), pix.samples)
        del pix
        return img
    except Exception as e:
        raise RenderError(f"Cannot render page {index + 1}: {e}") from e


def scale_to_fit(image_size: Tuple[int, int], printable_size: Tuple[int, int]) -> Tuple[float, Tuple[int, int]]:
    """
    Uniform scale factor that fits `image_size` inside `printable_size`, and the
    resulting destination size. Destination dimensions are truncated so they never
    exceed the printable area.
    """
    iw, ih = image_size
    pw, ph = printable_size
    if iw <= 0 or ih <= 0:
        raise RenderError(f"Page image has no area: {iw}x{ih}")
    scale = min(pw / float(iw), ph / float(ih))
    dest = (min(pw, int(iw * scale)), min(ph, int(ih * scale)))
    return scale, dest


def compose_sheet(page: Image.Image, printable_size: Tuple[int, int]) -> Image.Image:
    """
    Draw `page` scaled to fit onto a white sheet of `printable_size`, anchored at (0, 0).
    """
    _, (dw, dh) = scale_to_fit(page.size, printable_size)
    sheet = Image.new(page.mode, printable_size, 255 if page.mode == "L" else (255, 255, 255))
    if dw > 0 and dh > 0:
        scaled = page.resize((dw, dh), Image.LANCZOS)
        sheet.paste(scaled, (0, 0))
        scaled.close()
    return sheet


__all__ = ["DEFAULT_DPI", "compose_sheet", "open_document", "rasterize_page", "scale_to_fit"]
