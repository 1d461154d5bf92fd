# src/parapdf/pdf_processor.py
from __future__ import annotations

import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple, Union

import fitz  # PyMuPDF
from PIL import Image

from .exceptions import DocumentError
from .models import Unit

logger = logging.getLogger("parapdf")

Payload = Union[str, bytes]


# --- Step 1, interface ---
class BasePageSource(ABC):
    """
    Interface for anything that can hand out page content for a document.
    """

    @abstractmethod
    def page_count(self, file_path: Path) -> int:
        """Number of pages, raises DocumentError when the file cannot be opened."""
        raise NotImplementedError

    @abstractmethod
    def page_content(self, file_path: Path, start: int, end: int, mode: str) -> Tuple[Payload, str]:
        """Payload for pages start..end (0-based, inclusive) and its payload type."""
        raise NotImplementedError


# --- Step 2, concrete implementation with PyMuPDF ---
class PyMuPDFPageSource(BasePageSource):
    """Page source that uses PyMuPDF."""

    def __init__(self, dpi: int = 150, max_image_edge: int = 1568):
        self.dpi = dpi
        self.max_image_edge = max_image_edge

    def page_count(self, file_path: Path) -> int:
        file_path = Path(file_path)
        if not file_path.exists():
            raise DocumentError(f"PDF file not found, {file_path}")
        try:
            with fitz.open(file_path) as doc:
                return len(doc)
        except Exception as e:
            raise DocumentError(f"Failed to open {file_path.name}, {e}") from e

    def page_content(self, file_path: Path, start: int, end: int, mode: str) -> Tuple[Payload, str]:
        with fitz.open(file_path) as doc:
            if mode == "text":
                return self._extract_text(doc, start, end), "text"
            if mode == "pdf":
                return self._extract_subdocument(doc, start, end), "pdf"
            if mode == "image":
                return self._render_png(doc, start), "image"
        raise ValueError(f"Unknown payload mode, '{mode}'")

    @staticmethod
    def _extract_text(doc, start: int, end: int) -> str:
        """
        Extract text using layout aware blocks.
        This is usually more reliable for complex PDFs than the plain text mode.
        """
        parts: List[str] = []
        for page_num in range(start, end + 1):
            page = doc.load_page(page_num)
            # sort=True gives reading order
            blocks = page.get_text("blocks", sort=True)
            # b[6] == 0 means text block
            page_text = [b[4] for b in blocks if len(b) > 6 and b[6] == 0]
            if page_text:
                parts.append("\n".join(page_text))
        return "\n".join(parts).strip()

    @staticmethod
    def _extract_subdocument(doc, start: int, end: int) -> bytes:
        with fitz.open() as sub:
            sub.insert_pdf(doc, from_page=start, to_page=end)
            return sub.tobytes(garbage=3, deflate=True)

    def _render_png(self, doc, page_num: int) -> bytes:
        page = doc.load_page(page_num)
        zoom = self.dpi / 72.0
        pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
        with Image.open(io.BytesIO(pix.tobytes("png"))) as im:
            im = im.convert("RGB")
            if max(im.size) > self.max_image_edge:
                im.thumbnail((self.max_image_edge, self.max_image_edge))
            buf = io.BytesIO()
            im.save(buf, format="PNG")
        return buf.getvalue()


# --- Step 3, factory ---
def get_page_source(engine_name: str = "pymupdf", **kwargs) -> BasePageSource:
    """
    Create a page source by name.
    """
    name = (engine_name or "").lower()
    if name == "pymupdf":
        return PyMuPDFPageSource(**kwargs)
    raise ValueError(f"Unknown PDF engine, '{engine_name}'. Supported engines, ['pymupdf']")


# --- Step 4, unit construction ---
def unit_label(index: int, start: int, end: int, chunk_size: int) -> str:
    if chunk_size == 1 or start == end:
        return f"page {start + 1}"
    return f"chunk {index + 1}, pages {start + 1}-{end + 1}"


def build_units(
    source: BasePageSource,
    file_path: Path,
    chunk_size: int = 1,
    mode: str = "pdf",
    max_pages: Optional[int] = None,
) -> Tuple[List[Unit], int]:
    """
    Split a document into ordered units of at most chunk_size contiguous pages.

    Returns the units and the document's total page count. A page range that
    fails to extract still yields a unit, typed "error", so every unit index
    has a result later on.
    """
    total_pages = source.page_count(file_path)
    if total_pages == 0:
        raise DocumentError(f"PDF has zero pages, {file_path}")

    limit = min(total_pages, max_pages) if max_pages else total_pages
    units: List[Unit] = []
    for index, start in enumerate(range(0, limit, chunk_size)):
        end = min(start + chunk_size, limit) - 1
        label = unit_label(index, start, end, chunk_size)
        try:
            payload, payload_type = source.page_content(file_path, start, end, mode)
        except Exception as e:
            logger.warning("Failed to extract %s from %s, %s", label, Path(file_path).name, e)
            payload, payload_type = f"Page extraction failed, {e}", "error"
        units.append(Unit(
            index=index, start_page=start, end_page=end,
            payload=payload, payload_type=payload_type, label=label,
        ))

    logger.info("Built %d unit(s) from %d of %d page(s)", len(units), limit, total_pages)
    return units, total_pages
