"""
PyMuPDF-backed document renderer and the surfaces rendered pages end up on.

Pages are drawn into an off-screen PageBuffer first; the sync agent decides
whether the buffer is still current before presenting it on a surface.
"""

import logging
import os
import threading

import fitz  # PyMuPDF

from coviewer.errors import DecodeError, RenderError

logger = logging.getLogger(__name__)


class DecodedDocument:
    def __init__(self, doc, lock):
        self.doc = doc
        self.page_count = len(doc)
        self._lock = lock

    @property
    def closed(self):
        return self.doc.is_closed

    def close(self):
        with self._lock:
            if not self.doc.is_closed:
                self.doc.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class DocumentRenderer:
    """decode(bytes) -> DecodedDocument, render_page(decoded, page, target)."""

    def __init__(self, zoom=1.5):
        self.zoom = zoom
        # MuPDF contexts are not safe to share between threads
        self._lock = threading.Lock()

    def decode(self, document):
        if not document:
            raise DecodeError("Document is empty")

        with self._lock:
            try:
                doc = fitz.open(stream=document, filetype="pdf")
            except (RuntimeError, ValueError) as e:
                raise DecodeError(f"Cannot open document: {e}")

            if len(doc) == 0:
                doc.close()
                raise DecodeError("Document has no pages")

        return DecodedDocument(doc, self._lock)

    def render_page(self, decoded, page_number, target):
        if not 1 <= page_number <= decoded.page_count:
            raise RenderError(f"Page {page_number} is outside 1..{decoded.page_count}")

        with self._lock:
            if decoded.closed:
                raise RenderError(f"Cannot render page {page_number}: document was released")
            try:
                pdf_page = decoded.doc.load_page(page_number - 1)
                zoom_matrix = fitz.Matrix(self.zoom, self.zoom)
                pix = pdf_page.get_pixmap(matrix=zoom_matrix)
                image = pix.tobytes("png")
            except (RuntimeError, ValueError) as e:
                raise RenderError(f"Cannot render page {page_number}: {e}")

        target.draw(image, page_number, pix.width, pix.height)


class PageBuffer:
    """Off-screen render target."""

    def __init__(self):
        self.image = None
        self.page_number = None
        self.width = 0
        self.height = 0

    def draw(self, image, page_number, width, height):
        self.image = image
        self.page_number = page_number
        self.width = width
        self.height = height


class MemorySurface:
    """Keeps whatever was presented last; handy for tests and headless viewers."""

    def __init__(self):
        self.buffer = None
        self.error = None
        self.presented = []

    def present(self, buffer):
        self.buffer = buffer
        self.error = None
        self.presented.append(buffer.page_number)

    def show_error(self, error):
        self.error = error

    def clear(self):
        self.buffer = None
        self.error = None

    @property
    def page_number(self):
        return self.buffer.page_number if self.buffer else None


class FileSurface:
    """Writes the presented page to a PNG file, replacing it atomically."""

    def __init__(self, path):
        self.path = path
        self.error = None

    def present(self, buffer):
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "wb") as f:
            f.write(buffer.image)
        os.replace(tmp_path, self.path)
        self.error = None

    def show_error(self, error):
        self.error = error
        logger.warning("Cannot display document: %s", error)

    def clear(self):
        self.error = None
        if os.path.exists(self.path):
            os.remove(self.path)
