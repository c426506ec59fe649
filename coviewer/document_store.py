import threading
from collections import namedtuple

from coviewer.errors import PageOutOfRange

DocumentSnapshot = namedtuple("DocumentSnapshot", "document page revision uploaded_by")


class DocumentStore:
    """
    The one document of the session and the page everybody is looking at.

    The page count is deliberately unknown here: only renderers understand
    the document format, so any page >= 1 is accepted.
    """

    def __init__(self):
        self.document = None
        self.current_page = 1
        self.revision = 0
        self.uploaded_by = None
        self.lock = threading.Lock()

    def replace_document(self, document, uploaded_by=None):
        with self.lock:
            self.document = bytes(document)
            self.current_page = 1
            self.revision += 1
            self.uploaded_by = uploaded_by

    def set_page(self, new_page):
        # bool is an int subclass; True is not page 1
        if isinstance(new_page, bool) or not isinstance(new_page, int):
            raise PageOutOfRange(f"Page must be an integer, got {new_page!r}")
        if new_page < 1:
            raise PageOutOfRange(f"Page must be >= 1, got {new_page}")
        with self.lock:
            if self.document is None:
                raise PageOutOfRange("No document loaded")
            self.current_page = new_page

    def get_page(self):
        with self.lock:
            return self.current_page

    @property
    def has_document(self):
        with self.lock:
            return self.document is not None

    def snapshot(self):
        with self.lock:
            return DocumentSnapshot(self.document, self.current_page, self.revision, self.uploaded_by)
