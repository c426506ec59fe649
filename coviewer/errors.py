"""Errors shared by the coordinator, the wire codec and the client agent."""


class CoViewerError(Exception):
    code = "CoViewerError"

    def __init__(self, message=None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_payload(self):
        return {"ok": False, "error": self.code, "message": self.message}


class NotAuthorized(CoViewerError):
    """A non-admin participant attempted a privileged command."""

    code = "NotAuthorized"


class PageOutOfRange(CoViewerError):
    """Requested page is below 1 (or not a page number at all)."""

    code = "PageOutOfRange"


class InvalidPayload(CoViewerError):
    """Inbound event data could not be understood."""

    code = "InvalidPayload"


class DecodeError(CoViewerError):
    code = "DecodeError"


class RenderError(CoViewerError):
    code = "RenderError"


class StaleRenderDiscarded(CoViewerError):
    """A render finished after the document or page it was started for was replaced."""

    code = "StaleRenderDiscarded"


class CommandTimeout(CoViewerError):
    code = "CommandTimeout"


class NotConnected(CoViewerError):
    code = "NotConnected"


_BY_CODE = {
    cls.code: cls
    for cls in (NotAuthorized, PageOutOfRange, InvalidPayload, DecodeError,
                RenderError, StaleRenderDiscarded, CommandTimeout, NotConnected)
}


def from_payload(payload):
    """Rebuild the exception carried by a negative acknowledgement."""
    cls = _BY_CODE.get(payload.get("error"), CoViewerError)
    return cls(payload.get("message"))
