"""
Event names and payload shapes of the co-viewer protocol.

Document bytes travel as Socket.IO binary attachments. Clients that cannot
send binary frames may send base64 text or a list of byte values instead;
all three decode to the same bytes.
"""

import base64
import binascii

from coviewer.errors import InvalidPayload, PageOutOfRange

# client -> server
LOGIN = "login"
REQUEST_SNAPSHOT = "requestSnapshot"
UPLOAD_DOCUMENT = "uploadDocument"
CHANGE_PAGE = "changePage"

# server -> client
SNAPSHOT = "snapshot"
DOCUMENT_BROADCAST = "documentBroadcast"
PAGE_BROADCAST = "pageBroadcast"
PRESENCE_BROADCAST = "presenceBroadcast"
COMMAND_REJECTED = "commandRejected"


def decode_document(value):
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)

    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidPayload("Document text is not valid base64")

    if isinstance(value, (list, tuple)):
        try:
            return bytes(value)
        except (TypeError, ValueError):
            raise InvalidPayload("Document byte list must hold integers 0-255")

    raise InvalidPayload(f"Unsupported document encoding: {type(value).__name__}")


def parse_page(value):
    if isinstance(value, bool):
        raise PageOutOfRange(f"Page must be an integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise PageOutOfRange(f"Page must be an integer, got {value!r}")
    if not isinstance(value, int):
        raise PageOutOfRange(f"Page must be an integer, got {value!r}")
    if value < 1:
        raise PageOutOfRange(f"Page must be >= 1, got {value}")
    return value


def field(data, name, default=None):
    """Read one field of an inbound payload, tolerating a missing payload."""
    if data is None:
        return default
    if not isinstance(data, dict):
        raise InvalidPayload(f"Expected an object payload, got {type(data).__name__}")
    return data.get(name, default)


# ==========================================================
# OUTBOUND PAYLOADS
# ==========================================================
def snapshot_payload(snapshot, count, seq):
    return {
        "bytes": snapshot.document,
        "page": snapshot.page,
        "revision": snapshot.revision,
        "count": count,
        "seq": seq,
    }


def document_payload(snapshot):
    return {
        "bytes": snapshot.document,
        "page": snapshot.page,
        "displayName": snapshot.uploaded_by,
        "revision": snapshot.revision,
    }


def page_payload(page, display_name):
    return {"page": page, "displayName": display_name}


def presence_payload(count):
    return {"count": count}


def rejected_payload(command, error):
    return {"command": command, "error": error.code, "message": error.message}


def ok_payload(**extra):
    payload = {"ok": True}
    payload.update(extra)
    return payload
