"""Flask-SocketIO event handlers that feed the session coordinator."""

import functools
import logging

from flask import request

from coviewer import wire
from coviewer.errors import CoViewerError

logger = logging.getLogger(__name__)


def socketio_transport(socketio):
    """broadcast/send_to callables for a SessionCoordinator."""

    def broadcast(event, payload):
        socketio.emit(event, payload)

    def send_to(connection_id, event, payload):
        socketio.emit(event, payload, to=connection_id)

    return broadcast, send_to


def register_handlers(socketio, coordinator):

    def command(event):
        """Turn coordinator errors into a negative ack plus a commandRejected event."""

        def decorator(handler):
            @functools.wraps(handler)
            def wrapper(data=None):
                sid = request.sid
                try:
                    return handler(sid, data)
                except CoViewerError as e:
                    logger.warning("Rejected %s from %s: %s", event, sid, e.message)
                    socketio.emit(wire.COMMAND_REJECTED, wire.rejected_payload(event, e), to=sid)
                    return e.to_payload()

            socketio.on_event(event, wrapper)
            return wrapper

        return decorator

    @socketio.on("connect")
    def on_connect(auth=None):
        logger.debug("Connection opened: %s", request.sid)

    @socketio.on("disconnect")
    def on_disconnect(*args):
        coordinator.disconnect(request.sid)

    @command(wire.LOGIN)
    def on_login(sid, data):
        role = coordinator.login(sid, wire.field(data, "displayName"))
        participant = coordinator.registry.get(sid)
        return wire.ok_payload(role=role.value, displayName=participant.display_name)

    @command(wire.REQUEST_SNAPSHOT)
    def on_request_snapshot(sid, data):
        coordinator.request_snapshot(sid)
        return wire.ok_payload()

    @command(wire.UPLOAD_DOCUMENT)
    def on_upload_document(sid, data):
        snapshot = coordinator.upload_document(sid, wire.field(data, "bytes", b""))
        return wire.ok_payload(revision=snapshot.revision)

    @command(wire.CHANGE_PAGE)
    def on_change_page(sid, data):
        page = coordinator.change_page(sid, wire.field(data, "page"))
        return wire.ok_payload(page=page)
