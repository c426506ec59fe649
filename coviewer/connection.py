"""
Client side of the co-viewer socket.

A Connection is built explicitly and handed to a ClientSyncAgent; nothing is
connected until open() is called.
"""

import logging

import socketio

from coviewer.errors import CommandTimeout, NotConnected

logger = logging.getLogger(__name__)


class Connection:
    def __init__(self, url, timeout=10.0, reconnection=True, client=None):
        self.url = url
        self.timeout = timeout
        self.client = client or socketio.Client(reconnection=reconnection)

    @property
    def connected(self):
        return self.client.connected

    def open(self):
        if self.client.connected:
            return
        logger.info("Connecting to %s", self.url)
        try:
            self.client.connect(self.url, wait_timeout=self.timeout)
        except socketio.exceptions.ConnectionError as e:
            raise NotConnected(f"Cannot reach {self.url}: {e}")

    def close(self):
        if self.client.connected:
            self.client.disconnect()

    def on(self, event, handler):
        """Set the handler for an event, replacing any earlier one.

        socketio.Client keeps a single handler per event, and with its default
        async_handlers each incoming event runs on its own thread.
        """
        self.client.on(event, handler)

    def call(self, event, data=None, timeout=None):
        """Send an event and block until the server acknowledges it."""
        try:
            return self.client.call(event, data if data is not None else {},
                                    timeout=timeout or self.timeout)
        except socketio.exceptions.TimeoutError:
            raise CommandTimeout(f"No answer to {event} within {timeout or self.timeout}s")
        except socketio.exceptions.BadNamespaceError:
            raise NotConnected(f"Cannot send {event}: not connected")

    def start_background_task(self, target, *args, **kwargs):
        return self.client.start_background_task(target, *args, **kwargs)
