"""Shared pytest fixtures for co-viewer tests."""

from __future__ import annotations

import threading
from collections import deque

import fitz
import pytest

from app import create_app
from coviewer.errors import DecodeError, NotConnected
from coviewer.renderer import MemorySurface
from coviewer.sync_agent import ClientSyncAgent


def make_pdf(pages: int, label: str = "Page") -> bytes:
    """Build a small PDF with one line of text per page."""
    doc = fitz.open()
    for number in range(1, pages + 1):
        page = doc.new_page()
        page.insert_text((72, 72), f"{label} {number}")
    data = doc.tobytes()
    doc.close()
    return data


def events(client, name: str) -> list:
    """First argument of every queued event called ``name`` (drains the queue)."""
    return [m["args"][0] for m in client.get_received() if m["name"] == name]


class LoopbackConnection:
    """Connection stand-in driven by Flask-SocketIO's test client.

    Server events queue up until pump() delivers them, which lets tests decide
    exactly when each participant sees its broadcasts. Like socketio.Client,
    it keeps one handler per event.
    """

    timeout = 5

    def __init__(self, app) -> None:
        self.app = app
        self.socketio = app.extensions["socketio"]
        self.client = None
        self.handlers: dict = {}
        self.pending: deque = deque()

    @property
    def connected(self) -> bool:
        return self.client is not None and self.client.is_connected()

    @property
    def sid(self) -> str | None:
        if not self.connected:
            return None
        return self.socketio.server.manager.sid_from_eio_sid(self.client.eio_sid, "/")

    def open(self) -> None:
        if self.connected:
            return
        self.client = self.socketio.test_client(self.app)
        self._fire("connect")

    def close(self) -> None:
        if self.connected:
            self.client.disconnect()
            self.pending.clear()
            self._fire("disconnect")

    def on(self, event, handler) -> None:
        self.handlers[event] = handler

    def call(self, event, data=None, timeout=None):
        if not self.connected:
            raise NotConnected(f"Cannot send {event}: not connected")
        ack = self.client.emit(event, data if data is not None else {}, callback=True)
        self.pump()
        return ack

    def start_background_task(self, target, *args, **kwargs):
        target(*args, **kwargs)

    def pump(self) -> None:
        """Deliver queued server events to the handlers, in arrival order."""
        if not self.connected:
            return
        self.pending.extend(self.client.get_received())
        while self.pending:
            message = self.pending.popleft()
            self._fire(message["name"], *message["args"])
            if self.connected:
                self.pending.extend(self.client.get_received())

    def _fire(self, event, *args) -> None:
        handler = self.handlers.get(event)
        if handler is not None:
            handler(*args)


class FakeDecoded:
    def __init__(self, document: bytes, page_count: int, renderer: FakeRenderer) -> None:
        self.document = document
        self.page_count = page_count
        self.closed = False
        self._renderer = renderer

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._renderer.closed.append(self.document)


class FakeRenderer:
    """Renderer double: documents starting with BROKEN fail to decode.

    hold(document) returns an Event that render_page waits on for that document.
    """

    def __init__(self, page_count: int = 5) -> None:
        self.page_count = page_count
        self.page_counts: dict[bytes, int] = {}
        self.gates: dict[bytes, threading.Event] = {}
        self.rendered: list[tuple[bytes, int]] = []
        self.decoded: list[FakeDecoded] = []
        self.closed: list[bytes] = []

    def hold(self, document: bytes) -> threading.Event:
        gate = threading.Event()
        self.gates[document] = gate
        return gate

    def decode(self, document: bytes) -> FakeDecoded:
        if document.startswith(b"BROKEN"):
            raise DecodeError("not a PDF")
        decoded = FakeDecoded(document, self.page_counts.get(document, self.page_count), self)
        self.decoded.append(decoded)
        return decoded

    def render_page(self, decoded: FakeDecoded, page_number: int, target) -> None:
        gate = self.gates.get(decoded.document)
        if gate is not None:
            gate.wait(5)
        self.rendered.append((decoded.document, page_number))
        target.draw(decoded.document, page_number, 100, 100)


@pytest.fixture
def app():
    return create_app({"TESTING": True})


@pytest.fixture
def socketio(app):
    return app.extensions["socketio"]


@pytest.fixture
def coordinator(app):
    return app.extensions["coviewer"]


@pytest.fixture
def make_agent(app):
    """Factory: make_agent("bob") -> logged-in ClientSyncAgent on a loopback connection."""
    agents = []

    def factory(name=None, renderer=None, surface=None, **kwargs):
        agent = ClientSyncAgent(
            LoopbackConnection(app),
            renderer or FakeRenderer(),
            surface or MemorySurface(),
            **kwargs,
        )
        if name is not None:
            agent.login(name)
            agent.wait_for_renders(5)
        agents.append(agent)
        return agent

    yield factory

    for agent in agents:
        for gate in getattr(agent.renderer, "gates", {}).values():
            gate.set()
        agent.wait_for_renders(5)


def deliver(*agents) -> None:
    """Deliver pending broadcasts to each agent and let its renders settle."""
    for agent in agents:
        agent.connection.pump()
        agent.wait_for_renders(5)
