"""
Per-participant sync agent.

Keeps a local copy of the session (document bytes and page), follows the
coordinator's broadcasts, and renders the current page in the background.

The socket client may hand broadcasts over on several threads at once, so
they are applied by sequence number rather than by arrival. The snapshot
sets the starting number; anything at or below the last applied number is
dropped and anything ahead of a gap waits until the gap is filled.

Every document the agent receives starts a new render generation. Renders
are tagged with the (generation, page) they were started for and are only
presented if that pair is still current when they finish; anything else is
dropped as a stale render. Decoded documents are closed as soon as they are
replaced.
"""

import logging
import threading
from enum import Enum

from coviewer import wire
from coviewer.errors import (
    CommandTimeout,
    CoViewerError,
    DecodeError,
    InvalidPayload,
    PageOutOfRange,
    RenderError,
    StaleRenderDiscarded,
    from_payload,
)
from coviewer.registry import Role
from coviewer.renderer import PageBuffer

logger = logging.getLogger(__name__)


class AgentState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"  # logged in, snapshot not applied yet
    NO_DOCUMENT = "no_document"
    HAS_DOCUMENT = "has_document"


class ClientSyncAgent:
    def __init__(self, connection, renderer, surface, auto_relogin=True):
        self.connection = connection
        self.renderer = renderer
        self.surface = surface
        self.auto_relogin = auto_relogin

        self._lock = threading.RLock()
        self._snapshot_ready = threading.Event()
        self._decoded = None  # (generation, DecodedDocument)
        self._render_threads = []
        self._login_name = None
        self._logging_in = False

        self.state = AgentState.UNAUTHENTICATED
        self.role = None
        self.display_name = None
        self.render_generation = 0
        self.discarded_renders = 0
        self.participant_count = 0
        self.last_changed_by = None
        self.last_rejection = None
        self._reset_view()

        connection.on("connect", self._on_connect)
        connection.on("disconnect", self._on_disconnect)
        connection.on(wire.SNAPSHOT, self._on_snapshot)
        connection.on(wire.DOCUMENT_BROADCAST, self._on_document_broadcast)
        connection.on(wire.PAGE_BROADCAST, self._on_page_broadcast)
        connection.on(wire.PRESENCE_BROADCAST, self._on_presence_broadcast)
        connection.on(wire.COMMAND_REJECTED, self._on_command_rejected)

    def _reset_view(self):
        self.local_document = None
        self.local_page = None
        self.page_count = None
        self.render_error = None
        self._release_decoded()
        self.last_seq = 0
        self._pending = {}  # seq -> (apply, data)
        self._snapshot_ready.clear()

    def _release_decoded(self):
        decoded, self._decoded = self._decoded, None
        if decoded is not None:
            decoded[1].close()

    # ==========================================================
    # LIFECYCLE
    # ==========================================================
    def login(self, display_name):
        """Log in, then pull a full snapshot. Returns the assigned Role."""
        with self._lock:
            self._logging_in = True
            self._login_name = display_name
        try:
            self.connection.open()
            ack = self._call(wire.LOGIN, {"displayName": display_name})
            with self._lock:
                self.role = Role(ack["role"])
                self.display_name = ack.get("displayName", display_name)
                self.state = AgentState.AUTHENTICATED
                self._snapshot_ready.clear()
            logger.info("Logged in as %s (%s)", self.display_name, self.role.value)
            self._call(wire.REQUEST_SNAPSHOT, {})
            timeout = getattr(self.connection, "timeout", None)
            if not self._snapshot_ready.wait(timeout):
                raise CommandTimeout(f"No snapshot received within {timeout}s")
        finally:
            with self._lock:
                self._logging_in = False
        return self.role

    def close(self):
        with self._lock:
            self._login_name = None
        self.connection.close()
        self._drop_session()

    def _drop_session(self):
        with self._lock:
            self.render_generation += 1
            self.state = AgentState.UNAUTHENTICATED
            self.role = None
            self._reset_view()
            self.surface.clear()

    def _on_connect(self, *args):
        with self._lock:
            resume = (self.auto_relogin and self._login_name is not None
                      and not self._logging_in and self.state is AgentState.UNAUTHENTICATED)
            name = self._login_name
        if resume:
            logger.info("Reconnected; logging in again as %s", name)
            self.connection.start_background_task(self._relogin, name)

    def _relogin(self, name):
        try:
            self.login(name)
        except CoViewerError as e:
            logger.warning("Could not log in again after reconnecting: %s", e.message)

    def _on_disconnect(self, *args):
        logger.info("Disconnected from the session")
        self._drop_session()

    # ==========================================================
    # INBOUND EVENTS
    # ==========================================================
    def _on_snapshot(self, data):
        with self._lock:
            if self.state is AgentState.UNAUTHENTICATED:
                return
            seq = data.get("seq", 0)
            if self._snapshot_ready.is_set() and seq < self.last_seq:
                logger.debug("Ignoring snapshot %d older than applied broadcast %d", seq, self.last_seq)
                return
            self.last_seq = seq
            self._pending = {s: item for s, item in self._pending.items() if s > seq}
            if "count" in data:
                self.participant_count = data["count"]

            document = data.get("bytes")
            if document is None:
                self.render_generation += 1
                self.local_document = None
                self.local_page = None
                self.page_count = None
                self._release_decoded()
                self.state = AgentState.NO_DOCUMENT
                self.surface.clear()
            else:
                self._load_document(wire.decode_document(document), data.get("page", 1))
            self._snapshot_ready.set()
            self._drain()

    def _on_document_broadcast(self, data):
        self._receive(self._apply_document, data)

    def _on_page_broadcast(self, data):
        self._receive(self._apply_page, data)

    def _on_presence_broadcast(self, data):
        self._receive(self._apply_presence, data)

    def _receive(self, apply, data):
        with self._lock:
            if self.state is AgentState.UNAUTHENTICATED and not self._logging_in:
                return
            seq = data.get("seq")
            if seq is None:
                if self._snapshot_ready.is_set():
                    apply(data)
                return
            if seq <= self.last_seq:
                logger.debug("Dropping broadcast %d, already at %d", seq, self.last_seq)
                return
            self._pending[seq] = (apply, data)
            self._drain()

    def _drain(self):
        # callers hold self._lock
        if not self._snapshot_ready.is_set():
            return
        while self.last_seq + 1 in self._pending:
            self.last_seq += 1
            apply, data = self._pending.pop(self.last_seq)
            apply(data)

    def _apply_document(self, data):
        self.last_changed_by = data.get("displayName")
        self._load_document(wire.decode_document(data["bytes"]), 1)

    def _apply_page(self, data):
        if self.state is not AgentState.HAS_DOCUMENT:
            logger.debug("Ignoring page broadcast without a loaded document")
            return
        self.local_page = data["page"]
        self.last_changed_by = data.get("displayName")
        self._start_render(self.render_generation, self.local_page, self.local_document)

    def _apply_presence(self, data):
        self.participant_count = data["count"]

    def _on_command_rejected(self, data):
        with self._lock:
            self.last_rejection = data
        logger.warning("%s rejected: %s", data.get("command"), data.get("message"))

    def _load_document(self, document, page):
        self.render_generation += 1
        self.local_document = document
        self.local_page = page
        self.page_count = None
        self.render_error = None
        self._release_decoded()
        self.state = AgentState.HAS_DOCUMENT
        self._start_render(self.render_generation, page, document)

    # ==========================================================
    # RENDERING
    # ==========================================================
    def _start_render(self, generation, page, document):
        if not document:
            return
        thread = threading.Thread(target=self._render, args=(generation, page, document), daemon=True)
        self._render_threads = [t for t in self._render_threads if t.is_alive()]
        self._render_threads.append(thread)
        thread.start()

    def _render(self, generation, page, document):
        try:
            decoded = self._decoded_for(generation, document)
            buffer = PageBuffer()
            # the authoritative page is kept; only the displayed page is clamped
            self.renderer.render_page(decoded, min(page, decoded.page_count), buffer)
            with self._lock:
                self._check_current(generation, page)
                self.surface.present(buffer)
        except (DecodeError, RenderError) as e:
            with self._lock:
                try:
                    self._check_current(generation, page)
                except StaleRenderDiscarded:
                    self.discarded_renders += 1
                    return
                self.render_error = e
                self.surface.show_error(e)
            logger.warning("Render of page %d failed: %s", page, e.message)
        except StaleRenderDiscarded as e:
            with self._lock:
                self.discarded_renders += 1
            logger.debug("%s", e.message)

    def _decoded_for(self, generation, document):
        with self._lock:
            self._check_generation(generation)
            if self._decoded and self._decoded[0] == generation:
                return self._decoded[1]

        decoded = self.renderer.decode(document)

        with self._lock:
            if generation != self.render_generation or (self._decoded and self._decoded[0] == generation):
                decoded.close()
                self._check_generation(generation)
                return self._decoded[1]
            self._decoded = (generation, decoded)
            self.page_count = decoded.page_count
            return decoded

    def _check_generation(self, generation):
        if generation != self.render_generation:
            raise StaleRenderDiscarded(
                f"Render for generation {generation} superseded by {self.render_generation}")

    def _check_current(self, generation, page):
        self._check_generation(generation)
        if self.state is not AgentState.HAS_DOCUMENT or page != self.local_page:
            raise StaleRenderDiscarded(f"Render of page {page} superseded by page {self.local_page}")

    def wait_for_renders(self, timeout=None):
        """Join outstanding renders. Returns False if any is still running."""
        with self._lock:
            threads = list(self._render_threads)
        for thread in threads:
            thread.join(timeout)
        return not any(t.is_alive() for t in threads)

    # ==========================================================
    # COMMANDS
    # ==========================================================
    def change_page(self, page):
        ack = self._call(wire.CHANGE_PAGE, {"page": page, "displayName": self.display_name})
        return ack.get("page", page)

    def next_page(self):
        with self._lock:
            if self.local_page is None:
                raise PageOutOfRange("No document loaded")
            target = self.local_page + 1
            if self.page_count:
                target = min(target, self.page_count)
        return self.change_page(target)

    def previous_page(self):
        with self._lock:
            if self.local_page is None:
                raise PageOutOfRange("No document loaded")
            target = max(1, self.local_page - 1)
        return self.change_page(target)

    def upload_document(self, document):
        ack = self._call(wire.UPLOAD_DOCUMENT, {"bytes": bytes(document), "displayName": self.display_name})
        return ack.get("revision")

    def upload_file(self, path):
        with open(path, "rb") as f:
            return self.upload_document(f.read())

    def _call(self, event, data):
        ack = self.connection.call(event, data)
        if not isinstance(ack, dict):
            raise InvalidPayload(f"Unexpected answer to {event}: {ack!r}")
        if not ack.get("ok"):
            raise from_payload(ack)
        return ack

    # ==========================================================
    # VIEW
    # ==========================================================
    @property
    def is_authenticated(self):
        return self.state is not AgentState.UNAUTHENTICATED

    @property
    def can_upload(self):
        return self.is_authenticated and self.role is Role.ADMIN

    @property
    def can_navigate(self):
        return self.can_upload and self.state is AgentState.HAS_DOCUMENT

    @property
    def view(self):
        with self._lock:
            return self.local_document, self.local_page
