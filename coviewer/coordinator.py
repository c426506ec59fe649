"""
Authoritative owner of the shared session.

The coordinator knows nothing about sockets: it is handed two callables,
``broadcast(event, payload)`` and ``send_to(connection_id, event, payload)``,
and every command runs under one lock that is held across both the state
change and the resulting emit. Broadcast order therefore equals apply order.

Every broadcast carries a sequence number, and a snapshot carries the number
of the last broadcast it already contains, so a client can put events back in
order even when its transport hands them over concurrently.
"""

import logging
import threading

from coviewer import wire
from coviewer.config import ADMIN_POLICIES
from coviewer.document_store import DocumentStore
from coviewer.errors import InvalidPayload, NotAuthorized
from coviewer.registry import ParticipantRegistry, Role

logger = logging.getLogger(__name__)


class SessionCoordinator:
    def __init__(self, broadcast, send_to, admin_name="admin", admin_policy="shared",
                 max_document_bytes=None, store=None, registry=None):
        if admin_policy not in ADMIN_POLICIES:
            raise ValueError(f"Unknown admin policy {admin_policy!r}, expected one of {ADMIN_POLICIES}")

        self.broadcast = broadcast
        self.send_to = send_to
        self.admin_name = admin_name.strip().casefold()
        self.admin_policy = admin_policy
        self.max_document_bytes = max_document_bytes
        self.store = store if store is not None else DocumentStore()
        self.registry = registry if registry is not None else ParticipantRegistry()
        self.seq = 0
        self._lock = threading.RLock()

    # ==========================================================
    # ROLES
    # ==========================================================
    def claims_admin(self, display_name):
        return display_name.strip().casefold() == self.admin_name

    def _assign_role(self, connection_id, display_name):
        if not self.claims_admin(display_name):
            return Role.VIEWER
        if self.admin_policy == "lease":
            holders = [p for p in self.registry.admins() if p.connection_id != connection_id]
            if holders:
                logger.info("Admin lease held by %s; %s joins as viewer",
                            holders[0].connection_id, connection_id)
                return Role.VIEWER
        return Role.ADMIN

    def _require_admin(self, connection_id):
        participant = self.registry.get(connection_id)
        if participant is None:
            raise NotAuthorized("Log in before sending commands")
        if not participant.is_admin:
            raise NotAuthorized(f"{participant.display_name} is not the admin")
        return participant

    # ==========================================================
    # COMMANDS
    # ==========================================================
    def login(self, connection_id, display_name):
        display_name = str(display_name or "").strip() or f"User-{str(connection_id)[:6]}"
        with self._lock:
            # a re-login replaces the old record and gives up any admin lease
            self.registry.remove(connection_id)
            role = self._assign_role(connection_id, display_name)
            self.registry.add(connection_id, display_name, role)
            logger.info("%s logged in as %s (%s)", connection_id, display_name, role.value)
            self._broadcast_presence()
        return role

    def request_snapshot(self, connection_id):
        with self._lock:
            snapshot = self.store.snapshot()
            payload = wire.snapshot_payload(snapshot, self.registry.count(), self.seq)
            self.send_to(connection_id, wire.SNAPSHOT, payload)
        return snapshot

    def upload_document(self, connection_id, document):
        with self._lock:
            participant = self._require_admin(connection_id)
            document = wire.decode_document(document)
            if not document:
                raise InvalidPayload("Document is empty")
            if self.max_document_bytes and len(document) > self.max_document_bytes:
                raise InvalidPayload(
                    f"Document is {len(document)} bytes, limit is {self.max_document_bytes}")

            self.store.replace_document(document, uploaded_by=participant.display_name)
            snapshot = self.store.snapshot()
            logger.info("%s uploaded a %d byte document (revision %d)",
                        participant.display_name, len(document), snapshot.revision)
            self._broadcast(wire.DOCUMENT_BROADCAST, wire.document_payload(snapshot))
        return snapshot

    def change_page(self, connection_id, page):
        with self._lock:
            participant = self._require_admin(connection_id)
            page = wire.parse_page(page)
            self.store.set_page(page)
            logger.info("%s moved everyone to page %d", participant.display_name, page)
            self._broadcast(wire.PAGE_BROADCAST, wire.page_payload(page, participant.display_name))
        return page

    def disconnect(self, connection_id):
        with self._lock:
            participant = self.registry.remove(connection_id)
            if participant is not None:
                logger.info("%s (%s) disconnected", participant.display_name, connection_id)
            self._broadcast_presence()
        return participant

    def _broadcast(self, event, payload):
        # callers hold self._lock
        self.seq += 1
        payload["seq"] = self.seq
        self.broadcast(event, payload)

    def _broadcast_presence(self):
        self._broadcast(wire.PRESENCE_BROADCAST, wire.presence_payload(self.registry.count()))

    # ==========================================================
    # READ-ONLY VIEWS
    # ==========================================================
    def role_of(self, connection_id):
        participant = self.registry.get(connection_id)
        return participant.role if participant else None

    def status(self):
        snapshot = self.store.snapshot()
        return {
            "has_document": snapshot.document is not None,
            "current_page": snapshot.page,
            "revision": snapshot.revision,
            "uploaded_by": snapshot.uploaded_by,
            "document_bytes": len(snapshot.document) if snapshot.document else 0,
            "participants": self.registry.count(),
        }
