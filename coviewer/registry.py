import threading
from enum import Enum


class Role(Enum):
    ADMIN = "admin"
    VIEWER = "viewer"


class Participant:
    def __init__(self, connection_id, display_name, role):
        self.connection_id = connection_id
        self.display_name = display_name
        self.role = role

    @property
    def is_admin(self):
        return self.role is Role.ADMIN

    def __repr__(self):
        return f"Participant({self.connection_id!r}, {self.display_name!r}, {self.role.value})"


class ParticipantRegistry:
    """Connected participants keyed by connection id. len() is the live count."""

    def __init__(self):
        self._participants = {}
        self.lock = threading.Lock()

    def add(self, connection_id, display_name, role):
        participant = Participant(connection_id, display_name, role)
        with self.lock:
            self._participants[connection_id] = participant
        return participant

    def remove(self, connection_id):
        with self.lock:
            return self._participants.pop(connection_id, None)

    def get(self, connection_id):
        with self.lock:
            return self._participants.get(connection_id)

    def count(self):
        with self.lock:
            return len(self._participants)

    def admins(self):
        with self.lock:
            return [p for p in self._participants.values() if p.is_admin]

    def names(self):
        with self.lock:
            return sorted(p.display_name for p in self._participants.values())

    def __len__(self):
        return self.count()

    def __contains__(self, connection_id):
        with self.lock:
            return connection_id in self._participants
