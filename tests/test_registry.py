"""Tests for the participant registry."""

from __future__ import annotations

from coviewer.registry import ParticipantRegistry, Role


def test_add_and_count() -> None:
    registry = ParticipantRegistry()

    registry.add("sid-1", "admin", Role.ADMIN)
    registry.add("sid-2", "bob", Role.VIEWER)

    assert registry.count() == 2
    assert len(registry) == 2
    assert "sid-1" in registry
    assert registry.names() == ["admin", "bob"]


def test_remove_returns_participant_and_ignores_unknown_ids() -> None:
    registry = ParticipantRegistry()
    registry.add("sid-1", "bob", Role.VIEWER)

    removed = registry.remove("sid-1")

    assert removed.display_name == "bob"
    assert registry.remove("sid-1") is None
    assert registry.count() == 0


def test_admins_lists_only_admin_role_holders() -> None:
    registry = ParticipantRegistry()
    registry.add("sid-1", "admin", Role.ADMIN)
    registry.add("sid-2", "bob", Role.VIEWER)

    assert [p.connection_id for p in registry.admins()] == ["sid-1"]
    assert registry.get("sid-1").is_admin
    assert not registry.get("sid-2").is_admin
