"""Tests for the keyboard console."""

from __future__ import annotations

import pytest

from coviewer.console import AdminConsole, main


@pytest.fixture
def admin_console(make_agent):
    agent = make_agent("admin")
    agent.upload_document(b"D1")
    agent.wait_for_renders(5)
    return AdminConsole(agent)


@pytest.mark.parametrize(
    "commands,expected",
    [
        (["3"], 3),
        (["page 4"], 4),
        (["go to page 2"], 2),
        (["l"], 5),
        (["l", "first"], 1),
        (["n", "n"], 3),
        (["4", "back"], 3),
    ],
)
def test_navigation_commands(admin_console, commands, expected) -> None:
    for command in commands:
        admin_console.process_command(command)

    assert admin_console.agent.local_page == expected


def test_viewer_is_told_to_wait_for_admin(make_agent, capsys) -> None:
    make_agent("admin").upload_document(b"D1")
    console = AdminConsole(make_agent("bob"))

    console.process_command("next")

    assert "Only the admin" in capsys.readouterr().out
    assert console.agent.local_page == 1


def test_server_rejection_is_printed(admin_console, capsys) -> None:
    admin_console.process_command("page 0")

    assert "PageOutOfRange" in capsys.readouterr().out
    assert admin_console.agent.local_page == 1


def test_open_uploads_file(make_agent, tmp_path, capsys) -> None:
    path = tmp_path / "deck.pdf"
    path.write_bytes(b"D-deck")
    console = AdminConsole(make_agent("admin"))

    console.process_command(f"open {path}")

    assert console.agent.local_document == b"D-deck"
    assert "revision 1" in capsys.readouterr().out


def test_open_missing_file(admin_console, tmp_path, capsys) -> None:
    admin_console.process_command(f"open {tmp_path / 'missing.pdf'}")

    assert "Cannot read" in capsys.readouterr().out


def test_status_and_unknown_commands(admin_console, capsys) -> None:
    admin_console.process_command("status")
    admin_console.process_command("dance")

    out = capsys.readouterr().out
    assert "admin (admin), 1 connected" in out
    assert "Page 1 of 5" in out
    assert "Unknown command" in out


def test_run_stops_on_quit(admin_console, monkeypatch) -> None:
    commands = iter(["2", "quit"])
    monkeypatch.setattr("builtins.input", lambda: next(commands))

    admin_console.run()

    assert not admin_console.is_running
    assert admin_console.agent.local_page == 2


def test_main_requires_name() -> None:
    with pytest.raises(SystemExit):
        main([])
