"""Tests for CLI parsing and dispatch."""

from __future__ import annotations

import builtins
import json
from pathlib import Path
import sys
import threading
from types import SimpleNamespace

import pytest

from transcript_viewer import cli
from transcript_viewer.config import AppConfig


@pytest.fixture
def quiet_cli(monkeypatch):
    monkeypatch.setattr(cli, "init_logging", lambda: Path("app.log"))
    monkeypatch.setattr(cli, "_install_excepthooks", lambda: None)
    monkeypatch.setattr(cli, "load_config", lambda: AppConfig())


@pytest.fixture
def chat_file(tmp_path: Path) -> Path:
    path = tmp_path / "chat.json"
    path.write_text(
        json.dumps(
            {
                "id": "c1",
                "title": "Music",
                "messages": [
                    {"role": "user", "content": "play something"},
                    {
                        "role": "assistant",
                        "content": "<music>Name: A\nURL: https://a/a.mp3</music>",
                    },
                ],
            }
        ),
        encoding="utf-8",
    )
    return path


def test_parse_path_argument() -> None:
    args = cli.build_parser().parse_args(["chat.json"])
    assert args.path == "chat.json"
    assert args.dump_segments is False


def test_parse_dump_segments() -> None:
    args = cli.build_parser().parse_args(["chat.json", "--dump-segments"])
    assert args.dump_segments is True


def test_main_runs_tui(monkeypatch, quiet_cli, chat_file: Path) -> None:
    calls: list[tuple[object, Path]] = []

    def fake_run(conversation, path):
        calls.append((conversation, path))
        return 0

    monkeypatch.setattr(cli, "_run_tui", fake_run)
    assert cli.main([str(chat_file)]) == 0
    conversation, path = calls[0]
    assert conversation.title == "Music"
    assert path == chat_file


def test_main_falls_back_to_last_conversation(
    monkeypatch, quiet_cli, chat_file: Path
) -> None:
    monkeypatch.setattr(
        cli, "load_config", lambda: AppConfig(last_conversation_path=str(chat_file))
    )
    seen: list[Path] = []
    monkeypatch.setattr(
        cli, "_run_tui", lambda conversation, path: seen.append(path) or 0
    )
    assert cli.main([]) == 0
    assert seen == [chat_file]


def test_main_without_path_fails(quiet_cli, capsys) -> None:
    assert cli.main([]) == 1
    assert "No conversation file given" in capsys.readouterr().err


def test_main_reports_load_errors(quiet_cli, tmp_path: Path, capsys) -> None:
    missing = tmp_path / "missing.json"
    assert cli.main([str(missing)]) == 1
    assert "missing.json" in capsys.readouterr().err


def test_dump_segments_prints_json(quiet_cli, chat_file: Path, capsys) -> None:
    assert cli.main([str(chat_file), "--dump-segments"]) == 0
    data = json.loads(capsys.readouterr().out)
    segments = data["messages"][1]["segments"]
    assert segments[0]["kind"] == "playlist"
    assert json.loads(segments[0]["tracks"])[0]["name"] == "A"
    assert "segments" not in data["messages"][0]


def test_run_tui_handles_missing_textual(monkeypatch, capsys) -> None:
    original_import = builtins.__import__

    def fake_import(name, *args, **kwargs):
        if name == "transcript_viewer.tui":
            raise RuntimeError("Textual is required")
        return original_import(name, *args, **kwargs)

    monkeypatch.setattr(builtins, "__import__", fake_import)
    result = cli._run_tui(SimpleNamespace(), Path("chat.json"))  # type: ignore[arg-type]
    assert result == 1
    assert "Textual is required" in capsys.readouterr().err


def test_excepthooks_log_uncaught_errors(monkeypatch, caplog) -> None:
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    cli._install_excepthooks()
    fake_args = SimpleNamespace(
        exc_type=RuntimeError,
        exc_value=RuntimeError("boom"),
        exc_traceback=None,
        thread=SimpleNamespace(name="worker"),
    )
    threading.excepthook(fake_args)
    sys.excepthook(ValueError, ValueError("bad"), None)
    assert "Thread exception in worker" in caplog.text
    assert "Uncaught exception" in caplog.text
