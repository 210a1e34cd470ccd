"""Tests for config persistence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from transcript_viewer import config


def test_config_round_trip(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    cfg = config.AppConfig(
        last_conversation_path="chat.json",
        volume=55,
        preview_width=60,
        player_width=30,
        compact_width=90,
        relaxed_sandbox=True,
        export_dir="~/exports",
    )
    config.save_config(cfg)
    assert config.load_config() == cfg
    assert not (tmp_path / "config.tmp").exists()


def test_load_config_defaults_when_missing(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    assert config.load_config() == config.AppConfig()


def test_load_config_defaults_on_invalid_json(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    (tmp_path / "config.json").write_text("{broken", encoding="utf-8")
    assert config.load_config() == config.AppConfig()
    (tmp_path / "config.json").write_text("[1, 2]", encoding="utf-8")
    assert config.load_config() == config.AppConfig()


def test_load_config_sanitizes_values(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    (tmp_path / "config.json").write_text(
        json.dumps(
            {
                "last_conversation_path": 12,
                "volume": 400,
                "preview_width": 5,
                "player_width": 99,
                "compact_width": -3,
                "relaxed_sandbox": "yes",
                "export_dir": "",
            }
        ),
        encoding="utf-8",
    )
    cfg = config.load_config()
    assert cfg.last_conversation_path is None
    assert cfg.volume == 100
    assert cfg.preview_width == 20
    assert cfg.player_width == 80
    assert cfg.compact_width == 0
    assert cfg.relaxed_sandbox is False
    assert cfg.export_dir is None


def test_get_int_rejects_bools() -> None:
    assert config._get_int({"volume": True}, "volume", 70) == 70
    assert config._get_int({"volume": "80"}, "volume", 70) == 70
    assert config._get_int({}, "volume", 70, max_value=50) == 50


def test_get_config_dir_uses_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    if config.os.name != "posix" or config._is_macos():
        pytest.skip("XDG layout only applies on Linux-style platforms")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    path = config.get_config_dir()
    assert path == tmp_path / "transcript-viewer"
    assert path.is_dir()
