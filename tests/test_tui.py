"""Tests for TUI actions and wiring."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from transcript_viewer import tui
from transcript_viewer.config import AppConfig
from transcript_viewer.conversation import Conversation, Message
from transcript_viewer.extractors import LyricLine, Track
from transcript_viewer.playback import PlaybackStatus
from transcript_viewer.preview import PreviewTab
from transcript_viewer.sandbox import SandboxDocument
from transcript_viewer.ui.help_modal import HelpModal
from transcript_viewer.ui.player_panel import PlayerPanel
from transcript_viewer.ui.preview_panel import PreviewPanel
from transcript_viewer.ui.segment_widgets import (
    CsvExportRequested,
    MessageView,
    PreviewRequested,
    TrackSelected,
)


class DummyEngine:
    def __init__(self) -> None:
        self.loaded: list[str] = []
        self.seeks: list[int] = []
        self.volume: Optional[int] = None
        self.paused = 0
        self.released = False

    def load(self, url: str) -> None:
        self.loaded.append(url)

    def play(self) -> None:
        pass

    def pause(self) -> None:
        self.paused += 1

    def stop(self) -> None:
        pass

    def set_volume(self, volume: int) -> None:
        self.volume = volume

    def set_time_ms(self, position_ms: int) -> bool:
        self.seeks.append(position_ms)
        return True

    def get_position_ms(self) -> Optional[int]:
        return None

    def get_length_ms(self) -> Optional[int]:
        return None

    def consume_end_reached(self) -> bool:
        return False

    def release(self) -> None:
        self.released = True


class DummySandbox:
    def __init__(self, deliver: Callable[[int, Any], None]) -> None:
        self.deliver = deliver
        self.document: Optional[SandboxDocument] = None
        self.closed = False

    def load(self, document: SandboxDocument) -> None:
        self.document = document

    def beacon_url(self, render_key: int) -> Optional[str]:
        return None

    def document_url(self) -> Optional[str]:
        if self.document is None:
            return None
        return f"http://127.0.0.1:1/doc/{self.document.render_key}"

    def close(self) -> None:
        self.closed = True


TRACKS = (
    Track(
        name="First",
        artist="Band",
        url="https://example.com/1.mp3",
        lrc=(LyricLine(0.5, "hello"), LyricLine(2.0, "world")),
    ),
    Track(name="Second", url="https://example.com/2.mp3"),
)

CONVERSATION = Conversation(
    id="c1",
    title="Demo",
    messages=[
        Message(role="user", content="Show me things"),
        Message(
            role="assistant",
            content=(
                "<think>Planning</think>Here is a page:\n\n"
                "```html\n<p>Hello</p>\n```\n\n"
                "| a | b |\n| - | - |\n| 1 | 2 |\n\n"
                "<music>Name: First\nURL: https://example.com/1.mp3</music>"
            ),
        ),
    ],
)


@pytest.fixture(autouse=True)
def stub_config(monkeypatch) -> list[AppConfig]:
    saved: list[AppConfig] = []
    monkeypatch.setattr(tui, "load_config", lambda: AppConfig())
    monkeypatch.setattr(tui, "save_config", saved.append)
    return saved


def _app(
    engine: Optional[DummyEngine] = None, config: Optional[AppConfig] = None
) -> tui.TranscriptViewerApp:
    media = engine or DummyEngine()
    return tui.TranscriptViewerApp(
        CONVERSATION,
        path=Path("chat.json"),
        config=config or AppConfig(),
        media_engine_factory=lambda: media,
        sandbox_engine_factory=DummySandbox,
    )


def _message_text(app: tui.TranscriptViewerApp) -> Optional[str]:
    message = app._status_controller._message
    return message.text if message else None


def test_track_selection_plays_and_toggles() -> None:
    engine = DummyEngine()
    app = _app(engine)
    app.on_track_selected(TrackSelected(TRACKS[0], TRACKS))
    assert engine.loaded == ["https://example.com/1.mp3"]
    assert app.audio.state.status is PlaybackStatus.PLAYING
    app.action_toggle_playback()
    assert app.audio.state.status is PlaybackStatus.PAUSED
    app.action_next_track()
    assert app.audio.state.current_track is TRACKS[1]
    app.action_next_track()
    assert app.audio.state.current_track is TRACKS[0]


def test_seek_actions_step_five_seconds() -> None:
    engine = DummyEngine()
    app = _app(engine)
    app.on_track_selected(TrackSelected(TRACKS[0], TRACKS))
    app.audio.on_metadata(60.0)
    app.action_seek_forward()
    app.action_seek_forward()
    app.action_seek_back()
    assert engine.seeks == [5000, 10000, 5000]


def test_seek_to_ratio_uses_duration() -> None:
    engine = DummyEngine()
    app = _app(engine)
    app.on_track_selected(TrackSelected(TRACKS[0], TRACKS))
    app.seek_to_ratio(0.5)
    assert engine.seeks == []
    app.audio.on_metadata(100.0)
    app.seek_to_ratio(0.25)
    assert engine.seeks == [25000]


def test_volume_actions_clamp_and_report() -> None:
    app = _app(config=AppConfig(volume=98))
    app.action_volume_up()
    assert app.audio.volume == 100
    assert _message_text(app) == "Volume: 100"
    app.action_volume_down()
    assert app.audio.volume == 95


def test_open_in_browser_without_preview_warns() -> None:
    app = _app()
    app.action_open_in_browser()
    assert _message_text(app) == "Nothing to open"


def test_open_in_browser_uses_sandbox_url(monkeypatch) -> None:
    opened: list[str] = []
    monkeypatch.setattr(tui.webbrowser, "open", lambda url: opened.append(url) or True)
    app = _app()
    app.on_preview_requested(PreviewRequested("<p>x</p>"))
    app.action_open_in_browser()
    assert opened == ["http://127.0.0.1:1/doc/0"]


def test_preview_tab_toggle_and_refresh() -> None:
    app = _app()
    app.on_preview_requested(PreviewRequested("<p>x</p>"))
    session = app.preview.session
    assert session is not None
    app.action_refresh_preview()
    assert session.render_key == 1
    app.action_toggle_preview_tab()
    assert session.active_tab is PreviewTab.SOURCE
    app.action_refresh_preview()
    assert session.render_key == 1
    app.action_close_preview()
    assert app.preview.session is None


def test_web_analysis_preview_visit_site(monkeypatch) -> None:
    opened: list[str] = []
    monkeypatch.setattr(tui.webbrowser, "open", lambda url: opened.append(url) or True)
    app = _app()
    app.on_preview_requested(
        PreviewRequested(
            "<html></html>",
            PreviewTab.SOURCE,
            source_content="raw",
            web_analysis_mode=True,
            preview_url="https://example.com/article",
        )
    )
    app._visit_preview_site()
    assert opened == ["https://example.com/article"]


def test_csv_export_writes_to_export_dir(tmp_path: Path) -> None:
    app = _app(config=AppConfig(export_dir=str(tmp_path)))
    app.on_csv_export_requested(CsvExportRequested([["a", "b"], ["1", "2"]]))
    dest = tmp_path / "table_data.csv"
    assert dest.read_text(encoding="utf-8") == "a,b\n1,2\n"
    assert _message_text(app) == f"Saved {dest}"


def test_download_preview_source(tmp_path: Path) -> None:
    app = _app(config=AppConfig(export_dir=str(tmp_path)))
    app.on_preview_requested(
        PreviewRequested("<html>doc</html>", source_content="<p>raw</p>")
    )
    app._download_preview_source()
    assert (tmp_path / "index.html").read_text(encoding="utf-8") == "<p>raw</p>"


def test_copy_reports_clipboard_result(monkeypatch) -> None:
    app = _app()
    copied: list[str] = []
    monkeypatch.setattr(app, "copy_to_clipboard", copied.append, raising=False)
    app._copy("text", "Code copied")
    assert copied == ["text"]
    assert _message_text(app) == "Code copied"


def test_panel_resize_gesture_saves_width(stub_config) -> None:
    app = _app()
    app.preview.update_viewport(200)
    assert app.begin_panel_resize("preview")
    app.pointer_moved(150)
    app.pointer_released(150)
    assert app.preview.geometry.width_percent == 25.0
    assert not app.preview.is_resizing
    assert stub_config[-1].preview_width == 25
    assert stub_config[-1].last_conversation_path == "chat.json"


def test_player_resize_gesture() -> None:
    app = _app()
    app._update_viewport(200)
    assert app.begin_panel_resize("player")
    app.pointer_moved(100)
    app.pointer_released(100)
    assert app._player_geometry.width_percent == 50.0
    assert app.begin_panel_resize("other") is False


def test_resize_refused_in_compact_layout() -> None:
    app = _app(config=AppConfig(compact_width=100))
    app._update_viewport(80)
    assert app.begin_panel_resize("preview") is False
    assert app.begin_panel_resize("player") is False


def test_app_mounts_messages_and_panels() -> None:
    async def runner() -> None:
        app = _app()
        async with app.run_test(size=(160, 48)) as pilot:
            await pilot.pause()
            assert len(app.query(MessageView)) == 2
            preview = app.query_one("#preview_panel", PreviewPanel)
            player = app.query_one("#player_panel", PlayerPanel)
            assert preview.display is False
            assert player.display is False
            assert app.sub_title == "Demo"

    asyncio.run(runner())


def test_preview_panel_follows_controller() -> None:
    async def runner() -> None:
        app = _app()
        async with app.run_test(size=(160, 48)) as pilot:
            await pilot.pause()
            app.on_preview_requested(PreviewRequested("<p>Hello</p>"))
            await pilot.pause()
            preview = app.query_one("#preview_panel", PreviewPanel)
            assert preview.display is True
            assert preview.query_one("#preview_refresh").display is True
            app.action_toggle_preview_tab()
            await pilot.pause()
            assert preview.query_one("#preview_refresh").display is False
            app.action_close_preview()
            await pilot.pause()
            assert preview.display is False

    asyncio.run(runner())


def test_player_close_runs_after_transition() -> None:
    async def runner() -> None:
        engine = DummyEngine()
        app = _app(engine)
        async with app.run_test(size=(160, 48)) as pilot:
            await pilot.pause()
            app.on_track_selected(TrackSelected(TRACKS[0], TRACKS))
            await pilot.pause()
            player = app.query_one("#player_panel", PlayerPanel)
            assert player.display is True
            app.action_close_player()
            await pilot.pause()
            assert player.has_class("closing")
            assert engine.paused == 1
            await pilot.pause(0.5)
            assert app.audio.state.current_track is None
            assert engine.released
            assert player.display is False

    asyncio.run(runner())


def test_reopening_player_cancels_pending_close() -> None:
    async def runner() -> None:
        app = _app()
        async with app.run_test(size=(160, 48)) as pilot:
            await pilot.pause()
            app.on_track_selected(TrackSelected(TRACKS[0], TRACKS))
            app.action_close_player()
            app.on_track_selected(TrackSelected(TRACKS[1], TRACKS))
            await pilot.pause(0.5)
            assert app.audio.state.current_track is TRACKS[1]

    asyncio.run(runner())


def test_help_modal_opens() -> None:
    async def runner() -> None:
        app = _app()
        async with app.run_test(size=(160, 48)) as pilot:
            await pilot.pause()
            app.action_show_help()
            await pilot.pause()
            assert isinstance(app.screen, HelpModal)
            await pilot.click("#help_close")
            await pilot.pause()
            assert not isinstance(app.screen, HelpModal)

    asyncio.run(runner())


def test_unmount_releases_resources(stub_config) -> None:
    async def runner() -> DummyEngine:
        engine = DummyEngine()
        app = _app(engine)
        async with app.run_test(size=(160, 48)) as pilot:
            await pilot.pause()
            app.on_track_selected(TrackSelected(TRACKS[0], TRACKS))
            app.on_preview_requested(PreviewRequested("<p>x</p>"))
            await pilot.pause()
        return engine

    engine = asyncio.run(runner())
    assert engine.released
    assert stub_config
