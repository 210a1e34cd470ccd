"""Textual-based TUI for Transcript Viewer."""

from __future__ import annotations

from functools import partial
import logging
from pathlib import Path
import time
from typing import Any, Callable, Optional
import webbrowser

try:
    from textual import events
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import Horizontal, VerticalScroll
    from textual.widget import Widget
    from textual.widgets import Button, Footer, Header, ListView, Static
    from rich.text import Text
except Exception as exc:  # pragma: no cover - depends on environment
    raise RuntimeError(
        "Textual is required for the TUI. Install the 'textual' dependency."
    ) from exc

import requests

from transcript_viewer.config import AppConfig, load_config, save_config
from transcript_viewer.conversation import Conversation
from transcript_viewer.event_bus import EventBus, SubscriptionScope
from transcript_viewer.exports import (
    download_asset,
    export_html_source,
    export_table_csv,
)
from transcript_viewer.logging_setup import set_console_level
from transcript_viewer.playback import (
    PLAYBACK_CHANGED,
    PLAYBACK_ERROR,
    AudioController,
    MediaEngine,
    MediaEventPump,
)
from transcript_viewer.player_vlc import VlcMediaEngine
from transcript_viewer.preview import (
    PREVIEW_CHANGED,
    PREVIEW_ERROR,
    DeviceMode,
    EngineFactory,
    PreviewController,
    PreviewTab,
)
from transcript_viewer.sandbox_server import (
    Deliver,
    SandboxEngine,
    start_preview_server,
)
from transcript_viewer.sidebar import (
    CLOSE_TRANSITION_SECONDS,
    POINTER_MOVE,
    POINTER_UP,
    ResizeDrag,
    SidebarGeometry,
)
from transcript_viewer.ui.help_modal import HelpModal
from transcript_viewer.ui.player_panel import LyricItem, PlayerPanel
from transcript_viewer.ui.preview_panel import PreviewPanel
from transcript_viewer.ui.segment_widgets import (
    CopyRequested,
    CsvExportRequested,
    MessageView,
    PreviewRequested,
    TrackSelected,
)
from transcript_viewer.ui.status_controller import StatusController
from transcript_viewer.ui.textual_compat import copy_to_clipboard

logger = logging.getLogger(__name__)

SEEK_STEP_SECONDS = 5.0
VOLUME_STEP = 5


# UI components
class StatusBar(Static):
    """Status line widget."""

    def __init__(self, controller: StatusController, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._controller = controller

    def render(self) -> Text:
        width = max(1, self.size.width)
        focused = getattr(self.app, "focused", None)
        return self._controller.render_line(width, focused=focused)


# Main application
class TranscriptViewerApp(App):
    """Transcript Viewer Textual application."""

    # --- App constants & metadata ---
    CSS_PATH = "app.tcss"
    TITLE = "Transcript Viewer"

    # --- Keybindings ---
    BINDINGS = [
        Binding("space", "toggle_playback", "Play/Pause"),
        Binding("n", "next_track", "Next"),
        Binding("p", "previous_track", "Previous"),
        Binding("left", "seek_back", "Seek -5s"),
        Binding("right", "seek_forward", "Seek +5s"),
        Binding("l", "toggle_lyrics", "Lyrics/Album"),
        Binding("c", "close_player", "Close player"),
        Binding("t", "toggle_preview_tab", "Preview/Source"),
        Binding("r", "refresh_preview", "Refresh preview"),
        Binding("o", "open_in_browser", "Open"),
        Binding("m", "toggle_device", "Desktop/Mobile"),
        Binding("escape", "close_preview", "Close preview"),
        Binding("+", "volume_up", "Volume +5"),
        Binding("-", "volume_down", "Volume -5"),
        Binding("d", "dismiss_notice", "Dismiss notice"),
        Binding("?", "show_help", "Help"),
        Binding("f1", "show_help", "Help"),
        Binding("q", "quit_app", "Quit"),
    ]

    # --- Lifecycle ---
    def __init__(
        self,
        conversation: Conversation,
        *,
        path: Optional[Path] = None,
        config: Optional[AppConfig] = None,
        media_engine_factory: Callable[[], MediaEngine] = VlcMediaEngine,
        sandbox_engine_factory: Optional[EngineFactory] = None,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__()
        self.conversation = conversation
        self.path = path
        self._config = config if config is not None else load_config()
        self._now = now
        self._status_controller = StatusController(self._now)
        self.bus = EventBus()
        self._scope = SubscriptionScope(self.bus)
        self.preview = PreviewController(
            geometry=SidebarGeometry(
                width_percent=self._config.preview_width,
                breakpoint=self._config.compact_width,
            ),
            bus=self.bus,
            engine_factory=sandbox_engine_factory or self._start_sandbox_engine,
            schedule=self._schedule,
            now=time.time,
            relaxed_sandbox=self._config.relaxed_sandbox,
        )
        self.audio = AudioController(
            media_engine_factory,
            bus=self.bus,
            now=self._now,
            volume=self._config.volume,
        )
        self._media_pump = MediaEventPump(self.audio)
        self._player_geometry = SidebarGeometry(
            width_percent=self._config.player_width,
            breakpoint=self._config.compact_width,
        )
        self._player_drag = ResizeDrag(
            self.bus, self._player_geometry, on_change=self._player_width_changed
        )
        self._player_closing = False
        self._player_close_token = 0
        self._last_followed_lyric: Optional[int] = None
        self._preview_panel: Optional[PreviewPanel] = None
        self._player_panel: Optional[PlayerPanel] = None
        self._status_bar: Optional[StatusBar] = None

    # --- Widget composition & layout ---
    def compose(self) -> ComposeResult:
        yield Header(show_clock=False)
        with Horizontal(id="body"):
            with VerticalScroll(id="messages"):
                if not self.conversation.messages:
                    yield Static("This conversation has no messages.", id="empty")
                for message in self.conversation.messages:
                    yield MessageView(message)
            yield PreviewPanel(id="preview_panel")
            yield PlayerPanel(id="player_panel")
        yield StatusBar(self._status_controller, id="status_line")
        yield Footer()

    # --- Internal helpers ---
    def _schedule(self, delay: float, callback: Callable[[], None]) -> object:
        return self.set_timer(delay, callback)

    def _start_sandbox_engine(self, deliver: Deliver) -> SandboxEngine:
        def deliver_on_ui(render_key: int, payload: Any) -> None:
            self.call_from_thread(deliver, render_key, payload)

        return start_preview_server(deliver_on_ui)

    def _set_message(
        self,
        text: str,
        *,
        level: str = "info",
        timeout: Optional[float] = None,
    ) -> None:
        self._status_controller.show_message(text, level=level, timeout=timeout)
        if self._status_bar is not None:
            self._status_bar.refresh()

    def _save_config(self) -> None:
        self._config = AppConfig(
            last_conversation_path=(
                str(self.path) if self.path else self._config.last_conversation_path
            ),
            volume=self.audio.volume,
            preview_width=round(self.preview.geometry.width_percent),
            player_width=round(self._player_geometry.width_percent),
            compact_width=self._config.compact_width,
            relaxed_sandbox=self._config.relaxed_sandbox,
            export_dir=self._config.export_dir,
        )
        try:
            save_config(self._config)
        except OSError:
            logger.exception("Failed to save config")

    def _export_dir(self) -> Path:
        if self._config.export_dir:
            return Path(self._config.export_dir).expanduser()
        return Path.cwd()

    def _apply_geometry(
        self, panel: Optional[Widget], geometry: SidebarGeometry
    ) -> None:
        if panel is None:
            return
        if geometry.is_mobile_layout:
            panel.add_class("sheet")
            panel.styles.width = "100%"
        else:
            panel.remove_class("sheet")
            panel.styles.width = f"{geometry.width_percent:.0f}%"

    # --- Bus handlers ---
    def _handle_preview_changed(self, payload: object) -> None:
        del payload
        if self._preview_panel is None:
            return
        self._preview_panel.update_view(self.preview)
        self._apply_geometry(self._preview_panel, self.preview.geometry)

    def _handle_playback_changed(self, payload: object) -> None:
        del payload
        if self._player_panel is None:
            return
        self._player_panel.update_view(self.audio.state, closing=self._player_closing)
        self._apply_geometry(self._player_panel, self._player_geometry)

    def _handle_error(self, level: str, text: object) -> None:
        self._set_message(str(text), level=level)

    def _player_width_changed(self, width: float) -> None:
        del width
        self._apply_geometry(self._player_panel, self._player_geometry)

    def _on_tick(self) -> None:
        self._media_pump.poll()
        self._follow_lyrics()
        if self._status_bar is not None:
            self._status_bar.refresh()

    def _follow_lyrics(self) -> None:
        if self._player_panel is None or not self.audio.should_auto_scroll():
            return
        active = self.audio.state.active_lyric_index
        if active == self._last_followed_lyric:
            return
        self._last_followed_lyric = active
        self._player_panel.follow_active_lyric(self.audio.state)

    def notify_lyrics_scrolled(self) -> None:
        self.audio.notify_user_scroll()
        self._last_followed_lyric = None

    def _cancel_player_close(self) -> None:
        self._player_close_token += 1
        self._player_closing = False

    def _finish_player_close(self, token: int) -> None:
        if token != self._player_close_token:
            return
        self._player_closing = False
        self._last_followed_lyric = None
        self.audio.close()

    def _download_track(self) -> None:
        track = self.audio.state.current_track
        if track is None:
            return
        directory = self._export_dir()
        self._set_message(f"Downloading {track.name or 'track'}...")
        self.run_worker(
            partial(self._download_track_blocking, track, directory),
            thread=True,
            exclusive=False,
        )

    def _download_track_blocking(self, track: Any, directory: Path) -> None:
        try:
            dest = download_asset(track, directory)
        except (requests.RequestException, OSError, ValueError) as exc:
            logger.exception("Download failed for %s", track.url)
            self.call_from_thread(
                self._set_message, f"Download failed: {exc}", level="error"
            )
            return
        self.call_from_thread(self._set_message, f"Saved {dest}")

    # --- Actions ---
    def action_toggle_playback(self) -> None:
        self.audio.toggle_play()

    def action_next_track(self) -> None:
        self.audio.next()

    def action_previous_track(self) -> None:
        self.audio.prev()

    def action_seek_back(self) -> None:
        state = self.audio.state
        self.audio.seek(state.progress_seconds - SEEK_STEP_SECONDS)

    def action_seek_forward(self) -> None:
        state = self.audio.state
        self.audio.seek(state.progress_seconds + SEEK_STEP_SECONDS)

    def action_toggle_lyrics(self) -> None:
        if self.audio.state.current_track is None:
            return
        self._last_followed_lyric = None
        self.audio.toggle_lyrics()

    def action_close_player(self) -> None:
        if self.audio.state.current_track is None or self._player_closing:
            return
        self.audio.pause_for_close()
        self._player_closing = True
        self._handle_playback_changed(None)
        token = self._player_close_token
        self.set_timer(
            CLOSE_TRANSITION_SECONDS, lambda: self._finish_player_close(token)
        )

    def action_toggle_preview_tab(self) -> None:
        session = self.preview.session
        if session is None:
            return
        if session.active_tab is PreviewTab.PREVIEW:
            self.preview.change_tab(PreviewTab.SOURCE)
        else:
            self.preview.change_tab(PreviewTab.PREVIEW)

    def action_refresh_preview(self) -> None:
        session = self.preview.session
        if session is None or session.active_tab is not PreviewTab.PREVIEW:
            return
        self.preview.refresh()
        self._set_message("Preview refreshed")

    def action_open_in_browser(self) -> None:
        url = self.preview.document_url() or self.preview.external_url()
        if not url:
            self._set_message("Nothing to open", level="warn")
            return
        self._open_url(url)

    def _open_url(self, url: str) -> None:
        if webbrowser.open(url):
            self._set_message(f"Opened {url}")
        else:
            self._set_message(f"Could not open a browser for {url}", level="warn")

    def action_toggle_device(self) -> None:
        session = self.preview.session
        if session is None or not session.show_controls:
            return
        if session.device_mode is DeviceMode.DESKTOP:
            self.preview.set_device_mode(DeviceMode.MOBILE)
        else:
            self.preview.set_device_mode(DeviceMode.DESKTOP)

    def action_close_preview(self) -> None:
        self.preview.close()

    def action_volume_up(self) -> None:
        self.audio.set_volume(self.audio.volume + VOLUME_STEP)
        self._set_message(f"Volume: {self.audio.volume}")

    def action_volume_down(self) -> None:
        self.audio.set_volume(self.audio.volume - VOLUME_STEP)
        self._set_message(f"Volume: {self.audio.volume}")

    def action_dismiss_notice(self) -> None:
        self._status_controller.clear_message()
        if self._status_bar is not None:
            self._status_bar.refresh()

    def action_show_help(self) -> None:
        self.push_screen(HelpModal(self.BINDINGS))

    def action_quit_app(self) -> None:
        self.exit()

    def _copy_preview_source(self) -> None:
        session = self.preview.session
        if session is not None:
            self._copy(session.source_text, "Source copied")

    def _download_preview_source(self) -> None:
        session = self.preview.session
        if session is None:
            return
        try:
            dest = export_html_source(session.source_text, self._export_dir())
        except OSError as exc:
            logger.exception("HTML export failed")
            self._set_message(f"Export failed: {exc}", level="error")
            return
        self._set_message(f"Saved {dest}")

    def _visit_preview_site(self) -> None:
        url = self.preview.external_url()
        if url:
            self._open_url(url)

    def _copy(self, text: str, label: str) -> None:
        if copy_to_clipboard(self, text):
            self._set_message(label)
        else:
            self._set_message("Clipboard unavailable", level="warn")

    # --- Event handlers ---
    def on_mount(self) -> None:
        self._preview_panel = self.query_one("#preview_panel", PreviewPanel)
        self._player_panel = self.query_one("#player_panel", PlayerPanel)
        self._status_bar = self.query_one("#status_line", StatusBar)
        self.sub_title = self.conversation.display_title
        self._scope.subscribe(PREVIEW_CHANGED, self._handle_preview_changed)
        self._scope.subscribe(PLAYBACK_CHANGED, self._handle_playback_changed)
        self._scope.subscribe(PREVIEW_ERROR, partial(self._handle_error, "warn"))
        self._scope.subscribe(PLAYBACK_ERROR, partial(self._handle_error, "error"))
        self._update_viewport(self.size.width)
        self._handle_preview_changed(None)
        self._handle_playback_changed(None)
        self.set_interval(0.1, self._on_tick)
        logger.info("TUI mounted messages=%s", len(self.conversation.messages))

    def on_unmount(self) -> None:
        self._save_config()
        self._scope.close()
        self.preview.close(immediate=True)
        self.audio.close()
        logger.info("TUI shutdown")

    def _update_viewport(self, width: int) -> None:
        self.preview.update_viewport(width)
        if self._player_geometry.update_viewport(width):
            if self._player_geometry.is_mobile_layout:
                self._player_drag.cancel()
        self._apply_geometry(self._preview_panel, self.preview.geometry)
        self._apply_geometry(self._player_panel, self._player_geometry)

    def on_resize(self, event: events.Resize) -> None:
        self._update_viewport(event.size.width)

    def on_copy_requested(self, message: CopyRequested) -> None:
        self._copy(message.text, message.label)

    def on_csv_export_requested(self, message: CsvExportRequested) -> None:
        try:
            dest = export_table_csv(message.rows, self._export_dir())
        except OSError as exc:
            logger.exception("CSV export failed")
            self._set_message(f"Export failed: {exc}", level="error")
            return
        self._set_message(f"Saved {dest}")

    def on_preview_requested(self, message: PreviewRequested) -> None:
        self.preview.open(
            message.content,
            message.tab,
            source_content=message.source_content,
            web_analysis_mode=message.web_analysis_mode,
            preview_url=message.preview_url,
        )

    def on_track_selected(self, message: TrackSelected) -> None:
        self._cancel_player_close()
        self._last_followed_lyric = None
        self.audio.play(message.track, message.playlist)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        if isinstance(event.item, LyricItem):
            event.stop()
            self.audio.seek_to_lyric(event.item.lyric_index)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        handlers: dict[str, Callable[[], None]] = {
            "preview_tab_preview": partial(self.preview.change_tab, PreviewTab.PREVIEW),
            "preview_tab_source": partial(self.preview.change_tab, PreviewTab.SOURCE),
            "preview_device_desktop": partial(
                self.preview.set_device_mode, DeviceMode.DESKTOP
            ),
            "preview_device_mobile": partial(
                self.preview.set_device_mode, DeviceMode.MOBILE
            ),
            "preview_refresh": self.action_refresh_preview,
            "preview_open": self.action_open_in_browser,
            "preview_visit": self._visit_preview_site,
            "preview_copy": self._copy_preview_source,
            "preview_download": self._download_preview_source,
            "preview_close": self.action_close_preview,
            "player_toggle_lyrics": self.action_toggle_lyrics,
            "player_download": self._download_track,
            "player_close": self.action_close_player,
            "player_prev": self.action_previous_track,
            "player_playpause": self.action_toggle_playback,
            "player_next": self.action_next_track,
        }
        handler = handlers.get(event.button.id or "")
        if handler is not None:
            event.stop()
            handler()

    # --- Pointer gestures ---
    def begin_panel_resize(self, panel: str) -> bool:
        if panel == "preview":
            return self.preview.begin_resize()
        if panel == "player":
            return self._player_drag.begin()
        return False

    def pointer_moved(self, screen_x: float) -> None:
        self.bus.publish(POINTER_MOVE, screen_x)

    def pointer_released(self, screen_x: float) -> None:
        self.bus.publish(POINTER_UP, screen_x)
        self._save_config()

    def seek_to_ratio(self, ratio: float) -> None:
        duration = self.audio.state.duration_seconds
        if duration > 0:
            self.audio.seek(ratio * duration)


# Public entrypoints
def run_tui(conversation: Conversation, path: Optional[Path] = None) -> int:
    """Run the TUI and return an exit code."""
    logger.info("TUI start path=%s", path)
    try:
        set_console_level(logging.WARNING)
    except Exception:
        logger.exception("Failed to set console log level for TUI")
    app = TranscriptViewerApp(conversation, path=path)
    app.run()
    logger.info("TUI exit")
    return 0
