"""Music player side panel, rendered from ``AudioController`` state."""

from __future__ import annotations

from typing import Optional

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Label, ListItem, ListView, Static

from transcript_viewer.extractors import LyricLine, Track
from transcript_viewer.playback import PlaybackState
from transcript_viewer.ui.preview_panel import ResizeHandle
from transcript_viewer.ui.tui_formatters import (
    format_progress,
    format_time,
    ratio_from_click,
    render_progress_bar,
    track_subtitle,
)

NO_LYRICS_TEXT = "No lyrics available"


class LyricItem(ListItem):
    def __init__(self, index: int, line: LyricLine) -> None:
        super().__init__(
            Label(Text.assemble((f"{format_time(line.time)}  ", "dim"), line.text)),
            classes="lyric_line",
        )
        self.lyric_index = index


class LyricsList(ListView):
    """Lyric lines; manual scrolling pauses auto-follow."""

    def _notify_user_scroll(self) -> None:
        if hasattr(self.app, "notify_lyrics_scrolled"):
            self.app.notify_lyrics_scrolled()

    def _on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self._notify_user_scroll()
        super()._on_mouse_scroll_down(event)

    def _on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self._notify_user_scroll()
        super()._on_mouse_scroll_up(event)


class ProgressBar(Static):
    """Clickable progress bar; a click seeks to that fraction of the track."""

    def on_click(self, event: events.Click) -> None:
        seek = getattr(self.app, "seek_to_ratio", None)
        if seek is None:
            return
        seek(ratio_from_click(event.x, self.size.width))
        event.stop()


def render_track_header(track: Optional[Track]) -> Text:
    if track is None:
        return Text("Nothing playing", style="dim")
    text = Text(track.name or "Untitled", style="bold")
    subtitle = track_subtitle(track)
    if subtitle:
        text.append("\n" + subtitle, style="dim")
    return text


def render_cover(track: Track) -> Text:
    text = Text("♪", style="bold #5fc9d6")
    if track.album:
        text.append(f"  {track.album}")
    if track.pic:
        text.append(f"\nCover: {track.pic}", style="dim underline")
    return text


class PlayerPanel(Vertical):
    """Track header, album or lyrics view, progress and transport."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._lyrics_track: Optional[Track] = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="player_frame"):
            yield ResizeHandle("player", id="player_resize", classes="resize_handle")
            with Vertical(id="player_main"):
                with Horizontal(id="player_toolbar", classes="toolbar"):
                    yield Button("Lyrics", id="player_toggle_lyrics")
                    yield Button("Download", id="player_download")
                    yield Button("✕", id="player_close")
                yield Static(id="player_header")
                yield Static(id="player_cover")
                yield Static(NO_LYRICS_TEXT, id="player_no_lyrics")
                yield LyricsList(id="player_lyrics")
                yield ProgressBar(id="player_progress")
                yield Static(id="player_time")
                with Horizontal(id="player_transport", classes="toolbar"):
                    yield Button("Prev", id="player_prev")
                    yield Button("Play", id="player_playpause")
                    yield Button("Next", id="player_next")

    def update_view(self, state: PlaybackState, *, closing: bool = False) -> None:
        track = state.current_track
        self.display = track is not None
        self.set_class(closing, "closing")
        if track is None:
            self._lyrics_track = None
            return
        self.query_one("#player_header", Static).update(render_track_header(track))
        self.query_one("#player_toggle_lyrics", Button).label = (
            "Album" if state.show_lyrics else "Lyrics"
        )
        self.query_one("#player_playpause", Button).label = (
            "Pause" if state.is_playing else "Play"
        )
        cover = self.query_one("#player_cover", Static)
        lyrics = self.query_one("#player_lyrics", LyricsList)
        placeholder = self.query_one("#player_no_lyrics", Static)
        cover.display = not state.show_lyrics
        lyrics.display = state.show_lyrics and bool(track.lrc)
        placeholder.display = state.show_lyrics and not track.lrc
        if not state.show_lyrics:
            cover.update(render_cover(track))
        if track is not self._lyrics_track:
            self._lyrics_track = track
            lyrics.clear()
            lyrics.extend(
                LyricItem(index, line) for index, line in enumerate(track.lrc)
            )
        for item in lyrics.query(LyricItem):
            item.set_class(item.lyric_index == state.active_lyric_index, "active")
        self.update_progress(state)

    def update_progress(self, state: PlaybackState) -> None:
        bar = self.query_one("#player_progress", ProgressBar)
        ratio = 0.0
        if state.duration_seconds > 0:
            ratio = state.progress_seconds / state.duration_seconds
        bar.update(render_progress_bar(max(1, bar.size.width), ratio))
        self.query_one("#player_time", Static).update(
            format_progress(state.progress_seconds, state.duration_seconds)
        )

    def follow_active_lyric(self, state: PlaybackState) -> None:
        index = state.active_lyric_index
        lyrics = self.query_one("#player_lyrics", LyricsList)
        if not lyrics.display or index < 0 or index >= len(lyrics.children):
            return
        lyrics.scroll_to_widget(lyrics.children[index], animate=False, center=True)
