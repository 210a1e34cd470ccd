"""Help modal for Transcript Viewer."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Static

_SECTION_ACTIONS: dict[str, list[str]] = {
    "Player": [
        "toggle_playback",
        "next_track",
        "previous_track",
        "seek_back",
        "seek_forward",
        "toggle_lyrics",
        "close_player",
    ],
    "Preview": [
        "toggle_preview_tab",
        "refresh_preview",
        "open_in_browser",
        "toggle_device",
        "close_preview",
    ],
    "General": [
        "volume_up",
        "volume_down",
        "dismiss_notice",
        "show_help",
        "quit_app",
    ],
}

_ACTION_OVERRIDES: dict[str, str] = {
    "show_help": "Open help",
    "open_in_browser": "Open preview in browser",
}

_MOUSE_HELP: list[tuple[str, str]] = [
    ("Panel edge", "Drag the ┃ handle to resize the preview or player panel"),
    ("Lyrics", "Click a line to seek there; scrolling pauses auto-follow for 5s"),
    ("Cards", "Use the buttons on code, HTML, table and playlist blocks"),
]


def _format_key(key: str) -> str:
    key_map = {
        "left": "←",
        "right": "→",
        "up": "↑",
        "down": "↓",
        "space": "Space",
        "enter": "Enter",
        "escape": "Esc",
        "tab": "Tab",
    }
    if key in key_map:
        return key_map[key]
    parts = key.split("+")
    formatted: list[str] = []
    for part in parts:
        if len(part) == 1:
            formatted.append(part.upper())
        else:
            formatted.append(part.capitalize())
    return "+".join(formatted)


def build_help_text(bindings: Iterable[Binding]) -> Text:
    by_action: dict[str, list[str]] = defaultdict(list)
    by_desc: dict[str, str] = {}
    for binding in bindings:
        by_action[binding.action].append(binding.key)
        if binding.description:
            by_desc[binding.action] = binding.description

    content = Text()
    for position, (section, actions) in enumerate(_SECTION_ACTIONS.items()):
        if position:
            content.append("\n")
        content.append(f"{section}\n", style="bold #5fc9d6")
        for action in actions:
            keys = by_action.get(action)
            if not keys:
                continue
            key_text = ", ".join(_format_key(key) for key in keys)
            label = _ACTION_OVERRIDES.get(action, by_desc.get(action, action))
            content.append(f"{key_text}: {label}\n")

    content.append("\n")
    content.append("Mouse\n", style="bold #5fc9d6")
    for label, description in _MOUSE_HELP:
        content.append(f"{label}: {description}\n")
    content.append(
        "\nLogs: %LOCALAPPDATA%/TranscriptViewer/logs or ~/.transcript_viewer/logs\n",
        style="dim",
    )
    return content


class HelpModal(ModalScreen[None]):
    """Help modal listing keybinds and usage."""

    def __init__(self, bindings: Iterable[Binding]) -> None:
        super().__init__()
        self._help_bindings = list(bindings)

    def compose(self) -> ComposeResult:
        content = build_help_text(self._help_bindings)
        with Vertical(id="help_modal"):
            yield Static("Transcript Viewer Help", id="help_title")
            with VerticalScroll(id="help_scroll"):
                yield Static(content, id="help_content")
            with Horizontal(id="help_footer"):
                yield Static("Esc/q: Close", id="help_hint")
                yield Button("Close", id="help_close")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "help_close":
            event.stop()
            self.dismiss(None)

    def on_key(self, event: events.Key) -> None:
        if event.key in {"escape", "q"}:
            event.stop()
            self.dismiss(None)
