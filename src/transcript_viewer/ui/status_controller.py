"""Status line controller for the TUI."""

from __future__ import annotations

from typing import Callable, Optional

from rich.text import Text

from transcript_viewer.ui.text_helpers import _truncate_line
from transcript_viewer.ui.tui_types import StatusMessage

_PREVIEW_IDS = {"preview_panel", "preview_body", "preview_source", "preview_console"}
_PLAYER_IDS = {"player_panel", "player_lyrics", "player_cover"}


class StatusController:
    """Transient notices with a contextual key-hint fallback."""

    def __init__(self, now: Callable[[], float]) -> None:
        self._now = now
        self._message: Optional[StatusMessage] = None
        self._context: Optional[str] = None

    def show_message(
        self,
        text: str,
        *,
        level: str = "info",
        timeout: Optional[float] = None,
    ) -> None:
        if timeout is None:
            timeout = 6.0 if level in {"warn", "error"} else 3.0
        until = None if timeout == 0 else self._now() + max(0.0, timeout)
        self._message = StatusMessage(text=text, level=level, until=until)

    def clear_message(self) -> None:
        self._message = None

    @property
    def has_message(self) -> bool:
        return self._current_message() is not None

    def set_context(self, name: Optional[str]) -> None:
        self._context = name

    def render_line(self, width: int, *, focused: object | None = None) -> Text:
        message = self._current_message()
        if message:
            line = _truncate_line(message.text, width)
            style = None
            if message.level == "warn":
                style = "#ffcc66"
            elif message.level == "error":
                style = "#ff5f52"
            return Text(line, style=style) if style else Text(line)
        hint = self._render_hint(focused)
        return Text(_truncate_line(hint, width), style="dim")

    def _current_message(self) -> Optional[StatusMessage]:
        if not self._message:
            return None
        if self._message.until is None:
            return self._message
        if self._message.until > self._now():
            return self._message
        self._message = None
        return None

    def _render_hint(self, focused: object | None) -> str:
        context = self._context or self._context_from_focus(focused)
        if context == "preview":
            return "T: preview/source  R: refresh  O: open in browser  Esc: close"
        if context == "player":
            return "Space: play/pause  N/P: next/prev  L: lyrics  C: close"
        return "↑↓: scroll  Enter: activate  ?: help  Q: quit"

    def _context_from_focus(self, focused: object | None) -> str:
        if focused is None:
            return "general"
        if isinstance(focused, str):
            if focused in _PREVIEW_IDS:
                return "preview"
            if focused in _PLAYER_IDS:
                return "player"
            return "general"
        if self._focus_has_id(focused, _PREVIEW_IDS):
            return "preview"
        if self._focus_has_id(focused, _PLAYER_IDS):
            return "player"
        return "general"

    def _focus_has_id(self, widget: object, ids: set[str]) -> bool:
        current = widget
        while current is not None:
            if getattr(current, "id", None) in ids:
                return True
            current = getattr(current, "parent", None)
        return False
