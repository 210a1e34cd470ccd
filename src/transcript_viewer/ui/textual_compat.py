from __future__ import annotations

import logging

try:
    from textual.app import App
except Exception as exc:  # pragma: no cover - depends on environment
    raise RuntimeError(
        "Textual is required for the TUI. Install the 'textual' dependency."
    ) from exc

logger = logging.getLogger(__name__)


def copy_to_clipboard(app: App, text: str) -> bool:
    """Copy through the terminal when this Textual version supports it."""
    copy = getattr(app, "copy_to_clipboard", None)
    if copy is None:
        logger.warning("Clipboard copy not supported by this Textual version")
        return False
    copy(text)
    return True
