"""Preview side panel view, rendered from ``PreviewController`` state."""

from __future__ import annotations

import time
from typing import Optional

from rich.syntax import Syntax
from rich.text import Text
from textual import events
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Button, Static

from transcript_viewer.preview import (
    ConsoleEntry,
    DeviceMode,
    PreviewController,
    PreviewTab,
)


class ResizeHandle(Static):
    """One-column drag handle on a panel's left edge.

    The handle captures the mouse for the length of a drag and forwards
    pointer positions to the app, which owns the resize gesture.
    """

    def __init__(self, panel: str, **kwargs) -> None:
        super().__init__("┃", **kwargs)
        self.panel = panel
        self._dragging = False

    def on_mouse_down(self, event: events.MouseDown) -> None:
        begin = getattr(self.app, "begin_panel_resize", None)
        if begin is None or not begin(self.panel):
            return
        self._dragging = True
        self.capture_mouse()
        event.stop()

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if not self._dragging:
            return
        self.app.pointer_moved(event.screen_x)
        event.stop()

    def on_mouse_up(self, event: events.MouseUp) -> None:
        if not self._dragging:
            return
        self._dragging = False
        self.release_mouse()
        self.app.pointer_released(event.screen_x)
        event.stop()


def render_console_entry(entry: ConsoleEntry) -> Text:
    stamp = time.strftime("%H:%M:%S", time.localtime(entry.timestamp))
    line = Text(f"{stamp} ", style="dim")
    line.append(f"[{entry.kind}] ", style="bold #ff5f52")
    line.append(entry.message)
    return line


def render_preview_summary(controller: PreviewController) -> Text:
    session = controller.session
    if session is None:
        return Text("")
    url = controller.document_url()
    text = Text()
    if session.web_analysis_mode and session.preview_url:
        text.append("Source: ", style="bold")
        text.append(session.preview_url + "\n", style="underline")
    if url:
        text.append("Sandboxed document: ", style="bold")
        text.append(url + "\n", style="underline")
        text.append("Press O to open it in your browser.", style="dim")
    else:
        text.append("Sandbox unavailable; showing source only.", style="dim")
    text.append(
        f"\nDevice: {session.device_mode.value}  Render #{session.render_key}",
        style="dim",
    )
    return text


class PreviewPanel(Vertical):
    """Tabs, toolbar, rendered document summary and console log."""

    def compose(self) -> ComposeResult:
        with Horizontal(id="preview_frame"):
            yield ResizeHandle("preview", id="preview_resize", classes="resize_handle")
            with Vertical(id="preview_main"):
                with Horizontal(id="preview_toolbar", classes="toolbar"):
                    yield Button("Preview", id="preview_tab_preview", classes="tab")
                    yield Button("Source", id="preview_tab_source", classes="tab")
                    yield Button("Desktop", id="preview_device_desktop", classes="tab")
                    yield Button("Mobile", id="preview_device_mobile", classes="tab")
                    yield Button("Refresh", id="preview_refresh")
                    yield Button("Open", id="preview_open")
                    yield Button("Visit Site", id="preview_visit")
                    yield Button("Copy", id="preview_copy")
                    yield Button("Download HTML", id="preview_download")
                    yield Button("✕", id="preview_close")
                with VerticalScroll(id="preview_body"):
                    yield Static(id="preview_summary")
                    yield Static(id="preview_source")
                yield Static(id="preview_console_title")
                with VerticalScroll(id="preview_console"):
                    yield Static(id="preview_console_log")

    def update_view(self, controller: PreviewController) -> None:
        session = controller.session
        self.display = controller.is_visible
        self.set_class(controller.geometry.is_mobile_layout, "sheet")
        self.set_class(bool(session and session.closing), "closing")
        if session is None:
            return
        on_preview = session.active_tab is PreviewTab.PREVIEW
        tab_preview = self.query_one("#preview_tab_preview", Button)
        tab_source = self.query_one("#preview_tab_source", Button)
        tab_preview.set_class(on_preview, "active")
        tab_source.set_class(not on_preview, "active")
        show_device = (
            on_preview
            and session.show_controls
            and not controller.geometry.is_mobile_layout
        )
        for mode in DeviceMode:
            button = self.query_one(f"#preview_device_{mode.value}", Button)
            button.display = show_device
            button.set_class(session.device_mode is mode, "active")
        self.query_one("#preview_refresh", Button).display = on_preview
        self.query_one("#preview_open", Button).display = on_preview and bool(
            controller.document_url()
        )
        self.query_one("#preview_visit", Button).display = bool(
            controller.external_url()
        )
        summary = self.query_one("#preview_summary", Static)
        source = self.query_one("#preview_source", Static)
        summary.display = on_preview
        source.display = not on_preview
        if on_preview:
            summary.update(render_preview_summary(controller))
        else:
            source.update(
                Syntax(
                    session.source_text,
                    "html",
                    word_wrap=True,
                    background_color="default",
                )
            )
        self._update_console(session.console_log if on_preview else None)

    def _update_console(self, entries: Optional[list[ConsoleEntry]]) -> None:
        title = self.query_one("#preview_console_title", Static)
        log = self.query_one("#preview_console_log", Static)
        console = self.query_one("#preview_console")
        visible = bool(entries)
        title.display = visible
        console.display = visible
        if not entries:
            log.update("")
            return
        title.update(Text(f"Console ({len(entries)})", style="bold"))
        log.update(Text("\n").join(render_console_entry(entry) for entry in entries))
