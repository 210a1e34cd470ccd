"""Widgets rendering one conversation message and its segments.

Widgets never reach into the app: actions are posted as messages that the
app handles (copy, export, preview, play).
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from rich.syntax import Syntax
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widget import Widget
from textual.widgets import (
    Button,
    Collapsible,
    Label,
    ListItem,
    ListView,
    Markdown,
    Static,
)

from transcript_viewer.blocks import (
    Block,
    HtmlPreview,
    MarkdownText,
    PlainCode,
    WebAnalysis,
    extract_tables,
    split_blocks,
)
from transcript_viewer.conversation import Message as ConversationMessage
from transcript_viewer.extractors import Track
from transcript_viewer.preview import PreviewTab
from transcript_viewer.segmenter import (
    MarkdownSegment,
    PlaylistSegment,
    SearchSegment,
    Segment,
    ThinkingSegment,
)
from transcript_viewer.ui.tui_formatters import (
    playlist_summary,
    search_summary,
    track_subtitle,
)
from transcript_viewer.ui.tui_types import TableRows

THINKING_TITLE = "Deep Thinking Process"


# --- Messages posted to the app ---
class CopyRequested(Message):
    def __init__(self, text: str, label: str = "Copied") -> None:
        super().__init__()
        self.text = text
        self.label = label


class CsvExportRequested(Message):
    def __init__(self, rows: TableRows) -> None:
        super().__init__()
        self.rows = rows


class PreviewRequested(Message):
    def __init__(
        self,
        content: str,
        tab: PreviewTab = PreviewTab.PREVIEW,
        *,
        source_content: Optional[str] = None,
        web_analysis_mode: bool = False,
        preview_url: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.content = content
        self.tab = tab
        self.source_content = source_content
        self.web_analysis_mode = web_analysis_mode
        self.preview_url = preview_url


class TrackSelected(Message):
    def __init__(self, track: Track, playlist: Sequence[Track]) -> None:
        super().__init__()
        self.track = track
        self.playlist = tuple(playlist)


# --- Block widgets ---
class MarkdownChunk(Vertical):
    """Markdown text with a CSV export action per table."""

    def __init__(self, text: str) -> None:
        super().__init__(classes="markdown_chunk")
        self._text = text
        self._tables = extract_tables(text)

    def compose(self) -> ComposeResult:
        yield Markdown(self._text)
        for index, _table in enumerate(self._tables):
            label = "Export CSV"
            if len(self._tables) > 1:
                label = f"Export CSV #{index + 1}"
            yield Button(label, name=str(index), classes="block_action table_csv")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if not event.button.has_class("table_csv"):
            return
        event.stop()
        index = int(event.button.name or 0)
        self.post_message(CsvExportRequested(self._tables[index]))


class CodeBlock(Collapsible):
    """Collapsible syntax-highlighted code with a copy action."""

    def __init__(self, block: PlainCode) -> None:
        self.code = block.code.rstrip("\n")
        syntax = Syntax(
            self.code,
            block.language or "text",
            word_wrap=True,
            background_color="default",
        )
        super().__init__(
            Static(syntax, classes="code_body"),
            Button("Copy", classes="block_action code_copy"),
            title=block.language or "code",
            collapsed=False,
            classes="code_block",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if not event.button.has_class("code_copy"):
            return
        event.stop()
        self.post_message(CopyRequested(self.code, "Code copied"))


class HtmlCard(Vertical):
    def __init__(self, block: HtmlPreview) -> None:
        super().__init__(classes="html_card")
        self._content = block.content

    def compose(self) -> ComposeResult:
        yield Static(Text("HTML document", style="bold"), classes="card_title")
        with Horizontal(classes="card_actions"):
            yield Button("Preview", classes="block_action html_preview")
            yield Button("Source", classes="block_action html_source")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.has_class("html_preview"):
            tab = PreviewTab.PREVIEW
        elif event.button.has_class("html_source"):
            tab = PreviewTab.SOURCE
        else:
            return
        event.stop()
        self.post_message(PreviewRequested(self._content, tab))


class WebAnalysisCard(Vertical):
    def __init__(self, block: WebAnalysis) -> None:
        super().__init__(classes="web_analysis_card")
        self._block = block

    def compose(self) -> ComposeResult:
        block = self._block
        yield Static(
            Text(block.title or "Web analysis", style="bold"), classes="card_title"
        )
        yield Static(Text(block.url, style="dim underline"), classes="card_url")
        with Horizontal(classes="card_actions"):
            yield Button("Open Analysis", classes="block_action analysis_preview")
            yield Button("Raw Content", classes="block_action analysis_source")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        block = self._block
        if event.button.has_class("analysis_preview"):
            request = PreviewRequested(
                block.document,
                PreviewTab.PREVIEW,
                web_analysis_mode=True,
                preview_url=block.url,
            )
        elif event.button.has_class("analysis_source"):
            request = PreviewRequested(
                block.document,
                PreviewTab.SOURCE,
                source_content=block.body,
                web_analysis_mode=True,
                preview_url=block.url,
            )
        else:
            return
        event.stop()
        self.post_message(request)


BLOCK_RENDERERS: dict[type, Callable[..., Widget]] = {
    MarkdownText: lambda block: MarkdownChunk(block.text),
    PlainCode: CodeBlock,
    HtmlPreview: HtmlCard,
    WebAnalysis: WebAnalysisCard,
}


def render_block(block: Block) -> Widget:
    return BLOCK_RENDERERS[type(block)](block)


class MarkdownBody(Vertical):
    """Markdown split into text chunks and classified fenced blocks."""

    def __init__(self, text: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self._blocks = split_blocks(text)

    def compose(self) -> ComposeResult:
        for block in self._blocks:
            yield render_block(block)


# --- Segment widgets ---
class ThinkingBlock(Collapsible):
    def __init__(self, segment: ThinkingSegment) -> None:
        super().__init__(
            MarkdownBody(segment.display_text),
            title=THINKING_TITLE,
            collapsed=True,
            classes="thinking_block",
        )


class SearchBlock(Collapsible):
    def __init__(self, segment: SearchSegment) -> None:
        results = segment.results
        rows = [
            Static(
                Text.assemble(
                    (f"{result.index}. ", "bold"),
                    result.title,
                    "\n   ",
                    (result.url, "dim underline"),
                ),
                classes="search_result",
            )
            for result in results
        ]
        super().__init__(
            *rows,
            title=search_summary(len(results)),
            collapsed=True,
            classes="search_block",
        )


class TrackItem(ListItem):
    def __init__(self, track: Track) -> None:
        self.track = track
        label = Text(track.name or "Untitled", style="bold")
        subtitle = track_subtitle(track)
        if subtitle:
            label.append("\n" + subtitle, style="dim")
        super().__init__(Label(label), classes="track_item")


class PlaylistCard(Vertical):
    def __init__(self, segment: PlaylistSegment) -> None:
        super().__init__(classes="playlist_card")
        self.tracks = segment.tracks

    def compose(self) -> ComposeResult:
        yield Static(Text(playlist_summary(self.tracks), style="bold"))
        yield ListView(*(TrackItem(track) for track in self.tracks))

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        event.stop()
        item = event.item
        if isinstance(item, TrackItem):
            self.post_message(TrackSelected(item.track, self.tracks))


def _render_markdown_segment(segment: MarkdownSegment) -> Optional[Widget]:
    if segment.is_blank:
        return None
    return MarkdownBody(segment.display_text, classes="markdown_segment")


def _render_search_segment(segment: SearchSegment) -> Optional[Widget]:
    if not segment.results:
        return None
    return SearchBlock(segment)


def _render_playlist_segment(segment: PlaylistSegment) -> Optional[Widget]:
    if not segment.tracks:
        return None
    return PlaylistCard(segment)


SEGMENT_RENDERERS: dict[type, Callable[..., Optional[Widget]]] = {
    MarkdownSegment: _render_markdown_segment,
    ThinkingSegment: ThinkingBlock,
    SearchSegment: _render_search_segment,
    PlaylistSegment: _render_playlist_segment,
}


def render_segment(segment: Segment) -> Optional[Widget]:
    return SEGMENT_RENDERERS[type(segment)](segment)


# --- Message widgets ---
class MessageView(Vertical):
    """One conversation message with its copy action."""

    def __init__(self, message: ConversationMessage, **kwargs) -> None:
        role_class = "user_message" if message.is_user else "assistant_message"
        super().__init__(classes=f"message {role_class}", **kwargs)
        self.message = message

    def compose(self) -> ComposeResult:
        message = self.message
        if message.is_user:
            yield Static(Text(message.content), classes="user_text")
            yield Button("Copy", classes="block_action message_copy")
            return
        for item in message.segments():
            widget = render_segment(item)
            if widget is not None:
                yield widget
        yield Button("Copy Source", classes="block_action message_copy")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if not event.button.has_class("message_copy"):
            return
        event.stop()
        label = "Message copied" if self.message.is_user else "Source copied"
        self.post_message(CopyRequested(self.message.content, label))
