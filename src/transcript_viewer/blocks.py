"""Block-level classification of markdown segments.

Fenced code blocks are classified into a typed variant consumed by a single
renderer dispatch table:

- ``WebAnalysis``: body carries a web-analysis header comment.
- ``HtmlPreview``: ``html``/``xml`` fence without the header.
- ``PlainCode``: any other fence.

Non-fence regions stay as ``MarkdownText`` chunks. Only top-level fences are
classified; fences nested in lists or quotes render as part of the markdown.
"""

from __future__ import annotations

from dataclasses import dataclass
import html
import re
from string import Template
from typing import Union

from markdown_it import MarkdownIt
from markdown_it.token import Token

from transcript_viewer.extractors import parse_web_analysis_header

PREVIEW_LANGUAGES = frozenset({"html", "xml"})

_HTML_TAG_RE = re.compile(r"</?[A-Za-z!][^>]*>")
# Line breaks as markdown-it counts them for token.map.
_SOURCE_LINE_RE = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+")

_MARKDOWN = MarkdownIt("commonmark").enable("table")

WEB_ANALYSIS_TEMPLATE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>$title</title>
<style>
  body { margin: 0; padding: 24px; font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; line-height: 1.6; color: #1f2328; background: #ffffff; }
  .web-analysis-meta { font-size: 12px; color: #6e7781; margin-bottom: 16px; word-break: break-all; }
  .web-analysis-meta a { color: inherit; }
  .web-analysis-content { max-width: 860px; margin: 0 auto; }
  .web-analysis-content img { max-width: 100%; height: auto; }
  .web-analysis-content pre { overflow-x: auto; padding: 12px; background: #f6f8fa; border-radius: 6px; }
</style>
</head>
<body>
<div class="web-analysis-meta">Source: <a href="$url" target="_blank" rel="noopener noreferrer">$url</a></div>
<div class="web-analysis-content">
$body
</div>
</body>
</html>
"""
)


@dataclass(frozen=True)
class MarkdownText:
    text: str


@dataclass(frozen=True)
class PlainCode:
    language: str
    code: str


@dataclass(frozen=True)
class HtmlPreview:
    content: str


@dataclass(frozen=True)
class WebAnalysis:
    url: str
    title: str
    body: str
    document: str


Block = Union[MarkdownText, PlainCode, HtmlPreview, WebAnalysis]
FencedBlock = Union[PlainCode, HtmlPreview, WebAnalysis]


def has_html_tags(text: str) -> bool:
    return bool(_HTML_TAG_RE.search(text))


def paragraphs_from_text(text: str) -> str:
    """Wrap each non-blank line of plain text in an escaped ``<p>``."""
    return "\n".join(
        f"<p>{html.escape(line.strip())}</p>"
        for line in text.splitlines()
        if line.strip()
    )


def build_web_analysis_document(url: str, title: str, body: str) -> str:
    if not has_html_tags(body):
        body = paragraphs_from_text(body)
    return WEB_ANALYSIS_TEMPLATE.substitute(
        title=html.escape(title or url or "Web analysis"),
        url=html.escape(url, quote=True),
        body=body,
    )


def fence_language(info: str) -> str:
    parts = info.strip().split()
    return parts[0].lower() if parts else ""


def classify_fence(language: str, code: str) -> FencedBlock:
    """Classify one fenced block by declared language and header comment."""
    language = (language or "").lower()
    header = parse_web_analysis_header(code)
    if header is not None:
        return WebAnalysis(
            url=header.url,
            title=header.title,
            body=header.body,
            document=build_web_analysis_document(header.url, header.title, header.body),
        )
    if language in PREVIEW_LANGUAGES:
        return HtmlPreview(content=code)
    return PlainCode(language=language, code=code)


def _flush(lines: list[str], blocks: list[Block]) -> None:
    chunk = "".join(lines)
    if chunk.strip():
        blocks.append(MarkdownText(chunk))
    lines.clear()


def split_blocks(markdown_text: str) -> list[Block]:
    """Split markdown into text chunks and classified top-level fences."""
    if not markdown_text:
        return []
    source_lines = _SOURCE_LINE_RE.findall(markdown_text)
    blocks: list[Block] = []
    pending: list[str] = []
    line_no = 0
    for token in _MARKDOWN.parse(markdown_text):
        if token.type != "fence" or token.level != 0 or token.map is None:
            continue
        start, end = token.map
        pending.extend(source_lines[line_no:start])
        _flush(pending, blocks)
        blocks.append(classify_fence(fence_language(token.info), token.content))
        line_no = end
    pending.extend(source_lines[line_no:])
    _flush(pending, blocks)
    return blocks


def _cell_text(inline: Token) -> str:
    if not inline.children:
        return inline.content.strip()
    parts: list[str] = []
    for child in inline.children:
        if child.type in {"text", "code_inline", "html_inline"}:
            parts.append(child.content)
        elif child.type in {"softbreak", "hardbreak"}:
            parts.append("\n")
    return "".join(parts).strip()


def extract_tables(markdown_text: str) -> list[list[list[str]]]:
    """Return every table in the text as rows of plain-text cells."""
    tables: list[list[list[str]]] = []
    rows: list[list[str]] = []
    row: list[str] = []
    in_cell = False
    for token in _MARKDOWN.parse(markdown_text):
        if token.type == "table_open":
            rows = []
        elif token.type == "tr_open":
            row = []
        elif token.type in {"th_open", "td_open"}:
            in_cell = True
        elif token.type == "inline" and in_cell:
            row.append(_cell_text(token))
        elif token.type in {"th_close", "td_close"}:
            in_cell = False
        elif token.type == "tr_close":
            rows.append(row)
        elif token.type == "table_close":
            tables.append(rows)
    return tables
