"""Split assistant message text into typed, independently renderable segments.

Tokenizer grammar::

    message   := (text | block)*
    block     := "<" TAG ">" body "</" TAG ">"     TAG in {think, search, music}
    body      := shortest run of characters up to the first matching close tag

A single combined scan finds blocks in document order: the earliest opening
tag that has a matching close tag wins, and its body is opaque (tags inside it
are literal text). Same-kind tags do not nest. An unterminated or malformed
tag never matches and stays part of the surrounding markdown text.

Runs of ``<music>`` blocks separated only by whitespace collapse into a single
playlist segment holding every track in source order.

Every segment keeps the exact source text between its delimiters, so joining
``segment.text`` over ``segment(s)`` rebuilds ``s`` minus the tag delimiters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Iterator, Union

from transcript_viewer.extractors import (
    SearchResult,
    Track,
    parse_search_results,
    parse_track,
)

BLOCK_TAGS = ("think", "search", "music")

_BLOCK_RE = re.compile(r"<(think|search|music)>([\s\S]*?)</\1>")
_DISPLAY_MATH_RE = re.compile(r"\\\[([\s\S]*?)\\\]")
_INLINE_MATH_RE = re.compile(r"\\\(([\s\S]*?)\\\)")


def normalize_math(text: str) -> str:
    """Rewrite ``\\[..\\]`` and ``\\(..\\)`` to ``$$..$$`` and ``$..$``."""
    if not text:
        return ""
    text = _DISPLAY_MATH_RE.sub(lambda m: f"$${m.group(1)}$$", text)
    return _INLINE_MATH_RE.sub(lambda m: f"${m.group(1)}$", text)


@dataclass(frozen=True)
class MarkdownSegment:
    text: str

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    @property
    def display_text(self) -> str:
        return normalize_math(self.text)


@dataclass(frozen=True)
class ThinkingSegment:
    text: str

    @property
    def display_text(self) -> str:
        return normalize_math(self.text)


@dataclass(frozen=True)
class SearchSegment:
    text: str

    @property
    def results(self) -> list[SearchResult]:
        return parse_search_results(self.text)


@dataclass(frozen=True)
class PlaylistSegment:
    """Merged run of ``<music>`` blocks.

    ``text`` is the run's source with the music delimiters removed (track
    bodies plus the whitespace that separated them).
    """

    tracks: tuple[Track, ...]
    text: str = field(default="", compare=False)


Segment = Union[MarkdownSegment, ThinkingSegment, SearchSegment, PlaylistSegment]


@dataclass(frozen=True)
class _Block:
    tag: str
    body: str
    start: int
    end: int


def _scan_blocks(text: str) -> Iterator[_Block]:
    for match in _BLOCK_RE.finditer(text):
        yield _Block(
            tag=match.group(1),
            body=match.group(2),
            start=match.start(),
            end=match.end(),
        )


def _group_blocks(text: str) -> Iterator[list[_Block]]:
    """Yield blocks, merging whitespace-separated music runs into one group."""
    run: list[_Block] = []
    for block in _scan_blocks(text):
        if run:
            gap = text[run[-1].end : block.start]
            if block.tag == "music" and not gap.strip():
                run.append(block)
                continue
            yield run
            run = []
        if block.tag == "music":
            run.append(block)
        else:
            yield [block]
    if run:
        yield run


def _playlist_from_run(text: str, run: list[_Block]) -> PlaylistSegment:
    parts: list[str] = []
    for position, block in enumerate(run):
        if position:
            parts.append(text[run[position - 1].end : block.start])
        parts.append(block.body)
    tracks = tuple(parse_track(block.body) for block in run)
    return PlaylistSegment(tracks=tracks, text="".join(parts))


def segment(raw_text: str) -> list[Segment]:
    """Decompose one message into ordered segments.

    Never raises; malformed markup degrades to markdown text.
    """
    if not raw_text:
        return []
    segments: list[Segment] = []
    cursor = 0
    for group in _group_blocks(raw_text):
        start = group[0].start
        if start > cursor:
            segments.append(MarkdownSegment(raw_text[cursor:start]))
        head = group[0]
        if head.tag == "think":
            segments.append(ThinkingSegment(head.body))
        elif head.tag == "search":
            segments.append(SearchSegment(head.body))
        else:
            segments.append(_playlist_from_run(raw_text, group))
        cursor = group[-1].end
    if cursor < len(raw_text):
        segments.append(MarkdownSegment(raw_text[cursor:]))
    return segments


def strip_delimiters(raw_text: str) -> str:
    """Return ``raw_text`` with the delimiters of every recognised block removed."""
    return "".join(item.text for item in segment(raw_text))
