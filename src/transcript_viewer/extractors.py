"""Extractors for the bodies of tagged message blocks.

Grammar handled here (fixed vocabulary, not configurable):

- ``<music>`` body: ``Name:``, ``Artist:``, ``Album:``, ``URL:``, ``Pic:`` take the
  rest of the first line starting with the key. ``Lrc:`` takes everything after
  the first marker up to the end of the body.
- Lyric lines: ``[mm:ss.ff]text`` with 2-3 fractional digits.
- ``<search>`` body: one ``<digits>. <entry>`` per line, where the entry is a
  markdown link, a backtick-quoted URL, or a bare string.
- Web-analysis header: ``<!-- type: web_analysis url:<U> web_title:<T> -->``.

Every function here is total: malformed input yields empty values, never an
exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Optional

TRACK_FIELDS = ("Name", "Artist", "Album", "URL", "Pic")

_LRC_MARKER = "Lrc:"
_TIMESTAMP_RE = re.compile(r"\[(\d{2}):(\d{2})\.(\d{2,3})\]")
_ORDINAL_RE = re.compile(r"^\s*(\d+)\.\s*")
_MD_LINK_RE = re.compile(r"^\[(.*?)\]\((.*?)\)")
_BACKTICK_URL_RE = re.compile(r"^`([^`]+)`")
WEB_ANALYSIS_HEADER_RE = re.compile(
    r"<!--\s*type:\s*web_analysis\s+url:\s*(\S*)\s+web_title:\s*(.*?)\s*-->",
    re.DOTALL,
)


@dataclass(frozen=True)
class LyricLine:
    time: float
    text: str


@dataclass(frozen=True)
class Track:
    """A single playable song parsed from a ``<music>`` block."""

    name: str = ""
    artist: str = ""
    album: str = ""
    url: str = ""
    pic: str = ""
    lrc: tuple[LyricLine, ...] = field(default_factory=tuple)

    @property
    def display_title(self) -> str:
        if self.artist:
            return f"{self.artist} – {self.name}" if self.name else self.artist
        return self.name or self.url or "Untitled"


@dataclass(frozen=True)
class SearchResult:
    index: int
    title: str
    url: str


@dataclass(frozen=True)
class WebAnalysisHeader:
    url: str
    title: str
    body: str


def _field_value(body: str, key: str) -> str:
    pattern = re.compile(rf"^[ \t]*{re.escape(key)}:(.*)$", re.MULTILINE)
    match = pattern.search(body)
    if not match:
        return ""
    return match.group(1).strip()


def _unwrap_backticks(value: str) -> str:
    if len(value) >= 2 and value.startswith("`") and value.endswith("`"):
        return value[1:-1].strip()
    return value


def parse_timestamp(tag_minutes: str, tag_seconds: str, tag_fraction: str) -> float:
    """Return seconds for the ``mm``, ``ss`` and fractional digit groups."""
    fraction = int(tag_fraction) / (10 ** len(tag_fraction))
    return int(tag_minutes) * 60 + int(tag_seconds) + fraction


def parse_lrc(text: str) -> tuple[LyricLine, ...]:
    """Parse an LRC body into lyric lines, keeping source order.

    Lines without a timestamp tag are dropped, as are timestamped lines whose
    remaining text is blank.
    """
    lines: list[LyricLine] = []
    for raw in text.splitlines():
        match = _TIMESTAMP_RE.search(raw)
        if not match:
            continue
        remainder = (raw[: match.start()] + raw[match.end() :]).strip()
        if not remainder:
            continue
        lines.append(
            LyricLine(
                time=parse_timestamp(match.group(1), match.group(2), match.group(3)),
                text=remainder,
            )
        )
    return tuple(lines)


def parse_track(body: str) -> Track:
    """Build a track from the inner text of one ``<music>`` block."""
    values = {key: _field_value(body, key) for key in TRACK_FIELDS}
    marker = body.find(_LRC_MARKER)
    lrc_body = body[marker + len(_LRC_MARKER) :] if marker != -1 else ""
    return Track(
        name=values["Name"],
        artist=values["Artist"],
        album=values["Album"],
        url=_unwrap_backticks(values["URL"]),
        pic=_unwrap_backticks(values["Pic"]),
        lrc=parse_lrc(lrc_body),
    )


def _parse_search_line(line: str) -> Optional[SearchResult]:
    ordinal = _ORDINAL_RE.match(line)
    if not ordinal:
        return None
    index = int(ordinal.group(1))
    rest = line[ordinal.end() :].strip()
    link = _MD_LINK_RE.match(rest)
    if link:
        return SearchResult(index=index, title=link.group(1), url=link.group(2))
    quoted = _BACKTICK_URL_RE.match(rest)
    if quoted:
        return SearchResult(index=index, title=quoted.group(1), url=quoted.group(1))
    return SearchResult(index=index, title=rest, url=rest)


def parse_search_results(body: str) -> list[SearchResult]:
    results: list[SearchResult] = []
    for line in body.split("\n"):
        if not line.strip():
            continue
        result = _parse_search_line(line)
        if result is not None:
            results.append(result)
    return results


def parse_web_analysis_header(body: str) -> Optional[WebAnalysisHeader]:
    """Split a web-analysis header comment from the document body."""
    match = WEB_ANALYSIS_HEADER_RE.search(body)
    if not match:
        return None
    remaining = (body[: match.start()] + body[match.end() :]).strip()
    return WebAnalysisHeader(
        url=match.group(1).strip(),
        title=match.group(2).strip(),
        body=remaining,
    )
