"""JSON encoding for segment lists.

Used by ``tview --dump-segments`` and by the conversation loader when a record
already carries segments. Decoding is forgiving: an unknown segment kind or a
malformed playlist payload drops that one segment and logs a diagnostic.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from transcript_viewer.extractors import LyricLine, Track
from transcript_viewer.segmenter import (
    MarkdownSegment,
    PlaylistSegment,
    SearchSegment,
    Segment,
    ThinkingSegment,
)

logger = logging.getLogger(__name__)

_TEXT_KINDS = {
    "markdown": MarkdownSegment,
    "thinking": ThinkingSegment,
    "search": SearchSegment,
}


class PlaylistPayloadError(ValueError):
    """Raised internally when a serialized playlist cannot be decoded."""


def _track_to_dict(track: Track) -> dict[str, Any]:
    return {
        "name": track.name,
        "artist": track.artist,
        "album": track.album,
        "url": track.url,
        "pic": track.pic,
        "lrc": [{"time": line.time, "text": line.text} for line in track.lrc],
    }


def encode_playlist(tracks: Iterable[Track]) -> str:
    return json.dumps([_track_to_dict(track) for track in tracks], ensure_ascii=False)


def _track_from_dict(raw: object) -> Track:
    if not isinstance(raw, dict):
        raise PlaylistPayloadError(f"track entry is {type(raw).__name__}, not object")
    values: dict[str, str] = {}
    for key in ("name", "artist", "album", "url", "pic"):
        value = raw.get(key, "")
        if not isinstance(value, str):
            raise PlaylistPayloadError(f"track field {key!r} is not a string")
        values[key] = value
    lrc_raw = raw.get("lrc", [])
    if not isinstance(lrc_raw, list):
        raise PlaylistPayloadError("track lrc is not a list")
    lines: list[LyricLine] = []
    for item in lrc_raw:
        if not isinstance(item, dict):
            raise PlaylistPayloadError("lyric entry is not an object")
        time_value = item.get("time")
        text = item.get("text")
        if isinstance(time_value, bool) or not isinstance(time_value, (int, float)):
            raise PlaylistPayloadError("lyric time is not a number")
        if not isinstance(text, str) or time_value < 0:
            raise PlaylistPayloadError("lyric entry is invalid")
        lines.append(LyricLine(time=float(time_value), text=text))
    return Track(lrc=tuple(lines), **values)


def decode_playlist(payload: str) -> tuple[Track, ...]:
    """Decode a serialized track list, raising ``PlaylistPayloadError``."""
    try:
        raw = json.loads(payload)
    except (TypeError, json.JSONDecodeError) as exc:
        raise PlaylistPayloadError(str(exc)) from exc
    if not isinstance(raw, list):
        raise PlaylistPayloadError("playlist payload is not a list")
    return tuple(_track_from_dict(item) for item in raw)


def segment_to_dict(item: Segment) -> dict[str, Any]:
    if isinstance(item, PlaylistSegment):
        return {
            "kind": "playlist",
            "text": item.text,
            "tracks": encode_playlist(item.tracks),
        }
    if isinstance(item, ThinkingSegment):
        return {"kind": "thinking", "text": item.text}
    if isinstance(item, SearchSegment):
        return {"kind": "search", "text": item.text}
    return {"kind": "markdown", "text": item.text}


def segment_from_dict(raw: object) -> Optional[Segment]:
    if not isinstance(raw, dict):
        logger.warning("Dropping segment entry of type %s", type(raw).__name__)
        return None
    kind = raw.get("kind")
    text = raw.get("text", "")
    if not isinstance(text, str):
        text = ""
    if kind == "playlist":
        try:
            tracks = decode_playlist(raw.get("tracks", ""))
        except PlaylistPayloadError as exc:
            logger.warning("Dropping playlist segment with malformed payload: %s", exc)
            return None
        return PlaylistSegment(tracks=tracks, text=text)
    factory = _TEXT_KINDS.get(kind) if isinstance(kind, str) else None
    if factory is None:
        logger.warning("Dropping segment with unknown kind %r", kind)
        return None
    return factory(text)


def segments_to_list(segments: Iterable[Segment]) -> list[dict[str, Any]]:
    return [segment_to_dict(item) for item in segments]


def segments_from_list(raw: object) -> list[Segment]:
    if not isinstance(raw, list):
        logger.warning("Segment list is %s, not a list", type(raw).__name__)
        return []
    segments: list[Segment] = []
    for entry in raw:
        decoded = segment_from_dict(entry)
        if decoded is not None:
            segments.append(decoded)
    return segments
