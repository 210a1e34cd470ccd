"""Tests for segment JSON encoding."""

from __future__ import annotations

import json
import logging

import pytest

from transcript_viewer.extractors import LyricLine, Track
from transcript_viewer.segment_codec import (
    PlaylistPayloadError,
    decode_playlist,
    encode_playlist,
    segment_from_dict,
    segments_from_list,
    segments_to_list,
)
from transcript_viewer.segmenter import (
    MarkdownSegment,
    PlaylistSegment,
    SearchSegment,
    ThinkingSegment,
    segment,
)


def test_segments_survive_encoding() -> None:
    text = (
        "<think>t</think>intro<search>1. [A](https://a)</search>"
        "<music>Name: Song\nLrc: [00:01.00]la</music>"
    )
    original = segment(text)
    encoded = json.loads(json.dumps(segments_to_list(original)))
    assert segments_from_list(encoded) == original


def test_playlist_encoding_shape() -> None:
    track = Track(name="Song", url="u", lrc=(LyricLine(1.5, "la"),))
    data = segments_to_list([PlaylistSegment(tracks=(track,), text="Name: Song")])
    assert data[0]["kind"] == "playlist"
    assert json.loads(data[0]["tracks"]) == [
        {
            "name": "Song",
            "artist": "",
            "album": "",
            "url": "u",
            "pic": "",
            "lrc": [{"time": 1.5, "text": "la"}],
        }
    ]


def test_decode_playlist_rejects_malformed_payloads() -> None:
    with pytest.raises(PlaylistPayloadError):
        decode_playlist("not json")
    with pytest.raises(PlaylistPayloadError):
        decode_playlist('{"name": "x"}')
    with pytest.raises(PlaylistPayloadError):
        decode_playlist('[{"name": 3}]')
    with pytest.raises(PlaylistPayloadError):
        decode_playlist('[{"lrc": [{"time": true, "text": "x"}]}]')
    with pytest.raises(PlaylistPayloadError):
        decode_playlist('[{"lrc": [{"time": -1, "text": "x"}]}]')


def test_decode_playlist_defaults_missing_fields() -> None:
    assert decode_playlist(encode_playlist([Track(name="A")])) == (Track(name="A"),)
    assert decode_playlist('[{}]') == (Track(),)


def test_malformed_playlist_segment_is_dropped(caplog) -> None:
    caplog.set_level(logging.WARNING)
    raw = [
        {"kind": "markdown", "text": "a"},
        {"kind": "playlist", "text": "", "tracks": "[1, 2]"},
        {"kind": "thinking", "text": "b"},
    ]
    assert segments_from_list(raw) == [MarkdownSegment("a"), ThinkingSegment("b")]
    assert "malformed payload" in caplog.text


def test_unknown_kind_and_bad_entries_are_dropped() -> None:
    assert segment_from_dict({"kind": "video", "text": "x"}) is None
    assert segment_from_dict("markdown") is None
    assert segment_from_dict({"kind": "search", "text": 7}) == SearchSegment("")
    assert segments_from_list({"kind": "markdown"}) == []
