"""Tests for block body extractors."""

from __future__ import annotations

import pytest

from transcript_viewer.extractors import (
    LyricLine,
    Track,
    parse_lrc,
    parse_search_results,
    parse_timestamp,
    parse_track,
    parse_web_analysis_header,
)


def test_parse_timestamp_fraction_digits() -> None:
    assert parse_timestamp("01", "02", "50") == pytest.approx(62.5)
    assert parse_timestamp("00", "03", "250") == pytest.approx(3.25)


def test_parse_lrc_keeps_source_order_and_drops_untimed() -> None:
    body = "[00:01.00]first\nno tag here\n[00:00.50]earlier\n[00:02.00]   \n"
    lines = parse_lrc(body)
    assert lines == (
        LyricLine(time=1.0, text="first"),
        LyricLine(time=0.5, text="earlier"),
    )


def test_parse_track_fields_and_lyrics() -> None:
    body = (
        "\nName: Song A\nArtist: Someone\nAlbum: Record\n"
        "URL: `https://example.com/a.mp3`\nPic: https://example.com/a.jpg\n"
        "Lrc: [00:01.00]Hello\n[00:02.500]World\n"
    )
    track = parse_track(body)
    assert track.name == "Song A"
    assert track.artist == "Someone"
    assert track.album == "Record"
    assert track.url == "https://example.com/a.mp3"
    assert track.pic == "https://example.com/a.jpg"
    assert [line.text for line in track.lrc] == ["Hello", "World"]
    assert track.lrc[1].time == pytest.approx(2.5)


def test_parse_track_missing_fields_are_empty() -> None:
    track = parse_track("Name: Only a name")
    assert track == Track(name="Only a name")


def test_parse_track_uses_first_matching_line() -> None:
    track = parse_track("Name: First\nName: Second")
    assert track.name == "First"


def test_track_display_title() -> None:
    assert Track(name="Song", artist="Band").display_title == "Band – Song"
    assert Track(artist="Band").display_title == "Band"
    assert Track(url="https://x/y.mp3").display_title == "https://x/y.mp3"
    assert Track().display_title == "Untitled"


def test_parse_search_results_link_forms() -> None:
    body = (
        "1. [Example](https://example.com)\n"
        "\n"
        "2. `https://plain.example.org`\n"
        "3. just some text\n"
        "not a result\n"
    )
    results = parse_search_results(body)
    assert [(r.index, r.title, r.url) for r in results] == [
        (1, "Example", "https://example.com"),
        (2, "https://plain.example.org", "https://plain.example.org"),
        (3, "just some text", "just some text"),
    ]


def test_parse_search_results_empty_body() -> None:
    assert parse_search_results("") == []
    assert parse_search_results("\n\n") == []


def test_parse_web_analysis_header() -> None:
    body = (
        "<!-- type: web_analysis url:https://example.com/page "
        "web_title:Example Page -->\n<p>Body</p>"
    )
    header = parse_web_analysis_header(body)
    assert header is not None
    assert header.url == "https://example.com/page"
    assert header.title == "Example Page"
    assert header.body == "<p>Body</p>"


def test_parse_web_analysis_header_absent() -> None:
    assert parse_web_analysis_header("<p>no header</p>") is None
