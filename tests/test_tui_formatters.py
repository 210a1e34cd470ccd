from __future__ import annotations

import pytest

from transcript_viewer.extractors import Track
from transcript_viewer.ui.tui_formatters import (
    format_progress,
    format_time,
    playlist_summary,
    ratio_from_click,
    render_progress_bar,
    search_summary,
    track_subtitle,
)


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "0:00"), (59.9, "0:59"), (61, "1:01"), (3600, "60:00"), (-1, "0:00")],
)
def test_format_time(seconds: float, expected: str) -> None:
    assert format_time(seconds) == expected


def test_format_time_nan() -> None:
    assert format_time(float("nan")) == "0:00"


def test_format_progress() -> None:
    assert format_progress(65, 200) == "1:05 / 3:20"


def test_track_subtitle() -> None:
    assert track_subtitle(Track(artist="Band", album="LP")) == "Band - LP"
    assert track_subtitle(Track(album="LP")) == "LP"
    assert track_subtitle(Track()) == ""


def test_search_summary_pluralizes() -> None:
    assert search_summary(1) == "1 web page found"
    assert search_summary(3) == "3 web pages found"


def test_playlist_summary() -> None:
    assert playlist_summary([Track()]) == "Playlist · 1 track"
    assert playlist_summary([Track(), Track()]) == "Playlist · 2 tracks"


def test_ratio_from_click_clamps() -> None:
    assert ratio_from_click(0, 11) == 0.0
    assert ratio_from_click(5, 11) == 0.5
    assert ratio_from_click(50, 11) == 1.0
    assert ratio_from_click(3, 1) == 0.0


def test_render_progress_bar() -> None:
    assert render_progress_bar(12, 0.5) == "[=====-----]"
    assert render_progress_bar(12, 2.0) == "[==========]"
    assert render_progress_bar(2, 0.5) == "=="
    assert render_progress_bar(0, 0.5) == ""
