from __future__ import annotations

from typing import Sequence

from transcript_viewer.extractors import Track


def format_time(seconds: float) -> str:
    """Format seconds as ``m:ss``; invalid values render as ``0:00``."""
    if seconds is None or seconds != seconds or seconds < 0:
        return "0:00"
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def format_progress(progress: float, duration: float) -> str:
    return f"{format_time(progress)} / {format_time(duration)}"


def track_subtitle(track: Track) -> str:
    parts = [part for part in (track.artist, track.album) if part]
    return " - ".join(parts)


def search_summary(count: int) -> str:
    noun = "page" if count == 1 else "pages"
    return f"{count} web {noun} found"


def playlist_summary(tracks: Sequence[Track]) -> str:
    noun = "track" if len(tracks) == 1 else "tracks"
    return f"Playlist · {len(tracks)} {noun}"


def ratio_from_click(x: int, width: int) -> float:
    """Map a click x position to a 0..1 ratio."""
    if width <= 1:
        return 0.0
    clamped = max(0, min(x, width - 1))
    return clamped / float(width - 1)


def render_progress_bar(width: int, ratio: float) -> str:
    if width <= 2:
        return "=" * max(0, width)
    inner = width - 2
    filled = int(max(0.0, min(1.0, ratio)) * inner)
    return "[" + "=" * filled + "-" * (inner - filled) + "]"
