"""File exports: table CSV, preview HTML source and track asset names."""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
import re
from typing import Optional, Sequence

import requests

from transcript_viewer.extractors import Track

logger = logging.getLogger(__name__)

TABLE_CSV_NAME = "table_data.csv"
HTML_SOURCE_NAME = "index.html"
ASSET_EXTENSION = ".mp3"

DOWNLOAD_TIMEOUT_SECONDS = 30
DOWNLOAD_CHUNK_BYTES = 64 * 1024
USER_AGENT = "transcript-viewer/0.1"

_UNSAFE_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')


def table_to_csv(rows: Sequence[Sequence[str]]) -> str:
    """Render rows as CSV, quoting cells with commas, quotes or newlines."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def asset_filename(track: Track) -> str:
    """File name used when downloading a track's audio."""
    stem = _UNSAFE_FILENAME_RE.sub("_", track.name).strip(" .")
    return f"{stem or 'track'}{ASSET_EXTENSION}"


def unique_path(directory: Path, name: str) -> Path:
    """Return ``directory/name``, adding `` (n)`` before the suffix if taken."""
    candidate = directory / name
    stem = candidate.stem
    suffix = candidate.suffix
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem} ({counter}){suffix}"
        counter += 1
    return candidate


def _write_text(directory: Path, name: str, text: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    dest = unique_path(directory, name)
    dest.write_text(text, encoding="utf-8", newline="")
    logger.info("Exported %s", dest)
    return dest


def export_table_csv(rows: Sequence[Sequence[str]], directory: Path) -> Path:
    return _write_text(directory, TABLE_CSV_NAME, table_to_csv(rows))


def export_html_source(source: str, directory: Path) -> Path:
    return _write_text(directory, HTML_SOURCE_NAME, source)


def download_asset(
    track: Track,
    directory: Path,
    *,
    session: Optional[requests.Session] = None,
) -> Path:
    """Fetch a track's audio into ``directory`` as ``<name>.mp3``.

    A caller-supplied ``session`` is used as is and left open.
    """
    if not track.url:
        raise ValueError("Track has no media URL")
    directory.mkdir(parents=True, exist_ok=True)
    dest = unique_path(directory, asset_filename(track))
    if session is None:
        with requests.Session() as owned:
            _stream_to_file(owned, track.url, dest)
    else:
        _stream_to_file(session, track.url, dest)
    logger.info("Downloaded %s to %s", track.url, dest)
    return dest


def _stream_to_file(http: requests.Session, url: str, dest: Path) -> None:
    partial = dest.with_name(dest.name + ".part")
    try:
        with http.get(
            url,
            headers={"User-Agent": USER_AGENT},
            stream=True,
            timeout=DOWNLOAD_TIMEOUT_SECONDS,
        ) as response:
            response.raise_for_status()
            with partial.open("wb") as handle:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                    if chunk:
                        handle.write(chunk)
        partial.replace(dest)
    finally:
        partial.unlink(missing_ok=True)
