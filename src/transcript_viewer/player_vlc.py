"""VLC-backed media engine for track URLs."""

from __future__ import annotations

from typing import Any, Optional, cast
import logging
import threading

logger = logging.getLogger(__name__)

vlc: Any | None = None
_VLC_IMPORT_ERROR: Optional[Exception] = None


def _load_vlc() -> None:
    global vlc
    global _VLC_IMPORT_ERROR
    if vlc is not None or _VLC_IMPORT_ERROR is not None:
        return
    try:
        import vlc as vlc_module  # type: ignore
    except Exception as exc:  # pragma: no cover - platform-dependent import
        vlc = None
        _VLC_IMPORT_ERROR = exc
    else:
        vlc = cast(Any, vlc_module)
        _VLC_IMPORT_ERROR = None


class VlcMediaEngine:
    """Single media-playback resource driven by the audio controller.

    End-of-track is reported from VLC's event thread and only latched here;
    the controller consumes it on its own polling tick.
    """

    def __init__(self) -> None:
        _load_vlc()
        if vlc is None:
            raise RuntimeError(
                "VLC backend is unavailable. Install VLC and the python-vlc package."
            ) from _VLC_IMPORT_ERROR
        self._instance = cast(Any, vlc).Instance("--no-video")
        self._player = self._instance.media_player_new()
        self._current_url: Optional[str] = None
        self._end_reached = threading.Event()
        self._released = False
        self._attach_end_reached_event()

    def _attach_end_reached_event(self) -> None:
        if vlc is None:
            return
        vlc_module = cast(Any, vlc)
        try:
            event_manager = self._player.event_manager()
            event_manager.event_attach(
                vlc_module.EventType.MediaPlayerEndReached, self._handle_end_reached
            )
        except Exception:
            logger.debug("VLC end-reached event unavailable", exc_info=True)

    def _handle_end_reached(self, event: object) -> None:
        del event
        self._end_reached.set()

    @property
    def current_url(self) -> Optional[str]:
        return self._current_url

    def consume_end_reached(self) -> bool:
        """Return True once per end-of-track notification."""
        if self._end_reached.is_set():
            self._end_reached.clear()
            return True
        return False

    def signal_end_reached(self) -> None:
        self._end_reached.set()

    def load(self, url: str) -> None:
        if not url:
            raise ValueError("Track has no media URL")
        media = self._instance.media_new(url)
        self._player.set_media(media)
        self._current_url = url
        self._end_reached.clear()

    def play(self) -> None:
        if self._player.play() == -1:
            raise RuntimeError(f"VLC could not play {self._current_url}")

    def pause(self) -> None:
        self._player.set_pause(1)

    def stop(self) -> None:
        self._player.stop()

    def set_volume(self, volume: int) -> None:
        self._player.audio_set_volume(max(0, min(100, int(volume))))

    def get_position_ms(self) -> Optional[int]:
        try:
            position = self._player.get_time()
        except Exception:
            return None
        if position is None or position < 0:
            return None
        return int(position)

    def get_length_ms(self) -> Optional[int]:
        try:
            length = self._player.get_length()
        except Exception:
            return None
        if length is None or length <= 0:
            return None
        return int(length)

    def set_time_ms(self, position_ms: int) -> bool:
        """Seek to an absolute position, returning success."""
        try:
            self._player.set_time(max(0, int(position_ms)))
        except Exception:
            return False
        return True

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            self._player.stop()
            self._player.release()
            self._instance.release()
        except Exception:
            logger.exception("Failed to release VLC resources")