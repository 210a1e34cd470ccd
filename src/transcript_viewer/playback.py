"""Audio playback controller with lyric synchronisation.

States are ``STOPPED``, ``PLAYING`` and ``PAUSED``. The controller owns the
single media engine: it is created on the first ``play`` and released on
``close``. Media notifications (progress, metadata, end of track) arrive as
bus events published by ``MediaEventPump``; every handler overwrites state
from its payload, so late events interleaved with user seeks simply win or
lose on arrival order.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum
import logging
import time
from typing import Callable, Optional, Protocol, Sequence

from transcript_viewer.event_bus import EventBus, SubscriptionScope
from transcript_viewer.extractors import LyricLine, Track

logger = logging.getLogger(__name__)

MEDIA_PROGRESS = "media.progress"
MEDIA_METADATA = "media.metadata"
MEDIA_ENDED = "media.ended"
PLAYBACK_CHANGED = "playback.changed"
PLAYBACK_ERROR = "playback.error"

USER_SCROLL_HOLD_SECONDS = 5.0


class MediaEngine(Protocol):
    def load(self, url: str) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def set_volume(self, volume: int) -> None: ...

    def set_time_ms(self, position_ms: int) -> bool: ...

    def get_position_ms(self) -> Optional[int]: ...

    def get_length_ms(self) -> Optional[int]: ...

    def consume_end_reached(self) -> bool: ...

    def release(self) -> None: ...


class PlaybackStatus(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class PlaybackState:
    current_track: Optional[Track] = None
    playlist: tuple[Track, ...] = ()
    index: int = -1
    progress_seconds: float = 0.0
    duration_seconds: float = 0.0
    status: PlaybackStatus = PlaybackStatus.STOPPED
    active_lyric_index: int = -1
    show_lyrics: bool = False
    user_scroll_suppress_until: float = 0.0

    @property
    def is_playing(self) -> bool:
        return self.status is PlaybackStatus.PLAYING

    @property
    def lyrics(self) -> tuple[LyricLine, ...]:
        if self.current_track is None:
            return ()
        return self.current_track.lrc


def active_lyric_index(lyrics: Sequence[LyricLine], progress: float) -> int:
    """Greatest index whose time is not after ``progress``, or -1."""
    times = [line.time for line in lyrics]
    return bisect_right(times, progress) - 1


def _index_of(track: Track, playlist: Sequence[Track]) -> int:
    for position, candidate in enumerate(playlist):
        if candidate is track:
            return position
    return -1


class AudioController:
    """Owns playback state for the player panel."""

    def __init__(
        self,
        engine_factory: Callable[[], MediaEngine],
        *,
        bus: Optional[EventBus] = None,
        now: Callable[[], float] = time.monotonic,
        volume: int = 100,
    ) -> None:
        self._engine_factory = engine_factory
        self.bus = bus or EventBus()
        self._now = now
        self._volume = volume
        self._engine: Optional[MediaEngine] = None
        self.state = PlaybackState()
        self._scope = SubscriptionScope(self.bus)
        self._subscribe_media_events()

    def _subscribe_media_events(self) -> None:
        self._scope.subscribe(MEDIA_PROGRESS, self.on_progress)
        self._scope.subscribe(MEDIA_METADATA, self.on_metadata)
        self._scope.subscribe(MEDIA_ENDED, self.on_track_ended)

    @property
    def engine(self) -> Optional[MediaEngine]:
        return self._engine

    # --- Transport ---
    def play(self, track: Track, playlist: Sequence[Track]) -> None:
        """Make ``track`` current within ``playlist`` and start it."""
        tracks = tuple(playlist)
        index = _index_of(track, tracks)
        if index == -1:
            logger.warning("Track %r not in playlist; playing it alone", track.name)
            tracks = (track,)
            index = 0
        if self._scope.is_empty:
            self._subscribe_media_events()
        self.state.playlist = tracks
        self._start(index)

    def toggle_play(self) -> None:
        state = self.state
        if state.current_track is None or self._engine is None:
            return
        if state.status is PlaybackStatus.PLAYING:
            if self._call_engine("pause", self._engine.pause):
                state.status = PlaybackStatus.PAUSED
                logger.info("Playback paused")
        else:
            if self._call_engine("play", self._engine.play):
                state.status = PlaybackStatus.PLAYING
                logger.info("Playback resumed")
        self._changed()

    def seek(self, seconds: float) -> None:
        """Jump to ``seconds``, overriding any in-flight progress update."""
        state = self.state
        if state.current_track is None:
            return
        target = max(0.0, float(seconds))
        if state.duration_seconds > 0:
            target = min(target, state.duration_seconds)
        if self._engine is not None:
            self._engine.set_time_ms(int(target * 1000))
        self._set_progress(target)

    def seek_to_lyric(self, index: int) -> None:
        lyrics = self.state.lyrics
        if not 0 <= index < len(lyrics):
            return
        self.seek(lyrics[index].time)
        if not self.state.is_playing:
            self.toggle_play()

    def next(self) -> None:
        self._step(1)

    def prev(self) -> None:
        self._step(-1)

    def _step(self, delta: int) -> None:
        state = self.state
        count = len(state.playlist)
        if state.current_track is None or count == 0:
            return
        self._start((state.index + delta + count) % count)

    def close(self) -> None:
        """Stop playback, release the engine and reset to stopped."""
        self._scope.close()
        engine, self._engine = self._engine, None
        if engine is not None:
            self._call_engine("stop", engine.stop)
            self._call_engine("release", engine.release)
        show_lyrics = self.state.show_lyrics
        self.state = PlaybackState(show_lyrics=show_lyrics)
        logger.info("Player closed")
        self._changed()

    def pause_for_close(self) -> None:
        if self.state.is_playing and self._engine is not None:
            self._call_engine("pause", self._engine.pause)
            self.state.status = PlaybackStatus.PAUSED
            self._changed()

    def set_volume(self, volume: int) -> None:
        self._volume = max(0, min(100, int(volume)))
        if self._engine is not None:
            self._call_engine("volume", self._engine_set_volume)
        self._changed()

    @property
    def volume(self) -> int:
        return self._volume

    # --- Media notifications ---
    def on_progress(self, seconds: float) -> None:
        if self.state.current_track is None or seconds is None:
            return
        self._set_progress(max(0.0, float(seconds)))

    def on_metadata(self, duration: float) -> None:
        if self.state.current_track is None or duration is None:
            return
        self.state.duration_seconds = max(0.0, float(duration))
        self._changed()

    def on_track_ended(self, payload: object = None) -> None:
        del payload
        logger.info("Track ended")
        self.next()

    # --- Lyrics view ---
    def toggle_lyrics(self) -> bool:
        self.state.show_lyrics = not self.state.show_lyrics
        self._changed()
        return self.state.show_lyrics

    def notify_user_scroll(self) -> None:
        self.state.user_scroll_suppress_until = self._now() + USER_SCROLL_HOLD_SECONDS

    def should_auto_scroll(self) -> bool:
        state = self.state
        return (
            state.show_lyrics
            and state.active_lyric_index != -1
            and self._now() >= state.user_scroll_suppress_until
        )

    # --- Internals ---
    def _start(self, index: int) -> None:
        state = self.state
        track = state.playlist[index]
        state.index = index
        state.current_track = track
        state.progress_seconds = 0.0
        state.duration_seconds = 0.0
        state.active_lyric_index = -1
        state.status = PlaybackStatus.PAUSED
        logger.info("Track change index=%s url=%s", index, track.url)
        engine = self._ensure_engine()
        if engine is not None:
            loaded = self._call_engine("load", lambda: engine.load(track.url))
            if loaded and self._call_engine("play", engine.play):
                state.status = PlaybackStatus.PLAYING
        self._recompute_lyric()
        self._changed()

    def _ensure_engine(self) -> Optional[MediaEngine]:
        if self._engine is not None:
            return self._engine
        try:
            self._engine = self._engine_factory()
        except Exception as exc:
            logger.exception("Failed to create media engine")
            self.bus.publish(PLAYBACK_ERROR, f"Audio unavailable: {exc}")
            return None
        self._call_engine("volume", self._engine_set_volume)
        return self._engine

    def _engine_set_volume(self) -> None:
        if self._engine is not None:
            self._engine.set_volume(self._volume)

    def _call_engine(self, label: str, action: Callable[[], object]) -> bool:
        try:
            action()
        except Exception as exc:
            logger.exception("Media %s failed", label)
            self.bus.publish(PLAYBACK_ERROR, f"Playback {label} failed: {exc}")
            return False
        return True

    def _set_progress(self, seconds: float) -> None:
        self.state.progress_seconds = seconds
        self._recompute_lyric()
        self._changed()

    def _recompute_lyric(self) -> None:
        state = self.state
        state.active_lyric_index = active_lyric_index(
            state.lyrics, state.progress_seconds
        )

    def _changed(self) -> None:
        self.bus.publish(PLAYBACK_CHANGED, self.state)


class MediaEventPump:
    """Polls the controller's engine and publishes media events on its bus."""

    def __init__(self, controller: AudioController) -> None:
        self._controller = controller
        self._last_progress: Optional[float] = None
        self._last_duration: Optional[float] = None

    def poll(self) -> None:
        controller = self._controller
        engine = controller.engine
        if engine is None or controller.state.current_track is None:
            self._last_progress = None
            self._last_duration = None
            return
        bus = controller.bus
        if engine.consume_end_reached():
            self._last_progress = None
            self._last_duration = None
            bus.publish(MEDIA_ENDED, None)
            return
        length_ms = engine.get_length_ms()
        if length_ms is not None:
            duration = length_ms / 1000.0
            if duration != self._last_duration:
                self._last_duration = duration
                bus.publish(MEDIA_METADATA, duration)
        if not controller.state.is_playing:
            return
        position_ms = engine.get_position_ms()
        if position_ms is not None:
            progress = position_ms / 1000.0
            if progress != self._last_progress:
                self._last_progress = progress
                bus.publish(MEDIA_PROGRESS, progress)
