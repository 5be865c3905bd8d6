"""In-memory pool of playback slots.

All reads and writes go through one lock so capacity checks and state
changes see a consistent table. Callers get copies; only the pool mutates
its records.
"""
import dataclasses
import logging
import os
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from errors import NotFoundError, TrackStateError
from models import Track, TrackState
from moods import DEFAULT_MOOD, get_mood_filters

logger = logging.getLogger(__name__)

MAX_TRACKS = int(os.environ.get("MAX_TRACKS", "4"))
TRACK_RECLAIM_AFTER_S = float(os.environ.get("TRACK_RECLAIM_AFTER_S", "300"))
DEFAULT_DURATION_S = 45

# The usual lifecycle; other edges are allowed but logged
_EXPECTED_EDGES = {
    (TrackState.GENERATING, TrackState.READY),
    (TrackState.READY, TrackState.PLAYING),
    (TrackState.PLAYING, TrackState.FADING),
    (TrackState.FADING, TrackState.EXPIRED),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _snapshot(track: Track) -> Track:
    return dataclasses.replace(track, metadata=dict(track.metadata))


def clamp_volume(volume: float) -> float:
    return max(0.0, min(1.0, float(volume)))


class TrackPool:
    def __init__(
        self,
        max_tracks: int = MAX_TRACKS,
        reclaim_after_s: float = TRACK_RECLAIM_AFTER_S,
        now: Callable[[], datetime] = _now,
    ):
        self.max_tracks = max_tracks
        self.reclaim_after = timedelta(seconds=reclaim_after_s)
        self._now = now
        self._tracks: dict[str, Track] = {}
        self._lock = threading.Lock()

    def create_track(
        self,
        prompt: str = "",
        mood: str = "",
        volume: float = 1.0,
        duration: float = DEFAULT_DURATION_S,
        metadata: dict | None = None,
    ) -> Track:
        """Add a track in the generating state. Does not check capacity."""
        with self._lock:
            return self._create(prompt, mood, volume, duration, metadata)

    def reserve_track(self, **params) -> Track | None:
        """Create a track only if there is room; None when the pool is full."""
        with self._lock:
            if self._active_count() >= self.max_tracks:
                logger.info(f"Track pool full ({self.max_tracks}), refusing new track")
                return None
            return self._create(**params)

    def can_add_track(self) -> bool:
        with self._lock:
            return self._active_count() < self.max_tracks

    def set_state(self, track_id: str, state: TrackState | str) -> bool:
        """Move a track to `state`. False if the id is unknown.

        Raises ValueError for a name that is not a TrackState, and
        TrackStateError when asked to move an expired track anywhere else.
        """
        with self._lock:
            track = self._tracks.get(track_id)
            if not track:
                return False
            state = TrackState(state)
            if track.state is TrackState.EXPIRED and state is not TrackState.EXPIRED:
                raise TrackStateError(f"Track {track_id} is expired and cannot move to {state.value}")
            if track.state is not state and (track.state, state) not in _EXPECTED_EDGES:
                logger.warning(f"Track {track_id}: unusual transition {track.state.value} -> {state.value}")

            now = self._now()
            track.state = state
            if state is TrackState.PLAYING and track.started_at is None:
                track.started_at = now
            if state is TrackState.EXPIRED and track.expired_at is None:
                track.expired_at = now
            return True

    def set_volume(self, track_id: str, volume: float) -> bool:
        with self._lock:
            track = self._tracks.get(track_id)
            if not track:
                return False
            track.volume = clamp_volume(volume)
            return True

    def get(self, track_id: str) -> Track | None:
        with self._lock:
            track = self._tracks.get(track_id)
            return _snapshot(track) if track else None

    def require(self, track_id: str) -> Track:
        track = self.get(track_id)
        if track is None:
            raise NotFoundError(track_id)
        return track

    def list_tracks(self, state: TrackState | str | None = None) -> list[Track]:
        wanted = TrackState(state) if state else None
        with self._lock:
            return [
                _snapshot(t) for t in self._tracks.values() if wanted is None or t.state is wanted
            ]

    def list_active(self) -> list[Track]:
        with self._lock:
            return [_snapshot(t) for t in self._tracks.values() if t.state is not TrackState.EXPIRED]

    def remove(self, track_id: str) -> bool:
        with self._lock:
            return self._tracks.pop(track_id, None) is not None

    def status(self) -> dict:
        with self._lock:
            by_state = {s.value: 0 for s in TrackState}
            for t in self._tracks.values():
                by_state[t.state.value] += 1
            active = len(self._tracks) - by_state[TrackState.EXPIRED.value]
            return {
                "total_tracks": len(self._tracks),
                "active_tracks": active,
                "max_tracks": self.max_tracks,
                "can_add_track": active < self.max_tracks,
                "tracks_by_state": by_state,
            }

    def reclaim_expired(self) -> int:
        with self._lock:
            return self._reclaim()

    def _create(self, prompt="", mood="", volume=1.0, duration=DEFAULT_DURATION_S, metadata=None) -> Track:
        mood = mood or DEFAULT_MOOD
        track = Track(
            id=str(uuid.uuid4()),
            state=TrackState.GENERATING,
            prompt=prompt or "",
            mood=mood,
            volume=clamp_volume(volume),
            duration=duration or DEFAULT_DURATION_S,
            created_at=self._now(),
            filters=get_mood_filters(mood),
            metadata=dict(metadata or {}),
        )
        self._tracks[track.id] = track
        logger.info(f"Created track {track.id} (mood={mood})")
        self._reclaim()
        return _snapshot(track)

    def _active_count(self) -> int:
        return sum(1 for t in self._tracks.values() if t.state is not TrackState.EXPIRED)

    def _reclaim(self) -> int:
        cutoff = self._now() - self.reclaim_after
        stale = [
            tid
            for tid, t in self._tracks.items()
            if t.state is TrackState.EXPIRED and (t.expired_at or t.created_at) < cutoff
        ]
        for tid in stale:
            del self._tracks[tid]
        if stale:
            logger.info(f"Reclaimed {len(stale)} expired track(s)")
        return len(stale)
