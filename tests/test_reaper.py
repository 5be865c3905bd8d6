import time

from models import TrackState
from reaper import start_reaper, stop_reaper


def test_reaper_reclaims_without_new_tracks(pool, clock):
    track = pool.create_track()
    pool.set_state(track.id, TrackState.EXPIRED)
    clock.advance(301)

    start_reaper(pool, interval_s=0.01)
    try:
        deadline = time.monotonic() + 2
        while pool.get(track.id) is not None and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        stop_reaper()

    assert pool.get(track.id) is None
