import logging
import os
import threading

from track_pool import TrackPool

logger = logging.getLogger(__name__)

REAPER_INTERVAL_S = float(os.environ.get("REAPER_INTERVAL_S", "60"))

_reaper_thread: threading.Thread | None = None
_stop_event = threading.Event()


def _reaper_loop(pool: TrackPool, interval_s: float):
    """Background reaper: drop long-expired tracks even when nothing is being created."""
    logger.info("Reaper thread started")
    while not _stop_event.wait(timeout=interval_s):
        try:
            pool.reclaim_expired()
        except Exception as e:
            logger.error(f"Reaper loop error: {e}", exc_info=True)
    logger.info("Reaper thread stopped")


def start_reaper(pool: TrackPool, interval_s: float = REAPER_INTERVAL_S):
    global _reaper_thread
    _stop_event.clear()
    _reaper_thread = threading.Thread(
        target=_reaper_loop, args=(pool, interval_s), daemon=True, name="track-reaper"
    )
    _reaper_thread.start()


def stop_reaper():
    _stop_event.set()
    if _reaper_thread:
        _reaper_thread.join(timeout=5)
