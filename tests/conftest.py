"""Pytest configuration and fixtures."""
import logging
from datetime import datetime, timedelta, timezone

import pytest
from track_pool import TrackPool


def pytest_configure(config):
    logging.getLogger("httpcore").setLevel(logging.CRITICAL)


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pool(clock):
    return TrackPool(max_tracks=4, reclaim_after_s=300, now=clock)
