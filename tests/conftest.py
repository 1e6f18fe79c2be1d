import os
from datetime import datetime, timedelta, timezone

import pytest

# Keep test runs from writing data/logs/*.log
os.environ.setdefault("LOG_TO_FILE", "False")


class FakeClock:
    """Manually advanced UTC clock"""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    """Async sleep that advances the fake clock instead of waiting"""
    calls = []

    async def sleep(seconds):
        calls.append(seconds)
        clock.advance(seconds)

    sleep.calls = calls
    return sleep
