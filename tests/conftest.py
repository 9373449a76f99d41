from __future__ import annotations

import os

import pytest

# main.py builds its app at import time; keep its limiter out of the way.
os.environ.setdefault("LIMITER_ACTIVE", "false")


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
