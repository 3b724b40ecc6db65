"""Shared fixtures: a manually driven clock."""

from __future__ import annotations

import pytest

from memsession.core.types import Timestamp, seconds_to_nanos


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start_s: float = 1_000_000.0) -> None:
        self.now = Timestamp.from_seconds(start_s)

    def __call__(self) -> Timestamp:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + seconds_to_nanos(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
