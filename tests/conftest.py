import pytest

from tuningload.tuningset import TuningSet
from tuningload.wait_group import WaitGroup


class FakeClock:
    """Monotonic clock that only moves when `sleep()` (or `advance()`) is called."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingGroup(WaitGroup):
    """WaitGroup that records the clock value and callable of every launch."""

    def __init__(self, clock) -> None:
        super().__init__(name="test")
        self.clock = clock
        self.launches = []

    def start(self, fn) -> None:
        self.launches.append((self.clock(), fn))
        super().start(fn)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def groups(monkeypatch):
    """Make every tuning set use a RecordingGroup; returns the list of groups created."""
    created = []

    def new_group(self):
        g = RecordingGroup(self.clock)
        created.append(g)
        return g

    monkeypatch.setattr(TuningSet, "_new_group", new_group)
    return created
