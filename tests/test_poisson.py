import math
import random
import threading
import time

import pytest

from tuningload.config import PoissonLoadParams
from tuningload.errors import LaunchError
from tuningload.poisson import PoissonLoad

from conftest import RecordingGroup


class ConstantRng:
    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


def expected_instants(seed, rate, n, start):
    rng = random.Random(seed)
    out = [start]
    for _ in range(n - 1):
        out.append(out[-1] + -math.log(1 - rng.random()) / rate)
    return out


def test_zero_actions_returns_immediately(fake_clock):
    load = PoissonLoad(PoissonLoadParams(1.0), clock=fake_clock, sleep=fake_clock.sleep)
    t0 = time.monotonic()
    load.execute([])
    assert fake_clock.sleeps == []
    assert time.monotonic() - t0 < 0.1


def test_launches_follow_seeded_schedule_in_input_order(fake_clock, groups):
    n = 25
    actions = [lambda: None for _ in range(n)]
    load = PoissonLoad(PoissonLoadParams(5.0), rng=random.Random(99), clock=fake_clock, sleep=fake_clock.sleep)
    load.execute(actions)

    (g,) = groups
    instants = [t for t, _ in g.launches]
    assert [fn for _, fn in g.launches] == actions
    assert instants == pytest.approx(expected_instants(99, 5.0, n, start=100.0))
    assert all(b >= a for a, b in zip(instants, instants[1:]))
    assert g.launched == g.completed == n


class SlowStartGroup(RecordingGroup):
    """Every launch costs 0.5s on the driving path."""

    def start(self, fn) -> None:
        super().start(fn)
        self.clock.advance(0.5)


def test_schedule_accumulates_from_previous_instant_not_clock(fake_clock, monkeypatch):
    created = []

    def new_group(self):
        created.append(SlowStartGroup(self.clock))
        return created[-1]

    monkeypatch.setattr(PoissonLoad, "_new_group", new_group)

    # Every gap is exactly 1s.
    p = 1 - math.exp(-1.0)
    load = PoissonLoad(PoissonLoadParams(1.0), rng=ConstantRng(p), clock=fake_clock, sleep=fake_clock.sleep)
    load.execute([lambda: None] * 4)

    instants = [t for t, _ in created[0].launches]
    assert instants == pytest.approx([100.0, 101.0, 102.0, 103.0])
    # Only the remainder of each gap is slept.
    assert fake_clock.sleeps == pytest.approx([0.5, 0.5, 0.5])


def test_past_due_launch_does_not_sleep(fake_clock, groups):
    load = PoissonLoad(PoissonLoadParams(1.0), rng=ConstantRng(0.0), clock=fake_clock, sleep=fake_clock.sleep)
    load.execute([lambda: None] * 5)
    assert fake_clock.sleeps == []
    assert [t for t, _ in groups[0].launches] == [100.0] * 5


def test_each_action_runs_exactly_once_before_return():
    n = 200
    seen = []
    lock = threading.Lock()

    def make(i):
        def run():
            time.sleep(0.005)
            with lock:
                seen.append(i)

        return run

    PoissonLoad(PoissonLoadParams(100_000.0), rng=random.Random(3)).execute([make(i) for i in range(n)])
    assert sorted(seen) == list(range(n))


def test_noop_actions_take_about_n_over_rate():
    n, rate = 200, 200.0
    schedule = expected_instants(11, rate, n, start=0.0)

    t0 = time.monotonic()
    PoissonLoad(PoissonLoadParams(rate), rng=random.Random(11)).execute([lambda: None] * n)
    elapsed = time.monotonic() - t0

    # The last launch is due at schedule[-1]; actions overlap so little is added on top.
    assert elapsed >= schedule[-1] - 0.01
    assert elapsed < schedule[-1] + 1.0
    assert 0.6 < schedule[-1] < 1.5


def test_slow_actions_extend_drain_not_launch_phase(groups):
    # 1000 actions/s, 50 actions of 500ms each.
    load = PoissonLoad(PoissonLoadParams(1000.0), rng=random.Random(5))
    t0 = time.monotonic()
    load.execute([lambda: time.sleep(0.5)] * 50)
    elapsed = time.monotonic() - t0

    last_launch = groups[0].launches[-1][0]
    assert last_launch - t0 < 0.3
    assert 0.5 <= elapsed < 2.0
    assert groups[0].completed == 50


def test_faulty_action_does_not_stop_siblings(capsys):
    done = []
    lock = threading.Lock()

    def make(i):
        def run():
            if i == 3:
                raise RuntimeError("action blew up")
            with lock:
                done.append(i)

        return run

    PoissonLoad(PoissonLoadParams(1000.0), rng=random.Random(0)).execute([make(i) for i in range(10)])

    assert sorted(done) == [0, 1, 2, 4, 5, 6, 7, 8, 9]
    assert "action blew up" in capsys.readouterr().err


def test_launch_failure_propagates_after_draining_started_actions(monkeypatch):
    real_start = threading.Thread.start
    calls = []

    def flaky_start(self):
        calls.append(self.name)
        if len(calls) > 2:
            raise RuntimeError("can't start new thread")
        real_start(self)

    monkeypatch.setattr(threading.Thread, "start", flaky_start)

    done = []
    lock = threading.Lock()

    def record():
        time.sleep(0.05)
        with lock:
            done.append(1)

    load = PoissonLoad(PoissonLoadParams(10_000.0), rng=random.Random(1))
    with pytest.raises(LaunchError):
        load.execute([record] * 5)

    # The two actions that did start were waited for.
    assert done == [1, 1]
