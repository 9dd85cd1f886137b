from __future__ import annotations

# Deterministic and bounded load shapes.
#
# These share the PoissonLoad contract (input-order launches, join before
# return) and differ only in how launch instants are chosen. Instants are
# always computed from the first instant of the run, never from the clock after
# a launch, so per-launch overhead does not accumulate.

import random
import threading
import time
from typing import Sequence

from .arrival import sample_uniform_interval
from .config import (
    ParallelismLimitedLoadParams,
    QPSLoadParams,
    RandomizedLoadParams,
    SteppedLoadParams,
    TimeLimitedLoadParams,
)
from .tuningset import Clock, Sleep, TuningSet, sleep_until
from .wait_group import Action


class QPSLoad(TuningSet):
    """Launch actions at a fixed interval of 1/qps seconds."""

    def __init__(
        self,
        params: QPSLoadParams,
        *,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        super().__init__(rng=rng, clock=clock, sleep=sleep)
        self.params = params

    def execute(self, actions: Sequence[Action]) -> None:
        wg = self._new_group()
        interval = 1.0 / self.params.qps
        start = self.clock()
        try:
            for i, action in enumerate(actions):
                sleep_until(start + i * interval, clock=self.clock, sleep=self.sleep)
                wg.start(action)
        finally:
            wg.wait()


class RandomizedLoad(TuningSet):
    """Launch actions with uniform random gaps averaging 1/average_qps seconds."""

    def __init__(
        self,
        params: RandomizedLoadParams,
        *,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        super().__init__(rng=rng, clock=clock, sleep=sleep)
        self.params = params

    def execute(self, actions: Sequence[Action]) -> None:
        wg = self._new_group()
        next_launch = self.clock()
        try:
            for action in actions:
                sleep_until(next_launch, clock=self.clock, sleep=self.sleep)
                wg.start(action)
                next_launch += sample_uniform_interval(average_qps=self.params.average_qps, rng=self.rng)
        finally:
            wg.wait()


class SteppedLoad(TuningSet):
    """Launch actions in bursts of `burst_size`, `step_delay` seconds apart."""

    def __init__(
        self,
        params: SteppedLoadParams,
        *,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        super().__init__(rng=rng, clock=clock, sleep=sleep)
        self.params = params

    def execute(self, actions: Sequence[Action]) -> None:
        wg = self._new_group()
        burst = self.params.burst_size
        start = self.clock()
        try:
            for i, action in enumerate(actions):
                # No sleep after the final burst.
                if i and i % burst == 0:
                    sleep_until(start + (i // burst) * self.params.step_delay, clock=self.clock, sleep=self.sleep)
                wg.start(action)
        finally:
            wg.wait()


class TimeLimitedLoad(TuningSet):
    """Spread actions evenly over `time_limit` seconds.

    With n actions the gap is time_limit / n, so the last launch happens at
    time_limit * (n - 1) / n and the launch phase fits inside the limit.
    """

    def __init__(
        self,
        params: TimeLimitedLoadParams,
        *,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        super().__init__(rng=rng, clock=clock, sleep=sleep)
        self.params = params

    def execute(self, actions: Sequence[Action]) -> None:
        n = len(actions)
        if n == 0:
            return
        wg = self._new_group()
        gap = self.params.time_limit / n
        start = self.clock()
        try:
            for i, action in enumerate(actions):
                sleep_until(start + i * gap, clock=self.clock, sleep=self.sleep)
                wg.start(action)
        finally:
            wg.wait()


class ParallelismLimitedLoad(TuningSet):
    """Launch actions as fast as possible with at most `parallelism_limit` in flight."""

    def __init__(
        self,
        params: ParallelismLimitedLoadParams,
        *,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        super().__init__(rng=rng, clock=clock, sleep=sleep)
        self.params = params

    def execute(self, actions: Sequence[Action]) -> None:
        wg = self._new_group()
        slots = threading.BoundedSemaphore(self.params.parallelism_limit)

        def bounded(action: Action) -> Action:
            def run() -> None:
                try:
                    action()
                finally:
                    slots.release()

            return run

        try:
            for action in actions:
                slots.acquire()
                try:
                    wg.start(bounded(action))
                except BaseException:
                    slots.release()
                    raise
        finally:
            wg.wait()
