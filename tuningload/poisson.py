from __future__ import annotations

# Poisson-arrival tuning set.
#
# Launch instants follow a Poisson process with rate λ = expected actions per
# second: each gap is an independent Exponential(λ) sample. The next instant is
# accumulated from the previous *scheduled* instant rather than from the clock,
# so time spent starting threads does not shift the rest of the timeline.
#
# There is deliberately no cap on how many actions run at once. If actions are
# slower than 1/λ they pile up; only launch timing is controlled here.

import random
import time
from typing import Sequence

from .arrival import sample_exponential_interarrival
from .config import PoissonLoadParams
from .tuningset import Clock, Sleep, TuningSet, sleep_until
from .wait_group import Action


class PoissonLoad(TuningSet):
    def __init__(
        self,
        params: PoissonLoadParams,
        *,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        super().__init__(rng=rng, clock=clock, sleep=sleep)
        self.params = params

    def execute(self, actions: Sequence[Action]) -> None:
        """Launch `actions` at Poisson arrival instants, then wait for all of them.

        Raises:
            LaunchError: if a thread for an action cannot be started. Actions
                launched before the failure are still waited for.
        """
        wg = self._new_group()
        rate = self.params.expected_actions_per_second
        next_launch = self.clock()
        try:
            for action in actions:
                sleep_until(next_launch, clock=self.clock, sleep=self.sleep)
                wg.start(action)
                next_launch += sample_exponential_interarrival(rate_per_sec=rate, rng=self.rng)
        finally:
            wg.wait()
