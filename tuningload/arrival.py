from __future__ import annotations

"""Arrival models for load generation.

For a Poisson arrival process with rate λ (actions/second):
- The number of arrivals in a time window follows a Poisson distribution.
- The *inter-arrival times* are i.i.d. Exponential(λ).

We sample the exponential waiting time by inversion of its CDF and the
dispatch loop adds it to the previous scheduled launch instant.
"""

import math
import random


def sample_exponential_interarrival(*, rate_per_sec: float, rng: random.Random | None = None) -> float:
    """Sample the next inter-arrival time (seconds) for a Poisson process.

    Args:
        rate_per_sec: λ, the arrival rate in actions/second. Validated upstream
            (see `tuningload.config`); it is not checked again here.
        rng: optional RNG (useful for deterministic tests).

    Returns:
        A non-negative float: ``-ln(1 - p) / rate_per_sec`` with ``p`` uniform
        in [0, 1).

    Implementation detail:
        ``random()`` is documented to return values in [0.0, 1.0), so ``1 - p``
        is always in (0, 1] and the logarithm is defined. A draw of exactly 0
        gives an immediate next arrival.
    """
    r = rng or random
    p = r.random()
    return -math.log(1.0 - p) / rate_per_sec


def sample_uniform_interval(*, average_qps: float, rng: random.Random | None = None) -> float:
    """Sample a uniform delay in [0, 2/average_qps), i.e. with mean 1/average_qps."""
    r = rng or random
    return r.random() * 2.0 / average_qps
