"""Map a tuning set kind to its implementation."""

from __future__ import annotations

from typing import Any

from .config import TuningSetConfig
from .errors import ConfigError
from .load_shapes import ParallelismLimitedLoad, QPSLoad, RandomizedLoad, SteppedLoad, TimeLimitedLoad
from .poisson import PoissonLoad
from .tuningset import TuningSet

TUNING_SETS: dict[str, type[TuningSet]] = {
    "poissonLoad": PoissonLoad,
    "qpsLoad": QPSLoad,
    "randomizedLoad": RandomizedLoad,
    "steppedLoad": SteppedLoad,
    "timeLimitedLoad": TimeLimitedLoad,
    "parallelismLimitedLoad": ParallelismLimitedLoad,
}


def create_tuning_set(config: TuningSetConfig, **inject: Any) -> TuningSet:
    """Build the tuning set for `config`.

    `inject` is forwarded to the constructor (rng, clock, sleep).
    """
    cls = TUNING_SETS.get(config.kind)
    if cls is None:
        raise ConfigError(f"unsupported tuning set kind '{config.kind}'")
    return cls(config.params, **inject)
