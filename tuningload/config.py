"""Tuning set configuration.

A tuning set document names exactly one load shape, using the same camelCase
layout as the load-test configs it is usually embedded in:

    {"name": "steady", "poissonLoad": {"expectedActionsPerSecond": 20}}

Parameter objects are frozen: a tuning set holds a read-only reference to its
params for the lifetime of a dispatch run. All validation happens here, so the
scheduling code can assume well-formed values.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from .errors import ConfigError


def _number(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e


def _positive(name: str, value: Any) -> float:
    v = _number(name, value)
    if not v > 0:
        raise ConfigError(f"{name} must be > 0")
    return v


def _non_negative(name: str, value: Any) -> float:
    v = _number(name, value)
    if v < 0:
        raise ConfigError(f"{name} must be >= 0")
    return v


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be > 0")
    return value


@dataclass(frozen=True)
class PoissonLoadParams:
    expected_actions_per_second: float

    def __post_init__(self) -> None:
        _positive("expected_actions_per_second", self.expected_actions_per_second)


@dataclass(frozen=True)
class QPSLoadParams:
    qps: float

    def __post_init__(self) -> None:
        _positive("qps", self.qps)


@dataclass(frozen=True)
class RandomizedLoadParams:
    average_qps: float

    def __post_init__(self) -> None:
        _positive("average_qps", self.average_qps)


@dataclass(frozen=True)
class SteppedLoadParams:
    burst_size: int
    step_delay: float

    def __post_init__(self) -> None:
        _positive_int("burst_size", self.burst_size)
        _non_negative("step_delay", self.step_delay)


@dataclass(frozen=True)
class TimeLimitedLoadParams:
    time_limit: float

    def __post_init__(self) -> None:
        _non_negative("time_limit", self.time_limit)


@dataclass(frozen=True)
class ParallelismLimitedLoadParams:
    parallelism_limit: int

    def __post_init__(self) -> None:
        _positive_int("parallelism_limit", self.parallelism_limit)


TuningSetParams = Union[
    PoissonLoadParams,
    QPSLoadParams,
    RandomizedLoadParams,
    SteppedLoadParams,
    TimeLimitedLoadParams,
    ParallelismLimitedLoadParams,
]


@dataclass(frozen=True)
class TuningSetConfig:
    name: str
    kind: str
    params: TuningSetParams


def _parse_params(kind: str, raw: dict[str, Any]) -> TuningSetParams:
    if kind == "poissonLoad":
        rate = _positive("expectedActionsPerSecond", raw.get("expectedActionsPerSecond"))
        return PoissonLoadParams(expected_actions_per_second=rate)
    if kind == "qpsLoad":
        return QPSLoadParams(qps=_positive("qps", raw.get("qps")))
    if kind == "randomizedLoad":
        return RandomizedLoadParams(average_qps=_positive("averageQps", raw.get("averageQps")))
    if kind == "steppedLoad":
        return SteppedLoadParams(
            burst_size=_positive_int("burstSize", raw.get("burstSize")),
            step_delay=_non_negative("stepDelay", raw.get("stepDelay", 0.0)),
        )
    if kind == "timeLimitedLoad":
        return TimeLimitedLoadParams(time_limit=_non_negative("timeLimit", raw.get("timeLimit")))
    if kind == "parallelismLimitedLoad":
        return ParallelismLimitedLoadParams(
            parallelism_limit=_positive_int("parallelismLimit", raw.get("parallelismLimit"))
        )
    raise ConfigError(f"unknown tuning set kind '{kind}'")


# Kept in sync with registry.TUNING_SETS (checked by tests).
KINDS = (
    "poissonLoad",
    "qpsLoad",
    "randomizedLoad",
    "steppedLoad",
    "timeLimitedLoad",
    "parallelismLimitedLoad",
)


def parse_tuning_set(data: dict[str, Any]) -> TuningSetConfig:
    """Parse one tuning set document into a validated config."""
    if not isinstance(data, dict):
        raise ConfigError("tuning set must be a mapping")

    kinds = [k for k in data if k in KINDS]
    if len(kinds) != 1:
        raise ConfigError(f"tuning set must define exactly one of {', '.join(KINDS)}")
    kind = kinds[0]

    raw = data[kind]
    if not isinstance(raw, dict):
        raise ConfigError(f"'{kind}' must be a mapping")

    name = str(data.get("name", kind))
    return TuningSetConfig(name=name, kind=kind, params=_parse_params(kind, raw))


def load_tuning_set(path: str | Path) -> TuningSetConfig:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"{path}: cannot read tuning set ({e})") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}: invalid JSON ({e})") from e
    return parse_tuning_set(data)
