from __future__ import annotations

# Load actions that hit an MQTT broker.
#
# Tuning sets treat actions as opaque zero-argument callables with no result.
# Anything worth reporting (latency, failures) is written by the action itself
# into an `ActionStats` instance shared across all action threads.

import math
import threading
import time
from typing import Any, Protocol

from .wait_group import Action


class Publisher(Protocol):
    def publish(self, topic: str, message: dict[str, Any]) -> None: ...

    def request(
        self,
        *,
        request_topic: str,
        response_topic: str,
        message: dict[str, Any],
        timeout: float = 5.0,
    ) -> dict[str, Any]: ...


class ActionStats:
    """Thread-safe counters and latency samples written by running actions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.started = 0
        self.succeeded = 0
        self.failed = 0
        self._latencies: list[float] = []

    def record_start(self) -> None:
        with self._lock:
            self.started += 1

    def record_success(self, latency: float | None = None) -> None:
        with self._lock:
            self.succeeded += 1
            if latency is not None:
                self._latencies.append(latency)

    def record_failure(self) -> None:
        with self._lock:
            self.failed += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            lat = sorted(self._latencies)
            snap: dict[str, Any] = {
                "started": self.started,
                "succeeded": self.succeeded,
                "failed": self.failed,
                "in_flight": self.started - self.succeeded - self.failed,
            }
        if lat:
            snap["latency_seconds"] = {
                "mean": sum(lat) / len(lat),
                "p50": _percentile(lat, 0.50),
                "p99": _percentile(lat, 0.99),
                "max": lat[-1],
            }
        return snap


def _percentile(sorted_values: list[float], q: float) -> float:
    """Nearest-rank percentile of an already sorted, non-empty list."""
    idx = max(0, min(len(sorted_values) - 1, math.ceil(q * len(sorted_values)) - 1))
    return sorted_values[idx]


def make_publish_actions(mqtt: Publisher, *, topic: str, count: int, stats: ActionStats) -> list[Action]:
    """Fire-and-forget publishes, one message per action."""

    def make(seq: int) -> Action:
        def action() -> None:
            stats.record_start()
            try:
                mqtt.publish(topic, {"type": "load_action", "seq": seq, "ts": time.time()})
            except Exception:
                stats.record_failure()
                raise
            stats.record_success()

        return action

    return [make(i) for i in range(count)]


def make_request_actions(
    mqtt: Publisher,
    *,
    request_topic: str,
    response_topic: str,
    count: int,
    stats: ActionStats,
    timeout: float = 5.0,
) -> list[Action]:
    """Request/response round trips; the latency of each is recorded in `stats`.

    Failures (timeouts, error replies) are counted and re-raised so the wait
    group reports them.
    """

    def make(seq: int) -> Action:
        def action() -> None:
            stats.record_start()
            t0 = time.monotonic()
            try:
                resp = mqtt.request(
                    request_topic=request_topic,
                    response_topic=response_topic,
                    message={"type": "load_action", "seq": seq, "ts": time.time()},
                    timeout=timeout,
                )
                if resp.get("type") != "load_ack":
                    raise RuntimeError(f"unexpected reply: {resp}")
            except Exception:
                stats.record_failure()
                raise
            stats.record_success(time.monotonic() - t0)

        return action

    return [make(i) for i in range(count)]
