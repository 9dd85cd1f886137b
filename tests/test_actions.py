import random
import threading

import pytest

from tuningload.actions import ActionStats, make_publish_actions, make_request_actions
from tuningload.config import PoissonLoadParams
from tuningload.poisson import PoissonLoad


class FakeMqtt:
    def __init__(self, *, fail_seqs=()):
        self.fail_seqs = set(fail_seqs)
        self.published = []
        self._lock = threading.Lock()

    def publish(self, topic, message):
        with self._lock:
            self.published.append((topic, message))

    def request(self, *, request_topic, response_topic, message, timeout=5.0):
        if message["seq"] in self.fail_seqs:
            raise TimeoutError("no response")
        return {"type": "load_ack", "seq": message["seq"]}


def test_publish_actions_through_poisson_load():
    mqtt = FakeMqtt()
    stats = ActionStats()
    actions = make_publish_actions(mqtt, topic="ns/load/requests", count=30, stats=stats)

    PoissonLoad(PoissonLoadParams(10_000.0), rng=random.Random(4)).execute(actions)

    assert sorted(m["seq"] for _, m in mqtt.published) == list(range(30))
    assert {t for t, _ in mqtt.published} == {"ns/load/requests"}
    snap = stats.snapshot()
    assert snap["started"] == snap["succeeded"] == 30
    assert snap["in_flight"] == 0


def test_request_actions_record_latency_and_failures():
    mqtt = FakeMqtt(fail_seqs={1})
    stats = ActionStats()
    actions = make_request_actions(
        mqtt, request_topic="req", response_topic="resp", count=3, stats=stats, timeout=0.1
    )

    actions[0]()
    with pytest.raises(TimeoutError):
        actions[1]()
    actions[2]()

    snap = stats.snapshot()
    assert snap["succeeded"] == 2
    assert snap["failed"] == 1
    assert snap["latency_seconds"]["max"] >= 0


def test_request_action_rejects_error_reply():
    class ErrorMqtt(FakeMqtt):
        def request(self, **kwargs):
            return {"type": "error", "code": "bad_request"}

    stats = ActionStats()
    (action,) = make_request_actions(ErrorMqtt(), request_topic="req", response_topic="resp", count=1, stats=stats)
    with pytest.raises(RuntimeError):
        action()
    assert stats.snapshot()["failed"] == 1


def test_stats_percentiles():
    stats = ActionStats()
    for i in range(1, 101):
        stats.record_start()
        stats.record_success(float(i))

    lat = stats.snapshot()["latency_seconds"]
    assert lat["p50"] == 50.0
    assert lat["p99"] == 99.0
    assert lat["max"] == 100.0
    assert lat["mean"] == pytest.approx(50.5)


def test_stats_without_latency_has_no_latency_block():
    stats = ActionStats()
    stats.record_start()
    stats.record_success()
    assert "latency_seconds" not in stats.snapshot()


def test_stats_percentiles_odd_count():
    stats = ActionStats()
    for i in range(1, 6):
        stats.record_start()
        stats.record_success(float(i))

    lat = stats.snapshot()["latency_seconds"]
    assert lat["p50"] == 3.0
    assert lat["p99"] == 5.0
    assert lat["max"] == 5.0


def test_stats_percentiles_single_sample():
    stats = ActionStats()
    stats.record_start()
    stats.record_success(0.25)

    lat = stats.snapshot()["latency_seconds"]
    assert lat["p50"] == lat["p99"] == 0.25
