from __future__ import annotations

# Load runner.
#
# Builds a batch of MQTT load actions, hands them to the configured tuning set
# and waits for the batch to drain. While the batch runs, a background thread
# publishes progress snapshots on `<ns>/run/status`; when it finishes, one
# summary is printed and published on `<ns>/run/summary`.

import argparse
import json
import random
import threading
import time
from typing import Any, Callable

from .actions import ActionStats, make_publish_actions, make_request_actions
from .config import TuningSetConfig, load_tuning_set, parse_tuning_set
from .errors import ConfigError
from .measurement import MetricsCollector
from .mqtt_topics import DEFAULT_NAMESPACE, load_requests, load_responses, run_status, run_summary
from .registry import create_tuning_set

MODES = ("publish", "request")


class StatusPublisher:
    """Publish periodic progress snapshots until stopped."""

    def __init__(self, *, publish: Callable[[str, dict[str, Any]], None], topic: str, stats: ActionStats) -> None:
        self._publish = publish
        self.topic = topic
        self.stats = stats
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self, *, every: float = 2.0) -> None:
        self._thread = threading.Thread(target=self._loop, args=(every,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        t = self._thread
        if t and t.is_alive():
            t.join(timeout=1.0)

    def _loop(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            snapshot = {"type": "run_status", "ts": time.time(), **self.stats.snapshot()}
            try:
                self._publish(self.topic, snapshot)
            except (OSError, ValueError) as e:
                # Status is best-effort; keep going until the run ends.
                print(f"[run] status publish failed: {e}")


def run_load(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    tuning_set: TuningSetConfig,
    count: int,
    mode: str = "publish",
    seed: int | None = None,
    request_timeout: float = 5.0,
    status_every: float = 2.0,
    metrics_url: str | None = None,
    metrics_interval: float = 60.0,
) -> dict[str, Any]:
    """Run one batch of `count` actions and return the summary.

    Args:
        tuning_set: validated tuning set config; decides launch timing.
        mode: "publish" (fire-and-forget) or "request" (round trip to a responder).
        seed: if provided, makes randomized launch schedules deterministic.
        metrics_url: optional Prometheus endpoint polled for the duration of the run.
    """
    from .mqtt_client import MqttClient

    if count < 0:
        raise ValueError("count must be >= 0")
    if mode not in MODES:
        raise ValueError(f"mode must be one of {', '.join(MODES)}")

    rng = random.Random(seed) if seed is not None else None
    scheduler = create_tuning_set(tuning_set, rng=rng)

    client_id = f"loadrunner-{int(time.time() * 1000)}"
    mqtt = MqttClient(client_id=client_id, host=mqtt_host, port=mqtt_port)
    mqtt.start()

    stats = ActionStats()
    if mode == "request":
        reply_topic = load_responses(client_id, namespace)
        mqtt.subscribe(reply_topic)
        actions = make_request_actions(
            mqtt,
            request_topic=load_requests(namespace),
            response_topic=reply_topic,
            count=count,
            stats=stats,
            timeout=request_timeout,
        )
    else:
        actions = make_publish_actions(mqtt, topic=load_requests(namespace), count=count, stats=stats)

    collector = MetricsCollector(metrics_url, interval=metrics_interval) if metrics_url else None
    status = StatusPublisher(publish=mqtt.publish, topic=run_status(namespace), stats=stats)

    print(
        f"[run] connected to MQTT {mqtt_host}:{mqtt_port}, namespace={namespace}, "
        f"tuning_set={tuning_set.name} ({tuning_set.kind}), actions={count}, mode={mode}"
    )

    try:
        if collector is not None:
            collector.start()
        status.start(every=status_every)

        t0 = time.monotonic()
        scheduler.execute(actions)
        elapsed = time.monotonic() - t0

        status.stop()
        summary: dict[str, Any] = {
            "type": "run_summary",
            "tuning_set": tuning_set.name,
            "kind": tuning_set.kind,
            "mode": mode,
            "actions": count,
            "elapsed_seconds": elapsed,
            **stats.snapshot(),
        }
        if collector is not None:
            summary["metrics"] = collector.stop_and_summarize().to_dict()
            collector = None

        mqtt.publish(run_summary(namespace), summary)
        print(f"[run] done in {elapsed:0.2f}s")
        print(json.dumps(summary, indent=2, sort_keys=True))
        return summary
    finally:
        status.stop()
        if collector is not None:
            collector.close()
        mqtt.stop()


def tuning_set_from_args(args: argparse.Namespace) -> TuningSetConfig:
    if args.tuning_set:
        return load_tuning_set(args.tuning_set)
    if args.qps is not None:
        return parse_tuning_set({"name": "cli", "qpsLoad": {"qps": args.qps}})
    return parse_tuning_set({"name": "cli", "poissonLoad": {"expectedActionsPerSecond": args.poisson_rate}})


def main() -> None:
    parser = argparse.ArgumentParser(description="Load runner (tuning set over MQTT)")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)

    shape = parser.add_mutually_exclusive_group(required=True)
    shape.add_argument("--tuning-set", help="JSON file with one tuning set document")
    shape.add_argument("--poisson-rate", type=float, help="λ actions/second (Poisson arrivals)")
    shape.add_argument("--qps", type=float, help="fixed actions/second")

    parser.add_argument("--count", type=int, required=True, help="number of actions in the batch")
    parser.add_argument("--mode", choices=MODES, default="publish")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--request-timeout", type=float, default=5.0)
    parser.add_argument("--status-every", type=float, default=2.0, help="seconds between run status publications")
    parser.add_argument("--metrics-url", default=None, help="Prometheus endpoint to poll during the run")
    parser.add_argument("--metrics-interval", type=float, default=60.0)
    args = parser.parse_args()

    try:
        tuning_set = tuning_set_from_args(args)
    except ConfigError as e:
        parser.error(str(e))

    try:
        run_load(
            mqtt_host=args.mqtt_host,
            mqtt_port=args.mqtt_port,
            namespace=args.namespace,
            tuning_set=tuning_set,
            count=args.count,
            mode=args.mode,
            seed=args.seed,
            request_timeout=args.request_timeout,
            status_every=args.status_every,
            metrics_url=args.metrics_url,
            metrics_interval=args.metrics_interval,
        )
    except KeyboardInterrupt:
        print("[run] interrupted")


if __name__ == "__main__":
    main()
