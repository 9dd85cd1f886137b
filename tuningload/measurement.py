from __future__ import annotations

# Periodic metrics collection alongside a load run.
#
# The collector is independent of the tuning sets: it polls a Prometheus text
# endpoint on its own thread, tracks the maximum of one gauge while the run is
# active, and on `stop_and_summarize()` does one final scrape to fold the
# configured histograms into a summary.
#
# Defaults target etcd's /metrics endpoint (database size and disk/network
# latency histograms), but any Prometheus exporter works.

import json
import sys
import threading
from dataclasses import dataclass, field
from typing import Any

import httpx
from prometheus_client.parser import text_string_to_metric_families
from prometheus_client.samples import Sample

from .errors import MetricsError

DEFAULT_HISTOGRAMS: dict[str, str] = {
    "backendCommitDuration": "etcd_disk_backend_commit_duration_seconds",
    "snapshotSaveTotalDuration": "etcd_debugging_snap_save_total_duration_seconds",
    "walFsyncDuration": "etcd_disk_wal_fsync_duration_seconds",
    "peerRoundTripTime": "etcd_network_peer_round_trip_time_seconds",
}

DEFAULT_MAX_GAUGE = ("maxDatabaseSize", "etcd_debugging_mvcc_db_total_size_in_bytes")


@dataclass
class Histogram:
    """Cumulative bucket counts for one label set, keyed by the `le` bound."""

    labels: dict[str, str]
    buckets: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"labels": dict(self.labels), "buckets": dict(self.buckets)}


def add_bucket_sample(vec: list[Histogram], sample: Sample) -> None:
    """Fold one `<name>_bucket` sample into the histogram with matching labels."""
    le = sample.labels.get("le")
    if le is None:
        return
    labels = {k: v for k, v in sample.labels.items() if k != "le"}
    for h in vec:
        if h.labels == labels:
            break
    else:
        h = Histogram(labels=labels)
        vec.append(h)
    h.buckets[le] = h.buckets.get(le, 0.0) + float(sample.value)


def parse_samples(text: str) -> list[Sample]:
    """Flatten every sample of a Prometheus text exposition."""
    samples: list[Sample] = []
    for family in text_string_to_metric_families(text):
        samples.extend(family.samples)
    return samples


@dataclass
class MetricsSummary:
    histograms: dict[str, list[Histogram]]
    max_gauge_name: str
    max_gauge_value: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {k: [h.to_dict() for h in vec] for k, vec in self.histograms.items()}
        out[self.max_gauge_name] = self.max_gauge_value
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True)


class MetricsCollector:
    """Poll a /metrics endpoint in the background and summarize on demand."""

    def __init__(
        self,
        url: str,
        *,
        interval: float = 60.0,
        histograms: dict[str, str] | None = None,
        max_gauge: tuple[str, str] = DEFAULT_MAX_GAUGE,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.url = url
        self.interval = interval
        self.histograms = dict(DEFAULT_HISTOGRAMS if histograms is None else histograms)
        self.max_gauge = max_gauge

        self._client = httpx.Client(timeout=timeout, transport=transport)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._max_value = 0.0
        self.polls = 0
        self.poll_errors = 0

    def scrape(self) -> list[Sample]:
        resp = self._client.get(self.url)
        resp.raise_for_status()
        return parse_samples(resp.text)

    def gauge_value(self, samples: list[Sample]) -> float:
        name = self.max_gauge[1]
        for s in samples:
            if s.name == name:
                return float(s.value)
        raise MetricsError(f"couldn't find {name} in {self.url}")

    def start(self) -> None:
        """Start polling every `interval` seconds until `stop_and_summarize()`."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._poll_loop, name="metrics-collector", daemon=True)
        self._thread.start()
        print(f"[metrics] collecting from {self.url} every {self.interval}s")

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.polls += 1
            try:
                value = self.gauge_value(self.scrape())
            except (httpx.HTTPError, ValueError, MetricsError) as e:
                self.poll_errors += 1
                print(f"[metrics] failed to collect {self.max_gauge[1]}: {e}", file=sys.stderr)
                continue
            self._max_value = max(self._max_value, value)

    def stop(self) -> None:
        """Stop polling without summarizing."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def close(self) -> None:
        self.stop()
        self._client.close()

    def stop_and_summarize(self) -> MetricsSummary:
        """Stop polling and build a summary from one final scrape.

        Raises:
            httpx.HTTPError: if the final scrape fails.
        """
        self.stop()
        try:
            samples = self.scrape()
        finally:
            self._client.close()

        by_bucket = {f"{metric}_bucket": key for key, metric in self.histograms.items()}
        vecs: dict[str, list[Histogram]] = {key: [] for key in self.histograms}
        for s in samples:
            key = by_bucket.get(s.name)
            if key is not None:
                add_bucket_sample(vecs[key], s)

        return MetricsSummary(histograms=vecs, max_gauge_name=self.max_gauge[0], max_gauge_value=self._max_value)
