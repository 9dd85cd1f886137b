"""MQTT topic helpers.

Topic construction lives in one place so the runner and the responder agree
on naming.

Topic layout under a configurable namespace (default: `tuningload/v0`):

Request/response (load actions in `request` mode):
- `<ns>/load/requests`
- `<ns>/load/responses/<client_id>`

Streaming/broadcast:
- `<ns>/run/status`
    The runner publishes periodic progress snapshots while a run is active.
- `<ns>/run/summary`
    One message per finished run with action stats and collected metrics.

Several runs can share a broker by changing `--namespace`.
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "tuningload/v0"


def load_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/load/requests"


def load_responses(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/load/responses/{client_id}"


def run_status(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Periodic progress snapshots of the active run."""
    return f"{namespace}/run/status"


def run_summary(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/run/summary"
