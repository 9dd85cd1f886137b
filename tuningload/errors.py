"""Error types shared by the scheduler, the config layer and the MQTT services.

Only two failure classes ever reach a caller of ``TuningSet.execute``:
configuration problems (raised before any action launches) and launch
failures. Faults inside an action stay inside that action's thread.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class ConfigError(ValueError):
    """Invalid tuning set configuration (bad rate, unknown kind, ...)."""


class LaunchError(RuntimeError):
    """A new concurrent execution path for an action could not be started."""


class MetricsError(RuntimeError):
    """A scrape succeeded but did not contain the expected metric."""


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg
