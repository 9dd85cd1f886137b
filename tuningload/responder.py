from __future__ import annotations

# Load responder.
#
# A minimal target for `run --mode request`: it acknowledges every load
# request on the request's `reply_to` topic, optionally after a fixed delay
# that stands in for service time.
#
# This file contains two layers:
# 1) `LoadResponder` (pure message handling, testable without a broker)
# 2) `MqttLoadResponderService` + `main()` (integration with the MQTT broker)

import argparse
import threading
import time
from typing import Any, Callable, TYPE_CHECKING

from .errors import ErrorResponse
from .mqtt_topics import DEFAULT_NAMESPACE

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

Reply = Callable[[str, dict[str, Any]], None]


class LoadResponder:
    """Builds replies for load requests and counts what it handled."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.acked = 0
        self.rejected = 0

    def handle(self, msg: dict[str, Any]) -> tuple[str, dict[str, Any]] | None:
        """Return `(reply_to, reply)` for a request, or None if there is nobody to answer."""
        reply_to = msg.get("reply_to") if isinstance(msg.get("reply_to"), str) else None
        if not reply_to:
            return None
        corr_id = msg.get("corr_id") if isinstance(msg.get("corr_id"), str) else None

        if msg.get("type") != "load_action" or not isinstance(msg.get("seq"), int):
            with self._lock:
                self.rejected += 1
            return reply_to, ErrorResponse("bad_request", "load_action with integer seq required").to_message(
                corr_id=corr_id
            )

        with self._lock:
            self.acked += 1
        reply: dict[str, Any] = {"type": "load_ack", "seq": msg["seq"], "ts": time.time()}
        if corr_id is not None:
            reply["corr_id"] = corr_id
        return reply_to, reply


class MqttLoadResponderService:
    """MQTT adapter around LoadResponder."""

    def __init__(self, *, mqtt: MqttClient, namespace: str = DEFAULT_NAMESPACE, delay_seconds: float = 0.0) -> None:
        from .mqtt_topics import load_requests

        self._load_requests = load_requests

        self.mqtt = mqtt
        self.namespace = namespace
        self.delay_seconds = delay_seconds
        self.responder = LoadResponder()

    def start(self) -> None:
        self.mqtt.subscribe(self._load_requests(self.namespace))
        self.mqtt.add_handler(self._handle_message)

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        out = self.responder.handle(msg)
        if out is None:
            return
        reply_to, reply = out
        if self.delay_seconds > 0:
            # Delay on a timer thread so the paho network loop keeps reading.
            t = threading.Timer(self.delay_seconds, self.mqtt.publish, args=(reply_to, reply))
            t.daemon = True
            t.start()
        else:
            self.mqtt.publish(reply_to, reply)


def main() -> None:
    from .mqtt_client import MqttClient

    parser = argparse.ArgumentParser(description="Load responder (MQTT)")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--delay-seconds", type=float, default=0.0, help="fixed delay before each ack")
    args = parser.parse_args()

    if args.delay_seconds < 0:
        parser.error("--delay-seconds must be >= 0")

    mqtt_client = MqttClient(client_id=f"responder-{int(time.time())}", host=args.mqtt_host, port=args.mqtt_port)
    mqtt_client.start()

    service = MqttLoadResponderService(mqtt=mqtt_client, namespace=args.namespace, delay_seconds=args.delay_seconds)
    service.start()

    print(
        f"[responder] connected to MQTT {args.mqtt_host}:{args.mqtt_port}, namespace={args.namespace}, "
        f"delay={args.delay_seconds}s"
    )

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        mqtt_client.stop()
        r = service.responder
        print(f"[responder] stopped (acked={r.acked}, rejected={r.rejected})")


if __name__ == "__main__":
    main()
