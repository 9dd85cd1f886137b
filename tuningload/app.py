from __future__ import annotations

# Single-entrypoint runner.
#
#     python -m tuningload.app run --poisson-rate LAMBDA --count N [--mode request]
#     python -m tuningload.app responder [--delay-seconds S]
#
# Each subcommand forwards to the `main()` of the module that implements it.

import argparse

from .mqtt_topics import DEFAULT_NAMESPACE


def main() -> None:
    parser = argparse.ArgumentParser(description="Tuning set load generator (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_mqtt_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--mqtt-host", default="127.0.0.1")
        p.add_argument("--mqtt-port", type=int, default=1883)
        p.add_argument("--namespace", default=DEFAULT_NAMESPACE)

    p_run = sub.add_parser("run", help="Dispatch a batch of load actions with a tuning set")
    add_mqtt_args(p_run)
    shape = p_run.add_mutually_exclusive_group(required=True)
    shape.add_argument("--tuning-set", help="JSON file with one tuning set document")
    shape.add_argument("--poisson-rate", type=float, help="λ actions/second (Poisson arrivals)")
    shape.add_argument("--qps", type=float, help="fixed actions/second")
    p_run.add_argument("--count", type=int, required=True)
    p_run.add_argument("--mode", choices=("publish", "request"), default="publish")
    p_run.add_argument("--seed", type=int, default=None)
    p_run.add_argument("--metrics-url", default=None, help="Prometheus endpoint to poll during the run")
    p_run.add_argument("--metrics-interval", type=float, default=60.0)

    p_resp = sub.add_parser("responder", help="Acknowledge load requests (target for --mode request)")
    add_mqtt_args(p_resp)
    p_resp.add_argument("--delay-seconds", type=float, default=0.0)

    args = parser.parse_args()
    mqtt_args = ["--mqtt-host", args.mqtt_host, "--mqtt-port", str(args.mqtt_port), "--namespace", args.namespace]

    if args.cmd == "run":
        from .runner import main as run

        run_args = [*mqtt_args, "--count", str(args.count), "--mode", args.mode]
        if args.tuning_set is not None:
            run_args += ["--tuning-set", args.tuning_set]
        elif args.qps is not None:
            run_args += ["--qps", str(args.qps)]
        else:
            run_args += ["--poisson-rate", str(args.poisson_rate)]
        if args.seed is not None:
            run_args += ["--seed", str(args.seed)]
        if args.metrics_url is not None:
            run_args += ["--metrics-url", args.metrics_url, "--metrics-interval", str(args.metrics_interval)]

        _dispatch_to_module_main(run, run_args)
        return

    if args.cmd == "responder":
        from .responder import main as run

        _dispatch_to_module_main(run, [*mqtt_args, "--delay-seconds", str(args.delay_seconds)])
        return


def _dispatch_to_module_main(module_main, argv: list[str]) -> None:
    import sys

    old_argv = sys.argv[:]
    try:
        sys.argv = [old_argv[0], *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()
