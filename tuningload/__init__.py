"""Pluggable load-generation scheduler.

A *tuning set* takes an ordered batch of opaque actions, launches each one on
its own thread at instants chosen by a load shape, and returns once every
action has finished:

- Poisson arrivals (exponential inter-arrival times)
- fixed QPS, randomized QPS, stepped bursts, time-limited spread
- parallelism-limited (bounded in-flight actions)

The `run` command drives MQTT publish/request actions against a broker, with
an optional Prometheus metrics collector alongside.
"""
