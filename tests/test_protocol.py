from tuningload.mqtt_topics import load_requests, load_responses, run_status, run_summary


def test_topic_helpers():
    ns = "demo/v0"
    assert load_requests(ns) == "demo/v0/load/requests"
    assert load_responses("c1", ns) == "demo/v0/load/responses/c1"
    assert run_status(ns) == "demo/v0/run/status"
    assert run_summary(ns) == "demo/v0/run/summary"


def test_default_namespace():
    assert load_requests() == "tuningload/v0/load/requests"
