import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from feed_generator.app import main as feed_main
from feed_generator.app.generator import (
    DEFAULT_DELAY_MS,
    PUBSUB_NAME,
    TOPIC_NAME,
    generate_forever,
    parse_delay,
)
from longhaul.errors import InvalidDelayError, SidecarNotReadyError
from longhaul.metrics import PublishMetrics
from longhaul.publisher import MessagePublisher

FAILURES = "lh_feed_generator_publish_failure_count_total"


def wait_for(predicate, timeout_s=5.0):
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if predicate():
            return
        time.sleep(0.01)
    raise AssertionError("condition not met in time")


@pytest.mark.parametrize(
    "args,expected",
    [
        ([], DEFAULT_DELAY_MS),
        (["%LAUNCHER_ARGS%"], DEFAULT_DELAY_MS),
        (["250"], 250),
        (["0"], 0),
    ],
)
def test_parse_delay(args, expected):
    assert parse_delay(args) == expected


@pytest.mark.parametrize("arg", ["abc", "1.5", "", "-5"])
def test_parse_delay_rejects(arg):
    with pytest.raises(InvalidDelayError):
        parse_delay([arg])


@pytest.mark.asyncio
async def test_first_publish_not_before_delay(dapr_client, sidecar, registry):
    loop = asyncio.get_running_loop()
    publisher = MessagePublisher(dapr_client, PUBSUB_NAME, TOPIC_NAME, PublishMetrics("lh_feed_generator", registry=registry))
    started = loop.time()

    task = asyncio.create_task(generate_forever(publisher, 100))
    await asyncio.sleep(0.05)
    assert sidecar.requests == []

    while not sidecar.requests:
        await asyncio.sleep(0.01)
    assert loop.time() - started >= 0.1
    task.cancel()


@pytest.mark.asyncio
async def test_loop_survives_failures(dapr_client, sidecar, registry):
    sidecar.publish_status = 503
    publisher = MessagePublisher(dapr_client, PUBSUB_NAME, TOPIC_NAME, PublishMetrics("lh_feed_generator", registry=registry))

    task = asyncio.create_task(generate_forever(publisher, 5))
    while registry.get_sample_value(FAILURES) < 3:
        await asyncio.sleep(0.01)

    assert not task.done()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(sidecar.requests) >= 3


def test_app_publishes_after_sidecar_ready(settings, dapr_client, sidecar, registry):
    sidecar.ready_after = 1
    settings = settings.model_copy(update={"sidecar_timeout_s": 5.0})
    app = feed_main.create_app(settings, delay_ms=10, client=dapr_client, registry=registry)

    with TestClient(app) as client:
        wait_for(lambda: len(sidecar.requests) >= 2)
        r = client.get("/healthz")

    assert r.status_code == 200
    assert r.json()["publishers"] == [{"pubsub": PUBSUB_NAME, "topic": TOPIC_NAME, "delay_ms": 10}]
    assert sidecar.health_checks == 2
    assert sidecar.requests[0].url.path == "/v1.0/publish/receivemediapost/receivemediapost"
    assert registry.get_sample_value(FAILURES) == 0


def test_app_startup_fails_without_sidecar(settings, dapr_client, sidecar, registry):
    sidecar.ready_after = None
    app = feed_main.create_app(settings, delay_ms=10, client=dapr_client, registry=registry)

    with pytest.raises(SidecarNotReadyError):
        with TestClient(app):
            pass
    assert sidecar.requests == []
    assert dapr_client.is_closed


@pytest.fixture
def launched(monkeypatch):
    calls = {}
    monkeypatch.setattr(feed_main, "start_metrics_server", lambda port: calls.setdefault("metrics_port", port))
    monkeypatch.setattr(feed_main, "create_app", lambda settings, delay_ms: calls.update(delay_ms=delay_ms) or "app")
    monkeypatch.setattr(feed_main.uvicorn, "run", lambda app, host, port: calls.update(app=app, port=port))
    monkeypatch.delenv("APP_PORT", raising=False)
    monkeypatch.delenv("DAPR_HTTP_APP_PORT", raising=False)
    return calls


def test_main_runs_with_delay_and_port(launched):
    feed_main.main(["250", "--app-port", "4000"])
    assert launched == {"metrics_port": 9988, "delay_ms": 250, "app": "app", "port": 4000}


def test_main_accepts_dapr_app_port_flag(launched):
    feed_main.main(["--DaprHTTPAppPort", "4100"])
    assert launched["port"] == 4100
    assert launched["delay_ms"] == DEFAULT_DELAY_MS


def test_main_defaults(launched):
    feed_main.main([])
    assert launched["delay_ms"] == DEFAULT_DELAY_MS
    assert launched["port"] == 3000


def test_main_rejects_bad_delay(launched):
    with pytest.raises(InvalidDelayError):
        feed_main.main(["soon"])
    assert "app" not in launched
