import json

import httpx
import pytest
from prometheus_client import CollectorRegistry

from longhaul.config import Settings
from longhaul.sidecar import HEALTH_PATH, DaprClient

ENDPOINT = "http://sidecar.test"


class FakeSidecar:
    """In-process stand-in for the Dapr sidecar HTTP API."""

    def __init__(self):
        self.ready_after = 0
        self.health_checks = 0
        self.publish_status = 204
        self.failing_topics = set()
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == HEALTH_PATH:
            self.health_checks += 1
            if self.ready_after is None or self.health_checks <= self.ready_after:
                return httpx.Response(500)
            return httpx.Response(204)

        self.requests.append(request)
        topic = request.url.path.rsplit("/", 1)[-1]
        if topic in self.failing_topics:
            return httpx.Response(500, text="component unavailable")
        return httpx.Response(self.publish_status)

    def published(self, topic=None):
        return [
            json.loads(r.content)
            for r in self.requests
            if topic is None or r.url.path.endswith(f"/{topic}")
        ]


@pytest.fixture
def sidecar():
    return FakeSidecar()


@pytest.fixture
def dapr_client(sidecar):
    return DaprClient(ENDPOINT, transport=httpx.MockTransport(sidecar.handler))


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def settings():
    return Settings(
        dapr_http_endpoint=ENDPOINT,
        app_port=3000,
        metrics_port=9988,
        sidecar_timeout_s=0.2,
    )
