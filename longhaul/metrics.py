"""
Prometheus metrics shared by the long-haul publishers.

Each process owns one PublishMetrics instance: a gauge holding the duration
of the most recent publish call and a counter of publish calls that failed.
"""

import logging
from typing import Sequence

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, start_http_server

log = logging.getLogger(__name__)


class PublishMetrics:
    def __init__(
        self,
        prefix: str,
        labelnames: Sequence[str] = (),
        registry: CollectorRegistry = REGISTRY,
    ):
        self.labelnames = tuple(labelnames)
        self.call_time = Gauge(
            f"{prefix}_publish_call_time",
            "The time it takes for the publish call to return",
            self.labelnames,
            registry=registry,
        )
        self.failures = Counter(
            f"{prefix}_publish_failure_count",
            "Publish calls that throw",
            self.labelnames,
            registry=registry,
        )

    def _child(self, metric, labels):
        if self.labelnames:
            return metric.labels(**labels)
        return metric

    def init_labels(self, **labels):
        """Export zero-valued series for a label set ahead of its first publish."""
        self._child(self.call_time, labels)
        self._child(self.failures, labels)

    def time_call(self, **labels):
        """Context manager setting the call-time gauge to the block's duration."""
        return self._child(self.call_time, labels).time()

    def record_failure(self, **labels):
        self._child(self.failures, labels).inc()


def start_metrics_server(port: int, registry: CollectorRegistry = REGISTRY):
    log.info("Starting metrics server on port %s", port)
    return start_http_server(port, registry=registry)
