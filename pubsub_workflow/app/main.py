import argparse
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Sequence

import uvicorn
from fastapi import FastAPI
from prometheus_client import REGISTRY, CollectorRegistry

from longhaul.config import Settings, load_settings
from longhaul.metrics import PublishMetrics, start_metrics_server
from longhaul.sidecar import DaprClient

from .workflow import FIRST_PUBLISH_DELAY_S, TIERS, Tier, start_publishing, stop_publishing

log = logging.getLogger("pubsub_workflow")

METRICS_PREFIX = "lh_pubsub_workflow"


def create_app(
    settings: Settings,
    client: DaprClient | None = None,
    registry: CollectorRegistry = REGISTRY,
    tiers: Sequence[Tier] = TIERS,
    first_delay_s: float = FIRST_PUBLISH_DELAY_S,
) -> FastAPI:
    client = client or DaprClient(
        settings.dapr_http_endpoint,
        api_token=settings.dapr_api_token,
        timeout_s=settings.publish_timeout_s,
    )
    metrics = PublishMetrics(METRICS_PREFIX, labelnames=("pubsub", "topic"), registry=registry)
    started = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # the app may come up before its sidecar does
        log.info("Waiting for Dapr sidecar to be ready...")
        try:
            await client.wait_for_sidecar(settings.sidecar_timeout_s)

            log.info("Starting Pubsub Workflow")
            app.state.publish_tasks = start_publishing(client, metrics, tiers, first_delay_s)

            yield

            log.info("Exiting Pubsub Workflow")
            await stop_publishing(app.state.publish_tasks)
        finally:
            await client.aclose()

    app = FastAPI(lifespan=lifespan)
    app.state.metrics = metrics

    @app.get("/healthz")
    async def healthz():
        return {
            "status": "ok",
            "publishers": [
                {"tier": t.name, "pubsub": t.pubsub, "topic": t.topic, "period_s": t.period_s}
                for t in tiers
            ],
            "uptime_seconds": int(time.time() - started),
        }

    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pubsub-workflow")
    parser.add_argument(
        "--app-port", "--DaprHTTPAppPort", dest="app_port", type=int,
        help="port for the app HTTP listener",
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    settings = load_settings()
    if args.app_port:
        settings = settings.model_copy(update={"app_port": args.app_port})

    logging.basicConfig(level=settings.log_level)

    start_metrics_server(settings.metrics_port)

    app = create_app(settings)
    uvicorn.run(app, host="0.0.0.0", port=settings.app_port)


if __name__ == "__main__":
    main()
