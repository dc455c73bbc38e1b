import argparse
import asyncio
import logging
import sys
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from prometheus_client import REGISTRY, CollectorRegistry

from longhaul.config import Settings, load_settings
from longhaul.metrics import PublishMetrics, start_metrics_server
from longhaul.publisher import MessagePublisher
from longhaul.sidecar import DaprClient

from .generator import PUBSUB_NAME, TOPIC_NAME, generate_forever, parse_delay

log = logging.getLogger("feed_generator")

METRICS_PREFIX = "lh_feed_generator"


def create_app(
    settings: Settings,
    delay_ms: int,
    client: DaprClient | None = None,
    registry: CollectorRegistry = REGISTRY,
) -> FastAPI:
    client = client or DaprClient(
        settings.dapr_http_endpoint,
        api_token=settings.dapr_api_token,
        timeout_s=settings.publish_timeout_s,
    )
    metrics = PublishMetrics(METRICS_PREFIX, registry=registry)
    publisher = MessagePublisher(client, PUBSUB_NAME, TOPIC_NAME, metrics)
    started = time.time()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # the app may come up before its sidecar does
        log.info("Waiting for Dapr sidecar to be ready...")
        try:
            await client.wait_for_sidecar(settings.sidecar_timeout_s)

            app.state.generator_task = asyncio.create_task(generate_forever(publisher, delay_ms))

            yield

            log.info("shutting down feed generator")
            app.state.generator_task.cancel()
            try:
                await app.state.generator_task
            except asyncio.CancelledError:
                pass
        finally:
            await client.aclose()

    app = FastAPI(lifespan=lifespan)
    app.state.publisher = publisher
    app.state.metrics = metrics

    @app.get("/healthz")
    async def healthz():
        return {
            "status": "ok",
            "publishers": [{"pubsub": publisher.pubsub, "topic": publisher.topic, "delay_ms": delay_ms}],
            "uptime_seconds": int(time.time() - started),
        }

    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="feed-generator")
    parser.add_argument("delay", nargs="?", help="delay between posts in milliseconds")
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
    delay_ms = parse_delay([args.delay] if args.delay is not None else [])

    app = create_app(settings, delay_ms)
    uvicorn.run(app, host="0.0.0.0", port=settings.app_port)


if __name__ == "__main__":
    main()
