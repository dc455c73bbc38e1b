import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

from longhaul.metrics import PublishMetrics
from longhaul.publisher import MessagePublisher, run_periodic
from longhaul.sidecar import DaprClient

log = logging.getLogger(__name__)

FIRST_PUBLISH_DELAY_S = 5.0


@dataclass(frozen=True)
class Tier:
    name: str
    pubsub: str
    topic: str
    period_s: float


TIERS = (
    Tier("rapid", "longhaul-sb-rapid", "rapidtopic", 10),
    Tier("medium", "longhaul-sb-medium", "mediumtopic", 300),
    Tier("slow", "longhaul-sb-slow", "slowtopic", 3600),
    Tier("glacial", "longhaul-sb-glacial", "glacialtopic", 3600 * 12),
)


def start_publishing(
    client: DaprClient,
    metrics: PublishMetrics,
    tiers: Iterable[Tier] = TIERS,
    first_delay_s: float = FIRST_PUBLISH_DELAY_S,
) -> list[asyncio.Task]:
    tasks = []
    for tier in tiers:
        publisher = MessagePublisher(client, tier.pubsub, tier.topic, metrics)
        task = asyncio.create_task(
            run_periodic(publisher.publish, tier.period_s, first_delay_s),
            name=f"publish-{tier.name}",
        )
        log.info("Publishing to %s/%s every %ss", tier.pubsub, tier.topic, tier.period_s)
        tasks.append(task)
    return tasks


async def stop_publishing(tasks: list[asyncio.Task]):
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
