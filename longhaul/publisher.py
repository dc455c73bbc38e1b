import asyncio
import logging
from typing import Awaitable, Callable

from .metrics import PublishMetrics
from .models import SocialMediaMessage, make_post
from .sidecar import DaprClient

log = logging.getLogger(__name__)


class MessagePublisher:
    """Publishes one freshly generated message per call to a fixed pubsub/topic."""

    def __init__(
        self,
        client: DaprClient,
        pubsub: str,
        topic: str,
        metrics: PublishMetrics,
        make_message: Callable[[], SocialMediaMessage] = make_post,
    ):
        self.client = client
        self.pubsub = pubsub
        self.topic = topic
        self.metrics = metrics
        self.make_message = make_message
        metrics.init_labels(pubsub=pubsub, topic=topic)

    async def publish(self) -> bool:
        message = self.make_message()
        try:
            log.info("Publishing %s to %s/%s", message.message_id, self.pubsub, self.topic)
            with self.metrics.time_call(pubsub=self.pubsub, topic=self.topic):
                await self.client.publish_event(self.pubsub, self.topic, message)
        except Exception as e:
            log.exception("Caught %s publishing to %s/%s", e, self.pubsub, self.topic)
            self.metrics.record_failure(pubsub=self.pubsub, topic=self.topic)
            return False
        return True


async def run_periodic(
    tick: Callable[[], Awaitable[object]],
    period_s: float,
    first_delay_s: float = 0.0,
):
    """Fire ``tick`` after ``first_delay_s`` and then every ``period_s``.

    Each firing runs in its own task, so a slow tick never pushes back the
    next one. Slots missed while the event loop was blocked are skipped, not
    fired back to back. Ticks still running when this coroutine is cancelled
    are cancelled with it.
    """
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task] = set()
    next_at = loop.time() + first_delay_s

    try:
        while True:
            while loop.time() < next_at:
                await asyncio.sleep(next_at - loop.time())
            task = asyncio.create_task(tick())
            pending.add(task)
            task.add_done_callback(pending.discard)
            next_at += period_s
            now = loop.time()
            # drop slots missed while the loop was stalled
            while next_at <= now:
                next_at += period_s
    finally:
        for task in list(pending):
            task.cancel()
