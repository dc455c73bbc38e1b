import asyncio
import logging
from typing import Sequence

from longhaul.errors import InvalidDelayError
from longhaul.publisher import MessagePublisher

log = logging.getLogger(__name__)

# the name of the component and the topic happen to be the same here
PUBSUB_NAME = "receivemediapost"
TOPIC_NAME = "receivemediapost"

DEFAULT_DELAY_MS = 10000
LAUNCHER_ARGS_PLACEHOLDER = "%LAUNCHER_ARGS%"


def parse_delay(args: Sequence[str]) -> int:
    """Delay between posts in milliseconds, taken from the first argument."""
    if not args or args[0] == LAUNCHER_ARGS_PLACEHOLDER:
        return DEFAULT_DELAY_MS

    try:
        delay_ms = int(args[0])
    except ValueError:
        delay_ms = -1
    if delay_ms < 0:
        msg = f"Could not parse delay: {args[0]!r}"
        log.error(msg)
        raise InvalidDelayError(msg)
    return delay_ms


async def generate_forever(publisher: MessagePublisher, delay_ms: int):
    delay_s = delay_ms / 1000
    log.info(
        "Generating posts to %s/%s every %sms",
        publisher.pubsub, publisher.topic, delay_ms,
    )
    while True:
        await asyncio.sleep(delay_s)
        await publisher.publish()
