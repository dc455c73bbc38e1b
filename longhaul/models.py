import random
import string
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HASHTAGS = (
    "dapr",
    "microservices",
    "kubernetes",
    "cloudnative",
    "sidecar",
    "pubsub",
    "longhaul",
    "resiliency",
    "opensource",
    "serverless",
)


class SocialMediaMessage(BaseModel):
    # consumers read camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    correlation_id: uuid.UUID
    message_id: uuid.UUID
    message: str = Field(min_length=1)
    creation_date: datetime
    previous_app_timestamp: datetime

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def random_message(rng: random.Random | None = None) -> str:
    """Random lowercase word of 5 to 9 letters followed by a hashtag."""
    rng = rng or random
    length = rng.randrange(5, 10)
    word = "".join(rng.choice(string.ascii_lowercase) for _ in range(length))
    return f"{word} #{rng.choice(HASHTAGS)}"


def make_post(rng: random.Random | None = None) -> SocialMediaMessage:
    now = datetime.now(timezone.utc)
    return SocialMediaMessage(
        correlation_id=uuid.uuid4(),
        message_id=uuid.uuid4(),
        message=random_message(rng),
        creation_date=now,
        previous_app_timestamp=now,
    )
