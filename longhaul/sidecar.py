import asyncio
import logging

import httpx

from .errors import PublishError, SidecarNotReadyError
from .models import SocialMediaMessage

log = logging.getLogger(__name__)

HEALTH_PATH = "/v1.0/healthz/outbound"
POLL_INTERVAL_S = 0.5


class DaprClient:
    """Thin async client for the Dapr sidecar HTTP API."""

    def __init__(
        self,
        endpoint: str,
        api_token: str | None = None,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        headers = {"dapr-api-token": api_token} if api_token else {}
        self._http = httpx.AsyncClient(
            base_url=self.endpoint,
            headers=headers,
            timeout=timeout_s,
            transport=transport,
        )

    @property
    def is_closed(self) -> bool:
        return self._http.is_closed

    async def aclose(self):
        await self._http.aclose()

    async def is_ready(self) -> bool:
        try:
            r = await self._http.get(HEALTH_PATH)
        except httpx.HTTPError as e:
            log.debug("sidecar health probe failed: %s", e)
            return False
        return r.is_success

    async def _poll_until_ready(self, poll_interval_s: float):
        while not await self.is_ready():
            await asyncio.sleep(poll_interval_s)

    async def wait_for_sidecar(self, timeout_s: float, poll_interval_s: float = POLL_INTERVAL_S):
        # the bound covers in-flight probes too
        try:
            await asyncio.wait_for(self._poll_until_ready(poll_interval_s), timeout_s)
        except asyncio.TimeoutError:
            raise SidecarNotReadyError(self.endpoint, timeout_s) from None
        log.info("Dapr sidecar ready at %s", self.endpoint)

    async def publish_event(self, pubsub: str, topic: str, message: SocialMediaMessage):
        try:
            r = await self._http.post(
                f"/v1.0/publish/{pubsub}/{topic}",
                content=message.to_json(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise PublishError(pubsub, topic, str(e) or type(e).__name__) from e

        if not r.is_success:
            raise PublishError(pubsub, topic, f"HTTP {r.status_code}: {r.text}", r.status_code)
