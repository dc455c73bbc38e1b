class LonghaulError(Exception):
    pass


class SidecarNotReadyError(LonghaulError):
    """The sidecar did not report ready before the startup deadline."""

    def __init__(self, endpoint: str, timeout_s: float):
        super().__init__(f"sidecar at {endpoint} not ready after {timeout_s:g}s")
        self.endpoint = endpoint
        self.timeout_s = timeout_s


class PublishError(LonghaulError):
    """A publish call to the sidecar did not succeed."""

    def __init__(self, pubsub: str, topic: str, detail: str, status_code: int | None = None):
        super().__init__(f"publish to {pubsub}/{topic} failed: {detail}")
        self.pubsub = pubsub
        self.topic = topic
        self.status_code = status_code


class InvalidDelayError(LonghaulError, ValueError):
    pass
