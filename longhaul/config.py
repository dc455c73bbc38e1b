import os
from typing import Literal, Mapping

from pydantic import BaseModel, Field

DEFAULT_DAPR_HTTP_PORT = "3500"
DEFAULT_APP_PORT = "3000"
DEFAULT_METRICS_PORT = "9988"


class Settings(BaseModel):
    dapr_http_endpoint: str = Field(min_length=1)
    dapr_api_token: str | None = None
    app_port: int = Field(gt=0, lt=65536)
    metrics_port: int = Field(gt=0, lt=65536)
    sidecar_timeout_s: float = Field(default=60.0, gt=0)
    publish_timeout_s: float = Field(default=30.0, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env

    endpoint = env.get("DAPR_HTTP_ENDPOINT")
    if not endpoint:
        endpoint = f"http://127.0.0.1:{env.get('DAPR_HTTP_PORT', DEFAULT_DAPR_HTTP_PORT)}"

    app_port = env.get("APP_PORT") or env.get("DAPR_HTTP_APP_PORT") or DEFAULT_APP_PORT

    return Settings(
        dapr_http_endpoint=endpoint.rstrip("/"),
        dapr_api_token=env.get("DAPR_API_TOKEN") or None,
        app_port=int(app_port),
        metrics_port=int(env.get("METRICS_PORT", DEFAULT_METRICS_PORT)),
        sidecar_timeout_s=float(env.get("SIDECAR_TIMEOUT_S", "60")),
        publish_timeout_s=float(env.get("PUBLISH_TIMEOUT_S", "30")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
