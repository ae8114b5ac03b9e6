import os
from typing import Any, Optional

from aws_lambda_powertools import Logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

import entities

DEFAULT_API_URL = "https://console.jumpcloud.com/api"


def get_logger(service: Optional[str] = None, level: Optional[str] = None) -> Logger:
    kwargs = {
        "json_default": entities.json_default,
        "level": level or os.environ.get("LOG_LEVEL", "INFO"),
    }
    if service:
        kwargs["service"] = service
    return Logger(**kwargs)


logger = get_logger(service="config")


class Config(BaseSettings):
    """Settings for a single provider call.

    Built once per lifecycle call and handed to every component that talks to the API,
    so two calls with different credentials never share a client.
    """

    model_config = SettingsConfigDict(frozen=True, env_prefix="JUMPCLOUD_")

    api_key: str
    api_url: str = DEFAULT_API_URL
    org_id: Optional[str] = None

    log_level: str = "INFO"
    request_timeout_seconds: float = Field(default=30, gt=0)

    worker_pool_size: int = Field(default=5, ge=1)
    max_retries: int = Field(default=3, ge=1)
    backoff_base_ms: int = Field(default=100, ge=0)
    rate_limit_ms: int = Field(default=20, ge=0)

    page_size: int = Field(default=100, ge=1)
    max_pages: int = Field(default=100, ge=1)
    page_delay_ms: int = Field(default=100, ge=0)

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("org_id")
    @classmethod
    def empty_org_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


def load_config(overrides: Optional[dict[str, Any]] = None) -> Config:
    """Build a Config from the environment, with explicit values taking precedence.

    Overrides set to None are ignored so that a request which omits a field falls back to the
    environment instead of clearing it.
    """
    values = {k: v for k, v in (overrides or {}).items() if v is not None}
    cfg = Config(**values)  # type: ignore # noqa: PGH003
    logger.debug("Config loaded", extra={"api_url": cfg.api_url, "org_id": cfg.org_id})
    return cfg
