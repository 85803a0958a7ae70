"""
Server configuration.

Centralises all environment variable names and default values.
Uses ``pydantic_settings.BaseSettings`` for automatic environment
variable binding and type coercion; ``.env`` is loaded by the app
module before the first ``Settings()`` is built.

``LOG_LEVEL`` and ``WRITE_TO_FILE`` belong to the logger, which reads
them itself so that logging works before any settings exist.
"""

from __future__ import annotations

import functools
from typing import Literal

import pydantic
import pydantic_settings


class Settings(pydantic_settings.BaseSettings):
    """Runtime settings for the cache status server.

    Attributes:
        host: Interface uvicorn binds to.
        port: Port uvicorn listens on.
        environment: ``development`` enables auto-reload.
        per_tab_badges: Whether the connected badge surface
            supports per-tab badge calls.  When ``False`` only
            the global badge is updated.
        subscriber_queue_size: Maximum number of undelivered
            updates buffered per popup subscription.
    """

    host: str = pydantic.Field(default="127.0.0.1", validation_alias="UVICORN_HOST")
    port: int = pydantic.Field(default=3002, validation_alias="UVICORN_PORT")
    environment: Literal["development", "production"] = pydantic.Field(
        default="development", validation_alias="ENVIRONMENT"
    )
    per_tab_badges: bool = pydantic.Field(default=True, validation_alias="PER_TAB_BADGES")
    subscriber_queue_size: int = pydantic.Field(
        default=64, ge=1, validation_alias="SUBSCRIBER_QUEUE_SIZE"
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings (built once)."""
    return Settings()
