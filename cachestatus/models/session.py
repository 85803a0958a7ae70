"""Pydantic models for per-tab session state and pending navigations."""

from __future__ import annotations

from datetime import UTC, datetime

import pydantic

from cachestatus.models.classification import Classification
from cachestatus.models.headers import HeaderSet
from cachestatus.utils import serialization

TabId = int


def _now() -> datetime:
    return datetime.now(UTC)


class PerformanceMetrics(serialization.CamelModel):
    """Navigation timing metrics collected by the page.

    All durations are milliseconds, sizes are bytes.  The payload is
    produced by the page collector; unknown keys are kept verbatim.
    """

    model_config = pydantic.ConfigDict(extra="allow")

    dns: float | None = None
    tcp: float | None = None
    tls: float | None = None
    ttfb: float | None = None
    download: float | None = None
    dom_interactive: float | None = None
    page_load: float | None = None
    transfer_size: int | None = None
    encoded_size: int | None = None
    decoded_size: int | None = None

    @pydantic.field_validator("ttfb", "page_load")
    @classmethod
    def _drop_non_positive(cls, value: float | None) -> float | None:
        # Cross-origin redirects report zero for these.
        if value is not None and value <= 0:
            return None
        return value


class TabSession(serialization.CamelModel):
    """Most recent classification and metrics for one tab.

    Owned by ``SessionRegistry``.  ``classification`` is only ever
    replaced as a whole, never edited field by field.
    """

    url: str = ""
    headers: HeaderSet = pydantic.Field(default_factory=HeaderSet.empty)
    classification: Classification = pydantic.Field(
        default_factory=Classification
    )
    performance: PerformanceMetrics | None = None
    no_headers: bool = False
    timestamp: datetime = pydantic.Field(default_factory=_now)

    @property
    def has_headers(self) -> bool:
        return len(self.headers) > 0


class PendingNavigation(pydantic.BaseModel):
    """A main-frame navigation that has started but not completed."""

    url: str
    started_at: datetime = pydantic.Field(default_factory=_now)
    headers_received: bool = False
