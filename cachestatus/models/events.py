"""Wire models for events and messages forwarded by the browser extension.

Field names follow the extension's camelCase keys (``tabId``,
``frameId``, ``responseHeaders``).
"""

from __future__ import annotations

from typing import Annotated, Literal

import pydantic

from cachestatus.models.session import PerformanceMetrics, TabSession
from cachestatus.utils import serialization

MAIN_FRAME_ID = 0
MAIN_FRAME_TYPE = "main_frame"
WINDOW_ID_NONE = -1


# ── Host runtime events ─────────────────────────────────────────


class NavigationEvent(serialization.CamelModel):
    """``onNavigationStart`` / ``onNavigationComplete`` payload."""

    tab_id: int
    frame_id: int = MAIN_FRAME_ID
    url: str = ""


class ResponseHeader(pydantic.BaseModel):
    """A single raw header as delivered by the webRequest API."""

    name: str
    value: str | None = None


class ResponseEvent(serialization.CamelModel):
    """``onResponseHeaders`` / ``onResponseStarted`` payload."""

    tab_id: int
    frame_id: int = MAIN_FRAME_ID
    request_type: str = pydantic.Field(default=MAIN_FRAME_TYPE, alias="type")
    url: str = ""
    response_headers: list[ResponseHeader] = pydantic.Field(default_factory=list)


class TabEvent(serialization.CamelModel):
    """``onTabClosed`` / ``onTabActivated`` payload."""

    tab_id: int


class WindowFocusEvent(serialization.CamelModel):
    """``onWindowFocusChanged`` payload.

    The extension resolves the window's active tab before
    forwarding; ``active_tab_id`` is ``None`` for empty windows.
    """

    window_id: int
    active_tab_id: int | None = None


# ── Runtime messages ────────────────────────────────────────────


class GetTabDataMessage(serialization.CamelModel):
    """Popup request for the current snapshot of a tab."""

    type: Literal["getTabData"]
    tab_id: int


class PerformanceDataMessage(serialization.CamelModel):
    """Navigation timing metrics from the page collector.

    ``tab_id`` and ``url`` describe the sending tab.
    """

    type: Literal["performanceData"]
    tab_id: int
    url: str = ""
    metrics: PerformanceMetrics


class ColorSchemeMessage(serialization.CamelModel):
    """Appearance report from a content script."""

    type: Literal["colorScheme"]
    is_dark: bool


RuntimeMessage = Annotated[
    GetTabDataMessage | PerformanceDataMessage | ColorSchemeMessage,
    pydantic.Field(discriminator="type"),
]


# ── Observer channel ────────────────────────────────────────────


class SubscribeMessage(serialization.CamelModel):
    """Handshake sent by the popup after connecting."""

    type: Literal["subscribe"]
    tab_id: int


class UpdateMessage(serialization.CamelModel):
    """Snapshot pushed to a subscriber on every session change."""

    type: Literal["update"] = "update"
    data: TabSession | None = None
