"""
Popup view model.

Turns a ``TabSession`` snapshot into the rows and labels the popup
lays out: status badge and description, cache and response header
sections, and page timing.  Layout itself is the popup's concern.
"""

from __future__ import annotations

import re
from typing import Literal

import pydantic

from cachestatus.classification import engine
from cachestatus.data import loader
from cachestatus.models.session import PerformanceMetrics, TabSession
from cachestatus.utils import serialization

# ============================================================================
# Display Configuration
# ============================================================================

HEADER_LABELS: dict[str, str] = {
    "cf-cache-status": "Cache Status",
    "cf-ray": "CF-Ray",
    "cf-pop": "Edge Location",
    "x-amz-cf-id": "Request ID",
    "x-amz-cf-pop": "Edge Location",
    "x-served-by": "Served By",
    "x-cache-hits": "Cache Hits",
    "x-timer": "Timer",
    "x-akamai-request-id": "Request ID",
    "cdn-cache": "Cache Status",
    "cdn-pullzone": "Pull Zone",
    "cdn-requestid": "Request ID",
    "x-cache": "X-Cache",
    "x-cache-status": "Cache Status",
    "x-cache-date": "Cache Date",
    "x-varnish": "Varnish ID",
    "x-edge-location": "Edge Location",
    "via": "Via",
    "age": "Age",
    "cache-control": "Cache-Control",
    "expires": "Expires",
    "etag": "ETag",
    "last-modified": "Last-Modified",
    "vary": "Vary",
    "pragma": "Pragma",
    "server": "Server",
    "content-type": "Content-Type",
}

# Cache section order: status, edge location, timing and control, identifiers.
CACHE_HEADERS: tuple[str, ...] = (
    "x-cache", "x-cache-status", "cf-cache-status", "cdn-cache",
    "x-amz-cf-pop", "cf-pop", "x-edge-location", "x-served-by",
    "age", "x-cache-date", "expires", "cache-control", "etag", "last-modified", "vary", "pragma",
    "cf-ray", "x-amz-cf-id", "x-akamai-request-id", "cdn-requestid", "cdn-pullzone",
    "x-cache-hits", "x-timer", "x-varnish",
)

RESPONSE_HEADERS: tuple[str, ...] = ("server", "content-type", "via")

STATUS_DESCRIPTIONS: dict[str, str] = {
    "HIT": "Served from {cdn} cache",
    "MISS": "Fetched from origin server",
    "EXPIRED": "Cache expired, fetched from origin",
    "STALE": "Serving stale content",
    "REVALIDATED": "Cache revalidated with origin",
    "BYPASS": "Cache bypassed",
    "DYNAMIC": "Dynamic content, not cached",
    "REFRESH": "Cache refreshed from origin",
    "ERROR": "Error retrieving from origin",
}

MetricFormat = Literal["ms", "bytes"]

PERFORMANCE_METRICS: tuple[tuple[str, str, MetricFormat], ...] = (
    ("ttfb", "TTFB", "ms"),
    ("dns", "DNS Lookup", "ms"),
    ("tcp", "TCP Connect", "ms"),
    ("tls", "TLS Handshake", "ms"),
    ("download", "Download", "ms"),
    ("dom_interactive", "DOM Interactive", "ms"),
    ("page_load", "Page Load", "ms"),
    ("transfer_size", "Transfer Size", "bytes"),
)

# Zero means "not applicable" for these (cached DNS, plain HTTP).
_OPTIONAL_METRICS = frozenset({"dns", "tls"})

_POP_CODE = re.compile(r"^([A-Z]{3})", re.I)
_LEADING_INT = re.compile(r"^\s*(-?\d+)")

# ============================================================================
# View Models
# ============================================================================


class Row(serialization.CamelModel):
    """A label/value pair in one of the popup sections."""

    key: str
    label: str
    value: str


class PopupView(serialization.CamelModel):
    """Everything the popup renders for one tab."""

    state: Literal["ok", "no_data", "reload"]
    badge_text: str
    status_class: str = ""
    status_label: str
    cdn_name: str | None = None
    url: str | None = None
    cache_rows: list[Row] = pydantic.Field(default_factory=list)
    response_rows: list[Row] = pydantic.Field(default_factory=list)
    performance_rows: list[Row] = pydantic.Field(default_factory=list)
    show_origin_shield_info: bool = False


# ============================================================================
# Value Formatting
# ============================================================================


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def format_performance_value(value: float, fmt: MetricFormat = "ms") -> str:
    """Format a timing (ms) or size (bytes) value for display."""
    if fmt == "bytes":
        if value < 1024:
            return f"{_number(value)} B"
        if value < 1024 * 1024:
            return f"{value / 1024:.1f} KB"
        return f"{value / (1024 * 1024):.2f} MB"
    if value < 1000:
        return f"{_number(value)} ms"
    return f"{value / 1000:.2f} s"


def format_age(value: str) -> str:
    """Render an ``Age`` header as ``42s``, ``3m 5s`` or ``2h 10m``."""
    match = _LEADING_INT.match(value)
    if match is None:
        return value
    seconds = int(match.group(1))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def format_header_value(key: str, value: str) -> str:
    """Humanise header values: durations and edge location codes."""
    if key == "age":
        return format_age(value)

    locations = loader.get_edge_locations()

    # CF-Ray is "<ray id>-<POP>".
    if key == "cf-ray":
        parts = value.split("-")
        if len(parts) >= 2:
            code = parts[-1].upper()
            city = locations.get(code)
            if city:
                return f"{city} ({code})"

    # POP headers start with the IATA code, e.g. FRA56-P10.
    if key in ("x-amz-cf-pop", "cf-pop"):
        match = _POP_CODE.match(value)
        if match:
            city = locations.get(match.group(1).upper())
            if city:
                return f"{city} ({value})"

    return value


def status_description(
    status: str,
    cdn_id: str | None,
    performance: PerformanceMetrics | None = None,
) -> str:
    """One-line explanation of *status*, with TTFB and size when known."""
    cdn_name = engine.get_cdn_name(cdn_id)
    template = STATUS_DESCRIPTIONS.get(status.upper())
    text = template.format(cdn=cdn_name) if template else f"{cdn_name} cache status"

    if performance is not None:
        parts: list[str] = []
        if performance.ttfb and performance.ttfb > 0:
            parts.append(format_performance_value(performance.ttfb))
        if performance.transfer_size and performance.transfer_size > 0:
            parts.append(format_performance_value(performance.transfer_size, "bytes"))
        if parts:
            text += f" ({', '.join(parts)})"
    return text


# ============================================================================
# View Building
# ============================================================================


def _header_rows(session: TabSession) -> tuple[list[Row], list[Row]]:
    shown: set[str] = set()
    sections: list[list[Row]] = []
    for keys in (CACHE_HEADERS, RESPONSE_HEADERS):
        rows: list[Row] = []
        for key in keys:
            value = session.headers.get(key)
            if value and key not in shown:
                rows.append(Row(
                    key=key,
                    label=HEADER_LABELS.get(key, key),
                    value=format_header_value(key, value),
                ))
                shown.add(key)
        sections.append(rows)
    return sections[0], sections[1]


def _performance_rows(performance: PerformanceMetrics | None) -> list[Row]:
    if performance is None:
        return []
    rows: list[Row] = []
    for key, label, fmt in PERFORMANCE_METRICS:
        value = getattr(performance, key)
        if value is None or value < 0:
            continue
        if value == 0 and key in _OPTIONAL_METRICS:
            continue
        rows.append(Row(key=key, label=label, value=format_performance_value(value, fmt)))
    return rows


def build_popup_view(session: TabSession | None) -> PopupView:
    """Build the popup view for a tab's snapshot (``None`` when absent)."""
    if session is not None and session.no_headers:
        return PopupView(
            state="reload",
            badge_text="?",
            status_label="Headers were not captured for this page. Reload to inspect it.",
            url=session.url or None,
            performance_rows=_performance_rows(session.performance),
        )
    if session is None:
        return PopupView(state="no_data", badge_text="--", status_label="No CDN headers detected")
    if not session.has_headers:
        return PopupView(
            state="no_data",
            badge_text="--",
            status_label="No CDN headers detected",
            url=session.url or None,
            performance_rows=_performance_rows(session.performance),
        )

    cdn_id = session.classification.cdn_id
    status = session.classification.status
    cache_rows, response_rows = _header_rows(session)

    if status:
        badge, status_class = status, status.lower()
        label = status_description(status, cdn_id, session.performance)
    else:
        badge, status_class, label = "N/A", "", "No cache status header"

    return PopupView(
        state="ok",
        badge_text=badge,
        status_class=status_class,
        status_label=label,
        cdn_name=engine.get_cdn_name(cdn_id) if cdn_id else None,
        url=session.url or None,
        cache_rows=cache_rows,
        response_rows=response_rows,
        performance_rows=_performance_rows(session.performance),
        show_origin_shield_info=cdn_id == "cloudfront",
    )
