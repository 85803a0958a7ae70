"""
CDN fingerprint and cache status rule tables.

Rules are evaluated in declaration order and the first match wins;
a response carrying both ``cf-cache-status`` and a generic
``x-cache`` header is therefore Cloudflare.  Detectors within a rule
are OR-ed.  A detector without ``contains`` only checks that the
header is present.
"""

from __future__ import annotations

from cachestatus.models.classification import (
    CDNRule,
    HeaderDetector,
    MultiHeaderParserRule,
    SingleHeaderParserRule,
    StatusRule,
    UppercaseRule,
)

# ============================================================================
# CDN Detection Rules
# ============================================================================

CDN_RULES: tuple[CDNRule, ...] = (
    CDNRule(
        id="cloudflare",
        display_name="Cloudflare",
        detectors=(
            HeaderDetector(header="cf-cache-status"),
            HeaderDetector(header="cf-ray"),
        ),
    ),
    CDNRule(
        id="cloudfront",
        display_name="CloudFront",
        detectors=(
            HeaderDetector(header="x-amz-cf-id"),
            HeaderDetector(header="x-amz-cf-pop"),
            HeaderDetector(header="via", contains="cloudfront"),
        ),
    ),
    CDNRule(
        id="fastly",
        display_name="Fastly",
        detectors=(
            HeaderDetector(header="x-served-by"),
            HeaderDetector(header="x-timer"),
        ),
    ),
    CDNRule(
        id="akamai",
        display_name="Akamai",
        detectors=(
            HeaderDetector(header="x-akamai-request-id"),
            HeaderDetector(header="server", contains="akamai"),
            HeaderDetector(header="via", contains="akamai"),
        ),
    ),
    CDNRule(
        id="bunny",
        display_name="Bunny CDN",
        detectors=(
            HeaderDetector(header="cdn-cache"),
            HeaderDetector(header="cdn-pullzone"),
        ),
    ),
    CDNRule(
        id="varnish",
        display_name="Varnish",
        detectors=(
            HeaderDetector(header="x-varnish"),
            HeaderDetector(header="via", contains="varnish"),
        ),
    ),
    # Generic fallback for any cache that reports through x-cache.
    CDNRule(
        id="cdn",
        display_name="CDN",
        detectors=(
            HeaderDetector(header="x-cache"),
            HeaderDetector(header="x-cache-status"),
        ),
    ),
)

GENERIC_CDN_NAME = "CDN"

# ============================================================================
# Status Parsers
# ============================================================================
# Substring -> status, checked in order against the lower-cased value.
# "TCP_REFRESH_HIT" is HIT because "hit" precedes "refresh".

STATUS_PARSERS: dict[str, tuple[tuple[str, str], ...]] = {
    "default": (
        ("hit", "HIT"),
        ("miss", "MISS"),
        ("refresh", "REFRESH"),
        ("error", "ERROR"),
        ("pass", "BYPASS"),
        ("expired", "EXPIRED"),
    ),
    "hit_miss": (
        ("hit", "HIT"),
        ("miss", "MISS"),
    ),
}

# ============================================================================
# Cache Status Rules
# ============================================================================

STATUS_RULES: dict[str, StatusRule] = {
    "cloudflare": UppercaseRule(header="cf-cache-status"),
    "bunny": SingleHeaderParserRule(header="cdn-cache", parser="hit_miss"),
}

DEFAULT_STATUS_RULE: StatusRule = MultiHeaderParserRule(
    headers=("x-cache", "x-cache-status"),
    parser="default",
)

# ============================================================================
# Status Vocabulary
# ============================================================================

STATUS_VOCABULARY: tuple[str, ...] = (
    "HIT",
    "MISS",
    "EXPIRED",
    "STALE",
    "REVALIDATED",
    "REFRESH",
    "BYPASS",
    "DYNAMIC",
    "ERROR",
)

# Presentation placeholder for an absent status.
NO_STATUS = "NONE"
