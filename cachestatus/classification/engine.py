"""
CDN detection and cache status classification.

Pure functions over a ``HeaderSet``.  Nothing here raises for
malformed input: an absent signal is always ``None``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from cachestatus.classification import rules
from cachestatus.models.classification import (
    CDNRule,
    Classification,
    HeaderDetector,
    MultiHeaderParserRule,
    SingleHeaderParserRule,
    StatusRule,
    UppercaseRule,
)
from cachestatus.models.headers import HeaderSet
from cachestatus.utils import logger

log = logger.create_logger("Classifier")

Headers = HeaderSet | Mapping[str, str]


# ============================================================================
# CDN Detection
# ============================================================================


def _detector_matches(detector: HeaderDetector, headers: Headers) -> bool:
    value = headers.get(detector.header)
    if not value:
        return False
    if detector.contains is None:
        return True
    return detector.contains.lower() in value.lower()


def detect_cdn(
    headers: Headers,
    cdn_rules: Sequence[CDNRule] = rules.CDN_RULES,
) -> str | None:
    """Return the id of the first CDN rule matching *headers*.

    Rules are tried in declaration order and detectors in order
    within each rule; there is no best-match scoring.

    Args:
        headers: Lowercase header name to value mapping.
        cdn_rules: Rule table, defaults to :data:`rules.CDN_RULES`.

    Returns:
        The CDN id, or ``None`` when no rule matches.
    """
    for rule in cdn_rules:
        for detector in rule.detectors:
            if _detector_matches(detector, headers):
                return rule.id
    return None


# ============================================================================
# Cache Status Parsing
# ============================================================================


def parse_status_value(value: str, parser: str = "default") -> str | None:
    """Map a raw cache header value to a status by substring containment.

    Matching is case-insensitive and follows the precedence order of
    the named parser table; the first matching substring wins.
    """
    table = rules.STATUS_PARSERS.get(parser)
    if table is None:
        log.warn("Unknown status parser", {"parser": parser})
        return None
    lower = value.lower()
    for needle, status in table:
        if needle in lower:
            return status
    return None


def _evaluate(rule: StatusRule, headers: Headers) -> str | None:
    """Apply a single status rule to *headers*."""
    match rule:
        case UppercaseRule(header=header):
            value = headers.get(header)
            return value.upper() if value else None
        case SingleHeaderParserRule(header=header, parser=parser):
            value = headers.get(header)
            return parse_status_value(value, parser) if value else None
        case MultiHeaderParserRule(headers=candidates, parser=parser):
            for header in candidates:
                value = headers.get(header)
                if value:
                    status = parse_status_value(value, parser)
                    if status:
                        return status
            return None
    return None


def status_rule_for(cdn_id: str | None) -> StatusRule:
    """Return the status rule registered for *cdn_id*, or the default rule."""
    if cdn_id is None:
        return rules.DEFAULT_STATUS_RULE
    return rules.STATUS_RULES.get(cdn_id, rules.DEFAULT_STATUS_RULE)


def parse_cache_status(headers: Headers, cdn_id: str | None) -> str | None:
    """Derive the normalized cache status for a detected CDN.

    Args:
        headers: Lowercase header name to value mapping.
        cdn_id: CDN id from :func:`detect_cdn`, or ``None``.

    Returns:
        A status such as ``"HIT"``, or ``None`` when no usable
        signal exists.
    """
    return _evaluate(status_rule_for(cdn_id), headers)


# ============================================================================
# Combined
# ============================================================================


def classify(headers: Headers) -> Classification:
    """Detect the CDN and parse its cache status in one pass."""
    cdn_id = detect_cdn(headers)
    return Classification(cdn_id=cdn_id, status=parse_cache_status(headers, cdn_id))


def get_cdn_name(cdn_id: str | None) -> str:
    """Return the display name for *cdn_id* (``"CDN"`` when unknown)."""
    for rule in rules.CDN_RULES:
        if rule.id == cdn_id:
            return rule.display_name
    return rules.GENERIC_CDN_NAME
