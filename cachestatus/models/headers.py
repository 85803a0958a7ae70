"""Normalized response header mapping restricted to the tracked allowlist."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

import pydantic

# ============================================================================
# Tracked Header Allowlist
# ============================================================================

TRACKED_HEADERS: tuple[str, ...] = (
    # Cloudflare
    "cf-cache-status", "cf-ray", "cf-pop",
    # CloudFront
    "x-amz-cf-id", "x-amz-cf-pop",
    # Fastly
    "x-served-by", "x-cache-hits", "x-timer",
    # Akamai
    "x-akamai-request-id",
    # Bunny CDN
    "cdn-cache", "cdn-pullzone", "cdn-requestid",
    # Generic
    "x-cache", "x-cache-status", "x-cache-date", "x-varnish", "x-edge-location", "via",
    # Standard cache headers
    "age", "cache-control", "expires", "etag", "last-modified", "vary", "pragma",
    # Response metadata
    "server", "content-type",
)

# Lowercased raw name -> interned allowlist entry.
_TRACKED_LOOKUP: dict[str, str] = {name: name for name in TRACKED_HEADERS}

RawHeaders = Mapping[str, Any] | Iterable[Any]


def _iter_raw(raw: RawHeaders) -> Iterator[tuple[str, Any]]:
    """Yield ``(name, value)`` pairs from any supported raw header shape.

    Accepts a mapping, ``(name, value)`` pairs, or the webRequest-style
    list of ``{"name": ..., "value": ...}`` dicts.
    """
    if isinstance(raw, Mapping):
        yield from raw.items()
        return
    for entry in raw:
        if isinstance(entry, Mapping):
            yield entry.get("name", ""), entry.get("value")
        elif isinstance(entry, (tuple, list)) and len(entry) == 2:
            yield entry[0], entry[1]
        else:
            name = getattr(entry, "name", None)
            if name is not None:
                yield name, getattr(entry, "value", None)


class HeaderSet(pydantic.RootModel[dict[str, str]]):
    """Immutable lowercase header-name to raw value mapping.

    Only names from :data:`TRACKED_HEADERS` are ever stored.  Build
    instances with :meth:`from_raw`; the mapping is never mutated
    after construction.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    root: dict[str, str] = pydantic.Field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: RawHeaders | None) -> HeaderSet:
        """Extract tracked headers from a raw response header list.

        Name matching is case-insensitive; unknown headers and
        entries without a string value are dropped.  When a name
        repeats, the last value wins.
        """
        headers: dict[str, str] = {}
        for name, value in _iter_raw(raw or ()):
            if not isinstance(name, str) or not isinstance(value, str):
                continue
            key = _TRACKED_LOOKUP.get(name.strip().lower())
            if key is not None:
                headers[key] = value
        return cls(headers)

    @classmethod
    def empty(cls) -> HeaderSet:
        return cls({})

    def __getitem__(self, name: str) -> str:
        return self.root[name]

    def __iter__(self) -> Iterator[str]:  # type: ignore[override]
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)

    def __contains__(self, name: object) -> bool:
        return name in self.root

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.root.get(name, default)

    def items(self) -> Iterable[tuple[str, str]]:
        return self.root.items()
