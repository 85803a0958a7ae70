"""Pydantic models for CDN detection rules, cache status rules, and results.

Rule records are plain data.  Executable behaviour lives in
``cachestatus.classification.engine``; status rules refer to their
parser by name so the tables stay serializable.
"""

from __future__ import annotations

from typing import Annotated, Literal

import pydantic

from cachestatus.utils import serialization

CacheStatus = Literal[
    "HIT",
    "MISS",
    "EXPIRED",
    "STALE",
    "REVALIDATED",
    "REFRESH",
    "BYPASS",
    "DYNAMIC",
    "ERROR",
]


class HeaderDetector(pydantic.BaseModel):
    """One detection condition: header present, optionally containing a substring."""

    model_config = pydantic.ConfigDict(frozen=True)

    header: str
    contains: str | None = None


class CDNRule(pydantic.BaseModel):
    """A CDN fingerprint; any detector matching identifies the CDN."""

    model_config = pydantic.ConfigDict(frozen=True)

    id: str
    display_name: str
    detectors: tuple[HeaderDetector, ...]


# ── Status rules (tagged variants) ──────────────────────────────


class UppercaseRule(pydantic.BaseModel):
    """Status is the header value upper-cased verbatim."""

    model_config = pydantic.ConfigDict(frozen=True)

    kind: Literal["uppercase"] = "uppercase"
    header: str


class SingleHeaderParserRule(pydantic.BaseModel):
    """Status is the named parser applied to a single header."""

    model_config = pydantic.ConfigDict(frozen=True)

    kind: Literal["single_header_parser"] = "single_header_parser"
    header: str
    parser: str


class MultiHeaderParserRule(pydantic.BaseModel):
    """First non-null parser result over an ordered list of candidate headers."""

    model_config = pydantic.ConfigDict(frozen=True)

    kind: Literal["multi_header_parser"] = "multi_header_parser"
    headers: tuple[str, ...]
    parser: str


StatusRule = Annotated[
    UppercaseRule | SingleHeaderParserRule | MultiHeaderParserRule,
    pydantic.Field(discriminator="kind"),
]


class Classification(serialization.CamelModel):
    """Joint output of CDN detection and cache status parsing."""

    model_config = pydantic.ConfigDict(frozen=True)

    cdn_id: str | None = None
    status: str | None = None
