"""Shared fixtures for the test suite."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

import pytest
from fastapi import testclient

from cachestatus import config, main
from cachestatus.models.session import PerformanceMetrics
from cachestatus.presentation.badge import BadgePresenter, MemoryBadgeSurface
from cachestatus.presentation.theme import ThemeState
from cachestatus.tracking.observer import ObserverHub
from cachestatus.tracking.registry import SessionRegistry

FIXED_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class RecordingSubscriber:
    """Subscriber that keeps every pushed message."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []
        self.closed = False

    def send(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    def close(self) -> None:
        self.closed = True


class FailingSubscriber:
    """Subscriber whose channel is already closed."""

    def __init__(self) -> None:
        self.calls = 0
        self.closed = False

    def send(self, message: dict[str, Any]) -> None:
        self.calls += 1
        raise ConnectionError("channel closed")

    def close(self) -> None:
        self.closed = True


# ── Header Fixtures ─────────────────────────────────────────────


@pytest.fixture()
def cloudflare_hit_headers() -> list[dict[str, str]]:
    """webRequest-style header list for a Cloudflare cache hit."""
    return [
        {"name": "CF-Cache-Status", "value": "HIT"},
        {"name": "CF-Ray", "value": "8a1b2c3d4e5f-FRA"},
        {"name": "Server", "value": "cloudflare"},
        {"name": "Content-Type", "value": "text/html; charset=utf-8"},
        {"name": "Set-Cookie", "value": "id=1"},
    ]


@pytest.fixture()
def cloudfront_miss_headers() -> dict[str, str]:
    """Header mapping for a CloudFront miss."""
    return {
        "X-Amz-Cf-Id": "abc123==",
        "X-Amz-Cf-Pop": "FRA56-P10",
        "X-Cache": "Miss from cloudfront",
        "Age": "0",
    }


@pytest.fixture()
def sample_metrics() -> PerformanceMetrics:
    """Navigation timing as reported by the page collector."""
    return PerformanceMetrics.model_validate({
        "dns": 12,
        "tcp": 20,
        "tls": 15,
        "ttfb": 85,
        "download": 4,
        "domInteractive": 420,
        "pageLoad": 1250,
        "transferSize": 20480,
        "encodedSize": 19000,
        "decodedSize": 64000,
    })


# ── Registry Fixtures ───────────────────────────────────────────


@pytest.fixture()
def subscriber() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture()
def surface() -> MemoryBadgeSurface:
    return MemoryBadgeSurface(per_tab=True)


@pytest.fixture()
def registry(surface: MemoryBadgeSurface) -> SessionRegistry:
    """Isolated registry with a badge presenter and a fixed clock."""
    return SessionRegistry(
        hub=ObserverHub(),
        badge=BadgePresenter(surface, ThemeState()),
        clock=lambda: FIXED_TIME,
    )


# ── App Fixtures ────────────────────────────────────────────────


@pytest.fixture()
def settings() -> config.Settings:
    return config.Settings(
        UVICORN_HOST="127.0.0.1",
        UVICORN_PORT=3002,
        ENVIRONMENT="development",
        PER_TAB_BADGES=True,
        SUBSCRIBER_QUEUE_SIZE=8,
    )


@pytest.fixture()
def client(settings: config.Settings) -> Iterator[testclient.TestClient]:
    """Test client for a fresh app; runs the lifespan without the OS probe."""
    app = main.create_app(settings=settings, appearance_probe=None)
    with testclient.TestClient(app) as test_client:
        yield test_client
