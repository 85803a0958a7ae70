"""Tests for cachestatus.tracking.registry: the per-tab state machine."""

from __future__ import annotations

from typing import Any

from cachestatus.models.session import PerformanceMetrics
from cachestatus.presentation.badge import MemoryBadgeSurface
from cachestatus.tracking.registry import SessionRegistry
from tests.conftest import FIXED_TIME, RecordingSubscriber

TAB = 7
URL = "https://example.com/"


def _response(registry: SessionRegistry, headers: Any, url: str = URL, tab_id: int = TAB):
    return registry.response_received(tab_id, 0, "main_frame", url, headers)


class TestNavigationStart:
    """Tests for navigation_start()."""

    def test_opens_pending_navigation(self, registry: SessionRegistry) -> None:
        assert registry.navigation_start(TAB, 0, URL) is True
        pending = registry.pending(TAB)
        assert pending is not None
        assert pending.url == URL
        assert pending.headers_received is False
        assert pending.started_at == FIXED_TIME

    def test_deletes_previous_session(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"cf-cache-status": "HIT"})
        registry.navigation_complete(TAB, 0, URL)
        assert registry.get(TAB) is not None

        registry.navigation_start(TAB, 0, "https://example.com/next")
        assert registry.get(TAB) is None

    def test_sub_frame_ignored(self, registry: SessionRegistry) -> None:
        assert registry.navigation_start(TAB, 3, URL) is False
        assert registry.pending(TAB) is None

    def test_notifies_subscriber_with_null(self, registry: SessionRegistry, subscriber: RecordingSubscriber) -> None:
        registry.subscribe(TAB, subscriber)
        registry.navigation_start(TAB, 0, URL)
        assert subscriber.messages[-1] == {"type": "update", "data": None}


class TestResponseReceived:
    """Tests for response_received()."""

    def test_classifies_main_document(self, registry: SessionRegistry, cloudflare_hit_headers) -> None:
        registry.navigation_start(TAB, 0, URL)
        session = _response(registry, cloudflare_hit_headers)

        assert session is not None
        assert session.classification.cdn_id == "cloudflare"
        assert session.classification.status == "HIT"
        assert session.headers["cf-ray"] == "8a1b2c3d4e5f-FRA"
        assert session.timestamp == FIXED_TIME
        assert registry.pending(TAB).headers_received is True

    def test_sub_resource_ignored(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, URL)
        assert registry.response_received(TAB, 0, "script", URL, {"x-cache": "HIT"}) is None
        assert registry.response_received(TAB, 2, "main_frame", URL, {"x-cache": "HIT"}) is None
        assert registry.get(TAB) is None
        assert registry.pending(TAB).headers_received is False

    def test_unknown_tab_is_noop(self, registry: SessionRegistry, subscriber: RecordingSubscriber) -> None:
        registry.subscribe(99, subscriber)
        assert _response(registry, {"x-cache": "HIT"}, tab_id=99) is None
        assert registry.get(99) is None
        assert len(subscriber.messages) == 1

    def test_redirect_chain_keeps_last_response(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, "http://example.com/")
        _response(registry, {"server": "nginx"}, url="http://example.com/")
        _response(registry, {"cf-cache-status": "MISS", "cf-ray": "1-LHR"}, url="https://example.com/")

        session = registry.get(TAB)
        assert session.url == "https://example.com/"
        assert session.classification.cdn_id == "cloudflare"
        assert session.classification.status == "MISS"

    def test_duplicate_delivery_notifies_once(
        self, registry: SessionRegistry, subscriber: RecordingSubscriber, cloudflare_hit_headers
    ) -> None:
        registry.navigation_start(TAB, 0, URL)
        registry.subscribe(TAB, subscriber)
        first = _response(registry, cloudflare_hit_headers)
        second = _response(registry, cloudflare_hit_headers)

        assert first is second
        # Initial snapshot on subscribe plus one update.
        assert len(subscriber.messages) == 2

    def test_keeps_performance_from_earlier_session(
        self, registry: SessionRegistry, sample_metrics: PerformanceMetrics
    ) -> None:
        registry.performance_received(TAB, URL, sample_metrics)
        session = _response(registry, {"x-cache": "HIT"})
        assert session.performance == sample_metrics

    def test_new_document_starts_without_performance(
        self, registry: SessionRegistry, sample_metrics: PerformanceMetrics
    ) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.performance_received(TAB, URL, sample_metrics)
        registry.navigation_complete(TAB, 0, URL)

        registry.navigation_start(TAB, 0, "https://example.com/next")
        session = _response(registry, {"x-cache": "MISS"}, url="https://example.com/next")
        assert session.performance is None

    def test_no_headers_flag_cleared_by_new_response(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, URL)
        registry.navigation_complete(TAB, 0, URL)
        assert registry.get(TAB).no_headers is True

        session = _response(registry, {"x-cache": "MISS"})
        assert session.no_headers is False

    def test_renders_badge(self, registry: SessionRegistry, surface: MemoryBadgeSurface) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        assert surface.state_for(TAB).text == "HIT"


class TestNavigationComplete:
    """Tests for navigation_complete()."""

    def test_flags_missing_headers(self, registry: SessionRegistry, subscriber: RecordingSubscriber) -> None:
        registry.subscribe(TAB, subscriber)
        registry.navigation_start(TAB, 0, URL)
        session = registry.navigation_complete(TAB, 0, URL)

        assert session is not None
        assert session.no_headers is True
        assert session.url == URL
        assert not session.has_headers
        assert registry.pending(TAB) is None
        assert subscriber.messages[-1]["data"]["noHeaders"] is True

    def test_refreshes_url_after_redirect(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, "https://example.com")
        _response(registry, {"x-cache": "HIT"}, url="https://example.com")
        session = registry.navigation_complete(TAB, 0, "https://www.example.com/home")

        assert session.url == "https://www.example.com/home"
        assert session.classification.status == "HIT"
        assert session.no_headers is False

    def test_same_url_does_not_notify(self, registry: SessionRegistry, subscriber: RecordingSubscriber) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.subscribe(TAB, subscriber)
        registry.navigation_complete(TAB, 0, URL)
        assert len(subscriber.messages) == 1

    def test_without_navigation_start(self, registry: SessionRegistry) -> None:
        assert registry.navigation_complete(TAB, 0, URL) is None
        assert registry.get(TAB) is None

    def test_sub_frame_ignored(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, URL)
        assert registry.navigation_complete(TAB, 1, URL) is None
        assert registry.pending(TAB) is not None

    def test_performance_before_complete_still_flags(
        self, registry: SessionRegistry, sample_metrics: PerformanceMetrics
    ) -> None:
        registry.navigation_start(TAB, 0, URL)
        registry.performance_received(TAB, URL, sample_metrics)
        session = registry.navigation_complete(TAB, 0, URL)
        assert session.no_headers is True
        assert session.performance == sample_metrics


class TestTabClosed:
    """Tests for tab_closed()."""

    def test_purges_state(self, registry: SessionRegistry, subscriber: RecordingSubscriber) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.subscribe(TAB, subscriber)

        registry.tab_closed(TAB)

        assert registry.get(TAB) is None
        assert registry.pending(TAB) is None
        assert not registry.hub.has_subscriber(TAB)

    def test_late_response_is_noop(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, URL)
        registry.tab_closed(TAB)
        assert _response(registry, {"x-cache": "HIT"}) is None
        assert TAB not in registry

    def test_forgets_badge(self, registry: SessionRegistry, surface: MemoryBadgeSurface) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.tab_closed(TAB)
        assert surface.state_for(TAB) is surface.global_state


class TestPerformanceReceived:
    """Tests for performance_received()."""

    def test_attaches_to_existing_session(
        self, registry: SessionRegistry, sample_metrics: PerformanceMetrics
    ) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"cf-cache-status": "HIT"})
        session = registry.performance_received(TAB, URL, sample_metrics)
        assert session.performance.ttfb == 85
        assert session.classification.status == "HIT"

    def test_creates_minimal_session(self, registry: SessionRegistry, sample_metrics: PerformanceMetrics) -> None:
        session = registry.performance_received(TAB, URL, sample_metrics)
        assert session.url == URL
        assert not session.has_headers
        assert session.classification.cdn_id is None

    def test_late_metrics_from_previous_document_ignored(
        self, registry: SessionRegistry, subscriber: RecordingSubscriber
    ) -> None:
        next_url = "https://example.com/next"
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.navigation_complete(TAB, 0, URL)

        registry.navigation_start(TAB, 0, next_url)
        registry.subscribe(TAB, subscriber)
        assert registry.performance_received(TAB, URL, PerformanceMetrics(ttfb=999)) is None
        assert registry.get(TAB) is None
        assert len(subscriber.messages) == 1

        session = _response(registry, {"x-cache": "MISS"}, url=next_url)
        assert session.performance is None
        assert session.classification.status == "MISS"

    def test_metrics_for_pending_url_accepted(
        self, registry: SessionRegistry, sample_metrics: PerformanceMetrics
    ) -> None:
        registry.navigation_start(TAB, 0, URL)
        assert registry.performance_received(TAB, URL, sample_metrics) is not None

    def test_replaces_previous_metrics(self, registry: SessionRegistry) -> None:
        registry.performance_received(TAB, URL, PerformanceMetrics(ttfb=10))
        session = registry.performance_received(TAB, URL, PerformanceMetrics(ttfb=20))
        assert session.performance.ttfb == 20

    def test_notifies(
        self, registry: SessionRegistry, subscriber: RecordingSubscriber, sample_metrics: PerformanceMetrics
    ) -> None:
        registry.subscribe(TAB, subscriber)
        registry.performance_received(TAB, URL, sample_metrics)
        assert subscriber.messages[-1]["data"]["performance"]["pageLoad"] == 1250


class TestActivation:
    """Tests for tab_activated() and window_focus_changed()."""

    def test_tab_activated_renders_without_changing_state(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "MISS"})
        before = registry.get(TAB)
        state = registry.tab_activated(TAB)
        assert state.text == "MISS"
        assert registry.get(TAB) is before

    def test_tab_activated_unknown_tab_clears(self, registry: SessionRegistry) -> None:
        assert registry.tab_activated(123).text == ""

    def test_window_none_ignored(self, registry: SessionRegistry) -> None:
        assert registry.window_focus_changed(-1, TAB) is None

    def test_window_without_active_tab(self, registry: SessionRegistry) -> None:
        assert registry.window_focus_changed(4, None) is None

    def test_window_focus_renders_active_tab(self, registry: SessionRegistry) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        assert registry.window_focus_changed(4, TAB).text == "HIT"

    def test_no_badge_presenter(self) -> None:
        assert SessionRegistry().tab_activated(TAB) is None

    def test_rerender_all_uses_current_theme(self, registry: SessionRegistry, surface: MemoryBadgeSurface) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.navigation_start(8, 0, URL)
        assert not surface.state_for(TAB).icon.endswith("-dark.png")

        registry.badge.theme.set_dark(True)
        registry.rerender_all()
        assert surface.state_for(TAB).icon.endswith("-dark.png")
        assert surface.state_for(8).icon.endswith("-dark.png")
        assert surface.state_for(TAB).text == "HIT"

    def test_rerender_all_without_presenter(self) -> None:
        registry = SessionRegistry()
        registry.navigation_start(TAB, 0, URL)
        registry.rerender_all()


class TestSubscriptions:
    """Observer wiring through the registry."""

    def test_subscribe_pushes_current_snapshot(
        self, registry: SessionRegistry, subscriber: RecordingSubscriber
    ) -> None:
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.subscribe(TAB, subscriber)
        data = subscriber.messages[0]["data"]
        assert data["url"] == URL
        assert data["classification"] == {"cdnId": "cdn", "status": "HIT"}

    def test_unsubscribe_stops_updates(self, registry: SessionRegistry, subscriber: RecordingSubscriber) -> None:
        registry.subscribe(TAB, subscriber)
        registry.unsubscribe(TAB, subscriber)
        registry.navigation_start(TAB, 0, URL)
        assert len(subscriber.messages) == 1

    def test_one_update_per_transition(self, registry: SessionRegistry, subscriber: RecordingSubscriber) -> None:
        registry.subscribe(TAB, subscriber)
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.navigation_complete(TAB, 0, URL)
        # subscribe, navigation start, response; complete changes nothing.
        assert len(subscriber.messages) == 3

    def test_clear(self, registry: SessionRegistry, subscriber: RecordingSubscriber) -> None:
        registry.subscribe(TAB, subscriber)
        registry.navigation_start(TAB, 0, URL)
        _response(registry, {"x-cache": "HIT"})
        registry.clear()
        assert len(registry) == 0
        assert registry.pending(TAB) is None
        assert len(registry.hub) == 0
