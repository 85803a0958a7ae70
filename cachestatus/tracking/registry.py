"""
Per-tab navigation and response state machine.

Each tab moves ``Empty -> Pending -> Classified`` or
``Pending -> NoHeaders`` and starts over on the next main-frame
navigation.  A navigation-start always deletes the tab's session
before anything else happens, so no classification can leak from
one document into the next.

Every transition is synchronous.  Observers and the badge are
notified once per actual state change.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from cachestatus.classification import engine
from cachestatus.models.events import MAIN_FRAME_ID, MAIN_FRAME_TYPE, WINDOW_ID_NONE
from cachestatus.models.headers import HeaderSet, RawHeaders
from cachestatus.models.session import PendingNavigation, PerformanceMetrics, TabId, TabSession
from cachestatus.presentation.badge import BadgePresenter, BadgeState
from cachestatus.tracking.observer import ObserverHub, Subscriber
from cachestatus.utils import logger

log = logger.create_logger("Registry")

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SessionRegistry:
    """Owns every ``TabSession`` and ``PendingNavigation``, keyed by tab id.

    Construct one per process (or per test) and pass it to the event
    handlers.  The observer hub and badge presenter are collaborators
    that only ever receive snapshots.
    """

    def __init__(
        self,
        hub: ObserverHub | None = None,
        badge: BadgePresenter | None = None,
        clock: Clock = _utc_now,
    ) -> None:
        self.hub = hub or ObserverHub()
        self.badge = badge
        self._clock = clock
        self._sessions: dict[TabId, TabSession] = {}
        self._pending: dict[TabId, PendingNavigation] = {}

    # ==========================================================================
    # Queries
    # ==========================================================================

    def get(self, tab_id: TabId) -> TabSession | None:
        """Return the tab's session, or ``None``."""
        return self._sessions.get(tab_id)

    def pending(self, tab_id: TabId) -> PendingNavigation | None:
        """Return the tab's in-flight navigation, or ``None``."""
        return self._pending.get(tab_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, tab_id: object) -> bool:
        return tab_id in self._sessions

    # ==========================================================================
    # Transitions
    # ==========================================================================

    def navigation_start(self, tab_id: TabId, frame_id: int, url: str) -> bool:
        """Begin a main-frame navigation.

        Deletes the tab's session and opens a pending navigation.
        Sub-frame navigations are ignored.

        Returns:
            True when the event was handled.
        """
        if frame_id != MAIN_FRAME_ID:
            return False

        self._sessions.pop(tab_id, None)
        self._pending[tab_id] = PendingNavigation(url=url, started_at=self._clock())
        log.debug("Navigation started", {"tabId": tab_id, "url": url})
        self._changed(tab_id)
        return True

    def response_received(
        self,
        tab_id: TabId,
        frame_id: int,
        request_type: str,
        url: str,
        raw_headers: RawHeaders | None,
    ) -> TabSession | None:
        """Classify a main-document response for the tab.

        Both the header-observation event and its response-started
        fallback land here.  A repeat delivery of the same response
        changes nothing and notifies nobody.  Responses for a tab
        with neither a pending navigation nor a session (for example
        after it closed) are ignored.

        Returns:
            The tab's session after the event, or ``None`` when ignored.
        """
        if frame_id != MAIN_FRAME_ID or request_type != MAIN_FRAME_TYPE:
            return None

        pending = self._pending.get(tab_id)
        existing = self._sessions.get(tab_id)
        if pending is None and existing is None:
            log.debug("Ignoring response for unknown tab", {"tabId": tab_id, "url": url})
            return None
        if pending is not None:
            pending.headers_received = True

        headers = HeaderSet.from_raw(raw_headers)
        if (
            existing is not None
            and existing.has_headers
            and existing.url == url
            and existing.headers == headers
        ):
            return existing

        # Metrics only carry over within the same document.
        performance = None
        if existing is not None and existing.url == url:
            performance = existing.performance

        classification = engine.classify(headers)
        session = TabSession(
            url=url,
            headers=headers,
            classification=classification,
            performance=performance,
            timestamp=self._clock(),
        )
        self._sessions[tab_id] = session
        log.info("Response classified", {
            "tabId": tab_id,
            "url": url,
            "cdn": classification.cdn_id,
            "status": classification.status,
        })
        self._changed(tab_id)
        return session

    def navigation_complete(self, tab_id: TabId, frame_id: int, url: str) -> TabSession | None:
        """Finish a main-frame navigation.

        When no response was observed since navigation-start the
        session is flagged ``no_headers`` (created if missing).
        Otherwise only the session URL is refreshed to the final URL
        after redirects; the classification is kept as is.

        Returns:
            The tab's session after the event, or ``None``.
        """
        if frame_id != MAIN_FRAME_ID:
            return None

        pending = self._pending.pop(tab_id, None)
        session = self._sessions.get(tab_id)

        if pending is not None and not pending.headers_received:
            if session is None:
                session = TabSession(url=url, timestamp=self._clock())
                self._sessions[tab_id] = session
            session.no_headers = True
            session.url = url or session.url
            session.timestamp = self._clock()
            log.warn("Navigation completed without response headers", {"tabId": tab_id, "url": url})
            self._changed(tab_id)
            return session

        if session is not None and url and session.url != url:
            log.debug("Final URL after redirects", {"tabId": tab_id, "from": session.url, "to": url})
            session.url = url
            session.timestamp = self._clock()
            self._changed(tab_id)
        return session

    def tab_closed(self, tab_id: TabId) -> None:
        """Purge every piece of state held for the tab."""
        self._sessions.pop(tab_id, None)
        self._pending.pop(tab_id, None)
        self.hub.drop(tab_id)
        if self.badge is not None:
            self.badge.forget(tab_id)
        log.debug("Tab closed", {"tabId": tab_id})

    def performance_received(
        self,
        tab_id: TabId,
        url: str,
        metrics: PerformanceMetrics,
    ) -> TabSession | None:
        """Attach page timing metrics to the tab's session.

        Creates a minimal session when none exists yet; the
        classification of an existing session is left untouched.
        Metrics for a URL other than the one currently being
        navigated to belong to the previous document and are
        ignored.

        Returns:
            The tab's session after the event, or ``None`` when ignored.
        """
        pending = self._pending.get(tab_id)
        if pending is not None and url != pending.url:
            log.debug("Ignoring metrics from previous document", {"tabId": tab_id, "url": url})
            return None

        session = self._sessions.get(tab_id)
        if session is None:
            session = TabSession(url=url, performance=metrics, timestamp=self._clock())
            self._sessions[tab_id] = session
        else:
            session.performance = metrics
            session.timestamp = self._clock()
        log.debug("Performance metrics attached", {"tabId": tab_id, "ttfb": metrics.ttfb})
        self._changed(tab_id)
        return session

    def tab_activated(self, tab_id: TabId) -> BadgeState | None:
        """Redraw the badge for a tab that became active (read-only)."""
        if self.badge is None:
            return None
        return self.badge.render(tab_id, self._sessions.get(tab_id))

    def window_focus_changed(self, window_id: int, active_tab_id: TabId | None) -> BadgeState | None:
        """Redraw the badge for the active tab of a newly focused window."""
        if window_id == WINDOW_ID_NONE or active_tab_id is None:
            return None
        return self.tab_activated(active_tab_id)

    def rerender_all(self) -> None:
        """Redraw the badge of every known tab (after a colour scheme change)."""
        if self.badge is None:
            return
        for tab_id in self._sessions.keys() | self._pending.keys():
            self.badge.render(tab_id, self._sessions.get(tab_id))

    # ==========================================================================
    # Subscriptions and Lifecycle
    # ==========================================================================

    def subscribe(self, tab_id: TabId, subscriber: Subscriber) -> None:
        """Register a popup for the tab and push its current snapshot."""
        self.hub.subscribe(tab_id, subscriber, self._sessions.get(tab_id))

    def unsubscribe(self, tab_id: TabId, subscriber: Subscriber) -> None:
        self.hub.unsubscribe(tab_id, subscriber)

    def clear(self) -> None:
        """Discard all state (process teardown)."""
        self._sessions.clear()
        self._pending.clear()
        self.hub.clear()

    def _changed(self, tab_id: TabId) -> None:
        session = self._sessions.get(tab_id)
        self.hub.notify(tab_id, session)
        if self.badge is not None:
            self.badge.render(tab_id, session)
