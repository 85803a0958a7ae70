"""
Headless browser probe.

Drives a real Chromium page with Playwright and feeds its events
into a ``SessionRegistry`` the same way the extension's background
script does, so a URL can be classified from the command line or
from tests without a browser extension.
"""

from __future__ import annotations

from typing import Any

from playwright import async_api

from cachestatus.models.events import MAIN_FRAME_ID, MAIN_FRAME_TYPE
from cachestatus.models.session import PerformanceMetrics, TabId, TabSession
from cachestatus.tracking.registry import SessionRegistry
from cachestatus.utils import errors, logger

log = logger.create_logger("Probe")

# Tab id assigned to the probe's single page.
PROBE_TAB_ID: TabId = 1

# Same field set and rounding the content script reports.
NAVIGATION_TIMING_SCRIPT = """
() => {
    const entries = performance.getEntriesByType('navigation');
    if (!entries || entries.length === 0) return null;
    const nav = entries[0];
    return {
        dns: Math.round(nav.domainLookupEnd - nav.domainLookupStart),
        tcp: Math.round(nav.connectEnd - nav.connectStart),
        tls: nav.secureConnectionStart > 0
            ? Math.round(nav.connectEnd - nav.secureConnectionStart)
            : 0,
        ttfb: Math.round(nav.responseStart - nav.requestStart),
        download: Math.round(nav.responseEnd - nav.responseStart),
        domInteractive: Math.round(nav.domInteractive - nav.startTime),
        pageLoad: Math.round(nav.loadEventEnd - nav.startTime),
        transferSize: nav.transferSize || 0,
        encodedSize: nav.encodedBodySize || 0,
        decodedSize: nav.decodedBodySize || 0,
    };
}
"""


class BrowserProbe:
    """
    Loads URLs in a headless page and records the resulting session.
    """

    def __init__(self, registry: SessionRegistry | None = None, tab_id: TabId = PROBE_TAB_ID) -> None:
        self.registry = registry or SessionRegistry()
        self.tab_id = tab_id
        self._playwright: async_api.Playwright | None = None
        self._browser: async_api.Browser | None = None
        self._page: async_api.Page | None = None

    async def __aenter__(self) -> BrowserProbe:
        await self.launch()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ==========================================================================
    # Browser Lifecycle
    # ==========================================================================

    async def launch(self) -> None:
        """Start Playwright and open the probe page."""
        log.debug("Launching headless Chromium")
        self._playwright = await async_api.async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=True)
        page = await self._browser.new_page()
        self.attach(page)

    def attach(self, page: async_api.Page) -> None:
        """Route *page* events into the registry."""
        self._page = page
        page.on("request", self._on_request)
        page.on("response", self._on_response)
        page.on("load", self._on_load)
        page.on("close", self._on_close)

    async def close(self) -> None:
        """Close the page and browser and stop Playwright."""
        if self._page is not None:
            try:
                await self._page.close()
            except Exception as exc:
                log.debug("Page close error (non-fatal)", {"error": errors.get_error_message(exc)})
            self._page = None

        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as exc:
                log.debug("Browser close error (non-fatal)", {"error": errors.get_error_message(exc)})
            self._browser = None

        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as exc:
                log.debug("Playwright stop error (non-fatal)", {"error": errors.get_error_message(exc)})
            self._playwright = None

    # ==========================================================================
    # Page Events
    # ==========================================================================

    def _is_main_frame(self, frame: async_api.Frame) -> bool:
        return self._page is not None and frame == self._page.main_frame

    def _on_request(self, request: async_api.Request) -> None:
        # Redirect hops belong to the navigation that is already open.
        if not request.is_navigation_request() or request.redirected_from is not None:
            return
        if self._is_main_frame(request.frame):
            self.registry.navigation_start(self.tab_id, MAIN_FRAME_ID, request.url)

    def _on_response(self, response: async_api.Response) -> None:
        request = response.request
        if request.resource_type != "document" or not self._is_main_frame(response.frame):
            return
        self.registry.response_received(
            self.tab_id,
            MAIN_FRAME_ID,
            MAIN_FRAME_TYPE,
            response.url,
            response.headers,
        )

    def _on_load(self, page: async_api.Page) -> None:
        self.registry.navigation_complete(self.tab_id, MAIN_FRAME_ID, page.url)

    def _on_close(self, _page: async_api.Page) -> None:
        self.registry.tab_closed(self.tab_id)

    # ==========================================================================
    # Probing
    # ==========================================================================

    async def collect_performance(self) -> PerformanceMetrics | None:
        """Read navigation timing from the page and attach it to the session."""
        if self._page is None:
            raise RuntimeError("No probe page active")
        payload: dict[str, Any] | None = await self._page.evaluate(NAVIGATION_TIMING_SCRIPT)
        if payload is None:
            return None
        metrics = PerformanceMetrics.model_validate(payload)
        self.registry.performance_received(self.tab_id, self._page.url, metrics)
        return metrics

    async def inspect(self, url: str, timeout: int = 30000) -> TabSession | None:
        """Load *url* and return the tab's session once the page has loaded."""
        if self._page is None:
            raise RuntimeError("No probe page active")

        log.info("Probing", {"url": url})
        await self._page.goto(url, wait_until="load", timeout=timeout)
        try:
            await self.collect_performance()
        except async_api.Error as exc:
            log.warn("Could not read navigation timing", {"error": errors.get_error_message(exc)})
        return self.registry.get(self.tab_id)


async def probe_url(url: str, timeout: int = 30000) -> TabSession | None:
    """Classify a single URL in a throwaway headless browser."""
    async with BrowserProbe() as probe:
        return await probe.inspect(url, timeout=timeout)
