"""
HTTP and WebSocket endpoints used by the browser extension.

The background script forwards host-runtime events here; the popup
fetches snapshots and subscribes for live updates.  Every handler is
``async def`` so registry transitions run on the event loop thread,
the same thread that drains subscriber queues.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

import fastapi
import pydantic

from cachestatus.models.events import (
    ColorSchemeMessage,
    GetTabDataMessage,
    NavigationEvent,
    PerformanceDataMessage,
    ResponseEvent,
    RuntimeMessage,
    SubscribeMessage,
    TabEvent,
    WindowFocusEvent,
)
from cachestatus.models.session import TabSession
from cachestatus.presentation import popup
from cachestatus.presentation.badge import MemoryBadgeSurface
from cachestatus.presentation.theme import ThemeState
from cachestatus.tracking.observer import QueueSubscriber
from cachestatus.tracking.registry import SessionRegistry
from cachestatus.utils import errors, logger

log = logger.create_logger("Extension")

_MESSAGE_ADAPTER: pydantic.TypeAdapter[Any] = pydantic.TypeAdapter(RuntimeMessage)

# WebSocket close code for an unusable handshake (unsupported data).
_WS_UNSUPPORTED_DATA = 1003
# Sent when the server stops pushing to a subscriber; the popup resubscribes.
_WS_TRY_AGAIN_LATER = 1013


def _snapshot(session: TabSession | None) -> dict[str, Any] | None:
    return session.to_wire() if session is not None else None


def build_router(
    registry: SessionRegistry,
    theme: ThemeState,
    badges: MemoryBadgeSurface,
    *,
    subscriber_queue_size: int = 64,
) -> fastapi.APIRouter:
    """Build the extension-facing routes bound to *registry*."""
    router = fastapi.APIRouter()

    # ==========================================================================
    # Host Runtime Events
    # ==========================================================================

    @router.post("/api/events/navigation-start")
    async def navigation_start(event: NavigationEvent) -> dict[str, Any]:
        handled = registry.navigation_start(event.tab_id, event.frame_id, event.url)
        return {"handled": handled}

    @router.post("/api/events/navigation-complete")
    async def navigation_complete(event: NavigationEvent) -> dict[str, Any]:
        session = registry.navigation_complete(event.tab_id, event.frame_id, event.url)
        return {"data": _snapshot(session)}

    async def _response(event: ResponseEvent) -> dict[str, Any]:
        session = registry.response_received(
            event.tab_id,
            event.frame_id,
            event.request_type,
            event.url,
            [h.model_dump() for h in event.response_headers],
        )
        return {"handled": session is not None, "data": _snapshot(session)}

    @router.post("/api/events/response-headers")
    async def response_headers(event: ResponseEvent) -> dict[str, Any]:
        return await _response(event)

    @router.post("/api/events/response-started")
    async def response_started(event: ResponseEvent) -> dict[str, Any]:
        """Fallback for platforms where header observation does not fire."""
        return await _response(event)

    @router.post("/api/events/tab-closed")
    async def tab_closed(event: TabEvent) -> dict[str, Any]:
        registry.tab_closed(event.tab_id)
        return {"handled": True}

    @router.post("/api/events/tab-activated")
    async def tab_activated(event: TabEvent) -> dict[str, Any]:
        state = registry.tab_activated(event.tab_id)
        return {"badge": state.to_wire() if state is not None else None}

    @router.post("/api/events/window-focus")
    async def window_focus(event: WindowFocusEvent) -> dict[str, Any]:
        state = registry.window_focus_changed(event.window_id, event.active_tab_id)
        return {"badge": state.to_wire() if state is not None else None}

    # ==========================================================================
    # Runtime Messages
    # ==========================================================================

    @router.post("/api/messages")
    async def runtime_message(payload: dict[str, Any] = fastapi.Body(...)) -> Any:
        try:
            message = _MESSAGE_ADAPTER.validate_python(payload)
        except pydantic.ValidationError as exc:
            raise fastapi.HTTPException(
                status_code=422,
                detail=exc.errors(include_url=False, include_context=False),
            ) from exc

        match message:
            case GetTabDataMessage(tab_id=tab_id):
                return _snapshot(registry.get(tab_id))
            case PerformanceDataMessage(tab_id=tab_id, url=url, metrics=metrics):
                session = registry.performance_received(tab_id, url, metrics)
                return {"handled": session is not None}
            case ColorSchemeMessage(is_dark=is_dark):
                theme.set_dark(is_dark)
                return {"isDark": theme.is_dark}
        return None

    # ==========================================================================
    # Read-only Views
    # ==========================================================================

    @router.get("/api/tabs/{tab_id}")
    async def tab_data(tab_id: int) -> Any:
        return _snapshot(registry.get(tab_id))

    @router.get("/api/tabs/{tab_id}/view")
    async def tab_view(tab_id: int) -> dict[str, Any]:
        return popup.build_popup_view(registry.get(tab_id)).to_wire()

    @router.get("/api/badge")
    async def badge(tab_id: int | None = fastapi.Query(None, alias="tabId")) -> dict[str, Any]:
        return badges.state_for(tab_id).to_wire()

    # ==========================================================================
    # Observer Channel
    # ==========================================================================

    @router.websocket("/ws/subscribe")
    async def subscribe(websocket: fastapi.WebSocket) -> None:
        await websocket.accept()
        try:
            handshake = SubscribeMessage.model_validate(await websocket.receive_json())
        except fastapi.WebSocketDisconnect:
            return
        except (pydantic.ValidationError, ValueError) as exc:
            log.debug("Rejected subscription handshake", {"error": errors.get_error_message(exc)})
            await websocket.close(code=_WS_UNSUPPORTED_DATA)
            return

        tab_id = handshake.tab_id
        subscriber = QueueSubscriber(maxsize=subscriber_queue_size)
        registry.subscribe(tab_id, subscriber)
        log.debug("Popup subscribed", {"tabId": tab_id})

        async def pump() -> None:
            # Returns once the hub closes the subscriber.
            while (message := await subscriber.receive()) is not None:
                await websocket.send_json(message)

        async def drain_client() -> None:
            # Only used to notice the disconnect; later messages are ignored.
            while True:
                await websocket.receive_text()

        pump_task = asyncio.create_task(pump())
        tasks = [pump_task, asyncio.create_task(drain_client())]
        dropped = False
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            dropped = pump_task in done and pump_task.exception() is None
        finally:
            for task in tasks:
                task.cancel()
            for task in tasks:
                with contextlib.suppress(asyncio.CancelledError, fastapi.WebSocketDisconnect, RuntimeError):
                    await task
            registry.unsubscribe(tab_id, subscriber)
            log.debug("Popup unsubscribed", {"tabId": tab_id})

        if dropped:
            log.debug("Subscriber closed, asking popup to resubscribe", {"tabId": tab_id})
            with contextlib.suppress(fastapi.WebSocketDisconnect, RuntimeError):
                await websocket.close(code=_WS_TRY_AGAIN_LATER)

    return router
