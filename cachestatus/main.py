"""
Server entry point: FastAPI app setup and route configuration.
Builds the per-process registry, badge surface and colour scheme
state, and mounts the extension routes on them.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from typing import Any

import dotenv
import fastapi
import uvicorn
from fastapi.middleware import cors

from cachestatus import config
from cachestatus.presentation.badge import BadgePresenter, MemoryBadgeSurface
from cachestatus.presentation.theme import AppearanceProbe, ThemeState, system_appearance_probe
from cachestatus.routes.extension import build_router
from cachestatus.tracking.observer import ObserverHub
from cachestatus.tracking.registry import SessionRegistry
from cachestatus.utils import logger

dotenv.load_dotenv()

log = logger.create_logger("Server")


def create_app(
    settings: config.Settings | None = None,
    registry: SessionRegistry | None = None,
    appearance_probe: AppearanceProbe | None = system_appearance_probe,
) -> fastapi.FastAPI:
    """Build the FastAPI application.

    The badge endpoint and the colour scheme message act on the
    registry's own badge presenter.  A registry without one gets a
    presenter drawing onto a fresh ``MemoryBadgeSurface``; a registry
    that brings its own keeps it, surface and theme included.

    Args:
        settings: Runtime settings; read from the environment when omitted.
        registry: Session registry to serve; a fresh one is built when omitted.
        appearance_probe: Startup OS colour scheme lookup, or ``None`` to skip it.

    Raises:
        ValueError: When the registry's presenter draws onto a surface
            that cannot be served over HTTP.
    """
    settings = settings or config.get_settings()
    if registry is None:
        registry = SessionRegistry(hub=ObserverHub())
    if registry.badge is None:
        registry.badge = BadgePresenter(MemoryBadgeSurface(per_tab=settings.per_tab_badges), ThemeState())
    if not isinstance(registry.badge.surface, MemoryBadgeSurface):
        raise ValueError(
            f"Cannot serve badge surface {type(registry.badge.surface).__name__}; "
            "use a MemoryBadgeSurface"
        )
    badges = registry.badge.surface
    theme = registry.badge.theme
    # Icons follow the colour scheme, so every badge is redrawn on a change.
    theme.on_change(registry.rerender_all)

    @contextlib.asynccontextmanager
    async def lifespan(_app: fastapi.FastAPI) -> AsyncGenerator[None]:
        log.section("Cache Status Server Started")
        log.info("Environment", {
            "env": settings.environment,
            "perTabBadges": settings.per_tab_badges,
        })
        log_path = logger.start_log_file("server")
        if log_path:
            log.info("Writing log file", {"path": log_path})

        # The OS lookup must never delay startup.
        probe_task: asyncio.Task[bool] | None = None
        if appearance_probe is not None:
            probe_task = asyncio.create_task(theme.refresh(appearance_probe))

        try:
            yield
        finally:
            if probe_task is not None and not probe_task.done():
                probe_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await probe_task
            registry.clear()
            log.info("Server stopped")
            logger.end_log_file()

    app = fastapi.FastAPI(title="Cache Status Server", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.theme = theme
    app.state.badges = badges

    # ========================================================================
    # Middleware
    # ========================================================================

    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # API Routes
    # ========================================================================

    app.include_router(build_router(
        registry,
        theme,
        badges,
        subscriber_queue_size=settings.subscriber_queue_size,
    ))

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "tabs": len(registry)}

    return app


app = create_app()


def main() -> None:
    """Run the server with uvicorn."""
    settings = config.get_settings()
    uvicorn.run(
        "cachestatus.main:app",
        host=settings.host,
        port=settings.port,
        reload=not settings.is_production,
    )


if __name__ == "__main__":
    main()
