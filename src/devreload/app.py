"""FastAPI application factories for the asset and notification servers."""

from fastapi import FastAPI

from devreload.config import Settings
from devreload.events.broadcaster import Broadcaster
from devreload.events.watcher import FilesystemWatcher
from devreload.middleware.logging import RequestLoggingMiddleware
from devreload.routes import assets, health, reload


def create_asset_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create the static asset application.

    Args:
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application serving the root directory.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="devreload assets",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(assets.router)

    return app


def create_notify_app(
    settings: Settings | None = None,
    broadcaster: Broadcaster | None = None,
    watcher: FilesystemWatcher | None = None,
) -> FastAPI:
    """Factory function to create the reload notification application.

    Args:
        settings: Configuration instance. Creates default if None.
        broadcaster: Hub shared with the debouncer. Creates one if None.
        watcher: Watcher reported on by the readiness check.

    Returns:
        Configured FastAPI application with WebSocket and SSE endpoints.
    """
    if settings is None:
        settings = Settings()
    if broadcaster is None:
        broadcaster = Broadcaster(
            queue_size=settings.queue_size,
            max_clients=settings.max_clients,
        )

    app = FastAPI(
        title="devreload notifications",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.broadcaster = broadcaster
    app.state.watcher = watcher

    app.include_router(health.router)
    app.include_router(reload.router)

    return app
