import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from notification_sync.config import Settings, get_settings
from notification_sync.infrastructure.realtime import ChannelHub
from notification_sync.interfaces.api.routes import register_routes
from notification_sync.interfaces.api.sessions import SessionRegistry


def configure_logging(settings: Settings) -> None:
    """Configure the root logger with the level from ``settings``."""

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    settings: Settings | None = None,
    *,
    api_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the push hub and session registry, and close them on shutdown."""

        configure_logging(settings)
        hub = ChannelHub()
        registry = SessionRegistry(hub, settings=settings, api_transport=api_transport)
        app.state.channel_hub = hub
        app.state.session_registry = registry
        yield
        hub.accepting = False
        await registry.close()

    app = FastAPI(title="Notification Sync", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app
