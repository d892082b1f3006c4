"""
Application lifecycle event handlers.

Startup creates the Cosmos store, connects it and makes sure every
container exists; shutdown closes it again.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from db.cosmos_session import CosmosStore

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("app_starting", app=settings.APP_NAME, env=settings.APP_ENV)

        store = CosmosStore(settings)
        await store.connect()
        await store.ensure_containers()
        app.state.cosmos_store = store
        logger.info("cosmos_store_ready", database=settings.AZURE_COSMOS_DATABASE)

        if not settings.SUPER_ADMIN_PASSWORD:
            logger.info("env_super_admin_disabled")

        logger.info("app_started")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("app_stopping")

        store: CosmosStore | None = getattr(app.state, "cosmos_store", None)
        if store is not None:
            await store.close()
            app.state.cosmos_store = None

        logger.info("app_stopped")

    return stop_app
