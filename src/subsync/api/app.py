"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from logging import getLogger
from typing import TYPE_CHECKING

from fastapi import FastAPI

from subsync import __version__

from .error_handlers import register_error_handlers
from .routes import router

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from subsync.domain.subscription_sync import SubscriptionSync

log = getLogger(__name__)


def create_app(
    subscription_sync: SubscriptionSync,
    *,
    on_shutdown: Callable[[], Awaitable[None]] | None = None,
) -> FastAPI:
    """Build the HTTP surface around an already wired ``SubscriptionSync``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("subsync API started")
        yield
        log.info("subsync API shutting down")
        await app.state.subscription_sync.aclose()
        if on_shutdown is not None:
            await on_shutdown()

    app = FastAPI(title="subsync", version=__version__, lifespan=lifespan)
    app.state.subscription_sync = subscription_sync
    app.include_router(router)
    register_error_handlers(app)
    return app
