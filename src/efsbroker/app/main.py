"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from efsbroker import __version__
from efsbroker.app.api.v2 import broker_router
from efsbroker.app.config import get_settings
from efsbroker.app.context import BrokerContext, build_context
from efsbroker.app.logging import setup_logging
from efsbroker.app.metrics import get_metrics_response
from efsbroker.app.middleware import LoggingMiddleware
from efsbroker.core.errors import BrokerError
from efsbroker.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


def create_app(context: BrokerContext | None = None) -> FastAPI:
    """Build the broker application.

    Args:
        context: Prebuilt broker context. When omitted, the lifespan builds
            one from settings (store init + restore) and resumes in-flight
            operations.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        ctx = context
        if ctx is None:
            ctx = await build_context(get_settings())
            await ctx.controller.resume()
        app.state.context = ctx

        logger.info(
            "Starting broker",
            extra={
                "event": LogEvent.APP_STARTED,
                "instances": len(ctx.state.instances),
                "bindings": len(ctx.state.bindings),
            },
        )

        yield

        logger.info("Shutting down broker", extra={"event": LogEvent.APP_STOPPED})
        await ctx.controller.shutdown()
        await ctx.store.cleanup()

    app = FastAPI(title="EFS Broker", version=__version__, lifespan=lifespan)
    app.add_middleware(LoggingMiddleware)
    if context is not None:
        app.state.context = context

    @app.exception_handler(BrokerError)
    async def broker_error_handler(request: Request, exc: BrokerError) -> JSONResponse:
        """Render BrokerError as an OSB error body."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(),
        )

    app.include_router(broker_router)

    @app.get("/health")
    async def health() -> dict:
        ctx: BrokerContext | None = getattr(app.state, "context", None)
        return {
            "status": "ok" if ctx is not None else "starting",
            "version": __version__,
            "instances": len(ctx.state.instances) if ctx else 0,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint."""
        ctx: BrokerContext | None = getattr(app.state, "context", None)
        settings = ctx.settings if ctx is not None else get_settings()
        if not settings.metrics.enabled:
            return JSONResponse(status_code=404, content={})
        return get_metrics_response()

    return app


setup_logging()
app = create_app()
