"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from lzswap.config import get_settings
from lzswap.routing.base import QuoteGateway

logger = logging.getLogger(__name__)

CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_HEADERS = "Content-Type, Authorization"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    # Shutdown
    gateway = getattr(app.state, "gateway", None)
    if gateway is not None:
        await gateway.aclose()
        logger.info("Quote gateway closed")


def create_app(gateway: Optional[QuoteGateway] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        gateway: Quote gateway to serve from; created from settings on
            first request when omitted
    """
    settings = get_settings()

    app = FastAPI(
        title="lzswap API",
        description="Swap quote proxy for browser clients",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.gateway = gateway

    origins = settings.allowed_origins

    # Every response carries CORS headers, including errors and preflights
    @app.middleware("http")
    async def add_cors_headers(request: Request, call_next):
        response = await call_next(request)
        origin = request.headers.get("origin")
        if "*" in origins:
            response.headers["Access-Control-Allow-Origin"] = "*"
        elif origin and origin in origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
        response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
        response.headers["Access-Control-Allow-Headers"] = CORS_HEADERS
        return response

    # Register routes
    from lzswap.api.routes import health, swap, tokens

    app.include_router(health.router, tags=["Health"])
    app.include_router(swap.router)
    app.include_router(tokens.router, tags=["Tokens"])

    return app


# Default app instance
app = create_app()
