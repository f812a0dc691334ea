"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from api.routes import tables
from api.routes.tables import ensure_table_manager
from api.websocket import router as ws_router
from config import config
from core.errors import (
    ActionInProgress,
    AlreadySeated,
    BlackjackError,
    NotYourTurn,
    PersistenceFailure,
    PlayerNotSeated,
    TableFull,
    TableStopping,
)

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Apply LOG_LEVEL / LOG_FORMAT to the root logger."""
    logging.basicConfig(level=config.logging.level, format=config.logging.format)


# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    enabled=config.rate_limit.enabled,
    default_limits=[f"{config.rate_limit.requests_per_minute}/minute"],
)


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )


def _status_for(exc: BlackjackError) -> int:
    if isinstance(exc, PlayerNotSeated):
        return 404
    if isinstance(exc, (AlreadySeated, TableFull, TableStopping, NotYourTurn, ActionInProgress)):
        return 409
    if isinstance(exc, PersistenceFailure):
        return 503
    return 400


def _blackjack_error_handler(request: Request, exc: BlackjackError) -> JSONResponse:
    """Map table errors to HTTP responses."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("Request failed: %s", exc, extra={"path": request.url.path})
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "detail": str(exc)},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the table manager on startup and refund every seat on shutdown."""
    configure_logging()
    manager = await ensure_table_manager(app)
    yield
    await manager.stop_all()


app = FastAPI(
    title="Blackjack Table",
    description="Multiplayer blackjack table API",
    version="0.1.0",
    lifespan=lifespan,
)

# Add rate limiter to app state and exception handlers
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(BlackjackError, _blackjack_error_handler)

# CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors.allowed_origins,
    allow_credentials=config.cors.allow_credentials,
    allow_methods=config.cors.allow_methods,
    allow_headers=config.cors.allow_headers,
)


@app.get("/api/health")
@limiter.limit(f"{config.rate_limit.requests_per_minute}/minute")
async def health_check(request: Request) -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(tables.router, prefix="/api/tables", tags=["tables"])
app.include_router(ws_router, prefix="/ws", tags=["websocket"])
