"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tfstate.api.routes import health, state
from tfstate.core.config import AppSettings
from tfstate.core.exceptions import ErrorKind, TFStateError
from tfstate.core.protocols import IStateStore
from tfstate.middleware import RequestLoggingMiddleware
from tfstate.persistence import create_state_store

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the state store from settings unless one was injected."""
    owns_store = app.state.store is None
    if owns_store:
        app.state.store = create_state_store(app.state.settings)
    logger.info("tfstate_started", backend=app.state.settings.store.backend, injected=not owns_store)
    try:
        yield
    finally:
        if owns_store:
            app.state.store.close()
            app.state.store = None


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # malformed names and lock bodies are client errors, not 422 entities
    return JSONResponse({"detail": jsonable_encoder(exc.errors())}, status_code=400)


async def _tfstate_error(request: Request, exc: TFStateError) -> JSONResponse:
    if exc.kind == ErrorKind.VALIDATION:
        return JSONResponse({"detail": str(exc)}, status_code=400)
    logger.error("state_storage_failure", error=str(exc), kind=exc.kind)
    return JSONResponse({"detail": "state storage failure"}, status_code=500)


def create_app(settings: AppSettings | None = None, store: IStateStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="tfstate - Terraform HTTP State Backend",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or AppSettings()
    app.state.store = store
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(TFStateError, _tfstate_error)
    app.include_router(health.router)
    app.include_router(state.router)
    return app
