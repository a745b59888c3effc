"""
FastAPI application entry point for the TravelSafe Hub backend.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from travelsafe.config import Settings, get_settings
from travelsafe.db import ReportStore, build_report_store
from travelsafe.errors import ReportValidationError, StoreUnavailable, Unauthorized
from travelsafe.limiter import build_limiter, rate_limit_exceeded_handler
from travelsafe.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: ReportStore = app.state.report_store
    # A failed connect is logged only; requests then fail one by one.
    if not await run_in_threadpool(store.connect):
        logger.warning("Datastore unreachable at startup; serving anyway")
    yield
    logger.info("Shutting down, closing datastore connection")
    store.close()


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized):
        return JSONResponse(status_code=401, content={"error": exc.message})

    @app.exception_handler(ReportValidationError)
    async def validation_handler(request: Request, exc: ReportValidationError):
        return JSONResponse(status_code=500, content={"error": exc.message})

    @app.exception_handler(StoreUnavailable)
    async def store_handler(request: Request, exc: StoreUnavailable):
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(
            "%s %s raised unexpectedly: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None, store: Optional[ReportStore] = None
) -> FastAPI:
    """
    Build the application with its services.

    Raises ConfigError when the API key or datastore URL is missing.
    """
    settings = settings or get_settings()
    settings.validate_for_startup()

    app = FastAPI(title="TravelSafe Hub Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.report_store = store or build_report_store(settings)
    app.state.limiter = build_limiter(settings)

    app.include_router(router)
    _register_error_handlers(app)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s %d %.1f ms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    return app
