"""FastAPI application factory and configuration."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401 - ensure models are registered with SQLModel
from .api import register_routes
from .core import (
    ALLOWED_CORS_ORIGINS,
    DATABASE_URL,
    DB_RESET,
    Clock,
    build_engine,
    configure_logging,
    isoformat_z,
    utcnow,
)
from .errors import DependencyFailure, LeaderboardError, new_error_id, safe_message
from .services import AppServices, RateLimitPolicy
from .services.fingerprint import HashProvider

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = app.state.services.engine
    if DB_RESET:
        SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


def _request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = new_error_id()
        request.state.request_id = request_id
    return request_id


def error_response(request: Request, code: str, status_code: int) -> JSONResponse:
    """Render the public error envelope; only the generic message is exposed."""

    request_id = _request_id(request)
    services = getattr(request.app.state, "services", None)
    now = services.clock() if services is not None else utcnow()
    return JSONResponse(
        {
            "success": False,
            "error": {
                "code": code,
                "message": safe_message(code),
                "timestamp": isoformat_z(now),
                "requestId": request_id,
            },
        },
        status_code=status_code,
        headers={**NO_STORE_HEADERS, "X-Request-ID": request_id},
    )


def _client_summary(request: Request) -> str:
    host = request.client.host if request.client is not None else "unknown"
    return f"ip={host} ua={request.headers.get('user-agent', '')!r}"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(LeaderboardError)
    async def handle_leaderboard_error(request: Request, exc: LeaderboardError):
        level = logging.ERROR if isinstance(exc, DependencyFailure) else logging.WARNING
        logger.log(
            level,
            "[%s] %s %s rejected: %s (%s) severity=%s %s %s",
            _request_id(request),
            request.method,
            request.url.path,
            exc.code,
            exc.detail,
            exc.severity.value,
            exc.log_details,
            _client_summary(request),
        )
        return error_response(request, exc.code, exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        codes = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}
        code = codes.get(exc.status_code)
        if code is None:
            code = "INVALID_INPUT" if exc.status_code < 500 else "SERVER_ERROR"
        return error_response(request, code, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.warning(
            "[%s] %s %s invalid payload: %s",
            _request_id(request),
            request.method,
            request.url.path,
            exc.errors(),
        )
        return error_response(request, "INVALID_INPUT", 400)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unhandled error on %s %s",
            _request_id(request),
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return error_response(request, "SERVER_ERROR", 500)


def create_app(
    engine: Optional[Engine] = None,
    clock: Clock = utcnow,
    hash_provider: Optional[HashProvider] = None,
    policy: Optional[RateLimitPolicy] = None,
) -> FastAPI:
    app = FastAPI(title="Minesweeper Leaderboard API", version="1.0.0", lifespan=lifespan)
    app.state.services = AppServices.build(
        engine if engine is not None else build_engine(DATABASE_URL),
        clock=clock,
        hash_provider=hash_provider,
        policy=policy,
    )

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = _request_id(request)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["ETag", "X-Request-ID"],
    )

    register_error_handlers(app)
    register_routes(app)
    return app


configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("minesweeper_api.app:app", host="127.0.0.1", port=3000, reload=True)
