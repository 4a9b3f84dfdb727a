"""
Application factory.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import Settings
from storefront.db import SessionFactory, create_database
from storefront.errors import Errors, ShopError
from storefront.http import _account, _admin, _cart, _catalog, _orders
from storefront.http._deps import AppState
from storefront.mail import LoggingMailer, Mailer
from storefront.payments import AlertSink

log = logging.getLogger(__name__)

API_PREFIX = "/api"


def _failure(status: int, message: str, code: str | None = None) -> JSONResponse:
    content: dict[str, object] = {"success": False, "message": message}
    if code is not None:
        content["code"] = code
    return JSONResponse(status_code=status, content=content)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShopError)
    async def shop_error(request: Request, exc: ShopError) -> JSONResponse:
        if exc.status >= 500:
            log.error(
                "%s %s failed: [%s] %s", request.method, request.url.path, exc.code, exc.message
            )
        return _failure(exc.status, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        return _failure(400, message, "VALIDATION_ERROR")

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _failure(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected(request: Request, exc: Exception) -> JSONResponse:
        log.exception("unhandled error on %s %s", request.method, request.url.path)
        error = Errors.internal()
        return _failure(error.status, error.message, error.code)


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: SessionFactory | None = None,
    mailer: Mailer | None = None,
    alerts: AlertSink | None = None,
    http: httpx.AsyncClient | None = None,
) -> FastAPI:
    """
    Build the API.

    With `session_factory` given the app is ready immediately (tests);
    otherwise the database is opened from `settings.database_url` on startup.
    """
    settings = settings or Settings.from_env()
    mailer = mailer or LoggingMailer()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if session_factory is not None:
            yield
            return
        factory, engine = await create_database(settings.database_url)
        app.state.storefront = AppState.build(settings, factory, mailer, alerts, http)
        log.info("storefront started (%s)", settings.environment)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(title="Storefront API", version="0.1.0", lifespan=lifespan)
    if session_factory is not None:
        app.state.storefront = AppState.build(settings, session_factory, mailer, alerts, http)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    for router in (
        _cart.router,
        _catalog.products,
        _catalog.review_router,
        _catalog.discount_router,
        _orders.order_router,
        _orders.payment_router,
        _account.return_router,
        _account.newsletter_router,
        _account.auth_router,
        _admin.router,
    ):
        app.include_router(router, prefix=API_PREFIX)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok", "environment": settings.environment}

    return app


__all__ = ("API_PREFIX", "create_app", "install_error_handlers")
