# payment_api/main.py

from datetime import datetime, timezone
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from payment_api.config import Settings, settings as default_settings, validate_settings
from payment_api.errors import PaymentError
from payment_api.ledger import InMemoryTransactionStore, TransactionStore
from payment_api.logging_config import get_logger
from payment_api.middleware import request_id_middleware
from payment_api.psp import PSPDispatcher
from payment_api.routers import health, paypal, phonepe
from payment_api.services.payment_service import PaymentService

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[TransactionStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the API. The ledger store and adapters are created here, once, and
    live on app.state for the lifetime of the process.
    """
    settings = settings or default_settings
    store = store if store is not None else InMemoryTransactionStore()

    try:
        validate_settings(settings)
    except ValueError as exc:
        logger.warning("configuration_incomplete", issues=str(exc), environment=settings.ENVIRONMENT)

    # ---------------------------------------------
    # APP INIT
    # ---------------------------------------------
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.payment_service = PaymentService(PSPDispatcher(settings, store, transport=transport))

    # ---------------------------------------------
    # MIDDLEWARE
    # ---------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-VERIFY", "X-MERCHANT-ID"],
    )
    app.middleware("http")(request_id_middleware)

    # ---------------------------------------------
    # ERROR HANDLERS
    # ---------------------------------------------
    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message, "error": exc.to_error()},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "message": "Invalid request",
                "error": {"type": "validation_error", "details": [
                    {"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in exc.errors()
                ]},
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"success": False, "message": "Route not found"})
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.error("server_error", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Internal server error",
                "error": "Something went wrong" if settings.ENVIRONMENT == "production" else str(exc),
            },
        )

    # ---------------------------------------------
    # ROUTERS
    # ---------------------------------------------
    app.include_router(health.router)
    app.include_router(phonepe.router)
    app.include_router(paypal.router)

    # ---------------------------------------------
    # ROOT ENDPOINT
    # ---------------------------------------------
    @app.get("/")
    def root():
        return {
            "message": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()
