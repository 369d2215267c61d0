"""
SuperNanny Backend - FastAPI Application Entry Point

Marketplace backend connecting parents with nannies: discovery, bookings,
in-booking chat with live delivery, reviews, earnings and payments.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings
from core.database import Database
from core.errors import AppError, InternalError
from core.logging import setup_logging, log_request_middleware
from schemas.responses import StandardErrorResponse
from api.v1 import bookings, messages, nannies, reviews, users, payments, realtime
from services.payment_service import PaymentProvider, StripePaymentProvider
from services.realtime import ConnectionHub, RealtimeGateway

# Setup logging
logger = setup_logging()


def _client_host(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def error_response(status_code: int, message: str, detail=None, headers=None) -> JSONResponse:
    body = StandardErrorResponse(message=message, detail=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """Business-rule violations, logged without a stack trace. Internal errors keep theirs."""
        summary = (
            f"App Error: {exc.message} | "
            f"Status: {exc.status_code} | "
            f"Path: {request.url.path} | "
            f"Method: {request.method}"
        )
        if isinstance(exc, InternalError):
            logger.error(summary, exc_info=exc)
        elif exc.status_code >= 500:
            logger.warning(summary)
        else:
            logger.info(summary)
        return error_response(exc.status_code, exc.message, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation exceptions."""
        errors = exc.errors()
        logger.info(
            f"Validation Exception: {errors} | "
            f"Path: {request.url.path} | "
            f"Method: {request.method} | "
            f"Client: {_client_host(request)}"
        )
        user_message = errors[0].get("msg", "Invalid input data") if errors else "Invalid input data"
        return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, user_message, jsonable_errors(errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.info(
            f"HTTP Exception: {exc.detail} | "
            f"Path: {request.url.path} | "
            f"Method: {request.method} | "
            f"Client: {_client_host(request)}"
        )
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(
            f"Server Exception: {exc!r} | "
            f"Path: {request.url.path} | "
            f"Method: {request.method} | "
            f"Client: {_client_host(request)}"
        )
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def jsonable_errors(errors):
    """Pydantic error entries may carry exception objects in ``ctx``."""
    cleaned = []
    for error in errors:
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        cleaned.append(error)
    return jsonable_encoder(cleaned)


def create_app(
    database: Optional[Database] = None,
    payment_provider: Optional[PaymentProvider] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        database: Storage handle; built from settings at startup when omitted
        payment_provider: Card processor; Stripe when omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info(f"Starting {settings.APP_NAME} {settings.VERSION}...")
        owns_database = app.state.database is None
        if owns_database:
            app.state.database = Database(
                settings.database_url,
                echo=False,
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
            )
            app.state.gateway = RealtimeGateway(app.state.hub, app.state.database)

        yield

        logger.info(f"Shutting down {settings.APP_NAME}...")
        if owns_database:
            await app.state.database.dispose()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Marketplace API connecting parents with nannies",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    app.state.database = database
    app.state.hub = ConnectionHub()
    app.state.gateway = RealtimeGateway(app.state.hub, database) if database is not None else None
    app.state.payment_provider = payment_provider or StripePaymentProvider()

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=["*"])
    if settings.ENABLE_REQUEST_LOGGING:
        app.middleware("http")(log_request_middleware)

    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # Include API routers
    app.include_router(bookings.router, prefix="/api/v1/bookings", tags=["Bookings"])
    app.include_router(messages.router, prefix="/api/v1/messages", tags=["Messages"])
    app.include_router(nannies.router, prefix="/api/v1/nannies", tags=["Nannies"])
    app.include_router(reviews.router, prefix="/api/v1/reviews", tags=["Reviews"])
    app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
    app.include_router(payments.router, prefix="/api/v1/payments", tags=["Payments"])
    app.include_router(realtime.router, tags=["Realtime"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
