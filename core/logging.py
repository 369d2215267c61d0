"""
Logging configuration for SuperNanny Backend.

structlog renders on top of stdlib logging. Console output is always on;
dated files under ``logs/`` and the per-request log are switched by settings.
"""

import logging
import os
import sys
import time
import uuid
from datetime import datetime

import structlog
from structlog.stdlib import LoggerFactory

from core.config import settings

LOGS_DIR = "logs"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _file_handler(prefix: str, level: int, formatter: logging.Formatter) -> logging.FileHandler:
    stamp = datetime.now().strftime('%Y%m%d')
    handler = logging.FileHandler(os.path.join(LOGS_DIR, f"{prefix}_{stamp}.log"), encoding='utf-8')
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def _init_sentry(logger) -> None:
    dsn = (settings.SENTRY_DSN or "").strip()
    if not dsn or dsn.startswith('your-sentry'):
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=settings.SENTRY_ENVIRONMENT,
        integrations=[FastApiIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=0.1 if settings.ENV == "production" else 1.0,
    )
    logger.info("Sentry integration enabled", environment=settings.SENTRY_ENVIRONMENT)


def setup_logging() -> structlog.stdlib.BoundLogger:
    """Configure structlog, the root logger, optional files and Sentry."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.ENABLE_FILE_LOGGING or settings.ENABLE_REQUEST_LOGGING:
        os.makedirs(LOGS_DIR, exist_ok=True)

    if settings.ENABLE_FILE_LOGGING:
        root_logger.addHandler(_file_handler("app", logging.INFO, formatter))
        root_logger.addHandler(_file_handler("error", logging.ERROR, formatter))

    if settings.ENABLE_REQUEST_LOGGING:
        request_logger = logging.getLogger("requests")
        request_logger.setLevel(logging.INFO)
        # Request lines go to their own file only
        request_logger.propagate = False
        request_logger.addHandler(_file_handler("requests", logging.INFO, formatter))

    logger = structlog.get_logger()
    _init_sentry(logger)
    return logger


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)


async def log_request_middleware(request, call_next):
    """Log each request with an id that is bound for every log line it causes."""
    logger = get_logger("requests")
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    structlog.contextvars.bind_contextvars(request_id=request_id)
    started = time.perf_counter()

    logger.info(
        "Request started",
        method=request.method,
        path=request.url.path,
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.unbind_contextvars("request_id")

    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    response.headers["X-Request-ID"] = request_id
    return response
