"""
JSON error responses.

Every error leaves the API as {"error": message}. Routes raise
HTTPException; StripeServiceError escaping a route becomes a 500 carrying
Stripe's message; anything else is logged and answered with a generic 500.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from jobradar.services.stripe_service import StripeServiceError

logger = structlog.get_logger(__name__)


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("http_error", status=exc.status_code, error=exc.detail)
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _validation_message(exc)
    logger.info("request_validation_failed", error=message)
    return error_response(400, message)


async def stripe_error_handler(request: Request, exc: StripeServiceError) -> JSONResponse:
    logger.error("stripe_error_unhandled", error=str(exc))
    return error_response(500, str(exc))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc), error_type=type(exc).__name__)
    return error_response(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StripeServiceError, stripe_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
