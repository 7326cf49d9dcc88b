"""Exception handlers mapping errors to the public error body.

Every error response has the shape
``{"errorId", "errorCode", "level", "messages": {"en": ...}}``.
Unexpected exceptions are logged with their traceback and answered with the
``unexpected-error`` kind only.
"""

from __future__ import annotations

from logging import getLogger

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from subsync.domain.errors import ErrorKind, SubscriptionError

log = getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    _register_subscription_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_subscription_error_handler(app: FastAPI) -> None:
    @app.exception_handler(SubscriptionError)
    async def subscription_error_handler(request: Request, exc: SubscriptionError) -> JSONResponse:
        body = exc.to_response()
        log.log(
            exc.log_level,
            "%s on %s [%s]: %s",
            exc.kind,
            request.url.path,
            body["errorId"],
            exc.message,
        )
        return JSONResponse(status_code=exc.http_status, content=body)


def _register_validation_error_handler(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        log.warning("Validation error on %s: %s", request.url.path, exc.errors())
        error = SubscriptionError(ErrorKind.INVALID_REQUEST, params={"customerId": "-"})
        return JSONResponse(status_code=error.http_status, content=error.to_response())


def _register_generic_error_handler(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        error = SubscriptionError(ErrorKind.UNEXPECTED_ERROR)
        body = error.to_response()
        log.error(
            "Unhandled exception on %s [%s]: %s",
            request.url.path,
            body["errorId"],
            exc,
            exc_info=exc,
        )
        return JSONResponse(status_code=error.http_status, content=body)
