"""Application error types and their HTTP rendering.

Every error leaves the API as ``{"error": message}``. Callers match on the
message text, so messages are kept stable.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """A required setting (credential, plan mapping, key) is missing."""


class ProviderError(RuntimeError):
    """An upstream API (payment provider, OpenAI, Google) failed."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def http_status(self) -> int:
        # Provider-side rejections of our request are reported as client errors
        if self.status_code is not None and 400 <= self.status_code < 500:
            return 400
        return 502


class InvalidTransitionError(ValueError):
    """A subscription state transition was rejected."""

    def __init__(self, current: str, action: str):
        super().__init__(f"Cannot {action} a subscription in status '{current}'")
        self.current = current
        self.action = action


class RefundNotAllowedError(ValueError):
    """A refund request violates the refund policy."""


class EnvelopeError(ValueError):
    """A Keepz encrypted envelope could not be decrypted or decoded."""


class NotFoundError(LookupError):
    """A record does not exist or does not belong to the caller."""


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that render every error as ``{"error": message}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        parts = []
        for err in exc.errors():
            location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
            parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
        return _error_response(400, "; ".join(parts) or "Invalid request")

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error on %s: %s", request.url.path, exc)
        return _error_response(500, str(exc))

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
        logger.error(
            "Upstream error on %s: %s (status=%s body=%s)",
            request.url.path,
            exc,
            exc.status_code,
            (exc.body or "")[:500],
        )
        return _error_response(exc.http_status, str(exc))

    @app.exception_handler(InvalidTransitionError)
    async def transition_error_handler(
        request: Request, exc: InvalidTransitionError
    ) -> JSONResponse:
        return _error_response(400, str(exc))

    @app.exception_handler(RefundNotAllowedError)
    async def refund_error_handler(request: Request, exc: RefundNotAllowedError) -> JSONResponse:
        return _error_response(400, str(exc))

    @app.exception_handler(EnvelopeError)
    async def envelope_error_handler(request: Request, exc: EnvelopeError) -> JSONResponse:
        return _error_response(400, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(404, str(exc))
