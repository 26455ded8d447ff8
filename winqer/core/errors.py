"""WINQER — Error types and the {success: false} response mapping."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from winqer.core.logging import get_logger

logger = get_logger("errors")


class WinqerError(Exception):
    """Base for errors surfaced to API callers as {success: false, error}."""

    http_status: int = 500

    def __init__(self, message: str, http_status: int | None = None):
        if http_status is not None:
            self.http_status = http_status
        self.message = message
        super().__init__(message)


class UnauthorizedError(WinqerError):
    http_status = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ForbiddenError(WinqerError):
    http_status = 403

    def __init__(self, message: str = "Unauthorized: Access Denied"):
        super().__init__(message)


class NotFoundError(WinqerError):
    http_status = 404


class ValidationError(WinqerError):
    http_status = 400


class ConfigurationError(WinqerError):
    """A required credential or setting is missing."""

    http_status = 503


class QuotaExceededError(WinqerError):
    http_status = 429


class AIGenerationError(WinqerError):
    http_status = 502


def error_body(message: str) -> dict:
    return {"success": False, "error": message}


async def winqer_error_handler(request: Request, exc: WinqerError) -> JSONResponse:
    logger.warning(
        f"{type(exc).__name__}: {exc.message}",
        extra={"endpoint": request.url.path, "status_code": exc.http_status},
    )
    return JSONResponse(status_code=exc.http_status, content=error_body(exc.message))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    logger.warning(
        f"Request validation failed: {message}",
        extra={"endpoint": request.url.path, "status_code": 422},
    )
    return JSONResponse(status_code=422, content=error_body(message))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__}: {exc}",
        exc_info=exc,
        extra={"endpoint": request.url.path, "status_code": 500},
    )
    return JSONResponse(status_code=500, content=error_body("Internal Server Error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WinqerError, winqer_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
