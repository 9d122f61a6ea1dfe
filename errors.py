"""
Error taxonomy for the API and the single place where errors become HTTP
responses. Repositories and services raise; only the handlers registered here
decide status codes and bodies.
"""
import re
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from logging_setup import get_logger

logger = get_logger(__name__)

_INDEX_NAME = re.compile(r"index: (?P<field>[A-Za-z0-9_.]+?)_-?1\b")


class ApiError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def body(self) -> dict:
        return {"error": self.message}


class ValidationFailed(ApiError):
    status_code = 400
    message = "Validation Error"

    def __init__(self, details: list[dict[str, str]]):
        super().__init__()
        self.details = details

    def body(self) -> dict:
        return {"error": self.message, "details": self.details}


class DuplicateEntry(ApiError):
    status_code = 400
    message = "Duplicate entry"

    def __init__(self, field: Optional[str]):
        super().__init__()
        self.field = field

    def body(self) -> dict:
        return {"error": self.message, "field": self.field}


class Unauthenticated(ApiError):
    status_code = 401
    message = "Access token required"


class InvalidCredentials(Unauthenticated):
    message = "Invalid credentials"


class InvalidToken(ApiError):
    status_code = 403
    message = "Invalid or expired token"


class Forbidden(ApiError):
    status_code = 403
    message = "Insufficient permissions"


class NotFound(ApiError):
    status_code = 404

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")


class RateLimited(ApiError):
    status_code = 429
    message = "Too many requests, please try again later."


def validation_details(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Flatten pydantic error dicts into {field, message} pairs."""
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


def duplicate_field(exc: DuplicateKeyError) -> Optional[str]:
    details = exc.details or {}
    key_pattern = details.get("keyPattern")
    if key_pattern:
        return next(iter(key_pattern))
    match = _INDEX_NAME.search(str(exc))
    return match.group("field") if match else None


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.body())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        err = ValidationFailed(validation_details(exc.errors()))
        return JSONResponse(status_code=err.status_code, content=err.body())

    @app.exception_handler(ValidationError)
    async def handle_model_validation(request: Request, exc: ValidationError):
        err = ValidationFailed(validation_details(exc.errors()))
        return JSONResponse(status_code=err.status_code, content=err.body())

    @app.exception_handler(DuplicateKeyError)
    async def handle_duplicate_key(request: Request, exc: DuplicateKeyError):
        err = DuplicateEntry(duplicate_field(exc))
        logger.info("duplicate_entry", path=request.url.path, field=err.field)
        return JSONResponse(status_code=err.status_code, content=err.body())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = "Route not found"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("unhandled_error", method=request.method, path=request.url.path)
        return JSONResponse(status_code=500, content={"error": ApiError.message})
