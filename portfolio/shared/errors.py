"""
Error taxonomy and secure error handling

Domain errors carry the HTTP status they map to. The handlers registered by
`register_error_handlers` turn them into `{"error": "..."}` bodies and make
sure unexpected exceptions never leak stack traces or credentials.
"""

import logging
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PortfolioError(Exception):
    """Base class for errors that are safe to show to the caller."""

    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class Unauthorized(PortfolioError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(PortfolioError):
    status_code = 404
    default_message = "Not found"


class ProjectNotFound(NotFound):
    default_message = "Project not found"


class BlobNotFound(NotFound):
    default_message = "File not found in storage"


class InvalidRequest(PortfolioError):
    status_code = 400
    default_message = "Invalid request body"


class InvalidCategory(InvalidRequest):
    default_message = "Invalid category"


class InvalidTags(InvalidRequest):
    default_message = "Invalid tags"


class InvalidUpload(InvalidRequest):
    default_message = "Invalid file upload"


class SlugConflict(PortfolioError):
    status_code = 400
    default_message = "A project with this title already exists"


class AlreadyExists(PortfolioError):
    status_code = 409
    default_message = "File already exists in storage"


class StoreUnavailable(PortfolioError):
    status_code = 500
    default_message = "File storage is unavailable"


class MigrationFailed(StoreUnavailable):
    default_message = "Failed to migrate project files to new title"


class DatabaseError(PortfolioError):
    status_code = 500
    default_message = "Database operation failed"


class LLMUnavailable(PortfolioError):
    status_code = 502
    default_message = "The AI assistant is unavailable right now"


def log_and_sanitize_error(
    error: Exception,
    context: str,
    user_message: Optional[str] = None
) -> tuple[str, str]:
    """
    Log full error details server-side and return sanitized message for client.

    Args:
        error: The exception that occurred
        context: Description of what operation failed (e.g., "Project update")
        user_message: Optional custom message to show user. If None, uses generic message.

    Returns:
        Tuple of (sanitized_message, error_id) for client response
    """
    # Generate unique error ID for correlation
    error_id = str(uuid.uuid4())[:8]

    logger.error(
        f"{context} failed [{error_id}]: {type(error).__name__}: {str(error)}",
        exc_info=error,
    )

    if user_message:
        sanitized = f"{user_message} (Error ID: {error_id})"
    else:
        sanitized = f"{context} failed. Please try again later. (Error ID: {error_id})"

    return sanitized, error_id


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(app: FastAPI) -> None:
    """Map domain errors and unexpected exceptions to JSON error bodies."""

    @app.exception_handler(PortfolioError)
    async def handle_portfolio_error(request: Request, exc: PortfolioError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.errors()}")
        return error_response(400, "Invalid request body")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        sanitized_msg, _ = log_and_sanitize_error(exc, f"{request.method} {request.url.path}")
        return error_response(500, sanitized_msg)
