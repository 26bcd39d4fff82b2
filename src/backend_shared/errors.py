"""
Shared error types and their HTTP mapping.

NotFoundError and UnauthenticatedError are the well-known sentinel
errors raised by service code. Match them with ``except`` or
``isinstance``; their ``code`` is stable and is what clients see.
"""

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from backend_shared.validation import Validator

logger = logging.getLogger(__name__)


class SharedError(Exception):
    """Base class for errors that map to an HTTP response."""

    code: str = "error.internal"
    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def __str__(self) -> str:
        return self.message


class NotFoundError(SharedError):
    code = "error.not-found"
    status_code = 404


class UnauthenticatedError(SharedError):
    code = "error.unauthenticated"
    status_code = 401


class InvalidInputError(SharedError):
    """Carries the failure codes of a validator that did not pass."""

    code = "error.invalid-input"
    status_code = 422

    def __init__(self, codes: tuple[str, ...], message: str | None = None) -> None:
        super().__init__(message)
        self.codes = tuple(codes)

    @classmethod
    def from_validator(cls, validator: "Validator") -> "InvalidInputError":
        return cls(validator.codes())


async def _handle_shared_error(request: Request, exc: SharedError) -> JSONResponse:
    """Render a SharedError as {"detail": code}."""
    logger.warning(f"{exc.code} for {request.method} {request.url.path}: {exc}")

    content: dict[str, object] = {"detail": exc.code}
    if isinstance(exc, InvalidInputError):
        content["errors"] = list(exc.codes)

    return JSONResponse(status_code=exc.status_code, content=content)


def register_error_handlers(app: FastAPI) -> None:
    """Install the SharedError handler on a FastAPI application."""
    app.add_exception_handler(SharedError, _handle_shared_error)
