"""Shared error handling utilities for API endpoints.

Every error leaves the API as ``{"error": ..., "details": ...}`` so that
clients can show the message and decide whether to retry.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from chitrack.services.cta_errors import (
    CTAConfigurationError,
    CTAServiceError,
    InvalidRequestError,
)


class APIError(Exception):
    """An error rendered as a JSON ``{error, details}`` body."""

    def __init__(
        self,
        status_code: int,
        error: str,
        details: str | None = None,
    ) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details


def invalid_request(message: str, details: str | None = None) -> APIError:
    """Create a standardized HTTP 400 error for bad identifiers.

    Args:
        message: What is wrong with the request.
        details: Optional extra context.

    Returns:
        An APIError with 400 status.
    """
    return APIError(status.HTTP_400_BAD_REQUEST, message, details)


def upstream_failure(exc: CTAServiceError, requested: str) -> APIError:
    """Translate a CTA failure into the error the client sees.

    Args:
        exc: The failure raised while fetching from the CTA.
        requested: Description of the requested identifiers.

    Returns:
        An APIError with 500 status for configuration problems and 502 for
        everything the upstream did wrong.
    """
    reason = exc.message if exc.details is None else f"{exc.message} {exc.details}"
    details = f"{reason} (requested {requested})" if requested else reason

    if isinstance(exc, CTAConfigurationError):
        return APIError(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Server configuration error",
            details,
        )
    return APIError(
        status.HTTP_502_BAD_GATEWAY,
        "Failed to fetch data from CTA API",
        details,
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "details": exc.details},
        headers={"Cache-Control": "no-store"},
    )


async def invalid_request_handler(
    request: Request, exc: InvalidRequestError
) -> JSONResponse:
    return await api_error_handler(request, invalid_request(str(exc)))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on ``app``."""
    app.add_exception_handler(APIError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        InvalidRequestError, invalid_request_handler  # type: ignore[arg-type]
    )


__all__ = [
    "APIError",
    "invalid_request",
    "register_exception_handlers",
    "upstream_failure",
]
