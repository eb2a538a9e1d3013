"""CTA-specific exception definitions."""

from __future__ import annotations

from typing import Any


class CTAServiceError(Exception):
    """Generic wrapper for CTA Train Tracker failures."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class CTATimeoutError(CTAServiceError):
    """A single upstream attempt timed out. Retryable."""


class CTATransportError(CTAServiceError):
    """A single upstream attempt failed at the network level or with a
    non-success HTTP status. Retryable."""


class CTAUpstreamError(CTAServiceError):
    """Raised once every retry against the upstream has been used up."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, status_code=status_code, details=details)
        self.attempts = attempts


class CTALogicalError(CTAServiceError):
    """The upstream answered but reported an error code or no arrivals field."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, details=details)
        self.error_code = error_code


class CTAConfigurationError(CTAServiceError):
    """The service is not configured to talk to the upstream."""


class InvalidRequestError(ValueError):
    """A client supplied missing or malformed location identifiers."""


__all__ = [
    "CTAConfigurationError",
    "CTALogicalError",
    "CTAServiceError",
    "CTATimeoutError",
    "CTATransportError",
    "CTAUpstreamError",
    "InvalidRequestError",
]
