"""Shared utilities for API v1 endpoints.

This package provides common utilities, constants, and helpers used across
multiple endpoint modules.
"""

from chitrack.api.v1.shared.cache_headers import (
    apply_cache_headers,
    cache_status_headers,
    set_no_store,
)
from chitrack.api.v1.shared.dependencies import (
    get_arrivals_shaper,
    get_arrivals_store,
)
from chitrack.api.v1.shared.errors import (
    APIError,
    invalid_request,
    register_exception_handlers,
    upstream_failure,
)

__all__ = [
    # Cache headers
    "apply_cache_headers",
    "cache_status_headers",
    "set_no_store",
    # Error handling
    "APIError",
    "invalid_request",
    "register_exception_handlers",
    "upstream_failure",
    # Dependencies
    "get_arrivals_shaper",
    "get_arrivals_store",
]
