"""
Middleware Package

Provides FastAPI middleware and the service error taxonomy.

Usage:
    from app.middleware import setup_error_handling, NotFoundError

    setup_error_handling(app, debug=settings.DEBUG)
"""

from app.middleware.error_handling import (
    DerivedStateFailure,
    ErrorHandlingMiddleware,
    ForbiddenError,
    NotFoundError,
    ServiceError,
    ValidationError,
    handle_endpoint_errors,
    setup_error_handling,
)

__all__ = [
    "DerivedStateFailure",
    "ErrorHandlingMiddleware",
    "ForbiddenError",
    "NotFoundError",
    "ServiceError",
    "ValidationError",
    "handle_endpoint_errors",
    "setup_error_handling",
]
