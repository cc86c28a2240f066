"""Core utilities, errors and access control."""

from cleanbook.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    CleanerUnavailable,
    InternalError,
    InvalidTransition,
    NotFoundError,
    PersistenceFailure,
    RateLimitExceeded,
    ValidationError,
)
from cleanbook.core.security import TokenClaims, create_access_token, decode_access_token

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "CleanerUnavailable",
    "InternalError",
    "InvalidTransition",
    "NotFoundError",
    "PersistenceFailure",
    "RateLimitExceeded",
    "ValidationError",
    "TokenClaims",
    "create_access_token",
    "decode_access_token",
]
