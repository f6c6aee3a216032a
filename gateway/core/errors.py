"""Gateway error taxonomy.

Every error is an ``HTTPException`` carrying its own status code so services
can raise them directly and the global handler in ``gateway.main`` renders
them as ``{"error": <message>}``.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status


class GatewayError(HTTPException):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None):
        super().__init__(status_code=self.status_code, detail=message or self.message)
        self.details = details


class MissingCredential(GatewayError):
    """No API key was presented."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "API key required"


class InvalidCredential(GatewayError):
    """Unknown, inactive or expired API key.

    The three cases share one message so callers cannot probe which keys exist.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid API key"


class Forbidden(GatewayError):
    """Credential is valid but lacks the required scope or role."""

    status_code = status.HTTP_403_FORBIDDEN
    message = "Insufficient permissions"


# Admin-only actions (key issuance) raise under this name.
Unauthorized = Forbidden


class ValidationError(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Invalid request body"


class NotFound(GatewayError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class EndpointInactive(NotFound):
    """Webhook endpoint exists but is disabled."""


class UnsupportedEvent(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Event type not configured for this webhook"


class RateLimitExceeded(GatewayError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "Rate limit exceeded"


class InternalError(GatewayError):
    """Unexpected store failure; detail is logged, never returned."""
