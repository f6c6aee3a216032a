"""Error response schema shared by every route."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx response.

    The HTTP status carries the error class; ``error`` is a human-readable
    message and never contains store internals.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"error": "API key required"},
                {"error": "Insufficient permissions"},
                {"error": "Event type not configured for this webhook"},
                {
                    "error": "Invalid request body",
                    "details": [{"loc": ["name"], "msg": "Field required"}],
                },
            ]
        }
    )

    error: str = Field(..., description="Human-readable error message")
    details: Any | None = Field(None, description="Field-level validation errors, if any")
