"""
API response models for the SecureToken demo endpoints.

These Pydantic v2 models define the HTTP transport contract. Nothing here
carries token or key material.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class ComponentStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    app: Literal["ok", "error"] = "ok"
    tokener: Literal["ok", "error"]


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: Literal["healthy", "degraded"] = "healthy"
    version: str
    components: ComponentStatus


class SessionResponse(BaseModel):
    """Response for GET /api/v1/session."""

    model_config = ConfigDict(frozen=True)

    email: str
