"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

class RegistrationRequest(BaseModel):
    """New account; the password is only ever held in memory."""
    login: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=4, max_length=128)
    password_confirmation: str | None = None


class UserResponse(BaseModel):
    id: int
    login: str


class CredentialsRequest(BaseModel):
    login: str
    password: str


class SessionResponse(BaseModel):
    authenticated: bool = True
    user: UserResponse


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "healthy"
    environment: str
    database: str = "connected"
