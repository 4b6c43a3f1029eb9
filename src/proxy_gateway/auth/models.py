"""
Authentication Models

Pydantic models for identities, sessions, tokens and auth payloads.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Built-in roles. Identities may carry other role strings."""

    ADMIN = "admin"
    USER = "user"


class Identity(BaseModel):
    """Authenticated principal, independent of the credential that proved it."""

    id: str = Field(..., description="Opaque identity identifier")
    username: str = Field(..., description="Username")
    role: str = Field(..., description="Role name", examples=["admin", "user"])
    permissions: list[str] = Field(default_factory=list, description="Granted permissions")

    model_config = {"frozen": True}

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


class SessionState(str, Enum):
    """Lifecycle states of a server-side session."""

    ACTIVE = "active"
    EXPIRED = "expired"
    DESTROYED = "destroyed"


class Session(BaseModel):
    """Server-side session record."""

    session_id: str = Field(..., description="Session unique identifier")
    user_id: str = Field(..., description="Identity identifier")
    role: str = Field(..., description="Role at login time")
    created_at: datetime = Field(..., description="Session creation timestamp")
    last_activity: datetime = Field(..., description="Last activity timestamp")
    preferences: dict[str, Any] = Field(default_factory=dict, description="Client preferences")


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str = Field(..., description="Subject (identity id)")
    username: str = Field(..., description="Username")
    role: str = Field(..., description="Role name")
    permissions: list[str] = Field(default_factory=list, description="Granted permissions")
    iat: int = Field(..., description="Issued at timestamp")
    exp: int = Field(..., description="Expiration timestamp")
    jti: str = Field(..., description="JWT ID for tracking")

    def to_identity(self) -> Identity:
        return Identity(
            id=self.sub,
            username=self.username,
            role=self.role,
            permissions=self.permissions,
        )


class LoginRequest(BaseModel):
    """Login payload."""

    username: str = Field(
        ...,
        min_length=3,
        max_length=30,
        pattern=r"^[A-Za-z0-9]+$",
        description="Alphanumeric username",
        examples=["admin"],
    )
    password: str = Field(..., min_length=3, description="Password", examples=["admin123"])


class RefreshRequest(BaseModel):
    """Token refresh payload."""

    refresh_token: str = Field(
        ...,
        min_length=1,
        alias="refreshToken",
        description="Currently valid token",
    )

    model_config = {"populate_by_name": True}


class LoginResponse(BaseModel):
    """Successful login response."""

    success: bool = True
    message: str = "Login successful"
    user: Identity
    token: str = Field(..., description="Signed bearer token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    session_id: str = Field(..., description="Session identifier (also set as cookie)")


class TokenResponse(BaseModel):
    """Refreshed token response."""

    success: bool = True
    token: str = Field(..., description="Signed bearer token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")


class SessionInfo(BaseModel):
    """Session details returned to its owner."""

    session_id: str
    last_activity: datetime


class MeResponse(BaseModel):
    """Current identity response."""

    success: bool = True
    user: Identity
    session: SessionInfo | None = None


class AuthStatusResponse(BaseModel):
    """Authentication status response."""

    is_authenticated: bool
    user: Identity | None = None
    session_valid: bool = False
