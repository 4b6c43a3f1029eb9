"""
Gateway Errors

Error taxonomy shared by the auth, routing and forwarding layers. Each error
carries a stable machine-readable kind and the HTTP status it maps to.
"""

from __future__ import annotations

from typing import Any

from fastapi import status


class GatewayError(Exception):
    """Base class for errors surfaced to clients."""

    kind = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class Unauthorized(GatewayError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class SessionExpired(Unauthorized):
    kind = "session_expired"
    default_message = "Session expired, please log in again"


class Forbidden(GatewayError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFound(GatewayError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class BadRequest(GatewayError):
    kind = "bad_request"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Malformed request"


class ServiceUnavailable(GatewayError):
    kind = "service_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "No backend core available"


class BadGateway(GatewayError):
    kind = "bad_gateway"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Error communicating with the backend core"

    def __init__(self, correlation_id: str, message: str | None = None) -> None:
        self.correlation_id = correlation_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["correlation_id"] = self.correlation_id
        return data


class InternalError(GatewayError):
    """Unexpected fault inside the gateway itself."""
