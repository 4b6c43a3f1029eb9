"""
Gateway Configuration

Environment-based configuration management for the proxy gateway.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class BackendConfig(BaseModel):
    """Static configuration of one backend core."""

    name: str = Field(..., description="Unique backend name")
    url: str = Field(..., description="Absolute base URL of the backend")
    health_check: str = Field(default="/health", description="Health check path")
    weight: int = Field(default=1, ge=1, description="Relative weight (not applied)")
    healthy: bool = Field(default=True, description="Initial health flag")

    @field_validator("health_check")
    @classmethod
    def validate_health_check_path(cls, v: str) -> str:
        """Ensure the health check path is absolute."""
        if not v.startswith("/"):
            raise ValueError(f"health_check must start with '/': {v!r}")
        return v


def _default_backends() -> list[BackendConfig]:
    return [
        BackendConfig(name="core-api-1", url="http://localhost:4001"),
        BackendConfig(name="core-api-2", url="http://localhost:4002"),
        BackendConfig(name="core-api-3", url="http://localhost:4003"),
    ]


class ProxySettings(BaseSettings):
    """Gateway configuration loaded from environment variables."""

    # Application
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=3000, description="Server port")
    GATEWAY_NAME: str = Field(default="Core Proxy Gateway", description="Gateway service name")
    GATEWAY_VERSION: str = Field(default="0.1.0", description="Gateway version")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    ENABLE_METRICS: bool = Field(default=True, description="Expose Prometheus metrics")

    # Backends and routing
    BACKENDS: list[BackendConfig] = Field(
        default_factory=_default_backends,
        description="Backend cores in routing order (JSON list)",
    )
    PATH_ROUTES: dict[str, str] = Field(
        default={
            "/api/v1": "core-api-1",
            "/api/v2": "core-api-2",
            "/api/v3": "core-api-3",
        },
        description="Path prefix to backend name mapping",
    )
    REQUEST_TIMEOUT: float = Field(default=30.0, gt=0, description="Forwarding timeout in seconds")
    PROXY_SOURCE: str = Field(
        default="core-proxy-gateway",
        description="Value of the X-Proxy-Source header sent upstream",
    )

    # Health monitoring
    HEALTH_CHECK_INTERVAL: float = Field(default=30.0, gt=0, description="Sweep interval in seconds")
    HEALTH_CHECK_TIMEOUT: float = Field(default=5.0, gt=0, description="Probe timeout in seconds")
    HEALTH_CHECK_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Probability that a proxied request schedules a sweep",
    )
    HEALTH_CHECK_ON_STARTUP: bool = Field(default=True, description="Sweep once at startup")

    # Request outcome metrics
    METRICS_CAPACITY: int = Field(default=1000, ge=1, description="Retained request outcomes")
    METRICS_RECENT_DEFAULT: int = Field(default=50, ge=1, description="Default recent records returned")

    # Sessions
    SESSION_TIMEOUT_SECONDS: int = Field(default=3600, gt=0, description="Session inactivity timeout")
    SESSION_COOKIE_NAME: str = Field(default="proxy_session", description="Session cookie name")
    SESSION_COOKIE_SECURE: bool = Field(default=False, description="Send session cookie over HTTPS only")

    # JWT
    JWT_SECRET: str = Field(
        default="default-jwt-secret-change-in-production",
        description="JWT signing secret",
    )
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT signing algorithm")
    JWT_EXPIRE_HOURS: int = Field(default=24, gt=0, description="Token lifetime in hours")
    JWT_ISSUER: str = Field(default="core-proxy-gateway", description="JWT token issuer")
    JWT_AUDIENCE: str = Field(default="core-proxy-api", description="JWT token audience")

    model_config = {
        "env_file": ".env",
        "env_prefix": "PROXY_",
        "case_sensitive": True,
        "extra": "ignore",
    }


# Global settings instance
settings = ProxySettings()
