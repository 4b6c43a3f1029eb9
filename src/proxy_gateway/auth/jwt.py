"""
JWT Token Management

Stateless bearer tokens signed with a shared secret. Tokens cannot be
revoked before they expire; logout only destroys the server-side session.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import structlog
from jose import JWTError, jwt
from pydantic import ValidationError

from proxy_gateway.auth.models import Identity, TokenPayload
from proxy_gateway.config import ProxySettings

logger = structlog.get_logger()


class TokenManager:
    """
    JWT token manager.

    Signs identities into tokens and verifies tokens back into identities.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_delta: timedelta = timedelta(hours=24),
        issuer: str | None = None,
        audience: str | None = None,
    ) -> None:
        """
        Initialize token manager.

        Args:
            secret: Signing secret
            algorithm: JWT signing algorithm
            expires_delta: Default token lifetime
            issuer: Issuer claim set and required on verification
            audience: Audience claim set and required on verification
        """
        self._secret = secret
        self.algorithm = algorithm
        self.expires_delta = expires_delta
        self.issuer = issuer
        self.audience = audience

    @classmethod
    def from_settings(cls, settings: ProxySettings) -> TokenManager:
        return cls(
            secret=settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            expires_delta=timedelta(hours=settings.JWT_EXPIRE_HOURS),
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
        )

    @property
    def expires_in(self) -> int:
        """Default token lifetime in seconds."""
        return int(self.expires_delta.total_seconds())

    def sign(self, identity: Identity, ttl: timedelta | None = None) -> str:
        """
        Create a signed token for an identity.

        Args:
            identity: Identity to embed
            ttl: Custom lifetime (defaults to the configured lifetime)

        Returns:
            Encoded JWT
        """
        if ttl is None:
            ttl = self.expires_delta

        now = int(time.time())
        expire = now + int(ttl.total_seconds())

        payload = TokenPayload(
            sub=identity.id,
            username=identity.username,
            role=identity.role,
            permissions=identity.permissions,
            iat=now,
            exp=expire,
            jti=str(uuid4()),
        )

        token_data = payload.model_dump()
        if self.issuer:
            token_data["iss"] = self.issuer
        if self.audience:
            token_data["aud"] = self.audience

        token = jwt.encode(token_data, self._secret, algorithm=self.algorithm)

        logger.debug(
            "Token created",
            user_id=identity.id,
            username=identity.username,
            expires_at=datetime.fromtimestamp(expire, tz=UTC).isoformat(),
        )

        return token

    def decode(self, token: str) -> dict[str, Any]:
        """
        Decode and validate a token.

        Raises:
            JWTError: If the signature, expiry, issuer or audience is invalid
        """
        return jwt.decode(
            token,
            self._secret,
            algorithms=[self.algorithm],
            audience=self.audience,
            issuer=self.issuer,
        )

    def verify(self, token: str) -> Identity | None:
        """
        Verify a token and extract the embedded identity.

        Args:
            token: Encoded JWT

        Returns:
            Identity, or None if the token is invalid or expired
        """
        try:
            payload = TokenPayload(**self.decode(token))
        except JWTError as e:
            logger.warning("Token validation failed", error=str(e))
            return None
        except ValidationError as e:
            logger.warning("Token payload malformed", error=str(e))
            return None

        return payload.to_identity()
