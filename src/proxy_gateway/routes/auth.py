"""
Authentication Routes

Login, logout, identity and token refresh endpoints.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Request, Response

from proxy_gateway.auth.dependencies import get_resolution, require_auth
from proxy_gateway.auth.models import (
    AuthStatusResponse,
    Identity,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RefreshRequest,
    SessionInfo,
    TokenResponse,
)
from proxy_gateway.auth.resolver import Resolution
from proxy_gateway.errors import Unauthorized
from proxy_gateway.monitoring.metrics import AUTH_FAILURES, AUTH_SUCCESS

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login", response_model=LoginResponse)
async def login(request: Request, response: Response, payload: LoginRequest) -> LoginResponse:
    """
    Authenticate with username and password.

    Creates a server-side session (delivered as a cookie) and returns a
    signed bearer token for the same identity.

    Raises:
        Unauthorized: If the credentials are invalid (no session is created)
    """
    state = request.app.state
    settings = state.settings
    client_ip = request.client.host if request.client else None

    identity = await state.user_store.authenticate(payload.username, payload.password)
    if identity is None:
        AUTH_FAILURES.labels(auth_method="password", failure_reason="invalid_credentials").inc()
        logger.warning("Authentication failed", username=payload.username, ip_address=client_ip)
        raise Unauthorized("Invalid credentials")

    # A new login always starts a fresh session
    previous = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if previous:
        await state.session_store.delete_session(previous)

    session = await state.session_store.create_session(identity)
    token = state.token_manager.sign(identity)

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session.session_id,
        max_age=settings.SESSION_TIMEOUT_SECONDS,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )

    AUTH_SUCCESS.labels(auth_method="password").inc()
    logger.info(
        "Login successful",
        user_id=identity.id,
        username=identity.username,
        session_id=session.session_id,
        ip_address=client_ip,
    )

    return LoginResponse(
        user=identity,
        token=token,
        expires_in=state.token_manager.expires_in,
        session_id=session.session_id,
    )


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    identity: Annotated[Identity, Depends(require_auth)],
    resolution: Annotated[Resolution, Depends(get_resolution)],
) -> dict[str, Any]:
    """
    Destroy the current session.

    Tokens stay valid until they expire; only the session is revoked.
    """
    if resolution.session is not None:
        await request.app.state.session_store.delete_session(resolution.session.session_id)

    response.delete_cookie(request.app.state.settings.SESSION_COOKIE_NAME)
    logger.info("Logout", user_id=identity.id, username=identity.username)

    return {"success": True, "message": "Logout successful"}


@router.get("/me", response_model=MeResponse)
async def me(
    identity: Annotated[Identity, Depends(require_auth)],
    resolution: Annotated[Resolution, Depends(get_resolution)],
) -> MeResponse:
    """Get the authenticated identity and, for session auth, session details."""
    session = resolution.session
    return MeResponse(
        user=identity,
        session=SessionInfo(session_id=session.session_id, last_activity=session.last_activity)
        if session
        else None,
    )


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(
    resolution: Annotated[Resolution, Depends(get_resolution)],
) -> AuthStatusResponse:
    """Report whether the request is authenticated. Never fails."""
    return AuthStatusResponse(
        is_authenticated=resolution.authenticated,
        user=resolution.identity,
        session_valid=resolution.session is not None,
    )


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(request: Request, payload: RefreshRequest) -> TokenResponse:
    """
    Exchange a valid token for a new one without re-authenticating.

    Raises:
        Unauthorized: If the presented token does not verify
    """
    tokens = request.app.state.token_manager

    identity = tokens.verify(payload.refresh_token)
    if identity is None:
        AUTH_FAILURES.labels(auth_method="token", failure_reason="refresh_rejected").inc()
        raise Unauthorized("Invalid token")

    logger.info("Token refreshed", user_id=identity.id, username=identity.username)
    return TokenResponse(token=tokens.sign(identity), expires_in=tokens.expires_in)
