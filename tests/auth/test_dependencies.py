"""Tests for route protection dependencies."""

from typing import Annotated

import httpx
import pytest
from fastapi import Depends, FastAPI

from proxy_gateway.auth.dependencies import (
    optional_auth,
    require_admin,
    require_permission,
)
from proxy_gateway.auth.models import Identity


@pytest.fixture
def guarded_app(app: FastAPI) -> FastAPI:
    """Gateway app with extra guarded routes."""

    @app.get("/guarded/delete")
    async def delete_guarded(
        identity: Annotated[Identity, Depends(require_permission("delete"))],
    ) -> dict:
        return {"user": identity.username}

    @app.get("/guarded/admin")
    async def admin_guarded(identity: Annotated[Identity, Depends(require_admin)]) -> dict:
        return {"user": identity.username}

    @app.get("/guarded/optional")
    async def optional(identity: Annotated[Identity | None, Depends(optional_auth)]) -> dict:
        return {"user": identity.username if identity else None}

    return app


@pytest.fixture
async def guarded_client(guarded_app: FastAPI):
    transport = httpx.ASGITransport(app=guarded_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


def bearer(app: FastAPI, identity: Identity) -> dict[str, str]:
    return {"Authorization": f"Bearer {app.state.token_manager.sign(identity)}"}


ADMIN = Identity(id="1", username="admin", role="admin", permissions=["read", "write", "delete"])
USER = Identity(id="2", username="user", role="user", permissions=["read"])


@pytest.mark.asyncio
async def test_permission_granted(guarded_app: FastAPI, guarded_client: httpx.AsyncClient) -> None:
    response = await guarded_client.get("/guarded/delete", headers=bearer(guarded_app, ADMIN))

    assert response.status_code == 200
    assert response.json() == {"user": "admin"}


@pytest.mark.asyncio
async def test_permission_denied(guarded_app: FastAPI, guarded_client: httpx.AsyncClient) -> None:
    response = await guarded_client.get("/guarded/delete", headers=bearer(guarded_app, USER))

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_role_denied(guarded_app: FastAPI, guarded_client: httpx.AsyncClient) -> None:
    response = await guarded_client.get("/guarded/admin", headers=bearer(guarded_app, USER))

    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


@pytest.mark.asyncio
async def test_unauthenticated(guarded_client: httpx.AsyncClient) -> None:
    response = await guarded_client.get("/guarded/admin")

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_invalid_token(guarded_client: httpx.AsyncClient) -> None:
    response = await guarded_client.get(
        "/guarded/admin", headers={"Authorization": "Bearer garbage"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"


@pytest.mark.asyncio
async def test_optional_auth_never_fails(
    guarded_app: FastAPI, guarded_client: httpx.AsyncClient
) -> None:
    anonymous = await guarded_client.get(
        "/guarded/optional", headers={"Authorization": "Bearer garbage"}
    )
    assert anonymous.status_code == 200
    assert anonymous.json() == {"user": None}

    known = await guarded_client.get("/guarded/optional", headers=bearer(guarded_app, USER))
    assert known.json() == {"user": "user"}
