"""Tests for request-scoped identity."""

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from backend_shared.errors import UnauthenticatedError, register_error_handlers
from backend_shared.identity import (
    IdentityMiddleware,
    RequestContext,
    get_request_context,
    owner_id,
    require,
    require_owner,
    set_owner_id,
)


class TestRequestContext:
    """Test the context value and accessors."""

    def test_empty_context_has_no_owner(self) -> None:
        ctx = RequestContext()

        assert ctx.get_owner_id() is None
        assert owner_id(ctx) is None

    def test_with_owner_id_returns_new_context(self) -> None:
        ctx = RequestContext()

        scoped = set_owner_id(ctx, "owner-1")

        assert scoped.get_owner_id() == "owner-1"
        assert ctx.get_owner_id() is None

    def test_require_returns_owner(self) -> None:
        ctx = RequestContext().with_owner_id("owner-1")

        assert require(ctx) == "owner-1"

    def test_require_without_owner_raises(self) -> None:
        with pytest.raises(UnauthenticatedError):
            require(RequestContext())

    def test_empty_string_owner_is_present(self) -> None:
        """Only a missing owner id counts as absent."""
        assert require(RequestContext(owner_id="")) == ""


def _header_resolver(request: Request) -> str | None:
    return request.headers.get("X-Owner-ID")


async def _async_header_resolver(request: Request) -> str | None:
    return request.headers.get("X-Owner-ID")


def _make_client(resolver) -> TestClient:
    app = FastAPI()
    app.add_middleware(IdentityMiddleware, resolver=resolver)
    register_error_handlers(app)

    @app.get("/whoami")
    async def whoami(ctx: RequestContext = Depends(get_request_context)) -> dict:
        return {"owner_id": ctx.get_owner_id()}

    @app.get("/private")
    async def private(owner: str = Depends(require_owner)) -> dict:
        return {"owner_id": owner}

    return TestClient(app)


class TestIdentityMiddleware:
    """Test context propagation through FastAPI."""

    @pytest.fixture(params=[_header_resolver, _async_header_resolver])
    def client(self, request: pytest.FixtureRequest) -> TestClient:
        return _make_client(request.param)

    def test_owner_reaches_route(self, client: TestClient) -> None:
        response = client.get("/whoami", headers={"X-Owner-ID": "owner-1"})

        assert response.json() == {"owner_id": "owner-1"}

    def test_anonymous_request(self, client: TestClient) -> None:
        response = client.get("/whoami")

        assert response.json() == {"owner_id": None}

    def test_private_route_requires_owner(self, client: TestClient) -> None:
        response = client.get("/private")

        assert response.status_code == 401
        assert response.json() == {"detail": "error.unauthenticated"}

    def test_private_route_with_owner(self, client: TestClient) -> None:
        response = client.get("/private", headers={"X-Owner-ID": "owner-1"})

        assert response.status_code == 200
        assert response.json() == {"owner_id": "owner-1"}

    def test_context_without_middleware(self) -> None:
        app = FastAPI()

        @app.get("/whoami")
        async def whoami(ctx: RequestContext = Depends(get_request_context)) -> dict:
            return {"owner_id": ctx.get_owner_id()}

        response = TestClient(app).get("/whoami")

        assert response.json() == {"owner_id": None}
