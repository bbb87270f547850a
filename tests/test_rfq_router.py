"""Router tests for the RFQ endpoints.

The route table is checked directly; request handling goes through the
full application with the database session replaced by a mock and the
service layer patched.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from partsource.app import app
from partsource.config import settings
from partsource.database.session import get_db
from partsource.exceptions import BusinessRuleException, NotFoundException
from partsource.models.enums import RfqStatus
from partsource.modules.access.auth import AuthenticatedUser, get_current_user
from partsource.modules.rfq.router import router
from partsource.schemas.responses import BatchResult

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _make_user(role="ADMIN") -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid.uuid4(), email="buyer@partsource.io", role=role)


def _token(user: AuthenticatedUser) -> str:
    return jwt.encode(
        {"sub": str(user.id), "email": user.email, "role": user.role},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def _rfq_payload(status=RfqStatus.DRAFT):
    now = datetime.now(UTC)
    return SimpleNamespace(
        id=uuid.uuid4(),
        rfq_number="RFQ-CR-0007",
        client_request_id=uuid.uuid4(),
        client_request_revision_id=uuid.uuid4(),
        current_rfq_revision_id=uuid.uuid4(),
        status=status,
        created_by=None,
        assigned_to=None,
        note=None,
        last_synced_at=now,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def client(mock_db):
    async def _override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login(user: AuthenticatedUser) -> None:
    app.dependency_overrides[get_current_user] = lambda: user


# ---------------------------------------------------------------------------
# Route table
# ---------------------------------------------------------------------------


class TestRouterEndpointCount:
    def test_route_count(self):
        assert len(router.routes) == 27, (
            f"Expected 27 routes, got {len(router.routes)}. "
            f"Routes: {[r.path for r in router.routes]}"
        )


class TestRouterPaths:
    def test_rfq_paths(self):
        paths = {r.path for r in router.routes}
        assert {"/rfqs/", "/rfqs/{rfq_id}", "/rfqs/{rfq_id}/revisions", "/rfqs/{rfq_id}/sync"} <= paths

    def test_structure_paths(self):
        paths = {r.path for r in router.routes}
        assert {
            "/rfqs/{rfq_id}/structure",
            "/rfqs/{rfq_id}/structure/confirm",
            "/rfqs/{rfq_id}/items/{item_id}/strategy",
            "/rfqs/{rfq_id}/items/{item_id}/components",
            "/rfqs/{rfq_id}/items/{item_id}/components/rebuild",
            "/rfqs/{rfq_id}/items/{item_id}/components/{component_id}",
        } <= paths

    def test_supplier_paths(self):
        paths = {r.path for r in router.routes}
        assert {
            "/rfqs/{rfq_id}/suppliers",
            "/rfqs/{rfq_id}/suppliers/{supplier_id}",
            "/rfqs/{rfq_id}/suppliers/{supplier_id}/line-selections",
            "/rfqs/{rfq_id}/suppliers/{supplier_id}/line-status",
        } <= paths

    def test_dispatch_and_response_paths(self):
        paths = {r.path for r in router.routes}
        assert {
            "/rfqs/{rfq_id}/send",
            "/rfqs/{rfq_id}/dispatches",
            "/rfqs/{rfq_id}/documents",
            "/rfqs/{rfq_id}/dispatch-summary",
            "/rfqs/{rfq_id}/responses/import",
            "/rfqs/{rfq_id}/suppliers/{supplier_id}/accept-price",
            "/rfqs/{rfq_id}/suppliers/{supplier_id}/responses",
        } <= paths


class TestRouterMethods:
    def _methods(self, path: str) -> set[str]:
        methods: set[str] = set()
        for r in router.routes:
            if r.path == path:
                methods.update(r.methods)
        return methods

    def test_send_is_post(self):
        assert self._methods("/rfqs/{rfq_id}/send") == {"POST"}

    def test_line_selections_get_and_put(self):
        assert self._methods("/rfqs/{rfq_id}/suppliers/{supplier_id}/line-selections") == {"GET", "PUT"}

    def test_component_item_methods(self):
        assert self._methods("/rfqs/{rfq_id}/items/{item_id}/components/{component_id}") == {
            "PUT",
            "DELETE",
        }

    def test_supplier_update_is_patch(self):
        assert "PATCH" in self._methods("/rfqs/{rfq_id}/suppliers/{supplier_id}")


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestAuthentication:
    def test_missing_token_is_401(self, client):
        response = client.get(f"/api/v1/rfqs/{uuid.uuid4()}")
        assert response.status_code == 401
        body = response.json()
        assert body["error"]["code"] == "UNAUTHORIZED"
        assert body["error"]["requestId"] == response.headers["X-Request-ID"]

    def test_bearer_token_is_accepted(self, client):
        user = _make_user()
        rfq = _rfq_payload()
        with patch("partsource.modules.rfq.router.RfqService.get_rfq", new_callable=AsyncMock, return_value=rfq):
            response = client.get(
                f"/api/v1/rfqs/{rfq.id}", headers={"Authorization": f"Bearer {_token(user)}"}
            )
        assert response.status_code == 200
        assert response.json()["rfq_number"] == "RFQ-CR-0007"

    def test_garbage_token_is_401(self, client):
        response = client.get(
            f"/api/v1/rfqs/{uuid.uuid4()}", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    def test_viewer_cannot_create(self, client):
        _login(_make_user(role="VIEWER"))
        response = client.post("/api/v1/rfqs/", json={"client_request_id": str(uuid.uuid4())})
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"


class TestErrorEnvelope:
    def test_not_found(self, client):
        _login(_make_user())
        with patch(
            "partsource.modules.rfq.router.RfqService.get_rfq",
            new_callable=AsyncMock,
            side_effect=NotFoundException("RFQ x not found"),
        ):
            response = client.get(f"/api/v1/rfqs/{uuid.uuid4()}", headers={"X-Request-ID": "req-1"})
        assert response.status_code == 404
        assert response.json() == {
            "error": {"code": "NOT_FOUND", "message": "RFQ x not found", "details": [], "requestId": "req-1"}
        }

    def test_business_rule_is_422(self, client):
        _login(_make_user())
        with patch(
            "partsource.modules.rfq.router.StructureService.confirm",
            new_callable=AsyncMock,
            side_effect=BusinessRuleException(
                "Structure cannot be confirmed", details=[{"field": "line_number:2", "message": "no enabled supply option"}]
            ),
        ):
            response = client.post(f"/api/v1/rfqs/{uuid.uuid4()}/structure/confirm")
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "BUSINESS_RULE_VIOLATION"
        assert error["details"][0]["field"] == "line_number:2"

    def test_body_validation(self, client):
        _login(_make_user())
        response = client.post("/api/v1/rfqs/", json={"client_request_id": "nope"})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestEndpoints:
    def test_create_passes_creator(self, client):
        user = _make_user()
        _login(user)
        rfq = _rfq_payload()
        with patch(
            "partsource.modules.rfq.router.RfqService.create_rfq", new_callable=AsyncMock, return_value=rfq
        ) as create:
            response = client.post(
                "/api/v1/rfqs/", json={"client_request_id": str(rfq.client_request_id)}
            )
        assert response.status_code == 201
        assert create.await_args.kwargs["created_by"] == user.id
        assert create.await_args.kwargs["client_request_id"] == rfq.client_request_id

    def test_send_returns_batch_result(self, client):
        _login(_make_user())
        outcome = BatchResult()
        outcome.add_success({"supplier_id": str(uuid.uuid4()), "dispatch_type": "DELTA"})
        outcome.add_failure(uuid.uuid4(), BusinessRuleException("Nothing to send"))
        with patch(
            "partsource.modules.rfq.router.DispatchService.send", new_callable=AsyncMock, return_value=outcome
        ) as send:
            response = client.post(f"/api/v1/rfqs/{uuid.uuid4()}/send", json={"mode": "delta"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert len(body["succeeded"]) == 1
        assert body["failed"][0]["code"] == "BUSINESS_RULE_VIOLATION"
        assert send.await_args.kwargs["mode"].value == "delta"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
