"""Router tests for the bill-of-materials endpoints."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from partsource.app import app
from partsource.database.session import get_db
from partsource.exceptions import BomCycleException
from partsource.modules.access.auth import AuthenticatedUser, get_current_user
from partsource.modules.bom.router import router
from partsource.schemas.responses import BatchResult

SERVICE = "partsource.modules.bom.router.BomService"


@pytest.fixture
def client(mock_db):
    async def _override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login(role: str) -> None:
    user = AuthenticatedUser(id=uuid.uuid4(), email="eng@partsource.io", role=role)
    app.dependency_overrides[get_current_user] = lambda: user


class TestRoutes:
    def test_paths_and_methods(self):
        table = {(r.path, m) for r in router.routes for m in r.methods}
        assert table >= {
            ("/bom/{part_id}/children", "GET"),
            ("/bom/", "POST"),
            ("/bom/bulk", "POST"),
            ("/bom/{parent_id}/{child_id}", "PUT"),
            ("/bom/{parent_id}/{child_id}", "DELETE"),
            ("/bom/{part_id}/tree", "GET"),
        }


class TestEdgeEndpoints:
    def test_non_editor_is_forbidden(self, client):
        _login("PROCUREMENT_HEAD")
        response = client.post(
            "/api/v1/bom/",
            json={"parent_part_id": str(uuid.uuid4()), "child_part_id": str(uuid.uuid4())},
        )
        assert response.status_code == 403

    def test_cycle_is_409(self, client):
        _login("ADMIN")
        with patch(
            f"{SERVICE}.add_edge",
            new_callable=AsyncMock,
            side_effect=BomCycleException("Edge would create a cycle"),
        ):
            response = client.post(
                "/api/v1/bom/",
                json={"parent_part_id": str(uuid.uuid4()), "child_part_id": str(uuid.uuid4()), "quantity": "2"},
            )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "BOM_CYCLE"

    def test_zero_quantity_rejected(self, client):
        _login("ADMIN")
        response = client.post(
            "/api/v1/bom/",
            json={"parent_part_id": str(uuid.uuid4()), "child_part_id": str(uuid.uuid4()), "quantity": "0"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_bulk_passes_atomic_flag(self, client):
        _login("ADMIN")
        with patch(f"{SERVICE}.bulk_add_edges", new_callable=AsyncMock, return_value=BatchResult()) as bulk:
            response = client.post(
                "/api/v1/bom/bulk",
                json={
                    "edges": [{"parent_part_id": str(uuid.uuid4()), "child_part_id": str(uuid.uuid4())}],
                    "atomic": True,
                },
            )
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert bulk.await_args.kwargs["atomic"] is True
