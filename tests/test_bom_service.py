"""Unit tests for BomService: edge writes, cycle guard, bulk insert."""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from partsource.exceptions import (
    BomCycleException,
    ConflictException,
    DuplicateEntryException,
    NotFoundException,
    ValidationException,
)
from partsource.models.bom_edge import BomEdge
from partsource.modules.bom.service import BomService

from conftest import make_result

MODEL_ID = uuid.uuid4()


def _part(part_id=None, model_id=MODEL_ID, cat_number="CAT"):
    part = MagicMock()
    part.id = part_id or uuid.uuid4()
    part.equipment_model_id = model_id
    part.cat_number = cat_number
    return part


def _edge():
    edge = MagicMock(spec=BomEdge)
    edge.id = uuid.uuid4()
    edge.parent_part_id = uuid.uuid4()
    edge.child_part_id = uuid.uuid4()
    edge.quantity = Decimal(1)
    return edge


@pytest.fixture
def service(mock_db):
    return BomService(mock_db)


@pytest.mark.asyncio
class TestAddEdge:
    async def test_adds_edge(self, service, mock_db):
        parent, child = _part(), _part()
        mock_db.execute.side_effect = [
            make_result(values=[parent, child]),
            make_result(),  # advisory lock
            make_result(None),  # no existing edge
            make_result(rows=[]),  # child has no descendants
        ]

        edge = await service.add_edge(parent.id, child.id, Decimal(2))

        assert edge.parent_part_id == parent.id
        assert edge.child_part_id == child.id
        assert edge.equipment_model_id == MODEL_ID
        assert edge.quantity == Decimal(2)
        mock_db.add.assert_called_once_with(edge)

    async def test_rejects_non_positive_quantity(self, service):
        with pytest.raises(ValidationException):
            await service.add_edge(uuid.uuid4(), uuid.uuid4(), Decimal(0))

    async def test_rejects_self_edge(self, service):
        part_id = uuid.uuid4()
        with pytest.raises(BomCycleException):
            await service.add_edge(part_id, part_id)

    async def test_missing_child(self, service, mock_db):
        parent = _part()
        mock_db.execute.return_value = make_result(values=[parent])
        with pytest.raises(NotFoundException):
            await service.add_edge(parent.id, uuid.uuid4())

    async def test_model_mismatch_is_conflict(self, service, mock_db):
        parent, child = _part(), _part(model_id=uuid.uuid4())
        mock_db.execute.return_value = make_result(values=[parent, child])
        with pytest.raises(ConflictException) as exc_info:
            await service.add_edge(parent.id, child.id)
        assert exc_info.value.code == "CONFLICT"

    async def test_duplicate_edge(self, service, mock_db):
        parent, child = _part(), _part()
        mock_db.execute.side_effect = [
            make_result(values=[parent, child]),
            make_result(),
            make_result(_edge()),
        ]
        with pytest.raises(DuplicateEntryException):
            await service.add_edge(parent.id, child.id)

    async def test_cycle_is_rejected(self, service, mock_db):
        parent, child = _part(cat_number="P"), _part(cat_number="C")
        mock_db.execute.side_effect = [
            make_result(values=[parent, child]),
            make_result(),
            make_result(None),
            make_result(rows=[(child.id, parent.id, Decimal(1))]),
            make_result(rows=[]),
        ]
        with pytest.raises(BomCycleException) as exc_info:
            await service.add_edge(parent.id, child.id)
        assert exc_info.value.status_code == 409
        mock_db.add.assert_not_called()


@pytest.mark.asyncio
class TestBulkAddEdges:
    async def test_partial_success(self, service, mock_db, caplog):
        edges = [(uuid.uuid4(), uuid.uuid4(), Decimal(1)) for _ in range(3)]
        with patch.object(
            service,
            "add_edge",
            side_effect=[_edge(), BomCycleException("cycle"), _edge()],
        ):
            with caplog.at_level(logging.WARNING, logger="partsource.modules.bom.service"):
                result = await service.bulk_add_edges(edges)

        assert len(result.succeeded) == 2
        assert len(result.failed) == 1
        assert result.failed[0].key == "1"
        assert result.failed[0].code == "BOM_CYCLE"
        assert result.success is False
        assert mock_db.begin_nested.call_count == 3
        assert [r.levelname for r in caplog.records] == ["WARNING"]

    async def test_atomic_propagates_first_failure(self, service, mock_db):
        edges = [(uuid.uuid4(), uuid.uuid4(), Decimal(1)) for _ in range(2)]
        with patch.object(service, "add_edge", side_effect=[_edge(), BomCycleException("cycle")]):
            with pytest.raises(BomCycleException):
                await service.bulk_add_edges(edges, atomic=True)
        mock_db.begin_nested.assert_not_called()

    async def test_database_error_is_reported_per_edge(self, service, mock_db):
        edges = [(uuid.uuid4(), uuid.uuid4(), Decimal(1)) for _ in range(3)]
        failure = IntegrityError("INSERT INTO bom_edges", {}, Exception("fk violation"))
        with patch.object(service, "add_edge", side_effect=[_edge(), failure, _edge()]):
            result = await service.bulk_add_edges(edges)

        assert len(result.succeeded) == 2
        assert result.failed[0].key == "1"
        assert result.failed[0].code == "INTERNAL_ERROR"
        assert mock_db.begin_nested.call_count == 3


@pytest.mark.asyncio
class TestEdgeMaintenance:
    async def test_update_quantity(self, service, mock_db):
        edge = _edge()
        mock_db.execute.return_value = make_result(edge)
        updated = await service.update_quantity(edge.parent_part_id, edge.child_part_id, Decimal("2.5"))
        assert updated.quantity == Decimal("2.5")

    async def test_remove_missing_edge(self, service, mock_db):
        mock_db.execute.return_value = make_result(None)
        with pytest.raises(NotFoundException):
            await service.remove_edge(uuid.uuid4(), uuid.uuid4())

    async def test_remove_edge(self, service, mock_db):
        edge = _edge()
        mock_db.execute.return_value = make_result(edge)
        await service.remove_edge(edge.parent_part_id, edge.child_part_id)
        mock_db.delete.assert_awaited_once_with(edge)

    async def test_cycle_check_walks_descendants(self, service, mock_db):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        mock_db.execute.side_effect = [
            make_result(rows=[(b, c, Decimal(1))]),
            make_result(rows=[(c, a, Decimal(1))]),
            make_result(rows=[]),
        ]
        assert await service.would_create_cycle(a, b) is True
