"""Unit tests for ResponseService: response import and accepted existing prices."""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql

from partsource.exceptions import NotFoundException
from partsource.models.enums import (
    LineStatus,
    ResponseEntrySource,
    RfqSupplierStatus,
    SelectionLineType,
    SupplierReplyStatus,
)
from partsource.models.event_outbox import EventOutbox
from partsource.models.rfq_response import RfqResponseLine, RfqResponseLineAction
from partsource.models.supplier import SupplierPart, SupplierPartPrice
from partsource.modules.rfq.response_service import ResponseService
from partsource.modules.rfq.schemas import AcceptPriceRequest, ResponseImportRequest
from partsource.modules.rfq.structure import StructureItemInput

from conftest import make_result

MODULE = "partsource.modules.rfq.response_service"
PART = uuid.uuid4()


def _rfq_supplier():
    rs = MagicMock()
    rs.id = uuid.uuid4()
    rs.supplier_id = uuid.uuid4()
    rs.status = RfqSupplierStatus.SENT
    rs.responded_at = None
    return rs


def _item(line_number=1):
    return StructureItemInput(
        rfq_item_id=uuid.uuid4(),
        line_number=line_number,
        requested_qty=Decimal(4),
        original_part_id=PART,
        client_description="Gasket",
    )


def _selection(item, key, line_type=SelectionLineType.DEMAND):
    sel = MagicMock()
    sel.rfq_item_id = item.rfq_item_id
    sel.selection_key = key
    sel.line_type = line_type
    sel.original_part_id = None
    sel.alt_original_part_id = None
    sel.bundle_id = None
    return sel


def _added(mock_db, model):
    return [c.args[0] for c in mock_db.add.call_args_list if isinstance(c.args[0], model)]


@pytest.fixture
def service(mock_db):
    svc = ResponseService(mock_db)
    svc.line_status.upsert_line_status = AsyncMock()
    return svc


@pytest.fixture
def revision():
    rev = MagicMock()
    rev.id = uuid.uuid4()
    return rev


def _import_patches(service, rfq_supplier, items, revision, selections=None):
    return (
        patch(f"{MODULE}.get_rfq_supplier_or_404", new_callable=AsyncMock, return_value=rfq_supplier),
        patch(f"{MODULE}.fetch_structure_inputs", new_callable=AsyncMock, return_value=items),
        patch.object(service, "_selections_by_item", new_callable=AsyncMock, return_value=selections or {}),
        patch.object(service, "_open_revision", new_callable=AsyncMock, return_value=revision),
    )


class TestImportResponses:
    @pytest.mark.asyncio
    async def test_matched_row_inserted_unmatched_skipped(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            rows=[
                {"line_number": 1, "price": "12.50", "currency": "usd", "offer_type": "OEM"},
                {"line_number": 99, "price": "1", "currency": "USD"},
            ],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [item], revision)
        with p1, p2, p3, p4:
            result = await service.import_responses(uuid.uuid4(), request)

        assert result.success is True
        assert result.inserted == 1
        assert result.skipped == 1
        assert result.response_revision_id == revision.id
        assert [r.status for r in result.rows] == ["ok", "skipped"]

        lines = _added(mock_db, RfqResponseLine)
        assert len(lines) == 1
        assert lines[0].price == Decimal("12.50")
        assert lines[0].currency == "USD"
        assert lines[0].entry_source == ResponseEntrySource.SUPPLIER_FILE
        assert lines[0].requested_original_part_id == PART
        action = _added(mock_db, RfqResponseLineAction)[0]
        assert action.payload["price"] == "12.50"
        assert action.payload["offer_type"] == "OEM"
        assert _added(mock_db, SupplierPartPrice) == []
        assert len(_added(mock_db, EventOutbox)) == 1

        upsert = service.line_status.upsert_line_status
        assert upsert.await_args.args == (rs.id, item.rfq_item_id, LineStatus.NONE)
        assert rs.status == RfqSupplierStatus.RESPONDED
        assert rs.responded_at is not None

    @pytest.mark.asyncio
    async def test_preview_writes_nothing(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            preview=True,
            rows=[{"rfq_item_id": str(item.rfq_item_id), "price": "3", "currency": "EUR"}],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [item], revision)
        with p1, p2, p3, p4 as open_revision:
            result = await service.import_responses(uuid.uuid4(), request)

        assert result.preview is True
        assert result.inserted == 0
        assert result.summary.valid == 1
        assert result.rows[0].message == "will be imported"
        open_revision.assert_not_called()
        mock_db.add.assert_not_called()
        assert rs.status == RfqSupplierStatus.SENT

    @pytest.mark.asyncio
    async def test_invalid_row_does_not_block_others(self, service, mock_db, revision):
        rs = _rfq_supplier()
        first, second = _item(1), _item(2)
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            rows=[
                {"line_number": 1},
                {"line_number": 2, "supplier_reply_status": "нет в наличии"},
            ],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [first, second], revision)
        with p1, p2, p3, p4:
            result = await service.import_responses(uuid.uuid4(), request)

        assert result.success is False
        assert result.inserted == 1
        assert [r.status for r in result.rows] == ["error", "ok"]
        assert "price and currency are required" in result.rows[0].message
        line = _added(mock_db, RfqResponseLine)[0]
        assert line.supplier_reply_status == SupplierReplyStatus.NO_STOCK
        assert line.price is None

    @pytest.mark.asyncio
    async def test_price_on_no_stock_row_is_rejected(self, service, revision):
        rs, item = _rfq_supplier(), _item()
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            rows=[{"line_number": 1, "supplier_reply_status": "NO_STOCK", "price": "5", "currency": "USD"}],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [item], revision)
        with p1, p2, p3, p4:
            result = await service.import_responses(uuid.uuid4(), request)
        assert result.rows[0].status == "error"
        assert result.inserted == 0

    @pytest.mark.asyncio
    async def test_several_selections_need_a_key(self, service, revision):
        rs, item = _rfq_supplier(), _item()
        selections = {item.rfq_item_id: [_selection(item, "a"), _selection(item, "b")]}
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            rows=[
                {"line_number": 1, "price": "1", "currency": "USD"},
                {"line_number": 1, "selection_key": "c", "price": "1", "currency": "USD"},
                {"line_number": 1, "selection_key": "b", "price": "1", "currency": "USD"},
            ],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [item], revision, selections)
        with p1, p2, p3, p4:
            result = await service.import_responses(uuid.uuid4(), request)

        assert [r.status for r in result.rows] == ["error", "error", "ok"]
        assert result.rows[2].selection_key == "b"

    @pytest.mark.asyncio
    async def test_new_supplier_part_is_created_with_price(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        mock_db.execute.return_value = make_result(None)
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            rows=[
                {
                    "line_number": 1,
                    "price": "7",
                    "currency": "USD",
                    "supplier_part_number": "gk-10 / b",
                    "lead_time_days": 14,
                }
            ],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [item], revision)
        with p1, p2, p3, p4:
            result = await service.import_responses(uuid.uuid4(), request)

        assert result.summary.would_create_supplier_parts == 1
        assert result.rows[0].supplier_part_action == "create"
        part = _added(mock_db, SupplierPart)[0]
        assert part.canonical_part_number == "GK10B"
        assert part.description == "Gasket"
        price = _added(mock_db, SupplierPartPrice)[0]
        assert price.source_subtype == "SUPPLIER_FILE"
        assert price.lead_time_days == 14


    @pytest.mark.asyncio
    async def test_unexpected_row_failure_does_not_block_later_rows(self, service, revision):
        rs, first, second = _rfq_supplier(), _item(1), _item(2)
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            rows=[
                {"line_number": 1, "price": "3", "currency": "USD"},
                {"line_number": 2, "price": "4", "currency": "USD"},
            ],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [first, second], revision)
        with (
            p1,
            p2,
            p3,
            p4 as open_revision,
            patch.object(
                service,
                "_write_import_row",
                new_callable=AsyncMock,
                side_effect=[ConnectionError("connection reset"), None],
            ),
        ):
            result = await service.import_responses(uuid.uuid4(), request)

        assert result.success is False
        assert result.inserted == 1
        assert [r.status for r in result.rows] == ["error", "ok"]
        assert result.rows[0].error_code == "INTERNAL_ERROR"
        assert result.response_revision_id == revision.id
        # the first row's savepoint took its revision with it
        assert open_revision.await_count == 2

    @pytest.mark.asyncio
    async def test_rejected_rows_open_no_revision(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            new_revision=True,
            rows=[{"line_number": 1, "supplier_reply_status": "NO_STOCK", "price": "5", "currency": "USD"}],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [item], revision)
        with p1, p2, p3, p4 as open_revision:
            result = await service.import_responses(uuid.uuid4(), request)

        assert result.rows[0].error_code == "VALIDATION_ERROR"
        assert result.response_revision_id is None
        open_revision.assert_not_awaited()
        mock_db.begin_nested.assert_not_called()

    @pytest.mark.asyncio
    async def test_kit_role_links_supplier_part_to_bundle_item(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        selection = _selection(item, "kit:b:r", line_type=SelectionLineType.KIT_ROLE)
        selection.original_part_id = uuid.uuid4()
        selection.bundle_id = uuid.uuid4()
        selection.bundle_item_id = uuid.uuid4()
        part = MagicMock(id=uuid.uuid4(), supplier_part_number="GK-10B")
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            rows=[{"line_number": 1, "price": "2", "currency": "USD", "supplier_part_number": "GK-10B"}],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [item], revision, {item.rfq_item_id: [selection]})
        with (
            p1,
            p2,
            p3,
            p4,
            patch.object(service, "_find_supplier_part", new_callable=AsyncMock, return_value=part),
        ):
            result = await service.import_responses(uuid.uuid4(), request)

        assert result.inserted == 1
        links = [
            c.args[0]
            for c in mock_db.execute.await_args_list
            if "supplier_bundle_item_links" in str(c.args[0].compile(dialect=postgresql.dialect()))
        ]
        assert len(links) == 1
        compiled = links[0].compile(dialect=postgresql.dialect())
        assert "ON CONFLICT ON CONSTRAINT uq_supplier_bundle_item_links_item_part DO NOTHING" in str(compiled)
        assert compiled.params["bundle_item_id"] == selection.bundle_item_id
        assert compiled.params["supplier_part_id"] == part.id

    @pytest.mark.asyncio
    async def test_demand_selection_creates_no_kit_link(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        part = MagicMock(id=uuid.uuid4(), supplier_part_number="GK-10B")
        request = ResponseImportRequest(
            supplier_id=rs.supplier_id,
            rows=[{"line_number": 1, "price": "2", "currency": "USD", "supplier_part_number": "GK-10B"}],
        )
        p1, p2, p3, p4 = _import_patches(service, rs, [item], revision)
        with (
            p1,
            p2,
            p3,
            p4,
            patch.object(service, "_find_supplier_part", new_callable=AsyncMock, return_value=part),
        ):
            await service.import_responses(uuid.uuid4(), request)

        mock_db.execute.assert_not_awaited()


class TestAcceptExistingPrice:
    async def _accept(self, service, rs, item, revision, **fields):
        request = AcceptPriceRequest(rfq_item_id=item.rfq_item_id, price="9.90", currency="EUR", **fields)
        with (
            patch(f"{MODULE}.get_rfq_supplier_or_404", new_callable=AsyncMock, return_value=rs),
            patch(f"{MODULE}.fetch_structure_inputs", new_callable=AsyncMock, return_value=[item]),
            patch.object(service, "_open_revision", new_callable=AsyncMock, return_value=revision),
        ):
            return await service.accept_existing_price(uuid.uuid4(), rs.supplier_id, request)

    @pytest.mark.asyncio
    async def test_price_list_source_adds_no_history(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        part = MagicMock(supplier_id=rs.supplier_id)
        mock_db.get.return_value = part

        line = await self._accept(
            service,
            rs,
            item,
            revision,
            supplier_part_id=uuid.uuid4(),
            source_type="price_list",
            source_subtype="CATALOG",
            source_ref="PL-2026",
        )

        assert line.entry_source == ResponseEntrySource.ACCEPTED_EXISTING
        assert line.supplier_reply_status == SupplierReplyStatus.QUOTED
        assert line.note == "source: PRICE_LIST/CATALOG PL-2026"
        assert line.change_reason == "accepted existing price"
        assert _added(mock_db, SupplierPartPrice) == []
        upsert = service.line_status.upsert_line_status
        assert upsert.await_args.args[2] == LineStatus.ACCEPTED_EXISTING
        assert upsert.await_args.kwargs["source_type"] == "PRICE_LIST"
        assert rs.status == RfqSupplierStatus.RESPONDED

    @pytest.mark.asyncio
    async def test_other_source_is_appended_to_history(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        mock_db.get.return_value = MagicMock(supplier_id=rs.supplier_id)
        supplier_part_id = uuid.uuid4()

        await self._accept(
            service, rs, item, revision, supplier_part_id=supplier_part_id, source_type="EMAIL"
        )

        price = _added(mock_db, SupplierPartPrice)[0]
        assert price.supplier_part_id == supplier_part_id
        assert price.price == Decimal("9.90")
        assert price.source_subtype == "ACCEPTED_EXISTING"

    @pytest.mark.asyncio
    async def test_without_supplier_part_no_history(self, service, mock_db, revision):
        rs, item = _rfq_supplier(), _item()
        line = await self._accept(service, rs, item, revision, source_type="EMAIL")
        assert line.original_part_id == PART
        assert _added(mock_db, SupplierPartPrice) == []

    @pytest.mark.asyncio
    async def test_inactive_line_is_not_found(self, service, revision):
        rs = _rfq_supplier()
        request = AcceptPriceRequest(rfq_item_id=uuid.uuid4(), price="1", currency="USD")
        with (
            patch(f"{MODULE}.get_rfq_supplier_or_404", new_callable=AsyncMock, return_value=rs),
            patch(f"{MODULE}.fetch_structure_inputs", new_callable=AsyncMock, return_value=[_item()]),
        ):
            with pytest.raises(NotFoundException):
                await service.accept_existing_price(uuid.uuid4(), rs.supplier_id, request)


class TestResponseRevisions:
    @pytest.mark.asyncio
    async def test_first_revision_is_one(self, service, mock_db):
        mock_db.execute.side_effect = [make_result(), make_result(0)]
        revision = await service.create_response_revision(uuid.uuid4())
        assert revision.rev_number == 1

    @pytest.mark.asyncio
    async def test_ensure_reuses_latest(self, service, mock_db, revision):
        mock_db.execute.return_value = make_result(revision)
        assert await service.ensure_response_revision(uuid.uuid4()) is revision
        mock_db.add.assert_not_called()
