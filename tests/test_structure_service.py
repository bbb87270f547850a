"""Unit tests for StructureService: strategies, component rebuilds, confirmation."""

from __future__ import annotations

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from partsource.exceptions import BusinessRuleException, NotFoundException, ValidationException
from partsource.models.enums import ComponentSourceType, RfqStatus, StrategyMode
from partsource.models.rfq_item_strategy import RfqItemStrategy
from partsource.modules.bom.service import BomGraph
from partsource.modules.rfq.structure import BundleRef, StructureItemInput
from partsource.modules.rfq.structure_service import StructureContext, StructureService

from conftest import make_result

MODULE = "partsource.modules.rfq.structure_service"
PART_A, PART_B, PART_C = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()


def _input(part_id=PART_A, qty="10", line_number=1):
    return StructureItemInput(
        rfq_item_id=uuid.uuid4(),
        line_number=line_number,
        requested_qty=Decimal(qty),
        uom="pcs",
        original_part_id=part_id,
    )


def _ctx(inputs, children=None, strategies=None, bundles=None):
    return StructureContext(
        inputs=inputs,
        strategies=strategies or {},
        graph=BomGraph(children=children or {}),
        bundles_by_part=bundles or {},
    )


def _rfq(status=RfqStatus.DRAFT):
    rfq = MagicMock()
    rfq.id = uuid.uuid4()
    rfq.status = status
    return rfq


def _added_components(mock_db):
    return [
        (c.original_part_id, c.required_qty, c.source_type)
        for call in mock_db.add_all.call_args_list
        for c in call.args[0]
    ]


@pytest.fixture
def service(mock_db):
    return StructureService(mock_db)


class TestRebuildComponents:
    @pytest.mark.asyncio
    async def test_rebuild_is_idempotent(self, service, mock_db):
        item = _input(qty="5")
        ctx = _ctx([item], children={PART_A: [(PART_B, Decimal(2)), (PART_C, Decimal(1))]})

        with patch.object(service, "load_context", new_callable=AsyncMock, return_value=ctx):
            first = await service.rebuild_components(uuid.uuid4(), item.rfq_item_id)
            second = await service.rebuild_components(uuid.uuid4(), item.rfq_item_id)

        def key(components):
            return [(c.original_part_id, c.required_qty, c.source_type) for c in components]

        assert key(first) == key(second) == [
            (PART_B, Decimal(10), ComponentSourceType.BOM),
            (PART_C, Decimal(5), ComponentSourceType.BOM),
        ]
        # Each rebuild deletes before inserting
        assert mock_db.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_bom_mode_without_children_uses_self(self, service, mock_db):
        item = _input(qty="10")
        with patch.object(service, "load_context", new_callable=AsyncMock, return_value=_ctx([item])):
            components = await service.rebuild_components(
                uuid.uuid4(), item.rfq_item_id, mode=StrategyMode.BOM
            )

        assert len(components) == 1
        assert components[0].source_type == ComponentSourceType.SELF
        assert components[0].original_part_id == PART_A
        assert components[0].required_qty == Decimal(10)

    @pytest.mark.asyncio
    async def test_inactive_item_is_not_found(self, service):
        with patch.object(service, "load_context", new_callable=AsyncMock, return_value=_ctx([_input()])):
            with pytest.raises(NotFoundException):
                await service.rebuild_components(uuid.uuid4(), uuid.uuid4())


class TestEnsureStrategies:
    @pytest.mark.asyncio
    async def test_defaults_created_for_missing_items(self, service, mock_db):
        with_bom, plain = _input(PART_A), _input(PART_B, line_number=2)
        ctx = _ctx([with_bom, plain], children={PART_A: [(PART_C, Decimal(4))]})
        mock_db.execute.return_value = make_result(values=[])

        with patch.object(service, "load_context", new_callable=AsyncMock, return_value=ctx):
            await service.ensure_strategies_and_components(uuid.uuid4())

        strategies = [c.args[0] for c in mock_db.add.call_args_list if isinstance(c.args[0], RfqItemStrategy)]
        modes = {s.rfq_item_id: s.mode for s in strategies}
        assert modes == {with_bom.rfq_item_id: StrategyMode.BOM, plain.rfq_item_id: StrategyMode.SINGLE}
        assert _added_components(mock_db) == [
            (PART_C, Decimal(40), ComponentSourceType.BOM),
            (PART_B, Decimal(10), ComponentSourceType.SELF),
        ]

    @pytest.mark.asyncio
    async def test_items_with_components_are_left_alone(self, service, mock_db):
        item = _input()
        strategy = MagicMock(mode=StrategyMode.SINGLE)
        ctx = _ctx([item], strategies={item.rfq_item_id: strategy})
        mock_db.execute.return_value = make_result(values=[item.rfq_item_id])

        with patch.object(service, "load_context", new_callable=AsyncMock, return_value=ctx):
            await service.ensure_strategies_and_components(uuid.uuid4())

        mock_db.add.assert_not_called()
        mock_db.add_all.assert_not_called()


class TestSetStrategy:
    @pytest.mark.asyncio
    async def test_structured_rfq_drops_back_to_draft(self, service, mock_db):
        rfq = _rfq(RfqStatus.STRUCTURED)
        item = _input()
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=rfq),
            patch.object(service, "load_context", new_callable=AsyncMock, return_value=_ctx([item])),
        ):
            row = await service.set_strategy(rfq.id, item.rfq_item_id, mode=StrategyMode.MIXED)

        assert rfq.status == RfqStatus.DRAFT
        assert row.mode == StrategyMode.MIXED
        assert _added_components(mock_db) == [(PART_A, Decimal(10), ComponentSourceType.SELF)]

    @pytest.mark.asyncio
    async def test_foreign_bundle_is_rejected(self, service):
        rfq = _rfq()
        item = _input()
        ctx = _ctx([item], bundles={PART_A: [BundleRef(uuid.uuid4())]})
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=rfq),
            patch.object(service, "load_context", new_callable=AsyncMock, return_value=ctx),
        ):
            with pytest.raises(ValidationException) as exc_info:
                await service.set_strategy(rfq.id, item.rfq_item_id, selected_bundle_id=uuid.uuid4())
        assert exc_info.value.details[0]["field"] == "selected_bundle_id"

    @pytest.mark.asyncio
    async def test_without_rebuild_components_are_kept(self, service, mock_db):
        rfq = _rfq()
        item = _input()
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=rfq),
            patch.object(service, "load_context", new_callable=AsyncMock, return_value=_ctx([item])),
        ):
            row = await service.set_strategy(rfq.id, item.rfq_item_id, allow_kit=False, rebuild=False)

        assert row.allow_kit is False
        mock_db.add_all.assert_not_called()


class TestConfirm:
    @pytest.mark.asyncio
    async def test_draft_becomes_structured(self, service):
        rfq = _rfq()
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=rfq),
            patch.object(
                service,
                "ensure_strategies_and_components",
                new_callable=AsyncMock,
                return_value=_ctx([_input()]),
            ),
        ):
            result = await service.confirm(rfq.id)
        assert result.status == RfqStatus.STRUCTURED

    @pytest.mark.asyncio
    async def test_sent_rfq_keeps_status(self, service):
        rfq = _rfq(RfqStatus.SENT)
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=rfq),
            patch.object(
                service,
                "ensure_strategies_and_components",
                new_callable=AsyncMock,
                return_value=_ctx([_input()]),
            ),
        ):
            result = await service.confirm(rfq.id)
        assert result.status == RfqStatus.SENT

    @pytest.mark.asyncio
    async def test_unresolved_kit_blocks_confirm(self, service):
        rfq = _rfq()
        ctx = _ctx(
            [_input(line_number=3)],
            bundles={PART_A: [BundleRef(uuid.uuid4()), BundleRef(uuid.uuid4())]},
        )
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=rfq),
            patch.object(service, "ensure_strategies_and_components", new_callable=AsyncMock, return_value=ctx),
        ):
            with pytest.raises(BusinessRuleException) as exc_info:
                await service.confirm(rfq.id)
        assert exc_info.value.details[0]["field"] == "line_number:3"
        assert rfq.status == RfqStatus.DRAFT

    @pytest.mark.asyncio
    async def test_empty_rfq_cannot_be_confirmed(self, service):
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=_rfq()),
            patch.object(service, "ensure_strategies_and_components", new_callable=AsyncMock, return_value=_ctx([])),
        ):
            with pytest.raises(BusinessRuleException):
                await service.confirm(uuid.uuid4())


class TestComponents:
    @pytest.mark.asyncio
    async def test_manual_component_needs_positive_qty(self, service):
        with pytest.raises(ValidationException):
            await service.add_component(uuid.uuid4(), uuid.uuid4(), PART_B, Decimal(0))

    @pytest.mark.asyncio
    async def test_manual_component_part_must_exist(self, service, mock_db):
        item = _input()
        mock_db.get.return_value = None
        with patch.object(service, "load_context", new_callable=AsyncMock, return_value=_ctx([item])):
            with pytest.raises(NotFoundException):
                await service.add_component(uuid.uuid4(), item.rfq_item_id, PART_B)

    @pytest.mark.asyncio
    async def test_update_component_recomputes_required(self, service, mock_db):
        item = _input(qty="4")
        component = MagicMock()
        mock_db.execute.return_value = make_result(component)
        with patch.object(service, "load_context", new_callable=AsyncMock, return_value=_ctx([item])):
            updated = await service.update_component(
                uuid.uuid4(), item.rfq_item_id, uuid.uuid4(), Decimal(3), note="spare"
            )
        assert updated.required_qty == Decimal(12)
        assert updated.note == "spare"


class TestGetStructure:
    @pytest.mark.asyncio
    async def test_master_view_has_no_cross_refs(self, service, mock_db):
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=_rfq()),
            patch.object(
                service,
                "ensure_strategies_and_components",
                new_callable=AsyncMock,
                return_value=_ctx([_input()]),
            ),
        ):
            view = await service.get_structure(uuid.uuid4(), view="master")
        assert len(view.items) == 1
        assert view.cross_refs == {}
        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_default_view_reports_supplier_state(self, service, mock_db):
        item = _input()
        rs = MagicMock()
        rs.id = uuid.uuid4()
        rs.supplier_id = uuid.uuid4()
        mock_db.execute.side_effect = [
            make_result(values=[rs]),
            make_result(values=[]),
            make_result(values=[]),
            make_result(rows=[(rs.id, item.rfq_item_id, Decimal("9.5"), "EUR")]),
        ]
        with (
            patch(f"{MODULE}.get_rfq_or_404", new_callable=AsyncMock, return_value=_rfq()),
            patch.object(
                service,
                "ensure_strategies_and_components",
                new_callable=AsyncMock,
                return_value=_ctx([item]),
            ),
        ):
            view = await service.get_structure(uuid.uuid4(), view="default")

        ref = view.cross_refs[item.rfq_item_id][0]
        assert ref.supplier_id == rs.supplier_id
        assert ref.response_count == 1
        assert ref.latest_price == Decimal("9.5")
        assert ref.line_status.value == "REQUEST"
