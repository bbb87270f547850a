"""StructureService: strategies, component rebuilds and the option tree of an RFQ."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.config import settings
from partsource.exceptions import BusinessRuleException, NotFoundException, ValidationException
from partsource.models.enums import ComponentSourceType, LineStatus, RfqStatus, StrategyMode
from partsource.models.original_part import OriginalPart
from partsource.models.rfq import Rfq
from partsource.models.rfq_item_component import RfqItemComponent
from partsource.models.rfq_item_strategy import RfqItemStrategy
from partsource.models.rfq_line_selection import RfqSupplierLineSelection
from partsource.models.rfq_line_status import RfqSupplierLineStatus
from partsource.models.rfq_response import RfqResponseLine, RfqResponseRevision
from partsource.models.rfq_supplier import RfqSupplier
from partsource.models.supplier_bundle import SupplierBundle, SupplierBundleItem
from partsource.modules.bom.service import BomGraph, BomService
from partsource.modules.rfq.queries import fetch_structure_inputs, get_rfq_or_404
from partsource.modules.rfq.structure import (
    BundleRef,
    BundleRole,
    MasterItem,
    PartInfo,
    StrategySettings,
    StructureItemInput,
    build_components,
    build_master_item,
    default_strategy,
    validate_for_confirm,
)

logger = logging.getLogger(__name__)


@dataclass
class StructureContext:
    """Everything the pure builder needs for one RFQ, loaded once."""

    inputs: list[StructureItemInput]
    strategies: dict[uuid.UUID, RfqItemStrategy]
    graph: BomGraph
    bundles_by_part: dict[uuid.UUID, list[BundleRef]] = field(default_factory=dict)

    @property
    def parts(self) -> dict[uuid.UUID, PartInfo]:
        return {part_id: _part_info(part) for part_id, part in self.graph.parts.items()}

    def settings_for(self, item: StructureItemInput) -> StrategySettings:
        row = self.strategies.get(item.rfq_item_id)
        if row is None:
            return default_strategy(bool(self.graph.direct_children(item.original_part_id)))
        return _strategy_settings(row)


@dataclass
class SupplierCrossRef:
    supplier_id: uuid.UUID
    rfq_supplier_id: uuid.UUID
    line_status: LineStatus
    selection_keys: list[str] = field(default_factory=list)
    response_count: int = 0
    latest_price: Decimal | None = None
    latest_currency: str | None = None


@dataclass
class StructureView:
    rfq: Rfq
    view: str
    items: list[MasterItem]
    cross_refs: dict[uuid.UUID, list[SupplierCrossRef]] = field(default_factory=dict)


def _part_info(part: OriginalPart) -> PartInfo:
    return PartInfo(
        id=part.id,
        cat_number=part.cat_number,
        description_ru=part.description_ru,
        description_en=part.description_en,
        uom=part.uom,
    )


def _strategy_settings(row: RfqItemStrategy) -> StrategySettings:
    return StrategySettings(
        mode=row.mode,
        allow_oem=row.allow_oem,
        allow_analog=row.allow_analog,
        allow_kit=row.allow_kit,
        allow_partial=row.allow_partial,
        selected_bundle_id=row.selected_bundle_id,
        note=row.note,
        is_initialized=True,
    )


class StructureService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.bom = BomService(db)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load_bundles(self, part_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[BundleRef]]:
        if not part_ids:
            return {}
        result = await self.db.execute(
            select(SupplierBundle)
            .where(SupplierBundle.original_part_id.in_(part_ids))
            .order_by(SupplierBundle.original_part_id, SupplierBundle.id)
        )
        bundles = list(result.scalars().all())
        if not bundles:
            return {}

        result = await self.db.execute(
            select(SupplierBundleItem)
            .where(SupplierBundleItem.bundle_id.in_([b.id for b in bundles]))
            .order_by(SupplierBundleItem.bundle_id, SupplierBundleItem.sort_order)
        )
        roles_by_bundle: dict[uuid.UUID, list[BundleRole]] = {}
        for row in result.scalars().all():
            roles_by_bundle.setdefault(row.bundle_id, []).append(
                BundleRole(
                    bundle_item_id=row.id,
                    role_label=row.role_label,
                    qty=Decimal(row.qty),
                    sort_order=row.sort_order,
                )
            )

        by_part: dict[uuid.UUID, list[BundleRef]] = {}
        for bundle in bundles:
            by_part.setdefault(bundle.original_part_id, []).append(
                BundleRef(
                    bundle_id=bundle.id,
                    title=bundle.title,
                    roles=tuple(roles_by_bundle.get(bundle.id, [])),
                )
            )
        return by_part

    async def load_context(self, rfq_id: uuid.UUID) -> StructureContext:
        inputs = await fetch_structure_inputs(self.db, rfq_id)
        item_ids = [item.rfq_item_id for item in inputs]
        strategies: dict[uuid.UUID, RfqItemStrategy] = {}
        if item_ids:
            result = await self.db.execute(
                select(RfqItemStrategy).where(RfqItemStrategy.rfq_item_id.in_(item_ids))
            )
            strategies = {row.rfq_item_id: row for row in result.scalars().all()}

        roots = [item.original_part_id for item in inputs if item.original_part_id]
        graph = await self.bom.load_graph(roots) if roots else BomGraph()
        bundles = await self._load_bundles(list(graph.parts) or roots)
        return StructureContext(
            inputs=inputs, strategies=strategies, graph=graph, bundles_by_part=bundles
        )

    async def _active_input(
        self, rfq_id: uuid.UUID, rfq_item_id: uuid.UUID, ctx: StructureContext | None = None
    ) -> tuple[StructureItemInput, StructureContext]:
        ctx = ctx or await self.load_context(rfq_id)
        for item in ctx.inputs:
            if item.rfq_item_id == rfq_item_id:
                return item, ctx
        raise NotFoundException(f"RFQ item {rfq_item_id} is not active in RFQ {rfq_id}")

    def build_master(self, ctx: StructureContext, language: str | None = None) -> list[MasterItem]:
        parts = ctx.parts
        return [
            build_master_item(
                item,
                ctx.settings_for(item),
                ctx.graph.children,
                parts,
                ctx.bundles_by_part,
                language or settings.rfq_default_language,
            )
            for item in ctx.inputs
        ]

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    async def _replace_components(
        self, item: StructureItemInput, mode: StrategyMode, graph: BomGraph
    ) -> list[RfqItemComponent]:
        """Delete every component of the item and insert the freshly built set."""
        await self.db.execute(
            delete(RfqItemComponent).where(RfqItemComponent.rfq_item_id == item.rfq_item_id)
        )
        planned = build_components(
            item.original_part_id,
            item.requested_qty,
            mode,
            graph.direct_children(item.original_part_id),
        )
        components = [
            RfqItemComponent(
                rfq_item_id=item.rfq_item_id,
                original_part_id=c.original_part_id,
                component_qty=c.component_qty,
                required_qty=c.required_qty,
                source_type=c.source_type,
            )
            for c in planned
        ]
        self.db.add_all(components)
        await self.db.flush()
        return components

    async def ensure_strategies_and_components(self, rfq_id: uuid.UUID) -> StructureContext:
        """Create default strategies and components for active items that lack them."""
        ctx = await self.load_context(rfq_id)
        missing = [item for item in ctx.inputs if item.rfq_item_id not in ctx.strategies]
        for item in missing:
            defaults = ctx.settings_for(item)
            row = RfqItemStrategy(
                rfq_item_id=item.rfq_item_id,
                mode=defaults.mode,
                allow_oem=defaults.allow_oem,
                allow_analog=defaults.allow_analog,
                allow_kit=defaults.allow_kit,
                allow_partial=defaults.allow_partial,
            )
            self.db.add(row)
            ctx.strategies[item.rfq_item_id] = row
        if missing:
            await self.db.flush()

        item_ids = [item.rfq_item_id for item in ctx.inputs]
        if item_ids:
            result = await self.db.execute(
                select(RfqItemComponent.rfq_item_id)
                .where(RfqItemComponent.rfq_item_id.in_(item_ids))
                .distinct()
            )
            built = set(result.scalars().all())
            for item in ctx.inputs:
                if item.rfq_item_id not in built and item.original_part_id is not None:
                    await self._replace_components(
                        item, ctx.strategies[item.rfq_item_id].mode, ctx.graph
                    )
        if missing:
            logger.info("Initialised %d strategies for RFQ %s", len(missing), rfq_id)
        return ctx

    async def list_components(
        self, rfq_id: uuid.UUID, rfq_item_id: uuid.UUID
    ) -> list[RfqItemComponent]:
        await self._active_input(rfq_id, rfq_item_id)
        result = await self.db.execute(
            select(RfqItemComponent)
            .where(RfqItemComponent.rfq_item_id == rfq_item_id)
            .order_by(RfqItemComponent.source_type, RfqItemComponent.original_part_id)
        )
        return list(result.scalars().all())

    async def rebuild_components(
        self,
        rfq_id: uuid.UUID,
        rfq_item_id: uuid.UUID,
        mode: StrategyMode | None = None,
    ) -> list[RfqItemComponent]:
        """Replace-all rebuild of one item's components.

        ``mode`` overrides the stored strategy for this build only.
        """
        item, ctx = await self._active_input(rfq_id, rfq_item_id)
        effective = mode or ctx.settings_for(item).mode
        components = await self._replace_components(item, effective, ctx.graph)
        logger.info(
            "Rebuilt %d components for RFQ item %s (%s)", len(components), rfq_item_id, effective.value
        )
        return components

    async def add_component(
        self,
        rfq_id: uuid.UUID,
        rfq_item_id: uuid.UUID,
        original_part_id: uuid.UUID,
        component_qty: Decimal = Decimal(1),
        note: str | None = None,
    ) -> RfqItemComponent:
        """Add or overwrite a MANUAL component. Dropped by the next rebuild."""
        if Decimal(component_qty) <= 0:
            raise ValidationException(
                "component_qty must be a positive number",
                details=[{"field": "component_qty", "message": "must be > 0"}],
            )
        item, _ = await self._active_input(rfq_id, rfq_item_id)
        part = await self.db.get(OriginalPart, original_part_id)
        if part is None:
            raise NotFoundException(f"Original part {original_part_id} not found")

        qty = Decimal(component_qty)
        stmt = pg_insert(RfqItemComponent).values(
            rfq_item_id=rfq_item_id,
            original_part_id=original_part_id,
            component_qty=qty,
            required_qty=qty * item.requested_qty,
            source_type=ComponentSourceType.MANUAL,
            note=note,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_rfq_item_components_item_part_source",
            set_={
                "component_qty": stmt.excluded.component_qty,
                "required_qty": stmt.excluded.required_qty,
                "note": stmt.excluded.note,
                "updated_at": func.now(),
            },
        ).returning(RfqItemComponent)
        result = await self.db.execute(stmt, execution_options={"populate_existing": True})
        return result.scalar_one()

    async def _get_component(
        self, rfq_item_id: uuid.UUID, component_id: uuid.UUID
    ) -> RfqItemComponent:
        result = await self.db.execute(
            select(RfqItemComponent).where(
                RfqItemComponent.id == component_id,
                RfqItemComponent.rfq_item_id == rfq_item_id,
            )
        )
        component = result.scalar_one_or_none()
        if component is None:
            raise NotFoundException(f"Component {component_id} not found")
        return component

    async def update_component(
        self,
        rfq_id: uuid.UUID,
        rfq_item_id: uuid.UUID,
        component_id: uuid.UUID,
        component_qty: Decimal,
        note: str | None = None,
    ) -> RfqItemComponent:
        if component_qty is None or Decimal(component_qty) <= 0:
            raise ValidationException(
                "component_qty must be a positive number",
                details=[{"field": "component_qty", "message": "must be > 0"}],
            )
        item, _ = await self._active_input(rfq_id, rfq_item_id)
        component = await self._get_component(rfq_item_id, component_id)
        component.component_qty = Decimal(component_qty)
        component.required_qty = Decimal(component_qty) * item.requested_qty
        if note is not None:
            component.note = note
        await self.db.flush()
        return component

    async def delete_component(
        self, rfq_id: uuid.UUID, rfq_item_id: uuid.UUID, component_id: uuid.UUID
    ) -> None:
        await self._active_input(rfq_id, rfq_item_id)
        component = await self._get_component(rfq_item_id, component_id)
        await self.db.delete(component)
        await self.db.flush()

    # ------------------------------------------------------------------
    # Strategy
    # ------------------------------------------------------------------

    async def set_strategy(
        self,
        rfq_id: uuid.UUID,
        rfq_item_id: uuid.UUID,
        *,
        mode: StrategyMode | None = None,
        allow_oem: bool | None = None,
        allow_analog: bool | None = None,
        allow_kit: bool | None = None,
        allow_partial: bool | None = None,
        selected_bundle_id: uuid.UUID | None = None,
        clear_bundle: bool = False,
        note: str | None = None,
        rebuild: bool = True,
    ) -> RfqItemStrategy:
        """Create or update the strategy of one active item.

        A confirmed structure drops back to DRAFT and has to be confirmed again.
        """
        rfq = await get_rfq_or_404(self.db, rfq_id, for_update=True)
        item, ctx = await self._active_input(rfq_id, rfq_item_id)

        if selected_bundle_id is not None:
            valid = {b.bundle_id for b in ctx.bundles_by_part.get(item.original_part_id, [])}
            if selected_bundle_id not in valid:
                raise ValidationException(
                    f"Bundle {selected_bundle_id} does not belong to line {item.line_number}",
                    details=[
                        {"field": "selected_bundle_id", "message": f"line_number:{item.line_number}"}
                    ],
                )

        row = ctx.strategies.get(rfq_item_id)
        if row is None:
            defaults = ctx.settings_for(item)
            row = RfqItemStrategy(
                rfq_item_id=rfq_item_id,
                mode=defaults.mode,
                allow_oem=defaults.allow_oem,
                allow_analog=defaults.allow_analog,
                allow_kit=defaults.allow_kit,
                allow_partial=defaults.allow_partial,
            )
            self.db.add(row)

        if mode is not None:
            row.mode = mode
        if allow_oem is not None:
            row.allow_oem = allow_oem
        if allow_analog is not None:
            row.allow_analog = allow_analog
        if allow_kit is not None:
            row.allow_kit = allow_kit
        if allow_partial is not None:
            row.allow_partial = allow_partial
        if clear_bundle:
            row.selected_bundle_id = None
        elif selected_bundle_id is not None:
            row.selected_bundle_id = selected_bundle_id
        if note is not None:
            row.note = note

        if rfq.status == RfqStatus.STRUCTURED:
            rfq.status = RfqStatus.DRAFT
        await self.db.flush()

        if rebuild:
            await self._replace_components(item, row.mode, ctx.graph)
        logger.info("Strategy of RFQ item %s set to %s", rfq_item_id, row.mode.value)
        return row

    # ------------------------------------------------------------------
    # Structure tree
    # ------------------------------------------------------------------

    async def get_structure(
        self,
        rfq_id: uuid.UUID,
        *,
        view: str = "master",
        supplier_id: uuid.UUID | None = None,
        language: str | None = None,
    ) -> StructureView:
        """Option tree of every active line.

        ``master`` is builder output only. The default view adds, per line,
        what each invited supplier was asked and has answered.
        """
        rfq = await get_rfq_or_404(self.db, rfq_id)
        ctx = await self.ensure_strategies_and_components(rfq_id)
        items = self.build_master(ctx, language)
        structure = StructureView(rfq=rfq, view=view, items=items)
        if view != "master" and items:
            structure.cross_refs = await self._cross_refs(
                rfq_id, [m.item.rfq_item_id for m in items], supplier_id
            )
        return structure

    async def _cross_refs(
        self,
        rfq_id: uuid.UUID,
        item_ids: list[uuid.UUID],
        supplier_id: uuid.UUID | None,
    ) -> dict[uuid.UUID, list[SupplierCrossRef]]:
        stmt = select(RfqSupplier).where(RfqSupplier.rfq_id == rfq_id)
        if supplier_id is not None:
            stmt = stmt.where(RfqSupplier.supplier_id == supplier_id)
        result = await self.db.execute(stmt.order_by(RfqSupplier.created_at))
        suppliers = list(result.scalars().all())
        if not suppliers:
            return {}
        rfq_supplier_ids = [s.id for s in suppliers]

        result = await self.db.execute(
            select(RfqSupplierLineStatus).where(
                RfqSupplierLineStatus.rfq_supplier_id.in_(rfq_supplier_ids),
                RfqSupplierLineStatus.rfq_item_id.in_(item_ids),
            )
        )
        statuses = {(r.rfq_supplier_id, r.rfq_item_id): r.status for r in result.scalars().all()}

        result = await self.db.execute(
            select(RfqSupplierLineSelection).where(
                RfqSupplierLineSelection.rfq_supplier_id.in_(rfq_supplier_ids),
                RfqSupplierLineSelection.rfq_item_id.in_(item_ids),
            )
        )
        keys: dict[tuple[uuid.UUID, uuid.UUID], list[str]] = {}
        for sel in result.scalars().all():
            if sel.selection_key:
                keys.setdefault((sel.rfq_supplier_id, sel.rfq_item_id), []).append(sel.selection_key)

        result = await self.db.execute(
            select(
                RfqResponseRevision.rfq_supplier_id,
                RfqResponseLine.rfq_item_id,
                RfqResponseLine.price,
                RfqResponseLine.currency,
            )
            .join(RfqResponseRevision, RfqResponseRevision.id == RfqResponseLine.rfq_response_revision_id)
            .where(
                RfqResponseRevision.rfq_supplier_id.in_(rfq_supplier_ids),
                RfqResponseLine.rfq_item_id.in_(item_ids),
            )
            .order_by(RfqResponseLine.created_at)
        )
        responses: dict[tuple[uuid.UUID, uuid.UUID], list[tuple]] = {}
        for rs_id, item_id, price, currency in result.all():
            responses.setdefault((rs_id, item_id), []).append((price, currency))

        cross_refs: dict[uuid.UUID, list[SupplierCrossRef]] = {}
        for item_id in item_ids:
            refs = []
            for supplier in suppliers:
                pair = (supplier.id, item_id)
                answered = responses.get(pair, [])
                latest = answered[-1] if answered else (None, None)
                refs.append(
                    SupplierCrossRef(
                        supplier_id=supplier.supplier_id,
                        rfq_supplier_id=supplier.id,
                        line_status=statuses.get(pair, LineStatus.REQUEST),
                        selection_keys=sorted(keys.get(pair, [])),
                        response_count=len(answered),
                        latest_price=latest[0],
                        latest_currency=latest[1],
                    )
                )
            cross_refs[item_id] = refs
        return cross_refs

    async def confirm(self, rfq_id: uuid.UUID, language: str | None = None) -> Rfq:
        """Validate the structure and move DRAFT to STRUCTURED.

        Every line needs one enabled option, and an enabled kit needs a
        resolved bundle. A SENT RFQ is validated but keeps its status.
        """
        rfq = await get_rfq_or_404(self.db, rfq_id, for_update=True)
        ctx = await self.ensure_strategies_and_components(rfq_id)
        items = self.build_master(ctx, language)
        if not items:
            raise BusinessRuleException("RFQ has no active lines to confirm")
        errors = validate_for_confirm(items)
        if errors:
            raise BusinessRuleException(
                f"Structure cannot be confirmed: {len(errors)} line(s) need attention",
                details=errors,
            )
        if rfq.status == RfqStatus.DRAFT:
            rfq.status = RfqStatus.STRUCTURED
            await self.db.flush()
        logger.info("Structure of RFQ %s confirmed (%d lines)", rfq_id, len(items))
        return rfq
