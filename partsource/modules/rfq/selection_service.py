"""Per-supplier line selections: which option rows a supplier is asked to quote."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.exceptions import DuplicateEntryException, NotFoundException, ValidationException
from partsource.models.enums import SelectionLineType
from partsource.models.rfq_line_selection import RfqSupplierLineSelection
from partsource.modules.rfq.normalizers import blank_to_none
from partsource.modules.rfq.queries import fetch_active_item_ids, get_rfq_supplier_or_404

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionInput:
    rfq_item_id: uuid.UUID
    line_type: SelectionLineType
    selection_key: str | None = None
    original_part_id: uuid.UUID | None = None
    alt_original_part_id: uuid.UUID | None = None
    bundle_id: uuid.UUID | None = None
    bundle_item_id: uuid.UUID | None = None
    line_label: str | None = None
    line_description: str | None = None
    qty: Decimal | None = None
    uom: str | None = None
    use_existing_price: bool = False


class SelectionService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_selections(
        self, rfq_id: uuid.UUID, supplier_id: uuid.UUID
    ) -> list[RfqSupplierLineSelection]:
        rfq_supplier = await get_rfq_supplier_or_404(self.db, rfq_id, supplier_id)
        result = await self.db.execute(
            select(RfqSupplierLineSelection)
            .where(RfqSupplierLineSelection.rfq_supplier_id == rfq_supplier.id)
            .order_by(RfqSupplierLineSelection.created_at, RfqSupplierLineSelection.id)
        )
        return list(result.scalars().all())

    def _validate(
        self, selections: list[SelectionInput], active_ids: set[uuid.UUID]
    ) -> None:
        stale = []
        invalid = []
        seen: set[tuple[uuid.UUID, str | None]] = set()
        for index, row in enumerate(selections):
            if row.rfq_item_id not in active_ids:
                stale.append({"field": f"selections[{index}].rfq_item_id", "message": str(row.rfq_item_id)})
                continue
            if row.qty is not None and Decimal(row.qty) <= 0:
                invalid.append({"field": f"selections[{index}].qty", "message": "must be > 0"})
            if row.line_type == SelectionLineType.KIT_ROLE and (
                row.bundle_id is None or row.bundle_item_id is None
            ):
                invalid.append(
                    {"field": f"selections[{index}].bundle_item_id", "message": "required for KIT_ROLE"}
                )
            key = (row.rfq_item_id, blank_to_none(row.selection_key))
            if key in seen:
                raise DuplicateEntryException(
                    f"Selection {key[1] or '<none>'} is listed twice for item {row.rfq_item_id}",
                    details=[{"field": f"selections[{index}].selection_key", "message": key[1] or ""}],
                )
            seen.add(key)
        if stale:
            raise NotFoundException(
                "Some selected lines are not active in the current revision", details=stale
            )
        if invalid:
            raise ValidationException("Invalid line selections", details=invalid)

    async def replace_selections(
        self,
        rfq_id: uuid.UUID,
        supplier_id: uuid.UUID,
        selections: list[SelectionInput],
    ) -> list[RfqSupplierLineSelection]:
        """Replace every selection of the supplier in one step.

        The batch is validated before anything is deleted; an empty list
        clears the supplier's selections.
        """
        rfq_supplier = await get_rfq_supplier_or_404(self.db, rfq_id, supplier_id)
        active_ids = set(await fetch_active_item_ids(self.db, rfq_id))
        self._validate(selections, active_ids)

        await self.db.execute(
            delete(RfqSupplierLineSelection).where(
                RfqSupplierLineSelection.rfq_supplier_id == rfq_supplier.id
            )
        )
        rows = [
            RfqSupplierLineSelection(
                rfq_supplier_id=rfq_supplier.id,
                rfq_item_id=row.rfq_item_id,
                selection_key=blank_to_none(row.selection_key),
                line_type=row.line_type,
                original_part_id=row.original_part_id,
                alt_original_part_id=None
                if row.line_type == SelectionLineType.KIT_ROLE
                else row.alt_original_part_id,
                bundle_id=row.bundle_id,
                bundle_item_id=row.bundle_item_id,
                line_label=blank_to_none(row.line_label),
                line_description=blank_to_none(row.line_description),
                qty=row.qty,
                uom=blank_to_none(row.uom),
                use_existing_price=row.use_existing_price,
            )
            for row in selections
        ]
        self.db.add_all(rows)
        await self.db.flush()
        logger.info(
            "Replaced line selections of supplier %s on RFQ %s: %d rows",
            supplier_id,
            rfq_id,
            len(rows),
        )
        return rows
