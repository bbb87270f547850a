"""Shared reads over the RFQ's currently active lines.

An RFQ item is active while its client revision item belongs to the
client revision the RFQ currently points at.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.exceptions import NotFoundException
from partsource.models.client_request import ClientRequestRevisionItem
from partsource.models.original_part import OriginalPart
from partsource.models.rfq import Rfq
from partsource.models.rfq_item import RfqItem
from partsource.models.rfq_supplier import RfqSupplier
from partsource.modules.rfq.revision_diff import RevisionLine
from partsource.modules.rfq.structure import StructureItemInput


def active_item_ids_stmt(rfq_id: uuid.UUID) -> Select:
    return (
        select(RfqItem.id)
        .join(Rfq, Rfq.id == RfqItem.rfq_id)
        .join(
            ClientRequestRevisionItem,
            ClientRequestRevisionItem.id == RfqItem.client_request_revision_item_id,
        )
        .where(
            RfqItem.rfq_id == rfq_id,
            ClientRequestRevisionItem.client_request_revision_id
            == Rfq.client_request_revision_id,
        )
    )


async def get_rfq_or_404(db: AsyncSession, rfq_id: uuid.UUID, *, for_update: bool = False) -> Rfq:
    stmt = select(Rfq).where(Rfq.id == rfq_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    rfq = result.scalar_one_or_none()
    if rfq is None:
        raise NotFoundException(f"RFQ {rfq_id} not found")
    return rfq


async def get_rfq_supplier_or_404(
    db: AsyncSession, rfq_id: uuid.UUID, supplier_id: uuid.UUID
) -> RfqSupplier:
    result = await db.execute(
        select(RfqSupplier).where(
            RfqSupplier.rfq_id == rfq_id,
            RfqSupplier.supplier_id == supplier_id,
        )
    )
    rfq_supplier = result.scalar_one_or_none()
    if rfq_supplier is None:
        raise NotFoundException(f"Supplier {supplier_id} is not invited to RFQ {rfq_id}")
    return rfq_supplier


async def fetch_active_item_ids(db: AsyncSession, rfq_id: uuid.UUID) -> list[uuid.UUID]:
    result = await db.execute(active_item_ids_stmt(rfq_id))
    return list(result.scalars().all())


async def fetch_structure_inputs(db: AsyncSession, rfq_id: uuid.UUID) -> list[StructureItemInput]:
    """Active lines joined with their client line and resolved part, by line number."""
    result = await db.execute(
        select(RfqItem, ClientRequestRevisionItem, OriginalPart)
        .join(Rfq, Rfq.id == RfqItem.rfq_id)
        .join(
            ClientRequestRevisionItem,
            ClientRequestRevisionItem.id == RfqItem.client_request_revision_item_id,
        )
        .outerjoin(OriginalPart, OriginalPart.id == ClientRequestRevisionItem.original_part_id)
        .where(
            RfqItem.rfq_id == rfq_id,
            ClientRequestRevisionItem.client_request_revision_id
            == Rfq.client_request_revision_id,
        )
        .order_by(RfqItem.line_number, RfqItem.id)
    )
    inputs = []
    for item, line, part in result.all():
        inputs.append(
            StructureItemInput(
                rfq_item_id=item.id,
                line_number=item.line_number,
                requested_qty=item.requested_qty,
                uom=item.uom,
                original_part_id=line.original_part_id,
                original_cat_number=part.cat_number if part else None,
                client_part_number=line.client_part_number,
                client_description=line.client_description,
                description_ru=part.description_ru if part else None,
                description_en=part.description_en if part else None,
                oem_only=bool(item.oem_only),
            )
        )
    return inputs


async def fetch_revision_lines(
    db: AsyncSession, client_request_revision_id: uuid.UUID
) -> list[RevisionLine]:
    result = await db.execute(
        select(ClientRequestRevisionItem)
        .where(ClientRequestRevisionItem.client_request_revision_id == client_request_revision_id)
        .order_by(ClientRequestRevisionItem.line_number)
    )
    return [RevisionLine.from_item(row) for row in result.scalars().all()]
