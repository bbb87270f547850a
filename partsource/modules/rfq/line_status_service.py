"""Per-(supplier, line) status tracker.

A missing row reads as REQUEST. ARCHIVED is forced whenever a line leaves
the active client revision; every other transition is an idempotent upsert
driven by dispatch, response import or price acceptance.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import case, func, literal, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.database.bulk import chunked
from partsource.exceptions import AppException, NotFoundException, ValidationException
from partsource.models.enums import LineStatus
from partsource.models.rfq_line_status import RfqSupplierLineStatus
from partsource.models.rfq_supplier import RfqSupplier
from partsource.modules.rfq.queries import (
    active_item_ids_stmt,
    fetch_active_item_ids,
    get_rfq_supplier_or_404,
)
from partsource.schemas.responses import BatchResult

logger = logging.getLogger(__name__)

_STATUS_TYPE = RfqSupplierLineStatus.__table__.c.status.type


@dataclass(frozen=True)
class LineStatusUpdate:
    rfq_item_id: uuid.UUID
    status: LineStatus
    source_type: str | None = None
    source_ref: str | None = None
    note: str | None = None


class LineStatusService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def sync_line_statuses_for_rfq(self, rfq_id: uuid.UUID) -> None:
        """Bring the status table in line with the RFQ's active lines.

        Every (supplier, active line) pair gets a row; ARCHIVED rows of active
        lines come back as REQUEST; rows of inactive lines become ARCHIVED.
        """
        result = await self.db.execute(select(RfqSupplier.id).where(RfqSupplier.rfq_id == rfq_id))
        supplier_ids = list(result.scalars().all())
        if not supplier_ids:
            return
        active_ids = await fetch_active_item_ids(self.db, rfq_id)

        pairs = [
            {"rfq_supplier_id": supplier_id, "rfq_item_id": item_id, "status": LineStatus.REQUEST}
            for supplier_id in supplier_ids
            for item_id in active_ids
        ]
        table = RfqSupplierLineStatus.__table__
        for chunk in chunked(pairs):
            stmt = pg_insert(RfqSupplierLineStatus).values(list(chunk))
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.rfq_supplier_id, table.c.rfq_item_id],
                set_={
                    "status": case(
                        (
                            table.c.status == LineStatus.ARCHIVED,
                            literal(LineStatus.REQUEST, type_=_STATUS_TYPE),
                        ),
                        else_=table.c.status,
                    ),
                    "updated_at": func.now(),
                },
            )
            await self.db.execute(stmt)

        await self.db.execute(
            update(RfqSupplierLineStatus)
            .where(
                RfqSupplierLineStatus.rfq_supplier_id.in_(
                    select(RfqSupplier.id).where(RfqSupplier.rfq_id == rfq_id)
                ),
                RfqSupplierLineStatus.rfq_item_id.not_in(active_item_ids_stmt(rfq_id)),
                RfqSupplierLineStatus.status != LineStatus.ARCHIVED,
            )
            .values(status=LineStatus.ARCHIVED, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        logger.debug(
            "Synced line statuses for RFQ %s: %d suppliers x %d active lines",
            rfq_id,
            len(supplier_ids),
            len(active_ids),
        )

    async def upsert_line_status(
        self,
        rfq_supplier_id: uuid.UUID,
        rfq_item_id: uuid.UUID,
        status: LineStatus,
        *,
        source_type: str | None = None,
        source_ref: str | None = None,
        last_request_rfq_revision_id: uuid.UUID | None = None,
        last_response_revision_id: uuid.UUID | None = None,
        note: str | None = None,
    ) -> None:
        """Set one pair's status. Revision anchors and note are kept when not given."""
        table = RfqSupplierLineStatus.__table__
        stmt = pg_insert(RfqSupplierLineStatus).values(
            rfq_supplier_id=rfq_supplier_id,
            rfq_item_id=rfq_item_id,
            status=status,
            source_type=source_type,
            source_ref=source_ref,
            last_request_rfq_revision_id=last_request_rfq_revision_id,
            last_response_revision_id=last_response_revision_id,
            note=note,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.rfq_supplier_id, table.c.rfq_item_id],
            set_={
                "status": excluded.status,
                "source_type": excluded.source_type,
                "source_ref": excluded.source_ref,
                "last_request_rfq_revision_id": func.coalesce(
                    excluded.last_request_rfq_revision_id, table.c.last_request_rfq_revision_id
                ),
                "last_response_revision_id": func.coalesce(
                    excluded.last_response_revision_id, table.c.last_response_revision_id
                ),
                "note": func.coalesce(excluded.note, table.c.note),
                "updated_at": func.now(),
            },
        )
        await self.db.execute(stmt)

    async def get_line_statuses(
        self, rfq_id: uuid.UUID, supplier_id: uuid.UUID
    ) -> list[RfqSupplierLineStatus]:
        rfq_supplier = await get_rfq_supplier_or_404(self.db, rfq_id, supplier_id)
        await self.sync_line_statuses_for_rfq(rfq_id)
        result = await self.db.execute(
            select(RfqSupplierLineStatus)
            .where(RfqSupplierLineStatus.rfq_supplier_id == rfq_supplier.id)
            .order_by(RfqSupplierLineStatus.rfq_item_id)
        )
        return list(result.scalars().all())

    async def put_line_statuses(
        self,
        rfq_id: uuid.UUID,
        supplier_id: uuid.UUID,
        updates: list[LineStatusUpdate],
    ) -> BatchResult:
        """Bulk caller-driven transitions.

        ARCHIVED is owned by revision sync and cannot be set here; lines that
        are not active in the current revision are reported as not found.
        """
        rfq_supplier = await get_rfq_supplier_or_404(self.db, rfq_id, supplier_id)
        active_ids = set(await fetch_active_item_ids(self.db, rfq_id))
        outcome = BatchResult()
        for entry in updates:
            try:
                if entry.status == LineStatus.ARCHIVED:
                    raise ValidationException(
                        "ARCHIVED is set only by revision sync",
                        details=[{"field": "status", "message": entry.status.value}],
                    )
                if entry.rfq_item_id not in active_ids:
                    raise NotFoundException(
                        f"RFQ item {entry.rfq_item_id} is not active in the current revision"
                    )
                await self.upsert_line_status(
                    rfq_supplier.id,
                    entry.rfq_item_id,
                    entry.status,
                    source_type=entry.source_type,
                    source_ref=entry.source_ref,
                    note=entry.note,
                )
            except AppException as exc:
                outcome.add_failure(entry.rfq_item_id, exc)
                continue
            outcome.add_success({"rfq_item_id": str(entry.rfq_item_id), "status": entry.status.value})
        return outcome
