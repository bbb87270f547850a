"""RFQ lifecycle service: creation, revision sync, items and invited suppliers."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.config import settings
from partsource.database.bulk import chunked
from partsource.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from partsource.models.client_request import (
    ClientRequest,
    ClientRequestRevision,
    ClientRequestRevisionItem,
)
from partsource.models.enums import RfqRevisionType, RfqStatus, RfqSupplierStatus
from partsource.models.rfq import Rfq
from partsource.models.rfq_item import RfqItem
from partsource.models.rfq_revision import RfqRevision
from partsource.models.rfq_supplier import RfqSupplier
from partsource.models.supplier import Supplier
from partsource.modules.events.outbox_service import (
    EVENT_RFQ_ASSIGNED,
    EVENT_RFQ_CREATED,
    OutboxService,
)
from partsource.modules.rfq.line_status_service import LineStatusService
from partsource.modules.rfq.normalizers import normalize_language, normalize_rfq_format
from partsource.modules.rfq.queries import (
    active_item_ids_stmt,
    get_rfq_or_404,
    get_rfq_supplier_or_404,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    rfq: Rfq
    revision: RfqRevision
    items_created: int
    lines_archived: int


class RfqService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.line_status = LineStatusService(db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _latest_client_revision(self, client_request_id: uuid.UUID) -> ClientRequestRevision:
        result = await self.db.execute(
            select(ClientRequestRevision)
            .where(ClientRequestRevision.client_request_id == client_request_id)
            .order_by(ClientRequestRevision.rev_number.desc())
            .limit(1)
        )
        revision = result.scalar_one_or_none()
        if revision is None:
            raise BusinessRuleException(f"Client request {client_request_id} has no saved revision")
        return revision

    async def _ensure_items(self, rfq_id: uuid.UUID, client_request_revision_id: uuid.UUID) -> int:
        """Derive one RFQ item per line of the revision; existing items are kept."""
        result = await self.db.execute(
            select(ClientRequestRevisionItem).where(
                ClientRequestRevisionItem.client_request_revision_id == client_request_revision_id
            )
        )
        lines = list(result.scalars().all())
        created = 0
        for chunk in chunked(lines):
            stmt = (
                pg_insert(RfqItem)
                .values(
                    [
                        {
                            "rfq_id": rfq_id,
                            "client_request_revision_item_id": line.id,
                            "line_number": line.line_number,
                            "requested_qty": line.requested_qty,
                            "uom": line.uom,
                            "oem_only": line.oem_only,
                        }
                        for line in chunk
                    ]
                )
                .on_conflict_do_nothing(constraint="uq_rfq_items_rfq_revision_item")
                .returning(RfqItem.id)
            )
            result = await self.db.execute(stmt)
            created += len(result.scalars().all())
        return created

    async def _snapshot(
        self,
        rfq_id: uuid.UUID,
        client_request_revision_id: uuid.UUID,
        revision_type: RfqRevisionType,
        created_by: uuid.UUID | None,
    ) -> RfqRevision:
        """The snapshot taken against this client revision, created if missing."""
        result = await self.db.execute(
            select(RfqRevision)
            .where(
                RfqRevision.rfq_id == rfq_id,
                RfqRevision.client_request_revision_id == client_request_revision_id,
            )
            .order_by(RfqRevision.rev_number.desc())
            .limit(1)
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing

        result = await self.db.execute(
            select(func.coalesce(func.max(RfqRevision.rev_number), 0)).where(
                RfqRevision.rfq_id == rfq_id
            )
        )
        revision = RfqRevision(
            rfq_id=rfq_id,
            rev_number=(result.scalar() or 0) + 1,
            client_request_revision_id=client_request_revision_id,
            revision_type=revision_type,
            created_by=created_by,
        )
        self.db.add(revision)
        await self.db.flush()
        return revision

    # ------------------------------------------------------------------
    # RFQ
    # ------------------------------------------------------------------

    async def create_rfq(
        self,
        client_request_id: uuid.UUID,
        created_by: uuid.UUID | None,
        assigned_to: uuid.UUID | None = None,
        note: str | None = None,
    ) -> Rfq:
        """Create the RFQ of a released client request from its latest revision."""
        request = await self.db.get(ClientRequest, client_request_id)
        if request is None:
            raise NotFoundException(f"Client request {client_request_id} not found")
        if request.released_to_procurement_at is None:
            raise BusinessRuleException(
                f"Client request {request.request_number} is not released to procurement"
            )
        existing = await self.db.execute(
            select(Rfq.id).where(Rfq.client_request_id == client_request_id)
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictException(f"Client request {request.request_number} already has an RFQ")

        revision = await self._latest_client_revision(client_request_id)
        rfq = Rfq(
            rfq_number=f"RFQ-{request.request_number}",
            client_request_id=client_request_id,
            client_request_revision_id=revision.id,
            status=RfqStatus.DRAFT,
            created_by=created_by,
            assigned_to=assigned_to or created_by,
            note=note,
            last_synced_at=datetime.now(UTC),
        )
        self.db.add(rfq)
        await self.db.flush()

        snapshot = await self._snapshot(rfq.id, revision.id, RfqRevisionType.BASE, created_by)
        rfq.current_rfq_revision_id = snapshot.id
        items_created = await self._ensure_items(rfq.id, revision.id)
        await self.line_status.sync_line_statuses_for_rfq(rfq.id)
        await self.db.flush()

        outbox = OutboxService(self.db)
        await outbox.publish_event(
            event_type=EVENT_RFQ_CREATED,
            aggregate_type="rfq",
            aggregate_id=rfq.id,
            payload={
                "rfq_number": rfq.rfq_number,
                "client_request_id": str(client_request_id),
                "client_request_revision_id": str(revision.id),
                "items": items_created,
            },
        )
        if rfq.assigned_to is not None and rfq.assigned_to != created_by:
            await outbox.publish_event(
                event_type=EVENT_RFQ_ASSIGNED,
                aggregate_type="rfq",
                aggregate_id=rfq.id,
                recipient_id=rfq.assigned_to,
                payload={
                    "rfq_number": rfq.rfq_number,
                    "assigned_to": str(rfq.assigned_to),
                    "client_name": request.client_name,
                },
            )
        logger.info("Created RFQ %s (%s) with %d lines", rfq.id, rfq.rfq_number, items_created)
        return rfq

    async def get_rfq(self, rfq_id: uuid.UUID) -> Rfq:
        return await get_rfq_or_404(self.db, rfq_id)

    async def list_revisions(self, rfq_id: uuid.UUID) -> list[RfqRevision]:
        await get_rfq_or_404(self.db, rfq_id)
        result = await self.db.execute(
            select(RfqRevision)
            .where(RfqRevision.rfq_id == rfq_id)
            .order_by(RfqRevision.rev_number)
        )
        return list(result.scalars().all())

    async def sync_to_latest_revision(
        self, rfq_id: uuid.UUID, created_by: uuid.UUID | None = None
    ) -> SyncResult:
        """Roll the RFQ forward to the client request's latest revision.

        Items of the new revision are created, a SYNC snapshot is taken and
        line statuses of dropped lines turn ARCHIVED. Repeating the call
        without a new client revision changes nothing.
        """
        rfq = await get_rfq_or_404(self.db, rfq_id, for_update=True)
        revision = await self._latest_client_revision(rfq.client_request_id)
        previous_revision_id = rfq.client_request_revision_id

        lines_archived = 0
        if revision.id != previous_revision_id:
            result = await self.db.execute(
                select(
                    ClientRequestRevisionItem.line_number,
                    ClientRequestRevisionItem.client_request_revision_id,
                ).where(
                    ClientRequestRevisionItem.client_request_revision_id.in_(
                        [previous_revision_id, revision.id]
                    )
                )
            )
            previous_lines: set[int] = set()
            current_lines: set[int] = set()
            for line_number, revision_id in result.all():
                (current_lines if revision_id == revision.id else previous_lines).add(line_number)
            lines_archived = len(previous_lines - current_lines)

        items_created = await self._ensure_items(rfq.id, revision.id)
        snapshot = await self._snapshot(rfq.id, revision.id, RfqRevisionType.SYNC, created_by)
        rfq.client_request_revision_id = revision.id
        rfq.current_rfq_revision_id = snapshot.id
        rfq.last_synced_at = datetime.now(UTC)
        if revision.id != previous_revision_id and rfq.status == RfqStatus.STRUCTURED:
            rfq.status = RfqStatus.DRAFT
        await self.db.flush()
        await self.line_status.sync_line_statuses_for_rfq(rfq.id)

        logger.info(
            "Synced RFQ %s to client revision %d: %d items created, %d lines archived",
            rfq_id,
            revision.rev_number,
            items_created,
            lines_archived,
        )
        return SyncResult(
            rfq=rfq, revision=snapshot, items_created=items_created, lines_archived=lines_archived
        )

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def list_items(self, rfq_id: uuid.UUID) -> list[RfqItem]:
        """Active items by line number. Line statuses are resynced first."""
        rfq = await get_rfq_or_404(self.db, rfq_id)
        await self._ensure_items(rfq.id, rfq.client_request_revision_id)
        await self.line_status.sync_line_statuses_for_rfq(rfq_id)
        result = await self.db.execute(
            select(RfqItem)
            .where(RfqItem.id.in_(active_item_ids_stmt(rfq_id)))
            .order_by(RfqItem.line_number, RfqItem.id)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    async def list_suppliers(self, rfq_id: uuid.UUID) -> list[RfqSupplier]:
        await get_rfq_or_404(self.db, rfq_id)
        result = await self.db.execute(
            select(RfqSupplier)
            .where(RfqSupplier.rfq_id == rfq_id)
            .order_by(RfqSupplier.created_at, RfqSupplier.id)
        )
        return list(result.scalars().all())

    async def invite_suppliers(
        self,
        rfq_id: uuid.UUID,
        supplier_ids: list[uuid.UUID],
        language: str | None = None,
        rfq_format: str | None = None,
    ) -> list[RfqSupplier]:
        """Invite suppliers once each; already invited ones are left as they are.

        Without an explicit language the supplier's own default is used.
        """
        await get_rfq_or_404(self.db, rfq_id)
        unique_ids = list(dict.fromkeys(supplier_ids))
        result = await self.db.execute(select(Supplier).where(Supplier.id.in_(unique_ids)))
        suppliers = {s.id: s for s in result.scalars().all()}
        missing = [sid for sid in unique_ids if sid not in suppliers]
        if missing:
            raise NotFoundException(
                f"{len(missing)} supplier(s) not found",
                details=[{"field": "supplier_ids", "message": str(sid)} for sid in missing],
            )

        fmt = normalize_rfq_format(rfq_format).value
        now = datetime.now(UTC)
        stmt = (
            pg_insert(RfqSupplier)
            .values(
                [
                    {
                        "rfq_id": rfq_id,
                        "supplier_id": sid,
                        "status": RfqSupplierStatus.INVITED,
                        "language": normalize_language(
                            language or suppliers[sid].default_language,
                            settings.rfq_default_language,
                        ).value,
                        "rfq_format": fmt,
                        "invited_at": now,
                    }
                    for sid in unique_ids
                ]
            )
            .on_conflict_do_nothing(constraint="uq_rfq_suppliers_rfq_supplier")
            .returning(RfqSupplier.id)
        )
        result = await self.db.execute(stmt)
        invited = len(result.scalars().all())
        await self.line_status.sync_line_statuses_for_rfq(rfq_id)
        logger.info(
            "Invited %d supplier(s) to RFQ %s (%d already invited)",
            invited,
            rfq_id,
            len(unique_ids) - invited,
        )

        result = await self.db.execute(
            select(RfqSupplier)
            .where(RfqSupplier.rfq_id == rfq_id, RfqSupplier.supplier_id.in_(unique_ids))
            .order_by(RfqSupplier.created_at, RfqSupplier.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def update_supplier(
        self,
        rfq_id: uuid.UUID,
        supplier_id: uuid.UUID,
        language: str | None = None,
        rfq_format: str | None = None,
        note: str | None = None,
    ) -> RfqSupplier:
        if language is None and rfq_format is None and note is None:
            raise ValidationException("Nothing to update")
        rfq_supplier = await get_rfq_supplier_or_404(self.db, rfq_id, supplier_id)
        if language is not None:
            rfq_supplier.language = normalize_language(language).value
        if rfq_format is not None:
            rfq_supplier.rfq_format = normalize_rfq_format(rfq_format).value
        if note is not None:
            rfq_supplier.note = note
        await self.db.flush()
        return rfq_supplier
