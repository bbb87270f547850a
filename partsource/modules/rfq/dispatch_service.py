"""DispatchService: per-supplier full or delta sends with an immutable audit trail.

Suppliers are processed one by one, each inside its own savepoint and under
a per-(RFQ, supplier) advisory lock. A supplier that fails is reported and
rolled back to its savepoint; suppliers already dispatched stay dispatched.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.config import settings
from partsource.database.locks import acquire_xact_lock, dispatch_lock_key
from partsource.exceptions import (
    AppException,
    BusinessRuleException,
    InternalException,
    NotFoundException,
)
from partsource.models.enums import (
    DispatchMode,
    DispatchType,
    LineChange,
    LineStatus,
    RfqStatus,
    RfqSupplierStatus,
)
from partsource.models.rfq import Rfq
from partsource.models.rfq_dispatch import RfqDocument, RfqSupplierDispatch
from partsource.models.rfq_line_selection import RfqSupplierLineSelection
from partsource.models.rfq_line_status import RfqSupplierLineStatus
from partsource.models.rfq_response import RfqResponseLine, RfqResponseRevision
from partsource.models.rfq_revision import RfqRevision
from partsource.models.rfq_supplier import RfqSupplier, RfqSupplierRevisionState
from partsource.modules.events.outbox_service import EVENT_RFQ_SUPPLIER_DISPATCHED, OutboxService
from partsource.modules.rfq.constants import SENDABLE_STATUSES
from partsource.modules.rfq.dispatch_planner import (
    ActiveLine,
    DispatchPlan,
    SelectionRef,
    SupplierDispatchContext,
    plan_supplier_dispatch,
)
from partsource.modules.rfq.line_status_service import LineStatusService
from partsource.modules.rfq.normalizers import normalize_language, normalize_rfq_format
from partsource.modules.rfq.queries import fetch_revision_lines, get_rfq_or_404
from partsource.modules.rfq.rendering import (
    DocumentRenderer,
    JsonDocumentRenderer,
    NullObjectStorage,
    ObjectStorage,
    build_document_payload,
    payload_hash,
)
from partsource.modules.rfq.revision_diff import RevisionLine, diff_revision_lines
from partsource.modules.rfq.structure import DocumentRow, MasterItem, rows_for_format
from partsource.modules.rfq.structure_service import StructureContext, StructureService
from partsource.schemas.responses import BatchResult

logger = logging.getLogger(__name__)


@dataclass
class SupplierDelta:
    """Diff of the active revision against what a supplier was last sent."""

    state: RfqSupplierRevisionState | None
    previous_revision: RfqRevision | None
    changes: dict[int, LineChange]


class DispatchService:
    def __init__(
        self,
        db: AsyncSession,
        renderer: DocumentRenderer | None = None,
        storage: ObjectStorage | None = None,
    ):
        self.db = db
        self.renderer = renderer or JsonDocumentRenderer()
        self.storage = storage or NullObjectStorage(settings.rfq_document_base_url)
        self.line_status = LineStatusService(db)
        self.structure = StructureService(db)

    # ------------------------------------------------------------------
    # Per-supplier reads
    # ------------------------------------------------------------------

    async def supplier_delta(
        self,
        rfq_supplier_id: uuid.UUID,
        current_lines: list[RevisionLine],
        cache: dict[uuid.UUID, list[RevisionLine]] | None = None,
    ) -> SupplierDelta:
        result = await self.db.execute(
            select(RfqSupplierRevisionState).where(
                RfqSupplierRevisionState.rfq_supplier_id == rfq_supplier_id
            )
        )
        state = result.scalar_one_or_none()
        previous_revision = None
        previous_lines = None
        if state is not None and state.last_sent_rfq_revision_id is not None:
            previous_revision = await self.db.get(RfqRevision, state.last_sent_rfq_revision_id)
        if previous_revision is not None:
            cache = cache if cache is not None else {}
            client_revision_id = previous_revision.client_request_revision_id
            if client_revision_id not in cache:
                cache[client_revision_id] = await fetch_revision_lines(self.db, client_revision_id)
            previous_lines = cache[client_revision_id]
        return SupplierDelta(
            state=state,
            previous_revision=previous_revision,
            changes=diff_revision_lines(current_lines, previous_lines),
        )

    async def _line_statuses(self, rfq_supplier_id: uuid.UUID) -> dict[uuid.UUID, LineStatus]:
        result = await self.db.execute(
            select(RfqSupplierLineStatus.rfq_item_id, RfqSupplierLineStatus.status).where(
                RfqSupplierLineStatus.rfq_supplier_id == rfq_supplier_id
            )
        )
        return {item_id: status for item_id, status in result.all()}

    async def _selections(self, rfq_supplier_id: uuid.UUID) -> list[RfqSupplierLineSelection]:
        result = await self.db.execute(
            select(RfqSupplierLineSelection).where(
                RfqSupplierLineSelection.rfq_supplier_id == rfq_supplier_id
            )
        )
        return list(result.scalars().all())

    async def _priced_item_ids(
        self, rfq_supplier_id: uuid.UUID, statuses: dict[uuid.UUID, LineStatus]
    ) -> set[uuid.UUID]:
        """Lines with a priced response from this supplier, or an accepted existing price."""
        result = await self.db.execute(
            select(RfqResponseLine.rfq_item_id)
            .join(RfqResponseRevision, RfqResponseRevision.id == RfqResponseLine.rfq_response_revision_id)
            .where(
                RfqResponseRevision.rfq_supplier_id == rfq_supplier_id,
                RfqResponseLine.price.is_not(None),
                RfqResponseLine.currency.is_not(None),
            )
            .distinct()
        )
        priced = set(result.scalars().all())
        priced.update(
            item_id for item_id, status in statuses.items() if status == LineStatus.ACCEPTED_EXISTING
        )
        return priced

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send(
        self,
        rfq_id: uuid.UUID,
        *,
        supplier_ids: list[uuid.UUID] | None = None,
        mode: DispatchMode = DispatchMode.FULL,
        include_priced: bool = False,
        sent_by: uuid.UUID | None = None,
    ) -> BatchResult:
        """Dispatch to the given suppliers (all invited ones when omitted).

        Returns one success or failure entry per supplier. The RFQ becomes
        SENT once any supplier was dispatched.
        """
        rfq = await get_rfq_or_404(self.db, rfq_id, for_update=True)
        if rfq.status not in SENDABLE_STATUSES:
            raise BusinessRuleException(
                f"RFQ in status '{rfq.status.value}' cannot be sent; confirm its structure first"
            )

        await self.line_status.sync_line_statuses_for_rfq(rfq_id)
        ctx = await self.structure.ensure_strategies_and_components(rfq_id)
        current_lines = await fetch_revision_lines(self.db, rfq.client_request_revision_id)

        stmt = select(RfqSupplier).where(RfqSupplier.rfq_id == rfq_id)
        if supplier_ids:
            stmt = stmt.where(RfqSupplier.supplier_id.in_(supplier_ids))
        result = await self.db.execute(stmt.order_by(RfqSupplier.created_at))
        suppliers = list(result.scalars().all())

        outcome = BatchResult()
        found = {s.supplier_id for s in suppliers}
        for missing in [sid for sid in supplier_ids or [] if sid not in found]:
            outcome.add_failure(
                missing, NotFoundException(f"Supplier {missing} is not invited to RFQ {rfq_id}")
            )
        if not suppliers and not outcome.failed:
            raise BusinessRuleException("RFQ has no invited suppliers")

        masters: dict[str, list[MasterItem]] = {}
        revision_cache: dict[uuid.UUID, list[RevisionLine]] = {}
        for rfq_supplier in suppliers:
            supplier_id = rfq_supplier.supplier_id
            try:
                async with self.db.begin_nested():
                    summary = await self._dispatch_supplier(
                        rfq,
                        rfq_supplier,
                        mode,
                        include_priced,
                        ctx,
                        masters,
                        current_lines,
                        revision_cache,
                        sent_by,
                    )
            except AppException as exc:
                logger.warning(
                    "Dispatch of RFQ %s to supplier %s skipped: %s", rfq_id, supplier_id, exc.message
                )
                outcome.add_failure(supplier_id, exc)
                continue
            except Exception:
                logger.exception("Dispatch of RFQ %s to supplier %s failed", rfq_id, supplier_id)
                outcome.add_failure(
                    supplier_id, InternalException(f"Dispatch to supplier {supplier_id} failed")
                )
                continue
            outcome.add_success(summary)

        if outcome.succeeded and rfq.status != RfqStatus.SENT:
            rfq.status = RfqStatus.SENT
            await self.db.flush()
        logger.info(
            "Dispatched RFQ %s (%s): %d suppliers sent, %d failed",
            rfq_id,
            mode.value,
            len(outcome.succeeded),
            len(outcome.failed),
        )
        return outcome

    def _master_for(
        self, ctx: StructureContext, masters: dict[str, list[MasterItem]], language: str
    ) -> list[MasterItem]:
        if language not in masters:
            masters[language] = self.structure.build_master(ctx, language)
        return masters[language]

    @staticmethod
    def _rows_for_plan(
        master: list[MasterItem],
        plan: DispatchPlan,
        rfq_format: str,
        selections: list[RfqSupplierLineSelection],
    ) -> list[DocumentRow]:
        included = set(plan.item_ids)
        rows = rows_for_format(
            [m for m in master if m.item.rfq_item_id in included], normalize_rfq_format(rfq_format)
        )
        if not plan.uses_selections:
            return rows
        # Selected option rows only; lines selected without a key keep every row
        keys: dict[uuid.UUID, set[str]] = {}
        whole_lines: set[uuid.UUID] = set()
        for sel in selections:
            if sel.use_existing_price:
                continue
            if sel.selection_key is None:
                whole_lines.add(sel.rfq_item_id)
            else:
                keys.setdefault(sel.rfq_item_id, set()).add(sel.selection_key)
        return [
            row
            for row in rows
            if row.indent == 0
            or row.rfq_item_id in whole_lines
            or row.rfq_item_id not in keys
            or row.selection_key in keys[row.rfq_item_id]
        ]

    async def _dispatch_supplier(
        self,
        rfq: Rfq,
        rfq_supplier: RfqSupplier,
        mode: DispatchMode,
        include_priced: bool,
        ctx: StructureContext,
        masters: dict[str, list[MasterItem]],
        current_lines: list[RevisionLine],
        revision_cache: dict[uuid.UUID, list[RevisionLine]],
        sent_by: uuid.UUID | None,
    ) -> dict:
        await acquire_xact_lock(self.db, dispatch_lock_key(rfq.id, rfq_supplier.id))

        delta = await self.supplier_delta(rfq_supplier.id, current_lines, revision_cache)
        statuses = await self._line_statuses(rfq_supplier.id)
        selections = await self._selections(rfq_supplier.id)
        priced = await self._priced_item_ids(rfq_supplier.id, statuses)

        plan = plan_supplier_dispatch(
            mode,
            include_priced,
            SupplierDispatchContext(
                active_lines=[ActiveLine(i.rfq_item_id, i.line_number) for i in ctx.inputs],
                line_changes=delta.changes,
                line_statuses=statuses,
                selections=[SelectionRef(s.rfq_item_id, s.use_existing_price) for s in selections],
                priced_item_ids=priced,
            ),
        )
        if plan.is_empty:
            raise BusinessRuleException(
                f"Nothing to send to supplier {rfq_supplier.supplier_id}",
                details=[{"field": "mode", "message": mode.value}],
            )

        language = normalize_language(rfq_supplier.language, settings.rfq_default_language).value
        master = self._master_for(ctx, masters, language)
        rows = self._rows_for_plan(master, plan, rfq_supplier.rfq_format, selections)
        dispatch_type = DispatchType.DELTA if mode == DispatchMode.DELTA else DispatchType.FULL

        payload = build_document_payload(
            rfq_id=rfq.id,
            rfq_number=rfq.rfq_number,
            rfq_revision_id=rfq.current_rfq_revision_id,
            supplier_id=rfq_supplier.supplier_id,
            language=language,
            rfq_format=normalize_rfq_format(rfq_supplier.rfq_format).value,
            dispatch_type=dispatch_type.value,
            rows=rows,
            line_changes=delta.changes,
            line_statuses=statuses,
            uses_selections=plan.uses_selections,
        )
        digest = payload_hash(payload)
        rendered = self.renderer.render(payload)
        file_url = await self.storage.put(
            f"rfqs/{rfq.id}/{rfq_supplier.id}/{digest[:16]}/{rendered.file_name}",
            rendered.content,
            rendered.content_type,
        )

        document = RfqDocument(
            rfq_id=rfq.id,
            rfq_supplier_id=rfq_supplier.id,
            file_name=rendered.file_name,
            file_url=file_url,
            content_type=rendered.content_type,
            language=language,
            payload_hash=digest,
            created_by=sent_by,
        )
        self.db.add(document)
        await self.db.flush()

        previous_id = delta.previous_revision.id if delta.previous_revision else None
        dispatch = RfqSupplierDispatch(
            rfq_id=rfq.id,
            rfq_supplier_id=rfq_supplier.id,
            rfq_revision_id=rfq.current_rfq_revision_id,
            document_id=document.id,
            dispatch_type=dispatch_type,
            payload_hash=digest,
            note={
                "mode": mode.value,
                "include_priced": include_priced,
                "lines_total": len(plan.item_ids),
                "rows_total": len(rows),
                "rows_changed": plan.rows_changed,
                "prev_rfq_revision_id": str(previous_id) if previous_id else None,
            },
            sent_by=sent_by,
        )
        self.db.add(dispatch)

        stmt = pg_insert(RfqSupplierRevisionState).values(
            rfq_supplier_id=rfq_supplier.id,
            last_sent_rfq_revision_id=rfq.current_rfq_revision_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[RfqSupplierRevisionState.__table__.c.rfq_supplier_id],
            set_={
                "last_sent_rfq_revision_id": stmt.excluded.last_sent_rfq_revision_id,
                "updated_at": func.now(),
            },
        )
        await self.db.execute(stmt)

        for item_id in plan.item_ids:
            await self.line_status.upsert_line_status(
                rfq_supplier.id,
                item_id,
                LineStatus.REQUEST,
                last_request_rfq_revision_id=rfq.current_rfq_revision_id,
            )

        rfq_supplier.status = RfqSupplierStatus.SENT
        rfq_supplier.sent_at = datetime.now(UTC)
        await self.db.flush()

        await OutboxService(self.db).publish_event(
            event_type=EVENT_RFQ_SUPPLIER_DISPATCHED,
            aggregate_type="rfq",
            aggregate_id=rfq.id,
            payload={
                "rfq_supplier_id": str(rfq_supplier.id),
                "supplier_id": str(rfq_supplier.supplier_id),
                "dispatch_id": str(dispatch.id),
                "dispatch_type": dispatch_type.value,
                "file_url": file_url,
            },
        )
        logger.info(
            "Sent %s RFQ %s to supplier %s: %d lines, %d rows",
            dispatch_type.value,
            rfq.rfq_number,
            rfq_supplier.supplier_id,
            len(plan.item_ids),
            len(rows),
        )
        return {
            "supplier_id": str(rfq_supplier.supplier_id),
            "rfq_supplier_id": str(rfq_supplier.id),
            "dispatch_id": str(dispatch.id),
            "document_id": str(document.id),
            "dispatch_type": dispatch_type.value,
            "payload_hash": digest,
            "file_url": file_url,
            "lines_total": len(plan.item_ids),
            "rows_total": len(rows),
            "rows_changed": plan.rows_changed,
        }

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def list_dispatches(
        self, rfq_id: uuid.UUID, supplier_id: uuid.UUID | None = None
    ) -> list[tuple[RfqSupplierDispatch, uuid.UUID]]:
        await get_rfq_or_404(self.db, rfq_id)
        stmt = (
            select(RfqSupplierDispatch, RfqSupplier.supplier_id)
            .join(RfqSupplier, RfqSupplier.id == RfqSupplierDispatch.rfq_supplier_id)
            .where(RfqSupplierDispatch.rfq_id == rfq_id)
        )
        if supplier_id is not None:
            stmt = stmt.where(RfqSupplier.supplier_id == supplier_id)
        result = await self.db.execute(
            stmt.order_by(RfqSupplierDispatch.sent_at.desc(), RfqSupplierDispatch.id.desc())
        )
        return [(row[0], row[1]) for row in result.all()]

    async def list_documents(self, rfq_id: uuid.UUID) -> list[RfqDocument]:
        await get_rfq_or_404(self.db, rfq_id)
        result = await self.db.execute(
            select(RfqDocument)
            .where(RfqDocument.rfq_id == rfq_id)
            .order_by(RfqDocument.created_at.desc())
        )
        return list(result.scalars().all())

    async def dispatch_summary(self, rfq_id: uuid.UUID) -> list[dict]:
        """Per supplier: what was last sent and which lines a delta would carry now."""
        rfq = await get_rfq_or_404(self.db, rfq_id)
        current_lines = await fetch_revision_lines(self.db, rfq.client_request_revision_id)
        result = await self.db.execute(
            select(RfqSupplier).where(RfqSupplier.rfq_id == rfq_id).order_by(RfqSupplier.created_at)
        )
        suppliers = list(result.scalars().all())

        last_sent: dict[uuid.UUID, datetime] = {}
        if suppliers:
            result = await self.db.execute(
                select(RfqSupplierDispatch.rfq_supplier_id, func.max(RfqSupplierDispatch.sent_at))
                .where(RfqSupplierDispatch.rfq_supplier_id.in_([s.id for s in suppliers]))
                .group_by(RfqSupplierDispatch.rfq_supplier_id)
            )
            last_sent = {rs_id: sent_at for rs_id, sent_at in result.all()}

        cache: dict[uuid.UUID, list[RevisionLine]] = {}
        summary = []
        for rfq_supplier in suppliers:
            delta = await self.supplier_delta(rfq_supplier.id, current_lines, cache)
            previous = delta.previous_revision
            summary.append(
                {
                    "rfq_supplier_id": rfq_supplier.id,
                    "supplier_id": rfq_supplier.supplier_id,
                    "status": rfq_supplier.status,
                    "invited_at": rfq_supplier.invited_at,
                    "last_sent_rfq_revision_id": previous.id if previous else None,
                    "last_sent_rfq_revision_number": previous.rev_number if previous else None,
                    "last_sent_at": last_sent.get(rfq_supplier.id),
                    "new_lines_count": len(delta.changes),
                    "new_line_numbers": sorted(delta.changes),
                    "has_delta": bool(delta.changes),
                }
            )
        return summary
