"""ResponseService: supplier price imports and accepted existing prices.

Both entry points append to the supplier's revisioned response history and
never update a written response line. Every written line gets a CREATE audit
action carrying the submitted values.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.database.locks import acquire_xact_lock, response_lock_key
from partsource.exceptions import (
    AppException,
    InternalException,
    NotFoundException,
    ValidationException,
)
from partsource.models.enums import (
    LineStatus,
    ResponseActionType,
    ResponseEntrySource,
    RfqSupplierStatus,
    SelectionLineType,
    SupplierReplyStatus,
)
from partsource.models.rfq_line_selection import RfqSupplierLineSelection
from partsource.models.rfq_response import (
    RfqResponseLine,
    RfqResponseLineAction,
    RfqResponseRevision,
)
from partsource.models.rfq_supplier import RfqSupplier
from partsource.models.supplier import SupplierPart, SupplierPartPrice
from partsource.models.supplier_bundle import SupplierBundleItemLink
from partsource.modules.events.outbox_service import EVENT_RFQ_RESPONSE_IMPORTED, OutboxService
from partsource.modules.rfq.constants import (
    DEFAULT_ACCEPT_REASON,
    PRICE_SOURCES_WITH_HISTORY,
    SOURCE_SUBTYPE_ACCEPTED_EXISTING,
    SOURCE_SUBTYPE_SUPPLIER_FILE,
    SOURCE_TYPE_RFQ_RESPONSE,
)
from partsource.modules.rfq.line_status_service import LineStatusService
from partsource.modules.rfq.normalizers import canonical_part_number, reply_status_requires_price
from partsource.modules.rfq.queries import fetch_structure_inputs, get_rfq_supplier_or_404
from partsource.modules.rfq.schemas import (
    AcceptPriceRequest,
    ImportRowOutcome,
    ImportSummary,
    ResponseImportRequest,
    ResponseImportResult,
    ResponseImportRow,
)
from partsource.modules.rfq.structure import StructureItemInput

logger = logging.getLogger(__name__)


def _audit_value(value):
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _audit_payload(**values) -> dict:
    return {key: _audit_value(value) for key, value in values.items()}


@dataclass
class PreparedRow:
    """A matched import row with everything resolved except writes."""

    index: int
    row: ResponseImportRow
    item: StructureItemInput
    selection_key: str | None
    requested_original_part_id: uuid.UUID | None
    original_part_id: uuid.UUID | None
    bundle_id: uuid.UUID | None
    supplier_part: SupplierPart | None
    supplier_part_number: str | None
    price: Decimal | None
    currency: str | None
    kit_bundle_item_id: uuid.UUID | None = None

    @property
    def supplier_part_action(self) -> str:
        if self.supplier_part is not None:
            return "reuse"
        return "create" if self.supplier_part_number else "none"


class ResponseService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.line_status = LineStatusService(db)

    # ------------------------------------------------------------------
    # Response revisions
    # ------------------------------------------------------------------

    async def _latest_revision(self, rfq_supplier_id: uuid.UUID) -> RfqResponseRevision | None:
        result = await self.db.execute(
            select(RfqResponseRevision)
            .where(RfqResponseRevision.rfq_supplier_id == rfq_supplier_id)
            .order_by(RfqResponseRevision.rev_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_response_revision(
        self,
        rfq_supplier_id: uuid.UUID,
        created_by: uuid.UUID | None = None,
        note: str | None = None,
    ) -> RfqResponseRevision:
        await acquire_xact_lock(self.db, response_lock_key(rfq_supplier_id))
        result = await self.db.execute(
            select(func.coalesce(func.max(RfqResponseRevision.rev_number), 0)).where(
                RfqResponseRevision.rfq_supplier_id == rfq_supplier_id
            )
        )
        revision = RfqResponseRevision(
            rfq_supplier_id=rfq_supplier_id,
            rev_number=(result.scalar() or 0) + 1,
            note=note,
            created_by=created_by,
        )
        self.db.add(revision)
        await self.db.flush()
        logger.info(
            "Opened response revision %d for RFQ supplier %s", revision.rev_number, rfq_supplier_id
        )
        return revision

    async def ensure_response_revision(
        self,
        rfq_supplier_id: uuid.UUID,
        created_by: uuid.UUID | None = None,
        note: str | None = None,
    ) -> RfqResponseRevision:
        """The supplier's latest response revision, or revision 1 if none exists."""
        latest = await self._latest_revision(rfq_supplier_id)
        if latest is not None:
            return latest
        return await self.create_response_revision(rfq_supplier_id, created_by, note)

    async def _open_revision(
        self,
        rfq_supplier_id: uuid.UUID,
        new_revision: bool,
        created_by: uuid.UUID | None,
        note: str | None,
    ) -> RfqResponseRevision:
        if new_revision:
            return await self.create_response_revision(rfq_supplier_id, created_by, note)
        return await self.ensure_response_revision(rfq_supplier_id, created_by, note)

    async def list_response_lines(
        self, rfq_id: uuid.UUID, supplier_id: uuid.UUID
    ) -> list[RfqResponseLine]:
        rfq_supplier = await get_rfq_supplier_or_404(self.db, rfq_id, supplier_id)
        result = await self.db.execute(
            select(RfqResponseLine)
            .join(RfqResponseRevision, RfqResponseRevision.id == RfqResponseLine.rfq_response_revision_id)
            .where(RfqResponseRevision.rfq_supplier_id == rfq_supplier.id)
            .order_by(RfqResponseLine.created_at, RfqResponseLine.id)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Shared lookups
    # ------------------------------------------------------------------

    async def _selections_by_item(
        self, rfq_supplier_id: uuid.UUID
    ) -> dict[uuid.UUID, list[RfqSupplierLineSelection]]:
        result = await self.db.execute(
            select(RfqSupplierLineSelection)
            .where(RfqSupplierLineSelection.rfq_supplier_id == rfq_supplier_id)
            .order_by(RfqSupplierLineSelection.created_at, RfqSupplierLineSelection.id)
        )
        grouped: dict[uuid.UUID, list[RfqSupplierLineSelection]] = {}
        for selection in result.scalars().all():
            grouped.setdefault(selection.rfq_item_id, []).append(selection)
        return grouped

    async def _supplier_part_by_id(
        self, supplier_id: uuid.UUID, supplier_part_id: uuid.UUID
    ) -> SupplierPart:
        part = await self.db.get(SupplierPart, supplier_part_id)
        if part is None or part.supplier_id != supplier_id:
            raise ValidationException(
                f"Supplier part {supplier_part_id} does not belong to supplier {supplier_id}",
                details=[{"field": "supplier_part_id", "message": str(supplier_part_id)}],
            )
        return part

    async def _find_supplier_part(
        self, supplier_id: uuid.UUID, supplier_part_number: str
    ) -> SupplierPart | None:
        """Exact part number first, then the alphanumeric canonical form."""
        result = await self.db.execute(
            select(SupplierPart).where(
                SupplierPart.supplier_id == supplier_id,
                SupplierPart.supplier_part_number == supplier_part_number,
            )
        )
        part = result.scalar_one_or_none()
        if part is not None:
            return part
        canonical = canonical_part_number(supplier_part_number)
        if canonical is None:
            return None
        result = await self.db.execute(
            select(SupplierPart)
            .where(
                SupplierPart.supplier_id == supplier_id,
                SupplierPart.canonical_part_number == canonical,
            )
            .order_by(SupplierPart.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _link_kit_role(self, bundle_item_id: uuid.UUID, supplier_part_id: uuid.UUID) -> None:
        """Remember that this supplier part fills the kit role it was quoted for."""
        stmt = pg_insert(SupplierBundleItemLink).values(
            bundle_item_id=bundle_item_id,
            supplier_part_id=supplier_part_id,
            is_default=False,
            note="linked from an RFQ response import",
        )
        await self.db.execute(
            stmt.on_conflict_do_nothing(constraint="uq_supplier_bundle_item_links_item_part")
        )

    async def _mark_responded(self, rfq_supplier: RfqSupplier) -> None:
        rfq_supplier.status = RfqSupplierStatus.RESPONDED
        if rfq_supplier.responded_at is None:
            rfq_supplier.responded_at = datetime.now(UTC)
        await self.db.flush()

    # ------------------------------------------------------------------
    # Bulk import
    # ------------------------------------------------------------------

    @staticmethod
    def _match_item(
        row: ResponseImportRow,
        by_id: dict[uuid.UUID, StructureItemInput],
        by_line: dict[int, StructureItemInput],
    ) -> StructureItemInput | None:
        if row.rfq_item_id is not None and row.rfq_item_id in by_id:
            return by_id[row.rfq_item_id]
        if row.line_number is not None:
            return by_line.get(row.line_number)
        return None

    @staticmethod
    def _error_outcome(
        index: int,
        row: ResponseImportRow,
        item: StructureItemInput,
        message: str,
        code: str | None = None,
    ) -> ImportRowOutcome:
        return ImportRowOutcome(
            row_index=index,
            line_number=item.line_number,
            rfq_item_id=item.rfq_item_id,
            selection_key=row.selection_key,
            status="error",
            message=message,
            error_code=code,
            supplier_reply_status=row.supplier_reply_status,
            supplier_part_number=row.supplier_part_number,
        )

    async def _prepare_row(
        self,
        rfq_supplier: RfqSupplier,
        index: int,
        row: ResponseImportRow,
        item: StructureItemInput,
        selections: list[RfqSupplierLineSelection],
    ) -> PreparedRow:
        line_ref = f"line_number:{item.line_number}"
        status = row.supplier_reply_status
        if reply_status_requires_price(status):
            if row.price is None or row.currency is None:
                raise ValidationException(
                    f"Line {item.line_number}: price and currency are required for {status.value}",
                    details=[{"field": line_ref, "message": "price and currency are required"}],
                )
        elif row.price is not None or row.currency is not None:
            raise ValidationException(
                f"Line {item.line_number}: price and currency must be empty for {status.value}",
                details=[{"field": line_ref, "message": "price and currency must be empty"}],
            )

        selection = None
        selection_key = row.selection_key
        if selection_key is not None:
            selection = next((s for s in selections if s.selection_key == selection_key), None)
            if selection is None:
                raise ValidationException(
                    f"Line {item.line_number}: selection {selection_key} is not requested from this supplier",
                    details=[{"field": line_ref, "message": f"unknown selection_key {selection_key}"}],
                )
        elif len(selections) == 1:
            selection = selections[0]
            selection_key = selection.selection_key
        elif len(selections) > 1:
            raise ValidationException(
                f"Line {item.line_number}: several options are selected; selection_key is required",
                details=[{"field": line_ref, "message": "selection_key is required"}],
            )

        is_kit_role = selection is not None and selection.line_type == SelectionLineType.KIT_ROLE
        selected_part = selection.original_part_id if selection else None
        requested = row.requested_original_part_id or (
            selected_part if is_kit_role else selected_part or item.original_part_id
        )
        offered = (
            row.original_part_id
            or (selection.alt_original_part_id if selection else None)
            or selected_part
            or (None if is_kit_role else requested)
        )

        supplier_part = None
        if row.supplier_part_id is not None:
            supplier_part = await self._supplier_part_by_id(rfq_supplier.supplier_id, row.supplier_part_id)
        elif row.supplier_part_number:
            supplier_part = await self._find_supplier_part(
                rfq_supplier.supplier_id, row.supplier_part_number
            )

        return PreparedRow(
            index=index,
            row=row,
            item=item,
            selection_key=selection_key,
            requested_original_part_id=requested,
            original_part_id=offered,
            bundle_id=selection.bundle_id if selection else None,
            supplier_part=supplier_part,
            supplier_part_number=supplier_part.supplier_part_number
            if supplier_part
            else row.supplier_part_number,
            price=row.price if reply_status_requires_price(status) else None,
            currency=row.currency if reply_status_requires_price(status) else None,
            kit_bundle_item_id=selection.bundle_item_id if is_kit_role else None,
        )

    async def _write_import_row(
        self,
        rfq_supplier: RfqSupplier,
        revision: RfqResponseRevision,
        prepared: PreparedRow,
        created_by: uuid.UUID | None,
    ) -> RfqResponseLine:
        row = prepared.row
        supplier_part = prepared.supplier_part
        if supplier_part is None and prepared.supplier_part_number:
            supplier_part = SupplierPart(
                supplier_id=rfq_supplier.supplier_id,
                supplier_part_number=prepared.supplier_part_number,
                canonical_part_number=canonical_part_number(prepared.supplier_part_number),
                description=row.supplier_description or prepared.item.client_description,
                part_type=row.offer_type,
                lead_time_days=row.lead_time_days,
                min_order_qty=row.moq,
                packaging=row.packaging,
            )
            self.db.add(supplier_part)
            await self.db.flush()
            prepared.supplier_part = supplier_part

        line = RfqResponseLine(
            rfq_response_revision_id=revision.id,
            rfq_item_id=prepared.item.rfq_item_id,
            selection_key=prepared.selection_key,
            supplier_part_id=supplier_part.id if supplier_part else None,
            original_part_id=prepared.original_part_id,
            requested_original_part_id=prepared.requested_original_part_id,
            bundle_id=prepared.bundle_id,
            offer_type=row.offer_type,
            supplier_reply_status=row.supplier_reply_status,
            offered_qty=row.offered_qty,
            moq=row.moq,
            packaging=row.packaging,
            lead_time_days=row.lead_time_days,
            price=prepared.price,
            currency=prepared.currency,
            validity_days=row.validity_days,
            payment_terms=row.payment_terms,
            incoterms=row.incoterms,
            note=row.note,
            entry_source=ResponseEntrySource.SUPPLIER_FILE,
            created_by=created_by,
        )
        self.db.add(line)
        await self.db.flush()

        if supplier_part is not None and prepared.kit_bundle_item_id is not None:
            await self._link_kit_role(prepared.kit_bundle_item_id, supplier_part.id)

        self.db.add(
            RfqResponseLineAction(
                rfq_response_line_id=line.id,
                action_type=ResponseActionType.CREATE,
                payload=_audit_payload(
                    source=ResponseEntrySource.SUPPLIER_FILE,
                    rfq_item_id=prepared.item.rfq_item_id,
                    line_number=prepared.item.line_number,
                    selection_key=prepared.selection_key,
                    price=prepared.price,
                    currency=prepared.currency,
                    offered_qty=row.offered_qty,
                    offer_type=row.offer_type,
                    supplier_reply_status=row.supplier_reply_status,
                    lead_time_days=row.lead_time_days,
                    moq=row.moq,
                    packaging=row.packaging,
                    payment_terms=row.payment_terms,
                    incoterms=row.incoterms,
                    supplier_part_number=prepared.supplier_part_number,
                    supplier_part_id=line.supplier_part_id,
                ),
                reason=row.note,
                created_by=created_by,
            )
        )

        await self.line_status.upsert_line_status(
            rfq_supplier.id,
            prepared.item.rfq_item_id,
            LineStatus.NONE,
            source_type=SOURCE_TYPE_RFQ_RESPONSE,
            last_response_revision_id=revision.id,
            note=row.note,
        )

        if supplier_part is not None:
            self.db.add(
                SupplierPartPrice(
                    supplier_part_id=supplier_part.id,
                    price=prepared.price,
                    currency=prepared.currency,
                    offer_type=row.offer_type,
                    lead_time_days=row.lead_time_days,
                    min_order_qty=row.moq,
                    packaging=row.packaging,
                    validity_days=row.validity_days,
                    source_type=SOURCE_TYPE_RFQ_RESPONSE,
                    source_subtype=SOURCE_SUBTYPE_SUPPLIER_FILE,
                    source_id=line.id,
                    comment=row.note,
                    created_by=created_by,
                )
            )
        await self.db.flush()
        return line

    async def import_responses(
        self,
        rfq_id: uuid.UUID,
        request: ResponseImportRequest,
        created_by: uuid.UUID | None = None,
    ) -> ResponseImportResult:
        """Import supplier price rows.

        Rows are matched by item id, then by line number among active lines;
        unmatched rows are skipped. A rejected row is reported and leaves the
        other rows in place. With ``preview`` nothing is written.
        """
        rfq_supplier = await get_rfq_supplier_or_404(self.db, rfq_id, request.supplier_id)
        active = await fetch_structure_inputs(self.db, rfq_id)
        by_id = {item.rfq_item_id: item for item in active}
        by_line: dict[int, StructureItemInput] = {}
        for item in active:
            by_line.setdefault(item.line_number, item)
        selections = await self._selections_by_item(rfq_supplier.id)

        outcomes: list[ImportRowOutcome] = []
        revision: RfqResponseRevision | None = None
        inserted = skipped = would_create = would_reuse = 0

        for index, row in enumerate(request.rows, start=1):
            item = self._match_item(row, by_id, by_line)
            if item is None:
                skipped += 1
                outcomes.append(
                    ImportRowOutcome(
                        row_index=index,
                        line_number=row.line_number,
                        rfq_item_id=row.rfq_item_id,
                        status="skipped",
                        message="no active RFQ line matches this row",
                        supplier_part_number=row.supplier_part_number,
                    )
                )
                continue

            try:
                prepared = await self._prepare_row(
                    rfq_supplier, index, row, item, selections.get(item.rfq_item_id, [])
                )
                action = prepared.supplier_part_action
                if not request.preview:
                    # Opened in the savepoint of the first written row
                    async with self.db.begin_nested():
                        target = revision or await self._open_revision(
                            rfq_supplier.id, request.new_revision, created_by, request.note
                        )
                        await self._write_import_row(rfq_supplier, target, prepared, created_by)
                    revision = target
            except AppException as exc:
                logger.warning(
                    "Response row %d for RFQ %s rejected: %s", index, rfq_id, exc.message
                )
                outcomes.append(self._error_outcome(index, row, item, exc.message, exc.code))
                continue
            except Exception:
                logger.exception(
                    "Response row %d for RFQ %s failed (supplier %s)",
                    index,
                    rfq_id,
                    request.supplier_id,
                )
                outcomes.append(
                    self._error_outcome(
                        index, row, item, f"row {index} could not be imported", InternalException.code
                    )
                )
                continue

            if action == "create":
                would_create += 1
            elif action == "reuse":
                would_reuse += 1
            if not request.preview:
                inserted += 1
            outcomes.append(
                ImportRowOutcome(
                    row_index=index,
                    line_number=item.line_number,
                    rfq_item_id=item.rfq_item_id,
                    selection_key=prepared.selection_key,
                    status="ok",
                    message="will be imported" if request.preview else "imported",
                    supplier_reply_status=row.supplier_reply_status,
                    supplier_part_action=action,
                    supplier_part_id=prepared.supplier_part.id if prepared.supplier_part else None,
                    supplier_part_number=prepared.supplier_part_number,
                )
            )

        errors = sum(1 for outcome in outcomes if outcome.status == "error")
        summary = ImportSummary(
            total=len(request.rows),
            valid=sum(1 for outcome in outcomes if outcome.status == "ok"),
            errors=errors,
            skipped=skipped,
            would_create_supplier_parts=would_create,
            would_reuse_supplier_parts=would_reuse,
        )
        if request.preview:
            return ResponseImportResult(
                success=not errors, preview=True, skipped=skipped, summary=summary, rows=outcomes
            )

        if inserted:
            await self._mark_responded(rfq_supplier)
            await OutboxService(self.db).publish_event(
                event_type=EVENT_RFQ_RESPONSE_IMPORTED,
                aggregate_type="rfq",
                aggregate_id=rfq_id,
                payload={
                    "rfq_supplier_id": str(rfq_supplier.id),
                    "supplier_id": str(rfq_supplier.supplier_id),
                    "response_revision_id": str(revision.id),
                    "inserted": inserted,
                },
            )
        logger.info(
            "Imported responses for RFQ %s from supplier %s: %d inserted, %d skipped, %d rejected",
            rfq_id,
            rfq_supplier.supplier_id,
            inserted,
            skipped,
            errors,
        )
        return ResponseImportResult(
            success=not errors,
            inserted=inserted,
            skipped=skipped,
            response_revision_id=revision.id if revision else None,
            summary=summary,
            rows=outcomes,
        )

    # ------------------------------------------------------------------
    # Accept existing price
    # ------------------------------------------------------------------

    async def accept_existing_price(
        self,
        rfq_id: uuid.UUID,
        supplier_id: uuid.UUID,
        request: AcceptPriceRequest,
        created_by: uuid.UUID | None = None,
    ) -> RfqResponseLine:
        """Price one line from a known price instead of a supplier submission.

        Prices whose source already lives in the supplier's price history
        are not appended to it again.
        """
        rfq_supplier = await get_rfq_supplier_or_404(self.db, rfq_id, supplier_id)
        active = await fetch_structure_inputs(self.db, rfq_id)
        item = next((i for i in active if i.rfq_item_id == request.rfq_item_id), None)
        if item is None:
            raise NotFoundException(
                f"RFQ item {request.rfq_item_id} is not active in the current revision"
            )
        if request.supplier_part_id is not None:
            await self._supplier_part_by_id(rfq_supplier.supplier_id, request.supplier_part_id)

        selection = None
        if request.selection_key:
            result = await self.db.execute(
                select(RfqSupplierLineSelection)
                .where(
                    RfqSupplierLineSelection.rfq_supplier_id == rfq_supplier.id,
                    RfqSupplierLineSelection.rfq_item_id == item.rfq_item_id,
                    RfqSupplierLineSelection.selection_key == request.selection_key,
                )
                .limit(1)
            )
            selection = result.scalar_one_or_none()

        requested = (
            request.requested_original_part_id
            or (selection.original_part_id if selection else None)
            or request.original_part_id
            or item.original_part_id
        )
        offered = (
            request.original_part_id
            or (selection.alt_original_part_id if selection else None)
            or requested
        )
        bundle_id = request.bundle_id or (selection.bundle_id if selection else None)
        reason = request.change_reason or DEFAULT_ACCEPT_REASON
        note = request.note
        if note is None and request.source_type:
            note = f"source: {request.source_type}"
            if request.source_subtype:
                note += f"/{request.source_subtype}"
            if request.source_ref:
                note += f" {request.source_ref}"

        revision = await self._open_revision(
            rfq_supplier.id, request.new_revision, created_by, request.note
        )
        line = RfqResponseLine(
            rfq_response_revision_id=revision.id,
            rfq_item_id=item.rfq_item_id,
            selection_key=request.selection_key,
            rfq_item_component_id=request.rfq_item_component_id,
            supplier_part_id=request.supplier_part_id,
            original_part_id=offered,
            requested_original_part_id=requested,
            bundle_id=bundle_id,
            offer_type=request.offer_type,
            supplier_reply_status=SupplierReplyStatus.QUOTED,
            lead_time_days=request.lead_time_days,
            price=request.price,
            currency=request.currency,
            validity_days=request.validity_days,
            payment_terms=request.payment_terms,
            incoterms=request.incoterms,
            note=note,
            entry_source=ResponseEntrySource.ACCEPTED_EXISTING,
            change_reason=reason,
            created_by=created_by,
        )
        self.db.add(line)
        await self.db.flush()

        self.db.add(
            RfqResponseLineAction(
                rfq_response_line_id=line.id,
                action_type=ResponseActionType.CREATE,
                payload=_audit_payload(
                    source=ResponseEntrySource.ACCEPTED_EXISTING,
                    rfq_item_id=item.rfq_item_id,
                    selection_key=request.selection_key,
                    original_part_id=offered,
                    requested_original_part_id=requested,
                    bundle_id=bundle_id,
                    supplier_part_id=request.supplier_part_id,
                    price=request.price,
                    currency=request.currency,
                    offer_type=request.offer_type,
                    supplier_reply_status=SupplierReplyStatus.QUOTED,
                    payment_terms=request.payment_terms,
                    incoterms=request.incoterms,
                    source_type=request.source_type,
                    source_subtype=request.source_subtype,
                    source_ref=request.source_ref,
                ),
                reason=reason,
                created_by=created_by,
            )
        )

        await self.line_status.upsert_line_status(
            rfq_supplier.id,
            item.rfq_item_id,
            LineStatus.ACCEPTED_EXISTING,
            source_type=request.source_type,
            source_ref=request.source_ref,
            last_response_revision_id=revision.id,
            note=note,
        )

        if request.supplier_part_id is not None and request.source_type not in PRICE_SOURCES_WITH_HISTORY:
            self.db.add(
                SupplierPartPrice(
                    supplier_part_id=request.supplier_part_id,
                    price=request.price,
                    currency=request.currency,
                    offer_type=request.offer_type,
                    lead_time_days=request.lead_time_days,
                    validity_days=request.validity_days,
                    source_type=SOURCE_TYPE_RFQ_RESPONSE,
                    source_subtype=SOURCE_SUBTYPE_ACCEPTED_EXISTING,
                    source_id=line.id,
                    comment=reason,
                    created_by=created_by,
                )
            )

        await self._mark_responded(rfq_supplier)
        logger.info(
            "Accepted existing price for RFQ item %s from supplier %s (%s)",
            item.rfq_item_id,
            supplier_id,
            request.source_type or "unspecified source",
        )
        return line
