"""RFQ structuring, dispatch and response API router."""

from __future__ import annotations

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.config import settings
from partsource.database.session import get_db
from partsource.modules.access.auth import (
    AuthenticatedUser,
    get_current_user,
    require_rfq_manager,
)
from partsource.modules.rfq.dispatch_service import DispatchService
from partsource.modules.rfq.line_status_service import LineStatusService, LineStatusUpdate
from partsource.modules.rfq.response_service import ResponseService
from partsource.modules.rfq.rfq_service import RfqService
from partsource.modules.rfq.schemas import (
    AcceptPriceRequest,
    ComponentCreate,
    ComponentRebuildRequest,
    ComponentResponse,
    ComponentUpdate,
    DispatchResponse,
    DispatchSummaryResponse,
    DocumentResponse,
    LineSelectionReplace,
    LineSelectionResponse,
    LineStatusBulkUpdate,
    LineStatusResponse,
    ResponseImportRequest,
    ResponseImportResult,
    ResponseLineResponse,
    RfqCreate,
    RfqItemResponse,
    RfqResponse,
    RfqRevisionResponse,
    RfqSupplierResponse,
    RfqSupplierUpdate,
    RfqSyncResponse,
    SendRequest,
    StrategyResponse,
    StrategyUpdate,
    StructureItemResponse,
    StructureNodeResponse,
    StructureOptionResponse,
    StructureResponse,
    SupplierCrossRefResponse,
    SupplierInvite,
)
from partsource.modules.rfq.selection_service import SelectionInput, SelectionService
from partsource.modules.rfq.structure import MasterItem, StructureNode
from partsource.modules.rfq.structure_service import StructureService, StructureView
from partsource.schemas.responses import COMMON_ERROR_RESPONSES, BatchResult

router = APIRouter(prefix="/rfqs", tags=["rfqs"], responses=COMMON_ERROR_RESPONSES)

limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _node_response(node: StructureNode) -> StructureNodeResponse:
    return StructureNodeResponse(
        key=node.key,
        type=node.type,
        required_qty=node.required_qty,
        qty_per_parent=node.qty_per_parent,
        uom=node.uom,
        original_part_id=node.original_part_id,
        cat_number=node.cat_number,
        description=node.description,
        bundle_id=node.bundle_id,
        bundle_item_id=node.bundle_item_id,
        role_label=node.role_label,
        bundle_ids=node.bundle_ids,
        children=[_node_response(child) for child in node.children],
    )


def _item_response(master: MasterItem, structure: StructureView) -> StructureItemResponse:
    item = master.item
    strategy = master.strategy
    return StructureItemResponse(
        rfq_item_id=item.rfq_item_id,
        line_number=item.line_number,
        requested_qty=item.requested_qty,
        uom=item.uom,
        original_part_id=item.original_part_id,
        label=item.label,
        description=item.description,
        oem_only=item.oem_only,
        unresolved=master.unresolved,
        has_bom=master.has_bom,
        strategy=StrategyResponse(
            rfq_item_id=item.rfq_item_id,
            mode=strategy.mode,
            allow_oem=strategy.allow_oem,
            allow_analog=strategy.allow_analog,
            allow_kit=strategy.allow_kit,
            allow_partial=strategy.allow_partial,
            selected_bundle_id=strategy.selected_bundle_id,
            note=strategy.note,
        ),
        bundle_ids=master.bundle_ids,
        effective_bundle_id=master.effective_bundle_id,
        options=[
            StructureOptionResponse(
                key=option.key,
                type=option.type,
                label=option.label,
                available=option.available,
                enabled=option.enabled,
                selection_required=option.selection_required,
                children=[_node_response(child) for child in option.children],
            )
            for option in master.options
        ],
        suppliers=[
            SupplierCrossRefResponse(
                supplier_id=ref.supplier_id,
                rfq_supplier_id=ref.rfq_supplier_id,
                line_status=ref.line_status,
                selection_keys=ref.selection_keys,
                response_count=ref.response_count,
                latest_price=ref.latest_price,
                latest_currency=ref.latest_currency,
            )
            for ref in structure.cross_refs.get(item.rfq_item_id, [])
        ],
    )


def _structure_response(structure: StructureView) -> StructureResponse:
    return StructureResponse(
        rfq_id=structure.rfq.id,
        status=structure.rfq.status,
        view="master" if structure.view == "master" else "default",
        items=[_item_response(master, structure) for master in structure.items],
    )


# ---------------------------------------------------------------------------
# RFQ
# ---------------------------------------------------------------------------


@router.post("/", response_model=RfqResponse, status_code=201)
async def create_rfq(
    body: RfqCreate,
    user: AuthenticatedUser = Depends(require_rfq_manager),
    db: AsyncSession = Depends(get_db),
):
    """Create the RFQ of a released client request."""
    rfq = await RfqService(db).create_rfq(
        client_request_id=body.client_request_id,
        created_by=user.id,
        assigned_to=body.assigned_to,
        note=body.note,
    )
    return RfqResponse.model_validate(rfq)


@router.get("/{rfq_id}", response_model=RfqResponse)
async def get_rfq(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq = await RfqService(db).get_rfq(rfq_id)
    return RfqResponse.model_validate(rfq)


@router.get("/{rfq_id}/revisions", response_model=list[RfqRevisionResponse])
async def list_revisions(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    revisions = await RfqService(db).list_revisions(rfq_id)
    return [RfqRevisionResponse.model_validate(r) for r in revisions]


@router.post("/{rfq_id}/sync", response_model=RfqSyncResponse)
async def sync_rfq(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_rfq_manager),
    db: AsyncSession = Depends(get_db),
):
    """Roll the RFQ forward to the client request's latest revision."""
    result = await RfqService(db).sync_to_latest_revision(rfq_id, created_by=user.id)
    return RfqSyncResponse(
        rfq=RfqResponse.model_validate(result.rfq),
        revision=RfqRevisionResponse.model_validate(result.revision),
        items_created=result.items_created,
        lines_archived=result.lines_archived,
    )


@router.get("/{rfq_id}/items", response_model=list[RfqItemResponse])
async def list_items(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items = await RfqService(db).list_items(rfq_id)
    return [RfqItemResponse.model_validate(item) for item in items]


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


@router.get("/{rfq_id}/structure", response_model=StructureResponse)
async def get_structure(
    rfq_id: uuid.UUID,
    view: Literal["master", "default"] = Query("default"),
    supplier_id: uuid.UUID | None = Query(None),
    language: str | None = Query(None, max_length=5),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Option tree per active line; the default view adds supplier cross-references."""
    structure = await StructureService(db).get_structure(
        rfq_id, view=view, supplier_id=supplier_id, language=language
    )
    return _structure_response(structure)


@router.post("/{rfq_id}/structure/confirm", response_model=RfqResponse)
async def confirm_structure(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_rfq_manager),
    db: AsyncSession = Depends(get_db),
):
    rfq = await StructureService(db).confirm(rfq_id)
    return RfqResponse.model_validate(rfq)


@router.put("/{rfq_id}/items/{item_id}/strategy", response_model=StrategyResponse)
async def set_strategy(
    rfq_id: uuid.UUID,
    item_id: uuid.UUID,
    body: StrategyUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    strategy = await StructureService(db).set_strategy(
        rfq_id,
        item_id,
        mode=body.mode,
        allow_oem=body.allow_oem,
        allow_analog=body.allow_analog,
        allow_kit=body.allow_kit,
        allow_partial=body.allow_partial,
        selected_bundle_id=body.selected_bundle_id,
        clear_bundle=body.clear_bundle,
        note=body.note,
        rebuild=body.rebuild,
    )
    return StrategyResponse.model_validate(strategy)


@router.get("/{rfq_id}/items/{item_id}/components", response_model=list[ComponentResponse])
async def list_components(
    rfq_id: uuid.UUID,
    item_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    components = await StructureService(db).list_components(rfq_id, item_id)
    return [ComponentResponse.model_validate(c) for c in components]


@router.post(
    "/{rfq_id}/items/{item_id}/components/rebuild", response_model=list[ComponentResponse]
)
async def rebuild_components(
    rfq_id: uuid.UUID,
    item_id: uuid.UUID,
    body: ComponentRebuildRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete and rebuild every component of the line, manual ones included."""
    components = await StructureService(db).rebuild_components(rfq_id, item_id, body.mode)
    return [ComponentResponse.model_validate(c) for c in components]


@router.post(
    "/{rfq_id}/items/{item_id}/components", response_model=ComponentResponse, status_code=201
)
async def add_component(
    rfq_id: uuid.UUID,
    item_id: uuid.UUID,
    body: ComponentCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    component = await StructureService(db).add_component(
        rfq_id, item_id, body.original_part_id, body.component_qty, body.note
    )
    return ComponentResponse.model_validate(component)


@router.put(
    "/{rfq_id}/items/{item_id}/components/{component_id}", response_model=ComponentResponse
)
async def update_component(
    rfq_id: uuid.UUID,
    item_id: uuid.UUID,
    component_id: uuid.UUID,
    body: ComponentUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    component = await StructureService(db).update_component(
        rfq_id, item_id, component_id, body.component_qty, body.note
    )
    return ComponentResponse.model_validate(component)


@router.delete("/{rfq_id}/items/{item_id}/components/{component_id}", status_code=204)
async def delete_component(
    rfq_id: uuid.UUID,
    item_id: uuid.UUID,
    component_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await StructureService(db).delete_component(rfq_id, item_id, component_id)


# ---------------------------------------------------------------------------
# Suppliers, selections and line status
# ---------------------------------------------------------------------------


@router.get("/{rfq_id}/suppliers", response_model=list[RfqSupplierResponse])
async def list_suppliers(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    suppliers = await RfqService(db).list_suppliers(rfq_id)
    return [RfqSupplierResponse.model_validate(s) for s in suppliers]


@router.post("/{rfq_id}/suppliers", response_model=list[RfqSupplierResponse], status_code=201)
async def invite_suppliers(
    rfq_id: uuid.UUID,
    body: SupplierInvite,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    suppliers = await RfqService(db).invite_suppliers(
        rfq_id, body.supplier_ids, language=body.language, rfq_format=body.rfq_format
    )
    return [RfqSupplierResponse.model_validate(s) for s in suppliers]


@router.patch("/{rfq_id}/suppliers/{supplier_id}", response_model=RfqSupplierResponse)
async def update_supplier(
    rfq_id: uuid.UUID,
    supplier_id: uuid.UUID,
    body: RfqSupplierUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rfq_supplier = await RfqService(db).update_supplier(
        rfq_id, supplier_id, language=body.language, rfq_format=body.rfq_format, note=body.note
    )
    return RfqSupplierResponse.model_validate(rfq_supplier)


@router.get(
    "/{rfq_id}/suppliers/{supplier_id}/line-selections",
    response_model=list[LineSelectionResponse],
)
async def list_line_selections(
    rfq_id: uuid.UUID,
    supplier_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    selections = await SelectionService(db).list_selections(rfq_id, supplier_id)
    return [LineSelectionResponse.model_validate(s) for s in selections]


@router.put(
    "/{rfq_id}/suppliers/{supplier_id}/line-selections",
    response_model=list[LineSelectionResponse],
)
async def replace_line_selections(
    rfq_id: uuid.UUID,
    supplier_id: uuid.UUID,
    body: LineSelectionReplace,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Replace every selection of the supplier; an empty list clears them."""
    selections = await SelectionService(db).replace_selections(
        rfq_id,
        supplier_id,
        [SelectionInput(**row.model_dump()) for row in body.selections],
    )
    return [LineSelectionResponse.model_validate(s) for s in selections]


@router.get(
    "/{rfq_id}/suppliers/{supplier_id}/line-status", response_model=list[LineStatusResponse]
)
async def get_line_status(
    rfq_id: uuid.UUID,
    supplier_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await LineStatusService(db).get_line_statuses(rfq_id, supplier_id)
    return [LineStatusResponse.model_validate(row) for row in rows]


@router.put("/{rfq_id}/suppliers/{supplier_id}/line-status", response_model=BatchResult)
async def put_line_status(
    rfq_id: uuid.UUID,
    supplier_id: uuid.UUID,
    body: LineStatusBulkUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LineStatusService(db).put_line_statuses(
        rfq_id,
        supplier_id,
        [LineStatusUpdate(**row.model_dump()) for row in body.items],
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


@router.post("/{rfq_id}/send", response_model=BatchResult)
@limiter.limit(settings.rate_limit_dispatch)
async def send_rfq(
    request: Request,
    rfq_id: uuid.UUID,
    body: SendRequest,
    user: AuthenticatedUser = Depends(require_rfq_manager),
    db: AsyncSession = Depends(get_db),
):
    """Dispatch to suppliers. Each supplier succeeds or fails on its own."""
    return await DispatchService(db).send(
        rfq_id,
        supplier_ids=body.supplier_ids,
        mode=body.mode,
        include_priced=body.include_priced,
        sent_by=user.id,
    )


@router.get("/{rfq_id}/dispatches", response_model=list[DispatchResponse])
async def list_dispatches(
    rfq_id: uuid.UUID,
    supplier_id: uuid.UUID | None = Query(None),
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await DispatchService(db).list_dispatches(rfq_id, supplier_id)
    return [
        DispatchResponse.model_validate(dispatch).model_copy(update={"supplier_id": sid})
        for dispatch, sid in rows
    ]


@router.get("/{rfq_id}/documents", response_model=list[DocumentResponse])
async def list_documents(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    documents = await DispatchService(db).list_documents(rfq_id)
    return [DocumentResponse.model_validate(d) for d in documents]


@router.get("/{rfq_id}/dispatch-summary", response_model=list[DispatchSummaryResponse])
async def dispatch_summary(
    rfq_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    rows = await DispatchService(db).dispatch_summary(rfq_id)
    return [DispatchSummaryResponse(**row) for row in rows]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@router.post("/{rfq_id}/responses/import", response_model=ResponseImportResult)
@limiter.limit(settings.rate_limit_import)
async def import_responses(
    request: Request,
    rfq_id: uuid.UUID,
    body: ResponseImportRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Import supplier price rows. Rows matching no active line are skipped."""
    return await ResponseService(db).import_responses(rfq_id, body, created_by=user.id)


@router.post(
    "/{rfq_id}/suppliers/{supplier_id}/accept-price",
    response_model=ResponseLineResponse,
    status_code=201,
)
async def accept_price(
    rfq_id: uuid.UUID,
    supplier_id: uuid.UUID,
    body: AcceptPriceRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    line = await ResponseService(db).accept_existing_price(
        rfq_id, supplier_id, body, created_by=user.id
    )
    return ResponseLineResponse.model_validate(line)


@router.get(
    "/{rfq_id}/suppliers/{supplier_id}/responses", response_model=list[ResponseLineResponse]
)
async def list_response_lines(
    rfq_id: uuid.UUID,
    supplier_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    lines = await ResponseService(db).list_response_lines(rfq_id, supplier_id)
    return [ResponseLineResponse.model_validate(line) for line in lines]
