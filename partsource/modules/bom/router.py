"""Bill-of-materials API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from partsource.database.session import get_db
from partsource.modules.access.auth import (
    AuthenticatedUser,
    get_current_user,
    require_bom_editor,
)
from partsource.modules.bom.schemas import (
    BomChildResponse,
    BomEdgeBulkCreate,
    BomEdgeCreate,
    BomEdgeResponse,
    BomQuantityUpdate,
    BomTreeRowResponse,
)
from partsource.modules.bom.service import BomService
from partsource.schemas.responses import COMMON_ERROR_RESPONSES, BatchResult

router = APIRouter(prefix="/bom", tags=["bom"], responses=COMMON_ERROR_RESPONSES)


@router.get("/{part_id}/children", response_model=list[BomChildResponse])
async def list_children(
    part_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    edges = await BomService(db).children(part_id)
    return [
        BomChildResponse(
            child_part_id=edge.child_part_id,
            quantity=edge.quantity,
            cat_number=edge.child.cat_number if edge.child else None,
            description=edge.child.description if edge.child else None,
        )
        for edge in edges
    ]


@router.post("/", response_model=BomEdgeResponse, status_code=201)
async def add_edge(
    body: BomEdgeCreate,
    user: AuthenticatedUser = Depends(require_bom_editor),
    db: AsyncSession = Depends(get_db),
):
    """Add one edge. Rejected with 409 on cycles, duplicates and model mismatch."""
    edge = await BomService(db).add_edge(body.parent_part_id, body.child_part_id, body.quantity)
    return BomEdgeResponse.model_validate(edge)


@router.post("/bulk", response_model=BatchResult)
async def bulk_add_edges(
    body: BomEdgeBulkCreate,
    user: AuthenticatedUser = Depends(require_bom_editor),
    db: AsyncSession = Depends(get_db),
):
    return await BomService(db).bulk_add_edges(
        [(e.parent_part_id, e.child_part_id, e.quantity) for e in body.edges],
        atomic=body.atomic,
    )


@router.put("/{parent_id}/{child_id}", response_model=BomEdgeResponse)
async def update_quantity(
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    body: BomQuantityUpdate,
    user: AuthenticatedUser = Depends(require_bom_editor),
    db: AsyncSession = Depends(get_db),
):
    edge = await BomService(db).update_quantity(parent_id, child_id, body.quantity)
    return BomEdgeResponse.model_validate(edge)


@router.delete("/{parent_id}/{child_id}", status_code=204)
async def remove_edge(
    parent_id: uuid.UUID,
    child_id: uuid.UUID,
    user: AuthenticatedUser = Depends(require_bom_editor),
    db: AsyncSession = Depends(get_db),
):
    await BomService(db).remove_edge(parent_id, child_id)
    return Response(status_code=204)


@router.get("/{part_id}/tree", response_model=list[BomTreeRowResponse])
async def get_tree(
    part_id: uuid.UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Full explosion below a part, ordered by (level, path)."""
    rows, parts = await BomService(db).tree(part_id)
    response = []
    for row in rows:
        part = parts.get(row.node_id)
        response.append(
            BomTreeRowResponse(
                node_id=row.node_id,
                level=row.level,
                path=row.path,
                mult_qty=row.mult_qty,
                cat_number=part.cat_number if part else None,
                description_ru=part.description_ru if part else None,
                description_en=part.description_en if part else None,
                uom=part.uom if part else None,
            )
        )
    return response
