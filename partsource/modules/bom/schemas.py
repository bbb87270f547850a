"""Pydantic v2 schemas for the BOM endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class BomEdgeCreate(BaseModel):
    parent_part_id: uuid.UUID
    child_part_id: uuid.UUID
    quantity: Decimal = Field(Decimal(1), gt=0)


class BomEdgeBulkCreate(BaseModel):
    edges: list[BomEdgeCreate] = Field(..., min_length=1, max_length=1000)
    atomic: bool = False


class BomQuantityUpdate(BaseModel):
    quantity: Decimal = Field(..., gt=0)


class BomEdgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    parent_part_id: uuid.UUID
    child_part_id: uuid.UUID
    equipment_model_id: uuid.UUID | None = None
    quantity: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BomChildResponse(BaseModel):
    child_part_id: uuid.UUID
    quantity: Decimal
    cat_number: str | None = None
    description: str | None = None


class BomTreeRowResponse(BaseModel):
    node_id: uuid.UUID
    level: int
    path: str
    mult_qty: Decimal
    cat_number: str | None = None
    description_ru: str | None = None
    description_en: str | None = None
    uom: str | None = None
