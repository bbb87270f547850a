"""Pydantic v2 schemas for RFQ structuring, dispatch and response endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from partsource.models.enums import (
    ComponentSourceType,
    DispatchMode,
    DispatchType,
    DocumentLanguage,
    LineStatus,
    OfferType,
    ResponseEntrySource,
    RfqFormat,
    RfqRevisionType,
    RfqStatus,
    RfqSupplierStatus,
    SelectionLineType,
    StrategyMode,
    StructureOptionType,
    SupplierReplyStatus,
)
from partsource.modules.rfq.normalizers import (
    blank_to_none,
    normalize_currency,
    normalize_dispatch_mode,
    normalize_incoterms,
    normalize_language,
    normalize_offer_type,
    normalize_reply_status,
    normalize_rfq_format,
    normalize_selection_line_type,
    normalize_strategy_mode,
)

# ---------------------------------------------------------------------------
# RFQ schemas
# ---------------------------------------------------------------------------


class RfqCreate(BaseModel):
    client_request_id: uuid.UUID
    assigned_to: uuid.UUID | None = None
    note: str | None = None


class RfqResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_number: str
    client_request_id: uuid.UUID
    client_request_revision_id: uuid.UUID
    current_rfq_revision_id: uuid.UUID | None = None
    status: RfqStatus
    created_by: uuid.UUID | None = None
    assigned_to: uuid.UUID | None = None
    note: str | None = None
    last_synced_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class RfqRevisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    rev_number: int
    client_request_revision_id: uuid.UUID
    revision_type: RfqRevisionType
    created_by: uuid.UUID | None = None
    created_at: datetime


class RfqSyncResponse(BaseModel):
    rfq: RfqResponse
    revision: RfqRevisionResponse
    items_created: int
    lines_archived: int


class RfqItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    client_request_revision_item_id: uuid.UUID
    line_number: int
    requested_qty: Decimal
    uom: str | None = None
    oem_only: bool
    note: str | None = None


# ---------------------------------------------------------------------------
# Structure schemas
# ---------------------------------------------------------------------------


class StrategyUpdate(BaseModel):
    mode: StrategyMode | None = None
    allow_oem: bool | None = None
    allow_analog: bool | None = None
    allow_kit: bool | None = None
    allow_partial: bool | None = None
    selected_bundle_id: uuid.UUID | None = None
    clear_bundle: bool = False
    note: str | None = None
    rebuild: bool = True

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, value):
        if value is None:
            return None
        return normalize_strategy_mode(value)


class StrategyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rfq_item_id: uuid.UUID
    mode: StrategyMode
    allow_oem: bool
    allow_analog: bool
    allow_kit: bool
    allow_partial: bool
    selected_bundle_id: uuid.UUID | None = None
    note: str | None = None


class ComponentRebuildRequest(BaseModel):
    mode: StrategyMode | None = None

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, value):
        if value is None:
            return None
        return normalize_strategy_mode(value)


class ComponentCreate(BaseModel):
    original_part_id: uuid.UUID
    component_qty: Decimal = Field(Decimal(1), gt=0)
    note: str | None = None


class ComponentUpdate(BaseModel):
    component_qty: Decimal = Field(..., gt=0)
    note: str | None = None


class ComponentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_item_id: uuid.UUID
    original_part_id: uuid.UUID
    component_qty: Decimal
    required_qty: Decimal
    source_type: ComponentSourceType
    note: str | None = None


class StructureNodeResponse(BaseModel):
    key: str
    type: SelectionLineType
    required_qty: Decimal
    qty_per_parent: Decimal
    uom: str | None = None
    original_part_id: uuid.UUID | None = None
    cat_number: str | None = None
    description: str | None = None
    bundle_id: uuid.UUID | None = None
    bundle_item_id: uuid.UUID | None = None
    role_label: str | None = None
    bundle_ids: list[uuid.UUID] = []
    children: list[StructureNodeResponse] = []


class StructureOptionResponse(BaseModel):
    key: str
    type: StructureOptionType
    label: str
    available: bool
    enabled: bool
    selection_required: bool = False
    children: list[StructureNodeResponse] = []


class SupplierCrossRefResponse(BaseModel):
    supplier_id: uuid.UUID
    rfq_supplier_id: uuid.UUID
    line_status: LineStatus
    selection_keys: list[str] = []
    response_count: int = 0
    latest_price: Decimal | None = None
    latest_currency: str | None = None


class StructureItemResponse(BaseModel):
    rfq_item_id: uuid.UUID
    line_number: int
    requested_qty: Decimal
    uom: str | None = None
    original_part_id: uuid.UUID | None = None
    label: str
    description: str | None = None
    oem_only: bool
    unresolved: bool
    has_bom: bool
    strategy: StrategyResponse
    bundle_ids: list[uuid.UUID] = []
    effective_bundle_id: uuid.UUID | None = None
    options: list[StructureOptionResponse]
    suppliers: list[SupplierCrossRefResponse] = []


class StructureResponse(BaseModel):
    rfq_id: uuid.UUID
    status: RfqStatus
    view: Literal["master", "default"]
    items: list[StructureItemResponse]


# ---------------------------------------------------------------------------
# Supplier schemas
# ---------------------------------------------------------------------------


class _SupplierPreferences(BaseModel):
    @field_validator("language", mode="before", check_fields=False)
    @classmethod
    def _language(cls, value):
        if value is None:
            return None
        return normalize_language(value)

    @field_validator("rfq_format", mode="before", check_fields=False)
    @classmethod
    def _format(cls, value):
        if value is None:
            return None
        return normalize_rfq_format(value)


class SupplierInvite(_SupplierPreferences):
    supplier_ids: list[uuid.UUID] = Field(..., min_length=1)
    language: DocumentLanguage | None = None
    rfq_format: RfqFormat | None = None


class RfqSupplierUpdate(_SupplierPreferences):
    language: DocumentLanguage | None = None
    rfq_format: RfqFormat | None = None
    note: str | None = None


class RfqSupplierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    supplier_id: uuid.UUID
    status: RfqSupplierStatus
    language: str
    rfq_format: str
    note: str | None = None
    invited_at: datetime | None = None
    sent_at: datetime | None = None
    responded_at: datetime | None = None


class LineSelectionItem(BaseModel):
    rfq_item_id: uuid.UUID
    line_type: SelectionLineType
    selection_key: str | None = Field(None, max_length=255)
    original_part_id: uuid.UUID | None = None
    alt_original_part_id: uuid.UUID | None = None
    bundle_id: uuid.UUID | None = None
    bundle_item_id: uuid.UUID | None = None
    line_label: str | None = Field(None, max_length=255)
    line_description: str | None = None
    qty: Decimal | None = Field(None, gt=0)
    uom: str | None = Field(None, max_length=20)
    use_existing_price: bool = False

    @field_validator("line_type", mode="before")
    @classmethod
    def _line_type(cls, value):
        return normalize_selection_line_type(value) or value


class LineSelectionReplace(BaseModel):
    selections: list[LineSelectionItem] = []


class LineSelectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_supplier_id: uuid.UUID
    rfq_item_id: uuid.UUID
    selection_key: str | None = None
    line_type: SelectionLineType
    original_part_id: uuid.UUID | None = None
    alt_original_part_id: uuid.UUID | None = None
    bundle_id: uuid.UUID | None = None
    bundle_item_id: uuid.UUID | None = None
    line_label: str | None = None
    line_description: str | None = None
    qty: Decimal | None = None
    uom: str | None = None
    use_existing_price: bool


class LineStatusItem(BaseModel):
    rfq_item_id: uuid.UUID
    status: LineStatus
    source_type: str | None = Field(None, max_length=40)
    source_ref: str | None = Field(None, max_length=255)
    note: str | None = None


class LineStatusBulkUpdate(BaseModel):
    items: list[LineStatusItem] = Field(..., min_length=1)


class LineStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rfq_item_id: uuid.UUID
    status: LineStatus
    source_type: str | None = None
    source_ref: str | None = None
    last_request_rfq_revision_id: uuid.UUID | None = None
    last_response_revision_id: uuid.UUID | None = None
    note: str | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Dispatch schemas
# ---------------------------------------------------------------------------


class SendRequest(BaseModel):
    supplier_ids: list[uuid.UUID] | None = None
    mode: DispatchMode = DispatchMode.FULL
    include_priced: bool = False

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, value):
        return normalize_dispatch_mode(value)


class DispatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    rfq_supplier_id: uuid.UUID
    supplier_id: uuid.UUID | None = None
    rfq_revision_id: uuid.UUID | None = None
    document_id: uuid.UUID | None = None
    dispatch_type: DispatchType
    payload_hash: str
    note: dict = {}
    sent_by: uuid.UUID | None = None
    sent_at: datetime


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_id: uuid.UUID
    rfq_supplier_id: uuid.UUID
    file_name: str
    file_url: str | None = None
    content_type: str
    language: str
    payload_hash: str
    created_by: uuid.UUID | None = None
    created_at: datetime


class DispatchSummaryResponse(BaseModel):
    rfq_supplier_id: uuid.UUID
    supplier_id: uuid.UUID
    status: RfqSupplierStatus
    invited_at: datetime | None = None
    last_sent_rfq_revision_id: uuid.UUID | None = None
    last_sent_rfq_revision_number: int | None = None
    last_sent_at: datetime | None = None
    new_lines_count: int
    new_line_numbers: list[int]
    has_delta: bool


# ---------------------------------------------------------------------------
# Response ingestion schemas
# ---------------------------------------------------------------------------


class _PriceFields(BaseModel):
    offer_type: OfferType = OfferType.UNKNOWN
    price: Decimal | None = Field(None, ge=0)
    currency: str | None = Field(None, max_length=3)
    lead_time_days: int | None = Field(None, ge=0)
    validity_days: int | None = Field(None, ge=0)
    payment_terms: str | None = Field(None, max_length=255)
    incoterms: str | None = Field(None, max_length=20)
    note: str | None = None

    @field_validator("offer_type", mode="before")
    @classmethod
    def _offer_type(cls, value):
        return normalize_offer_type(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value):
        return normalize_currency(value)

    @field_validator("incoterms", mode="before")
    @classmethod
    def _incoterms(cls, value):
        return normalize_incoterms(value)

    @field_validator("payment_terms", "note", mode="before")
    @classmethod
    def _blank(cls, value):
        return blank_to_none(value)


class ResponseImportRow(_PriceFields):
    rfq_item_id: uuid.UUID | None = None
    line_number: int | None = None
    selection_key: str | None = Field(None, max_length=255)
    supplier_reply_status: SupplierReplyStatus = SupplierReplyStatus.QUOTED
    supplier_part_id: uuid.UUID | None = None
    supplier_part_number: str | None = Field(None, max_length=120)
    supplier_description: str | None = None
    requested_original_part_id: uuid.UUID | None = None
    original_part_id: uuid.UUID | None = None
    offered_qty: Decimal | None = Field(None, ge=0)
    moq: Decimal | None = Field(None, ge=0)
    packaging: str | None = Field(None, max_length=255)

    @field_validator("supplier_reply_status", mode="before")
    @classmethod
    def _reply_status(cls, value):
        return normalize_reply_status(value)

    @field_validator("selection_key", "supplier_part_number", "supplier_description", mode="before")
    @classmethod
    def _blank_text(cls, value):
        return blank_to_none(value)


class ResponseImportRequest(BaseModel):
    supplier_id: uuid.UUID
    rows: list[ResponseImportRow] = Field(..., min_length=1)
    preview: bool = False
    new_revision: bool = False
    note: str | None = None


class ImportRowOutcome(BaseModel):
    row_index: int
    line_number: int | None = None
    rfq_item_id: uuid.UUID | None = None
    selection_key: str | None = None
    status: Literal["ok", "skipped", "error"]
    message: str
    error_code: str | None = None
    supplier_reply_status: SupplierReplyStatus | None = None
    supplier_part_action: Literal["create", "reuse", "none"] = "none"
    supplier_part_id: uuid.UUID | None = None
    supplier_part_number: str | None = None


class ImportSummary(BaseModel):
    total: int
    valid: int
    errors: int
    skipped: int
    would_create_supplier_parts: int
    would_reuse_supplier_parts: int


class ResponseImportResult(BaseModel):
    success: bool
    preview: bool = False
    inserted: int = 0
    skipped: int = 0
    response_revision_id: uuid.UUID | None = None
    summary: ImportSummary | None = None
    rows: list[ImportRowOutcome] = []


class AcceptPriceRequest(_PriceFields):
    rfq_item_id: uuid.UUID
    price: Decimal = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)
    selection_key: str | None = Field(None, max_length=255)
    rfq_item_component_id: uuid.UUID | None = None
    supplier_part_id: uuid.UUID | None = None
    original_part_id: uuid.UUID | None = None
    requested_original_part_id: uuid.UUID | None = None
    bundle_id: uuid.UUID | None = None
    source_type: str | None = Field(None, max_length=40)
    source_subtype: str | None = Field(None, max_length=40)
    source_ref: str | None = Field(None, max_length=255)
    change_reason: str | None = None
    new_revision: bool = False

    @field_validator("source_type", mode="before")
    @classmethod
    def _source_type(cls, value):
        raw = blank_to_none(value)
        return raw.upper() if raw else None


class ResponseLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rfq_response_revision_id: uuid.UUID
    rfq_item_id: uuid.UUID
    selection_key: str | None = None
    rfq_item_component_id: uuid.UUID | None = None
    supplier_part_id: uuid.UUID | None = None
    original_part_id: uuid.UUID | None = None
    requested_original_part_id: uuid.UUID | None = None
    bundle_id: uuid.UUID | None = None
    offer_type: OfferType
    supplier_reply_status: SupplierReplyStatus
    offered_qty: Decimal | None = None
    moq: Decimal | None = None
    packaging: str | None = None
    lead_time_days: int | None = None
    price: Decimal | None = None
    currency: str | None = None
    validity_days: int | None = None
    payment_terms: str | None = None
    incoterms: str | None = None
    note: str | None = None
    entry_source: ResponseEntrySource
    change_reason: str | None = None
    created_by: uuid.UUID | None = None
    created_at: datetime
