"""Supplier document payloads and the collaborators that render and store them.

Spreadsheet layout and file storage live outside this service; they are
reached through the ``DocumentRenderer`` and ``ObjectStorage`` protocols.
The JSON renderer and the null storage are the in-process defaults.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol

from partsource.models.enums import LineChange, LineStatus
from partsource.modules.rfq.constants import DOCUMENT_NOTES
from partsource.modules.rfq.structure import DocumentRow


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, uuid.UUID):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonical_json(data: Any) -> str:
    """Sorted keys, no whitespace, normalized decimals."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_json_default, ensure_ascii=False)


def payload_hash(payload: dict) -> str:
    """SHA-256 hex digest of the canonical JSON form (64 characters)."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RenderedDocument:
    content: bytes
    content_type: str
    file_name: str


class DocumentRenderer(Protocol):
    def render(self, payload: dict) -> RenderedDocument: ...


class ObjectStorage(Protocol):
    async def put(self, key: str, content: bytes, content_type: str) -> str | None: ...


class JsonDocumentRenderer:
    """Serializes the payload as-is; a spreadsheet renderer plugs in instead."""

    content_type = "application/json"

    def render(self, payload: dict) -> RenderedDocument:
        stem = f"{payload['rfq_number']}_{payload['supplier_id']}_{payload['dispatch_type'].lower()}"
        return RenderedDocument(
            content=canonical_json(payload).encode("utf-8"),
            content_type=self.content_type,
            file_name=f"{stem}.json",
        )


class NullObjectStorage:
    """Keeps nothing. Documents are recorded without a retrievable URL."""

    def __init__(self, base_url: str | None = None):
        self.base_url = base_url.rstrip("/") if base_url else None

    async def put(self, key: str, content: bytes, content_type: str) -> str | None:
        if self.base_url is None:
            return None
        return f"{self.base_url}/{key}"


def _row_payload(
    row: DocumentRow,
    line_changes: dict[int, LineChange],
    line_statuses: dict[uuid.UUID, LineStatus],
) -> dict:
    change = line_changes.get(row.line_number)
    return {
        "line_number": row.line_number,
        "rfq_item_id": row.rfq_item_id,
        "type": row.type,
        "indent": row.indent,
        "selection_key": row.selection_key,
        "label": row.label,
        "description": row.description,
        "qty": row.qty,
        "uom": row.uom,
        "original_part_id": row.original_part_id,
        "bundle_id": row.bundle_id,
        "bundle_item_id": row.bundle_item_id,
        "change": change.value if change else None,
        "status": line_statuses.get(row.rfq_item_id, LineStatus.REQUEST).value,
    }


def build_document_payload(
    *,
    rfq_id: uuid.UUID,
    rfq_number: str,
    rfq_revision_id: uuid.UUID | None,
    supplier_id: uuid.UUID,
    language: str,
    rfq_format: str,
    dispatch_type: str,
    rows: list[DocumentRow],
    line_changes: dict[int, LineChange],
    line_statuses: dict[uuid.UUID, LineStatus],
    uses_selections: bool,
) -> dict:
    """Structured content of one supplier document. Hashed as-is for dedup and audit."""
    notes = DOCUMENT_NOTES.get(language, DOCUMENT_NOTES["ru"])
    return {
        "rfq_id": rfq_id,
        "rfq_number": rfq_number,
        "rfq_revision_id": rfq_revision_id,
        "supplier_id": supplier_id,
        "language": language,
        "rfq_format": rfq_format,
        "dispatch_type": dispatch_type,
        "note": notes["selected" if uses_selections else "options"],
        "rows": [_row_payload(row, line_changes, line_statuses) for row in rows],
    }
