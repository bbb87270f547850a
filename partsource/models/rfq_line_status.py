from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partsource.models.enums import LineStatus


class RfqSupplierLineStatus(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Authoritative per-(supplier, line) state. A missing row reads as REQUEST."""

    __tablename__ = "rfq_supplier_line_status"

    rfq_supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_suppliers.id", ondelete="CASCADE"),
        nullable=False,
    )
    rfq_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[LineStatus] = mapped_column(nullable=False, server_default="REQUEST")
    source_type: Mapped[str | None] = mapped_column(String(40))
    source_ref: Mapped[str | None] = mapped_column(String(255))
    last_request_rfq_revision_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_revisions.id", ondelete="SET NULL"),
    )
    last_response_revision_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_response_revisions.id", ondelete="SET NULL"),
    )
    note: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint(
            "rfq_supplier_id", "rfq_item_id", name="uq_rfq_supplier_line_status_pair"
        ),
        Index("ix_rfq_supplier_line_status_status", "status"),
    )
