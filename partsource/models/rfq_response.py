from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from partsource.database.base import Base, UUIDPrimaryKeyMixin
from partsource.models.enums import (
    OfferType,
    ResponseActionType,
    ResponseEntrySource,
    SupplierReplyStatus,
)


class RfqResponseRevision(UUIDPrimaryKeyMixin, Base):
    """One numbered submission round of a supplier. Never updated."""

    __tablename__ = "rfq_response_revisions"

    rfq_supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_suppliers.id", ondelete="CASCADE"),
        nullable=False,
    )
    rev_number: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "rfq_supplier_id", "rev_number", name="uq_rfq_response_revisions_rev_number"
        ),
    )


class RfqResponseLine(UUIDPrimaryKeyMixin, Base):
    """Append-only priced line; corrections are new rows with a change_reason."""

    __tablename__ = "rfq_response_lines"

    rfq_response_revision_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_response_revisions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    rfq_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    selection_key: Mapped[str | None] = mapped_column(String(255))
    rfq_item_component_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_item_components.id", ondelete="SET NULL"),
    )
    supplier_part_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_parts.id", ondelete="SET NULL"),
    )
    original_part_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="SET NULL"),
    )
    requested_original_part_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="SET NULL"),
    )
    bundle_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_bundles.id", ondelete="SET NULL"),
    )
    offer_type: Mapped[OfferType] = mapped_column(nullable=False, server_default="UNKNOWN")
    supplier_reply_status: Mapped[SupplierReplyStatus] = mapped_column(
        nullable=False, server_default="QUOTED"
    )
    offered_qty: Mapped[Decimal | None] = mapped_column(Numeric(15, 3))
    moq: Mapped[Decimal | None] = mapped_column(Numeric(15, 3))
    packaging: Mapped[str | None] = mapped_column(String(255))
    lead_time_days: Mapped[int | None] = mapped_column(Integer)
    price: Mapped[Decimal | None] = mapped_column(Numeric(15, 4))
    currency: Mapped[str | None] = mapped_column(String(3))
    validity_days: Mapped[int | None] = mapped_column(Integer)
    payment_terms: Mapped[str | None] = mapped_column(String(255))
    incoterms: Mapped[str | None] = mapped_column(String(20))
    note: Mapped[str | None] = mapped_column(Text)
    entry_source: Mapped[ResponseEntrySource] = mapped_column(nullable=False)
    change_reason: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_rfq_response_lines_revision_id", "rfq_response_revision_id"),
        Index("ix_rfq_response_lines_rfq_item_id", "rfq_item_id"),
    )


class RfqResponseLineAction(UUIDPrimaryKeyMixin, Base):
    """Audit row for every write into the response history."""

    __tablename__ = "rfq_response_line_actions"

    rfq_response_line_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_response_lines.id", ondelete="CASCADE"),
        nullable=False,
    )
    action_type: Mapped[ResponseActionType] = mapped_column(
        nullable=False, server_default="CREATE"
    )
    payload: Mapped[dict | None] = mapped_column(JSONB)
    reason: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_rfq_response_line_actions_line_id", "rfq_response_line_id"),
    )
