from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from partsource.database.base import Base, UUIDPrimaryKeyMixin
from partsource.models.enums import DispatchType


class RfqDocument(UUIDPrimaryKeyMixin, Base):
    """A rendered supplier-facing RFQ document."""

    __tablename__ = "rfq_documents"

    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    rfq_supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_suppliers.id", ondelete="CASCADE"),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str | None] = mapped_column(String(1024))
    content_type: Mapped[str] = mapped_column(String(120), nullable=False)
    language: Mapped[str] = mapped_column(String(5), nullable=False, server_default="ru")
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (Index("ix_rfq_documents_rfq_id", "rfq_id"),)


class RfqSupplierDispatch(UUIDPrimaryKeyMixin, Base):
    """Immutable record of one send to one supplier."""

    __tablename__ = "rfq_supplier_dispatches"

    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    rfq_supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_suppliers.id", ondelete="CASCADE"),
        nullable=False,
    )
    rfq_revision_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_revisions.id", ondelete="SET NULL"),
    )
    document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_documents.id", ondelete="SET NULL"),
    )
    dispatch_type: Mapped[DispatchType] = mapped_column(nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    note: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
    sent_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_rfq_supplier_dispatches_rfq_id", "rfq_id"),
        Index("ix_rfq_supplier_dispatches_supplier_sent", "rfq_supplier_id", "sent_at"),
    )
