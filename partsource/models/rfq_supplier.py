from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partsource.models.enums import RfqSupplierStatus

if TYPE_CHECKING:
    from partsource.models.rfq import Rfq
    from partsource.models.supplier import Supplier


class RfqSupplier(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "rfq_suppliers"

    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("suppliers.id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[RfqSupplierStatus] = mapped_column(
        nullable=False, server_default="INVITED"
    )
    language: Mapped[str] = mapped_column(String(5), nullable=False, server_default="ru")
    rfq_format: Mapped[str] = mapped_column(String(10), nullable=False, server_default="auto")
    note: Mapped[str | None] = mapped_column(Text)
    invited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    rfq: Mapped[Rfq] = relationship("Rfq", back_populates="suppliers", lazy="noload")
    supplier: Mapped[Supplier] = relationship("Supplier", lazy="noload")

    __table_args__ = (
        UniqueConstraint("rfq_id", "supplier_id", name="uq_rfq_suppliers_rfq_supplier"),
        Index("ix_rfq_suppliers_rfq_id", "rfq_id"),
    )


class RfqSupplierRevisionState(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Anchor for delta computation: the RFQ revision last sent to a supplier."""

    __tablename__ = "rfq_supplier_revision_state"

    rfq_supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_suppliers.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    last_sent_rfq_revision_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_revisions.id", ondelete="SET NULL"),
    )
