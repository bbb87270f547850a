from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partsource.database.base import Base, UUIDPrimaryKeyMixin
from partsource.models.enums import RfqRevisionType

if TYPE_CHECKING:
    from partsource.models.rfq import Rfq


class RfqRevision(UUIDPrimaryKeyMixin, Base):
    """Immutable snapshot: the RFQ was synced against a client revision. No updated_at."""

    __tablename__ = "rfq_revisions"

    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    rev_number: Mapped[int] = mapped_column(Integer, nullable=False)
    client_request_revision_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("client_request_revisions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    revision_type: Mapped[RfqRevisionType] = mapped_column(
        nullable=False, server_default="BASE"
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    rfq: Mapped[Rfq] = relationship(
        "Rfq", back_populates="revisions", foreign_keys=[rfq_id], lazy="noload"
    )

    __table_args__ = (
        UniqueConstraint("rfq_id", "rev_number", name="uq_rfq_revisions_rev_number"),
        Index("ix_rfq_revisions_client_request_revision_id", "client_request_revision_id"),
    )
