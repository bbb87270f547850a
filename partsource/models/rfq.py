from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partsource.models.enums import RfqStatus

if TYPE_CHECKING:
    from partsource.models.rfq_item import RfqItem
    from partsource.models.rfq_revision import RfqRevision
    from partsource.models.rfq_supplier import RfqSupplier


class Rfq(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One procurement round per client request.

    ``client_request_revision_id`` is the client revision whose lines are
    currently active; ``current_rfq_revision_id`` points at the snapshot
    taken when that revision was synced.
    """

    __tablename__ = "rfqs"

    rfq_number: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)
    client_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("client_requests.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    client_request_revision_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("client_request_revisions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    current_rfq_revision_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_revisions.id", ondelete="SET NULL", use_alter=True),
    )
    status: Mapped[RfqStatus] = mapped_column(nullable=False, server_default="DRAFT")
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    note: Mapped[str | None] = mapped_column(Text)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    items: Mapped[list[RfqItem]] = relationship(
        "RfqItem", back_populates="rfq", lazy="noload", cascade="all, delete-orphan"
    )
    revisions: Mapped[list[RfqRevision]] = relationship(
        "RfqRevision",
        back_populates="rfq",
        foreign_keys="RfqRevision.rfq_id",
        lazy="noload",
        cascade="all, delete-orphan",
    )
    suppliers: Mapped[list[RfqSupplier]] = relationship(
        "RfqSupplier", back_populates="rfq", lazy="noload", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_rfqs_status", "status"),
        Index("ix_rfqs_assigned_to", "assigned_to"),
        Index("ix_rfqs_client_request_revision_id", "client_request_revision_id"),
    )
