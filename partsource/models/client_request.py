from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ClientRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "client_requests"

    request_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    client_name: Mapped[str | None] = mapped_column(String(255))
    released_to_procurement_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    revisions: Mapped[list[ClientRequestRevision]] = relationship(
        "ClientRequestRevision", back_populates="client_request", lazy="noload"
    )


class ClientRequestRevision(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "client_request_revisions"

    client_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("client_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    rev_number: Mapped[int] = mapped_column(Integer, nullable=False)

    client_request: Mapped[ClientRequest] = relationship(
        "ClientRequest", back_populates="revisions", lazy="noload"
    )
    items: Mapped[list[ClientRequestRevisionItem]] = relationship(
        "ClientRequestRevisionItem", back_populates="revision", lazy="noload"
    )

    __table_args__ = (
        UniqueConstraint(
            "client_request_id", "rev_number", name="uq_client_request_revisions_rev"
        ),
    )


class ClientRequestRevisionItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One requested line of a client request revision."""

    __tablename__ = "client_request_revision_items"

    client_request_revision_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("client_request_revisions.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    original_part_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="SET NULL"),
    )
    client_part_number: Mapped[str | None] = mapped_column(String(100))
    client_description: Mapped[str | None] = mapped_column(Text)
    requested_qty: Mapped[Decimal] = mapped_column(Numeric(15, 3), nullable=False)
    uom: Mapped[str | None] = mapped_column(String(20))
    oem_only: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")

    revision: Mapped[ClientRequestRevision] = relationship(
        "ClientRequestRevision", back_populates="items", lazy="noload"
    )

    __table_args__ = (
        UniqueConstraint(
            "client_request_revision_id", "line_number", name="uq_client_request_revision_items_line"
        ),
        CheckConstraint("requested_qty > 0", name="ck_client_request_revision_items_qty_positive"),
        Index("ix_client_request_revision_items_revision_id", "client_request_revision_id"),
    )
