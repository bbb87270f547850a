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
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partsource.models.enums import OfferType


class Supplier(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    default_language: Mapped[str | None] = mapped_column(String(5))


class SupplierPart(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A supplier's own catalog entry, keyed by its part number."""

    __tablename__ = "supplier_parts"

    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplier_part_number: Mapped[str] = mapped_column(String(120), nullable=False)
    canonical_part_number: Mapped[str | None] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(Text)
    part_type: Mapped[OfferType] = mapped_column(nullable=False, server_default="UNKNOWN")
    lead_time_days: Mapped[int | None] = mapped_column(Integer)
    min_order_qty: Mapped[Decimal | None] = mapped_column(Numeric(15, 3))
    packaging: Mapped[str | None] = mapped_column(String(255))

    __table_args__ = (
        UniqueConstraint(
            "supplier_id", "supplier_part_number", name="uq_supplier_parts_supplier_number"
        ),
        Index("ix_supplier_parts_canonical", "supplier_id", "canonical_part_number"),
    )


class SupplierPartPrice(UUIDPrimaryKeyMixin, Base):
    """Append-only price history of a supplier part. No updated_at."""

    __tablename__ = "supplier_part_prices"

    supplier_part_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_parts.id", ondelete="CASCADE"),
        nullable=False,
    )
    price: Mapped[Decimal | None] = mapped_column(Numeric(15, 4))
    currency: Mapped[str | None] = mapped_column(String(3))
    offer_type: Mapped[OfferType] = mapped_column(nullable=False, server_default="UNKNOWN")
    lead_time_days: Mapped[int | None] = mapped_column(Integer)
    min_order_qty: Mapped[Decimal | None] = mapped_column(Numeric(15, 3))
    packaging: Mapped[str | None] = mapped_column(String(255))
    validity_days: Mapped[int | None] = mapped_column(Integer)
    source_type: Mapped[str] = mapped_column(String(40), nullable=False)
    source_subtype: Mapped[str | None] = mapped_column(String(40))
    source_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    comment: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_supplier_part_prices_part_created", "supplier_part_id", "created_at"),
    )
