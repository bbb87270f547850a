from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class SupplierBundle(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A kit that can substitute for an original part."""

    __tablename__ = "supplier_bundles"

    original_part_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str | None] = mapped_column(String(255))

    items: Mapped[list[SupplierBundleItem]] = relationship(
        "SupplierBundleItem", back_populates="bundle", lazy="noload", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_supplier_bundles_original_part_id", "original_part_id"),)


class SupplierBundleItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One role of a kit and how many of it go into one kit."""

    __tablename__ = "supplier_bundle_items"

    bundle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_bundles.id", ondelete="CASCADE"),
        nullable=False,
    )
    role_label: Mapped[str | None] = mapped_column(String(255))
    qty: Mapped[Decimal] = mapped_column(Numeric(15, 3), nullable=False, server_default="1")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    bundle: Mapped[SupplierBundle] = relationship(
        "SupplierBundle", back_populates="items", lazy="noload"
    )

    __table_args__ = (Index("ix_supplier_bundle_items_bundle_id", "bundle_id"),)


class SupplierBundleItemLink(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A supplier part known to fill one kit role."""

    __tablename__ = "supplier_bundle_item_links"

    bundle_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_bundle_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplier_part_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_parts.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    note: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint(
            "bundle_item_id", "supplier_part_id", name="uq_supplier_bundle_item_links_item_part"
        ),
        Index("ix_supplier_bundle_item_links_supplier_part_id", "supplier_part_id"),
    )
