from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partsource.models.enums import SelectionLineType


class RfqSupplierLineSelection(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Explicit per-supplier choice of which option row of an item to request."""

    __tablename__ = "rfq_supplier_line_selections"

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
    selection_key: Mapped[str | None] = mapped_column(String(255))
    line_type: Mapped[SelectionLineType] = mapped_column(nullable=False)
    original_part_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="SET NULL"),
    )
    alt_original_part_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="SET NULL"),
    )
    bundle_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_bundles.id", ondelete="SET NULL"),
    )
    bundle_item_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_bundle_items.id", ondelete="SET NULL"),
    )
    line_label: Mapped[str | None] = mapped_column(String(255))
    line_description: Mapped[str | None] = mapped_column(Text)
    qty: Mapped[Decimal | None] = mapped_column(Numeric(15, 3))
    uom: Mapped[str | None] = mapped_column(String(20))
    use_existing_price: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )

    __table_args__ = (
        Index("ix_rfq_supplier_line_selections_supplier", "rfq_supplier_id"),
        Index(
            "ix_rfq_supplier_line_selections_key",
            "rfq_supplier_id",
            "rfq_item_id",
            "selection_key",
        ),
    )
