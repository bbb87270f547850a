from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partsource.models.enums import ComponentSourceType

if TYPE_CHECKING:
    from partsource.models.rfq_item import RfqItem


class RfqItemComponent(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Flattened sourcing leaf of an RFQ item. Replaced wholesale on rebuild."""

    __tablename__ = "rfq_item_components"

    rfq_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    original_part_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="RESTRICT"),
        nullable=False,
    )
    component_qty: Mapped[Decimal] = mapped_column(
        Numeric(15, 3), nullable=False, server_default="1"
    )
    required_qty: Mapped[Decimal] = mapped_column(
        Numeric(15, 3), nullable=False, server_default="1"
    )
    source_type: Mapped[ComponentSourceType] = mapped_column(
        nullable=False, server_default="BOM"
    )
    note: Mapped[str | None] = mapped_column(Text)

    rfq_item: Mapped[RfqItem] = relationship("RfqItem", back_populates="components", lazy="noload")

    __table_args__ = (
        UniqueConstraint(
            "rfq_item_id",
            "original_part_id",
            "source_type",
            name="uq_rfq_item_components_item_part_source",
        ),
        CheckConstraint("component_qty > 0", name="ck_rfq_item_components_qty_positive"),
        Index("ix_rfq_item_components_rfq_item_id", "rfq_item_id"),
    )
