from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from partsource.models.original_part import OriginalPart


class BomEdge(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One parent -> child composition edge with a per-parent multiplier."""

    __tablename__ = "bom_edges"

    parent_part_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="CASCADE"),
        nullable=False,
    )
    child_part_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("original_parts.id", ondelete="CASCADE"),
        nullable=False,
    )
    equipment_model_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(15, 3), nullable=False, server_default="1"
    )

    parent: Mapped[OriginalPart] = relationship(
        "OriginalPart", foreign_keys=[parent_part_id], lazy="noload"
    )
    child: Mapped[OriginalPart] = relationship(
        "OriginalPart", foreign_keys=[child_part_id], lazy="noload"
    )

    __table_args__ = (
        UniqueConstraint("parent_part_id", "child_part_id", name="uq_bom_edges_parent_child"),
        CheckConstraint("quantity > 0", name="ck_bom_edges_quantity_positive"),
        CheckConstraint("parent_part_id <> child_part_id", name="ck_bom_edges_no_self_loop"),
        Index("ix_bom_edges_parent_part_id", "parent_part_id"),
        Index("ix_bom_edges_child_part_id", "child_part_id"),
    )
