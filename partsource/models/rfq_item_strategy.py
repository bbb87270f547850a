from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partsource.models.enums import StrategyMode

if TYPE_CHECKING:
    from partsource.models.rfq_item import RfqItem


class RfqItemStrategy(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "rfq_item_strategies"

    rfq_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfq_items.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    mode: Mapped[StrategyMode] = mapped_column(nullable=False, server_default="SINGLE")
    allow_oem: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    allow_analog: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    allow_kit: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    allow_partial: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    selected_bundle_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("supplier_bundles.id", ondelete="SET NULL"),
    )
    note: Mapped[str | None] = mapped_column(Text)

    rfq_item: Mapped[RfqItem] = relationship("RfqItem", back_populates="strategy", lazy="noload")
