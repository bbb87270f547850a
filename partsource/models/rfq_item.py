from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    CheckConstraint,
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

if TYPE_CHECKING:
    from partsource.models.client_request import ClientRequestRevisionItem
    from partsource.models.rfq import Rfq
    from partsource.models.rfq_item_component import RfqItemComponent
    from partsource.models.rfq_item_strategy import RfqItemStrategy


class RfqItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """An RFQ line derived 1:1 from a client request revision item.

    Items are never deleted on revision rollover; they are active only while
    their revision item belongs to the RFQ's current client revision.
    """

    __tablename__ = "rfq_items"

    rfq_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("rfqs.id", ondelete="CASCADE"),
        nullable=False,
    )
    client_request_revision_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("client_request_revision_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_qty: Mapped[Decimal] = mapped_column(Numeric(15, 3), nullable=False)
    uom: Mapped[str | None] = mapped_column(String(20))
    oem_only: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    note: Mapped[str | None] = mapped_column(Text)

    rfq: Mapped[Rfq] = relationship("Rfq", back_populates="items", lazy="noload")
    revision_item: Mapped[ClientRequestRevisionItem] = relationship(
        "ClientRequestRevisionItem", lazy="noload"
    )
    strategy: Mapped[RfqItemStrategy | None] = relationship(
        "RfqItemStrategy", back_populates="rfq_item", lazy="noload", cascade="all, delete-orphan"
    )
    components: Mapped[list[RfqItemComponent]] = relationship(
        "RfqItemComponent", back_populates="rfq_item", lazy="noload", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint(
            "rfq_id", "client_request_revision_item_id", name="uq_rfq_items_rfq_revision_item"
        ),
        CheckConstraint("requested_qty > 0", name="ck_rfq_items_requested_qty_positive"),
        Index("ix_rfq_items_rfq_id", "rfq_id"),
    )
