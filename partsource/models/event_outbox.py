from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from partsource.database.base import Base, UUIDPrimaryKeyMixin
from partsource.models.enums import EventStatus


class EventOutbox(UUIDPrimaryKeyMixin, Base):
    """Notification written in the same transaction as the change it announces.

    Delivery is owned by whatever consumes the table; the engine only inserts
    PENDING rows.
    """

    __tablename__ = "event_outbox"

    event_type: Mapped[str] = mapped_column(String(120), nullable=False)
    aggregate_type: Mapped[str] = mapped_column(String(60), nullable=False)
    aggregate_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    recipient_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
    status: Mapped[EventStatus] = mapped_column(nullable=False, server_default="PENDING")
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_event_outbox_aggregate", "aggregate_type", "aggregate_id"),
        Index(
            "ix_event_outbox_pending",
            "created_at",
            postgresql_where=(status == EventStatus.PENDING),
        ),
    )

    def __repr__(self) -> str:
        return f"<EventOutbox {self.event_type} {self.aggregate_type}/{self.aggregate_id}>"
