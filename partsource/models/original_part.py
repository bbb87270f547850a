from __future__ import annotations

import uuid

from sqlalchemy import Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from partsource.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class OriginalPart(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Part master record. BOM edges, request lines and bundles point here."""

    __tablename__ = "original_parts"

    cat_number: Mapped[str] = mapped_column(String(100), nullable=False)
    description_ru: Mapped[str | None] = mapped_column(Text)
    description_en: Mapped[str | None] = mapped_column(Text)
    uom: Mapped[str | None] = mapped_column(String(20))
    equipment_model_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    @property
    def description(self) -> str | None:
        return self.description_ru or self.description_en

    __table_args__ = (
        UniqueConstraint(
            "equipment_model_id", "cat_number", name="uq_original_parts_model_cat_number"
        ),
        Index("ix_original_parts_cat_number", "cat_number"),
    )
