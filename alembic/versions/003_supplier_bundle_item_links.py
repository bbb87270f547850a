"""Supplier parts offered for a kit role

Revision ID: 003
Revises: 002
Create Date: 2026-10-17

"""
from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE supplier_bundle_item_links (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            bundle_item_id UUID NOT NULL REFERENCES supplier_bundle_items(id) ON DELETE CASCADE,
            supplier_part_id UUID NOT NULL REFERENCES supplier_parts(id) ON DELETE CASCADE,
            is_default BOOLEAN NOT NULL DEFAULT false,
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_supplier_bundle_item_links_item_part UNIQUE (bundle_item_id, supplier_part_id)
        );
    """)
    op.execute(
        "CREATE INDEX ix_supplier_bundle_item_links_supplier_part_id "
        "ON supplier_bundle_item_links (supplier_part_id);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS supplier_bundle_item_links;")
