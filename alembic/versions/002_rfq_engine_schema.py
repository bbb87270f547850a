"""Parts, BOM, client requests and the RFQ engine tables

Revision ID: 002
Revises: 001
Create Date: 2026-10-17

Creates: original_parts, bom_edges, suppliers, supplier_parts, supplier_part_prices,
         supplier_bundles, supplier_bundle_items, client_requests, client_request_revisions,
         client_request_revision_items, rfqs, rfq_revisions, rfq_items, rfq_item_strategies,
         rfq_item_components, rfq_suppliers, rfq_supplier_revision_state,
         rfq_supplier_line_selections, rfq_response_revisions, rfq_supplier_line_status,
         rfq_response_lines, rfq_response_line_actions, rfq_documents,
         rfq_supplier_dispatches, event_outbox
Enums: rfqstatus, rfqrevisiontype, rfqsupplierstatus, strategymode, componentsourcetype,
       selectionlinetype, linestatus, dispatchtype, offertype, supplierreplystatus,
       responseentrysource, responseactiontype, eventstatus
"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ENUMS: dict[str, tuple[str, ...]] = {
    "rfqstatus": ("DRAFT", "STRUCTURED", "SENT"),
    "rfqrevisiontype": ("BASE", "SYNC"),
    "rfqsupplierstatus": ("INVITED", "SENT", "RESPONDED"),
    "strategymode": ("SINGLE", "BOM", "MIXED"),
    "componentsourcetype": ("SELF", "BOM", "MANUAL"),
    "selectionlinetype": ("DEMAND", "BOM_COMPONENT", "KIT_ROLE"),
    "linestatus": ("REQUEST", "NONE", "ACCEPTED_EXISTING", "ARCHIVED"),
    "dispatchtype": ("FULL", "DELTA"),
    "offertype": ("OEM", "ANALOG", "UNKNOWN"),
    "supplierreplystatus": (
        "QUOTED", "NO_STOCK", "DISCONTINUED", "NEEDS_CLARIFICATION", "NO_RESPONSE",
    ),
    "responseentrysource": ("SUPPLIER_FILE", "ACCEPTED_EXISTING"),
    "responseactiontype": ("CREATE", "CORRECT"),
    "eventstatus": ("PENDING", "PROCESSING", "COMPLETED", "FAILED"),
}

_TABLES_IN_DROP_ORDER = (
    "event_outbox",
    "rfq_supplier_dispatches",
    "rfq_documents",
    "rfq_response_line_actions",
    "rfq_response_lines",
    "rfq_supplier_line_status",
    "rfq_response_revisions",
    "rfq_supplier_line_selections",
    "rfq_supplier_revision_state",
    "rfq_suppliers",
    "rfq_item_components",
    "rfq_item_strategies",
    "rfq_items",
    "rfq_revisions",
    "rfqs",
    "client_request_revision_items",
    "client_request_revisions",
    "client_requests",
    "supplier_bundle_items",
    "supplier_bundles",
    "supplier_part_prices",
    "supplier_parts",
    "suppliers",
    "bom_edges",
    "original_parts",
)


def upgrade() -> None:
    # ── 1. Enum types ─────────────────────────────────────────────────────
    for name, values in _ENUMS.items():
        labels = ", ".join(f"'{value}'" for value in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({labels});")

    # ── 2. Parts and bills of materials ───────────────────────────────────
    op.execute("""
        CREATE TABLE original_parts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            cat_number VARCHAR(100) NOT NULL,
            description_ru TEXT,
            description_en TEXT,
            uom VARCHAR(20),
            equipment_model_id UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_original_parts_model_cat_number UNIQUE (equipment_model_id, cat_number)
        );
    """)
    op.execute("CREATE INDEX ix_original_parts_cat_number ON original_parts (cat_number);")

    op.execute("""
        CREATE TABLE bom_edges (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            parent_part_id UUID NOT NULL REFERENCES original_parts(id) ON DELETE CASCADE,
            child_part_id UUID NOT NULL REFERENCES original_parts(id) ON DELETE CASCADE,
            equipment_model_id UUID,
            quantity NUMERIC(15,3) NOT NULL DEFAULT 1,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_bom_edges_parent_child UNIQUE (parent_part_id, child_part_id),
            CONSTRAINT ck_bom_edges_quantity_positive CHECK (quantity > 0),
            CONSTRAINT ck_bom_edges_no_self_loop CHECK (parent_part_id <> child_part_id)
        );
    """)
    op.execute("CREATE INDEX ix_bom_edges_parent_part_id ON bom_edges (parent_part_id);")
    op.execute("CREATE INDEX ix_bom_edges_child_part_id ON bom_edges (child_part_id);")

    # ── 3. Suppliers, supplier parts, price history and kits ──────────────
    op.execute("""
        CREATE TABLE suppliers (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            default_language VARCHAR(5),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("""
        CREATE TABLE supplier_parts (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            supplier_id UUID NOT NULL REFERENCES suppliers(id) ON DELETE CASCADE,
            supplier_part_number VARCHAR(120) NOT NULL,
            canonical_part_number VARCHAR(120),
            description TEXT,
            part_type offertype NOT NULL DEFAULT 'UNKNOWN',
            lead_time_days INTEGER,
            min_order_qty NUMERIC(15,3),
            packaging VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_supplier_parts_supplier_number UNIQUE (supplier_id, supplier_part_number)
        );
    """)
    op.execute(
        "CREATE INDEX ix_supplier_parts_canonical ON supplier_parts (supplier_id, canonical_part_number);"
    )
    op.execute("""
        CREATE TABLE supplier_part_prices (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            supplier_part_id UUID NOT NULL REFERENCES supplier_parts(id) ON DELETE CASCADE,
            price NUMERIC(15,4),
            currency VARCHAR(3),
            offer_type offertype NOT NULL DEFAULT 'UNKNOWN',
            lead_time_days INTEGER,
            min_order_qty NUMERIC(15,3),
            packaging VARCHAR(255),
            validity_days INTEGER,
            source_type VARCHAR(40) NOT NULL,
            source_subtype VARCHAR(40),
            source_id UUID,
            comment TEXT,
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_supplier_part_prices_part_created "
        "ON supplier_part_prices (supplier_part_id, created_at);"
    )
    op.execute("""
        CREATE TABLE supplier_bundles (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            original_part_id UUID NOT NULL REFERENCES original_parts(id) ON DELETE CASCADE,
            title VARCHAR(255),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_supplier_bundles_original_part_id ON supplier_bundles (original_part_id);"
    )
    op.execute("""
        CREATE TABLE supplier_bundle_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            bundle_id UUID NOT NULL REFERENCES supplier_bundles(id) ON DELETE CASCADE,
            role_label VARCHAR(255),
            qty NUMERIC(15,3) NOT NULL DEFAULT 1,
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_supplier_bundle_items_bundle_id ON supplier_bundle_items (bundle_id);"
    )

    # ── 4. Client requests and their revisions ────────────────────────────
    op.execute("""
        CREATE TABLE client_requests (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            request_number VARCHAR(50) NOT NULL UNIQUE,
            client_name VARCHAR(255),
            released_to_procurement_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("""
        CREATE TABLE client_request_revisions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            client_request_id UUID NOT NULL REFERENCES client_requests(id) ON DELETE CASCADE,
            rev_number INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_client_request_revisions_rev UNIQUE (client_request_id, rev_number)
        );
    """)
    op.execute("""
        CREATE TABLE client_request_revision_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            client_request_revision_id UUID NOT NULL
                REFERENCES client_request_revisions(id) ON DELETE CASCADE,
            line_number INTEGER NOT NULL,
            original_part_id UUID REFERENCES original_parts(id) ON DELETE SET NULL,
            client_part_number VARCHAR(100),
            client_description TEXT,
            requested_qty NUMERIC(15,3) NOT NULL,
            uom VARCHAR(20),
            oem_only BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_client_request_revision_items_line
                UNIQUE (client_request_revision_id, line_number),
            CONSTRAINT ck_client_request_revision_items_qty_positive CHECK (requested_qty > 0)
        );
    """)
    op.execute(
        "CREATE INDEX ix_client_request_revision_items_revision_id "
        "ON client_request_revision_items (client_request_revision_id);"
    )

    # ── 5. RFQs, snapshots and lines ──────────────────────────────────────
    op.execute("""
        CREATE TABLE rfqs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_number VARCHAR(60) NOT NULL UNIQUE,
            client_request_id UUID NOT NULL UNIQUE
                REFERENCES client_requests(id) ON DELETE RESTRICT,
            client_request_revision_id UUID NOT NULL
                REFERENCES client_request_revisions(id) ON DELETE RESTRICT,
            current_rfq_revision_id UUID,
            status rfqstatus NOT NULL DEFAULT 'DRAFT',
            created_by UUID,
            assigned_to UUID,
            note TEXT,
            last_synced_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_rfqs_status ON rfqs (status);")
    op.execute("CREATE INDEX ix_rfqs_assigned_to ON rfqs (assigned_to);")
    op.execute(
        "CREATE INDEX ix_rfqs_client_request_revision_id ON rfqs (client_request_revision_id);"
    )

    op.execute("""
        CREATE TABLE rfq_revisions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            rev_number INTEGER NOT NULL,
            client_request_revision_id UUID NOT NULL
                REFERENCES client_request_revisions(id) ON DELETE RESTRICT,
            revision_type rfqrevisiontype NOT NULL DEFAULT 'BASE',
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_rfq_revisions_rev_number UNIQUE (rfq_id, rev_number)
        );
    """)
    op.execute(
        "CREATE INDEX ix_rfq_revisions_client_request_revision_id "
        "ON rfq_revisions (client_request_revision_id);"
    )
    op.execute("""
        ALTER TABLE rfqs
            ADD CONSTRAINT fk_rfqs_current_rfq_revision_id
            FOREIGN KEY (current_rfq_revision_id) REFERENCES rfq_revisions(id) ON DELETE SET NULL;
    """)

    op.execute("""
        CREATE TABLE rfq_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            client_request_revision_item_id UUID NOT NULL
                REFERENCES client_request_revision_items(id) ON DELETE CASCADE,
            line_number INTEGER NOT NULL,
            requested_qty NUMERIC(15,3) NOT NULL,
            uom VARCHAR(20),
            oem_only BOOLEAN NOT NULL DEFAULT false,
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_rfq_items_rfq_revision_item UNIQUE (rfq_id, client_request_revision_item_id),
            CONSTRAINT ck_rfq_items_requested_qty_positive CHECK (requested_qty > 0)
        );
    """)
    op.execute("CREATE INDEX ix_rfq_items_rfq_id ON rfq_items (rfq_id);")

    op.execute("""
        CREATE TABLE rfq_item_strategies (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_item_id UUID NOT NULL UNIQUE REFERENCES rfq_items(id) ON DELETE CASCADE,
            mode strategymode NOT NULL DEFAULT 'SINGLE',
            allow_oem BOOLEAN NOT NULL DEFAULT true,
            allow_analog BOOLEAN NOT NULL DEFAULT true,
            allow_kit BOOLEAN NOT NULL DEFAULT true,
            allow_partial BOOLEAN NOT NULL DEFAULT false,
            selected_bundle_id UUID REFERENCES supplier_bundles(id) ON DELETE SET NULL,
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("""
        CREATE TABLE rfq_item_components (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_item_id UUID NOT NULL REFERENCES rfq_items(id) ON DELETE CASCADE,
            original_part_id UUID NOT NULL REFERENCES original_parts(id) ON DELETE RESTRICT,
            component_qty NUMERIC(15,3) NOT NULL DEFAULT 1,
            required_qty NUMERIC(15,3) NOT NULL DEFAULT 1,
            source_type componentsourcetype NOT NULL DEFAULT 'BOM',
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_rfq_item_components_item_part_source
                UNIQUE (rfq_item_id, original_part_id, source_type),
            CONSTRAINT ck_rfq_item_components_qty_positive CHECK (component_qty > 0)
        );
    """)
    op.execute(
        "CREATE INDEX ix_rfq_item_components_rfq_item_id ON rfq_item_components (rfq_item_id);"
    )

    # ── 6. Invited suppliers, selections and delta anchors ────────────────
    op.execute("""
        CREATE TABLE rfq_suppliers (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            supplier_id UUID NOT NULL REFERENCES suppliers(id) ON DELETE RESTRICT,
            status rfqsupplierstatus NOT NULL DEFAULT 'INVITED',
            language VARCHAR(5) NOT NULL DEFAULT 'ru',
            rfq_format VARCHAR(10) NOT NULL DEFAULT 'auto',
            note TEXT,
            invited_at TIMESTAMPTZ,
            sent_at TIMESTAMPTZ,
            responded_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_rfq_suppliers_rfq_supplier UNIQUE (rfq_id, supplier_id)
        );
    """)
    op.execute("CREATE INDEX ix_rfq_suppliers_rfq_id ON rfq_suppliers (rfq_id);")

    op.execute("""
        CREATE TABLE rfq_supplier_revision_state (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_supplier_id UUID NOT NULL UNIQUE REFERENCES rfq_suppliers(id) ON DELETE CASCADE,
            last_sent_rfq_revision_id UUID REFERENCES rfq_revisions(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("""
        CREATE TABLE rfq_supplier_line_selections (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_supplier_id UUID NOT NULL REFERENCES rfq_suppliers(id) ON DELETE CASCADE,
            rfq_item_id UUID NOT NULL REFERENCES rfq_items(id) ON DELETE CASCADE,
            selection_key VARCHAR(255),
            line_type selectionlinetype NOT NULL,
            original_part_id UUID REFERENCES original_parts(id) ON DELETE SET NULL,
            alt_original_part_id UUID REFERENCES original_parts(id) ON DELETE SET NULL,
            bundle_id UUID REFERENCES supplier_bundles(id) ON DELETE SET NULL,
            bundle_item_id UUID REFERENCES supplier_bundle_items(id) ON DELETE SET NULL,
            line_label VARCHAR(255),
            line_description TEXT,
            qty NUMERIC(15,3),
            uom VARCHAR(20),
            use_existing_price BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_rfq_supplier_line_selections_supplier "
        "ON rfq_supplier_line_selections (rfq_supplier_id);"
    )
    op.execute(
        "CREATE INDEX ix_rfq_supplier_line_selections_key "
        "ON rfq_supplier_line_selections (rfq_supplier_id, rfq_item_id, selection_key);"
    )

    # ── 7. Response history and line status ───────────────────────────────
    op.execute("""
        CREATE TABLE rfq_response_revisions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_supplier_id UUID NOT NULL REFERENCES rfq_suppliers(id) ON DELETE CASCADE,
            rev_number INTEGER NOT NULL,
            note TEXT,
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_rfq_response_revisions_rev_number UNIQUE (rfq_supplier_id, rev_number)
        );
    """)
    op.execute("""
        CREATE TABLE rfq_supplier_line_status (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_supplier_id UUID NOT NULL REFERENCES rfq_suppliers(id) ON DELETE CASCADE,
            rfq_item_id UUID NOT NULL REFERENCES rfq_items(id) ON DELETE CASCADE,
            status linestatus NOT NULL DEFAULT 'REQUEST',
            source_type VARCHAR(40),
            source_ref VARCHAR(255),
            last_request_rfq_revision_id UUID REFERENCES rfq_revisions(id) ON DELETE SET NULL,
            last_response_revision_id UUID REFERENCES rfq_response_revisions(id) ON DELETE SET NULL,
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_rfq_supplier_line_status_pair UNIQUE (rfq_supplier_id, rfq_item_id)
        );
    """)
    op.execute(
        "CREATE INDEX ix_rfq_supplier_line_status_status ON rfq_supplier_line_status (status);"
    )
    op.execute("""
        CREATE TABLE rfq_response_lines (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_response_revision_id UUID NOT NULL
                REFERENCES rfq_response_revisions(id) ON DELETE RESTRICT,
            rfq_item_id UUID NOT NULL REFERENCES rfq_items(id) ON DELETE CASCADE,
            selection_key VARCHAR(255),
            rfq_item_component_id UUID REFERENCES rfq_item_components(id) ON DELETE SET NULL,
            supplier_part_id UUID REFERENCES supplier_parts(id) ON DELETE SET NULL,
            original_part_id UUID REFERENCES original_parts(id) ON DELETE SET NULL,
            requested_original_part_id UUID REFERENCES original_parts(id) ON DELETE SET NULL,
            bundle_id UUID REFERENCES supplier_bundles(id) ON DELETE SET NULL,
            offer_type offertype NOT NULL DEFAULT 'UNKNOWN',
            supplier_reply_status supplierreplystatus NOT NULL DEFAULT 'QUOTED',
            offered_qty NUMERIC(15,3),
            moq NUMERIC(15,3),
            packaging VARCHAR(255),
            lead_time_days INTEGER,
            price NUMERIC(15,4),
            currency VARCHAR(3),
            validity_days INTEGER,
            payment_terms VARCHAR(255),
            incoterms VARCHAR(20),
            note TEXT,
            entry_source responseentrysource NOT NULL,
            change_reason TEXT,
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_rfq_response_lines_revision_id "
        "ON rfq_response_lines (rfq_response_revision_id);"
    )
    op.execute("CREATE INDEX ix_rfq_response_lines_rfq_item_id ON rfq_response_lines (rfq_item_id);")
    op.execute("""
        CREATE TABLE rfq_response_line_actions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_response_line_id UUID NOT NULL REFERENCES rfq_response_lines(id) ON DELETE CASCADE,
            action_type responseactiontype NOT NULL DEFAULT 'CREATE',
            payload JSONB,
            reason TEXT,
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_rfq_response_line_actions_line_id "
        "ON rfq_response_line_actions (rfq_response_line_id);"
    )

    # ── 8. Documents and dispatch records ─────────────────────────────────
    op.execute("""
        CREATE TABLE rfq_documents (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            rfq_supplier_id UUID NOT NULL REFERENCES rfq_suppliers(id) ON DELETE CASCADE,
            file_name VARCHAR(255) NOT NULL,
            file_url VARCHAR(1024),
            content_type VARCHAR(120) NOT NULL,
            language VARCHAR(5) NOT NULL DEFAULT 'ru',
            payload_hash VARCHAR(64) NOT NULL,
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_rfq_documents_rfq_id ON rfq_documents (rfq_id);")
    op.execute("""
        CREATE TABLE rfq_supplier_dispatches (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            rfq_supplier_id UUID NOT NULL REFERENCES rfq_suppliers(id) ON DELETE CASCADE,
            rfq_revision_id UUID REFERENCES rfq_revisions(id) ON DELETE SET NULL,
            document_id UUID REFERENCES rfq_documents(id) ON DELETE SET NULL,
            dispatch_type dispatchtype NOT NULL,
            payload_hash VARCHAR(64) NOT NULL,
            note JSONB NOT NULL DEFAULT '{}',
            sent_by UUID,
            sent_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_rfq_supplier_dispatches_rfq_id ON rfq_supplier_dispatches (rfq_id);")
    op.execute(
        "CREATE INDEX ix_rfq_supplier_dispatches_supplier_sent "
        "ON rfq_supplier_dispatches (rfq_supplier_id, sent_at);"
    )

    # ── 9. Transactional outbox ───────────────────────────────────────────
    op.execute("""
        CREATE TABLE event_outbox (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_type VARCHAR(120) NOT NULL,
            aggregate_type VARCHAR(60) NOT NULL,
            aggregate_id UUID NOT NULL,
            recipient_id UUID,
            payload JSONB NOT NULL DEFAULT '{}',
            status eventstatus NOT NULL DEFAULT 'PENDING',
            processed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_event_outbox_aggregate ON event_outbox (aggregate_type, aggregate_id);"
    )
    op.execute(
        "CREATE INDEX ix_event_outbox_pending ON event_outbox (created_at) WHERE status = 'PENDING';"
    )


def downgrade() -> None:
    op.execute("ALTER TABLE rfqs DROP CONSTRAINT IF EXISTS fk_rfqs_current_rfq_revision_id;")
    for table in _TABLES_IN_DROP_ORDER:
        op.execute(f"DROP TABLE IF EXISTS {table};")
    for name in reversed(list(_ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name};")
