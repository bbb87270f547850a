"""Structure builder: sourcing option trees and flattened components.

Everything here is pure. ``StructureService`` loads items, strategies, BOM
edges and bundles, then hands them to these functions; the same functions
back the structure endpoints, confirmation and document rows for dispatch.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from partsource.models.enums import (
    ComponentSourceType,
    RfqFormat,
    SelectionLineType,
    StrategyMode,
    StructureOptionType,
)
from partsource.modules.rfq.constants import OPTION_LABELS

if TYPE_CHECKING:
    from partsource.modules.bom.graph import Adjacency

ONE = Decimal(1)


@dataclass(frozen=True)
class PartInfo:
    id: uuid.UUID
    cat_number: str | None = None
    description_ru: str | None = None
    description_en: str | None = None
    uom: str | None = None

    @property
    def description(self) -> str | None:
        return self.description_ru or self.description_en


@dataclass(frozen=True)
class StructureItemInput:
    """One active RFQ line joined with its client revision line."""

    rfq_item_id: uuid.UUID
    line_number: int
    requested_qty: Decimal
    uom: str | None = None
    original_part_id: uuid.UUID | None = None
    original_cat_number: str | None = None
    client_part_number: str | None = None
    client_description: str | None = None
    description_ru: str | None = None
    description_en: str | None = None
    oem_only: bool = False

    @property
    def description(self) -> str | None:
        return self.description_ru or self.description_en or self.client_description

    @property
    def label(self) -> str:
        return self.original_cat_number or self.client_part_number or ""


@dataclass(frozen=True)
class StrategySettings:
    mode: StrategyMode
    allow_oem: bool = True
    allow_analog: bool = True
    allow_kit: bool = True
    allow_partial: bool = False
    selected_bundle_id: uuid.UUID | None = None
    note: str | None = None
    is_initialized: bool = False


@dataclass(frozen=True)
class ComponentSpec:
    original_part_id: uuid.UUID
    component_qty: Decimal
    required_qty: Decimal
    source_type: ComponentSourceType


@dataclass(frozen=True)
class BundleRole:
    bundle_item_id: uuid.UUID
    role_label: str | None
    qty: Decimal
    sort_order: int = 0


@dataclass(frozen=True)
class BundleRef:
    bundle_id: uuid.UUID
    title: str | None = None
    roles: tuple[BundleRole, ...] = ()


@dataclass
class StructureNode:
    key: str
    type: SelectionLineType
    required_qty: Decimal
    qty_per_parent: Decimal
    uom: str | None = None
    original_part_id: uuid.UUID | None = None
    cat_number: str | None = None
    description: str | None = None
    bundle_id: uuid.UUID | None = None
    bundle_item_id: uuid.UUID | None = None
    role_label: str | None = None
    bundle_ids: list[uuid.UUID] = field(default_factory=list)
    children: list[StructureNode] = field(default_factory=list)


@dataclass
class StructureOption:
    key: str
    type: StructureOptionType
    label: str
    available: bool
    enabled: bool
    selection_required: bool = False
    children: list[StructureNode] = field(default_factory=list)


@dataclass
class MasterItem:
    item: StructureItemInput
    strategy: StrategySettings
    has_bom: bool
    bundle_ids: list[uuid.UUID]
    effective_bundle_id: uuid.UUID | None
    options: list[StructureOption]

    @property
    def unresolved(self) -> bool:
        return self.item.original_part_id is None

    def option(self, option_type: StructureOptionType) -> StructureOption:
        return next(opt for opt in self.options if opt.type == option_type)


@dataclass(frozen=True)
class DocumentRow:
    rfq_item_id: uuid.UUID
    line_number: int
    type: str
    indent: int
    selection_key: str
    label: str = ""
    description: str = ""
    qty: Decimal | None = None
    uom: str | None = None
    original_part_id: uuid.UUID | None = None
    bundle_id: uuid.UUID | None = None
    bundle_item_id: uuid.UUID | None = None


# ----------------------------------------------------------------------
# Selection keys
# ----------------------------------------------------------------------


def demand_key(rfq_item_id: uuid.UUID) -> str:
    return f"item:{rfq_item_id}"


def bom_key(rfq_item_id: uuid.UUID, path: list[uuid.UUID]) -> str:
    return f"bom:{rfq_item_id}:" + ">".join(str(p) for p in path)


def kit_key(bundle_id: uuid.UUID, bundle_item_id: uuid.UUID) -> str:
    return f"kit:{bundle_id}:{bundle_item_id}"


# ----------------------------------------------------------------------
# Strategy and flattened components
# ----------------------------------------------------------------------


def default_strategy(has_bom: bool) -> StrategySettings:
    """BOM when a bill of materials exists, otherwise SINGLE."""
    return StrategySettings(
        mode=StrategyMode.BOM if has_bom else StrategyMode.SINGLE,
        allow_partial=has_bom,
    )


def build_components(
    original_part_id: uuid.UUID | None,
    requested_qty: Decimal,
    mode: StrategyMode,
    bom_children: list[tuple[uuid.UUID, Decimal]],
    *,
    include_self_fallback: bool = True,
) -> list[ComponentSpec]:
    """Flatten one item into components with ``required = component x requested``.

    Only direct BOM children are produced; deeper levels live in the tree view.
    An unresolved item has no components.
    """
    if original_part_id is None:
        return []
    requested = Decimal(requested_qty)

    def self_component() -> ComponentSpec:
        return ComponentSpec(original_part_id, ONE, requested, ComponentSourceType.SELF)

    bom = [
        ComponentSpec(child_id, Decimal(qty), Decimal(qty) * requested, ComponentSourceType.BOM)
        for child_id, qty in bom_children
    ]

    if mode == StrategyMode.BOM:
        if bom:
            return bom
        return [self_component()] if include_self_fallback else []
    if mode == StrategyMode.MIXED:
        return [*bom, self_component()]
    return [self_component()]


# ----------------------------------------------------------------------
# Option tree
# ----------------------------------------------------------------------


def build_bom_nodes(
    rfq_item_id: uuid.UUID,
    parent_id: uuid.UUID,
    demand_qty: Decimal,
    children_by_parent: Adjacency,
    parts: dict[uuid.UUID, PartInfo],
    bundles_by_part: dict[uuid.UUID, list[BundleRef]] | None = None,
    uom_fallback: str | None = None,
    multiplier: Decimal = ONE,
    path: tuple[uuid.UUID, ...] = (),
) -> list[StructureNode]:
    """Recursive BOM expansion with cumulative multipliers.

    ``required_qty`` of a node is demand x product of quantities along its path.
    A child already on the path is skipped.
    """
    here = (*path, parent_id)
    nodes = []
    for child_id, qty in children_by_parent.get(parent_id, []):
        if child_id in here:
            continue
        qty_per_parent = Decimal(qty)
        cumulative = multiplier * qty_per_parent
        info = parts.get(child_id) or PartInfo(child_id)
        child_bundles = (bundles_by_part or {}).get(child_id, [])
        nodes.append(
            StructureNode(
                key=bom_key(rfq_item_id, [*here[1:], child_id]),
                type=SelectionLineType.BOM_COMPONENT,
                original_part_id=child_id,
                cat_number=info.cat_number,
                description=info.description,
                qty_per_parent=qty_per_parent,
                required_qty=Decimal(demand_qty) * cumulative,
                uom=info.uom or uom_fallback,
                bundle_ids=[b.bundle_id for b in child_bundles],
                children=build_bom_nodes(
                    rfq_item_id,
                    child_id,
                    demand_qty,
                    children_by_parent,
                    parts,
                    bundles_by_part,
                    uom_fallback,
                    cumulative,
                    here,
                ),
            )
        )
    return nodes


def build_kit_nodes(
    bundle: BundleRef | None, demand_qty: Decimal, uom: str | None
) -> list[StructureNode]:
    if bundle is None:
        return []
    roles = sorted(bundle.roles, key=lambda r: (r.sort_order, str(r.bundle_item_id)))
    return [
        StructureNode(
            key=kit_key(bundle.bundle_id, role.bundle_item_id),
            type=SelectionLineType.KIT_ROLE,
            bundle_id=bundle.bundle_id,
            bundle_item_id=role.bundle_item_id,
            role_label=role.role_label,
            description=role.role_label,
            qty_per_parent=Decimal(role.qty),
            required_qty=Decimal(demand_qty) * Decimal(role.qty),
            uom=uom,
        )
        for role in roles
    ]


def build_master_item(
    item: StructureItemInput,
    strategy: StrategySettings | None,
    children_by_parent: Adjacency,
    parts: dict[uuid.UUID, PartInfo],
    bundles_by_part: dict[uuid.UUID, list[BundleRef]],
    language: str = "ru",
) -> MasterItem:
    """Expand one item into its WHOLE / BOM / KIT options."""
    part_id = item.original_part_id
    has_bom = bool(part_id and children_by_parent.get(part_id))
    strategy = strategy or default_strategy(has_bom)
    bundles = bundles_by_part.get(part_id, []) if part_id else []
    bundle_ids = [b.bundle_id for b in bundles]

    selected = strategy.selected_bundle_id if strategy.selected_bundle_id in bundle_ids else None
    effective_id = selected or (bundle_ids[0] if len(bundle_ids) == 1 else None)
    effective = next((b for b in bundles if b.bundle_id == effective_id), None)

    whole_enabled = strategy.mode in (StrategyMode.SINGLE, StrategyMode.MIXED) or not has_bom
    bom_enabled = has_bom and strategy.mode in (StrategyMode.BOM, StrategyMode.MIXED)
    kit_enabled = strategy.allow_kit and bool(bundles)
    kit_selection_required = len(bundles) > 1 and selected is None

    labels = OPTION_LABELS.get(language, OPTION_LABELS["ru"])
    options = [
        StructureOption(
            key=f"opt:{item.rfq_item_id}:WHOLE",
            type=StructureOptionType.WHOLE,
            label=labels[StructureOptionType.WHOLE],
            available=True,
            enabled=whole_enabled,
        ),
        StructureOption(
            key=f"opt:{item.rfq_item_id}:BOM",
            type=StructureOptionType.BOM,
            label=labels[StructureOptionType.BOM],
            available=has_bom,
            enabled=bom_enabled,
            children=build_bom_nodes(
                item.rfq_item_id,
                part_id,
                item.requested_qty,
                children_by_parent,
                parts,
                bundles_by_part,
                item.uom,
            )
            if has_bom
            else [],
        ),
        StructureOption(
            key=f"opt:{item.rfq_item_id}:KIT",
            type=StructureOptionType.KIT,
            label=labels[StructureOptionType.KIT],
            available=bool(bundles),
            enabled=kit_enabled,
            selection_required=kit_selection_required,
            children=build_kit_nodes(effective, item.requested_qty, item.uom),
        ),
    ]
    return MasterItem(
        item=item,
        strategy=strategy,
        has_bom=has_bom,
        bundle_ids=bundle_ids,
        effective_bundle_id=effective_id,
        options=options,
    )


def validate_for_confirm(items: list[MasterItem]) -> list[dict]:
    """Return one error detail per line that blocks confirmation."""
    errors = []
    for master in items:
        line = master.item.line_number
        enabled = [opt for opt in master.options if opt.available and opt.enabled]
        if not enabled:
            errors.append({"field": f"line_number:{line}", "message": "no enabled supply option"})
            continue
        kit = master.option(StructureOptionType.KIT)
        if kit.enabled and kit.selection_required:
            errors.append(
                {"field": f"line_number:{line}", "message": "kit is enabled but no bundle is selected"}
            )
    return errors


# ----------------------------------------------------------------------
# Flattened rows for documents and selections
# ----------------------------------------------------------------------


def _demand_row(master: MasterItem) -> DocumentRow:
    item = master.item
    return DocumentRow(
        rfq_item_id=item.rfq_item_id,
        line_number=item.line_number,
        type=SelectionLineType.DEMAND.value,
        indent=0,
        selection_key=demand_key(item.rfq_item_id),
        label=item.label,
        description=item.description or "",
        qty=item.requested_qty,
        uom=item.uom,
        original_part_id=item.original_part_id,
    )


def _node_rows(master: MasterItem, nodes: list[StructureNode], depth: int) -> list[DocumentRow]:
    rows = []
    for node in nodes:
        rows.append(
            DocumentRow(
                rfq_item_id=master.item.rfq_item_id,
                line_number=master.item.line_number,
                type=node.type.value,
                indent=depth,
                selection_key=node.key,
                label=node.cat_number or node.role_label or "",
                description=node.description or "",
                qty=node.required_qty,
                uom=node.uom or master.item.uom,
                original_part_id=node.original_part_id,
                bundle_id=node.bundle_id,
                bundle_item_id=node.bundle_item_id,
            )
        )
        rows.extend(_node_rows(master, node.children, depth + 1))
    return rows


def _option_rows(master: MasterItem, option: StructureOption) -> list[DocumentRow]:
    item = master.item
    whole = option.type == StructureOptionType.WHOLE
    header = DocumentRow(
        rfq_item_id=item.rfq_item_id,
        line_number=item.line_number,
        type=option.type.value,
        indent=1,
        selection_key=option.key,
        label=option.label,
        qty=item.requested_qty if whole else None,
        uom=item.uom if whole else None,
        original_part_id=item.original_part_id if whole else None,
    )
    return [header, *_node_rows(master, option.children, 2)]


def flatten_rows(items: list[MasterItem]) -> list[DocumentRow]:
    """DEMAND row per item followed by each available and enabled option.

    A WHOLE option row is dropped when it is the only option the item has.
    """
    rows: list[DocumentRow] = []
    for master in items:
        rows.append(_demand_row(master))
        available = [opt for opt in master.options if opt.available]
        enabled = [opt for opt in available if opt.enabled]
        skip_whole = (
            len(available) == 1
            and len(enabled) == 1
            and enabled[0].type == StructureOptionType.WHOLE
        )
        for option in enabled:
            if option.type == StructureOptionType.WHOLE and skip_whole:
                continue
            rows.extend(_option_rows(master, option))
    return rows


def rows_for_format(items: list[MasterItem], rfq_format: RfqFormat) -> list[DocumentRow]:
    """Document rows as a supplier with the given format should see them."""
    if rfq_format == RfqFormat.AUTO:
        return flatten_rows(items)

    rows: list[DocumentRow] = []
    for master in items:
        rows.append(_demand_row(master))
        if rfq_format == RfqFormat.BOM:
            bom = master.option(StructureOptionType.BOM)
            if bom.available:
                rows.extend(_node_rows(master, bom.children, 1))
        elif rfq_format == RfqFormat.KIT:
            kit = master.option(StructureOptionType.KIT)
            if kit.available:
                rows.extend(_node_rows(master, kit.children, 1))
    return rows
