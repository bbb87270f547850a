"""Unit tests for the pure structure builder: components, option trees, rows."""

import uuid
from decimal import Decimal

from partsource.models.enums import (
    ComponentSourceType,
    RfqFormat,
    SelectionLineType,
    StrategyMode,
    StructureOptionType,
)
from partsource.modules.rfq.structure import (
    BundleRef,
    BundleRole,
    PartInfo,
    StrategySettings,
    StructureItemInput,
    build_components,
    build_master_item,
    default_strategy,
    demand_key,
    flatten_rows,
    rows_for_format,
    validate_for_confirm,
)

A, B, C = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()


def _item(part_id=A, qty="5", line_number=1, **kwargs):
    return StructureItemInput(
        rfq_item_id=kwargs.pop("rfq_item_id", uuid.uuid4()),
        line_number=line_number,
        requested_qty=Decimal(qty),
        uom="pcs",
        original_part_id=part_id,
        original_cat_number="CAT-A" if part_id else None,
        client_part_number="CLIENT-1",
        **kwargs,
    )


def _bundle(*qtys):
    return BundleRef(
        bundle_id=uuid.uuid4(),
        title="Kit",
        roles=tuple(
            BundleRole(uuid.uuid4(), f"role {i}", Decimal(q), sort_order=i)
            for i, q in enumerate(qtys)
        ),
    )


class TestBuildComponents:
    def test_single_mode_is_self(self):
        comps = build_components(A, Decimal(10), StrategyMode.SINGLE, [(B, Decimal(2))])
        assert len(comps) == 1
        assert comps[0].original_part_id == A
        assert comps[0].source_type == ComponentSourceType.SELF
        assert comps[0].required_qty == Decimal(10)

    def test_bom_mode_multiplies_direct_children(self):
        comps = build_components(
            A, Decimal(5), StrategyMode.BOM, [(B, Decimal(2)), (C, Decimal("0.5"))]
        )
        assert [(c.original_part_id, c.required_qty) for c in comps] == [
            (B, Decimal(10)),
            (C, Decimal("2.5")),
        ]
        assert all(c.source_type == ComponentSourceType.BOM for c in comps)

    def test_bom_mode_without_children_falls_back_to_self(self):
        comps = build_components(A, Decimal(10), StrategyMode.BOM, [])
        assert len(comps) == 1
        assert comps[0].source_type == ComponentSourceType.SELF
        assert comps[0].component_qty == Decimal(1)
        assert comps[0].required_qty == Decimal(10)

    def test_bom_mode_fallback_can_be_disabled(self):
        assert build_components(A, Decimal(10), StrategyMode.BOM, [], include_self_fallback=False) == []

    def test_mixed_mode_has_children_and_self(self):
        comps = build_components(A, Decimal(3), StrategyMode.MIXED, [(B, Decimal(2))])
        assert [c.source_type for c in comps] == [ComponentSourceType.BOM, ComponentSourceType.SELF]

    def test_unresolved_item_has_no_components(self):
        assert build_components(None, Decimal(3), StrategyMode.SINGLE, []) == []


class TestDefaultStrategy:
    def test_with_bom(self):
        strategy = default_strategy(True)
        assert strategy.mode == StrategyMode.BOM
        assert strategy.allow_partial is True

    def test_without_bom(self):
        assert default_strategy(False).mode == StrategyMode.SINGLE


class TestBuildMasterItem:
    def test_nested_bom_required_quantity(self):
        graph = {A: [(B, Decimal(2))], B: [(C, Decimal(3))]}
        master = build_master_item(_item(qty="5"), None, graph, {}, {})

        bom = master.option(StructureOptionType.BOM)
        assert bom.available and bom.enabled
        assert bom.children[0].original_part_id == B
        assert bom.children[0].required_qty == Decimal(10)
        grandchild = bom.children[0].children[0]
        assert grandchild.original_part_id == C
        assert grandchild.required_qty == Decimal(30)
        assert grandchild.type == SelectionLineType.BOM_COMPONENT

    def test_default_strategy_disables_whole_when_bom_exists(self):
        graph = {A: [(B, Decimal(1))]}
        master = build_master_item(_item(), None, graph, {}, {})
        assert master.strategy.mode == StrategyMode.BOM
        assert master.option(StructureOptionType.WHOLE).enabled is False

    def test_whole_enabled_without_bom(self):
        master = build_master_item(_item(), None, {}, {}, {})
        whole = master.option(StructureOptionType.WHOLE)
        assert whole.available and whole.enabled
        assert master.option(StructureOptionType.BOM).available is False

    def test_part_info_fills_node_fields(self):
        graph = {A: [(B, Decimal(1))]}
        parts = {B: PartInfo(B, cat_number="CAT-B", description_en="Bearing", uom="set")}
        master = build_master_item(_item(), None, graph, parts, {})
        node = master.option(StructureOptionType.BOM).children[0]
        assert node.cat_number == "CAT-B"
        assert node.description == "Bearing"
        assert node.uom == "set"

    def test_single_bundle_is_effective(self):
        bundle = _bundle("2", "1")
        master = build_master_item(_item(qty="4"), None, {}, {}, {A: [bundle]})

        kit = master.option(StructureOptionType.KIT)
        assert master.effective_bundle_id == bundle.bundle_id
        assert kit.selection_required is False
        assert [n.required_qty for n in kit.children] == [Decimal(8), Decimal(4)]

    def test_several_bundles_need_selection(self):
        first, second = _bundle("1"), _bundle("3")
        master = build_master_item(_item(), None, {}, {}, {A: [first, second]})
        kit = master.option(StructureOptionType.KIT)
        assert kit.selection_required is True
        assert kit.children == []

    def test_selected_bundle_is_used(self):
        first, second = _bundle("1"), _bundle("3")
        strategy = StrategySettings(mode=StrategyMode.SINGLE, selected_bundle_id=second.bundle_id)
        master = build_master_item(_item(qty="2"), strategy, {}, {}, {A: [first, second]})
        kit = master.option(StructureOptionType.KIT)
        assert master.effective_bundle_id == second.bundle_id
        assert kit.selection_required is False
        assert kit.children[0].required_qty == Decimal(6)

    def test_english_labels(self):
        master = build_master_item(_item(), None, {}, {}, {}, language="en")
        assert master.option(StructureOptionType.WHOLE).label == "Supply as whole"


class TestValidateForConfirm:
    def test_ready_item_has_no_errors(self):
        master = build_master_item(_item(), None, {}, {}, {})
        assert validate_for_confirm([master]) == []

    def test_unselected_kit_blocks_confirm(self):
        master = build_master_item(_item(line_number=7), None, {}, {}, {A: [_bundle("1"), _bundle("1")]})
        errors = validate_for_confirm([master])
        assert errors == [
            {"field": "line_number:7", "message": "kit is enabled but no bundle is selected"}
        ]

    def test_no_enabled_option_blocks_confirm(self):
        strategy = StrategySettings(mode=StrategyMode.BOM, allow_kit=False)
        graph = {A: [(B, Decimal(1))]}
        master = build_master_item(_item(), strategy, graph, {}, {})
        master.option(StructureOptionType.BOM).enabled = False
        errors = validate_for_confirm([master])
        assert errors[0]["message"] == "no enabled supply option"


class TestFlattenRows:
    def test_whole_only_item_is_single_demand_row(self):
        item = _item()
        master = build_master_item(item, None, {}, {}, {})
        rows = flatten_rows([master])
        assert len(rows) == 1
        assert rows[0].type == "DEMAND"
        assert rows[0].selection_key == demand_key(item.rfq_item_id)
        assert rows[0].label == "CAT-A"

    def test_bom_item_rows_are_indented(self):
        graph = {A: [(B, Decimal(2))], B: [(C, Decimal(3))]}
        master = build_master_item(_item(qty="5"), None, graph, {}, {})
        rows = flatten_rows([master])
        assert [(r.type, r.indent) for r in rows] == [
            ("DEMAND", 0),
            ("BOM", 1),
            ("BOM_COMPONENT", 2),
            ("BOM_COMPONENT", 3),
        ]
        assert rows[-1].qty == Decimal(30)

    def test_bom_format_skips_option_headers(self):
        graph = {A: [(B, Decimal(2))]}
        master = build_master_item(_item(), None, graph, {}, {})
        rows = rows_for_format([master], RfqFormat.BOM)
        assert [r.type for r in rows] == ["DEMAND", "BOM_COMPONENT"]
        assert rows[1].indent == 1

    def test_whole_format_is_demand_only(self):
        graph = {A: [(B, Decimal(2))]}
        master = build_master_item(_item(), None, graph, {}, {})
        rows = rows_for_format([master], RfqFormat.WHOLE)
        assert [r.type for r in rows] == ["DEMAND"]
