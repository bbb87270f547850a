"""Unit tests for the pure BOM graph helpers."""

import uuid
from decimal import Decimal

from partsource.modules.bom.graph import explode_tree, would_create_cycle

A, B, C, D = (uuid.uuid4() for _ in range(4))


class TestWouldCreateCycle:
    def test_self_edge_is_cycle(self):
        assert would_create_cycle({}, A, A) is True

    def test_back_edge_is_cycle(self):
        graph = {A: [(B, Decimal(1))], B: [(C, Decimal(1))]}
        assert would_create_cycle(graph, C, A) is True

    def test_sibling_edge_is_not_cycle(self):
        graph = {A: [(B, Decimal(1)), (C, Decimal(1))]}
        assert would_create_cycle(graph, B, C) is False

    def test_diamond_is_not_cycle(self):
        graph = {A: [(B, Decimal(1)), (C, Decimal(1))], B: [(D, Decimal(1))]}
        assert would_create_cycle(graph, C, D) is False


class TestExplodeTree:
    def test_root_only(self):
        rows = explode_tree(A, {})
        assert len(rows) == 1
        assert rows[0].level == 0
        assert rows[0].mult_qty == Decimal(1)

    def test_cumulative_multipliers(self):
        graph = {A: [(B, Decimal(2))], B: [(C, Decimal(3))]}
        rows = explode_tree(A, graph)

        by_node = {row.node_id: row for row in rows}
        assert by_node[B].level == 1
        assert by_node[B].mult_qty == Decimal(2)
        assert by_node[C].level == 2
        assert by_node[C].mult_qty == Decimal(6)
        assert by_node[C].path == f"{A}>{B}>{C}"

    def test_rows_ordered_by_level(self):
        graph = {A: [(B, Decimal(1)), (C, Decimal(1))], B: [(D, Decimal(1))]}
        rows = explode_tree(A, graph)
        assert [row.level for row in rows] == [0, 1, 1, 2]

    def test_legacy_cycle_terminates(self):
        graph = {A: [(B, Decimal(1))], B: [(A, Decimal(1))]}
        rows = explode_tree(A, graph)
        assert [row.node_id for row in rows] == [A, B]
