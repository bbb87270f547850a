"""Unit tests for choosing the lines of one supplier's dispatch."""

import uuid

from partsource.models.enums import DispatchMode, LineChange, LineStatus
from partsource.modules.rfq.dispatch_planner import (
    ActiveLine,
    SelectionRef,
    SupplierDispatchContext,
    plan_supplier_dispatch,
)

L1, L2, L3 = (ActiveLine(uuid.uuid4(), n) for n in (1, 2, 3))
ALL = [L3, L1, L2]


def _ctx(**kwargs):
    kwargs.setdefault("active_lines", ALL)
    kwargs.setdefault("line_changes", {})
    return SupplierDispatchContext(**kwargs)


class TestFullMode:
    def test_all_request_lines_in_order(self):
        plan = plan_supplier_dispatch(DispatchMode.FULL, False, _ctx())
        assert plan.item_ids == [L1.rfq_item_id, L2.rfq_item_id, L3.rfq_item_id]
        assert plan.rows_changed is None
        assert plan.uses_selections is False

    def test_non_request_lines_are_skipped(self):
        ctx = _ctx(
            line_statuses={
                L1.rfq_item_id: LineStatus.NONE,
                L2.rfq_item_id: LineStatus.ACCEPTED_EXISTING,
            }
        )
        plan = plan_supplier_dispatch(DispatchMode.FULL, False, ctx)
        assert plan.item_ids == [L3.rfq_item_id]

    def test_archived_line_is_never_sent(self):
        ctx = _ctx(active_lines=[L1, L2], line_statuses={L3.rfq_item_id: LineStatus.ARCHIVED})
        plan = plan_supplier_dispatch(DispatchMode.FULL, True, ctx)
        assert L3.rfq_item_id not in plan.item_ids

    def test_priced_lines_are_excluded(self):
        ctx = _ctx(priced_item_ids={L2.rfq_item_id})
        plan = plan_supplier_dispatch(DispatchMode.FULL, False, ctx)
        assert plan.item_ids == [L1.rfq_item_id, L3.rfq_item_id]

    def test_include_priced_keeps_them(self):
        ctx = _ctx(priced_item_ids={L2.rfq_item_id})
        plan = plan_supplier_dispatch(DispatchMode.FULL, True, ctx)
        assert L2.rfq_item_id in plan.item_ids

    def test_selections_restrict_candidates(self):
        ctx = _ctx(
            selections=[
                SelectionRef(L2.rfq_item_id),
                SelectionRef(L3.rfq_item_id, use_existing_price=True),
            ]
        )
        plan = plan_supplier_dispatch(DispatchMode.FULL, False, ctx)
        assert plan.item_ids == [L2.rfq_item_id]
        assert plan.uses_selections is True


class TestDeltaMode:
    def test_only_changed_lines(self):
        ctx = _ctx(line_changes={2: LineChange.CHANGED, 3: LineChange.NEW})
        plan = plan_supplier_dispatch(DispatchMode.DELTA, False, ctx)
        assert plan.item_ids == [L2.rfq_item_id, L3.rfq_item_id]
        assert plan.rows_changed == 2

    def test_no_changes_gives_empty_plan(self):
        plan = plan_supplier_dispatch(DispatchMode.DELTA, False, _ctx())
        assert plan.is_empty
        assert plan.rows_changed == 0

    def test_unselected_changed_line_is_still_sent(self):
        ctx = _ctx(
            line_changes={1: LineChange.CHANGED, 3: LineChange.NEW},
            selections=[SelectionRef(L1.rfq_item_id, use_existing_price=True)],
        )
        plan = plan_supplier_dispatch(DispatchMode.DELTA, False, ctx)
        assert plan.item_ids == [L3.rfq_item_id]
