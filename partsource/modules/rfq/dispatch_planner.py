"""Decides which active lines go into one supplier's dispatch."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from partsource.models.enums import DispatchMode, LineChange, LineStatus


@dataclass(frozen=True)
class ActiveLine:
    rfq_item_id: uuid.UUID
    line_number: int


@dataclass(frozen=True)
class SelectionRef:
    rfq_item_id: uuid.UUID
    use_existing_price: bool = False


@dataclass
class SupplierDispatchContext:
    active_lines: list[ActiveLine]
    line_changes: dict[int, LineChange]
    line_statuses: dict[uuid.UUID, LineStatus] = field(default_factory=dict)
    selections: list[SelectionRef] = field(default_factory=list)
    priced_item_ids: set[uuid.UUID] = field(default_factory=set)

    def status_of(self, rfq_item_id: uuid.UUID) -> LineStatus:
        return self.line_statuses.get(rfq_item_id, LineStatus.REQUEST)


@dataclass
class DispatchPlan:
    item_ids: list[uuid.UUID]
    uses_selections: bool
    rows_changed: int | None

    @property
    def is_empty(self) -> bool:
        return not self.item_ids


def plan_supplier_dispatch(
    mode: DispatchMode, include_priced: bool, ctx: SupplierDispatchContext
) -> DispatchPlan:
    """Candidate lines in priority order.

    1. Explicit selections restrict candidates to selected lines, minus those
       marked ``use_existing_price``. In delta mode a changed line nobody has
       made a selection for yet is still sent.
    2. Without selections, delta mode takes changed lines still in REQUEST.
    3. Without selections, full mode takes every line in REQUEST.
    4. Lines already priced for this supplier drop out unless ``include_priced``.
    """
    lines = sorted(ctx.active_lines, key=lambda line: line.line_number)
    if mode == DispatchMode.DELTA:
        lines = [line for line in lines if line.line_number in ctx.line_changes]

    if ctx.selections:
        requested = {s.rfq_item_id for s in ctx.selections if not s.use_existing_price}
        touched = {s.rfq_item_id for s in ctx.selections}
        if mode == DispatchMode.DELTA:
            candidates = [
                line
                for line in lines
                if line.rfq_item_id in requested or line.rfq_item_id not in touched
            ]
        else:
            candidates = [line for line in lines if line.rfq_item_id in requested]
    else:
        candidates = [line for line in lines if ctx.status_of(line.rfq_item_id) == LineStatus.REQUEST]

    if not include_priced:
        candidates = [line for line in candidates if line.rfq_item_id not in ctx.priced_item_ids]

    return DispatchPlan(
        item_ids=[line.rfq_item_id for line in candidates],
        uses_selections=bool(ctx.selections),
        rows_changed=len(ctx.line_changes) if mode == DispatchMode.DELTA else None,
    )
