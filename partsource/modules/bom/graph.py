"""Pure helpers over an in-memory BOM adjacency map.

The adjacency map is ``{parent_id: [(child_id, quantity), ...]}``. The
service layer loads it from ``bom_edges``; tests build it by hand.
"""

from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass
from decimal import Decimal

Adjacency = dict[uuid.UUID, list[tuple[uuid.UUID, Decimal]]]


@dataclass(frozen=True)
class TreeRow:
    node_id: uuid.UUID
    level: int
    path: str
    mult_qty: Decimal


def would_create_cycle(
    children_by_parent: Adjacency, parent_id: uuid.UUID, child_id: uuid.UUID
) -> bool:
    """True when adding parent -> child lets ``parent_id`` reach itself."""
    if parent_id == child_id:
        return True
    seen: set[uuid.UUID] = set()
    queue: deque[uuid.UUID] = deque([child_id])
    while queue:
        node = queue.popleft()
        for next_id, _qty in children_by_parent.get(node, []):
            if next_id == parent_id:
                return True
            if next_id not in seen:
                seen.add(next_id)
                queue.append(next_id)
    return False


def explode_tree(root_id: uuid.UUID, children_by_parent: Adjacency) -> list[TreeRow]:
    """Walk the BOM below ``root_id`` with cumulative multipliers.

    Rows are ordered by (level, path). A node already on the current path is
    not expanded again, so stray cycles in legacy data terminate.
    """
    rows = [TreeRow(root_id, 0, str(root_id), Decimal(1))]
    frontier = [(root_id, 0, str(root_id), Decimal(1), frozenset([root_id]))]
    while frontier:
        next_frontier = []
        for node, level, path, mult, on_path in frontier:
            for child_id, qty in children_by_parent.get(node, []):
                if child_id in on_path:
                    continue
                child_path = f"{path}>{child_id}"
                child_mult = mult * Decimal(qty)
                rows.append(TreeRow(child_id, level + 1, child_path, child_mult))
                next_frontier.append(
                    (child_id, level + 1, child_path, child_mult, on_path | {child_id})
                )
        frontier = next_frontier
    rows.sort(key=lambda row: (row.level, row.path))
    return rows
