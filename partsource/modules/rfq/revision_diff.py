"""Line-level diff between two client request revisions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from partsource.models.enums import LineChange


@dataclass(frozen=True)
class RevisionLine:
    line_number: int
    original_part_id: uuid.UUID | None = None
    requested_qty: Decimal | None = None
    uom: str | None = None
    client_part_number: str | None = None
    client_description: str | None = None
    oem_only: bool = False

    @classmethod
    def from_item(cls, item) -> RevisionLine:
        return cls(
            line_number=item.line_number,
            original_part_id=item.original_part_id,
            requested_qty=item.requested_qty,
            uom=item.uom,
            client_part_number=item.client_part_number,
            client_description=item.client_description,
            oem_only=bool(item.oem_only),
        )


def _text(value: str | None) -> str:
    return value or ""


def _qty(value: Decimal | None) -> Decimal:
    return Decimal(value) if value is not None else Decimal(0)


def lines_differ(current: RevisionLine, previous: RevisionLine) -> bool:
    return (
        current.original_part_id != previous.original_part_id
        or _qty(current.requested_qty) != _qty(previous.requested_qty)
        or _text(current.uom) != _text(previous.uom)
        or _text(current.client_part_number) != _text(previous.client_part_number)
        or _text(current.client_description) != _text(previous.client_description)
        or bool(current.oem_only) != bool(previous.oem_only)
    )


def diff_revision_lines(
    current: list[RevisionLine], previous: list[RevisionLine] | None
) -> dict[int, LineChange]:
    """Classify current lines against the revision last sent.

    ``previous=None`` means nothing was ever sent: every line is NEW.
    Unchanged lines are absent from the result.
    """
    if previous is None:
        return {line.line_number: LineChange.NEW for line in current}

    previous_by_number = {line.line_number: line for line in previous}
    changes: dict[int, LineChange] = {}
    for line in current:
        before = previous_by_number.get(line.line_number)
        if before is None:
            changes[line.line_number] = LineChange.NEW
        elif lines_differ(line, before):
            changes[line.line_number] = LineChange.CHANGED
    return changes
