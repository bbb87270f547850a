"""Unit tests for the line diff between client request revisions."""

import uuid
from decimal import Decimal

from partsource.models.enums import LineChange
from partsource.modules.rfq.revision_diff import RevisionLine, diff_revision_lines, lines_differ

PART = uuid.uuid4()


def _line(number, qty="1", **kwargs):
    return RevisionLine(line_number=number, original_part_id=PART, requested_qty=Decimal(qty), **kwargs)


class TestDiffRevisionLines:
    def test_nothing_sent_means_all_new(self):
        changes = diff_revision_lines([_line(1), _line(2)], None)
        assert changes == {1: LineChange.NEW, 2: LineChange.NEW}

    def test_identical_revisions_have_no_changes(self):
        lines = [_line(1), _line(2, uom="pcs")]
        assert diff_revision_lines(lines, list(lines)) == {}

    def test_added_and_changed_lines(self):
        previous = [_line(1), _line(2, qty="3")]
        current = [_line(1), _line(2, qty="4"), _line(3)]
        assert diff_revision_lines(current, previous) == {
            2: LineChange.CHANGED,
            3: LineChange.NEW,
        }

    def test_removed_lines_are_not_reported(self):
        assert diff_revision_lines([_line(1)], [_line(1), _line(2)]) == {}


class TestLinesDiffer:
    def test_blank_and_none_text_are_equal(self):
        assert lines_differ(_line(1, uom=""), _line(1, uom=None)) is False

    def test_decimal_scale_is_ignored(self):
        assert lines_differ(_line(1, qty="2.0"), _line(1, qty="2")) is False

    def test_oem_flag_is_compared(self):
        assert lines_differ(_line(1, oem_only=True), _line(1)) is True

    def test_part_change_is_detected(self):
        other = RevisionLine(line_number=1, original_part_id=uuid.uuid4(), requested_qty=Decimal(1))
        assert lines_differ(other, _line(1)) is True
