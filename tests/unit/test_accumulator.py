"""
Unit tests for the item accumulator merge.
"""
import logging
from datetime import date

import pytest

from mint_figures.accumulator import (
    ItemRecord,
    dump_records,
    latest_period,
    load_records,
    merge,
)
from mint_figures.normalize import CanonicalRow, RowShape
from mint_figures.periods import date_period, week_period

pytestmark = pytest.mark.unit


def _row(name, quantity, period, *, item_id="ID", program="Proof Sets"):
    return CanonicalRow(
        item_id=item_id,
        item_name=name,
        program_name=program,
        quantity=quantity,
        period=period,
        shape=RowShape.ITEM_SALES,
    )


W1 = week_period(2016, 1, "01-08")
W2 = week_period(2016, 2, "01-15")
W3 = week_period(2016, 3, "01-22")


class TestMerge:
    """Folding report rows into the item map."""

    def test_later_report_updates_quantity(self):
        records = merge({}, [_row("Proof Set", 100, W1)])
        records = merge(records, [_row("Proof Set", 150, W2)])
        record = records["Proof Set"]
        assert record.quantity == 150
        assert record.first_seen_period == W1
        assert record.latest_period == W2

    def test_merging_same_rows_twice_is_idempotent(self):
        rows = [_row("A", 1, W1), _row("B", 2, W2)]
        once = merge({}, rows)
        assert merge(once, rows) == once

    def test_older_rows_are_ignored(self):
        records = merge({}, [_row("A", 150, W2)])
        records = merge(records, [_row("A", 100, W1)])
        assert records["A"].quantity == 150
        assert records["A"].latest_period == W2
        assert records["A"].first_seen_period == W2

    def test_first_seen_identity_is_kept(self):
        records = merge({}, [_row("A", 1, W1, item_id="OLD", program="Old Program")])
        records = merge(records, [_row("A", 2, W3, item_id="NEW", program="New Program")])
        assert records["A"].item_id == "OLD"
        assert records["A"].program_name == "Old Program"
        assert records["A"].quantity == 2

    def test_decrease_is_logged_but_applied(self, caplog):
        records = merge({}, [_row("A", 100, W1)])
        with caplog.at_level(logging.WARNING, logger="mint_figures"):
            records = merge(records, [_row("A", 90, W2)])
        assert records["A"].quantity == 90
        assert "dropped from 100" in caplog.text

    def test_does_not_mutate_input(self):
        existing = merge({}, [_row("A", 1, W1)])
        snapshot = dict(existing)
        merge(existing, [_row("A", 5, W2), _row("B", 1, W2)])
        assert existing == snapshot

    def test_blank_names_are_skipped(self):
        assert merge({}, [_row("  ", 1, W1)]) == {}

    def test_latest_period_of_map(self):
        records = merge({}, [_row("A", 1, W1), _row("B", 1, W3)])
        assert latest_period(records) == W3
        assert latest_period({}) is None


class TestSerialization:
    """JSON form of the item map."""

    def test_dump_load_round_trip(self):
        p1 = date_period(date(2024, 6, 7))
        p2 = date_period(date(2024, 6, 14))
        records = merge({}, [_row("A", 1, p1), _row("B", 2, W2)])
        records = merge(records, [_row("A", 3, p2)])
        dumped = dump_records(records)
        assert load_records(dumped) == records
        assert dump_records(load_records(dumped)) == dumped

    def test_dumped_shape(self):
        p1 = date_period(date(2024, 6, 7))
        dumped = dump_records(merge({}, [_row("A", 1, p1, item_id="24AA")]))
        assert dumped == {
            "A": {
                "itemId": "24AA",
                "programName": "Proof Sets",
                "quantity": 1,
                "firstSeenPeriod": "2024-06-07",
                "latestPeriod": "2024-06-07",
            }
        }

    @pytest.mark.parametrize(
        "raw",
        [
            {"quantity": -1, "firstSeenPeriod": "2016", "latestPeriod": "2016"},
            {"quantity": "12", "firstSeenPeriod": "2016", "latestPeriod": "2016"},
            {"quantity": 1, "firstSeenPeriod": "2016-1-1", "latestPeriod": "2016"},
            {"quantity": 1},
        ],
    )
    def test_invalid_entries_are_dropped(self, raw):
        assert load_records({"Bad": raw}) == {}

    def test_from_dict(self):
        record = ItemRecord.from_dict(
            {
                "itemId": "X",
                "programName": "P",
                "quantity": 0,
                "firstSeenPeriod": "2016/W01",
                "latestPeriod": "2016/W02",
            }
        )
        assert record.first_seen_period == W1
        assert record.latest_period == W2
