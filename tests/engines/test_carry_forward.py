"""Tests for previous-quantity carry-forward and bill history checks."""

from datetime import date
from decimal import Decimal

import pytest

from ledger_engines.carry_forward import (
    advance_completed_quantities,
    aggregate_measurements,
    aggregate_work_logs,
    check_duplicate_sources,
    check_not_stale,
    cumulative_quantities,
    latest_bill,
    latest_subcontractor_bill,
    verify_monotonic,
)
from ledger_engines.ipc import make_bill_item
from ledger_kernel.domain.billing import SubcontractorBill
from ledger_kernel.exceptions import (
    DuplicateMeasurementError,
    QuantityRegressionError,
    StalePreviousQuantityError,
    UnknownBoqItemError,
)


class _Bill:
    """Minimal saved-bill shape: id, number, order and rows."""

    def __init__(self, order: int, items=(), source_ids=()):
        self.id = f"bill-{order}"
        self.bill_number = f"IPC-{order}"
        self.order_of_bill = order
        self.items = tuple(items)
        self.source_sheet_ids = tuple(source_ids)


def _sub_bill(bill_id: str, order: int, subcontractor_id: str) -> SubcontractorBill:
    return SubcontractorBill(
        id=bill_id,
        bill_number=f"SCB-{order}",
        order_of_bill=order,
        subcontractor_id=subcontractor_id,
        date=date(2024, 5, 1),
        period_from=date(2024, 4, 1),
        period_to=date(2024, 4, 30),
        items=(),
        gross_amount=Decimal("0"),
        retention_percent=Decimal("5"),
        retention_amount=Decimal("0"),
        net_amount=Decimal("0"),
    )


class TestLatestBill:

    def test_highest_order_wins_regardless_of_position(self):
        bills = [_Bill(2), _Bill(3), _Bill(1)]

        assert latest_bill(bills).order_of_bill == 3

    def test_none_when_no_bills(self):
        assert latest_bill([]) is None

    def test_subcontractor_bills_do_not_cross(self):
        bills = [_sub_bill("a", 1, "sub-A"), _sub_bill("b", 2, "sub-B"), _sub_bill("c", 3, "sub-A")]

        assert latest_subcontractor_bill(bills, "sub-A").id == "c"
        assert latest_subcontractor_bill(bills, "sub-B").id == "b"
        assert latest_subcontractor_bill(bills, "sub-C") is None


class TestAggregation:

    def test_measurements_summed_and_sources_recorded(self, register, make_sheet):
        result = aggregate_measurements(register, [
            make_sheet("ms-1", ("boq-1", "2")),
            make_sheet("ms-2", ("boq-1", "3"), ("boq-2", "1")),
            make_sheet("ms-3", ("boq-3", "9"), status="Rejected"),
        ])

        assert result.quantities == {"boq-1": Decimal("5"), "boq-2": Decimal("1")}
        assert result.source_ids == ("ms-1", "ms-2")
        assert result.quantity_for("boq-3") == Decimal("0")

    def test_work_logs_filtered_to_subcontractor(self, register, make_work_log):
        result = aggregate_work_logs(register, [
            make_work_log("wl-1", "boq-1", "sub-A", "4"),
            make_work_log("wl-2", "boq-1", "sub-B", "40"),
            make_work_log("wl-3", None, "sub-A", "7"),
            make_work_log("wl-4", "boq-1", "sub-A", "1"),
        ], "sub-A")

        assert result.quantities == {"boq-1": Decimal("5")}
        assert result.source_ids == ("wl-1", "wl-4")

    def test_work_log_for_unknown_item_raises(self, register, make_work_log):
        with pytest.raises(UnknownBoqItemError, match="work log wl-9"):
            aggregate_work_logs(register, [make_work_log("wl-9", "boq-404", "sub-A", "1")], "sub-A")

    def test_same_sheet_twice_rejected(self, register, make_sheet):
        sheet = make_sheet("ms-1", ("boq-1", "10"))

        with pytest.raises(DuplicateMeasurementError, match="ms-1.*more than once"):
            aggregate_measurements(register, [sheet, sheet])

    def test_repeated_unapproved_sheet_ignored(self, register, make_sheet):
        draft_sheet = make_sheet("ms-2", ("boq-1", "10"), status="Draft")

        result = aggregate_measurements(register, [draft_sheet, draft_sheet, make_sheet("ms-1", ("boq-1", "3"))])

        assert result.quantities == {"boq-1": Decimal("3")}

    def test_same_work_log_twice_rejected(self, register, make_work_log):
        log = make_work_log("wl-1", "boq-1", "sub-A", "10")

        with pytest.raises(DuplicateMeasurementError, match="wl-1"):
            aggregate_work_logs(register, [log, log], "sub-A")

    def test_other_subcontractors_repeats_ignored(self, register, make_work_log):
        other = make_work_log("wl-2", "boq-1", "sub-B", "10")

        result = aggregate_work_logs(register, [other, other, make_work_log("wl-1", "boq-1", "sub-A", "2")], "sub-A")

        assert result.source_ids == ("wl-1",)


class TestCumulativeQuantities:

    def test_item_absent_from_later_bill_keeps_quantity(self, register):
        bills = [
            _Bill(2, [make_bill_item(register.get("boq-2"), Decimal("0"), Decimal("5"))]),
            _Bill(1, [make_bill_item(register.get("boq-1"), Decimal("0"), Decimal("10"))]),
            _Bill(3, [make_bill_item(register.get("boq-1"), Decimal("10"), Decimal("4"))]),
        ]

        assert cumulative_quantities(bills) == {"boq-1": Decimal("14"), "boq-2": Decimal("5")}

    def test_no_bills(self):
        assert cumulative_quantities([]) == {}


class TestConsistencyChecks:

    def test_duplicate_source_rejected(self):
        billed = [_Bill(1, source_ids=["ms-1", "ms-2"])]

        with pytest.raises(DuplicateMeasurementError, match="ms-2.*IPC-1"):
            check_duplicate_sources(["ms-3", "ms-2"], billed, lambda b: b.source_sheet_ids)

    def test_fresh_sources_pass(self):
        billed = [_Bill(1, source_ids=["ms-1"])]

        check_duplicate_sources(["ms-2"], billed, lambda b: b.source_sheet_ids)

    def test_stale_previous_quantity_detected(self, register):
        latest = _Bill(2, [make_bill_item(register.get("boq-1"), Decimal("10"), Decimal("4"))])
        stale_row = make_bill_item(register.get("boq-1"), Decimal("10"), Decimal("2"))

        with pytest.raises(StalePreviousQuantityError) as exc_info:
            check_not_stale([stale_row], [latest])

        assert exc_info.value.expected == "14"
        assert exc_info.value.actual == "10"

    def test_first_bill_expects_zero_previous(self, register):
        row = make_bill_item(register.get("boq-1"), Decimal("0"), Decimal("3"))

        check_not_stale([row], [])

    def test_stale_check_carries_items_skipped_by_latest(self, register):
        bills = [
            _Bill(2, [make_bill_item(register.get("boq-2"), Decimal("0"), Decimal("5"))]),
            _Bill(1, [make_bill_item(register.get("boq-1"), Decimal("0"), Decimal("10"))]),
        ]

        check_not_stale([make_bill_item(register.get("boq-1"), Decimal("10"), Decimal("4"))], bills)
        with pytest.raises(StalePreviousQuantityError) as exc_info:
            check_not_stale([make_bill_item(register.get("boq-1"), Decimal("0"), Decimal("4"))], bills)

        assert exc_info.value.expected == "10"

    def test_source_listed_twice_rejected(self):
        with pytest.raises(DuplicateMeasurementError, match="more than once") as exc_info:
            check_duplicate_sources(["ms-1", "ms-1"], [], lambda b: b.source_sheet_ids)

        assert exc_info.value.source_id == "ms-1"
        assert exc_info.value.bill_number is None

    def test_monotonic_history_passes(self, register):
        item = register.get("boq-1")
        bills = [
            _Bill(2, [make_bill_item(item, Decimal("10"), Decimal("4"))]),
            _Bill(1, [make_bill_item(item, Decimal("0"), Decimal("10"))]),
        ]

        verify_monotonic(bills)

    def test_regression_detected(self, register):
        item = register.get("boq-1")
        bills = [
            _Bill(1, [make_bill_item(item, Decimal("0"), Decimal("10"))]),
            _Bill(2, [make_bill_item(item, Decimal("5"), Decimal("1"))]),
        ]

        with pytest.raises(QuantityRegressionError, match="boq-1"):
            verify_monotonic(bills)


class TestAdvanceCompletedQuantities:

    def test_completed_follows_upto_date(self, register):
        rows = [make_bill_item(register.get("boq-2"), Decimal("0"), Decimal("12"))]

        updated = advance_completed_quantities(register, rows)

        assert updated.get("boq-2").completed_quantity == Decimal("12")
        assert updated.get("boq-1") == register.get("boq-1")
        assert register.get("boq-2").completed_quantity == Decimal("0")

    def test_completed_never_moves_backwards(self, register):
        advanced = advance_completed_quantities(
            register, [make_bill_item(register.get("boq-1"), Decimal("0"), Decimal("10"))]
        )

        with pytest.raises(QuantityRegressionError):
            advance_completed_quantities(
                advanced, [make_bill_item(register.get("boq-1"), Decimal("0"), Decimal("3"))]
            )
