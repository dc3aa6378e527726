"""Tests for BOQ register valuation and scope warnings."""

from decimal import Decimal

from ledger_engines.register import scope_warnings, summarize_register


class TestSummarizeRegister:

    def test_values_at_each_level(self, register):
        varied = register.replace_items({
            "boq-1": register.get("boq-1").with_variation(Decimal("20")).with_completed_quantity(Decimal("60")),
        })

        summary = summarize_register(varied)

        assert summary.item_count == 3
        assert summary.original_value == Decimal("200000")
        assert summary.variation_value == Decimal("10000")
        assert summary.revised_value == Decimal("210000")
        assert summary.completed_value == Decimal("30000")
        assert summary.remaining_value == Decimal("180000")
        assert summary.variation_percent == Decimal("5.00")
        assert summary.completion_percent == Decimal("14.29")

    def test_empty_register_has_zero_percentages(self):
        from ledger_kernel.domain.boq import BOQRegister

        summary = summarize_register(BOQRegister())

        assert summary.variation_percent == Decimal("0")
        assert summary.completion_percent == Decimal("0")


class TestScopeWarnings:

    def test_over_completed_items_reported(self, register, captured_logs):
        reduced = register.replace_items({
            "boq-2": register.get("boq-2").with_completed_quantity(Decimal("150")).with_variation(Decimal("-60")),
        })

        warnings = scope_warnings(reduced)

        assert [w.boq_item_id for w in warnings] == ["boq-2"]
        assert warnings[0].shortfall == Decimal("10")
        assert any(r["message"] == "scope_below_completed" for r in captured_logs())

    def test_restricted_to_given_items(self, register):
        reduced = register.replace_items({
            "boq-2": register.get("boq-2").with_completed_quantity(Decimal("150")).with_variation(Decimal("-60")),
        })

        assert scope_warnings(reduced, ["boq-1"]) == ()
