"""Tests for the engine trace decorator (ledger_engines/tracer.py)."""

from decimal import Decimal

from ledger_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("sample", "2.1", fingerprint_fields=("amount",))
def _double(amount, note=""):
    return amount * 2


class TestTracedEngine:

    def test_result_passed_through(self):
        assert _double(Decimal("2.5")) == Decimal("5.0")

    def test_trace_record_emitted(self, captured_logs):
        _double(Decimal("1"))

        trace = [r for r in captured_logs() if r["message"] == "LEDGER_ENGINE_TRACE"][-1]
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert trace["function"] == "_double"
        assert "duration_ms" in trace

    def test_fingerprint_ignores_unlisted_arguments(self, captured_logs):
        _double(Decimal("1"), note="a")
        _double(Decimal("1"), note="b")

        traces = [r for r in captured_logs() if r["message"] == "LEDGER_ENGINE_TRACE"]
        assert traces[-1]["input_fingerprint"] == traces[-2]["input_fingerprint"]


class TestInputFingerprint:

    def test_trailing_zeros_do_not_change_fingerprint(self):
        a = compute_input_fingerprint(("x",), {"x": Decimal("10.50")})
        b = compute_input_fingerprint(("x",), {"x": Decimal("10.5")})

        assert a == b

    def test_missing_field_recorded_as_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(("x",), {"x": None})
