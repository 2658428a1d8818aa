"""
Tests for the engine invocation tracer.
"""

from dataclasses import dataclass
from decimal import Decimal

from compliance_engines.tracer import compute_input_fingerprint, traced_engine


@dataclass(frozen=True)
class _Point:
    x: Decimal
    y: Decimal


@traced_engine("sample", "2.1", fingerprint_fields=("point", "scale"))
def _scaled(point, scale=Decimal("1")):
    return point.x * scale + point.y


class TestFingerprint:
    def test_deterministic(self):
        args = {"point": _Point(Decimal("1.0"), Decimal("2"))}
        assert compute_input_fingerprint(("point",), args) == compute_input_fingerprint(
            ("point",), dict(args),
        )

    def test_sensitive_to_values(self):
        a = compute_input_fingerprint(("v",), {"v": Decimal("1.0")})
        b = compute_input_fingerprint(("v",), {"v": Decimal("1.00")})
        assert a != b

    def test_dict_key_order_ignored(self):
        a = compute_input_fingerprint(("m",), {"m": {"a": 1, "b": 2}})
        b = compute_input_fingerprint(("m",), {"m": {"b": 2, "a": 1}})
        assert a == b

    def test_length(self):
        assert len(compute_input_fingerprint((), {})) == 16


class TestTracedEngine:
    def test_returns_result_and_emits_trace(self, captured_logs):
        result = _scaled(_Point(Decimal("2"), Decimal("1")), scale=Decimal("3"))

        assert result == Decimal("7")
        traces = [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "sample"
        assert trace["engine_version"] == "2.1"
        assert len(trace["input_fingerprint"]) == 16
        assert trace["function"] == "_scaled"

    def test_positional_and_keyword_fingerprints_match(self, captured_logs):
        point = _Point(Decimal("2"), Decimal("1"))
        _scaled(point, Decimal("3"))
        _scaled(point=point, scale=Decimal("3"))

        traces = [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
