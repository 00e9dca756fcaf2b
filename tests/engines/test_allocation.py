"""
Tests for Allocation Engine.

Covers:
- Weighted allocation (the freight path)
- Rounding handling: residual goes to the last target
- Edge cases and error handling
"""

from decimal import Decimal

import pytest

from inventory_engines.allocation import AllocationEngine, AllocationTarget


def _amounts(result):
    return [line.allocated for line in result.lines]


class TestWeightedAllocation:
    """Tests for allocation by explicit weight."""

    def setup_method(self):
        self.engine = AllocationEngine()

    def test_simple_weighted(self):
        result = self.engine.allocate(
            amount=Decimal("90.00"),
            targets=[
                AllocationTarget(target_id="a", weight=Decimal("1")),
                AllocationTarget(target_id="b", weight=Decimal("2")),
            ],
        )

        assert [line.target_id for line in result.lines] == ["a", "b"]
        assert _amounts(result) == [Decimal("30.00"), Decimal("60.00")]
        assert result.is_fully_allocated
        assert result.rounding_adjustment == Decimal("0")

    def test_last_target_absorbs_residual(self):
        """100 over three equal weights: 33.33 + 33.33 + 33.34."""
        result = self.engine.allocate(
            amount=Decimal("100.00"),
            targets=[
                AllocationTarget(target_id=i, weight=Decimal("1")) for i in ("a", "b", "c")
            ],
        )

        assert _amounts(result) == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert result.lines[-1].is_rounding_target
        assert not result.lines[0].is_rounding_target
        assert result.rounding_adjustment == Decimal("0.01")
        assert result.total_allocated == Decimal("100.00")

    def test_half_up_rounding_on_non_last_lines(self):
        """0.125 rounds half-up to 0.13 on the first line."""
        result = self.engine.allocate(
            amount=Decimal("1.00"),
            targets=[
                AllocationTarget(target_id="a", weight=Decimal("1")),
                AllocationTarget(target_id="b", weight=Decimal("7")),
            ],
        )

        assert _amounts(result) == [Decimal("0.13"), Decimal("0.87")]

    def test_zero_decimal_places(self):
        engine = AllocationEngine(decimal_places=0)
        result = engine.allocate(
            amount=Decimal("10"),
            targets=[AllocationTarget(target_id=i) for i in range(3)],
        )

        assert _amounts(result) == [Decimal("3"), Decimal("3"), Decimal("4")]

    def test_zero_weight_target_gets_nothing(self):
        result = self.engine.allocate(
            amount=Decimal("12.00"),
            targets=[
                AllocationTarget(target_id="a", weight=Decimal("0")),
                AllocationTarget(target_id="b", weight=Decimal("3")),
            ],
        )

        assert _amounts(result) == [Decimal("0.00"), Decimal("12.00")]

    def test_zero_total_weight_rejected(self):
        with pytest.raises(ValueError, match="weight"):
            self.engine.allocate(
                amount=Decimal("10"),
                targets=[AllocationTarget(target_id="a", weight=Decimal("0"))],
            )

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            AllocationTarget(target_id="a", weight=Decimal("-1"))


class TestEdgeCases:
    def test_no_targets_allocates_nothing(self):
        result = AllocationEngine().allocate(amount=Decimal("5.00"), targets=[])

        assert result.lines == ()
        assert result.total_allocated == Decimal("0")
        assert not result.is_fully_allocated

    def test_zero_amount(self):
        result = AllocationEngine().allocate(
            amount=Decimal("0"),
            targets=[
                AllocationTarget(target_id="a", weight=Decimal("3")),
                AllocationTarget(target_id="b", weight=Decimal("4")),
            ],
        )

        assert all(line.allocated == 0 for line in result.lines)

    def test_single_target_takes_everything(self):
        result = AllocationEngine().allocate(
            amount=Decimal("7.77"),
            targets=[AllocationTarget(target_id="only", weight=Decimal("2"))],
        )

        assert _amounts(result) == [Decimal("7.77")]
        assert result.lines[0].is_rounding_target

    def test_allocation_is_traced(self, captured_logs):
        AllocationEngine().allocate(
            amount=Decimal("10.00"),
            targets=[AllocationTarget(target_id="a")],
        )

        traces = [r for r in captured_logs() if r["message"] == "INVENTORY_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "allocation"
        assert len(traces[0]["input_fingerprint"]) == 16
