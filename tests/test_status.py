"""Tests for stock tier classification."""

import pytest
from sparkstock.status import ALERTING_TIERS, StockTier, classify

# ---------------------------------------------------------------------------
# Tier boundaries
# ---------------------------------------------------------------------------


class TestClassify:
    def test_zero_is_out(self):
        for threshold in (0.5, 1, 3, 100):
            assert classify(0, threshold) == StockTier.OUT

    def test_below_threshold_is_low(self):
        assert classify(2, 3) == StockTier.LOW  # ratio 0.67

    def test_at_threshold_is_low(self):
        assert classify(3, 3) == StockTier.LOW

    def test_just_above_threshold_is_ok(self):
        assert classify(3.01, 3) == StockTier.OK

    def test_double_threshold_is_ok(self):
        assert classify(6, 3) == StockTier.OK

    def test_above_double_is_good(self):
        assert classify(7, 3) == StockTier.GOOD  # ratio 2.33

    def test_fractional_quantities(self):
        assert classify(0.25, 0.5) == StockTier.LOW
        assert classify(1.5, 0.5) == StockTier.GOOD


class TestZeroThreshold:
    def test_empty_is_out(self):
        assert classify(0, 0) == StockTier.OUT

    def test_anything_else_is_good(self):
        assert classify(1, 0) == StockTier.GOOD
        assert classify(0.001, 0) == StockTier.GOOD


class TestMonotonic:
    def test_severity_never_increases_with_ratio(self):
        threshold = 4
        quantities = [q / 4 for q in range(0, 60)]
        severities = [classify(q, threshold).severity for q in quantities]
        assert severities == sorted(severities)

    @pytest.mark.parametrize("threshold", [0.1, 1, 7, 250])
    def test_all_tiers_reachable(self, threshold):
        seen = {
            classify(q, threshold)
            for q in (0, threshold * 0.5, threshold * 1.5, threshold * 3)
        }
        assert seen == set(StockTier)


class TestStockTier:
    def test_labels(self):
        assert StockTier.OUT.label == "OUT"
        assert StockTier.GOOD.label == "GOOD"

    def test_alerting(self):
        assert {t for t in StockTier if t.is_alerting} == set(ALERTING_TIERS)
        assert not StockTier.OK.is_alerting
