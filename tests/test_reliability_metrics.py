"""
Unit tests for MTBF/MTTR/availability metrics and trend analyses.
"""

from datetime import timedelta

import numpy as np
import pytest

from conftest import T0
from event_normalizer import EventNormalizer
from reliability_metrics import MetricsCalculator, calculate_availability, classify_cov
from reliability_types import FailureReason


class TestAvailability:
    """Tests for the availability ratio."""

    def test_zero_repair_time_gives_full_availability(self):
        assert calculate_availability(100.0, 0.0) == 1.0

    def test_undefined_when_both_zero(self):
        assert calculate_availability(0.0, 0.0) is None

    def test_ratio(self):
        assert calculate_availability(90.0, 10.0) == pytest.approx(0.9)


class TestMetricsCalculator:
    """Tests for the metric bundle."""

    def test_mtbf_is_arithmetic_mean(self):
        tbf = [12.5, 40.0, 7.25, 99.0, 61.0]
        metrics = MetricsCalculator().calculate(tbf, [1.0, 2.0])
        assert metrics.mtbf == pytest.approx(sum(tbf) / len(tbf), rel=1e-12)

    def test_mttr_and_availability(self):
        metrics = MetricsCalculator().calculate([100.0, 200.0], [2.0, 4.0, 6.0])
        assert metrics.mttr == pytest.approx(4.0)
        assert metrics.availability == pytest.approx(150.0 / 154.0)
        assert metrics.availability_percent == pytest.approx(150.0 / 154.0 * 100)
        assert metrics.total_downtime == pytest.approx(12.0)
        assert metrics.failure_count == 3

    def test_cov_uses_population_std(self):
        tbf = [10.0, 20.0, 30.0, 40.0]
        metrics = MetricsCalculator().calculate(tbf, [1.0])
        assert metrics.mtbf_cov == pytest.approx(np.std(tbf, ddof=0) / 25.0)
        assert metrics.cov_class == "Variable"

    def test_regular_failures_are_predictable(self):
        metrics = MetricsCalculator().calculate([100.0, 100.0, 100.0], [1.0])
        assert metrics.mtbf_cov == 0.0
        assert metrics.cov_class == "Predictable"

    def test_bursty_failures_are_chaotic(self):
        metrics = MetricsCalculator().calculate([1.0, 1.0, 1.0, 500.0], [1.0])
        assert metrics.mtbf_cov >= 1.0
        assert metrics.cov_class == "Chaotic"

    def test_empty_tbf_is_insufficient(self):
        result = MetricsCalculator().calculate([], [1.0])
        assert result.reason is FailureReason.DATA_INSUFFICIENT

    def test_non_positive_tbf_rejected(self):
        assert MetricsCalculator().calculate([10.0, 0.0], []).reason is FailureReason.INVALID_INPUT

    def test_negative_repair_rejected(self):
        assert MetricsCalculator().calculate([10.0], [-1.0]).reason is FailureReason.INVALID_INPUT

    def test_from_series(self, pump_events):
        series = EventNormalizer().normalize(pump_events).series["P-101"]
        metrics = MetricsCalculator().calculate_for_series(series)
        assert metrics.mtbf == pytest.approx(150.0)
        assert metrics.mttr == pytest.approx(1.25)
        assert metrics.failure_count == 4

    def test_recomputed_after_filter_change(self, mixed_events):
        """Metrics follow whichever event subset is passed in."""
        normalizer = EventNormalizer()
        calculator = MetricsCalculator()
        unplanned = calculator.calculate_for_series(normalizer.normalize(mixed_events).series["P-101"])
        everything = calculator.calculate_for_series(
            normalizer.normalize(mixed_events, categories=None).series["P-101"])
        assert unplanned.mtbf != everything.mtbf

    @pytest.mark.parametrize("cov, label", [
        (0.0, "Predictable"),
        (0.49, "Predictable"),
        (0.5, "Variable"),
        (0.99, "Variable"),
        (1.0, "Chaotic"),
    ])
    def test_classify_cov_boundaries(self, cov, label):
        assert classify_cov(cov) == label


class TestCrowAmsaa:
    """Tests for the reliability growth fit."""

    def test_constant_rate_has_beta_near_one(self):
        times = [T0 + timedelta(hours=100 * i) for i in range(12)]
        result = MetricsCalculator().crow_amsaa(times)
        assert result.ok
        assert result.beta == pytest.approx(1.0, abs=0.05)
        assert result.trend == "Stable"
        assert result.failures_per_year == pytest.approx(8760 / 100, rel=0.05)
        assert len(result.points) == 11

    def test_accelerating_failures_deteriorate(self):
        """Cumulative failures growing with the square of time give beta well above one."""
        hours = [0.0] + [100.0 * np.sqrt(k) for k in range(2, 12)]
        times = [T0 + timedelta(hours=h) for h in hours]
        result = MetricsCalculator().crow_amsaa(times)
        assert result.beta > 1.5
        assert result.trend == "Deteriorating"

    def test_needs_four_failures(self):
        times = [T0, T0 + timedelta(hours=5), T0 + timedelta(hours=9)]
        result = MetricsCalculator().crow_amsaa(times)
        assert result.reason is FailureReason.DATA_INSUFFICIENT

    def test_simultaneous_failures_are_insufficient(self):
        times = [T0] + [T0 + timedelta(hours=10)] * 4
        result = MetricsCalculator().crow_amsaa(times)
        assert result.reason is FailureReason.DATA_INSUFFICIENT


class TestRollingMtbf:
    """Tests for the sliding-window MTBF."""

    def test_window_mean_gap(self, pump_events):
        series = EventNormalizer().normalize(pump_events).series["P-101"]
        rolling = MetricsCalculator().rolling_mtbf(series, window=3)
        assert [r["mtbf"] for r in rolling] == pytest.approx([125.0, 175.0])

    def test_short_series_gives_no_points(self, pump_events):
        series = EventNormalizer().normalize(pump_events).series["P-101"]
        assert MetricsCalculator().rolling_mtbf(series, window=5) == []

    @pytest.mark.parametrize("window", [0, 1])
    def test_window_below_two_is_invalid(self, pump_events, window):
        series = EventNormalizer().normalize(pump_events).series["P-101"]
        result = MetricsCalculator().rolling_mtbf(series, window=window)
        assert not result.ok
        assert result.reason is FailureReason.INVALID_INPUT
