"""
Unit tests for the age-replacement cost optimisation.
"""

import math

import pytest

from analysis_config import AnalysisConfig
from pm_analysis import PMAnalysis, practical_interval
from reliability_types import CostBreakdown, CostModel, FailureReason, WeibullParams


def costs(preventive, corrective):
    return CostModel(preventive=CostBreakdown(material=preventive),
                     corrective=CostBreakdown(material=corrective))


class TestOptimalInterval:
    """Tests for T* and its cost rate."""

    @pytest.fixture
    def wear_out(self):
        return WeibullParams(beta=3.0, eta=1000.0)

    def test_wear_out_has_finite_optimum(self, wear_out):
        analysis = PMAnalysis()
        result = analysis.calculate_optimal_pm_interval(wear_out, costs(100.0, 1000.0))

        assert result.ok
        assert 0 < result.optimal_interval < wear_out.eta
        assert math.isfinite(result.cost_rate)
        assert result.cost_rate <= float(analysis.cost_rate(wear_out.eta, wear_out, 100.0, 1000.0))
        assert result.failure_pattern == "Severe Wear Out"

    def test_optimum_is_a_local_minimum(self, wear_out):
        analysis = PMAnalysis()
        result = analysis.calculate_optimal_pm_interval(wear_out, costs(100.0, 1000.0))
        t = result.optimal_interval
        assert result.cost_rate <= float(analysis.cost_rate(0.9 * t, wear_out, 100.0, 1000.0))
        assert result.cost_rate <= float(analysis.cost_rate(1.1 * t, wear_out, 100.0, 1000.0))

    def test_close_to_closed_form_approximation(self, wear_out):
        result = PMAnalysis().calculate_optimal_pm_interval(wear_out, costs(100.0, 1000.0))
        assert result.approximate_interval == pytest.approx(1000.0 * (100.0 / 2000.0) ** (1 / 3))
        assert result.optimal_interval == pytest.approx(result.approximate_interval, rel=0.15)

    def test_savings_against_run_to_failure(self, wear_out):
        result = PMAnalysis().calculate_optimal_pm_interval(wear_out, costs(100.0, 1000.0))
        assert result.run_to_failure_cost_rate == pytest.approx(1000.0 / (1000.0 * math.gamma(4 / 3)))
        assert result.savings_percent > 0

    def test_cost_breakdown_is_summed(self, wear_out):
        model = CostModel(
            preventive=CostBreakdown(material=40.0, labor=60.0),
            corrective=CostBreakdown(material=200.0, labor=300.0, production_loss=500.0),
        )
        result = PMAnalysis().calculate_optimal_pm_interval(wear_out, model)
        assert result.preventive_cost == pytest.approx(100.0)
        assert result.corrective_cost == pytest.approx(1000.0)

    def test_practical_interval_in_days_unit(self):
        result = PMAnalysis(AnalysisConfig(time_unit="days")).calculate_optimal_pm_interval(
            WeibullParams(beta=3.0, eta=2000.0), costs(100.0, 1000.0))
        assert result.time_unit == "days"
        assert result.practical_interval == "Annual"

    @pytest.mark.parametrize("beta", [0.8, 1.0])
    def test_no_wear_out_is_not_applicable(self, beta):
        result = PMAnalysis().calculate_optimal_pm_interval(
            WeibullParams(beta=beta, eta=1000.0), costs(100.0, 1000.0))
        assert not result.ok
        assert result.reason is FailureReason.MODEL_NOT_APPLICABLE

    @pytest.mark.parametrize("cp, cc", [(1000.0, 1000.0), (1500.0, 1000.0)])
    def test_preventive_not_cheaper_is_invalid(self, wear_out, cp, cc):
        result = PMAnalysis().calculate_optimal_pm_interval(wear_out, costs(cp, cc))
        assert result.reason is FailureReason.INVALID_INPUT

    def test_free_preventive_action_is_invalid(self, wear_out):
        result = PMAnalysis().calculate_optimal_pm_interval(wear_out, costs(0.0, 1000.0))
        assert result.reason is FailureReason.INVALID_INPUT

    def test_to_dict(self, wear_out):
        data = PMAnalysis().calculate_optimal_pm_interval(wear_out, costs(100.0, 1000.0)).to_dict()
        assert data["status"] == "Analysis complete"
        assert data["optimal_interval"] > 0


class TestCostCurve:
    """Tests for the sampled cost-rate curve."""

    def test_curve_points(self):
        curve = PMAnalysis().generate_cost_curve(WeibullParams(beta=2.5, eta=500.0), costs(50.0, 800.0))
        assert len(curve) == 50
        assert curve[0]["t"] == pytest.approx(50.0)
        assert curve[-1]["t"] == pytest.approx(750.0)
        assert all(point["cost_rate"] > 0 for point in curve)

    def test_invalid_costs(self):
        result = PMAnalysis().generate_cost_curve(WeibullParams(beta=2.5, eta=500.0), costs(900.0, 800.0))
        assert result.reason is FailureReason.INVALID_INPUT

    def test_cycle_length_approaches_mean_life(self):
        params = WeibullParams(beta=2.0, eta=100.0)
        assert float(PMAnalysis().expected_cycle_length(5000.0, params)) == pytest.approx(
            100.0 * math.gamma(1.5), rel=1e-6)


class TestPracticalInterval:
    """Tests for rounding to a common PM frequency."""

    @pytest.mark.parametrize("days, label, interval", [
        (10, "Weekly", 7),
        (45, "Monthly", 30),
        (120, "Quarterly", 90),
        (200, "Semi-annual", 180),
        (400, "Annual", 365),
    ])
    def test_buckets(self, days, label, interval):
        assert practical_interval(days) == (label, interval)
