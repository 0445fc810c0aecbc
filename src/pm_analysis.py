"""
PM Analysis Module
Finds the cost-optimal preventive replacement interval from a fitted Weibull
distribution using the age-replacement cost-rate model.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
from scipy.optimize import minimize_scalar
from scipy.special import gammainc

from analysis_config import AnalysisConfig, HOURS_PER_UNIT
from reliability_types import (
    AnalysisFailure,
    CostModel,
    InvalidInputError,
    ModelNotApplicableError,
    ReliabilityError,
    WeibullParams,
)
from weibull_analysis import failure_pattern, weibull_mean_life, weibull_reliability

# (upper bound in days, label, interval in days); first match wins
PRACTICAL_INTERVALS = [
    (30, "Weekly", 7),
    (90, "Monthly", 30),
    (180, "Quarterly", 90),
    (365, "Semi-annual", 180),
]


@dataclass(frozen=True)
class OptimalIntervalResult:
    optimal_interval: float
    cost_rate: float
    run_to_failure_cost_rate: float
    savings_percent: float
    approximate_interval: float
    preventive_cost: float
    corrective_cost: float
    failure_pattern: str
    practical_interval: str
    practical_interval_days: int
    time_unit: str = "hours"

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "Analysis complete",
            "optimal_interval": self.optimal_interval,
            "cost_rate": self.cost_rate,
            "run_to_failure_cost_rate": self.run_to_failure_cost_rate,
            "savings_percent": self.savings_percent,
            "approximate_interval": self.approximate_interval,
            "preventive_cost": self.preventive_cost,
            "corrective_cost": self.corrective_cost,
            "failure_pattern": self.failure_pattern,
            "practical_interval": self.practical_interval,
            "practical_interval_days": self.practical_interval_days,
            "time_unit": self.time_unit,
        }


def practical_interval(interval_days: float) -> Tuple[str, int]:
    """Round an interval down to the nearest common PM frequency"""
    for upper, label, days in PRACTICAL_INTERVALS:
        if interval_days < upper:
            return label, days
    return "Annual", 365


class PMAnalysis:
    """Age-replacement cost optimisation for preventive maintenance.

    The expected cost per unit time of replacing at age T (or at failure,
    whichever comes first) is

        g(T) = [Cp * R(T) + Cc * (1 - R(T))] / integral_0^T R(t) dt

    For a Weibull life the denominator is eta * Gamma(1 + 1/beta) times the
    regularised lower incomplete gamma P(1/beta, (T/eta)^beta).
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def expected_cycle_length(self, T, params: WeibullParams):
        """Integral of R(t) from 0 to T"""
        T = np.asarray(T, dtype=float)
        return weibull_mean_life(params.beta, params.eta) * gammainc(1.0 / params.beta, (T / params.eta) ** params.beta)

    def cost_rate(self, T, params: WeibullParams, preventive_cost: float, corrective_cost: float):
        """Long-run expected cost per unit time for replacement age T"""
        reliability = weibull_reliability(T, params.beta, params.eta)
        expected_cost = preventive_cost * reliability + corrective_cost * (1.0 - reliability)
        return expected_cost / self.expected_cycle_length(T, params)

    def _validate_costs(self, cost_model: CostModel) -> Tuple[float, float]:
        cp = cost_model.preventive_cost
        cc = cost_model.corrective_cost
        if cp >= cc:
            raise InvalidInputError(
                f"Preventive cost ({cp:.2f}) is not below corrective cost ({cc:.2f}); "
                "a preventive programme cannot beat running to failure",
                preventive_cost=cp, corrective_cost=cc,
            )
        if cp <= 0:
            raise InvalidInputError(
                "Preventive cost must be positive; a free preventive action has no finite optimal interval",
                preventive_cost=cp,
            )
        return cp, cc

    def _search(self, params: WeibullParams, cp: float, cc: float) -> Tuple[float, float]:
        """Grid search over (0, k*eta], then bounded refinement around the grid minimum"""
        n = self.config.search_grid_points
        multiple = self.config.search_multiple

        for attempt in range(self.config.max_search_extensions + 1):
            upper = multiple * params.eta
            grid = np.linspace(upper / n, upper, n)
            costs = self.cost_rate(grid, params, cp, cc)
            i = int(np.nanargmin(costs))
            if i < n - 1:
                break
            logging.debug(f"Cost rate still falling at {upper:.1f}, widening search")
            multiple *= 2
        else:
            raise ModelNotApplicableError(
                f"Cost rate keeps decreasing up to {upper:.1f}; no beneficial interval exists in range",
                search_upper_bound=upper,
            )

        lower_bound = grid[i - 1] if i > 0 else grid[0] * 1e-3
        upper_bound = grid[i + 1]
        result = minimize_scalar(
            lambda t: float(self.cost_rate(t, params, cp, cc)),
            bounds=(lower_bound, upper_bound),
            method='bounded',
            options={'xatol': self.config.search_tolerance * params.eta},
        )

        best_t, best_cost = float(grid[i]), float(costs[i])
        if result.success and float(result.fun) <= best_cost:
            best_t, best_cost = float(result.x), float(result.fun)
        return best_t, best_cost

    def calculate_optimal_pm_interval(self, params: WeibullParams,
                                      cost_model: CostModel) -> Union[OptimalIntervalResult, AnalysisFailure]:
        """Cost-minimising preventive replacement interval T* and g(T*).

        Returns an AnalysisFailure when costs are invalid (Cp >= Cc) or when
        beta <= 1, where no preventive interval beats run-to-failure.
        """
        try:
            cp, cc = self._validate_costs(cost_model)
            if params.beta <= 1.0:
                raise ModelNotApplicableError(
                    f"β={params.beta:.3f} does not indicate wear-out; "
                    "no beneficial preventive interval exists",
                    beta=params.beta,
                )
            t_star, g_star = self._search(params, cp, cc)
        except ReliabilityError as e:
            logging.warning(f"No optimal PM interval: {e.message}")
            return e.to_failure()

        run_to_failure = cc / weibull_mean_life(params.beta, params.eta)
        savings = (run_to_failure - g_star) / run_to_failure * 100.0
        # Closed-form approximation, useful as a sanity check on the numeric optimum
        approximate = params.eta * (cp / (cc * (params.beta - 1.0))) ** (1.0 / params.beta)

        interval_days = t_star * HOURS_PER_UNIT[self.config.time_unit] / 24.0
        label, days = practical_interval(interval_days)

        logging.info(f"Optimal PM interval {t_star:.1f} {self.config.time_unit} "
                     f"(cost rate {g_star:.4f}, {savings:.1f}% below run-to-failure)")
        return OptimalIntervalResult(
            optimal_interval=t_star,
            cost_rate=g_star,
            run_to_failure_cost_rate=run_to_failure,
            savings_percent=savings,
            approximate_interval=approximate,
            preventive_cost=cp,
            corrective_cost=cc,
            failure_pattern=failure_pattern(params.beta),
            practical_interval=label,
            practical_interval_days=days,
            time_unit=self.config.time_unit,
        )

    def generate_cost_curve(self, params: WeibullParams, cost_model: CostModel,
                            points: int = 50) -> Union[List[Dict[str, float]], AnalysisFailure]:
        """Sample g(T) between 0.1 and 1.5 characteristic lives for charting"""
        try:
            cp, cc = self._validate_costs(cost_model)
        except ReliabilityError as e:
            return e.to_failure()

        grid = np.linspace(0.1 * params.eta, 1.5 * params.eta, points)
        costs = self.cost_rate(grid, params, cp, cc)
        return [{"t": float(t), "cost_rate": float(c)} for t, c in zip(grid, costs)]
