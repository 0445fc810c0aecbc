"""
Weibull Analysis Module
Provides Weibull parameter estimation and reliability calculations
for time-between-failure data.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.optimize import minimize
from scipy.special import gamma

from analysis_config import AnalysisConfig
from reliability_types import (
    AnalysisFailure,
    DataInsufficientError,
    InvalidInputError,
    ReliabilityError,
    WeibullParams,
)

# Reliability horizons reported by the summary, in days
SUMMARY_HORIZONS_DAYS = {
    "reliability_6m": 180,
    "reliability_1y": 365,
    "reliability_2y": 730,
    "reliability_4y": 1460,
    "reliability_10y": 3650,
}


def median_ranks(n: int) -> np.ndarray:
    """Bernard's approximation of the median rank of each ordered failure"""
    i = np.arange(1, n + 1)
    return (i - 0.3) / (n + 0.4)


def weibull_reliability(t, beta: float, eta: float):
    """R(t) = exp(-(t/eta)^beta); works on scalars and arrays"""
    return np.exp(-np.power(np.asarray(t, dtype=float) / eta, beta))


def weibull_unreliability(t, beta: float, eta: float):
    return 1.0 - weibull_reliability(t, beta, eta)


def weibull_pdf(t, beta: float, eta: float):
    t = np.asarray(t, dtype=float)
    return (beta / eta) * np.power(t / eta, beta - 1) * weibull_reliability(t, beta, eta)


def weibull_hazard(t, beta: float, eta: float):
    t = np.asarray(t, dtype=float)
    return (beta / eta) * np.power(t / eta, beta - 1)


def weibull_b_life(p: float, beta: float, eta: float) -> float:
    """Age by which a fraction ``p`` of the population has failed (B10 for p=0.1)"""
    if not 0.0 < p < 1.0:
        raise InvalidInputError(f"B-life fraction must be within (0, 1), got {p}", field="p")
    return float(eta * (-math.log(1.0 - p)) ** (1.0 / beta))


def weibull_mean_life(beta: float, eta: float) -> float:
    """Mean time to failure, eta * Gamma(1 + 1/beta)"""
    return float(eta * gamma(1.0 + 1.0 / beta))


def failure_pattern(beta: float) -> str:
    """Classify the failure pattern implied by the shape parameter"""
    if beta < 1.0:
        return "Infant Mortality"
    elif beta < 1.5:
        return "Random"
    elif beta < 3.0:
        return "Wear Out"
    return "Severe Wear Out"


class WeibullAnalysis:
    """Weibull analysis for time-between-failure data"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def validate_sample(self, failure_times: Sequence[float]) -> np.ndarray:
        """Reject non-positive or non-finite values and samples below two points"""
        try:
            data = np.asarray(list(failure_times), dtype=float)
        except (TypeError, ValueError):
            raise InvalidInputError("TBF sample must contain only numeric values") from None

        if data.ndim != 1:
            raise InvalidInputError("TBF sample must be one-dimensional")
        bad = ~np.isfinite(data) | (data <= 0)
        if bad.any():
            raise InvalidInputError(
                f"TBF sample contains {int(bad.sum())} non-positive or non-finite values",
                invalid_count=int(bad.sum()),
            )
        if len(data) < 2:
            raise DataInsufficientError(
                f"Insufficient data for Weibull analysis: {len(data)} TBF values, need at least 2",
                sample_size=len(data),
            )
        return data

    def probability_plot_r_squared(self, data: np.ndarray, beta: float, eta: float) -> float:
        """Coefficient of determination of the line y = beta * (ln t - ln eta) on the median-rank points"""
        ordered = np.sort(np.asarray(data, dtype=float))
        x = np.log(ordered)
        y = np.log(-np.log(1.0 - median_ranks(len(ordered))))
        y_pred = beta * (x - math.log(eta))
        ss_tot = float(np.sum((y - y.mean()) ** 2))
        ss_res = float(np.sum((y - y_pred) ** 2))
        return 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0

    def rank_regression(self, data: np.ndarray) -> Tuple[float, float, float]:
        """Median-rank regression of ln(-ln(1-F)) on ln(t); returns (beta, eta, r_squared)"""
        ordered = np.sort(data)
        x = np.log(ordered)
        y = np.log(-np.log(1.0 - median_ranks(len(ordered))))

        if np.ptp(x) == 0:
            raise DataInsufficientError(
                "All TBF values are identical; the Weibull line is undefined",
                sample_size=len(ordered),
            )

        beta, intercept = np.polyfit(x, y, 1)
        eta = math.exp(-intercept / beta)

        r_squared = self.probability_plot_r_squared(ordered, beta, eta)

        logging.debug(f"Rank regression: β={beta:.3f}, η={eta:.1f}, R²={r_squared:.3f}")
        return float(beta), float(eta), r_squared

    def weibull_mle(self, data: np.ndarray) -> Tuple[float, float]:
        """Maximum Likelihood Estimation for Weibull parameters"""
        beta0, eta0, _ = self.rank_regression(data)
        log_data = np.log(data)
        n = len(data)

        # Define negative log-likelihood function over log-parameters
        def neg_log_likelihood(params):
            beta, eta = np.exp(params)
            log_likelihood = (n * np.log(beta) - n * beta * np.log(eta)
                              + (beta - 1) * np.sum(log_data) - np.sum((data / eta) ** beta))
            return -log_likelihood

        result = minimize(neg_log_likelihood, [math.log(beta0), math.log(eta0)], method='L-BFGS-B')

        if result.success:
            beta, eta = np.exp(result.x)
            logging.info(f"Weibull MLE: β={beta:.3f}, η={eta:.1f}")
            return float(beta), float(eta)

        logging.warning(f"MLE optimization did not converge ({result.message}), using rank regression estimate")
        return beta0, eta0

    def estimate(self, failure_times: Sequence[float],
                 method: Optional[str] = None) -> Union[WeibullParams, AnalysisFailure]:
        """Fit shape and scale to a TBF sample.

        Returns WeibullParams, or an AnalysisFailure when the sample is too small
        or contains non-positive/non-finite values. Samples at or below the
        configured low-confidence size are fitted but flagged.
        """
        method = method or self.config.weibull_method
        try:
            data = self.validate_sample(failure_times)
            beta, eta, r_squared = self.rank_regression(data)
            if method == "mle":
                beta, eta = self.weibull_mle(data)
                r_squared = self.probability_plot_r_squared(data, beta, eta)
            elif method != "rank_regression":
                raise InvalidInputError(f"Unknown Weibull fit method: {method}", field="method")
        except ReliabilityError as e:
            logging.warning(f"Weibull estimation not possible: {e.message}")
            return e.to_failure()

        low_confidence = len(data) <= self.config.low_confidence_sample_size
        if low_confidence:
            logging.warning(f"Weibull fit on {len(data)} points is low confidence")
        logging.info(f"Weibull fit ({method}) on {len(data)} points: β={beta:.3f}, η={eta:.1f}")
        return WeibullParams(
            beta=beta,
            eta=eta,
            r_squared=r_squared,
            sample_size=len(data),
            low_confidence=low_confidence,
            method=method,
        )

    def calculate_reliability(self, time: float, params: WeibullParams) -> float:
        """Calculate reliability at given time"""
        return float(weibull_reliability(time, params.beta, params.eta))

    def calculate_hazard_rate(self, time: float, params: WeibullParams) -> float:
        """Calculate hazard rate at given time"""
        return float(weibull_hazard(time, params.beta, params.eta))

    def calculate_confidence_bounds(self, n: int, z_alpha: float = 1.96) -> Dict[str, List[float]]:
        """Normal-approximation band around the median ranks of an n-point sample"""
        if n < 3:
            return {"lower": [], "upper": []}

        ranks = median_ranks(n)
        se = np.sqrt(ranks * (1 - ranks) / n)
        lower = np.maximum(0.001, ranks - z_alpha * se)
        upper = np.minimum(0.999, ranks + z_alpha * se)
        return {"lower": lower.tolist(), "upper": upper.tolist()}

    def assess_goodness_of_fit(self, failure_times: Sequence[float], params: WeibullParams) -> Dict[str, Any]:
        """Compare the fitted CDF with the median-rank empirical CDF"""
        if len(failure_times) < 3:
            return {
                "overall_assessment": "Insufficient data",
                "r_squared": None,
                "kolmogorov_smirnov": None,
                "fit_quality": "Unknown",
            }

        ordered = np.sort(np.asarray(failure_times, dtype=float))
        theoretical_cdf = weibull_unreliability(ordered, params.beta, params.eta)
        empirical_cdf = median_ranks(len(ordered))

        ss_tot = float(np.sum((empirical_cdf - empirical_cdf.mean()) ** 2))
        ss_res = float(np.sum((empirical_cdf - theoretical_cdf) ** 2))
        r_squared = 1 - (ss_res / ss_tot) if ss_tot > 0 else 0.0
        ks_stat = float(np.max(np.abs(empirical_cdf - theoretical_cdf)))

        # Determine overall fit quality
        if r_squared >= 0.95 and ks_stat <= 0.1:
            fit_quality = "Excellent"
            overall_assessment = "Good fit"
        elif r_squared >= 0.90 and ks_stat <= 0.15:
            fit_quality = "Good"
            overall_assessment = "Good fit"
        elif r_squared >= 0.80 and ks_stat <= 0.20:
            fit_quality = "Fair"
            overall_assessment = "Fair fit"
        else:
            fit_quality = "Poor"
            overall_assessment = "Bad fit"

        return {
            "overall_assessment": overall_assessment,
            "r_squared": r_squared,
            "kolmogorov_smirnov": ks_stat,
            "fit_quality": fit_quality,
        }

    def plot_points(self, failure_times: Sequence[float]) -> List[Dict[str, float]]:
        """Linearised probability-plot coordinates for each ordered TBF value"""
        ordered = np.sort(np.asarray(failure_times, dtype=float))
        ranks = median_ranks(len(ordered))
        return [
            {"t": float(t), "x": float(np.log(t)), "y": float(np.log(-np.log(1.0 - f))), "median_rank": float(f)}
            for t, f in zip(ordered, ranks)
        ]

    def get_analysis_summary(self, failure_times: Sequence[float], method: Optional[str] = None) -> Dict[str, Any]:
        """Fit plus derived life figures, goodness of fit and reliability at fixed horizons"""
        fit = self.estimate(failure_times, method)
        if not fit.ok:
            summary = fit.to_dict()
            summary["failure_count"] = len(failure_times)
            return summary

        hours_per_day = 24.0 if self.config.time_unit == "hours" else 1.0
        goodness_of_fit = self.assess_goodness_of_fit(failure_times, fit)
        summary = fit.to_dict()
        summary.update({
            "failure_pattern": failure_pattern(fit.beta),
            "mean_time_to_failure": weibull_mean_life(fit.beta, fit.eta),
            "b10_life": weibull_b_life(0.1, fit.beta, fit.eta),
            "failure_count": len(failure_times),
            "goodness_of_fit": goodness_of_fit["overall_assessment"],
            "fit_quality": goodness_of_fit["fit_quality"],
            "kolmogorov_smirnov": goodness_of_fit["kolmogorov_smirnov"],
            "time_unit": self.config.time_unit,
        })
        for key, days in SUMMARY_HORIZONS_DAYS.items():
            summary[key] = self.calculate_reliability(days * hours_per_day, fit)
        return summary
