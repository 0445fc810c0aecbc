"""
Reliability Metrics Module
Computes MTBF, MTTR, availability and the failure-clustering coefficient of
variation, plus Crow-AMSAA growth and rolling MTBF trends.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from analysis_config import AnalysisConfig, HOURS_PER_UNIT, seconds_to_unit
from event_normalizer import AssetSeries
from reliability_types import (
    AnalysisFailure,
    DataInsufficientError,
    InvalidInputError,
    ReliabilityError,
    ReliabilityMetrics,
)

HOURS_PER_YEAR = 8760.0


def calculate_availability(mtbf: float, mttr: float) -> Optional[float]:
    """MTBF / (MTBF + MTTR) clamped to [0, 1]; None when both are zero"""
    total = mtbf + mttr
    if total == 0:
        return None
    return min(1.0, max(0.0, mtbf / total))


def classify_cov(cov: float, predictable_below: float = 0.5, chaotic_from: float = 1.0) -> str:
    if cov < predictable_below:
        return "Predictable"
    elif cov < chaotic_from:
        return "Variable"
    return "Chaotic"


@dataclass(frozen=True)
class CrowAmsaaResult:
    """Power-law growth fit N(T) = lambda * T^beta"""
    beta: float
    lambda_: float
    failures_per_year: float
    instantaneous_mtbf: float
    points: Tuple[Tuple[float, int], ...]

    @property
    def ok(self) -> bool:
        return True

    @property
    def trend(self) -> str:
        if self.beta > 1.05:
            return "Deteriorating"
        elif self.beta < 0.95:
            return "Improving"
        return "Stable"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "Analysis complete",
            "beta": self.beta,
            "lambda": self.lambda_,
            "failures_per_year": self.failures_per_year,
            "instantaneous_mtbf": self.instantaneous_mtbf,
            "trend": self.trend,
            "points": [{"cumulative_time": t, "cumulative_failures": n} for t, n in self.points],
        }


class MetricsCalculator:
    """Reliability metrics over TBF and repair-duration samples.

    The coefficient of variation uses the population standard deviation
    (ddof=0). Nothing is cached; every call recomputes from its inputs.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def _validated(self, values: Sequence[float], name: str, strictly_positive: bool) -> np.ndarray:
        data = np.asarray(list(values), dtype=float)
        if not np.all(np.isfinite(data)):
            raise InvalidInputError(f"{name} contains non-finite values", field=name)
        bad = data <= 0 if strictly_positive else data < 0
        if bad.any():
            raise InvalidInputError(f"{name} contains {int(bad.sum())} invalid values", field=name)
        return data

    def calculate(self, tbf: Sequence[float],
                  repair_durations: Sequence[float] = ()) -> Union[ReliabilityMetrics, AnalysisFailure]:
        """Compute MTBF, MTTR, availability and MTBF CoV.

        ``repair_durations`` must already be in the same time unit as ``tbf``.
        """
        try:
            tbf_data = self._validated(tbf, "tbf", strictly_positive=True)
            repairs = self._validated(repair_durations, "repair_durations", strictly_positive=False)
            if len(tbf_data) == 0:
                raise DataInsufficientError("No TBF values; MTBF is undefined", sample_size=0)
        except ReliabilityError as e:
            logging.warning(f"Reliability metrics not computed: {e.message}")
            return e.to_failure()

        mtbf = float(np.mean(tbf_data))
        mttr = float(np.mean(repairs)) if len(repairs) else 0.0
        availability = calculate_availability(mtbf, mttr)
        cov = float(np.std(tbf_data) / mtbf)
        cov_class = classify_cov(cov, self.config.cov_predictable_below, self.config.cov_chaotic_from)

        logging.info(f"Metrics: MTBF={mtbf:.2f}, MTTR={mttr:.2f}, CoV={cov:.2f} ({cov_class})")
        return ReliabilityMetrics(
            mtbf=mtbf,
            mttr=mttr,
            availability=availability,
            mtbf_cov=cov,
            cov_class=cov_class,
            failure_count=len(repairs) if len(repairs) else len(tbf_data) + 1,
            total_downtime=float(np.sum(repairs)),
            time_unit=self.config.time_unit,
        )

    def calculate_for_series(self, series: AssetSeries) -> Union[ReliabilityMetrics, AnalysisFailure]:
        """Metrics for a normalized asset series using its event durations as repairs"""
        return self.calculate(series.tbf, series.repair_durations)

    def crow_amsaa(self, failure_times: Sequence[datetime]) -> Union[CrowAmsaaResult, AnalysisFailure]:
        """Fit the Crow-AMSAA growth model N(T) = lambda * T^beta to failure timestamps.

        The first failure is the time origin; the remaining failures form a
        failure-terminated sample and beta uses the unbiased estimator
        (m - 2) / sum(ln(T_m / T_i)).
        """
        times = sorted(t for t in failure_times if t is not None)
        t0 = times[0] if times else None
        cumulative = [
            seconds_to_unit((stamp - t0).total_seconds(), self.config.time_unit)
            for stamp in times[1:]
        ]
        cumulative = [t for t in cumulative if t > 0]

        if len(cumulative) < 3:
            failure = DataInsufficientError(
                f"Crow-AMSAA needs at least 4 failures at distinct times, got {len(times)}",
                sample_size=len(times),
            ).to_failure()
            logging.warning(failure.message)
            return failure

        m = len(cumulative)
        end_time = cumulative[-1]
        log_sum = float(np.sum(np.log(end_time / np.asarray(cumulative[:-1]))))
        if log_sum <= 0:
            failure = DataInsufficientError(
                "Crow-AMSAA needs failures spread over time after the first",
                sample_size=len(times),
            ).to_failure()
            logging.warning(failure.message)
            return failure

        beta = (m - 2) / log_sum
        lambda_param = m / end_time ** beta

        # Failure intensity at the end of the observation window
        intensity = lambda_param * beta * end_time ** (beta - 1)
        units_per_year = HOURS_PER_YEAR / HOURS_PER_UNIT[self.config.time_unit]
        failures_per_year = float(intensity * units_per_year)
        instantaneous_mtbf = float(1.0 / intensity) if intensity > 0 else float("inf")

        logging.debug(f"Crow-AMSAA params: beta={beta:.2f}, lambda={lambda_param:.4f}, failures/year={failures_per_year:.2f}")
        return CrowAmsaaResult(
            beta=float(beta),
            lambda_=float(lambda_param),
            failures_per_year=failures_per_year,
            instantaneous_mtbf=instantaneous_mtbf,
            points=tuple((t, n) for n, t in enumerate(cumulative, start=1)),
        )

    def rolling_mtbf(self, series: AssetSeries,
                     window: Optional[int] = None) -> Union[List[Dict[str, Any]], AnalysisFailure]:
        """Mean gap over each sliding window of ``window`` consecutive failures"""
        window = self.config.rolling_window if window is None else window
        if window < 2:
            failure = InvalidInputError(
                f"Rolling window must be at least 2, got {window}", field="window"
            ).to_failure()
            logging.warning(failure.message)
            return failure

        stamps = [e.start_time for e in series.events]
        results = []
        for end in range(window, len(stamps) + 1):
            chunk = stamps[end - window:end]
            span = seconds_to_unit((chunk[-1] - chunk[0]).total_seconds(), self.config.time_unit)
            results.append({"date": chunk[-1].date().isoformat(), "mtbf": span / (window - 1)})
        return results
