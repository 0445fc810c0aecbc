"""
Pareto Analysis Module
Ranks failure contributors (assets, failure modes) by cumulative share of
downtime or event count and assigns ABC classes.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from analysis_config import AnalysisConfig, minutes_to_unit
from reliability_types import (
    AnalysisFailure,
    DataInsufficientError,
    EventCategory,
    FailureEvent,
    InvalidInputError,
    ParetoRow,
    ReliabilityError,
    require_finite,
)

GROUP_KEYS = {
    "asset": lambda e: e.asset_id,
    "failure_mode": lambda e: e.failure_mode,
}


@dataclass(frozen=True)
class ParetoResult:
    rows: Tuple[ParetoRow, ...]
    total: float
    basis: str = "value"

    @property
    def ok(self) -> bool:
        return True

    @property
    def vital_few(self) -> List[str]:
        return [row.key for row in self.rows if row.abc_class == "A"]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(r.key, r.value, r.share_percent, r.cumulative_percent, r.abc_class) for r in self.rows],
            columns=["key", "value", "share_percent", "cumulative_percent", "abc_class"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "Analysis complete",
            "basis": self.basis,
            "total": self.total,
            "rows": [
                {
                    "key": r.key,
                    "value": r.value,
                    "share_percent": r.share_percent,
                    "cumulative_percent": r.cumulative_percent,
                    "abc_class": r.abc_class,
                }
                for r in self.rows
            ],
        }


class ParetoRanker:
    """Groups (category, magnitude) pairs and ranks them by cumulative contribution"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def _abc_class(self, cumulative_before: float) -> str:
        # A row belongs to the class in which its contribution starts
        if cumulative_before < self.config.pareto_a_threshold:
            return "A"
        elif cumulative_before < self.config.pareto_b_threshold:
            return "B"
        return "C"

    def rank(self, pairs: Iterable[Tuple[str, float]], top_n: Optional[int] = None,
             basis: str = "value") -> Union[ParetoResult, AnalysisFailure]:
        """Sum magnitudes per key and sort descending.

        Equal totals keep the order in which their key first appeared.
        ``top_n`` truncates after cumulative percentages are computed on the
        full set, so the last returned row may sit below 100 %.
        """
        try:
            totals: Dict[str, float] = {}
            for key, magnitude in pairs:
                value = require_finite(magnitude, "magnitude", minimum=0.0)
                key = str(key)
                totals[key] = totals.get(key, 0.0) + value

            grand_total = sum(totals.values())
            if grand_total <= 0:
                raise DataInsufficientError(
                    "Nothing to rank: no contributors or all magnitudes are zero",
                    contributor_count=len(totals),
                )
            if top_n is not None and top_n < 1:
                raise InvalidInputError(f"top_n must be positive, got {top_n}", field="top_n")
        except ReliabilityError as e:
            logging.warning(f"Pareto ranking not possible: {e.message}")
            return e.to_failure()

        ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)

        rows = []
        running = 0.0
        for key, value in ordered:
            cumulative_before = running / grand_total * 100.0
            running += value
            rows.append(ParetoRow(
                key=key,
                value=value,
                cumulative_percent=running / grand_total * 100.0,
                share_percent=value / grand_total * 100.0,
                abc_class=self._abc_class(cumulative_before),
            ))

        if top_n is not None:
            rows = rows[:top_n]

        logging.info(f"Ranked {len(ordered)} contributors by {basis}, total {grand_total:.2f}")
        return ParetoResult(rows=tuple(rows), total=grand_total, basis=basis)

    def rank_events(self, events: Iterable[FailureEvent], group_by: str = "asset",
                    basis: str = "duration",
                    categories: Optional[Iterable[EventCategory]] = (EventCategory.UNPLANNED,),
                    top_n: Optional[int] = None) -> Union[ParetoResult, AnalysisFailure]:
        """Rank events by asset or failure mode on downtime ('duration') or event 'count'"""
        if group_by not in GROUP_KEYS:
            return InvalidInputError(f"Unknown grouping: {group_by}", field="group_by").to_failure()
        if basis not in ("duration", "count"):
            return InvalidInputError(f"Unknown ranking basis: {basis}", field="basis").to_failure()

        key_of = GROUP_KEYS[group_by]
        allowed = None if categories is None else {EventCategory.parse(c) for c in categories}
        pairs = []
        for event in events:
            if allowed is not None and event.category not in allowed:
                continue
            if basis == "count":
                pairs.append((key_of(event), 1.0))
            else:
                pairs.append((key_of(event), minutes_to_unit(event.duration_minutes, self.config.time_unit)))
        return self.rank(pairs, top_n=top_n, basis=basis)
