"""
Workload Scheduler Module
Projects recurring PM tasks onto a 52-week labour load profile, levels start
weeks against a weekly capacity ceiling and compares annual demand with the
available workforce per trade.
"""

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from analysis_config import AnalysisConfig
from reliability_types import (
    HORIZON_WEEKS,
    AnalysisFailure,
    CapacityExceededError,
    InvalidInputError,
    MaintenanceTask,
    ReliabilityError,
    ResourceCapacity,
    WeeklyLoad,
    require_finite,
)

TASK_COLUMNS = {
    'id': 'id',
    'asset_id': 'asset_id',
    'frequency': 'frequency',
    'estimated_duration_hours': 'estimated_duration_hours',
    'executor_count': 'executor_count',
    'start_week': 'start_week',
    'trade': 'trade',
    'executor_type': 'executor_type',
}

OVERLOADED_ABOVE = 100.0
BALANCED_FROM = 80.0


def normalize_frequency(freq: Any) -> float:
    """Convert a frequency label ('Monthly', '2 weeks', '6') to occurrences per year.

    Bare numbers are read as an interval in months.
    """
    if isinstance(freq, (int, float)) and not isinstance(freq, bool):
        if not math.isfinite(freq) or freq <= 0:
            raise InvalidInputError(f"Frequency must be positive, got {freq}", field="frequency")
        return 12.0 / freq

    f = str(freq or "").lower().strip()
    if not f:
        return 1.0

    match = re.search(r"(-?\d+(\.\d+)?)", f)
    num = float(match.group(0)) if match else None
    if num is not None and num <= 0:
        raise InvalidInputError(f"Frequency must be positive, got '{freq}'", field="frequency")

    if 'dai' in f or 'day' in f:
        return 365.0 / num if num else 365.0
    if 'fortnight' in f or 'bi-week' in f or 'biweek' in f:
        return 26.0
    if 'semi' in f or 'half' in f:
        return 2.0
    if 'wee' in f:
        return 52.0 / num if num else 52.0
    if 'mon' in f:
        return 12.0 / num if num else 12.0
    if 'yea' in f or 'annu' in f:
        return 1.0 / num if num else 1.0
    if 'quart' in f:
        return 4.0
    if num is not None:
        return 12.0 / num
    logging.warning(f"Unrecognised frequency '{freq}', assuming annual")
    return 1.0


def frequency_to_months(freq: Any) -> float:
    return 12.0 / normalize_frequency(freq)


def tasks_from_dataframe(df: pd.DataFrame, column_map: Optional[Dict[str, str]] = None) -> List[MaintenanceTask]:
    """Build MaintenanceTasks from an already column-mapped DataFrame, skipping invalid rows"""
    columns = dict(TASK_COLUMNS)
    columns.update(column_map or {})
    tasks = []
    skipped = 0

    for position, (_, row) in enumerate(df.iterrows()):
        def value(field: str, default: Any = None) -> Any:
            name = columns[field]
            raw = row[name] if name in row.index else default
            return default if raw is None or (not isinstance(raw, str) and pd.isna(raw)) else raw

        executors = pd.to_numeric(value('executor_count', 1), errors='coerce')
        start_week = pd.to_numeric(value('start_week', 1), errors='coerce')
        try:
            tasks.append(MaintenanceTask(
                id=str(value('id', f"pm-{position}")),
                asset_id=str(value('asset_id', 'Unknown Asset')),
                frequency_months=frequency_to_months(value('frequency', '')),
                estimated_duration_hours=pd.to_numeric(value('estimated_duration_hours', 0.0), errors='coerce'),
                executor_count=executors if executors and executors >= 1 else 1,
                start_week=min(HORIZON_WEEKS, start_week) if start_week and start_week >= 1 else 1,
                trade=str(value('trade', 'General')),
                executor_type=str(value('executor_type', 'Internal')),
            ))
        except InvalidInputError as e:
            skipped += 1
            logging.warning(f"Skipping PM task row {position}: {e.message}")

    logging.info(f"Built {len(tasks)} PM tasks from table ({skipped} rows skipped)")
    return tasks


@dataclass(frozen=True)
class LoadProfile:
    """Derived weekly labour load; rebuilt in full whenever tasks change"""
    weeks: Tuple[WeeklyLoad, ...]

    @property
    def hours(self) -> np.ndarray:
        return np.array([w.hours for w in self.weeks], dtype=float)

    @property
    def peak(self) -> float:
        return float(self.hours.max()) if self.weeks else 0.0

    @property
    def mean(self) -> float:
        return float(self.hours.mean()) if self.weeks else 0.0

    @property
    def total_hours(self) -> float:
        return float(self.hours.sum())

    @property
    def peak_to_average(self) -> Optional[float]:
        mean = self.mean
        return self.peak / mean if mean > 0 else None

    @property
    def variance(self) -> float:
        return float(self.hours.var()) if self.weeks else 0.0

    def overloaded_weeks(self, capacity: float) -> List[int]:
        return [w.week for w in self.weeks if w.hours > capacity + 1e-9]

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([(w.week, w.hours, w.task_count) for w in self.weeks],
                            columns=['week', 'hours', 'task_count'])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'weeks': [{'week': w.week, 'hours': w.hours, 'task_count': w.task_count} for w in self.weeks],
            'peak': self.peak,
            'mean': self.mean,
            'peak_to_average': self.peak_to_average,
            'variance': self.variance,
        }


@dataclass(frozen=True)
class ScheduleResult:
    """Outcome of greedy leveling.

    Capacity problems do not suppress the schedule: tasks that cannot fit
    and weeks left above capacity are listed in ``issues``.
    """
    tasks: Tuple[MaintenanceTask, ...]
    profile: LoadProfile
    baseline_profile: LoadProfile
    weekly_capacity: float
    unschedulable_task_ids: Tuple[str, ...] = ()
    overloaded_weeks: Tuple[int, ...] = ()
    issues: Tuple[AnalysisFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return True

    @property
    def capacity_exceeded(self) -> bool:
        return bool(self.overloaded_weeks)

    @property
    def assignments(self) -> Dict[str, int]:
        return {task.id: task.start_week for task in self.tasks}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': 'Capacity exceeded' if self.capacity_exceeded else 'Analysis complete',
            'assignments': self.assignments,
            'weekly_capacity': self.weekly_capacity,
            'baseline_peak': self.baseline_profile.peak,
            'profile': self.profile.to_dict(),
            'unschedulable_task_ids': list(self.unschedulable_task_ids),
            'overloaded_weeks': list(self.overloaded_weeks),
            'issues': [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True)
class TradeGap:
    trade: str
    required_hours: float
    available_hours: float
    utilization_percent: Optional[float]
    gap_hours: float
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'trade': self.trade,
            'required_hours': self.required_hours,
            'available_hours': self.available_hours,
            'utilization_percent': self.utilization_percent,
            'gap_hours': self.gap_hours,
            'status': self.status,
        }


class WorkloadScheduler:
    """Weekly PM workload projection and start-week leveling.

    Leveling is a greedy heuristic: tasks are placed one at a time in
    descending order of per-occurrence load, each at the start week that
    minimises (hours above capacity, resulting peak, variance, week number).
    Total overflow ranks ahead of the peak, so this is not pure peak
    minimisation: a placement leaving one week at 13 h is preferred over one
    leaving two weeks at 12 h against a 10 h ceiling. Identical inputs always give the identical
    assignment; the result is not guaranteed to be optimal.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    @property
    def horizon(self) -> int:
        return self.config.horizon_weeks

    def interval_weeks(self, task: MaintenanceTask) -> int:
        """Recurrence interval in whole weeks, rounded half-up, at least 1"""
        return max(1, int(math.floor(task.frequency_months * self.config.weeks_per_month + 0.5)))

    def occurrence_weeks(self, task: MaintenanceTask, start_week: Optional[int] = None) -> range:
        start = start_week if start_week is not None else task.start_week
        start = max(1, min(self.horizon, start))
        return range(start, self.horizon + 1, self.interval_weeks(task))

    def _contribution(self, task: MaintenanceTask, start_week: int) -> np.ndarray:
        load = np.zeros(self.horizon)
        for week in self.occurrence_weeks(task, start_week):
            load[week - 1] += task.occurrence_load
        return load

    def project(self, tasks: Iterable[MaintenanceTask]) -> LoadProfile:
        """Weekly load from the tasks' current start weeks"""
        hours = np.zeros(self.horizon)
        counts = np.zeros(self.horizon, dtype=int)
        for task in tasks:
            for week in self.occurrence_weeks(task):
                hours[week - 1] += task.occurrence_load
                counts[week - 1] += 1
        return LoadProfile(weeks=tuple(
            WeeklyLoad(week=i + 1, hours=float(hours[i]), task_count=int(counts[i]))
            for i in range(self.horizon)
        ))

    def placement_key(self, load: np.ndarray, weekly_capacity: float, week: int) -> Tuple[float, float, float, int]:
        """Ordering of candidate placements; smaller is better"""
        return (
            float(np.clip(load - weekly_capacity, 0.0, None).sum()),
            float(load.max()),
            float(load.var()),
            week,
        )

    def _candidate_weeks(self, task: MaintenanceTask) -> range:
        # Later starts only repeat an earlier phase with occurrences cut off
        return range(1, min(self.interval_weeks(task), self.horizon) + 1)

    def level(self, tasks: Sequence[MaintenanceTask],
              capacity: Union[float, ResourceCapacity]) -> Union[ScheduleResult, AnalysisFailure]:
        """Choose start weeks that flatten the 52-week load under a weekly capacity"""
        tasks = list(tasks)
        try:
            weekly_capacity = capacity.weekly_capacity if isinstance(capacity, ResourceCapacity) else capacity
            weekly_capacity = require_finite(weekly_capacity, "weekly_capacity", minimum=0.0, strict=True)
            ids = [task.id for task in tasks]
            if len(set(ids)) != len(ids):
                raise InvalidInputError("Task ids must be unique for scheduling", field="id")
        except ReliabilityError as e:
            logging.warning(f"Leveling not possible: {e.message}")
            return e.to_failure()

        baseline = self.project(tasks)
        order = sorted(range(len(tasks)), key=lambda i: tasks[i].occurrence_load, reverse=True)

        running = np.zeros(self.horizon)
        assigned: Dict[int, MaintenanceTask] = {}
        issues = []
        unschedulable = []
        for i in order:
            task = tasks[i]
            if task.occurrence_load > weekly_capacity:
                unschedulable.append(task.id)
                issues.append(CapacityExceededError(
                    f"Task {task.id} needs {task.occurrence_load:.1f} h in one week, "
                    f"above the {weekly_capacity:.1f} h capacity; unschedulable within capacity",
                    task_id=task.id, load=task.occurrence_load, capacity=weekly_capacity,
                ).to_failure())

            best_key, best_week, best_load = None, task.start_week, None
            for week in self._candidate_weeks(task):
                trial = running + self._contribution(task, week)
                key = self.placement_key(trial, weekly_capacity, week)
                if best_key is None or key < best_key:
                    best_key, best_week, best_load = key, week, trial

            running = best_load
            assigned[i] = replace(task, start_week=best_week)

        scheduled = tuple(assigned[i] for i in range(len(tasks)))
        profile = self.project(scheduled)
        overloaded = profile.overloaded_weeks(weekly_capacity)
        if overloaded:
            issues.append(CapacityExceededError(
                f"{len(overloaded)} weeks remain above {weekly_capacity:.1f} h after leveling",
                weeks=overloaded, capacity=weekly_capacity,
            ).to_failure())
            logging.warning(f"Leveling left {len(overloaded)} weeks above capacity")

        logging.info(f"Leveled {len(tasks)} tasks: peak {baseline.peak:.1f} h -> {profile.peak:.1f} h "
                     f"(capacity {weekly_capacity:.1f} h/week)")
        return ScheduleResult(
            tasks=scheduled,
            profile=profile,
            baseline_profile=baseline,
            weekly_capacity=weekly_capacity,
            unschedulable_task_ids=tuple(unschedulable),
            overloaded_weeks=tuple(overloaded),
            issues=tuple(issues),
        )

    def level_by_trade(self, tasks: Iterable[MaintenanceTask],
                       resources: Iterable[ResourceCapacity]) -> Dict[str, Union[ScheduleResult, AnalysisFailure]]:
        """Level each trade's tasks independently against that trade's capacity"""
        capacities = {r.trade: r for r in resources}
        by_trade: Dict[str, List[MaintenanceTask]] = {}
        for task in tasks:
            by_trade.setdefault(task.trade, []).append(task)

        results = {}
        for trade, trade_tasks in by_trade.items():
            if trade not in capacities:
                results[trade] = InvalidInputError(
                    f"No resource capacity defined for trade {trade}", trade=trade
                ).to_failure()
                logging.warning(f"No resource capacity defined for trade {trade}")
                continue
            results[trade] = self.level(trade_tasks, capacities[trade])
        return results

    def annual_hours(self, task: MaintenanceTask) -> float:
        return 12.0 / task.frequency_months * task.occurrence_load

    def trade_gap_analysis(self, tasks: Iterable[MaintenanceTask],
                           resources: Iterable[ResourceCapacity]) -> List[TradeGap]:
        """Annual PM demand against available hours per trade; external tasks excluded"""
        demand: Dict[str, float] = {}
        for task in tasks:
            if task.executor_type.strip().lower() == 'external':
                continue
            demand[task.trade] = demand.get(task.trade, 0.0) + self.annual_hours(task)

        resources = list(resources)
        trades = [r.trade for r in resources] + [t for t in demand if t not in {r.trade for r in resources}]
        capacity_by_trade = {r.trade: r.annual_capacity for r in resources}

        gaps = []
        for trade in trades:
            required = demand.get(trade, 0.0)
            available = capacity_by_trade.get(trade, 0.0)
            utilization = required / available * 100.0 if available > 0 else None
            if utilization is None:
                status = 'Overloaded' if required > 0 else 'Balanced'
            elif utilization > OVERLOADED_ABOVE:
                status = 'Overloaded'
            elif utilization >= BALANCED_FROM:
                status = 'Balanced'
            else:
                status = 'Spare Capacity'
            gaps.append(TradeGap(
                trade=trade,
                required_hours=required,
                available_hours=available,
                utilization_percent=utilization,
                gap_hours=available - required,
                status=status,
            ))
        return gaps
