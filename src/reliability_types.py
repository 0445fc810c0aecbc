"""
Reliability Types Module
Provides the typed records shared by the reliability analysis modules and the
structured failure taxonomy returned when an analysis cannot produce a result.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

HORIZON_WEEKS = 52
UNCATEGORIZED = "uncategorized"


class FailureReason(Enum):
    """Why an analysis returned no result"""
    DATA_INSUFFICIENT = "DataInsufficient"
    INVALID_INPUT = "InvalidInput"
    MODEL_NOT_APPLICABLE = "ModelNotApplicable"
    CAPACITY_EXCEEDED = "CapacityExceeded"


class ReliabilityError(Exception):
    """Base class for expected analysis failures"""
    reason = FailureReason.INVALID_INPUT

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_failure(self) -> "AnalysisFailure":
        return AnalysisFailure(reason=self.reason, message=self.message, details=dict(self.details))


class DataInsufficientError(ReliabilityError):
    reason = FailureReason.DATA_INSUFFICIENT


class InvalidInputError(ReliabilityError, ValueError):
    reason = FailureReason.INVALID_INPUT


class ModelNotApplicableError(ReliabilityError):
    reason = FailureReason.MODEL_NOT_APPLICABLE


class CapacityExceededError(ReliabilityError):
    reason = FailureReason.CAPACITY_EXCEEDED


@dataclass(frozen=True)
class AnalysisFailure:
    """Structured explanation returned in place of a result"""
    reason: FailureReason
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.reason.value,
            "message": self.message,
            "details": dict(self.details),
        }


def require_finite(value: float, name: str, minimum: Optional[float] = None,
                   strict: bool = False) -> float:
    """Coerce to float and check it is finite and above an optional bound"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be numeric, got {value!r}", field=name) from None
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be finite, got {number}", field=name)
    if minimum is not None:
        if strict and number <= minimum:
            raise InvalidInputError(f"{name} must be > {minimum}, got {number}", field=name)
        if not strict and number < minimum:
            raise InvalidInputError(f"{name} must be >= {minimum}, got {number}", field=name)
    return number


class EventCategory(Enum):
    PLANNED = "Planned"
    UNPLANNED = "Unplanned"
    EXTERNAL = "External"

    @classmethod
    def parse(cls, value: Any) -> "EventCategory":
        """Match a category label case-insensitively; unknown labels count as Unplanned"""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.UNPLANNED


@dataclass(frozen=True)
class FailureEvent:
    """A single stoppage record for one asset.

    ``start_time`` may be None when the source row carried no usable timestamp;
    such events are counted as unusable by the normalizer instead of failing
    the whole computation.
    """
    id: str
    asset_id: str
    start_time: Optional[datetime]
    duration_minutes: float = 0.0
    category: EventCategory = EventCategory.UNPLANNED
    failure_mode: str = UNCATEGORIZED

    def __post_init__(self):
        duration = require_finite(self.duration_minutes, "duration_minutes", minimum=0.0)
        object.__setattr__(self, "duration_minutes", duration)
        object.__setattr__(self, "category", EventCategory.parse(self.category))
        mode = str(self.failure_mode).strip() if self.failure_mode is not None else ""
        object.__setattr__(self, "failure_mode", mode or UNCATEGORIZED)
        object.__setattr__(self, "asset_id", str(self.asset_id))


@dataclass(frozen=True)
class WeibullParams:
    """Two-parameter Weibull fit, R(t) = exp(-(t/eta)^beta)"""
    beta: float
    eta: float
    r_squared: Optional[float] = None
    sample_size: int = 0
    low_confidence: bool = False
    method: str = "rank_regression"

    def __post_init__(self):
        object.__setattr__(self, "beta", require_finite(self.beta, "beta", minimum=0.0, strict=True))
        object.__setattr__(self, "eta", require_finite(self.eta, "eta", minimum=0.0, strict=True))

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "Analysis complete",
            "beta": self.beta,
            "eta": self.eta,
            "r_squared": self.r_squared,
            "sample_size": self.sample_size,
            "low_confidence": self.low_confidence,
            "method": self.method,
        }


@dataclass(frozen=True)
class ReliabilityMetrics:
    """MTBF/MTTR summary; availability is None when undefined"""
    mtbf: float
    mttr: float
    availability: Optional[float]
    mtbf_cov: float
    cov_class: str
    failure_count: int = 0
    total_downtime: float = 0.0
    time_unit: str = "hours"

    @property
    def ok(self) -> bool:
        return True

    @property
    def availability_percent(self) -> Optional[float]:
        return None if self.availability is None else self.availability * 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "Analysis complete",
            "mtbf": self.mtbf,
            "mttr": self.mttr,
            "availability": self.availability if self.availability is not None else "undefined",
            "mtbf_cov": self.mtbf_cov,
            "cov_class": self.cov_class,
            "failure_count": self.failure_count,
            "total_downtime": self.total_downtime,
            "time_unit": self.time_unit,
        }


@dataclass(frozen=True)
class ParetoRow:
    key: str
    value: float
    cumulative_percent: float
    share_percent: float = 0.0
    abc_class: str = "C"


@dataclass(frozen=True)
class CostBreakdown:
    material: float = 0.0
    labor: float = 0.0
    production_loss: float = 0.0

    def __post_init__(self):
        for name in ("material", "labor", "production_loss"):
            object.__setattr__(self, name, require_finite(getattr(self, name), name, minimum=0.0))

    @property
    def total(self) -> float:
        return self.material + self.labor + self.production_loss


@dataclass(frozen=True)
class CostModel:
    """Cost of one planned (preventive) action versus one unplanned failure"""
    preventive: CostBreakdown
    corrective: CostBreakdown

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CostModel":
        def breakdown(part: Dict[str, Any]) -> CostBreakdown:
            part = part or {}
            return CostBreakdown(
                material=part.get("material", 0.0),
                labor=part.get("labor", 0.0),
                production_loss=part.get("production_loss", part.get("productionLoss", 0.0)),
            )
        return cls(preventive=breakdown(data.get("preventive")), corrective=breakdown(data.get("corrective")))

    @property
    def preventive_cost(self) -> float:
        return self.preventive.total

    @property
    def corrective_cost(self) -> float:
        return self.corrective.total


@dataclass(frozen=True)
class MaintenanceTask:
    """A recurring PM task. ``start_week`` is the only scheduling state."""
    id: str
    asset_id: str
    frequency_months: float
    estimated_duration_hours: float
    executor_count: int = 1
    start_week: int = 1
    trade: str = "General"
    executor_type: str = "Internal"

    def __post_init__(self):
        object.__setattr__(self, "frequency_months",
                           require_finite(self.frequency_months, "frequency_months", minimum=0.0, strict=True))
        object.__setattr__(self, "estimated_duration_hours",
                           require_finite(self.estimated_duration_hours, "estimated_duration_hours", minimum=0.0))
        executors = int(require_finite(self.executor_count, "executor_count", minimum=1.0))
        object.__setattr__(self, "executor_count", executors)
        week = int(require_finite(self.start_week, "start_week", minimum=1.0))
        if week > HORIZON_WEEKS:
            raise InvalidInputError(f"start_week must be within 1..{HORIZON_WEEKS}, got {week}", field="start_week")
        object.__setattr__(self, "start_week", week)
        object.__setattr__(self, "trade", str(self.trade or "General"))

    @property
    def occurrence_load(self) -> float:
        """Labour hours consumed by one execution of the task"""
        return self.estimated_duration_hours * self.executor_count


@dataclass(frozen=True)
class WeeklyLoad:
    week: int
    hours: float = 0.0
    task_count: int = 0


@dataclass(frozen=True)
class ResourceCapacity:
    trade: str
    headcount: float
    weekly_hours_per_person: float
    utilization_rate: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "headcount", require_finite(self.headcount, "headcount", minimum=0.0))
        object.__setattr__(self, "weekly_hours_per_person",
                           require_finite(self.weekly_hours_per_person, "weekly_hours_per_person", minimum=0.0))
        rate = require_finite(self.utilization_rate, "utilization_rate", minimum=0.0)
        if rate > 1.0:
            raise InvalidInputError(f"utilization_rate must be within 0..1, got {rate}", field="utilization_rate")
        object.__setattr__(self, "utilization_rate", rate)

    @property
    def weekly_capacity(self) -> float:
        return self.headcount * self.weekly_hours_per_person * self.utilization_rate

    @property
    def annual_capacity(self) -> float:
        return self.weekly_capacity * HORIZON_WEEKS
