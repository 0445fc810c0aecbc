"""
Event Normalizer Module
Groups raw stoppage events into time-ordered failure series per asset and
derives the time-between-failure (TBF) sample for each series.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from analysis_config import AnalysisConfig, minutes_to_unit, seconds_to_unit
from reliability_types import EventCategory, FailureEvent, InvalidInputError

POOLED_ASSET = "*"

EVENT_COLUMNS = {
    'id': 'id',
    'asset_id': 'asset_id',
    'start_time': 'start_time',
    'duration_minutes': 'duration_minutes',
    'category': 'category',
    'failure_mode': 'failure_mode',
}


def _present(value: Any) -> bool:
    return value is not None and not pd.isna(value)


def events_from_dataframe(df: pd.DataFrame, column_map: Optional[Dict[str, str]] = None) -> List[FailureEvent]:
    """Build FailureEvents from an already column-mapped DataFrame.

    Rows whose timestamp is missing or unparsable are kept with
    ``start_time=None`` so they can be reported as unusable later. Rows that
    fail record validation (negative or non-finite duration) are skipped.
    """
    columns = dict(EVENT_COLUMNS)
    columns.update(column_map or {})
    if df.empty:
        return []

    def column(field: str, default: Any) -> pd.Series:
        name = columns[field]
        if name in df.columns:
            return df[name]
        return pd.Series([default] * len(df), index=df.index)

    start_times = pd.to_datetime(column('start_time', None), errors='coerce')
    durations = pd.to_numeric(column('duration_minutes', 0.0), errors='coerce').fillna(0.0)
    ids = column('id', None)
    assets = column('asset_id', 'Unknown Asset').fillna('Unknown Asset')
    categories = column('category', EventCategory.UNPLANNED.value)
    modes = column('failure_mode', None)

    events = []
    skipped = 0
    for position, idx in enumerate(df.index):
        stamp = start_times.loc[idx]
        event_id = ids.loc[idx]
        mode = modes.loc[idx]
        try:
            events.append(FailureEvent(
                id=str(event_id) if _present(event_id) else f"event-{position}",
                asset_id=str(assets.loc[idx]),
                start_time=stamp.to_pydatetime() if _present(stamp) else None,
                duration_minutes=float(durations.loc[idx]),
                category=EventCategory.parse(categories.loc[idx]),
                failure_mode=None if pd.isna(mode) else str(mode),
            ))
        except InvalidInputError as e:
            skipped += 1
            logging.warning(f"Skipping event row {position}: {e.message}")

    unusable = sum(1 for e in events if e.start_time is None)
    logging.info(f"Built {len(events)} events from table ({unusable} without usable timestamps, "
                 f"{skipped} rows skipped)")
    return events


@dataclass(frozen=True)
class AssetSeries:
    """Time-ordered failure events of one asset and the TBF sample between them.

    ``len(tbf) == len(events) - 1 - coalesced_count``: gaps of zero (identical
    timestamps) or, when downtime is subtracted, overlapping events are dropped
    rather than entered as non-positive TBF values.
    """
    asset_id: str
    events: Tuple[FailureEvent, ...]
    tbf: Tuple[float, ...]
    coalesced_count: int = 0
    time_unit: str = "hours"

    @property
    def failure_count(self) -> int:
        return len(self.events)

    @property
    def repair_durations(self) -> Tuple[float, ...]:
        return tuple(minutes_to_unit(e.duration_minutes, self.time_unit) for e in self.events)

    @property
    def total_downtime(self) -> float:
        return sum(self.repair_durations)

    @property
    def first_failure(self) -> Optional[datetime]:
        return self.events[0].start_time if self.events else None

    @property
    def last_failure(self) -> Optional[datetime]:
        return self.events[-1].start_time if self.events else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'failure_count': self.failure_count,
            'tbf': list(self.tbf),
            'coalesced_count': self.coalesced_count,
            'time_unit': self.time_unit,
            'first_failure': self.first_failure.isoformat() if self.first_failure else None,
            'last_failure': self.last_failure.isoformat() if self.last_failure else None,
        }


@dataclass(frozen=True)
class NormalizationResult:
    series: Dict[str, AssetSeries]
    unusable_count: int = 0
    unusable_ids: Tuple[str, ...] = ()
    filtered_out_count: int = 0

    @property
    def assets(self) -> List[str]:
        return list(self.series)

    def tbf(self, asset_id: str) -> Tuple[float, ...]:
        series = self.series.get(asset_id)
        return series.tbf if series else ()


class TbfExtractor:
    """Derives inter-arrival durations from an ordered failure series"""

    def __init__(self, time_unit: str = "hours", subtract_downtime: bool = False):
        self.time_unit = time_unit
        self.subtract_downtime = subtract_downtime

    def extract(self, ordered_events: Sequence[FailureEvent]) -> Tuple[Tuple[float, ...], int]:
        """Return (tbf values, number of dropped non-positive gaps)"""
        tbf = []
        dropped = 0
        for current, following in zip(ordered_events, ordered_events[1:]):
            if following.start_time < current.start_time:
                raise ValueError("events must be ordered by start_time")
            gap_seconds = (following.start_time - current.start_time).total_seconds()
            if self.subtract_downtime:
                gap_seconds -= current.duration_minutes * 60.0
            if gap_seconds <= 0:
                dropped += 1
                continue
            tbf.append(seconds_to_unit(gap_seconds, self.time_unit))

        if dropped:
            logging.debug(f"Dropped {dropped} non-positive gaps while extracting TBF")
        return tuple(tbf), dropped


class EventNormalizer:
    """Turns raw events into per-asset ordered failure series"""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def normalize(self, events: Iterable[FailureEvent],
                  assets: Optional[Iterable[str]] = None,
                  categories: Optional[Iterable[EventCategory]] = (EventCategory.UNPLANNED,),
                  subtract_downtime: bool = False,
                  pooled: bool = False) -> NormalizationResult:
        """Group, order and extract TBF for every asset in ``events``.

        ``assets`` and ``categories`` act as filters (None keeps everything).
        With ``pooled`` all assets are merged into a single series keyed by
        ``POOLED_ASSET``. The input is never modified.
        """
        asset_filter = None if assets is None else {str(a) for a in assets}
        category_filter = None if categories is None else {EventCategory.parse(c) for c in categories}
        extractor = TbfExtractor(self.config.time_unit, subtract_downtime)

        grouped: Dict[str, List[FailureEvent]] = {}
        unusable_ids = []
        filtered_out = 0
        for event in events:
            if asset_filter is not None and event.asset_id not in asset_filter:
                filtered_out += 1
                continue
            if category_filter is not None and event.category not in category_filter:
                filtered_out += 1
                continue
            if not _present(event.start_time):
                unusable_ids.append(event.id)
                continue
            key = POOLED_ASSET if pooled else event.asset_id
            grouped.setdefault(key, []).append(event)

        series = {}
        for asset_id, asset_events in grouped.items():
            # sorted() is stable, so identical timestamps keep their input order
            ordered = tuple(sorted(asset_events, key=lambda e: e.start_time))
            tbf, coalesced = extractor.extract(ordered)
            series[asset_id] = AssetSeries(
                asset_id=asset_id,
                events=ordered,
                tbf=tbf,
                coalesced_count=coalesced,
                time_unit=self.config.time_unit,
            )

        if unusable_ids:
            logging.warning(f"Excluded {len(unusable_ids)} events with missing or unparsable timestamps")
        logging.info(f"Normalized {sum(s.failure_count for s in series.values())} events into {len(series)} series")
        return NormalizationResult(
            series=series,
            unusable_count=len(unusable_ids),
            unusable_ids=tuple(unusable_ids),
            filtered_out_count=filtered_out,
        )
