"""
Analysis Configuration Module
Loads and saves the tunable constants used by the reliability analyses and
sets up application logging.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

CONFIG_FILE = "analysis_config.json"
LOG_FILE = "reliability_log.txt"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

# Hours represented by one unit of each supported time basis
HOURS_PER_UNIT = {
    "hours": 1.0,
    "days": 24.0,
}


@dataclass
class AnalysisConfig:
    """Tunable constants for the reliability and scheduling analyses"""
    time_unit: str = "hours"
    weeks_per_month: float = 4.33
    horizon_weeks: int = 52
    cov_predictable_below: float = 0.5
    cov_chaotic_from: float = 1.0
    low_confidence_sample_size: int = 2
    weibull_method: str = "rank_regression"
    search_multiple: float = 5.0
    search_grid_points: int = 200
    search_tolerance: float = 1e-6
    max_search_extensions: int = 4
    pareto_a_threshold: float = 80.0
    pareto_b_threshold: float = 95.0
    rolling_window: int = 5
    log_file: str = LOG_FILE

    def __post_init__(self):
        if self.time_unit not in HOURS_PER_UNIT:
            raise ValueError(f"Unsupported time unit: {self.time_unit}")
        if self.weibull_method not in ("rank_regression", "mle"):
            raise ValueError(f"Unsupported Weibull method: {self.weibull_method}")
        if self.rolling_window < 2:
            raise ValueError(f"Rolling MTBF window must be at least 2, got {self.rolling_window}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def minutes_to_unit(minutes: float, time_unit: str) -> float:
    """Convert a duration in minutes to the analysis time unit"""
    return minutes / 60.0 / HOURS_PER_UNIT[time_unit]


def seconds_to_unit(seconds: float, time_unit: str) -> float:
    return seconds / 3600.0 / HOURS_PER_UNIT[time_unit]


def load_analysis_config(path: Optional[str] = None) -> AnalysisConfig:
    """Load analysis configuration from JSON file, filling gaps from defaults."""
    path = path or CONFIG_FILE
    default_config = AnalysisConfig().to_dict()

    if not os.path.exists(path):
        logging.info(f"Configuration file {path} not found, using defaults")
        return AnalysisConfig()

    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.error(f"Error loading configuration from {path}: {e}")
        return AnalysisConfig()

    if not isinstance(config, dict):
        logging.error(f"Configuration in {path} is not a JSON object, using defaults")
        return AnalysisConfig()

    known = {f.name for f in fields(AnalysisConfig)}
    for key in sorted(set(config) - known):
        logging.warning(f"Ignoring unknown configuration key: {key}")

    # Merge with default config to ensure all keys exist
    merged = dict(default_config)
    merged.update({key: value for key, value in config.items() if key in known})
    try:
        loaded = AnalysisConfig(**merged)
    except (TypeError, ValueError) as e:
        logging.error(f"Invalid configuration in {path}: {e}")
        return AnalysisConfig()

    logging.info(f"Loaded configuration from {path}")
    return loaded


def save_analysis_config(config: AnalysisConfig, path: Optional[str] = None):
    """Save analysis configuration to JSON file."""
    path = path or CONFIG_FILE
    with open(path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)
    logging.info(f"Configuration saved to {path}")


def setup_logging(log_file: Optional[str] = LOG_FILE, level: int = logging.INFO):
    """Configure root logging for command-line runs"""
    if log_file:
        logging.basicConfig(filename=log_file, level=level, format=LOG_FORMAT)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)
