"""
Reliability Report
Batch entry point: reads event and PM task tables, runs the reliability and
workload analyses and writes a JSON report (plus an Excel workbook on request).
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from analysis_config import AnalysisConfig, load_analysis_config, setup_logging
from event_normalizer import POOLED_ASSET, AssetSeries, EventNormalizer, events_from_dataframe
from pareto_analysis import ParetoRanker
from pm_analysis import PMAnalysis
from reliability_metrics import MetricsCalculator
from reliability_types import CostModel, FailureEvent, MaintenanceTask, ResourceCapacity
from weibull_analysis import WeibullAnalysis
from workload_scheduler import WorkloadScheduler, tasks_from_dataframe


def load_table(path: str) -> pd.DataFrame:
    """Read a CSV or Excel table"""
    ext = os.path.splitext(path)[1].lower()
    if ext in ('.xlsx', '.xls'):
        return pd.read_excel(path)
    return pd.read_csv(path)


def load_json(path: Optional[str]) -> Any:
    if not path:
        return None
    with open(path, 'r') as f:
        return json.load(f)


def analyze_series(series: AssetSeries, config: AnalysisConfig,
                   cost_model: Optional[CostModel] = None) -> Dict[str, Any]:
    """Run every per-asset analysis; failures are reported in place of results"""
    weibull = WeibullAnalysis(config)
    metrics = MetricsCalculator(config)

    rolling = metrics.rolling_mtbf(series)
    result = {
        'series': series.to_dict(),
        'metrics': metrics.calculate_for_series(series).to_dict(),
        'weibull': weibull.get_analysis_summary(series.tbf),
        'crow_amsaa': metrics.crow_amsaa([e.start_time for e in series.events]).to_dict(),
        'rolling_mtbf': rolling if isinstance(rolling, list) else rolling.to_dict(),
    }

    if cost_model is not None:
        fit = weibull.estimate(series.tbf)
        if fit.ok:
            result['optimal_interval'] = PMAnalysis(config).calculate_optimal_pm_interval(fit, cost_model).to_dict()
        else:
            result['optimal_interval'] = fit.to_dict()
    return result


def build_report(events: List[FailureEvent], tasks: List[MaintenanceTask], config: AnalysisConfig,
                 cost_model: Optional[CostModel] = None,
                 resources: Optional[List[ResourceCapacity]] = None) -> Dict[str, Any]:
    """Assemble the full report dictionary"""
    normalizer = EventNormalizer(config)
    normalized = normalizer.normalize(events)
    pooled = normalizer.normalize(events, pooled=True)
    ranker = ParetoRanker(config)

    report = {
        'generated': datetime.now().isoformat(timespec='seconds'),
        'config': config.to_dict(),
        'event_count': len(events),
        'unusable_events': normalized.unusable_count,
        'assets': {asset: analyze_series(s, config, cost_model) for asset, s in normalized.series.items()},
        'pareto': {
            'asset_downtime': ranker.rank_events(events, 'asset', 'duration').to_dict(),
            'asset_count': ranker.rank_events(events, 'asset', 'count').to_dict(),
            'failure_mode_downtime': ranker.rank_events(events, 'failure_mode', 'duration').to_dict(),
            'failure_mode_count': ranker.rank_events(events, 'failure_mode', 'count').to_dict(),
        },
    }
    if POOLED_ASSET in pooled.series:
        report['system'] = analyze_series(pooled.series[POOLED_ASSET], config, cost_model)

    if tasks:
        scheduler = WorkloadScheduler(config)
        workload = {'projection': scheduler.project(tasks).to_dict()}
        if resources:
            workload['leveling'] = {
                trade: outcome.to_dict() for trade, outcome in scheduler.level_by_trade(tasks, resources).items()
            }
            workload['trade_gaps'] = [gap.to_dict() for gap in scheduler.trade_gap_analysis(tasks, resources)]
        report['workload'] = workload
    return report


def export_to_excel(report: Dict[str, Any], path: str):
    """Write the tabular parts of the report to a workbook"""
    asset_rows = []
    for asset, analysis in report['assets'].items():
        row = {'asset': asset}
        row.update({f"metrics_{k}": v for k, v in analysis['metrics'].items() if not isinstance(v, (dict, list))})
        row.update({f"weibull_{k}": v for k, v in analysis['weibull'].items() if not isinstance(v, (dict, list))})
        if 'optimal_interval' in analysis:
            row.update({f"pm_{k}": v for k, v in analysis['optimal_interval'].items()
                        if not isinstance(v, (dict, list))})
        asset_rows.append(row)

    with pd.ExcelWriter(path) as writer:
        pd.DataFrame(asset_rows).to_excel(writer, sheet_name='Assets', index=False)
        for name, pareto in report['pareto'].items():
            if 'rows' in pareto:
                pd.DataFrame(pareto['rows']).to_excel(writer, sheet_name=f"Pareto {name}"[:31], index=False)
        workload = report.get('workload')
        if workload:
            pd.DataFrame(workload['projection']['weeks']).to_excel(writer, sheet_name='Weekly Load', index=False)
            if 'trade_gaps' in workload:
                pd.DataFrame(workload['trade_gaps']).to_excel(writer, sheet_name='Trade Gaps', index=False)
    logging.info(f"Excel report written to {path}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reliability and PM workload report")
    parser.add_argument('events', help="CSV/XLSX file of stoppage events")
    parser.add_argument('--tasks', help="CSV/XLSX file of PM tasks")
    parser.add_argument('--costs', help="JSON cost model with 'preventive' and 'corrective' breakdowns")
    parser.add_argument('--resources', help="JSON list of trade resource capacities")
    parser.add_argument('--config', help="JSON analysis configuration")
    parser.add_argument('--output', '-o', default='reliability_report.json',
                        help="Report path (.json, or .xlsx for an additional workbook)")
    parser.add_argument('--log-file', help="Log file (defaults to the configured log file)")
    parser.add_argument('--verbose', '-v', action='store_true')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = load_analysis_config(args.config)
    setup_logging(args.log_file or config.log_file, logging.DEBUG if args.verbose else logging.INFO)

    try:
        events = events_from_dataframe(load_table(args.events))
        tasks = tasks_from_dataframe(load_table(args.tasks)) if args.tasks else []
        costs = load_json(args.costs)
        cost_model = CostModel.from_dict(costs) if costs else None
        resources = [ResourceCapacity(**r) for r in (load_json(args.resources) or [])]
    except (OSError, ValueError, TypeError, KeyError) as e:
        logging.error(f"Failed to read input: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    report = build_report(events, tasks, config, cost_model, resources)

    output = args.output
    if output.lower().endswith('.xlsx'):
        export_to_excel(report, output)
        output = os.path.splitext(output)[0] + '.json'
    with open(output, 'w') as f:
        json.dump(report, f, indent=2, default=str)
    logging.info(f"Report written to {output}")
    print(f"Report written to {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
