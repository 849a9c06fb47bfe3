# utils/frames.py
#
# pandas views of engine results for report/plot collaborators. Nothing here
# feeds back into the computation.
#

from dataclasses import asdict
from typing import Dict, Mapping, Sequence

import numpy as np
import pandas as pd

from models import PathResult, AggregateResult

DEFAULT_PERCENTILES = (10, 50, 90)


def path_frame(path: PathResult) -> pd.DataFrame:
    """One row per simulated year, indexed by calendar year."""
    if not path.records:
        return pd.DataFrame()
    df = pd.DataFrame([asdict(r) for r in path.records])
    return df.set_index("calendar_year")


def terminal_frame(aggregate: AggregateResult) -> pd.DataFrame:
    """One row per path (unresolved paths included, with NaN terminal balance)."""
    rows = [
        {
            "start_id": p.start_id,
            "mode": p.mode,
            "status": p.status,
            "terminal_balance": p.terminal_balance if p.resolved else np.nan,
            "failure_years": p.failure_years,
            "min_balance": p.min_balance if p.resolved else np.nan,
        }
        for p in aggregate.paths
    ]
    return pd.DataFrame(rows, columns=["start_id", "mode", "status", "terminal_balance",
                                       "failure_years", "min_balance"])


def balance_paths(aggregate: AggregateResult) -> pd.DataFrame:
    """End-of-year balances, one column per resolved path, indexed by year of horizon."""
    columns = {}
    for p in aggregate.resolved_paths:
        columns[f"{p.mode}.{p.start_id}"] = [r.end_balance for r in p.records]
    return pd.DataFrame(columns)


def balance_bands(aggregate: AggregateResult, percentiles: Sequence[float] = DEFAULT_PERCENTILES) -> pd.DataFrame:
    """Per-year percentile balances across resolved paths (e.g. p10/p50/p90 bands)."""
    all_balances = balance_paths(aggregate)
    if all_balances.empty:
        return pd.DataFrame(columns=[f"p{q:g}" for q in percentiles])
    bands = {f"p{q:g}": all_balances.quantile(q / 100, axis=1) for q in percentiles}
    return pd.DataFrame(bands)


def histogram_frame(aggregate: AggregateResult) -> pd.DataFrame:
    return pd.DataFrame(list(aggregate.histogram), columns=["bucket_lower_bound", "count"])


def annotate_frame(frame: pd.DataFrame, annotations: Mapping[int, str], column: str = "note") -> pd.DataFrame:
    """Attach year -> reason notes to a calendar-year indexed frame. Reporting only."""
    annotated = frame.copy()
    annotated[column] = [annotations.get(int(year), "") for year in annotated.index]
    return annotated


def summary_dict(aggregate: AggregateResult) -> Dict[str, float]:
    """Headline statistics in the flat dict shape report writers consume."""
    return {
        "success_rate": aggregate.success_rate * 100,
        "avoid_ruin_rate": aggregate.avoid_ruin_rate * 100,
        "median_final": aggregate.median_terminal,
        "p10_final": aggregate.p10_terminal,
        "p90_final": aggregate.p90_terminal,
        "min_final": aggregate.min_terminal,
        "max_final": aggregate.max_terminal,
        "total_runs": aggregate.total_runs,
        "successful_runs": aggregate.success_count,
        "failed_runs": aggregate.failed_count,
        "unresolved_runs": aggregate.unresolved_count,
        "mean_failure_years": aggregate.mean_failure_years,
    }
