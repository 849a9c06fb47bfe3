# engine.simulator.py

import logging
import math
import multiprocessing as mp
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from models import (
    SimulationConfig,
    YearRecord,
    PathResult,
    AggregateResult,
    UnresolvableStartYear,
    ConfigurationError,
    COMPLETED,
    UNRESOLVED,
)
from engine.market_generator import (
    ReturnSource,
    StochasticReturnSource,
    SequenceReturnSource,
    blended_return,
)
from engine.income_calculator import work_income, benefit_income
from engine.withdrawal_engine import SpendingPolicy

logger = logging.getLogger(__name__)

STOCHASTIC = "stochastic"
HISTORICAL = "historical"


# =========================================================================
# 1. SINGLE YEAR STATE TRANSITION
# =========================================================================
class YearStepper:
    """
    Advances one path by one year. Pure computation: the only state is the
    SpendingPolicy owned by the path.
    """
    def __init__(self,
                 cfg: SimulationConfig,
                 source: ReturnSource,
                 policy: SpendingPolicy,
                 first_calendar_year: int):
        self.cfg = cfg
        self.source = source
        self.policy = policy
        self.first_calendar_year = first_calendar_year

    def step(self, year_index: int, start_balance: float) -> YearRecord:
        cfg = self.cfg
        calendar_year = self.first_calendar_year + year_index
        age = cfg.current_age + year_index

        # --- STEP 1: market return for the year ---
        stock_return = self.source.next_return(year_index, calendar_year)
        year_return = blended_return(stock_return, cfg)

        # --- STEP 2: income (dividends are paid on the pre-return balance) ---
        dividends = start_balance * cfg.dividend_yield
        work = work_income(age, cfg)
        benefit = benefit_income(age, cfg)

        available = start_balance * (1 + year_return) + dividends + benefit + work

        # --- STEP 3: withdrawal decision ---
        decision = self.policy.decide(year_index, age, available)

        end_balance = available - decision.actual
        spend_fraction = decision.actual / start_balance if start_balance > 0 else 0.0

        return YearRecord(
            year_index=year_index,
            calendar_year=calendar_year,
            age=age,
            start_balance=start_balance,
            blended_return=year_return,
            dividend_income=dividends,
            work_income=work,
            benefit_income=benefit,
            requested_spending=decision.requested,
            actual_spending=decision.actual,
            spend_fraction=spend_fraction,
            end_balance=end_balance,
            net_change=end_balance - start_balance,
            failure=decision.failure,
        )


# =========================================================================
# 2. SINGLE PATH LOGIC
# =========================================================================
class PathRunner:
    """Runs one starting condition across the full horizon."""

    def __init__(self, cfg: SimulationConfig):
        self.cfg = cfg

    def run(self, source: ReturnSource, first_calendar_year: int, start_id: int, mode: str) -> PathResult:
        # Fresh policy per path so spending escalation never leaks between paths
        stepper = YearStepper(self.cfg, source, SpendingPolicy(self.cfg), first_calendar_year)

        records: List[YearRecord] = []
        balance = self.cfg.initial_balance
        # Balances may go negative; the horizon always runs to completion
        for year_index in range(self.cfg.horizon_years):
            record = stepper.step(year_index, balance)
            records.append(record)
            balance = record.end_balance

        return PathResult(
            start_id=start_id,
            mode=mode,
            terminal_balance=records[-1].end_balance,
            failure_years=sum(1 for r in records if r.failure),
            records=tuple(records),
            status=COMPLETED,
        )

    def run_stochastic(self, trial_id: int, rng: Optional[np.random.Generator] = None) -> PathResult:
        source = StochasticReturnSource.from_config(self.cfg, rng=rng)
        return self.run(source, self.cfg.start_year, trial_id, STOCHASTIC)

    def run_historical(self, source: SequenceReturnSource, start_year: int) -> PathResult:
        try:
            source.require_start(start_year)
        except UnresolvableStartYear as e:
            logger.warning(f"Skipping historical path: {e}")
            return PathResult(
                start_id=start_year,
                mode=HISTORICAL,
                terminal_balance=None,
                status=UNRESOLVED,
            )
        return self.run(source, start_year, start_year, HISTORICAL)


# Top-level task functions so multiprocessing can pickle them
def _run_stochastic_task(args: Tuple[SimulationConfig, int, np.random.SeedSequence]) -> PathResult:
    cfg, trial_id, seed_seq = args
    return PathRunner(cfg).run_stochastic(trial_id, np.random.default_rng(seed_seq))


def _run_historical_task(args: Tuple[SimulationConfig, SequenceReturnSource, int]) -> PathResult:
    cfg, source, start_year = args
    return PathRunner(cfg).run_historical(source, start_year)


def _map(func, tasks: list, workers: int) -> List[PathResult]:
    if workers is None:
        workers = max(1, mp.cpu_count() - 1)  # leave 1 core free
    if workers <= 1 or len(tasks) <= 1:
        results = []
        for i, task in enumerate(tasks):
            if i % 1000 == 0 and i > 0:
                logger.debug(f"Completed {i} of {len(tasks)} paths")
            results.append(func(task))
        return results
    with mp.Pool(min(workers, len(tasks))) as pool:
        return pool.map(func, tasks)


# =========================================================================
# 3. BATCH RUNNER
# =========================================================================
class Aggregator:
    """
    Runs many independent paths (stochastic trials or historical start years)
    and reduces them to population statistics.
    """
    def __init__(self, cfg: SimulationConfig, sequence_source: Optional[SequenceReturnSource] = None):
        self.cfg = cfg
        self.sequence_source = sequence_source

    def run_stochastic(self, trials: int, seed=None, workers: int = 1) -> AggregateResult:
        """
        Runs `trials` Monte Carlo paths. Each path gets its own generator
        spawned from one SeedSequence, so a given seed reproduces the same
        result whatever the worker count.
        """
        if trials <= 0:
            raise ConfigurationError(f"trials must be positive, got {trials}")

        child_seeds = np.random.SeedSequence(seed).spawn(trials)
        tasks = [(self.cfg, trial_id, child_seeds[trial_id]) for trial_id in range(trials)]

        logger.info(f"Running {trials} stochastic paths over {self.cfg.horizon_years} years")
        paths = _map(_run_stochastic_task, tasks, workers)
        return summarize(paths, self.cfg)

    def run_historical(self, start_years: Optional[Iterable[int]] = None, workers: int = 1) -> AggregateResult:
        """
        Replays the return tables from each start year. Defaults to every viable
        start year; explicitly requested years that no table covers are reported
        as unresolved and left out of the statistics.
        """
        if self.sequence_source is None:
            raise ConfigurationError("Historical replay needs a SequenceReturnSource")

        if start_years is None:
            start_years = self.sequence_source.viable_start_years(self.cfg.horizon_years)
        tasks = [(self.cfg, self.sequence_source, year) for year in start_years]

        logger.info(f"Replaying {len(tasks)} historical start years over {self.cfg.horizon_years} years")
        paths = _map(_run_historical_task, tasks, workers)
        return summarize(paths, self.cfg)


# =========================================================================
# 4. RESULTS SUMMARIZER
# =========================================================================
def median_terminal(balances: Sequence[float]) -> Optional[float]:
    """Single-index median: element n // 2 of the sorted balances (no averaging)."""
    if not balances:
        return None
    ordered = sorted(balances)
    return ordered[len(ordered) // 2]


def build_histogram(balances: Iterable[float], bucket_width: float, bucket_count: int) -> Tuple[Tuple[float, int], ...]:
    """
    Fixed-width buckets starting at 0. Negative balances and balances past the
    last bucket are dropped from the histogram only.
    """
    counts = [0] * bucket_count
    for balance in balances:
        if balance < 0:
            continue
        idx = math.floor(balance / bucket_width)
        if idx >= bucket_count:
            continue
        counts[idx] += 1
    return tuple((i * bucket_width, counts[i]) for i in range(bucket_count))


def summarize(paths: Sequence[PathResult], cfg: SimulationConfig) -> AggregateResult:
    """
    Reduces completed paths to an AggregateResult. Needs the complete set of
    paths (median and percentiles are order statistics).
    """
    resolved = [p for p in paths if p.resolved]
    unresolved_count = len(paths) - len(resolved)
    if unresolved_count:
        logger.warning(f"{unresolved_count} of {len(paths)} paths could not be resolved and were excluded")

    terminals = [p.terminal_balance for p in resolved]
    total = len(resolved)

    success_count = sum(
        1 for p in resolved
        if p.terminal_balance >= cfg.target_end_balance and p.failure_years == 0
    )

    if total == 0:
        return AggregateResult(
            success_rate=0.0,
            min_terminal=None,
            max_terminal=None,
            median_terminal=None,
            histogram=build_histogram([], cfg.histogram_bucket_width, cfg.histogram_bucket_count),
            paths=tuple(paths),
            unresolved_count=unresolved_count,
        )

    terminal_arr = np.asarray(terminals, dtype=np.float64)
    never_negative = sum(1 for p in resolved if p.min_balance >= 0)

    return AggregateResult(
        success_rate=success_count / total,
        min_terminal=float(terminal_arr.min()),
        max_terminal=float(terminal_arr.max()),
        median_terminal=median_terminal(terminals),
        histogram=build_histogram(terminals, cfg.histogram_bucket_width, cfg.histogram_bucket_count),
        paths=tuple(paths),
        total_runs=total,
        success_count=success_count,
        failed_count=total - success_count,
        unresolved_count=unresolved_count,
        p10_terminal=float(np.percentile(terminal_arr, 10)),
        p90_terminal=float(np.percentile(terminal_arr, 90)),
        avoid_ruin_rate=never_negative / total,
        mean_failure_years=float(np.mean([p.failure_years for p in resolved])),
    )
