# calibrator.py
#
# Bisection search over one scalar SimulationConfig field (e.g. starting work
# income or annual spending) for the value that hits a target aggregate
# statistic (median terminal balance by default).
#
# The statistic is ASSUMED to increase with the parameter. This is not
# verified: a non-monotonic response converges to some bracket edge without
# warning. For a parameter that moves the statistic the other way (spending
# vs. median balance) pass increasing=False.
#

import dataclasses
import logging
import math
from typing import Callable, Iterable, List, Optional, Tuple

from models import (
    SimulationConfig,
    AggregateResult,
    CalibrationResult,
    ConfigurationError,
)
from engine.market_generator import SequenceReturnSource
from engine.simulator import Aggregator, STOCHASTIC, HISTORICAL

logger = logging.getLogger(__name__)

STATISTICS = (
    "median_terminal",
    "min_terminal",
    "max_terminal",
    "p10_terminal",
    "p90_terminal",
    "success_rate",
    "avoid_ruin_rate",
)
MAX_ITERATIONS = 200


def bisect(evaluate: Callable[[float], float],
           low: float,
           high: float,
           target: float,
           tolerance: float,
           increasing: bool = True,
           max_iterations: int = MAX_ITERATIONS) -> Tuple[float, int, List[Tuple[float, float]], bool]:
    """
    Plain bisection on [low, high].

    Each iteration evaluates the midpoint; a statistic below target moves
    `low` up, otherwise `high` comes down. Stops once high - low <= tolerance.

    Returns:
        (final midpoint, iterations, [(midpoint, statistic), ...], converged)
    """
    if high < low:
        raise ConfigurationError(f"Bisection bounds are reversed: low={low}, high={high}")
    if tolerance <= 0:
        raise ConfigurationError(f"Tolerance must be positive, got {tolerance}")

    history: List[Tuple[float, float]] = []
    iterations = 0
    while high - low > tolerance:
        if iterations >= max_iterations:
            logger.warning(
                f"Bisection stopped after {iterations} iterations with bracket width {high - low:g} "
                f"(tolerance {tolerance:g})"
            )
            return (low + high) / 2, iterations, history, False

        mid = (low + high) / 2
        value = evaluate(mid)
        history.append((mid, value))
        iterations += 1

        below = value < target if increasing else value > target
        if below:
            low = mid
        else:
            high = mid
        logger.debug(f"Iteration {iterations}: mid={mid:,.2f} statistic={value:,.2f} bracket=[{low:,.2f}, {high:,.2f}]")

    return (low + high) / 2, iterations, history, True


class Calibrator:
    """
    Wraps an Aggregator pass in a bisection search over one config field.

    Every step builds a new config with dataclasses.replace; the caller's
    config is never mutated. Steps run one after another (each depends on the
    last), the paths inside a step may run in parallel via `workers`.
    """
    def __init__(self,
                 cfg: SimulationConfig,
                 parameter: str,
                 statistic: str = "median_terminal",
                 mode: str = STOCHASTIC,
                 trials: int = 1000,
                 seed=None,
                 sequence_source: Optional[SequenceReturnSource] = None,
                 start_years: Optional[Iterable[int]] = None,
                 workers: int = 1,
                 increasing: bool = True):

        field_types = {f.name: f.type for f in dataclasses.fields(SimulationConfig)}
        if parameter not in field_types:
            raise ConfigurationError(f"Unknown calibration parameter '{parameter}'")
        if statistic not in STATISTICS:
            raise ConfigurationError(f"Unknown calibration statistic '{statistic}'")
        if mode not in (STOCHASTIC, HISTORICAL):
            raise ConfigurationError(f"Calibration mode must be '{STOCHASTIC}' or '{HISTORICAL}', got '{mode}'")
        if mode == HISTORICAL and sequence_source is None:
            raise ConfigurationError("Historical calibration needs a SequenceReturnSource")

        self.cfg = cfg
        self.parameter = parameter
        self.integer_parameter = field_types[parameter] in (int, "int")
        self.statistic = statistic
        self.mode = mode
        self.trials = trials
        self.seed = seed
        self.sequence_source = sequence_source
        self.start_years = list(start_years) if start_years is not None else None
        self.workers = workers
        self.increasing = increasing

    def config_for(self, value: float) -> SimulationConfig:
        if self.integer_parameter:
            value = int(round(value))
        return dataclasses.replace(self.cfg, **{self.parameter: value})

    def aggregate(self, value: float) -> AggregateResult:
        aggregator = Aggregator(self.config_for(value), self.sequence_source)
        if self.mode == HISTORICAL:
            return aggregator.run_historical(self.start_years, workers=self.workers)
        # Same seed every step so the search sees a fixed set of market paths
        return aggregator.run_stochastic(self.trials, seed=self.seed, workers=self.workers)

    def evaluate(self, value: float) -> float:
        result = self.aggregate(value)
        stat = getattr(result, self.statistic)
        if stat is None or (isinstance(stat, float) and math.isnan(stat)):
            raise ConfigurationError(
                f"Statistic '{self.statistic}' is undefined at {self.parameter}={value} (no resolved paths)"
            )
        return stat

    def calibrate(self, target: float, low: float, high: float, tolerance: float = 1.0,
                  max_iterations: int = MAX_ITERATIONS) -> CalibrationResult:
        logger.info(
            f"Calibrating {self.parameter} in [{low:,.2f}, {high:,.2f}] for {self.statistic} = {target:,.2f}"
        )
        value, iterations, history, converged = bisect(
            self.evaluate, low, high, target, tolerance,
            increasing=self.increasing, max_iterations=max_iterations,
        )
        # report the value the final aggregate actually ran with
        value = getattr(self.config_for(value), self.parameter)
        aggregate = self.aggregate(value)
        logger.info(f"Calibrated {self.parameter} = {value:,.2f} after {iterations} iterations")

        return CalibrationResult(
            parameter=self.parameter,
            value=value,
            aggregate=aggregate,
            iterations=iterations,
            history=tuple(history),
            converged=converged,
        )
