# runner.py
#
# Single entry point for presentation-layer collaborators: takes a RunRequest
# and returns a PathResult, AggregateResult or CalibrationResult.
#

import logging
from typing import Optional, Union

import numpy as np

from models import (
    RunRequest,
    PathResult,
    AggregateResult,
    CalibrationResult,
    ConfigurationError,
)
from engine.market_generator import SequenceReturnSource
from engine.simulator import PathRunner, Aggregator
from engine.calibrator import Calibrator

logger = logging.getLogger(__name__)

RunResult = Union[PathResult, AggregateResult, CalibrationResult]


def run(request: RunRequest, sequence_source: Optional[SequenceReturnSource] = None) -> RunResult:
    """Dispatches a run request to the matching engine mode."""
    cfg = request.config
    mode = request.mode
    logger.info(f"Run request: mode={mode} horizon={cfg.horizon_years} years")

    if mode == "single":
        if request.start_year is not None:
            if sequence_source is None:
                raise ConfigurationError("A historical single path needs a SequenceReturnSource")
            return PathRunner(cfg).run_historical(sequence_source, request.start_year)
        return PathRunner(cfg).run_stochastic(0, np.random.default_rng(request.seed))

    if mode == "stochastic":
        return Aggregator(cfg).run_stochastic(request.trials, seed=request.seed, workers=request.workers)

    if mode == "historical":
        if sequence_source is None:
            raise ConfigurationError("Historical replay needs a SequenceReturnSource")
        return Aggregator(cfg, sequence_source).run_historical(request.start_years, workers=request.workers)

    if mode == "calibrate":
        if request.parameter is None or request.target is None or request.low is None or request.high is None:
            raise ConfigurationError("Calibration needs parameter, target, low and high")
        calibrator = Calibrator(
            cfg,
            request.parameter,
            statistic=request.statistic,
            mode=request.calibration_mode,
            trials=request.trials,
            seed=request.seed,
            sequence_source=sequence_source,
            start_years=request.start_years,
            workers=request.workers,
            increasing=request.increasing,
        )
        return calibrator.calibrate(request.target, request.low, request.high, request.tolerance)

    raise ConfigurationError(f"Unknown run mode '{mode}'")
