# engine/__init__.py

# Return sources (Monte Carlo and historical replay)
from .market_generator import StochasticReturnSource, SequenceReturnSource

# Path, batch and calibration runners
from .simulator import PathRunner, Aggregator
from .calibrator import Calibrator

# Single dispatch entry point for report/CLI collaborators
from .runner import run
