# market_generator.py
#
# Supplies one annual stock return per simulated year. Two sources share the
# same next_return() contract: parametric random draws (Monte Carlo) and
# replay of a historical/projected return table.
#

import math
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from models import SimulationConfig, UnresolvableStartYear

ReturnTable = Union[Mapping[int, float], Iterable[Tuple[int, float]]]


class ReturnSource:
    """
    Base class: one annual return per (simulated year, calendar year).

    Subclasses must override next_return.
    """

    def next_return(self, simulated_year_index: int, calendar_year: int) -> float:
        raise NotImplementedError


class StochasticReturnSource(ReturnSource):
    """
    Independent normal draws via the Box-Muller transform.

    The generator is owned by the source and passed in explicitly so parallel
    paths never share sampling state.
    """

    def __init__(self,
                 mean: float,
                 stddev: float,
                 max_clip: float = math.inf,
                 rng: Optional[np.random.Generator] = None):
        self.mean = mean
        self.stddev = stddev
        self.max_clip = max_clip
        self.rng = rng if rng is not None else np.random.default_rng()

    @classmethod
    def from_seed(cls, seed, mean: float, stddev: float, max_clip: float = math.inf):
        return cls(mean, stddev, max_clip, rng=np.random.default_rng(seed))

    @classmethod
    def from_config(cls, cfg: SimulationConfig, rng: Optional[np.random.Generator] = None):
        return cls(cfg.stock_return_mean, cfg.stock_return_stddev, cfg.stock_return_cap, rng=rng)

    def _standard_normal(self) -> float:
        u1 = self.rng.random()
        # log(0) is undefined; re-draw instead of returning a faulty value
        while u1 == 0.0:
            u1 = self.rng.random()
        u2 = self.rng.random()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def next_return(self, simulated_year_index: int = 0, calendar_year: int = 0) -> float:
        value = self.mean + self.stddev * self._standard_normal()
        if math.isfinite(self.max_clip):
            value = min(value, self.max_clip)
        return value

    def sample(self, n: int) -> NDArray[np.float64]:
        """Preview n draws (advances the generator)."""
        return np.array([self.next_return(i, 0) for i in range(n)], dtype=np.float64)


class SequenceReturnSource(ReturnSource):
    """
    Replays a return table keyed by calendar year.

    Lookup is by year, not by position: the primary (historical) table wins,
    then the fallback (extrapolated) table, else 0.0.
    """

    def __init__(self, primary_table: ReturnTable, fallback_table: Optional[ReturnTable] = None):
        self.primary = _as_table(primary_table)
        self.fallback = _as_table(fallback_table) if fallback_table is not None else {}

    def lookup(self, calendar_year: int) -> Optional[float]:
        if calendar_year in self.primary:
            return self.primary[calendar_year]
        if calendar_year in self.fallback:
            return self.fallback[calendar_year]
        return None

    def next_return(self, simulated_year_index: int, calendar_year: int) -> float:
        value = self.lookup(calendar_year)
        return 0.0 if value is None else value

    def covers(self, calendar_year: int) -> bool:
        return calendar_year in self.primary or calendar_year in self.fallback

    def require_start(self, start_year: int) -> None:
        if not self.covers(start_year):
            raise UnresolvableStartYear(start_year)

    def viable_start_years(self, horizon_years: int) -> list:
        """Primary-table years from which every year of the horizon is covered."""
        return [
            year for year in sorted(self.primary)
            if all(self.covers(year + offset) for offset in range(horizon_years))
        ]


def _as_table(table: ReturnTable) -> Dict[int, float]:
    items = table.items() if isinstance(table, Mapping) else table
    return {int(year): float(ret) for year, ret in items}


def blended_return(stock_return: float, cfg: SimulationConfig) -> float:
    """Allocation-weighted return of the stock, bond and cash sleeves."""
    return (
        cfg.stock_allocation * stock_return
        + cfg.bond_allocation * cfg.bond_return
        + cfg.cash_allocation * cfg.cash_return
    )
