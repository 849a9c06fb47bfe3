# models.py
import math
import numbers
from dataclasses import dataclass, field, fields
from typing import Optional, Tuple

from config.market_assumptions import (
    stock_return_mean,
    stock_return_stddev,
    stock_return_cap,
    reserve_rate,
    failure_threshold,
    spending_phases,
    histogram_bucket_width,
    histogram_bucket_count,
)

# Status markers carried on PathResult. Callers branch on these, never on the
# sign of the terminal balance.
COMPLETED = "completed"
UNRESOLVED = "unresolved"

ALLOCATION_TOLERANCE = 1e-9


class ConfigurationError(ValueError):
    """Raised when a SimulationConfig or run request is invalid. Fatal to the run."""


class UnresolvableStartYear(LookupError):
    """Raised when a historical start year is absent from every return table."""

    def __init__(self, year: int):
        super().__init__(f"Start year {year} is not covered by any return table")
        self.year = year


@dataclass(frozen=True)
class SimulationConfig:
    # Core
    initial_balance: float
    current_age: int
    retirement_age: int
    benefit_start_age: int
    horizon_years: int
    start_year: int

    # Spending
    annual_spending_start: float
    inflation_rate: float

    # Social benefit
    benefit_start_amount: float
    cola_rate: float

    # Work income taper
    work_income_start: float
    work_income_end: float

    # Portfolio
    dividend_yield: float
    stock_allocation: float
    bond_allocation: float
    cash_allocation: float
    bond_return: float
    cash_return: float

    target_end_balance: float

    # Market and policy knobs (see config/market_assumptions.py)
    stock_return_mean: float = stock_return_mean
    stock_return_stddev: float = stock_return_stddev
    stock_return_cap: float = stock_return_cap
    reserve_rate: float = reserve_rate
    failure_threshold: float = failure_threshold
    spending_phases: Tuple[Tuple[int, float], ...] = spending_phases
    histogram_bucket_width: float = histogram_bucket_width
    histogram_bucket_count: int = histogram_bucket_count

    def __post_init__(self):
        for f in fields(self):
            if f.type not in (int, float):
                continue
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ConfigurationError(f"{f.name} must be a number, got {value!r}")
            # the return cap may be +inf (no clip), never NaN
            if f.name == "stock_return_cap" and value == math.inf:
                continue
            if not math.isfinite(value):
                raise ConfigurationError(f"{f.name} must be finite, got {value}")
        if not isinstance(self.horizon_years, numbers.Integral):
            raise ConfigurationError(f"horizon_years must be an integer, got {self.horizon_years!r}")

        weights = (self.stock_allocation, self.bond_allocation, self.cash_allocation)
        if any(w < 0 for w in weights):
            raise ConfigurationError(f"Allocation weights must be non-negative, got {weights}")
        if abs(sum(weights) - 1.0) > ALLOCATION_TOLERANCE:
            raise ConfigurationError(f"Allocation weights must sum to 1.0, got {sum(weights):.6f}")

        if self.horizon_years <= 0:
            raise ConfigurationError(f"horizon_years must be positive, got {self.horizon_years}")
        if self.current_age > self.retirement_age:
            raise ConfigurationError(
                f"retirement_age ({self.retirement_age}) is before current_age ({self.current_age})"
            )

        if not 0.0 <= self.failure_threshold <= 1.0:
            raise ConfigurationError(f"failure_threshold must be in [0, 1], got {self.failure_threshold}")
        if self.reserve_rate <= -1.0:
            raise ConfigurationError(f"reserve_rate must be greater than -1, got {self.reserve_rate}")
        if self.histogram_bucket_width <= 0 or self.histogram_bucket_count <= 0:
            raise ConfigurationError("Histogram bucket width and count must be positive")

        # Normalise phases to a tuple of tuples so configs stay hashable and comparable
        phases = tuple((int(age), float(share)) for age, share in self.spending_phases)
        ages = [age for age, _ in phases]
        if ages != sorted(ages):
            raise ConfigurationError(f"spending_phases must be in ascending age order, got {ages}")
        object.__setattr__(self, "spending_phases", phases)

    @property
    def end_age(self) -> int:
        return self.current_age + self.horizon_years


@dataclass(frozen=True)
class YearRecord:
    year_index: int
    calendar_year: int
    age: int
    start_balance: float
    blended_return: float
    dividend_income: float
    work_income: float
    benefit_income: float
    requested_spending: float
    actual_spending: float
    spend_fraction: float
    end_balance: float
    net_change: float
    failure: bool


@dataclass(frozen=True)
class PathResult:
    start_id: int                      # trial index or historical start year
    mode: str                          # "stochastic" | "historical"
    terminal_balance: Optional[float]  # None when the path could not run
    failure_years: int = 0
    records: Tuple[YearRecord, ...] = ()
    status: str = COMPLETED

    @property
    def resolved(self) -> bool:
        return self.status != UNRESOLVED

    @property
    def min_balance(self) -> Optional[float]:
        if not self.records:
            return self.terminal_balance
        return min(r.end_balance for r in self.records)


@dataclass(frozen=True)
class AggregateResult:
    success_rate: float
    min_terminal: Optional[float]
    max_terminal: Optional[float]
    median_terminal: Optional[float]
    histogram: Tuple[Tuple[float, int], ...]
    paths: Tuple[PathResult, ...]

    total_runs: int = 0
    success_count: int = 0
    failed_count: int = 0
    unresolved_count: int = 0
    p10_terminal: Optional[float] = None
    p90_terminal: Optional[float] = None
    avoid_ruin_rate: float = 0.0
    mean_failure_years: float = 0.0

    @property
    def resolved_paths(self) -> Tuple[PathResult, ...]:
        return tuple(p for p in self.paths if p.resolved)


@dataclass(frozen=True)
class RunRequest:
    config: SimulationConfig
    mode: str = "stochastic"           # "single" | "stochastic" | "historical" | "calibrate"

    # Stochastic
    trials: int = 1000
    seed: Optional[int] = None

    # Historical replay
    start_year: Optional[int] = None
    start_years: Optional[Tuple[int, ...]] = None

    workers: int = 1

    # Calibration
    calibration_mode: str = "stochastic"
    parameter: Optional[str] = None
    target: Optional[float] = None
    low: Optional[float] = None
    high: Optional[float] = None
    tolerance: float = 1.0
    statistic: str = "median_terminal"
    increasing: bool = True


@dataclass(frozen=True)
class CalibrationResult:
    parameter: str
    value: float
    aggregate: Optional[AggregateResult]
    iterations: int
    history: Tuple[Tuple[float, float], ...] = field(default_factory=tuple)
    converged: bool = True

    @property
    def statistic_at_value(self) -> Optional[float]:
        if not self.history:
            return None
        return self.history[-1][1]
