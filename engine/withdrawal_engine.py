# withdrawal_engine.py

from dataclasses import dataclass

from models import SimulationConfig


@dataclass(frozen=True)
class WithdrawalDecision:
    requested: float
    available: float
    reserve: float
    actual: float
    failure: bool


# Handles the adaptive withdrawal policy for one path
#
class SpendingPolicy:
    """
    Decides how much can be spent each year.

    Requested spending is escalated every year by a phase-dependent share of
    the inflation rate. Actual spending is the request cut back, if needed, so
    that the discounted target ending balance stays in the portfolio.

    One instance per path: the escalated request is path state.
    """
    def __init__(self, cfg: SimulationConfig):
        self.cfg = cfg
        self.current_requested_spending = cfg.annual_spending_start

    def _phase_share(self, age: int) -> float:
        """Share of the inflation rate used at this age (1.0 before the first phase)."""
        share = 1.0
        for threshold, phase_share in self.cfg.spending_phases:
            if age >= threshold:
                share = phase_share
        return share

    def phase_rate(self, age: int) -> float:
        return self.cfg.inflation_rate * self._phase_share(age)

    def escalate(self, age: int) -> float:
        """Advances the request one year. Never reset within a path."""
        self.current_requested_spending *= (1 + self.phase_rate(age))
        return self.current_requested_spending

    def reserve_floor(self, year_index: int) -> float:
        """Target ending balance discounted back over the years remaining after this one."""
        years_remaining = self.cfg.horizon_years - year_index - 1
        return self.cfg.target_end_balance / (1 + self.cfg.reserve_rate) ** years_remaining

    def decide(self, year_index: int, age: int, available_funds: float) -> WithdrawalDecision:
        """
        The Core Policy: escalates the plan and picks this year's actual spending.

        Args:
            year_index: Simulated year (0-based).
            age: Age in the simulated year.
            available_funds: Post-return balance plus dividends, benefit and work income.

        Returns:
            WithdrawalDecision with the request, reserve, actual spend and failure flag.
        """
        requested = self.escalate(age)
        reserve = self.reserve_floor(year_index)

        # Never negative, never past the reserve floor, never more than requested
        actual = max(0.0, min(requested, available_funds - reserve, available_funds))

        failure = actual < requested * self.cfg.failure_threshold

        return WithdrawalDecision(
            requested=requested,
            available=available_funds,
            reserve=reserve,
            actual=actual,
            failure=failure,
        )
