# income_calculator.py
#
# Income sources outside the portfolio: a work income taper ending at
# retirement and an indexed social benefit.
#

from models import SimulationConfig


def work_income(age: int, cfg: SimulationConfig) -> float:
    """
    Work income for the given age.

    Tapers linearly from work_income_start at current_age towards
    work_income_end at retirement_age, and is work_income_end from retirement
    on. The taper never drops below work_income_end.

    Args:
        age: Age in the simulated year.
        cfg: Simulation configuration.

    Returns:
        float: Annual work income.
    """
    if age >= cfg.retirement_age:
        return cfg.work_income_end

    span = cfg.retirement_age - cfg.current_age
    if span == 0:
        return cfg.work_income_end

    progress = (age - cfg.current_age) / span
    income = cfg.work_income_start + progress * (cfg.work_income_end - cfg.work_income_start)
    return max(income, cfg.work_income_end)


def benefit_income(age: int, cfg: SimulationConfig) -> float:
    """Indexed benefit: zero before benefit_start_age, then compounded by COLA each year."""
    if age < cfg.benefit_start_age:
        return 0.0
    return cfg.benefit_start_amount * (1 + cfg.cola_rate) ** (age - cfg.benefit_start_age)
