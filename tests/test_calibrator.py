# tests/test_calibrator.py
import math

import pytest

from models import ConfigurationError
from engine.market_generator import SequenceReturnSource
from engine.calibrator import bisect, Calibrator


def test_bisect_converges_on_identity():
    value, iterations, history, converged = bisect(lambda x: x, 0, 200_000, target=100_000, tolerance=1)
    assert converged
    assert abs(value - 100_000) <= 1
    assert iterations <= math.ceil(math.log2(200_000))
    assert len(history) == iterations
    assert history[0] == (100_000, 100_000)


def test_bisect_decreasing_function():
    value, _, _, _ = bisect(lambda x: 1_000 - x, 0, 1_000, target=250, tolerance=0.01, increasing=False)
    assert value == pytest.approx(750, abs=0.01)


def test_bisect_stops_at_iteration_cap():
    value, iterations, _, converged = bisect(lambda x: x, 0, 1_000, target=10, tolerance=1e-9, max_iterations=5)
    assert not converged
    assert iterations == 5
    assert 0 <= value <= 1_000


def test_bisect_rejects_bad_bounds():
    with pytest.raises(ConfigurationError):
        bisect(lambda x: x, 10, 0, target=5, tolerance=1)
    with pytest.raises(ConfigurationError):
        bisect(lambda x: x, 0, 10, target=5, tolerance=0)


def _flat_config(make_config, **overrides):
    params = dict(
        horizon_years=1,
        stock_allocation=1.0,
        bond_allocation=0.0,
        cash_allocation=0.0,
        inflation_rate=0.0,
        annual_spending_start=0.0,
        start_year=2000,
    )
    params.update(overrides)
    return make_config(**params)


def test_calibrates_initial_balance_to_median_target(make_config):
    # zero return, no spending: the terminal balance is the initial balance
    cfg = _flat_config(make_config, initial_balance=1.0)
    source = SequenceReturnSource({2000: 0.0})
    calibrator = Calibrator(cfg, "initial_balance", mode="historical", sequence_source=source)

    result = calibrator.calibrate(target=100_000, low=0, high=200_000, tolerance=1)

    assert abs(result.value - 100_000) <= 1
    assert result.aggregate.median_terminal == pytest.approx(result.value)
    assert result.iterations <= math.ceil(math.log2(200_000))
    assert result.converged
    assert cfg.initial_balance == 1.0


def test_calibrates_spending_against_decreasing_statistic(make_config):
    cfg = _flat_config(make_config, initial_balance=1_000_000)
    source = SequenceReturnSource({2000: 0.0})
    calibrator = Calibrator(cfg, "annual_spending_start", mode="historical",
                            sequence_source=source, increasing=False)

    result = calibrator.calibrate(target=900_000, low=0, high=500_000, tolerance=1)

    assert result.value == pytest.approx(100_000, abs=1)
    assert result.parameter == "annual_spending_start"


def test_stochastic_calibration_reuses_seed(make_config):
    cfg = make_config(horizon_years=10, stock_return_stddev=0.1)
    calibrator = Calibrator(cfg, "annual_spending_start", statistic="success_rate",
                            trials=20, seed=8, increasing=False)
    assert calibrator.evaluate(40_000) == calibrator.evaluate(40_000)


def test_unknown_parameter_rejected(make_config):
    with pytest.raises(ConfigurationError):
        Calibrator(make_config(), "not_a_field")


def test_unknown_statistic_rejected(make_config):
    with pytest.raises(ConfigurationError):
        Calibrator(make_config(), "initial_balance", statistic="mode_terminal")


def test_historical_mode_requires_source(make_config):
    with pytest.raises(ConfigurationError):
        Calibrator(make_config(), "initial_balance", mode="historical")


def test_undefined_statistic_raises(make_config):
    cfg = _flat_config(make_config)
    calibrator = Calibrator(cfg, "initial_balance", mode="historical",
                            sequence_source=SequenceReturnSource({2000: 0.0}), start_years=[1850])
    with pytest.raises(ConfigurationError):
        calibrator.evaluate(1_000)


def test_integer_parameter_is_rounded(make_config):
    calibrator = Calibrator(make_config(), "retirement_age")
    assert calibrator.config_for(66.6).retirement_age == 67


def test_integer_parameter_result_matches_simulated_value(make_config):
    cfg = _flat_config(make_config, initial_balance=500_000, work_income_start=40_000, work_income_end=0.0)
    source = SequenceReturnSource({2000: 0.0})
    calibrator = Calibrator(cfg, "retirement_age", mode="historical", sequence_source=source)

    result = calibrator.calibrate(target=1_000_000, low=50, high=90, tolerance=1)

    assert isinstance(result.value, int)
    assert 50 <= result.value <= 90
    expected = calibrator.aggregate(result.value)
    assert result.aggregate.median_terminal == expected.median_terminal
