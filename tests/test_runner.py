# tests/test_runner.py
import pytest

from models import RunRequest, PathResult, AggregateResult, CalibrationResult, ConfigurationError, UNRESOLVED
from engine import run, SequenceReturnSource


def test_single_stochastic_path(make_config):
    cfg = make_config(horizon_years=5)
    result = run(RunRequest(config=cfg, mode="single", seed=1))
    assert isinstance(result, PathResult)
    assert len(result.records) == 5
    assert result == run(RunRequest(config=cfg, mode="single", seed=1))


def test_single_historical_path(make_config, flat_source):
    result = run(RunRequest(config=make_config(horizon_years=3), mode="single", start_year=2001), flat_source)
    assert result.start_id == 2001
    assert result.records[0].calendar_year == 2001


def test_single_historical_path_unresolved(make_config, flat_source):
    result = run(RunRequest(config=make_config(horizon_years=3), mode="single", start_year=1700), flat_source)
    assert result.status == UNRESOLVED


def test_stochastic_batch(make_config):
    result = run(RunRequest(config=make_config(horizon_years=5), mode="stochastic", trials=25, seed=3))
    assert isinstance(result, AggregateResult)
    assert result.total_runs == 25


def test_historical_batch(make_config, flat_source):
    result = run(RunRequest(config=make_config(horizon_years=2), mode="historical"), flat_source)
    assert result.total_runs == 4


def test_historical_batch_needs_tables(make_config):
    with pytest.raises(ConfigurationError):
        run(RunRequest(config=make_config(), mode="historical"))


def test_calibrate_request(make_config):
    cfg = make_config(horizon_years=1, stock_allocation=1.0, bond_allocation=0.0, cash_allocation=0.0,
                      annual_spending_start=0.0, start_year=2000)
    request = RunRequest(config=cfg, mode="calibrate", calibration_mode="historical",
                         parameter="initial_balance", target=50_000, low=0, high=100_000, tolerance=1)
    result = run(request, SequenceReturnSource({2000: 0.0}))
    assert isinstance(result, CalibrationResult)
    assert abs(result.value - 50_000) <= 1


def test_calibrate_request_needs_bounds(make_config):
    with pytest.raises(ConfigurationError):
        run(RunRequest(config=make_config(), mode="calibrate", parameter="initial_balance", target=1.0))


def test_unknown_mode(make_config):
    with pytest.raises(ConfigurationError):
        run(RunRequest(config=make_config(), mode="bootstrap"))
