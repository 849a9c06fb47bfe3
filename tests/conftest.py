# tests/conftest.py
import pytest

from utils.input_adapter import get_simulation_config
from engine.market_generator import SequenceReturnSource


@pytest.fixture
def make_config():
    """Config factory: XML defaults with work/benefit income and dividends switched off."""
    def _make(**overrides):
        params = dict(
            work_income_start=0.0,
            work_income_end=0.0,
            benefit_start_amount=0.0,
            dividend_yield=0.0,
        )
        params.update(overrides)
        return get_simulation_config(**params)
    return _make


@pytest.fixture
def flat_table():
    """Five contiguous years of a constant 5% stock return."""
    return {year: 0.05 for year in range(2000, 2005)}


@pytest.fixture
def flat_source(flat_table):
    return SequenceReturnSource(flat_table)
