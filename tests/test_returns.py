"""Tests for the annual return samplers."""

import numpy as np
import pytest

from firecalc.errors import HistoricalDataError
from firecalc.historical import HistoricalDataset
from firecalc.parameters import SimulationParameters
from firecalc.portfolio import PortfolioSnapshot
from firecalc.returns import (
    BlockCursor,
    BootstrapSampler,
    ParametricSampler,
    ReturnModel,
    make_sampler,
)


def _dataset(with_inflation=True) -> HistoricalDataset:
    return HistoricalDataset(
        years=np.arange(2000, 2005),
        returns={
            "stocks": np.array([0.10, -0.20, 0.30, 0.05, 0.00]),
            "bonds": np.array([0.02, 0.04, 0.01, 0.03, 0.05]),
        },
        inflation=np.array([0.01, 0.02, 0.03, 0.04, 0.05]) if with_inflation else None,
    )


def test_iid_cursor_stays_in_range():
    cursor = BlockCursor(5)
    rng = np.random.default_rng(0)
    draws = [cursor.next_index(rng) for _ in range(500)]
    assert min(draws) == 0 and max(draws) == 4


def test_block_cursor_walks_contiguous_blocks():
    cursor = BlockCursor(10, block_length=3)
    rng = np.random.default_rng(1)
    draws = [cursor.next_index(rng) for _ in range(30)]
    for i in range(0, 30, 3):
        start = draws[i]
        assert 0 <= start <= 7
        assert draws[i:i + 3] == [start, start + 1, start + 2]


def test_block_length_clamped_to_history():
    cursor = BlockCursor(4, block_length=10)
    rng = np.random.default_rng(2)
    assert [cursor.next_index(rng) for _ in range(8)] == [0, 1, 2, 3, 0, 1, 2, 3]


def test_empty_history_rejected():
    with pytest.raises(HistoricalDataError):
        BlockCursor(0)


def test_bootstrap_pairs_return_with_same_year_inflation():
    data = _dataset()
    blended = data.portfolio_returns({"stocks": 0.5, "bonds": 0.5})
    sampler = BootstrapSampler(blended, data.inflation, 0.99, np.random.default_rng(3))
    for _ in range(50):
        r, inflation = sampler.next_year()
        i = int(np.argmin(np.abs(blended - r)))
        assert inflation == pytest.approx(data.inflation[i])


def test_bootstrap_without_inflation_uses_scalar():
    data = _dataset(with_inflation=False)
    sampler = BootstrapSampler(data.portfolio_returns({"stocks": 1.0}), None, 0.025, np.random.default_rng(4))
    assert all(sampler.next_year()[1] == 0.025 for _ in range(10))


def test_parametric_zero_volatility_is_weighted_mean():
    sampler = ParametricSampler(
        np.array([0.6, 0.4]), np.array([0.10, 0.05]), np.array([0.0, 0.0]), 0.02, np.random.default_rng(5),
    )
    r, inflation = sampler.next_year()
    assert r == pytest.approx(0.08)
    assert inflation == 0.02


def test_parametric_inflation_volatility():
    sampler = ParametricSampler(
        np.array([1.0]), np.array([0.07]), np.array([0.15]), 0.03, np.random.default_rng(6),
        inflation_volatility=0.01,
    )
    inflations = [sampler.next_year()[1] for _ in range(2000)]
    assert len(set(inflations)) > 1
    assert np.mean(inflations) == pytest.approx(0.03, abs=0.002)


def test_model_uses_custom_weights_and_returns():
    params = SimulationParameters(
        use_historical_bootstrap=True,
        custom_allocation_weights={"stocks": 0.5, "crypto": 0.5},
        custom_returns={"crypto": 0.20},
    )
    model = ReturnModel.from_inputs(params, PortfolioSnapshot({"bonds": 1.0}), _dataset())
    assert model.weights == {"stocks": 0.5, "crypto": 0.5}
    # crypto is not in the dataset: its custom return stands in every year
    assert model.historical_returns == pytest.approx(0.5 * _dataset().returns["stocks"] + 0.1)


def test_make_sampler_picks_mode():
    snapshot = PortfolioSnapshot({"stocks": 1.0})
    rng = np.random.default_rng(7)
    boot = make_sampler(SimulationParameters(use_historical_bootstrap=True), snapshot, _dataset(), rng)
    para = make_sampler(SimulationParameters(use_historical_bootstrap=False), snapshot, None, rng)
    assert isinstance(boot, BootstrapSampler)
    assert isinstance(para, ParametricSampler)


def test_bootstrap_requires_data():
    params = SimulationParameters(use_historical_bootstrap=True)
    with pytest.raises(HistoricalDataError):
        ReturnModel.from_inputs(params, PortfolioSnapshot({"stocks": 1.0}), None)
