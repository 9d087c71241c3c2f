"""Tests for the Monte Carlo simulation engine."""

import numpy as np
import pytest

from firecalc import monte_carlo
from firecalc.errors import EmptyPortfolioError, HistoricalDataError, InvalidParametersError
from firecalc.historical import HistoricalDataset
from firecalc.income import IncomeScheduler
from firecalc.parameters import SimulationParameters, WithdrawalConfiguration
from firecalc.portfolio import PortfolioSnapshot
from firecalc.withdrawal import WithdrawalPolicy


class _ConstantSampler:
    def __init__(self, portfolio_return=0.0, inflation=0.0):
        self.portfolio_return = portfolio_return
        self.inflation = inflation

    def next_year(self):
        return self.portfolio_return, self.inflation


def _snapshot() -> PortfolioSnapshot:
    return PortfolioSnapshot({"stocks": 600_000.0, "bonds": 400_000.0})


def _build_params(**overrides) -> SimulationParameters:
    values = {
        "number_of_runs": 200,
        "time_horizon_years": 30,
        "inflation_rate": 0.02,
        "use_historical_bootstrap": False,
        "rng_seed": 12345,
    }
    values.update(overrides)
    return SimulationParameters(**values)


def _path(params, balance, portfolio_return=0.0):
    return monte_carlo.simulate_path(
        params,
        _ConstantSampler(portfolio_return),
        WithdrawalPolicy(params.withdrawal_config, balance, params.retirement_age),
        IncomeScheduler.from_parameters(params),
        balance,
    )


def test_repeatability_with_seed():
    """Same inputs and seed give an identical result."""
    params = _build_params()
    result1 = monte_carlo.run_simulation(params, _snapshot())
    result2 = monte_carlo.run_simulation(params, _snapshot())
    assert result1.success_rate == result2.success_rate
    assert result1.percentiles == result2.percentiles
    assert result1.yearly_projections == result2.yearly_projections
    assert result1.seed == 12345


def test_seed_is_recorded_when_not_supplied():
    result = monte_carlo.run_simulation(_build_params(rng_seed=None, number_of_runs=20), _snapshot())
    assert isinstance(result.seed, int)
    replay = monte_carlo.run_simulation(_build_params(rng_seed=result.seed, number_of_runs=20), _snapshot())
    assert replay.percentiles == result.percentiles


def test_ruin_floors_balance_and_zeroes_later_years():
    """Once the money runs out every later year records zero."""
    config = WithdrawalConfiguration(strategy="fixed_dollar", annual_amount=40_000.0, adjust_for_inflation=False)
    params = _build_params(time_horizon_years=5, withdrawal_config=config)
    path = _path(params, 100_000.0)

    assert path.ruin_year == 3
    assert not path.success
    assert list(path.balances) == [100_000.0, 60_000.0, 20_000.0, 0.0, 0.0, 0.0]
    # the ruin-year withdrawal is capped at what was left
    assert list(path.withdrawals) == [40_000.0, 40_000.0, 20_000.0, 0.0, 0.0]


def test_surviving_path_has_no_ruin_year():
    params = _build_params(time_horizon_years=10)
    path = _path(params, 1_000_000.0, portfolio_return=0.05)
    assert path.ruin_year is None
    assert path.success
    assert len(path.balances) == 11
    assert len(path.withdrawals) == 10
    assert path.withdrawals[0] == pytest.approx(40_000.0)


def test_income_covers_withdrawal():
    """Real fixed income equal to the withdrawal leaves the balance untouched."""
    config = WithdrawalConfiguration(withdrawal_rate=0.04, adjust_for_inflation=False, fixed_income_real=40_000.0)
    params = _build_params(time_horizon_years=5, withdrawal_config=config)
    path = _path(params, 1_000_000.0)
    assert np.allclose(path.balances, 1_000_000.0)
    assert np.allclose(path.withdrawals, 0.0)


def test_percentiles_are_ordered():
    result = monte_carlo.run_simulation(_build_params(number_of_runs=500), _snapshot())
    p = result.percentiles
    assert p[10] <= p[25] <= p[50] <= p[75] <= p[90]
    for row in result.yearly_projections:
        assert row.p10_balance <= row.median_balance <= row.p90_balance


def test_probability_of_ruin_complements_success_rate():
    result = monte_carlo.run_simulation(
        _build_params(withdrawal_config=WithdrawalConfiguration(withdrawal_rate=0.07)),
        _snapshot(),
    )
    assert result.probability_of_ruin == pytest.approx(1.0 - result.success_rate)
    assert 0.0 < result.success_rate < 1.0
    assert result.average_years_to_ruin is not None
    assert 1 <= result.average_years_to_ruin <= 30


def test_target_balance_overrides_snapshot():
    params = _build_params(initial_balance=2_500_000.0, number_of_runs=10)
    result = monte_carlo.run_simulation(params, _snapshot())
    assert result.yearly_projections[0].median_balance == pytest.approx(2_500_000.0)


def test_keep_runs_archives_every_trajectory():
    result = monte_carlo.run_simulation(_build_params(number_of_runs=25), _snapshot(), keep_runs=True)
    assert [t.run_index for t in result.runs] == list(range(25))
    assert result.without_runs().runs is None
    finals = sorted(t.final_balance for t in result.runs)
    assert np.allclose(finals, result.final_balance_distribution)


def test_empty_portfolio_raises():
    with pytest.raises(EmptyPortfolioError):
        monte_carlo.run_simulation(_build_params(), PortfolioSnapshot({}))


def test_empty_portfolio_with_override_allocation_and_target():
    params = _build_params(
        number_of_runs=10,
        initial_balance=500_000.0,
        custom_allocation_weights={"stocks": 0.5, "bonds": 0.5},
    )
    result = monte_carlo.run_simulation(params, PortfolioSnapshot({}))
    assert result.number_of_runs == 10


def test_invalid_parameters_reported_before_running():
    params = _build_params(number_of_runs=0, time_horizon_years=80, inflation_rate=0.5)
    with pytest.raises(InvalidParametersError) as excinfo:
        monte_carlo.run_simulation(params, _snapshot())
    assert len(excinfo.value.errors) == 3


def test_bootstrap_without_dataset_raises():
    with pytest.raises(HistoricalDataError):
        monte_carlo.run_simulation(_build_params(use_historical_bootstrap=True), _snapshot(), None)


def test_compare_strategies_uses_one_seed():
    params = _build_params(number_of_runs=100)
    configs = {
        "four_percent": WithdrawalConfiguration(withdrawal_rate=0.04),
        "guardrails": WithdrawalConfiguration(strategy="guardrails", withdrawal_rate=0.05),
    }
    results = monte_carlo.compare_strategies(params, _snapshot(), None, configs)
    assert set(results) == {"four_percent", "guardrails"}
    assert all(r.runs is None for r in results.values())
    assert results["four_percent"].seed == results["guardrails"].seed == 12345
    single = monte_carlo.run_simulation(params, _snapshot())
    assert results["four_percent"].percentiles == single.percentiles


def test_four_percent_rule_regression_band():
    """60/40, 4% inflation-adjusted, 30 years over the bundled history."""
    params = SimulationParameters(
        number_of_runs=10_000,
        time_horizon_years=30,
        inflation_rate=0.03,
        use_historical_bootstrap=True,
        rng_seed=20240101,
        withdrawal_config=WithdrawalConfiguration(strategy="fixed_percentage", withdrawal_rate=0.04),
    )
    result = monte_carlo.run_simulation(params, _snapshot(), HistoricalDataset.load_default())
    assert 0.91 <= result.success_rate <= 0.935


def test_accumulation_years_add_contributions_without_withdrawing():
    config = WithdrawalConfiguration(withdrawal_rate=0.04, adjust_for_inflation=False)
    params = _build_params(
        time_horizon_years=2,
        years_until_retirement=2,
        monthly_contribution=1_000.0,
        withdrawal_config=config,
    )
    path = _path(params, 100_000.0)

    assert path.ruin_year is None
    assert list(path.balances) == [100_000.0, 112_000.0, 124_000.0, 120_000.0, 116_000.0]
    # the withdrawal stays sized on the starting balance
    assert list(path.withdrawals) == [0.0, 0.0, 4_000.0, 4_000.0]


def test_strategy_years_count_from_retirement():
    config = WithdrawalConfiguration(strategy="rmd")
    params = _build_params(time_horizon_years=2, years_until_retirement=3, retirement_age=75, withdrawal_config=config)
    path = _path(params, 100_000.0)

    assert list(path.withdrawals[:3]) == [0.0, 0.0, 0.0]
    # first withdrawal year is age 75, not 78
    assert path.withdrawals[3] == pytest.approx(100_000.0 / 24.6)
    assert path.withdrawals[4] == pytest.approx(path.balances[3] / 23.7)


def test_surplus_income_reinvested_only_when_enabled():
    config = WithdrawalConfiguration(
        strategy="fixed_dollar", annual_amount=10_000.0, adjust_for_inflation=False, fixed_income_real=25_000.0,
    )
    kept = _path(_build_params(time_horizon_years=2, inflation_rate=0.0, withdrawal_config=config), 100_000.0)
    reinvested = _path(
        _build_params(time_horizon_years=2, inflation_rate=0.0, withdrawal_config=config, reinvest_surplus_income=True),
        100_000.0,
    )
    assert list(kept.balances) == [100_000.0, 100_000.0, 100_000.0]
    assert list(reinvested.balances) == [100_000.0, 115_000.0, 130_000.0]
    assert list(reinvested.withdrawals) == [0.0, 0.0]

    # surplus never refills an exhausted portfolio
    empty = _path(
        _build_params(time_horizon_years=2, inflation_rate=0.0, withdrawal_config=config, reinvest_surplus_income=True),
        0.0,
    )
    assert list(empty.balances) == [0.0, 0.0, 0.0]


def test_exactly_depleted_portfolio_is_not_ruin():
    config = WithdrawalConfiguration(strategy="fixed_dollar", annual_amount=50_000.0, adjust_for_inflation=False)
    path = _path(_build_params(time_horizon_years=2, withdrawal_config=config), 100_000.0)
    assert path.ruin_year is None
    assert path.met_all_withdrawals
    assert not path.success
    assert list(path.withdrawals) == [50_000.0, 50_000.0]


@pytest.mark.parametrize("criterion,expected", [("strict", 0.0), ("lenient", 1.0)])
def test_success_criterion(criterion, expected):
    """Every withdrawal is met but the money ends at exactly zero."""
    params = _build_params(
        number_of_runs=20,
        time_horizon_years=2,
        initial_balance=100_000.0,
        custom_returns={"stocks": 0.0, "bonds": 0.0},
        custom_volatility={"stocks": 0.0, "bonds": 0.0},
        withdrawal_config=WithdrawalConfiguration(
            strategy="fixed_dollar", annual_amount=50_000.0, adjust_for_inflation=False,
        ),
        success_criterion=criterion,
    )
    result = monte_carlo.run_simulation(params, _snapshot())
    assert result.success_rate == expected
    assert result.success_criterion == criterion
    assert result.median_final_balance == 0.0


def test_ruined_runs_stay_at_zero_in_the_archive():
    params = _build_params(withdrawal_config=WithdrawalConfiguration(withdrawal_rate=0.09))
    result = monte_carlo.run_simulation(params, _snapshot(), keep_runs=True)

    ruined = [t for t in result.runs if t.ruin_year is not None]
    assert ruined
    for t in ruined:
        assert t.balances[t.ruin_year - 1] > 0
        assert np.all(t.balances[t.ruin_year:] == 0)
        assert np.all(t.withdrawals[t.ruin_year:] == 0)
    for t in result.runs:
        assert np.all(t.balances >= 0)


def test_accumulation_shifts_ruin_and_horizon():
    params = _build_params(
        years_until_retirement=5,
        monthly_contribution=500.0,
        withdrawal_config=WithdrawalConfiguration(withdrawal_rate=0.09),
    )
    result = monte_carlo.run_simulation(params, _snapshot(), keep_runs=True)

    assert result.years_until_retirement == 5
    assert result.time_horizon_years == 30
    assert len(result.yearly_projections) == 36
    for t in result.runs:
        assert len(t.balances) == 36
        assert np.all(t.withdrawals[:5] == 0)
        if t.ruin_year is not None:
            assert t.ruin_year > 5
    assert result.average_years_to_ruin is not None
    assert 1 <= result.average_years_to_ruin <= 30


def test_final_real_balances_deflated_over_simulated_years():
    params = _build_params(number_of_runs=25, years_until_retirement=3)
    result = monte_carlo.run_simulation(params, _snapshot(), keep_runs=True)
    finals = np.sort([t.final_balance for t in result.runs])
    assert np.allclose(result.final_real_balance_distribution, finals / 1.02 ** 33)
