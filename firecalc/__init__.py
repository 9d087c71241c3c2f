"""Monte Carlo engine for FIRE (financial independence, retire early) plans.

The package is split into small, focused modules:

* ``config`` – limits, defaults, asset-class assumptions and presets.
* ``errors`` – exceptions raised when no result can be produced.
* ``historical`` – historical annual returns and their CSV/JSON loaders.
* ``portfolio`` – the read-only portfolio snapshot the engine consumes.
* ``parameters`` – simulation parameters, withdrawal configuration and validation.
* ``returns`` – bootstrap and parametric annual return samplers.
* ``income`` – time-windowed pensions, annuities and Social Security income.
* ``withdrawal`` – withdrawal strategies as per-trajectory policies.
* ``rmd`` – Uniform Lifetime distribution periods for the RMD strategy.
* ``social_security`` – claiming-age adjusted benefits as scheduled income.
* ``monte_carlo`` – single-path simulation and the synchronous run entry point.
* ``runner`` – batched, parallel and cancellable execution with progress.
* ``aggregate`` – percentiles, yearly projections and the simulation result.

Typical use::

    from firecalc import HistoricalDataset, PortfolioSnapshot, SimulationParameters, run_simulation

    snapshot = PortfolioSnapshot({"stocks": 600_000, "bonds": 400_000})
    params = SimulationParameters(number_of_runs=10_000, time_horizon_years=30, rng_seed=42)
    result = run_simulation(params, snapshot, HistoricalDataset.load_default())
    print(result.success_rate)
"""

from . import (  # noqa: F401
    aggregate,
    config,
    errors,
    historical,
    income,
    monte_carlo,
    parameters,
    portfolio,
    returns,
    rmd,
    runner,
    social_security,
    withdrawal,
)
from .aggregate import SimulationResult, Trajectory, YearlyProjection
from .errors import EmptyPortfolioError, HistoricalDataError, InvalidParametersError, SimulationError
from .historical import HistoricalDataset
from .income import IncomeScheduler, ScheduledIncome
from .monte_carlo import compare_strategies, run_simulation, simulate_path
from .parameters import SimulationParameters, WithdrawalConfiguration
from .portfolio import PortfolioSnapshot
from .runner import SimulationRunner
from .withdrawal import WithdrawalPolicy, project_withdrawals

__version__ = "0.1.0"

__all__ = [
    "SimulationResult",
    "Trajectory",
    "YearlyProjection",
    "SimulationError",
    "InvalidParametersError",
    "EmptyPortfolioError",
    "HistoricalDataError",
    "HistoricalDataset",
    "IncomeScheduler",
    "ScheduledIncome",
    "compare_strategies",
    "run_simulation",
    "simulate_path",
    "SimulationParameters",
    "WithdrawalConfiguration",
    "PortfolioSnapshot",
    "SimulationRunner",
    "WithdrawalPolicy",
    "project_withdrawals",
]
