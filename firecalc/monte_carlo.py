"""Monte Carlo retirement simulation.

Each run ("trajectory") starts from the same balance.  The first
``years_until_retirement`` years only grow the balance and add a year of
monthly contributions.  Every retirement year then:

1. draws ``(portfolio_return, inflation)`` from its return sampler;
2. grows the balance by the return;
3. asks the withdrawal policy for the year's gross withdrawal, nets out
   scheduled income and takes the remainder from the portfolio;
4. stops at ruin, when the net withdrawal exceeds the balance: the remaining
   balance is paid out and every later year records a zero balance and a
   zero withdrawal.

Run ``i`` always uses ``default_rng(SeedSequence([master_seed, i]))`` so the
outcome of a run set depends only on the inputs and the master seed, never
on how runs are batched or scheduled.

:func:`run_simulation` is the plain, synchronous entry point.
:class:`firecalc.runner.SimulationRunner` adds batching, worker pools,
progress reporting and cancellation around the same :func:`run_batch`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import numpy as np

from .aggregate import SimulationResult, Trajectory, aggregate
from .errors import EmptyPortfolioError
from .historical import HistoricalDataset
from .income import IncomeScheduler
from .parameters import SimulationParameters, WithdrawalConfiguration
from .portfolio import PortfolioSnapshot
from .returns import ReturnModel
from .withdrawal import WithdrawalPolicy

logger = logging.getLogger(__name__)


def resolve_seed(seed: Optional[int] = None) -> int:
    """Caller's seed, or fresh OS entropy when ``seed`` is ``None``."""
    if seed is not None:
        return int(seed)
    return int(np.random.SeedSequence().entropy)


def run_rng(master_seed: int, run_index: int) -> np.random.Generator:
    return np.random.default_rng(np.random.SeedSequence([master_seed, run_index]))


def simulate_path(
    parameters: SimulationParameters,
    sampler,
    policy: WithdrawalPolicy,
    scheduler: IncomeScheduler,
    starting_balance: float,
    run_index: int = 0,
) -> Trajectory:
    """Simulate one trajectory over ``parameters.total_years``.

    Years ``1..years_until_retirement`` accumulate: growth plus twelve
    monthly contributions, no withdrawal.  Withdrawal year ``k`` (1-based,
    counted from retirement) is handed to the policy and income scheduler.

    Ruin is a shortfall: the year's net withdrawal exceeds what the
    portfolio holds.  The ruin year indexes the simulated years, so
    ``balances[ruin_year:]`` and ``withdrawals[ruin_year:]`` are zero.
    A withdrawal that leaves exactly zero is met in full; the portfolio then
    stays at zero and any later year needing a withdrawal is the ruin year.
    """
    accumulation = parameters.years_until_retirement
    total = parameters.total_years
    contribution = parameters.monthly_contribution * 12
    balances = np.zeros(total + 1, dtype=float)
    withdrawals = np.zeros(total, dtype=float)
    balances[0] = balance = float(starting_balance)
    inflation_index = 1.0
    ruin_year = None

    for year in range(1, total + 1):
        portfolio_return, inflation = sampler.next_year()
        balance = max(balance * (1 + portfolio_return), 0.0)

        if year <= accumulation:
            balance += contribution
            inflation_index *= 1 + inflation
            balances[year] = balance
            continue

        retirement_year = year - accumulation
        step = policy.step(balance, retirement_year, inflation_index, scheduler.income_for_year(retirement_year))
        inflation_index *= 1 + inflation

        if step.net > balance:
            # ruin: record what was actually there; later years stay zero
            withdrawals[year - 1] = balance
            ruin_year = year
            break

        # an exhausted portfolio is never refilled
        if parameters.reinvest_surplus_income and balance > 0:
            balance += step.surplus
        balance -= step.net
        withdrawals[year - 1] = step.net
        balances[year] = balance

    return Trajectory(run_index, balances, withdrawals, ruin_year)


@dataclass
class SimulationPlan:
    """Validated, read-only inputs shared by every trajectory of a run set."""

    parameters: SimulationParameters
    model: ReturnModel
    scheduler: IncomeScheduler
    starting_balance: float
    seed: int

    @property
    def number_of_runs(self) -> int:
        return self.parameters.number_of_runs

    @property
    def horizon(self) -> int:
        return self.parameters.total_years


@dataclass
class BatchResult:
    start: int
    balances: np.ndarray
    withdrawals: np.ndarray
    ruin_years: np.ndarray

    @property
    def stop(self) -> int:
        return self.start + len(self.ruin_years)


def prepare_run(
    parameters: SimulationParameters,
    snapshot: PortfolioSnapshot,
    dataset: Optional[HistoricalDataset] = None,
    seed: Optional[int] = None,
) -> SimulationPlan:
    """Validate inputs and build the shared plan.

    Raises
    ------
    EmptyPortfolioError
        The snapshot holds nothing and no target balance overrides it.
    InvalidParametersError
        One or more parameter constraints are violated.
    HistoricalDataError
        Bootstrap sampling was requested without usable historical data.
    """
    if snapshot.is_empty and parameters.initial_balance is None:
        raise EmptyPortfolioError()
    parameters.validate(snapshot)

    if parameters.custom_allocation_weights:
        snapshot = snapshot.with_allocation(parameters.custom_allocation_weights)

    model = ReturnModel.from_inputs(parameters, snapshot, dataset)
    return SimulationPlan(
        parameters=parameters,
        model=model,
        scheduler=IncomeScheduler.from_parameters(parameters),
        starting_balance=parameters.starting_balance(snapshot),
        seed=resolve_seed(parameters.rng_seed if seed is None else seed),
    )


def run_batch(plan: SimulationPlan, start: int, stop: int) -> BatchResult:
    """Simulate runs ``start`` (inclusive) to ``stop`` (exclusive)."""
    count = stop - start
    balances = np.zeros((count, plan.horizon + 1), dtype=float)
    withdrawals = np.zeros((count, plan.horizon), dtype=float)
    ruin_years = np.zeros(count, dtype=int)
    params = plan.parameters

    for offset, run_index in enumerate(range(start, stop)):
        sampler = plan.model.sampler(run_rng(plan.seed, run_index))
        policy = WithdrawalPolicy(params.withdrawal_config, plan.starting_balance, params.retirement_age)
        path = simulate_path(params, sampler, policy, plan.scheduler, plan.starting_balance, run_index)
        balances[offset] = path.balances
        withdrawals[offset] = path.withdrawals
        ruin_years[offset] = path.ruin_year or 0

    return BatchResult(start, balances, withdrawals, ruin_years)


def run_simulation(
    parameters: SimulationParameters,
    snapshot: PortfolioSnapshot,
    dataset: Optional[HistoricalDataset] = None,
    keep_runs: bool = False,
) -> SimulationResult:
    """Run every trajectory in the calling thread and aggregate the outcome."""
    plan = prepare_run(parameters, snapshot, dataset)
    logger.info(
        "Simulating %d runs over %d years (%s, seed=%d)",
        plan.number_of_runs, plan.horizon,
        "bootstrap" if plan.model.is_bootstrap else "parametric", plan.seed,
    )
    batch = run_batch(plan, 0, plan.number_of_runs)
    return summarise(plan, batch.balances, batch.withdrawals, batch.ruin_years, keep_runs)


def summarise(plan: SimulationPlan, balances, withdrawals, ruin_years, keep_runs: bool = False) -> SimulationResult:
    params = plan.parameters
    result = aggregate(
        balances,
        withdrawals,
        ruin_years,
        params.inflation_rate,
        seed=plan.seed,
        keep_runs=keep_runs,
        accumulation_years=params.years_until_retirement,
        success_criterion=params.success_criterion,
    )
    logger.info("Simulation complete: success rate %.1f%%", result.success_rate * 100)
    return result


def compare_strategies(
    parameters: SimulationParameters,
    snapshot: PortfolioSnapshot,
    dataset: Optional[HistoricalDataset],
    configurations: Mapping[str, WithdrawalConfiguration],
) -> Dict[str, SimulationResult]:
    """Run the same inputs and seed under several withdrawal configurations."""
    seed = resolve_seed(parameters.rng_seed)
    results = {}
    for name, config in configurations.items():
        variant = parameters.with_withdrawal_config(config)
        variant.rng_seed = seed
        logger.debug("Comparing withdrawal strategy %r (%s)", name, config.strategy)
        results[name] = run_simulation(variant, snapshot, dataset).without_runs()
    return results


__all__ = [
    "Trajectory",
    "SimulationPlan",
    "BatchResult",
    "resolve_seed",
    "run_rng",
    "simulate_path",
    "prepare_run",
    "run_batch",
    "run_simulation",
    "summarise",
    "compare_strategies",
]
