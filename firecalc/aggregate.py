"""Reduce simulated trajectories into a :class:`SimulationResult`.

The engine stores every run in index-addressed arrays:

* ``balances``    shape ``(n_runs, H + 1)``; column 0 is the starting balance;
* ``withdrawals`` shape ``(n_runs, H)``; net amounts actually taken;
* ``ruin_years``  shape ``(n_runs,)``; simulated year a withdrawal went unmet, 0 if never.

A run succeeds under the ``"strict"`` criterion when its final balance is
above zero, and under ``"lenient"`` when it never ran short.  The first
``accumulation_years`` columns are pre-retirement years; per-year averages
and years to ruin are counted from retirement.

Percentiles use linear interpolation between order statistics
(``numpy.percentile(..., method="linear")``).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .config import DISTRIBUTION_SAMPLE_SIZE

PERCENTILES = (10, 25, 50, 75, 90)


@dataclass
class Trajectory:
    """One simulated path (kept only when the run archive is requested)."""

    run_index: int
    balances: np.ndarray
    withdrawals: np.ndarray
    ruin_year: Optional[int] = None

    @property
    def final_balance(self) -> float:
        return float(self.balances[-1])

    @property
    def success(self) -> bool:
        return self.final_balance > 0

    @property
    def met_all_withdrawals(self) -> bool:
        return self.ruin_year is None


@dataclass(frozen=True)
class YearlyProjection:
    year: int
    median_balance: float
    p10_balance: float
    p90_balance: float
    median_withdrawal: float


@dataclass
class SimulationResult:
    success_rate: float
    probability_of_ruin: float
    mean_final_balance: float
    median_final_balance: float
    percentiles: Dict[int, float]
    total_withdrawn: float
    average_annual_withdrawal: float
    average_years_to_ruin: Optional[float]
    max_drawdown: float
    yearly_projections: List[YearlyProjection]
    real_yearly_projections: List[YearlyProjection]
    final_balance_distribution: np.ndarray
    number_of_runs: int
    time_horizon_years: int
    inflation_rate: float
    final_real_balance_distribution: Optional[np.ndarray] = None
    years_until_retirement: int = 0
    success_criterion: str = "strict"
    seed: Optional[int] = None
    runs: Optional[List[Trajectory]] = field(default=None, repr=False)

    def without_runs(self) -> "SimulationResult":
        """Copy of this result with the per-run archive dropped."""
        return replace(self, runs=None)

    def yearly_frame(self, real: bool = False) -> pd.DataFrame:
        """Yearly projections as a DataFrame indexed by year."""
        rows = self.real_yearly_projections if real else self.yearly_projections
        frame = pd.DataFrame([p.__dict__ for p in rows])
        return frame.set_index("year")

    def to_dict(self) -> dict:
        """JSON-ready mapping (the run archive is never included)."""
        return {
            "success_rate": self.success_rate,
            "probability_of_ruin": self.probability_of_ruin,
            "mean_final_balance": self.mean_final_balance,
            "median_final_balance": self.median_final_balance,
            "percentiles": {f"p{p}": v for p, v in self.percentiles.items()},
            "total_withdrawn": self.total_withdrawn,
            "average_annual_withdrawal": self.average_annual_withdrawal,
            "average_years_to_ruin": self.average_years_to_ruin,
            "max_drawdown": self.max_drawdown,
            "yearly_projections": [p.__dict__ for p in self.yearly_projections],
            "real_yearly_projections": [p.__dict__ for p in self.real_yearly_projections],
            "final_balance_distribution": self.final_balance_distribution,
            "final_real_balance_distribution": self.final_real_balance_distribution,
            "number_of_runs": self.number_of_runs,
            "time_horizon_years": self.time_horizon_years,
            "years_until_retirement": self.years_until_retirement,
            "success_criterion": self.success_criterion,
            "inflation_rate": self.inflation_rate,
            "seed": self.seed,
        }

    def to_json(self, **kwargs) -> str:
        kwargs.setdefault("indent", 2)
        return json.dumps(self.to_dict(), default=_json_default, **kwargs)


def _json_default(o):
    if isinstance(o, np.ndarray):
        return o.tolist()
    if isinstance(o, np.generic):
        return o.item()
    raise TypeError(f"Object of type {o.__class__.__name__} is not JSON serializable")


def percentile(values, p: float) -> float:
    """Linear-interpolated percentile for ``p`` in ``[0, 1]``."""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return 0.0
    return float(np.percentile(values, p * 100, method="linear"))


def max_drawdown(path) -> float:
    """Largest peak-to-trough fractional decline along ``path``."""
    path = np.asarray(path, dtype=float)
    if path.size == 0:
        return 0.0
    peaks = np.maximum.accumulate(path)
    with np.errstate(divide="ignore", invalid="ignore"):
        drawdowns = np.where(peaks > 0, (peaks - path) / peaks, 0.0)
    return float(drawdowns.max())


def distribution_sample(final_balances, size: int = DISTRIBUTION_SAMPLE_SIZE) -> np.ndarray:
    """Sorted final balances, thinned to ``size`` evenly spaced order statistics."""
    ordered = np.sort(np.asarray(final_balances, dtype=float))
    if ordered.size <= size:
        return ordered
    idx = np.linspace(0, ordered.size - 1, size).round().astype(int)
    return ordered[idx]


def _projections(balances: np.ndarray, withdrawals: np.ndarray) -> List[YearlyProjection]:
    median = np.percentile(balances, 50, axis=0, method="linear")
    p10 = np.percentile(balances, 10, axis=0, method="linear")
    p90 = np.percentile(balances, 90, axis=0, method="linear")
    wd = np.concatenate([[0.0], np.percentile(withdrawals, 50, axis=0, method="linear")])
    return [
        YearlyProjection(int(t), float(median[t]), float(p10[t]), float(p90[t]), float(wd[t]))
        for t in range(balances.shape[1])
    ]


def _deflate(projections: List[YearlyProjection], inflation_rate: float) -> List[YearlyProjection]:
    real = []
    for p in projections:
        factor = (1 + inflation_rate) ** p.year
        real.append(
            YearlyProjection(
                p.year,
                p.median_balance / factor,
                p.p10_balance / factor,
                p.p90_balance / factor,
                p.median_withdrawal / factor,
            )
        )
    return real


def aggregate(
    balances: np.ndarray,
    withdrawals: np.ndarray,
    ruin_years: np.ndarray,
    inflation_rate: float,
    seed: Optional[int] = None,
    keep_runs: bool = False,
    accumulation_years: int = 0,
    success_criterion: str = "strict",
) -> SimulationResult:
    """Summarise all runs.  Inputs are indexed by run, so merge order is irrelevant."""
    balances = np.asarray(balances, dtype=float)
    withdrawals = np.asarray(withdrawals, dtype=float)
    ruin_years = np.asarray(ruin_years, dtype=int)
    n_runs, horizon = withdrawals.shape
    retirement_years = horizon - accumulation_years

    finals = balances[:, -1]
    if success_criterion == "lenient":
        successes = ruin_years == 0
    else:
        successes = finals > 0
    success_rate = float(successes.mean())
    failed = ruin_years[ruin_years > 0] - accumulation_years
    real_finals = finals / (1 + inflation_rate) ** horizon

    total_withdrawn = percentile(withdrawals.sum(axis=1), 0.5)
    projections = _projections(balances, withdrawals)

    runs = None
    if keep_runs:
        runs = [
            Trajectory(i, balances[i].copy(), withdrawals[i].copy(), int(ruin_years[i]) or None)
            for i in range(n_runs)
        ]

    return SimulationResult(
        success_rate=success_rate,
        probability_of_ruin=1.0 - success_rate,
        mean_final_balance=float(finals.mean()),
        median_final_balance=percentile(finals, 0.5),
        percentiles={p: percentile(finals, p / 100) for p in PERCENTILES},
        total_withdrawn=total_withdrawn,
        average_annual_withdrawal=total_withdrawn / retirement_years,
        average_years_to_ruin=float(failed.mean()) if failed.size else None,
        max_drawdown=max_drawdown([p.median_balance for p in projections]),
        yearly_projections=projections,
        real_yearly_projections=_deflate(projections, inflation_rate),
        final_balance_distribution=distribution_sample(finals),
        number_of_runs=n_runs,
        time_horizon_years=retirement_years,
        inflation_rate=inflation_rate,
        final_real_balance_distribution=distribution_sample(real_finals),
        years_until_retirement=accumulation_years,
        success_criterion=success_criterion,
        seed=seed,
        runs=runs,
    )


__all__ = [
    "PERCENTILES",
    "Trajectory",
    "YearlyProjection",
    "SimulationResult",
    "percentile",
    "max_drawdown",
    "distribution_sample",
    "aggregate",
]
