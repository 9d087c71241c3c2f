"""Annual return samplers.

Every sampler answers ``next_year() -> (portfolio_return, inflation)`` once
per simulated year of one trajectory and owns that trajectory's RNG.

Two modes are supported:

* **bootstrap**: resample whole historical years.  The blended portfolio
  return of each historical year is computed once; a :class:`BlockCursor`
  then picks which historical year feeds each simulated year, either
  independently or in contiguous blocks so multi-year regimes survive.
* **parametric**: draw each asset class from ``Normal(mean, volatility)``
  and blend by weight.

:class:`ReturnModel` holds the read-only inputs shared by all trajectories;
``model.sampler(rng)`` builds the per-trajectory sampler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .errors import EmptyPortfolioError, HistoricalDataError
from .historical import HistoricalDataset
from .portfolio import PortfolioSnapshot


class BlockCursor:
    """Which historical year index to use next.

    With ``block_length`` of ``None`` or 1 every call draws a fresh index.
    Otherwise a block start is drawn uniformly from ``[0, n - L]`` and the
    next ``L`` calls walk that block before a new start is drawn.  Blocks
    never wrap past the end of the data; ``L`` is clamped to ``n``.
    """

    def __init__(self, n_years: int, block_length: Optional[int] = None):
        if n_years <= 0:
            raise HistoricalDataError("Cannot bootstrap from an empty historical dataset")
        self.n_years = n_years
        self.block_length = min(block_length or 1, n_years)
        self.position = 0
        self.remaining = 0

    def next_index(self, rng: np.random.Generator) -> int:
        if self.block_length <= 1:
            return int(rng.integers(0, self.n_years))
        if self.remaining == 0:
            self.position = int(rng.integers(0, self.n_years - self.block_length + 1))
            self.remaining = self.block_length
        index = self.position
        self.position += 1
        self.remaining -= 1
        return index


class BootstrapSampler:
    def __init__(
        self,
        portfolio_returns: np.ndarray,
        inflation: Optional[np.ndarray],
        inflation_rate: float,
        rng: np.random.Generator,
        block_length: Optional[int] = None,
    ):
        self.portfolio_returns = portfolio_returns
        self.inflation = inflation
        self.inflation_rate = inflation_rate
        self.rng = rng
        self.cursor = BlockCursor(len(portfolio_returns), block_length)

    def next_year(self) -> Tuple[float, float]:
        i = self.cursor.next_index(self.rng)
        inflation = self.inflation[i] if self.inflation is not None else self.inflation_rate
        return float(self.portfolio_returns[i]), float(inflation)


class ParametricSampler:
    def __init__(
        self,
        weights: np.ndarray,
        means: np.ndarray,
        volatilities: np.ndarray,
        inflation_rate: float,
        rng: np.random.Generator,
        inflation_volatility: float = 0.0,
    ):
        self.weights = weights
        self.means = means
        self.volatilities = volatilities
        self.inflation_rate = inflation_rate
        self.inflation_volatility = inflation_volatility
        self.rng = rng

    def next_year(self) -> Tuple[float, float]:
        draws = self.rng.normal(self.means, self.volatilities)
        portfolio_return = float(np.dot(self.weights, draws))
        if self.inflation_volatility > 0:
            inflation = float(self.rng.normal(self.inflation_rate, self.inflation_volatility))
        else:
            inflation = self.inflation_rate
        return portfolio_return, inflation


@dataclass(frozen=True)
class ReturnModel:
    """Shared, read-only sampling inputs for one run set."""

    weights: Dict[str, float]
    means: Dict[str, float]
    volatilities: Dict[str, float]
    inflation_rate: float
    inflation_volatility: float = 0.0
    historical_returns: Optional[np.ndarray] = None
    historical_inflation: Optional[np.ndarray] = None
    block_length: Optional[int] = None

    @property
    def is_bootstrap(self) -> bool:
        return self.historical_returns is not None

    @classmethod
    def from_inputs(
        cls,
        parameters,
        snapshot: PortfolioSnapshot,
        dataset: Optional[HistoricalDataset] = None,
    ) -> "ReturnModel":
        weights = dict(parameters.custom_allocation_weights or snapshot.weights())
        if not weights:
            raise EmptyPortfolioError()
        means = {
            c: float(parameters.custom_returns.get(c, snapshot.expected_return(c))) for c in weights
        }
        vols = {
            c: float(parameters.custom_volatility.get(c, snapshot.volatility(c))) for c in weights
        }

        historical_returns = historical_inflation = None
        if parameters.use_historical_bootstrap:
            if dataset is None or dataset.is_empty:
                raise HistoricalDataError("Historical bootstrap requested but no historical data is available")
            historical_returns = dataset.portfolio_returns(weights, fallback_returns=means)
            historical_inflation = dataset.inflation

        return cls(
            weights=weights,
            means=means,
            volatilities=vols,
            inflation_rate=parameters.inflation_rate,
            inflation_volatility=parameters.inflation_volatility,
            historical_returns=historical_returns,
            historical_inflation=historical_inflation,
            block_length=parameters.bootstrap_block_length,
        )

    def sampler(self, rng: np.random.Generator):
        if self.is_bootstrap:
            return BootstrapSampler(
                self.historical_returns,
                self.historical_inflation,
                self.inflation_rate,
                rng,
                self.block_length,
            )
        classes = list(self.weights)
        return ParametricSampler(
            np.array([self.weights[c] for c in classes], dtype=float),
            np.array([self.means[c] for c in classes], dtype=float),
            np.array([self.volatilities[c] for c in classes], dtype=float),
            self.inflation_rate,
            rng,
            self.inflation_volatility,
        )


def make_sampler(parameters, snapshot: PortfolioSnapshot, dataset: Optional[HistoricalDataset], rng: np.random.Generator):
    """Per-trajectory sampler for ``parameters`` (bootstrap or parametric)."""
    return ReturnModel.from_inputs(parameters, snapshot, dataset).sampler(rng)


__all__ = [
    "BlockCursor",
    "BootstrapSampler",
    "ParametricSampler",
    "ReturnModel",
    "make_sampler",
]
