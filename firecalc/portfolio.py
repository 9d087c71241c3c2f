"""Read-only portfolio snapshot handed to the engine.

Holdings are aggregated per asset class.  Per-class return assumptions fall
back to :data:`firecalc.config.ASSET_CLASS_DEFAULTS` when not supplied.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Mapping

from .config import asset_class_default


@dataclass(frozen=True)
class PortfolioSnapshot:
    holdings: Dict[str, float]
    expected_returns: Dict[str, float] = field(default_factory=dict)
    volatilities: Dict[str, float] = field(default_factory=dict)

    @property
    def total_value(self) -> float:
        return float(sum(v for v in self.holdings.values() if v > 0))

    @property
    def is_empty(self) -> bool:
        return self.total_value <= 0

    def weights(self) -> Dict[str, float]:
        total = self.total_value
        if total <= 0:
            return {}
        return {cls: value / total for cls, value in self.holdings.items() if value > 0}

    def expected_return(self, asset_class: str) -> float:
        if asset_class in self.expected_returns:
            return float(self.expected_returns[asset_class])
        return asset_class_default(asset_class, "mean_return")

    def volatility(self, asset_class: str) -> float:
        if asset_class in self.volatilities:
            return float(self.volatilities[asset_class])
        return asset_class_default(asset_class, "stdev_return")

    @property
    def weighted_expected_return(self) -> float:
        return sum(w * self.expected_return(cls) for cls, w in self.weights().items())

    @property
    def weighted_volatility(self) -> float:
        # uncorrelated approximation
        return math.sqrt(sum((w * self.volatility(cls)) ** 2 for cls, w in self.weights().items()))

    def with_allocation(self, weights: Mapping[str, float]) -> "PortfolioSnapshot":
        """Same total value and assumptions, holdings re-split by ``weights``."""
        total = self.total_value if self.total_value > 0 else 1.0
        return PortfolioSnapshot(
            holdings={cls: total * float(w) for cls, w in weights.items()},
            expected_returns=dict(self.expected_returns),
            volatilities=dict(self.volatilities),
        )

    @classmethod
    def from_dict(cls, accounts: Mapping[str, Mapping]) -> "PortfolioSnapshot":
        """Build from ``{asset_class: {"balance", "mean_return", "stdev_return"}}``."""
        holdings: Dict[str, float] = {}
        expected: Dict[str, float] = {}
        vols: Dict[str, float] = {}
        for asset_class, acct in accounts.items():
            holdings[asset_class] = holdings.get(asset_class, 0.0) + float(acct.get("balance", 0.0))
            if "mean_return" in acct:
                expected[asset_class] = float(acct["mean_return"])
            if "stdev_return" in acct:
                vols[asset_class] = float(acct["stdev_return"])
        return cls(holdings=holdings, expected_returns=expected, volatilities=vols)


__all__ = ["PortfolioSnapshot"]
