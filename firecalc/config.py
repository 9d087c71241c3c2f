"""Engine limits, defaults and presets.

Everything here is a plain module-level constant so callers can read or
override values without any configuration machinery.  Return and volatility
figures are nominal long-run estimates, not promises.
"""

from __future__ import annotations

from typing import Dict

# Validation limits
MIN_RUNS = 1
MAX_RUNS = 100_000
MIN_HORIZON_YEARS = 1
MAX_HORIZON_YEARS = 50
MIN_INFLATION = -0.05
MAX_INFLATION = 0.15
ALLOCATION_TOLERANCE = 0.01
MAX_AGE = 120

# Runner / aggregation
DEFAULT_BATCH_SIZE = 1250
DISTRIBUTION_SAMPLE_SIZE = 1000

# Guardrail defaults (relative to the initial withdrawal rate)
DEFAULT_UPPER_GUARDRAIL_FACTOR = 1.20
DEFAULT_LOWER_GUARDRAIL_FACTOR = 0.85
DEFAULT_GUARDRAIL_ADJUSTMENT = 0.10

ASSET_CLASS_DEFAULTS: Dict[str, Dict[str, float]] = {
    "stocks": {"mean_return": 0.10, "stdev_return": 0.18},
    "bonds": {"mean_return": 0.045, "stdev_return": 0.06},
    "corporate_bonds": {"mean_return": 0.055, "stdev_return": 0.08},
    "reits": {"mean_return": 0.09, "stdev_return": 0.20},
    "real_estate": {"mean_return": 0.08, "stdev_return": 0.12},
    "precious_metals": {"mean_return": 0.05, "stdev_return": 0.15},
    "crypto": {"mean_return": 0.15, "stdev_return": 0.60},
    "cash": {"mean_return": 0.02, "stdev_return": 0.01},
    "other": {"mean_return": 0.05, "stdev_return": 0.10},
}

DEFAULTS = {
    "number_of_runs": 10_000,
    "time_horizon_years": 30,
    "inflation_rate": 0.02,
    "use_historical_bootstrap": True,
    "withdrawal_strategy": "fixed_percentage",
    "withdrawal_rate": 0.04,
    "adjust_for_inflation": True,
}

PRESETS = {
    "conservative": {
        "inflation_rate": 0.03,
        "withdrawal_config": {"strategy": "fixed_percentage", "withdrawal_rate": 0.035},
    },
    "moderate": {
        "inflation_rate": 0.025,
        "withdrawal_config": {"strategy": "fixed_percentage", "withdrawal_rate": 0.04},
    },
    "aggressive": {
        "inflation_rate": 0.02,
        "withdrawal_config": {"strategy": "dynamic_percentage", "withdrawal_rate": 0.05},
    },
}


def asset_class_default(asset_class: str, key: str) -> float:
    """Default ``mean_return`` or ``stdev_return`` for a class (``other`` if unknown)."""
    return ASSET_CLASS_DEFAULTS.get(asset_class, ASSET_CLASS_DEFAULTS["other"])[key]


__all__ = [
    "MIN_RUNS",
    "MAX_RUNS",
    "MIN_HORIZON_YEARS",
    "MAX_HORIZON_YEARS",
    "MIN_INFLATION",
    "MAX_INFLATION",
    "ALLOCATION_TOLERANCE",
    "MAX_AGE",
    "DEFAULT_BATCH_SIZE",
    "DISTRIBUTION_SAMPLE_SIZE",
    "ASSET_CLASS_DEFAULTS",
    "DEFAULTS",
    "PRESETS",
    "asset_class_default",
]
