"""Simulation inputs and their validation.

Parameters are plain dataclasses that can also be built from the dict-based
plans used by callers::

    params = SimulationParameters.from_dict({
        "number_of_runs": 5000,
        "time_horizon_years": 30,
        "withdrawal_config": {"strategy": "guardrails", "withdrawal_rate": 0.05},
    })

``validation_errors`` returns *every* violated constraint; ``validate``
raises :class:`~firecalc.errors.InvalidParametersError` carrying that list.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional

from . import config
from .errors import InvalidParametersError
from .income import ScheduledIncome
from .portfolio import PortfolioSnapshot

STRATEGIES = (
    "fixed_percentage",
    "dynamic_percentage",
    "guardrails",
    "fixed_dollar",
    "rmd",
)


@dataclass
class WithdrawalConfiguration:
    """Withdrawal strategy tag and its knobs.

    ``floor_percentage`` / ``ceiling_percentage`` bound the dynamic strategy
    as fractions of the initial balance.  Guardrail thresholds left unset
    default to the withdrawal rate scaled by
    :data:`~firecalc.config.DEFAULT_UPPER_GUARDRAIL_FACTOR` and
    :data:`~firecalc.config.DEFAULT_LOWER_GUARDRAIL_FACTOR`.
    """

    strategy: str = "fixed_percentage"
    withdrawal_rate: float = 0.04
    annual_amount: Optional[float] = None
    adjust_for_inflation: bool = True
    floor_percentage: Optional[float] = None
    ceiling_percentage: Optional[float] = None
    upper_guardrail: Optional[float] = None
    lower_guardrail: Optional[float] = None
    guardrail_adjustment: Optional[float] = None
    fixed_income_real: float = 0.0
    fixed_income_nominal: float = 0.0

    @property
    def effective_upper_guardrail(self) -> float:
        if self.upper_guardrail is not None:
            return self.upper_guardrail
        return self.withdrawal_rate * config.DEFAULT_UPPER_GUARDRAIL_FACTOR

    @property
    def effective_lower_guardrail(self) -> float:
        if self.lower_guardrail is not None:
            return self.lower_guardrail
        return self.withdrawal_rate * config.DEFAULT_LOWER_GUARDRAIL_FACTOR

    @property
    def effective_guardrail_adjustment(self) -> float:
        if self.guardrail_adjustment is not None:
            return self.guardrail_adjustment
        return config.DEFAULT_GUARDRAIL_ADJUSTMENT

    def validation_errors(self) -> List[str]:
        errors = []
        if self.strategy not in STRATEGIES:
            errors.append(
                f"Unknown withdrawal strategy '{self.strategy}' (expected one of {', '.join(STRATEGIES)})"
            )
        if not 0 <= self.withdrawal_rate <= 1:
            errors.append("Withdrawal rate must be between 0% and 100%")
        if (
            self.floor_percentage is not None
            and self.ceiling_percentage is not None
            and self.floor_percentage > self.ceiling_percentage
        ):
            errors.append("Withdrawal floor must not exceed the ceiling")
        if self.floor_percentage is not None and self.floor_percentage < 0:
            errors.append("Withdrawal floor cannot be negative")
        if self.strategy == "guardrails":
            if self.effective_lower_guardrail >= self.effective_upper_guardrail:
                errors.append("Lower guardrail must be below the upper guardrail")
            if not 0 <= self.effective_guardrail_adjustment < 1:
                errors.append("Guardrail adjustment must be between 0% and 100%")
        if self.strategy == "fixed_dollar" and (self.annual_amount is None or self.annual_amount < 0):
            errors.append("Fixed dollar strategy requires a non-negative annual amount")
        if self.fixed_income_real < 0 or self.fixed_income_nominal < 0:
            errors.append("Fixed income cannot be negative")
        return errors

    @classmethod
    def from_dict(cls, data: Mapping) -> "WithdrawalConfiguration":
        known = {f for f in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            raise InvalidParametersError([f"Unknown withdrawal setting '{k}'" for k in sorted(unknown)])
        return cls(**dict(data))


SUCCESS_CRITERIA = ("strict", "lenient")


def _is_whole(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


@dataclass
class SimulationParameters:
    """Everything a simulation run needs besides the portfolio and dataset.

    ``initial_balance`` overrides the snapshot's live value when set.
    ``custom_returns`` / ``custom_volatility`` override per-class
    assumptions for parametric sampling (and the constant used for classes
    a historical dataset does not cover).

    ``years_until_retirement`` accumulation years precede the
    ``time_horizon_years`` of withdrawals: the balance grows and receives
    ``monthly_contribution * 12`` each year, and nothing is withdrawn.

    ``success_criterion`` is ``"strict"`` (final balance above zero) or
    ``"lenient"`` (every withdrawal met through the last year, even if the
    balance ends at exactly zero).  With ``reinvest_surplus_income`` income
    above the year's withdrawal is added back to the portfolio.
    """

    number_of_runs: int = config.DEFAULTS["number_of_runs"]
    time_horizon_years: int = config.DEFAULTS["time_horizon_years"]
    inflation_rate: float = config.DEFAULTS["inflation_rate"]
    use_historical_bootstrap: bool = config.DEFAULTS["use_historical_bootstrap"]
    initial_balance: Optional[float] = None
    monthly_contribution: float = 0.0
    years_until_retirement: int = 0
    custom_allocation_weights: Optional[Dict[str, float]] = None
    withdrawal_config: WithdrawalConfiguration = field(default_factory=WithdrawalConfiguration)
    income_schedule: List[ScheduledIncome] = field(default_factory=list)
    retirement_age: Optional[int] = None
    rng_seed: Optional[int] = None
    bootstrap_block_length: Optional[int] = None
    custom_returns: Dict[str, float] = field(default_factory=dict)
    custom_volatility: Dict[str, float] = field(default_factory=dict)
    inflation_volatility: float = 0.0
    reinvest_surplus_income: bool = False
    success_criterion: str = "strict"

    @property
    def total_years(self) -> int:
        """Accumulation plus withdrawal years actually simulated."""
        return self.years_until_retirement + self.time_horizon_years

    def starting_balance(self, snapshot: Optional[PortfolioSnapshot] = None) -> float:
        """Override target if set, else the snapshot's total value."""
        if self.initial_balance is not None:
            return float(self.initial_balance)
        if snapshot is None:
            return 0.0
        return snapshot.total_value

    def validation_errors(self, snapshot: Optional[PortfolioSnapshot] = None) -> List[str]:
        errors = []
        if not _is_whole(self.number_of_runs):
            errors.append("Number of runs must be a whole number")
        elif not config.MIN_RUNS <= self.number_of_runs <= config.MAX_RUNS:
            errors.append("Number of runs must be between 1 and 100,000")
        if not _is_whole(self.time_horizon_years):
            errors.append("Time horizon must be a whole number of years")
        elif not config.MIN_HORIZON_YEARS <= self.time_horizon_years <= config.MAX_HORIZON_YEARS:
            errors.append("Time horizon must be between 1 and 50 years")
        if not config.MIN_INFLATION <= self.inflation_rate <= config.MAX_INFLATION:
            errors.append("Inflation rate must be between -5% and 15%")
        if not self.inflation_volatility >= 0:
            errors.append("Inflation volatility cannot be negative")

        if self.initial_balance is not None or snapshot is not None:
            balance = self.starting_balance(snapshot)
            if not (balance > 0 and math.isfinite(balance)):
                errors.append("Initial portfolio value must be positive")
        if not (self.monthly_contribution >= 0 and math.isfinite(self.monthly_contribution)):
            errors.append("Monthly contribution cannot be negative")
        if not _is_whole(self.years_until_retirement) or self.years_until_retirement < 0:
            errors.append("Years until retirement cannot be negative")

        weights = self.custom_allocation_weights
        if weights is not None:
            if any(w < 0 for w in weights.values()):
                errors.append("Allocation weights cannot be negative")
            if not abs(sum(weights.values()) - 1.0) <= config.ALLOCATION_TOLERANCE:
                errors.append("Allocation weights must sum to 100%")

        block = self.bootstrap_block_length
        if block is not None and (not _is_whole(block) or block < 1):
            errors.append("Bootstrap block length must be at least 1 year")
        if self.retirement_age is not None and not 0 <= self.retirement_age <= config.MAX_AGE:
            errors.append("Retirement age must be between 0 and 120")
        if any(v < 0 for v in self.custom_volatility.values()):
            errors.append("Volatility cannot be negative")
        if self.success_criterion not in SUCCESS_CRITERIA:
            errors.append(f"Success criterion must be one of {', '.join(SUCCESS_CRITERIA)}")

        errors.extend(self.withdrawal_config.validation_errors())
        for entry in self.income_schedule:
            errors.extend(entry.validation_errors())
        return errors

    def validate(self, snapshot: Optional[PortfolioSnapshot] = None) -> None:
        errors = self.validation_errors(snapshot)
        if errors:
            raise InvalidParametersError(errors)

    def with_withdrawal_config(self, withdrawal_config: WithdrawalConfiguration) -> "SimulationParameters":
        return replace(self, withdrawal_config=withdrawal_config)

    @classmethod
    def from_dict(cls, data: Mapping) -> "SimulationParameters":
        """Build parameters from a plain dict, converting nested entries."""
        data = dict(data)
        withdrawal = data.pop("withdrawal_config", None)
        if isinstance(withdrawal, Mapping):
            withdrawal = WithdrawalConfiguration.from_dict(withdrawal)
        schedule = [
            entry if isinstance(entry, ScheduledIncome) else ScheduledIncome.from_dict(entry)
            for entry in data.pop("income_schedule", None) or []
        ]
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise InvalidParametersError([f"Unknown parameter '{k}'" for k in sorted(unknown)])
        return cls(
            withdrawal_config=withdrawal or WithdrawalConfiguration(),
            income_schedule=schedule,
            **data,
        )

    @classmethod
    def preset(cls, name: str, **overrides) -> "SimulationParameters":
        """Parameters from one of :data:`~firecalc.config.PRESETS`."""
        if name not in config.PRESETS:
            raise KeyError(f"Unknown preset '{name}' (available: {', '.join(sorted(config.PRESETS))})")
        data = dict(config.PRESETS[name])
        data["withdrawal_config"] = dict(data["withdrawal_config"])
        data.update(overrides)
        return cls.from_dict(data)


__all__ = ["STRATEGIES", "SUCCESS_CRITERIA", "WithdrawalConfiguration", "SimulationParameters"]
