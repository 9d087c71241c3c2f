"""Time-windowed supplemental income (pensions, Social Security, annuities).

Each :class:`ScheduledIncome` is active for ages ``start_age`` through
``end_age`` inclusive (open-ended when ``end_age`` is ``None``).  Simulated
year 1 is the retirement year, so the age in year ``y`` is
``retirement_age + y - 1``.

COLA entries keep their real value: they contribute the flat amount every
active year.  Non-COLA entries are fixed nominal payments, so their real
value erodes from *their own* start age::

    amount / (1 + inflation_rate) ** (age - start_age)

Example
-------

>>> ss = ScheduledIncome("Social Security", 30000, start_age=67, inflation_adjusted=True)
>>> total_income(year=5, retirement_age=62, inflation_rate=0.025, schedule=[ss])
0.0
>>> total_income(year=6, retirement_age=62, inflation_rate=0.025, schedule=[ss])
30000.0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledIncome:
    name: str
    annual_amount: float
    start_age: int
    end_age: Optional[int] = None
    inflation_adjusted: bool = False

    def is_active(self, age: int) -> bool:
        if age < self.start_age:
            return False
        return self.end_age is None or age <= self.end_age

    def real_amount(self, age: int, inflation_rate: float) -> float:
        """Contribution at ``age``; 0 outside the active window."""
        if not self.is_active(age):
            return 0.0
        if self.inflation_adjusted:
            return float(self.annual_amount)
        return self.annual_amount / (1 + inflation_rate) ** (age - self.start_age)

    def validation_errors(self) -> List[str]:
        errors = []
        if self.annual_amount < 0:
            errors.append(f"Income '{self.name}' amount cannot be negative")
        if self.start_age < 0:
            errors.append(f"Income '{self.name}' start age cannot be negative")
        if self.end_age is not None and self.end_age < self.start_age:
            errors.append(f"Income '{self.name}' end age must not be before its start age")
        return errors

    @classmethod
    def from_dict(cls, data: Mapping) -> "ScheduledIncome":
        end_age = data.get("end_age")
        return cls(
            name=str(data.get("name", "Income")),
            annual_amount=float(data.get("annual_amount", data.get("amount", 0.0))),
            start_age=int(data["start_age"]),
            end_age=None if end_age is None else int(end_age),
            inflation_adjusted=bool(data.get("inflation_adjusted", data.get("cola", False))),
        )


def total_income(
    year: int,
    retirement_age: int,
    inflation_rate: float,
    schedule: Sequence[ScheduledIncome],
) -> float:
    """Sum of every entry active in simulated ``year``."""
    age = retirement_age + year - 1
    return float(sum(entry.real_amount(age, inflation_rate) for entry in schedule))


def resolve_schedule(
    schedule: Optional[Sequence[ScheduledIncome]],
    retirement_age: Optional[int],
    fixed_income_real: float = 0.0,
    fixed_income_nominal: float = 0.0,
) -> Tuple[List[ScheduledIncome], int]:
    """Collapse the scheduled and legacy flat income into one entry list.

    Returns ``(entries, baseline_age)``.  A schedule is only usable with a
    retirement age; in that case the legacy buckets are ignored.  Otherwise
    the legacy buckets become entries active from year 1.  The two sources
    never contribute together.
    """
    has_legacy = fixed_income_real > 0 or fixed_income_nominal > 0
    if schedule and retirement_age is not None:
        if has_legacy:
            logger.warning(
                "Ignoring legacy fixed income (real=%.2f, nominal=%.2f): an income schedule is configured",
                fixed_income_real, fixed_income_nominal,
            )
        return list(schedule), int(retirement_age)

    baseline = int(retirement_age) if retirement_age is not None else 0
    if schedule:
        logger.warning("Income schedule ignored: no retirement age baseline configured")

    entries: List[ScheduledIncome] = []
    if fixed_income_real > 0:
        entries.append(ScheduledIncome("Fixed income (real)", fixed_income_real, baseline, None, True))
    if fixed_income_nominal > 0:
        entries.append(ScheduledIncome("Fixed income (nominal)", fixed_income_nominal, baseline, None, False))
    return entries, baseline


@dataclass(frozen=True)
class YearlyIncome:
    year: int
    age: int
    total: float
    sources: Dict[str, float]


class IncomeScheduler:
    """Resolved schedule bound to a baseline age and inflation rate."""

    def __init__(self, schedule: Sequence[ScheduledIncome], baseline_age: int, inflation_rate: float):
        self.schedule = list(schedule)
        self.baseline_age = baseline_age
        self.inflation_rate = inflation_rate
        self._by_year: Dict[int, float] = {}

    @classmethod
    def from_parameters(cls, parameters) -> "IncomeScheduler":
        config = parameters.withdrawal_config
        entries, baseline = resolve_schedule(
            parameters.income_schedule,
            parameters.retirement_age,
            config.fixed_income_real,
            config.fixed_income_nominal,
        )
        return cls(entries, baseline, parameters.inflation_rate)

    def income_for_year(self, year: int) -> float:
        if year not in self._by_year:
            self._by_year[year] = total_income(year, self.baseline_age, self.inflation_rate, self.schedule)
        return self._by_year[year]

    def incomes(self, years: int) -> np.ndarray:
        """Income for years 1..``years`` (index 0 is year 1)."""
        return np.array([self.income_for_year(y) for y in range(1, years + 1)], dtype=float)

    def timeline(self, years: int) -> List[YearlyIncome]:
        rows = []
        for year in range(1, years + 1):
            age = self.baseline_age + year - 1
            sources = {
                entry.name: entry.real_amount(age, self.inflation_rate)
                for entry in self.schedule
                if entry.is_active(age)
            }
            rows.append(YearlyIncome(year, age, float(sum(sources.values())), sources))
        return rows


__all__ = [
    "ScheduledIncome",
    "total_income",
    "resolve_schedule",
    "IncomeScheduler",
    "YearlyIncome",
]
