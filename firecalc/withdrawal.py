"""Per-trajectory withdrawal policies.

A :class:`WithdrawalPolicy` is created once per trajectory because some
strategies carry state across years (the guardrail baseline).  Each year
``step`` returns the gross withdrawal the strategy asks for, the supplemental
income available that year, and the net amount actually drawn from the
portfolio (``max(0, gross - income)``).  Income beyond the gross amount is
reported as ``surplus``.

Strategies
----------

``fixed_percentage``
    ``initial_balance * rate``, grown by the cumulative inflation index when
    ``adjust_for_inflation`` is set.
``dynamic_percentage``
    ``balance * rate`` clamped into ``[floor, ceiling] * initial_balance``.
``guardrails``
    Withdraw the running baseline; when ``baseline / balance`` crosses the
    upper guardrail later baselines are cut by ``adjustment``, below the
    lower guardrail they are raised by it.
``fixed_dollar``
    ``annual_amount``, inflation indexed when ``adjust_for_inflation``.
``rmd``
    ``balance / distribution_period(age)``; ``balance * rate`` when no
    retirement age is known.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .parameters import WithdrawalConfiguration
from .rmd import distribution_period


@dataclass(frozen=True)
class WithdrawalStep:
    gross: float
    income: float
    net: float
    surplus: float = 0.0


class WithdrawalPolicy:
    def __init__(
        self,
        config: WithdrawalConfiguration,
        initial_balance: float,
        retirement_age: Optional[int] = None,
    ):
        self.config = config
        self.initial_balance = float(initial_balance)
        self.retirement_age = retirement_age
        self.baseline = self.initial_balance * config.withdrawal_rate

        # dynamic band, fixed in dollars at construction
        self.floor = (
            None if config.floor_percentage is None else config.floor_percentage * self.initial_balance
        )
        self.ceiling = (
            None if config.ceiling_percentage is None else config.ceiling_percentage * self.initial_balance
        )

    def _gross(self, balance: float, year: int, inflation_index: float) -> float:
        cfg = self.config
        strategy = cfg.strategy
        index = inflation_index if cfg.adjust_for_inflation else 1.0

        if strategy == "fixed_percentage":
            return self.initial_balance * cfg.withdrawal_rate * index

        if strategy == "fixed_dollar":
            return (cfg.annual_amount or 0.0) * index

        if strategy == "dynamic_percentage":
            amount = max(0.0, balance) * cfg.withdrawal_rate
            if self.floor is not None:
                amount = max(amount, self.floor)
            if self.ceiling is not None:
                amount = min(amount, self.ceiling)
            return amount

        if strategy == "guardrails":
            amount = self.baseline
            current_rate = amount / balance if balance > 0 else float("inf")
            if current_rate > cfg.effective_upper_guardrail:
                self.baseline *= 1 - cfg.effective_guardrail_adjustment
            elif current_rate < cfg.effective_lower_guardrail:
                self.baseline *= 1 + cfg.effective_guardrail_adjustment
            return amount

        if strategy == "rmd":
            if balance <= 0:
                return 0.0
            if self.retirement_age is None:
                return balance * cfg.withdrawal_rate
            return balance / distribution_period(self.retirement_age + year - 1)

        raise ValueError(f"Unknown withdrawal strategy '{strategy}'")

    def step(self, balance: float, year: int, inflation_index: float = 1.0, income: float = 0.0) -> WithdrawalStep:
        """Withdrawal for simulated ``year`` (1-based) given the post-return balance."""
        gross = self._gross(balance, year, inflation_index)
        return WithdrawalStep(
            gross=gross,
            income=income,
            net=max(0.0, gross - income),
            surplus=max(0.0, income - gross),
        )


def project_withdrawals(
    initial_balance: float,
    years: int,
    config: WithdrawalConfiguration,
    inflation_rate: float,
    assumed_return: float,
    retirement_age: Optional[int] = None,
) -> List[float]:
    """Deterministic gross withdrawals for a constant return and inflation.

    Each year's withdrawal is sized on the balance at the start of the year;
    the balance then grows by ``assumed_return`` and the withdrawal is taken
    out, never dropping below zero.
    """
    policy = WithdrawalPolicy(config, initial_balance, retirement_age)
    balance = float(initial_balance)
    index = 1.0
    withdrawals = []
    for year in range(1, years + 1):
        amount = policy.step(balance, year, index).gross
        withdrawals.append(amount)
        balance = max(0.0, balance * (1 + assumed_return) - amount)
        index *= 1 + inflation_rate
    return withdrawals


__all__ = ["WithdrawalStep", "WithdrawalPolicy", "project_withdrawals"]
