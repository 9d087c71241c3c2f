"""Claiming-age adjusted Social Security benefits as scheduled income.

The benefit model is deliberately simple:

* full retirement age (FRA) defaults to 67;
* each year claimed before FRA reduces the monthly benefit by 7 %;
* each year of delay after FRA (up to 70) adds 8 %;
* claiming ages are clamped to 62-70 and the annual benefit is 12 months.

:func:`social_security_income` wraps the result in a COLA
:class:`~firecalc.income.ScheduledIncome` starting at the claiming age, so a
delayed claim phases in automatically during the simulation.

Example
-------

>>> round(social_security_benefit(PIA=2000, claim_age=70), 2)
29760.0
>>> entry = social_security_income(PIA=2000, claim_age=67)
>>> entry.start_age, entry.annual_amount, entry.inflation_adjusted
(67, 24000.0, True)
"""

from __future__ import annotations

from typing import Optional

from .income import ScheduledIncome

EARLIEST_CLAIM_AGE = 62
LATEST_CLAIM_AGE = 70
EARLY_REDUCTION_PER_YEAR = 0.07
DELAYED_CREDIT_PER_YEAR = 0.08


def _claim_factor(claim_age: int, FRA: int) -> float:
    claim_age = max(EARLIEST_CLAIM_AGE, min(LATEST_CLAIM_AGE, claim_age))
    years = claim_age - FRA
    if years < 0:
        return 1 + EARLY_REDUCTION_PER_YEAR * years
    return 1 + DELAYED_CREDIT_PER_YEAR * years


def social_security_benefit(
    PIA: float,
    claim_age: int,
    FRA: int = 67,
    spouse_PIA: Optional[float] = None,
    spouse_claim_age: Optional[int] = None,
    survivor: bool = False,
) -> float:
    """Annual benefit for an individual or couple.

    Parameters
    ----------
    PIA : float
        Primary Insurance Amount (monthly benefit at FRA).
    claim_age : int
        Age benefits begin; clamped to 62-70.
    FRA : int, optional
        Full retirement age (default 67).
    spouse_PIA, spouse_claim_age : optional
        Second earner.  The spouse claims at ``claim_age`` unless given.
    survivor : bool, optional
        Return only the larger of the two benefits.

    Returns
    -------
    float
        Annual benefit in today's dollars.
    """
    primary = PIA * _claim_factor(claim_age, FRA)
    if spouse_PIA is None:
        return primary * 12

    spouse = spouse_PIA * _claim_factor(spouse_claim_age or claim_age, FRA)
    if survivor:
        return max(primary, spouse) * 12
    return (primary + spouse) * 12


def social_security_income(
    PIA: float,
    claim_age: int,
    FRA: int = 67,
    name: str = "Social Security",
) -> ScheduledIncome:
    """COLA income entry paying the adjusted benefit from ``claim_age``."""
    start = max(EARLIEST_CLAIM_AGE, min(LATEST_CLAIM_AGE, int(claim_age)))
    return ScheduledIncome(
        name=name,
        annual_amount=float(social_security_benefit(PIA, start, FRA)),
        start_age=start,
        end_age=None,
        inflation_adjusted=True,
    )


__all__ = ["social_security_benefit", "social_security_income"]
