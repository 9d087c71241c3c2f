"""Required Minimum Distribution style withdrawal sizing.

The ``rmd`` withdrawal strategy divides the current balance by a
distribution period taken from the IRS Uniform Lifetime Table (2022 update).
The table here is an approximation for planning purposes:

* ages below the first table age use the first period (27.4);
* ages beyond the table use the last period (2.0).

Example
-------

>>> round(compute_rmd(balance=100000, age=73), 2)
3773.58
>>> distribution_period(60)
27.4
"""

from __future__ import annotations

from typing import Dict

_UNIFORM_LIFETIME_TABLE: Dict[int, float] = {
    72: 27.4,
    73: 26.5,
    74: 25.5,
    75: 24.6,
    76: 23.7,
    77: 22.9,
    78: 22.0,
    79: 21.1,
    80: 20.2,
    81: 19.4,
    82: 18.5,
    83: 17.7,
    84: 16.8,
    85: 16.0,
    86: 15.2,
    87: 14.4,
    88: 13.7,
    89: 12.9,
    90: 12.2,
    91: 11.5,
    92: 10.8,
    93: 10.1,
    94: 9.5,
    95: 8.9,
    96: 8.4,
    97: 7.8,
    98: 7.3,
    99: 6.8,
    100: 6.4,
    101: 6.0,
    102: 5.6,
    103: 5.2,
    104: 4.9,
    105: 4.6,
    106: 4.3,
    107: 4.1,
    108: 3.9,
    109: 3.7,
    110: 3.5,
    111: 3.4,
    112: 3.3,
    113: 3.1,
    114: 3.0,
    115: 2.9,
    116: 2.8,
    117: 2.7,
    118: 2.5,
    119: 2.3,
    120: 2.0,
}

FIRST_TABLE_AGE = min(_UNIFORM_LIFETIME_TABLE)
LAST_TABLE_AGE = max(_UNIFORM_LIFETIME_TABLE)


def distribution_period(age: int) -> float:
    """Distribution period (life expectancy factor) for ``age``, clamped to the table."""
    age = max(FIRST_TABLE_AGE, min(LAST_TABLE_AGE, int(age)))
    return _UNIFORM_LIFETIME_TABLE[age]


def compute_rmd(balance: float, age: int) -> float:
    """Withdrawal for ``balance`` at ``age``.

    Parameters
    ----------
    balance : float
        Portfolio balance available for the distribution.
    age : int
        Age of the account owner in the distribution year.

    Returns
    -------
    float
        ``balance / distribution_period(age)``; zero for a non-positive balance.
    """
    if balance <= 0:
        return 0.0
    return balance / distribution_period(age)


__all__ = ["distribution_period", "compute_rmd"]
