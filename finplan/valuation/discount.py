from __future__ import annotations
from typing import Iterable, List

from finplan.errors import InvalidRate


def check_rate(rate: float) -> None:
    if rate <= -1.0:
        raise InvalidRate(f"Rate cannot be at or below -100% (got {rate})")


def discount_factor(rate: float, period: float) -> float:
    """Return 1/(1+r)^period."""
    check_rate(rate)
    if period < 0:
        raise ValueError("Period must be non-negative")
    return 1.0 / ((1.0 + rate) ** period)


def discount_factors(rate: float, periods: int) -> List[float]:
    """Return [1/(1+r)^1, ..., 1/(1+r)^periods]."""
    check_rate(rate)
    return [1.0 / ((1.0 + rate) ** t) for t in range(1, periods + 1)]


def present_value(cashflows: Iterable[float], rate: float) -> float:
    check_rate(rate)
    total = 0.0
    for t, cf in enumerate(cashflows, start=1):
        total += float(cf) / ((1.0 + rate) ** t)
    return total
