from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple
import logging
import math

from finplan.valuation.discount import check_rate

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 100
BISECTION_ITERATIONS = 200
TOLERANCE = 1e-10
INITIAL_GUESS = 0.1
RATE_FLOOR = -0.99
RATE_CEILING = 10.0  # 1000%


@dataclass(frozen=True)
class IRRResult:
    value: float  # nan when not converged
    converged: bool
    iterations: int
    method: str = "none"  # newton|bisection|none


def _npv0(cash_flows: Sequence[float], rate: float) -> float:
    # period-0 convention: cash_flows[0] is undiscounted
    return sum(cf / (1.0 + rate) ** t for t, cf in enumerate(cash_flows))


def _dnpv0(cash_flows: Sequence[float], rate: float) -> float:
    return sum(-t * cf / (1.0 + rate) ** (t + 1) for t, cf in enumerate(cash_flows) if t)


def _scale(cash_flows: Sequence[float]) -> float:
    return max(1.0, max(abs(cf) for cf in cash_flows))


def _newton(cash_flows: Sequence[float], guess: float) -> Optional[Tuple[float, int]]:
    tol = TOLERANCE * _scale(cash_flows)
    rate = guess
    for it in range(1, MAX_ITERATIONS + 1):
        value = _npv0(cash_flows, rate)
        if abs(value) < tol:
            return rate, it
        slope = _dnpv0(cash_flows, rate)
        if abs(slope) < 1e-15:
            return None
        new_rate = rate - value / slope
        if not math.isfinite(new_rate):
            return None
        new_rate = min(RATE_CEILING, max(RATE_FLOOR, new_rate))
        if abs(new_rate - rate) < 1e-14 and abs(_npv0(cash_flows, new_rate)) < tol:
            return new_rate, it
        rate = new_rate
    return None


def _bisection(cash_flows: Sequence[float], guess: float) -> Optional[Tuple[float, int]]:
    tol = TOLERANCE * _scale(cash_flows)
    low, high = RATE_FLOOR, RATE_CEILING
    f_low = _npv0(cash_flows, low)
    f_high = _npv0(cash_flows, high)
    if f_low * f_high > 0:
        return None
    for it in range(1, BISECTION_ITERATIONS + 1):
        mid = (low + high) / 2.0
        f_mid = _npv0(cash_flows, mid)
        if abs(f_mid) < tol or (high - low) / 2.0 < 1e-12:
            return mid, it
        if f_mid * f_low < 0:
            high, f_high = mid, f_mid
        else:
            low, f_low = mid, f_mid
    return None


STRATEGIES: Tuple[Tuple[str, Callable[[Sequence[float], float], Optional[Tuple[float, int]]]], ...] = (
    ("newton", _newton),
    ("bisection", _bisection),
)


def irr(cash_flows: Sequence[float], guess: float = INITIAL_GUESS) -> IRRResult:
    """Internal rate of return of flows indexed from period 0.

    Tries each strategy in STRATEGIES in order. A series without both a
    positive and a negative flow has no root and comes back with
    converged=False; callers must check `converged` before using `value`.
    """
    check_rate(guess)
    flows = [float(cf) for cf in cash_flows]
    if len(flows) < 2:
        raise ValueError("At least 2 cash flows required to calculate IRR")
    if not (any(cf > 0 for cf in flows) and any(cf < 0 for cf in flows)):
        return IRRResult(value=math.nan, converged=False, iterations=0)

    spent = 0
    for name, strategy in STRATEGIES:
        found = strategy(flows, guess)
        if found is not None:
            rate, iterations = found
            return IRRResult(value=rate, converged=True, iterations=spent + iterations, method=name)
        logger.debug("irr: %s did not converge, trying next strategy", name)
        spent += MAX_ITERATIONS if name == "newton" else BISECTION_ITERATIONS
    logger.debug("irr: no root found in [%s, %s]", RATE_FLOOR, RATE_CEILING)
    return IRRResult(value=math.nan, converged=False, iterations=spent)


def irr_simple(cash_flows: Sequence[float], guess: float = INITIAL_GUESS) -> float:
    """Best-effort IRR: the rate, or nan when no root was found."""
    res = irr(cash_flows, guess)
    return res.value if res.converged else math.nan


def mirr(cash_flows: Sequence[float], finance_rate: float, reinvest_rate: float) -> float:
    """Modified IRR: (FV of inflows at reinvest_rate / |PV of outflows at finance_rate|)^(1/n) - 1."""
    check_rate(finance_rate)
    check_rate(reinvest_rate)
    flows = [float(cf) for cf in cash_flows]
    n = len(flows) - 1
    if n < 1:
        raise ValueError("At least 2 cash flows required to calculate MIRR")
    pv_negative = 0.0
    fv_positive = 0.0
    for t, cf in enumerate(flows):
        if cf < 0:
            pv_negative += cf / (1.0 + finance_rate) ** t
        else:
            fv_positive += cf * (1.0 + reinvest_rate) ** (n - t)
    if pv_negative >= 0:
        raise ValueError("No negative cash flows found")
    return (fv_positive / abs(pv_negative)) ** (1.0 / n) - 1.0
