from __future__ import annotations
from typing import Iterable, Optional, Sequence

from finplan.valuation.discount import check_rate


def _crossing(values: Iterable[float]) -> Optional[float]:
    # values[t] is the period-t amount; returns interpolated recovery time
    cumulative = 0.0
    for t, v in enumerate(values):
        prev = cumulative
        cumulative += v
        if t == 0 and cumulative >= 0:
            return 0.0
        if prev < 0 <= cumulative:
            # linear within period t; v > 0 on an upward crossing
            return (t - 1) + (-prev / v)
    return None


def payback_period(cash_flows: Sequence[float]) -> Optional[float]:
    """Years until cumulative flows (period 0 first) turn non-negative, or None."""
    return _crossing(float(cf) for cf in cash_flows)


def discounted_payback_period(cash_flows: Sequence[float], rate: float) -> Optional[float]:
    """Payback on flows discounted at `rate` (period 0 undiscounted)."""
    check_rate(rate)
    return _crossing(float(cf) / (1.0 + rate) ** t for t, cf in enumerate(cash_flows))
