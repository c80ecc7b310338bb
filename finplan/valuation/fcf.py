from __future__ import annotations
from dataclasses import dataclass
from typing import List

from finplan.errors import InvalidRate


@dataclass(frozen=True)
class FCFInputs:
    ebitda: float
    taxes: float
    capex: float
    working_capital_change: float  # positive = cash tied up


def free_cash_flow(i: FCFInputs) -> float:
    """Free Cash Flow: EBITDA - Taxes - Capex - ΔWC."""
    return float(i.ebitda - i.taxes - i.capex - i.working_capital_change)


def project_fcf(base_fcf: float, growth_rate: float, years: int) -> List[float]:
    """Grow a base FCF for `years` periods; the first projected value is base·(1+g)."""
    if years < 1:
        raise ValueError("years must be at least 1")
    if growth_rate < -1:
        raise InvalidRate("Growth rate cannot be less than -100%")
    out: List[float] = []
    cur = float(base_fcf)
    for _ in range(years):
        cur = cur * (1.0 + growth_rate)
        out.append(cur)
    return out
