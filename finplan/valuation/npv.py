from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Sequence, Tuple, Union

from finplan.valuation.discount import check_rate, discount_factor

DAYS_PER_YEAR = 365.25


@dataclass(frozen=True)
class PeriodCashFlow:
    period: float
    amount: float
    discount_factor: float
    present_value: float


@dataclass(frozen=True)
class NPVResult:
    npv: float
    discount_rate: float
    cash_flows: List[PeriodCashFlow] = field(default_factory=list)


def npv_schedule(
    cash_flows: Sequence[float], rate: float, initial_investment: float = 0.0
) -> NPVResult:
    """NPV with a per-period breakdown.

    cash_flows[t] lands at period t+1; initial_investment (a positive outlay)
    sits undiscounted at period 0.
    """
    check_rate(rate)
    rows: List[PeriodCashFlow] = []
    total = -float(initial_investment)
    if initial_investment:
        rows.append(PeriodCashFlow(0, -float(initial_investment), 1.0, -float(initial_investment)))
    for t, cf in enumerate(cash_flows, start=1):
        df = discount_factor(rate, t)
        pv = float(cf) * df
        rows.append(PeriodCashFlow(t, float(cf), df, pv))
        total += pv
    return NPVResult(npv=total, discount_rate=rate, cash_flows=rows)


def npv(cash_flows: Sequence[float], rate: float, initial_investment: float = 0.0) -> float:
    """NPV = -I + Σ cf[t] / (1+r)^(t+1)."""
    return npv_schedule(cash_flows, rate, initial_investment).npv


def npv_with_periods(
    flows: Iterable[Union[Tuple[float, float], PeriodCashFlow]], rate: float
) -> NPVResult:
    """NPV of irregularly timed flows given as (period, amount) pairs."""
    check_rate(rate)
    pairs: List[Tuple[float, float]] = []
    for f in flows:
        if isinstance(f, PeriodCashFlow):
            pairs.append((float(f.period), f.amount))
        else:
            pairs.append((float(f[0]), float(f[1])))
    pairs.sort(key=lambda p: p[0])
    rows: List[PeriodCashFlow] = []
    total = 0.0
    for period, amount in pairs:
        df = discount_factor(rate, period)
        pv = amount * df
        rows.append(PeriodCashFlow(period, amount, df, pv))
        total += pv
    return NPVResult(npv=total, discount_rate=rate, cash_flows=rows)


def year_fraction(start: date, end: date) -> float:
    """Signed years between two dates on a 365.25-day year."""
    return (end - start).days / DAYS_PER_YEAR


def npv_with_effective_date(
    cash_flows: Sequence[float], rate: float, effective_date: date, start_date: date
) -> float:
    """NPV re-based to `effective_date`.

    Flows are timed as in `npv` (cash_flows[t] at period t+1 from start_date);
    moving the valuation date forward by `offset` years shortens every
    discounting exponent by `offset`.
    """
    check_rate(rate)
    offset = year_fraction(start_date, effective_date)
    total = 0.0
    for t, cf in enumerate(cash_flows, start=1):
        total += float(cf) / ((1.0 + rate) ** (t - offset))
    return total
