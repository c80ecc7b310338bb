from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
import math

from finplan.adoption.model import AdoptionModel
from finplan.adoption.scenarios import SCENARIO_LABELS, SCENARIO_ORDER
from finplan.errors import InvalidHorizon
from finplan.forecasting.assumptions import Assumptions, CapitalAssumptions
from finplan.valuation.discount import discount_factor
from finplan.valuation.fcf import FCFInputs, free_cash_flow

DEFAULT_BASE_YEAR = 2025
DAYS_PER_YEAR = 365.0

_DEFAULT_MODEL = AdoptionModel()


@dataclass(frozen=True)
class YearlyProjection:
    year: int            # 1-based projection year
    calendar_year: int
    units: float
    revenue: float
    cogs: float
    gross_profit: float
    marketing: float
    headcount: int
    gna: float
    ebitda: float
    depreciation: float
    ebit: float
    taxes: float
    nopat: float
    capex: float
    working_capital: float
    working_capital_change: float  # positive = cash outflow
    free_cash_flow: float
    discount_factor: float
    present_value: float
    cumulative_fcf: float
    cumulative_pv: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def capex_for_year(capital: CapitalAssumptions, i: int) -> float:
    if capital.capex_schedule is not None:
        return float(capital.capex_schedule[i]) if i < len(capital.capex_schedule) else 0.0
    return capital.capex_year1 * (1.0 + capital.capex_growth_rate) ** i


def depreciation_schedule(capex: List[float], life_years: int) -> List[float]:
    """Straight-line depreciation per capex vintage.

    A vintage placed in year v contributes capex_v / N in years v..v+N-1, so the
    charge steps up by one tranche per new vintage and never exceeds the capex
    placed so far.
    """
    n = max(1, int(life_years))
    out = [0.0] * len(capex)
    for v, amount in enumerate(capex):
        tranche = amount / n
        for y in range(v, min(v + n, len(capex))):
            out[y] += tranche
    return out


def working_capital_balance(revenue: float, cogs: float, capital: CapitalAssumptions) -> float:
    days = capital.working_capital_days
    if days is None:
        return revenue * capital.working_capital_percent
    ar = revenue / DAYS_PER_YEAR * days.days_receivable
    inv = cogs / DAYS_PER_YEAR * days.days_inventory
    ap = cogs / DAYS_PER_YEAR * days.days_payable
    return ar + inv - ap


def build_projections(
    scenario: str,
    assumptions: Assumptions,
    horizon_years: Optional[int] = None,
    base_year: int = DEFAULT_BASE_YEAR,
    model: Optional[AdoptionModel] = None,
) -> List[YearlyProjection]:
    """Project yearly P&L and free cash flow for a scenario.

    Identities per row:
    - EBITDA = gross profit - marketing - G&A
    - FCF = EBITDA - taxes - capex - ΔWC
    Taxes apply only to positive EBIT (EBITDA - depreciation). Assumption values
    are used as given; see assumption_warnings for guardrails.
    """
    years = assumptions.corporate.projection_years if horizon_years is None else horizon_years
    if years <= 0:
        raise InvalidHorizon(f"horizon_years must be positive, got {years}")

    rev_a, cogs_a = assumptions.revenue, assumptions.cogs
    mkt_a, gna_a = assumptions.marketing, assumptions.gna
    capital, corp = assumptions.capital, assumptions.corporate

    units_series = (model or _DEFAULT_MODEL).annual_projections(scenario, base_year, years)
    capex_series = [capex_for_year(capital, i) for i in range(years)]
    dep_series = depreciation_schedule(capex_series, capital.depreciation_years)

    rows: List[YearlyProjection] = []
    prev_wc = 0.0
    cum_fcf = 0.0
    cum_pv = 0.0

    for i in range(years):
        units = units_series[i]

        # Revenue net of returns/discounts
        price = rev_a.price_per_unit * (1.0 + rev_a.annual_price_increase) ** i
        revenue = units * price * (1.0 - rev_a.discount_rate)

        unit_cost = cogs_a.unit_cost * (1.0 - cogs_a.cost_reduction_per_year) ** i
        cogs = units * (unit_cost + cogs_a.shipping_per_unit)
        gross_profit = revenue - cogs

        marketing = max(mkt_a.base_budget, revenue * mkt_a.percent_of_revenue)

        headcount = int(gna_a.base_headcount)
        if gna_a.units_per_headcount > 0:
            headcount = max(headcount, int(math.ceil(units / gna_a.units_per_headcount)))
        salary = gna_a.avg_salary * (1.0 + gna_a.salary_growth_rate) ** i
        gna = headcount * salary * gna_a.benefits_multiplier + gna_a.office_and_ops + gna_a.insurance

        ebitda = gross_profit - marketing - gna
        depreciation = dep_series[i]
        ebit = ebitda - depreciation
        taxes = max(0.0, ebit) * corp.tax_rate
        nopat = ebit - taxes

        capex = capex_series[i]
        wc = working_capital_balance(revenue, cogs, capital)
        delta_wc = wc - prev_wc

        fcf = free_cash_flow(FCFInputs(ebitda=ebitda, taxes=taxes, capex=capex, working_capital_change=delta_wc))
        df = discount_factor(corp.discount_rate, i + 1)
        pv = fcf * df
        cum_fcf += fcf
        cum_pv += pv

        rows.append(YearlyProjection(
            year=i + 1,
            calendar_year=base_year + i,
            units=units,
            revenue=revenue,
            cogs=cogs,
            gross_profit=gross_profit,
            marketing=marketing,
            headcount=headcount,
            gna=gna,
            ebitda=ebitda,
            depreciation=depreciation,
            ebit=ebit,
            taxes=taxes,
            nopat=nopat,
            capex=capex,
            working_capital=wc,
            working_capital_change=delta_wc,
            free_cash_flow=fcf,
            discount_factor=df,
            present_value=pv,
            cumulative_fcf=cum_fcf,
            cumulative_pv=cum_pv,
        ))

        # roll working capital forward for next period base
        prev_wc = wc

    return rows


@dataclass(frozen=True)
class ProjectionSummary:
    scenario: str
    label: str
    total_revenue: float
    total_ebitda: float
    total_capex: float
    total_wc_change: float
    total_taxes: float
    total_fcf: float
    total_pv: float
    avg_fcf_margin: float  # percent of total revenue
    fcf_cagr: float
    fcf_growth_rates: List[float]
    break_even_year: Optional[int]


def summarize_projections(scenario: str, rows: List[YearlyProjection]) -> ProjectionSummary:
    total_revenue = sum(r.revenue for r in rows)
    total_fcf = sum(r.free_cash_flow for r in rows)

    growth: List[float] = []
    for prev, cur in zip(rows, rows[1:]):
        if prev.free_cash_flow != 0:
            growth.append((cur.free_cash_flow - prev.free_cash_flow) / abs(prev.free_cash_flow))

    cagr = 0.0
    if len(rows) > 1:
        first, last = rows[0].free_cash_flow, rows[-1].free_cash_flow
        if first > 0 and last > 0:
            cagr = (last / first) ** (1.0 / (len(rows) - 1)) - 1.0

    break_even = next((r.year for r in rows if r.cumulative_fcf > 0), None)

    return ProjectionSummary(
        scenario=scenario,
        label=SCENARIO_LABELS.get(scenario, scenario),
        total_revenue=total_revenue,
        total_ebitda=sum(r.ebitda for r in rows),
        total_capex=sum(r.capex for r in rows),
        total_wc_change=sum(r.working_capital_change for r in rows),
        total_taxes=sum(r.taxes for r in rows),
        total_fcf=total_fcf,
        total_pv=rows[-1].cumulative_pv if rows else 0.0,
        avg_fcf_margin=(total_fcf / total_revenue * 100.0) if total_revenue > 0 else 0.0,
        fcf_cagr=cagr,
        fcf_growth_rates=growth,
        break_even_year=break_even,
    )


@dataclass(frozen=True)
class ScenarioComparison:
    summaries: Dict[str, ProjectionSummary]
    order: List[str]
    best_case: str
    worst_case: str
    base_case: Optional[str]


def project_all_scenarios(
    assumptions: Assumptions,
    horizon_years: Optional[int] = None,
    base_year: int = DEFAULT_BASE_YEAR,
    model: Optional[AdoptionModel] = None,
) -> ScenarioComparison:
    m = model or _DEFAULT_MODEL
    names = [s for s in SCENARIO_ORDER if s in m.scenario_names] or m.scenario_names
    summaries = {
        s: summarize_projections(s, build_projections(s, assumptions, horizon_years, base_year, m))
        for s in names
    }
    ranked = sorted(names, key=lambda s: summaries[s].total_fcf, reverse=True)
    return ScenarioComparison(
        summaries=summaries,
        order=names,
        best_case=ranked[0],
        worst_case=ranked[-1],
        base_case="base" if "base" in summaries else None,
    )


def check_identities(rows: List[YearlyProjection], eps: float = 1e-6) -> bool:
    """Validate EBITDA, FCF and cumulative-sum identities on every row."""
    cum_fcf = 0.0
    cum_pv = 0.0
    for r in rows:
        scale = max(1.0, abs(r.revenue), abs(r.gna), abs(r.marketing))
        if abs(r.ebitda - (r.gross_profit - r.marketing - r.gna)) > eps * scale:
            return False
        fcf = r.ebitda - r.taxes - r.capex - r.working_capital_change
        if abs(r.free_cash_flow - fcf) > eps * scale:
            return False
        cum_fcf += r.free_cash_flow
        cum_pv += r.present_value
        if abs(r.cumulative_fcf - cum_fcf) > eps * scale or abs(r.cumulative_pv - cum_pv) > eps * scale:
            return False
    return True
