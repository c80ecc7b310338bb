from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging

from finplan.adoption.model import AdoptionModel
from finplan.adoption.scenarios import SCENARIO_ORDER
from finplan.errors import InvalidRate, InvalidTerminalAssumptions
from finplan.forecasting.assumptions import Assumptions
from finplan.forecasting.engine import DEFAULT_BASE_YEAR, YearlyProjection, build_projections
from finplan.valuation.discount import discount_factor
from finplan.valuation.npv import npv
from finplan.valuation.terminal import (
    MultipleBasis,
    TerminalInputs,
    TerminalMethod,
    TerminalValueBreakdown,
    gordon_growth_tv,
    terminal_value,
    terminal_value_breakdown,
)

logger = logging.getLogger(__name__)

DEFAULT_SENSITIVITY_RATES = (0.08, 0.10, 0.12, 0.15, 0.18)
DEFAULT_SENSITIVITY_GROWTH = (0.01, 0.02, 0.03, 0.04, 0.05)


def enterprise_value(operating_cash_flows: Sequence[float], wacc: float, terminal: float) -> float:
    """EV = NPV(flows, WACC) + TV / (1+WACC)^horizon."""
    return npv(operating_cash_flows, wacc) + terminal * discount_factor(wacc, len(operating_cash_flows))


@dataclass(frozen=True)
class DCFResult:
    scenario: str
    enterprise_value: float
    pv_of_cash_flows: float
    pv_of_terminal_value: float
    terminal_value: float
    terminal_method: TerminalMethod
    equity_value: float  # EV less net debt; no debt modeled
    ev_to_revenue: float
    ev_to_ebitda: float
    final_year_revenue: float
    final_year_ebitda: float
    final_year_fcf: float
    exit_year: int
    exit_date: str
    wacc: float
    terminal_growth_rate: float
    yearly_projections: List[YearlyProjection] = field(default_factory=list)
    terminal_breakdown: Optional[TerminalValueBreakdown] = None

    def to_dict(self, include_projections: bool = True) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "scenario": self.scenario,
            "enterprise_value": self.enterprise_value,
            "pv_of_cash_flows": self.pv_of_cash_flows,
            "pv_of_terminal_value": self.pv_of_terminal_value,
            "terminal_value": self.terminal_value,
            "terminal_method": self.terminal_method.value,
            "equity_value": self.equity_value,
            "ev_to_revenue": self.ev_to_revenue,
            "ev_to_ebitda": self.ev_to_ebitda,
            "final_year_revenue": self.final_year_revenue,
            "final_year_ebitda": self.final_year_ebitda,
            "final_year_fcf": self.final_year_fcf,
            "exit_year": self.exit_year,
            "exit_date": self.exit_date,
            "wacc": self.wacc,
            "terminal_growth_rate": self.terminal_growth_rate,
        }
        if self.terminal_breakdown is not None:
            d["terminal_breakdown"] = self.terminal_breakdown.to_dict()
        if include_projections:
            d["yearly_projections"] = [r.to_dict() for r in self.yearly_projections]
        return d


def _terminal_inputs(rows: List[YearlyProjection], assumptions: Assumptions) -> TerminalInputs:
    last = rows[-1]
    ex, corp = assumptions.exit, assumptions.corporate
    if TerminalMethod(ex.method) is TerminalMethod.GORDON_GROWTH:
        return TerminalInputs(
            method=TerminalMethod.GORDON_GROWTH,
            wacc=corp.discount_rate,
            final_fcf=last.free_cash_flow,
            growth=corp.terminal_growth_rate,
        )
    if ex.use_ebitda_multiple:
        return TerminalInputs(
            method=TerminalMethod.EXIT_MULTIPLE,
            wacc=corp.discount_rate,
            final_metric=last.ebitda,
            multiple=ex.exit_ebitda_multiple,
            basis=MultipleBasis.EBITDA,
        )
    return TerminalInputs(
        method=TerminalMethod.EXIT_MULTIPLE,
        wacc=corp.discount_rate,
        final_metric=last.revenue,
        multiple=ex.exit_revenue_multiple,
        basis=MultipleBasis.REVENUE,
    )


def run_dcf(
    scenario: str,
    assumptions: Assumptions,
    base_year: int = DEFAULT_BASE_YEAR,
    model: Optional[AdoptionModel] = None,
) -> DCFResult:
    """Full DCF for one scenario: projections, terminal value, enterprise value."""
    # an explicit exit year ends the horizon early
    rows = build_projections(
        scenario, assumptions, horizon_years=assumptions.exit.exit_year, base_year=base_year, model=model
    )
    horizon = len(rows)
    wacc = assumptions.corporate.discount_rate

    ti = _terminal_inputs(rows, assumptions)
    tv = terminal_value(ti, horizon)
    pv_cf = npv([r.free_cash_flow for r in rows], wacc)
    pv_tv = tv.present_value
    ev = pv_cf + pv_tv

    last = rows[-1]
    exit_year = base_year + horizon - 1
    breakdown = terminal_value_breakdown(
        tv.method, tv.terminal_value, pv_tv, ev,
        final_fcf=last.free_cash_flow,
        final_ebitda=last.ebitda,
        growth=assumptions.corporate.terminal_growth_rate,
        wacc=wacc,
        multiple=ti.multiple,
        basis=ti.basis,
        final_revenue=last.revenue,
    )

    logger.info("dcf %s: horizon=%d wacc=%.4f ev=%.2f", scenario, horizon, wacc, ev)
    return DCFResult(
        scenario=scenario,
        enterprise_value=ev,
        pv_of_cash_flows=pv_cf,
        pv_of_terminal_value=pv_tv,
        terminal_value=tv.terminal_value,
        terminal_method=tv.method,
        equity_value=ev,
        ev_to_revenue=ev / last.revenue if last.revenue > 0 else 0.0,
        ev_to_ebitda=ev / last.ebitda if last.ebitda > 0 else 0.0,
        final_year_revenue=last.revenue,
        final_year_ebitda=last.ebitda,
        final_year_fcf=last.free_cash_flow,
        exit_year=exit_year,
        exit_date=f"{exit_year}-12-31",
        wacc=wacc,
        terminal_growth_rate=assumptions.corporate.terminal_growth_rate,
        yearly_projections=rows,
        terminal_breakdown=breakdown,
    )


def calculate_all_scenarios(
    assumptions: Assumptions,
    base_year: int = DEFAULT_BASE_YEAR,
    model: Optional[AdoptionModel] = None,
) -> Dict[str, DCFResult]:
    names = SCENARIO_ORDER if model is None else model.scenario_names
    return {s: run_dcf(s, assumptions, base_year, model) for s in names}


@dataclass(frozen=True)
class SensitivityGrid:
    scenario: str
    discount_rates: List[float]
    growth_rates: List[float]
    values: List[List[Optional[float]]]  # values[i][j] for discount_rates[i], growth_rates[j]
    base_discount_rate: float
    base_growth_rate: float

    def value_at(self, discount_rate: float, growth_rate: float) -> Optional[float]:
        return self.values[self.discount_rates.index(discount_rate)][self.growth_rates.index(growth_rate)]

    def to_rows(self) -> List[Dict[str, Any]]:
        return [
            {"discount_rate": dr, "terminal_growth_rate": g, "enterprise_value": v}
            for dr, row in zip(self.discount_rates, self.values)
            for g, v in zip(self.growth_rates, row)
        ]


def sensitivity_grid(
    scenario: str,
    assumptions: Assumptions,
    discount_rates: Sequence[float] = DEFAULT_SENSITIVITY_RATES,
    growth_rates: Sequence[float] = DEFAULT_SENSITIVITY_GROWTH,
    base_year: int = DEFAULT_BASE_YEAR,
    model: Optional[AdoptionModel] = None,
) -> SensitivityGrid:
    """Gordon-growth enterprise value across WACC x terminal growth.

    Cash flows do not depend on the discount rate, so projections are built once.
    Cells with no finite value (WACC <= g, WACC <= -100%) are None.
    """
    rows = build_projections(
        scenario, assumptions, horizon_years=assumptions.exit.exit_year, base_year=base_year, model=model
    )
    flows = [r.free_cash_flow for r in rows]
    final_fcf = flows[-1]

    values: List[List[Optional[float]]] = []
    for dr in discount_rates:
        line: List[Optional[float]] = []
        for g in growth_rates:
            try:
                line.append(enterprise_value(flows, dr, gordon_growth_tv(final_fcf, g, dr)))
            except (InvalidTerminalAssumptions, InvalidRate):
                line.append(None)
        values.append(line)

    return SensitivityGrid(
        scenario=scenario,
        discount_rates=[float(d) for d in discount_rates],
        growth_rates=[float(g) for g in growth_rates],
        values=values,
        base_discount_rate=assumptions.corporate.discount_rate,
        base_growth_rate=assumptions.corporate.terminal_growth_rate,
    )
