from __future__ import annotations
from dataclasses import dataclass, field, fields, replace, asdict
from typing import Any, Dict, List, Mapping, Optional, Tuple

from finplan.valuation.terminal import TerminalMethod


@dataclass(frozen=True)
class RevenueAssumptions:
    price_per_unit: float = 1000.0
    annual_price_increase: float = 0.0
    discount_rate: float = 0.05  # returns/discounts deducted from gross revenue


@dataclass(frozen=True)
class COGSAssumptions:
    unit_cost: float = 200.0
    cost_reduction_per_year: float = 0.05  # scale economies
    shipping_per_unit: float = 25.0


@dataclass(frozen=True)
class MarketingAssumptions:
    base_budget: float = 30000.0  # floor, not a blend
    percent_of_revenue: float = 0.15


@dataclass(frozen=True)
class GNAAssumptions:
    base_headcount: int = 3
    avg_salary: float = 80000.0
    salary_growth_rate: float = 0.03
    benefits_multiplier: float = 1.3
    office_and_ops: float = 50000.0
    insurance: float = 10000.0
    units_per_headcount: float = 2000.0


@dataclass(frozen=True)
class WorkingCapitalDays:
    days_receivable: float = 30.0
    days_inventory: float = 45.0
    days_payable: float = 30.0


@dataclass(frozen=True)
class CapitalAssumptions:
    initial_investment: float = 200000.0
    capex_year1: float = 50000.0
    capex_growth_rate: float = 0.10
    capex_schedule: Optional[Tuple[float, ...]] = None  # overrides year1/growth when set
    depreciation_years: int = 5
    working_capital_percent: float = 0.10  # used only when working_capital_days is None
    working_capital_days: Optional[WorkingCapitalDays] = field(default_factory=WorkingCapitalDays)


@dataclass(frozen=True)
class CorporateAssumptions:
    tax_rate: float = 0.25
    discount_rate: float = 0.12  # WACC
    terminal_growth_rate: float = 0.03
    projection_years: int = 10


@dataclass(frozen=True)
class ExitAssumptions:
    method: TerminalMethod = TerminalMethod.EXIT_MULTIPLE
    exit_ebitda_multiple: float = 8.0
    exit_revenue_multiple: float = 2.0
    use_ebitda_multiple: bool = True
    exit_year: Optional[int] = None  # 1-based projection year; None = last year


@dataclass(frozen=True)
class Assumptions:
    revenue: RevenueAssumptions = field(default_factory=RevenueAssumptions)
    cogs: COGSAssumptions = field(default_factory=COGSAssumptions)
    marketing: MarketingAssumptions = field(default_factory=MarketingAssumptions)
    gna: GNAAssumptions = field(default_factory=GNAAssumptions)
    capital: CapitalAssumptions = field(default_factory=CapitalAssumptions)
    corporate: CorporateAssumptions = field(default_factory=CorporateAssumptions)
    exit: ExitAssumptions = field(default_factory=ExitAssumptions)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["exit"]["method"] = TerminalMethod(self.exit.method).value
        return d


DEFAULT_ASSUMPTIONS = Assumptions()


def _overlay(record, data: Mapping[str, Any]):
    known = {f.name for f in fields(record)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"unknown {type(record).__name__} fields: {', '.join(sorted(unknown))}")
    return replace(record, **data)


def assumptions_from_dict(data: Optional[Mapping[str, Any]], base: Assumptions = DEFAULT_ASSUMPTIONS) -> Assumptions:
    """Overlay a nested dict (e.g. a JSON payload) on `base` and return a new record.

    Groups and fields not present keep their base values. Unknown keys raise ValueError.
    """
    if not data:
        return base
    groups = {f.name for f in fields(base)}
    unknown = set(data) - groups
    if unknown:
        raise ValueError(f"unknown assumption groups: {', '.join(sorted(unknown))}")
    updates: Dict[str, Any] = {}
    for name, values in data.items():
        values = dict(values or {})
        if name == "capital":
            if values.get("capex_schedule") is not None:
                values["capex_schedule"] = tuple(float(x) for x in values["capex_schedule"])
            if "working_capital_days" in values and values["working_capital_days"] is not None:
                days = values["working_capital_days"]
                if not isinstance(days, WorkingCapitalDays):
                    values["working_capital_days"] = _overlay(WorkingCapitalDays(), days)
        if name == "exit" and "method" in values:
            values["method"] = TerminalMethod(values["method"])
        updates[name] = _overlay(getattr(base, name), values)
    return replace(base, **updates)


def assumption_warnings(a: Assumptions) -> List[str]:
    """Guardrail notes for out-of-range business inputs.

    The projection engine accepts any values; these only feed reports.
    """
    out: List[str] = []
    if a.revenue.price_per_unit < 0:
        out.append("price per unit is negative")
    if not (0.0 <= a.revenue.discount_rate < 1.0):
        out.append("revenue discount rate outside 0..100%")
    if a.cogs.unit_cost < 0:
        out.append("unit cost is negative")
    if not (0.0 <= a.cogs.cost_reduction_per_year < 1.0):
        out.append("cost reduction per year outside 0..100%")
    if a.gna.base_headcount < 0:
        out.append("base headcount is negative")
    if not (0.0 <= a.corporate.tax_rate <= 1.0):
        out.append("tax rate outside 0..100%")
    if a.corporate.discount_rate <= a.corporate.terminal_growth_rate:
        out.append("WACC must exceed terminal growth for Gordon growth")
    if a.capital.depreciation_years < 1:
        out.append("depreciation years < 1; capex is expensed in its own year")
    if a.exit.exit_year is not None and not (1 <= a.exit.exit_year <= a.corporate.projection_years):
        out.append("exit year outside the projection horizon")
    return out
