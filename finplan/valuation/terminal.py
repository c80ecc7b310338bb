from __future__ import annotations
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
import statistics

from finplan.errors import InvalidTerminalAssumptions
from finplan.valuation.discount import discount_factor


class TerminalMethod(str, Enum):
    GORDON_GROWTH = "gordon_growth"
    EXIT_MULTIPLE = "exit_multiple"


class MultipleBasis(str, Enum):
    EBITDA = "ebitda"
    REVENUE = "revenue"


@dataclass(frozen=True)
class TerminalInputs:
    method: TerminalMethod
    wacc: float
    final_fcf: Optional[float] = None       # Gordon growth
    growth: Optional[float] = None          # Gordon growth
    final_metric: Optional[float] = None    # exit multiple: final-year EBITDA or revenue
    multiple: Optional[float] = None        # exit multiple
    basis: MultipleBasis = MultipleBasis.EBITDA


@dataclass(frozen=True)
class TerminalValueResult:
    terminal_value: float
    present_value: float
    method: TerminalMethod


def gordon_growth_tv(final_fcf: float, growth: float, wacc: float) -> float:
    """Gordon growth (perpetuity) value at the terminal date: FCF·(1+g)/(WACC-g).
    No discounting to present applied here.
    """
    if wacc <= growth:
        raise InvalidTerminalAssumptions("Terminal growth must be < WACC")
    return float(final_fcf * (1.0 + growth) / (wacc - growth))


def exit_multiple_tv(final_metric: float, multiple: float) -> float:
    if multiple <= 0:
        raise InvalidTerminalAssumptions("Exit multiple must be positive")
    return float(final_metric * multiple)


def terminal_value(i: TerminalInputs, projection_years: int) -> TerminalValueResult:
    method = TerminalMethod(i.method)
    if method is TerminalMethod.GORDON_GROWTH:
        if i.final_fcf is None or i.growth is None:
            raise InvalidTerminalAssumptions("final_fcf and growth required for Gordon growth")
        tv = gordon_growth_tv(i.final_fcf, i.growth, i.wacc)
    else:
        if i.final_metric is None or i.multiple is None:
            raise InvalidTerminalAssumptions("final_metric and multiple required for exit multiple")
        tv = exit_multiple_tv(i.final_metric, i.multiple)
    return TerminalValueResult(
        terminal_value=tv,
        present_value=tv * discount_factor(i.wacc, projection_years),
        method=method,
    )


def implied_multiple(terminal_value: float, final_ebitda: float) -> float:
    if final_ebitda <= 0:
        raise ValueError("EBITDA must be positive")
    return terminal_value / final_ebitda


def implied_growth_rate(terminal_value: float, final_fcf: float, wacc: float) -> float:
    """Solve TV = FCF·(1+g)/(r-g) for g."""
    denom = terminal_value + final_fcf
    if denom == 0:
        raise ValueError("terminal value and final FCF sum to zero")
    return (terminal_value * wacc - final_fcf) / denom


@dataclass(frozen=True)
class TerminalComparison:
    gordon_tv: float
    gordon_pv: float
    gordon_implied_multiple: Optional[float]
    exit_tv: float
    exit_pv: float
    exit_implied_growth: Optional[float]
    tv_difference: float
    pv_difference: float
    percent_difference: float


def compare_terminal_methods(
    final_fcf: float,
    final_ebitda: float,
    growth: float,
    wacc: float,
    multiple: float,
    projection_years: int,
) -> TerminalComparison:
    df = discount_factor(wacc, projection_years)
    g_tv = gordon_growth_tv(final_fcf, growth, wacc)
    e_tv = exit_multiple_tv(final_ebitda, multiple)
    g_mult = g_tv / final_ebitda if final_ebitda > 0 else None
    e_growth = implied_growth_rate(e_tv, final_fcf, wacc) if (e_tv + final_fcf) != 0 else None
    diff = e_tv - g_tv
    return TerminalComparison(
        gordon_tv=g_tv,
        gordon_pv=g_tv * df,
        gordon_implied_multiple=g_mult,
        exit_tv=e_tv,
        exit_pv=e_tv * df,
        exit_implied_growth=e_growth,
        tv_difference=diff,
        pv_difference=diff * df,
        percent_difference=(diff / g_tv * 100.0) if g_tv != 0 else 0.0,
    )


@dataclass(frozen=True)
class ComparableCompany:
    name: str
    ticker: str
    ev_ebitda_multiple: float
    ev_revenue_multiple: float
    sector: str
    market_cap: float  # USD millions
    description: str = ""


# Listed sports and consumer-products peers used to sanity-check exit multiples
COMPARABLE_COMPANIES: Tuple[ComparableCompany, ...] = (
    ComparableCompany("Peloton Interactive", "PTON", 12.5, 1.8, "Connected Fitness", 2500,
                      "Connected fitness equipment and subscription services"),
    ComparableCompany("Callaway Golf (Topgolf)", "MODG", 10.2, 2.1, "Sports Equipment", 6800,
                      "Golf equipment and entertainment venues"),
    ComparableCompany("YETI Holdings", "YETI", 14.8, 3.2, "Outdoor/Consumer Products", 4200,
                      "Premium coolers and outdoor products"),
    ComparableCompany("Vista Outdoor", "VSTO", 6.5, 0.9, "Outdoor Products", 2100,
                      "Outdoor sports and recreation products"),
    ComparableCompany("Brunswick Corporation", "BC", 8.3, 1.4, "Marine/Recreation", 5400,
                      "Marine engines, boats, and fitness equipment"),
    ComparableCompany("Acushnet Holdings", "GOLF", 11.6, 2.4, "Golf Equipment", 4100,
                      "Titleist and FootJoy brands"),
    ComparableCompany("Clarus Corporation", "CLAR", 9.8, 1.6, "Outdoor Equipment", 450,
                      "Black Diamond, Sierra, and other outdoor brands"),
    ComparableCompany("Solo Brands", "DTC", 7.2, 1.1, "DTC Consumer Products", 280,
                      "Solo Stove and outdoor lifestyle brands"),
)


def comparable_companies(
    sector: Optional[str] = None,
    min_multiple: Optional[float] = None,
    max_multiple: Optional[float] = None,
    companies: Sequence[ComparableCompany] = COMPARABLE_COMPANIES,
) -> List[ComparableCompany]:
    """Filter by sector substring (case-insensitive) and EV/EBITDA range, inclusive."""
    out = list(companies)
    if sector:
        out = [c for c in out if sector.lower() in c.sector.lower()]
    if min_multiple is not None:
        out = [c for c in out if c.ev_ebitda_multiple >= min_multiple]
    if max_multiple is not None:
        out = [c for c in out if c.ev_ebitda_multiple <= max_multiple]
    return out


@dataclass(frozen=True)
class MultipleStats:
    mean: float
    median: float
    min: float
    max: float


def _stats(values: List[float]) -> MultipleStats:
    if not values:
        return MultipleStats(0.0, 0.0, 0.0, 0.0)
    return MultipleStats(
        mean=statistics.mean(values),
        median=statistics.median(values),
        min=min(values),
        max=max(values),
    )


def comparable_multiple_stats(
    companies: Sequence[ComparableCompany] = COMPARABLE_COMPANIES,
) -> Dict[str, MultipleStats]:
    """Mean/median/min/max of EV/EBITDA ("ebitda") and EV/Revenue ("revenue")."""
    return {
        "ebitda": _stats([c.ev_ebitda_multiple for c in companies]),
        "revenue": _stats([c.ev_revenue_multiple for c in companies]),
    }


@dataclass(frozen=True)
class TerminalValueBreakdown:
    method: TerminalMethod
    terminal_value: float
    present_value: float
    percent_of_enterprise_value: float
    formula: str
    implied_multiple: Optional[float] = None     # Gordon growth: TV / final EBITDA
    implied_growth_rate: Optional[float] = None  # exit multiple: g that reproduces TV
    comparables: Tuple[ComparableCompany, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["method"] = self.method.value
        return d


def terminal_value_breakdown(
    method: TerminalMethod,
    terminal_value: float,
    present_value: float,
    enterprise_value: float,
    final_fcf: float,
    final_ebitda: float,
    growth: float,
    wacc: float,
    multiple: Optional[float] = None,
    basis: MultipleBasis = MultipleBasis.EBITDA,
    final_revenue: Optional[float] = None,
) -> TerminalValueBreakdown:
    """Display detail for a terminal value, with the other method's implied input.

    A Gordon value reports the EV/EBITDA multiple it implies; an exit-multiple
    value reports the perpetual growth rate it implies plus the comparables.
    """
    method = TerminalMethod(method)
    pct = present_value / enterprise_value * 100.0 if enterprise_value > 0 else 0.0

    if method is TerminalMethod.GORDON_GROWTH:
        formula = (
            f"FCF × (1 + g) / (r - g) = {final_fcf:,.0f} × (1 + {growth * 100:.1f}%)"
            f" / ({wacc * 100:.1f}% - {growth * 100:.1f}%)"
        )
        return TerminalValueBreakdown(
            method=method,
            terminal_value=terminal_value,
            present_value=present_value,
            percent_of_enterprise_value=pct,
            formula=formula,
            implied_multiple=terminal_value / final_ebitda if final_ebitda > 0 else None,
        )

    basis = MultipleBasis(basis)
    if basis is MultipleBasis.REVENUE:
        label, metric = "Revenue", final_revenue if final_revenue is not None else 0.0
    else:
        label, metric = "EBITDA", final_ebitda
    mult = multiple if multiple is not None else (terminal_value / metric if metric else 0.0)
    implied_g = None
    if terminal_value + final_fcf != 0:
        implied_g = implied_growth_rate(terminal_value, final_fcf, wacc)
    return TerminalValueBreakdown(
        method=method,
        terminal_value=terminal_value,
        present_value=present_value,
        percent_of_enterprise_value=pct,
        formula=f"{label} × Multiple = {metric:,.0f} × {mult:g}x",
        implied_growth_rate=implied_g,
        comparables=COMPARABLE_COMPANIES,
    )
