from __future__ import annotations
from dataclasses import MISSING, dataclass, fields
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from finplan.valuation.discount import check_rate
from finplan.valuation.npv import year_fraction

DEFAULT_ASSUMED_DISCOUNT_RATE = 0.12


class InstrumentType(str, Enum):
    COMMON_EQUITY = "common_equity"
    PREFERRED_EQUITY = "preferred_equity"
    CONVERTIBLE_NOTE = "convertible_note"
    SAFE = "safe"
    REVENUE_BASED = "revenue_based"
    TERM_LOAN = "term_loan"


@dataclass(frozen=True)
class CommonEquityTerms:
    ownership_percent: float  # 0..1


@dataclass(frozen=True)
class PreferredEquityTerms:
    ownership_percent: float
    liquidation_preference: float = 1.0  # recorded; not applied to proceeds
    participating: bool = False          # recorded; not applied to proceeds


@dataclass(frozen=True)
class ConvertibleNoteTerms:
    valuation_cap: float
    discount_rate: float
    interest_rate: float
    maturity_years: float


@dataclass(frozen=True)
class SAFETerms:
    valuation_cap: float
    discount_rate: float
    pro_rata: bool = False


@dataclass(frozen=True)
class RevenueBasedTerms:
    repayment_multiple: float  # 1.5 = repay 150k on 100k
    revenue_share_percent: float
    repayment_cap: float


@dataclass(frozen=True)
class TermLoanTerms:
    interest_rate: float
    term_years: float
    amortization_years: float = 0.0
    payment_frequency: str = "annually"  # monthly|quarterly|annually


InstrumentTerms = Union[
    CommonEquityTerms,
    PreferredEquityTerms,
    ConvertibleNoteTerms,
    SAFETerms,
    RevenueBasedTerms,
    TermLoanTerms,
]

_TERMS_TYPES = {
    CommonEquityTerms: InstrumentType.COMMON_EQUITY,
    PreferredEquityTerms: InstrumentType.PREFERRED_EQUITY,
    ConvertibleNoteTerms: InstrumentType.CONVERTIBLE_NOTE,
    SAFETerms: InstrumentType.SAFE,
    RevenueBasedTerms: InstrumentType.REVENUE_BASED,
    TermLoanTerms: InstrumentType.TERM_LOAN,
}


def _as_date(d: Union[date, str]) -> date:
    if isinstance(d, date):
        return d
    return date.fromisoformat(str(d))


@dataclass(frozen=True)
class InvestorCohort:
    investment_date: date
    investment_amount: float
    terms: InstrumentTerms
    name: str = ""
    cohort_id: str = ""
    is_historical: bool = False

    @property
    def instrument_type(self) -> InstrumentType:
        t = _TERMS_TYPES.get(type(self.terms))
        if t is None:
            raise TypeError(f"unsupported instrument terms: {type(self.terms).__name__}")
        return t


@dataclass(frozen=True)
class CohortReturns:
    irr: Optional[float]  # None when the holding period is zero or negative
    npv: float
    multiple: float
    proceeds: float
    years_held: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "irr": self.irr,
            "npv": self.npv,
            "multiple": self.multiple,
            "proceeds": self.proceeds,
            "years_held": self.years_held,
        }


def _proceeds(
    cohort: InvestorCohort, exit_value: float, years_held: float, total_equity_at_exit: float
) -> float:
    terms = cohort.terms
    amount = cohort.investment_amount
    accrual_years = max(0.0, years_held)

    if isinstance(terms, (CommonEquityTerms, PreferredEquityTerms)):
        # preference and participation are not applied
        return terms.ownership_percent * exit_value

    if isinstance(terms, ConvertibleNoteTerms):
        if total_equity_at_exit <= 0:
            raise ValueError("total_equity_at_exit must be positive for convertible notes")
        accrued = amount * (1.0 + terms.interest_rate) ** min(accrual_years, terms.maturity_years)
        exit_price = exit_value / total_equity_at_exit
        cap_price = terms.valuation_cap / total_equity_at_exit
        conversion_price = min(cap_price, exit_price * (1.0 - terms.discount_rate))
        if conversion_price <= 0:
            raise ValueError("conversion price must be positive")
        shares = accrued / conversion_price
        return shares * exit_price

    if isinstance(terms, SAFETerms):
        cap_ownership = amount / terms.valuation_cap
        discounted_value = exit_value * (1.0 - terms.discount_rate)
        if discounted_value <= 0:
            # worthless exit: only the cap conversion applies
            return cap_ownership * exit_value
        return max(cap_ownership, amount / discounted_value) * exit_value

    if isinstance(terms, RevenueBasedTerms):
        return min(amount * terms.repayment_multiple, terms.repayment_cap)

    if isinstance(terms, TermLoanTerms):
        return amount * (1.0 + terms.interest_rate) ** min(accrual_years, terms.term_years)

    raise TypeError(f"unsupported instrument terms: {type(terms).__name__}")


def calculate_cohort_returns(
    cohort: InvestorCohort,
    exit_value: float,
    exit_date: Union[date, str],
    total_equity_at_exit: float,
    assumed_discount_rate: float = DEFAULT_ASSUMED_DISCOUNT_RATE,
) -> CohortReturns:
    """Returns for one investor cohort at an exit.

    multiple = proceeds / investment
    irr = multiple^(1/years_held) - 1
    npv = proceeds / (1+r)^years_held - investment, r = assumed_discount_rate

    With years_held <= 0 the IRR is undefined (None) and the NPV is the
    undiscounted gain.
    """
    if cohort.investment_amount <= 0:
        raise ValueError("investment_amount must be positive")
    check_rate(assumed_discount_rate)

    years_held = year_fraction(_as_date(cohort.investment_date), _as_date(exit_date))
    proceeds = _proceeds(cohort, exit_value, years_held, total_equity_at_exit)
    multiple = proceeds / cohort.investment_amount

    if years_held <= 0:
        return CohortReturns(
            irr=None,
            npv=proceeds - cohort.investment_amount,
            multiple=multiple,
            proceeds=proceeds,
            years_held=years_held,
        )

    irr = multiple ** (1.0 / years_held) - 1.0 if multiple >= 0 else None
    npv = proceeds / (1.0 + assumed_discount_rate) ** years_held - cohort.investment_amount
    return CohortReturns(irr=irr, npv=npv, multiple=multiple, proceeds=proceeds, years_held=years_held)


def calculate_all_cohort_returns(
    cohorts: Iterable[InvestorCohort],
    exit_value: float,
    exit_date: Union[date, str],
    total_equity_at_exit: float,
    assumed_discount_rate: float = DEFAULT_ASSUMED_DISCOUNT_RATE,
) -> List[CohortReturns]:
    return [
        calculate_cohort_returns(c, exit_value, exit_date, total_equity_at_exit, assumed_discount_rate)
        for c in cohorts
    ]


def terms_from_dict(instrument_type: str, data: Dict[str, Any]) -> InstrumentTerms:
    it = InstrumentType(instrument_type)
    for cls, t in _TERMS_TYPES.items():
        if t is it:
            known = {f.name for f in fields(cls)}
            required = {f.name for f in fields(cls) if f.default is MISSING}
            unknown = sorted(set(data) - known)
            missing = sorted(required - set(data))
            problems = []
            if unknown:
                problems.append(f"unknown fields {', '.join(unknown)}")
            if missing:
                problems.append(f"missing fields {', '.join(missing)}")
            if problems:
                raise ValueError(f"invalid {it.value} terms: {'; '.join(problems)}")
            return cls(**data)
    raise TypeError(f"unsupported instrument type: {instrument_type}")


def cohort_from_dict(data: Dict[str, Any]) -> InvestorCohort:
    """Build a cohort from a JSON-shaped dict with `instrument_type` and `terms`."""
    return InvestorCohort(
        investment_date=_as_date(data["investment_date"]),
        investment_amount=float(data["investment_amount"]),
        terms=terms_from_dict(data["instrument_type"], data.get("terms") or {}),
        name=data.get("name", ""),
        cohort_id=data.get("cohort_id", ""),
        is_historical=bool(data.get("is_historical", False)),
    )
