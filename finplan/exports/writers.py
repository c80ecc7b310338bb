from __future__ import annotations
from typing import List, Dict, Any, Iterable
import csv
import io

SCHEMAS = {
    "projections": [
        "year", "calendar_year", "units", "revenue", "cogs", "gross_profit", "marketing", "headcount", "gna",
        "ebitda", "depreciation", "ebit", "taxes", "nopat", "capex", "working_capital", "working_capital_change",
        "free_cash_flow", "discount_factor", "present_value", "cumulative_fcf", "cumulative_pv",
    ],
    "sensitivity": [
        "discount_rate", "terminal_growth_rate", "enterprise_value",
    ],
    "cohort_returns": [
        "cohort_id", "name", "instrument_type", "investment_date", "investment_amount",
        "proceeds", "multiple", "irr", "npv", "years_held",
    ],
}


def write_csv(rows: Iterable[Dict[str, Any]], columns: List[str]) -> str:
    buf = io.StringIO()
    w = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore")
    w.writeheader()
    for r in rows:
        w.writerow({k: r.get(k) for k in columns})
    return buf.getvalue()


def write_projections(rows: Iterable[Dict[str, Any]]) -> str:
    return write_csv(rows, SCHEMAS["projections"])


def write_sensitivity(rows: Iterable[Dict[str, Any]]) -> str:
    return write_csv(rows, SCHEMAS["sensitivity"])


def write_cohort_returns(rows: Iterable[Dict[str, Any]]) -> str:
    return write_csv(rows, SCHEMAS["cohort_returns"])
