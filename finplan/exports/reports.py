from __future__ import annotations
from typing import Dict, Any, List

from finplan.valuation.dcf import DCFResult


def _flatten(d: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in d.items():
        key = f"{prefix}{k}"
        if isinstance(v, dict):
            out.update(_flatten(v, prefix=f"{key}."))
        else:
            out[key] = v
    return out


def assumptions_md(assumptions: Dict[str, Any], warnings: List[str] | None = None) -> str:
    lines = ["# Assumptions", ""]
    for k, v in _flatten(assumptions).items():
        lines.append(f"- {k}: {v}")
    if warnings:
        lines.append("\n## Warnings")
        for w in warnings:
            lines.append(f"- {w}")
    return "\n".join(lines) + "\n"


def validation_report_md(checks: Dict[str, bool], details: Dict[str, Any] | None = None) -> str:
    lines = ["# Validation Report", ""]
    for k, ok in checks.items():
        lines.append(f"- {k}: {'PASS' if ok else 'FAIL'}")
    if details:
        lines.append("\n## Details")
        for k, v in details.items():
            lines.append(f"- {k}: {v}")
    return "\n".join(lines) + "\n"


def _money(v: float) -> str:
    sign = "-" if v < 0 else ""
    return f"{sign}${abs(v):,.0f}"


def _pct(v: float) -> str:
    return f"{v * 100:.1f}%"


def valuation_summary_md(result: DCFResult) -> str:
    tv_share = result.pv_of_terminal_value / result.enterprise_value if result.enterprise_value else 0.0
    lines = [
        f"# DCF Valuation Summary - {result.scenario.upper()} Scenario",
        "",
        f"- Enterprise Value: {_money(result.enterprise_value)}",
        f"- Equity Value: {_money(result.equity_value)}",
        f"- PV of Cash Flows: {_money(result.pv_of_cash_flows)}",
        "",
        "## Terminal Value",
        f"- Method: {result.terminal_method.value}",
        f"- Terminal Value: {_money(result.terminal_value)}",
        f"- Terminal Value PV: {_money(result.pv_of_terminal_value)}",
        f"- TV as % of EV: {_pct(tv_share)}",
    ]
    b = result.terminal_breakdown
    if b is not None:
        lines.append(f"- Formula: {b.formula}")
        if b.implied_multiple is not None:
            lines.append(f"- Implied EV/EBITDA multiple: {b.implied_multiple:.1f}x")
        if b.implied_growth_rate is not None:
            lines.append(f"- Implied perpetual growth: {_pct(b.implied_growth_rate)}")
    lines += [
        "",
        "## Implied Multiples",
        f"- EV/Revenue: {result.ev_to_revenue:.1f}x",
        f"- EV/EBITDA: {result.ev_to_ebitda:.1f}x",
        "",
        "## Key Assumptions",
        f"- WACC: {_pct(result.wacc)}",
        f"- Terminal Growth: {_pct(result.terminal_growth_rate)}",
        f"- Exit: {result.exit_date}",
    ]
    return "\n".join(lines) + "\n"
