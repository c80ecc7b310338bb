from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging
import threading
import time
import uuid

from finplan.adoption.model import AdoptionModel
from finplan.forecasting.assumptions import Assumptions, assumption_warnings
from finplan.forecasting.engine import DEFAULT_BASE_YEAR, check_identities, summarize_projections
from finplan.valuation.dcf import run_dcf
from finplan.valuation.irr import irr
from finplan.valuation.payback import discounted_payback_period, payback_period
from finplan.exports.writers import write_projections
from finplan.exports.reports import assumptions_md, validation_report_md, valuation_summary_md

logger = logging.getLogger(__name__)


@dataclass
class Run:
    id: str
    scenario: str
    status: str = "queued"  # queued|running|completed|failed
    events: List[Dict[str, Any]] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)
    result: Dict[str, Any] = field(default_factory=dict)
    artifacts: Dict[str, str] = field(default_factory=dict)  # filename -> content
    error: Optional[str] = None


class RunRegistry:
    def __init__(self):
        self._runs: Dict[str, Run] = {}
        self._lock = threading.Lock()

    def create(self, scenario: str) -> Run:
        rid = f"r_{uuid.uuid4().hex[:8]}"
        run = Run(id=rid, scenario=scenario)
        with self._lock:
            self._runs[rid] = run
        return run

    def get(self, rid: str) -> Optional[Run]:
        with self._lock:
            return self._runs.get(rid)

    def list(self) -> List[Run]:
        with self._lock:
            return list(self._runs.values())


REGISTRY = RunRegistry()


def _event(run: Run, stage: str, message: str):
    run.events.append({"stage": stage, "message": message, "ts": time.time()})


def orchestrate(
    run: Run,
    assumptions: Assumptions,
    base_year: int = DEFAULT_BASE_YEAR,
    model: Optional[AdoptionModel] = None,
):
    """Run adoption -> projections -> DCF -> exports for `run.scenario`.

    Failures are recorded on the run (status, error, Error event), not raised.
    """
    try:
        run.status = "running"
        m = model or AdoptionModel()

        _event(run, "Adoption", f"Projecting units for scenario '{run.scenario}'")
        m.params_for(run.scenario)

        _event(run, "Projections", f"Building {assumptions.corporate.projection_years} yearly projections")
        _event(run, "DCF", "Discounting free cash flow and terminal value")
        dcf = run_dcf(run.scenario, assumptions, base_year=base_year, model=m)
        rows = dcf.yearly_projections
        fcfs = [r.free_cash_flow for r in rows]
        summary = summarize_projections(run.scenario, rows)

        # Project cash flows seen from the initial investment
        invested = [-assumptions.capital.initial_investment] + fcfs
        project_irr = irr(invested)

        _event(run, "Export", "Generating CSVs and reports")
        warnings = assumption_warnings(assumptions)
        checks = {
            "ebitda_fcf_identities": check_identities(rows),
            "ev_decomposition": dcf.enterprise_value == dcf.pv_of_cash_flows + dcf.pv_of_terminal_value,
            "depreciation_within_capex": sum(r.depreciation for r in rows) <= sum(r.capex for r in rows) + 1e-6,
        }
        run.artifacts = {
            "projections.csv": write_projections(r.to_dict() for r in rows),
            "valuation_summary.md": valuation_summary_md(dcf),
            "assumptions.md": assumptions_md(assumptions.to_dict(), warnings=warnings),
            "validation_report.md": validation_report_md(checks, details={"periods_checked": len(rows)}),
        }
        run.result = dcf.to_dict()
        run.summary = {
            "enterprise_value": dcf.enterprise_value,
            "equity_value": dcf.equity_value,
            "terminal_value": dcf.terminal_value,
            "wacc": dcf.wacc,
            "total_fcf": summary.total_fcf,
            "break_even_year": summary.break_even_year,
            "project_irr": project_irr.value if project_irr.converged else None,
            "payback_period": payback_period(invested),
            "discounted_payback_period": discounted_payback_period(invested, dcf.wacc),
            "exit_date": dcf.exit_date,
        }
        run.status = "completed"
        _event(run, "Done", "Run completed")
        logger.info("run %s completed: scenario=%s ev=%.2f", run.id, run.scenario, dcf.enterprise_value)
    except Exception as e:
        logger.exception("run %s failed", run.id)
        run.status = "failed"
        run.error = str(e)
        _event(run, "Error", str(e))


def start_run(scenario: str, assumptions: Assumptions, base_year: int = DEFAULT_BASE_YEAR) -> Run:
    run = REGISTRY.create(scenario)
    orchestrate(run, assumptions, base_year)
    return run
