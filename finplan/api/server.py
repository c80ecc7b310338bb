from __future__ import annotations
from typing import Any, Dict
import json
import logging
import re
import time
from collections import deque, defaultdict
from dataclasses import asdict

from flask import Flask, request, jsonify, Response
from flask_sock import Sock

from finplan.adoption.model import AdoptionModel
from finplan.adoption.scenarios import SCENARIOS, SCENARIO_LABELS
from finplan.api.orchestrator import REGISTRY, start_run
from finplan.config.env import get_api_config, get_logging_config
from finplan.forecasting.assumptions import assumptions_from_dict
from finplan.forecasting.engine import DEFAULT_BASE_YEAR
from finplan.investors.cohorts import calculate_cohort_returns, cohort_from_dict
from finplan.valuation.dcf import DEFAULT_SENSITIVITY_GROWTH, DEFAULT_SENSITIVITY_RATES, run_dcf, sensitivity_grid
from finplan.valuation.terminal import comparable_companies, comparable_multiple_stats

logger = logging.getLogger(__name__)

app = Flask(__name__)
sock = Sock(app)

_MODEL = AdoptionModel()

# Configuration helpers (overridable via app.config in tests)

def _get_api_key() -> str | None:
    if 'API_KEY' in app.config:
        return app.config.get('API_KEY')
    return get_api_config().api_key


def _get_rate_limit() -> tuple[int, float]:
    cfg = get_api_config()
    n = app.config.get('RATE_LIMIT_N')
    w = app.config.get('RATE_LIMIT_WINDOW_SEC')
    if n is None:
        n = cfg.rate_limit_n
    if w is None:
        w = cfg.rate_limit_window_sec
    return int(n), float(w)

_recent: dict[str, deque[float]] = defaultdict(lambda: deque(maxlen=100))


def _client_ip() -> str:
    xff = request.headers.get('X-Forwarded-For')
    if xff:
        return xff.split(',')[0].strip()
    return request.remote_addr or 'anon'


def _check_api_key():
    api_key = _get_api_key()
    if api_key:
        provided = request.headers.get('X-API-Key')
        if provided != api_key:
            return jsonify({'error': 'unauthorized'}), 401
    return None


def _check_rate_limit(ip: str):
    # Allow if rate limiting disabled or N <= 0
    n, window = _get_rate_limit()
    if n <= 0:
        return None
    now = time.time()
    # evict clients with no requests inside the window
    for key in [k for k, q in _recent.items() if k != ip and (not q or now - q[-1] > window)]:
        del _recent[key]
    dq = _recent[ip]
    # Drop old entries outside window
    while dq and now - dq[0] > window:
        dq.popleft()
    if len(dq) >= n:
        retry = max(0.0, window - (now - dq[0]))
        resp = jsonify({'error': 'rate_limited'})
        resp.status_code = 429
        resp.headers['Retry-After'] = f"{retry:.2f}"
        return resp
    dq.append(now)
    return None


@app.before_request
def _auth_and_rate_limit():
    if request.path.startswith('/valuations'):
        unauthorized = _check_api_key()
        if unauthorized is not None:
            return unauthorized
        # Rate limit only for POST /valuations
        if request.method == 'POST' and request.path == '/valuations':
            rl = _check_rate_limit(_client_ip())
            if rl is not None:
                return rl
    return None


def _error_kind(e: Exception) -> str:
    # InvalidTerminalAssumptions -> invalid_terminal_assumptions
    return re.sub(r'(?<!^)(?=[A-Z])', '_', type(e).__name__).lower()


@app.errorhandler(ValueError)
def _bad_input(e: ValueError):
    return jsonify({'error': _error_kind(e), 'message': str(e)}), 400


@app.errorhandler(KeyError)
def _missing_field(e: KeyError):
    return jsonify({'error': 'missing_field', 'message': f"missing field {e.args[0]!r}"}), 400


def _payload() -> Dict[str, Any]:
    return request.get_json(force=True, silent=True) or {}


@app.get('/scenarios')
def list_scenarios():
    return jsonify({'scenarios': [
        {
            'id': sid,
            'label': SCENARIO_LABELS.get(sid, sid),
            'inflection_shift_years': sp.inflection_shift_years,
            'growth_rate_multiplier': sp.growth_rate_multiplier,
        }
        for sid, sp in SCENARIOS.items()
    ]})


@app.get('/comparables')
def list_comparables():
    sector = request.args.get('sector') or None
    lo = request.args.get('min_multiple')
    hi = request.args.get('max_multiple')
    companies = comparable_companies(
        sector,
        float(lo) if lo is not None else None,
        float(hi) if hi is not None else None,
    )
    stats = comparable_multiple_stats(companies)
    return jsonify({
        'companies': [asdict(c) for c in companies],
        'stats': {k: asdict(v) for k, v in stats.items()},
    })


@app.get('/scenarios/<scenario>/units')
def scenario_units(scenario: str):
    periods = int(request.args.get('periods', '6'))
    granularity = request.args.get('granularity', 'annual')
    base_year = int(request.args.get('base_year', str(DEFAULT_BASE_YEAR)))
    units = _MODEL.project_units(scenario, base_year, periods, granularity)
    return jsonify({'scenario': scenario, 'granularity': granularity, 'base_year': base_year, 'units': units})


@app.post('/valuations')
def post_valuations():
    payload = _payload()
    scenario = payload.get('scenario') or ''
    if not scenario:
        return jsonify({'error': 'scenario is required'}), 400
    _MODEL.params_for(scenario)
    assumptions = assumptions_from_dict(payload.get('assumptions'))
    base_year = int(payload.get('base_year', DEFAULT_BASE_YEAR))
    run = start_run(scenario, assumptions, base_year)
    return jsonify({'run_id': run.id, 'status': run.status, 'summary': run.summary, 'error': run.error})


@app.get('/valuations')
def list_valuations():
    return jsonify({'runs': [
        {'run_id': r.id, 'scenario': r.scenario, 'status': r.status}
        for r in REGISTRY.list()
    ]})


@app.get('/valuations/<rid>')
def get_valuation(rid: str):
    r = REGISTRY.get(rid)
    if not r:
        return jsonify({'error': 'not_found'}), 404
    return jsonify({
        'run_id': r.id,
        'scenario': r.scenario,
        'status': r.status,
        'summary': r.summary,
        'result': r.result,
        'artifacts': list(r.artifacts.keys()),
        'events': r.events,
        'error': r.error,
    })


@sock.route('/valuations/<rid>/events')
def ws_events(ws, rid):
    # Runs finish before POST returns; replay the recorded stage events
    r = REGISTRY.get(rid)
    if r:
        for ev in list(r.events):
            ws.send(json.dumps(ev))
    ws.close()


@app.get('/valuations/<rid>/artifacts/<name>')
def get_artifact(rid: str, name: str):
    r = REGISTRY.get(rid)
    if not r:
        return jsonify({'error': 'not_found'}), 404
    body = r.artifacts.get(name)
    if body is None:
        return jsonify({'error': 'artifact_not_found'}), 404
    if name.endswith('.csv'):
        mimetype = 'text/csv'
    elif name.endswith('.md'):
        mimetype = 'text/markdown'
    else:
        mimetype = 'application/octet-stream'
    return Response(body, mimetype=mimetype)


@app.post('/sensitivity')
def post_sensitivity():
    payload = _payload()
    scenario = payload.get('scenario') or 'base'
    grid = sensitivity_grid(
        scenario,
        assumptions_from_dict(payload.get('assumptions')),
        discount_rates=payload.get('discount_rates') or DEFAULT_SENSITIVITY_RATES,
        growth_rates=payload.get('growth_rates') or DEFAULT_SENSITIVITY_GROWTH,
        base_year=int(payload.get('base_year', DEFAULT_BASE_YEAR)),
        model=_MODEL,
    )
    return jsonify({
        'scenario': grid.scenario,
        'discount_rates': grid.discount_rates,
        'growth_rates': grid.growth_rates,
        'values': grid.values,
        'base_discount_rate': grid.base_discount_rate,
        'base_growth_rate': grid.base_growth_rate,
    })


@app.post('/cohort-returns')
def post_cohort_returns():
    """Returns per cohort; exit terms come from the payload or from a scenario DCF."""
    payload = _payload()
    cohorts = [cohort_from_dict(c) for c in payload.get('cohorts') or []]
    if not cohorts:
        return jsonify({'error': 'cohorts are required'}), 400

    exit_value = payload.get('exit_value')
    exit_date = payload.get('exit_date')
    if exit_value is None:
        dcf = run_dcf(
            payload.get('scenario') or 'base',
            assumptions_from_dict(payload.get('assumptions')),
            base_year=int(payload.get('base_year', DEFAULT_BASE_YEAR)),
            model=_MODEL,
        )
        exit_value = dcf.equity_value
        exit_date = exit_date or dcf.exit_date
    if not exit_date:
        return jsonify({'error': 'exit_date is required'}), 400

    total_equity = float(payload.get('total_equity_at_exit', 1_000_000))
    rate = float(payload.get('assumed_discount_rate', 0.12))
    out = []
    for c in cohorts:
        res = calculate_cohort_returns(c, float(exit_value), exit_date, total_equity, rate)
        out.append({
            'cohort_id': c.cohort_id,
            'name': c.name,
            'instrument_type': c.instrument_type.value,
            **res.to_dict(),
        })
    return jsonify({'exit_value': exit_value, 'exit_date': exit_date, 'returns': out})


if __name__ == '__main__':
    logging.basicConfig(level=get_logging_config().level)
    app.run(host='0.0.0.0', port=8000)
