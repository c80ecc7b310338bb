import math
import unittest
from dataclasses import replace

from finplan.adoption.scenarios import SCENARIO_ORDER
from finplan.errors import InvalidHorizon
from finplan.forecasting.assumptions import (
    DEFAULT_ASSUMPTIONS,
    WorkingCapitalDays,
    assumption_warnings,
    assumptions_from_dict,
)
from finplan.forecasting.engine import (
    build_projections,
    capex_for_year,
    check_identities,
    depreciation_schedule,
    project_all_scenarios,
    summarize_projections,
)
from finplan.valuation.terminal import TerminalMethod


class TestProjections(unittest.TestCase):
    def test_shape_and_identities(self):
        rows = build_projections("base", DEFAULT_ASSUMPTIONS)
        self.assertEqual(len(rows), 10)
        self.assertEqual([r.year for r in rows], list(range(1, 11)))
        self.assertEqual(rows[0].calendar_year, 2025)
        for r in rows:
            self.assertAlmostEqual(r.ebitda, r.gross_profit - r.marketing - r.gna, places=6)
            self.assertAlmostEqual(r.free_cash_flow, r.ebitda - r.taxes - r.capex - r.working_capital_change, places=6)
        self.assertTrue(check_identities(rows))

    def test_revenue_net_of_discount(self):
        rows = build_projections("base", DEFAULT_ASSUMPTIONS, horizon_years=1)
        self.assertAlmostEqual(rows[0].revenue, rows[0].units * 1000.0 * 0.95, places=6)

    def test_marketing_floor(self):
        a = assumptions_from_dict({"revenue": {"price_per_unit": 1.0}})
        for r in build_projections("base", a, horizon_years=3):
            self.assertEqual(r.marketing, 30000.0)

    def test_marketing_percent_of_revenue(self):
        r = build_projections("base", DEFAULT_ASSUMPTIONS, horizon_years=1)[0]
        self.assertAlmostEqual(r.marketing, max(30000.0, r.revenue * 0.15))

    def test_headcount_scales_with_units(self):
        a = assumptions_from_dict({"gna": {"units_per_headcount": 100}})
        for r in build_projections("base", a, horizon_years=5):
            self.assertEqual(r.headcount, max(3, int(math.ceil(r.units / 100))))

    def test_taxes_never_negative(self):
        a = assumptions_from_dict({"revenue": {"price_per_unit": 50.0}})
        rows = build_projections("downside", a)
        self.assertTrue(any(r.ebit < 0 for r in rows))
        for r in rows:
            self.assertGreaterEqual(r.taxes, 0.0)
            if r.ebit <= 0:
                self.assertEqual(r.taxes, 0.0)

    def test_depreciation_within_capex(self):
        rows = build_projections("base", DEFAULT_ASSUMPTIONS)
        self.assertLessEqual(sum(r.depreciation for r in rows), sum(r.capex for r in rows) + 1e-6)

    def test_depreciation_schedule_vintages(self):
        self.assertEqual(depreciation_schedule([100.0, 100.0], 2), [50.0, 100.0])
        self.assertEqual(depreciation_schedule([90.0, 0.0, 0.0, 0.0], 3), [30.0, 30.0, 30.0, 0.0])
        self.assertEqual(depreciation_schedule([10.0], 0), [10.0])

    def test_capex_schedule_and_growth(self):
        cap = DEFAULT_ASSUMPTIONS.capital
        self.assertAlmostEqual(capex_for_year(cap, 0), 50000.0)
        self.assertAlmostEqual(capex_for_year(cap, 2), 50000.0 * 1.1 ** 2)
        sched = replace(cap, capex_schedule=(10.0, 20.0))
        self.assertEqual([capex_for_year(sched, i) for i in range(3)], [10.0, 20.0, 0.0])

    def test_working_capital_days(self):
        r = build_projections("base", DEFAULT_ASSUMPTIONS, horizon_years=1)[0]
        expected = r.revenue / 365 * 30 + r.cogs / 365 * 45 - r.cogs / 365 * 30
        self.assertAlmostEqual(r.working_capital, expected, places=6)
        self.assertAlmostEqual(r.working_capital_change, expected, places=6)

    def test_working_capital_change_vs_prior(self):
        rows = build_projections("base", DEFAULT_ASSUMPTIONS, horizon_years=4)
        for prev, cur in zip(rows, rows[1:]):
            self.assertAlmostEqual(cur.working_capital_change, cur.working_capital - prev.working_capital, places=6)

    def test_working_capital_percent_fallback(self):
        a = assumptions_from_dict({"capital": {"working_capital_days": None}})
        r = build_projections("base", a, horizon_years=1)[0]
        self.assertAlmostEqual(r.working_capital, r.revenue * 0.10, places=6)

    def test_invalid_horizon(self):
        with self.assertRaises(InvalidHorizon):
            build_projections("base", DEFAULT_ASSUMPTIONS, horizon_years=0)
        with self.assertRaises(InvalidHorizon):
            build_projections("base", assumptions_from_dict({"corporate": {"projection_years": -1}}))

    def test_identity_check_detects_tampering(self):
        rows = build_projections("base", DEFAULT_ASSUMPTIONS, horizon_years=3)
        rows[1] = replace(rows[1], free_cash_flow=rows[1].free_cash_flow + 1000.0)
        self.assertFalse(check_identities(rows))


class TestAssumptions(unittest.TestCase):
    def test_defaults(self):
        a = DEFAULT_ASSUMPTIONS
        self.assertEqual(a.corporate.discount_rate, 0.12)
        self.assertEqual(a.corporate.projection_years, 10)
        self.assertEqual(a.capital.working_capital_days, WorkingCapitalDays(30, 45, 30))

    def test_overlay_keeps_other_fields(self):
        a = assumptions_from_dict({"corporate": {"tax_rate": 0.3}, "exit": {"method": "gordon_growth"}})
        self.assertEqual(a.corporate.tax_rate, 0.3)
        self.assertEqual(a.corporate.discount_rate, 0.12)
        self.assertIs(a.exit.method, TerminalMethod.GORDON_GROWTH)
        self.assertEqual(DEFAULT_ASSUMPTIONS.corporate.tax_rate, 0.25)

    def test_nested_days_and_schedule(self):
        a = assumptions_from_dict({"capital": {"capex_schedule": [1, 2], "working_capital_days": {"days_payable": 60}}})
        self.assertEqual(a.capital.capex_schedule, (1.0, 2.0))
        self.assertEqual(a.capital.working_capital_days.days_payable, 60)
        self.assertEqual(a.capital.working_capital_days.days_receivable, 30)

    def test_unknown_keys_rejected(self):
        with self.assertRaises(ValueError):
            assumptions_from_dict({"payroll": {}})
        with self.assertRaises(ValueError):
            assumptions_from_dict({"corporate": {"wacc": 0.1}})

    def test_round_trip_through_dict(self):
        self.assertEqual(assumptions_from_dict(DEFAULT_ASSUMPTIONS.to_dict()), DEFAULT_ASSUMPTIONS)

    def test_warnings(self):
        self.assertEqual(assumption_warnings(DEFAULT_ASSUMPTIONS), [])
        a = assumptions_from_dict({"corporate": {"discount_rate": 0.02, "tax_rate": 1.5}})
        warnings = assumption_warnings(a)
        self.assertTrue(any("WACC" in w for w in warnings))
        self.assertTrue(any("tax rate" in w for w in warnings))


class TestSummaries(unittest.TestCase):
    def test_summary_totals(self):
        rows = build_projections("base", DEFAULT_ASSUMPTIONS)
        s = summarize_projections("base", rows)
        self.assertEqual(s.label, "Base")
        self.assertAlmostEqual(s.total_fcf, sum(r.free_cash_flow for r in rows))
        self.assertAlmostEqual(s.total_pv, sum(r.present_value for r in rows))
        self.assertEqual(len(s.fcf_growth_rates), 9)
        if s.break_even_year is not None:
            self.assertGreater(rows[s.break_even_year - 1].cumulative_fcf, 0)

    def test_compare_all_scenarios(self):
        cmp = project_all_scenarios(DEFAULT_ASSUMPTIONS, horizon_years=5)
        self.assertEqual(cmp.order, list(SCENARIO_ORDER))
        self.assertEqual(cmp.base_case, "base")
        totals = {s: cmp.summaries[s].total_fcf for s in cmp.order}
        self.assertEqual(cmp.best_case, max(totals, key=totals.get))
        self.assertEqual(cmp.worst_case, min(totals, key=totals.get))


if __name__ == '__main__':
    unittest.main()
