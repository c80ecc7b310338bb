import unittest

from finplan.adoption.scenarios import SCENARIO_ORDER
from finplan.forecasting.assumptions import DEFAULT_ASSUMPTIONS, assumptions_from_dict
from finplan.valuation.dcf import calculate_all_scenarios, enterprise_value, run_dcf, sensitivity_grid
from finplan.valuation.npv import npv
from finplan.valuation.terminal import TerminalMethod


class TestDCF(unittest.TestCase):
    def test_ev_decomposition(self):
        res = run_dcf("base", DEFAULT_ASSUMPTIONS)
        self.assertEqual(res.enterprise_value, res.pv_of_cash_flows + res.pv_of_terminal_value)
        flows = [r.free_cash_flow for r in res.yearly_projections]
        self.assertAlmostEqual(res.pv_of_cash_flows, npv(flows, 0.12))
        self.assertAlmostEqual(res.pv_of_terminal_value, res.terminal_value / 1.12 ** 10)

    def test_exit_multiple_default(self):
        res = run_dcf("base", DEFAULT_ASSUMPTIONS)
        self.assertIs(res.terminal_method, TerminalMethod.EXIT_MULTIPLE)
        self.assertAlmostEqual(res.terminal_value, res.final_year_ebitda * 8)
        self.assertEqual(res.exit_year, 2034)
        self.assertEqual(res.exit_date, "2034-12-31")

    def test_revenue_multiple(self):
        a = assumptions_from_dict({"exit": {"use_ebitda_multiple": False}})
        res = run_dcf("base", a)
        self.assertAlmostEqual(res.terminal_value, res.final_year_revenue * 2)

    def test_gordon_growth(self):
        a = assumptions_from_dict({"exit": {"method": "gordon_growth"}})
        res = run_dcf("upside", a)
        self.assertIs(res.terminal_method, TerminalMethod.GORDON_GROWTH)
        self.assertAlmostEqual(res.terminal_value, res.final_year_fcf * 1.03 / (0.12 - 0.03))

    def test_gordon_growth_requires_wacc_above_growth(self):
        a = assumptions_from_dict({"exit": {"method": "gordon_growth"}, "corporate": {"discount_rate": 0.03}})
        with self.assertRaises(ValueError):
            run_dcf("base", a)

    def test_exit_year_ends_valuation_horizon(self):
        early = run_dcf("base", assumptions_from_dict({"exit": {"exit_year": 5}}))
        short = run_dcf("base", assumptions_from_dict({"corporate": {"projection_years": 5}}))
        full = run_dcf("base", DEFAULT_ASSUMPTIONS)
        self.assertEqual(early.exit_date, "2029-12-31")
        self.assertEqual(len(early.yearly_projections), 5)
        self.assertAlmostEqual(early.terminal_value, early.yearly_projections[-1].ebitda * 8)
        self.assertAlmostEqual(early.pv_of_terminal_value, early.terminal_value / 1.12 ** 5)
        self.assertAlmostEqual(early.enterprise_value, short.enterprise_value)
        self.assertNotAlmostEqual(early.enterprise_value, full.enterprise_value, places=0)
        self.assertEqual(run_dcf("base", assumptions_from_dict({"exit": {"exit_year": 5}}), base_year=2030).exit_date, "2034-12-31")

    def test_terminal_breakdown(self):
        res = run_dcf("base", DEFAULT_ASSUMPTIONS)
        b = res.terminal_breakdown
        self.assertIs(b.method, TerminalMethod.EXIT_MULTIPLE)
        self.assertTrue(b.formula.startswith("EBITDA × Multiple = "))
        self.assertAlmostEqual(b.percent_of_enterprise_value, res.pv_of_terminal_value / res.enterprise_value * 100)
        self.assertEqual(len(b.comparables), 8)
        self.assertIsNotNone(b.implied_growth_rate)
        self.assertEqual(res.to_dict()["terminal_breakdown"]["method"], "exit_multiple")

        g = run_dcf("base", assumptions_from_dict({"exit": {"method": "gordon_growth"}})).terminal_breakdown
        self.assertTrue(g.formula.startswith("FCF × (1 + g) / (r - g)"))
        self.assertEqual(g.comparables, ())

    def test_enterprise_value_helper(self):
        self.assertAlmostEqual(enterprise_value([100, 100], 0.1, 1000), 100 / 1.1 + 100 / 1.21 + 1000 / 1.21)

    def test_to_dict(self):
        d = run_dcf("base", DEFAULT_ASSUMPTIONS).to_dict()
        self.assertEqual(d["terminal_method"], "exit_multiple")
        self.assertEqual(len(d["yearly_projections"]), 10)
        self.assertNotIn("yearly_projections", run_dcf("base", DEFAULT_ASSUMPTIONS).to_dict(include_projections=False))

    def test_all_scenarios(self):
        results = calculate_all_scenarios(DEFAULT_ASSUMPTIONS)
        self.assertEqual(list(results.keys()), list(SCENARIO_ORDER))
        self.assertGreater(results["upside"].enterprise_value, results["downside"].enterprise_value)


class TestSensitivity(unittest.TestCase):
    def test_grid_matches_gordon_dcf(self):
        grid = sensitivity_grid("base", DEFAULT_ASSUMPTIONS)
        self.assertEqual(len(grid.values), 5)
        self.assertTrue(all(len(row) == 5 for row in grid.values))
        a = assumptions_from_dict({"exit": {"method": "gordon_growth"}})
        self.assertAlmostEqual(grid.value_at(0.12, 0.03), run_dcf("base", a).enterprise_value, places=4)
        self.assertEqual(grid.base_discount_rate, 0.12)

    def test_invalid_cells_are_none(self):
        grid = sensitivity_grid("base", DEFAULT_ASSUMPTIONS, discount_rates=[0.05, 0.10], growth_rates=[0.03, 0.05])
        self.assertIsNone(grid.value_at(0.05, 0.05))
        self.assertIsNotNone(grid.value_at(0.05, 0.03))
        self.assertIsNotNone(grid.value_at(0.10, 0.05))

    def test_rows(self):
        grid = sensitivity_grid("base", DEFAULT_ASSUMPTIONS, discount_rates=[0.10], growth_rates=[0.02, 0.03])
        rows = grid.to_rows()
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1]["terminal_growth_rate"], 0.03)


if __name__ == '__main__':
    unittest.main()
