import csv
import io
import unittest

from finplan.exports.writers import SCHEMAS, write_cohort_returns, write_projections, write_sensitivity
from finplan.exports.reports import assumptions_md, validation_report_md, valuation_summary_md
from finplan.forecasting.assumptions import DEFAULT_ASSUMPTIONS
from finplan.valuation.dcf import run_dcf, sensitivity_grid


class TestExports(unittest.TestCase):
    def test_projections_csv(self):
        res = run_dcf("base", DEFAULT_ASSUMPTIONS)
        text = write_projections(r.to_dict() for r in res.yearly_projections)
        rows = list(csv.DictReader(io.StringIO(text)))
        self.assertEqual(len(rows), 10)
        self.assertEqual(list(rows[0].keys()), SCHEMAS["projections"])
        self.assertEqual(rows[0]["calendar_year"], "2025")

    def test_sensitivity_csv_blank_for_missing(self):
        grid = sensitivity_grid("base", DEFAULT_ASSUMPTIONS, discount_rates=[0.03], growth_rates=[0.03])
        text = write_sensitivity(grid.to_rows())
        self.assertTrue(text.startswith("discount_rate,terminal_growth_rate,enterprise_value"))
        self.assertIn("0.03,0.03,\r\n", text)

    def test_cohort_csv_ignores_extra_keys(self):
        text = write_cohort_returns([{"cohort_id": "c1", "irr": 0.2, "unused": 1}])
        header, row = text.strip().splitlines()
        self.assertNotIn("unused", header)
        self.assertTrue(row.startswith("c1,"))

    def test_valuation_summary(self):
        md = valuation_summary_md(run_dcf("upside", DEFAULT_ASSUMPTIONS))
        self.assertTrue(md.startswith("# DCF Valuation Summary - UPSIDE Scenario"))
        self.assertIn("## Terminal Value", md)
        self.assertIn("- WACC: 12.0%", md)
        self.assertIn("- Exit: 2034-12-31", md)
        self.assertIn("- Formula: EBITDA × Multiple = ", md)
        self.assertIn("- Implied perpetual growth: ", md)

    def test_assumptions_md(self):
        md = assumptions_md(DEFAULT_ASSUMPTIONS.to_dict(), warnings=["tax rate outside 0..100%"])
        self.assertIn("- corporate.discount_rate: 0.12", md)
        self.assertIn("- capital.working_capital_days.days_inventory: 45.0", md)
        self.assertIn("## Warnings", md)

    def test_validation_report(self):
        md = validation_report_md({"a": True, "b": False}, details={"periods_checked": 3})
        self.assertIn("- a: PASS", md)
        self.assertIn("- b: FAIL", md)
        self.assertIn("- periods_checked: 3", md)


if __name__ == '__main__':
    unittest.main()
