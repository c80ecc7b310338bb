import math
import unittest

from finplan.errors import InvalidRate
from finplan.valuation.irr import irr, irr_simple, mirr
from finplan.valuation.npv import npv
from finplan.valuation.payback import discounted_payback_period, payback_period


class TestIRR(unittest.TestCase):
    def test_irr_seed(self):
        res = irr([-1000, 400, 400, 400, 400])
        self.assertTrue(res.converged)
        self.assertAlmostEqual(res.value, 0.2186, places=4)
        self.assertGreater(res.iterations, 0)

    def test_npv_at_irr_is_zero(self):
        series = [
            [-5000, 1200, 1800, 2000, 1500],
            [-100, 60, 60],
            [-1000, 0, 0, 1500],
            [-200, 50, 50, 50, 50, 50],
            [1000, -1200],
        ]
        for flows in series:
            res = irr(flows)
            self.assertTrue(res.converged, flows)
            self.assertAlmostEqual(npv(flows[1:], res.value, initial_investment=-flows[0]), 0.0, places=4)
        self.assertAlmostEqual(irr([1000, -1200]).value, 0.2)

    def test_high_return(self):
        res = irr([-100, 1000])
        self.assertTrue(res.converged)
        self.assertAlmostEqual(res.value, 9.0, places=6)

    def test_no_sign_change(self):
        res = irr([100, 100, 100])
        self.assertFalse(res.converged)
        self.assertTrue(math.isnan(res.value))
        self.assertTrue(math.isnan(irr_simple([-100, -100])))

    def test_input_errors(self):
        with self.assertRaises(ValueError):
            irr([-100])
        with self.assertRaises(InvalidRate):
            irr([-100, 110], guess=-1.0)

    def test_irr_simple(self):
        self.assertAlmostEqual(irr_simple([-100, 110]), 0.10)

    def test_mirr_between_reinvest_rate_and_irr(self):
        flows = [-1000, 400, 400, 400, 400]
        m = mirr(flows, 0.10, 0.10)
        self.assertGreater(m, 0.10)
        self.assertLess(m, irr(flows).value)

    def test_mirr_above_irr_when_reinvesting_above_irr(self):
        flows = [-1000, 400, 400, 400, 400]
        r = irr(flows).value
        self.assertGreater(mirr(flows, 0.10, 0.30), r)
        self.assertAlmostEqual(mirr(flows, 0.10, r), r, places=6)

    def test_mirr_requires_outflow(self):
        with self.assertRaises(ValueError):
            mirr([100, 100], 0.1, 0.1)
        with self.assertRaises(ValueError):
            mirr([-100], 0.1, 0.1)


class TestPayback(unittest.TestCase):
    def test_payback_interpolates(self):
        self.assertAlmostEqual(payback_period([-1000, 400, 400, 400]), 2.5)

    def test_payback_immediate(self):
        self.assertEqual(payback_period([100, 50]), 0.0)

    def test_never_recovered(self):
        self.assertIsNone(payback_period([-1000, 100, 100]))
        self.assertIsNone(discounted_payback_period([-1000, 400, 400], 0.1))

    def test_discounted_not_shorter(self):
        flows = [-1000, 300, 400, 500, 600]
        simple = payback_period(flows)
        discounted = discounted_payback_period(flows, 0.1)
        self.assertIsNotNone(discounted)
        self.assertGreaterEqual(discounted, simple)
        self.assertEqual(discounted_payback_period(flows, 0.0), simple)


if __name__ == '__main__':
    unittest.main()
