"""Valuation: discounting, NPV/IRR/MIRR, terminal value, payback and DCF runs.

- discount.py: discount factors and present value
- npv.py: NPV, explicit-period NPV, effective-date NPV
- irr.py: IRR strategy chain (Newton-Raphson, bisection), MIRR
- terminal.py: Gordon growth and exit-multiple terminal values
- payback.py: simple and discounted payback periods
- fcf.py: free cash flow components
- dcf.py: scenario DCF runs, enterprise value, sensitivity grids
"""
