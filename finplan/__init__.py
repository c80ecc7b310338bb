"""Adoption & valuation engine for startup financial planning.

- adoption: sigmoid unit-adoption model under five scenarios
- forecasting: assumptions and the yearly projection builder
- valuation: discounting, NPV/IRR/MIRR, terminal value, payback, DCF runs
- investors: per-cohort returns by instrument type
- exports / api / config: CSV + Markdown artifacts, Flask surface, settings
"""

__version__ = "0.1.0"
