"""Investor cohorts: instrument terms and per-cohort exit returns.

- cohorts.py: closed set of instrument terms, InvestorCohort, calculate_cohort_returns
"""
