"""Exports & reporting: CSV writers and Markdown reports.

- writers.py: CSV emitters for projections, sensitivity grids and cohort returns
- reports.py: assumptions.md, validation_report.md and valuation summary generators
"""
