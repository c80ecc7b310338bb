"""Forecasting: business assumptions and the yearly projection builder.

- assumptions.py: frozen assumption records, defaults, dict overlay, guardrail warnings
- engine.py: per-year P&L, depreciation, working capital and FCF projections
"""
