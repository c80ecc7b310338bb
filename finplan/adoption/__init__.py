"""Adoption model: logistic unit-adoption curves under named scenarios.

- scenarios.py: immutable scenario table and base curve constants
- model.py: sigmoid, AdoptionModel, annual/monthly unit projections
"""
