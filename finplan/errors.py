from __future__ import annotations


class InvalidScenario(ValueError):
    """Unknown adoption scenario id."""

    def __init__(self, scenario: str, valid=()):
        self.scenario = scenario
        msg = f"Unknown scenario: {scenario}"
        if valid:
            msg += f". Valid: {', '.join(valid)}"
        super().__init__(msg)


class InvalidRate(ValueError):
    """Discount or interest rate at or below -100%."""


class InvalidTerminalAssumptions(ValueError):
    """Terminal value inputs that have no finite value (e.g. WACC <= g)."""


class InvalidHorizon(ValueError):
    """Non-positive projection horizon."""
