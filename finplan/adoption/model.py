from __future__ import annotations
from typing import List, Mapping, Optional
import math
from types import MappingProxyType

from finplan.adoption.scenarios import BASE_CURVE, SCENARIOS, CurveParams, ScenarioParams
from finplan.errors import InvalidScenario

GRANULARITIES = ("annual", "monthly")


def sigmoid(t: float, saturation: float, midpoint: float, steepness: float) -> float:
    """Logistic adoption rate L / (1 + e^(-k(t - t0))) in units/year at time t."""
    x = -steepness * (t - midpoint)
    if x > 700:  # exp overflow; rate is effectively zero
        return 0.0
    return saturation / (1.0 + math.exp(x))


def _softplus(x: float) -> float:
    # log(1 + e^x) without overflow for large |x|
    return max(x, 0.0) + math.log1p(math.exp(-abs(x)))


def cumulative_units(t: float, curve: CurveParams) -> float:
    """Primitive of the adoption rate, (L/k)·log(1 + e^(k(t - t0))).

    Only differences are meaningful; units adopted over [a, b] are
    cumulative_units(b) - cumulative_units(a).
    """
    if curve.steepness == 0:
        return curve.saturation * 0.5 * t
    k = curve.steepness
    return (curve.saturation / k) * _softplus(k * (t - curve.midpoint))


def units_between(start: float, end: float, curve: CurveParams) -> float:
    return cumulative_units(end, curve) - cumulative_units(start, curve)


class AdoptionModel:
    """Unit-volume projections from a scenario-adjusted logistic curve.

    The scenario table is injected so alternate scenario sets can be used
    without touching module state. Units for a period are the integral of the
    adoption rate over that period, which keeps the twelve monthly values of a
    year summing to the annual value.
    """

    def __init__(
        self,
        scenarios: Mapping[str, ScenarioParams] = SCENARIOS,
        curve: CurveParams = BASE_CURVE,
    ):
        # ids are matched case-insensitively
        self._scenarios = MappingProxyType({str(k).lower(): v for k, v in scenarios.items()})
        self._curve = curve

    @property
    def scenario_names(self) -> List[str]:
        return list(self._scenarios.keys())

    def params_for(self, scenario: str) -> CurveParams:
        key = str(scenario).lower()
        sp = self._scenarios.get(key)
        if sp is None:
            raise InvalidScenario(scenario, tuple(self._scenarios.keys()))
        return CurveParams(
            saturation=self._curve.saturation,
            midpoint=self._curve.midpoint + sp.inflection_shift_years,
            steepness=self._curve.steepness * sp.growth_rate_multiplier,
        )

    def rate_at(self, scenario: str, t: float) -> float:
        c = self.params_for(scenario)
        return sigmoid(t, c.saturation, c.midpoint, c.steepness)

    def project_units(
        self, scenario: str, base_year: int, periods: int, granularity: str = "annual"
    ) -> List[float]:
        if granularity not in GRANULARITIES:
            raise ValueError(f"granularity must be one of {GRANULARITIES}, got {granularity!r}")
        if periods < 1:
            raise ValueError("periods must be >= 1")
        curve = self.params_for(scenario)
        steps = 1 if granularity == "annual" else 12
        out: List[float] = []
        for p in range(periods):
            start = base_year + p / steps
            end = base_year + (p + 1) / steps
            out.append(max(0.0, units_between(start, end, curve)))
        return out

    def annual_projections(self, scenario: str, base_year: int, years: int) -> List[float]:
        return self.project_units(scenario, base_year, years, "annual")

    def monthly_projections(self, scenario: str, base_year: int, months: int) -> List[float]:
        return self.project_units(scenario, base_year, months, "monthly")


_DEFAULT_MODEL = AdoptionModel()


def project_units(
    scenario: str,
    base_year: int,
    periods: int,
    granularity: str = "annual",
    model: Optional[AdoptionModel] = None,
) -> List[float]:
    return (model or _DEFAULT_MODEL).project_units(scenario, base_year, periods, granularity)


def get_annual_projections(scenario: str, base_year: int, years: int) -> List[float]:
    return _DEFAULT_MODEL.annual_projections(scenario, base_year, years)


def get_monthly_projections(scenario: str, base_year: int, months: int) -> List[float]:
    return _DEFAULT_MODEL.monthly_projections(scenario, base_year, months)
