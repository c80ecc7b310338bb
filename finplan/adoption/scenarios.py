from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple


@dataclass(frozen=True)
class ScenarioParams:
    inflection_shift_years: float  # added to the curve midpoint (negative = earlier ramp)
    growth_rate_multiplier: float  # scales curve steepness k


@dataclass(frozen=True)
class CurveParams:
    saturation: float  # L, adoption rate ceiling in units/year
    midpoint: float    # t0, calendar year of the inflection point
    steepness: float   # k, per year


BASE_CURVE = CurveParams(saturation=24000.0, midpoint=2029.0, steepness=0.9)

SCENARIO_ORDER: Tuple[str, ...] = ("min", "downside", "base", "upside", "max")

SCENARIOS: Mapping[str, ScenarioParams] = MappingProxyType({
    "min": ScenarioParams(inflection_shift_years=2.0, growth_rate_multiplier=0.25),
    "downside": ScenarioParams(inflection_shift_years=2.0, growth_rate_multiplier=0.8),
    "base": ScenarioParams(inflection_shift_years=0.0, growth_rate_multiplier=1.0),
    "upside": ScenarioParams(inflection_shift_years=-2.0, growth_rate_multiplier=1.2),
    "max": ScenarioParams(inflection_shift_years=-4.0, growth_rate_multiplier=2.0),
})

SCENARIO_LABELS: Mapping[str, str] = MappingProxyType({
    "min": "Minimum",
    "downside": "Downside",
    "base": "Base",
    "upside": "Upside",
    "max": "Maximum",
})
