"""
Domain service: species/site compatibility scoring.

Points are budgeted per signal and summed:
- Temperature (30): linear decay from the tolerance midpoint
- Rainfall (25): hard cutoff outside the range, linear decay inside
- Soil type (15): accepted soil set membership
- Soil moisture (10): water need vs observed moisture level
- Native region (10): region match or catalog override
- Biodiversity (5) and carbon sequestration (5): normalised catalog values
"""
from dataclasses import dataclass, field
from typing import Optional
import logging

from reforest.config import Settings
from reforest.domain.models import (
    Context,
    MoistureLevel,
    Species,
    ToleranceRange,
    WaterNeed,
)

logger = logging.getLogger(__name__)


MOISTURE_COMPATIBILITY: dict[WaterNeed, frozenset[MoistureLevel]] = {
    WaterNeed.VERY_LOW: frozenset({MoistureLevel.DRY}),
    WaterNeed.LOW: frozenset({MoistureLevel.DRY}),
    WaterNeed.MODERATE: frozenset({MoistureLevel.MODERATE, MoistureLevel.MOIST}),
    WaterNeed.MODERATE_HIGH: frozenset({MoistureLevel.MOIST}),
    WaterNeed.HIGH: frozenset({MoistureLevel.MOIST, MoistureLevel.WET}),
}


@dataclass(frozen=True)
class ScoringConfig:
    """Point budget for each scoring component."""

    temperature_points: float = 30.0
    rainfall_points: float = 25.0
    soil_points: float = 15.0
    moisture_points: float = 10.0
    native_points: float = 10.0
    biodiversity_points: float = 5.0
    carbon_points: float = 5.0

    carbon_reference_max: float = 70.0
    """Highest realistic carbon rate in the catalog (kg CO2/year/tree)"""

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringConfig":
        return cls(carbon_reference_max=settings.carbon_reference_max)


@dataclass
class ScoreBreakdown:
    """Per-component points for one species, used to explain a score."""
    temperature: float = 0.0
    rainfall: float = 0.0
    soil: float = 0.0
    moisture: float = 0.0
    native: float = 0.0
    biodiversity: float = 0.0
    carbon: float = 0.0
    notes: list[str] = field(default_factory=list)

    @property
    def total(self) -> float:
        raw = (
            self.temperature + self.rainfall + self.soil + self.moisture
            + self.native + self.biodiversity + self.carbon
        )
        return max(0.0, min(100.0, raw))


def decay_from_midpoint(value: float, tolerance: ToleranceRange, points: float) -> float:
    """
    Full points at the range midpoint, decaying linearly to 0 at the half-width.

    Values beyond the half-width floor at 0.
    """
    half_width = tolerance.half_width
    deviation = abs(value - tolerance.midpoint)
    if half_width <= 0:
        return points if deviation == 0 else 0.0
    return max(0.0, points - (deviation / half_width) * points)


def moisture_matches(water_needs: WaterNeed, moisture: MoistureLevel) -> bool:
    return moisture in MOISTURE_COMPATIBILITY.get(water_needs, frozenset())


class CompatibilityScorer:
    """
    Pure, deterministic scorer: (species, context) -> [0, 100].
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def score(self, species: Species, context: Context) -> float:
        return self.breakdown(species, context).total

    def breakdown(self, species: Species, context: Context) -> ScoreBreakdown:
        cfg = self.config
        climate = context.climate
        result = ScoreBreakdown()

        result.temperature = decay_from_midpoint(
            climate.current_temperature, species.temp_range, cfg.temperature_points
        )

        rainfall = climate.annual_rainfall
        if species.rainfall_range.contains(rainfall):
            result.rainfall = decay_from_midpoint(
                rainfall, species.rainfall_range, cfg.rainfall_points
            )
        else:
            result.notes.append("rainfall outside tolerated range")

        if species.accepts_soil(context.site.soil_type):
            result.soil = cfg.soil_points
        else:
            result.notes.append(f"{context.site.soil_type} soil not preferred")

        if moisture_matches(species.water_needs, climate.soil_moisture):
            result.moisture = cfg.moisture_points

        result.native = self._native_points(species, context)

        result.biodiversity = min(
            cfg.biodiversity_points,
            species.biodiversity_value / 100 * cfg.biodiversity_points,
        )
        result.carbon = min(
            cfg.carbon_points,
            species.carbon_sequestration / cfg.carbon_reference_max * cfg.carbon_points,
        )

        logger.debug(
            f"{species.id}: temp={result.temperature:.1f} rain={result.rainfall:.1f} "
            f"soil={result.soil:.0f} moisture={result.moisture:.0f} "
            f"native={result.native:.0f} total={result.total:.1f}"
        )
        return result

    def _native_points(self, species: Species, context: Context) -> float:
        location = context.location
        haystacks = [location.country.lower(), location.region.lower()]
        for region in species.native_regions:
            needle = region.lower()
            if needle and any(needle in text for text in haystacks if text):
                return self.config.native_points
        if species.native_bonus is not None:
            return max(0.0, min(self.config.native_points, species.native_bonus))
        return 0.0
