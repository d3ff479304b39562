"""
Domain service: planting strategy and projected impact.

Both are pure functions of the final ranked species and the climate
profile. A well-formed strategy from the reasoning collaborator replaces
the rule-derived density, spacing and months; the species mix is always
rule-derived.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging
import re

import numpy as np

from reforest.config import Settings
from reforest.domain.models import (
    BiodiversityImpact,
    CarbonSequestration,
    ClimateProfile,
    DensityImpact,
    EconomicValue,
    EcosystemServices,
    GrowthRate,
    ImpactMetrics,
    PlantingStrategy,
    ReasoningStrategy,
    ScoredSpecies,
    StrategySource,
)

logger = logging.getLogger(__name__)

GROWTH_RATE_BUCKETS: Dict[GrowthRate, int] = {
    GrowthRate.SLOW: 1,
    GrowthRate.MODERATE: 2,
    GrowthRate.FAST: 3,
    GrowthRate.VERY_FAST: 4,
}

DEFAULT_PLANTING_MONTHS = ["March", "April", "May", "October", "November"]

_DENSITY_RANGE = re.compile(r"(\d+)\s*(?:-|–|to)\s*(\d+)")


@dataclass(frozen=True)
class StrategyConfig:
    """Configuration for strategy and impact generation."""

    top_n: int = 5
    primary_share: int = 45
    max_secondary_species: int = 3
    carbon_price_per_ton: float = 10.0
    timber_value_per_tree: float = 50.0
    survival_factor: float = 0.95
    projection_years: int = 10

    @classmethod
    def from_settings(cls, settings: Settings) -> "StrategyConfig":
        return cls(
            top_n=settings.top_recommendations_count,
            primary_share=settings.primary_mix_share,
            carbon_price_per_ton=settings.carbon_price_per_ton,
            timber_value_per_tree=settings.timber_value_per_tree,
            survival_factor=settings.survival_factor,
        )


def parse_density_range(text: str) -> Optional[Tuple[int, int]]:
    """Extract a (min, max) trees/hectare pair from text like '300-400 trees/hectare'."""
    match = _DENSITY_RANGE.search(text or "")
    if not match:
        return None
    low, high = int(match.group(1)), int(match.group(2))
    if low <= 0 or high < low:
        return None
    return low, high


def density_for_growth(average_bucket: float) -> Tuple[int, int]:
    """Slower growers are planted denser."""
    if average_bucket >= 3.5:
        return 200, 300
    if average_bucket >= 2.5:
        return 300, 400
    return 400, 500


def spacing_for_height(average_height: float) -> str:
    if average_height > 25:
        return "4-6 meters"
    if average_height > 15:
        return "3-4 meters"
    return "2-3 meters"


class StrategyGenerator:
    """
    Derives a PlantingStrategy and ImpactMetrics from ranked species.
    """

    def __init__(self, config: Optional[StrategyConfig] = None):
        self.config = config or StrategyConfig()

    def generate(
        self,
        entries: List[ScoredSpecies],
        climate: ClimateProfile,
        external: Optional[ReasoningStrategy] = None,
    ) -> Tuple[PlantingStrategy, ImpactMetrics]:
        selected = entries[: self.config.top_n]
        if not selected:
            raise ValueError("Cannot derive a planting strategy from an empty species list")
        strategy = self.strategy(selected, climate, external)
        return strategy, self.impact(selected, strategy)

    def strategy(
        self,
        entries: List[ScoredSpecies],
        climate: ClimateProfile,
        external: Optional[ReasoningStrategy] = None,
    ) -> PlantingStrategy:
        mix = self.mix_ratio(entries)

        if external is not None:
            density = parse_density_range(external.density)
            if density and external.best_months and external.spacing.strip():
                logger.info("Using reasoning-supplied planting strategy")
                return PlantingStrategy(
                    density=f"{density[0]}-{density[1]} trees/hectare",
                    density_min=density[0],
                    density_max=density[1],
                    spacing=external.spacing.strip(),
                    best_months=list(external.best_months),
                    mix_ratio=mix,
                    source=StrategySource.REASONING,
                )
            logger.warning("Reasoning strategy is incomplete, using rule-derived strategy")

        species = [e.species for e in entries]
        average_bucket = float(np.mean([GROWTH_RATE_BUCKETS[s.growth_rate] for s in species]))
        average_height = float(np.mean([s.max_height for s in species]))
        low, high = density_for_growth(average_bucket)

        return PlantingStrategy(
            density=f"{low}-{high} trees/hectare",
            density_min=low,
            density_max=high,
            spacing=spacing_for_height(average_height),
            best_months=list(climate.best_months) or list(DEFAULT_PLANTING_MONTHS),
            mix_ratio=mix,
            source=StrategySource.RULES,
        )

    def mix_ratio(self, entries: List[ScoredSpecies]) -> Dict[str, int]:
        """
        Percentage of planted trees per species id.

        The top species takes the primary share and the remainder is split
        evenly across up to three more; integer rounding leftovers go to
        the earliest secondaries so the total is always 100.
        """
        if not entries:
            return {}
        included = entries[: 1 + self.config.max_secondary_species]
        if len(included) == 1:
            return {included[0].species.id: 100}

        ratios = {included[0].species.id: self.config.primary_share}
        others = included[1:]
        remaining = 100 - self.config.primary_share
        share, leftover = divmod(remaining, len(others))
        for i, entry in enumerate(others):
            ratios[entry.species.id] = share + (1 if i < leftover else 0)
        return ratios

    def impact(self, entries: List[ScoredSpecies], strategy: PlantingStrategy) -> ImpactMetrics:
        """
        Project carbon, biodiversity and economic impact for the planted mix.

        Year-10 sequestration accumulates ten yearly increments, each scaled
        by the surviving share of the stand: ``year1 * sum(0.95 ** k for k in
        range(10))``, roughly 8.03 x year-1. This is lower than the flat
        ``year1 * 10 * 0.95`` (9.5 x year-1) shortcut, which applies a single
        year of attrition to the whole decade.
        """
        cfg = self.config
        species = [e.species for e in entries]
        density = strategy.density_midpoint

        per_tree = float(np.mean([s.carbon_sequestration for s in species]))
        year1 = per_tree * density
        # Each later year sequesters from the surviving share of the stand
        survival = cfg.survival_factor ** np.arange(cfg.projection_years)
        year10 = float(year1 * survival.sum())

        biodiversity = float(np.mean([s.biodiversity_value for s in species]))
        carbon_value = year10 / 1000 * cfg.carbon_price_per_ton
        timber_value = density * cfg.timber_value_per_tree

        return ImpactMetrics(
            carbon_sequestration=CarbonSequestration(
                year1=round(year1),
                year10=round(year10),
                per_tree=round(per_tree, 1),
            ),
            biodiversity=BiodiversityImpact(
                score=round(biodiversity),
                level=_biodiversity_level(biodiversity),
            ),
            density=DensityImpact(
                trees_per_hectare=round(density),
                survival_rate=round(cfg.survival_factor * 100, 1),
            ),
            economic_value=EconomicValue(
                carbon_credits=round(carbon_value, 2),
                timber=round(timber_value, 2),
                total=round(carbon_value + timber_value, 2),
            ),
            ecosystem=EcosystemServices(
                soil_improvement="high" if any(s.nitrogen_fixing for s in species) else "moderate",
                water_retention="moderate",
                habitat_creation="excellent" if biodiversity >= 80 else "good",
            ),
        )


def _biodiversity_level(score: float) -> str:
    if score >= 85:
        return "excellent"
    if score >= 70:
        return "good"
    return "moderate"
