"""
Domain service: three-tier candidate escalation.

Tiers are attempted in order until one yields candidates:
1. Standard - exact climate range and soil match, scored
2. Relaxed - widened tolerances and adjacent soils, scored; only for
   approximate locations
3. Hardy fallback - broadly adaptable species at a fixed score

The controller never returns an empty result. An empty hardy tier means
the catalog itself is misconfigured.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional
import logging

from reforest.config import Settings
from reforest.domain.catalog import Catalog, is_hardy_candidate
from reforest.domain.errors import CatalogConfigurationError
from reforest.domain.models import (
    Context,
    EscalationTier,
    RankedResult,
    ScoredSpecies,
    Species,
)
from reforest.services.domain.compatibility_scorer import CompatibilityScorer

logger = logging.getLogger(__name__)


# Observed soil -> additional catalog soil categories accepted in relaxed mode
SOIL_ADJACENCY: dict[str, frozenset[str]] = {
    "clay": frozenset({"loam"}),
    "sandy": frozenset({"loam"}),
    "loam": frozenset({"clay", "sandy"}),
    "rocky": frozenset(),
    "poor": frozenset({"sandy"}),
}


@dataclass(frozen=True)
class EscalationConfig:
    """Configuration for the escalation tiers."""

    tolerance_buffer: float = 5.0
    """Degrees added to both temperature bounds in the relaxed tier"""

    rainfall_per_degree: float = 40.0
    """Rainfall buffer (mm) per degree of temperature buffer"""

    hardy_score: float = 60.0
    hardy_limit: int = 7

    relaxed_warning: str = "Using approximate location. Enable GPS for more accurate results."
    hardy_warning: str = "Showing general hardy species. Set exact location for better recommendations."

    @property
    def rainfall_buffer(self) -> float:
        return self.tolerance_buffer * self.rainfall_per_degree

    @classmethod
    def from_settings(cls, settings: Settings) -> "EscalationConfig":
        return cls(
            tolerance_buffer=settings.relaxed_tolerance_buffer,
            rainfall_per_degree=settings.relaxed_rainfall_per_degree,
            hardy_score=settings.hardy_fallback_score,
            hardy_limit=settings.hardy_fallback_limit,
        )


def soil_compatible(species: Species, soil_type: str, relaxed: bool = False) -> bool:
    """Exact soil match, or an adjacent category when relaxed."""
    soil = soil_type.lower()
    if species.accepts_soil(soil):
        return True
    if not relaxed:
        return False
    if any(adjacent in species.soil_types for adjacent in SOIL_ADJACENCY.get(soil, ())):
        return True
    # Rocky ground only takes explicitly hardy species
    return soil == "rocky" and species.hardy


def rank_entries(entries: List[ScoredSpecies]) -> List[ScoredSpecies]:
    """Sort descending by final score, ties in catalog order."""
    return sorted(entries, key=lambda entry: (-entry.final_score, entry.catalog_index))


class EscalationController:
    """
    Runs the tiers in order and returns the first non-empty ranked set.
    """

    def __init__(
        self,
        catalog: Catalog,
        scorer: Optional[CompatibilityScorer] = None,
        config: Optional[EscalationConfig] = None,
    ):
        self.catalog = catalog
        self.scorer = scorer or CompatibilityScorer()
        self.config = config or EscalationConfig()

    def escalate(self, context: Context) -> RankedResult:
        climate = context.climate
        logger.info(
            f"Escalating for temp={climate.current_temperature}°C, "
            f"rainfall={climate.annual_rainfall}mm, soil={context.site.soil_type}, "
            f"approximate={context.approximate_location}"
        )

        standard = self._select(context, self._standard_filter(context))
        if standard:
            logger.info(f"Standard tier matched {len(standard)} species")
            return self._ranked(standard, EscalationTier.STANDARD)

        if context.approximate_location:
            logger.warning("No species in standard tier, trying relaxed tolerances")
            relaxed = self._select(context, self._relaxed_filter(context))
            if relaxed:
                logger.info(f"Relaxed tier matched {len(relaxed)} species")
                return self._ranked(
                    relaxed, EscalationTier.RELAXED, warning=self.config.relaxed_warning
                )

        logger.warning("Falling back to hardy species")
        return self.hardy_fallback()

    def hardy_fallback(self) -> RankedResult:
        hardy = [
            (index, s) for index, s in enumerate(self.catalog) if is_hardy_candidate(s)
        ][: self.config.hardy_limit]
        if not hardy:
            raise CatalogConfigurationError(
                "Hardy fallback tier is empty; the species catalog is misconfigured"
            )
        entries = [
            ScoredSpecies.from_base(s, self.config.hardy_score, catalog_index=index)
            for index, s in hardy
        ]
        return RankedResult(
            entries=entries,
            tier=EscalationTier.HARDY_FALLBACK,
            warning=self.config.hardy_warning,
            total_candidates=len(entries),
        )

    def _select(
        self,
        context: Context,
        predicate: Callable[[Species], bool],
    ) -> List[ScoredSpecies]:
        return [
            ScoredSpecies.from_base(
                species, self.scorer.score(species, context), catalog_index=index
            )
            for index, species in enumerate(self.catalog)
            if predicate(species)
        ]

    def _standard_filter(self, context: Context) -> Callable[[Species], bool]:
        temperature = context.climate.current_temperature
        rainfall = context.climate.annual_rainfall
        soil = context.site.soil_type

        def predicate(species: Species) -> bool:
            return (
                species.temp_range.contains(temperature)
                and species.rainfall_range.contains(rainfall)
                and soil_compatible(species, soil)
            )

        return predicate

    def _relaxed_filter(self, context: Context) -> Callable[[Species], bool]:
        temperature = context.climate.current_temperature
        rainfall = context.climate.annual_rainfall
        soil = context.site.soil_type
        temp_buffer = self.config.tolerance_buffer
        rain_buffer = self.config.rainfall_buffer

        def predicate(species: Species) -> bool:
            return (
                species.temp_range.contains(temperature, buffer=temp_buffer)
                and species.rainfall_range.contains(rainfall, buffer=rain_buffer)
                and soil_compatible(species, soil, relaxed=True)
            )

        return predicate

    def _ranked(
        self,
        entries: List[ScoredSpecies],
        tier: EscalationTier,
        warning: Optional[str] = None,
    ) -> RankedResult:
        ranked = rank_entries(entries)
        for i, entry in enumerate(ranked[:3]):
            logger.debug(f"  #{i + 1}: {entry.species.id} score={entry.final_score:.1f}")
        return RankedResult(
            entries=ranked,
            tier=tier,
            warning=warning,
            total_candidates=len(entries),
        )
