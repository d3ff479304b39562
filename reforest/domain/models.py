"""
Domain models for species, site context and recommendations.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, image decoding, etc.).
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, Field, field_validator


class WaterNeed(str, Enum):
    VERY_LOW = "very-low"
    LOW = "low"
    MODERATE = "moderate"
    MODERATE_HIGH = "moderate-high"
    HIGH = "high"


class GrowthRate(str, Enum):
    SLOW = "slow"
    MODERATE = "moderate"
    FAST = "fast"
    VERY_FAST = "very-fast"


class MoistureLevel(str, Enum):
    DRY = "dry"
    MODERATE = "moderate"
    MOIST = "moist"
    WET = "wet"


class VegetationLevel(str, Enum):
    BARE = "bare"
    SPARSE = "sparse"
    MODERATE = "moderate"
    DENSE = "dense"


class LocationSource(str, Enum):
    GPS = "gps"
    MANUAL = "manual"
    FALLBACK = "fallback"


class EscalationTier(str, Enum):
    STANDARD = "standard"
    RELAXED = "relaxed"
    HARDY_FALLBACK = "hardy-fallback"


class StrategySource(str, Enum):
    RULES = "rules"
    REASONING = "reasoning"


# ============================================================
# Catalog
# ============================================================

class ToleranceRange(BaseModel):
    """Closed tolerance interval [min, max]."""
    min: float
    max: float

    class Config:
        frozen = True

    @property
    def midpoint(self) -> float:
        return (self.min + self.max) / 2

    @property
    def half_width(self) -> float:
        return (self.max - self.min) / 2

    def contains(self, value: float, buffer: float = 0.0) -> bool:
        return self.min - buffer <= value <= self.max + buffer


class Species(BaseModel):
    """Catalog entry with environmental tolerances. Immutable."""
    id: str
    common_name: str
    scientific_name: str
    local_name: Optional[str] = None
    family: Optional[str] = None
    temp_range: ToleranceRange = Field(description="Tolerated temperature in °C")
    rainfall_range: ToleranceRange = Field(description="Tolerated annual rainfall in mm")
    soil_types: List[str]
    water_needs: WaterNeed
    growth_rate: GrowthRate
    max_height: float = Field(description="Mature height in metres")
    carbon_sequestration: float = Field(description="kg CO2 per year per tree")
    biodiversity_value: float = Field(ge=0, le=100)
    nitrogen_fixing: bool = False
    native_regions: List[str] = Field(default_factory=list)
    hardy: bool = False
    high_adaptability: bool = False
    native_bonus: Optional[float] = Field(
        default=None,
        description="Override applied when no native region matches",
    )
    benefits: List[str] = Field(default_factory=list)

    class Config:
        frozen = True

    def accepts_soil(self, soil_type: str) -> bool:
        return soil_type.lower() in self.soil_types


# ============================================================
# Site context
# ============================================================

class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class LocationFix(BaseModel):
    """Result of GPS extraction or a caller-supplied location."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    has_coordinates: bool = False
    source: LocationSource = LocationSource.FALLBACK
    reason: Optional[str] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if not self.has_coordinates or self.latitude is None or self.longitude is None:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    @property
    def approximate(self) -> bool:
        return self.source is not LocationSource.GPS


class Place(BaseModel):
    """Reverse geocoding result."""
    city: str = "Unknown"
    country: str = "Unknown"
    region: str = ""
    country_code: str = ""
    display_name: str = ""


class Location(BaseModel):
    coordinates: Coordinates
    city: str = "Unknown"
    country: str = "Unknown"
    region: str = ""

    @classmethod
    def from_place(cls, coordinates: Coordinates, place: Place) -> "Location":
        return cls(
            coordinates=coordinates,
            city=place.city,
            country=place.country,
            region=place.region,
        )


class TemperatureStats(BaseModel):
    average: float = 20
    min: float = 15
    max: float = 25
    avg_max: Optional[float] = None
    avg_min: Optional[float] = None


class ClimateChallenge(BaseModel):
    type: str
    severity: str
    description: str
    mitigation: str


class ClimateProfile(BaseModel):
    """Summarised climate for a site."""
    current_temperature: float
    annual_rainfall: float = Field(description="Estimated annual rainfall in mm")
    soil_moisture: MoistureLevel = MoistureLevel.MODERATE
    soil_moisture_value: float = 0.3
    best_months: List[str] = Field(default_factory=list)
    climate_type: str = "sub-humid"
    temp_zone: str = "temperate"
    temperature_stats: TemperatureStats = Field(default_factory=TemperatureStats)
    growing_season_months: int = 12
    challenges: List[ClimateChallenge] = Field(default_factory=list)
    elevation: Optional[float] = None
    is_synthetic: bool = False


class SiteAnalysis(BaseModel):
    """Soil and vegetation classification of the uploaded image."""
    soil_type: str = "loam"
    vegetation_level: VegetationLevel = VegetationLevel.MODERATE
    vegetation_coverage: float = Field(default=0.0, description="Green pixel share in %")
    confidence: float = Field(default=0.0, ge=0, le=100)

    @field_validator("soil_type")
    @classmethod
    def _normalise_soil(cls, value: str) -> str:
        return value.strip().lower()


class Context(BaseModel):
    """Everything the recommendation pipeline knows about a site."""
    location: Location
    climate: ClimateProfile
    site: SiteAnalysis
    approximate_location: bool = Field(
        default=False,
        description="True when coordinates are user-supplied or a fallback, not image GPS",
    )


class SuitabilityWarning(BaseModel):
    type: str
    severity: str
    message: str


class SuitabilityAssessment(BaseModel):
    score: float = Field(ge=0, le=100)
    level: str
    warnings: List[SuitabilityWarning] = Field(default_factory=list)
    advice: List[str] = Field(default_factory=list)


# ============================================================
# Recommendations
# ============================================================

class ScoredSpecies(BaseModel):
    """A species with its local and (optionally) blended score."""
    species: Species
    base_score: float = Field(ge=0, le=100)
    external_score: Optional[float] = None
    external_reasoning: Optional[str] = None
    external_advice: Optional[str] = None
    external_rank: Optional[int] = None
    final_score: float
    catalog_index: int = Field(default=0, ge=0, description="Position in the catalog, breaks score ties")

    @classmethod
    def from_base(cls, species: Species, base_score: float, catalog_index: int = 0) -> "ScoredSpecies":
        return cls(
            species=species,
            base_score=base_score,
            final_score=base_score,
            catalog_index=catalog_index,
        )

    @property
    def blended(self) -> bool:
        return self.external_score is not None


class RankedResult(BaseModel):
    """Ordered, non-empty recommendation set produced by one escalation tier."""
    entries: List[ScoredSpecies] = Field(min_length=1)
    tier: EscalationTier
    warning: Optional[str] = None
    total_candidates: int = 0
    blended: bool = False

    @property
    def requires_location_warning(self) -> bool:
        return self.tier is EscalationTier.RELAXED

    def top(self, count: int) -> List[ScoredSpecies]:
        return self.entries[:count]


class PlantingStrategy(BaseModel):
    density: str = Field(description="Trees per hectare as a display range")
    density_min: int
    density_max: int
    spacing: str
    best_months: List[str]
    mix_ratio: Dict[str, int] = Field(
        default_factory=dict,
        description="Species id to percentage of planted trees; sums to 100",
    )
    source: StrategySource = StrategySource.RULES

    @property
    def density_midpoint(self) -> float:
        return (self.density_min + self.density_max) / 2


class CarbonSequestration(BaseModel):
    year1: float
    year10: float
    per_tree: float
    unit: str = "kg CO2"


class BiodiversityImpact(BaseModel):
    score: float
    level: str


class DensityImpact(BaseModel):
    trees_per_hectare: int
    survival_rate: float


class EconomicValue(BaseModel):
    carbon_credits: float
    timber: float
    total: float
    currency: str = "USD"


class EcosystemServices(BaseModel):
    soil_improvement: str
    water_retention: str
    habitat_creation: str


class ImpactMetrics(BaseModel):
    """Projected impact per hectare. Derived from a RankedResult only."""
    carbon_sequestration: CarbonSequestration
    biodiversity: BiodiversityImpact
    density: DensityImpact
    economic_value: EconomicValue
    ecosystem: EcosystemServices


# ============================================================
# External reasoning contract
# ============================================================

class ReasoningRanking(BaseModel):
    species_id: str = Field(validation_alias=AliasChoices("treeId", "id", "species_id"))
    rank: Optional[int] = None
    score: float = Field(validation_alias=AliasChoices("compatibilityScore", "score"))
    reasoning: str = ""
    advice: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("specificAdvice", "advice"),
    )

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, value: float) -> float:
        return max(0.0, min(100.0, value))


class ReasoningStrategy(BaseModel):
    density: str = ""
    best_months: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("bestMonths", "best_months"),
    )
    spacing: str = ""


class ReasoningResponse(BaseModel):
    rankings: List[ReasoningRanking] = Field(default_factory=list)
    strategy: Optional[ReasoningStrategy] = Field(
        default=None,
        validation_alias=AliasChoices("plantingStrategy", "strategy"),
    )
    site_preparation: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("sitePreparation", "site_preparation"),
    )
    additional_insights: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("additionalInsights", "additional_insights"),
    )


class RecommendationBundle(BaseModel):
    """Complete output of one pipeline run."""
    result: RankedResult
    recommendations: List[ScoredSpecies]
    strategy: PlantingStrategy
    impact: ImpactMetrics
    insights: Optional[ReasoningResponse] = None
    location_source: LocationSource = LocationSource.GPS
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def tier(self) -> EscalationTier:
        return self.result.tier


# ============================================================
# Climate collaborator contract
# ============================================================

class RawClimate(BaseModel):
    """Current conditions plus daily series as returned by the climate service."""
    latitude: float
    longitude: float
    current: Dict[str, Any] = Field(default_factory=dict)
    daily: Dict[str, List[Any]] = Field(default_factory=dict)
    timezone: Optional[str] = None
    elevation: Optional[float] = None
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_synthetic: bool = False
