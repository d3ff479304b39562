"""
API request models using Pydantic.
"""
from typing import Optional
from pydantic import BaseModel, Field

from reforest.domain.models import ClimateProfile, Context, Location, SiteAnalysis


class RecommendationRequest(BaseModel):
    """Direct pipeline call from an already gathered site context."""
    location: Location
    climate: ClimateProfile
    site: SiteAnalysis = Field(default_factory=SiteAnalysis)
    approximate_location: bool = Field(
        default=False,
        description="Coordinates are user-supplied or a fallback rather than image GPS",
    )
    use_reasoning: bool = Field(
        default=True,
        description="Blend in the external reasoning ranking when configured",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "location": {
                    "coordinates": {"latitude": -1.2921, "longitude": 36.8219},
                    "city": "Nairobi",
                    "country": "Kenya",
                },
                "climate": {
                    "current_temperature": 22,
                    "annual_rainfall": 1000,
                    "soil_moisture": "moderate",
                    "best_months": ["March", "April", "May"],
                },
                "site": {"soil_type": "loam", "vegetation_level": "sparse"},
                "approximate_location": False,
                "use_reasoning": False,
            }
        }

    def to_context(self) -> Context:
        return Context(
            location=self.location,
            climate=self.climate,
            site=self.site,
            approximate_location=self.approximate_location,
        )


class LocationRequest(BaseModel):
    """Coordinates supplied for a workflow waiting on a location."""
    latitude: Optional[float] = Field(default=None, description="Latitude in degrees")
    longitude: Optional[float] = Field(default=None, description="Longitude in degrees")
    use_default: bool = Field(
        default=False,
        description="Ignore the coordinates and use the configured default location",
    )


class RecalculateRequest(BaseModel):
    use_reasoning: Optional[bool] = Field(
        default=None,
        description="Override the reasoning toggle for the recalculation",
    )
