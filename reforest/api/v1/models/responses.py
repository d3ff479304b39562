"""
API response models using Pydantic.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from reforest.domain.models import (
    ClimateProfile,
    EscalationTier,
    ImpactMetrics,
    Location,
    LocationFix,
    LocationSource,
    PlantingStrategy,
    ReasoningResponse,
    RecommendationBundle,
    ScoredSpecies,
    SiteAnalysis,
    SuitabilityAssessment,
)
from reforest.services.application.workflow import WorkflowError, WorkflowStage, WorkflowState


class RecommendedSpecies(BaseModel):
    """Single ranked species."""
    id: str
    common_name: str
    scientific_name: str
    local_name: Optional[str] = None
    base_score: float = Field(description="Local compatibility score (0-100)")
    final_score: float = Field(description="Score used for ranking")
    external_score: Optional[float] = None
    reasoning: Optional[str] = None
    advice: Optional[str] = None
    benefits: List[str] = Field(default_factory=list)

    @classmethod
    def from_scored(cls, entry: ScoredSpecies) -> "RecommendedSpecies":
        species = entry.species
        return cls(
            id=species.id,
            common_name=species.common_name,
            scientific_name=species.scientific_name,
            local_name=species.local_name,
            base_score=round(entry.base_score, 1),
            final_score=round(entry.final_score, 1),
            external_score=entry.external_score,
            reasoning=entry.external_reasoning,
            advice=entry.external_advice,
            benefits=list(species.benefits),
        )


class RecommendationResponse(BaseModel):
    """Response model for a completed recommendation run."""
    tier: EscalationTier
    warning: Optional[str] = Field(
        default=None,
        description="Caller-visible notice, e.g. for approximate locations",
    )
    blended: bool
    location_source: LocationSource
    total_candidates: int
    recommendations: List[RecommendedSpecies]
    strategy: PlantingStrategy
    impact: ImpactMetrics
    insights: Optional[ReasoningResponse] = None
    generated_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "tier": "standard",
                "warning": None,
                "blended": False,
                "location_source": "gps",
                "total_candidates": 4,
                "recommendations": [
                    {
                        "id": "grevillea-robusta",
                        "common_name": "Silky Oak",
                        "scientific_name": "Grevillea robusta",
                        "base_score": 82.4,
                        "final_score": 82.4,
                    }
                ],
            }
        }

    @classmethod
    def from_bundle(cls, bundle: RecommendationBundle) -> "RecommendationResponse":
        return cls(
            tier=bundle.result.tier,
            warning=bundle.result.warning,
            blended=bundle.result.blended,
            location_source=bundle.location_source,
            total_candidates=bundle.result.total_candidates,
            recommendations=[RecommendedSpecies.from_scored(e) for e in bundle.recommendations],
            strategy=bundle.strategy,
            impact=bundle.impact,
            insights=bundle.insights,
            generated_at=bundle.generated_at,
        )


class WorkflowResponse(BaseModel):
    """Serializable workflow snapshot for progress display."""
    workflow_id: str
    stage: WorkflowStage
    progress: int = Field(ge=0, le=100)
    is_complete: bool
    image_name: Optional[str] = None
    preview: Optional[str] = None
    location_fix: Optional[LocationFix] = None
    location: Optional[Location] = None
    site: Optional[SiteAnalysis] = None
    climate: Optional[ClimateProfile] = None
    suitability: Optional[SuitabilityAssessment] = None
    result: Optional[RecommendationResponse] = None
    error: Optional[WorkflowError] = None
    use_reasoning: bool

    @classmethod
    def from_state(cls, state: WorkflowState) -> "WorkflowResponse":
        return cls(
            workflow_id=state.workflow_id,
            stage=state.stage,
            progress=state.progress,
            is_complete=state.is_complete,
            image_name=state.image_name,
            preview=state.preview,
            location_fix=state.location_fix,
            location=state.location,
            site=state.site,
            climate=state.climate,
            suitability=state.suitability,
            result=RecommendationResponse.from_bundle(state.bundle) if state.bundle else None,
            error=state.error,
            use_reasoning=state.use_reasoning,
        )
