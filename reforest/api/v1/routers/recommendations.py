"""
API router for direct recommendation requests.
"""
from fastapi import APIRouter

from reforest.api.dependencies import RecommendationServiceDep
from reforest.api.v1.models.requests import RecommendationRequest
from reforest.api.v1.models.responses import RecommendationResponse


router = APIRouter(
    prefix="/recommendations",
    tags=["recommendations"],
)


@router.post(
    "",
    response_model=RecommendationResponse,
    summary="Recommend species for a site",
    description="""
    Run the recommendation pipeline for an already gathered site context.

    The pipeline:
    1. Selects candidates through three escalation tiers (standard, relaxed
       for approximate locations, hardy fallback) so the result is never empty
    2. Optionally blends an external reasoning ranking into the local scores
    3. Derives a planting strategy and projected impact from the top species
    """,
    responses={
        200: {"description": "Ranked recommendations with strategy and impact"},
        429: {"description": "Rate limit exceeded"},
        500: {"description": "Species catalog misconfiguration"},
    },
)
async def create_recommendation(
    request: RecommendationRequest,
    recommendation_service: RecommendationServiceDep,
) -> RecommendationResponse:
    """
    Recommend species for a site context.

    Args:
        request: Site context and reasoning toggle
        recommendation_service: Recommendation service (injected dependency)

    Returns:
        RecommendationResponse for the context
    """
    bundle = await recommendation_service.recommend(
        request.to_context(),
        use_reasoning=request.use_reasoning,
    )
    return RecommendationResponse.from_bundle(bundle)
