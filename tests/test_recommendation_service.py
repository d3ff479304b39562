"""
Unit tests for the recommendation application service.
"""
import pytest
from unittest.mock import AsyncMock

from reforest.domain.models import (
    EscalationTier,
    LocationSource,
    ReasoningRanking,
    ReasoningResponse,
    ReasoningStrategy,
    StrategySource,
)
from reforest.infrastructure.reasoning_client import ReasoningClient
from reforest.services.application.recommendation_service import RecommendationService
from reforest.services.domain.escalation import EscalationController
from reforest.services.domain.planting_strategy import StrategyGenerator
from reforest.services.domain.reasoning_blender import ReasoningBlender


@pytest.fixture
def collaborator():
    client = AsyncMock(spec=ReasoningClient)
    client.configured = True
    client.rank.return_value = ReasoningResponse(
        rankings=[ReasoningRanking(treeId="croton-megalocarpus", compatibilityScore=100)],
        strategy=ReasoningStrategy(density="250-350 trees/hectare", best_months=["April"], spacing="3 meters"),
    )
    return client


@pytest.fixture
def service_with_reasoning(catalog, collaborator) -> RecommendationService:
    return RecommendationService(
        escalation=EscalationController(catalog),
        blender=ReasoningBlender(collaborator),
        strategy_generator=StrategyGenerator(),
    )


# ============================================================
# Pipeline Tests
# ============================================================

class TestRecommend:
    """Tests for the full pipeline."""

    @pytest.mark.asyncio
    async def test_local_only_bundle(self, recommendation_service, make_context):
        bundle = await recommendation_service.recommend(make_context())

        assert bundle.tier is EscalationTier.STANDARD
        assert 1 <= len(bundle.recommendations) <= 5
        assert bundle.recommendations == bundle.result.entries[:5]
        assert bundle.strategy.source is StrategySource.RULES
        assert bundle.location_source is LocationSource.GPS
        assert bundle.insights is None

    @pytest.mark.asyncio
    async def test_approximate_context_defaults_to_manual_source(self, recommendation_service, make_context):
        bundle = await recommendation_service.recommend(make_context(approximate=True))

        assert bundle.location_source is LocationSource.MANUAL

    @pytest.mark.asyncio
    async def test_explicit_location_source(self, recommendation_service, make_context):
        bundle = await recommendation_service.recommend(
            make_context(approximate=True),
            location_source=LocationSource.FALLBACK,
        )

        assert bundle.location_source is LocationSource.FALLBACK

    @pytest.mark.asyncio
    async def test_hardy_fallback_bundle(self, recommendation_service, make_context):
        bundle = await recommendation_service.recommend(make_context(rainfall=50))

        assert bundle.tier is EscalationTier.HARDY_FALLBACK
        assert bundle.result.warning is not None
        assert sum(bundle.strategy.mix_ratio.values()) == 100

    @pytest.mark.asyncio
    async def test_reasoning_blends_and_supplies_strategy(
        self, service_with_reasoning, collaborator, make_context
    ):
        bundle = await service_with_reasoning.recommend(make_context())

        collaborator.rank.assert_awaited_once()
        assert bundle.result.blended
        assert bundle.recommendations[0].species.id == "croton-megalocarpus"
        assert bundle.strategy.source is StrategySource.REASONING
        assert bundle.strategy.density_min == 250
        assert bundle.insights is not None

    @pytest.mark.asyncio
    async def test_reasoning_toggle_off(self, service_with_reasoning, collaborator, make_context):
        bundle = await service_with_reasoning.recommend(make_context(), use_reasoning=False)

        collaborator.rank.assert_not_awaited()
        assert not bundle.result.blended
        assert bundle.strategy.source is StrategySource.RULES
