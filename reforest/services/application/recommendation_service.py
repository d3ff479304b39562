"""
Application service: Orchestration layer for the recommendation pipeline.
"""
from typing import Optional
import logging

from reforest.domain.models import Context, LocationSource, RecommendationBundle
from reforest.services.domain.escalation import EscalationController
from reforest.services.domain.planting_strategy import StrategyGenerator
from reforest.services.domain.reasoning_blender import BlendOutcome, ReasoningBlender, reset_scores

logger = logging.getLogger(__name__)


class RecommendationService:
    """
    Application service for species recommendations.

    Coordinates escalation, optional blending and strategy generation.
    No business logic here, only sequencing of the domain services.
    """

    def __init__(
        self,
        escalation: EscalationController,
        blender: ReasoningBlender,
        strategy_generator: StrategyGenerator,
        top_n: Optional[int] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            escalation: Tiered candidate selection
            blender: Fail-open reasoning blender
            strategy_generator: Planting strategy and impact derivation
            top_n: Number of recommendations in the bundle (defaults to the
                strategy generator's top-N)
        """
        self.escalation = escalation
        self.blender = blender
        self.strategy_generator = strategy_generator
        self.top_n = top_n or strategy_generator.config.top_n

    async def recommend(
        self,
        context: Context,
        use_reasoning: bool = True,
        location_source: Optional[LocationSource] = None,
    ) -> RecommendationBundle:
        """
        Run the recommendation pipeline for a site.

        This method orchestrates:
        1. Escalating through the candidate tiers
        2. Blending the external ranking (best effort)
        3. Deriving planting strategy and impact from the final ranking

        Args:
            context: Location, climate and site analysis
            use_reasoning: Whether to consult the reasoning collaborator
            location_source: Where the coordinates came from; inferred from
                ``context.approximate_location`` when omitted

        Returns:
            Complete RecommendationBundle

        Raises:
            CatalogConfigurationError: If no tier can produce candidates
        """
        result = self.escalation.escalate(context)
        logger.info(
            f"Escalation produced {len(result.entries)} candidates "
            f"(tier={result.tier.value})"
        )

        if use_reasoning:
            outcome = await self.blender.blend(result, context)
        else:
            outcome = BlendOutcome(result=reset_scores(result))

        final = outcome.result
        top = final.top(self.top_n)
        strategy, impact = self.strategy_generator.generate(
            top,
            context.climate,
            external=outcome.strategy,
        )

        if location_source is None:
            location_source = LocationSource.MANUAL if context.approximate_location else LocationSource.GPS

        logger.info(
            f"Recommendation bundle ready: top={top[0].species.id}, "
            f"blended={final.blended}, strategy={strategy.source.value}"
        )
        return RecommendationBundle(
            result=final,
            recommendations=top,
            strategy=strategy,
            impact=impact,
            insights=outcome.insights,
            location_source=location_source,
        )
