"""
Dependency injection for FastAPI.

This is the composition root: the only place that reads the global
``settings`` and turns it into explicit configuration values.
"""
from typing import Annotated, Optional

from fastapi import Depends

from reforest.config import settings
from reforest.domain.catalog import Catalog, load_catalog
from reforest.infrastructure.climate_client import ClimateClient
from reforest.infrastructure.geocoding_client import GeocodingClient
from reforest.infrastructure.image_analysis import ImageAnalyzer, ImageConfig
from reforest.infrastructure.reasoning_client import ReasoningClient
from reforest.services.application.recommendation_service import RecommendationService
from reforest.services.application.workflow import (
    WorkflowConfig,
    WorkflowOrchestrator,
    WorkflowRegistry,
)
from reforest.services.domain.compatibility_scorer import CompatibilityScorer, ScoringConfig
from reforest.services.domain.escalation import EscalationConfig, EscalationController
from reforest.services.domain.planting_strategy import StrategyConfig, StrategyGenerator
from reforest.services.domain.reasoning_blender import BlendConfig, ReasoningBlender


# Singleton instances
_climate_client: Optional[ClimateClient] = None
_geocoding_client: Optional[GeocodingClient] = None
_reasoning_client: Optional[ReasoningClient] = None
_workflow_registry: Optional[WorkflowRegistry] = None


def get_climate_client() -> ClimateClient:
    """Get or create the singleton climate client."""
    global _climate_client
    if _climate_client is None:
        _climate_client = ClimateClient.from_settings(settings)
    return _climate_client


def get_geocoding_client() -> GeocodingClient:
    """Get or create the singleton geocoding client."""
    global _geocoding_client
    if _geocoding_client is None:
        _geocoding_client = GeocodingClient.from_settings(settings)
    return _geocoding_client


def get_reasoning_client() -> ReasoningClient:
    """Get or create the singleton reasoning client."""
    global _reasoning_client
    if _reasoning_client is None:
        _reasoning_client = ReasoningClient.from_settings(settings)
    return _reasoning_client


def get_catalog() -> Catalog:
    """
    Dependency factory for the species catalog.

    Returns:
        Validated Catalog (loaded once)
    """
    return load_catalog()


def get_image_analyzer() -> ImageAnalyzer:
    return ImageAnalyzer(ImageConfig.from_settings(settings))


def get_recommendation_service(
    catalog: Annotated[Catalog, Depends(get_catalog)],
    reasoning_client: Annotated[ReasoningClient, Depends(get_reasoning_client)],
) -> RecommendationService:
    """
    Dependency factory for RecommendationService.

    Args:
        catalog: Species catalog (injected)
        reasoning_client: Reasoning collaborator (injected)

    Returns:
        RecommendationService instance
    """
    scorer = CompatibilityScorer(ScoringConfig.from_settings(settings))
    escalation = EscalationController(
        catalog,
        scorer=scorer,
        config=EscalationConfig.from_settings(settings),
    )
    blender = ReasoningBlender(
        collaborator=reasoning_client if settings.reasoning_enabled else None,
        config=BlendConfig.from_settings(settings),
    )
    return RecommendationService(
        escalation=escalation,
        blender=blender,
        strategy_generator=StrategyGenerator(StrategyConfig.from_settings(settings)),
    )


def build_workflow() -> WorkflowOrchestrator:
    """Assemble a new orchestrator from the shared collaborators."""
    return WorkflowOrchestrator(
        images=get_image_analyzer(),
        geocoder=get_geocoding_client(),
        climate=get_climate_client(),
        recommender=get_recommendation_service(get_catalog(), get_reasoning_client()),
        config=WorkflowConfig.from_settings(settings),
    )


def get_workflow_registry() -> WorkflowRegistry:
    """Get or create the singleton in-memory workflow registry."""
    global _workflow_registry
    if _workflow_registry is None:
        _workflow_registry = WorkflowRegistry(build_workflow)
    return _workflow_registry


async def shutdown_dependencies() -> None:
    """Tear down workflows and close HTTP clients."""
    global _climate_client, _geocoding_client, _reasoning_client, _workflow_registry
    if _workflow_registry is not None:
        _workflow_registry.close_all()
        _workflow_registry = None
    for client in (_climate_client, _geocoding_client, _reasoning_client):
        if client is not None:
            await client.close()
    _climate_client = _geocoding_client = _reasoning_client = None


# Type aliases for cleaner route signatures
RecommendationServiceDep = Annotated[RecommendationService, Depends(get_recommendation_service)]
WorkflowRegistryDep = Annotated[WorkflowRegistry, Depends(get_workflow_registry)]
