"""
Infrastructure layer: external reasoning (LLM) client.

Sends a short list of candidate species with the site context to an
OpenAI-compatible chat completions endpoint and parses a JSON ranking.
"""
from typing import List
import json
import logging
import re

import pydantic

from reforest.config import Settings
from reforest.domain.errors import CollaboratorError, ReasoningError
from reforest.domain.models import Context, ReasoningResponse, ScoredSpecies
from reforest.infrastructure.api_constants import APIConstants, ReasoningEndpoints
from reforest.infrastructure.external_api_client import ExternalAPIClient

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)

SYSTEM_PROMPT = """You are an expert arborist and reforestation specialist with deep knowledge of:
- Tree species ecology and native ranges
- Climate adaptation and soil requirements
- Sustainable forestry practices
- Carbon sequestration and biodiversity

Your role is to analyze reforestation sites and provide expert, actionable tree planting recommendations.
Always answer with a single JSON object."""


def build_prompt(candidates: List[ScoredSpecies], context: Context) -> str:
    """Render the site context and candidate list into the ranking request."""
    location = context.location
    climate = context.climate
    site = context.site

    lines = [
        "I need expert advice for reforestation at this location:",
        "",
        "LOCATION:",
        f"- City: {location.city}, {location.country}",
        f"- Region: {location.region or 'Not specified'}",
        f"- Coordinates: {location.coordinates.latitude:.4f}, {location.coordinates.longitude:.4f}",
        f"- Location source: {'approximate' if context.approximate_location else 'GPS'}",
        "",
        "CLIMATE CONDITIONS:",
        f"- Current Temperature: {climate.current_temperature}°C",
        f"- Annual Rainfall: {climate.annual_rainfall}mm",
        f"- Climate Type: {climate.climate_type}",
        f"- Temperature Zone: {climate.temp_zone}",
        f"- Soil Moisture: {climate.soil_moisture.value}",
        "",
        "SITE ANALYSIS:",
        f"- Soil Type: {site.soil_type}",
        f"- Vegetation Level: {site.vegetation_level.value}",
        "",
        "CANDIDATE TREE SPECIES (already filtered for climate compatibility):",
    ]
    for i, entry in enumerate(candidates, start=1):
        species = entry.species
        lines.extend([
            f"{i}. id={species.id} {species.common_name} ({species.scientific_name})",
            f"   - Growth Rate: {species.growth_rate.value}, Max Height: {species.max_height}m",
            f"   - Carbon Sequestration: {species.carbon_sequestration} kg CO2/year",
            f"   - Water Needs: {species.water_needs.value}",
            f"   - Soil Types: {', '.join(species.soil_types)}",
            f"   - Local score: {entry.base_score:.0f}/100",
        ])
    lines.extend([
        "",
        f"Rank these trees from BEST to WORST for this site (1-{len(candidates)}), give each a",
        "compatibility score (0-100) with brief reasoning, and recommend a planting strategy.",
        "",
        "Respond with JSON of this shape:",
        json.dumps({
            "rankings": [{
                "treeId": "species-id",
                "rank": 1,
                "compatibilityScore": 95,
                "reasoning": "Why this tree suits the site",
                "specificAdvice": "Care instructions",
            }],
            "plantingStrategy": {
                "density": "400-500 trees/hectare",
                "bestMonths": ["March", "April", "May"],
                "spacing": "2-3 meters",
            },
            "sitePreparation": ["Tip 1", "Tip 2"],
            "additionalInsights": "Other considerations",
        }, indent=2),
    ])
    return "\n".join(lines)


def parse_reasoning_content(content: str) -> ReasoningResponse:
    """
    Parse the model's message content, tolerating markdown code fences.

    Raises:
        ReasoningError: If the content is not a valid ranking document
    """
    match = _FENCED_JSON.search(content)
    payload = match.group(1) if match else content
    try:
        return ReasoningResponse.model_validate(json.loads(payload))
    except (json.JSONDecodeError, pydantic.ValidationError) as e:
        raise ReasoningError(f"Malformed reasoning response: {str(e)}")


class ReasoningClient(ExternalAPIClient):
    """Client for the OpenAI-compatible reasoning service. Never retried."""

    service_name = "reasoning"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = APIConstants.DEFAULT_TIMEOUT,
        enabled: bool = True,
    ):
        super().__init__(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": APIConstants.CONTENT_TYPE_JSON,
            },
            timeout=timeout,
        )
        self.api_key = api_key
        self.model = model
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReasoningClient":
        return cls(
            base_url=settings.reasoning_api_base_url,
            api_key=settings.reasoning_api_key,
            model=settings.reasoning_model,
            timeout=settings.reasoning_timeout,
            enabled=settings.reasoning_enabled,
        )

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.api_key.strip())

    async def rank(self, candidates: List[ScoredSpecies], context: Context) -> ReasoningResponse:
        """
        Ask the reasoning service to rank candidates for the site.

        Raises:
            ReasoningError: If unconfigured, the call fails or the reply is malformed
        """
        if not self.configured:
            raise ReasoningError("Reasoning service is not configured")

        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(candidates, context)},
            ],
            "temperature": APIConstants.REASONING_TEMPERATURE,
            "max_tokens": APIConstants.REASONING_MAX_TOKENS,
            "response_format": {"type": "json_object"},
        }
        try:
            data = await self._make_request("POST", ReasoningEndpoints.CHAT_COMPLETIONS, json=body)
        except CollaboratorError as e:
            raise ReasoningError(e.message)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ReasoningError("Reasoning response has no message content")

        usage = data.get("usage") or {}
        logger.info(f"Reasoning call used {usage.get('total_tokens', 0)} tokens")
        return parse_reasoning_content(content or "")
