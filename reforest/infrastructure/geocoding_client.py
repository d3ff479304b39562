"""
Infrastructure layer: Nominatim reverse geocoding client.
"""
from typing import Any, Dict
import math
import logging

from reforest.config import Settings
from reforest.domain.errors import CollaboratorError, SuggestedAction, ValidationError
from reforest.domain.models import Place
from reforest.infrastructure.api_constants import NominatimEndpoints
from reforest.infrastructure.external_api_client import ExternalAPIClient

logger = logging.getLogger(__name__)


def validate_coordinates(latitude: float, longitude: float) -> None:
    """
    Raise a ValidationError unless the pair is a valid WGS84 position.
    """
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        raise ValidationError(
            "Coordinates must be numbers",
            suggested_action=SuggestedAction.SUPPLY_LOCATION,
        )
    if math.isnan(lat) or math.isnan(lon):
        raise ValidationError(
            "Coordinates must be numbers",
            suggested_action=SuggestedAction.SUPPLY_LOCATION,
        )
    if not -90 <= lat <= 90:
        raise ValidationError(
            f"Latitude {lat} is outside [-90, 90]",
            suggested_action=SuggestedAction.SUPPLY_LOCATION,
        )
    if not -180 <= lon <= 180:
        raise ValidationError(
            f"Longitude {lon} is outside [-180, 180]",
            suggested_action=SuggestedAction.SUPPLY_LOCATION,
        )


def _extract_city(address: Dict[str, Any]) -> str:
    for key in ("city", "town", "village", "municipality", "county"):
        if address.get(key):
            return address[key]
    return "Unknown"


class GeocodingClient(ExternalAPIClient):
    """Client for Nominatim reverse geocoding. Never retried."""

    service_name = "geocoding"

    def __init__(self, base_url: str, user_agent: str):
        super().__init__(base_url=base_url, headers={"User-Agent": user_agent})

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeocodingClient":
        return cls(
            base_url=settings.geocoding_api_base_url,
            user_agent=settings.geocoding_user_agent,
        )

    async def resolve_place(self, latitude: float, longitude: float) -> Place:
        """
        Resolve coordinates to a place name.

        Raises:
            ValidationError: If the coordinates are invalid
            CollaboratorError: If the geocoding request fails
        """
        validate_coordinates(latitude, longitude)
        data = await self._make_request(
            "GET",
            NominatimEndpoints.REVERSE,
            params=NominatimEndpoints.reverse_params(latitude, longitude),
        )
        if "error" in data:
            raise CollaboratorError(
                f"geocoding failed: {data['error']}",
                service=self.service_name,
            )

        address = data.get("address") or {}
        place = Place(
            city=_extract_city(address),
            country=address.get("country") or "Unknown",
            region=address.get("state") or address.get("region") or "",
            country_code=(address.get("country_code") or "").upper(),
            display_name=data.get("display_name") or f"{latitude:.4f}, {longitude:.4f}",
        )
        logger.info(f"Resolved ({latitude:.4f}, {longitude:.4f}) to {place.city}, {place.country}")
        return place
