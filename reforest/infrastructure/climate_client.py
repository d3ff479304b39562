"""
Infrastructure layer: Open-Meteo climate client.

The only collaborator with built-in retry. When every attempt fails the
pipeline degrades to a synthetic profile instead of failing.
"""
from datetime import date, timedelta
import logging

from pydantic import ValidationError as PydanticValidationError

from reforest.config import Settings
from reforest.domain.errors import CollaboratorError
from reforest.domain.models import RawClimate
from reforest.infrastructure.api_constants import OpenMeteoEndpoints
from reforest.infrastructure.external_api_client import ExternalAPIClient, RetryPolicy

logger = logging.getLogger(__name__)


class ClimateClient(ExternalAPIClient):
    """Client for the Open-Meteo forecast API."""

    service_name = "climate"

    def __init__(
        self,
        base_url: str,
        retry_policy: RetryPolicy,
        forecast_days: int = 14,
    ):
        super().__init__(base_url=base_url, retry_policy=retry_policy)
        self.forecast_days = forecast_days

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClimateClient":
        return cls(
            base_url=settings.climate_api_base_url,
            retry_policy=RetryPolicy.from_settings(settings),
            forecast_days=settings.climate_forecast_days,
        )

    async def fetch_profile(self, latitude: float, longitude: float) -> RawClimate:
        """
        Fetch current and daily forecast series for a location.

        Raises:
            CollaboratorError: If every attempt fails or the payload is malformed
        """
        data = await self._make_request(
            "GET",
            OpenMeteoEndpoints.FORECAST,
            params=OpenMeteoEndpoints.forecast_params(latitude, longitude, self.forecast_days),
        )
        if not isinstance(data, dict):
            raise CollaboratorError(
                f"climate returned an unexpected payload: {type(data).__name__}",
                service=self.service_name,
            )
        try:
            return RawClimate(
                latitude=data.get("latitude", latitude),
                longitude=data.get("longitude", longitude),
                current=data.get("current") or {},
                daily=data.get("daily") or {},
                timezone=data.get("timezone"),
                elevation=data.get("elevation"),
            )
        except PydanticValidationError as e:
            raise CollaboratorError(
                f"climate returned a malformed profile: {e.error_count()} invalid field(s)",
                service=self.service_name,
            )

    async def fetch_profile_or_synthetic(self, latitude: float, longitude: float) -> RawClimate:
        """Fetch with retries, degrading to a synthetic profile on failure."""
        try:
            return await self.fetch_profile(latitude, longitude)
        except CollaboratorError as e:
            logger.warning(f"Climate fetch failed, using synthetic profile: {e.message}")
            return synthetic_climate(latitude, longitude)


def synthetic_climate(latitude: float, longitude: float, days: int = 14) -> RawClimate:
    """Plausible East-African highland profile used when the climate API is down."""
    today = date.today()
    return RawClimate(
        latitude=latitude,
        longitude=longitude,
        current={
            "temperature_2m": 22,
            "relative_humidity_2m": 65,
            "precipitation": 0,
            "weather_code": 2,
            "wind_speed_10m": 12,
            "soil_temperature_0cm": 20,
            "soil_moisture_0_to_1cm": 0.35,
        },
        daily={
            "time": [(today + timedelta(days=i)).isoformat() for i in range(days)],
            "temperature_2m_max": [26, 27, 25, 24, 26, 28, 27, 26, 25, 27, 28, 26, 25, 27][:days],
            "temperature_2m_min": [16, 17, 15, 16, 17, 18, 16, 15, 16, 17, 18, 16, 15, 17][:days],
            "precipitation_sum": [0, 2, 5, 0, 0, 1, 3, 0, 0, 2, 4, 1, 0, 3][:days],
            "weather_code": [1, 61, 63, 2, 0, 51, 61, 1, 2, 61, 63, 51, 1, 61][:days],
            "wind_speed_10m_max": [15, 18, 20, 12, 10, 16, 19, 14, 11, 17, 21, 15, 12, 18][:days],
        },
        timezone="Africa/Nairobi",
        elevation=1795,
        is_synthetic=True,
    )
