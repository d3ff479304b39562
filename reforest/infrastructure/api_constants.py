"""
API endpoint constants and configuration.

This module contains all external API endpoint paths and related constants.
Centralizing these values makes it easy to swap out endpoints or update API versions.
"""


# Open-Meteo API Endpoints
class OpenMeteoEndpoints:
    """Open-Meteo forecast endpoint and requested variables."""

    FORECAST = "/forecast"

    CURRENT_VARIABLES = (
        "temperature_2m",
        "relative_humidity_2m",
        "precipitation",
        "weather_code",
        "wind_speed_10m",
        "soil_temperature_0cm",
        "soil_moisture_0_to_1cm",
    )
    DAILY_VARIABLES = (
        "temperature_2m_max",
        "temperature_2m_min",
        "precipitation_sum",
        "weather_code",
        "wind_speed_10m_max",
    )

    @classmethod
    def forecast_params(cls, latitude: float, longitude: float, days: int) -> dict:
        """
        Build query parameters for a forecast request.

        Args:
            latitude: Site latitude
            longitude: Site longitude
            days: Number of forecast days

        Returns:
            Query parameter dictionary
        """
        return {
            "latitude": latitude,
            "longitude": longitude,
            "current": ",".join(cls.CURRENT_VARIABLES),
            "daily": ",".join(cls.DAILY_VARIABLES),
            "timezone": "auto",
            "forecast_days": days,
        }


# Nominatim API Endpoints
class NominatimEndpoints:
    """Nominatim reverse geocoding endpoint."""

    REVERSE = "/reverse"

    @classmethod
    def reverse_params(cls, latitude: float, longitude: float) -> dict:
        return {
            "lat": latitude,
            "lon": longitude,
            "format": "json",
            "addressdetails": 1,
        }


# OpenAI-compatible API Endpoints
class ReasoningEndpoints:
    """Chat completions endpoint used for candidate re-ranking."""

    CHAT_COMPLETIONS = "/chat/completions"


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"

    # Timeouts (in seconds)
    DEFAULT_TIMEOUT = 30.0

    # Reasoning request shaping
    REASONING_TEMPERATURE = 0.7
    REASONING_MAX_TOKENS = 2500
