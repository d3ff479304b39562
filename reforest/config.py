"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Climate API Configuration
    climate_api_base_url: str = Field(
        default="https://api.open-meteo.com/v1",
        description="Base URL for the Open-Meteo forecast API"
    )
    climate_forecast_days: int = Field(
        default=14,
        description="Number of forecast days used to estimate the climate profile"
    )

    # Geocoding API Configuration
    geocoding_api_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        description="Base URL for the Nominatim reverse geocoding API"
    )
    geocoding_user_agent: str = Field(
        default="ReforestAI/1.0",
        description="User-Agent sent to Nominatim (required by its usage policy)"
    )

    # Reasoning API Configuration
    reasoning_enabled: bool = Field(
        default=True,
        description="Whether external reasoning may be used to re-rank candidates"
    )
    reasoning_api_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL for the OpenAI-compatible chat completions API"
    )
    reasoning_api_key: str = Field(
        default="",
        description="API key for the reasoning service (empty disables reasoning)"
    )
    reasoning_model: str = Field(
        default="gpt-4o",
        description="Model used for candidate re-ranking"
    )
    reasoning_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a reasoning call"
    )

    # Retry Configuration (climate fetch only)
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of attempts for climate API calls"
    )
    retry_backoff_multiplier: float = Field(
        default=1.0,
        description="Multiplier for exponential backoff (first wait in seconds)"
    )
    retry_min_wait: float = Field(
        default=1.0,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: float = Field(
        default=4.0,
        description="Maximum wait time in seconds between retries"
    )

    # Recommendation Parameters
    relaxed_tolerance_buffer: float = Field(
        default=5.0,
        description="Degrees Celsius added to both temperature bounds in the relaxed tier"
    )
    relaxed_rainfall_per_degree: float = Field(
        default=40.0,
        description="Millimetres of rainfall tolerance added per degree of buffer"
    )
    hardy_fallback_score: float = Field(
        default=60.0,
        description="Fixed score assigned to hardy fallback species"
    )
    hardy_fallback_limit: int = Field(
        default=7,
        description="Maximum number of hardy fallback species returned"
    )
    carbon_reference_max: float = Field(
        default=70.0,
        description="Highest realistic carbon rate (kg CO2/year/tree) used for normalisation"
    )
    blend_local_weight: float = Field(
        default=0.4,
        description="Weight of the local compatibility score when blending"
    )
    blend_external_weight: float = Field(
        default=0.6,
        description="Weight of the external reasoning score when blending"
    )
    reasoning_top_k: int = Field(
        default=8,
        description="Number of top candidates sent to the reasoning service"
    )
    top_recommendations_count: int = Field(
        default=5,
        description="Number of species included in the final recommendation"
    )
    primary_mix_share: int = Field(
        default=45,
        description="Percentage of the planting mix given to the top species"
    )
    carbon_price_per_ton: float = Field(
        default=10.0,
        description="Carbon credit price in USD per tonne CO2"
    )
    timber_value_per_tree: float = Field(
        default=50.0,
        description="Simplified timber value in USD per planted tree"
    )
    survival_factor: float = Field(
        default=0.95,
        description="Yearly survival factor used for long-term sequestration"
    )

    # Upload Constraints
    max_upload_bytes: int = Field(
        default=15 * 1024 * 1024,
        description="Maximum accepted image size in bytes"
    )
    allowed_image_types: list[str] = Field(
        default=["image/jpeg", "image/jpg", "image/png", "image/heic", "image/heif"],
        description="Accepted image MIME types"
    )

    # Default location used when an image carries no GPS metadata
    default_latitude: float = Field(default=-1.2921)
    default_longitude: float = Field(default=36.8219)

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="ReForest AI Recommendation Service",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Composition-root settings instance. Core components receive explicit
# config values built from it and never import it themselves.
settings = Settings()
