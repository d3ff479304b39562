"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Site context and species factories
- The bundled species catalog
- Sample climate payloads and images
- Mock collaborators for the workflow
- FastAPI test client
"""
import io

import pytest
from typing import Callable
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from PIL import Image

from reforest.main import app
from reforest.domain.catalog import Catalog, load_catalog
from reforest.domain.models import (
    ClimateProfile,
    Context,
    Coordinates,
    Location,
    LocationFix,
    LocationSource,
    MoistureLevel,
    Place,
    RawClimate,
    SiteAnalysis,
    Species,
    VegetationLevel,
)
from reforest.infrastructure.climate_client import ClimateClient
from reforest.infrastructure.geocoding_client import GeocodingClient
from reforest.infrastructure.image_analysis import ImageAnalyzer, UploadedImage
from reforest.services.application.recommendation_service import RecommendationService
from reforest.services.application.workflow import WorkflowOrchestrator
from reforest.services.domain.escalation import EscalationController
from reforest.services.domain.planting_strategy import StrategyGenerator
from reforest.services.domain.reasoning_blender import ReasoningBlender


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def make_context() -> Callable[..., Context]:
    """Factory for site contexts; defaults to a mild Nairobi-like site."""

    def _make(
        temperature: float = 22,
        rainfall: float = 1000,
        soil: str = "loam",
        moisture: MoistureLevel = MoistureLevel.MODERATE,
        country: str = "Kenya",
        region: str = "Nairobi County",
        approximate: bool = False,
        best_months=None,
    ) -> Context:
        return Context(
            location=Location(
                coordinates=Coordinates(latitude=-1.2921, longitude=36.8219),
                city="Nairobi",
                country=country,
                region=region,
            ),
            climate=ClimateProfile(
                current_temperature=temperature,
                annual_rainfall=rainfall,
                soil_moisture=moisture,
                best_months=best_months if best_months is not None else ["March", "April", "May"],
            ),
            site=SiteAnalysis(soil_type=soil, vegetation_level=VegetationLevel.SPARSE),
            approximate_location=approximate,
        )

    return _make


@pytest.fixture
def make_species() -> Callable[..., Species]:
    """Factory for catalog entries with sensible defaults."""

    def _make(species_id: str = "test-species", **overrides) -> Species:
        data = {
            "id": species_id,
            "common_name": species_id.replace("-", " ").title(),
            "scientific_name": "Testus species",
            "temp_range": {"min": 15, "max": 29},
            "rainfall_range": {"min": 600, "max": 1400},
            "soil_types": ["loam"],
            "water_needs": "moderate",
            "growth_rate": "fast",
            "max_height": 20,
            "carbon_sequestration": 35,
            "biodiversity_value": 80,
            "native_regions": [],
        }
        data.update(overrides)
        return Species(**data)

    return _make


@pytest.fixture
def catalog() -> Catalog:
    """The bundled species catalog."""
    return load_catalog()


@pytest.fixture
def sample_forecast() -> dict:
    """Open-Meteo style forecast payload."""
    return {
        "latitude": -1.29,
        "longitude": 36.82,
        "timezone": "Africa/Nairobi",
        "elevation": 1661,
        "current": {
            "temperature_2m": 21.5,
            "relative_humidity_2m": 60,
            "soil_moisture_0_to_1cm": 0.31,
        },
        "daily": {
            "time": ["2024-03-01", "2024-03-02", "2024-03-03", "2024-03-04"],
            "temperature_2m_max": [26, 27, 25, 26],
            "temperature_2m_min": [14, 15, 13, 14],
            "precipitation_sum": [2, 4, 0, 5],
        },
    }


@pytest.fixture
def sample_raw_climate(sample_forecast) -> RawClimate:
    return RawClimate(
        latitude=sample_forecast["latitude"],
        longitude=sample_forecast["longitude"],
        current=sample_forecast["current"],
        daily=sample_forecast["daily"],
    )


def _png_bytes(color=(120, 150, 60), size=(32, 32)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def sample_image() -> UploadedImage:
    """A small valid PNG without EXIF data."""
    return UploadedImage(filename="site.png", content_type="image/png", data=_png_bytes())


@pytest.fixture
def png_bytes() -> Callable[..., bytes]:
    return _png_bytes


# ============================================================
# Mock Collaborator Fixtures
# ============================================================

@pytest.fixture
def gps_fix() -> LocationFix:
    return LocationFix(
        latitude=-1.2921,
        longitude=36.8219,
        has_coordinates=True,
        source=LocationSource.GPS,
    )


@pytest.fixture
def mock_images(gps_fix):
    """Image analyzer that validates, finds GPS and classifies loam."""
    images = AsyncMock(spec=ImageAnalyzer)
    images.validate.return_value = None
    images.extract_location.return_value = gps_fix
    images.create_preview.return_value = "data:image/jpeg;base64,AAAA"
    images.classify_site.return_value = SiteAnalysis(
        soil_type="loam",
        vegetation_level=VegetationLevel.SPARSE,
    )
    return images


@pytest.fixture
def mock_geocoder():
    geocoder = AsyncMock(spec=GeocodingClient)
    geocoder.resolve_place.return_value = Place(
        city="Nairobi",
        country="Kenya",
        region="Nairobi County",
    )
    return geocoder


@pytest.fixture
def mock_climate(sample_raw_climate):
    climate = AsyncMock(spec=ClimateClient)
    climate.fetch_profile_or_synthetic.return_value = sample_raw_climate
    return climate


@pytest.fixture
def recommendation_service(catalog) -> RecommendationService:
    """Real pipeline without a reasoning collaborator."""
    return RecommendationService(
        escalation=EscalationController(catalog),
        blender=ReasoningBlender(),
        strategy_generator=StrategyGenerator(),
    )


@pytest.fixture
def orchestrator(mock_images, mock_geocoder, mock_climate, recommendation_service) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(
        images=mock_images,
        geocoder=mock_geocoder,
        climate=mock_climate,
        recommender=recommendation_service,
    )


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)
