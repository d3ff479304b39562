"""
Tree species catalog.

Curated for East African and dryland reforestation. Loaded once and
never mutated; every escalation tier selects from this set.
"""
from functools import lru_cache
from typing import Iterable, List, Optional

from reforest.domain.errors import CatalogConfigurationError
from reforest.domain.models import Species, WaterNeed


SPECIES_DATA: list[dict] = [
    {
        "id": "grevillea-robusta",
        "common_name": "Silky Oak",
        "scientific_name": "Grevillea robusta",
        "family": "Proteaceae",
        "temp_range": {"min": 15, "max": 30},
        "rainfall_range": {"min": 600, "max": 1500},
        "soil_types": ["clay", "loam", "sandy"],
        "water_needs": "moderate",
        "growth_rate": "fast",
        "max_height": 30,
        "carbon_sequestration": 45,
        "biodiversity_value": 85,
        "nitrogen_fixing": True,
        "native_regions": ["Australia"],
        "benefits": ["Fast-growing timber", "Drought-resistant", "Good for agroforestry"],
    },
    {
        "id": "acacia-mearnsii",
        "common_name": "Black Wattle",
        "scientific_name": "Acacia mearnsii",
        "family": "Fabaceae",
        "temp_range": {"min": 10, "max": 28},
        "rainfall_range": {"min": 700, "max": 1800},
        "soil_types": ["clay", "loam"],
        "water_needs": "high",
        "growth_rate": "very-fast",
        "max_height": 25,
        "carbon_sequestration": 55,
        "biodiversity_value": 90,
        "nitrogen_fixing": True,
        "native_regions": ["Australia"],
        "benefits": ["Excellent carbon sink", "Soil improvement", "Valuable tannin"],
    },
    {
        "id": "croton-megalocarpus",
        "common_name": "Musine",
        "scientific_name": "Croton megalocarpus",
        "family": "Euphorbiaceae",
        "temp_range": {"min": 12, "max": 26},
        "rainfall_range": {"min": 800, "max": 1600},
        "soil_types": ["loam", "clay"],
        "water_needs": "moderate",
        "growth_rate": "moderate",
        "max_height": 35,
        "carbon_sequestration": 50,
        "biodiversity_value": 95,
        "native_regions": ["Kenya", "Tanzania", "Uganda"],
        "benefits": ["Indigenous species", "Medicinal properties", "Wildlife habitat"],
    },
    {
        "id": "melia-volkensii",
        "common_name": "Mukau",
        "scientific_name": "Melia volkensii",
        "family": "Meliaceae",
        "temp_range": {"min": 20, "max": 35},
        "rainfall_range": {"min": 300, "max": 900},
        "soil_types": ["sandy", "loam", "poor"],
        "water_needs": "very-low",
        "growth_rate": "fast",
        "max_height": 20,
        "carbon_sequestration": 38,
        "biodiversity_value": 80,
        "native_regions": ["Kenya", "Somalia", "Ethiopia", "Tanzania"],
        "hardy": True,
        "benefits": ["Dryland specialist", "Valuable timber", "Low maintenance"],
    },
    {
        "id": "markhamia-lutea",
        "common_name": "Nile Tulip",
        "scientific_name": "Markhamia lutea",
        "family": "Bignoniaceae",
        "temp_range": {"min": 15, "max": 30},
        "rainfall_range": {"min": 900, "max": 1800},
        "soil_types": ["loam", "clay"],
        "water_needs": "moderate-high",
        "growth_rate": "fast",
        "max_height": 25,
        "carbon_sequestration": 48,
        "biodiversity_value": 92,
        "native_regions": ["Kenya", "Uganda", "Tanzania", "Rwanda"],
        "benefits": ["Quality timber", "Medicinal bark", "Attracts pollinators"],
    },
    {
        "id": "vachellia-tortilis",
        "common_name": "Umbrella Thorn",
        "scientific_name": "Vachellia tortilis",
        "family": "Fabaceae",
        "temp_range": {"min": 18, "max": 40},
        "rainfall_range": {"min": 100, "max": 1000},
        "soil_types": ["sandy", "rocky", "loam", "clay"],
        "water_needs": "low",
        "growth_rate": "slow",
        "max_height": 20,
        "carbon_sequestration": 25,
        "biodiversity_value": 75,
        "nitrogen_fixing": True,
        "native_regions": ["Kenya", "Ethiopia", "Somalia", "Sudan", "Tanzania", "Egypt"],
        "hardy": True,
        "benefits": ["Extreme drought tolerance", "Fodder pods", "Shade for livestock"],
    },
    {
        "id": "faidherbia-albida",
        "common_name": "Apple-ring Acacia",
        "scientific_name": "Faidherbia albida",
        "family": "Fabaceae",
        "temp_range": {"min": 18, "max": 35},
        "rainfall_range": {"min": 250, "max": 1200},
        "soil_types": ["sandy", "loam", "clay"],
        "water_needs": "low",
        "growth_rate": "moderate",
        "max_height": 30,
        "carbon_sequestration": 40,
        "biodiversity_value": 85,
        "nitrogen_fixing": True,
        "native_regions": ["Kenya", "Ethiopia", "Sudan", "Nigeria", "Senegal", "Malawi", "Zambia"],
        "hardy": True,
        "benefits": ["Fertility tree for crops", "Dry-season fodder", "Reverse phenology"],
    },
    {
        "id": "moringa-oleifera",
        "common_name": "Drumstick Tree",
        "scientific_name": "Moringa oleifera",
        "family": "Moringaceae",
        "temp_range": {"min": 20, "max": 38},
        "rainfall_range": {"min": 250, "max": 1500},
        "soil_types": ["sandy", "loam"],
        "water_needs": "low",
        "growth_rate": "very-fast",
        "max_height": 12,
        "carbon_sequestration": 20,
        "biodiversity_value": 60,
        "native_regions": ["India", "Pakistan"],
        "high_adaptability": True,
        "benefits": ["Edible leaves", "Fast establishment", "Water purification seeds"],
    },
    {
        "id": "azadirachta-indica",
        "common_name": "Neem",
        "scientific_name": "Azadirachta indica",
        "family": "Meliaceae",
        "temp_range": {"min": 21, "max": 38},
        "rainfall_range": {"min": 400, "max": 1200},
        "soil_types": ["sandy", "loam", "rocky", "clay"],
        "water_needs": "low",
        "growth_rate": "fast",
        "max_height": 20,
        "carbon_sequestration": 35,
        "biodiversity_value": 70,
        "native_regions": ["India", "Myanmar", "Bangladesh"],
        "hardy": True,
        "benefits": ["Natural pesticide", "Shade tree", "Tolerates poor soils"],
    },
    {
        "id": "prunus-africana",
        "common_name": "African Cherry",
        "scientific_name": "Prunus africana",
        "family": "Rosaceae",
        "temp_range": {"min": 10, "max": 22},
        "rainfall_range": {"min": 900, "max": 2000},
        "soil_types": ["loam", "clay"],
        "water_needs": "moderate",
        "growth_rate": "slow",
        "max_height": 30,
        "carbon_sequestration": 42,
        "biodiversity_value": 95,
        "native_regions": ["Kenya", "Cameroon", "Uganda", "Ethiopia", "Madagascar"],
        "benefits": ["Montane forest restoration", "Medicinal bark", "Bird habitat"],
    },
    {
        "id": "cordia-africana",
        "common_name": "Large-leaved Cordia",
        "scientific_name": "Cordia africana",
        "family": "Boraginaceae",
        "temp_range": {"min": 15, "max": 30},
        "rainfall_range": {"min": 700, "max": 2000},
        "soil_types": ["loam", "sandy"],
        "water_needs": "moderate",
        "growth_rate": "fast",
        "max_height": 15,
        "carbon_sequestration": 30,
        "biodiversity_value": 85,
        "native_regions": ["Kenya", "Ethiopia", "Uganda", "Tanzania", "Sudan"],
        "benefits": ["Furniture timber", "Bee forage", "Coffee shade"],
    },
]


class Catalog:
    """
    Read-only set of species records.

    The hardy fallback tier depends on at least one entry being hardy,
    low-water-need or highly adaptable; ``validate`` enforces that.
    """

    def __init__(self, species: Iterable[Species]):
        self._species: tuple[Species, ...] = tuple(species)
        self._by_id = {s.id: s for s in self._species}

    def __len__(self) -> int:
        return len(self._species)

    def __iter__(self):
        return iter(self._species)

    def all(self) -> List[Species]:
        return list(self._species)

    def get(self, species_id: str) -> Optional[Species]:
        return self._by_id.get(species_id)

    def validate(self) -> "Catalog":
        if not self._species:
            raise CatalogConfigurationError("Species catalog is empty")
        if not any(is_hardy_candidate(s) for s in self._species):
            raise CatalogConfigurationError(
                "Species catalog has no hardy, low-water or adaptable species"
            )
        return self


def is_hardy_candidate(species: Species) -> bool:
    return (
        species.hardy
        or species.high_adaptability
        or species.water_needs in (WaterNeed.LOW, WaterNeed.VERY_LOW)
    )


@lru_cache(maxsize=1)
def load_catalog() -> Catalog:
    """Build and validate the bundled catalog once per process."""
    return Catalog(Species(**record) for record in SPECIES_DATA).validate()
