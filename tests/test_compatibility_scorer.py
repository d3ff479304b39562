"""
Unit tests for the compatibility scorer.

Tests cover:
- Point budget per component
- Linear decay from the tolerance midpoint
- Hard rainfall cutoff
- Native region matching and overrides
- Score bounds and determinism
"""
import pytest

from reforest.domain.models import MoistureLevel, ToleranceRange, WaterNeed
from reforest.services.domain.compatibility_scorer import (
    CompatibilityScorer,
    ScoringConfig,
    decay_from_midpoint,
    moisture_matches,
)


@pytest.fixture
def scorer() -> CompatibilityScorer:
    return CompatibilityScorer()


# ============================================================
# Component Tests
# ============================================================

class TestScoreComponents:
    """Tests for the individual point components."""

    def test_ideal_site_component_points(self, scorer, make_species, make_context):
        """A site at both midpoints should get full climate points."""
        species = make_species()
        breakdown = scorer.breakdown(species, make_context())

        assert breakdown.temperature == pytest.approx(30)
        assert breakdown.rainfall == pytest.approx(25)
        assert breakdown.soil == 15
        assert breakdown.moisture == 10
        assert breakdown.native == 0
        assert breakdown.biodiversity == pytest.approx(4.0)
        assert breakdown.carbon == pytest.approx(2.5)
        assert breakdown.total == pytest.approx(86.5)

    def test_temperature_decays_linearly(self, scorer, make_species, make_context):
        """Half-way to the range edge should give half the temperature points."""
        species = make_species(temp_range={"min": 15, "max": 29})
        breakdown = scorer.breakdown(species, make_context(temperature=25.5))

        assert breakdown.temperature == pytest.approx(15)

    def test_temperature_outside_range_floors_at_zero(self, scorer, make_species, make_context):
        """Temperatures beyond the range earn nothing, never negative points."""
        species = make_species()
        breakdown = scorer.breakdown(species, make_context(temperature=45))

        assert breakdown.temperature == 0

    @pytest.mark.parametrize("rainfall", [1401, 1500, 5000, 599, 0])
    def test_rainfall_outside_range_is_zero(self, scorer, make_species, make_context, rainfall):
        """Rainfall outside the tolerated range always scores exactly 0."""
        species = make_species(rainfall_range={"min": 600, "max": 1400})
        breakdown = scorer.breakdown(species, make_context(rainfall=rainfall))

        assert breakdown.rainfall == 0
        assert "rainfall outside tolerated range" in breakdown.notes

    def test_soil_mismatch_scores_zero(self, scorer, make_species, make_context):
        species = make_species(soil_types=["clay"])
        breakdown = scorer.breakdown(species, make_context(soil="sandy"))

        assert breakdown.soil == 0

    def test_soil_match_is_case_insensitive(self, scorer, make_species, make_context):
        species = make_species(soil_types=["loam"])
        breakdown = scorer.breakdown(species, make_context(soil=" Loam "))

        assert breakdown.soil == 15

    def test_moisture_table(self):
        assert moisture_matches(WaterNeed.LOW, MoistureLevel.DRY)
        assert moisture_matches(WaterNeed.VERY_LOW, MoistureLevel.DRY)
        assert moisture_matches(WaterNeed.MODERATE, MoistureLevel.MOIST)
        assert moisture_matches(WaterNeed.HIGH, MoistureLevel.WET)
        assert not moisture_matches(WaterNeed.MODERATE_HIGH, MoistureLevel.MODERATE)
        assert not moisture_matches(WaterNeed.LOW, MoistureLevel.WET)

    def test_carbon_contribution_is_capped(self, scorer, make_species, make_context):
        species = make_species(carbon_sequestration=500)
        breakdown = scorer.breakdown(species, make_context())

        assert breakdown.carbon == 5

    def test_custom_carbon_reference(self, make_species, make_context):
        scorer = CompatibilityScorer(ScoringConfig(carbon_reference_max=35))
        breakdown = scorer.breakdown(make_species(carbon_sequestration=35), make_context())

        assert breakdown.carbon == pytest.approx(5)


# ============================================================
# Native Region Tests
# ============================================================

class TestNativeRegion:
    """Tests for the native-region bonus."""

    def test_country_match_gives_full_bonus(self, scorer, make_species, make_context):
        species = make_species(native_regions=["Kenya", "Uganda"])

        assert scorer.breakdown(species, make_context(country="Kenya")).native == 10

    def test_match_is_case_insensitive_substring(self, scorer, make_species, make_context):
        species = make_species(native_regions=["kenya"])
        context = make_context(country="Republic of KENYA")

        assert scorer.breakdown(species, context).native == 10

    def test_region_match(self, scorer, make_species, make_context):
        species = make_species(native_regions=["Rift Valley"])
        context = make_context(country="Kenya", region="Rift Valley")

        assert scorer.breakdown(species, context).native == 10

    def test_override_applies_without_match(self, scorer, make_species, make_context):
        species = make_species(native_regions=["Australia"], native_bonus=5)

        assert scorer.breakdown(species, make_context(country="Kenya")).native == 5

    def test_override_is_clamped(self, scorer, make_species, make_context):
        species = make_species(native_bonus=50)

        assert scorer.breakdown(species, make_context()).native == 10


# ============================================================
# Property Tests
# ============================================================

class TestScoreProperties:
    """Tests for bounds, monotonicity and determinism."""

    def test_score_within_bounds_for_catalog(self, scorer, catalog, make_context):
        """Every catalog species scores in [0, 100] across varied sites."""
        contexts = [
            make_context(temperature=t, rainfall=r, soil=s, moisture=m)
            for t in (-10, 5, 22, 35, 50)
            for r in (0, 50, 800, 1500, 4000)
            for s in ("loam", "clay", "rocky")
            for m in MoistureLevel
        ]
        for species in catalog:
            for context in contexts:
                assert 0 <= scorer.score(species, context) <= 100

    def test_maximum_score_is_100(self, scorer, make_species, make_context):
        species = make_species(
            native_regions=["Kenya"],
            biodiversity_value=100,
            carbon_sequestration=70,
        )

        assert scorer.score(species, make_context()) == pytest.approx(100)

    def test_monotonic_away_from_temperature_midpoint(self, scorer, make_species, make_context):
        species = make_species()
        scores = [scorer.score(species, make_context(temperature=t)) for t in (22, 24, 26, 28)]

        assert scores == sorted(scores, reverse=True)

    def test_monotonic_away_from_rainfall_midpoint(self, scorer, make_species, make_context):
        species = make_species()
        scores = [scorer.score(species, make_context(rainfall=r)) for r in (1000, 900, 750, 600)]

        assert scores == sorted(scores, reverse=True)

    def test_deterministic(self, scorer, make_species, make_context):
        species = make_species()
        context = make_context(temperature=19.3, rainfall=870)

        assert scorer.score(species, context) == scorer.score(species, context)


class TestDecayFromMidpoint:
    """Tests for the shared decay helper."""

    def test_zero_width_range_exact_match(self):
        assert decay_from_midpoint(22, ToleranceRange(min=22, max=22), 30) == 30

    def test_zero_width_range_miss(self):
        assert decay_from_midpoint(22.5, ToleranceRange(min=22, max=22), 30) == 0

    def test_range_edge_is_zero(self):
        assert decay_from_midpoint(30, ToleranceRange(min=10, max=30), 30) == pytest.approx(0)
