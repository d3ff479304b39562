"""
Unit tests for the reasoning blender.

The blender must never make results worse: any collaborator failure
returns the local scores unchanged.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock

from reforest.domain.catalog import Catalog
from reforest.domain.errors import ReasoningError
from reforest.domain.models import (
    EscalationTier,
    RankedResult,
    ReasoningRanking,
    ReasoningResponse,
    ScoredSpecies,
)
from reforest.infrastructure.reasoning_client import ReasoningClient
from reforest.services.domain.escalation import rank_entries
from reforest.services.domain.reasoning_blender import (
    BlendConfig,
    ReasoningBlender,
    reset_scores,
)


@pytest.fixture
def ranked(make_species) -> RankedResult:
    entries = [
        ScoredSpecies.from_base(make_species("alpha"), 80),
        ScoredSpecies.from_base(make_species("beta"), 70),
        ScoredSpecies.from_base(make_species("gamma"), 60),
    ]
    return RankedResult(entries=entries, tier=EscalationTier.STANDARD, total_candidates=3)


@pytest.fixture
def collaborator():
    client = AsyncMock(spec=ReasoningClient)
    client.configured = True
    return client


def _ids(result: RankedResult) -> list:
    return [entry.species.id for entry in result.entries]


# ============================================================
# Fail-Open Tests
# ============================================================

class TestFailOpen:
    """Every failure path returns the input ranking unchanged."""

    @pytest.mark.asyncio
    async def test_no_collaborator(self, ranked, make_context):
        outcome = await ReasoningBlender().blend(ranked, make_context())

        assert _ids(outcome.result) == ["alpha", "beta", "gamma"]
        assert [e.final_score for e in outcome.result.entries] == [80, 70, 60]
        assert not outcome.result.blended
        assert outcome.insights is None
        assert outcome.strategy is None

    @pytest.mark.asyncio
    async def test_unconfigured_collaborator_is_not_called(self, ranked, make_context, collaborator):
        collaborator.configured = False
        outcome = await ReasoningBlender(collaborator).blend(ranked, make_context())

        collaborator.rank.assert_not_awaited()
        assert not outcome.result.blended

    @pytest.mark.asyncio
    async def test_reasoning_error(self, ranked, make_context, collaborator):
        collaborator.rank.side_effect = ReasoningError("Malformed reasoning response")
        outcome = await ReasoningBlender(collaborator).blend(ranked, make_context())

        assert _ids(outcome.result) == ["alpha", "beta", "gamma"]
        assert all(e.final_score == e.base_score for e in outcome.result.entries)

    @pytest.mark.asyncio
    async def test_unexpected_error(self, ranked, make_context, collaborator):
        collaborator.rank.side_effect = RuntimeError("connection reset")
        outcome = await ReasoningBlender(collaborator).blend(ranked, make_context())

        assert not outcome.result.blended

    @pytest.mark.asyncio
    async def test_timeout(self, ranked, make_context, collaborator):
        async def slow_rank(candidates, context):
            await asyncio.sleep(5)

        collaborator.rank.side_effect = slow_rank
        blender = ReasoningBlender(collaborator, BlendConfig(timeout=0.01))

        outcome = await blender.blend(ranked, make_context())

        assert not outcome.result.blended
        assert [e.final_score for e in outcome.result.entries] == [80, 70, 60]

    @pytest.mark.asyncio
    async def test_unmatched_rankings(self, ranked, make_context, collaborator):
        collaborator.rank.return_value = ReasoningResponse(rankings=[
            ReasoningRanking(treeId="unknown-tree", compatibilityScore=99),
        ])
        outcome = await ReasoningBlender(collaborator).blend(ranked, make_context())

        assert not outcome.result.blended
        assert _ids(outcome.result) == ["alpha", "beta", "gamma"]


# ============================================================
# Blending Tests
# ============================================================

class TestBlending:
    """Tests for the weighted merge."""

    @pytest.mark.asyncio
    async def test_weighted_blend_and_resort(self, ranked, make_context, collaborator):
        collaborator.rank.return_value = ReasoningResponse(rankings=[
            ReasoningRanking(treeId="gamma", rank=1, compatibilityScore=100, reasoning="Best fit"),
            ReasoningRanking(treeId="alpha", rank=2, compatibilityScore=50),
        ])
        outcome = await ReasoningBlender(collaborator).blend(ranked, make_context())
        scores = {e.species.id: e for e in outcome.result.entries}

        assert outcome.result.blended
        assert scores["gamma"].final_score == pytest.approx(0.4 * 60 + 0.6 * 100)
        assert scores["alpha"].final_score == pytest.approx(0.4 * 80 + 0.6 * 50)
        assert scores["beta"].final_score == 70
        assert scores["beta"].external_score is None
        assert scores["gamma"].external_reasoning == "Best fit"
        assert _ids(outcome.result) == ["gamma", "beta", "alpha"]

    @pytest.mark.asyncio
    async def test_blended_ties_keep_catalog_order(self, make_species, make_context, collaborator):
        catalog = Catalog([make_species("alpha"), make_species("beta")])
        result = RankedResult(
            entries=rank_entries([
                ScoredSpecies.from_base(catalog.get("alpha"), 40, catalog_index=0),
                ScoredSpecies.from_base(catalog.get("beta"), 70, catalog_index=1),
            ]),
            tier=EscalationTier.STANDARD,
        )
        assert _ids(result) == ["beta", "alpha"]
        collaborator.rank.return_value = ReasoningResponse(rankings=[
            ReasoningRanking(treeId="alpha", compatibilityScore=90),
        ])

        outcome = await ReasoningBlender(collaborator).blend(result, make_context())

        assert [e.final_score for e in outcome.result.entries] == pytest.approx([70, 70])
        assert _ids(outcome.result) == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_base_scores_preserved(self, ranked, make_context, collaborator):
        collaborator.rank.return_value = ReasoningResponse(rankings=[
            ReasoningRanking(treeId="alpha", compatibilityScore=10),
        ])
        outcome = await ReasoningBlender(collaborator).blend(ranked, make_context())

        assert {e.species.id: e.base_score for e in outcome.result.entries} == {
            "alpha": 80, "beta": 70, "gamma": 60,
        }

    @pytest.mark.asyncio
    async def test_only_top_k_candidates_are_sent(self, make_species, make_context, collaborator):
        entries = [
            ScoredSpecies.from_base(make_species(f"species-{i}"), 90 - i)
            for i in range(10)
        ]
        result = RankedResult(entries=entries, tier=EscalationTier.STANDARD)
        collaborator.rank.return_value = ReasoningResponse(rankings=[
            ReasoningRanking(treeId="species-9", compatibilityScore=100),
        ])

        outcome = await ReasoningBlender(collaborator).blend(result, make_context())
        candidates = collaborator.rank.await_args.args[0]

        assert len(candidates) == 8
        assert "species-9" not in [c.species.id for c in candidates]
        assert not outcome.result.blended

    @pytest.mark.asyncio
    async def test_insights_and_strategy_returned(self, ranked, make_context, collaborator):
        response = ReasoningResponse.model_validate({
            "rankings": [{"treeId": "alpha", "compatibilityScore": 90}],
            "plantingStrategy": {
                "density": "350-450 trees/hectare",
                "bestMonths": ["April"],
                "spacing": "3 meters",
            },
            "sitePreparation": ["Clear weeds"],
        })
        collaborator.rank.return_value = response

        outcome = await ReasoningBlender(collaborator).blend(ranked, make_context())

        assert outcome.insights is response
        assert outcome.strategy.density == "350-450 trees/hectare"

    def test_external_scores_are_clamped(self):
        assert ReasoningRanking(treeId="a", compatibilityScore=150).score == 100
        assert ReasoningRanking(treeId="a", compatibilityScore=-5).score == 0

    def test_reset_scores_drops_previous_blend(self, make_species):
        entry = ScoredSpecies(
            species=make_species("alpha"),
            base_score=50,
            external_score=90,
            final_score=74,
        )
        result = RankedResult(entries=[entry], tier=EscalationTier.STANDARD, blended=True)

        reset = reset_scores(result)

        assert reset.entries[0].final_score == 50
        assert reset.entries[0].external_score is None
        assert not reset.blended
