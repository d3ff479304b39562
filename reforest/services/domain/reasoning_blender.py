"""
Domain service: blend an external ranking into local compatibility scores.

Strictly additive: when the reasoning collaborator works, matched entries
get ``final = local_weight * base + external_weight * external``; when it
is disabled or fails, the input comes back unchanged.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol
import asyncio
import logging

from reforest.config import Settings
from reforest.domain.models import (
    Context,
    RankedResult,
    ReasoningResponse,
    ReasoningStrategy,
    ScoredSpecies,
)
from reforest.services.domain.escalation import rank_entries

logger = logging.getLogger(__name__)


class ReasoningCollaborator(Protocol):
    @property
    def configured(self) -> bool: ...

    async def rank(self, candidates: List[ScoredSpecies], context: Context) -> ReasoningResponse: ...


@dataclass(frozen=True)
class BlendConfig:
    local_weight: float = 0.4
    external_weight: float = 0.6
    top_k: int = 8
    """Only this many candidates are sent to the reasoning collaborator"""

    timeout: Optional[float] = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "BlendConfig":
        return cls(
            local_weight=settings.blend_local_weight,
            external_weight=settings.blend_external_weight,
            top_k=settings.reasoning_top_k,
            timeout=settings.reasoning_timeout,
        )


@dataclass
class BlendOutcome:
    result: RankedResult
    insights: Optional[ReasoningResponse] = None

    @property
    def strategy(self) -> Optional[ReasoningStrategy]:
        return self.insights.strategy if self.insights else None


def reset_scores(result: RankedResult) -> RankedResult:
    """Return the result with every final score equal to its base score."""
    entries = [
        entry.model_copy(update={
            "final_score": entry.base_score,
            "external_score": None,
            "external_reasoning": None,
            "external_advice": None,
            "external_rank": None,
        })
        for entry in result.entries
    ]
    return result.model_copy(update={"entries": entries, "blended": False})


class ReasoningBlender:
    """
    Fail-open wrapper around the reasoning collaborator.
    """

    def __init__(
        self,
        collaborator: Optional[ReasoningCollaborator] = None,
        config: Optional[BlendConfig] = None,
    ):
        self.collaborator = collaborator
        self.config = config or BlendConfig()

    @property
    def available(self) -> bool:
        return self.collaborator is not None and self.collaborator.configured

    async def blend(self, result: RankedResult, context: Context) -> BlendOutcome:
        """
        Merge the collaborator's ranking into ``result``.

        Never raises; on any failure the local scores are kept.
        """
        baseline = reset_scores(result)
        if not self.available:
            logger.info("Reasoning collaborator unavailable, keeping local scores")
            return BlendOutcome(result=baseline)

        candidates = baseline.top(self.config.top_k)
        try:
            response = await asyncio.wait_for(
                self.collaborator.rank(candidates, context),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Reasoning timed out after {self.config.timeout}s, keeping local scores")
            return BlendOutcome(result=baseline)
        except Exception as e:
            logger.warning(f"Reasoning failed, keeping local scores: {e}")
            return BlendOutcome(result=baseline)

        return BlendOutcome(
            result=self._apply(baseline, candidates, response),
            insights=response,
        )

    def blend_score(self, base_score: float, external_score: float) -> float:
        return (
            self.config.local_weight * base_score
            + self.config.external_weight * external_score
        )

    def _apply(
        self,
        result: RankedResult,
        candidates: List[ScoredSpecies],
        response: ReasoningResponse,
    ) -> RankedResult:
        sent_ids = {entry.species.id for entry in candidates}
        rankings = {r.species_id: r for r in response.rankings if r.species_id in sent_ids}
        if not rankings:
            logger.warning("Reasoning response matched no candidates, keeping local scores")
            return result

        entries = []
        for entry in result.entries:
            ranking = rankings.get(entry.species.id)
            if ranking is None:
                entries.append(entry)
                continue
            entries.append(entry.model_copy(update={
                "external_score": ranking.score,
                "external_reasoning": ranking.reasoning,
                "external_advice": ranking.advice,
                "external_rank": ranking.rank,
                "final_score": self.blend_score(entry.base_score, ranking.score),
            }))

        logger.info(f"Blended external scores into {len(rankings)}/{len(result.entries)} entries")
        return result.model_copy(update={"entries": rank_entries(entries), "blended": True})
