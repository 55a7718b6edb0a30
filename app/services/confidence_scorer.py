"""Confidence scoring for competitor mentions."""

import logging
from dataclasses import dataclass

from app.core.config import PipelineConfig, get_pipeline_config
from app.models import RawResult
from app.services.url_verifier import domain_matches

logger = logging.getLogger(__name__)


@dataclass
class ScoreResult:
    confidence: int
    unverified: bool


@dataclass
class ScoreInput:
    """What the scorer needs to know about one candidate.

    Attributes:
        relevance: Provider relevance in [0, 1].
        url: Cited URL (already verified).
        title: Headline used for the textual-relevance bonus.
        mention_type: Inferred mention type; ``other`` when unknown.
        url_verified: Whether the URL passed verification.
    """

    relevance: float
    url: str
    title: str = ""
    mention_type: str = "other"
    url_verified: bool = True

    @classmethod
    def from_result(cls, result: RawResult, mention_type: str, url_verified: bool = True) -> "ScoreInput":
        return cls(
            relevance=result.score,
            url=result.url,
            title=result.title,
            mention_type=mention_type,
            url_verified=url_verified,
        )


class ConfidenceScorer:
    """Combines relevance, verification and source reputation into a 0-100 score."""

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self.config = config or get_pipeline_config()
        self.settings = self.config.scoring

    def is_reputable(self, url: str) -> bool:
        return domain_matches(url, self.config.reputable_sources)

    def score(self, candidate: ScoreInput, company_name: str, competitor_name: str) -> ScoreResult:
        """Score one candidate.

        Base is provider relevance scaled to 0-100. A verified URL adds a
        bonus, as does a title naming both companies. An ``other`` mention
        type and a source outside the reputable list each cost a penalty.
        The result is clamped to [0, 100]; below the threshold it is
        flagged unverified but still returned.
        """
        relevance = candidate.relevance
        if relevance is None or not 0.0 <= relevance <= 1.0:
            relevance = self.settings.default_relevance

        confidence = relevance * 100
        if candidate.url_verified:
            confidence += self.settings.verified_url_bonus

        title_lower = candidate.title.lower()
        if company_name and competitor_name and (
            company_name.lower() in title_lower and competitor_name.lower() in title_lower
        ):
            confidence += self.settings.title_relevance_bonus

        if candidate.mention_type == "other":
            confidence -= self.settings.unknown_type_penalty
        if not self.is_reputable(candidate.url):
            confidence -= self.settings.unreputable_source_penalty

        final = int(round(min(max(confidence, 0), 100)))
        return ScoreResult(confidence=final, unverified=final < self.settings.unverified_threshold)


_confidence_scorer: ConfidenceScorer | None = None


def get_confidence_scorer() -> ConfidenceScorer:
    """Get the singleton ConfidenceScorer instance."""
    global _confidence_scorer
    if _confidence_scorer is None:
        _confidence_scorer = ConfidenceScorer()
    return _confidence_scorer
