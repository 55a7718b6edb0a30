"""Builds the web-evidence sections of a company analysis report.

Runs one aggregated search across the requested topics, feeds each topic's
hits through its extractor and assembles an ``AnalysisReport``. Sections
that come back empty are listed in ``empty_sections``; search failures
surface as report warnings rather than errors.
"""

import logging
from collections.abc import Sequence

from app.core.config import PipelineConfig, get_pipeline_config
from app.models import AnalysisReport, LinkItem, RawResult
from app.services.competitor_extractor import CompetitorExtractor
from app.services.deduplicator import Deduplicator, get_deduplicator
from app.services.leadership_extractor import LeadershipExtractor, get_leadership_extractor
from app.services.openrouter_service import OpenRouterService, get_openrouter_service
from app.services.pipeline import extract_competitor_mentions, extract_leadership_changes
from app.services.regulatory_extractor import RegulatoryExtractor
from app.services.source_aggregator import SourceAggregator, Topic, get_source_aggregator
from app.services.text_extraction import truncate
from app.services.url_verifier import UrlVerifier, get_url_verifier
from app.services.worker_pool import CancellationToken

logger = logging.getLogger(__name__)

LINK_SUMMARY_LENGTH = 200

# Report field that each topic fills
TOPIC_SECTIONS: dict[Topic, str] = {
    Topic.NEWS: "techNews",
    Topic.CASE_STUDIES: "caseStudies",
    Topic.LEADERSHIP: "leadershipChanges",
    Topic.REGULATORY: "regulatoryEvents",
    Topic.COMPETITOR: "competitorMentions",
}


def to_link_items(results: Sequence[RawResult]) -> list[LinkItem]:
    return [
        LinkItem(
            title=result.title or result.hostname,
            url=result.url,
            summary=truncate(result.content, LINK_SUMMARY_LENGTH) or None,
        )
        for result in results
    ]


class AnalysisService:
    """Orchestrates search, extraction and deduplication for one company."""

    def __init__(
        self,
        aggregator: SourceAggregator | None = None,
        config: PipelineConfig | None = None,
        verifier: UrlVerifier | None = None,
        llm: OpenRouterService | None = None,
        deduplicator: Deduplicator | None = None,
        leadership_extractor: LeadershipExtractor | None = None,
    ) -> None:
        self.config = config or get_pipeline_config()
        self.aggregator = aggregator or get_source_aggregator()
        self.verifier = verifier or get_url_verifier()
        self.llm = llm or get_openrouter_service()
        self.deduplicator = deduplicator or get_deduplicator()
        self.leadership_extractor = leadership_extractor or get_leadership_extractor()
        self.competitor_extractor = CompetitorExtractor(
            config=self.config,
            verifier=self.verifier,
            deduplicator=self.deduplicator,
            llm=self.llm,
        )
        self.regulatory_extractor = RegulatoryExtractor(
            config=self.config,
            deduplicator=self.deduplicator,
            llm=self.llm,
        )

    def default_competitors(self) -> list[str]:
        return list(self.config.competitor_domains)

    async def analyze(
        self,
        company: str,
        competitors: Sequence[str] | None = None,
        topics: Sequence[Topic] | None = None,
        token: CancellationToken | None = None,
    ) -> AnalysisReport:
        """Search the web for a company and build the evidence report.

        Args:
            company: Subject company name (already validated as non-empty).
            competitors: Competitor names; defaults to every configured competitor.
            topics: Topics to cover; defaults to all of them.
            token: Cancellation signal for the request.

        Returns:
            AnalysisReport. When the request is cancelled the report is empty
            apart from a cancellation warning.
        """
        topics = list(topics) if topics else list(Topic)
        competitors = [c for c in (competitors or self.default_competitors()) if c.strip()]
        report = AnalysisReport(company_name=company)

        aggregation = await self.aggregator.search_all_topics(
            company, topics, competitors=competitors, token=token
        )
        if aggregation.cancelled or (token is not None and token.cancelled):
            logger.info(f"Analysis for {company} cancelled")
            report.warnings.append("request cancelled")
            return report

        report.warnings.extend(aggregation.warnings)
        report.web_search_used = not aggregation.search_unavailable

        if Topic.NEWS in topics:
            report.tech_news = to_link_items(aggregation.for_topic(Topic.NEWS))
        if Topic.CASE_STUDIES in topics:
            report.case_studies = to_link_items(aggregation.for_topic(Topic.CASE_STUDIES))
        if Topic.LEADERSHIP in topics:
            report.leadership_changes = extract_leadership_changes(
                company,
                aggregation.for_topic(Topic.LEADERSHIP),
                extractor=self.leadership_extractor,
                deduplicator=self.deduplicator,
            )
        if Topic.REGULATORY in topics:
            report.regulatory_events = await self.regulatory_extractor.extract_with_llm(
                company, aggregation.for_topic(Topic.REGULATORY)
            )
        if Topic.COMPETITOR in topics:
            report.competitor_mentions = await extract_competitor_mentions(
                company,
                competitors,
                aggregation.for_topic(Topic.COMPETITOR),
                extractor=self.competitor_extractor,
                token=token,
            )
            if token is not None and token.cancelled:
                logger.info(f"Analysis for {company} cancelled during verification")
                return AnalysisReport(company_name=company, warnings=["request cancelled"])

        dumped = report.model_dump(by_alias=True)
        report.empty_sections = [
            TOPIC_SECTIONS[topic] for topic in topics if not dumped[TOPIC_SECTIONS[topic]]
        ]
        report.sources = self._cited_urls(report)

        logger.info(
            f"Analysis for {company}: {len(report.leadership_changes)} leadership, "
            f"{len(report.competitor_mentions)} competitor, {len(report.regulatory_events)} regulatory, "
            f"{len(report.empty_sections)} empty sections"
        )
        return report

    @staticmethod
    def _cited_urls(report: AnalysisReport) -> list[str]:
        urls: list[str] = []
        for url in (
            [c.url for c in report.leadership_changes]
            + [m.url for m in report.competitor_mentions]
            + [u for e in report.regulatory_events for u in [e.url, *(s.url for s in e.sources)]]
            + [n.url for n in report.tech_news]
            + [c.url for c in report.case_studies]
        ):
            if url not in urls:
                urls.append(url)
        return urls


_analysis_service: AnalysisService | None = None


def get_analysis_service() -> AnalysisService:
    """Get the singleton AnalysisService instance."""
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService()
    return _analysis_service
