"""Tests for the analysis orchestration service."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models import RawResult, ValidationOutcome
from app.services.analysis_service import AnalysisService, to_link_items
from app.services.deduplicator import Deduplicator
from app.services.leadership_extractor import LeadershipExtractor
from app.services.source_aggregator import AggregationResult, Topic
from app.services.worker_pool import CancellationToken

NEWS_HIT = RawResult(
    title="Acme Corp launches AI assistant",
    url="https://www.technews.com/acme-ai",
    content="Acme Corp unveiled an assistant for its support team.",
)
REGULATORY_HIT = RawResult(
    title="SEC fines Acme Corp $5 million over disclosures",
    url="https://www.reuters.com/legal/acme-sec-fine",
    content="The SEC said in May 2024 that Acme Corp agreed to the penalty.",
)
COMPETITOR_HIT = RawResult(
    title="Acme Corp deploys Smarsh for archiving",
    url="https://www.smarsh.com/customers/acme-corp-case-study",
    content="Acme Corp is a Smarsh customer.",
    score=0.9,
)


def _aggregator(aggregation):
    aggregator = MagicMock()
    aggregator.search_all_topics = AsyncMock(return_value=aggregation)
    return aggregator


def _verifier(valid=True):
    verifier = MagicMock()

    async def verify_many(checks, max_in_flight=None, token=None):
        return [ValidationOutcome.ok() if valid else ValidationOutcome.reject("HTTP 404") for _ in checks]

    verifier.verify_many = AsyncMock(side_effect=verify_many)
    return verifier


def _service(aggregation, verifier=None):
    llm = MagicMock()
    llm.is_configured = False
    return AnalysisService(
        aggregator=_aggregator(aggregation),
        verifier=verifier or _verifier(),
        llm=llm,
        deduplicator=Deduplicator(),
        leadership_extractor=LeadershipExtractor(),
    )


class TestAnalyze:
    """Test report assembly."""

    @pytest.mark.asyncio
    async def test_full_report(self, acme_leadership_results):
        """Test that every section is filled from its topic's hits."""
        aggregation = AggregationResult(
            by_topic={
                "news": [NEWS_HIT],
                "case_studies": [],
                "leadership": acme_leadership_results,
                "regulatory": [REGULATORY_HIT],
                "competitor": [COMPETITOR_HIT],
            },
            calls_attempted=8,
        )
        service = _service(aggregation)

        report = await service.analyze("Acme Corp")

        assert [c.name for c in report.leadership_changes] == ["Jane Carter"]
        assert [e.regulatory_body for e in report.regulatory_events] == ["SEC"]
        assert [m.competitor_name for m in report.competitor_mentions] == ["Smarsh"]
        assert [n.url for n in report.tech_news] == [NEWS_HIT.url]
        assert report.empty_sections == ["caseStudies"]
        assert report.web_search_used is True
        assert report.warnings == []
        assert report.sources == [
            "https://reuters.com/a1",
            COMPETITOR_HIT.url,
            REGULATORY_HIT.url,
            NEWS_HIT.url,
        ]

    @pytest.mark.asyncio
    async def test_defaults_to_all_topics_and_configured_competitors(self):
        """Test the defaults passed to the aggregator."""
        service = _service(AggregationResult(calls_attempted=1))

        await service.analyze("Acme Corp")

        call = service.aggregator.search_all_topics.await_args
        assert call.args[1] == list(Topic)
        assert "Smarsh" in call.kwargs["competitors"]

    @pytest.mark.asyncio
    async def test_search_unavailable(self):
        """Test that a total search failure yields warnings and empty sections."""
        aggregation = AggregationResult(
            by_topic={topic.value: [] for topic in Topic},
            warnings=["web search unavailable: HTTP 500: oops"],
            calls_attempted=8,
            calls_failed=8,
        )
        report = await _service(aggregation).analyze("Acme Corp")

        assert report.web_search_used is False
        assert report.warnings == ["web search unavailable: HTTP 500: oops"]
        assert report.empty_sections == [
            "techNews",
            "caseStudies",
            "leadershipChanges",
            "regulatoryEvents",
            "competitorMentions",
        ]

    @pytest.mark.asyncio
    async def test_topic_subset(self, acme_leadership_results):
        """Test that only requested topics are searched and reported."""
        aggregation = AggregationResult(by_topic={"leadership": acme_leadership_results}, calls_attempted=1)
        service = _service(aggregation)

        report = await service.analyze("Acme Corp", competitors=["Smarsh"], topics=[Topic.LEADERSHIP])

        assert service.aggregator.search_all_topics.await_args.args[1] == [Topic.LEADERSHIP]
        assert len(report.leadership_changes) == 1
        assert report.empty_sections == []
        service.verifier.verify_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancelled_search(self):
        """Test that a cancelled search returns an empty report."""
        aggregation = AggregationResult(by_topic={"news": [NEWS_HIT]}, cancelled=True)
        report = await _service(aggregation).analyze("Acme Corp", token=CancellationToken())

        assert report.warnings == ["request cancelled"]
        assert report.tech_news == []
        assert report.empty_sections == []

    @pytest.mark.asyncio
    async def test_cancelled_during_verification(self):
        """Test that cancellation during verification drops every section."""
        token = CancellationToken()
        verifier = MagicMock()

        async def verify_many(checks, max_in_flight=None, token=None):
            token.cancel("client disconnected")
            return [ValidationOutcome.reject("cancelled") for _ in checks]

        verifier.verify_many = AsyncMock(side_effect=verify_many)
        aggregation = AggregationResult(
            by_topic={"news": [NEWS_HIT], "competitor": [COMPETITOR_HIT]},
            calls_attempted=2,
        )

        report = await _service(aggregation, verifier=verifier).analyze(
            "Acme Corp", competitors=["Smarsh"], topics=[Topic.NEWS, Topic.COMPETITOR], token=token
        )

        assert report.warnings == ["request cancelled"]
        assert report.tech_news == []
        assert report.competitor_mentions == []


class TestToLinkItems:
    """Test news and case-study link conversion."""

    def test_summary_and_title_fallback(self):
        """Test that empty titles fall back to the host name."""
        hit = RawResult(title="", url="https://www.example.com/story", content="x" * 250)
        item = to_link_items([hit])[0]
        assert item.title == "example.com"
        assert item.summary == "x" * 200 + "..."

    def test_empty_content_has_no_summary(self):
        """Test that a hit without content has no summary."""
        hit = RawResult(title="Story", url="https://www.example.com/story")
        assert to_link_items([hit])[0].summary is None
