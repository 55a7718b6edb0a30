"""Source aggregation across search providers.

For a company and a topic, issues every topic query to every configured
provider in parallel through the bounded worker pool, then merges the hits
into one URL-deduplicated list. A provider failure never escapes this
module: it becomes an empty list for that call plus a non-fatal warning.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from app.core.config import AggregatorSettings, get_pipeline_config
from app.models import RawResult
from app.services.search_providers import (
    SearchOptions,
    SearchProvider,
    SearchProviderError,
    get_search_providers,
)
from app.services.worker_pool import CancellationToken, TaskOutcome, WorkerPool

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    """Search topics with their own query templates and post-filters."""

    NEWS = "news"
    CASE_STUDIES = "case_studies"
    LEADERSHIP = "leadership"
    REGULATORY = "regulatory"
    COMPETITOR = "competitor"


@dataclass
class TopicQuery:
    topic: Topic
    query: str
    options: SearchOptions


LEADERSHIP_QUERY = (
    '"{company}" (appoints OR appointed OR names OR named OR promotes OR promoted '
    "OR hires OR hired OR joins) (CEO OR CFO OR CTO OR COO OR CMO OR \"Chief\" "
    'OR President OR "Vice President" OR Director OR Executive)'
)

REGULATORY_QUERIES = [
    '"{company}" SEC fine penalty settlement enforcement',
    '"{company}" FINRA fine disciplinary action',
    '"{company}" regulatory penalty settlement million',
    '"{company}" DOJ settlement charges',
]

COMPETITOR_QUERY = (
    '"{company}" "{competitor}" (integration OR customer OR partner OR deploys '
    "OR platform OR solution OR compliance OR archiving)"
)

# Leadership results must look like news or press pages
NEWS_PAGE_URL_MARKERS = (
    "news", "press", "announce", "blog", "businesswire", "prnewswire", "globenewswire",
)
NEWS_PAGE_TITLE_MARKERS = ("appoint", "name", "hire", "join", "promote")
JOB_PAGE_MARKERS = ("career", "job", "linkedin.com/jobs", "indeed.com", "glassdoor")

REGULATORY_KEYWORDS = (
    "fine", "penalty", "settlement", "enforcement", "charges", "violation",
    "consent order", "investigation",
)


def build_queries(company: str, topic: Topic, competitors: Sequence[str] = ()) -> list[TopicQuery]:
    """Return the queries issued to each provider for one topic."""
    if topic == Topic.NEWS:
        return [TopicQuery(topic, f"{company} latest news technology AI developments", SearchOptions(max_results=10))]
    if topic == Topic.CASE_STUDIES:
        return [TopicQuery(topic, f"{company} case study customer success story", SearchOptions(max_results=5))]
    if topic == Topic.LEADERSHIP:
        return [
            TopicQuery(
                topic,
                LEADERSHIP_QUERY.format(company=company),
                SearchOptions(max_results=10, search_depth="advanced"),
            )
        ]
    if topic == Topic.REGULATORY:
        return [
            TopicQuery(topic, template.format(company=company), SearchOptions(max_results=5, search_depth="advanced"))
            for template in REGULATORY_QUERIES
        ]
    if topic == Topic.COMPETITOR:
        return [
            TopicQuery(
                topic,
                COMPETITOR_QUERY.format(company=company, competitor=competitor),
                SearchOptions(max_results=3, search_depth="advanced"),
            )
            for competitor in competitors
        ]
    return []


def is_job_page(url: str) -> bool:
    url_lower = url.lower()
    return any(marker in url_lower for marker in JOB_PAGE_MARKERS)


def is_news_page(result: RawResult) -> bool:
    url_lower = result.url.lower()
    title_lower = result.title.lower()
    return any(m in url_lower for m in NEWS_PAGE_URL_MARKERS) or any(
        m in title_lower for m in NEWS_PAGE_TITLE_MARKERS
    )


def mentions_regulatory_action(company: str, result: RawResult) -> bool:
    text_lower = result.text.lower()
    if company.lower() not in text_lower:
        return False
    return any(re.search(rf"\b{re.escape(kw)}", text_lower) for kw in REGULATORY_KEYWORDS)


def apply_topic_filter(company: str, topic: Topic, results: list[RawResult]) -> list[RawResult]:
    """Drop hits that cannot carry evidence for the topic."""
    if topic == Topic.LEADERSHIP:
        return [r for r in results if is_news_page(r) and not is_job_page(r.url)]
    if topic == Topic.REGULATORY:
        return [r for r in results if mentions_regulatory_action(company, r) and not is_job_page(r.url)]
    return results


def describe_failure(outcome: TaskOutcome) -> str:
    """Short human-readable reason for a failed provider call."""
    if outcome.timed_out:
        return "request timed out"
    if isinstance(outcome.error, SearchProviderError):
        return outcome.error.message
    return str(outcome.error) or type(outcome.error).__name__


@dataclass
class AggregationResult:
    """Merged hits plus what went wrong along the way.

    Attributes:
        results: URL-deduplicated hits across all topics searched.
        by_topic: The same hits split per topic (each list deduplicated).
        warnings: Non-fatal, user-visible warnings.
        failed_providers: Provider ids with at least one failed call.
        calls_attempted: Number of provider calls issued.
        calls_failed: Number of provider calls that failed or timed out.
        cancelled: True when the request was cancelled mid-flight.
    """

    results: list[RawResult] = field(default_factory=list)
    by_topic: dict[str, list[RawResult]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    failed_providers: list[str] = field(default_factory=list)
    calls_attempted: int = 0
    calls_failed: int = 0
    cancelled: bool = False

    @property
    def search_unavailable(self) -> bool:
        return not self.cancelled and (self.calls_attempted == 0 or self.calls_failed == self.calls_attempted)

    def for_topic(self, topic: Topic | str) -> list[RawResult]:
        key = topic.value if isinstance(topic, Topic) else topic
        return self.by_topic.get(key, [])


class SourceAggregator:
    """Fans topic queries out to search providers and merges the results."""

    def __init__(
        self,
        providers: Sequence[SearchProvider] | None = None,
        settings: AggregatorSettings | None = None,
    ) -> None:
        self.providers = list(providers) if providers is not None else get_search_providers()
        self.settings = settings or get_pipeline_config().aggregator

    @property
    def is_configured(self) -> bool:
        """Check if at least one search provider is available."""
        return bool(self.providers)

    async def close(self) -> None:
        for provider in self.providers:
            await provider.close()

    async def search(
        self,
        company: str,
        topic: Topic,
        competitors: Sequence[str] = (),
        token: CancellationToken | None = None,
    ) -> AggregationResult:
        """Search a single topic for a company."""
        return await self.search_all_topics(company, [topic], competitors=competitors, token=token)

    async def search_all_topics(
        self,
        company: str,
        topics: Sequence[Topic],
        competitors: Sequence[str] = (),
        token: CancellationToken | None = None,
    ) -> AggregationResult:
        """Search several topics in one bounded pool.

        Args:
            company: Subject company name.
            topics: Topics to search.
            competitors: Competitor names, used by the competitor topic.
            token: Cancellation signal for the whole request.

        Returns:
            AggregationResult with per-topic hits and warnings. When every
            provider call fails the warnings hold the single entry
            ``"web search unavailable: <reason>"``.
        """
        aggregation = AggregationResult(by_topic={Topic(t).value: [] for t in topics})

        if not self.providers:
            aggregation.warnings.append("web search unavailable: no search provider configured")
            return aggregation

        calls: list[tuple[SearchProvider, TopicQuery]] = [
            (provider, topic_query)
            for topic in topics
            for topic_query in build_queries(company, Topic(topic), competitors)
            for provider in self.providers
        ]
        if not calls:
            return aggregation

        logger.info(
            f"Searching {len(calls)} provider queries for topics "
            f"{[Topic(t).value for t in topics]}"
        )

        pool = WorkerPool(
            max_in_flight=self.settings.max_in_flight,
            timeout=self.settings.timeout_seconds,
            token=token,
        )
        jobs = [
            (lambda p=provider, q=topic_query: p.search(q.query, q.options))
            for provider, topic_query in calls
        ]
        outcomes = await pool.run(jobs)
        aggregation.calls_attempted = len(calls)

        if outcomes and all(o.cancelled for o in outcomes):
            logger.info("Search cancelled; returning no results")
            aggregation.cancelled = True
            return aggregation

        failures: list[str] = []
        raw_by_topic: dict[str, list[RawResult]] = {key: [] for key in aggregation.by_topic}
        for (provider, topic_query), outcome in zip(calls, outcomes):
            if not outcome.ok:
                aggregation.calls_failed += 1
                reason = describe_failure(outcome)
                failures.append(reason)
                if provider.provider_id not in aggregation.failed_providers:
                    aggregation.failed_providers.append(provider.provider_id)
                logger.warning(
                    f"{provider.provider_id} search failed for topic "
                    f"{topic_query.topic.value}: {reason}"
                )
                continue
            raw_by_topic[topic_query.topic.value].extend(outcome.value.results)

        seen_urls: set[str] = set()
        for key, hits in raw_by_topic.items():
            topic_seen: set[str] = set()
            unique: list[RawResult] = []
            for hit in hits:
                if hit.url in topic_seen:
                    continue
                topic_seen.add(hit.url)
                unique.append(hit)
            filtered = apply_topic_filter(company, Topic(key), unique)
            aggregation.by_topic[key] = filtered
            for hit in filtered:
                if hit.url not in seen_urls:
                    seen_urls.add(hit.url)
                    aggregation.results.append(hit)

        if aggregation.calls_failed == aggregation.calls_attempted:
            aggregation.warnings = [f"web search unavailable: {failures[0]}"]
        else:
            for provider_id in aggregation.failed_providers:
                aggregation.warnings.append(f"{provider_id} search partially failed; some results may be missing")

        logger.info(
            f"Aggregated {len(aggregation.results)} results "
            f"({aggregation.calls_failed}/{aggregation.calls_attempted} calls failed)"
        )
        return aggregation


_source_aggregator: SourceAggregator | None = None


def get_source_aggregator() -> SourceAggregator:
    """Get the singleton SourceAggregator instance."""
    global _source_aggregator
    if _source_aggregator is None:
        _source_aggregator = SourceAggregator()
    return _source_aggregator
