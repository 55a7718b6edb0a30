"""Deduplication of extracted records into canonical ones.

Input lists are walked reputable-source first. Leadership changes are
filtered (one per URL, no re-syndicated titles, no repeated person in the
same role). Regulatory events are grouped into one canonical record per
real-world event, with the other reports kept as ``sources``.
"""

import logging
from collections.abc import Sequence

from app.core.config import PipelineConfig, get_pipeline_config
from app.models import CompetitorMention, LeadershipChange, RegulatoryEvent, RegulatoryEventSource
from app.services.similarity import title_similar
from app.services.text_extraction import date_year, is_precise_date, role_key
from app.services.url_verifier import domain_matches

logger = logging.getLogger(__name__)

UNKNOWN_REGULATORS = {"", "regulatory", "unknown"}


class Deduplicator:
    """Collapses duplicate leadership changes, regulatory events and competitor mentions."""

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self.config = config or get_pipeline_config()
        self.settings = self.config.dedup

    def _reputable_first(self, items: Sequence, url_of) -> list:
        return sorted(items, key=lambda item: 0 if domain_matches(url_of(item), self.config.reputable_sources) else 1)

    def _title_similar(self, a: str, b: str) -> bool:
        return title_similar(a, b, threshold=self.settings.title_jaccard_threshold)

    def dedupe_leadership(self, changes: Sequence[LeadershipChange]) -> list[LeadershipChange]:
        """Keep one change per URL, drop re-syndicated stories, cap the list."""
        emitted: list[LeadershipChange] = []
        seen_urls: set[str] = set()
        seen_people: set[tuple[str, str]] = set()

        for change in self._reputable_first(changes, lambda c: c.url):
            if len(emitted) >= self.settings.max_leadership_changes:
                break
            if change.url in seen_urls:
                continue
            if change.title and any(
                prior.title and self._title_similar(change.title, prior.title) for prior in emitted
            ):
                logger.debug(f"Skipping re-syndicated leadership story: {change.title}")
                continue
            person = (change.name.lower(), role_key(change.role))
            if person in seen_people:
                logger.debug(f"Skipping repeated leadership change: {change.name} ({change.role})")
                continue
            seen_urls.add(change.url)
            seen_people.add(person)
            emitted.append(change)

        return emitted

    @staticmethod
    def same_regulator(a: RegulatoryEvent, b: RegulatoryEvent) -> bool:
        body_a = (a.regulatory_body or "").strip().lower()
        body_b = (b.regulatory_body or "").strip().lower()
        if body_a in UNKNOWN_REGULATORS and body_b in UNKNOWN_REGULATORS:
            return True
        return body_a == body_b

    def dates_compatible(self, date_a: str | None, date_b: str | None) -> bool:
        """Check that two event dates fall in the same reporting window.

        Same year when both dates are specific; one year apart is allowed
        when either is only a year. Unknown dates group when configured to.
        """
        year_a = date_year(date_a)
        year_b = date_year(date_b)
        if year_a is None or year_b is None:
            return self.settings.group_unknown_dates
        if is_precise_date(date_a) and is_precise_date(date_b):
            return abs(year_a - year_b) <= self.settings.same_year_tolerance
        return abs(year_a - year_b) <= self.settings.imprecise_date_tolerance

    def same_event(self, a: RegulatoryEvent, b: RegulatoryEvent) -> bool:
        return (
            self.same_regulator(a, b)
            and self._title_similar(a.description, b.description)
            and self.dates_compatible(a.date, b.date)
        )

    def dedupe_regulatory(self, events: Sequence[RegulatoryEvent]) -> list[RegulatoryEvent]:
        """Group reports of the same event; the first of each group is canonical.

        Grouping is a single pass: each event joins the first existing group
        holding any member it matches.
        """
        groups: list[list[RegulatoryEvent]] = []
        for event in self._reputable_first(events, lambda e: e.url):
            for group in groups:
                if any(self.same_event(event, member) for member in group):
                    group.append(event)
                    break
            else:
                groups.append([event])

        canonical_events = [self._merge_group(group) for group in groups]
        if len(canonical_events) < len(events):
            logger.info(f"Merged {len(events)} regulatory reports into {len(canonical_events)} events")
        return canonical_events[: self.settings.max_regulatory_events]

    @staticmethod
    def _merge_group(group: list[RegulatoryEvent]) -> RegulatoryEvent:
        canonical = group[0]
        seen_urls = {canonical.url}
        sources: list[RegulatoryEventSource] = []

        def add_source(source: RegulatoryEventSource) -> None:
            if source.url in seen_urls:
                return
            seen_urls.add(source.url)
            sources.append(source)

        for existing in canonical.sources:
            add_source(existing)
        for member in group[1:]:
            add_source(
                RegulatoryEventSource(
                    url=member.url,
                    title=member.description,
                    regulatory_body=member.regulatory_body,
                )
            )
            for existing in member.sources:
                add_source(existing)

        return canonical.model_copy(update={"sources": sources})

    def dedupe_competitor_mentions(self, mentions: Sequence[CompetitorMention]) -> list[CompetitorMention]:
        """Drop repeated URLs and near-identical titles for the same competitor."""
        emitted: list[CompetitorMention] = []
        seen_urls: set[str] = set()
        for mention in mentions:
            if mention.url in seen_urls:
                continue
            if any(
                prior.competitor_name.lower() == mention.competitor_name.lower()
                and mention.title
                and self._title_similar(mention.title, prior.title)
                for prior in emitted
            ):
                continue
            seen_urls.add(mention.url)
            emitted.append(mention)
        return emitted[: self.settings.max_competitor_mentions]


_deduplicator: Deduplicator | None = None


def get_deduplicator() -> Deduplicator:
    """Get the singleton Deduplicator instance."""
    global _deduplicator
    if _deduplicator is None:
        _deduplicator = Deduplicator()
    return _deduplicator
