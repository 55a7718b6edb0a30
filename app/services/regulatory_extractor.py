"""Regulatory event extraction from search results."""

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from app.core.config import PipelineConfig, get_pipeline_config
from app.models import EVENT_TYPES, RawResult, RegulatoryEvent
from app.services.deduplicator import Deduplicator
from app.services.openrouter_service import OpenRouterService, iter_json_records, sanitize_prompt_input
from app.services.source_aggregator import is_job_page, mentions_regulatory_action
from app.services.text_extraction import (
    UNKNOWN_DATE,
    extract_amount,
    extract_date,
    extract_event_type,
    extract_regulatory_body,
    truncate,
)

logger = logging.getLogger(__name__)

DESCRIPTION_LENGTH = 100
EVIDENCE_SNIPPET_LENGTH = 400

EXTRACTION_PROMPT = """List regulatory enforcement events involving "{company}" found in the search results below.

SEARCH RESULTS:
{evidence}

RULES:
- Only include fines, penalties, settlements, enforcement actions, consent orders or investigations
  that name "{company}" directly.
- The url field MUST be copied exactly from one of the results above. Never invent a URL.
- Use "Recent" for the date when the result does not state one.
- If no events are found, return an empty array.

Return ONLY a JSON array:
[{{"date": "...", "regulatoryBody": "...", "eventType": "fine|penalty|settlement|enforcement|investigation|consent|order|action|other", "amount": "...", "description": "...", "url": "..."}}]"""


class RegulatoryExtractor:
    """Turns regulatory search hits into deduplicated ``RegulatoryEvent`` records."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        deduplicator: Deduplicator | None = None,
        llm: OpenRouterService | None = None,
    ) -> None:
        self.config = config or get_pipeline_config()
        self.deduplicator = deduplicator or Deduplicator(self.config)
        self.llm = llm

    def event_from_result(self, result: RawResult) -> RegulatoryEvent | None:
        text = result.text
        try:
            return RegulatoryEvent(
                date=extract_date(text, UNKNOWN_DATE),
                regulatory_body=extract_regulatory_body(text, result.url),
                event_type=extract_event_type(text),
                amount=extract_amount(text),
                description=truncate(result.title or result.content, DESCRIPTION_LENGTH),
                url=result.url,
            )
        except ValidationError as e:
            logger.debug(f"Dropping regulatory event {result.url}: {e.errors()[0]['msg']}")
            return None

    def candidates(self, company: str, raw_results: Sequence[RawResult]) -> list[RegulatoryEvent]:
        """One event per result that names the company alongside a regulatory keyword."""
        events: list[RegulatoryEvent] = []
        for result in raw_results:
            if is_job_page(result.url) or not mentions_regulatory_action(company, result):
                continue
            event = self.event_from_result(result)
            if event is not None:
                events.append(event)
        return events

    def extract(self, company: str, raw_results: Sequence[RawResult]) -> list[RegulatoryEvent]:
        events = self.candidates(company, raw_results)
        deduped = self.deduplicator.dedupe_regulatory(events)
        logger.info(f"Regulatory events for {company}: {len(events)} reports, {len(deduped)} events")
        return deduped

    def _build_prompt(self, company: str, raw_results: Sequence[RawResult]) -> str:
        evidence = "\n".join(
            f"[{i}] Title: {r.title} | URL: {r.url} | Content: {r.content[:EVIDENCE_SNIPPET_LENGTH]}"
            for i, r in enumerate(raw_results, start=1)
        )
        return EXTRACTION_PROMPT.format(company=sanitize_prompt_input(company), evidence=evidence)

    def _event_from_record(self, record: dict[str, Any], evidence: RawResult) -> RegulatoryEvent | None:
        text = evidence.text
        event_type = record.get("eventType")
        if event_type not in EVENT_TYPES:
            event_type = extract_event_type(text)
        description = record.get("description")
        if not isinstance(description, str) or not description.strip():
            description = evidence.title or evidence.content
        date = record.get("date")
        if not isinstance(date, str) or not date.strip():
            date = extract_date(text, UNKNOWN_DATE)
        body = record.get("regulatoryBody")
        if not isinstance(body, str) or not body.strip():
            body = extract_regulatory_body(text, evidence.url)
        amount = record.get("amount")
        try:
            return RegulatoryEvent(
                date=date.strip(),
                regulatory_body=body.strip(),
                event_type=event_type,
                amount=amount.strip() if isinstance(amount, str) and amount.strip() else extract_amount(text),
                description=truncate(description, DESCRIPTION_LENGTH),
                url=evidence.url,
            )
        except ValidationError as e:
            logger.debug(f"Dropping LLM regulatory event {evidence.url}: {e.errors()[0]['msg']}")
            return None

    async def propose_with_llm(self, company: str, raw_results: Sequence[RawResult]) -> list[RegulatoryEvent]:
        """Ask the LLM for events; any URL outside the evidence is discarded."""
        if not self.llm or not self.llm.is_configured or not raw_results:
            return []

        response_text = await self.llm.extract(self._build_prompt(company, raw_results))
        evidence_by_url = {r.url: r for r in raw_results}

        events: list[RegulatoryEvent] = []
        for record in iter_json_records(response_text, list_keys=("events", "results")):
            url = record.get("url")
            if not isinstance(url, str) or url not in evidence_by_url:
                logger.debug(f"Discarding LLM regulatory event with URL outside evidence: {url!r}")
                continue
            event = self._event_from_record(record, evidence_by_url[url])
            if event is not None:
                events.append(event)
        logger.info(f"LLM proposed {len(events)} grounded regulatory events")
        return events

    async def extract_with_llm(self, company: str, raw_results: Sequence[RawResult]) -> list[RegulatoryEvent]:
        """Heuristic events plus grounded LLM proposals, deduplicated together."""
        events = self.candidates(company, raw_results)
        covered = {event.url for event in events}
        for event in await self.propose_with_llm(company, raw_results):
            if event.url not in covered:
                covered.add(event.url)
                events.append(event)
        return self.deduplicator.dedupe_regulatory(events)


_regulatory_extractor: RegulatoryExtractor | None = None


def get_regulatory_extractor() -> RegulatoryExtractor:
    """Get the singleton RegulatoryExtractor instance."""
    global _regulatory_extractor
    if _regulatory_extractor is None:
        _regulatory_extractor = RegulatoryExtractor()
    return _regulatory_extractor
