"""Competitor co-mention extraction.

Finds search results where the subject company and a competitor appear
together in a business context, verifies each cited page, scores it and
deduplicates. An optional LLM pass can propose additional mentions from
the same evidence; any URL it returns that is not in the evidence is
discarded.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import ValidationError

from app.core.config import PipelineConfig, get_pipeline_config
from app.models import MENTION_TYPES, CompetitorMention, RawResult
from app.services.confidence_scorer import ConfidenceScorer, ScoreInput
from app.services.deduplicator import Deduplicator
from app.services.openrouter_service import OpenRouterService, iter_json_records, sanitize_prompt_input
from app.services.text_extraction import extract_date, truncate
from app.services.url_verifier import UrlVerifier
from app.services.worker_pool import CancellationToken

logger = logging.getLogger(__name__)

GENERIC_PAGE_PATTERN = re.compile(
    r"(career|job|about-us|contact|pricing|demo|login|signup|privacy|terms|webinar|event|conference)",
    re.IGNORECASE,
)

# Finance and advisory context, not a product relationship
FINANCE_KEYWORDS = (
    "advisory board", "board member", "board of directors", "co-author",
    "investment bank", "financial advisor", "underwriter", "ipo",
    "sec filing", "regulatory filing", "proxy statement",
    "conference speaker", "panel discussion", "webinar speaker",
    "industry report co-author", "white paper co-author",
)

RELATIONSHIP_WORDS = ("partner", "customer", "integration", "deploy", "use", "solution")

SUMMARY_LENGTH = 150
EVIDENCE_SNIPPET_LENGTH = 300

EXTRACTION_PROMPT = """Extract mentions where "{company}" and a compliance/archiving vendor appear together.

COMPANY BEING ANALYZED: {company}
VENDORS TO LOOK FOR: {competitors}

SEARCH RESULTS:
{evidence}

RULES:
- Extract results where "{company}" and a vendor appear together in a business context
  (customer relationship, partnership, integration, deployment, case study, comparison).
- The url field MUST be copied exactly from one of the results above. Never invent a URL.
- Both "{company}" AND the vendor name must appear in the content.
- Provide a 1-2 sentence summary citing specific evidence from the content.
- If no real mentions are found, return an empty array.

Return ONLY a JSON array:
[{{"competitorName": "...", "mentionType": "customer|partner|integration|case_study|press_release|comparison|other", "title": "...", "url": "...", "summary": "..."}}]"""


def infer_mention_type(url: str, content: str) -> str:
    """Guess the relationship type from URL and content markers."""
    url_lower = url.lower()
    content_lower = content.lower()

    if any(m in url_lower for m in ("case-study", "casestudy", "customer-story")) or "case study" in content_lower:
        return "case_study"
    if "integration" in url_lower or "connector" in url_lower or "integrat" in content_lower:
        return "integration"
    if "customer" in url_lower or "client" in url_lower or "customer" in content_lower:
        return "customer"
    if "partner" in url_lower or "partner" in content_lower:
        return "partner"
    if any(m in url_lower for m in ("press", "news", "blog")):
        return "press_release"
    return "other"


def create_summary(content: str, company: str) -> str:
    """First sentence naming the company and a relationship word, else the opening text."""
    company_lower = company.lower()
    sentences = [s.strip() for s in re.split(r"[.!?]+", content) if len(s.strip()) > 20]
    for sentence in sentences:
        lowered = sentence.lower()
        if company_lower in lowered and any(word in lowered for word in RELATIONSHIP_WORDS):
            return truncate(sentence, SUMMARY_LENGTH)
    return truncate(content, SUMMARY_LENGTH)


def is_finance_context(text: str) -> bool:
    text_lower = text.lower()
    return any(re.search(rf"\b{re.escape(kw)}\b", text_lower) for kw in FINANCE_KEYWORDS)


@dataclass
class MentionCandidate:
    competitor_name: str
    result: RawResult
    mention_type: str
    summary: str


class CompetitorExtractor:
    """Builds verified, scored ``CompetitorMention`` records."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        verifier: UrlVerifier | None = None,
        scorer: ConfidenceScorer | None = None,
        deduplicator: Deduplicator | None = None,
        llm: OpenRouterService | None = None,
    ) -> None:
        self.config = config or get_pipeline_config()
        self.verifier = verifier or UrlVerifier(self.config.verifier)
        self.scorer = scorer or ConfidenceScorer(self.config)
        self.deduplicator = deduplicator or Deduplicator(self.config)
        self.llm = llm

    def find_candidates(
        self,
        company: str,
        competitors: Sequence[str],
        raw_results: Sequence[RawResult],
    ) -> list[MentionCandidate]:
        """Heuristic candidates: both names present, not a generic or finance page."""
        company_lower = company.lower()
        candidates: list[MentionCandidate] = []
        for result in raw_results:
            text_lower = result.text.lower()
            if company_lower not in text_lower:
                continue
            if GENERIC_PAGE_PATTERN.search(result.url):
                logger.debug(f"Skipping generic page {result.url}")
                continue
            if is_finance_context(result.text):
                logger.debug(f"Skipping finance/advisory context {result.url}")
                continue
            for competitor in competitors:
                if competitor.lower() not in text_lower:
                    continue
                candidates.append(
                    MentionCandidate(
                        competitor_name=competitor,
                        result=result,
                        mention_type=infer_mention_type(result.url, result.content),
                        summary=create_summary(result.content, company),
                    )
                )
        return candidates

    def _build_prompt(self, company: str, competitors: Sequence[str], raw_results: Sequence[RawResult]) -> str:
        evidence = "\n".join(
            f"[{i}] Title: {r.title} | URL: {r.url} | Content: {r.content[:EVIDENCE_SNIPPET_LENGTH]}"
            for i, r in enumerate(raw_results, start=1)
        )
        return EXTRACTION_PROMPT.format(
            company=sanitize_prompt_input(company),
            competitors=", ".join(sanitize_prompt_input(c) for c in competitors),
            evidence=evidence,
        )

    async def propose_with_llm(
        self,
        company: str,
        competitors: Sequence[str],
        raw_results: Sequence[RawResult],
    ) -> list[MentionCandidate]:
        """Ask the LLM for mentions; keep only those citing a URL from the evidence."""
        if not self.llm or not self.llm.is_configured or not raw_results:
            return []

        response_text = await self.llm.extract(self._build_prompt(company, competitors, raw_results))
        evidence_by_url = {r.url: r for r in raw_results}
        known = {c.lower(): c for c in competitors}

        candidates: list[MentionCandidate] = []
        for record in iter_json_records(response_text, list_keys=("mentions", "results")):
            url = record.get("url")
            if not isinstance(url, str) or url not in evidence_by_url:
                logger.debug(f"Discarding LLM mention with URL outside evidence: {url!r}")
                continue
            competitor = known.get(str(record.get("competitorName") or "").strip().lower())
            if competitor is None:
                logger.debug(f"Discarding LLM mention for unknown competitor: {record.get('competitorName')!r}")
                continue
            result = evidence_by_url[url]
            mention_type = record.get("mentionType")
            if mention_type not in MENTION_TYPES:
                mention_type = infer_mention_type(result.url, result.content)
            summary = record.get("summary") if isinstance(record.get("summary"), str) else ""
            candidates.append(
                MentionCandidate(
                    competitor_name=competitor,
                    result=result,
                    mention_type=mention_type,
                    summary=truncate(summary, SUMMARY_LENGTH) or create_summary(result.content, company),
                )
            )
        logger.info(f"LLM proposed {len(candidates)} grounded competitor mentions")
        return candidates

    async def extract(
        self,
        company: str,
        competitors: Sequence[str],
        raw_results: Sequence[RawResult],
        token: CancellationToken | None = None,
    ) -> list[CompetitorMention]:
        """Find, verify, score and deduplicate competitor mentions.

        Returns mentions sorted by confidence, highest first.
        """
        if not competitors or not raw_results:
            return []

        candidates = self.find_candidates(company, competitors, raw_results)
        llm_candidates = await self.propose_with_llm(company, competitors, raw_results)

        merged: list[MentionCandidate] = []
        seen: set[tuple[str, str]] = set()
        for candidate in llm_candidates + candidates:
            key = (candidate.result.url, candidate.competitor_name.lower())
            if key in seen:
                continue
            seen.add(key)
            merged.append(candidate)

        if not merged:
            return []

        checks = []
        for candidate in merged:
            domains = self.config.domains_for(candidate.competitor_name)
            checks.append((candidate.result.url, [company, candidate.competitor_name], domains or None))
        outcomes = await self.verifier.verify_many(checks, token=token)

        mentions: list[CompetitorMention] = []
        for candidate, outcome in zip(merged, outcomes):
            if not outcome.valid:
                continue
            result = self.scorer.score(
                ScoreInput.from_result(candidate.result, candidate.mention_type),
                company,
                candidate.competitor_name,
            )
            try:
                mentions.append(
                    CompetitorMention(
                        competitor_name=candidate.competitor_name,
                        mention_type=candidate.mention_type,
                        title=candidate.result.title,
                        url=candidate.result.url,
                        summary=candidate.summary,
                        date=extract_date(candidate.result.text),
                        confidence=result.confidence,
                        unverified=result.unverified,
                    )
                )
            except ValidationError as e:
                logger.debug(f"Dropping competitor mention {candidate.result.url}: {e.errors()[0]['msg']}")

        mentions.sort(key=lambda m: m.confidence, reverse=True)
        deduped = self.deduplicator.dedupe_competitor_mentions(mentions)
        logger.info(f"Competitor mentions: {len(merged)} candidates, {len(deduped)} verified")
        return deduped
