"""Entry points of the evidence pipeline.

Each function takes the raw search hits for one company and returns
grounded records: every URL it emits is one of the input hits' URLs.
Components default to the process-wide singletons.
"""

import logging
from collections.abc import Sequence

from app.models import CompetitorMention, LeadershipChange, RawResult, RegulatoryEvent
from app.services.competitor_extractor import CompetitorExtractor
from app.services.deduplicator import Deduplicator, get_deduplicator
from app.services.leadership_extractor import LeadershipExtractor, get_leadership_extractor
from app.services.openrouter_service import get_openrouter_service
from app.services.regulatory_extractor import RegulatoryExtractor, get_regulatory_extractor
from app.services.url_verifier import get_url_verifier
from app.services.worker_pool import CancellationToken

logger = logging.getLogger(__name__)


def _grounded(records: list, raw_results: Sequence[RawResult], kind: str) -> list:
    batch_urls = {r.url for r in raw_results}
    kept = [record for record in records if record.url in batch_urls]
    if len(kept) < len(records):
        logger.warning(f"Dropped {len(records) - len(kept)} ungrounded {kind} records")
    return kept


def extract_leadership_changes(
    company: str,
    raw_results: Sequence[RawResult],
    extractor: LeadershipExtractor | None = None,
    deduplicator: Deduplicator | None = None,
) -> list[LeadershipChange]:
    """Leadership changes found in ``raw_results``, deduplicated."""
    if not company or not raw_results:
        return []
    extractor = extractor or get_leadership_extractor()
    deduplicator = deduplicator or get_deduplicator()

    changes = deduplicator.dedupe_leadership(extractor.extract(company, raw_results))
    return _grounded(changes, raw_results, "leadership")


async def extract_competitor_mentions(
    company: str,
    competitors: Sequence[str],
    raw_results: Sequence[RawResult],
    extractor: CompetitorExtractor | None = None,
    token: CancellationToken | None = None,
) -> list[CompetitorMention]:
    """Verified competitor mentions, highest confidence first."""
    if not company or not competitors or not raw_results:
        return []
    if extractor is None:
        extractor = CompetitorExtractor(
            verifier=get_url_verifier(),
            deduplicator=get_deduplicator(),
            llm=get_openrouter_service(),
        )

    mentions = await extractor.extract(company, competitors, raw_results, token=token)
    return _grounded(mentions, raw_results, "competitor")


def extract_regulatory_events(
    company: str,
    raw_results: Sequence[RawResult],
    extractor: RegulatoryExtractor | None = None,
) -> list[RegulatoryEvent]:
    """Regulatory events, one canonical record per real-world event."""
    if not company or not raw_results:
        return []
    extractor = extractor or get_regulatory_extractor()
    return _grounded(extractor.extract(company, raw_results), raw_results, "regulatory")
