"""Leadership change extraction from news snippets.

Articles are scanned by an ordered list of regex rules. Rules are grouped in
tiers: appointment phrasing first ("Acme appoints Jane Carter as CFO",
"Jane Carter was named CEO", "Jane Carter will serve as COO"), then
title-adjacent phrasing ("CEO, Jane Carter" / "Jane Carter, CEO"). A tier
only runs when the tiers before it found nothing in the article. As a last
resort, capitalized name spans are paired with a known title appearing
within a short distance.

Every captured name goes through the entity validator; roles are trimmed,
stripped of the subject-company qualifier and checked against political
office vocabulary.
"""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from pydantic import ValidationError

from app.core.config import PipelineConfig, get_pipeline_config
from app.models import LeadershipChange, RawResult
from app.services.text_extraction import extract_date
from app.services.url_verifier import domain_matches
from app.services.validation_service import EntityValidator

logger = logging.getLogger(__name__)

# Case-sensitive person-name span: 2-4 capitalized words, optional middle initial
NAME_PATTERN = (
    r"[A-Z](?:[a-z]|['’][A-Z])[A-Za-z'’\-]*"
    r"(?:\s+(?:[A-Z]\.\s+)?[A-Z](?:[a-z]|['’][A-Z])[A-Za-z'’\-]*){1,3}"
)
# Overlapping matches so "Names Jane Carter" still yields "Jane Carter"
FALLBACK_NAME_PATTERN = re.compile(r"(?<![A-Za-z])(?=([A-Z][a-z]+(?:\s+[A-Z]\.?)?\s+[A-Z][a-z]+))")

ROLE_TAIL = r"[^,;.\n]+"

APPOINT_VERBS = (
    "named|appointed|promoted|hired|tapped|elevated|"
    "names|appoints|promotes|hires|taps|elevates"
)
DEPART_VERBS = (
    "steps down|stepped down|will step down|resigns|resigned|retires|retired|"
    "departs|departed|exits|exited"
)
CONNECTORS = "to serve as|to the position of|to the role of|to be|as|to"

PROMOTION_VERBS = {"promoted", "promotes", "elevated", "elevates"}
DEPARTURE_PATTERN = re.compile(
    r"\b(?:step(?:s|ped)? down|resign(?:s|ed)?|retir(?:es|ed|ing)|depart(?:s|ed)?|exit(?:s|ed)?)\b",
    re.IGNORECASE,
)
EXPANDED_ROLE_PATTERN = re.compile(
    r"expanded role|additional role|adds? the (?:role|title)|additional responsibilit|"
    r"expanded responsibilit|also serve as",
    re.IGNORECASE,
)
FROM_TO_PATTERN = re.compile(
    r"^from\s+(?:the\s+)?(?:(?:role|position)\s+of\s+)?(?P<previous>.+?)\s+to\s+"
    r"(?:the\s+)?(?:(?:role|position)\s+of\s+)?(?P<role>.+)$",
    re.IGNORECASE,
)
HONORIFIC_PATTERN = re.compile(r"^(?:Mr\.|Ms\.|Mrs\.|Dr\.)\s*", re.IGNORECASE)


@dataclass
class RoleCandidate:
    """Raw capture from one rule before validation and cleanup."""

    name_span: str
    role_text: str
    verb: str | None = None
    context: str = ""


@dataclass
class ExtractionRule:
    """A named regex plus the function that turns a match into a candidate."""

    name: str
    pattern: re.Pattern[str]
    extractor: Callable[[re.Match[str], str], RoleCandidate | None]
    tier: int = 1


def _context_after(match: re.Match[str], text: str, span: int = 80) -> str:
    return match.group(0) + text[match.end():match.end() + span]


def _verb_first(match: re.Match[str], text: str) -> RoleCandidate:
    return RoleCandidate(match.group("name"), match.group("role"), match.group("verb"), _context_after(match, text))


def _name_first(match: re.Match[str], text: str) -> RoleCandidate:
    verb = match.groupdict().get("verb")
    return RoleCandidate(match.group("name"), match.group("role"), verb, _context_after(match, text))


def build_rules(known_titles: Sequence[str]) -> list[ExtractionRule]:
    """Compile the ordered rule list for a title vocabulary."""
    titles = "|".join(re.escape(t) for t in sorted(known_titles, key=len, reverse=True))
    return [
        ExtractionRule(
            name="action_verb",
            pattern=re.compile(
                rf"\b(?P<verb>(?i:{APPOINT_VERBS}))\s+(?P<name>{NAME_PATTERN})\s+"
                rf"(?i:{CONNECTORS})\s+(?P<role>{ROLE_TAIL})"
            ),
            extractor=_verb_first,
        ),
        ExtractionRule(
            name="tense_inverted",
            pattern=re.compile(
                rf"(?P<name>{NAME_PATTERN})\s+(?i:(?:has been|have been|was|is|has)\s+)?"
                rf"(?P<verb>(?i:named|appointed|promoted|hired|tapped|elevated))\s+"
                rf"(?i:(?:{CONNECTORS})\s+)?(?P<role>{ROLE_TAIL})"
            ),
            extractor=_name_first,
        ),
        ExtractionRule(
            name="departure",
            pattern=re.compile(
                rf"(?P<name>{NAME_PATTERN})\s+(?i:(?:has|will|is)\s+)?"
                rf"(?P<verb>(?i:{DEPART_VERBS}))\s+(?i:as|from)\s+(?:(?i:the|its)\s+)?"
                rf"(?P<role>(?i:{titles})\b[^,;.\n]*)"
            ),
            extractor=_name_first,
        ),
        ExtractionRule(
            name="future_tense",
            pattern=re.compile(
                rf"(?P<name>{NAME_PATTERN})\s+will\s+(?:serve as|be|become)\s+(?P<role>{ROLE_TAIL})"
            ),
            extractor=_name_first,
        ),
        ExtractionRule(
            name="title_then_name",
            pattern=re.compile(
                rf"\b(?P<role>(?i:{titles})(?:\s+(?:of\s+)?[A-Z][A-Za-z&]*(?:\s+[A-Z][A-Za-z&]*)*)?)"
                rf"\s*[,:]\s*(?P<name>{NAME_PATTERN})"
            ),
            extractor=_name_first,
            tier=2,
        ),
        ExtractionRule(
            name="name_then_title",
            pattern=re.compile(
                rf"(?P<name>{NAME_PATTERN}),\s+(?:(?i:the|a|an)\s+)?(?:(?i:new)\s+)?"
                rf"(?P<role>(?i:{titles})\b[^,;.\n]*)"
            ),
            extractor=_name_first,
            tier=2,
        ),
    ]


def infer_change_type(verb: str | None, context: str) -> str:
    """Classify a change from the matched verb and the text around it."""
    verb_lower = (verb or "").lower()
    if DEPARTURE_PATTERN.search(verb_lower):
        return "departed"
    if EXPANDED_ROLE_PATTERN.search(context):
        return "expanded_role"
    if verb_lower in PROMOTION_VERBS:
        return "promoted"
    if not verb_lower and DEPARTURE_PATTERN.search(context):
        return "departed"
    return "appointed"


class LeadershipExtractor:
    """Extracts ``LeadershipChange`` candidates from raw search results."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        validator: EntityValidator | None = None,
    ) -> None:
        self.config = config or get_pipeline_config()
        self.rules_config = self.config.entities
        self.validator = validator or EntityValidator(self.rules_config)
        self.rules = build_rules(self.rules_config.known_titles)
        self._title_patterns = [
            (title, re.compile(rf"(?<![A-Za-z]){re.escape(title)}(?![A-Za-z])", re.IGNORECASE))
            for title in sorted(self.rules_config.known_titles, key=len, reverse=True)
        ]

    def _has_title(self, role: str) -> bool:
        return any(pattern.search(role) for _, pattern in self._title_patterns)

    def clean_role(self, role: str, company: str = "") -> str:
        """Trim a captured role to its title; "" when it cannot be a role."""
        cleaned = re.sub(r"\s+", " ", role or "").strip()
        cleaned = re.sub(r"^(?:(?:the|a|an|new|its)\s+)+", "", cleaned, flags=re.IGNORECASE)
        cleaned = cleaned.rstrip(",;.:")

        for stop in self.rules_config.role_stop_words:
            # Padded so a stop word at the very end still matches
            idx = f"{cleaned.lower()} ".find(stop)
            if idx > 0:
                cleaned = cleaned[:idx]

        if company:
            escaped = re.escape(company.strip())
            cleaned = re.sub(rf"\s+(?:of|at|for)\s+(?:the\s+)?{escaped}\b.*$", "", cleaned, flags=re.IGNORECASE)
            cleaned = re.sub(rf"^{escaped}(?:['’]s)?\s+", "", cleaned, flags=re.IGNORECASE)

        cleaned = re.sub(r"\s+(?:of|at|for|to|in)$", "", cleaned.strip(), flags=re.IGNORECASE).strip()

        if not self._has_title(cleaned) and len(cleaned) > self.rules_config.max_untitled_role_length:
            return ""
        if len(cleaned) <= 2 or len(cleaned) >= 80:
            return ""
        if cleaned.lower().startswith("from "):
            return ""
        return cleaned

    def _split_previous_role(self, role_text: str, company: str) -> tuple[str, str | None]:
        match = FROM_TO_PATTERN.match(role_text.strip())
        if not match:
            return self.clean_role(role_text, company), None
        previous = self.clean_role(match.group("previous"), company) or None
        return self.clean_role(match.group("role"), company), previous

    def _build_change(
        self,
        candidate: RoleCandidate,
        article: RawResult,
        company: str,
        date: str | None,
    ) -> LeadershipChange | None:
        name = self.validator.extract_name_from_span(HONORIFIC_PATTERN.sub("", candidate.name_span))
        if not name:
            logger.debug(f"No valid name in span {candidate.name_span!r} ({article.url})")
            return None

        role, previous_role = self._split_previous_role(candidate.role_text, company)
        if not role:
            logger.debug(f"Rejected role {candidate.role_text!r} for {name}")
            return None
        if self.validator.is_political_role(role):
            logger.debug(f"Rejected political role {role!r} for {name}")
            return None

        try:
            return LeadershipChange(
                name=name,
                role=role,
                change_type=infer_change_type(candidate.verb, candidate.context),
                date=date,
                previous_role=previous_role,
                url=article.url,
                source=article.hostname,
                title=article.title,
            )
        except ValidationError as e:
            logger.debug(f"Dropping leadership candidate {name!r}: {e.errors()[0]['msg']}")
            return None

    def _proximity_candidates(self, text: str) -> list[RoleCandidate]:
        """Pair the first few valid names with a known title mentioned nearby."""
        names: list[tuple[str, list[int]]] = []
        for match in FALLBACK_NAME_PATTERN.finditer(text):
            name = HONORIFIC_PATTERN.sub("", match.group(1)).strip()
            existing = next((entry for entry in names if entry[0] == name), None)
            if existing:
                existing[1].append(match.start())
            elif self.validator.is_valid_name(name):
                names.append((name, [match.start()]))

        window = self.rules_config.title_proximity_chars
        candidates: list[RoleCandidate] = []
        for name, positions in names[:3]:
            for title, pattern in self._title_patterns:
                hit = next(
                    (
                        m for m in pattern.finditer(text)
                        if any(abs(m.start() - pos) < window for pos in positions)
                    ),
                    None,
                )
                if hit:
                    start = max(min(positions) - window, 0)
                    candidates.append(RoleCandidate(name, title, None, text[start:hit.end() + window]))
                    break
        return candidates

    def extract_from_article(self, article: RawResult, company: str) -> list[LeadershipChange]:
        text = article.text
        date = extract_date(text)
        changes: list[LeadershipChange] = []
        seen_names: set[str] = set()

        def add(candidate: RoleCandidate) -> None:
            change = self._build_change(candidate, article, company, date)
            if change is None or change.name.lower() in seen_names:
                return
            seen_names.add(change.name.lower())
            changes.append(change)

        for tier in sorted({rule.tier for rule in self.rules}):
            for rule in (r for r in self.rules if r.tier == tier):
                for match in rule.pattern.finditer(text):
                    candidate = rule.extractor(match, text)
                    if candidate is not None:
                        add(candidate)
            if changes:
                return changes

        for candidate in self._proximity_candidates(text):
            add(candidate)
        return changes

    def is_reputable(self, url: str) -> bool:
        return domain_matches(url, self.config.reputable_sources)

    def extract(self, company: str, raw_results: Sequence[RawResult]) -> list[LeadershipChange]:
        """Extract candidates from every article, reputable sources first.

        The result is not deduplicated across articles.
        """
        ordered = sorted(raw_results, key=lambda r: 0 if self.is_reputable(r.url) else 1)
        changes: list[LeadershipChange] = []
        for article in ordered:
            changes.extend(self.extract_from_article(article, company))
        logger.info(f"Extracted {len(changes)} leadership candidates from {len(ordered)} articles")
        return changes


_leadership_extractor: LeadershipExtractor | None = None


def get_leadership_extractor() -> LeadershipExtractor:
    """Get the singleton LeadershipExtractor instance."""
    global _leadership_extractor
    if _leadership_extractor is None:
        _leadership_extractor = LeadershipExtractor()
    return _leadership_extractor
