"""Configuration for the evidence pipeline.

API keys and runtime knobs come from environment variables (loaded from
``.env`` by ``app.main``). Blocklists, domain maps and scoring weights are
read-only data grouped into frozen dataclasses and injected into each
component at construction time. A JSON file named by ``PIPELINE_CONFIG_PATH``
may override any of the defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any

logger = logging.getLogger(__name__)

# API Configuration
TAVILY_API_KEY = os.getenv("TAVILY_API_KEY", "")
WEBSEARCHAPI_KEY = os.getenv("WEBSEARCHAPI_KEY", "")
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_MODEL = os.getenv("OPENROUTER_MODEL", "anthropic/claude-3.5-sonnet")
OPENROUTER_SEARCH_MODEL = os.getenv("OPENROUTER_SEARCH_MODEL", "perplexity/sonar")

# Runtime knobs
SEARCH_TIMEOUT_SECONDS = float(os.getenv("SEARCH_TIMEOUT_SECONDS", "15"))
VERIFY_TIMEOUT_SECONDS = float(os.getenv("VERIFY_TIMEOUT_SECONDS", "8"))
MAX_IN_FLIGHT = int(os.getenv("MAX_IN_FLIGHT", "8"))
PIPELINE_CONFIG_PATH = os.getenv("PIPELINE_CONFIG_PATH", "")

# Comma-separated list; empty means the local dev server defaults
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")


# Common fake/placeholder names that LLMs often generate
DEFAULT_FAKE_NAMES: tuple[str, ...] = (
    "john doe", "jane doe", "john smith", "jane smith",
    "bob smith", "alice smith", "mary smith", "james smith",
    "michael johnson", "sarah johnson", "david williams", "jennifer brown",
    "robert jones", "patricia davis", "william miller", "linda wilson",
    "example person", "sample name", "test user", "placeholder",
)

# Phrases that look like names but aren't (titles, places, headline words)
DEFAULT_NON_NAME_PHRASES: tuple[str, ...] = (
    # Job titles
    "vice president", "chief executive", "chief operating", "chief financial",
    "chief technology", "chief marketing", "chief information", "chief product",
    "chief revenue", "chief people", "chief strategy", "chief legal",
    "managing director", "general manager", "senior director", "executive director",
    "senior vice", "executive vice", "group vice", "regional vice",
    "board member", "board director", "advisory board",
    # Places and headline fragments
    "white house", "wall street", "silicon valley", "new york", "los angeles",
    "san francisco", "hong kong", "united states", "united kingdom",
    "announces new", "names new", "appoints new", "hires new",
    "promoted to", "steps down", "steps up", "takes over", "joins as",
    "company announces", "firm announces", "corporation announces",
    # Partial phrases
    "adviser to", "advisor to", "counsel to", "assistant to",
    "head of", "director of", "manager of", "leader of",
    # Boilerplate web text
    "read more", "privacy policy", "terms of use", "cookie policy",
    "all rights reserved", "contact us", "sign up", "learn more",
    "press release", "related articles", "subscribe now",
    # Company name patterns
    "inc announces", "corp announces", "llc announces", "ltd announces",
)

# Tokens that mark an organization rather than a person
DEFAULT_COMPANY_INDICATORS: tuple[str, ...] = (
    "capital", "partners", "holdings", "group", "inc", "corp", "corporation",
    "company", "llc", "ltd", "plc", "bank", "technologies", "ventures",
    "securities", "financial", "associates", "systems", "solutions",
    "management", "investments", "labs", "global", "international",
)

# Words that can never be part of a person's name
DEFAULT_TITLE_WORDS: tuple[str, ...] = (
    "chief", "vice", "president", "director", "officer", "manager", "executive",
    "senior", "head", "board", "adviser", "advisor", "counsel", "assistant",
    "chairman", "chairwoman", "founder", "ceo", "cfo", "coo", "cto",
    "announces", "appoints", "names", "hires", "promoted", "appointed",
    "named", "hired", "joins", "welcomes", "taps", "elevates", "promotes",
)

DEFAULT_POLITICAL_ROLES: tuple[str, ...] = (
    "senator", "governor", "mayor", "congressman", "congresswoman",
    "congressional", "u.s. representative", "state representative",
    "prime minister", "minister",
    "secretary of state", "treasury secretary", "secretary of the treasury",
    "attorney general", "ambassador", "chancellor of germany",
    "president of the united states", "vice president of the united states",
    "u.s. president", "us president", "white house", "press secretary",
    "speaker of the house", "member of parliament", "cabinet", "lawmaker",
    "parliament", "legislator", "state senator", "head of state",
)

DEFAULT_POLITICAL_FIGURES: tuple[str, ...] = (
    "donald trump", "joe biden", "kamala harris", "barack obama",
    "mike pence", "jd vance", "nancy pelosi", "mitch mcconnell",
    "elizabeth warren", "chuck schumer", "janet yellen", "scott bessent",
    "gary gensler", "paul atkins", "jerome powell", "keir starmer",
    "rishi sunak", "emmanuel macron", "olaf scholz",
)

# Fixed executive-title vocabulary
DEFAULT_KNOWN_TITLES: tuple[str, ...] = (
    "Chief Information Security Officer",
    "Chief Executive Officer", "Chief Financial Officer", "Chief Technology Officer",
    "Chief Operating Officer", "Chief Marketing Officer", "Chief Information Officer",
    "Chief Product Officer", "Chief Revenue Officer", "Chief Executive",
    "Senior Vice President", "Executive Vice President",
    "Managing Director", "General Manager", "General Counsel", "Board Member",
    "Co-President", "Vice President",
    "CEO", "CFO", "CTO", "COO", "CMO", "CIO", "CISO", "CPO", "CRO",
    "President", "VP", "SVP", "EVP",
    "Director", "Head of", "Chairman", "Chairwoman", "Chair",
)

DEFAULT_ROLE_STOP_WORDS: tuple[str, ...] = (
    " and ", " while ", " where ", " who ", " effective ", " starting ", " beginning ",
    " replacing ", " succeeding ", " after ", " following ", " has been ", " has ", " was ",
    " said ", " says ",
)

# News and wire domains treated as higher trust
DEFAULT_REPUTABLE_SOURCES: tuple[str, ...] = (
    "reuters.com", "bloomberg.com", "wsj.com", "ft.com", "cnbc.com",
    "apnews.com", "nytimes.com", "washingtonpost.com", "forbes.com",
    "fortune.com", "businessinsider.com", "economist.com", "barrons.com",
    "marketwatch.com", "theguardian.com", "bbc.com", "bbc.co.uk",
    "sec.gov", "finra.org", "justice.gov", "fca.org.uk", "cftc.gov",
    "federalreserve.gov", "consumerfinance.gov", "occ.gov", "fdic.gov",
    "businesswire.com", "globenewswire.com",
)

# Compliance/archiving vendors watched for co-mentions
DEFAULT_COMPETITOR_DOMAINS: dict[str, tuple[str, ...]] = {
    "Theta Lake": ("thetalake.com",),
    "Smarsh": ("smarsh.com",),
    "Global Relay": ("globalrelay.com",),
    "NICE": ("nice.com",),
    "Verint": ("verint.com",),
    "Arctera": ("arctera.io",),
    "Veritas": ("veritas.com",),
    "Proofpoint": ("proofpoint.com",),
    "Shield": ("shieldfc.com",),
    "Behavox": ("behavox.com",),
    "Digital Reasoning": ("digitalreasoning.com",),
    "Mimecast": ("mimecast.com",),
    "ZL Technologies": ("zlti.com",),
}

DEFAULT_SOFT_404_MARKERS: tuple[str, ...] = (
    "page not found",
    "no longer available",
    "page you requested could not be found",
    "page doesn't exist",
    "page does not exist",
)

DEFAULT_LISTING_SEGMENTS: tuple[str, ...] = (
    "customers", "case-studies", "partners", "resources", "news", "blog",
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass(frozen=True)
class EntityRules:
    """Blocklists and vocabularies used to tell people from everything else."""

    fake_names: tuple[str, ...] = DEFAULT_FAKE_NAMES
    non_name_phrases: tuple[str, ...] = DEFAULT_NON_NAME_PHRASES
    company_indicators: tuple[str, ...] = DEFAULT_COMPANY_INDICATORS
    title_words: tuple[str, ...] = DEFAULT_TITLE_WORDS
    political_roles: tuple[str, ...] = DEFAULT_POLITICAL_ROLES
    political_figures: tuple[str, ...] = DEFAULT_POLITICAL_FIGURES
    known_titles: tuple[str, ...] = DEFAULT_KNOWN_TITLES
    role_stop_words: tuple[str, ...] = DEFAULT_ROLE_STOP_WORDS
    min_name_length: int = 5
    max_name_length: int = 40
    max_untitled_role_length: int = 40
    title_proximity_chars: int = 100


@dataclass(frozen=True)
class VerifierSettings:
    """Settings for fetching and re-reading cited pages."""

    timeout_seconds: float = VERIFY_TIMEOUT_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    soft_404_markers: tuple[str, ...] = DEFAULT_SOFT_404_MARKERS
    listing_segments: tuple[str, ...] = DEFAULT_LISTING_SEGMENTS


@dataclass(frozen=True)
class ScoringSettings:
    """Weights for competitor-mention confidence."""

    verified_url_bonus: int = 15
    title_relevance_bonus: int = 5
    unknown_type_penalty: int = 10
    unreputable_source_penalty: int = 10
    unverified_threshold: int = 75
    default_relevance: float = 0.5


@dataclass(frozen=True)
class DedupSettings:
    """Limits and grouping thresholds for canonical records."""

    max_leadership_changes: int = 6
    max_regulatory_events: int = 10
    max_competitor_mentions: int = 10
    title_jaccard_threshold: float = 0.6
    # Grouping window for regulatory events, in years
    same_year_tolerance: int = 0
    imprecise_date_tolerance: int = 1
    group_unknown_dates: bool = True


@dataclass(frozen=True)
class AggregatorSettings:
    """Fan-out policy for search providers."""

    timeout_seconds: float = SEARCH_TIMEOUT_SECONDS
    max_in_flight: int = MAX_IN_FLIGHT


@dataclass(frozen=True)
class PipelineConfig:
    """Process-wide, read-only configuration for the evidence pipeline."""

    entities: EntityRules = field(default_factory=EntityRules)
    verifier: VerifierSettings = field(default_factory=VerifierSettings)
    scoring: ScoringSettings = field(default_factory=ScoringSettings)
    dedup: DedupSettings = field(default_factory=DedupSettings)
    aggregator: AggregatorSettings = field(default_factory=AggregatorSettings)
    reputable_sources: tuple[str, ...] = DEFAULT_REPUTABLE_SOURCES
    competitor_domains: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_COMPETITOR_DOMAINS)
    )

    def domains_for(self, competitor_name: str) -> tuple[str, ...]:
        """Return configured domains for a competitor (case-insensitive name lookup)."""
        wanted = competitor_name.strip().lower()
        for name, domains in self.competitor_domains.items():
            if name.lower() == wanted:
                return domains
        return ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PipelineConfig":
        """Build a config from a (partial) dictionary, falling back to defaults."""
        base = cls()
        sections = {
            "entities": base.entities,
            "verifier": base.verifier,
            "scoring": base.scoring,
            "dedup": base.dedup,
            "aggregator": base.aggregator,
        }
        overrides: dict[str, Any] = {}
        for key, section in sections.items():
            if isinstance(data.get(key), dict):
                overrides[key] = _replace_section(section, data[key])
        if "reputable_sources" in data:
            overrides["reputable_sources"] = tuple(data["reputable_sources"])
        if isinstance(data.get("competitor_domains"), dict):
            overrides["competitor_domains"] = {
                name: tuple(domains) for name, domains in data["competitor_domains"].items()
            }
        return replace(base, **overrides)

    @classmethod
    def from_file(cls, path: str) -> "PipelineConfig":
        with open(path, encoding="utf-8") as fh:
            return cls.from_dict(json.load(fh))


def _replace_section(section: Any, values: dict[str, Any]) -> Any:
    known = {f.name: f for f in fields(section)}
    updates: dict[str, Any] = {}
    for key, value in values.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        current = getattr(section, key)
        updates[key] = tuple(value) if isinstance(current, tuple) else value
    return replace(section, **updates)


_pipeline_config: PipelineConfig | None = None


def get_pipeline_config() -> PipelineConfig:
    """Get the singleton PipelineConfig instance."""
    global _pipeline_config
    if _pipeline_config is None:
        if PIPELINE_CONFIG_PATH:
            logger.info(f"Loading pipeline config from {PIPELINE_CONFIG_PATH}")
            _pipeline_config = PipelineConfig.from_file(PIPELINE_CONFIG_PATH)
        else:
            _pipeline_config = PipelineConfig()
    return _pipeline_config
