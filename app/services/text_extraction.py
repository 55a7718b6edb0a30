"""Field extraction helpers for search snippets.

Regex-based readers for regulator names, event types, money amounts and
dates, plus the canonical-role table shared by extraction and dedup.
"""

import re

# Canonical title mappings for normalization
TITLE_NORMALIZATIONS: dict[str, str] = {
    # CEO variations
    "chief executive officer": "CEO",
    "chief exec officer": "CEO",
    "chief executive": "CEO",
    "c.e.o.": "CEO",
    # CFO variations
    "chief financial officer": "CFO",
    "chief finance officer": "CFO",
    "c.f.o.": "CFO",
    # COO variations
    "chief operating officer": "COO",
    "chief operations officer": "COO",
    # CTO variations
    "chief technology officer": "CTO",
    "chief technical officer": "CTO",
    # CMO / CIO / CISO
    "chief marketing officer": "CMO",
    "chief information officer": "CIO",
    "chief information security officer": "CISO",
    # People and legal
    "chief human resources officer": "CHRO",
    "chief people officer": "CPO",
    "chief legal officer": "CLO",
    "general counsel": "CLO",
    "chief product officer": "CPO",
    "chief revenue officer": "CRO",
    # VP variations
    "vice president": "VP",
    "vice-president": "VP",
    "senior vice president": "SVP",
    "sr. vice president": "SVP",
    "executive vice president": "EVP",
    # Board
    "chairwoman": "Chair",
    "chairman": "Chair",
    "chairperson": "Chair",
}

_SORTED_NORMALIZATIONS = sorted(TITLE_NORMALIZATIONS.items(), key=lambda kv: len(kv[0]), reverse=True)

# (body, url markers, phrases, acronym); first match wins.
# Acronyms are matched case-sensitively so "sec" or "occ" inside prose do not count.
REGULATORY_BODIES: list[tuple[str, tuple[str, ...], tuple[str, ...], str | None]] = [
    ("SEC", ("sec.gov",), ("securities and exchange commission",), "SEC"),
    ("FINRA", ("finra.org",), ("finra",), None),
    ("DOJ", ("justice.gov",), ("department of justice",), "DOJ"),
    ("FCA", ("fca.org",), ("financial conduct authority",), "FCA"),
    ("CFTC", ("cftc.gov",), ("cftc", "commodity futures"), None),
    ("OCC", ("occ.gov",), ("comptroller of the currency",), "OCC"),
    ("Federal Reserve", ("federalreserve.gov",), ("federal reserve",), None),
    ("FDIC", ("fdic.gov",), ("fdic",), None),
    ("CFPB", ("consumerfinance.gov",), ("cfpb", "consumer financial protection"), None),
    ("State AG", (), ("state attorney", "attorney general"), None),
    ("NYSE", (), ("nyse", "new york stock exchange"), None),
    ("ESMA", ("esma.europa.eu",), ("esma",), None),
]

_COMPILED_BODIES = [
    (
        body,
        url_markers,
        [re.compile(rf"\b{re.escape(phrase)}\b", re.IGNORECASE) for phrase in phrases]
        + ([re.compile(rf"\b{acronym}\b")] if acronym else []),
    )
    for body, url_markers, phrases, acronym in REGULATORY_BODIES
]

EVENT_TYPE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("fine", re.compile(r"\bfine[sd]?\b", re.IGNORECASE)),
    ("penalty", re.compile(r"\bpenalt(?:y|ies)\b", re.IGNORECASE)),
    ("settlement", re.compile(r"\bsettle(?:ment|ments|s|d)?\b|agreed to pay", re.IGNORECASE)),
    ("enforcement", re.compile(r"enforcement action", re.IGNORECASE)),
    ("investigation", re.compile(r"\binvestigat(?:ion|ing|es|ed)\b|\bprobe\b", re.IGNORECASE)),
    ("consent", re.compile(r"consent (?:order|decree)", re.IGNORECASE)),
    ("order", re.compile(r"cease and desist|\border\b", re.IGNORECASE)),
    ("action", re.compile(r"\bcharge[sd]\b|action against", re.IGNORECASE)),
]

AMOUNT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\$[\d,]+(?:\.\d+)?\s*(?:billion|bn)\b", re.IGNORECASE),
    re.compile(r"\$[\d,]+(?:\.\d+)?\s*(?:million|mn|m)\b", re.IGNORECASE),
    re.compile(r"\$[\d,]+(?:\.\d+)?"),
]

MONTHS = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
)

DATE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(rf"\b(?:{MONTHS})\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4}\b", re.IGNORECASE),
]

YEAR_PATTERN = re.compile(r"\b(?:19[89]\d|20[0-4]\d)\b")

UNKNOWN_DATE = "Recent"


def extract_regulatory_body(text: str, url: str = "") -> str:
    """Name the regulator behind an event, or ``"Regulatory"`` when unclear."""
    url_lower = url.lower()
    for body, url_markers, patterns in _COMPILED_BODIES:
        if any(marker in url_lower for marker in url_markers):
            return body
        if any(pattern.search(text) for pattern in patterns):
            return body
    return "Regulatory"


def extract_event_type(text: str) -> str:
    for event_type, pattern in EVENT_TYPE_PATTERNS:
        if pattern.search(text):
            return event_type
    return "other"


def extract_amount(text: str) -> str | None:
    """Return the first money amount such as ``$15 million``, ``$249M`` or ``$1.5 billion``."""
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0).strip()
    return None


def extract_date(text: str, default: str | None = None) -> str | None:
    """Find a date in free text.

    Month-year, numeric and ISO dates and "Mon D, YYYY" are tried first,
    then a bare year. Returns ``default`` when nothing matches.
    """
    if not text:
        return default
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    match = YEAR_PATTERN.search(text)
    if match:
        return match.group(0)
    return default


def date_year(date: str | None) -> int | None:
    if not date:
        return None
    match = YEAR_PATTERN.search(date)
    return int(match.group(0)) if match else None


def is_precise_date(date: str | None) -> bool:
    """True when the date names more than a year (a month or a day)."""
    if not date or date_year(date) is None:
        return False
    return any(pattern.search(date) for pattern in DATE_PATTERNS)


def canonical_role(role: str) -> str:
    """Map a role to its canonical short form ("Chief Executive" -> "CEO")."""
    if not role:
        return ""
    normalized = re.sub(r"\s+", " ", role.strip())
    role_lower = normalized.lower()
    if role_lower in TITLE_NORMALIZATIONS:
        return TITLE_NORMALIZATIONS[role_lower]
    for pattern, replacement in _SORTED_NORMALIZATIONS:
        if pattern in role_lower:
            normalized = re.sub(re.escape(pattern), replacement, normalized, flags=re.IGNORECASE)
            role_lower = normalized.lower()
    return normalized.strip()


def role_key(role: str) -> str:
    """Comparable role key: canonical form without "of <Company>" / "at <Company>" qualifiers."""
    canonical = canonical_role(role)
    if re.match(r"^(head|director|vp|svp|evp)\s+of\b", canonical, re.IGNORECASE):
        return canonical.lower()
    canonical = re.split(r"\s+(?:of|at|for)\s+", canonical, maxsplit=1)[0]
    return canonical.strip().lower()


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, adding ``...`` when shortened."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."
