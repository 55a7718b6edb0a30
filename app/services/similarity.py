"""Text similarity primitives.

Pure functions, no I/O. ``edit_similarity`` backs fuzzy company-name matching;
``title_similar`` is the duplicate test used when grouping re-syndicated
stories and overlapping regulatory reports.
"""

import re

from rapidfuzz.distance import Levenshtein

TITLE_JACCARD_THRESHOLD = 0.6
MIN_TOKEN_LENGTH = 3

# Headline filler that carries no identity
TITLE_STOP_WORDS: frozenset[str] = frozenset({
    "the", "and", "for", "over", "with", "from", "into", "after", "amid",
    "its", "his", "her", "their", "has", "have", "had", "was", "were", "are",
    "will", "that", "this", "than", "about", "against", "says", "said",
    "report", "reports", "news", "update", "new",
})

_AMOUNT_RE = re.compile(
    r"\$\s?(\d[\d,]*(?:\.\d+)?)\s*(billion|bn|b|million|mn|m|thousand|k)?\b",
    re.IGNORECASE,
)

_MULTIPLIERS = {
    "billion": 1_000_000_000, "bn": 1_000_000_000, "b": 1_000_000_000,
    "million": 1_000_000, "mn": 1_000_000, "m": 1_000_000,
    "thousand": 1_000, "k": 1_000,
}

_SUFFIXES = ("ing", "ed", "es", "s")


def edit_similarity(a: str, b: str) -> float:
    """Return ``1 - levenshtein(a, b) / max(len(a), len(b))``.

    Symmetric, and 1.0 for identical strings (including two empty strings).
    """
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


def _canonical_amount(match: re.Match[str]) -> str:
    number = float(match.group(1).replace(",", ""))
    unit = (match.group(2) or "").lower()
    dollars = int(round(number * _MULTIPLIERS.get(unit, 1)))
    return f" usd{dollars} "


def normalize_title(text: str) -> str:
    """Lowercase, canonicalize money amounts, strip non-alphanumerics, collapse whitespace."""
    if not text:
        return ""
    text = _AMOUNT_RE.sub(_canonical_amount, text)
    text = re.sub(r"[^a-z0-9\s]", " ", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def _stem(token: str) -> str:
    if token.startswith("usd"):
        return token
    for suffix in _SUFFIXES:
        if token.endswith(suffix) and len(token) - len(suffix) >= MIN_TOKEN_LENGTH:
            return token[: -len(suffix)]
    return token


def title_tokens(normalized: str) -> set[str]:
    """Tokens longer than two characters, stop words removed, lightly stemmed."""
    return {
        _stem(token)
        for token in normalized.split()
        if len(token) >= MIN_TOKEN_LENGTH and token not in TITLE_STOP_WORDS
    }


def token_jaccard(a: str, b: str) -> float:
    tokens_a = title_tokens(normalize_title(a))
    tokens_b = title_tokens(normalize_title(b))
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def title_similar(a: str, b: str, threshold: float = TITLE_JACCARD_THRESHOLD) -> bool:
    """Check whether two headlines describe the same story.

    True when the normalized strings are equal, one contains the other, or
    their token Jaccard similarity exceeds ``threshold``.
    """
    norm_a = normalize_title(a)
    norm_b = normalize_title(b)
    if not norm_a or not norm_b:
        return False
    if norm_a == norm_b or norm_a in norm_b or norm_b in norm_a:
        return True
    return token_jaccard(a, b) > threshold


def company_match_score(query: str, name: str, aliases: tuple[str, ...] = ()) -> float:
    """Score how well a typed query matches a known company.

    Exact name 1.0, exact alias 0.95, containment either way 0.85,
    otherwise the best edit similarity against name and aliases.
    """
    q = query.lower().strip()
    name_lower = name.lower()
    if not q:
        return 0.0
    if name_lower == q:
        return 1.0
    if any(alias.lower() == q for alias in aliases):
        return 0.95
    if q in name_lower or name_lower in q:
        return 0.85
    scores = [edit_similarity(name_lower, q)]
    scores.extend(edit_similarity(alias.lower(), q) for alias in aliases)
    return max(scores)
