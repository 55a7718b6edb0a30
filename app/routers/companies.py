"""Company lookup router.

Suggests known companies for a typed query so the dashboard can offer
autocomplete, always ending with a "search anyway" entry for names the
list does not know.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import Field

from app.models import CamelModel
from app.services.similarity import company_match_score

router = APIRouter()

MAX_QUERY_LENGTH = 200
MIN_SUGGESTION_SCORE = 0.5
MAX_SUGGESTIONS = 5
EXACT_MATCH_SCORE = 0.9

PublicStatus = Literal["public", "private", "went_private", "pre_ipo", "unknown"]

# (name, symbol, aliases, public status)
KNOWN_COMPANIES: list[tuple[str, str, tuple[str, ...], str]] = [
    ("Apple", "AAPL", ("apple inc", "apple computer"), "public"),
    ("Microsoft", "MSFT", ("microsoft corporation", "msft"), "public"),
    ("Google", "GOOGL", ("alphabet", "alphabet inc", "google llc"), "public"),
    ("Amazon", "AMZN", ("amazon.com", "amazon inc"), "public"),
    ("Meta", "META", ("facebook", "meta platforms", "fb"), "public"),
    ("NVIDIA", "NVDA", ("nvidia corporation",), "public"),
    ("Salesforce", "CRM", ("salesforce.com", "salesforce inc"), "public"),
    ("Oracle", "ORCL", ("oracle corporation",), "public"),
    ("IBM", "IBM", ("international business machines",), "public"),
    ("JPMorgan Chase", "JPM", ("jp morgan", "jpmorgan", "chase bank"), "public"),
    ("Bank of America", "BAC", ("bofa", "boa", "bankofamerica"), "public"),
    ("Goldman Sachs", "GS", ("goldman sachs group", "goldman"), "public"),
    ("Morgan Stanley", "MS", ("morgan stanley & co",), "public"),
    ("Citigroup", "C", ("citi", "citibank"), "public"),
    ("Wells Fargo", "WFC", ("wells fargo & company",), "public"),
    ("Charles Schwab", "SCHW", ("schwab", "charles schwab corporation"), "public"),
    ("BlackRock", "BLK", ("blackrock inc", "black rock"), "public"),
    ("State Street", "STT", ("state street corporation", "state street corp"), "public"),
    ("T. Rowe Price", "TROW", ("t rowe price", "troweprice"), "public"),
    ("Invesco", "IVZ", ("invesco ltd",), "public"),
    ("Cigna", "CI", ("cigna healthcare", "cigna group", "the cigna group"), "public"),
    ("UnitedHealth Group", "UNH", ("unitedhealth", "united health", "unitedhealthcare"), "public"),
    ("Fidelity Investments", "", ("fidelity",), "private"),
    ("Vanguard", "", ("vanguard group",), "private"),
    ("MassMutual", "", ("mass mutual", "massachusetts mutual"), "private"),
    ("Edward Jones", "", (), "private"),
    ("OpenAI", "", ("open ai",), "private"),
    ("Anthropic", "", (), "private"),
    ("Stripe", "", ("stripe inc",), "pre_ipo"),
    ("Databricks", "", (), "pre_ipo"),
    ("Twitter", "", ("x corp",), "went_private"),
    ("VMware", "", (), "went_private"),
]


class CompanySuggestion(CamelModel):
    """One autocomplete entry."""

    name: str
    symbol: str | None = None
    description: str | None = None
    is_public: bool = False
    public_status: PublicStatus = "unknown"
    is_custom_search: bool = False
    source: Literal["known", "custom"] = "known"


class CompanySearchResponse(CamelModel):
    results: list[CompanySuggestion] = Field(default_factory=list)
    exact_match: bool = False


def _status_description(symbol: str, public_status: str) -> str:
    if public_status == "public":
        return f"{symbol} - Publicly traded" if symbol else "Publicly traded"
    if public_status == "went_private":
        return "Formerly public (went private)"
    if public_status == "pre_ipo":
        return "Private (IPO expected)"
    return "Private company"


def _display_name(query: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in query.strip().split(" "))


def suggest_companies(query: str) -> CompanySearchResponse:
    """Score the known companies against ``query`` and build the suggestion list."""
    scored: list[tuple[float, tuple[str, str, tuple[str, ...], str]]] = []
    for company in KNOWN_COMPANIES:
        name, _, aliases, _ = company
        score = company_match_score(query, name, aliases)
        if score >= MIN_SUGGESTION_SCORE:
            scored.append((score, company))
    scored.sort(key=lambda item: item[0], reverse=True)

    results = [
        CompanySuggestion(
            name=name,
            symbol=symbol or None,
            description=_status_description(symbol, public_status),
            is_public=public_status == "public",
            public_status=public_status,
        )
        for _, (name, symbol, _, public_status) in scored[:MAX_SUGGESTIONS]
    ]

    top_matches_query = bool(results) and results[0].name.lower() == query.strip().lower()
    if not top_matches_query and len(query.strip()) >= 2:
        results.append(
            CompanySuggestion(
                name=_display_name(query),
                description="Search for this company",
                is_public=True,
                public_status="unknown",
                is_custom_search=True,
                source="custom",
            )
        )

    return CompanySearchResponse(
        results=results,
        exact_match=bool(scored) and scored[0][0] >= EXACT_MATCH_SCORE,
    )


@router.get(
    "/company/search",
    response_model=CompanySearchResponse,
    status_code=status.HTTP_200_OK,
    summary="Suggest companies",
    description="Fuzzy-match a typed company name against known companies.",
)
async def search_company(
    q: Annotated[str | None, Query(description="Company name as typed")] = None,
) -> CompanySearchResponse:
    """Suggest companies for a typed query.

    Args:
        q: Company name as typed (1-200 characters).

    Returns:
        CompanySearchResponse with up to five known matches plus a custom
        "search anyway" entry when the query is not itself the top match.

    Raises:
        HTTPException: 400 if ``q`` is missing, blank or longer than 200 characters.
    """
    if not q or not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Query parameter "q" is required',
        )
    if len(q) > MAX_QUERY_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Query must be {MAX_QUERY_LENGTH} characters or fewer",
        )
    return suggest_companies(q)
