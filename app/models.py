"""Pydantic models for the evidence pipeline.

Models describe the raw search hits that enter the pipeline and the
grounded, source-attributed records that leave it. Everything is created
fresh per analysis request.
"""

from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    components = string.split("_")
    return components[0] + "".join(word.capitalize() for word in components[1:])


def is_http_url(value: str) -> bool:
    """Check that a string is a well-formed absolute HTTP(S) URL."""
    if not value or not isinstance(value, str):
        return False
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in value.strip()


def hostname_of(url: str) -> str:
    """Return the URL's hostname without a leading ``www.``."""
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


ChangeType = Literal["appointed", "promoted", "departed", "expanded_role"]

MentionType = Literal[
    "customer", "partner", "comparison", "case_study", "press_release", "integration", "other"
]

EventType = Literal[
    "fine", "penalty", "settlement", "enforcement", "investigation",
    "consent", "order", "action", "other",
]

MENTION_TYPES: tuple[str, ...] = (
    "customer", "partner", "comparison", "case_study", "press_release", "integration", "other",
)

EVENT_TYPES: tuple[str, ...] = (
    "fine", "penalty", "settlement", "enforcement", "investigation",
    "consent", "order", "action", "other",
)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        serialize_by_alias=True,
    )


class RawResult(CamelModel):
    """One search hit from one provider.

    Attributes:
        title: Headline or page title.
        url: Absolute HTTP(S) URL of the hit.
        content: Snippet text returned by the provider.
        provider_id: Identifier of the provider that returned the hit.
        score: Provider relevance in [0, 1].
    """

    title: str = ""
    url: str
    content: str = ""
    provider_id: str = "unknown"
    score: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = (v or "").strip()
        if not is_http_url(v):
            raise ValueError(f"Not an absolute http(s) URL: {v!r}")
        return v

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: object) -> float:
        try:
            score = float(v)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.5
        return min(max(score, 0.0), 1.0)

    @property
    def text(self) -> str:
        return f"{self.title} {self.content}"

    @property
    def hostname(self) -> str:
        return hostname_of(self.url)


class LeadershipChange(CamelModel):
    """A person moving into, out of, or within a role."""

    name: str = Field(..., min_length=1, max_length=200)
    role: str = Field(..., min_length=1, max_length=200)
    change_type: ChangeType = "appointed"
    date: str | None = None
    previous_role: str | None = None
    url: str
    source: str = ""
    title: str = Field(default="", exclude=True)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not is_http_url(v):
            raise ValueError(f"Not an absolute http(s) URL: {v!r}")
        return v


class CompetitorMention(CamelModel):
    """Evidence that the subject company and a competitor co-occur in a business context."""

    competitor_name: str
    mention_type: MentionType = "other"
    title: str = ""
    url: str
    summary: str = ""
    date: str | None = None
    confidence: int = Field(default=0, ge=0, le=100)
    unverified: bool = True

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not is_http_url(v):
            raise ValueError(f"Not an absolute http(s) URL: {v!r}")
        return v


class RegulatoryEventSource(CamelModel):
    """Secondary source reporting the same regulatory event."""

    url: str
    title: str | None = None
    regulatory_body: str | None = None


class RegulatoryEvent(CamelModel):
    """A fine, penalty, settlement, enforcement action or investigation."""

    date: str = "Recent"
    regulatory_body: str = "Regulatory"
    event_type: EventType = "other"
    amount: str | None = None
    description: str
    url: str
    sources: list[RegulatoryEventSource] = Field(default_factory=list)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not is_http_url(v):
            raise ValueError(f"Not an absolute http(s) URL: {v!r}")
        return v


class ValidationOutcome(CamelModel):
    """Result of fetching and inspecting a URL.

    ``valid=False`` always carries a reason.
    """

    valid: bool
    reason: str | None = None

    @model_validator(mode="after")
    def require_reason_when_invalid(self) -> "ValidationOutcome":
        if not self.valid and not self.reason:
            raise ValueError("An invalid outcome must carry a reason")
        return self

    @classmethod
    def ok(cls) -> "ValidationOutcome":
        return cls(valid=True)

    @classmethod
    def reject(cls, reason: str) -> "ValidationOutcome":
        return cls(valid=False, reason=reason)


class LinkItem(CamelModel):
    """A plain link shown in the news and case-study sections."""

    title: str
    url: str
    summary: str | None = None


class AnalysisReport(CamelModel):
    """Web-evidence sections of a company analysis."""

    company_name: str
    leadership_changes: list[LeadershipChange] = Field(default_factory=list)
    competitor_mentions: list[CompetitorMention] = Field(default_factory=list)
    regulatory_events: list[RegulatoryEvent] = Field(default_factory=list)
    tech_news: list[LinkItem] = Field(default_factory=list)
    case_studies: list[LinkItem] = Field(default_factory=list)
    empty_sections: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    web_search_used: bool = False
    sources: list[str] = Field(default_factory=list)
