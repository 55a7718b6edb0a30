"""Search provider adapters.

Every vendor is reached through the same shape:
``search(query, SearchOptions) -> SearchResponse(answer, results)``.
Adapters raise ``SearchProviderError`` subclasses for auth, rate-limit and
timeout failures; malformed payloads degrade to an empty result list.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

import httpx
from pydantic import ValidationError

from app.core.config import (
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    OPENROUTER_SEARCH_MODEL,
    SEARCH_TIMEOUT_SECONDS,
    TAVILY_API_KEY,
    WEBSEARCHAPI_KEY,
)
from app.models import RawResult
from app.services.openrouter_service import iter_json_blocks, sanitize_prompt_input

logger = logging.getLogger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"
WEBSEARCHAPI_URL = "https://api.websearchapi.ai/ai-search"

SearchDepth = Literal["basic", "advanced"]


class SearchProviderError(Exception):
    """A search provider call failed."""

    def __init__(self, provider_id: str, message: str) -> None:
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.message = message


class SearchAuthError(SearchProviderError):
    """API key missing, invalid or revoked."""


class SearchRateLimitError(SearchProviderError):
    """Provider quota or rate limit exceeded."""


class SearchTimeoutError(SearchProviderError):
    """Provider did not answer in time."""


@dataclass
class SearchOptions:
    max_results: int = 10
    include_answer: bool = False
    search_depth: SearchDepth = "basic"


@dataclass
class SearchResponse:
    answer: str | None = None
    results: list[RawResult] = field(default_factory=list)


class SearchProvider(Protocol):
    provider_id: str

    @property
    def is_configured(self) -> bool: ...

    async def search(self, query: str, options: SearchOptions) -> SearchResponse: ...

    async def close(self) -> None: ...


def normalize_result(
    item: Any,
    provider_id: str,
    content_keys: tuple[str, ...] = ("content",),
) -> RawResult | None:
    """Convert one vendor result dict into a ``RawResult``.

    Items without a usable absolute URL are dropped with a debug log.
    """
    if not isinstance(item, dict):
        return None
    content = ""
    for key in content_keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            content = value
            break
    try:
        return RawResult(
            title=str(item.get("title") or ""),
            url=str(item.get("url") or item.get("link") or ""),
            content=content,
            provider_id=provider_id,
            score=item.get("score", 0.5),
        )
    except ValidationError as e:
        logger.debug(f"Dropping {provider_id} result without a valid URL: {e.errors()[0]['msg']}")
        return None


def classify_http_error(provider_id: str, error: httpx.HTTPError) -> SearchProviderError:
    """Map an httpx failure onto the provider error taxonomy."""
    if isinstance(error, httpx.TimeoutException):
        return SearchTimeoutError(provider_id, "request timed out")
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status in (401, 403):
            return SearchAuthError(provider_id, f"key is invalid or expired (HTTP {status})")
        if status == 429:
            return SearchRateLimitError(provider_id, "rate limit exceeded (HTTP 429)")
        return SearchProviderError(provider_id, f"HTTP {status}: {error.response.text[:200]}")
    return SearchProviderError(provider_id, f"network error: {error}")


class _HttpSearchProvider:
    """Shared httpx client handling for HTTP search vendors."""

    provider_id = "http"

    def __init__(self, api_key: str = "", timeout: float = SEARCH_TIMEOUT_SECONDS) -> None:
        self.api_key = (api_key or "").strip()
        self.timeout = timeout
        self._http_client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def _post_json(self, url: str, payload: dict[str, Any], headers: dict[str, str] | None = None) -> Any:
        if not self.api_key:
            raise SearchAuthError(self.provider_id, "API key not configured")
        client = await self._get_client()
        try:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(self.provider_id, e) from e
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError):
            logger.warning(f"{self.provider_id} returned a non-JSON body")
            return None


class TavilySearchProvider(_HttpSearchProvider):
    """Tavily search API.

    Tavily is designed for AI applications and returns clean,
    relevant snippets that are easier to parse.
    """

    provider_id = "tavily"

    def __init__(self, api_key: str | None = None, timeout: float = SEARCH_TIMEOUT_SECONDS) -> None:
        super().__init__(api_key if api_key is not None else TAVILY_API_KEY, timeout)

    async def search(self, query: str, options: SearchOptions) -> SearchResponse:
        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": options.search_depth,
            "include_answer": options.include_answer,
            "include_raw_content": False,
            "max_results": options.max_results,
        }
        data = await self._post_json(TAVILY_SEARCH_URL, payload)
        if not isinstance(data, dict):
            return SearchResponse()

        results = [
            result
            for result in (normalize_result(item, self.provider_id) for item in data.get("results") or [])
            if result is not None
        ]
        answer = data.get("answer") if isinstance(data.get("answer"), str) else None
        return SearchResponse(answer=answer, results=results)


class WebSearchApiProvider(_HttpSearchProvider):
    """WebSearchAPI.ai search endpoint (organic results plus optional answer)."""

    provider_id = "websearchapi"

    def __init__(self, api_key: str | None = None, timeout: float = SEARCH_TIMEOUT_SECONDS) -> None:
        super().__init__(api_key if api_key is not None else WEBSEARCHAPI_KEY, timeout)

    async def search(self, query: str, options: SearchOptions) -> SearchResponse:
        payload = {
            "query": query,
            "maxResults": options.max_results,
            "includeContent": options.search_depth == "advanced",
            "contentLength": "medium",
            "contentFormat": "markdown",
            "country": "us",
            "language": "en",
            "includeAnswer": options.include_answer,
            "safeSearch": True,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = await self._post_json(WEBSEARCHAPI_URL, payload, headers=headers)
        if not isinstance(data, dict):
            return SearchResponse()

        results = [
            result
            for result in (
                normalize_result(item, self.provider_id, content_keys=("content", "description"))
                for item in data.get("organic") or []
            )
            if result is not None
        ]
        answer = data.get("answer") if isinstance(data.get("answer"), str) else None
        return SearchResponse(answer=answer, results=results)


SEARCH_PROMPT = """Search the web for: {query}

Return ONLY a JSON object with this exact format:
{{
  "answer": "{answer_hint}",
  "results": [
    {{"title": "Page title", "url": "https://full/source/url", "content": "Relevant excerpt from the page"}}
  ]
}}

Rules:
- Return at most {max_results} results.
- Every url must be the exact address of a page you actually found. Do not invent or shorten URLs.
- content must be text taken from that page.
- If nothing relevant is found, return an empty results list.

Only output the JSON object, no explanation."""


class LLMSearchProvider(_HttpSearchProvider):
    """Web search through an OpenRouter-hosted model with live search (Perplexity Sonar).

    The model is asked to answer in JSON; anything that does not parse
    yields an empty result list for the call.
    """

    provider_id = "llm_search"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = SEARCH_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(api_key if api_key is not None else OPENROUTER_API_KEY, timeout)
        self.model = model or OPENROUTER_SEARCH_MODEL

    def _build_prompt(self, query: str, options: SearchOptions) -> str:
        answer_hint = "Short summary answer" if options.include_answer else ""
        return SEARCH_PROMPT.format(
            query=sanitize_prompt_input(query, max_length=500),
            answer_hint=answer_hint,
            max_results=options.max_results,
        )

    async def search(self, query: str, options: SearchOptions) -> SearchResponse:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": self._build_prompt(query, options)}],
            "temperature": 0,
            "max_tokens": 2000,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = await self._post_json(f"{OPENROUTER_BASE_URL}/chat/completions", payload, headers=headers)

        try:
            content_text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            logger.warning(f"{self.provider_id} returned an unexpected completion shape")
            return SearchResponse()

        answer: str | None = None
        items: list[Any] = []
        for block in iter_json_blocks(content_text):
            if isinstance(block, dict):
                if answer is None and isinstance(block.get("answer"), str) and block["answer"]:
                    answer = block["answer"]
                if isinstance(block.get("results"), list):
                    items.extend(block["results"])
                elif block.get("url"):
                    items.append(block)
            elif isinstance(block, list):
                items.extend(block)

        results = [
            result
            for result in (normalize_result(item, self.provider_id) for item in items[: options.max_results])
            if result is not None
        ]
        logger.info(f"Model {self.model} returned {len(results)} search results")
        return SearchResponse(answer=answer if options.include_answer else None, results=results)


_search_providers: list[SearchProvider] | None = None


def get_search_providers() -> list[SearchProvider]:
    """Get the configured search providers (singleton list).

    Tavily and WebSearchAPI are used when their keys are set; the LLM search
    provider is used only when neither is available.
    """
    global _search_providers
    if _search_providers is None:
        providers: list[SearchProvider] = [
            p for p in (TavilySearchProvider(), WebSearchApiProvider()) if p.is_configured
        ]
        if not providers:
            llm_search = LLMSearchProvider()
            if llm_search.is_configured:
                providers.append(llm_search)
        logger.info(f"Search providers configured: {[p.provider_id for p in providers]}")
        _search_providers = providers
    return _search_providers
