"""OpenRouter service for bounded LLM extraction.

This service uses the OpenAI Python SDK configured to talk to OpenRouter's
OpenAI-compatible API. It implements the ``extract(prompt) -> str`` LLM
capability; callers own prompt construction and grounding of the output.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Iterator
from typing import Any

from openai import AsyncOpenAI

from app.core.config import OPENROUTER_API_KEY, OPENROUTER_BASE_URL, OPENROUTER_MODEL

logger = logging.getLogger(__name__)

# Optional app attribution headers (recommended by OpenRouter)
OPENROUTER_SITE_URL = os.getenv("OPENROUTER_SITE_URL", "")
OPENROUTER_APP_NAME = os.getenv("OPENROUTER_APP_NAME", "")

# Remove common prompt injection patterns from user-supplied text
INJECTION_PATTERNS = [
    r"ignore\s+(previous|all|above)\s+instructions",
    r"disregard\s+(previous|all|above)",
    r"forget\s+(everything|all|previous)",
    r"new\s+instructions?:",
    r"system\s*:",
    r"assistant\s*:",
    r"human\s*:",
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
]


def sanitize_prompt_input(text: str, max_length: int = 200) -> str:
    """Sanitize user input to prevent prompt injection.

    Args:
        text: Input text to sanitize.
        max_length: Maximum allowed length.

    Returns:
        Sanitized text safe for prompt inclusion.
    """
    if not text:
        return ""

    text = text[:max_length]
    for pattern in INJECTION_PATTERNS:
        text = re.sub(pattern, "[REDACTED]", text, flags=re.IGNORECASE)
    return text


def _balanced_segments(text: str) -> Iterator[str]:
    """Yield top-level ``{...}`` / ``[...]`` segments, ignoring brackets inside strings."""
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            # Quotes outside any bracket are prose, not JSON strings
            in_string = depth > 0
        elif ch in "{[":
            if depth == 0:
                start = i
            depth += 1
        elif ch in "}]" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]


def iter_json_blocks(text: str) -> Iterator[Any]:
    """Parse every JSON block in an LLM response independently.

    Markdown code fences are stripped first. A malformed block is logged and
    skipped; well-formed blocks in the same response are still returned.
    """
    if not text:
        return
    fenced = re.findall(r"```(?:json)?\s*([\s\S]*?)```", text)
    sources = fenced or [text]
    for source in sources:
        for segment in _balanced_segments(source):
            try:
                yield json.loads(segment)
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping malformed JSON block: {e}")


def iter_json_records(text: str, list_keys: tuple[str, ...] = ("results", "events", "mentions")) -> Iterator[dict[str, Any]]:
    """Flatten JSON blocks into record dicts.

    Accepts bare objects, arrays of objects, and wrapper objects holding a
    list under one of ``list_keys``.
    """
    for block in iter_json_blocks(text):
        items: list[Any]
        if isinstance(block, list):
            items = block
        elif isinstance(block, dict):
            wrapped = next((block[k] for k in list_keys if isinstance(block.get(k), list)), None)
            items = wrapped if wrapped is not None else [block]
        else:
            continue
        for item in items:
            if isinstance(item, dict):
                yield item


class OpenRouterService:
    """LLM provider for bounded extraction tasks via OpenRouter."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        # Prefer explicit api_key, otherwise env var; strip to avoid hidden whitespace/newlines.
        self.api_key = (api_key or OPENROUTER_API_KEY or "").strip()
        self.model = model or OPENROUTER_MODEL

        default_headers: dict[str, str] = {}
        if OPENROUTER_SITE_URL:
            default_headers["HTTP-Referer"] = OPENROUTER_SITE_URL
        if OPENROUTER_APP_NAME:
            default_headers["X-Title"] = OPENROUTER_APP_NAME

        self._client: AsyncOpenAI | None = None
        self._default_headers = default_headers

    @property
    def is_configured(self) -> bool:
        """Check if the API key is configured."""
        return bool(self.api_key)

    def _get_client(self) -> AsyncOpenAI:
        """Get or create SDK client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=OPENROUTER_BASE_URL,
                default_headers=self._default_headers or None,
            )
        return self._client

    async def close(self) -> None:
        """Close SDK client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _chat_completion(
        self,
        *,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float = 0,
        response_format: dict[str, Any] | None = None,
    ) -> str | None:
        if not self.api_key:
            logger.warning("OpenRouter API key not configured")
            return None

        try:
            client = self._get_client()
            resp = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                response_format=response_format,
            )
            return (resp.choices[0].message.content or "").strip()
        except Exception as e:
            logger.warning(f"OpenRouter SDK request failed: {e}")
            return None

    async def extract(self, prompt: str) -> str:
        """Run one extraction prompt and return the raw model text ("" on failure)."""
        content_text = await self._chat_completion(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0,
        )
        return content_text or ""


_openrouter_service: OpenRouterService | None = None


def get_openrouter_service() -> OpenRouterService:
    """Get the singleton OpenRouterService instance."""
    global _openrouter_service
    if _openrouter_service is None:
        _openrouter_service = OpenRouterService()
    return _openrouter_service
