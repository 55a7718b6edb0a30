"""Tests for competitor co-mention extraction.

Tests cover:
- Heuristic candidate selection and its filters
- Mention type inference and summaries
- Grounding of LLM proposals
- Verification, scoring and ordering of the final mentions
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models import RawResult, ValidationOutcome
from app.services.competitor_extractor import (
    CompetitorExtractor,
    create_summary,
    infer_mention_type,
    is_finance_context,
)
from app.services.pipeline import extract_competitor_mentions
from app.services.worker_pool import CancellationToken

SMARSH_STORY = RawResult(
    title="Acme Corp deploys Smarsh for archiving",
    url="https://www.smarsh.com/customers/acme-corp-case-study",
    content="Acme Corp is a Smarsh customer. Acme Corp uses Smarsh to archive communications.",
    score=0.9,
)
GLOBAL_RELAY_STORY = RawResult(
    title="Global Relay adds Acme Corp connector",
    url="https://www.globalrelay.com/integrations/acme-corp",
    content="Global Relay now integrates with Acme Corp messaging.",
    score=0.6,
)


def _verifier(valid=True):
    verifier = MagicMock()

    async def verify_many(checks, max_in_flight=None, token=None):
        return [ValidationOutcome.ok() if valid else ValidationOutcome.reject("HTTP 404") for _ in checks]

    verifier.verify_many = AsyncMock(side_effect=verify_many)
    return verifier


def _llm(records):
    llm = MagicMock()
    llm.is_configured = True
    llm.extract = AsyncMock(return_value=json.dumps(records))
    return llm


class TestHelpers:
    """Test the module-level helpers."""

    @pytest.mark.parametrize(
        "url,content,expected",
        [
            ("https://www.smarsh.com/case-study/acme", "", "case_study"),
            ("https://www.smarsh.com/integrations/acme", "", "integration"),
            ("https://www.smarsh.com/a/acme", "Acme is a long-time customer", "customer"),
            ("https://www.smarsh.com/a/acme", "a strategic partnership", "partner"),
            ("https://www.smarsh.com/press/acme", "", "press_release"),
            ("https://www.smarsh.com/a/acme", "nothing specific", "other"),
        ],
    )
    def test_infer_mention_type(self, url, content, expected):
        """Test each mention type marker."""
        assert infer_mention_type(url, content) == expected

    def test_summary_prefers_relationship_sentence(self):
        """Test that the summary is the sentence naming the relationship."""
        content = "Smarsh released its annual report today. Acme Corp is a Smarsh customer since 2021."
        assert create_summary(content, "Acme Corp") == "Acme Corp is a Smarsh customer since 2021"

    def test_summary_falls_back_to_opening_text(self):
        """Test the fallback when no sentence qualifies."""
        assert create_summary("Short. Also short.", "Acme Corp") == "Short. Also short."

    def test_finance_context(self):
        """Test advisory and finance phrasing detection."""
        assert is_finance_context("She sits on the Smarsh advisory board") is True
        assert is_finance_context("Acme Corp deploys Smarsh") is False


class TestFindCandidates:
    """Test heuristic candidate selection."""

    def setup_method(self):
        """Set up test fixtures."""
        self.extractor = CompetitorExtractor(verifier=_verifier())

    def test_both_names_present(self):
        """Test that a co-mention becomes a candidate for the named competitor only."""
        candidates = self.extractor.find_candidates("Acme Corp", ["Smarsh", "Global Relay"], [SMARSH_STORY])
        assert [c.competitor_name for c in candidates] == ["Smarsh"]
        assert candidates[0].mention_type == "case_study"
        assert candidates[0].summary == "Acme Corp is a Smarsh customer"

    def test_company_missing(self):
        """Test that a page without the company is skipped."""
        story = RawResult(title="Smarsh news", url="https://www.smarsh.com/news/update", content="Smarsh ships v2.")
        assert self.extractor.find_candidates("Acme Corp", ["Smarsh"], [story]) == []

    def test_generic_page(self):
        """Test that careers and pricing pages are skipped."""
        story = SMARSH_STORY.model_copy(update={"url": "https://www.smarsh.com/careers/acme-corp"})
        assert self.extractor.find_candidates("Acme Corp", ["Smarsh"], [story]) == []

    def test_finance_page(self):
        """Test that advisory-board mentions are skipped."""
        story = RawResult(
            title="Acme Corp exec joins Smarsh advisory board",
            url="https://www.smarsh.com/about/board",
            content="Acme Corp's CFO joins the Smarsh advisory board.",
        )
        assert self.extractor.find_candidates("Acme Corp", ["Smarsh"], [story]) == []


class TestLlmProposals:
    """Test that LLM proposals are grounded in the evidence."""

    @pytest.mark.asyncio
    async def test_ungrounded_and_unknown_records_are_dropped(self):
        """Test URL grounding, competitor matching and type fallback."""
        llm = _llm(
            [
                {"competitorName": "smarsh", "mentionType": "customer", "url": SMARSH_STORY.url, "summary": "Uses Smarsh."},
                {"competitorName": "Smarsh", "mentionType": "customer", "url": "https://invented.example.com/x"},
                {"competitorName": "Nobody Inc", "mentionType": "customer", "url": SMARSH_STORY.url},
                {"competitorName": "Global Relay", "mentionType": "bogus", "url": GLOBAL_RELAY_STORY.url},
            ]
        )
        extractor = CompetitorExtractor(verifier=_verifier(), llm=llm)

        candidates = await extractor.propose_with_llm(
            "Acme Corp", ["Smarsh", "Global Relay"], [SMARSH_STORY, GLOBAL_RELAY_STORY]
        )

        assert [(c.competitor_name, c.result.url) for c in candidates] == [
            ("Smarsh", SMARSH_STORY.url),
            ("Global Relay", GLOBAL_RELAY_STORY.url),
        ]
        assert candidates[0].summary == "Uses Smarsh."
        assert candidates[1].mention_type == "integration"

    @pytest.mark.asyncio
    async def test_unconfigured_llm_is_skipped(self):
        """Test that no call is made without an API key."""
        llm = _llm([])
        llm.is_configured = False
        extractor = CompetitorExtractor(verifier=_verifier(), llm=llm)
        assert await extractor.propose_with_llm("Acme Corp", ["Smarsh"], [SMARSH_STORY]) == []
        llm.extract.assert_not_awaited()


class TestExtract:
    """Test the full find, verify, score and dedupe flow."""

    @pytest.mark.asyncio
    async def test_verified_mentions_sorted_by_confidence(self):
        """Test that mentions come back highest confidence first."""
        verifier = _verifier()
        extractor = CompetitorExtractor(verifier=verifier)

        mentions = await extractor.extract(
            "Acme Corp", ["Smarsh", "Global Relay"], [GLOBAL_RELAY_STORY, SMARSH_STORY]
        )

        assert [m.competitor_name for m in mentions] == ["Smarsh", "Global Relay"]
        assert mentions[0].confidence > mentions[1].confidence
        checks = verifier.verify_many.await_args.args[0]
        assert (SMARSH_STORY.url, ["Acme Corp", "Smarsh"], ("smarsh.com",)) in checks

    @pytest.mark.asyncio
    async def test_failed_verification_drops_mention(self):
        """Test that a mention whose page cannot be verified is not emitted."""
        extractor = CompetitorExtractor(verifier=_verifier(valid=False))
        assert await extractor.extract("Acme Corp", ["Smarsh"], [SMARSH_STORY]) == []

    @pytest.mark.asyncio
    async def test_unknown_competitor_skips_domain_check(self):
        """Test that competitors without configured domains are checked without one."""
        story = RawResult(
            title="Acme Corp picks Vendorly",
            url="https://www.vendorly.io/customers/acme-corp",
            content="Acme Corp is a Vendorly customer.",
        )
        verifier = _verifier()
        extractor = CompetitorExtractor(verifier=verifier)
        await extractor.extract("Acme Corp", ["Vendorly"], [story])
        checks = verifier.verify_many.await_args.args[0]
        assert checks == [(story.url, ["Acme Corp", "Vendorly"], None)]

    @pytest.mark.asyncio
    async def test_token_is_forwarded(self):
        """Test that the request's cancellation token reaches verification."""
        verifier = _verifier()
        token = CancellationToken()
        extractor = CompetitorExtractor(verifier=verifier)
        await extractor.extract("Acme Corp", ["Smarsh"], [SMARSH_STORY], token=token)
        assert verifier.verify_many.await_args.kwargs["token"] is token

    @pytest.mark.asyncio
    async def test_entry_point_requires_inputs(self):
        """Test that missing inputs short-circuit without verification."""
        verifier = _verifier()
        extractor = CompetitorExtractor(verifier=verifier)
        assert await extract_competitor_mentions("Acme Corp", [], [SMARSH_STORY], extractor=extractor) == []
        assert await extract_competitor_mentions("", ["Smarsh"], [SMARSH_STORY], extractor=extractor) == []
        verifier.verify_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_entry_point_output_is_grounded(self):
        """Test that every emitted URL is one of the input URLs."""
        extractor = CompetitorExtractor(verifier=_verifier())
        batch = [SMARSH_STORY, GLOBAL_RELAY_STORY]
        mentions = await extract_competitor_mentions(
            "Acme Corp", ["Smarsh", "Global Relay"], batch, extractor=extractor
        )
        assert mentions
        assert {m.url for m in mentions} <= {r.url for r in batch}
