"""Tests for regulatory event extraction."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models import RawResult
from app.services.pipeline import extract_regulatory_events
from app.services.regulatory_extractor import RegulatoryExtractor


def _llm(payload):
    llm = MagicMock()
    llm.is_configured = True
    llm.extract = AsyncMock(return_value=json.dumps(payload))
    return llm


class TestHeuristicExtraction:
    """Test keyword-based event extraction."""

    def setup_method(self):
        """Set up test fixtures."""
        self.extractor = RegulatoryExtractor()

    def test_event_fields(self):
        """Test that fields are read from the hit text."""
        result = RawResult(
            title="FINRA fines Globex $1.5 million over record keeping",
            url="https://www.example.com/globex-finra",
            content="The fine was announced in June 2023.",
        )
        event = self.extractor.event_from_result(result)
        assert event.regulatory_body == "FINRA"
        assert event.event_type == "fine"
        assert event.amount == "$1.5 million"
        assert event.date == "June 2023"
        assert event.description == result.title

    def test_missing_date_is_recent(self):
        """Test the default date."""
        result = RawResult(title="SEC probe into Globex", url="https://www.example.com/probe")
        assert self.extractor.event_from_result(result).date == "Recent"

    def test_candidates_skip_jobs_and_unrelated(self):
        """Test candidate filtering."""
        results = [
            RawResult(title="Globex fined by SEC", url="https://www.example.com/news/globex"),
            RawResult(title="Globex compliance jobs after SEC fine", url="https://www.example.com/careers/compliance"),
            RawResult(title="Initech fined by SEC", url="https://www.example.com/news/initech"),
            RawResult(title="Globex opens new office", url="https://www.example.com/news/office"),
        ]
        events = self.extractor.candidates("Globex", results)
        assert [e.url for e in events] == ["https://www.example.com/news/globex"]

    def test_entry_point_empty_inputs(self, xyz_bank_results):
        """Test that missing inputs return nothing."""
        assert extract_regulatory_events("", xyz_bank_results) == []
        assert extract_regulatory_events("XYZ Bank", []) == []


class TestLlmExtraction:
    """Test LLM proposals and their grounding."""

    @pytest.mark.asyncio
    async def test_invented_url_is_discarded(self, xyz_bank_results):
        """Test that an LLM event citing a URL outside the evidence is dropped."""
        llm = _llm(
            {
                "events": [
                    {
                        "date": "March 2024",
                        "regulatoryBody": "SEC",
                        "eventType": "fine",
                        "description": "XYZ Bank fined",
                        "url": "https://www.invented-news.com/xyz",
                    }
                ]
            }
        )
        extractor = RegulatoryExtractor(llm=llm)
        assert await extractor.propose_with_llm("XYZ Bank", xyz_bank_results) == []

    @pytest.mark.asyncio
    async def test_missing_fields_fall_back_to_text(self, xyz_bank_results):
        """Test that blank or invalid LLM fields are read from the hit."""
        url = xyz_bank_results[1].url
        llm = _llm([{"eventType": "bogus", "description": "", "url": url}])
        extractor = RegulatoryExtractor(llm=llm)

        events = await extractor.propose_with_llm("XYZ Bank", xyz_bank_results)

        assert len(events) == 1
        assert events[0].event_type == "fine"
        assert events[0].regulatory_body == "SEC"
        assert events[0].amount == "$50M"
        assert events[0].description == xyz_bank_results[1].title

    @pytest.mark.asyncio
    async def test_llm_adds_uncovered_events(self):
        """Test that the LLM can add an event the keyword pass missed."""
        results = [
            RawResult(
                title="Globex reaches agreement with the OCC",
                url="https://www.example.com/globex-occ",
                content="Globex will pay $2 million under the deal announced in May 2024.",
            )
        ]
        llm = _llm(
            [
                {
                    "date": "May 2024",
                    "regulatoryBody": "OCC",
                    "eventType": "settlement",
                    "amount": "$2 million",
                    "description": "Globex settles with the OCC",
                    "url": "https://www.example.com/globex-occ",
                }
            ]
        )
        extractor = RegulatoryExtractor(llm=llm)

        assert extractor.candidates("Globex", results) == []
        events = await extractor.extract_with_llm("Globex", results)

        assert len(events) == 1
        assert events[0].event_type == "settlement"
        assert events[0].regulatory_body == "OCC"

    @pytest.mark.asyncio
    async def test_llm_does_not_duplicate_covered_urls(self, xyz_bank_results):
        """Test that LLM events for URLs already covered are not added again."""
        llm = _llm([{"eventType": "fine", "description": "XYZ fine", "url": r.url} for r in xyz_bank_results])
        extractor = RegulatoryExtractor(llm=llm)

        events = await extractor.extract_with_llm("XYZ Bank", xyz_bank_results)

        assert len(events) == 1
        assert len(events[0].sources) == 1

    @pytest.mark.asyncio
    async def test_unconfigured_llm(self, xyz_bank_results):
        """Test that the LLM pass is skipped without a key."""
        llm = _llm([])
        llm.is_configured = False
        extractor = RegulatoryExtractor(llm=llm)
        assert await extractor.propose_with_llm("XYZ Bank", xyz_bank_results) == []
        llm.extract.assert_not_awaited()
