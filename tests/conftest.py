"""Pytest fixtures for the company evidence service tests.

This module provides shared fixtures for testing the FastAPI application
and the pipeline services, including the test client and sample search hits.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models import RawResult


@pytest.fixture
def client():
    """Create a test client for the FastAPI application.

    Returns:
        TestClient: A test client instance for making requests to the API.
    """
    return TestClient(app)


@pytest.fixture
def acme_leadership_results():
    """Two reports of the same Acme Corp appointment.

    Returns:
        list[RawResult]: A reputable wire story and a press release.
    """
    return [
        RawResult(
            title="Jane Carter named CEO of Acme Corp",
            url="https://reuters.com/a1",
            content="Jane Carter has been named CEO...",
            provider_id="tavily",
        ),
        RawResult(
            title="Acme Corp Appoints Jane Carter as Chief Executive",
            url="https://prnewswire.com/a2",
            content="...appointed Jane Carter...",
            provider_id="tavily",
        ),
    ]


@pytest.fixture
def xyz_bank_results():
    """Two differently worded reports of one SEC fine.

    Returns:
        list[RawResult]: A Reuters report and a trade-press report.
    """
    return [
        RawResult(
            title="SEC fines XYZ Bank $50 million over misleading investors",
            url="https://www.compliance-weekly.com/xyz-bank-sec",
            content="The regulator said on March 12, 2024 that XYZ Bank agreed to the penalty.",
            provider_id="websearchapi",
        ),
        RawResult(
            title="XYZ Bank fined $50M by SEC for misleading investors",
            url="https://www.reuters.com/business/xyz-bank-fined",
            content="XYZ Bank was fined in March 2024, the SEC said.",
            provider_id="tavily",
        ),
    ]
