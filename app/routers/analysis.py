"""Analysis router.

Runs the web-evidence pipeline for one company and returns the report
sections (leadership changes, competitor mentions, regulatory events,
news, case studies) with any warnings raised along the way.
"""

import asyncio
import logging
from contextlib import suppress

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import Field

from app.models import AnalysisReport, CamelModel
from app.services.analysis_service import AnalysisService, get_analysis_service
from app.services.source_aggregator import Topic
from app.services.worker_pool import CancellationToken

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_COMPANY_NAME_LENGTH = 200
DISCONNECT_POLL_SECONDS = 0.5


def _sanitize_for_log(value: str, max_length: int = 100) -> str:
    """Sanitize a string for safe logging to prevent log injection."""
    sanitized = "".join(c if c.isprintable() and c not in "\n\r\t" else " " for c in value)
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."
    return sanitized


class AnalyzeRequest(CamelModel):
    """Request body for an analysis.

    Attributes:
        company_name: Subject company.
        competitors: Competitor names to look for; all configured competitors when omitted.
        topics: Topics to search; all topics when omitted.
    """

    company_name: str = ""
    competitors: list[str] | None = Field(default=None, max_length=25)
    topics: list[Topic] | None = None


async def _watch_disconnect(request: Request, token: CancellationToken) -> None:
    """Trip ``token`` when the client goes away."""
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected; cancelling analysis")
            token.cancel("client disconnected")
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post(
    "/analyze",
    response_model=AnalysisReport,
    status_code=status.HTTP_200_OK,
    summary="Analyze a company",
    description="Search the web for a company and extract grounded, deduplicated evidence.",
    responses={400: {"description": "Missing or invalid company name"}},
)
async def analyze_company(
    body: AnalyzeRequest,
    request: Request,
    service: AnalysisService = Depends(get_analysis_service),
) -> AnalysisReport:
    """Analyze a company.

    Args:
        body: Company name plus optional competitors and topics.

    Returns:
        AnalysisReport with the evidence sections, ``emptySections`` and ``warnings``.

    Raises:
        HTTPException: 400 if the company name is empty or too long.
    """
    company = body.company_name.strip()
    if not company:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Company name is required",
        )
    if len(company) > MAX_COMPANY_NAME_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Company name must be {MAX_COMPANY_NAME_LENGTH} characters or fewer",
        )

    logger.info(f"Analysis requested for {_sanitize_for_log(company)}")

    token = CancellationToken()
    watcher = asyncio.create_task(_watch_disconnect(request, token))
    try:
        return await service.analyze(
            company,
            competitors=body.competitors,
            topics=body.topics,
            token=token,
        )
    finally:
        watcher.cancel()
        with suppress(asyncio.CancelledError):
            await watcher
