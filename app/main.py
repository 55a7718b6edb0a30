"""FastAPI application for the company evidence service.

This module provides the main FastAPI application instance with CORS
middleware configuration and router registration.
"""

# Load environment variables before any other imports
from dotenv import load_dotenv

load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import CORS_ORIGINS

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# API version and metadata
API_VERSION = "0.1.0"
API_TITLE = "Company Evidence API"
API_DESCRIPTION = """
Company Evidence API.

This API provides endpoints for:
- Searching the web for a company's leadership changes, competitor
  mentions, regulatory events, news and case studies
- Verifying, deduplicating and scoring the evidence found
- Suggesting company names for autocomplete
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Logs which search providers are available at startup and closes the
    shared HTTP clients on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup is complete.
    """
    from app.services import get_openrouter_service, get_source_aggregator, get_url_verifier

    aggregator = get_source_aggregator()
    logger.info(f"Search providers configured: {[p.provider_id for p in aggregator.providers]}")
    if not aggregator.is_configured:
        logger.warning("No search provider configured - web evidence sections will be empty")
    if not get_openrouter_service().is_configured:
        logger.info("OpenRouter not configured - LLM extraction disabled")
    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    await aggregator.close()
    await get_url_verifier().close()
    await get_openrouter_service().close()
    logger.info("HTTP clients closed")


# Create FastAPI application instance
app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# Allow the local dev servers by default; CORS_ORIGINS overrides
_default_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if CORS_ORIGINS:
    ALLOWED_ORIGINS = [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]
else:
    ALLOWED_ORIGINS = _default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
        "X-Requested-With",
    ],
    expose_headers=["Content-Length", "Content-Type"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, Any]:
    """Root endpoint returning API information.

    Returns:
        Dict containing API metadata including name, version,
        description, and available documentation URLs.
    """
    return {
        "name": API_TITLE,
        "version": API_VERSION,
        "description": "Grounded web evidence for company analysis",
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json",
        },
        "status": "operational",
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for monitoring and load balancers.

    Returns:
        Dict with status indicating the API is healthy.
    """
    return {"status": "healthy"}


# Router registration
from app.routers import analysis, companies

app.include_router(analysis.router, prefix="/api", tags=["analysis"])
app.include_router(companies.router, prefix="/api", tags=["companies"])
