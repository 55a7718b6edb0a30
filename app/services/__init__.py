"""Services package for the company evidence pipeline."""

from app.services.analysis_service import AnalysisService, get_analysis_service
from app.services.confidence_scorer import ConfidenceScorer, get_confidence_scorer
from app.services.deduplicator import Deduplicator, get_deduplicator
from app.services.leadership_extractor import LeadershipExtractor, get_leadership_extractor
from app.services.openrouter_service import OpenRouterService, get_openrouter_service
from app.services.pipeline import (
    extract_competitor_mentions,
    extract_leadership_changes,
    extract_regulatory_events,
)
from app.services.regulatory_extractor import RegulatoryExtractor, get_regulatory_extractor
from app.services.source_aggregator import SourceAggregator, get_source_aggregator
from app.services.url_verifier import UrlVerifier, get_url_verifier
from app.services.validation_service import EntityValidator, get_entity_validator

__all__ = [
    "AnalysisService",
    "get_analysis_service",
    "ConfidenceScorer",
    "get_confidence_scorer",
    "Deduplicator",
    "get_deduplicator",
    "LeadershipExtractor",
    "get_leadership_extractor",
    "OpenRouterService",
    "get_openrouter_service",
    "RegulatoryExtractor",
    "get_regulatory_extractor",
    "SourceAggregator",
    "get_source_aggregator",
    "UrlVerifier",
    "get_url_verifier",
    "EntityValidator",
    "get_entity_validator",
    "extract_competitor_mentions",
    "extract_leadership_changes",
    "extract_regulatory_events",
]
