"""Routers package for API endpoints."""

from app.routers import analysis, companies

__all__ = ["analysis", "companies"]
