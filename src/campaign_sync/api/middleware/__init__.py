"""API middleware package."""

from src.campaign_sync.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
