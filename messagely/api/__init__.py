"""API package exports."""

from messagely.api.middleware import CorrelationIdMiddleware
from messagely.api.routes import router

__all__ = ["router", "CorrelationIdMiddleware"]
