"""Middleware package."""
from rollcall.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
