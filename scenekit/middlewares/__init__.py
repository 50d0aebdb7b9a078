"""Middleware package initialization."""

from .logging import LoggingMiddleware
from .stage import StageMiddleware, update_from_event

__all__ = [
    "LoggingMiddleware",
    "StageMiddleware",
    "update_from_event",
]
