"""General utilities for StudyForge."""

from .logging import setup_logging

__all__ = ["setup_logging"]
