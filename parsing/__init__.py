"""Parsing utilities for generative-text replies."""

from core.errors import ParseError

from .response_sanitizer import ExpectedShape, ResponseSanitizer, repair_unicode

__all__ = ["ParseError", "ExpectedShape", "ResponseSanitizer", "repair_unicode"]
