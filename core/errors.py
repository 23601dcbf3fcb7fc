# core/errors.py
"""Error taxonomy for the generation pipeline.

Only :class:`ExhaustionError` is ever raised at callers. The other kinds are
returned as values from the individual stages and folded into the ``partial``
outcome of a :class:`orchestration.models.ResultSet`.
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Why a chunk produced no records."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    UPSTREAM_ERROR = "upstream_error"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    EXHAUSTED = "exhausted"
    INTERNAL_ERROR = "internal_error"

    @property
    def is_transient(self) -> bool:
        return self in (
            FailureKind.NETWORK_ERROR,
            FailureKind.TIMEOUT,
            FailureKind.UPSTREAM_ERROR,
        )


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    kind: FailureKind = FailureKind.INTERNAL_ERROR

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NetworkError(PipelineError):
    """Transport failure reaching the generative-text service."""

    kind = FailureKind.NETWORK_ERROR


class UpstreamTimeoutError(PipelineError, TimeoutError):
    """The call exceeded its connect or total timeout."""

    kind = FailureKind.TIMEOUT


class UpstreamError(PipelineError):
    """Non-success status or a reply missing the expected text field."""

    kind = FailureKind.UPSTREAM_ERROR

    def __init__(self, message: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(PipelineError):
    """No valid JSON value of the expected shape could be extracted."""

    kind = FailureKind.PARSE_ERROR


class SchemaValidationError(PipelineError):
    """The top-level container does not match the artifact type."""

    kind = FailureKind.VALIDATION_ERROR


class ExhaustionError(PipelineError):
    """Assembly produced zero usable records."""

    kind = FailureKind.EXHAUSTED

    def __init__(
        self,
        message: str = "",
        succeeded_chunks: int = 0,
        failed_chunks: int = 0,
    ) -> None:
        super().__init__(message)
        self.succeeded_chunks = succeeded_chunks
        self.failed_chunks = failed_chunks
