# orchestration/models.py
"""Shared dataclasses for the generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.errors import ExhaustionError, FailureKind, PipelineError
from core.usage import TokenUsage
from models import RecordModel


@dataclass(frozen=True)
class Chunk:
    """A bounded slice of the source text sent in one generation call."""

    index: int
    text: str
    char_size: int


@dataclass(frozen=True)
class RawResponse:
    """Reply text of one upstream call, or the reason there is none."""

    chunk_index: int
    text: str | None = None
    failure: PipelineError | None = None
    usage: TokenUsage | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.text is not None


@dataclass(frozen=True)
class ChunkFailure:
    """Why one chunk produced no records, after all of its attempts."""

    chunk_index: int
    kind: FailureKind
    message: str = ""
    attempts: int = 1


@dataclass(frozen=True)
class ChunkOutcome:
    """Immutable result of one chunk task, folded after all tasks finish."""

    chunk_index: int
    records: tuple[RecordModel, ...] = ()
    failure: ChunkFailure | None = None
    usage: TokenUsage | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None


class Outcome(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"

    @classmethod
    def classify(cls, item_count: int, failed_chunks: int) -> Outcome:
        if item_count == 0:
            return cls.FAILURE
        if failed_chunks > 0:
            return cls.PARTIAL
        return cls.SUCCESS


@dataclass
class ResultSet:
    """Final, ordered and size-bounded output of one generation request."""

    items: list[RecordModel]
    succeeded_chunks: int
    failed_chunks: int
    outcome: Outcome
    usage: TokenUsage = field(default_factory=TokenUsage)
    failures: list[ChunkFailure] = field(default_factory=list)

    def raise_for_outcome(self) -> ResultSet:
        """Raise :class:`ExhaustionError` when nothing usable was produced."""
        if self.outcome is Outcome.FAILURE:
            kinds = sorted({failure.kind.value for failure in self.failures})
            detail = f" (chunk failures: {', '.join(kinds)})" if kinds else ""
            raise ExhaustionError(
                f"Generation produced no usable records{detail}",
                succeeded_chunks=self.succeeded_chunks,
                failed_chunks=self.failed_chunks,
            )
        return self

    def as_dict(self) -> dict[str, Any]:
        return {
            "items": [item.model_dump(mode="json") for item in self.items],
            "succeeded_chunks": self.succeeded_chunks,
            "failed_chunks": self.failed_chunks,
            "outcome": self.outcome.value,
            "usage": {
                "prompt_tokens": self.usage.prompt_tokens,
                "completion_tokens": self.usage.completion_tokens,
                "total_tokens": self.usage.total_tokens,
            },
            "failures": [
                {
                    "chunk_index": failure.chunk_index,
                    "kind": failure.kind.value,
                    "message": failure.message,
                    "attempts": failure.attempts,
                }
                for failure in self.failures
            ],
        }
