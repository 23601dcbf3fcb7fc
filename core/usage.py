from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def _count(value: Any) -> int:
    """Token count from an upstream field; anything unusable counts as zero."""
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


@dataclass
class TokenUsage:
    """LLM token usage metrics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, usage: TokenUsage | None) -> None:
        """Accumulate usage values from another instance."""
        if not usage:
            return
        self.prompt_tokens += usage.prompt_tokens
        self.completion_tokens += usage.completion_tokens
        self.total_tokens += usage.total_tokens

    @classmethod
    def from_gemini(cls, metadata: Any) -> TokenUsage | None:
        """Build usage from a Gemini ``usageMetadata`` block."""
        if not metadata or not isinstance(metadata, dict):
            return None
        return cls(
            prompt_tokens=_count(metadata.get("promptTokenCount")),
            completion_tokens=_count(metadata.get("candidatesTokenCount")),
            total_tokens=_count(metadata.get("totalTokenCount")),
        )

    @classmethod
    def from_openai(cls, usage: Any) -> TokenUsage | None:
        """Build usage from an OpenAI-style ``usage`` block."""
        if not usage or not isinstance(usage, dict):
            return None
        return cls(
            prompt_tokens=_count(usage.get("prompt_tokens")),
            completion_tokens=_count(usage.get("completion_tokens")),
            total_tokens=_count(usage.get("total_tokens")),
        )
