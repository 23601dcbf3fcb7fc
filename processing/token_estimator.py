# processing/token_estimator.py
"""Heuristic token-cost estimation used for routing decisions."""

from __future__ import annotations

import structlog

from config import StudyForgeSettings

logger = structlog.get_logger(__name__)


class TokenEstimator:
    """Conservative upper estimate of how many tokens a text will cost.

    Two independent estimates are computed, one from the word count and one
    from the character count, and the larger is returned so long texts never
    overflow the per-call limit because of an optimistic guess.
    """

    def __init__(self, config: StudyForgeSettings) -> None:
        self.tokens_per_word = config.TOKENS_PER_WORD
        self._config = config

    def rate_for(self, artifact_type: str | None = None) -> float:
        if artifact_type is None:
            return self._config.TOKENS_PER_CHAR
        return self._config.tokens_per_char_for(artifact_type)

    def estimate(self, text: str, artifact_type: str | None = None) -> int:
        if not text:
            return 0
        word_estimate = int(len(text.split()) * self.tokens_per_word)
        char_estimate = int(len(text) * self.rate_for(artifact_type))
        return max(word_estimate, char_estimate)

    def char_budget(self, max_tokens: int, artifact_type: str | None = None) -> int:
        """Translate a token budget into a per-chunk character budget."""
        return max(1, int(max_tokens / self.rate_for(artifact_type)))
