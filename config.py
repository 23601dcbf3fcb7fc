# config.py
"""Configuration settings for the StudyForge generation pipeline.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import structlog
from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class StudyForgeSettings(BaseSettings):
    """Full configuration for the StudyForge pipeline."""

    # API and Model Configuration
    LLM_PROVIDER: str = "gemini"  # "gemini" or "openai" (any OpenAI-compatible server)
    LLM_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    LLM_API_KEY: str = ""
    GENERATION_MODEL: str = "gemini-2.0-flash"

    # Token Budget
    MAX_TOKENS_PER_REQUEST: int = 30000
    TOKENS_PER_WORD: float = 1.3
    TOKENS_PER_CHAR: float = 0.25
    # Keyed by artifact type value, e.g. {"flashcard": 0.33}
    TOKENS_PER_CHAR_OVERRIDES: dict[str, float] = {}

    # HTTP Timeouts
    HTTPX_CONNECT_TIMEOUT: float = 30.0
    HTTPX_TOTAL_TIMEOUT: float = 180.0

    # Temperature Settings
    TEMPERATURE_FLASHCARD: float = 0.3
    TEMPERATURE_QUIZ: float = 0.3
    TEMPERATURE_STUDY_NOTE: float = 0.2
    TEMPERATURE_ENHANCED_NOTE: float = 0.3
    TEMPERATURE_ANSWER_VALIDATION: float = 0.1
    TEMPERATURE_DOCUMENT_METADATA: float = 0.1

    # Output Caps
    MAX_OUTPUT_TOKENS_FLASHCARD: int = 4096
    MAX_OUTPUT_TOKENS_QUIZ: int = 4096
    MAX_OUTPUT_TOKENS_STUDY_NOTE: int = 8192
    MAX_OUTPUT_TOKENS_ENHANCED_NOTE: int = 2048
    MAX_OUTPUT_TOKENS_ANSWER_VALIDATION: int = 1024
    MAX_OUTPUT_TOKENS_DOCUMENT_METADATA: int = 1024

    LLM_TOP_K: int = 40
    LLM_TOP_P: float = 0.95

    # Concurrency and Retry
    MAX_CONCURRENT_LLM_CALLS: int = 4
    CHUNK_RETRY_ATTEMPTS: int = 0
    LLM_RETRY_DELAY_SECONDS: float = 1.0

    # Validation Policy
    FILL_BLANK_MARKER: str = "_____"
    FILL_BLANK_MAX_ANSWER_WORDS: int = 5
    FILL_BLANK_FORBID_EDGE_BLANK: bool = True
    TRUE_FALSE_STRICT: bool = True
    MCQ_REQUIRE_ANSWER_IN_OPTIONS: bool = True

    # Logging
    LOG_LEVEL_STR: str = Field("INFO", alias="STUDYFORGE_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = None
    ENABLE_RICH_LOGGING: bool = True

    @model_validator(mode="after")
    def check_budget_and_credentials(self) -> StudyForgeSettings:
        if self.MAX_TOKENS_PER_REQUEST <= 0:
            raise ValueError("MAX_TOKENS_PER_REQUEST must be positive")
        if self.TOKENS_PER_CHAR <= 0 or any(
            rate <= 0 for rate in self.TOKENS_PER_CHAR_OVERRIDES.values()
        ):
            raise ValueError("Token-per-character rates must be positive")
        if self.MAX_CONCURRENT_LLM_CALLS < 1:
            raise ValueError("MAX_CONCURRENT_LLM_CALLS must be at least 1")
        if self.LLM_PROVIDER not in ("gemini", "openai"):
            raise ValueError(f"Unsupported LLM_PROVIDER '{self.LLM_PROVIDER}'")
        if not self.LLM_API_KEY:
            logger.warning(
                "LLM_API_KEY is empty. Upstream calls will be rejected.",
                provider=self.LLM_PROVIDER,
            )
        return self

    def tokens_per_char_for(self, artifact_type: str) -> float:
        """Return the character-to-token rate configured for an artifact type."""
        return self.TOKENS_PER_CHAR_OVERRIDES.get(artifact_type, self.TOKENS_PER_CHAR)

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", populate_by_name=True, extra="ignore"
    )


settings = StudyForgeSettings()
