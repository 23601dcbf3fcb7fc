# models/request_models.py
"""Request-side models: what the caller asks the pipeline to generate."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

MIN_TARGET_COUNT = 1
MAX_TARGET_COUNT = 50


class ArtifactType(str, Enum):
    """Kinds of learning artifact the pipeline can produce."""

    FLASHCARD = "flashcard"
    QUIZ_QUESTION = "quiz_question"
    STUDY_NOTE = "study_note"
    ENHANCED_NOTE = "enhanced_note"
    ANSWER_VALIDATION = "answer_validation"
    DOCUMENT_METADATA = "document_metadata"

    @property
    def is_countable(self) -> bool:
        return self in (ArtifactType.FLASHCARD, ArtifactType.QUIZ_QUESTION)


class QuizType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    FILL_IN_BLANKS = "fill_in_blanks"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class GenerationRequest(BaseModel):
    """One immutable generation job.

    ``type_params`` carries per-type knobs, e.g. ``{"quiz_type":
    "true_false", "difficulty": "easy"}`` for quizzes or the question and
    reference answer for answer validation.
    """

    model_config = ConfigDict(frozen=True)

    source_text: str
    artifact_type: ArtifactType
    target_count: int | None = Field(
        default=None, ge=MIN_TARGET_COUNT, le=MAX_TARGET_COUNT
    )
    type_params: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_count_and_params(self) -> GenerationRequest:
        if self.artifact_type.is_countable and self.target_count is None:
            raise ValueError(
                f"target_count is required for '{self.artifact_type.value}' requests"
            )
        if self.artifact_type is ArtifactType.QUIZ_QUESTION:
            quiz_type = self.type_params.get("quiz_type", QuizType.MULTIPLE_CHOICE)
            QuizType(quiz_type)
            difficulty = self.type_params.get("difficulty")
            if difficulty is not None:
                Difficulty(difficulty)
        if self.artifact_type is ArtifactType.ANSWER_VALIDATION:
            missing = [
                key
                for key in ("question", "correct_answer")
                if not str(self.type_params.get(key, "")).strip()
            ]
            if missing:
                raise ValueError(
                    f"answer_validation requires type_params {', '.join(missing)}"
                )
        return self

    @property
    def quiz_type(self) -> QuizType:
        return QuizType(self.type_params.get("quiz_type", QuizType.MULTIPLE_CHOICE))
