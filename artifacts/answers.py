# artifacts/answers.py
from __future__ import annotations

from typing import Any

from config import StudyForgeSettings
from models import AnswerValidation, ArtifactType
from parsing import ExpectedShape

from .base import ArtifactStrategy


class AnswerValidationStrategy(ArtifactStrategy):
    """Grade a student's answer; the answer itself is the source text."""

    artifact_type = ArtifactType.ANSWER_VALIDATION
    record_model = AnswerValidation
    template_name = "answer_validation.j2"
    primary_text_field = "feedback"
    expected_shape = ExpectedShape.OBJECT
    countable = False
    chunkable = False
    profile_key = "ANSWER_VALIDATION"

    def template_context(
        self, type_params: dict[str, Any], config: StudyForgeSettings
    ) -> dict[str, Any]:
        return {
            "question": type_params.get("question", ""),
            "correct_answer": type_params.get("correct_answer", ""),
            "question_type": type_params.get("question_type", "short_answer"),
        }
