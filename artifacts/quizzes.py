# artifacts/quizzes.py
from __future__ import annotations

from typing import Any

from config import StudyForgeSettings
from models import ArtifactType, QuizQuestion, QuizType

from .base import ArtifactStrategy


def _examples(marker: str) -> dict[QuizType, list[dict[str, Any]]]:
    return {
        QuizType.MULTIPLE_CHOICE: [
            {
                "question": "What is the capital of France?",
                "options": ["Paris", "London", "Berlin", "Madrid"],
                "correct_answer": "Paris",
                "explanation": "Paris has been the capital of France since 508 CE.",
            }
        ],
        QuizType.TRUE_FALSE: [
            {
                "question": "The Earth orbits around the Sun.",
                "correct_answer": "true",
                "explanation": "The Earth follows an elliptical orbit around the Sun, completing one revolution every 365.25 days.",
            },
            {
                "question": "The Moon is larger than the Earth.",
                "correct_answer": "false",
                "explanation": "The Moon is about one-quarter the size of Earth in diameter.",
            },
        ],
        QuizType.FILL_IN_BLANKS: [
            {
                "question": f"The process of converting sunlight into chemical energy in plants is called {marker}.",
                "correct_answer": "photosynthesis",
                "explanation": "Photosynthesis is the biological process that allows plants to create energy from sunlight.",
            },
            {
                "question": f"Water consists of two {marker} atoms bonded to one oxygen atom.",
                "correct_answer": "hydrogen",
                "explanation": "The chemical formula for water is H2O, where H represents hydrogen and O represents oxygen.",
            },
        ],
    }


def _requested_type(type_params: dict[str, Any]) -> QuizType:
    return QuizType(type_params.get("quiz_type", QuizType.MULTIPLE_CHOICE))


class QuizQuestionStrategy(ArtifactStrategy):
    artifact_type = ArtifactType.QUIZ_QUESTION
    record_model = QuizQuestion
    template_name = "quiz_question.j2"
    primary_text_field = "question"
    profile_key = "QUIZ"

    def template_context(
        self, type_params: dict[str, Any], config: StudyForgeSettings
    ) -> dict[str, Any]:
        quiz_type = _requested_type(type_params)
        difficulty = type_params.get("difficulty")
        return {
            "quiz_type": quiz_type.value,
            "difficulty": getattr(difficulty, "value", difficulty),
            "blank_marker": config.FILL_BLANK_MARKER,
            "examples": _examples(config.FILL_BLANK_MARKER)[quiz_type],
        }

    def prepare_candidate(self, item: Any, type_params: dict[str, Any]) -> Any:
        # The subtype is fixed by the request, never by the reply.
        if isinstance(item, dict):
            return {**item, "type": _requested_type(type_params).value}
        return item
