# artifacts/flashcards.py
from __future__ import annotations

from typing import Any

from config import StudyForgeSettings
from models import ArtifactType, Flashcard

from .base import ArtifactStrategy

_EXAMPLES = [
    Flashcard(
        question="What is photosynthesis?",
        answer="The process by which plants convert sunlight into energy, producing oxygen as a byproduct",
    )
]


class FlashcardStrategy(ArtifactStrategy):
    artifact_type = ArtifactType.FLASHCARD
    record_model = Flashcard
    template_name = "flashcard.j2"
    primary_text_field = "question"
    profile_key = "FLASHCARD"

    def template_context(
        self, type_params: dict[str, Any], config: StudyForgeSettings
    ) -> dict[str, Any]:
        return {"examples": _EXAMPLES}
