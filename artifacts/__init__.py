"""Artifact strategies, one per :class:`models.ArtifactType`."""

from models import ArtifactType

from .answers import AnswerValidationStrategy
from .base import ArtifactStrategy, GenerationProfile
from .flashcards import FlashcardStrategy
from .metadata import DocumentMetadataStrategy
from .notes import EnhancedNoteStrategy, StudyNoteStrategy
from .quizzes import QuizQuestionStrategy

_STRATEGIES: dict[ArtifactType, ArtifactStrategy] = {
    strategy.artifact_type: strategy
    for strategy in (
        FlashcardStrategy(),
        QuizQuestionStrategy(),
        StudyNoteStrategy(),
        EnhancedNoteStrategy(),
        AnswerValidationStrategy(),
        DocumentMetadataStrategy(),
    )
}


def get_strategy(artifact_type: ArtifactType | str) -> ArtifactStrategy:
    """Return the strategy registered for ``artifact_type``."""
    return _STRATEGIES[ArtifactType(artifact_type)]


__all__ = [
    "ArtifactStrategy",
    "GenerationProfile",
    "FlashcardStrategy",
    "QuizQuestionStrategy",
    "StudyNoteStrategy",
    "EnhancedNoteStrategy",
    "AnswerValidationStrategy",
    "DocumentMetadataStrategy",
    "get_strategy",
]
