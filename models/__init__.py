"""Central package for StudyForge data models."""

from .artifact_models import (
    DEFAULT_POLICY,
    AnswerValidation,
    DocumentMetadata,
    EnhancedNote,
    Flashcard,
    NoteExample,
    NoteQuestion,
    NoteQuestionType,
    QuizQuestion,
    RecordModel,
    StudyNote,
    ValidationPolicy,
)
from .request_models import (
    MAX_TARGET_COUNT,
    MIN_TARGET_COUNT,
    ArtifactType,
    Difficulty,
    GenerationRequest,
    QuizType,
)

__all__ = [
    "ArtifactType",
    "QuizType",
    "Difficulty",
    "GenerationRequest",
    "MIN_TARGET_COUNT",
    "MAX_TARGET_COUNT",
    "RecordModel",
    "Flashcard",
    "QuizQuestion",
    "NoteQuestionType",
    "NoteExample",
    "NoteQuestion",
    "EnhancedNote",
    "StudyNote",
    "AnswerValidation",
    "DocumentMetadata",
    "ValidationPolicy",
    "DEFAULT_POLICY",
]
