# artifacts/notes.py
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from config import StudyForgeSettings
from models import (
    ArtifactType,
    EnhancedNote,
    NoteExample,
    NoteQuestion,
    NoteQuestionType,
    RecordModel,
    StudyNote,
)
from parsing import ExpectedShape

from .base import ArtifactStrategy

_ENHANCED_NOTE_EXAMPLE = EnhancedNote(
    section_title="A clear, concise title that accurately represents the main topic of this content",
    lesson_intro="One or two sentences introducing what this section teaches",
    key_points=[
        "Detailed point 1 with thorough explanation, including context, significance, and implications",
        "Detailed point 2 with thorough explanation, including context, significance, and implications",
        "Detailed point 3 with thorough explanation, including context, significance, and implications",
    ],
    definitions={
        "Term 1": "Comprehensive definition including context and practical usage",
        "Term 2": "Comprehensive definition including context and practical usage",
    },
    examples=[
        NoteExample(
            title="Detailed Real-world Example",
            description="A comprehensive, step-by-step explanation of a practical scenario",
        )
    ],
    section_summary="A short recap of the most important ideas in this section",
    questions=[
        NoteQuestion(
            type=NoteQuestionType.MCQ,
            question="A complex question that tests understanding?",
            choices=["Choice 1", "Choice 2", "Choice 3", "Choice 4"],
            correct_answer="Choice 2",
            explanation="Why Choice 2 is correct",
        ),
        NoteQuestion(
            type=NoteQuestionType.FILL_BLANK,
            question="Complete this statement: ___",
            correct_answer="precise answer",
            explanation="Where the answer comes from in the content",
        ),
        NoteQuestion(
            type=NoteQuestionType.SHORT_ANSWER,
            question="A question requiring explanation",
            correct_answer="A concise but complete answer",
            explanation="What a complete answer must mention",
        ),
    ],
)


class StudyNoteStrategy(ArtifactStrategy):
    artifact_type = ArtifactType.STUDY_NOTE
    record_model = StudyNote
    template_name = "study_note.j2"
    primary_text_field = "summary"
    expected_shape = ExpectedShape.OBJECT
    countable = False
    profile_key = "STUDY_NOTE"

    def combine(self, records: Sequence[RecordModel]) -> list[RecordModel]:
        """Merge partial notes from several chunks into a single note."""
        if len(records) <= 1:
            return list(records)
        return [
            StudyNote(
                summary="\n\n".join(record["summary"] for record in records),
                content="\n\n".join(record["content"] for record in records),
            )
        ]


class EnhancedNoteStrategy(ArtifactStrategy):
    """One lesson section per chunk, kept in chunk order."""

    artifact_type = ArtifactType.ENHANCED_NOTE
    record_model = EnhancedNote
    template_name = "enhanced_note.j2"
    primary_text_field = "section_title"
    expected_shape = ExpectedShape.OBJECT
    countable = False
    profile_key = "ENHANCED_NOTE"

    def template_context(
        self, type_params: dict[str, Any], config: StudyForgeSettings
    ) -> dict[str, Any]:
        return {"example": _ENHANCED_NOTE_EXAMPLE}
