# models/artifact_models.py
"""Record shapes for every artifact type.

A candidate record that validates against one of these models is a
``ValidatedRecord``; persistence code downstream depends on these field names.
Type-specific rules that guard against known upstream failure modes (blank
placement, true/false spelling, options containing the answer) read their
thresholds from a :class:`ValidationPolicy` passed through the pydantic
validation context under the ``"policy"`` key.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StringConstraints,
    ValidationInfo,
    field_validator,
    model_validator,
)

from .request_models import QuizType

if TYPE_CHECKING:  # pragma: no cover - for type hints only
    from config import StudyForgeSettings

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


@dataclass(frozen=True)
class ValidationPolicy:
    """Tunable per-record rules."""

    fill_blank_marker: str = "_____"
    fill_blank_max_answer_words: int = 5
    fill_blank_forbid_edge_blank: bool = True
    true_false_strict: bool = True
    mcq_require_answer_in_options: bool = True

    @classmethod
    def from_settings(cls, config: StudyForgeSettings) -> ValidationPolicy:
        return cls(
            fill_blank_marker=config.FILL_BLANK_MARKER,
            fill_blank_max_answer_words=config.FILL_BLANK_MAX_ANSWER_WORDS,
            fill_blank_forbid_edge_blank=config.FILL_BLANK_FORBID_EDGE_BLANK,
            true_false_strict=config.TRUE_FALSE_STRICT,
            mcq_require_answer_in_options=config.MCQ_REQUIRE_ANSWER_IN_OPTIONS,
        )


DEFAULT_POLICY = ValidationPolicy()


def _policy_from(info: ValidationInfo) -> ValidationPolicy:
    context = info.context or {}
    policy = context.get("policy")
    return policy if isinstance(policy, ValidationPolicy) else DEFAULT_POLICY


def _scalar_to_str(value: Any) -> Any:
    # Upstream often emits true/false or numbers where a string is expected.
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return value


class RecordModel(BaseModel):
    """Base model supporting mapping style access."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    def __getitem__(self, item: str) -> Any:
        return getattr(self, item)

    def get(self, item: str, default: Any = None) -> Any:
        return getattr(self, item, default)


class Flashcard(RecordModel):
    question: NonEmptyStr
    answer: NonEmptyStr

    @field_validator("answer", mode="before")
    @classmethod
    def coerce_answer(cls, value: Any) -> Any:
        return _scalar_to_str(value)


class QuizQuestion(RecordModel):
    question: NonEmptyStr
    type: QuizType
    correct_answer: NonEmptyStr
    explanation: str = ""
    options: list[NonEmptyStr] | None = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def coerce_answer(cls, value: Any) -> Any:
        return _scalar_to_str(value)

    @field_validator("explanation", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("options", mode="before")
    @classmethod
    def coerce_options(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_scalar_to_str(option) for option in value]
        return value

    @model_validator(mode="after")
    def apply_type_rules(self, info: ValidationInfo) -> QuizQuestion:
        policy = _policy_from(info)
        if self.type is QuizType.MULTIPLE_CHOICE:
            if not self.options or len(self.options) < 2:
                raise ValueError("multiple_choice requires at least two options")
            if (
                policy.mcq_require_answer_in_options
                and self.correct_answer not in self.options
            ):
                raise ValueError("correct_answer is not one of the options")
            return self

        self.options = None
        if self.type is QuizType.TRUE_FALSE:
            normalized = self.correct_answer.lower()
            if policy.true_false_strict and normalized not in ("true", "false"):
                raise ValueError(
                    f"true_false answer must be 'true' or 'false', got {self.correct_answer!r}"
                )
            self.correct_answer = normalized
            return self

        marker = policy.fill_blank_marker
        if self.question.count(marker) != 1:
            raise ValueError("fill_in_blanks question must contain exactly one blank")
        if policy.fill_blank_forbid_edge_blank and (
            self.question.startswith(marker) or self.question.endswith(marker)
        ):
            raise ValueError("blank must not be at the start or end of the question")
        if len(self.correct_answer.split()) > policy.fill_blank_max_answer_words:
            raise ValueError("fill_in_blanks answer is too long")
        return self


class NoteQuestionType(str, Enum):
    MCQ = "mcq"
    FILL_BLANK = "fill_blank"
    SHORT_ANSWER = "short_answer"


_NOTE_QUESTION_TYPE_ALIASES = {
    "fill": NoteQuestionType.FILL_BLANK.value,
    "short": NoteQuestionType.SHORT_ANSWER.value,
    "multiple_choice": NoteQuestionType.MCQ.value,
}


class NoteExample(RecordModel):
    title: NonEmptyStr
    description: NonEmptyStr


class NoteQuestion(RecordModel):
    type: NoteQuestionType
    question: NonEmptyStr
    correct_answer: NonEmptyStr
    explanation: NonEmptyStr
    choices: list[NonEmptyStr] | None = None

    @field_validator("correct_answer", mode="before")
    @classmethod
    def coerce_answer(cls, value: Any) -> Any:
        return _scalar_to_str(value)

    @field_validator("type", mode="before")
    @classmethod
    def resolve_alias(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _NOTE_QUESTION_TYPE_ALIASES.get(lowered, lowered)
        return value

    @model_validator(mode="after")
    def check_choices(self) -> NoteQuestion:
        if self.type is NoteQuestionType.MCQ:
            if not self.choices or len(self.choices) < 2:
                raise ValueError("mcq questions require at least two choices")
        else:
            self.choices = None
        return self


class EnhancedNote(RecordModel):
    section_title: NonEmptyStr
    lesson_intro: NonEmptyStr
    key_points: Annotated[list[NonEmptyStr], Field(min_length=3, max_length=6)]
    definitions: dict[NonEmptyStr, NonEmptyStr]
    examples: Annotated[list[NoteExample], Field(min_length=1, max_length=2)]
    section_summary: NonEmptyStr
    questions: Annotated[list[NoteQuestion], Field(min_length=1, max_length=3)]


class StudyNote(RecordModel):
    summary: NonEmptyStr
    content: NonEmptyStr


class AnswerValidation(RecordModel):
    is_correct: StrictBool
    confidence: Annotated[float, Field(ge=0, le=100)]
    feedback: NonEmptyStr
    similarity_score: Annotated[float, Field(ge=0, le=100)]


class DocumentMetadata(RecordModel):
    title: NonEmptyStr
    description: NonEmptyStr
