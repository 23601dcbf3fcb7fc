# main.py
"""CLI entry point for the StudyForge generation pipeline."""

from __future__ import annotations

import argparse
import sys

from models import ArtifactType, Difficulty, QuizType
from orchestration.cli_runner import run


def main(argv: list[str] | None = None) -> int:
    """Parse command-line arguments and run one generation request."""
    parser = argparse.ArgumentParser(
        description="Generate learning artifacts from a plain-text document."
    )
    parser.add_argument("path", help="Path to a UTF-8 text file")
    parser.add_argument(
        "--type",
        dest="artifact_type",
        choices=[artifact.value for artifact in ArtifactType],
        default=ArtifactType.FLASHCARD.value,
    )
    parser.add_argument("--count", type=int, default=None, help="Number of items")
    parser.add_argument(
        "--quiz-type", choices=[quiz.value for quiz in QuizType], default=None
    )
    parser.add_argument(
        "--difficulty", choices=[level.value for level in Difficulty], default=None
    )
    parser.add_argument("--question", default=None, help="Question being answered")
    parser.add_argument("--correct-answer", default=None)
    parser.add_argument("--question-type", default=None)
    args = parser.parse_args(argv)

    type_params = {
        key: value
        for key, value in (
            ("quiz_type", args.quiz_type),
            ("difficulty", args.difficulty),
            ("question", args.question),
            ("correct_answer", args.correct_answer),
            ("question_type", args.question_type),
        )
        if value is not None
    }
    return run(args.path, args.artifact_type, args.count, type_params)


if __name__ == "__main__":
    sys.exit(main())
