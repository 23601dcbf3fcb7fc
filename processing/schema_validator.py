# processing/schema_validator.py
"""Per-record validation of extracted candidate records."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from artifacts import ArtifactStrategy, get_strategy
from config import StudyForgeSettings
from core.errors import SchemaValidationError
from models import DEFAULT_POLICY, ArtifactType, RecordModel, ValidationPolicy

logger = structlog.get_logger(__name__)

__all__ = ["SchemaValidator", "ValidationPolicy"]


class SchemaValidator:
    """Turn a decoded reply into validated records.

    Records that break a rule for their type are dropped; only a top-level
    container of the wrong shape is reported, as a
    :class:`SchemaValidationError` value.
    """

    def __init__(self, policy: ValidationPolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    @classmethod
    def from_settings(cls, config: StudyForgeSettings) -> SchemaValidator:
        return cls(ValidationPolicy.from_settings(config))

    def validate(
        self,
        value: Any,
        artifact_type: ArtifactType | str | ArtifactStrategy,
        type_params: dict[str, Any] | None = None,
    ) -> list[RecordModel] | SchemaValidationError:
        strategy = (
            artifact_type
            if isinstance(artifact_type, ArtifactStrategy)
            else get_strategy(artifact_type)
        )
        params = type_params or {}
        candidates = strategy.candidates(value)
        if candidates is None:
            return SchemaValidationError(
                f"Expected a JSON {strategy.expected_shape.value} for "
                f"'{strategy.artifact_type.value}', got {type(value).__name__}"
            )

        records: list[RecordModel] = []
        dropped = 0
        for position, item in enumerate(candidates):
            try:
                record = strategy.record_model.model_validate(
                    strategy.prepare_candidate(item, params),
                    context={"policy": self.policy},
                )
            except ValidationError as exc:
                dropped += 1
                logger.debug(
                    "Dropped invalid record.",
                    artifact_type=strategy.artifact_type.value,
                    position=position,
                    errors=exc.error_count(),
                )
                continue
            records.append(record)

        if dropped:
            logger.debug(
                f"SchemaValidator kept {len(records)} of {len(candidates)} '{strategy.artifact_type.value}' records."
            )
        return records
