# artifacts/base.py
"""Base strategy shared by every artifact type.

A strategy bundles what differs between artifact types: the prompt
template, the record model, the expected top-level JSON shape, the field
used for deduplication and how partial results from several chunks are
combined. The orchestrator itself is type-agnostic.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, ClassVar

from config import StudyForgeSettings
from models import ArtifactType, RecordModel
from parsing import ExpectedShape
from prompt_renderer import render_prompt


@dataclass(frozen=True)
class GenerationProfile:
    """Sampling parameters for one upstream call."""

    temperature: float
    max_output_tokens: int
    top_k: int
    top_p: float


class ArtifactStrategy:
    artifact_type: ClassVar[ArtifactType]
    record_model: ClassVar[type[RecordModel]]
    template_name: ClassVar[str]
    primary_text_field: ClassVar[str]
    expected_shape: ClassVar[ExpectedShape] = ExpectedShape.ARRAY
    countable: ClassVar[bool] = True
    chunkable: ClassVar[bool] = True
    # Suffix of the TEMPERATURE_* / MAX_OUTPUT_TOKENS_* settings.
    profile_key: ClassVar[str]

    def profile(self, config: StudyForgeSettings) -> GenerationProfile:
        return GenerationProfile(
            temperature=getattr(config, f"TEMPERATURE_{self.profile_key}"),
            max_output_tokens=getattr(config, f"MAX_OUTPUT_TOKENS_{self.profile_key}"),
            top_k=config.LLM_TOP_K,
            top_p=config.LLM_TOP_P,
        )

    def prepare_source(self, text: str) -> str:
        """Return the part of the source text this artifact is generated from."""
        return text

    def template_context(
        self, type_params: dict[str, Any], config: StudyForgeSettings
    ) -> dict[str, Any]:
        return {}

    def build_prompt(
        self,
        text: str,
        count: int | None,
        type_params: dict[str, Any],
        config: StudyForgeSettings,
        part: int | None = None,
        total_parts: int | None = None,
    ) -> str:
        """Render the instruction prompt; identical inputs give identical output."""
        context = {
            "text": text,
            "count": count,
            "part": part,
            "total_parts": total_parts,
        }
        context.update(self.template_context(type_params, config))
        return render_prompt(self.template_name, context)

    def candidates(self, value: Any) -> list[Any] | None:
        """Split a decoded reply into candidate records.

        ``None`` means the top-level container is wrong for this type.
        """
        if self.expected_shape is ExpectedShape.ARRAY:
            return list(value) if isinstance(value, list) else None
        return [value] if isinstance(value, dict) else None

    def prepare_candidate(self, item: Any, type_params: dict[str, Any]) -> Any:
        return item

    def combine(self, records: Sequence[RecordModel]) -> list[RecordModel]:
        """Merge records collected from all chunks, in chunk order."""
        return list(records)
