# artifacts/metadata.py
from __future__ import annotations

from models import ArtifactType, DocumentMetadata
from parsing import ExpectedShape

from .base import ArtifactStrategy

METADATA_WORD_LIMIT = 1000


class DocumentMetadataStrategy(ArtifactStrategy):
    """Title and description from the opening words of a document."""

    artifact_type = ArtifactType.DOCUMENT_METADATA
    record_model = DocumentMetadata
    template_name = "document_metadata.j2"
    primary_text_field = "title"
    expected_shape = ExpectedShape.OBJECT
    countable = False
    chunkable = False
    profile_key = "DOCUMENT_METADATA"

    def prepare_source(self, text: str) -> str:
        return " ".join(text.split()[:METADATA_WORD_LIMIT])
