# processing/deduplicator.py
"""Exact-duplicate removal keyed on a record's normalized primary text."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

import structlog

from models import RecordModel

logger = structlog.get_logger(__name__)


def normalized_hash(text: str) -> str:
    return hashlib.md5(text.strip().lower().encode("utf-8")).hexdigest()


class Deduplicator:
    """Keep the first record for every distinct primary text, preserving order."""

    def dedupe(
        self, records: Iterable[RecordModel], primary_text_field: str
    ) -> list[RecordModel]:
        seen: set[str] = set()
        unique: list[RecordModel] = []
        removed = 0
        for record in records:
            key = normalized_hash(str(record[primary_text_field]))
            if key in seen:
                removed += 1
                continue
            seen.add(key)
            unique.append(record)
        if removed:
            logger.debug(
                f"Deduplicator removed {removed} duplicate record(s).",
                field=primary_text_field,
            )
        return unique
