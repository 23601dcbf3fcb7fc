# processing/text_chunker.py
"""Split oversized source text into ordered chunks on semantic boundaries.

Splitting is hierarchical: structural sections first (markdown headings,
underlined titles, runs of blank lines), then blank-line paragraphs, then
sentences. A finer level is only used for a span that does not fit the
budget on its own. The resulting units are packed greedily into chunks.

Chunks are slices of the original string, so concatenating them in order
gives back the source with only the whitespace between chunks dropped.
"""

from __future__ import annotations

import re
from collections.abc import Iterator

import structlog

from orchestration.models import Chunk

logger = structlog.get_logger(__name__)

# Boundaries are the end of each match; a match never consumes content.
_SECTION_BREAK_RE = re.compile(
    r"\n(?=#{1,6}\s)"  # markdown heading
    r"|\n(?=[A-Z][^\n]*\r?\n[=-]{2,}[ \t]*(?:\r?\n|$))"  # underlined title
    r"|(?:[ \t]*\r?\n){3,}"  # two or more blank lines
)
_PARAGRAPH_BREAK_RE = re.compile(r"\r?\n(?:[ \t]*\r?\n)+")
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+")

_LEVELS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("section", _SECTION_BREAK_RE),
    ("paragraph", _PARAGRAPH_BREAK_RE),
    ("sentence", _SENTENCE_BREAK_RE),
)


def _cut(text: str, start: int, end: int, pattern: re.Pattern[str]) -> list[tuple[int, int]]:
    """Return contiguous sub-spans of ``text[start:end]`` split at ``pattern``."""
    spans: list[tuple[int, int]] = []
    cursor = start
    for match in pattern.finditer(text, start, end):
        boundary = match.end()
        if cursor < boundary < end:
            spans.append((cursor, boundary))
            cursor = boundary
    spans.append((cursor, end))
    return spans


def _strip_span(text: str, start: int, end: int) -> tuple[int, int]:
    segment = text[start:end]
    stripped_left = len(segment) - len(segment.lstrip())
    stripped_right = len(segment.rstrip())
    if stripped_right <= stripped_left:
        return start, start
    return start + stripped_left, start + stripped_right


class TextChunker:
    """Produce an ordered sequence of :class:`Chunk` within a character budget."""

    def split(self, text: str, max_chunk_chars: int) -> list[Chunk]:
        if max_chunk_chars < 1:
            raise ValueError("max_chunk_chars must be at least 1")
        if not text or not text.strip():
            return []

        pieces: list[tuple[int, int]] = []
        buffer_start = buffer_end = -1
        oversized = 0

        for unit_start, unit_end in self._units(text, 0, len(text), 0, max_chunk_chars):
            left, right = _strip_span(text, unit_start, unit_end)
            if left == right:
                continue
            if right - left > max_chunk_chars:
                oversized += 1
            if buffer_start < 0:
                buffer_start, buffer_end = left, right
            elif right - buffer_start > max_chunk_chars:
                pieces.append((buffer_start, buffer_end))
                buffer_start, buffer_end = left, right
            else:
                buffer_end = right

        if buffer_start >= 0:
            pieces.append((buffer_start, buffer_end))

        chunks = [
            Chunk(index=position, text=text[start:end], char_size=end - start)
            for position, (start, end) in enumerate(pieces, start=1)
        ]
        if oversized:
            logger.info(
                f"TextChunker: {oversized} sentence(s) exceed the {max_chunk_chars} char budget and were kept whole."
            )
        logger.debug(
            "TextChunker split complete.",
            source_chars=len(text),
            chunk_count=len(chunks),
            budget=max_chunk_chars,
        )
        return chunks

    def _units(
        self, text: str, start: int, end: int, level: int, max_chars: int
    ) -> Iterator[tuple[int, int]]:
        if end - start <= max_chars or level >= len(_LEVELS):
            yield start, end
            return
        _, pattern = _LEVELS[level]
        for sub_start, sub_end in _cut(text, start, end, pattern):
            if sub_end - sub_start > max_chars:
                yield from self._units(text, sub_start, sub_end, level + 1, max_chars)
            else:
                yield sub_start, sub_end
