# parsing/response_sanitizer.py
"""Extract one JSON value from untrusted generative-text output.

Replies arrive wrapped in markdown fences, chat preambles, reasoning tags or
a ``{"text": "..."}`` envelope, and sometimes carry unicode escapes that were
never decoded. :meth:`ResponseSanitizer.extract` peels those layers and
returns the decoded value, or a :class:`ParseError` instance when nothing of
the expected shape can be recovered. It never raises for bad input.

All scanning is linear or bounded; no pattern here can backtrack without
limit on adversarial nesting.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any

import structlog

from core.errors import ParseError

logger = structlog.get_logger(__name__)


class ExpectedShape(str, Enum):
    ARRAY = "array"
    OBJECT = "object"


_REASONING_TAGS = (
    "think",
    "thinking",
    "thought",
    "reasoning",
    "reflection",
    "analysis",
)
_REASONING_NAMES = "|".join(_REASONING_TAGS)
_REASONING_OPEN_RE = re.compile(rf"<\s*(?:{_REASONING_NAMES})\s*>", re.IGNORECASE)
_REASONING_CLOSE_RE = re.compile(
    rf"<\s*/\s*(?:{_REASONING_NAMES})\s*>", re.IGNORECASE
)
_REASONING_SELF_CLOSING_RE = re.compile(
    rf"<\s*(?:{_REASONING_NAMES})\s*/\s*>", re.IGNORECASE
)
_PREAMBLE_RE = re.compile(
    r"^(?:(?:okay|ok|sure|certainly)[,!.]?\s*)?"
    r"(?:here(?:'s| is| are)\b[^\n:{}\[\]]{0,120}:|(?:output|result|response|answer|json)\s*:)\s*",
    re.IGNORECASE,
)
_FENCE_LANG_RE = re.compile(r"[\w-]*")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_ESCAPED_UNICODE_RE = re.compile(r"(?:\\u[0-9a-fA-F]{4})+")

_OPENERS = {"{": "}", "[": "]"}
_NOT_FOUND = object()


def _strip_reasoning(text: str) -> str:
    """Drop ``<think>...</think>`` style blocks and any stray reasoning tags."""
    if "<" not in text:
        return text
    parts: list[str] = []
    position = 0
    closers_exhausted = False
    while True:
        opening = _REASONING_OPEN_RE.search(text, position)
        if opening is None:
            break
        parts.append(text[position : opening.start()])
        closing = (
            None
            if closers_exhausted
            else _REASONING_CLOSE_RE.search(text, opening.end())
        )
        if closing is None:
            closers_exhausted = True
            position = opening.end()
        else:
            position = closing.end()
    parts.append(text[position:])
    cleaned = "".join(parts)
    cleaned = _REASONING_CLOSE_RE.sub("", cleaned)
    return _REASONING_SELF_CLOSING_RE.sub("", cleaned)


def _strip_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        newline = stripped.find("\n")
        language = stripped[3:newline].strip() if newline >= 0 else None
        if language is not None and _FENCE_LANG_RE.fullmatch(language):
            stripped = stripped[newline + 1 :]
        else:
            stripped = stripped[3:]
    stripped = stripped.rstrip()
    if stripped.endswith("```"):
        stripped = stripped[:-3]
    return stripped.strip()


def _decode_escape_run(match: re.Match[str]) -> str:
    run = match.group(0)
    code_units = [int(run[i + 2 : i + 6], 16) for i in range(0, len(run), 6)]
    raw = "".join(chr(unit) for unit in code_units)
    try:
        return raw.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeDecodeError:
        return run


def repair_unicode(value: Any) -> Any:
    """Decode literal ``\\uXXXX`` sequences left inside decoded strings."""
    if isinstance(value, str):
        if "\\u" not in value:
            return value
        return _ESCAPED_UNICODE_RE.sub(_decode_escape_run, value)
    if isinstance(value, list):
        return [repair_unicode(item) for item in value]
    if isinstance(value, dict):
        return {repair_unicode(key): repair_unicode(item) for key, item in value.items()}
    return value


def _describe(value: Any) -> str:
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class ResponseSanitizer:
    """Recover the first well-formed JSON value from a raw model reply."""

    def __init__(
        self,
        max_depth: int = 256,
        max_scan_starts: int = 64,
        max_wrapper_depth: int = 8,
    ) -> None:
        self.max_depth = max_depth
        self.max_scan_starts = max_scan_starts
        self.max_wrapper_depth = max_wrapper_depth

    def clean(self, text: str) -> str:
        """Remove non-data wrapping around the JSON payload."""
        cleaned = text.replace("\ufeff", "")
        cleaned = _strip_reasoning(cleaned).strip()
        cleaned = _PREAMBLE_RE.sub("", cleaned, count=1)
        cleaned = _strip_fences(cleaned)
        return _CONTROL_CHARS_RE.sub("", cleaned)

    def extract(
        self, raw_text: str | None, expected_shape: ExpectedShape | str | None = None
    ) -> Any:
        """Return the decoded JSON value, or a :class:`ParseError` instance."""
        if not isinstance(raw_text, str) or not raw_text.strip():
            return ParseError("Empty response text")
        shape = ExpectedShape(expected_shape) if expected_shape else None

        value = self._decode(raw_text, shape, depth=0)
        if isinstance(value, ParseError):
            logger.debug(
                f"ResponseSanitizer: {value.message}", preview=raw_text[:200]
            )
            return value
        value = repair_unicode(value)
        return self._conform(value, shape)

    def _decode(self, text: str, shape: ExpectedShape | None, depth: int) -> Any:
        cleaned = self.clean(text)
        if not cleaned:
            return ParseError("Response is empty after cleaning")
        try:
            value = json.loads(cleaned, strict=False)
        except (ValueError, RecursionError):
            value = self._scan(cleaned, shape)
            if value is _NOT_FOUND:
                return ParseError("No valid JSON value found in response")

        while True:
            if isinstance(value, str):
                # A JSON string holding the payload, e.g. the body of a wrapper.
                if depth >= self.max_wrapper_depth:
                    return ParseError("Wrapper nesting too deep")
                return self._decode(value, shape, depth + 1)
            if isinstance(value, dict) and len(value) == 1 and "text" in value:
                value = value["text"]
                continue
            return value

    def _scan(self, text: str, shape: ExpectedShape | None) -> Any:
        """Bracket-match candidate regions and decode the first usable one."""
        if shape is ExpectedShape.OBJECT:
            openers = ("{",)
        else:
            openers = ("[", "{")
        position = 0
        for _ in range(self.max_scan_starts):
            start = self._next_opener(text, position, openers)
            if start < 0:
                break
            end = self._match_end(text, start)
            if end is not None:
                try:
                    candidate = json.loads(text[start:end], strict=False)
                except (ValueError, RecursionError):
                    candidate = _NOT_FOUND
                if candidate is not _NOT_FOUND and self._acceptable(candidate, shape):
                    return candidate
            position = start + 1
        return _NOT_FOUND

    @staticmethod
    def _next_opener(text: str, position: int, openers: tuple[str, ...]) -> int:
        found = [index for index in (text.find(o, position) for o in openers) if index >= 0]
        return min(found) if found else -1

    def _match_end(self, text: str, start: int) -> int | None:
        """Index just past the bracket closing ``text[start]``, if balanced."""
        stack: list[str] = []
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char in _OPENERS:
                stack.append(_OPENERS[char])
                if len(stack) > self.max_depth:
                    return None
            elif char in ("}", "]"):
                if not stack or stack.pop() != char:
                    return None
                if not stack:
                    return index + 1
        return None

    @staticmethod
    def _acceptable(value: Any, shape: ExpectedShape | None) -> bool:
        if shape is ExpectedShape.OBJECT:
            return isinstance(value, dict)
        if shape is ExpectedShape.ARRAY and isinstance(value, list):
            # Records are objects; "[2]" or "[see list]" in prose is not the payload.
            return bool(value) and all(isinstance(item, dict) for item in value)
        return isinstance(value, list | dict)

    def _conform(self, value: Any, shape: ExpectedShape | None) -> Any:
        if shape is None:
            if isinstance(value, list | dict):
                return value
            return ParseError(f"Expected a JSON container, got {_describe(value)}")
        if shape is ExpectedShape.ARRAY:
            if isinstance(value, list):
                return value
            if isinstance(value, dict) and len(value) == 1:
                (only,) = value.values()
                if isinstance(only, list):
                    return only
        elif isinstance(value, dict):
            return value
        return ParseError(
            f"Expected a JSON {shape.value}, got {_describe(value)}"
        )
