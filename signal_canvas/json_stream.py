"""Incremental JSON parsing for streamed LLM output."""
import json
import logging
import re
from collections.abc import AsyncGenerator, AsyncIterable
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```html|```")
_ARRAY_RE = re.compile(r"\[[\s\S]*\]")
_MARKDOWN_FENCE_RE = re.compile(r"```[\w-]*")


class IncrementalJSONExtractor:
    """
    Pull complete top-level JSON objects out of an append-only text buffer.

    Text is fed in arbitrary chunks. An object is returned as soon as its
    closing brace arrives; surrounding prose, code fences and partial
    objects stay in the buffer until they can be matched.

    Braces are counted naively, ignoring string literals. A `{` followed
    by anything other than a quote or `}` can never open an object and is
    passed over immediately; a closed candidate that still fails to parse
    is skipped by restarting the scan at the next `{`.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def buffer(self) -> str:
        """Text received but not yet consumed by a parsed object."""
        return self._buffer

    def feed(self, chunk: str) -> list[Any]:
        """
        Append a chunk and return every object completed by it.

        Args:
            chunk: Next piece of streamed text

        Returns:
            Parsed objects in the order they appear, possibly empty
        """
        if not chunk:
            return []

        self._buffer += chunk
        # Whitespace can sit inside a pending string value but never closes an object
        if not chunk.strip():
            return []

        results: list[Any] = []

        start = self._buffer.find("{")
        while start != -1:
            if not self._can_open_object(start):
                start = self._buffer.find("{", start + 1)
                continue

            end = self._find_closing_brace(start)
            if end == -1:
                # Object not closed yet, wait for more text
                break

            candidate = self._buffer[start:end + 1]
            try:
                value = json.loads(candidate)
            except json.JSONDecodeError:
                logger.debug(f"Skipping unparseable candidate at offset {start}")
                start = self._buffer.find("{", start + 1)
                continue

            results.append(value)
            self._buffer = self._buffer[end + 1:]
            start = self._buffer.find("{")

        return results

    def _can_open_object(self, start: int) -> bool:
        """False when the text after `{` rules out a JSON object."""
        i = start + 1
        while i < len(self._buffer) and self._buffer[i].isspace():
            i += 1
        if i == len(self._buffer):
            return True
        return self._buffer[i] in '"}'

    def _find_closing_brace(self, start: int) -> int:
        """Index where brace depth returns to zero after `start`, or -1."""
        depth = 0
        for i in range(start, len(self._buffer)):
            char = self._buffer[i]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
            if depth == 0 and i > start:
                return i
        return -1


async def iter_json_objects(stream: AsyncIterable[Any]) -> AsyncGenerator[Any, None]:
    """
    Yield JSON objects from an async stream of text increments.

    Items may be plain strings or chunk objects with a `text` attribute;
    anything whose text is not a string is ignored.
    """
    extractor = IncrementalJSONExtractor()
    async for item in stream:
        text = item if isinstance(item, str) else getattr(item, "text", None)
        if not isinstance(text, str):
            continue
        for value in extractor.feed(text):
            yield value


def strip_code_fences(text: str) -> str:
    """Remove ```html / ``` markers the model wraps around markup."""
    return _FENCE_RE.sub("", text).strip()


def extract_json_array(text: str) -> list[Any] | None:
    """
    Find and parse the JSON array in a single-shot response.

    Markdown code fences (```json, ``` and the like) are removed first,
    then the outermost [...] span is parsed.

    Returns:
        The parsed list, or None when no JSON array can be recovered
    """
    if not text:
        return None

    match = _ARRAY_RE.search(_MARKDOWN_FENCE_RE.sub("", text))
    if match is None:
        return None

    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.debug(f"Response did not contain a valid JSON array: {e}")
        return None

    return value if isinstance(value, list) else None


__all__ = [
    "IncrementalJSONExtractor",
    "extract_json_array",
    "iter_json_objects",
    "strip_code_fences",
]
