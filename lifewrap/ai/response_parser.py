"""
Turns raw model output into schema-shaped fields.

Parsing is strict about keys and lenient about packaging: the JSON object
may be wrapped in code fences or chatter, but once found its key set must
equal the schema's exactly. Anything that fails becomes an extractive
fallback built from the source text, so callers always get a usable result.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from lifewrap.errors import GenerationFailure, ParseFailure
from lifewrap.logging_config import debug_log, preview
from lifewrap.prompting.config import PromptConfig, get_prompt_config
from lifewrap.prompting.schemas import OBJECT, STRING, STRING_LIST, SummaryLevel, schema
from lifewrap.summarization.extractive import build_extractive_fields, leading_words

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_FLAT_OBJECT = re.compile(r'\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}', re.DOTALL)


def _loads_object(text: str) -> dict[str, Any] | None:
    """Parse ``text`` as JSON; None unless it is an object."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


@dataclass
class ParseOutcome:
    """
    Attributes:
        fields: Exactly the schema's keys.
        used_fallback: True if the fields are extractive, not parsed.
        error: Why strict parsing failed, when it did.
    """
    fields: dict[str, Any]
    used_fallback: bool
    error: str | None = None


class ResponseParser:
    """Strict JSON parse against a level's schema, with extractive fallback."""

    def __init__(self, prompt_config: PromptConfig | None = None):
        self.prompt_config = prompt_config or get_prompt_config()

    def parse(self, raw: str, level: SummaryLevel, source_text: str = "") -> ParseOutcome:
        """
        Parse model output, falling back to extractive fields on failure.

        Args:
            raw: Model output.
            level: Target level.
            source_text: The input that was summarized; preferred over ``raw``
                as fallback material.

        Returns:
            ParseOutcome; never raises ParseFailure.

        Raises:
            GenerationFailure: Only when both ``raw`` and ``source_text`` are
                blank, so not even a fallback can be built.
        """
        try:
            fields = self.parse_strict(raw, level)
            debug_log(f"[PARSER] Parsed {level.value} response with {len(fields)} fields")
            return ParseOutcome(fields=fields, used_fallback=False)
        except ParseFailure as e:
            debug_log(f"[PARSER] Strict parse failed ({e}); using extractive fallback")
            return ParseOutcome(
                fields=self.fallback(level, source_text, raw),
                used_fallback=True,
                error=str(e),
            )

    def parse_strict(self, raw: str, level: SummaryLevel) -> dict[str, Any]:
        """
        Raises:
            ParseFailure: Malformed JSON, missing keys, extra keys, or a
                value that cannot be coerced to its field type.
        """
        definition = schema(level)
        data = self.extract_json(raw)
        if data is None:
            raise ParseFailure(f"No JSON object in output: {preview(raw or '')!r}")

        expected = definition.field_names
        missing = [name for name in expected if name not in data]
        extra = [name for name in data if name not in expected]
        if missing or extra:
            raise ParseFailure(f"Key mismatch (missing={missing}, extra={extra})")

        return {
            name: self._coerce(definition.get_field(name), data[name])
            for name in expected
        }

    def _coerce(self, schema_field, value: Any) -> Any:
        if schema_field.type == STRING:
            if isinstance(value, str):
                return value.strip()
            if isinstance(value, list):
                return "; ".join(str(item) for item in value)
            if value is None:
                return "unclear"
            if isinstance(value, (int, float)):
                return str(value)
            raise ParseFailure(f"Field '{schema_field.name}' must be a string")

        if schema_field.type == STRING_LIST:
            if value is None:
                return []
            if isinstance(value, str):
                return [value.strip()] if value.strip() else []
            if isinstance(value, list):
                return [item if isinstance(item, str) else json.dumps(item) for item in value]
            raise ParseFailure(f"Field '{schema_field.name}' must be a list of strings")

        if schema_field.type == OBJECT:
            if not isinstance(value, dict):
                raise ParseFailure(f"Field '{schema_field.name}' must be an object")
            return {key: str(value.get(key, "unclear")) for key in schema_field.subkeys}

        raise ParseFailure(f"Unknown field type {schema_field.type}")

    def extract_json(self, text: str) -> dict[str, Any] | None:
        """
        Find a JSON object in model output.

        Tries, in order:
        1. Direct JSON parsing
        2. Contents of a markdown code fence
        3. First brace-balanced object (one nesting level) via regex
        4. Largest span between a "{" and a later "}"

        A strategy that parses to anything but an object (a list wrapping the
        object, a bare string) does not count; the next one is tried.

        Returns:
            Parsed object, or None if all strategies fail
        """
        if not text or not text.strip():
            return None
        text = text.strip()

        # Strategy 1: Direct parse (ideal case)
        data = _loads_object(text)
        if data is not None:
            return data

        # Strategy 2: Code fence (models ignore "no markdown" surprisingly often)
        fence = _FENCE.search(text)
        if fence:
            data = _loads_object(fence.group(1).strip())
            if data is not None:
                return data

        # Strategy 3: Object embedded in chatter
        match = _FLAT_OBJECT.search(text)
        if match:
            data = _loads_object(match.group())
            if data is not None:
                return data

        # Strategy 4: Widest "{...}" span that parses
        starts = [m.start() for m in re.finditer(r'\{', text)]
        ends = [m.end() for m in re.finditer(r'\}', text)]
        for start in starts:
            for end in reversed(ends):
                if end <= start:
                    break
                data = _loads_object(text[start:end])
                if data is not None:
                    return data

        return None

    def fallback(self, level: SummaryLevel, source_text: str, raw: str = "") -> dict[str, Any]:
        """
        Best-effort fields from the leading words of the input.

        Raises:
            GenerationFailure: If there is no text at all to draw from.
        """
        material = source_text if source_text and source_text.strip() else (raw or "")
        if not material.strip():
            raise GenerationFailure(f"Nothing to summarize for {SummaryLevel(level).value}")

        summary_text = leading_words(material, self.prompt_config.fallback_leading_words)
        return build_extractive_fields(
            schema(level),
            source_text=material,
            summary_text=summary_text,
            title_words=self.prompt_config.fallback_title_words,
            keyword_limit=self.prompt_config.keyword_limit,
        )
