"""
Builds the system/user message pair for a summary request.

The same builder serves every engine and every level. The user message is
assembled in a fixed order:

    1. target level and the exact-keys rule
    2. literal JSON list of field names, then one line per field
    3. metadata as "key: value" lines (if any)
    4. the raw input, verbatim
    5. formatting constraints (no fencing, starts with "{", ends with "}")
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

from lifewrap.prompting.schemas import SummaryLevel, schema

SYSTEM_INSTRUCTION = (
    "You are a private journaling assistant. You summarize faithfully and never "
    "invent facts. If something is unclear, write \"unclear\". "
    "No generic motivational fluff."
)

INPUT_START = "<<<INPUT"
INPUT_END = "INPUT>>>"


@dataclass(frozen=True)
class PromptMessages:
    """A system/user message pair."""

    system: str
    user: str

    def as_chat(self) -> list[dict[str, str]]:
        """OpenAI/Ollama-style message list."""
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


def _format_metadata_value(value: Any) -> str:
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def build_messages(
    level: SummaryLevel,
    input_text: str,
    metadata: Mapping[str, Any] | None = None,
) -> PromptMessages:
    """
    Build the prompt for one summary request.

    Args:
        level: Target summary level.
        input_text: Raw transcript (chunk/session) or aggregated lower-level
            summaries (rollups). Embedded verbatim.
        metadata: Extra context such as duration or period dates.

    Returns:
        PromptMessages with the shared system instruction and a level-specific
        user message.
    """
    level = SummaryLevel(level)
    definition = schema(level)
    names = definition.field_names

    lines = [
        f"Summarize the input below as a {level.label} summary.",
        "Respond with a single JSON object that has exactly these keys, "
        "no extra keys and no missing keys:",
        json.dumps(names),
        "",
        "Field guide:",
    ]
    lines.extend(f"- {f.describe()}" for f in definition.fields)
    lines.append("Use [] for empty lists and \"unclear\" for unknown text values.")

    if metadata:
        lines.append("")
        lines.append("Metadata:")
        for key, value in metadata.items():
            lines.append(f"{key}: {_format_metadata_value(value)}")

    lines.append("")
    lines.append("Input:")
    lines.append(INPUT_START)
    lines.append(input_text)
    lines.append(INPUT_END)

    lines.append("")
    lines.append("Formatting rules:")
    lines.append("- Output raw JSON only. Do not use markdown or code fences.")
    lines.append("- Do not add commentary before or after the JSON.")
    lines.append("- Your response must start with { and end with }.")

    return PromptMessages(system=SYSTEM_INSTRUCTION, user="\n".join(lines))
