"""
Result Types for Hierarchical Summarization

Simple dataclasses passed between the coordinator, engines and the
hierarchy pipeline.

Key Types:
    SourceUnit - One input unit (a chunk transcript or a lower-level summary)
    StructuredSummary - Schema-shaped output of one summarization request

Usage:
    units = [SourceUnit(unit_id="c1", text="Went for a run...", session_id="s1")]
    summary = coordinator.summarize(SummaryLevel.SESSION, units)
    print(summary.title, summary.text)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from lifewrap.prompting.schemas import SummaryLevel, schema

if TYPE_CHECKING:
    from lifewrap.engines.base import EngineTier


@dataclass(frozen=True)
class SourceUnit:
    """
    One unit of input text.

    Attributes:
        unit_id: Stable id (chunk id, or id of the lower-level summary).
        text: Transcript text or summary text.
        session_id: Owning session, when the unit is a chunk.
    """
    unit_id: str
    text: str
    session_id: str | None = None


@dataclass
class StructuredSummary:
    """
    Schema-shaped summary produced by an engine.

    Attributes:
        level: Summary level the fields conform to.
        fields: Exactly the schema's keys.
        engine_tier: Tier that produced the result.
        used_fallback: True if fields came from extractive heuristics
            instead of a parsed model response.
        source_ids: Ids of the SourceUnits that went in.
        input_hash: Content hash of the full input, used to skip regeneration.
        created_at: Creation time.
    """
    level: SummaryLevel
    fields: dict[str, Any]
    engine_tier: EngineTier | None = None
    used_fallback: bool = False
    source_ids: list[str] = field(default_factory=list)
    input_hash: str | None = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Reject field sets that do not match the level's schema."""
        self.level = SummaryLevel(self.level)
        expected = set(schema(self.level).field_names)
        actual = set(self.fields)
        if expected != actual:
            missing = sorted(expected - actual)
            extra = sorted(actual - expected)
            raise ValueError(
                f"{self.level.value} summary fields do not match schema "
                f"(missing={missing}, extra={extra})"
            )

    @property
    def title(self) -> str:
        return self.fields[schema(self.level).title_field]

    @property
    def text(self) -> str:
        return self.fields[schema(self.level).summary_field]

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "engine_tier": self.engine_tier.value if self.engine_tier else None,
            "used_fallback": self.used_fallback,
            "source_ids": list(self.source_ids),
            "input_hash": self.input_hash,
            "created_at": self.created_at.isoformat(),
            "fields": self.fields,
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
