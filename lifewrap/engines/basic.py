"""
Basic engine: extractive summarization with no model and no network.

It is the last link of every fallback chain, so ``is_available`` is a
constant ``True``.
"""

from __future__ import annotations

from lifewrap.engines.base import EngineTier, SummarizationEngine, SummaryRequest
from lifewrap.errors import GenerationFailure
from lifewrap.logging_config import debug_log
from lifewrap.prompting.schemas import schema
from lifewrap.summarization.extractive import (
    build_extractive_fields,
    extractive_summarize,
    merge_summaries,
)
from lifewrap.summarization.result_types import StructuredSummary


class BasicEngine(SummarizationEngine):
    """Sentence scoring and keyword frequency."""

    tier = EngineTier.BASIC

    def is_available(self) -> bool:
        return True

    def _summarize(self, request: SummaryRequest) -> StructuredSummary:
        if not request.text.strip():
            raise GenerationFailure(
                f"No text to summarize for {request.level.value}", tier=self.tier
            )

        max_words = self.prompt_config.basic_summary_words(request.level)

        if request.level.is_rollup and len(request.units) > 1:
            # Lower-level summaries: de-duplicate across them, then trim
            summary_text = merge_summaries([unit.text for unit in request.units], max_words=max_words)
        else:
            summary_text = extractive_summarize(request.text, max_words=max_words)

        debug_log(
            f"[BASIC] {request.level.value}: {len(request.text.split())} words in, "
            f"{len(summary_text.split())} words out"
        )

        fields = build_extractive_fields(
            schema(request.level),
            source_text=request.text,
            summary_text=summary_text,
            title_words=self.prompt_config.fallback_title_words,
            keyword_limit=self.prompt_config.keyword_limit,
        )
        return StructuredSummary(level=request.level, fields=fields, engine_tier=self.tier)
