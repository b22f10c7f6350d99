"""
Local engine: quantized GGUF model via llama.cpp.

Pipeline per request:
    build_messages -> format_prompt(family) -> StreamingGenerator -> ResponseParser

Chunk summaries are memoized in a ChunkSummaryCache. A session request that
carries its chunk units is answered chunk by chunk through the cache; once
every chunk of the session has a valid entry, the session summary is merged
from the cached texts with no further model call.
"""

from __future__ import annotations

import threading
from typing import Any, Mapping

from lifewrap.ai.generation_config import GenerationConfig
from lifewrap.ai.llama_model_manager import LlamaModelManager, ModelFileStatus
from lifewrap.ai.response_parser import ParseOutcome
from lifewrap.ai.streaming import StreamingGenerator
from lifewrap.cache.chunk_cache import ChunkSummaryCache
from lifewrap.engines.base import EngineTier, SummarizationEngine, SummaryRequest
from lifewrap.logging_config import debug_log, warning
from lifewrap.parallel import ExecutorStrategy
from lifewrap.prompting import PromptConfig, SummaryLevel, build_messages, format_prompt, schema
from lifewrap.summarization.extractive import build_extractive_fields
from lifewrap.summarization.result_types import SourceUnit, StructuredSummary

# Rough prompt-size estimate used for the context-window warning
CHARS_PER_TOKEN = 4


class LocalEngine(SummarizationEngine):
    """
    Args:
        model_manager: llama.cpp wrapper; defaults to the configured model.
        generation_config: Template/stop pairing and limits; defaults to the
            model's models.yaml entry.
        cache: Chunk summary cache owned by this engine.
        strategy: Execution context (single worker by default).
        prompt_config: Per-level generation parameters.
    """

    tier = EngineTier.LOCAL

    def __init__(
        self,
        model_manager: LlamaModelManager | None = None,
        generation_config: GenerationConfig | None = None,
        cache: ChunkSummaryCache | None = None,
        strategy: ExecutorStrategy | None = None,
        prompt_config: PromptConfig | None = None,
    ):
        super().__init__(strategy=strategy, prompt_config=prompt_config)
        self.model_manager = model_manager or LlamaModelManager()
        self.generation_config = generation_config or GenerationConfig.from_model_config(
            self.model_manager.model_key
        )
        self.cache = cache if cache is not None else ChunkSummaryCache()
        self._cancel_event = threading.Event()
        self.generator = StreamingGenerator(
            self.generation_config,
            self.model_manager.stream_tokens,
            cancel_event=self._cancel_event,
        )

    def is_available(self) -> bool:
        """
        True when the weight file is present and not quarantined.

        A file outside its size window still reports available so that the
        first request loads it and surfaces FatalModelError.
        """
        if self.model_manager.is_model_loaded():
            return True
        return self.model_manager.check_model_file() in (ModelFileStatus.OK, ModelFileStatus.OUT_OF_RANGE)

    def cancel(self) -> None:
        """Stop the running generation at the next token boundary."""
        self._cancel_event.set()

    def clear_changed_chunks(self, chunks) -> set[str]:
        """Evict stale chunk entries; returns ids that need a model call."""
        return self.cache.clear_changed_chunks(chunks)

    def summarize_chunk(self, chunk_id: str, text: str, session_id: str | None = None) -> str:
        """Cached chunk summary text, generating on a miss (runs on the worker)."""
        unit = SourceUnit(unit_id=chunk_id, text=text, session_id=session_id)
        return self._strategy.run(lambda u: self._chunk_summary(u, {})[0], unit)

    def unload_model(self) -> None:
        self._strategy.run(lambda _: self.model_manager.unload_model(), None)

    def _summarize(self, request: SummaryRequest) -> StructuredSummary:
        level = request.level

        if level is SummaryLevel.CHUNK and len(request.units) == 1:
            text, outcome = self._chunk_summary(request.units[0], request.metadata)
            if outcome is None:
                outcome = ParseOutcome(
                    fields=self._fields_from_text(level, request.text, text),
                    used_fallback=False,
                )
            return self._to_summary(level, outcome)

        if level is SummaryLevel.SESSION and request.units:
            merged = self._merge_session(request)
            if merged is not None:
                fields = self._fields_from_text(level, request.text, merged)
                return self._to_summary(level, ParseOutcome(fields=fields, used_fallback=False))
            debug_log("[LOCAL] Session merge unavailable; summarizing full transcript")

        return self._to_summary(level, self._generate(level, request.text, request.metadata))

    def _chunk_summary(
        self,
        unit: SourceUnit,
        metadata: Mapping[str, Any],
    ) -> tuple[str, ParseOutcome | None]:
        """
        Returns:
            (summary text, outcome). Outcome is None on a cache hit.
        """
        generated: dict[str, ParseOutcome] = {}

        def generate(text: str) -> str:
            outcome = self._generate(SummaryLevel.CHUNK, text, metadata)
            generated['outcome'] = outcome
            # Fallback text is not worth memoizing
            if outcome.used_fallback:
                return ""
            return outcome.fields[schema(SummaryLevel.CHUNK).summary_field]

        text = self.cache.summarize_chunk(unit.unit_id, unit.text, generate, session_id=unit.session_id)
        outcome = generated.get('outcome')
        if outcome is not None and not text:
            text = outcome.fields[schema(SummaryLevel.CHUNK).summary_field]
        return text, outcome

    def _merge_session(self, request: SummaryRequest) -> str | None:
        session_id = request.metadata.get('session_id') or request.units[0].session_id
        chunk_metadata = {'session_id': session_id} if session_id else {}
        for unit in request.units:
            self._chunk_summary(unit, chunk_metadata)

        pairs = [(unit.unit_id, unit.text) for unit in request.units]
        return self.cache.try_merge_session(session_id, pairs)

    def _fields_from_text(self, level: SummaryLevel, source_text: str, summary_text: str) -> dict:
        return build_extractive_fields(
            schema(level),
            source_text=source_text,
            summary_text=summary_text,
            title_words=self.prompt_config.fallback_title_words,
            keyword_limit=self.prompt_config.keyword_limit,
        )

    def _generate(self, level: SummaryLevel, text: str, metadata: Mapping[str, Any]) -> ParseOutcome:
        self.model_manager.load_model(self.generation_config)
        messages = build_messages(level, text, metadata)
        prompt = format_prompt(self.generation_config.template_family, messages)
        max_tokens = self.prompt_config.max_output_tokens(level)

        estimated_tokens = len(prompt) // CHARS_PER_TOKEN
        context_window = self.generation_config.context_window
        if estimated_tokens + max_tokens > context_window:
            warning(
                f"[LOCAL] Prompt (~{estimated_tokens} tokens) plus {max_tokens} output tokens "
                f"may exceed the {context_window}-token context window"
            )

        raw = self.generator.generate(prompt, max_tokens=max_tokens)
        return self.parser.parse(raw, level, source_text=text)
