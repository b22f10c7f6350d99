"""
Engine tiers and the shared engine interface.

The set of engines is closed: one subclass per EngineTier. Every engine
routes its work through its own single-worker ExecutorStrategy, so calls
into one engine instance are queued rather than interleaved, and long
operations (model loading, HTTP) happen off the caller's thread.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from lifewrap.ai.response_parser import ParseOutcome, ResponseParser
from lifewrap.cache.chunk_cache import content_hash
from lifewrap.logging_config import debug_log
from lifewrap.parallel import ExecutorStrategy, ThreadPoolStrategy
from lifewrap.prompting.config import PromptConfig, get_prompt_config
from lifewrap.prompting.schemas import SummaryLevel
from lifewrap.summarization.result_types import SourceUnit, StructuredSummary


class EngineTier(str, Enum):
    """The four interchangeable summarization backends."""

    BASIC = "basic"
    ON_DEVICE_ASSISTANT = "onDeviceAssistant"
    LOCAL = "local"
    REMOTE = "remote"

    @property
    def display_name(self) -> str:
        return _TIER_TRAITS[self][0]

    @property
    def is_privacy_preserving(self) -> bool:
        """True if no transcript text leaves the device."""
        return _TIER_TRAITS[self][1]

    @property
    def requires_network(self) -> bool:
        return _TIER_TRAITS[self][2]

    @property
    def priority(self) -> int:
        """Rank in the default fallback order; lower is tried first."""
        return _TIER_TRAITS[self][3]

    @classmethod
    def private_tiers(cls) -> list[EngineTier]:
        return [tier for tier in cls if tier.is_privacy_preserving]


# display name, privacy-preserving, requires network, priority
_TIER_TRAITS = {
    EngineTier.REMOTE: ("External API", False, True, 0),
    EngineTier.ON_DEVICE_ASSISTANT: ("On-Device Assistant", True, False, 1),
    EngineTier.LOCAL: ("Local AI", True, False, 2),
    EngineTier.BASIC: ("Basic", True, False, 3),
}

DEFAULT_FALLBACK_ORDER: tuple[EngineTier, ...] = tuple(
    sorted(EngineTier, key=lambda tier: tier.priority)
)


@dataclass(frozen=True)
class SummaryRequest:
    """One queued unit of engine work."""

    level: SummaryLevel
    text: str
    metadata: Mapping[str, Any] = field(default_factory=dict)
    units: tuple[SourceUnit, ...] = ()


class SummarizationEngine(ABC):
    """
    Shared capability of every tier.

    Subclasses set ``tier`` and implement ``is_available`` and ``_summarize``.
    ``is_available`` must be idempotent and free of side effects: it may read
    files or probe a server, but never loads, downloads or mutates state.

    Args:
        strategy: Execution context; defaults to a dedicated single-worker thread.
        prompt_config: Generation parameters; defaults to the global instance.
    """

    tier: EngineTier

    def __init__(
        self,
        strategy: ExecutorStrategy | None = None,
        prompt_config: PromptConfig | None = None,
    ):
        self._strategy = strategy or ThreadPoolStrategy(
            max_workers=1,
            thread_name_prefix=f"{self.tier.value}-engine",
        )
        self.prompt_config = prompt_config or get_prompt_config()
        self.parser = ResponseParser(self.prompt_config)
        self._stats_lock = threading.Lock()
        self.summaries_generated = 0
        self.total_processing_time = 0.0

    @abstractmethod
    def is_available(self) -> bool:
        """True if the engine can serve a request right now."""

    def summarize(
        self,
        level: SummaryLevel,
        text: str,
        metadata: Mapping[str, Any] | None = None,
        units: list[SourceUnit] | tuple[SourceUnit, ...] | None = None,
    ) -> StructuredSummary:
        """
        Summarize ``text`` at ``level``.

        Runs on the engine's worker and blocks the caller until done.

        Args:
            level: Target level.
            text: Full input text.
            metadata: Key/value context embedded in the prompt.
            units: The SourceUnits behind ``text``; only the local engine
                uses them (chunk cache).

        Raises:
            SummarizationError subclasses, per tier.
        """
        request = SummaryRequest(
            level=SummaryLevel(level),
            text=text,
            metadata=dict(metadata or {}),
            units=tuple(units or ()),
        )
        return self._strategy.run(self._execute, request)

    def _execute(self, request: SummaryRequest) -> StructuredSummary:
        start = time.time()
        result = self._summarize(request)
        elapsed = time.time() - start

        result.engine_tier = self.tier
        if result.input_hash is None:
            result.input_hash = content_hash(request.text)
        if not result.source_ids and request.units:
            result.source_ids = [unit.unit_id for unit in request.units]

        with self._stats_lock:
            self.summaries_generated += 1
            self.total_processing_time += elapsed
        debug_log(
            f"[{self.tier.value.upper()}] {request.level.value} summary in {elapsed:.2f}s "
            f"(fallback={result.used_fallback})"
        )
        return result

    @abstractmethod
    def _summarize(self, request: SummaryRequest) -> StructuredSummary:
        """Produce the summary; runs on the engine worker."""

    def _to_summary(self, level: SummaryLevel, outcome: ParseOutcome) -> StructuredSummary:
        return StructuredSummary(
            level=level,
            fields=outcome.fields,
            engine_tier=self.tier,
            used_fallback=outcome.used_fallback,
        )

    def statistics(self) -> dict[str, float]:
        with self._stats_lock:
            count = self.summaries_generated
            total = self.total_processing_time
        return {
            'summaries_generated': count,
            'average_seconds': total / count if count else 0.0,
            'total_seconds': total,
        }

    def reset_statistics(self) -> None:
        with self._stats_lock:
            self.summaries_generated = 0
            self.total_processing_time = 0.0

    def close(self) -> None:
        """Stop the engine's worker."""
        self._strategy.shutdown(wait=True)
