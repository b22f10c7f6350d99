"""
Summarization Coordinator

Routes each request to one engine.

Selection:
    explicit tier   -> that engine or an error; never a substitute
    any available   -> first engine in the candidate order that reports ready
                       and succeeds

Candidate order:
    no preference   -> remote, onDeviceAssistant, local, basic
    preferred tier  -> preferred, then the same order without remote

So remote is used only when it heads the default order or is named
explicitly; a preference for a private tier can never be upgraded to it.
Basic is always available, which makes the chain terminate.

The coordinator holds configuration only and does no long-running work, so
it is safe to share between threads.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from lifewrap.engines.base import DEFAULT_FALLBACK_ORDER, EngineTier, SummarizationEngine
from lifewrap.errors import (
    AvailabilityError,
    ConfigurationError,
    GenerationCancelled,
    GenerationFailure,
)
from lifewrap.logging_config import debug_log, info, warning
from lifewrap.prompting.schemas import SummaryLevel
from lifewrap.summarization.result_types import SourceUnit, StructuredSummary

UNIT_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class CoordinatorPreference:
    """
    User-selected tier plus the fixed fallback order.

    Attributes:
        preferred_tier: Tier to try first, or None for the default order.
        fallback_order: Full order used when there is no preference.
    """

    preferred_tier: EngineTier | None = None
    fallback_order: tuple[EngineTier, ...] = DEFAULT_FALLBACK_ORDER

    def __post_init__(self):
        if self.preferred_tier is not None:
            object.__setattr__(self, "preferred_tier", EngineTier(self.preferred_tier))
        if EngineTier.BASIC not in self.fallback_order:
            raise ConfigurationError("Fallback order must end in the basic tier")

    def candidate_order(self) -> list[EngineTier]:
        if self.preferred_tier is None:
            return list(self.fallback_order)
        rest = [
            tier for tier in self.fallback_order
            if tier is not EngineTier.REMOTE and tier is not self.preferred_tier
        ]
        return [self.preferred_tier] + rest


class SummarizationCoordinator:
    """
    Args:
        engines: One engine per tier; basic is required.
        preference: Initial preference (default order if omitted).
    """

    def __init__(
        self,
        engines: Mapping[EngineTier, SummarizationEngine] | Iterable[SummarizationEngine],
        preference: CoordinatorPreference | None = None,
    ):
        if isinstance(engines, Mapping):
            self._engines = {EngineTier(tier): engine for tier, engine in engines.items()}
        else:
            self._engines = {engine.tier: engine for engine in engines}

        for tier, engine in self._engines.items():
            if engine.tier is not tier:
                raise ConfigurationError(f"Engine {type(engine).__name__} registered as {tier.value}")
        if EngineTier.BASIC not in self._engines:
            raise ConfigurationError("A basic engine is required as the final fallback")

        self._preference = preference or CoordinatorPreference()
        self._lock = threading.Lock()

    @property
    def preference(self) -> CoordinatorPreference:
        with self._lock:
            return self._preference

    def set_preferred_tier(self, tier: EngineTier | None) -> None:
        """Replace the preferred tier; None restores the default order."""
        with self._lock:
            self._preference = CoordinatorPreference(
                preferred_tier=tier,
                fallback_order=self._preference.fallback_order,
            )
        info(f"[COORDINATOR] Preferred tier set to {tier.value if tier else 'auto'}")

    def engine(self, tier: EngineTier) -> SummarizationEngine | None:
        return self._engines.get(EngineTier(tier))

    def _candidates(self) -> list[SummarizationEngine]:
        order = self.preference.candidate_order()
        return [self._engines[tier] for tier in order if tier in self._engines]

    def get_active_engine(self) -> EngineTier:
        """Tier that an "any available" request would try first."""
        for engine in self._candidates():
            if engine.is_available():
                return engine.tier
        return EngineTier.BASIC

    def get_available_engines(self) -> list[EngineTier]:
        """Registered tiers reporting ready, in default priority order."""
        return [
            tier for tier in DEFAULT_FALLBACK_ORDER
            if tier in self._engines and self._engines[tier].is_available()
        ]

    def summarize(
        self,
        level: SummaryLevel,
        source_units: list[SourceUnit],
        metadata: Mapping[str, Any] | None = None,
        tier: EngineTier | None = None,
    ) -> StructuredSummary:
        """
        Summarize the units at ``level``.

        Args:
            level: Target level.
            source_units: Inputs, in order; their texts are joined with blank lines.
            metadata: Context embedded in the prompt.
            tier: Explicit tier; None means any available.

        Raises:
            AvailabilityError: Explicit tier not ready, or (in theory) no tier ready.
            ConfigurationError, TransientRemoteError, FatalModelError,
            GenerationCancelled: Always surfaced.
            GenerationFailure: From an explicit tier, or when every tier failed.
        """
        level = SummaryLevel(level)
        units = list(source_units)
        text = UNIT_SEPARATOR.join(unit.text for unit in units)

        if tier is not None:
            return self._summarize_explicit(EngineTier(tier), level, text, metadata, units)

        last_failure: Exception | None = None
        for engine in self._candidates():
            if not engine.is_available():
                debug_log(f"[COORDINATOR] {engine.tier.value} not available, trying next")
                continue
            debug_log(f"[COORDINATOR] Routing {level.value} request to {engine.tier.value}")
            try:
                return engine.summarize(level, text, metadata, units)
            except GenerationCancelled:
                raise
            except (AvailabilityError, GenerationFailure) as e:
                warning(f"[COORDINATOR] {engine.tier.value} failed for {level.value}: {e}")
                last_failure = e

        if isinstance(last_failure, GenerationFailure):
            raise last_failure
        raise AvailabilityError("No summarization engine is available") from last_failure

    def _summarize_explicit(
        self,
        tier: EngineTier,
        level: SummaryLevel,
        text: str,
        metadata: Mapping[str, Any] | None,
        units: list[SourceUnit],
    ) -> StructuredSummary:
        engine = self._engines.get(tier)
        if engine is None:
            raise AvailabilityError(f"No {tier.value} engine is configured", tier=tier)
        if not engine.is_available():
            raise AvailabilityError(f"{tier.display_name} is not available", tier=tier)
        debug_log(f"[COORDINATOR] Routing {level.value} request to {tier.value} (explicit)")
        return engine.summarize(level, text, metadata, units)

    def close(self) -> None:
        for engine in self._engines.values():
            engine.close()
