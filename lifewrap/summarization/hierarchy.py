"""
Hierarchy Pipeline

Builds the summary tree bottom-up from stored transcripts:

    chunks -> session -> day -> week -> month -> year -> yearRollup

Each level's input is the text of the level below it that falls inside its
calendar period. Every stored summary carries the hash of the input it was
generated from; when the recomputed hash matches, the stored summary is
returned as-is and no engine is called.

Every generation is recorded in a pandas DataFrame (level, period, tier,
fallback, timing, output size) that can be written to CSV in debug mode.
"""

from __future__ import annotations

import time
from datetime import datetime
from pathlib import Path

import pandas as pd

from lifewrap.cache.chunk_cache import ChunkSummaryCache, content_hash
from lifewrap.config import DEBUG_MODE, GENERATION_LOG_CSV
from lifewrap.coordinator import UNIT_SEPARATOR, SummarizationCoordinator
from lifewrap.engines.base import EngineTier
from lifewrap.errors import GenerationFailure
from lifewrap.logging_config import debug_log, info, warning
from lifewrap.prompting.schemas import SummaryLevel, schema
from lifewrap.storage import SummaryRecord, SummaryStore
from lifewrap.summarization.periods import period_bounds
from lifewrap.summarization.result_types import SourceUnit, StructuredSummary

NOTES_HEADER = "Additional Notes:"

TRACKING_COLUMNS = [
    'level',
    'period_start',
    'period_end',
    'session_id',
    'engine_tier',
    'used_fallback',
    'source_count',
    'processing_time_sec',
    'output_chars',
]

# Levels refreshed after a new session summary, in dependency order
PERIOD_LEVELS = (SummaryLevel.DAY, SummaryLevel.WEEK, SummaryLevel.MONTH, SummaryLevel.YEAR)


class SummaryPipeline:
    """
    Args:
        coordinator: Routes each request to an engine.
        store: Source of chunks and sink for summaries.
        local_cache: The local engine's chunk cache, if any; forced session
            regeneration evicts its stale entries first.
    """

    def __init__(
        self,
        coordinator: SummarizationCoordinator,
        store: SummaryStore,
        local_cache: ChunkSummaryCache | None = None,
    ):
        self.coordinator = coordinator
        self.store = store
        self.local_cache = local_cache
        self.df = pd.DataFrame(columns=TRACKING_COLUMNS)

    def summarize_session(
        self,
        session_id: str,
        force_regenerate: bool = False,
        tier: EngineTier | None = None,
    ) -> SummaryRecord:
        """
        Summarize one recording session from its chunk transcripts.

        Returns:
            The stored record (unchanged if the transcript hash matched).

        Raises:
            GenerationFailure: The session has no chunks.
        """
        chunks = self.store.get_session_chunks(session_id)
        if not chunks:
            raise GenerationFailure(f"Session {session_id} has no transcribed chunks")

        units = [SourceUnit(unit_id=c.chunk_id, text=c.text, session_id=session_id) for c in chunks]
        input_hash = content_hash(UNIT_SEPARATOR.join(unit.text for unit in units))

        existing = self.store.get_session_summary(session_id)
        if existing is not None and not force_regenerate and existing.summary.input_hash == input_hash:
            debug_log(f"[PIPELINE] Session {session_id} unchanged (hash {input_hash[:8]}), skipping")
            return existing

        if force_regenerate and self.local_cache is not None:
            changed = self.local_cache.clear_changed_chunks((u.unit_id, u.text) for u in units)
            info(f"[PIPELINE] Session {session_id}: {len(changed)} of {len(units)} chunk(s) need reprocessing")

        period_start = chunks[0].start_time
        period_end = max(c.end_time for c in chunks)
        metadata = {
            'session_id': session_id,
            'started': period_start.isoformat(timespec='minutes'),
            'ended': period_end.isoformat(timespec='minutes'),
            'chunks': len(chunks),
        }

        summary, elapsed = self._generate(SummaryLevel.SESSION, units, metadata, tier, input_hash)
        record = SummaryRecord(
            level=SummaryLevel.SESSION,
            period_start=period_start,
            period_end=period_end,
            summary=summary,
            session_id=session_id,
        )
        self.store.upsert_summary(record)
        self._track(record, len(units), summary, elapsed)
        return record

    def summarize_period(
        self,
        level: SummaryLevel,
        anchor: datetime,
        tier: EngineTier | None = None,
        force_regenerate: bool = False,
    ) -> SummaryRecord:
        """
        Roll up the child-level summaries of the period containing ``anchor``.

        Raises:
            ValueError: ``level`` is not a rollup level.
            GenerationFailure: Nothing to roll up in the period.
        """
        level = SummaryLevel(level)
        if not level.is_rollup:
            raise ValueError(f"{level.value} is not a rollup level")

        start, end = period_bounds(level, anchor)
        child = level.child
        children = self.store.list_summaries(child, start, end)
        if not children:
            raise GenerationFailure(
                f"No {child.value} summaries between {start.date()} and {end.date()}"
            )

        units = [
            SourceUnit(
                unit_id=_record_id(r),
                text=r.summary.text,
                session_id=r.session_id,
            )
            for r in children
        ]
        input_hash = content_hash(UNIT_SEPARATOR.join(unit.text for unit in units))

        existing = self.store.get_summary(level, start, end)
        if existing is not None and not force_regenerate and existing.summary.input_hash == input_hash:
            debug_log(f"[PIPELINE] {level.value} {start.date()} unchanged, skipping")
            return existing

        metadata = {
            'period': level.label,
            'period_start': start.date().isoformat(),
            'period_end': end.date().isoformat(),
            'source_level': child.value,
            'source_count': len(units),
        }
        summary, elapsed = self._generate(level, units, metadata, tier, input_hash)
        record = SummaryRecord(level=level, period_start=start, period_end=end, summary=summary)
        self.store.upsert_summary(record)
        self._track(record, len(units), summary, elapsed)
        return record

    def update_period_summaries(self, anchor: datetime, tier: EngineTier | None = None) -> list[SummaryRecord]:
        """
        Refresh day, week, month and year around ``anchor`` after a session
        summary changed. A level with nothing to roll up is skipped.
        """
        records = []
        for level in PERIOD_LEVELS:
            try:
                records.append(self.summarize_period(level, anchor, tier=tier))
            except GenerationFailure as e:
                warning(f"[PIPELINE] {level.value} rollup skipped: {e}")
        return records

    def generate_year_rollup(
        self,
        year: int,
        tier: EngineTier | None = None,
        force_regenerate: bool = False,
    ) -> SummaryRecord:
        """Year-in-review summary; builds the year summary first if missing."""
        anchor = datetime(year, 1, 1)
        start, end = period_bounds(SummaryLevel.YEAR, anchor)
        if self.store.get_summary(SummaryLevel.YEAR, start, end) is None:
            debug_log(f"[PIPELINE] No year summary for {year}; generating it first")
            self.summarize_period(SummaryLevel.YEAR, anchor, tier=tier)
        return self.summarize_period(
            SummaryLevel.YEAR_ROLLUP, anchor, tier=tier, force_regenerate=force_regenerate
        )

    def append_notes(
        self,
        level: SummaryLevel,
        period_start: datetime,
        period_end: datetime,
        notes: str,
        session_id: str | None = None,
    ) -> SummaryRecord:
        """
        Append user notes to a stored summary's text without regenerating it.

        The stored input hash is kept, so an unchanged transcript does not
        trigger a regeneration that would drop the notes.

        Raises:
            ValueError: Empty notes, or no summary stored under that key.
        """
        if not notes or not notes.strip():
            raise ValueError("Notes must not be empty")

        record = self.store.get_summary(level, period_start, period_end, session_id)
        if record is None:
            raise ValueError(f"No {SummaryLevel(level).value} summary stored for that period")

        summary_field = schema(record.level).summary_field
        fields = dict(record.summary.fields)
        fields[summary_field] = f"{fields[summary_field]}\n\n{NOTES_HEADER}\n{notes.strip()}"

        updated = SummaryRecord(
            level=record.level,
            period_start=record.period_start,
            period_end=record.period_end,
            session_id=record.session_id,
            summary=StructuredSummary(
                level=record.level,
                fields=fields,
                engine_tier=record.summary.engine_tier,
                used_fallback=record.summary.used_fallback,
                source_ids=list(record.summary.source_ids),
                input_hash=record.summary.input_hash,
                created_at=record.summary.created_at,
            ),
        )
        self.store.upsert_summary(updated)
        info(f"[PIPELINE] Appended notes to {record.level.value} summary")
        return updated

    def _generate(
        self,
        level: SummaryLevel,
        units: list[SourceUnit],
        metadata: dict,
        tier: EngineTier | None,
        input_hash: str,
    ) -> tuple[StructuredSummary, float]:
        start_time = time.time()
        summary = self.coordinator.summarize(level, units, metadata=metadata, tier=tier)
        summary.input_hash = input_hash
        summary.source_ids = [unit.unit_id for unit in units]
        elapsed = time.time() - start_time
        debug_log(
            f"[PIPELINE] {level.value} summary from {len(units)} unit(s) by "
            f"{summary.engine_tier.value if summary.engine_tier else 'unknown'} "
            f"in {elapsed:.2f}s"
        )
        return summary, elapsed

    def _track(self, record: SummaryRecord, source_count: int, summary: StructuredSummary, elapsed: float) -> None:
        self.df.loc[len(self.df)] = [
            record.level.value,
            record.period_start,
            record.period_end,
            record.session_id,
            summary.engine_tier.value if summary.engine_tier else None,
            summary.used_fallback,
            source_count,
            round(elapsed, 3),
            len(summary.text),
        ]

    def generation_stats(self) -> pd.DataFrame:
        """Count, fallback count and mean seconds per engine tier."""
        if self.df.empty:
            return pd.DataFrame(columns=['count', 'fallbacks', 'mean_seconds'])
        frame = self.df.astype({'used_fallback': bool, 'processing_time_sec': float})
        grouped = frame.groupby('engine_tier')
        return pd.DataFrame({
            'count': grouped.size(),
            'fallbacks': grouped['used_fallback'].sum().astype(int),
            'mean_seconds': grouped['processing_time_sec'].mean().astype(float),
        })

    def save_debug_csv(self, path: Path | None = None) -> Path | None:
        """
        Write the tracking DataFrame to CSV (debug mode only).

        Returns:
            The written path, or None when debug mode is off.
        """
        if not DEBUG_MODE:
            return None
        path = Path(path) if path is not None else GENERATION_LOG_CSV
        path.parent.mkdir(parents=True, exist_ok=True)
        self.df.to_csv(path, index=False)
        info(f"[PIPELINE] Saved generation log ({len(self.df)} rows) to {path}")
        return path


def _record_id(record: SummaryRecord) -> str:
    if record.session_id:
        return record.session_id
    return f"{record.level.value}-{record.period_start.date().isoformat()}"
