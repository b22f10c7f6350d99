"""
Tests for calendar periods, the summary store and the hierarchy pipeline.

The pipeline runs against a real coordinator with only the basic engine
registered (inline strategy), with ``summarize`` wrapped in a MagicMock so
engine calls can be counted.
"""

import sys
from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lifewrap.cache import ChunkSummaryCache, content_hash
from lifewrap.coordinator import SummarizationCoordinator
from lifewrap.engines import BasicEngine
from lifewrap.errors import GenerationFailure
from lifewrap.parallel import SequentialStrategy
from lifewrap.prompting import SummaryLevel, schema
from lifewrap.storage import ChunkRecord, InMemorySummaryStore, SummaryRecord
from lifewrap.summarization import StructuredSummary, iter_periods, period_bounds
from lifewrap.summarization.extractive import build_extractive_fields
from lifewrap.summarization.hierarchy import NOTES_HEADER, SummaryPipeline

# Wednesday
DAY = datetime(2025, 3, 5)


def chunk(chunk_id, session_id, text, hour, minute=0):
    start = DAY.replace(hour=hour, minute=minute)
    return ChunkRecord(
        chunk_id=chunk_id,
        session_id=session_id,
        text=text,
        start_time=start,
        end_time=start.replace(minute=minute + 5),
    )


def simple_summary(level, text):
    fields = build_extractive_fields(schema(level), source_text=text, summary_text=text)
    return StructuredSummary(level=level, fields=fields)


@pytest.fixture
def store():
    store = InMemorySummaryStore()
    store.add_chunk(chunk("c1", "s1", "I went for a long run along the river before breakfast.", 9, 0))
    store.add_chunk(chunk("c2", "s1", "After the run I stretched and made a big pot of coffee.", 9, 5))
    store.add_chunk(chunk("c3", "s2", "In the evening Maya came over and we cooked pasta together.", 18, 0))
    return store


@pytest.fixture
def coordinator():
    coordinator = SummarizationCoordinator([BasicEngine(strategy=SequentialStrategy())])
    coordinator.summarize = MagicMock(wraps=coordinator.summarize)
    return coordinator


@pytest.fixture
def pipeline(coordinator, store):
    return SummaryPipeline(coordinator, store)


class TestPeriodBounds:
    """Test calendar period arithmetic."""

    def test_day(self):
        """A day runs midnight to midnight."""
        start, end = period_bounds(SummaryLevel.DAY, DAY.replace(hour=15, minute=30))
        assert start == datetime(2025, 3, 5)
        assert end == datetime(2025, 3, 6)

    @pytest.mark.parametrize("anchor", [
        datetime(2025, 3, 2),   # Sunday
        datetime(2025, 3, 5, 12),   # Wednesday
        datetime(2025, 3, 8, 23, 59),   # Saturday
    ])
    def test_week_starts_sunday(self, anchor):
        """Every day of the week maps to the same Sunday-based week."""
        assert period_bounds(SummaryLevel.WEEK, anchor) == (datetime(2025, 3, 2), datetime(2025, 3, 9))

    def test_december_month(self):
        """December rolls into January of the next year."""
        assert period_bounds(SummaryLevel.MONTH, datetime(2024, 12, 15)) == (
            datetime(2024, 12, 1), datetime(2025, 1, 1)
        )

    def test_year_and_rollup_share_bounds(self):
        """yearRollup covers the calendar year."""
        assert period_bounds(SummaryLevel.YEAR, DAY) == period_bounds(SummaryLevel.YEAR_ROLLUP, DAY)
        assert period_bounds(SummaryLevel.YEAR, DAY) == (datetime(2025, 1, 1), datetime(2026, 1, 1))

    @pytest.mark.parametrize("level", [SummaryLevel.CHUNK, SummaryLevel.SESSION])
    def test_non_calendar_levels(self, level):
        """Chunks and sessions have no calendar period."""
        with pytest.raises(ValueError):
            period_bounds(level, DAY)

    def test_iter_periods(self):
        """Every day overlapping the range is yielded once."""
        periods = list(iter_periods(SummaryLevel.DAY, datetime(2025, 3, 1, 12), datetime(2025, 3, 3, 1)))
        assert [start.day for start, _ in periods] == [1, 2, 3]

    def test_iter_periods_empty_range(self):
        """An empty range yields nothing."""
        assert list(iter_periods(SummaryLevel.WEEK, DAY, DAY)) == []


class TestSummaryStore:
    """Test the in-memory store."""

    def test_session_chunks_ordered(self, store):
        """Chunks come back in start-time order."""
        assert [c.chunk_id for c in store.get_session_chunks("s1")] == ["c1", "c2"]
        assert store.get_chunk_text("c3").startswith("In the evening")
        assert store.get_chunk_text("missing") is None

    def test_session_rebound_replaces_row(self):
        """A session summary with new bounds replaces the old one."""
        store = InMemorySummaryStore()
        summary = simple_summary(SummaryLevel.SESSION, "A short walk.")
        store.upsert_summary(SummaryRecord(SummaryLevel.SESSION, DAY, DAY.replace(hour=1), summary, "s1"))
        store.upsert_summary(SummaryRecord(SummaryLevel.SESSION, DAY, DAY.replace(hour=2), summary, "s1"))

        assert len(store) == 1
        assert store.get_session_summary("s1").period_end == DAY.replace(hour=2)

    def test_list_summaries_half_open(self):
        """Only periods starting inside [start, end) are listed, oldest first."""
        store = InMemorySummaryStore()
        for day in (6, 4, 9):
            start = datetime(2025, 3, day)
            store.upsert_summary(SummaryRecord(
                SummaryLevel.DAY, start, start.replace(day=day + 1),
                simple_summary(SummaryLevel.DAY, f"Day {day} was fine."),
            ))

        listed = store.list_summaries(SummaryLevel.DAY, datetime(2025, 3, 2), datetime(2025, 3, 9))
        assert [r.period_start.day for r in listed] == [4, 6]

    def test_empty_period_rejected(self):
        """period_end must come after period_start."""
        with pytest.raises(ValueError):
            SummaryRecord(SummaryLevel.DAY, DAY, DAY, simple_summary(SummaryLevel.DAY, "x"))


class TestSessionSummaries:
    """Test session-level generation and hash-based skipping."""

    def test_session_record(self, pipeline, store):
        """The record spans the chunks and carries their hash and ids."""
        record = pipeline.summarize_session("s1")

        assert record.period_start == DAY.replace(hour=9)
        assert record.period_end == DAY.replace(hour=9, minute=10)
        texts = [c.text for c in store.get_session_chunks("s1")]
        assert record.summary.input_hash == content_hash("\n\n".join(texts))
        assert record.summary.source_ids == ["c1", "c2"]
        assert store.get_session_summary("s1") is record

    def test_unchanged_session_skipped(self, pipeline, coordinator):
        """Re-summarizing an unchanged session makes no engine call."""
        first = pipeline.summarize_session("s1")
        second = pipeline.summarize_session("s1")

        assert second is first
        assert coordinator.summarize.call_count == 1

    def test_edited_chunk_regenerates(self, pipeline, coordinator, store):
        """A changed transcript produces a new summary."""
        pipeline.summarize_session("s1")
        store.add_chunk(chunk("c2", "s1", "After the run I called Dad about the weekend trip.", 9, 5))

        pipeline.summarize_session("s1")

        assert coordinator.summarize.call_count == 2

    def test_force_regenerate_evicts_changed_chunks(self, coordinator, store):
        """Forced regeneration clears stale chunk cache entries first."""
        cache = ChunkSummaryCache()
        cache.summarize_chunk("c1", store.get_chunk_text("c1"), lambda t: "Ran by the river.", session_id="s1")
        cache.summarize_chunk("c2", "Old transcript text.", lambda t: "Old summary.", session_id="s1")
        pipeline = SummaryPipeline(coordinator, store, local_cache=cache)

        pipeline.summarize_session("s1")
        pipeline.summarize_session("s1", force_regenerate=True)

        assert coordinator.summarize.call_count == 2
        assert "c1" in cache
        assert "c2" not in cache

    def test_session_without_chunks(self, pipeline):
        """Nothing transcribed is a generation failure."""
        with pytest.raises(GenerationFailure):
            pipeline.summarize_session("unknown")

    def test_added_chunk_extends_session(self, pipeline, store):
        """A late chunk moves the end bound without duplicating the row."""
        pipeline.summarize_session("s1")
        store.add_chunk(chunk("c4", "s1", "Then I answered a few emails from work.", 9, 30))

        record = pipeline.summarize_session("s1")

        assert record.period_end == DAY.replace(hour=9, minute=35)
        assert len(store.list_summaries(SummaryLevel.SESSION, DAY, DAY.replace(day=6))) == 1


class TestPeriodSummaries:
    """Test day/week/month/year rollups."""

    def test_day_from_sessions(self, pipeline, coordinator):
        """A day summary rolls up the day's sessions in order."""
        pipeline.summarize_session("s1")
        pipeline.summarize_session("s2")

        record = pipeline.summarize_period(SummaryLevel.DAY, DAY.replace(hour=20))

        assert (record.period_start, record.period_end) == (DAY, DAY.replace(day=6))
        assert record.summary.source_ids == ["s1", "s2"]
        metadata = coordinator.summarize.call_args.kwargs['metadata']
        assert metadata['source_level'] == "session"
        assert metadata['source_count'] == 2
        assert metadata['period_start'] == "2025-03-05"

    def test_unchanged_day_skipped(self, pipeline, coordinator):
        """Same child summaries means no new engine call."""
        pipeline.summarize_session("s1")
        pipeline.summarize_period(SummaryLevel.DAY, DAY)
        calls = coordinator.summarize.call_count

        pipeline.summarize_period(SummaryLevel.DAY, DAY)

        assert coordinator.summarize.call_count == calls

    def test_empty_period(self, pipeline):
        """No child summaries is a generation failure."""
        with pytest.raises(GenerationFailure):
            pipeline.summarize_period(SummaryLevel.DAY, datetime(2025, 4, 1))

    def test_session_is_not_a_period(self, pipeline):
        """Only rollup levels have periods."""
        with pytest.raises(ValueError):
            pipeline.summarize_period(SummaryLevel.SESSION, DAY)

    def test_update_period_summaries(self, pipeline, store):
        """Day, week, month and year are refreshed in order."""
        pipeline.summarize_session("s1")
        pipeline.summarize_session("s2")

        records = pipeline.update_period_summaries(DAY)

        assert [r.level for r in records] == [
            SummaryLevel.DAY, SummaryLevel.WEEK, SummaryLevel.MONTH, SummaryLevel.YEAR
        ]
        assert records[1].period_start == datetime(2025, 3, 2)
        assert records[1].summary.source_ids == ["day-2025-03-05"]
        assert len(store) == 6

    def test_update_skips_empty_levels(self, pipeline):
        """With no sessions every level is skipped without raising."""
        assert pipeline.update_period_summaries(DAY) == []

    def test_year_rollup_builds_year_first(self, pipeline, store):
        """A missing year summary is generated before the rollup."""
        pipeline.summarize_session("s1")
        for level in (SummaryLevel.DAY, SummaryLevel.WEEK, SummaryLevel.MONTH):
            pipeline.summarize_period(level, DAY)

        rollup = pipeline.generate_year_rollup(2025)

        assert rollup.level is SummaryLevel.YEAR_ROLLUP
        assert store.get_summary(SummaryLevel.YEAR, datetime(2025, 1, 1), datetime(2026, 1, 1)) is not None
        assert rollup.summary.source_ids == ["year-2025-01-01"]
        assert "wrap_summary" in rollup.summary.fields


class TestAppendNotes:
    """Test user notes on stored summaries."""

    def test_notes_appended_and_kept(self, pipeline, coordinator, store):
        """Notes survive a re-summarize of the unchanged session."""
        record = pipeline.summarize_session("s1")

        updated = pipeline.append_notes(
            SummaryLevel.SESSION, record.period_start, record.period_end,
            "Felt great afterwards.", session_id="s1",
        )
        again = pipeline.summarize_session("s1")

        assert updated.summary.text.endswith(f"\n\n{NOTES_HEADER}\nFelt great afterwards.")
        assert updated.summary.input_hash == record.summary.input_hash
        assert again.summary.text == updated.summary.text
        assert coordinator.summarize.call_count == 1

    def test_empty_notes_rejected(self, pipeline):
        """Blank notes are refused."""
        record = pipeline.summarize_session("s1")
        with pytest.raises(ValueError):
            pipeline.append_notes(SummaryLevel.SESSION, record.period_start, record.period_end, "  ", "s1")

    def test_missing_summary_rejected(self, pipeline):
        """Notes need an existing summary."""
        with pytest.raises(ValueError):
            pipeline.append_notes(SummaryLevel.DAY, DAY, DAY.replace(day=6), "Note.")


class TestGenerationTracking:
    """Test the pandas tracking frame."""

    def test_rows_recorded(self, pipeline):
        """Each generation adds one row."""
        pipeline.summarize_session("s1")
        pipeline.summarize_session("s2")
        pipeline.summarize_session("s1")

        assert len(pipeline.df) == 2
        assert list(pipeline.df['engine_tier']) == ["basic", "basic"]
        assert list(pipeline.df['source_count']) == [2, 1]

    def test_generation_stats(self, pipeline):
        """Stats group by engine tier."""
        assert pipeline.generation_stats().empty
        pipeline.summarize_session("s1")
        pipeline.summarize_session("s2")

        stats = pipeline.generation_stats()

        assert stats.loc["basic", "count"] == 2
        assert stats.loc["basic", "fallbacks"] == 0

    def test_save_debug_csv_off(self, pipeline, tmp_path):
        """Outside debug mode nothing is written."""
        with patch("lifewrap.summarization.hierarchy.DEBUG_MODE", False):
            assert pipeline.save_debug_csv(tmp_path / "log.csv") is None
        assert not (tmp_path / "log.csv").exists()

    def test_save_debug_csv_on(self, pipeline, tmp_path):
        """In debug mode the frame is written as CSV."""
        pipeline.summarize_session("s1")
        with patch("lifewrap.summarization.hierarchy.DEBUG_MODE", True):
            path = pipeline.save_debug_csv(tmp_path / "logs" / "log.csv")

        frame = pd.read_csv(path)
        assert len(frame) == 1
        assert frame.loc[0, "level"] == "session"
