"""
Summary storage.

The pipeline reads chunk transcripts and reads/writes summaries through the
SummaryStore interface. Persistence itself belongs to the host application;
InMemorySummaryStore is the reference implementation used by the CLI and
the tests.

Records are keyed by (level, period_start, period_end, session_id) and
upserts are idempotent on that key. A session has exactly one stored
summary: re-summarizing a session whose bounds moved (a chunk was added)
replaces the old row.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from lifewrap.prompting.schemas import SummaryLevel
from lifewrap.summarization.result_types import StructuredSummary


@dataclass(frozen=True)
class ChunkRecord:
    """One transcribed chunk of a recording session."""
    chunk_id: str
    session_id: str
    text: str
    start_time: datetime
    end_time: datetime


@dataclass
class SummaryRecord:
    """A stored summary and the period it covers (half-open)."""
    level: SummaryLevel
    period_start: datetime
    period_end: datetime
    summary: StructuredSummary
    session_id: str | None = None

    def __post_init__(self):
        self.level = SummaryLevel(self.level)
        if self.period_end <= self.period_start:
            raise ValueError(
                f"Empty period {self.period_start.isoformat()} - {self.period_end.isoformat()}"
            )

    @property
    def key(self) -> tuple:
        return (self.level, self.period_start, self.period_end, self.session_id)


class SummaryStore(ABC):

    @abstractmethod
    def get_chunk_text(self, chunk_id: str) -> str | None:
        """Transcript text of one chunk, or None if unknown."""

    @abstractmethod
    def get_session_chunks(self, session_id: str) -> list[ChunkRecord]:
        """Chunks of a session ordered by start time."""

    @abstractmethod
    def upsert_summary(self, record: SummaryRecord) -> None:
        """Insert or replace by key."""

    @abstractmethod
    def get_summary(
        self,
        level: SummaryLevel,
        period_start: datetime,
        period_end: datetime,
        session_id: str | None = None,
    ) -> SummaryRecord | None:
        """Exact-key lookup."""

    @abstractmethod
    def list_summaries(self, level: SummaryLevel, start: datetime, end: datetime) -> list[SummaryRecord]:
        """Summaries at ``level`` whose period starts in [start, end), oldest first."""

    @abstractmethod
    def get_session_summary(self, session_id: str) -> SummaryRecord | None:
        """The stored summary of a session, whatever its bounds."""


class InMemorySummaryStore(SummaryStore):

    def __init__(self):
        self._chunks: dict[str, ChunkRecord] = {}
        self._summaries: dict[tuple, SummaryRecord] = {}
        self._lock = threading.RLock()

    def add_chunk(self, chunk: ChunkRecord) -> None:
        with self._lock:
            self._chunks[chunk.chunk_id] = chunk

    def get_chunk_text(self, chunk_id):
        with self._lock:
            chunk = self._chunks.get(chunk_id)
        return chunk.text if chunk else None

    def get_session_chunks(self, session_id):
        with self._lock:
            chunks = [c for c in self._chunks.values() if c.session_id == session_id]
        return sorted(chunks, key=lambda c: (c.start_time, c.chunk_id))

    def upsert_summary(self, record):
        with self._lock:
            if record.level is SummaryLevel.SESSION and record.session_id is not None:
                stale = [
                    key for key, existing in self._summaries.items()
                    if existing.level is SummaryLevel.SESSION
                    and existing.session_id == record.session_id
                    and key != record.key
                ]
                for key in stale:
                    del self._summaries[key]
            self._summaries[record.key] = record

    def get_summary(self, level, period_start, period_end, session_id=None):
        with self._lock:
            return self._summaries.get((SummaryLevel(level), period_start, period_end, session_id))

    def list_summaries(self, level, start, end):
        level = SummaryLevel(level)
        with self._lock:
            records = [
                r for r in self._summaries.values()
                if r.level is level and start <= r.period_start < end
            ]
        return sorted(records, key=lambda r: (r.period_start, r.session_id or ""))

    def get_session_summary(self, session_id):
        with self._lock:
            for record in self._summaries.values():
                if record.level is SummaryLevel.SESSION and record.session_id == session_id:
                    return record
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._summaries)
