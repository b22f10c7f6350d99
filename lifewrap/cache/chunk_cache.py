"""
Content-addressed cache of per-chunk summaries.

Keyed by chunk id, validated by a SHA-256 digest of the chunk's normalized
transcript. An edit to a chunk changes its digest, which is what drives
re-summarization; untouched chunks keep returning their cached text.

The cache lives in memory and belongs to one local-engine instance. It is
cold after a restart.
"""

from __future__ import annotations

import hashlib
import threading
import unicodedata
from dataclasses import dataclass
from typing import Callable, Iterable

from lifewrap.logging_config import debug_log
from lifewrap.summarization.extractive import merge_summaries


def normalize_text(text: str) -> str:
    """NFC-normalize, collapse whitespace runs, strip the ends."""
    return " ".join(unicodedata.normalize("NFC", text).split())


def content_hash(text: str) -> str:
    """SHA-256 hex digest of the normalized text."""
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


@dataclass
class ChunkCacheEntry:
    chunk_id: str
    content_hash: str
    summary_text: str
    session_id: str | None = None


class ChunkSummaryCache:
    """
    Per-chunk summary memoization.

    Thread-safe; the owning engine already serializes calls, the lock covers
    direct use by the hierarchy pipeline.
    """

    def __init__(self):
        self._entries: dict[str, ChunkCacheEntry] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, chunk_id: str) -> bool:
        with self._lock:
            return chunk_id in self._entries

    def get(self, chunk_id: str) -> ChunkCacheEntry | None:
        with self._lock:
            return self._entries.get(chunk_id)

    def lookup(self, chunk_id: str, text: str) -> str | None:
        """Cached summary if the entry exists and still matches ``text``."""
        digest = content_hash(text)
        with self._lock:
            entry = self._entries.get(chunk_id)
            if entry is not None and entry.content_hash == digest:
                return entry.summary_text
        return None

    def summarize_chunk(
        self,
        chunk_id: str,
        text: str,
        generate_fn: Callable[[str], str],
        session_id: str | None = None,
    ) -> str:
        """
        Return the chunk's summary, generating only on a miss.

        Args:
            chunk_id: Stable chunk id.
            text: Current transcript text of the chunk.
            generate_fn: Called with ``text`` on a miss; returns summary text.
            session_id: Owning session, recorded for the merge shortcut.

        Returns:
            Summary text. Empty results are returned but not cached.
        """
        digest = content_hash(text)
        with self._lock:
            entry = self._entries.get(chunk_id)
            if entry is not None and entry.content_hash == digest:
                self.hits += 1
                debug_log(f"[CACHE] Hit for chunk {chunk_id} ({digest[:8]})")
                return entry.summary_text

            self.misses += 1
            if entry is None:
                debug_log(f"[CACHE] Miss for chunk {chunk_id} (new)")
            else:
                debug_log(
                    f"[CACHE] Miss for chunk {chunk_id} "
                    f"(hash {entry.content_hash[:8]} -> {digest[:8]})"
                )

            summary = generate_fn(text)
            if summary and summary.strip():
                self._entries[chunk_id] = ChunkCacheEntry(
                    chunk_id=chunk_id,
                    content_hash=digest,
                    summary_text=summary,
                    session_id=session_id,
                )
            else:
                debug_log(f"[CACHE] Empty summary for chunk {chunk_id}; not cached")
            return summary

    def clear_changed_chunks(self, chunks: Iterable[tuple[str, str]]) -> set[str]:
        """
        Evict stale entries and report which chunks need a model call.

        Args:
            chunks: (chunk_id, current_text) pairs.

        Returns:
            Ids whose entry was stale (now evicted) or missing. Unchanged
            chunks keep their entry and are not included.
        """
        needs_work = set()
        evicted = 0
        with self._lock:
            for chunk_id, text in chunks:
                entry = self._entries.get(chunk_id)
                if entry is None:
                    needs_work.add(chunk_id)
                elif entry.content_hash != content_hash(text):
                    del self._entries[chunk_id]
                    needs_work.add(chunk_id)
                    evicted += 1
        debug_log(f"[CACHE] {len(needs_work)} chunk(s) need summarizing ({evicted} evicted)")
        return needs_work

    def cached_count_for_session(self, session_id: str, chunks: Iterable[tuple[str, str]]) -> int:
        """Valid entries among the session's current chunks."""
        count = 0
        with self._lock:
            for chunk_id, text in chunks:
                entry = self._entries.get(chunk_id)
                if (
                    entry is not None
                    and entry.session_id in (None, session_id)
                    and entry.content_hash == content_hash(text)
                ):
                    count += 1
        return count

    def try_merge_session(self, session_id: str, chunks: list[tuple[str, str]]) -> str | None:
        """
        Merge cached chunk summaries when every chunk of the session is cached.

        Args:
            session_id: Session being summarized.
            chunks: The session's current (chunk_id, text) pairs, in order.

        Returns:
            Merged summary text, or None if any chunk lacks a valid entry.
        """
        if not chunks:
            return None
        if self.cached_count_for_session(session_id, chunks) != len(chunks):
            return None
        with self._lock:
            texts = [self._entries[chunk_id].summary_text for chunk_id, _ in chunks]
        debug_log(f"[CACHE] Session {session_id}: merging {len(texts)} cached chunk summaries")
        return merge_summaries(texts)

    def invalidate(self, chunk_id: str) -> bool:
        with self._lock:
            return self._entries.pop(chunk_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
