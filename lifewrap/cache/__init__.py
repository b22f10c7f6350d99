from .chunk_cache import ChunkCacheEntry, ChunkSummaryCache, content_hash, normalize_text

__all__ = ['ChunkCacheEntry', 'ChunkSummaryCache', 'content_hash', 'normalize_text']
