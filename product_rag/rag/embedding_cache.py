"""
Disk cache for catalog embeddings.

The cache file is a single JSON document::

    {"hash": ..., "model": ..., "embeddings": [...], "createdAt": ISO-8601}

It is only reused when the corpus hash, the embedding model and the age all
validate. Any problem reading it counts as a miss.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError

from product_rag.config import Settings, settings
from product_rag.schemas import CacheEntry, CacheStats, CatalogEntry, EmbeddedEntry

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "embeddings-cache.json"


def corpus_hash(catalog: Iterable[CatalogEntry]) -> str:
    """Order-independent sha256 over every entry's (id, content, category)."""
    parts = sorted([entry.id, entry.content, entry.category] for entry in catalog)
    payload = json.dumps(parts, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class EmbeddingCache:
    def __init__(self, cache_dir: str | Path | None = None, config: Settings = settings) -> None:
        self.cache_dir = Path(cache_dir or config.embedding_cache_dir).resolve()
        self.cache_file = self.cache_dir / CACHE_FILE_NAME
        self.max_age = timedelta(days=config.embedding_cache_max_age_days)
        self._write_lock = threading.Lock()

    def load(self, catalog: list[CatalogEntry], model: str) -> Optional[list[EmbeddedEntry]]:
        if not self.cache_file.exists():
            logger.info("no embedding cache found at %s", self.cache_file)
            return None

        try:
            cache = CacheEntry.model_validate_json(self.cache_file.read_bytes())
        except (OSError, ValidationError, ValueError) as exc:
            logger.warning("failed to read embedding cache, regenerating: %s", exc)
            return None

        if cache.corpus_hash != corpus_hash(catalog):
            logger.info("catalog changed, embedding cache invalid")
            return None
        if cache.model != model:
            logger.info("embedding model changed (%s -> %s), cache invalid", cache.model, model)
            return None
        if self._age(cache.created_at) > self.max_age:
            logger.info("embedding cache older than %s days, regenerating", self.max_age.days)
            return None
        if {entry.id for entry in cache.embeddings} != {entry.id for entry in catalog}:
            logger.warning("embedding cache does not cover the catalog, regenerating")
            return None

        logger.info("loaded %d embeddings from cache (created %s)", len(cache.embeddings), cache.created_at.isoformat())
        return cache.embeddings

    def save(self, catalog: list[CatalogEntry], embeddings: list[EmbeddedEntry], model: str) -> None:
        cache = CacheEntry(
            corpus_hash=corpus_hash(catalog),
            model=model,
            embeddings=embeddings,
            created_at=datetime.now(timezone.utc),
        )
        data = cache.model_dump_json(by_alias=True).encode("utf-8")
        with self._write_lock:
            self._atomic_write_bytes(data)
        logger.info("saved %d embeddings to %s", len(embeddings), self.cache_file)

    def clear(self) -> bool:
        with self._write_lock:
            try:
                self.cache_file.unlink()
            except FileNotFoundError:
                logger.info("no embedding cache to clear")
                return False
        logger.info("embedding cache cleared")
        return True

    def stats(self) -> CacheStats:
        try:
            size = self.cache_file.stat().st_size
            cache = CacheEntry.model_validate_json(self.cache_file.read_bytes())
        except (OSError, ValidationError, ValueError):
            return CacheStats(exists=False)
        return CacheStats(
            exists=True,
            size=size,
            created_at=cache.created_at,
            item_count=len(cache.embeddings),
            model=cache.model,
        )

    def _atomic_write_bytes(self, data: bytes) -> None:
        # Readers see either the old file or the new one, never a partial write.
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".embeddings-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.cache_file)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _age(created_at: datetime) -> timedelta:
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) - created_at
