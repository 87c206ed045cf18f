from __future__ import annotations

import asyncio
import logging
import random
from typing import Iterable, Optional, Sequence

import numpy as np

from product_rag.config import Settings, settings
from product_rag.errors import EmbeddingServiceUnavailable, IndexNotReady
from product_rag.llm.client import Embedder
from product_rag.rag.embedding_cache import EmbeddingCache
from product_rag.schemas import CatalogEntry, EmbeddedEntry, IndexStats, RankedCandidate

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector has zero magnitude."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"vectors must have the same dimension ({va.shape} != {vb.shape})")
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0))


class VectorIndex:
    """
    In-memory semantic index over the catalog.

    Every entry is embedded once (or restored from the embedding cache) by
    ``initialize``; afterwards the index is read-only and safe to share
    between concurrent requests.
    """

    def __init__(
        self,
        catalog: Iterable[CatalogEntry],
        embedder: Embedder,
        cache: Optional[EmbeddingCache] = None,
        config: Settings = settings,
    ) -> None:
        self.catalog = list(catalog)
        ids = [entry.id for entry in self.catalog]
        if len(ids) != len(set(ids)):
            raise ValueError("catalog entry ids must be unique")
        self.embedder = embedder
        self.cache = cache
        self.default_threshold = config.search_threshold
        self._entries: Optional[list[EmbeddedEntry]] = None
        self._matrix: Optional[np.ndarray] = None
        self._norms: Optional[np.ndarray] = None
        self._init_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._entries is not None

    async def initialize(self) -> None:
        if self._entries is not None:
            return
        # Late callers wait here for the in-flight build instead of starting their own.
        async with self._init_lock:
            if self._entries is not None:
                return
            logger.info("initializing vector index with %d catalog entries", len(self.catalog))
            entries = await self._load_cached()
            if entries is None:
                entries = await self._embed_catalog()
                await self._save_cache(entries)
            self._publish(entries)
            logger.info("vector index ready with %d entries", len(entries))

    def search(
        self,
        query_embedding: Sequence[float],
        limit: int,
        threshold: Optional[float] = None,
    ) -> list[RankedCandidate]:
        entries = self._require_ready()
        threshold = self.default_threshold if threshold is None else threshold
        if limit <= 0 or not entries:
            return []

        query = np.asarray(query_embedding, dtype=np.float64)
        if query.shape != (self._matrix.shape[1],):
            raise ValueError(
                f"query embedding has dimension {query.shape}, index expects {self._matrix.shape[1]}"
            )
        similarities = self._similarities(query)
        # Stable sort keeps catalog order between equal scores.
        order = np.argsort(-similarities, kind="stable")

        results: list[RankedCandidate] = []
        for idx in order:
            score = float(similarities[idx])
            if score < threshold:
                break
            results.append(RankedCandidate(entry=entries[idx], similarity=score))
            if len(results) >= limit:
                break
        logger.debug("search kept %d entries (threshold=%.2f, limit=%d)", len(results), threshold, limit)
        return results

    async def search_text(
        self,
        query: str,
        limit: int,
        threshold: Optional[float] = None,
    ) -> list[RankedCandidate]:
        await self.initialize()
        try:
            embedding = await self.embedder.embed(query)
        except Exception as exc:
            logger.error("embedding service failed for query %r: %s", query, exc)
            raise EmbeddingServiceUnavailable(f"could not embed query: {exc}") from exc
        return self.search(embedding, limit=limit, threshold=threshold)

    def by_category(self, category: str, limit: int = 10) -> list[EmbeddedEntry]:
        wanted = (category or "").casefold()
        return [e for e in self._require_ready() if e.category.casefold() == wanted][:limit]

    def by_brand(self, brand: str, limit: int = 10) -> list[EmbeddedEntry]:
        wanted = (brand or "").casefold()
        return [e for e in self._require_ready() if (e.brand or "").casefold() == wanted][:limit]

    def by_price_range(self, min_price: float, max_price: float, limit: int = 10) -> list[EmbeddedEntry]:
        return [
            e for e in self._require_ready() if e.price is not None and min_price <= e.price <= max_price
        ][:limit]

    def get(self, entry_id: str) -> Optional[EmbeddedEntry]:
        for entry in self._require_ready():
            if entry.id == entry_id:
                return entry
        return None

    def items(self) -> list[EmbeddedEntry]:
        return list(self._require_ready())

    def sample(self, limit: int = 3) -> list[EmbeddedEntry]:
        entries = self._require_ready()
        return random.sample(entries, k=min(limit, len(entries)))

    def stats(self) -> IndexStats:
        entries = self._entries or []
        prices = sorted(e.price for e in entries if e.price is not None)
        return IndexStats(
            total=len(entries),
            categories=sorted({e.category for e in entries}),
            brands=sorted({e.brand for e in entries if e.brand}),
            price_min=prices[0] if prices else 0.0,
            price_max=prices[-1] if prices else 0.0,
            initialized=self.is_ready,
        )

    async def _load_cached(self) -> Optional[list[EmbeddedEntry]]:
        if self.cache is None:
            return None
        # File I/O stays off the event loop.
        cached = await asyncio.to_thread(self.cache.load, self.catalog, self.embedder.model)
        if cached is None:
            return None
        vectors = {entry.id: entry.embedding for entry in cached}
        if len({len(v) for v in vectors.values()}) > 1:
            logger.warning("cached embeddings have mixed dimensions, regenerating")
            return None
        # Re-attach to the live entries so fields outside the hash (title, price, brand) stay current.
        return [
            EmbeddedEntry(**entry.model_dump(exclude={"embedding"}), embedding=vectors[entry.id])
            for entry in self.catalog
        ]

    async def _embed_catalog(self) -> list[EmbeddedEntry]:
        logger.info("generating embeddings for %d entries with %s", len(self.catalog), self.embedder.model)
        tasks = [asyncio.ensure_future(self.embedder.embed(entry.content)) for entry in self.catalog]
        try:
            vectors = await asyncio.gather(*tasks)
        except Exception as exc:
            logger.error("embedding service failed during index initialization: %s", exc)
            # Stop the sibling requests of the abandoned build.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise EmbeddingServiceUnavailable(f"could not embed catalog: {exc}") from exc

        if len({len(v) for v in vectors}) > 1:
            raise EmbeddingServiceUnavailable("embedding service returned vectors of different dimensions")
        return [
            EmbeddedEntry(**entry.model_dump(exclude={"embedding"}), embedding=list(vector))
            for entry, vector in zip(self.catalog, vectors)
        ]

    async def _save_cache(self, entries: list[EmbeddedEntry]) -> None:
        if self.cache is None:
            return
        try:
            await asyncio.to_thread(self.cache.save, self.catalog, entries, self.embedder.model)
        except OSError as exc:
            logger.warning("could not write embedding cache: %s", exc)

    def _publish(self, entries: list[EmbeddedEntry]) -> None:
        if entries:
            matrix = np.asarray([e.embedding for e in entries], dtype=np.float64)
        else:
            matrix = np.zeros((0, 0), dtype=np.float64)
        self._matrix = matrix
        self._norms = np.linalg.norm(matrix, axis=1) if entries else np.zeros(0)
        # Assigned last: readers treat a non-None list as a finished build.
        self._entries = entries

    def _similarities(self, query: np.ndarray) -> np.ndarray:
        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return np.zeros(len(self._entries), dtype=np.float64)
        denom = self._norms * query_norm
        dots = self._matrix @ query
        scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)
        return np.clip(scores, -1.0, 1.0)

    def _require_ready(self) -> list[EmbeddedEntry]:
        if self._entries is None:
            raise IndexNotReady("vector index has not been initialized")
        return self._entries
