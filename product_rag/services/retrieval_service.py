from __future__ import annotations

import asyncio
import logging
from typing import Optional

from product_rag.config import Settings, settings
from product_rag.data.catalog import load_catalog
from product_rag.errors import RecommendationUnavailable, RequestTimeout
from product_rag.llm.analyzer import QueryAnalyzer
from product_rag.llm.client import OpenAIEmbedder, OpenAIGenerator, build_openai_client
from product_rag.llm.prompts import NO_RESULTS_MESSAGE
from product_rag.llm.responder import RecommendationResponder
from product_rag.rag.embedding_cache import EmbeddingCache
from product_rag.rag.filter_extractor import FilterExtractor
from product_rag.rag.filter_splitter import split_candidates
from product_rag.rag.vector_index import VectorIndex
from product_rag.schemas import (
    CatalogEntry,
    Filters,
    ProductView,
    RankedCandidate,
    RetrievalResult,
    SearchRequest,
    SearchResponse,
)

logger = logging.getLogger(__name__)


class RetrievalService:
    """
    Request pipeline: analyze -> search (with fallback query) -> split -> recommend.

    Each stage runs once per request, except search which may run a second
    time with the original query when the expanded one finds nothing.
    """

    def __init__(
        self,
        index: VectorIndex,
        extractor: FilterExtractor,
        analyzer: QueryAnalyzer,
        responder: RecommendationResponder,
        config: Settings = settings,
    ) -> None:
        self.index = index
        self.extractor = extractor
        self.analyzer = analyzer
        self.responder = responder
        self.search_limit = config.search_limit
        self.candidate_pool_size = config.candidate_pool_size
        self.max_alternatives = config.max_alternatives

    async def initialize(self) -> None:
        await self.index.initialize()

    async def search(self, request: SearchRequest, timeout: Optional[float] = None) -> SearchResponse:
        if timeout is None:
            return await self._search(request)
        try:
            return await asyncio.wait_for(self._search(request), timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("search for %r timed out after %ss", request.query, timeout)
            raise RequestTimeout(f"search did not complete within {timeout}s") from exc

    async def retrieve(
        self,
        query: str,
        filters: Optional[Filters] = None,
        limit: Optional[int] = None,
    ) -> RetrievalResult:
        limit = limit or self.search_limit
        await self.index.initialize()

        filters, search_query = await self._analyze(query, filters)
        pool = max(limit, self.candidate_pool_size)

        candidates = await self.index.search_text(search_query, limit=pool)
        used_fallback = False
        if not candidates and search_query.strip() != query.strip():
            logger.debug("expanded query %r found nothing, retrying with %r", search_query, query)
            candidates = await self.index.search_text(query, limit=pool)
            search_query = query
            used_fallback = True

        split = split_candidates(candidates, filters)
        logger.debug(
            "query=%r candidates=%d matching=%d non_matching=%d",
            query,
            len(candidates),
            len(split.matching),
            len(split.non_matching),
        )
        return RetrievalResult(
            query=query,
            search_query=search_query,
            used_fallback=used_fallback,
            filters=filters,
            budget=filters.resolved().max_price,
            split=split,
        )

    async def _search(self, request: SearchRequest) -> SearchResponse:
        limit = request.limit or self.search_limit
        retrieval = await self.retrieve(request.query, filters=request.filters, limit=limit)

        matching = retrieval.split.matching[:limit]
        alternatives = []
        if retrieval.budget is not None or not matching:
            alternatives = retrieval.split.non_matching[: self.max_alternatives]
        products = [_to_view(c) for c in matching] + [
            _to_view(c, within_filters=False, reason=c.reason) for c in alternatives
        ]
        base = {
            "filters": retrieval.filters,
            "search_query": retrieval.search_query,
            "used_fallback": retrieval.used_fallback,
        }

        if not matching and not alternatives:
            logger.info("no catalog entries qualify for %r", request.query)
            return SearchResponse(answer=NO_RESULTS_MESSAGE, products=[], tokens_used=0, **base)

        try:
            completion = await self.responder.recommend(request.query, matching, alternatives, retrieval.filters)
        except Exception as exc:
            logger.error("recommendation generation failed: %s: %s", exc.__class__.__name__, exc)
            raise RecommendationUnavailable("recommendation generation failed", products=products) from exc
        if not completion.text:
            raise RecommendationUnavailable("recommendation generation returned no text", products=products)

        logger.info(
            "search for %r answered with %d products (%d tokens)",
            request.query,
            len(products),
            completion.tokens_used,
        )
        return SearchResponse(answer=completion.text, products=products, tokens_used=completion.tokens_used, **base)

    async def _analyze(self, query: str, caller_filters: Optional[Filters]) -> tuple[Filters, str]:
        try:
            if caller_filters is not None:
                filters = caller_filters
                analysis = await self.analyzer.analyze(query)
            else:
                filters, analysis = await asyncio.gather(
                    self.extractor.extract(query),
                    self.analyzer.analyze(query),
                )
                if filters.max_price is None and analysis.budget is not None:
                    logger.debug("using budget from query analysis: %s", analysis.budget)
                    filters = filters.model_copy(update={"max_price": analysis.budget})
        except Exception as exc:
            logger.warning("query analysis failed, searching with the original query: %s", exc)
            return caller_filters or Filters(), query

        expanded = analysis.expanded_query.strip() or query
        logger.debug("filters=%s search_query=%r", filters.model_dump(exclude_none=True), expanded)
        return filters, expanded


def _to_view(candidate: RankedCandidate, within_filters: bool = True, reason: Optional[str] = None) -> ProductView:
    entry = candidate.entry
    return ProductView(
        id=entry.id,
        title=entry.title,
        price=entry.price,
        category=entry.category,
        brand=entry.brand,
        similarity=candidate.similarity,
        within_filters=within_filters,
        reason=reason,
    )


def build_retrieval_service(
    config: Settings = settings,
    catalog: Optional[list[CatalogEntry]] = None,
) -> RetrievalService:
    """Wire the OpenAI-backed service objects once at process start."""
    if not config.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY is not configured.")
    client = build_openai_client(config)
    generator = OpenAIGenerator(client=client, config=config)
    embedder = OpenAIEmbedder(client=client, config=config)
    if catalog is None:
        catalog = load_catalog(config.catalog_path or None)
    index = VectorIndex(catalog, embedder, cache=EmbeddingCache(config=config), config=config)
    return RetrievalService(
        index=index,
        extractor=FilterExtractor(generator),
        analyzer=QueryAnalyzer(generator, config=config),
        responder=RecommendationResponder(generator),
        config=config,
    )
