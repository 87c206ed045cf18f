from __future__ import annotations

import logging

from product_rag.config import Settings, settings
from product_rag.llm.client import Generator
from product_rag.llm.parser import heuristic_analysis, parse_analysis_output
from product_rag.llm.prompts import QUERY_ANALYSIS_SYSTEM_PROMPT
from product_rag.schemas import QueryAnalysis

logger = logging.getLogger(__name__)


class QueryAnalyzer:
    """Classifies the request and rewrites it into a richer search query."""

    def __init__(self, generator: Generator | None, config: Settings = settings) -> None:
        self.generator = generator
        self.enabled = config.query_expansion

    async def analyze(self, query: str) -> QueryAnalysis:
        if not self.generator or not self.enabled:
            return heuristic_analysis(query)

        try:
            completion = await self.generator.generate(
                QUERY_ANALYSIS_SYSTEM_PROMPT,
                query,
                json_output=True,
                temperature=0.0,
                max_tokens=200,
            )
        except Exception as exc:
            # Expansion is an optimization; the original query is always usable.
            logger.warning("query analysis failed, using heuristics: %s: %s", exc.__class__.__name__, exc)
            return heuristic_analysis(query)

        analysis = parse_analysis_output(completion.text, fallback_query=query)
        logger.debug(
            "analysis intent=%s budget=%s expanded_query=%r", analysis.intent, analysis.budget, analysis.expanded_query
        )
        return analysis
