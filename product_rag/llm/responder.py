from __future__ import annotations

from typing import Optional

from product_rag.llm.client import Completion, Generator
from product_rag.llm.prompts import RECOMMENDATION_SYSTEM_PROMPT
from product_rag.rag.filter_splitter import format_price
from product_rag.schemas import Filters, RankedCandidate, RejectedCandidate


class RecommendationResponder:
    def __init__(self, generator: Generator) -> None:
        self.generator = generator

    async def recommend(
        self,
        user_text: str,
        matching: list[RankedCandidate],
        alternatives: list[RejectedCandidate],
        filters: Optional[Filters] = None,
    ) -> Completion:
        context = build_catalog_context(matching, alternatives, filters)
        return await self.generator.generate(
            RECOMMENDATION_SYSTEM_PROMPT,
            f"User request: {user_text}\n\nCATALOG_CONTEXT:\n{context}",
            temperature=0.4,
            max_tokens=400,
        )


def build_catalog_context(
    matching: list[RankedCandidate],
    alternatives: list[RejectedCandidate],
    filters: Optional[Filters] = None,
) -> str:
    sections: list[str] = []
    if filters and not filters.is_empty():
        sections.append("REQUESTED_FILTERS: " + _filters_text(filters))

    if matching:
        lines = [_candidate_line(idx, c) for idx, c in enumerate(matching, start=1)]
        sections.append("MATCHING:\n" + "\n".join(lines))
    else:
        sections.append("MATCHING:\n- none")

    if alternatives:
        lines = [
            f"{_candidate_line(idx, c)} | reason={c.reason}" for idx, c in enumerate(alternatives, start=1)
        ]
        sections.append("OVER_BUDGET:\n" + "\n".join(lines))
    return "\n\n".join(sections)


def _candidate_line(idx: int, candidate: RankedCandidate) -> str:
    entry = candidate.entry
    price = format_price(entry.price) if entry.price is not None else "n/a"
    return (
        f"{idx}. {entry.title} | brand={entry.brand or 'n/a'} | category={entry.category} | "
        f"price={price} | relevance={candidate.similarity * 100:.1f}%\n   {entry.content}"
    )


def _filters_text(filters: Filters) -> str:
    parts = []
    if filters.category:
        parts.append(f"category={filters.category}")
    if filters.brand:
        parts.append(f"brand={filters.brand}")
    if filters.min_price is not None:
        parts.append(f"min_price={format_price(filters.min_price)}")
    if filters.max_price is not None:
        parts.append(f"max_price={format_price(filters.max_price)}")
    if filters.price_range:
        parts.append(f"price_range={filters.price_range}")
    return ", ".join(parts)
