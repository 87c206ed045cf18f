from __future__ import annotations

from typing import Optional

from product_rag.schemas import EmbeddedEntry, Filters, RankedCandidate, RejectedCandidate, SplitResult


def split_candidates(candidates: list[RankedCandidate], filters: Optional[Filters]) -> SplitResult:
    """Partition ranked candidates into filter matches and explained misses.

    Order is preserved inside both lists. A check is skipped when either the
    filter field or the entry's value is absent.
    """
    resolved = (filters or Filters()).resolved()
    result = SplitResult()
    for candidate in candidates:
        failures = failed_checks(candidate.entry, resolved)
        if failures:
            result.non_matching.append(
                RejectedCandidate(entry=candidate.entry, similarity=candidate.similarity, reason="; ".join(failures))
            )
        else:
            result.matching.append(candidate)
    return result


def failed_checks(entry: EmbeddedEntry, filters: Filters) -> list[str]:
    failures: list[str] = []
    if filters.category and entry.category and entry.category.casefold() != filters.category.casefold():
        failures.append(f"category is {entry.category}, not {filters.category}")
    if filters.brand and entry.brand and entry.brand.casefold() != filters.brand.casefold():
        failures.append(f"brand is {entry.brand}, not {filters.brand}")
    if entry.price is not None:
        if filters.max_price is not None and entry.price > filters.max_price:
            failures.append(
                f"price is {format_price(entry.price)}, exceeds budget of {format_price(filters.max_price)}"
            )
        if filters.min_price is not None and entry.price < filters.min_price:
            failures.append(
                f"price is {format_price(entry.price)}, below minimum of {format_price(filters.min_price)}"
            )
    return failures


def format_price(value: float) -> str:
    if float(value).is_integer():
        return f"${int(value)}"
    return f"${value:.2f}"
