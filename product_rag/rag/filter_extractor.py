from __future__ import annotations

import logging
from typing import Optional

from product_rag.llm.client import Generator
from product_rag.llm.parser import parse_filter_output, scan_budget
from product_rag.llm.prompts import FILTER_EXTRACTION_SYSTEM_PROMPT
from product_rag.schemas import Filters

logger = logging.getLogger(__name__)


class FilterExtractor:
    """
    Turns a free-text request into structured ``Filters``.

    Two independent passes run on every query: a regex scan for explicit
    budget phrases and a model call returning the full filter JSON. When both
    produce a ``max_price`` and they disagree, the regex value is kept. All
    other fields come from the model. If the model pass fails for any reason
    only the regex result is returned.
    """

    def __init__(self, generator: Optional[Generator]) -> None:
        self.generator = generator

    async def extract(self, query: str) -> Filters:
        pattern_max_price = scan_budget(query)
        if pattern_max_price is not None:
            logger.debug("budget pattern found max_price=%s", pattern_max_price)

        model_filters = await self._extract_with_model(query)
        if model_filters is None:
            return Filters(max_price=pattern_max_price)

        merged = merge_max_price(pattern_max_price, model_filters.max_price)
        if pattern_max_price is not None and model_filters.max_price not in (None, pattern_max_price):
            logger.info(
                "budget mismatch, pattern=%s model=%s; keeping pattern value",
                pattern_max_price,
                model_filters.max_price,
            )
        filters = model_filters.model_copy(update={"max_price": merged})
        logger.debug("extracted filters %s", filters.model_dump(exclude_none=True))
        return filters

    async def _extract_with_model(self, query: str) -> Optional[Filters]:
        if not self.generator:
            return None
        try:
            completion = await self.generator.generate(
                FILTER_EXTRACTION_SYSTEM_PROMPT,
                query,
                json_output=True,
                temperature=0.1,
                max_tokens=150,
            )
        except Exception as exc:
            # Search must go on without model filters.
            logger.warning("filter extraction call failed: %s: %s", exc.__class__.__name__, exc)
            return None

        filters = parse_filter_output(completion.text)
        if filters is None:
            logger.warning("filter extraction returned non-conforming output: %r", completion.text[:200])
        return filters


def merge_max_price(pattern_value: Optional[float], model_value: Optional[float]) -> Optional[float]:
    if pattern_value is not None:
        return pattern_value
    return model_value
