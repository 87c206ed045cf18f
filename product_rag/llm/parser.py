from __future__ import annotations

import json
import re
from typing import Optional

from pydantic import ValidationError

from product_rag.schemas import Filters, QueryAnalysis

_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)"

# Numbers followed by a unit are product attributes ("256GB", "30 hours"), not prices.
_UNITS = r"(?:gb|tb|mb|mah|hours?|hrs?|h|inch(?:es)?|mm|cm|w|hz|khz|k|mp|fps|horas|pulgadas|gigas?)"
_BARE_AMOUNT = _AMOUNT + r"(?![\d.,]?\d)(?!\s*(?:" + _UNITS + r"\b|[\"%]))"

# Ordered: the first pattern that matches decides the budget.
BUDGET_PATTERNS = [
    re.compile(r"\$\s*" + _AMOUNT),
    re.compile(r"\b(?:usd|us\$)\s*" + _AMOUNT, re.IGNORECASE),
    re.compile(_AMOUNT + r"\s*(?:\$|usd\b|dollars?\b|d[oó]lares?\b|bucks\b|pesos?\b)", re.IGNORECASE),
    re.compile(
        r"\b(?:under|below|less than|cheaper than|up to|at most|no more than|max(?:imum)?|budget(?: of| is)?)\s+"
        + _BARE_AMOUNT,
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:presupuesto(?: de)?|hasta|m[aá]ximo|no m[aá]s de|menos de|tengo)\s+" + _BARE_AMOUNT,
        re.IGNORECASE,
    ),
]

_GREETINGS = {"hi", "hello", "hey", "hola", "buenas", "ola"}
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def scan_budget(text: str) -> Optional[float]:
    """Return the explicit budget amount mentioned in ``text``, if any."""
    for pattern in BUDGET_PATTERNS:
        match = pattern.search(text or "")
        if not match:
            continue
        try:
            return float(match.group(1).replace(",", ""))
        except ValueError:
            continue
    return None


def parse_filter_output(raw_text: str) -> Optional[Filters]:
    """Decode the model's filter JSON; ``None`` when it does not conform."""
    payload = _load_json_object(raw_text)
    if payload is None:
        return None
    try:
        return Filters.model_validate(payload)
    except ValidationError:
        return None


def parse_analysis_output(raw_text: str, fallback_query: str) -> QueryAnalysis:
    payload = _load_json_object(raw_text)
    if payload is None:
        return heuristic_analysis(fallback_query)

    try:
        analysis = QueryAnalysis.model_validate(payload)
    except ValidationError:
        return heuristic_analysis(fallback_query)
    if not analysis.expanded_query.strip():
        analysis = analysis.model_copy(update={"expanded_query": fallback_query.strip()})
    return analysis


def heuristic_analysis(user_text: str) -> QueryAnalysis:
    content = (user_text or "").strip()
    lowered = content.lower()

    if lowered in _GREETINGS:
        return QueryAnalysis(intent="other", expanded_query=content)

    budget = scan_budget(content)
    if any(word in lowered for word in ["compar", " vs ", "versus", "which is better", "cual es mejor"]):
        return QueryAnalysis(intent="compare", budget=budget, expanded_query=content)
    if any(word in lowered for word in ["gift", "recommend", "suggest", "ideas", "regalo", "recomienda"]):
        return QueryAnalysis(intent="recommend", budget=budget, expanded_query=content)

    return QueryAnalysis(intent="search", budget=budget, expanded_query=content)


def _load_json_object(raw_text: str) -> Optional[dict]:
    text = _FENCE_RE.sub("", (raw_text or "").strip())
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None
