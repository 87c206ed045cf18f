from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Optional

from pydantic import ValidationError

from product_rag.errors import ProductRAGError, RecommendationUnavailable
from product_rag.rag.filter_splitter import format_price
from product_rag.rag.vector_index import VectorIndex
from product_rag.schemas import (
    CompareProductsArgs,
    Comparison,
    ComparisonRow,
    EmbeddedEntry,
    ProductDetails,
    ProductDetailsArgs,
    ProductView,
    SearchProductsArgs,
    SearchRequest,
    ToolResponse,
)
from product_rag.services.retrieval_service import RetrievalService

logger = logging.getLogger(__name__)

DEFAULT_CRITERIA = ["price", "brand", "category", "features"]
FEATURE_KEYWORDS = ["quality", "battery", "display", "camera", "design", "resistant", "wireless", "comfortable"]

_FEATURES_RE = re.compile(r"features?:\s*(.+?)(?:\.\s|\.$|$)", re.IGNORECASE)

# OpenAI function-calling format.
TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "search_products",
            "description": (
                "Find products using semantic search. Use this when the user asks to find, search or discover "
                "products. Budgets and brands mentioned in the query are applied as filters."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": 'Natural language search query (e.g. "wireless headphones for work")',
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum number of results to return (default: 5, max: 10)",
                        "minimum": 1,
                        "maximum": 10,
                    },
                },
                "required": ["query"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_product_details",
            "description": "Get detailed information about one product. Use when the user wants to know more about it.",
            "parameters": {
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "The unique identifier of the product"},
                },
                "required": ["product_id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "compare_products",
            "description": (
                'Compare 2-4 products side by side. Use when the user wants to compare products or asks "which is better".'
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "product_ids": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Product ids to compare (2-4 products)",
                        "minItems": 2,
                        "maxItems": 4,
                    },
                    "comparison_criteria": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": 'Optional criteria to focus on (e.g. ["price", "features"])',
                        "default": DEFAULT_CRITERIA,
                    },
                    "budget": {
                        "type": "number",
                        "description": "Optional budget used to pick the recommended product",
                    },
                },
                "required": ["product_ids"],
            },
        },
    },
]


class CatalogTools:
    """
    Tools offered to an upstream conversational agent.

    ``execute_tool_call`` is the single entry point: it validates the
    arguments, runs the tool and wraps the outcome in a ``ToolResponse``.
    Failures are reported with ``success=False`` instead of raising.
    """

    def __init__(self, index: VectorIndex, retrieval: Optional[RetrievalService] = None) -> None:
        self.index = index
        self.retrieval = retrieval

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        return TOOL_DEFINITIONS

    async def execute_tool_call(
        self,
        tool_name: str,
        arguments: dict[str, Any] | str | None = None,
        budget: Optional[float] = None,
    ) -> ToolResponse:
        started = time.perf_counter()
        handlers = {
            "search_products": self._search_products,
            "get_product_details": self._get_product_details,
            "compare_products": self._compare_products,
        }
        handler = handlers.get(tool_name)
        if handler is None:
            logger.error("unknown tool requested: %s", tool_name)
            return ToolResponse(success=False, data={"error": "Unknown tool", "tool_name": tool_name}, tool_name=tool_name)

        try:
            if isinstance(arguments, str):
                arguments = json.loads(arguments or "{}")
            await self.index.initialize()
            data, tokens_used = await handler(arguments or {}, budget)
        except RecommendationUnavailable as exc:
            logger.warning("%s could not write a recommendation: %s", tool_name, exc)
            data = {"error": str(exc), "products": [p.model_dump(mode="json") for p in exc.products]}
            return self._respond(tool_name, started, data, success=False)
        except KeyError as exc:
            logger.warning("%s failed: unknown product %s", tool_name, exc.args[0])
            data = {"error": "Product not found", "product_id": exc.args[0]}
            return self._respond(tool_name, started, data, success=False)
        except (ValidationError, ValueError, ProductRAGError) as exc:
            logger.warning("%s failed: %s: %s", tool_name, exc.__class__.__name__, exc)
            return self._respond(tool_name, started, {"error": f"{tool_name} failed", "message": str(exc)}, success=False)

        logger.info("%s completed in %.0fms", tool_name, (time.perf_counter() - started) * 1000)
        return self._respond(tool_name, started, data, tokens_used=tokens_used)

    async def _search_products(self, arguments: dict, budget: Optional[float]) -> tuple[dict, Optional[int]]:
        args = SearchProductsArgs.model_validate(arguments)
        if self.retrieval is None:
            raise ValueError("search is not configured for these tools")
        response = await self.retrieval.search(SearchRequest(query=args.query, limit=args.limit))
        data = {
            "products": [p.model_dump(mode="json") for p in response.products],
            "total_found": len(response.products),
            "answer": response.answer,
            "search_query": response.search_query,
            "filters_applied": response.filters.model_dump(mode="json", exclude_none=True),
        }
        return data, response.tokens_used

    async def _get_product_details(self, arguments: dict, budget: Optional[float]) -> tuple[dict, Optional[int]]:
        args = ProductDetailsArgs.model_validate(arguments)
        details = self.get_product_details(args.product_id)
        if details is None:
            raise KeyError(args.product_id)
        return {"product": details.model_dump(mode="json")}, None

    async def _compare_products(self, arguments: dict, budget: Optional[float]) -> tuple[dict, Optional[int]]:
        args = CompareProductsArgs.model_validate(arguments)
        comparison = self.compare_products(
            args.product_ids,
            criteria=args.comparison_criteria,
            budget=args.budget if args.budget is not None else budget,
        )
        return {"comparison": comparison.model_dump(mode="json")}, None

    @staticmethod
    def _respond(
        tool_name: str,
        started: float,
        data: dict,
        success: bool = True,
        tokens_used: Optional[int] = None,
    ) -> ToolResponse:
        return ToolResponse(
            success=success,
            data=data,
            tool_name=tool_name,
            tokens_used=tokens_used,
            execution_time_ms=int((time.perf_counter() - started) * 1000),
        )

    def get_product_details(self, product_id: str) -> Optional[ProductDetails]:
        entry = self.index.get(product_id)
        if entry is None:
            return None
        return ProductDetails(
            id=entry.id,
            title=entry.title,
            content=entry.content,
            category=entry.category,
            price=entry.price,
            brand=entry.brand,
            features=extract_features(entry.content),
            specifications=_specifications(entry),
        )

    def compare_products(
        self,
        product_ids: list[str],
        criteria: Optional[list[str]] = None,
        budget: Optional[float] = None,
    ) -> Comparison:
        unique_ids = list(dict.fromkeys(product_ids))
        if not 2 <= len(unique_ids) <= 4:
            raise ValueError("compare_products needs between 2 and 4 distinct product ids")

        products: list[EmbeddedEntry] = []
        for product_id in unique_ids:
            entry = self.index.get(product_id)
            if entry is None:
                raise KeyError(product_id)
            products.append(entry)

        criteria = criteria or DEFAULT_CRITERIA
        rows = [
            ComparisonRow(
                criterion=criterion,
                values={p.id: _value_for(p, criterion) for p in products},
                winner=_winner(products, criterion),
            )
            for criterion in criteria
        ]
        return Comparison(
            products=[
                ProductView(id=p.id, title=p.title, price=p.price, category=p.category, brand=p.brand)
                for p in products
            ],
            rows=rows,
            summary=_summary(products),
            recommendation=_recommendation(products, budget),
            table=format_comparison_table(products, rows),
        )


def extract_features(content: str, limit: int = 5) -> list[str]:
    match = _FEATURES_RE.search(content or "")
    if match:
        features = [part.strip() for part in match.group(1).split(",") if part.strip()]
        return features[:limit]

    sentences = [s.strip() for s in (content or "").split(".") if s.strip()]
    keyed = [s for s in sentences if any(k in s.lower() for k in FEATURE_KEYWORDS)]
    return keyed[: min(limit, 3)]


def format_comparison_table(products: list[EmbeddedEntry], rows: list[ComparisonRow]) -> str:
    if not products:
        return ""
    header = "| Criterion | " + " | ".join(p.title for p in products) + " |"
    divider = "|---|" + "---|" * len(products)
    lines = ["Comparison table", "", header, divider]
    for row in rows:
        cells = []
        for p in products:
            value = row.values.get(p.id, "n/a")
            cells.append(f"**{value}**" if row.winner == p.id else value)
        lines.append(f"| {row.criterion} | " + " | ".join(cells) + " |")
    return "\n".join(lines)


def _specifications(entry: EmbeddedEntry) -> dict[str, str]:
    specs = {"category": entry.category}
    if entry.price is not None:
        specs["price"] = format_price(entry.price)
    if entry.brand:
        specs["brand"] = entry.brand
    lowered = entry.content.lower()
    if "wireless" in lowered:
        specs["connectivity"] = "wireless"
    if "5g" in lowered:
        specs["network"] = "5G"
    return specs


def _value_for(entry: EmbeddedEntry, criterion: str) -> str:
    key = criterion.strip().lower()
    if key == "price":
        return format_price(entry.price) if entry.price is not None else "n/a"
    if key == "brand":
        return entry.brand or "n/a"
    if key == "category":
        return entry.category
    if key == "features":
        return ", ".join(extract_features(entry.content)[:2]) or "see details"
    return "not evaluated"


def _winner(products: list[EmbeddedEntry], criterion: str) -> Optional[str]:
    if criterion.strip().lower() != "price":
        return None
    priced = [p for p in products if p.price is not None]
    if not priced:
        return None
    return min(priced, key=lambda p: p.price).id


def _summary(products: list[EmbeddedEntry]) -> str:
    summary = f"Comparing {len(products)} products"
    categories = {p.category for p in products}
    if len(categories) == 1:
        summary += f" in {next(iter(categories))}"
    prices = [p.price for p in products if p.price is not None]
    if len(prices) > 1:
        summary += f". Price range: {format_price(min(prices))} - {format_price(max(prices))}"
    return summary


def _recommendation(products: list[EmbeddedEntry], budget: Optional[float]) -> Optional[str]:
    priced = sorted((p for p in products if p.price is not None), key=lambda p: p.price)
    if budget is not None:
        affordable = [p for p in priced if p.price <= budget]
        if affordable:
            return f"For your budget of {format_price(budget)}, we recommend: {affordable[0].title}"
        return f"None of these products fits a budget of {format_price(budget)}."
    if priced:
        return f"Best price-quality balance: {priced[len(priced) // 2].title}"
    return None
