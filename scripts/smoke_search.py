import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from product_rag.config import configure_logging, settings
from product_rag.errors import RecommendationUnavailable
from product_rag.schemas import SearchRequest
from product_rag.services.catalog_tools import CatalogTools
from product_rag.services.retrieval_service import build_retrieval_service


async def main() -> None:
    configure_logging()
    service = build_retrieval_service(settings)
    await service.initialize()
    print(f"index={service.index.stats().model_dump()}")
    for query in ["Samsung smartphone under $300", "gift for someone who loves cooking", "telescope for astronomy"]:
        try:
            response = await service.search(SearchRequest(query=query), timeout=settings.request_timeout_seconds)
        except RecommendationUnavailable as exc:
            print(f"query={query} recommendation_error={exc} products={len(exc.products)}")
            continue
        print(f"query={query} products={len(response.products)} tokens={response.tokens_used}")
        print(f"filters={response.filters.model_dump(exclude_none=True)} search_query={response.search_query}")
        for item in response.products:
            print(f"- {item.title} | price={item.price} | similarity={item.similarity:.3f} | reason={item.reason}")
        print(response.answer)
        print("---")

    tools = CatalogTools(service.index, retrieval=service)
    print("tools=" + ", ".join(d["function"]["name"] for d in tools.get_tool_definitions()))
    result = await tools.execute_tool_call("compare_products", {"product_ids": ["prod-002", "prod-003"], "budget": 300})
    print(f"compare success={result.success} time_ms={result.execution_time_ms}")
    if result.success:
        print(result.data["comparison"]["table"])
        print(result.data["comparison"]["recommendation"])


if __name__ == "__main__":
    asyncio.run(main())
