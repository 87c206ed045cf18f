import logging

import gradio as gr

from product_rag.config import configure_logging, settings
from product_rag.errors import ProductRAGError, RecommendationUnavailable
from product_rag.rag.filter_splitter import format_price
from product_rag.schemas import ProductView, SearchRequest
from product_rag.services.catalog_tools import CatalogTools
from product_rag.services.retrieval_service import RetrievalService, build_retrieval_service

logger = logging.getLogger(__name__)


def format_products(products: list[ProductView]) -> str:
    if not products:
        return ""
    lines = [
        "| Product | Brand | Category | Price | Match |",
        "|---|---|---|---:|---|",
    ]
    for p in products:
        price = format_price(p.price) if p.price is not None else "n/a"
        match = "yes" if p.within_filters else (p.reason or "no")
        lines.append(f"| {p.title} | {p.brand or 'n/a'} | {p.category} | {price} | {match} |")
    return "\n".join(lines)


def parse_product_ids(text: str) -> list[str]:
    return [part.strip() for part in (text or "").replace(";", ",").split(",") if part.strip()]


def build_demo(service: RetrievalService, tools: CatalogTools) -> gr.Blocks:
    async def chat_fn(message: str, history: list[dict]) -> str:
        text = (message or "").strip()
        if not text:
            return "Send a message to search the catalog."
        try:
            response = await service.search(SearchRequest(query=text), timeout=settings.request_timeout_seconds)
        except RecommendationUnavailable as exc:
            return f"I couldn't write a recommendation right now. Top matches:\n\n{format_products(exc.products)}"
        except ProductRAGError as exc:
            logger.error("search failed: %s", exc)
            return "The product search service is unavailable. Please try again in a moment."

        table = format_products(response.products)
        return f"{response.answer}\n\n{table}" if table else response.answer

    async def compare_fn(ids_text: str, budget: float | None) -> str:
        arguments = {"product_ids": parse_product_ids(ids_text)}
        if budget:
            arguments["budget"] = budget
        result = await tools.execute_tool_call("compare_products", arguments)
        if not result.success:
            return f"Comparison failed: {result.data.get('message') or result.data.get('error')}"
        comparison = result.data["comparison"]
        parts = [comparison["table"], "", comparison["summary"]]
        if comparison.get("recommendation"):
            parts.append(comparison["recommendation"])
        return "\n\n".join(parts)

    with gr.Blocks(title="Product Catalog Assistant") as demo:
        gr.Markdown(
            """
            # Product Catalog Assistant (semantic search + LLM)
            Find, compare and get recommendations grounded in the store catalog.
            Mention a budget like "under $300" to see what fits and what is just above it.
            """
        )
        with gr.Tab("Search"):
            gr.ChatInterface(
                fn=chat_fn,
                type="messages",
                examples=[
                    "Samsung smartphone under $300",
                    "Gift for someone who loves cooking",
                    "Cheap accessories for the gym",
                    "Apple laptop for a student",
                ],
            )
        with gr.Tab("Compare"):
            ids_box = gr.Textbox(label="Product ids (2-4, comma separated)", placeholder="prod-002, prod-003")
            budget_box = gr.Number(label="Budget (optional)", value=None)
            compare_button = gr.Button("Compare")
            compare_output = gr.Markdown()
            compare_button.click(compare_fn, inputs=[ids_box, budget_box], outputs=compare_output)
    return demo


if __name__ == "__main__":
    configure_logging()
    service = build_retrieval_service(settings)
    tools = CatalogTools(service.index, retrieval=service)
    app = build_demo(service, tools)
    app.launch(server_name=settings.gradio_server_name, server_port=settings.gradio_server_port)
