import asyncio
import re

import pytest

from product_rag.config import Settings
from product_rag.llm.analyzer import QueryAnalyzer
from product_rag.llm.client import Completion
from product_rag.llm.prompts import (
    FILTER_EXTRACTION_SYSTEM_PROMPT,
    QUERY_ANALYSIS_SYSTEM_PROMPT,
    RECOMMENDATION_SYSTEM_PROMPT,
)
from product_rag.llm.responder import RecommendationResponder
from product_rag.rag.embedding_cache import EmbeddingCache
from product_rag.rag.filter_extractor import FilterExtractor
from product_rag.rag.vector_index import VectorIndex
from product_rag.schemas import CatalogEntry
from product_rag.services.retrieval_service import RetrievalService

VOCABULARY = [
    "samsung",
    "smartphone",
    "galaxy",
    "apple",
    "iphone",
    "laptop",
    "earbuds",
    "cooking",
    "kitchen",
    "chef",
    "coffee",
    "gift",
    "yoga",
    "bottle",
]


class KeywordEmbedder:
    """Counts vocabulary words; texts without known words embed to the zero vector."""

    def __init__(self, model: str = "keyword-test", fail_on: str | None = None) -> None:
        self.model = model
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(0)
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("embedding service down")
        tokens = re.findall(r"[a-z0-9]+", text.lower())
        return [float(tokens.count(word)) for word in VOCABULARY]


class Slow:
    def __init__(self, seconds: float) -> None:
        self.seconds = seconds


class ScriptedGenerator:
    """Answers by prompt kind: ``filters``, ``analysis`` or ``recommendation``."""

    KINDS = {
        FILTER_EXTRACTION_SYSTEM_PROMPT: "filters",
        QUERY_ANALYSIS_SYSTEM_PROMPT: "analysis",
        RECOMMENDATION_SYSTEM_PROMPT: "recommendation",
    }

    def __init__(self, filters="{}", analysis=None, recommendation="Here are some options.", tokens_used=42):
        self.responses = {"filters": filters, "analysis": analysis, "recommendation": recommendation}
        self.tokens_used = tokens_used
        self.calls: list[tuple[str, str]] = []

    def calls_for(self, kind: str) -> list[str]:
        return [user for call_kind, user in self.calls if call_kind == kind]

    async def generate(self, system, user, *, json_output=False, temperature=0.2, max_tokens=400):
        await asyncio.sleep(0)
        kind = self.KINDS[system]
        self.calls.append((kind, user))
        response = self.responses[kind]
        if response is None:
            raise RuntimeError(f"no scripted {kind} response")
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, Slow):
            await asyncio.sleep(response.seconds)
            return Completion(text="too late", tokens_used=self.tokens_used)
        return Completion(text=response, tokens_used=self.tokens_used)


def _entry(id, title, content, category, price, brand):
    return CatalogEntry(id=id, title=title, content=content, category=category, price=price, brand=brand)


@pytest.fixture
def catalog():
    return [
        _entry("p01", "iPhone 15 Pro", "Apple iPhone smartphone with pro camera", "electronics", 999, "Apple"),
        _entry("p02", "Galaxy S24 Ultra", "Samsung Galaxy smartphone flagship camera", "electronics", 999, "Samsung"),
        _entry("p03", "Galaxy A15", "Samsung Galaxy smartphone with long battery", "electronics", 199, "Samsung"),
        _entry("p04", "Galaxy Buds Pro", "Samsung Galaxy earbuds with noise cancelling", "electronics", 179, "Samsung"),
        _entry("p05", "MacBook Air", "Apple laptop for students", "electronics", 1199, "Apple"),
        _entry("p06", "Chef Knife Set", "chef knife set for cooking in the kitchen", "home", 189, "ChefMaster"),
        _entry("p07", "Espresso Machine", "espresso coffee machine for the kitchen", "home", 599, "BrewMaster"),
        _entry("p08", "Cookware Set", "cookware set, a gift for cooking lovers in the kitchen", "home", 249, "KitchenAid"),
        _entry("p09", "Yoga Mat", "yoga mat with non slip surface", "sports", 45, "ZenFit"),
        _entry("p10", "Water Bottle", "insulated bottle for the gym", "accessories", None, "HydroLife"),
    ]


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        embedding_cache_dir=str(tmp_path / "cache"),
        search_threshold=0.35,
        search_limit=5,
        candidate_pool_size=10,
        max_alternatives=3,
        query_expansion=True,
    )


@pytest.fixture
def make_embedder():
    return KeywordEmbedder


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def make_generator():
    return ScriptedGenerator


@pytest.fixture
def slow():
    return Slow


@pytest.fixture
def make_index(catalog, test_settings):
    def factory(embedder, entries=None, cache=True):
        embedding_cache = EmbeddingCache(config=test_settings) if cache else None
        return VectorIndex(entries or catalog, embedder, cache=embedding_cache, config=test_settings)

    return factory


@pytest.fixture
def make_service(make_index, test_settings):
    def factory(generator, embedder=None, index=None):
        index = index or make_index(embedder or KeywordEmbedder())
        return RetrievalService(
            index=index,
            extractor=FilterExtractor(generator),
            analyzer=QueryAnalyzer(generator, config=test_settings),
            responder=RecommendationResponder(generator),
            config=test_settings,
        )

    return factory
