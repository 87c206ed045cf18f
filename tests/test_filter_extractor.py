import asyncio

from product_rag.rag.filter_extractor import FilterExtractor, merge_max_price
from product_rag.schemas import Filters


def test_pattern_budget_wins_over_model(make_generator):
    generator = make_generator(filters='{"category":"electronics","brand":"Samsung","maxPrice":350}')
    filters = asyncio.run(FilterExtractor(generator).extract("Samsung smartphone under $300"))

    assert filters.max_price == 300
    assert filters.category == "electronics"
    assert filters.brand == "Samsung"


def test_model_budget_used_without_pattern(make_generator):
    generator = make_generator(filters='{"category":"electronics","maxPrice":500}')
    filters = asyncio.run(FilterExtractor(generator).extract("a decent phone, around five hundred"))
    assert filters.max_price == 500


def test_pattern_budget_fills_missing_model_value(make_generator):
    generator = make_generator(filters='{"category":"home"}')
    filters = asyncio.run(FilterExtractor(generator).extract("kitchen gift under 300 dollars"))
    assert filters.category == "home"
    assert filters.max_price == 300


def test_model_failure_keeps_pattern_result(make_generator):
    generator = make_generator(filters=RuntimeError("connection reset"))
    filters = asyncio.run(FilterExtractor(generator).extract("Samsung smartphone under $300"))
    assert filters == Filters(max_price=300)


def test_malformed_model_output_keeps_pattern_result(make_generator):
    generator = make_generator(filters="I think you want a phone")
    filters = asyncio.run(FilterExtractor(generator).extract("phone for less than 200"))
    assert filters.max_price == 200
    assert filters.category is None


def test_model_failure_without_budget_is_empty(make_generator):
    generator = make_generator(filters=None)
    filters = asyncio.run(FilterExtractor(generator).extract("gift for someone who loves cooking"))
    assert filters.is_empty()


def test_no_generator_uses_pattern_only():
    filters = asyncio.run(FilterExtractor(None).extract("yoga mat up to 60"))
    assert filters.max_price == 60


def test_model_called_once_with_query(make_generator):
    generator = make_generator(filters="{}")
    asyncio.run(FilterExtractor(generator).extract("Apple laptop"))
    assert generator.calls_for("filters") == ["Apple laptop"]


def test_merge_max_price():
    assert merge_max_price(300, 350) == 300
    assert merge_max_price(None, 350) == 350
    assert merge_max_price(300, None) == 300
    assert merge_max_price(None, None) is None


def test_resolved_price_range_keeps_explicit_bounds():
    assert Filters(price_range="mid-range").resolved().min_price == 100
    assert Filters(price_range="mid-range").resolved().max_price == 500
    assert Filters(price_range="premium", max_price=800).resolved().max_price == 800
    assert Filters(price_range="economic").resolved().min_price is None
    assert Filters(category="home").resolved() == Filters(category="home")
