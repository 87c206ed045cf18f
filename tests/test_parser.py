import pytest

from product_rag.llm.parser import (
    heuristic_analysis,
    parse_analysis_output,
    parse_filter_output,
    scan_budget,
)


def test_parse_filter_output_valid_json():
    raw = '{"category":"Electronics","brand":"Samsung","maxPrice":300,"minPrice":null,"priceRange":null}'
    parsed = parse_filter_output(raw)
    assert parsed.category == "electronics"
    assert parsed.brand == "Samsung"
    assert parsed.max_price == 300
    assert parsed.min_price is None


def test_parse_filter_output_accepts_code_fence():
    parsed = parse_filter_output('```json\n{"category":"home","priceRange":"premium"}\n```')
    assert parsed.category == "home"
    assert parsed.price_range == "premium"


def test_parse_filter_output_blank_strings_become_none():
    parsed = parse_filter_output('{"category":"","brand":"null"}')
    assert parsed.category is None
    assert parsed.brand is None


@pytest.mark.parametrize(
    "raw",
    ["not-json", "", '["electronics"]', '{"priceRange":"luxury"}', '{"maxPrice":-5}'],
)
def test_parse_filter_output_rejects_non_conforming(raw):
    assert parse_filter_output(raw) is None


def test_parse_analysis_output_valid_json():
    raw = '{"intent":"recommend","budget":null,"expanded_query":"cooking kitchen gift"}'
    parsed = parse_analysis_output(raw, fallback_query="x")
    assert parsed.intent == "recommend"
    assert parsed.budget is None
    assert parsed.expanded_query == "cooking kitchen gift"


def test_parse_analysis_output_blank_expansion_uses_query():
    parsed = parse_analysis_output('{"intent":"search","expanded_query":"  "}', fallback_query="yoga mat")
    assert parsed.expanded_query == "yoga mat"


def test_parse_analysis_output_invalid_json_fallback():
    parsed = parse_analysis_output("not-json", fallback_query="compare iphone vs samsung")
    assert parsed.intent == "compare"
    assert parsed.expanded_query == "compare iphone vs samsung"


def test_heuristic_analysis_default_search():
    parsed = heuristic_analysis("quiero comprar zapatillas")
    assert parsed.intent == "search"
    assert parsed.budget is None


def test_heuristic_analysis_reads_budget():
    parsed = heuristic_analysis("gift ideas under 50 dollars")
    assert parsed.intent == "recommend"
    assert parsed.budget == 50


def test_heuristic_analysis_greeting():
    assert heuristic_analysis("hola").intent == "other"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Samsung smartphone under $300", 300),
        ("max 450 dollars for headphones", 450),
        ("presupuesto de 800 para una laptop", 800),
        ("hasta 1,200 pesos", 1200),
        ("something up to 150", 150),
        ("USD 99.5 tops", 99.5),
        ("under 300 for the kitchen", 300),
        ("iPhone 15 Pro", None),
        ("iPhone 15 Pro Max 256GB", None),
        ("laptop with up to 16GB RAM", None),
        ("earbuds with max 30 hours battery", None),
        ("monitor up to 27 inch", None),
        ("celular con hasta 128 gigas", None),
        ("iPhone 15 Pro Max 256GB under $1,100", 1100),
        ("", None),
    ],
)
def test_scan_budget(text, expected):
    assert scan_budget(text) == expected
