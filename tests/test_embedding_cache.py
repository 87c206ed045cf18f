import json
from datetime import datetime, timedelta, timezone

from product_rag.rag.embedding_cache import CACHE_FILE_NAME, EmbeddingCache, corpus_hash
from product_rag.schemas import CatalogEntry, EmbeddedEntry


def _embedded(catalog):
    return [
        EmbeddedEntry(**entry.model_dump(), embedding=[float(idx), 1.0, 0.5])
        for idx, entry in enumerate(catalog)
    ]


def test_corpus_hash_is_order_independent(catalog):
    assert corpus_hash(catalog) == corpus_hash(list(reversed(catalog)))


def test_corpus_hash_changes_with_content(catalog):
    changed = list(catalog)
    changed[3] = changed[3].model_copy(update={"content": "Samsung Galaxy earbuds, new edition"})
    assert corpus_hash(changed) != corpus_hash(catalog)


def test_corpus_hash_ignores_price(catalog):
    changed = list(catalog)
    changed[2] = changed[2].model_copy(update={"price": 149})
    assert corpus_hash(changed) == corpus_hash(catalog)


def test_load_without_file_is_a_miss(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    assert cache.load(catalog, "keyword-test") is None


def test_save_then_load_round_trip(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    cache.save(catalog, _embedded(catalog), "keyword-test")

    loaded = cache.load(list(reversed(catalog)), "keyword-test")
    assert loaded is not None
    assert [e.id for e in loaded] == [e.id for e in catalog]
    assert loaded[1].embedding == [1.0, 1.0, 0.5]


def test_file_layout(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    cache.save(catalog, _embedded(catalog), "keyword-test")

    payload = json.loads(cache.cache_file.read_text(encoding="utf-8"))
    assert set(payload) == {"hash", "model", "embeddings", "createdAt"}
    assert payload["hash"] == corpus_hash(catalog)
    assert payload["embeddings"][0]["createdAt"]


def test_content_change_forces_miss(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    cache.save(catalog, _embedded(catalog), "keyword-test")

    changed = list(catalog)
    changed[0] = changed[0].model_copy(update={"content": "Apple iPhone 16"})
    assert cache.load(changed, "keyword-test") is None


def test_model_change_forces_miss(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    cache.save(catalog, _embedded(catalog), "keyword-test")
    assert cache.load(catalog, "another-model") is None


def test_expired_cache_is_a_miss(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    cache.save(catalog, _embedded(catalog), "keyword-test")

    payload = json.loads(cache.cache_file.read_text(encoding="utf-8"))
    payload["createdAt"] = (datetime.now(timezone.utc) - timedelta(days=8)).isoformat()
    cache.cache_file.write_text(json.dumps(payload), encoding="utf-8")

    assert cache.load(catalog, "keyword-test") is None


def test_corrupt_file_is_a_miss(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    cache.cache_dir.mkdir(parents=True)
    cache.cache_file.write_text('{"hash": "abc", "model": ', encoding="utf-8")

    assert cache.load(catalog, "keyword-test") is None
    assert cache.stats().exists is False


def test_save_overwrites_and_leaves_no_temp_files(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    cache.save(catalog, _embedded(catalog), "keyword-test")
    cache.save(catalog[:2], _embedded(catalog[:2]), "keyword-test")

    assert [p.name for p in cache.cache_dir.iterdir()] == [CACHE_FILE_NAME]
    assert cache.load(catalog, "keyword-test") is None
    assert len(cache.load(catalog[:2], "keyword-test")) == 2


def test_clear_and_stats(catalog, test_settings):
    cache = EmbeddingCache(config=test_settings)
    cache.save(catalog, _embedded(catalog), "keyword-test")

    stats = cache.stats()
    assert stats.exists is True
    assert stats.item_count == len(catalog)
    assert stats.model == "keyword-test"

    assert cache.clear() is True
    assert cache.clear() is False
    assert cache.stats().exists is False


def test_corpus_hash_fields_do_not_bleed_into_each_other():
    left = [CatalogEntry(id="a|b", title="t", content="c", category="home")]
    right = [CatalogEntry(id="a", title="t", content="b|c", category="home")]
    assert corpus_hash(left) != corpus_hash(right)
