import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from product_rag.config import configure_logging
from product_rag.rag.embedding_cache import EmbeddingCache


def main() -> None:
    configure_logging()
    cache = EmbeddingCache()
    stats = cache.stats()
    if stats.exists:
        print(f"cache={cache.cache_file} items={stats.item_count} model={stats.model} created={stats.created_at}")
    removed = cache.clear()
    print("cache cleared" if removed else "no cache to clear")


if __name__ == "__main__":
    main()
