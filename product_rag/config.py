import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(ROOT_DIR / ".env")


def _as_bool(value: str, default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    openai_embedding_model: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    openai_max_retries: int = int(os.getenv("OPENAI_MAX_RETRIES", "0"))
    request_timeout_seconds: int = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    search_threshold: float = float(os.getenv("SEARCH_THRESHOLD", "0.4"))
    search_limit: int = int(os.getenv("SEARCH_LIMIT", "5"))
    candidate_pool_size: int = int(os.getenv("CANDIDATE_POOL_SIZE", "10"))
    max_alternatives: int = int(os.getenv("MAX_ALTERNATIVES", "3"))
    query_expansion: bool = _as_bool(os.getenv("QUERY_EXPANSION", "1"), default=True)
    embedding_cache_dir: str = os.getenv("EMBEDDING_CACHE_DIR", str(ROOT_DIR / "cache"))
    embedding_cache_max_age_days: int = int(os.getenv("EMBEDDING_CACHE_MAX_AGE_DAYS", "7"))
    catalog_path: str = os.getenv("CATALOG_PATH", "")
    debug_log: bool = _as_bool(os.getenv("DEBUG_LOG", "0"))
    gradio_server_name: str = os.getenv("GRADIO_SERVER_NAME", "0.0.0.0")
    gradio_server_port: int = int(os.getenv("GRADIO_SERVER_PORT", "7860"))


settings = Settings()


def configure_logging(config: Settings = settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.debug_log else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # The SDK transport is chatty at debug level.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
