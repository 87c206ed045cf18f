from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlparse

from openai import AsyncOpenAI

from product_rag.config import Settings, settings


@dataclass(frozen=True)
class Completion:
    text: str
    tokens_used: int = 0


class Embedder(Protocol):
    model: str

    async def embed(self, text: str) -> list[float]: ...


class Generator(Protocol):
    async def generate(
        self,
        system: str,
        user: str,
        *,
        json_output: bool = False,
        temperature: float = 0.2,
        max_tokens: int = 400,
    ) -> Completion: ...


def build_openai_client(config: Settings = settings) -> AsyncOpenAI:
    kwargs = {
        "api_key": config.openai_api_key,
        "timeout": float(config.request_timeout_seconds),
        "max_retries": config.openai_max_retries,
    }
    if _is_valid_http_url(config.openai_base_url):
        kwargs["base_url"] = config.openai_base_url
    return AsyncOpenAI(**kwargs)


class OpenAIEmbedder:
    def __init__(self, client: AsyncOpenAI | None = None, config: Settings = settings) -> None:
        self.model = config.openai_embedding_model
        self.client = client or build_openai_client(config)

    async def embed(self, text: str) -> list[float]:
        response = await self.client.embeddings.create(model=self.model, input=text)
        return list(response.data[0].embedding)


class OpenAIGenerator:
    def __init__(self, client: AsyncOpenAI | None = None, config: Settings = settings) -> None:
        self.model = config.openai_model
        self.client = client or build_openai_client(config)

    async def generate(
        self,
        system: str,
        user: str,
        *,
        json_output: bool = False,
        temperature: float = 0.2,
        max_tokens: int = 400,
    ) -> Completion:
        kwargs = {}
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}
        response = await self.client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            **kwargs,
        )
        text = (response.choices[0].message.content or "").strip()
        usage = getattr(response, "usage", None)
        return Completion(text=text, tokens_used=int(getattr(usage, "total_tokens", 0) or 0))


def _is_valid_http_url(value: str) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
