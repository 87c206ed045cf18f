from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from product_rag.schemas import ProductView


class ProductRAGError(Exception):
    """Base class for failures surfaced to the caller of the retrieval core."""


class EmbeddingServiceUnavailable(ProductRAGError):
    """The embedding service failed while the index was being built."""


class IndexNotReady(ProductRAGError):
    """A read was issued before the index finished its first initialization."""


class RecommendationUnavailable(ProductRAGError):
    """Recommendation text could not be generated.

    The ranked products are still attached so a client can show a plain list.
    """

    def __init__(self, message: str, products: list[ProductView] | None = None) -> None:
        super().__init__(message)
        self.products = products or []


class RequestTimeout(ProductRAGError):
    """The caller-supplied deadline elapsed before the request completed."""
