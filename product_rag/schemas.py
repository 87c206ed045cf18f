from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


IntentType = Literal["search", "compare", "recommend", "other"]
PriceRange = Literal["economic", "mid-range", "premium"]

PRICE_RANGE_BOUNDS: dict[str, tuple[Optional[float], Optional[float]]] = {
    "economic": (None, 100.0),
    "mid-range": (100.0, 500.0),
    "premium": (500.0, None),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str
    content: str
    category: str
    price: Optional[float] = Field(default=None, ge=0)
    brand: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")


class EmbeddedEntry(CatalogEntry):
    embedding: list[float]


class CacheEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    corpus_hash: str = Field(alias="hash")
    model: str
    embeddings: list[EmbeddedEntry]
    created_at: datetime = Field(alias="createdAt")


class Filters(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: Optional[str] = None
    brand: Optional[str] = None
    min_price: Optional[float] = Field(default=None, ge=0, alias="minPrice")
    max_price: Optional[float] = Field(default=None, ge=0, alias="maxPrice")
    price_range: Optional[PriceRange] = Field(default=None, alias="priceRange")

    @field_validator("category", "brand", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        if not text or text.lower() in {"null", "none", "n/a"}:
            return None
        return text

    @field_validator("category")
    @classmethod
    def _lower_category(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value

    def resolved(self) -> Filters:
        """Expand ``price_range`` into concrete bounds, keeping explicit ones."""
        if not self.price_range:
            return self
        low, high = PRICE_RANGE_BOUNDS[self.price_range]
        return self.model_copy(
            update={
                "min_price": self.min_price if self.min_price is not None else low,
                "max_price": self.max_price if self.max_price is not None else high,
            }
        )

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (self.category, self.brand, self.min_price, self.max_price, self.price_range)
        )


class QueryAnalysis(BaseModel):
    model_config = ConfigDict(extra="ignore")

    intent: IntentType = "search"
    budget: Optional[float] = Field(default=None, ge=0)
    expanded_query: str = ""


class RankedCandidate(BaseModel):
    entry: EmbeddedEntry
    similarity: float


class RejectedCandidate(RankedCandidate):
    reason: str


class SplitResult(BaseModel):
    matching: list[RankedCandidate] = Field(default_factory=list)
    non_matching: list[RejectedCandidate] = Field(default_factory=list)


class ProductView(BaseModel):
    id: str
    title: str
    price: Optional[float] = None
    category: str
    brand: Optional[str] = None
    similarity: Optional[float] = None
    within_filters: bool = True
    reason: Optional[str] = None


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    limit: Optional[int] = Field(default=None, ge=1, le=20)
    filters: Optional[Filters] = None


class SearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    products: list[ProductView] = Field(default_factory=list)
    tokens_used: int = Field(default=0, alias="tokensUsed")
    filters: Filters = Field(default_factory=Filters)
    search_query: str = ""
    used_fallback: bool = False


class RetrievalResult(BaseModel):
    query: str
    search_query: str
    used_fallback: bool = False
    filters: Filters = Field(default_factory=Filters)
    budget: Optional[float] = None
    split: SplitResult = Field(default_factory=SplitResult)


class IndexStats(BaseModel):
    total: int
    categories: list[str]
    brands: list[str]
    price_min: float = 0.0
    price_max: float = 0.0
    initialized: bool


class CacheStats(BaseModel):
    exists: bool
    size: Optional[int] = None
    created_at: Optional[datetime] = None
    item_count: Optional[int] = None
    model: Optional[str] = None


class ProductDetails(BaseModel):
    id: str
    title: str
    content: str
    category: str
    price: Optional[float] = None
    brand: Optional[str] = None
    features: list[str] = Field(default_factory=list)
    specifications: dict[str, str] = Field(default_factory=dict)


class ComparisonRow(BaseModel):
    criterion: str
    values: dict[str, str]
    winner: Optional[str] = None


class Comparison(BaseModel):
    products: list[ProductView]
    rows: list[ComparisonRow]
    summary: str
    recommendation: Optional[str] = None
    table: str = ""


class SearchProductsArgs(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=10)


class ProductDetailsArgs(BaseModel):
    product_id: str = Field(min_length=1)


class CompareProductsArgs(BaseModel):
    product_ids: list[str] = Field(min_length=2, max_length=4)
    comparison_criteria: Optional[list[str]] = None
    budget: Optional[float] = Field(default=None, ge=0)


class ToolResponse(BaseModel):
    success: bool
    data: dict = Field(default_factory=dict)
    tool_name: str
    tokens_used: Optional[int] = None
    execution_time_ms: Optional[int] = None
